"""Heuristics for how much independent corroboration a text needs."""

import re

from .interfaces import RequirementAdvisor
from .models import VerificationRequirements

MAX_RECOMMENDED_VERIFICATIONS = 4
LOW_CONFIDENCE_THRESHOLD = 0.6


class VerificationRequirementAdvisor(RequirementAdvisor):
    """Recommends a verification count from claim complexity and topic."""

    ATTRIBUTION_PATTERN = re.compile(
        r"\b(affirmation|déclare|selon|d'après|prétend|allègue"
        r"|claims?|states?|according to|alleges?|asserts?|reportedly)\b",
        re.IGNORECASE,
    )
    PROPER_NAME_PATTERN = re.compile(r"\b[A-Z][a-z]+ [A-Z][a-z]+\b")
    DATE_PATTERN = re.compile(
        r"\d{1,2}/\d{1,2}/\d{2,4}|\d{1,2} [a-zé]+ \d{2,4}|\b(1[5-9]|20)\d{2}\b",
        re.IGNORECASE,
    )
    NUMBER_PATTERN = re.compile(r"\d+([.,]\d+)?%?")
    QUALIFIER_PATTERN = re.compile(
        r"\b(certains|parfois|peut-être|dans certains cas"
        r"|some|sometimes|perhaps|maybe|in some cases|often)\b",
        re.IGNORECASE,
    )

    CRITICAL_TOPICS = [
        # French
        "santé", "médecine", "légal", "juridique", "financier", "sécurité",
        "scientifique", "recherche", "historique", "politique",
        # English
        "health", "medical", "medicine", "legal", "financial", "safety",
        "scientific", "research", "historical", "political",
    ]

    def determine_verification_requirements(
        self, text: str, prior_confidence: float | None = None
    ) -> VerificationRequirements:
        reasons: list[str] = []
        count = 1
        lowered = text.lower()

        if self.ATTRIBUTION_PATTERN.search(text):
            count += 1
            reasons.append("Contains attributed or reported claims")

        has_names = bool(self.PROPER_NAME_PATTERN.search(text))
        has_dates_or_numbers = bool(
            self.DATE_PATTERN.search(text) or self.NUMBER_PATTERN.search(text)
        )
        if has_names and has_dates_or_numbers:
            count += 1
            reasons.append("Contains proper names together with dates or numbers")

        if any(topic in lowered for topic in self.CRITICAL_TOPICS):
            count += 1
            reasons.append("Touches a critical topic that needs thorough checking")

        if prior_confidence is not None and prior_confidence < LOW_CONFIDENCE_THRESHOLD:
            count += 1
            reasons.append("Low initial confidence")

        has_mixed_concepts = len(text.split(".")) > 2
        if has_mixed_concepts and self.QUALIFIER_PATTERN.search(text):
            count += 1
            reasons.append("Mixes several statements with hedging qualifiers")

        count = min(count, MAX_RECOMMENDED_VERIFICATIONS)
        return VerificationRequirements(
            requires_multiple_verifications=count > 1,
            recommended_verifications_count=count,
            reasons=reasons,
        )
