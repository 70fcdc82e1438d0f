"""Classify text along independent claim-type axes."""

import re
from dataclasses import dataclass


@dataclass(frozen=True)
class ContentCharacteristics:
    """Which kinds of verifiable content a text contains."""

    factual_claim: bool = False
    statistic: bool = False
    opinion: bool = False
    external_reference: bool = False
    calculation: bool = False

    @property
    def axes_count(self) -> int:
        return sum((
            self.factual_claim,
            self.statistic,
            self.opinion,
            self.external_reference,
            self.calculation,
        ))

    def as_list(self) -> list[str]:
        return [name for name, present in vars(self).items() if present]


class ContentCharacterizer:
    """Pattern-based characterization of claims (English and French).

    Pure function of the text. Used to size tool selection and to decide
    whether the calculation-only fast path should run.
    """

    FACTUAL_PATTERNS = [
        r"\b(is|are|was|were|has been|have been)\b",
        r"\b(est|sont|était|étaient|a été|ont été)\b",
        r"\b(in|en) (1[5-9]|20)\d{2}\b",
        r"\b(founded|invented|discovered|born|died|located|capital of)\b",
        r"\b(fondée?|inventée?|découverte?|née?|mort|située?|capitale de)\b",
    ]

    STATISTIC_PATTERNS = [
        r"\d+(?:[.,]\d+)?\s*%",
        r"\d+(?:[.,]\d+)?\s*(percent|pour\s*cent)",
        r"\d+(?:[.,]\d+)?\s*(thousand|million|billion|trillion|milliers?|millions?|milliards?)",
        r"\d+(?:[.,]\d+)?\s*(kg|km|m|cm|mm|g|mg|l|ml|°c|°f|h|min|s|ms|€|\$|£)\b",
        r"[$€£]\s*\d+",
        r"\b(average|median|mean|rate|ratio|moyenne|médiane|taux)\b",
        r"\b(increased|decreased|grew|fell|augmenté|diminué|hausse|baisse) (by|de)\b",
    ]

    OPINION_PATTERNS = [
        r"\b(i think|i believe|in my opinion|i feel|arguably|probably|perhaps|maybe|might|seems?)\b",
        r"\b(je pense|je crois|à mon avis|selon moi|probablement|peut-être|sans doute|semble)\b",
        r"\b(should|ought to|better|worse|best|worst|devrait|meilleur|pire)\b",
    ]

    EXTERNAL_REFERENCE_PATTERNS = [
        r"https?://\S+",
        r"\bwww\.\S+",
        r"\b(according to|as reported by|cited in|published in|a study|researchers? (found|showed))\b",
        r"\b(selon|d'après|d’après|rapporté par|publié dans|une étude|les chercheurs)\b",
        r"\[\d+\]",
        r"\([A-Z][A-Za-z\-]+(?: et al\.)?,? (1[5-9]|20)\d{2}\)",
        r"\bdoi:\s*\S+",
    ]

    CALCULATION_PATTERNS = [
        r"\d+\s*[+\-*/×÷^]\s*\d+\s*=",
        r"\bcalcul\s*(?:complexe|avancé)?\s*:?\s*[^=]+=\s*\d+",
        r"\bcalculation\s*:?\s*[^=]+=\s*\d+",
        r"\d+[³²¹]",
        r"=\s*[\d\-+]+\s*=\s*[\d\-+]+",
        r"\d+\s+(plus|moins|fois|minus|times|divided by|divisé par|multiplied by|multiplié par)\s+\d+",
        r"\b(racine carrée|square root|squared|cubed|au carré|au cube)\b",
    ]

    def __init__(self):
        self._factual = self._compile(self.FACTUAL_PATTERNS)
        self._statistic = self._compile(self.STATISTIC_PATTERNS)
        self._opinion = self._compile(self.OPINION_PATTERNS)
        self._reference = self._compile(self.EXTERNAL_REFERENCE_PATTERNS)
        self._calculation = self._compile(self.CALCULATION_PATTERNS)

    @staticmethod
    def _compile(patterns: list[str]) -> list[re.Pattern]:
        return [re.compile(p, re.IGNORECASE) for p in patterns]

    @staticmethod
    def _matches(patterns: list[re.Pattern], text: str) -> bool:
        return any(p.search(text) for p in patterns)

    def characterize(self, text: str) -> ContentCharacteristics:
        return ContentCharacteristics(
            factual_claim=self._matches(self._factual, text),
            statistic=self._matches(self._statistic, text),
            opinion=self._matches(self._opinion, text),
            external_reference=self._matches(self._reference, text),
            calculation=self.has_calculation(text),
        )

    def has_calculation(self, text: str) -> bool:
        return self._matches(self._calculation, text)
