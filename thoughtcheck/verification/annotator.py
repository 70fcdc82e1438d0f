"""Inline verification markers for checked calculations."""

import re

from .models import CalculationVerificationResult

VERIFIED_MARKER = " [✓ Vérifié]"
PENDING_MARKER = " [⏳ Vérification en cours...]"
INCORRECT_MARKER = " [✗ Incorrect: {verdict}]"

# An occurrence already followed by one of our markers is never decorated again
_ALREADY_MARKED = r"(?! \[(?:✓|⏳|✗) )"


class ThoughtAnnotator:
    """Rewrites a text with a marker after each resolved calculation."""

    @staticmethod
    def marker_for(calculation: CalculationVerificationResult) -> str:
        if calculation.is_correct:
            return VERIFIED_MARKER
        if calculation.is_pending:
            return PENDING_MARKER
        return INCORRECT_MARKER.format(verdict=calculation.verified)

    def annotate(self, text: str, calculations: list[CalculationVerificationResult]) -> str:
        """Decorate the first undecorated occurrence of each calculation.

        Entries are processed last to first so the marker appended for one
        entry cannot disturb the substring search of another. Function
        notation is left untouched.
        """
        annotated = text
        checked = [c for c in calculations if not c.is_function_notation]
        for calculation in reversed(checked):
            if not calculation.original:
                continue
            decorated = calculation.original + self.marker_for(calculation)
            pattern = re.compile(re.escape(calculation.original) + _ALREADY_MARKED)
            annotated = pattern.sub(lambda _m: decorated, annotated, count=1)
        return annotated
