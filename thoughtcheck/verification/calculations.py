"""Best-effort detection and checking of arithmetic claims."""

import math

from ..logging_config import get_logger
from .interfaces import NumericEvaluator
from .math_evaluator import MathEvaluator
from .models import CalculationVerificationResult

logger = get_logger(__name__)


class CalculationDetector:
    """Scans text for arithmetic spans and reports whether each one holds.

    Never raises: a failing evaluator yields an empty list so calculation
    checking cannot block the rest of the pipeline.
    """

    def __init__(self, evaluator: NumericEvaluator | None = None):
        self.evaluator = evaluator or MathEvaluator()

    def detect_and_verify(self, text: str) -> list[CalculationVerificationResult]:
        try:
            evaluations = self.evaluator.detect_and_evaluate(text)
            results = self.evaluator.convert_to_verification_results(evaluations)
        except Exception:
            logger.warning("Calculation detection failed", exc_info=True)
            return []

        kept = [r for r in results if r.is_function_notation or not _is_nan(r.result)]
        if len(kept) < len(results):
            logger.debug("Dropped %d unevaluable calculation(s)", len(results) - len(kept))
        return kept


def _is_nan(value: float | str | None) -> bool:
    return isinstance(value, float) and math.isnan(value)
