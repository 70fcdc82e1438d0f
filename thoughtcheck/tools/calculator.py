"""Built-in verification tool that checks arithmetic claims locally."""

from typing import Any

from ..verification.calculations import CalculationDetector
from .catalog import ToolCatalog

CALCULATOR_TOOL_NAME = "calculator"
CALCULATOR_SOURCE = "local arithmetic evaluation"


def make_calculator_handler(detector: CalculationDetector | None = None):
    """Build the async handler of the calculator tool."""
    detector = detector or CalculationDetector()

    async def calculator(text: str) -> dict[str, Any]:
        calculations = detector.detect_and_verify(text)
        checked = [c for c in calculations if not c.is_function_notation]
        if not checked:
            # No validity flag: the claim is outside what this tool can judge
            return {
                "verified_calculations": [c.model_dump() for c in calculations],
                "details": "No checkable calculation found",
                "source": CALCULATOR_SOURCE,
            }

        all_correct = all(c.is_correct for c in checked)
        return {
            "is_valid": all_correct,
            "verified_calculations": [c.model_dump() for c in calculations],
            "details": "; ".join(c.verified for c in checked),
            "source": CALCULATOR_SOURCE,
            "confidence": min(c.confidence for c in checked),
        }

    return calculator


def register_calculator(catalog: ToolCatalog, detector: CalculationDetector | None = None) -> None:
    catalog.register(
        name=CALCULATOR_TOOL_NAME,
        description="Checks arithmetic claims by evaluating them",
        handler=make_calculator_handler(detector),
        keywords=["calcul", "calculation", "sum", "total", "equals", "égale", "plus", "minus", "times", "fois"],
        use_case="Use when the text states the result of a calculation",
        intents=("calculation",),
    )
