"""Detection and safe evaluation of arithmetic claims in free text.

Recognised forms (English and French wording):

- standard arithmetic: ``2 + 3 = 5``, ``12 / 4 vaut 3``
- parenthesised expressions: ``(2 + 3) * 4 = 20``
- worded arithmetic: ``2 plus 2 equals 4``, ``3 fois 4 égale 12``
- square, cube and square root phrases: ``9 squared = 81``, ``racine carrée de 9 = 3``
- chained equalities with superscript powers: ``2³ - 2×2 - 5 = 8 - 4 - 5 = -1``
- function notation such as ``f(x) = f(2)``, reported but never evaluated

Expressions are evaluated by walking a whitelisted Python AST, never with eval().
"""

import ast
import math
import operator
import re

from ..logging_config import get_logger
from .interfaces import MathEvaluation, NumericEvaluator
from .models import CalculationClassification, CalculationVerificationResult

logger = get_logger(__name__)

RELATIVE_EPSILON = 1e-10
ABSOLUTE_EPSILON = 1e-12
MAX_EXPONENT = 100

FUNCTION_NOTATION_CONTEXT = "function_notation"
EVALUATION_ERROR_CONTEXT = "evaluation_error"
STEP_CONTEXT_PREFIX = "step "

_NUM = r"\d+(?:\.\d+)?"
_SUP = r"[³²¹]?"
_OP = r"[+\-*/^×÷]"
_GROUP = r"\([\d\s+\-*/^×÷.]+\)"
_CLAIM = r"(?:=|est\s+égale?\s+à|égale?|vaut|font|donne|is\s+equal\s+to|equals?)"
_WORD_OP = (
    r"(?:plus|moins|fois|divisé\s+par|multiplié\s+par"
    r"|minus|times|divided\s+by|multiplied\s+by)"
)
_STEP = rf"-?{_NUM}{_SUP}(?:\s*{_OP}\s*-?{_NUM}{_SUP})*"

# Order matters: earlier kinds claim their span first
EXPRESSION_PATTERNS: dict[str, re.Pattern] = {
    "sequential": re.compile(
        rf"(?<![\d.]){_NUM}{_SUP}(?:\s*{_OP}\s*{_NUM}{_SUP})+(?:\s*=\s*{_STEP}){{2,}}"
    ),
    "standard": re.compile(
        rf"(?<![\d.]){_NUM}(?:\s*{_OP}\s*{_NUM})+\s*{_CLAIM}\s*(-?{_NUM})",
        re.IGNORECASE,
    ),
    "parentheses": re.compile(
        rf"(?:{_NUM}\s*{_OP}\s*)*{_GROUP}(?:\s*{_OP}\s*(?:{_NUM}|{_GROUP}))*\s*{_CLAIM}\s*(-?{_NUM})",
        re.IGNORECASE,
    ),
    "textual": re.compile(
        rf"(?<![\d.]){_NUM}(?:\s+{_WORD_OP}\s+{_NUM})+\s*{_CLAIM}\s*(-?{_NUM})",
        re.IGNORECASE,
    ),
    "functions": re.compile(
        rf"(?:(?:racine\s+carrée\s+(?:de\s+)?|square\s+root\s+of\s+)({_NUM})"
        rf"|({_NUM})\s+(au\s+carré|au\s+cube|squared|cubed))"
        rf"\s*{_CLAIM}\s*(-?{_NUM})",
        re.IGNORECASE,
    ),
}

KIND_CONFIDENCE = {
    "sequential": 0.9,
    "standard": 0.99,
    "parentheses": 0.99,
    "textual": 0.95,
    "functions": 0.97,
}

FUNCTION_NOTATION_PATTERN = re.compile(
    r"(?<![\w])[a-zA-Z]'?\([\w₀₁₂₃₄₅₆₇₈₉.,\s]+\)(?:\s*=\s*[a-zA-Z]'?\([^()=]+\))+"
)
_CLAIM_SPLIT = re.compile(_CLAIM, re.IGNORECASE)

_WORD_REPLACEMENTS = [
    (re.compile(r"\s+(?:plus)\s+", re.IGNORECASE), " + "),
    (re.compile(r"\s+(?:moins|minus)\s+", re.IGNORECASE), " - "),
    (re.compile(r"\s+(?:fois|times|multiplié\s+par|multiplied\s+by)\s+", re.IGNORECASE), " * "),
    (re.compile(r"\s+(?:divisé\s+par|divided\s+by)\s+", re.IGNORECASE), " / "),
]
_SUPERSCRIPTS = {"³": "**3", "²": "**2", "¹": "**1"}

_BIN_OPS = {
    ast.Add: operator.add,
    ast.Sub: operator.sub,
    ast.Mult: operator.mul,
    ast.Div: operator.truediv,
    ast.Pow: operator.pow,
}
_UNARY_OPS = {
    ast.UAdd: operator.pos,
    ast.USub: operator.neg,
}


def numbers_equal(a: float, b: float) -> bool:
    """Compare two floats with a relative tolerance and an absolute floor."""
    return math.isclose(a, b, rel_tol=RELATIVE_EPSILON, abs_tol=ABSOLUTE_EPSILON)


def format_number(value: float) -> str:
    if math.isfinite(value) and value == int(value):
        return str(int(value))
    return f"{value:g}"


def to_python_expression(expr: str) -> str:
    """Normalise a matched arithmetic span into a Python expression."""
    for sup, power in _SUPERSCRIPTS.items():
        expr = expr.replace(sup, power)
    expr = expr.replace("×", "*").replace("÷", "/")
    expr = re.sub(r"[^\d\s().+\-*/^]", "", expr).strip()
    return expr.replace("^", "**")


def safe_evaluate(expr: str) -> float:
    """Evaluate an arithmetic expression.

    Raises:
        ValueError: if the expression holds anything but numbers and arithmetic
        ZeroDivisionError: on division by zero
    """
    try:
        tree = ast.parse(expr, mode="eval")
    except SyntaxError as e:
        raise ValueError(f"Cannot parse expression: {expr!r}") from e
    value = float(_eval_node(tree.body))
    if not math.isfinite(value):
        raise ValueError(f"Expression does not evaluate to a finite number: {expr!r}")
    return value


def _eval_node(node: ast.AST) -> float:
    if isinstance(node, ast.Constant) and isinstance(node.value, (int, float)):
        return node.value
    if isinstance(node, ast.UnaryOp) and type(node.op) in _UNARY_OPS:
        return _UNARY_OPS[type(node.op)](_eval_node(node.operand))
    if isinstance(node, ast.BinOp) and type(node.op) in _BIN_OPS:
        left = _eval_node(node.left)
        right = _eval_node(node.right)
        if isinstance(node.op, ast.Pow) and abs(right) > MAX_EXPONENT:
            raise ValueError(f"Exponent too large: {right}")
        return _BIN_OPS[type(node.op)](left, right)
    raise ValueError(f"Unsupported expression element: {ast.dump(node)}")


class MathEvaluator(NumericEvaluator):
    """Finds arithmetic claims in text and checks the claimed results."""

    def detect_and_evaluate(self, text: str) -> list[MathEvaluation]:
        """Return one evaluation per arithmetic span, in text order."""
        found: list[tuple[int, MathEvaluation]] = []
        claimed: list[tuple[int, int]] = []

        # Function notation is reported for documentation, then blanked out
        analysis = text
        for match in FUNCTION_NOTATION_PATTERN.finditer(text):
            found.append((match.start(), MathEvaluation(
                original=match.group(0),
                expression_text="function notation",
                result=math.nan,
                is_correct=True,
                claimed_result=math.nan,
                confidence=0.95,
                context=FUNCTION_NOTATION_CONTEXT,
            )))
            claimed.append(match.span())
            analysis = (
                analysis[:match.start()] + " " * len(match.group(0)) + analysis[match.end():]
            )

        for kind, pattern in EXPRESSION_PATTERNS.items():
            for match in pattern.finditer(analysis):
                start, end = match.span()
                if any(start < c_end and c_start < end for c_start, c_end in claimed):
                    continue
                if kind == "sequential":
                    evaluation = self._evaluate_sequential(match.group(0))
                else:
                    evaluation = self._evaluate_claim(kind, match)
                if evaluation is None:
                    continue
                claimed.append((start, end))
                found.append((start, evaluation))

        found.sort(key=lambda item: item[0])
        return [evaluation for _, evaluation in found]

    def _evaluate_claim(self, kind: str, match: re.Match) -> MathEvaluation | None:
        original = match.group(0)
        claimed_result = float(match.group(match.lastindex))
        base_confidence = KIND_CONFIDENCE[kind]

        if kind == "functions":
            expression = self._function_expression(match)
        elif kind == "textual":
            lhs = _CLAIM_SPLIT.split(original, maxsplit=1)[0]
            for pattern, symbol in _WORD_REPLACEMENTS:
                lhs = pattern.sub(symbol, lhs)
            expression = to_python_expression(lhs)
        else:
            expression = to_python_expression(_CLAIM_SPLIT.split(original, maxsplit=1)[0])

        if not expression:
            return None

        try:
            result = safe_evaluate(expression)
        except (ValueError, ZeroDivisionError, OverflowError, RecursionError):
            logger.debug("Could not evaluate %r from %r", expression, original, exc_info=True)
            return MathEvaluation(
                original=original,
                expression_text=expression,
                result=math.nan,
                is_correct=False,
                claimed_result=claimed_result,
                confidence=0.3,
                context=EVALUATION_ERROR_CONTEXT,
            )

        is_correct = numbers_equal(result, claimed_result)
        return MathEvaluation(
            original=original,
            expression_text=expression,
            result=result,
            is_correct=is_correct,
            claimed_result=claimed_result,
            confidence=base_confidence if is_correct else base_confidence * 0.8,
        )

    @staticmethod
    def _function_expression(match: re.Match) -> str:
        root_of, base, power_word, _ = match.groups()
        if root_of is not None:
            return f"{root_of} ** 0.5"
        exponent = 3 if power_word.lower() in ("au cube", "cubed") else 2
        return f"{base} ** {exponent}"

    def _evaluate_sequential(self, original: str) -> MathEvaluation | None:
        parts = [p.strip() for p in original.split("=")]
        expression = to_python_expression(parts[0])
        try:
            first = safe_evaluate(expression)
            steps = [safe_evaluate(to_python_expression(p)) for p in parts[1:]]
        except (ValueError, ZeroDivisionError, OverflowError, RecursionError):
            logger.debug("Could not evaluate chained expression %r", original, exc_info=True)
            return None

        failed_step = None
        for index, value in enumerate(steps, start=1):
            if not numbers_equal(first, value):
                failed_step = (
                    f"{STEP_CONTEXT_PREFIX}{index}: "
                    f"{format_number(first)} ≠ {format_number(value)}"
                )
                break

        return MathEvaluation(
            original=original,
            expression_text=expression,
            result=first,
            is_correct=failed_step is None,
            claimed_result=steps[-1],
            confidence=KIND_CONFIDENCE["sequential"],
            context=failed_step,
        )

    def convert_to_verification_results(
        self, evaluations: list[MathEvaluation]
    ) -> list[CalculationVerificationResult]:
        return [self._to_verification_result(e) for e in evaluations]

    @staticmethod
    def _to_verification_result(evaluation: MathEvaluation) -> CalculationVerificationResult:
        context = evaluation.context
        if context == FUNCTION_NOTATION_CONTEXT:
            return CalculationVerificationResult(
                original=evaluation.original,
                is_correct=True,
                verified="Function notation (not evaluated)",
                result=None,
                confidence=0.95,
                classification=CalculationClassification.FUNCTION_NOTATION,
            )
        if context == EVALUATION_ERROR_CONTEXT:
            return CalculationVerificationResult(
                original=evaluation.original,
                is_correct=False,
                verified=f"Could not evaluate {evaluation.expression_text}",
                result=math.nan,
                confidence=evaluation.confidence,
                classification=CalculationClassification.INCORRECT,
            )
        if context and context.startswith(STEP_CONTEXT_PREFIX):
            return CalculationVerificationResult(
                original=evaluation.original,
                is_correct=False,
                verified=f"Incorrect calculation, error at {context}",
                result=evaluation.result,
                confidence=0.85,
                classification=CalculationClassification.INCORRECT,
            )

        computed = format_number(evaluation.result)
        if evaluation.is_correct:
            verdict = f"{evaluation.expression_text} = {computed}"
        else:
            verdict = (
                f"Incorrect calculation. {evaluation.expression_text} = {computed}, "
                f"not {format_number(evaluation.claimed_result)}"
            )
        return CalculationVerificationResult(
            original=evaluation.original,
            is_correct=evaluation.is_correct,
            verified=verdict,
            result=evaluation.result,
            confidence=evaluation.confidence,
            classification=(
                CalculationClassification.CORRECT
                if evaluation.is_correct
                else CalculationClassification.INCORRECT
            ),
        )
