"""Contracts for the collaborators the verification pipeline consumes."""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any

from .models import (
    CalculationVerificationResult,
    SuggestedTool,
    VerificationRequirements,
    VerificationSearchResult,
    VerificationStatus,
)


@dataclass
class MathEvaluation:
    """Raw evaluation of one arithmetic span."""

    original: str
    expression_text: str
    result: float  # nan when the expression could not be evaluated
    is_correct: bool
    claimed_result: float
    confidence: float
    context: str | None = None  # "function_notation", "evaluation_error" or a failed step


class NumericEvaluator(ABC):
    """Finds and evaluates arithmetic claims in free text."""

    @abstractmethod
    def detect_and_evaluate(self, text: str) -> list[MathEvaluation]:
        ...

    @abstractmethod
    def convert_to_verification_results(
        self, evaluations: list[MathEvaluation]
    ) -> list[CalculationVerificationResult]:
        ...


class VerificationToolExecutor(ABC):
    """Catalog that proposes verification tools and runs them."""

    @abstractmethod
    def suggest_verification_tools(self, text: str, limit: int = 5) -> list[SuggestedTool]:
        ...

    @abstractmethod
    async def execute_verification_tool(self, name: str, text: str) -> dict[str, Any]:
        """Run one tool and return its raw payload.

        The payload may carry ``is_valid``/``isValid``, ``source``, ``sources``,
        ``details``, ``confidence`` and ``verified_calculations``.
        """


class VerificationMemoryGateway(ABC):
    """Durable, similarity-indexed storage of past verifications."""

    @abstractmethod
    async def find_verification(
        self,
        text: str,
        session_id: str,
        similarity_threshold: float,
    ) -> VerificationSearchResult | None:
        ...

    @abstractmethod
    async def add_verification(
        self,
        text: str,
        status: VerificationStatus,
        confidence: float,
        sources: list[str],
        session_id: str,
    ) -> str:
        """Persist a verification and return its id."""


class RequirementAdvisor(ABC):
    """Decides how much independent corroboration a text needs."""

    @abstractmethod
    def determine_verification_requirements(
        self, text: str, prior_confidence: float | None = None
    ) -> VerificationRequirements:
        ...
