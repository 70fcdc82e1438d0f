"""Reconcile tool outcomes into one verification verdict."""

from dataclasses import dataclass

from ..logging_config import get_logger
from .models import (
    CalculationVerificationResult,
    ToolInvocationOutcome,
    ValidityFlag,
    VerificationResult,
    VerificationStatus,
)

logger = get_logger(__name__)

UNSPECIFIED_SOURCE = "source not specified"

EMPTY_CONFIDENCE_CAP = 0.3
VERIFIED_BONUS_PER_TOOL = 0.05
VERIFIED_CONFIDENCE_CAP = 0.95
PARTIAL_CONFIDENCE_CAP = 0.75
CONTRADICTORY_CONFIDENCE = 0.4
ABSENCE_BASE_CONFIDENCE = 0.6
ABSENCE_BONUS_PER_TOOL = 0.05
ABSENCE_CONFIDENCE_CAP = 0.8
UNCERTAIN_CONFIDENCE = 0.3
UNVERIFIED_CONFIDENCE = 0.3


@dataclass
class OutcomeTally:
    """Outcomes partitioned by validity flag."""

    verified: list[ToolInvocationOutcome]
    contradicted: list[ToolInvocationOutcome]
    partial: list[ToolInvocationOutcome]
    absence: list[ToolInvocationOutcome]
    uncertain: list[ToolInvocationOutcome]

    @classmethod
    def from_outcomes(cls, outcomes: list[ToolInvocationOutcome]) -> "OutcomeTally":
        buckets: dict[ValidityFlag, list[ToolInvocationOutcome]] = {
            flag: [] for flag in ValidityFlag
        }
        for outcome in outcomes:
            buckets[outcome.result.validity].append(outcome)
        return cls(
            verified=buckets[ValidityFlag.TRUE],
            contradicted=buckets[ValidityFlag.FALSE],
            partial=buckets[ValidityFlag.PARTIAL],
            absence=buckets[ValidityFlag.ABSENCE],
            uncertain=buckets[ValidityFlag.UNKNOWN],
        )


def _mean_confidence(outcomes: list[ToolInvocationOutcome]) -> float:
    return sum(o.effective_confidence for o in outcomes) / len(outcomes)


class ResultAggregator:
    """Fixed-priority reconciliation of heterogeneous tool results.

    Status rules, first match wins:

    1. any confirmation and no contradiction -> verified
    2. any partial confirmation -> partially_verified
    3. confirmations and contradictions -> contradictory
    4. any authoritative absence of information -> absence_of_information
    5. any tool without a verdict -> uncertain
    6. otherwise -> unverified

    Never raises and never produces ``inconclusive``.
    """

    def __init__(self, max_contradictions: int = 5):
        self.max_contradictions = max_contradictions

    def aggregate(
        self,
        outcomes: list[ToolInvocationOutcome],
        calculations: list[CalculationVerificationResult] | None = None,
        prior_confidence: float | None = None,
    ) -> VerificationResult:
        if not outcomes:
            cap = prior_confidence or EMPTY_CONFIDENCE_CAP
            return VerificationResult(
                status=VerificationStatus.UNVERIFIED,
                confidence=max(0.0, min(EMPTY_CONFIDENCE_CAP, cap)),
                notes=self._notes([], None, calculations),
                verified_calculations=calculations or None,
            )

        tally = OutcomeTally.from_outcomes(outcomes)
        status, confidence = self._decide(tally)

        contradictions, truncated = self._contradictions(tally)
        notes = self._notes(outcomes, tally, calculations)
        if truncated:
            notes += f" {truncated} further contradiction(s) not listed."

        logger.debug(
            "Aggregated %d outcome(s) -> %s (%.2f)", len(outcomes), status.value, confidence
        )
        return VerificationResult(
            status=status,
            confidence=confidence,
            sources=[
                f"{o.tool_name}: {o.result.reported_source or UNSPECIFIED_SOURCE}"
                for o in outcomes
            ],
            verification_steps=[f"Verified with {o.tool_name}" for o in outcomes],
            contradictions=contradictions or None,
            notes=notes,
            verified_calculations=calculations or None,
        )

    @staticmethod
    def _decide(tally: OutcomeTally) -> tuple[VerificationStatus, float]:
        if tally.verified and not tally.contradicted:
            confidence = min(
                _mean_confidence(tally.verified)
                + len(tally.verified) * VERIFIED_BONUS_PER_TOOL,
                VERIFIED_CONFIDENCE_CAP,
            )
            return VerificationStatus.VERIFIED, confidence
        if tally.partial:
            return (
                VerificationStatus.PARTIALLY_VERIFIED,
                min(_mean_confidence(tally.partial), PARTIAL_CONFIDENCE_CAP),
            )
        if tally.verified and tally.contradicted:
            return VerificationStatus.CONTRADICTORY, CONTRADICTORY_CONFIDENCE
        if tally.absence:
            confidence = min(
                ABSENCE_BASE_CONFIDENCE + len(tally.absence) * ABSENCE_BONUS_PER_TOOL,
                ABSENCE_CONFIDENCE_CAP,
            )
            return VerificationStatus.ABSENCE_OF_INFORMATION, confidence
        if tally.uncertain:
            return VerificationStatus.UNCERTAIN, UNCERTAIN_CONFIDENCE
        return VerificationStatus.UNVERIFIED, UNVERIFIED_CONFIDENCE

    def _contradictions(self, tally: OutcomeTally) -> tuple[list[str], int]:
        """One message per (confirming, contradicting) pair, capped.

        Returns the listed messages and how many were left out.
        """
        total = len(tally.verified) * len(tally.contradicted)
        messages = []
        for positive in tally.verified:
            for negative in tally.contradicted:
                if len(messages) >= self.max_contradictions:
                    break
                messages.append(
                    f"Contradiction between {positive.tool_name} (confirms) "
                    f"and {negative.tool_name} (contradicts)"
                )
        return messages, total - len(messages)

    @staticmethod
    def _notes(
        outcomes: list[ToolInvocationOutcome],
        tally: OutcomeTally | None,
        calculations: list[CalculationVerificationResult] | None,
    ) -> str:
        checked = [c for c in calculations or [] if not c.is_function_notation]
        if not outcomes and not checked:
            return "No verification was performed."

        parts = []
        if outcomes and tally is not None:
            parts.append(
                f"Verified with {len(outcomes)} tool(s) "
                f"({', '.join(o.tool_name for o in outcomes)}): "
                f"{len(tally.verified)} confirmed, {len(tally.contradicted)} contradicted, "
                f"{len(tally.partial)} partial, {len(tally.absence)} found no information, "
                f"{len(tally.uncertain)} uncertain."
            )
        if checked:
            correct = sum(1 for c in checked if c.is_correct)
            parts.append(
                f"{len(checked)} calculation(s) checked, {correct} correct, "
                f"{len(checked) - correct} incorrect."
            )
        return " ".join(parts)
