"""Data models for the verification pipeline."""

import os
from dataclasses import dataclass, field, fields
from datetime import datetime
from enum import Enum
from typing import Any, Literal

from pydantic import AliasChoices, BaseModel, ConfigDict, Field


class VerificationStatus(str, Enum):
    """How trustworthy a thought's claim currently is."""

    UNVERIFIED = "unverified"
    VERIFICATION_IN_PROGRESS = "verification_in_progress"
    VERIFIED = "verified"
    PARTIALLY_VERIFIED = "partially_verified"
    CONTRADICTORY = "contradictory"
    ABSENCE_OF_INFORMATION = "absence_of_information"
    UNCERTAIN = "uncertain"
    INCONCLUSIVE = "inconclusive"


TRUSTED_STATUSES = frozenset({
    VerificationStatus.VERIFIED,
    VerificationStatus.PARTIALLY_VERIFIED,
})

# Statuses that mark the owning thought as verified
POSITIVE_STATUSES = TRUSTED_STATUSES | {VerificationStatus.ABSENCE_OF_INFORMATION}


class ValidityFlag(str, Enum):
    """Normalised validity flag reported by a verification tool."""

    TRUE = "true"
    FALSE = "false"
    PARTIAL = "partial"
    ABSENCE = "absence"
    UNKNOWN = "unknown"

    @classmethod
    def from_raw(cls, raw: Any) -> "ValidityFlag":
        """Map a raw tool payload value onto the closed flag set."""
        if raw is True:
            return cls.TRUE
        if raw is False:
            return cls.FALSE
        if isinstance(raw, str):
            return _VALIDITY_ALIASES.get(raw.strip().lower(), cls.UNKNOWN)
        return cls.UNKNOWN


_VALIDITY_ALIASES = {
    "true": ValidityFlag.TRUE,
    "verified": ValidityFlag.TRUE,
    "false": ValidityFlag.FALSE,
    "contradicted": ValidityFlag.FALSE,
    "partial": ValidityFlag.PARTIAL,
    "partially_verified": ValidityFlag.PARTIAL,
    "absence": ValidityFlag.ABSENCE,
    "absence_of_information": ValidityFlag.ABSENCE,
    "no_information": ValidityFlag.ABSENCE,
}


class CalculationClassification(str, Enum):
    """Outcome of checking one arithmetic span."""

    CORRECT = "correct"
    INCORRECT = "incorrect"
    PENDING = "pending"
    FUNCTION_NOTATION = "function_notation"


_PENDING_MARKERS = ("vérifier", "vérification", "to be verified", "pending")


class CalculationVerificationResult(BaseModel):
    """One arithmetic claim found in a text, with its verdict."""

    model_config = ConfigDict(frozen=True)

    original: str  # exact substring matched in the source text
    is_correct: bool = Field(validation_alias=AliasChoices("is_correct", "isCorrect"))
    verified: str  # human-readable verdict
    result: float | str | None = None
    confidence: float = Field(default=1.0, ge=0.0, le=1.0)
    classification: CalculationClassification | None = None

    @property
    def is_function_notation(self) -> bool:
        if self.classification == CalculationClassification.FUNCTION_NOTATION:
            return True
        return "notation de fonction" in self.verified.lower()

    @property
    def is_pending(self) -> bool:
        """Still awaiting a verdict (tool verdicts may only say so in free text)."""
        if self.is_correct:
            return False
        if self.classification == CalculationClassification.PENDING:
            return True
        verdict = self.verified.lower()
        return any(marker in verdict for marker in _PENDING_MARKERS)


class ToolResult(BaseModel):
    """Payload returned by one verification tool."""

    model_config = ConfigDict(extra="allow")

    is_valid: bool | str | None = Field(
        default=None, validation_alias=AliasChoices("is_valid", "isValid")
    )
    source: str | None = None
    sources: list[str] | None = None
    details: Any = None
    confidence: float | None = Field(default=None, ge=0.0, le=1.0)
    verified_calculations: list[CalculationVerificationResult] | None = Field(
        default=None,
        validation_alias=AliasChoices("verified_calculations", "verifiedCalculations"),
    )

    @property
    def validity(self) -> ValidityFlag:
        return ValidityFlag.from_raw(self.is_valid)

    @property
    def is_usable(self) -> bool:
        """False only when the tool reported nothing we can aggregate."""
        return not (
            self.is_valid is None
            and self.verified_calculations is None
            and not self.source
            and not self.sources
            and self.details is None
        )

    @property
    def reported_source(self) -> str | None:
        if self.source:
            return self.source
        if self.sources:
            return ", ".join(self.sources)
        return None


class ToolInvocationOutcome(BaseModel):
    """A usable result from one tool invocation inside a deep verification."""

    tool_name: str
    result: ToolResult
    confidence: float = Field(default=0.5, ge=0.0, le=1.0)  # suggestion confidence
    stage: Literal["primary", "corroboration"] = "primary"

    @property
    def effective_confidence(self) -> float:
        if self.result.confidence is not None:
            return self.result.confidence
        return self.confidence


class VerificationResult(BaseModel):
    """Aggregated verdict for one piece of text."""

    model_config = ConfigDict(frozen=True)

    status: VerificationStatus
    confidence: float = Field(ge=0.0, le=1.0)
    sources: list[str] = Field(default_factory=list)
    verification_steps: list[str] = Field(default_factory=list)
    contradictions: list[str] | None = None
    notes: str = ""
    verified_calculations: list[CalculationVerificationResult] | None = None

    @property
    def is_positive(self) -> bool:
        return self.status in POSITIVE_STATUSES


class SuggestedTool(BaseModel):
    """A verification tool proposed for some text."""

    name: str
    confidence: float = Field(default=0.5, ge=0.0, le=1.0)
    reason: str = ""
    priority: int = 1


class VerificationRequirements(BaseModel):
    """How much corroboration a text needs."""

    requires_multiple_verifications: bool = False
    recommended_verifications_count: int = Field(default=1, ge=1)
    reasons: list[str] = Field(default_factory=list)


class VerificationSearchResult(BaseModel):
    """A stored verification matched by similarity."""

    id: str
    text: str
    status: VerificationStatus
    confidence: float
    sources: list[str] = Field(default_factory=list)
    similarity: float
    timestamp: datetime = Field(default_factory=datetime.now)


class PreliminaryVerificationResult(BaseModel):
    """Outcome of the fast, calculation-only path."""

    verified_calculations: list[CalculationVerificationResult] | None = None
    initial_verification: bool = False
    verification_in_progress: bool = False
    preverified_thought: str


class PreviousVerificationResult(BaseModel):
    """Outcome of looking up an earlier verification of similar text."""

    previous_verification: VerificationSearchResult | None = None
    verification: VerificationResult | None = None
    is_verified: bool = False
    verification_status: VerificationStatus = VerificationStatus.UNVERIFIED
    certainty_summary: str = ""
    source: Literal["cache", "memory", "propagation"] | None = None

    @property
    def is_reusable(self) -> bool:
        """Trusted enough for deep verification to skip the tools."""
        return self.is_verified and self.source in ("cache", "memory")


@dataclass
class VerificationConfig:
    """Configuration for the verification pipeline."""

    verification_cache_size: int = 100
    calculation_cache_size: int = 50
    tool_timeout_seconds: float = 10.0
    trusted_similarity_threshold: float = 0.80
    propagated_confidence: float = 0.7
    max_contradictions: int = 5
    default_session_id: str = "default"
    memory_ttl_seconds: int = 24 * 60 * 60
    unverifiable_sources: tuple[str, ...] = field(
        default=("unverifiable", "non vérifiable", "source not specified")
    )

    @classmethod
    def from_env(cls, prefix: str = "THOUGHTCHECK_") -> "VerificationConfig":
        """Build a config, overriding defaults from ``<PREFIX><FIELD>`` variables."""
        overrides: dict[str, Any] = {}
        defaults = cls()
        for f in fields(cls):
            raw = os.environ.get(f"{prefix}{f.name.upper()}")
            if raw is None:
                continue
            current = getattr(defaults, f.name)
            if isinstance(current, tuple):
                overrides[f.name] = tuple(s.strip() for s in raw.split(",") if s.strip())
            else:
                overrides[f.name] = type(current)(raw)
        return cls(**overrides)
