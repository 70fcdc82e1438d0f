"""
Pydantic models for API request/response validation.
"""
from typing import Any

from pydantic import BaseModel, Field

from thoughtcheck.models import ThoughtType
from thoughtcheck.verification import (
    CalculationVerificationResult,
    VerificationResult,
)


class PreliminaryVerificationRequest(BaseModel):
    """Request model for the calculation-only check."""
    text: str = Field(..., min_length=1, description="Thought text to check")
    explicitly_requested: bool = Field(default=False, description="Run even without visible calculations")


class PreviousVerificationRequest(BaseModel):
    """Request model for looking up an earlier verification."""
    text: str = Field(..., min_length=1)
    session_id: str | None = Field(default=None, description="Session scope (default session when omitted)")
    thought_type: ThoughtType | None = None
    connected_ids: list[str] = Field(default_factory=list, description="Ids of connected prior thoughts")


class DeepVerificationRequest(BaseModel):
    """Request model for a full verification."""
    text: str = Field(..., min_length=1)
    thought_id: str | None = None
    thought_type: ThoughtType = ThoughtType.REGULAR
    confidence: float = Field(default=0.5, ge=0.0, le=1.0, description="Prior confidence of the thought")
    contains_calculations: bool | None = Field(
        default=None, description="Detected from the text when omitted"
    )
    force_verification: bool = False
    session_id: str | None = None


class DeepVerificationResponse(BaseModel):
    """Response model for a full verification."""
    thought_id: str
    verification: VerificationResult
    is_verified: bool
    verification_source: str | None = None
    certainty_summary: str
    annotated_text: str
    metadata: dict[str, Any] = Field(default_factory=dict)


class StoredVerificationResponse(BaseModel):
    """A verification held in durable memory."""
    id: str
    session_id: str
    text: str
    status: str
    confidence: float
    sources: list[str]
    created_at: str
    expires_at: str


class CalculationsResponse(BaseModel):
    """Calculations found in a text."""
    calculations: list[CalculationVerificationResult]
    annotated_text: str


class HealthResponse(BaseModel):
    """Health check response."""
    status: str
    version: str
    uptime: float
