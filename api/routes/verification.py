"""
Verification pipeline API routes.

Exposes the preliminary, previous and deep verification operations plus
pipeline metrics and the stored verifications of a session.
"""
import uuid

from fastapi import APIRouter, Depends, HTTPException, Query

from api.models import (
    CalculationsResponse,
    DeepVerificationRequest,
    DeepVerificationResponse,
    PreliminaryVerificationRequest,
    PreviousVerificationRequest,
    StoredVerificationResponse,
)
from api.pipeline import get_pipeline, register_thought
from thoughtcheck.memory import VerificationMemoryStore
from thoughtcheck.models import Thought, ThoughtMetrics
from thoughtcheck.verification import (
    PreliminaryVerificationResult,
    PreviousVerificationResult,
    VerificationPipeline,
    VerificationStatus,
)

router = APIRouter(prefix="/api/verification", tags=["verification"])
sessions_router = APIRouter(prefix="/api/sessions", tags=["verification"])


@router.post("/preliminary", response_model=PreliminaryVerificationResult)
async def preliminary_verification(
    request: PreliminaryVerificationRequest,
    pipeline: VerificationPipeline = Depends(get_pipeline),
):
    """Check and annotate the calculations of a text."""
    return await pipeline.preliminary_verify(
        request.text, explicitly_requested=request.explicitly_requested
    )


@router.post("/calculations", response_model=CalculationsResponse)
async def detect_calculations(
    request: PreliminaryVerificationRequest,
    pipeline: VerificationPipeline = Depends(get_pipeline),
):
    """Run only the local calculation detector."""
    calculations = pipeline.detect_and_verify_calculations(request.text)
    return CalculationsResponse(
        calculations=calculations,
        annotated_text=pipeline.annotate(request.text, calculations),
    )


@router.post("/previous", response_model=PreviousVerificationResult)
async def previous_verification(
    request: PreviousVerificationRequest,
    pipeline: VerificationPipeline = Depends(get_pipeline),
):
    """Look up an earlier verification of the same or a similar text."""
    return await pipeline.check_previous_verification(
        request.text,
        session_id=request.session_id,
        thought_type=request.thought_type,
        connected_ids=request.connected_ids,
    )


@router.post("/deep", response_model=DeepVerificationResponse)
async def deep_verification(
    request: DeepVerificationRequest,
    pipeline: VerificationPipeline = Depends(get_pipeline),
):
    """Fully verify a thought and remember the result."""
    thought = Thought(
        id=request.thought_id or uuid.uuid4().hex[:8],
        content=request.text,
        type=request.thought_type,
        metrics=ThoughtMetrics(confidence=request.confidence),
    )
    contains_calculations = request.contains_calculations
    if contains_calculations is None:
        contains_calculations = pipeline.characterizer.has_calculation(request.text)

    result = await pipeline.deep_verify(
        thought,
        contains_calculations=contains_calculations,
        force_verification=request.force_verification,
        session_id=request.session_id,
    )
    register_thought(thought)

    return DeepVerificationResponse(
        thought_id=thought.id,
        verification=result,
        is_verified=bool(thought.metadata.get("is_verified")),
        verification_source=thought.metadata.get("verification_source"),
        certainty_summary=pipeline.generate_certainty_summary(
            result.status,
            result.confidence,
            similarity=thought.metadata.get("semantic_similarity"),
            calculations=result.verified_calculations,
        ),
        annotated_text=(
            pipeline.annotate(request.text, result.verified_calculations)
            if result.verified_calculations
            else request.text
        ),
        metadata=thought.metadata,
    )


@router.get("/metrics")
async def get_verification_metrics(
    pipeline: VerificationPipeline = Depends(get_pipeline),
):
    """Get aggregate verification metrics for this process."""
    return pipeline.get_metrics_summary()


@sessions_router.get(
    "/{session_id}/verifications",
    response_model=list[StoredVerificationResponse],
)
async def list_session_verifications(
    session_id: str,
    status: VerificationStatus | None = Query(default=None),
    limit: int = Query(default=50, ge=1, le=500),
    offset: int = Query(default=0, ge=0),
    pipeline: VerificationPipeline = Depends(get_pipeline),
):
    """List the stored verifications of a session, newest first."""
    if not isinstance(pipeline.memory, VerificationMemoryStore):
        raise HTTPException(status_code=404, detail="No verification memory configured")

    entries = await pipeline.memory.get_session_verifications(
        session_id, status=status, limit=limit, offset=offset
    )
    return [entry.to_dict() for entry in entries]
