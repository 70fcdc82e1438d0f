"""Verification pipeline for reasoning thoughts.

Decides whether a thought's claims can be trusted without redoing work:

1. Preliminary verification - arithmetic claims are checked and annotated inline
2. Previous verification - exact cache hits, similar entries in durable memory,
   or status inherited from verified connected thoughts
3. Deep verification - tools run concurrently with per-tool timeouts, then
   their answers are reconciled into one status and confidence

Status priority (first match wins):
- any confirmation, no contradiction: VERIFIED
- any partial confirmation: PARTIALLY_VERIFIED
- confirmations and contradictions: CONTRADICTORY
- authoritative absence of information: ABSENCE_OF_INFORMATION
- tools without a verdict: UNCERTAIN
- otherwise: UNVERIFIED
"""

from .models import (
    VerificationStatus,
    ValidityFlag,
    CalculationClassification,
    CalculationVerificationResult,
    ToolResult,
    ToolInvocationOutcome,
    VerificationResult,
    SuggestedTool,
    VerificationRequirements,
    VerificationSearchResult,
    PreliminaryVerificationResult,
    PreviousVerificationResult,
    VerificationConfig,
)

from .interfaces import (
    MathEvaluation,
    NumericEvaluator,
    VerificationToolExecutor,
    VerificationMemoryGateway,
    RequirementAdvisor,
)

from .cache import BoundedRecencyCache, fingerprint

from .math_evaluator import MathEvaluator
from .calculations import CalculationDetector
from .annotator import ThoughtAnnotator

from .characterizer import ContentCharacterizer, ContentCharacteristics
from .requirements import VerificationRequirementAdvisor

from .orchestrator import ToolOrchestrator
from .aggregator import ResultAggregator

from .metrics import (
    VerificationMetricsTracker,
    LatencyMetrics,
)

from .pipeline import (
    VerificationPipeline,
    create_verification_pipeline,
)

__all__ = [
    # Models
    "VerificationStatus",
    "ValidityFlag",
    "CalculationClassification",
    "CalculationVerificationResult",
    "ToolResult",
    "ToolInvocationOutcome",
    "VerificationResult",
    "SuggestedTool",
    "VerificationRequirements",
    "VerificationSearchResult",
    "PreliminaryVerificationResult",
    "PreviousVerificationResult",
    "VerificationConfig",

    # Collaborator contracts
    "MathEvaluation",
    "NumericEvaluator",
    "VerificationToolExecutor",
    "VerificationMemoryGateway",
    "RequirementAdvisor",

    # Cache
    "BoundedRecencyCache",
    "fingerprint",

    # Calculations
    "MathEvaluator",
    "CalculationDetector",
    "ThoughtAnnotator",

    # Characterization
    "ContentCharacterizer",
    "ContentCharacteristics",
    "VerificationRequirementAdvisor",

    # Tools and aggregation
    "ToolOrchestrator",
    "ResultAggregator",

    # Metrics
    "VerificationMetricsTracker",
    "LatencyMetrics",

    # Pipeline
    "VerificationPipeline",
    "create_verification_pipeline",
]
