"""Verification pipeline orchestrator."""

import asyncio
import inspect
import time
from collections.abc import Callable
from datetime import datetime
from typing import Any

from ..logging_config import get_logger
from ..models.thoughts import Thought, ThoughtType
from .aggregator import ResultAggregator
from .annotator import ThoughtAnnotator
from .cache import BoundedRecencyCache, fingerprint
from .calculations import CalculationDetector
from .characterizer import ContentCharacterizer
from .interfaces import (
    RequirementAdvisor,
    VerificationMemoryGateway,
    VerificationToolExecutor,
)
from .metrics import VerificationMetricsTracker
from .models import (
    TRUSTED_STATUSES,
    CalculationVerificationResult,
    PreliminaryVerificationResult,
    PreviousVerificationResult,
    SuggestedTool,
    ToolResult,
    VerificationConfig,
    VerificationResult,
    VerificationSearchResult,
    VerificationStatus,
)
from .orchestrator import ToolOrchestrator
from .requirements import VerificationRequirementAdvisor

logger = get_logger(__name__)

# Tool names that suggest the tool can check calculations
CALCULATION_TOOL_MARKERS = ("calc", "math", "python", "javascript", "code")

PROPAGATING_TYPES = frozenset({ThoughtType.CONCLUSION, ThoughtType.REVISION})

ThoughtLookup = Callable[[str], Any]  # (thought_id) -> Thought | None, sync or async


class VerificationPipeline:
    """Main orchestrator for thought verification.

    Coordinates:
    - a fast calculation-only path (``preliminary_verify``)
    - reuse of earlier verifications from the in-process cache, durable
      memory, or verified connected thoughts (``check_previous_verification``)
    - full verification with concurrent tools and aggregation (``deep_verify``)

    Both caches belong to the instance, so separately built pipelines never
    share state.
    """

    def __init__(
        self,
        tool_executor: VerificationToolExecutor | None = None,
        memory: VerificationMemoryGateway | None = None,
        requirement_advisor: RequirementAdvisor | None = None,
        calculation_detector: CalculationDetector | None = None,
        thought_lookup: ThoughtLookup | None = None,
        config: VerificationConfig | None = None,
        verification_cache: BoundedRecencyCache[str, VerificationResult] | None = None,
        calculation_cache: BoundedRecencyCache[str, list[CalculationVerificationResult]] | None = None,
    ):
        """Initialize the verification pipeline.

        Args:
            tool_executor: Catalog that suggests and runs verification tools
            memory: Durable store of past verifications
            requirement_advisor: Decides how many tools a text deserves
            calculation_detector: Local arithmetic checker
            thought_lookup: Function resolving a thought id to a Thought (sync or async)
            config: Verification configuration
            verification_cache: Cache of verification results keyed by text and session
            calculation_cache: Cache of calculation results keyed by text
        """
        self.config = config or VerificationConfig()
        self.tool_executor = tool_executor
        self.memory = memory
        self.thought_lookup = thought_lookup

        self.requirement_advisor = requirement_advisor or VerificationRequirementAdvisor()
        self.calculation_detector = calculation_detector or CalculationDetector()
        self.characterizer = ContentCharacterizer()
        self.annotator = ThoughtAnnotator()
        self.aggregator = ResultAggregator(max_contradictions=self.config.max_contradictions)
        self.metrics = VerificationMetricsTracker()
        self.orchestrator = (
            ToolOrchestrator(tool_executor, self.config.tool_timeout_seconds, self.metrics)
            if tool_executor is not None
            else None
        )

        # Injected caches may be empty (falsy), hence the explicit None checks
        if verification_cache is None:
            verification_cache = BoundedRecencyCache(self.config.verification_cache_size)
        if calculation_cache is None:
            calculation_cache = BoundedRecencyCache(self.config.calculation_cache_size)
        self.verification_cache = verification_cache
        self.calculation_cache = calculation_cache

    # ------------------------------------------------------------------
    # Fast path
    # ------------------------------------------------------------------

    async def preliminary_verify(
        self,
        text: str,
        explicitly_requested: bool = False,
    ) -> PreliminaryVerificationResult:
        """Check only the calculations in ``text`` and annotate them inline.

        Runs when explicitly requested or when the text looks like it holds
        a calculation. A calculation-capable tool is preferred; the local
        detector is the fallback.
        """
        if not (explicitly_requested or self.characterizer.has_calculation(text)):
            return PreliminaryVerificationResult(preverified_thought=text)

        await self.metrics.record_preliminary()
        key = fingerprint(text)
        calculations = self.calculation_cache.get(key)
        if calculations is not None:
            calculations = list(calculations)
            await self.metrics.record_cache_hit("calculation")
            logger.debug("Calculation cache hit for %r", text[:50])
        else:
            calculations = await self._calculations_from_tool(text)
            if calculations is None:
                calculations = self.calculation_detector.detect_and_verify(text)
            self.calculation_cache.put(key, list(calculations))

        return PreliminaryVerificationResult(
            verified_calculations=calculations,
            initial_verification=bool(calculations),
            verification_in_progress=True,
            preverified_thought=self.annotate(text, calculations) if calculations else text,
        )

    async def _calculations_from_tool(self, text: str) -> list[CalculationVerificationResult] | None:
        suggestions = self._suggest_tools(text)
        tool = next(
            (t for t in suggestions if any(m in t.name.lower() for m in CALCULATION_TOOL_MARKERS)),
            None,
        )
        if tool is None:
            return None

        try:
            payload = await asyncio.wait_for(
                self.tool_executor.execute_verification_tool(tool.name, text),
                timeout=self.config.tool_timeout_seconds,
            )
            result = ToolResult.model_validate(payload or {})
        except Exception:
            logger.warning(
                "Calculation tool %s failed, using local detection", tool.name, exc_info=True
            )
            return None

        if result.verified_calculations is None:
            return None
        logger.info(
            "%d calculation(s) checked by %s", len(result.verified_calculations), tool.name
        )
        return result.verified_calculations

    def _suggest_tools(self, text: str) -> list[SuggestedTool]:
        if self.tool_executor is None:
            return []
        try:
            return self.tool_executor.suggest_verification_tools(text)
        except Exception:
            logger.warning("Tool suggestion failed, continuing without tools", exc_info=True)
            return []

    def detect_and_verify_calculations(self, text: str) -> list[CalculationVerificationResult]:
        """Local calculation check, served from the calculation cache when possible."""
        key = fingerprint(text)
        cached = self.calculation_cache.get(key)
        if cached is not None:
            return list(cached)
        calculations = self.calculation_detector.detect_and_verify(text)
        self.calculation_cache.put(key, list(calculations))
        return calculations

    def annotate(self, text: str, calculations: list[CalculationVerificationResult]) -> str:
        return self.annotator.annotate(text, calculations)

    # ------------------------------------------------------------------
    # Reuse of earlier verifications
    # ------------------------------------------------------------------

    async def check_previous_verification(
        self,
        text: str,
        session_id: str | None = None,
        thought_type: ThoughtType | str | None = None,
        connected_ids: list[str] | None = None,
    ) -> PreviousVerificationResult:
        """Find an earlier verification that applies to ``text``.

        Resolution order: exact cache hit, similar entry in durable memory,
        status inherited from verified connected thoughts, unverified.
        """
        session_id = session_id or self.config.default_session_id
        key = fingerprint(text, session_id)

        cached = self.verification_cache.get(key)
        if cached is not None:
            # Cached entries are shared; callers get their own copy
            cached = cached.model_copy(deep=True)
            await self.metrics.record_cache_hit("verification")
            logger.debug("Verification cache hit for %r (session %s)", text[:50], session_id)
            return PreviousVerificationResult(
                previous_verification=VerificationSearchResult(
                    id=key,
                    text=text,
                    status=cached.status,
                    confidence=cached.confidence,
                    sources=cached.sources,
                    similarity=1.0,
                ),
                verification=cached,
                is_verified=cached.is_positive,
                verification_status=cached.status,
                certainty_summary=self.generate_certainty_summary(
                    cached.status, cached.confidence, similarity=1.0
                ),
                source="cache",
            )

        hit = await self._find_in_memory(text, session_id)
        if hit is not None:
            return self._from_memory_hit(hit, key)

        if self._propagates(thought_type) and connected_ids:
            inherited = await self._inherit_from_connections(connected_ids)
            if inherited is not None:
                return inherited

        return PreviousVerificationResult(
            certainty_summary=self.generate_certainty_summary(
                VerificationStatus.UNVERIFIED, 0.0
            ),
        )

    async def _find_in_memory(self, text: str, session_id: str) -> VerificationSearchResult | None:
        if self.memory is None:
            return None
        try:
            hit = await self.memory.find_verification(
                text, session_id, self.config.trusted_similarity_threshold
            )
        except Exception:
            logger.warning("Verification memory lookup failed", exc_info=True)
            await self.metrics.record_memory_lookup(None)
            return None
        await self.metrics.record_memory_lookup(hit is not None)
        return hit

    def _from_memory_hit(self, hit: VerificationSearchResult, key: str) -> PreviousVerificationResult:
        similarity_pct = round(hit.similarity * 100)
        confidence = min(hit.confidence, hit.similarity)

        if self._is_trusted(hit):
            verification = VerificationResult(
                status=hit.status,
                confidence=confidence,
                sources=hit.sources,
                verification_steps=["Verified in an earlier reasoning step"],
                notes=f"Similar ({similarity_pct}%) to an already verified claim.",
            )
            self.verification_cache.put(key, verification.model_copy(deep=True))
            logger.info(
                "Reusing stored verification %s (similarity %.2f)", hit.id, hit.similarity
            )
            return PreviousVerificationResult(
                previous_verification=hit,
                verification=verification,
                is_verified=True,
                verification_status=hit.status,
                certainty_summary=self.generate_certainty_summary(
                    hit.status, confidence, similarity=hit.similarity
                ),
                source="memory",
            )

        logger.info(
            "Stored verification %s (%s, similarity %.2f) is not trusted",
            hit.id, hit.status.value, hit.similarity,
        )
        verification = VerificationResult(
            status=VerificationStatus.UNCERTAIN,
            confidence=confidence,
            sources=hit.sources,
            verification_steps=["Similar claim found in an earlier reasoning step"],
            notes=(
                f"Similar ({similarity_pct}%) to a claim stored as {hit.status.value}; "
                "needs re-verification."
            ),
        )
        return PreviousVerificationResult(
            previous_verification=hit,
            verification=verification,
            is_verified=False,
            verification_status=VerificationStatus.UNCERTAIN,
            certainty_summary=self.generate_certainty_summary(
                VerificationStatus.UNCERTAIN, confidence, similarity=hit.similarity
            ),
            source="memory",
        )

    def _is_trusted(self, hit: VerificationSearchResult) -> bool:
        if hit.status not in TRUSTED_STATUSES:
            return False
        if hit.similarity < self.config.trusted_similarity_threshold:
            return False
        return any(not self._is_placeholder_source(s) for s in hit.sources)

    def _is_placeholder_source(self, source: str) -> bool:
        placeholders = {p.lower() for p in self.config.unverifiable_sources}
        normalized = source.strip().lower()
        if not normalized or normalized in placeholders:
            return True
        # "tool: <source>" entries as written by the aggregator
        return normalized.split(":", 1)[-1].strip() in placeholders

    @staticmethod
    def _propagates(thought_type: ThoughtType | str | None) -> bool:
        if thought_type is None:
            return False
        try:
            return ThoughtType(thought_type) in PROPAGATING_TYPES
        except ValueError:
            return False

    async def _inherit_from_connections(self, connected_ids: list[str]) -> PreviousVerificationResult | None:
        if self.thought_lookup is None:
            return None

        for thought_id in connected_ids:
            try:
                connected = self.thought_lookup(thought_id)
                if inspect.isawaitable(connected):
                    connected = await connected
            except Exception:
                logger.warning("Lookup of connected thought %s failed", thought_id, exc_info=True)
                continue
            if connected is None or not self._is_verified_thought(connected):
                continue

            await self.metrics.record_propagation()
            logger.info("Inheriting verification from connected thought %s", thought_id)
            confidence = self.config.propagated_confidence
            verification = VerificationResult(
                status=VerificationStatus.PARTIALLY_VERIFIED,
                confidence=confidence,
                verification_steps=[f"Inherited from verified thought {thought_id}"],
                notes="Builds on a verified earlier thought; not checked directly.",
            )
            return PreviousVerificationResult(
                verification=verification,
                is_verified=True,
                verification_status=VerificationStatus.PARTIALLY_VERIFIED,
                certainty_summary=self.generate_certainty_summary(
                    VerificationStatus.PARTIALLY_VERIFIED, confidence
                ),
                source="propagation",
            )
        return None

    @staticmethod
    def _is_verified_thought(thought: Thought) -> bool:
        status = thought.metadata.get("verification_status")
        if status in {s.value for s in TRUSTED_STATUSES}:
            return True
        return status is None and bool(thought.metadata.get("is_verified"))

    # ------------------------------------------------------------------
    # Full verification
    # ------------------------------------------------------------------

    async def deep_verify(
        self,
        thought: Thought,
        contains_calculations: bool = False,
        force_verification: bool = False,
        session_id: str | None = None,
    ) -> VerificationResult:
        """Verify a thought with external tools, reusing earlier work unless forced.

        Updates ``thought.metadata`` and persists the result to both caches
        and to durable memory.
        """
        start_time = time.time()
        session_id = session_id or self.config.default_session_id
        text = thought.content

        if not force_verification:
            previous = await self.check_previous_verification(text, session_id)
            if previous.is_reusable and previous.verification is not None:
                logger.info("Reusing %s verification for thought %s", previous.source, thought.id)
                self._mark_thought(
                    thought,
                    previous.verification,
                    session_id,
                    source=previous.source,
                    similarity=previous.previous_verification.similarity
                    if previous.previous_verification
                    else None,
                )
                return previous.verification

        suggestions = self._suggest_tools(text)
        requirements = self.requirement_advisor.determine_verification_requirements(
            text, thought.metrics.confidence
        )
        thought.metadata.update({
            "requires_multiple_verifications": requirements.requires_multiple_verifications,
            "verification_reasons": requirements.reasons,
            "recommended_verifications_count": requirements.recommended_verifications_count,
        })
        characteristics = self.characterizer.characterize(text)
        logger.debug(
            "Thought %s: %d tool suggestion(s), axes=%s, requirements=%s",
            thought.id, len(suggestions), characteristics.as_list(),
            requirements.recommended_verifications_count,
        )

        outcomes = []
        if self.orchestrator is not None:
            outcomes = await self.orchestrator.run(text, suggestions, requirements, characteristics)

        calculations: list[CalculationVerificationResult] | None = None
        if not outcomes and contains_calculations:
            calculations = self.detect_and_verify_calculations(text)
        else:
            calculations = next(
                (o.result.verified_calculations for o in outcomes
                 if o.result.verified_calculations is not None),
                None,
            )

        result = self.aggregator.aggregate(
            outcomes, calculations, prior_confidence=thought.metrics.confidence
        )
        self._mark_thought(
            thought, result, session_id,
            source="tools",
            tools_used=[o.tool_name for o in outcomes],
        )
        await self.store_verification(text, result, session_id)

        latency_ms = (time.time() - start_time) * 1000
        await self.metrics.record_result(result, latency_ms)
        logger.info(
            "Thought %s verified: %s (%.2f) in %.0fms",
            thought.id, result.status.value, result.confidence, latency_ms,
        )
        return result

    async def store_verification(
        self,
        text: str,
        result: VerificationResult,
        session_id: str | None = None,
    ) -> str | None:
        """Write a result to both caches and durable memory.

        Returns:
            The memory id, or None when there is no memory or it failed
        """
        session_id = session_id or self.config.default_session_id
        self.verification_cache.put(fingerprint(text, session_id), result.model_copy(deep=True))
        if result.verified_calculations:
            self.calculation_cache.put(fingerprint(text), list(result.verified_calculations))

        if self.memory is None:
            return None
        try:
            return await self.memory.add_verification(
                text, result.status, result.confidence, result.sources, session_id
            )
        except Exception:
            logger.warning("Could not persist verification to memory", exc_info=True)
            return None

    @staticmethod
    def _mark_thought(
        thought: Thought,
        result: VerificationResult,
        session_id: str,
        source: str | None,
        similarity: float | None = None,
        tools_used: list[str] | None = None,
    ) -> None:
        thought.metadata.update({
            "is_verified": result.is_positive,
            "verification_status": result.status.value,
            "verification_source": source,
            "verification_timestamp": datetime.now().isoformat(),
            "verification_session_id": session_id,
            "verification_result": result.model_dump(mode="json"),
        })
        if similarity is not None:
            thought.metadata["semantic_similarity"] = similarity
        if tools_used is not None:
            thought.metadata["verification_tools_used"] = tools_used

    # ------------------------------------------------------------------
    # Reporting
    # ------------------------------------------------------------------

    @staticmethod
    def generate_certainty_summary(
        status: VerificationStatus,
        confidence: float,
        similarity: float | None = None,
        calculations: list[CalculationVerificationResult] | None = None,
    ) -> str:
        """One-sentence, human-readable account of a verification state."""
        pct = round(confidence * 100)
        descriptions = {
            VerificationStatus.VERIFIED: f"Information verified ({pct}% confidence).",
            VerificationStatus.PARTIALLY_VERIFIED: f"Information partially verified ({pct}% confidence).",
            VerificationStatus.CONTRADICTORY: "Sources disagree about this information.",
            VerificationStatus.ABSENCE_OF_INFORMATION: (
                f"No source reports this information ({pct}% confidence that none exists)."
            ),
            VerificationStatus.UNCERTAIN: "Verification was inconclusive; treat with caution.",
            VerificationStatus.INCONCLUSIVE: "Verification was inconclusive; treat with caution.",
            VerificationStatus.VERIFICATION_IN_PROGRESS: "Verification in progress.",
            VerificationStatus.UNVERIFIED: "Information not verified.",
        }
        summary = descriptions[VerificationStatus(status)]
        if similarity is not None and similarity < 1.0:
            summary += f" Based on a similar claim ({round(similarity * 100)}% similarity)."
        checked = [c for c in calculations or [] if not c.is_function_notation]
        if checked:
            correct = sum(1 for c in checked if c.is_correct)
            summary += f" {correct}/{len(checked)} calculation(s) correct."
        return summary

    def get_metrics_summary(self) -> dict:
        """Get summary of verification metrics."""
        summary = self.metrics.get_summary()
        summary["caches"] = {
            "verification": {
                "size": self.verification_cache.size,
                "capacity": self.verification_cache.capacity,
            },
            "calculation": {
                "size": self.calculation_cache.size,
                "capacity": self.calculation_cache.capacity,
            },
        }
        return summary

    def reset_metrics(self) -> None:
        self.metrics.reset()

    def clear_caches(self) -> None:
        self.verification_cache.clear()
        self.calculation_cache.clear()


def create_verification_pipeline(
    tool_executor: VerificationToolExecutor | None = None,
    memory: VerificationMemoryGateway | None = None,
    thought_lookup: ThoughtLookup | None = None,
    config: VerificationConfig | None = None,
    db_path: str | None = None,
) -> VerificationPipeline:
    """Factory function to create a verification pipeline.

    Args:
        tool_executor: Tool catalog; defaults to one with the built-in calculator
        memory: Durable verification memory; built from ``db_path`` when omitted
        thought_lookup: Function resolving connected thought ids
        config: Verification configuration
        db_path: SQLite path for the default memory store

    Returns:
        Configured VerificationPipeline
    """
    from ..memory.verification_store import VerificationMemoryStore
    from ..tools.catalog import ToolCatalog

    config = config or VerificationConfig()
    if tool_executor is None:
        tool_executor = ToolCatalog.with_defaults()
    if memory is None and db_path is not None:
        memory = VerificationMemoryStore(db_path, ttl_seconds=config.memory_ttl_seconds)

    return VerificationPipeline(
        tool_executor=tool_executor,
        memory=memory,
        thought_lookup=thought_lookup,
        config=config,
    )
