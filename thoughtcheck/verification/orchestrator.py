"""Concurrent invocation of verification tools."""

import asyncio

from ..logging_config import get_logger
from .characterizer import ContentCharacteristics
from .interfaces import VerificationToolExecutor
from .metrics import VerificationMetricsTracker
from .models import (
    SuggestedTool,
    ToolInvocationOutcome,
    ToolResult,
    VerificationRequirements,
)

logger = get_logger(__name__)

# Content spanning more axes than this earns one extra corroborating tool
MIXED_CONTENT_AXES = 2


class ToolOrchestrator:
    """Selects how many tools to run, runs them together, keeps usable answers.

    Each invocation is bounded by its own timeout and cancelled when it runs
    over. A failing, late or empty tool is dropped without affecting the
    others. Outcomes come back in selection order, not completion order.
    """

    def __init__(
        self,
        executor: VerificationToolExecutor,
        timeout_seconds: float = 10.0,
        metrics: VerificationMetricsTracker | None = None,
    ):
        self.executor = executor
        self.timeout_seconds = timeout_seconds
        self.metrics = metrics

    @staticmethod
    def base_tool_count(requirements: VerificationRequirements, available: int) -> int:
        if available <= 0:
            return 0
        requested = (
            requirements.recommended_verifications_count
            if requirements.requires_multiple_verifications
            else 1
        )
        return max(1, min(requested, available))

    def select_tool_count(
        self,
        requirements: VerificationRequirements,
        available: int,
        characteristics: ContentCharacteristics | None = None,
    ) -> int:
        """Number of tools to run for a text, clamped to what is available."""
        count = self.base_tool_count(requirements, available)
        if count and characteristics and characteristics.axes_count > MIXED_CONTENT_AXES:
            count = min(count + 1, available)
        return count

    async def run(
        self,
        text: str,
        suggestions: list[SuggestedTool],
        requirements: VerificationRequirements,
        characteristics: ContentCharacteristics | None = None,
    ) -> list[ToolInvocationOutcome]:
        """Run the selected tools concurrently and return the usable outcomes."""
        count = self.select_tool_count(requirements, len(suggestions), characteristics)
        if count == 0:
            logger.info("No verification tools available")
            return []

        selected = suggestions[:count]
        primary_count = self.base_tool_count(requirements, len(suggestions))
        logger.info(
            "Running %d verification tool(s): %s",
            count, ", ".join(t.name for t in selected),
        )

        tasks = [self._invoke(tool, text) for tool in selected]
        results = await asyncio.gather(*tasks, return_exceptions=True)

        outcomes: list[ToolInvocationOutcome] = []
        for index, (tool, result) in enumerate(zip(selected, results)):
            if isinstance(result, asyncio.TimeoutError):
                logger.warning(
                    "Tool %s timed out after %.1fs", tool.name, self.timeout_seconds
                )
                await self._record(tool.name, "timeout")
                continue
            if isinstance(result, Exception):
                logger.warning(
                    "Tool %s failed: %s", tool.name, result,
                    exc_info=(type(result), result, result.__traceback__),
                )
                await self._record(tool.name, "failure")
                continue
            if isinstance(result, BaseException):
                raise result
            if not result.is_usable:
                logger.warning("Tool %s returned no usable result", tool.name)
                await self._record(tool.name, "unusable")
                continue

            await self._record(tool.name, "success")
            outcomes.append(ToolInvocationOutcome(
                tool_name=tool.name,
                result=result,
                confidence=tool.confidence,
                stage="primary" if index < primary_count else "corroboration",
            ))

        logger.info("%d/%d tool(s) returned usable results", len(outcomes), count)
        return outcomes

    async def _invoke(self, tool: SuggestedTool, text: str) -> ToolResult:
        payload = await asyncio.wait_for(
            self.executor.execute_verification_tool(tool.name, text),
            timeout=self.timeout_seconds,
        )
        if isinstance(payload, ToolResult):
            return payload
        return ToolResult.model_validate(payload or {})

    async def _record(self, tool_name: str, outcome: str) -> None:
        if self.metrics is not None:
            await self.metrics.record_tool_invocation(tool_name, outcome)
