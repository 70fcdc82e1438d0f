"""Pytest configuration and fixtures."""

import os
import tempfile
from pathlib import Path
from typing import Any

# Keep test runs out of the user's log directory
os.environ.setdefault(
    "THOUGHTCHECK_LOG_FILE", str(Path(tempfile.gettempdir()) / "thoughtcheck-tests.log")
)

import pytest

from thoughtcheck.models import Thought, ThoughtMetrics, ThoughtType
from thoughtcheck.verification import (
    RequirementAdvisor,
    SuggestedTool,
    ToolInvocationOutcome,
    ToolResult,
    VerificationMemoryGateway,
    VerificationRequirements,
    VerificationSearchResult,
    VerificationStatus,
    VerificationToolExecutor,
)


class FakeToolExecutor(VerificationToolExecutor):
    """Tools whose behaviour is a payload, an exception, or an async callable."""

    def __init__(self, tools: dict[str, Any]):
        self.tools = tools
        self.calls: list[str] = []

    def suggest_verification_tools(self, text: str, limit: int = 5) -> list[SuggestedTool]:
        return [
            SuggestedTool(name=name, confidence=0.8, priority=index + 1)
            for index, name in enumerate(self.tools)
        ][:limit]

    async def execute_verification_tool(self, name: str, text: str) -> dict[str, Any]:
        self.calls.append(name)
        behaviour = self.tools[name]
        if isinstance(behaviour, BaseException):
            raise behaviour
        if callable(behaviour):
            return await behaviour(text)
        return behaviour


class FakeMemory(VerificationMemoryGateway):
    """In-memory gateway that returns a fixed hit and records writes."""

    def __init__(self, hit: VerificationSearchResult | None = None, error: Exception | None = None):
        self.hit = hit
        self.error = error
        self.find_calls = 0
        self.added: list[tuple] = []

    async def find_verification(self, text, session_id, similarity_threshold):
        self.find_calls += 1
        if self.error is not None:
            raise self.error
        return self.hit

    async def add_verification(self, text, status, confidence, sources, session_id):
        if self.error is not None:
            raise self.error
        self.added.append((text, status, confidence, sources, session_id))
        return f"v-{len(self.added)}"


class FixedAdvisor(RequirementAdvisor):
    """Always recommends the same number of verifications."""

    def __init__(self, count: int = 1):
        self.count = count

    def determine_verification_requirements(self, text, prior_confidence=None):
        return VerificationRequirements(
            requires_multiple_verifications=self.count > 1,
            recommended_verifications_count=self.count,
            reasons=[],
        )


def make_outcome(
    name: str,
    is_valid: Any = None,
    confidence: float | None = None,
    source: str | None = None,
    details: Any = "checked",
) -> ToolInvocationOutcome:
    return ToolInvocationOutcome(
        tool_name=name,
        result=ToolResult(is_valid=is_valid, confidence=confidence, source=source, details=details),
        confidence=0.5,
    )


def make_hit(
    status: VerificationStatus = VerificationStatus.VERIFIED,
    similarity: float = 0.9,
    confidence: float = 0.95,
    sources: list[str] | None = None,
) -> VerificationSearchResult:
    return VerificationSearchResult(
        id="stored-1",
        text="stored text",
        status=status,
        confidence=confidence,
        sources=["web: example.org"] if sources is None else sources,
        similarity=similarity,
    )


@pytest.fixture
def make_thought():
    """Factory for thoughts with sensible defaults."""
    def _make(
        content: str = "The Eiffel Tower is in Paris.",
        thought_id: str = "t-1",
        thought_type: ThoughtType = ThoughtType.REGULAR,
        confidence: float = 0.5,
        metadata: dict | None = None,
    ) -> Thought:
        return Thought(
            id=thought_id,
            content=content,
            type=thought_type,
            metrics=ThoughtMetrics(confidence=confidence),
            metadata=metadata or {},
        )
    return _make


@pytest.fixture
def make_executor():
    """Factory for fake tool executors."""
    return FakeToolExecutor


@pytest.fixture
def make_memory():
    """Factory for fake memory gateways."""
    return FakeMemory


@pytest.fixture
def fixed_advisor():
    """Factory for advisors with a fixed verification count."""
    return FixedAdvisor


@pytest.fixture
def outcome():
    """Factory for tool outcomes."""
    return make_outcome


@pytest.fixture
def memory_hit():
    """Factory for durable-memory hits."""
    return make_hit
