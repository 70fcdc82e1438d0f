"""Tests for concurrent tool orchestration."""

import asyncio

import pytest

from thoughtcheck.verification import (
    ContentCharacteristics,
    ToolOrchestrator,
    VerificationMetricsTracker,
    VerificationRequirements,
)

SINGLE = VerificationRequirements()
TRIPLE = VerificationRequirements(
    requires_multiple_verifications=True, recommended_verifications_count=3
)
MIXED = ContentCharacteristics(factual_claim=True, statistic=True, external_reference=True)


def test_select_tool_count_follows_requirements():
    assert ToolOrchestrator.base_tool_count(SINGLE, 5) == 1
    assert ToolOrchestrator.base_tool_count(TRIPLE, 5) == 3
    assert ToolOrchestrator.base_tool_count(TRIPLE, 2) == 2
    assert ToolOrchestrator.base_tool_count(TRIPLE, 0) == 0


def test_mixed_content_earns_extra_tool(make_executor):
    orchestrator = ToolOrchestrator(make_executor({}))

    assert orchestrator.select_tool_count(SINGLE, 5, MIXED) == 2
    assert orchestrator.select_tool_count(SINGLE, 5, ContentCharacteristics(opinion=True)) == 1
    assert orchestrator.select_tool_count(TRIPLE, 3, MIXED) == 3
    assert orchestrator.select_tool_count(SINGLE, 0, MIXED) == 0


@pytest.mark.asyncio
async def test_failures_are_isolated(make_executor):
    async def slow(text):
        await asyncio.sleep(1)
        return {"is_valid": True}

    executor = make_executor({
        "web": {"is_valid": True, "source": "example.org"},
        "broken": RuntimeError("tool crashed"),
        "slow": slow,
        "empty": {},
    })
    metrics = VerificationMetricsTracker()
    orchestrator = ToolOrchestrator(executor, timeout_seconds=0.05, metrics=metrics)
    requirements = VerificationRequirements(
        requires_multiple_verifications=True, recommended_verifications_count=4
    )

    outcomes = await orchestrator.run("text", executor.suggest_verification_tools("text"), requirements)

    assert [o.tool_name for o in outcomes] == ["web"]
    summary = metrics.get_summary()["tools"]
    assert summary["success"] == 1
    assert summary["failure"] == 1
    assert summary["timeout"] == 1
    assert summary["unusable"] == 1


@pytest.mark.asyncio
async def test_timed_out_tool_is_cancelled(make_executor):
    cancelled = asyncio.Event()

    async def hanging(text):
        try:
            await asyncio.sleep(10)
        except asyncio.CancelledError:
            cancelled.set()
            raise
        return {"is_valid": True}

    executor = make_executor({"hanging": hanging})
    orchestrator = ToolOrchestrator(executor, timeout_seconds=0.05)

    outcomes = await orchestrator.run("text", executor.suggest_verification_tools("text"), SINGLE)

    assert outcomes == []
    assert cancelled.is_set()


@pytest.mark.asyncio
async def test_outcomes_keep_selection_order(make_executor):
    async def late(text):
        await asyncio.sleep(0.05)
        return {"is_valid": True, "source": "late"}

    executor = make_executor({"late": late, "early": {"is_valid": False, "source": "early"}})
    orchestrator = ToolOrchestrator(executor, timeout_seconds=1.0)
    requirements = VerificationRequirements(
        requires_multiple_verifications=True, recommended_verifications_count=2
    )

    outcomes = await orchestrator.run("text", executor.suggest_verification_tools("text"), requirements)

    assert [o.tool_name for o in outcomes] == ["late", "early"]


@pytest.mark.asyncio
async def test_corroborating_tool_stage(make_executor):
    executor = make_executor({
        "first": {"is_valid": True},
        "second": {"isValid": "partial"},
        "third": {"is_valid": True},
    })
    orchestrator = ToolOrchestrator(executor)

    outcomes = await orchestrator.run(
        "text", executor.suggest_verification_tools("text"), SINGLE, MIXED
    )

    assert [(o.tool_name, o.stage) for o in outcomes] == [
        ("first", "primary"),
        ("second", "corroboration"),
    ]
    assert outcomes[1].result.is_valid == "partial"
    assert executor.calls == ["first", "second"]


@pytest.mark.asyncio
async def test_no_tools_available(make_executor):
    orchestrator = ToolOrchestrator(make_executor({}))

    assert await orchestrator.run("text", [], SINGLE) == []


@pytest.mark.asyncio
async def test_source_only_payload_is_usable(make_executor):
    executor = make_executor({"web": {"source": "example.org"}})
    metrics = VerificationMetricsTracker()
    orchestrator = ToolOrchestrator(executor, metrics=metrics)

    outcomes = await orchestrator.run("text", executor.suggest_verification_tools("text"), SINGLE)

    assert [o.tool_name for o in outcomes] == ["web"]
    assert outcomes[0].result.reported_source == "example.org"
    assert metrics.get_summary()["tools"]["unusable"] == 0
