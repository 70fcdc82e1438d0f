"""Tests for the verification pipeline."""

import pytest

from thoughtcheck.models import ThoughtType
from thoughtcheck.verification import (
    CalculationDetector,
    VerificationPipeline,
    VerificationStatus,
)


class CountingDetector(CalculationDetector):
    def __init__(self):
        super().__init__()
        self.calls = 0

    def detect_and_verify(self, text):
        self.calls += 1
        return super().detect_and_verify(text)


# ==========================================
#  PRELIMINARY VERIFICATION
# ==========================================


@pytest.mark.asyncio
async def test_preliminary_annotates_calculation():
    pipeline = VerificationPipeline()

    result = await pipeline.preliminary_verify("2 + 2 = 4")

    assert len(result.verified_calculations) == 1
    assert result.verified_calculations[0].is_correct
    assert result.preverified_thought.endswith("[✓ Vérifié]")
    assert result.initial_verification
    assert result.verification_in_progress


@pytest.mark.asyncio
async def test_preliminary_skips_text_without_calculation():
    pipeline = VerificationPipeline()
    text = "The Eiffel Tower is in Paris."

    result = await pipeline.preliminary_verify(text)

    assert result.verified_calculations is None
    assert not result.verification_in_progress
    assert result.preverified_thought == text


@pytest.mark.asyncio
async def test_preliminary_uses_calculation_cache():
    detector = CountingDetector()
    pipeline = VerificationPipeline(calculation_detector=detector)

    first = await pipeline.preliminary_verify("3 * 3 = 9")
    second = await pipeline.preliminary_verify("3 * 3 = 9")

    assert detector.calls == 1
    assert second.verified_calculations == first.verified_calculations
    assert pipeline.get_metrics_summary()["cache_hits"] == {"calculation": 1}


@pytest.mark.asyncio
async def test_preliminary_prefers_calculation_tool(make_executor):
    executor = make_executor({
        "web": {"is_valid": True},
        "python_calc": {
            "verifiedCalculations": [
                {"original": "2 + 2 = 4", "isCorrect": False, "verified": "À vérifier"},
            ],
        },
    })
    pipeline = VerificationPipeline(tool_executor=executor)

    result = await pipeline.preliminary_verify("2 + 2 = 4")

    assert executor.calls == ["python_calc"]
    assert result.preverified_thought == "2 + 2 = 4 [⏳ Vérification en cours...]"


@pytest.mark.asyncio
async def test_preliminary_falls_back_when_tool_fails(make_executor):
    executor = make_executor({"calculator": RuntimeError("down")})
    pipeline = VerificationPipeline(tool_executor=executor)

    result = await pipeline.preliminary_verify("2 + 2 = 5")

    assert not result.verified_calculations[0].is_correct
    assert "[✗ Incorrect: " in result.preverified_thought


@pytest.mark.asyncio
async def test_explicit_request_runs_without_visible_calculation():
    pipeline = VerificationPipeline()

    result = await pipeline.preliminary_verify("nothing to compute", explicitly_requested=True)

    assert result.verified_calculations == []
    assert result.verification_in_progress
    assert not result.initial_verification


# ==========================================
#  PREVIOUS VERIFICATION
# ==========================================


@pytest.mark.asyncio
async def test_trusted_memory_hit_is_cached(make_memory, memory_hit):
    memory = make_memory(hit=memory_hit(similarity=0.9, confidence=0.95))
    pipeline = VerificationPipeline(memory=memory)

    first = await pipeline.check_previous_verification("The sky is blue.", "s1")
    second = await pipeline.check_previous_verification("The sky is blue.", "s1")

    assert first.source == "memory"
    assert first.is_verified
    assert first.verification.confidence == pytest.approx(0.9)
    assert second.source == "cache"
    assert second.previous_verification.similarity == 1.0
    assert memory.find_calls == 1


@pytest.mark.asyncio
async def test_cache_is_scoped_by_session(make_memory, memory_hit):
    memory = make_memory(hit=memory_hit())
    pipeline = VerificationPipeline(memory=memory)

    await pipeline.check_previous_verification("The sky is blue.", "s1")
    other = await pipeline.check_previous_verification("The sky is blue.", "s2")

    assert other.source == "memory"
    assert memory.find_calls == 2


@pytest.mark.parametrize("hit_kwargs", [
    {"similarity": 0.7},
    {"sources": ["unverifiable"]},
    {"sources": ["web: source not specified"]},
    {"status": VerificationStatus.CONTRADICTORY},
])
@pytest.mark.asyncio
async def test_untrusted_memory_hit_needs_reverification(make_memory, memory_hit, hit_kwargs):
    pipeline = VerificationPipeline(memory=make_memory(hit=memory_hit(**hit_kwargs)))

    result = await pipeline.check_previous_verification("The sky is blue.")

    assert not result.is_verified
    assert result.verification_status == VerificationStatus.UNCERTAIN
    assert "re-verification" in result.verification.notes
    assert pipeline.verification_cache.size == 0


@pytest.mark.asyncio
async def test_memory_failure_reports_unverified(make_memory):
    pipeline = VerificationPipeline(memory=make_memory(error=ConnectionError("db gone")))

    result = await pipeline.check_previous_verification("The sky is blue.")

    assert not result.is_verified
    assert result.verification_status == VerificationStatus.UNVERIFIED
    assert result.source is None
    assert pipeline.get_metrics_summary()["memory"]["failures"] == 1


@pytest.mark.asyncio
async def test_conclusion_inherits_from_verified_connection(make_thought):
    premise = make_thought(thought_id="t1", metadata={"is_verified": True})
    pipeline = VerificationPipeline(thought_lookup={"t1": premise}.get)

    result = await pipeline.check_previous_verification(
        "So the answer holds.",
        thought_type=ThoughtType.CONCLUSION,
        connected_ids=["missing", "t1"],
    )

    assert result.source == "propagation"
    assert result.is_verified
    assert result.verification_status == VerificationStatus.PARTIALLY_VERIFIED
    assert result.verification.confidence == pytest.approx(0.7)
    assert not result.is_reusable
    assert pipeline.verification_cache.size == 0


@pytest.mark.asyncio
async def test_async_thought_lookup(make_thought):
    premise = make_thought(thought_id="t1", metadata={"verification_status": "partially_verified"})

    async def lookup(thought_id):
        return premise if thought_id == "t1" else None

    pipeline = VerificationPipeline(thought_lookup=lookup)

    result = await pipeline.check_previous_verification(
        "Revised claim.", thought_type="revision", connected_ids=["t1"]
    )

    assert result.source == "propagation"


@pytest.mark.asyncio
async def test_regular_thought_does_not_inherit(make_thought):
    premise = make_thought(thought_id="t1", metadata={"is_verified": True})
    pipeline = VerificationPipeline(thought_lookup={"t1": premise}.get)

    result = await pipeline.check_previous_verification(
        "So the answer holds.", thought_type=ThoughtType.REGULAR, connected_ids=["t1"]
    )

    assert not result.is_verified
    assert result.verification_status == VerificationStatus.UNVERIFIED


@pytest.mark.asyncio
async def test_contradicted_connection_does_not_propagate(make_thought):
    premise = make_thought(
        thought_id="t1",
        metadata={"is_verified": True, "verification_status": "contradictory"},
    )
    pipeline = VerificationPipeline(thought_lookup={"t1": premise}.get)

    result = await pipeline.check_previous_verification(
        "So the answer holds.", thought_type=ThoughtType.CONCLUSION, connected_ids=["t1"]
    )

    assert result.source is None


@pytest.mark.asyncio
async def test_failed_thought_lookup_skips_connection(make_thought):
    premise = make_thought(thought_id="t1", metadata={"is_verified": True})

    def lookup(thought_id):
        if thought_id == "t0":
            raise RuntimeError("graph unavailable")
        return premise if thought_id == "t1" else None

    pipeline = VerificationPipeline(thought_lookup=lookup)

    broken_only = await pipeline.check_previous_verification(
        "So the answer holds.", thought_type=ThoughtType.CONCLUSION, connected_ids=["t0"]
    )
    recovered = await pipeline.check_previous_verification(
        "So the answer holds.", thought_type=ThoughtType.CONCLUSION, connected_ids=["t0", "t1"]
    )

    assert broken_only.verification_status == VerificationStatus.UNVERIFIED
    assert broken_only.source is None
    assert recovered.source == "propagation"


# ==========================================
#  DEEP VERIFICATION
# ==========================================


@pytest.mark.asyncio
async def test_deep_verify_aggregates_tools(make_executor, make_memory, fixed_advisor, make_thought):
    executor = make_executor({
        "web": {"is_valid": True, "confidence": 0.9, "source": "example.org"},
        "wiki": {"is_valid": True, "confidence": 0.8, "source": "wikipedia"},
    })
    memory = make_memory()
    pipeline = VerificationPipeline(
        tool_executor=executor, memory=memory, requirement_advisor=fixed_advisor(2)
    )
    thought = make_thought()

    result = await pipeline.deep_verify(thought, session_id="s1")

    assert result.status == VerificationStatus.VERIFIED
    assert result.confidence == pytest.approx(0.95)
    assert thought.metadata["is_verified"] is True
    assert thought.metadata["verification_status"] == "verified"
    assert thought.metadata["verification_source"] == "tools"
    assert thought.metadata["verification_tools_used"] == ["web", "wiki"]
    assert thought.metadata["verification_session_id"] == "s1"
    assert memory.added == [(
        thought.content,
        VerificationStatus.VERIFIED,
        pytest.approx(0.95),
        ["web: example.org", "wiki: wikipedia"],
        "s1",
    )]


@pytest.mark.asyncio
async def test_deep_verify_result_is_reused(make_executor, fixed_advisor, make_thought):
    executor = make_executor({"web": {"is_valid": True, "confidence": 0.9}})
    pipeline = VerificationPipeline(tool_executor=executor, requirement_advisor=fixed_advisor())

    await pipeline.deep_verify(make_thought(thought_id="a"))
    repeat = make_thought(thought_id="b")
    result = await pipeline.deep_verify(repeat)

    assert executor.calls == ["web"]
    assert result.status == VerificationStatus.VERIFIED
    assert repeat.metadata["verification_source"] == "cache"

    previous = await pipeline.check_previous_verification(repeat.content)
    assert previous.source == "cache"


@pytest.mark.asyncio
async def test_force_verification_runs_tools_again(make_executor, fixed_advisor, make_thought):
    executor = make_executor({"web": {"is_valid": True}})
    pipeline = VerificationPipeline(tool_executor=executor, requirement_advisor=fixed_advisor())

    await pipeline.deep_verify(make_thought())
    await pipeline.deep_verify(make_thought(), force_verification=True)

    assert executor.calls == ["web", "web"]


@pytest.mark.asyncio
async def test_unverified_result_is_not_reused(make_executor, fixed_advisor, make_thought):
    executor = make_executor({"web": {"is_valid": False}})
    pipeline = VerificationPipeline(tool_executor=executor, requirement_advisor=fixed_advisor())

    first = await pipeline.deep_verify(make_thought())
    await pipeline.deep_verify(make_thought())

    assert first.status == VerificationStatus.UNVERIFIED
    assert executor.calls == ["web", "web"]


@pytest.mark.asyncio
async def test_absence_marks_thought_verified(make_executor, fixed_advisor, make_thought):
    executor = make_executor({"search": {"is_valid": "absence", "details": "no record"}})
    pipeline = VerificationPipeline(tool_executor=executor, requirement_advisor=fixed_advisor())
    thought = make_thought()

    result = await pipeline.deep_verify(thought)

    assert result.status == VerificationStatus.ABSENCE_OF_INFORMATION
    assert thought.metadata["is_verified"] is True


@pytest.mark.asyncio
async def test_deep_verify_without_tools_checks_calculations(make_thought):
    pipeline = VerificationPipeline()
    thought = make_thought(content="The total is 12 + 30 = 42", confidence=0.5)

    result = await pipeline.deep_verify(thought, contains_calculations=True)

    assert result.status == VerificationStatus.UNVERIFIED
    assert result.confidence == pytest.approx(0.3)
    assert len(result.verified_calculations) == 1
    assert result.verified_calculations[0].is_correct
    assert thought.metadata["is_verified"] is False


@pytest.mark.asyncio
async def test_deep_verify_survives_memory_failure(make_executor, make_memory, fixed_advisor, make_thought):
    executor = make_executor({"web": {"is_valid": True}})
    pipeline = VerificationPipeline(
        tool_executor=executor,
        memory=make_memory(error=ConnectionError("db gone")),
        requirement_advisor=fixed_advisor(),
    )

    result = await pipeline.deep_verify(make_thought())

    assert result.status == VerificationStatus.VERIFIED
    assert pipeline.verification_cache.size == 1


@pytest.mark.asyncio
async def test_all_tools_failing_is_unverified(make_executor, fixed_advisor, make_thought):
    executor = make_executor({"web": RuntimeError("down"), "wiki": {}})
    pipeline = VerificationPipeline(tool_executor=executor, requirement_advisor=fixed_advisor(2))

    result = await pipeline.deep_verify(make_thought(confidence=0.9))

    assert result.status == VerificationStatus.UNVERIFIED
    assert result.confidence == pytest.approx(0.3)


@pytest.mark.asyncio
async def test_pipelines_do_not_share_caches(make_executor, fixed_advisor, make_thought):
    first = VerificationPipeline(
        tool_executor=make_executor({"web": {"is_valid": True}}),
        requirement_advisor=fixed_advisor(),
    )
    second = VerificationPipeline()

    await first.deep_verify(make_thought())
    result = await second.check_previous_verification(make_thought().content)

    assert result.source is None


# ==========================================
#  REPORTING
# ==========================================


def test_certainty_summary():
    summary = VerificationPipeline.generate_certainty_summary(
        VerificationStatus.VERIFIED, 0.9, similarity=0.85
    )

    assert summary == "Information verified (90% confidence). Based on a similar claim (85% similarity)."


@pytest.mark.asyncio
async def test_metrics_summary_and_reset(make_executor, fixed_advisor, make_thought):
    pipeline = VerificationPipeline(
        tool_executor=make_executor({"web": {"is_valid": True}}),
        requirement_advisor=fixed_advisor(),
    )
    await pipeline.deep_verify(make_thought())

    summary = pipeline.get_metrics_summary()
    assert summary["deep_verifications"] == 1
    assert summary["status_counts"] == {"verified": 1}
    assert summary["tools"]["success"] == 1
    assert summary["caches"]["verification"] == {"size": 1, "capacity": 100}

    pipeline.reset_metrics()
    pipeline.clear_caches()
    summary = pipeline.get_metrics_summary()
    assert summary["deep_verifications"] == 0
    assert summary["caches"]["verification"]["size"] == 0


@pytest.mark.asyncio
async def test_failed_tool_suggestion_means_no_tools(make_executor, make_thought):
    executor = make_executor({"web": {"is_valid": True}})

    def catalog_down(text, limit=5):
        raise RuntimeError("catalog down")

    executor.suggest_verification_tools = catalog_down
    pipeline = VerificationPipeline(tool_executor=executor)

    result = await pipeline.deep_verify(make_thought())
    preliminary = await pipeline.preliminary_verify("2 + 2 = 4")

    assert result.status == VerificationStatus.UNVERIFIED
    assert executor.calls == []
    assert preliminary.verified_calculations[0].is_correct


@pytest.mark.asyncio
async def test_source_only_tool_is_aggregated(make_executor, fixed_advisor, make_thought):
    executor = make_executor({"web": {"source": "example.org"}})
    pipeline = VerificationPipeline(tool_executor=executor, requirement_advisor=fixed_advisor())

    result = await pipeline.deep_verify(make_thought())

    assert result.status == VerificationStatus.UNCERTAIN
    assert result.sources == ["web: example.org"]


@pytest.mark.asyncio
async def test_zero_confidence_thought_without_tools(make_thought):
    pipeline = VerificationPipeline()

    result = await pipeline.deep_verify(make_thought(confidence=0.0))

    assert result.confidence == pytest.approx(0.3)


@pytest.mark.asyncio
async def test_returned_result_does_not_alter_cache(make_executor, fixed_advisor, make_thought):
    executor = make_executor({"web": {"is_valid": True, "source": "example.org"}})
    pipeline = VerificationPipeline(tool_executor=executor, requirement_advisor=fixed_advisor())
    thought = make_thought()

    first = await pipeline.deep_verify(thought)
    first.sources.append("injected")
    previous = await pipeline.check_previous_verification(thought.content)
    previous.verification.sources.append("again")
    reused = await pipeline.deep_verify(make_thought())

    assert previous.verification.sources == ["web: example.org", "again"]
    assert reused.sources == ["web: example.org"]
