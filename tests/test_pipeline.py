import asyncio
import time

import pytest

from research_api.core.research.backend import ToolInvocation
from research_api.core.research.fallback import fallback_survey
from research_api.core.research.pipeline import (
    ResearchLogger,
    results_introduction,
    run_research,
    run_research_turn,
)
from research_api.core.schemas import (
    Methodology,
    MethodologyType,
    SelectionSource,
    TurnStatus,
)


def _assert_valid(artifact):
    """Exactly one of questions/themes is filled, matching the type"""
    if artifact.methodology_type == MethodologyType.QUANTITATIVE:
        assert artifact.questions and not artifact.themes
    else:
        assert artifact.themes and not artifact.questions


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "query",
    ["coffee", "", "why do people hate mondays", "Gen Z vs Boomers", "#focus-group pets", "?"],
)
async def test_run_research_always_returns_valid_artifact(query, failing_backend):
    offline = await run_research(query, None)
    broken = await run_research(query, None, failing_backend)
    _assert_valid(offline)
    _assert_valid(broken)
    assert offline.study_plan is not None


@pytest.mark.asyncio
async def test_full_turn_success(make_backend, survey_payload):
    backend = make_backend(
        choice=ToolInvocation(
            name="run_survey",
            input={"audience": "Coffee drinkers aged 25-45", "research_question": "Coffee habits"},
        ),
        payloads={"generate_survey_results": survey_payload},
    )
    turn = await run_research_turn("coffee", None, backend)

    assert turn.status == TurnStatus.COMPLETE
    assert not turn.used_fallback
    assert turn.artifact.title == "Coffee Is a Morning Ritual"
    assert turn.artifact.study_plan == turn.study_plan
    assert turn.study_plan.title == "Coffee Drinkers Aged 25-45 Coffee Habits"
    assert turn.process_steps[0] == "Designing survey questionnaire"
    assert "800 people" in turn.explanation
    assert [log["step"] for log in turn.logs][0] == "classify"
    assert len([c for c in backend.calls if c["kind"] in ("choose_tool", "generate")]) == 2


@pytest.mark.asyncio
async def test_turn_with_failing_backend_uses_defaults(failing_backend):
    turn = await run_research_turn("coffee", None, failing_backend)

    assert turn.status == TurnStatus.COMPLETE
    assert turn.used_fallback
    assert turn.selection.source == SelectionSource.DEFAULT
    assert turn.artifact.audience.name == "General Population"
    assert any(log["level"] == "warning" for log in turn.logs)


@pytest.mark.asyncio
async def test_hanging_backend_bounded_by_one_deadline(hanging_backend, short_deadline):
    """Both calls share one turn budget"""
    start = time.monotonic()
    artifact = await run_research("coffee", None, hanging_backend)
    elapsed = time.monotonic() - start

    assert elapsed < short_deadline + 0.09
    _assert_valid(artifact)


@pytest.mark.asyncio
async def test_slow_classification_leaves_no_time_for_generation(
    make_backend, survey_payload, short_deadline
):
    """Generation is skipped once classification used up the budget"""

    class SlowClassifier(make_backend):
        async def choose_tool(self, system, query, tools):
            await asyncio.sleep(30)

    backend = SlowClassifier(payloads={"generate_survey_results": survey_payload})
    start = time.monotonic()
    turn = await run_research_turn("coffee", None, backend)

    assert time.monotonic() - start < short_deadline + 0.09
    assert turn.used_fallback
    assert turn.status == TurnStatus.COMPLETE
    assert [c for c in backend.calls if c["kind"] == "generate"] == []


@pytest.mark.asyncio
async def test_focus_group_command_never_calls_backend(make_backend):
    backend = make_backend(choice=ToolInvocation(name="run_survey", input={}))
    turn = await run_research_turn("#focus-group on remote work", None, backend)

    assert backend.calls == []
    assert turn.artifact.methodology_type == MethodologyType.QUALITATIVE
    assert 2 <= len(turn.artifact.themes) <= 4
    assert turn.selection.methodology == Methodology.FOCUS_GROUP


@pytest.mark.asyncio
async def test_clarification_turn(make_backend):
    backend = make_backend(
        choice=ToolInvocation(
            name="ask_clarification",
            input={"missing_info": "What should we research?", "suggestions": ["Coffee habits"]},
        )
    )
    turn = await run_research_turn("hello", None, backend)
    assert turn.status == TurnStatus.CLARIFYING
    assert turn.artifact is None
    assert turn.clarification.missing_info == "What should we research?"

    # The artifact-only entry point still answers
    artifact = await run_research("hello", None, backend)
    _assert_valid(artifact)


@pytest.mark.asyncio
async def test_update_follow_up_reuses_id(make_backend, survey_payload):
    prior = fallback_survey("Gen Z", "coffee")

    def backend_for(follow_up):
        return make_backend(
            choice=ToolInvocation(
                name="run_survey",
                input={"audience": "Boomers", "research_question": "coffee", "follow_up": follow_up},
            ),
            payloads={"generate_survey_results": survey_payload},
        )

    updated = await run_research("same but for boomers", prior, backend_for("update"))
    fresh = await run_research("now tea", prior, backend_for("new"))

    assert updated.id == prior.id
    assert fresh.id != prior.id

    classify_call = backend_for("update")
    await run_research("again", prior, classify_call)
    assert prior.title in classify_call.calls[0]["system"]


@pytest.mark.asyncio
async def test_log_sink_receives_entries_and_failures_are_ignored():
    received = []
    await run_research("coffee", None, None, log_sink=received.append)
    assert received and {"step", "message", "level"} <= set(received[0])

    def broken_sink(entry):
        raise RuntimeError("sink down")

    artifact = await run_research("coffee", None, None, log_sink=broken_sink)
    _assert_valid(artifact)


def test_research_logger_keeps_entries_when_sink_fails():
    def broken_sink(entry):
        raise RuntimeError("sink down")

    research_logger = ResearchLogger(broken_sink)
    research_logger.log("plan", "hello")
    assert research_logger.get_logs()[0]["message"] == "hello"


def test_results_introduction():
    artifact = fallback_survey("Nurses", "shifts")
    assert results_introduction(artifact) == (
        "Based on responses from 500 people in Nurses, here are the key findings."
    )
