import pytest

from research_api.core.research.plan import (
    build_study_plan,
    clean_audience_label,
    generate_study_title,
    topic_words,
)
from research_api.core.research.process_steps import (
    COMPARISON_PROCESS_STEPS,
    SURVEY_PROCESS_STEPS,
    execution_steps,
    get_process_steps,
    planning_steps,
)
from research_api.core.schemas import (
    ClarificationRequest,
    Methodology,
    MethodologySelection,
    ResearchParameters,
    StepStatus,
)


def _selection(methodology, audience="Gen Z", question="coffee habits", segments=None):
    return MethodologySelection(
        methodology=methodology,
        parameters=ResearchParameters(
            audience=audience, research_question=question, segments=segments
        ),
    )


def test_clean_audience_label():
    assert clean_audience_label("@gen-z-parents") == "Gen Z Parents"
    assert clean_audience_label("General Population") == "General Population"
    assert clean_audience_label("@") == "Audience"


def test_topic_words_strip_interrogatives_and_filler():
    """Leading question words and 'people think about' are removed"""
    assert topic_words("What people think about electric cars and charging?") == [
        "Electric",
        "Cars",
        "Charging",
    ]
    # Only one leading interrogative is removed; short words are skipped
    assert topic_words("What do people think about electric cars?") == [
        "People",
        "Think",
        "Electric",
    ]
    assert topic_words("Why do we fly?") == ["Fly"]


def test_generate_study_title():
    """Audience label prefixes up to 3 topic words"""
    params = ResearchParameters(
        audience="@gen-z", research_question="How customers feel about the new iPhone launch"
    )
    assert generate_study_title(params, "Survey") == "Gen Z New IPhone Launch"


def test_generate_study_title_falls_back_to_method_name():
    """No topic words left means audience + method name"""
    params = ResearchParameters(audience="nurses", research_question="Is it ok?")
    assert generate_study_title(params, "Focus Group") == "Nurses Focus Group"


def test_build_study_plan_from_catalogue():
    """Method ids, bullets and runtime come from the static table"""
    plan = build_study_plan(_selection(Methodology.FOCUS_GROUP))
    assert plan.methodology_id == "focus-group"
    assert plan.methodology_name == "Focus Group"
    assert plan.variant_id is None
    assert plan.setup_bullets
    assert plan.expected_runtime_label

    heatmap = build_study_plan(_selection(Methodology.HEATMAP))
    assert heatmap.methodology_id == "explore-audience"
    assert heatmap.variant_id == "heatmap"


def test_build_study_plan_is_deterministic():
    selection = _selection(Methodology.SURVEY, segments=["Gen Z", "Millennials"])
    assert build_study_plan(selection) == build_study_plan(selection)
    assert "Segments: Gen Z, Millennials" in build_study_plan(selection).setup_bullets


def test_build_study_plan_rejects_clarification():
    selection = MethodologySelection(
        clarification=ClarificationRequest(missing_info="What topic?")
    )
    with pytest.raises(ValueError):
        build_study_plan(selection)


def test_selection_needs_exactly_one_variant():
    """Neither or both variants is invalid"""
    with pytest.raises(ValueError):
        MethodologySelection()
    with pytest.raises(ValueError):
        MethodologySelection(
            methodology=Methodology.SURVEY,
            parameters=ResearchParameters(research_question="x"),
            clarification=ClarificationRequest(),
        )


def test_get_process_steps():
    """Known methodologies get their list; anything else gets the survey list"""
    assert get_process_steps(Methodology.COMPARISON) == COMPARISON_PROCESS_STEPS
    assert get_process_steps("focus_group")[0] == "Designing discussion guide"
    assert get_process_steps("message_testing") == SURVEY_PROCESS_STEPS
    assert get_process_steps(None) == SURVEY_PROCESS_STEPS
    for methodology in Methodology:
        assert 5 <= len(get_process_steps(methodology)) <= 6


def test_get_process_steps_aliases():
    """Tool names and plan ids resolve to the same lists as the enum"""
    focus_group = get_process_steps(Methodology.FOCUS_GROUP)
    assert get_process_steps("focus-group") == focus_group
    assert get_process_steps("run_focus_group") == focus_group
    assert get_process_steps(" Focus Group ") == focus_group
    assert get_process_steps("run_sentiment_analysis") == get_process_steps(Methodology.SENTIMENT)
    assert get_process_steps("run_comparison") == COMPARISON_PROCESS_STEPS

    plan = build_study_plan(_selection(Methodology.FOCUS_GROUP))
    assert get_process_steps(plan.methodology_id) == focus_group


def test_get_process_steps_returns_copy():
    steps = get_process_steps(Methodology.SURVEY)
    steps.append("extra")
    assert "extra" not in get_process_steps(Methodology.SURVEY)


def test_planning_and_execution_steps():
    first, second = planning_steps(1)
    assert first.status == StepStatus.IN_PROGRESS
    assert second.status == StepStatus.PENDING
    assert [s.status for s in planning_steps("complete")] == [
        StepStatus.COMPLETE,
        StepStatus.COMPLETE,
    ]

    steps = execution_steps(["a", "b", "c"], 1)
    assert [s.status for s in steps] == [
        StepStatus.COMPLETE,
        StepStatus.IN_PROGRESS,
        StepStatus.PENDING,
    ]
    assert steps[2].id == "exec_2"
