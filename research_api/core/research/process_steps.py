"""Progress labels shown while a research turn runs."""

from typing import Dict, List, Union

from research_api.core.research.tool_schemas import TOOL_TO_METHODOLOGY
from research_api.core.schemas import Methodology, ProcessStep, StepStatus


SURVEY_PROCESS_STEPS = [
    "Designing survey questionnaire",
    "Recruiting 500+ respondents",
    "Collecting responses",
    "Cleaning and validating data",
    "Running statistical analysis",
    "Generating insights report",
]

FOCUS_GROUP_PROCESS_STEPS = [
    "Designing discussion guide",
    "Recruiting 12 participants",
    "Moderating focus group sessions",
    "Transcribing 6+ hours of discussion",
    "Coding and categorizing themes",
    "Synthesizing key insights",
]

COMPARISON_PROCESS_STEPS = [
    "Defining comparison segments",
    "Recruiting matched samples",
    "Collecting parallel responses",
    "Normalizing cross-segment data",
    "Running comparative analysis",
    "Highlighting key differences",
]

HEATMAP_PROCESS_STEPS = [
    "Setting up attention tracking",
    "Recruiting 200+ participants",
    "Recording eye-tracking sessions",
    "Processing gaze data",
    "Generating heat intensity maps",
    "Identifying engagement hotspots",
]

SENTIMENT_PROCESS_STEPS = [
    "Defining sentiment topics",
    "Collecting brand mentions",
    "Running NLP sentiment analysis",
    "Categorizing emotional drivers",
    "Scoring sentiment by topic",
    "Mapping perception landscape",
]

PROCESS_STEPS: Dict[Methodology, List[str]] = {
    Methodology.SURVEY: SURVEY_PROCESS_STEPS,
    Methodology.FOCUS_GROUP: FOCUS_GROUP_PROCESS_STEPS,
    Methodology.COMPARISON: COMPARISON_PROCESS_STEPS,
    Methodology.HEATMAP: HEATMAP_PROCESS_STEPS,
    Methodology.SENTIMENT: SENTIMENT_PROCESS_STEPS,
}


def _lookup_key(methodology: Union[Methodology, str, None]) -> Methodology:
    if isinstance(methodology, Methodology):
        return methodology
    if not isinstance(methodology, str):
        return Methodology.SURVEY

    name = methodology.strip().lower()
    if name in TOOL_TO_METHODOLOGY:
        return TOOL_TO_METHODOLOGY[name]
    # Plan ids use hyphens ("focus-group"), the enum uses underscores
    try:
        return Methodology(name.replace("-", "_").replace(" ", "_"))
    except ValueError:
        return Methodology.SURVEY


def get_process_steps(methodology: Union[Methodology, str, None]) -> List[str]:
    """
    Ordered stage labels for a methodology.

    Accepts the enum, its value, a tool name ("run_focus_group") or a plan
    id ("focus-group"); anything unknown gets the survey list.
    Returns a copy so callers can't mutate the table.
    """
    key = _lookup_key(methodology)
    return list(PROCESS_STEPS.get(key, SURVEY_PROCESS_STEPS))


def planning_steps(active: Union[int, str]) -> List[ProcessStep]:
    """
    The two planning stages, with `active` being 1, 2 or "complete".
    """
    first = StepStatus.IN_PROGRESS if active == 1 else StepStatus.COMPLETE
    if active == "complete":
        second = StepStatus.COMPLETE
    elif active == 2:
        second = StepStatus.IN_PROGRESS
    else:
        second = StepStatus.PENDING

    return [
        ProcessStep(id="plan_1", label="Analyzing your question", status=first),
        ProcessStep(id="plan_2", label="Selecting research method", status=second),
    ]


def execution_steps(labels: List[str], active_index: int) -> List[ProcessStep]:
    """Stage records for `labels`: done before `active_index`, pending after."""
    steps = []
    for i, label in enumerate(labels):
        if i < active_index:
            status = StepStatus.COMPLETE
        elif i == active_index:
            status = StepStatus.IN_PROGRESS
        else:
            status = StepStatus.PENDING
        steps.append(ProcessStep(id=f"exec_{i}", label=label, status=status))
    return steps
