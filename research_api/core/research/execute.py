# research_api/core/research/execute.py
"""
EXECUTE MODULE - Generate the research artifact for a chosen methodology

Purpose:
    1. Route the selection to the right generation call
    2. Force the backend onto a result schema (static or per-segment)
    3. Pull a valid Artifact out of whatever came back
    4. Hand over to the fallback synthesizer when anything goes wrong

Routing:
    survey, 0-1 segments   → generate_survey_results
    survey, 2+ segments    → generate_comparison_survey_results (per-segment schema)
    focus group            → generate_focus_group_results
    heatmap / sentiment    → survey path
    comparison (legacy)    → one survey, then fanned out per segment

execute_research() never raises. Every failure (no backend, deadline,
API error, malformed payload, invalid artifact) ends in fallback_artifact()
with the same parameters.
"""

import logging
import random
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from research_api.core.config import settings
from research_api.core.research.backend import (
    BackendUnavailable,
    MalformedResponse,
    ResearchBackend,
    call_with_deadline,
)
from research_api.core.research.fallback import (
    audience_for,
    fallback_artifact,
    new_artifact_id,
)
from research_api.core.research.normalize import (
    coerce_count,
    coerce_json_array,
    normalize_comparison_options,
    normalize_options,
)
from research_api.core.research.tool_schemas import (
    FOCUS_GROUP_RESULT_SCHEMA,
    SURVEY_RESULT_SCHEMA,
    build_segment_survey_schema,
    generation_tool,
)
from research_api.core.schemas import (
    Artifact,
    Audience,
    CanonicalOption,
    DEFAULT_SEGMENT_KEY,
    Methodology,
    MethodologySelection,
    MethodologyType,
    QualitativeTheme,
    QuestionResult,
    Quote,
    ResearchParameters,
    Sentiment,
)

logger = logging.getLogger(__name__)

# Legacy comparison: max distance (points) a segment may drift from the base
LEGACY_SEGMENT_SPREAD = 15.0

MAX_THEMES = 4


@dataclass
class ExecutionResult:
    artifact: Artifact
    used_fallback: bool = False
    failure: Optional[str] = None


# ============================================================================
# PAYLOAD HELPERS
# ============================================================================


def _text(value: Any, default: str = "") -> str:
    if isinstance(value, str) and value.strip():
        return value.strip()
    return default


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _question(
    raw: Dict[str, Any],
    index: int,
    respondents: int,
    options: List[CanonicalOption],
    segments: Optional[List[str]] = None,
) -> QuestionResult:
    title = _text(raw.get("title"))
    return QuestionResult(
        id=f"q{index + 1}",
        title=title,
        question_text=_text(raw.get("question"), title),
        respondent_count=respondents,
        options=options,
        segments=list(segments or []),
    )


# ============================================================================
# PAYLOAD → ARTIFACT
# ============================================================================


def survey_artifact_from_payload(payload: Dict[str, Any], audience: str) -> Artifact:
    """
    Build a single-audience survey artifact from a tool payload.

    Questions without any usable option are dropped.

    Raises:
        MalformedResponse: when no question survives
    """
    respondents = coerce_count(payload.get("sample_size"), settings.DEFAULT_SAMPLE_SIZE)

    questions = []
    for raw in coerce_json_array(payload.get("questions"), "questions"):
        if not isinstance(raw, dict):
            continue
        options = normalize_options(raw.get("options"))
        if options:
            questions.append(_question(raw, len(questions), respondents, options))

    if not questions:
        raise MalformedResponse("Survey payload has no usable questions")

    return Artifact(
        id=new_artifact_id(),
        title=_text(payload.get("title"), "Survey Results"),
        methodology_type=MethodologyType.QUANTITATIVE,
        audience=audience_for(_text(payload.get("audience"), audience)),
        respondent_count=respondents,
        abstract=_text(payload.get("abstract")),
        questions=questions,
        created_at=_now(),
    )


def segmented_survey_artifact_from_payload(
    payload: Dict[str, Any], audience: str, segments: List[str]
) -> Artifact:
    """
    Build a per-segment survey artifact. Every option ends up with exactly
    the keys in `segments`.

    Raises:
        MalformedResponse: when no question survives
    """
    per_segment = coerce_count(
        payload.get("sample_size_per_segment"), settings.DEFAULT_SAMPLE_SIZE
    )
    respondents = per_segment * len(segments)

    questions = []
    for raw in coerce_json_array(payload.get("questions"), "questions"):
        if not isinstance(raw, dict):
            continue
        options = normalize_comparison_options(raw.get("options"), segments)
        if options:
            questions.append(
                _question(raw, len(questions), respondents, options, segments)
            )

    if not questions:
        raise MalformedResponse("Comparison payload has no usable questions")

    return Artifact(
        id=new_artifact_id(),
        title=_text(payload.get("title"), f"{' vs '.join(segments)}: Survey Results"),
        methodology_type=MethodologyType.QUANTITATIVE,
        audience=audience_for(audience),
        respondent_count=respondents,
        abstract=_text(payload.get("abstract")),
        questions=questions,
        created_at=_now(),
    )


def _sentiment(value: Any) -> Sentiment:
    try:
        return Sentiment(str(value).strip().lower())
    except ValueError:
        return Sentiment.NEUTRAL


def _quotes(raw: Any) -> List[Quote]:
    quotes = []
    for item in coerce_json_array(raw, "quotes"):
        if isinstance(item, dict) and _text(item.get("text")):
            quotes.append(
                Quote(
                    text=_text(item.get("text")),
                    attribution=_text(item.get("attribution"), "Participant"),
                )
            )
        elif isinstance(item, str) and item.strip():
            quotes.append(Quote(text=item.strip()))
    return quotes


def focus_group_artifact_from_payload(payload: Dict[str, Any], audience: str) -> Artifact:
    """
    Build a focus-group artifact. Themes without a topic are dropped and at
    most four are kept.

    Raises:
        MalformedResponse: when no theme survives
    """
    themes = []
    for raw in coerce_json_array(payload.get("themes"), "themes"):
        if not isinstance(raw, dict) or not _text(raw.get("topic")):
            continue
        themes.append(
            QualitativeTheme(
                id=_text(raw.get("id"), f"theme-{len(themes) + 1}"),
                topic=_text(raw.get("topic")),
                sentiment=_sentiment(raw.get("sentiment")),
                summary=_text(raw.get("summary")),
                quotes=_quotes(raw.get("quotes")),
            )
        )
        if len(themes) == MAX_THEMES:
            break

    if not themes:
        raise MalformedResponse("Focus group payload has no usable themes")

    return Artifact(
        id=new_artifact_id(),
        title=_text(payload.get("title"), "Focus Group Insights"),
        methodology_type=MethodologyType.QUALITATIVE,
        audience=audience_for(_text(payload.get("audience"), audience)),
        respondent_count=coerce_count(
            payload.get("participant_count"), settings.DEFAULT_PARTICIPANT_COUNT
        ),
        abstract=_text(payload.get("abstract")),
        themes=themes,
        created_at=_now(),
    )


def fan_out_segments(
    options: List[CanonicalOption],
    segments: List[str],
    rng: Optional[random.Random] = None,
) -> List[CanonicalOption]:
    """
    Spread single-audience options across segments.

    The first segment keeps the base percentage; each other segment drifts
    by up to LEGACY_SEGMENT_SPREAD points either way, clamped to [0, 100]
    and rounded to one decimal.
    """
    rng = rng or random.Random()
    spread = []
    for option in options:
        base = option.values.get(DEFAULT_SEGMENT_KEY, 0.0)
        values: Dict[str, float] = {}
        for i, segment in enumerate(segments):
            variance = 0.0 if i == 0 else (rng.random() - 0.5) * 2 * LEGACY_SEGMENT_SPREAD
            values[segment] = round(max(0.0, min(100.0, base + variance)), 1)
        spread.append(CanonicalOption(label=option.label, values=values))
    return spread


# ============================================================================
# GENERATION CALLS
# ============================================================================


async def _generate(
    backend: ResearchBackend,
    prompt: str,
    tool: Dict[str, Any],
    max_tokens: int,
    timeout: Optional[float] = None,
) -> Dict[str, Any]:
    payload = await call_with_deadline(
        backend.generate(prompt, tool, max_tokens),
        settings.BACKEND_DEADLINE_SECONDS if timeout is None else timeout,
        tool["name"],
    )
    if not isinstance(payload, dict):
        raise MalformedResponse(f"{tool['name']} payload is not an object")
    return payload


async def run_survey(
    backend: ResearchBackend,
    params: ResearchParameters,
    timeout: Optional[float] = None,
) -> Artifact:
    logger.info(f"Executing survey for: {params.audience}")

    prompt = f"""Generate realistic survey results for the following:
Audience: {params.audience}
Research Question: {params.research_question}

Guidelines:
- Generate 3 specific, measurable questions with 3-6 clear options each
- Each question has a "title" (a 3-7 word insight header, e.g. "Primary purchase drivers") and a "question" (the question as it was asked)
- Use realistic, non-round percentages (e.g. 42.8, 17.3) that sum to roughly 100 per question
- Reflect real-world trends
- Write a catchy, direct title and a 2-sentence abstract of the key findings"""

    tool = generation_tool(
        "generate_survey_results",
        "Generate structured survey results",
        SURVEY_RESULT_SCHEMA,
    )
    payload = await _generate(backend, prompt, tool, settings.SURVEY_MAX_TOKENS, timeout)
    return survey_artifact_from_payload(payload, params.audience)


async def run_segmented_survey(
    backend: ResearchBackend,
    params: ResearchParameters,
    segments: List[str],
    timeout: Optional[float] = None,
) -> Artifact:
    logger.info(f"Executing comparison survey for segments: {' vs '.join(segments)}")

    example = ", ".join(f'"{s}": 45.2' for s in segments)
    prompt = f"""Generate realistic comparative survey results for the following:
Audience: {params.audience}
Research Question: {params.research_question}
Segments to Compare: {', '.join(segments)}

Guidelines:
- Generate 3 specific, measurable questions that compare the segments
- Each question has a "title" (a 3-7 word insight header) and a "question" (the question as it was asked)
- Every option gives a percentage for EACH segment, e.g. {{"label": "Option A", {example}}}
- Use realistic, non-round percentages and show meaningful differences between segments
- Percentages for each segment should sum to roughly 100 within a question
- Make the title highlight the comparison and write a 2-sentence abstract of the key differences"""

    tool = generation_tool(
        "generate_comparison_survey_results",
        f"Generate structured comparison survey results with segment breakdowns for: {', '.join(segments)}",
        build_segment_survey_schema(segments),
    )
    payload = await _generate(
        backend, prompt, tool, settings.COMPARISON_MAX_TOKENS, timeout
    )
    return segmented_survey_artifact_from_payload(payload, params.audience, segments)


async def run_focus_group(
    backend: ResearchBackend,
    params: ResearchParameters,
    timeout: Optional[float] = None,
) -> Artifact:
    logger.info(f"Executing focus group for: {params.audience}")

    prompt = f"""Generate realistic focus group insights for the following:
Audience: {params.audience}
Research Question: {params.research_question}

Guidelines:
- Generate 3-4 distinct themes that emerged from discussion
- Each theme topic is a STANDALONE 2-4 word header, e.g. "The Trust Factor" or "Price vs Value", never a truncated sentence
- Match sentiment to the emotional tone (positive, negative, neutral, mixed)
- One compelling sentence of summary per theme
- 2-3 natural, conversational quotes per theme, attributed as "Name, Age" (e.g. "Sarah, 34")"""

    tool = generation_tool(
        "generate_focus_group_results",
        "Generate structured focus group insights",
        FOCUS_GROUP_RESULT_SCHEMA,
    )
    payload = await _generate(
        backend, prompt, tool, settings.FOCUS_GROUP_MAX_TOKENS, timeout
    )
    return focus_group_artifact_from_payload(payload, params.audience)


async def run_legacy_comparison(
    backend: ResearchBackend,
    params: ResearchParameters,
    segments: List[str],
    rng: Optional[random.Random] = None,
    timeout: Optional[float] = None,
) -> Artifact:
    """One single-audience survey, fanned out across the segments afterwards."""
    logger.info(f"Executing comparison for: {' vs '.join(segments)}")

    prompt = f"""Generate realistic survey comparison results for:
Segments to compare: {' vs '.join(segments)}
Research Question: {params.research_question}

Guidelines:
- Generate 3 questions comparing the segments
- Use realistic percentages
- The title should emphasize the comparison"""

    tool = generation_tool(
        "generate_survey_results",
        "Generate structured survey results with segment comparison",
        SURVEY_RESULT_SCHEMA,
    )
    payload = await _generate(backend, prompt, tool, settings.SURVEY_MAX_TOKENS, timeout)
    base = survey_artifact_from_payload(payload, params.audience)

    questions = [
        question.model_copy(
            update={
                "options": fan_out_segments(question.options, segments, rng),
                "segments": list(segments),
            }
        )
        for question in base.questions
    ]
    return base.model_copy(
        update={
            "audience": Audience(id="comparison", name=" vs ".join(segments)),
            "questions": questions,
        }
    )


# ============================================================================
# DISPATCH
# ============================================================================


async def _dispatch(
    methodology: Methodology,
    params: ResearchParameters,
    backend: ResearchBackend,
    rng: Optional[random.Random],
    timeout: Optional[float],
) -> Artifact:
    segments = params.segments or []

    if methodology in (Methodology.HEATMAP, Methodology.SENTIMENT):
        # Rendered as surveys; there is no dedicated heatmap/sentiment generator
        logger.info(f"{methodology.value} runs on the survey path")
        return await run_survey(backend, params, timeout)

    if methodology == Methodology.FOCUS_GROUP:
        return await run_focus_group(backend, params, timeout)

    if methodology == Methodology.COMPARISON:
        if len(segments) < 2:
            segments = ["Group A", "Group B"]
        return await run_legacy_comparison(backend, params, segments, rng, timeout)

    if len(segments) >= 2:
        return await run_segmented_survey(backend, params, segments, timeout)
    return await run_survey(backend, params, timeout)


async def execute_research(
    selection: MethodologySelection,
    query: str,
    backend: Optional[ResearchBackend],
    rng: Optional[random.Random] = None,
    timeout: Optional[float] = None,
) -> ExecutionResult:
    """
    Produce the artifact for a methodology selection.

    Args:
        selection: A selection with methodology and parameters
        query: The user's original query (fallback text, default question)
        backend: Generative backend; None goes straight to the fallback
        rng: Random source for the legacy comparison fan-out
        timeout: Seconds left for the generation call (defaults to
            BACKEND_DEADLINE_SECONDS); 0 goes straight to the fallback

    Returns:
        ExecutionResult with the artifact and whether the fallback produced it
    """
    if selection.methodology is None or selection.parameters is None:
        raise ValueError("Cannot execute a clarification request")

    methodology = selection.methodology
    params = selection.parameters
    if not params.research_question:
        params = params.model_copy(update={"research_question": query})

    try:
        if backend is None:
            raise BackendUnavailable("No backend configured")
        artifact = await _dispatch(methodology, params, backend, rng, timeout)
        return ExecutionResult(artifact=artifact)

    except Exception as e:
        logger.error(f"{methodology.value} generation failed, using fallback: {e}")
        return ExecutionResult(
            artifact=fallback_artifact(methodology, params, query),
            used_fallback=True,
            failure=str(e),
        )
