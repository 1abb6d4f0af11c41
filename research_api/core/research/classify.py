# research_api/core/research/classify.py
"""
CLASSIFY MODULE - Decide which research methodology a query gets

Purpose:
    1. Pre-scan the query for comparison and qualitative signals
    2. Short-circuit explicit focus-group commands without the backend
    3. Ask the backend to pick one methodology tool (or a clarification)
    4. Turn the first tool invocation into a MethodologySelection

Data Flow:
    query (+ prior artifact) → hints → backend.choose_tool() → selection_from_invocation()
                                              ↓ (error / no tool)
                                      default survey selection

Failures never leave this module: the default is always a survey for
"General Population" on the original query.
"""

import json
import logging
import re
from typing import Any, Dict, List, Optional

from research_api.core.config import settings
from research_api.core.research.backend import (
    BackendError,
    BackendUnavailable,
    ResearchBackend,
    ToolInvocation,
    call_with_deadline,
)
from research_api.core.research.normalize import coerce_count, safe_segment_name
from research_api.core.research.tool_schemas import (
    CLARIFICATION_TOOL_NAME,
    TOOL_TO_METHODOLOGY,
    classifier_tools,
)
from research_api.core.schemas import (
    Artifact,
    ClarificationRequest,
    FollowUp,
    Methodology,
    MethodologySelection,
    ResearchParameters,
    SelectionSource,
)

logger = logging.getLogger(__name__)

DEFAULT_AUDIENCE = "General Population"


# ============================================================================
# STEP 1: SYSTEM INSTRUCTION
# ============================================================================

AGENT_SYSTEM_PROMPT = """You are a synthetic research agent. Read the user's research question and run research on it straight away.

## ACT, DON'T ASK
Users work out what they want by looking at data. Make sensible assumptions about audience and method and deliver results; the user can always refine with a follow-up.

## CHOOSING A TOOL
- run_survey: the default. Measuring percentages, preferences, rankings.
  When the user names two or more groups to compare, call run_survey with a "segments" array (e.g. ["Gen Z", "Millennials"]).
- run_focus_group: only for clearly qualitative requests: "why" questions, motivations, feelings, explicit mentions of focus groups or interviews.
- run_comparison: legacy comparison. Only when the user explicitly asks for a comparison study; otherwise use run_survey with segments.
- run_heatmap / run_sentiment_analysis: only when the question is specifically about attention/engagement or brand sentiment.
- ask_clarification: last resort, only for input that is not a research question at all ("hello", "?", gibberish).

## AUDIENCE
- A group is named (Gen Z, parents, nurses) → use it.
- A group is implied (baby products → parents, gaming → gamers) → infer it.
- Nothing to go on → "General Population".

## EXAMPLES
- "coffee" → run_survey(audience: "Coffee drinkers aged 25-45", research_question: "Coffee consumption preferences and habits")
- "why do people hate mondays" → run_focus_group(audience: "Working professionals", research_question: "Emotional relationship with the start of the work week")
- "millennials vs gen z on tech" → run_survey(audience: "Adults 18-45", segments: ["Millennials", "Gen Z"], research_question: "Technology adoption and preferences")

Always turn the user's words into a clear research question. Pick exactly one tool."""


def _artifact_context(artifact: Artifact) -> str:
    """Compact JSON of the open artifact for the instruction context."""
    summary = {
        "id": artifact.id,
        "title": artifact.title,
        "type": artifact.methodology_type.value,
        "audience": artifact.audience.name,
        "abstract": artifact.abstract,
        "questions": [q.title or q.question_text for q in artifact.questions],
        "themes": [t.topic for t in artifact.themes],
    }
    return json.dumps(summary, ensure_ascii=False)


def build_system_prompt(
    prior_artifact: Optional[Artifact] = None,
    segments_hint: Optional[List[str]] = None,
    qualitative_hint: bool = False,
) -> str:
    """
    The classifier instruction, with the open artifact and pre-scan hints appended.
    """
    sections = [AGENT_SYSTEM_PROMPT]

    if prior_artifact is not None:
        sections.append(
            "## CURRENT CONTEXT\n"
            "The user has an existing research result open:\n"
            f'- Title: "{prior_artifact.title}"\n'
            f"- Type: {prior_artifact.methodology_type.value}\n"
            f"- Details: {_artifact_context(prior_artifact)}\n\n"
            'Set follow_up to "update" if the new message revises this result '
            '(change the audience, add a question, re-run it), or "new" if it '
            "asks for separate research. When in doubt, use \"new\"."
        )

    hints = []
    if segments_hint:
        hints.append(
            f"- Possible comparison segments: {', '.join(segments_hint)}. "
            "Consider run_survey with these segments."
        )
    if qualitative_hint:
        hints.append("- The query uses qualitative language. Consider run_focus_group.")
    if hints:
        sections.append("## HINTS (from a quick scan, may be wrong)\n" + "\n".join(hints))

    return "\n\n".join(sections)


# ============================================================================
# STEP 2: HEURISTIC PRE-SCAN
# ============================================================================

_COMPARISON_PATTERNS = [
    re.compile(r"(.+?)\s+vs\.?\s+(.+)", re.IGNORECASE),
    re.compile(r"(.+?)\s+versus\s+(.+)", re.IGNORECASE),
    re.compile(r"compar(?:e|ing)\s+(.+?)\s+(?:to|and|with)\s+(.+)", re.IGNORECASE),
    re.compile(r"(.+?)\s+compared\s+to\s+(.+)", re.IGNORECASE),
]
_MENTION = re.compile(r"@[\w-]+")

QUALITATIVE_KEYWORDS = [
    "#focus-group",
    "focus group",
    "focus-group",
    "qualitative",
    "qual research",
    "in-depth interview",
    "in depth interview",
    "depth interview",
    "ethnography",
    "ethnographic",
    "/qual",
    "/focus-group",
    "exploratory research",
    "open-ended",
    "why do they",
    "understand why",
    "explore their feelings",
    "attitudes and perceptions",
    "deep dive into motivations",
]

FOCUS_GROUP_COMMANDS = ("#focus-group", "/focus-group")


def detect_comparison_segments(query: str) -> List[str]:
    """
    Find segments a query wants compared.

    Handles:
        - "Gen Z vs Millennials" / "Gen Z versus Millennials"
        - "compare iPhone users and Android users"
        - "renters compared to homeowners"
        - two or more @mentions ("@gen-z @boomers on banking")

    Returns:
        Segment names without "@", or [] when nothing was found
    """
    for pattern in _COMPARISON_PATTERNS:
        match = pattern.search(query)
        if match:
            first = match.group(1).strip().lstrip("@")
            second = match.group(2).strip().lstrip("@")
            if first and second:
                return [first, second]

    mentions = _MENTION.findall(query)
    if len(mentions) >= 2:
        return [m.lstrip("@") for m in mentions]
    return []


def has_qualitative_signal(query: str) -> bool:
    lowered = query.lower()
    return any(keyword in lowered for keyword in QUALITATIVE_KEYWORDS)


def is_focus_group_command(query: str) -> bool:
    lowered = query.lower()
    return any(command in lowered for command in FOCUS_GROUP_COMMANDS)


def command_selection(query: str) -> MethodologySelection:
    """
    Focus-group selection for an explicit command, built without the backend.

    The first @mention other than the command itself becomes the audience.
    """
    question = query
    for command in FOCUS_GROUP_COMMANDS:
        question = re.sub(re.escape(command), "", question, flags=re.IGNORECASE)
    question = " ".join(question.split())

    mentions = [m.lstrip("@") for m in _MENTION.findall(question)]
    audience = mentions[0].replace("-", " ") if mentions else DEFAULT_AUDIENCE

    return MethodologySelection(
        methodology=Methodology.FOCUS_GROUP,
        parameters=ResearchParameters(
            audience=audience, research_question=question or query
        ),
        source=SelectionSource.COMMAND,
    )


def default_selection(query: str) -> MethodologySelection:
    """The survey every failed or empty classification falls back to."""
    return MethodologySelection(
        methodology=Methodology.SURVEY,
        parameters=ResearchParameters(audience=DEFAULT_AUDIENCE, research_question=query),
        source=SelectionSource.DEFAULT,
    )


# Words that make a query conversational rather than a research topic
_NON_TOPIC_WORDS = {
    "hello", "hi", "hey", "hiya", "yo", "thanks", "thank", "you", "ok", "okay",
    "help", "test", "please", "there", "morning", "evening", "what", "huh",
}


def clarification_allowed(query: str) -> bool:
    """
    True only when a query has no topical content at all.

    Any word of 3+ letters outside the small greeting set counts as a topic,
    so "coffee" or "pets" can never end in a clarification. This overrides
    the backend: an ask_clarification choice for a topical query is
    replaced by the default survey selection.
    """
    words = re.findall(r"[a-z]+", query.lower())
    return not any(len(w) >= 3 and w not in _NON_TOPIC_WORDS for w in words)


# ============================================================================
# STEP 3: INVOCATION → SELECTION
# ============================================================================


def _clean_segments(raw: Any) -> Optional[List[str]]:
    if not isinstance(raw, list):
        return None
    segments: List[str] = []
    for item in raw:
        name = str(item).strip().lstrip("@") if item is not None else ""
        if not name:
            continue
        name = safe_segment_name(name)
        if name not in segments:
            segments.append(name)
    return segments or None


def _clarification_from(payload: Dict[str, Any]) -> ClarificationRequest:
    suggestions = payload.get("suggestions")
    return ClarificationRequest(
        missing_info=str(payload.get("missing_info") or "More information needed"),
        reason=str(payload["reason"]) if payload.get("reason") else None,
        suggestions=[str(s) for s in suggestions] if isinstance(suggestions, list) else [],
    )


def selection_from_invocation(
    invocation: ToolInvocation, query: str, has_prior: bool = False
) -> MethodologySelection:
    """
    Map the backend's tool choice onto a MethodologySelection.

    Raises:
        BackendError: when the tool name is not one we offered
    """
    payload = invocation.input

    if invocation.name == CLARIFICATION_TOOL_NAME:
        if clarification_allowed(query):
            return MethodologySelection(clarification=_clarification_from(payload))
        logger.info(f"Clarification declined for researchable query: {query!r}")
        return default_selection(query)

    methodology = TOOL_TO_METHODOLOGY.get(invocation.name)
    if methodology is None:
        raise BackendError(f"Unknown tool chosen: {invocation.name}")

    segments = _clean_segments(payload.get("segments"))
    audience = str(payload.get("audience") or "").strip()

    if methodology == Methodology.COMPARISON:
        if not segments or len(segments) < 2:
            segments = ["Group A", "Group B"]
        audience = audience or " vs ".join(segments)

    sample_size = coerce_count(
        payload.get("sample_size", payload.get("participant_count")), 0
    )

    follow_up = FollowUp.NEW
    if has_prior and payload.get("follow_up") == FollowUp.UPDATE.value:
        follow_up = FollowUp.UPDATE

    return MethodologySelection(
        methodology=methodology,
        parameters=ResearchParameters(
            audience=audience or DEFAULT_AUDIENCE,
            research_question=str(payload.get("research_question") or query),
            segments=segments,
            sample_size=sample_size or None,
        ),
        follow_up=follow_up,
        source=SelectionSource.BACKEND,
    )


async def classify_query(
    query: str,
    prior_artifact: Optional[Artifact],
    backend: Optional[ResearchBackend],
    timeout: Optional[float] = None,
) -> MethodologySelection:
    """
    Pick a methodology for a query.

    Args:
        query: The user's free-text question
        prior_artifact: Research currently open in the conversation, if any
        backend: Generative backend, or None when running offline
        timeout: Seconds left for the backend call (defaults to
            BACKEND_DEADLINE_SECONDS)

    Returns:
        A MethodologySelection. Never raises: any backend problem gives the
        default survey selection.
    """
    if is_focus_group_command(query):
        logger.info("Focus-group command found; skipping backend classification")
        return command_selection(query)

    segments_hint = detect_comparison_segments(query)
    qualitative_hint = has_qualitative_signal(query)
    if segments_hint:
        logger.info(f"Pre-scan found comparison segments: {segments_hint}")

    try:
        if backend is None:
            raise BackendUnavailable("No backend configured")

        system = build_system_prompt(prior_artifact, segments_hint, qualitative_hint)
        invocation = await call_with_deadline(
            backend.choose_tool(
                system, query, classifier_tools(with_follow_up=prior_artifact is not None)
            ),
            settings.BACKEND_DEADLINE_SECONDS if timeout is None else timeout,
            "classification",
        )
        if invocation is None:
            logger.info("No tool selected, treating as generic survey")
            return default_selection(query)

        logger.info(f"Selected tool: {invocation.name} {invocation.input}")
        return selection_from_invocation(invocation, query, prior_artifact is not None)

    except Exception as e:
        logger.error(f"Tool selection error: {e}")
        return default_selection(query)
