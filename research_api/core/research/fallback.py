# research_api/core/research/fallback.py
"""
FALLBACK MODULE - Offline artifacts for when the backend can't deliver

Purpose:
    Build a complete, valid Artifact for any methodology from fixed
    templates so a turn always has something to show.

Why:
    Timeouts, outages and malformed payloads are normal for a generative
    backend. The artifacts built here have the same shape as generated ones,
    so nothing downstream needs to know which path produced them.

Rules:
    - No network I/O, no randomness in the content
    - Title and abstract quote the original query
    - Options, themes and quotes come from the banks below
"""

import uuid
from datetime import datetime, timezone
from typing import Dict, List, Optional, Tuple

from research_api.core.config import settings
from research_api.core.schemas import (
    Artifact,
    Audience,
    CanonicalOption,
    DEFAULT_SEGMENT_KEY,
    Methodology,
    MethodologyType,
    QualitativeTheme,
    QuestionResult,
    Quote,
    ResearchParameters,
    Sentiment,
)


# ============================================================================
# CONTENT BANKS
# ============================================================================

# (title, question text, [(label, percentage), ...])
SURVEY_QUESTION_BANK: List[Tuple[str, str, List[Tuple[str, float]]]] = [
    (
        "Primary decision factors",
        "What are the primary factors that influence your decision?",
        [
            ("Cost / Value", 38.4),
            ("Quality", 29.1),
            ("Brand Trust", 19.7),
            ("Convenience", 12.8),
        ],
    ),
    (
        "Overall sentiment",
        "How would you describe your overall sentiment?",
        [
            ("Very Positive", 24.6),
            ("Somewhat Positive", 31.2),
            ("Neutral", 22.8),
            ("Somewhat Negative", 14.3),
            ("Very Negative", 7.1),
        ],
    ),
    (
        "Recommendation likelihood",
        "How likely are you to recommend this to others?",
        [
            ("Very Likely", 41.3),
            ("Likely", 28.9),
            ("Unlikely", 29.8),
        ],
    ),
]

# (topic, sentiment, summary, [(quote, attribution), ...])
FOCUS_GROUP_THEME_BANK: List[Tuple[str, Sentiment, str, List[Tuple[str, str]]]] = [
    (
        "The Trust Factor",
        Sentiment.MIXED,
        "Participants expressed a complex relationship with trust, valuing "
        "authenticity but remaining skeptical of marketing claims.",
        [
            (
                "I need to see real proof before I believe anything these days. "
                "Actions speak louder than ads.",
                "Sarah, 34",
            ),
            (
                "When a brand admits they're not perfect, that actually makes me "
                "trust them more. Weird, right?",
                "James, 28",
            ),
        ],
    ),
    (
        "Value vs. Price",
        Sentiment.NEUTRAL,
        "Cost remains important but participants were willing to pay more for "
        "perceived quality and alignment with values.",
        [
            ("Cheap isn't always the answer. I've learned that lesson too many times.", "Maria, 41"),
            ("If I understand WHY something costs more, I'm usually okay with it.", "Kevin, 25"),
        ],
    ),
    (
        "Community Matters",
        Sentiment.POSITIVE,
        "Word-of-mouth and community validation emerged as more influential "
        "than traditional advertising.",
        [
            (
                "My sister's recommendation is worth more than any billboard. "
                "She has no reason to lie.",
                "Lisa, 36",
            ),
            ("I check Reddit before I buy anything. Real people, real opinions.", "Alex, 23"),
        ],
    ),
]

# Smallest sample a synthesized survey reports
MIN_SAMPLE_SIZE = 100

# Per-segment shift applied to bank percentages; cycles for long segment lists
SEGMENT_OFFSETS = [0.0, 6.4, -5.2, 3.8, -2.6, 8.1]


# ============================================================================
# HELPERS
# ============================================================================


def new_artifact_id() -> str:
    return f"canvas-{uuid.uuid4().hex[:12]}"


def audience_for(name: str) -> Audience:
    """Audience record with a slug id, e.g. "Gen Z Parents" → "gen-z-parents"."""
    name = name.strip() or "General Population"
    return Audience(id="-".join(name.lower().split()), name=name)


def _short(query: str, limit: int = 50) -> str:
    return query.strip()[:limit]


def _clamp(value: float) -> float:
    return round(max(0.0, min(100.0, value)), 1)


# ============================================================================
# SYNTHESIZERS
# ============================================================================


def fallback_survey(
    audience: str, query: str, sample_size: Optional[int] = None
) -> Artifact:
    """
    Single-audience survey: 3 questions from the bank, 500 respondents by default.
    """
    respondents = max(sample_size or settings.DEFAULT_SAMPLE_SIZE, MIN_SAMPLE_SIZE)
    questions = [
        QuestionResult(
            id=f"q{i + 1}",
            title=title,
            question_text=text,
            respondent_count=respondents,
            options=[
                CanonicalOption(label=label, values={DEFAULT_SEGMENT_KEY: pct})
                for label, pct in options
            ],
        )
        for i, (title, text, options) in enumerate(SURVEY_QUESTION_BANK)
    ]

    return Artifact(
        id=new_artifact_id(),
        title=f"Survey: {_short(query)}",
        methodology_type=MethodologyType.QUANTITATIVE,
        audience=audience_for(audience),
        respondent_count=respondents,
        abstract=(
            f'Survey results on "{query.strip()}" generated with preliminary data. '
            "Results are synthetic and for illustrative purposes."
        ),
        questions=questions,
        created_at=datetime.now(timezone.utc),
    )


def fallback_comparison(
    audience: str,
    query: str,
    segments: List[str],
    sample_size: Optional[int] = None,
) -> Artifact:
    """
    Segmented survey: the survey bank with a fixed per-segment shift, so
    segments differ but the output is the same on every call.
    """
    per_segment = max(sample_size or settings.DEFAULT_SAMPLE_SIZE, MIN_SAMPLE_SIZE)
    respondents = per_segment * len(segments)

    questions = []
    for i, (title, _, options) in enumerate(SURVEY_QUESTION_BANK):
        segmented = []
        for j, (label, pct) in enumerate(options):
            # Alternate direction per option so shifts don't all stack one way
            direction = 1 if j % 2 == 0 else -1
            values: Dict[str, float] = {}
            for k, segment in enumerate(segments):
                offset = SEGMENT_OFFSETS[k % len(SEGMENT_OFFSETS)]
                values[segment] = _clamp(pct + direction * offset)
            segmented.append(CanonicalOption(label=label, values=values))

        questions.append(
            QuestionResult(
                id=f"q{i + 1}",
                title=title,
                question_text=f"{title}: how do {' and '.join(segments)} compare?",
                respondent_count=respondents,
                options=segmented,
                segments=list(segments),
            )
        )

    return Artifact(
        id=new_artifact_id(),
        title=f"{' vs '.join(segments)}: Comparison",
        methodology_type=MethodologyType.QUANTITATIVE,
        audience=audience_for(audience),
        respondent_count=respondents,
        abstract=f'Comparison of {" and ".join(segments)} on "{query.strip()}".',
        questions=questions,
        created_at=datetime.now(timezone.utc),
    )


def fallback_focus_group(
    audience: str, query: str, participant_count: Optional[int] = None
) -> Artifact:
    """Focus group: 3 themes with 2 quotes each, 12 participants by default."""
    themes = [
        QualitativeTheme(
            id=f"theme-{i + 1}",
            topic=topic,
            sentiment=sentiment,
            summary=summary,
            quotes=[Quote(text=text, attribution=who) for text, who in quotes],
        )
        for i, (topic, sentiment, summary, quotes) in enumerate(FOCUS_GROUP_THEME_BANK)
    ]

    return Artifact(
        id=new_artifact_id(),
        title=f"Focus Group: {_short(query)}",
        methodology_type=MethodologyType.QUALITATIVE,
        audience=audience_for(audience),
        respondent_count=participant_count or settings.DEFAULT_PARTICIPANT_COUNT,
        abstract=(
            f'Focus group insights on "{query.strip()}" synthesized from participant '
            "discussions. Key themes emerged around trust, value, and authenticity."
        ),
        themes=themes,
        created_at=datetime.now(timezone.utc),
    )


def fallback_artifact(
    methodology: Methodology, parameters: ResearchParameters, query: str
) -> Artifact:
    """
    Pick the synthesizer for a methodology.

    Mirrors the executor's dispatch: heatmap and sentiment render as surveys,
    a survey with 2+ segments and the legacy comparison render segmented.
    """
    question = parameters.research_question or query
    segments = parameters.segments or []

    if methodology == Methodology.FOCUS_GROUP:
        return fallback_focus_group(parameters.audience, question)

    if methodology == Methodology.COMPARISON:
        if len(segments) < 2:
            segments = ["Group A", "Group B"]
        return fallback_comparison(parameters.audience, question, segments)

    if methodology == Methodology.SURVEY and len(segments) >= 2:
        return fallback_comparison(
            parameters.audience, question, segments, parameters.sample_size
        )

    return fallback_survey(parameters.audience, question, parameters.sample_size)
