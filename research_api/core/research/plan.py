# research_api/core/research/plan.py
"""
PLAN MODULE - Turn a methodology selection into a StudyPlan

The plan is what the user sees for confirmation before results arrive:
a short title, the method, what will be set up and how long it takes.
Everything comes from the selection and the catalogue below, nothing is
generated, so the same selection always gives the same plan.
"""

import re
from typing import Dict, List, Optional

from research_api.core.schemas import (
    Methodology,
    MethodologySelection,
    ResearchParameters,
    StudyPlan,
)


# ============================================================================
# METHOD CATALOGUE
# ============================================================================

METHOD_CATALOG: Dict[Methodology, Dict[str, object]] = {
    Methodology.SURVEY: {
        "methodology_id": "survey",
        "methodology_name": "Survey",
        "variant_id": None,
        "variant_name": None,
        "setup_bullets": [
            "3 single-choice questions",
            "500 respondents from the target audience",
            "Percentage breakdown per answer option",
        ],
        "expected_runtime_label": "About 1 minute",
    },
    Methodology.FOCUS_GROUP: {
        "methodology_id": "focus-group",
        "methodology_name": "Focus Group",
        "variant_id": None,
        "variant_name": None,
        "setup_bullets": [
            "12 participants across moderated sessions",
            "3-4 discussion themes",
            "Verbatim quotes for each theme",
        ],
        "expected_runtime_label": "About 2 minutes",
    },
    Methodology.COMPARISON: {
        "methodology_id": "survey",
        "methodology_name": "Survey",
        "variant_id": "comparison",
        "variant_name": "Comparison",
        "setup_bullets": [
            "Matched samples for each segment",
            "3 questions asked of every segment",
            "Side-by-side results per answer option",
        ],
        "expected_runtime_label": "About 2 minutes",
    },
    Methodology.HEATMAP: {
        "methodology_id": "explore-audience",
        "methodology_name": "Explore Audience",
        "variant_id": "heatmap",
        "variant_name": "Heatmap",
        "setup_bullets": [
            "200+ participants from the target audience",
            "Attention and engagement scoring",
            "Results shown as survey breakdowns",
        ],
        "expected_runtime_label": "About 1 minute",
    },
    Methodology.SENTIMENT: {
        "methodology_id": "explore-audience",
        "methodology_name": "Explore Audience",
        "variant_id": "sentiment",
        "variant_name": "Sentiment Analysis",
        "setup_bullets": [
            "Topic and brand sentiment questions",
            "500 respondents from the target audience",
            "Results shown as survey breakdowns",
        ],
        "expected_runtime_label": "About 1 minute",
    },
}


# ============================================================================
# TITLE
# ============================================================================

_LEADING_INTERROGATIVE = re.compile(
    r"^(what|how|why|do|does|are|is|can|could|would|should)\s+", re.IGNORECASE
)
_LEADING_FILLER = re.compile(
    r"^(they|people|users|customers)\s+(think|feel|want|like|prefer|believe)\s+(about\s+)?",
    re.IGNORECASE,
)
TITLE_STOPWORDS = {"the", "and", "for", "with", "about"}


def _capitalize(word: str) -> str:
    return word[:1].upper() + word[1:]


def clean_audience_label(audience: str) -> str:
    """
    "@gen-z-parents" → "Gen Z Parents"
    """
    words = audience.strip().lstrip("@").replace("-", " ").split()
    return " ".join(_capitalize(w) for w in words) or "Audience"


def topic_words(question: str, limit: int = 3) -> List[str]:
    """
    Pull the first few meaningful words out of a research question.

    Example:
        "What do people think about electric cars and charging?"
        → ["Electric", "Cars", "Charging"]
    """
    text = question.replace("?", "").strip()
    text = _LEADING_INTERROGATIVE.sub("", text)
    text = _LEADING_FILLER.sub("", text)

    words = [
        w
        for w in text.split()
        if len(w) > 2 and w.lower() not in TITLE_STOPWORDS
    ]
    return [_capitalize(w) for w in words[:limit]]


def generate_study_title(parameters: ResearchParameters, methodology_name: str) -> str:
    """Audience label plus topic words, or audience plus method name if no topic remains."""
    audience = clean_audience_label(parameters.audience or "Audience")
    words = topic_words(parameters.research_question or "")
    if words:
        return f"{audience} {' '.join(words)}"
    return f"{audience} {methodology_name}"


# ============================================================================
# PLAN
# ============================================================================


def build_study_plan(selection: MethodologySelection) -> StudyPlan:
    """
    Build the confirmation summary for a chosen methodology.

    Raises:
        ValueError: if the selection is a clarification request
    """
    if selection.methodology is None or selection.parameters is None:
        raise ValueError("A clarification request has no study plan")

    entry = METHOD_CATALOG[selection.methodology]
    bullets = list(entry["setup_bullets"])

    segments: Optional[List[str]] = selection.parameters.segments
    if segments and len(segments) >= 2:
        bullets.append(f"Segments: {', '.join(segments)}")

    return StudyPlan(
        title=generate_study_title(selection.parameters, entry["methodology_name"]),
        methodology_id=entry["methodology_id"],
        methodology_name=entry["methodology_name"],
        variant_id=entry["variant_id"],
        variant_name=entry["variant_name"],
        setup_bullets=bullets,
        expected_runtime_label=entry["expected_runtime_label"],
    )
