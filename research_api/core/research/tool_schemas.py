# research_api/core/research/tool_schemas.py
"""
TOOL SCHEMAS - Structures the backend is asked to fill in

Two groups:
    1. Methodology tools offered to the classifier (one is picked per turn)
    2. Result schemas forced on generation calls (survey, segmented survey,
       focus group)

Everything here is plain data or a pure function of its arguments.
"""

import copy
from typing import Any, Dict, List

from research_api.core.schemas import Methodology


# ============================================================================
# CLASSIFIER TOOLS
# ============================================================================

CLARIFICATION_TOOL_NAME = "ask_clarification"

TOOL_TO_METHODOLOGY: Dict[str, Methodology] = {
    "run_survey": Methodology.SURVEY,
    "run_focus_group": Methodology.FOCUS_GROUP,
    "run_comparison": Methodology.COMPARISON,
    "run_heatmap": Methodology.HEATMAP,
    "run_sentiment_analysis": Methodology.SENTIMENT,
}

METHODOLOGY_TO_TOOL: Dict[Methodology, str] = {
    methodology: name for name, methodology in TOOL_TO_METHODOLOGY.items()
}

SURVEY_TOOL = {
    "name": "run_survey",
    "description": (
        "Execute a quantitative survey to measure opinions, preferences, or "
        "behaviors at scale. Use when the user wants to MEASURE something - "
        "percentages, rankings, preferences, or quantify attitudes. Add "
        "segments to compare groups side-by-side in one result."
    ),
    "input_schema": {
        "type": "object",
        "properties": {
            "audience": {
                "type": "string",
                "description": 'Target audience for the survey (e.g., "Gen Z", "UK Adults 25-45")',
            },
            "research_question": {
                "type": "string",
                "description": "Main research question to answer",
            },
            "segments": {
                "type": "array",
                "items": {"type": "string"},
                "description": 'Two or more segments to compare (e.g., ["Gen Z", "Millennials"])',
            },
            "sample_size": {
                "type": "number",
                "description": "Number of respondents (default: 500)",
            },
        },
        "required": ["audience", "research_question"],
    },
}

FOCUS_GROUP_TOOL = {
    "name": "run_focus_group",
    "description": (
        "Conduct qualitative focus groups to understand motivations, feelings, "
        'and deeper insights. Use when the user wants to UNDERSTAND the "why" '
        "behind behaviors or explore feelings."
    ),
    "input_schema": {
        "type": "object",
        "properties": {
            "audience": {
                "type": "string",
                "description": 'Target audience (e.g., "Millennial Parents", "Early Adopters")',
            },
            "research_question": {
                "type": "string",
                "description": "Main research question to explore",
            },
            "participant_count": {
                "type": "number",
                "description": "Number of participants across sessions (default: 12)",
            },
        },
        "required": ["audience", "research_question"],
    },
}

COMPARISON_TOOL = {
    "name": "run_comparison",
    "description": (
        "Legacy side-by-side segment comparison. Prefer run_survey with "
        "segments; use this only when explicitly asked for a comparison study."
    ),
    "input_schema": {
        "type": "object",
        "properties": {
            "research_question": {
                "type": "string",
                "description": "What to compare between the segments",
            },
            "segments": {
                "type": "array",
                "items": {"type": "string"},
                "description": "Two or more audience segments to compare",
            },
        },
        "required": ["research_question", "segments"],
    },
}

HEATMAP_TOOL = {
    "name": "run_heatmap",
    "description": (
        "Show attention, engagement, or interest patterns across categories. "
        "Use when the user wants to SEE where attention goes."
    ),
    "input_schema": {
        "type": "object",
        "properties": {
            "audience": {"type": "string", "description": "Target audience"},
            "research_question": {
                "type": "string",
                "description": "What engagement/attention pattern to analyze",
            },
            "heatmap_type": {
                "type": "string",
                "enum": ["attention", "engagement", "interest", "time_spent"],
            },
        },
        "required": ["audience", "research_question"],
    },
}

SENTIMENT_TOOL = {
    "name": "run_sentiment_analysis",
    "description": (
        "Analyze sentiment across topics, brands, or categories. Use for brand "
        "perception and positive vs negative feelings about specific topics."
    ),
    "input_schema": {
        "type": "object",
        "properties": {
            "audience": {"type": "string", "description": "Target audience"},
            "research_question": {
                "type": "string",
                "description": "What sentiment to analyze",
            },
            "topics": {
                "type": "array",
                "items": {"type": "string"},
                "description": "Topics or brands to analyze sentiment for",
            },
        },
        "required": ["audience", "research_question"],
    },
}

CLARIFICATION_TOOL = {
    "name": CLARIFICATION_TOOL_NAME,
    "description": (
        "LAST RESORT. Ask the user for more information only when the query "
        "is not a research question at all (a greeting, gibberish, a lone "
        "symbol)."
    ),
    "input_schema": {
        "type": "object",
        "properties": {
            "missing_info": {
                "type": "string",
                "description": "What information is needed from the user",
            },
            "reason": {
                "type": "string",
                "description": "Brief explanation of why this information is needed",
            },
            "suggestions": {
                "type": "array",
                "items": {"type": "string"},
                "description": "Example queries the user could send instead (2-4 options)",
            },
        },
        "required": ["missing_info", "suggestions"],
    },
}

RESEARCH_TOOLS: List[Dict[str, Any]] = [
    SURVEY_TOOL,
    FOCUS_GROUP_TOOL,
    HEATMAP_TOOL,
    SENTIMENT_TOOL,
    COMPARISON_TOOL,
    CLARIFICATION_TOOL,
]

FOLLOW_UP_PROPERTY = {
    "type": "string",
    "enum": ["new", "update"],
    "description": (
        '"update" to revise the research that is currently open, "new" to '
        "start a separate piece of research (default)"
    ),
}


def classifier_tools(with_follow_up: bool = False) -> List[Dict[str, Any]]:
    """
    Tool list for the classifier call.

    With a prior artifact in play, every methodology tool also gets a
    `follow_up` property so the backend can say whether it is revising
    the open artifact or starting a new one.
    """
    tools = copy.deepcopy(RESEARCH_TOOLS)
    if with_follow_up:
        for tool in tools:
            if tool["name"] in TOOL_TO_METHODOLOGY:
                tool["input_schema"]["properties"]["follow_up"] = dict(FOLLOW_UP_PROPERTY)
    return tools


# ============================================================================
# RESULT SCHEMAS
# ============================================================================

SURVEY_RESULT_SCHEMA = {
    "type": "object",
    "properties": {
        "title": {"type": "string", "description": "Catchy, direct title for the survey results"},
        "abstract": {"type": "string", "description": "Executive summary of findings (2-3 sentences)"},
        "audience": {"type": "string", "description": "Target audience name"},
        "sample_size": {"type": "number", "description": "Number of respondents"},
        "questions": {
            "type": "array",
            "items": {
                "type": "object",
                "properties": {
                    "title": {
                        "type": "string",
                        "description": 'Concise 3-7 word insight header like "Primary purchase drivers"',
                    },
                    "question": {
                        "type": "string",
                        "description": "The actual survey question asked",
                    },
                    "options": {
                        "type": "array",
                        "items": {
                            "type": "object",
                            "properties": {
                                "label": {"type": "string"},
                                "percentage": {"type": "number"},
                            },
                            "required": ["label", "percentage"],
                        },
                    },
                },
                "required": ["title", "question", "options"],
            },
        },
    },
    "required": ["title", "abstract", "audience", "sample_size", "questions"],
}

FOCUS_GROUP_RESULT_SCHEMA = {
    "type": "object",
    "properties": {
        "title": {"type": "string", "description": "Catchy title for the focus group insights"},
        "abstract": {"type": "string", "description": "Executive summary of key themes (2-3 sentences)"},
        "audience": {"type": "string", "description": "Target audience name"},
        "participant_count": {"type": "number", "description": "Number of participants"},
        "themes": {
            "type": "array",
            "items": {
                "type": "object",
                "properties": {
                    "id": {"type": "string"},
                    "topic": {
                        "type": "string",
                        "description": 'Standalone 2-4 word section header like "The Trust Factor"',
                    },
                    "sentiment": {
                        "type": "string",
                        "enum": ["positive", "negative", "neutral", "mixed"],
                    },
                    "summary": {
                        "type": "string",
                        "description": "One compelling sentence capturing the insight",
                    },
                    "quotes": {
                        "type": "array",
                        "items": {
                            "type": "object",
                            "properties": {
                                "text": {"type": "string", "description": "Realistic, conversational quote"},
                                "attribution": {"type": "string", "description": "Name, Age format"},
                            },
                            "required": ["text", "attribution"],
                        },
                    },
                },
                "required": ["id", "topic", "sentiment", "summary", "quotes"],
            },
        },
    },
    "required": ["title", "abstract", "audience", "participant_count", "themes"],
}


def build_segment_survey_schema(segments: List[str]) -> Dict[str, Any]:
    """
    Result schema for a survey split by segment.

    Each option gets one numeric property per segment name, all required.

    Args:
        segments: Segment names, e.g. ["Gen Z", "Millennials"]

    Returns:
        JSON schema dict (a fresh object on every call)

    Example:
        option properties for ["Gen Z", "Millennials"]:
            {"label": {...}, "Gen Z": {"type": "number"}, "Millennials": {"type": "number"}}
    """
    option_properties: Dict[str, Any] = {
        "label": {"type": "string", "description": "The answer option text"}
    }
    for segment in segments:
        option_properties[segment] = {
            "type": "number",
            "description": f"Percentage for {segment} segment (0-100)",
        }

    return {
        "type": "object",
        "properties": {
            "title": {
                "type": "string",
                "description": (
                    "Catchy title highlighting the comparison "
                    f'(e.g., "{" vs ".join(segments)}: Topic Compared")'
                ),
            },
            "abstract": {
                "type": "string",
                "description": "Executive summary highlighting key differences between segments (2-3 sentences)",
            },
            "sample_size_per_segment": {
                "type": "number",
                "description": "Number of respondents per segment (default 500)",
            },
            "questions": {
                "type": "array",
                "items": {
                    "type": "object",
                    "properties": {
                        "title": {
                            "type": "string",
                            "description": 'Concise 3-7 word insight header like "Primary purchase drivers"',
                        },
                        "question": {"type": "string", "description": "The actual survey question asked"},
                        "options": {
                            "type": "array",
                            "items": {
                                "type": "object",
                                "properties": option_properties,
                                "required": ["label", *segments],
                            },
                            "description": "Answer options, each with percentages for all segments",
                        },
                    },
                    "required": ["title", "question", "options"],
                },
            },
        },
        "required": ["title", "abstract", "sample_size_per_segment", "questions"],
    }


def generation_tool(name: str, description: str, schema: Dict[str, Any]) -> Dict[str, Any]:
    """Wrap a result schema as a single tool the generation call is forced to use."""
    return {"name": name, "description": description, "input_schema": schema}
