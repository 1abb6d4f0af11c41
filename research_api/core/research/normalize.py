# research_api/core/research/normalize.py
"""
NORMALIZE MODULE - Reconcile messy backend output into canonical options

Purpose:
    1. Parse percentages that arrive as numbers, "37.2%" strings or garbage
    2. Turn both option shapes (list of {label, percentage} or a plain
       label -> value map) into CanonicalOption records
    3. Give every option of a segmented question the same segment keys
    4. Repair array fields that the backend sent as a JSON string

Data Flow:
    tool payload → coerce_json_array() → normalize_options() / normalize_comparison_options()
                                                   ↓
                                          List[CanonicalOption]

Nothing in here raises: bad values become 0.0, bad collections become [].
"""

import json
import logging
import math
import re
from typing import Any, Dict, List, Optional

from research_api.core.schemas import CanonicalOption, DEFAULT_SEGMENT_KEY

logger = logging.getLogger(__name__)


# ============================================================================
# STEP 1: PARSE PERCENTAGES
# ============================================================================

# Leading number of a string, the way a lenient float parser reads it
_LEADING_NUMBER = re.compile(r"^[+-]?(?:\d+(?:\.\d*)?|\.\d+)")


def parse_percentage(value: Any) -> float:
    """
    Parse a percentage value from whatever the backend produced.

    Handles:
        - 37.2 (numbers pass through)
        - "37.2%" / " 45 % " (trailing % and whitespace stripped)
        - "45.5 percent" (leading number is used)
        - None, "", "n/a", lists, dicts (→ 0.0)

    Returns:
        A finite float >= 0. NaN, infinities and negatives map to 0.0.

    Examples:
        parse_percentage("42.8%") → 42.8
        parse_percentage(17) → 17.0
        parse_percentage("about half") → 0.0
    """
    # bool is an int subclass but never a percentage
    if isinstance(value, bool):
        return 0.0

    if isinstance(value, (int, float)):
        number = float(value)
    elif isinstance(value, str):
        cleaned = value.strip().rstrip("%").strip()
        match = _LEADING_NUMBER.match(cleaned)
        if not match:
            return 0.0
        try:
            number = float(match.group(0))
        except ValueError:
            return 0.0
    else:
        return 0.0

    if math.isnan(number) or math.isinf(number) or number < 0:
        return 0.0
    return number


def coerce_count(value: Any, default: int) -> int:
    """
    Read a respondent/participant count, falling back to `default` when the
    value is missing, non-numeric or not positive.
    """
    if isinstance(value, bool):
        return default
    if isinstance(value, str):
        value = value.strip().replace(",", "")
        if not value.isdigit():
            return default
        value = int(value)
    if not isinstance(value, (int, float)) or not math.isfinite(value):
        return default
    # Truncate before the check so 0.5 is treated as no count
    count = int(value)
    return count if count > 0 else default


# ============================================================================
# STEP 2: REPAIR JSON-STRING ARRAYS
# ============================================================================

# `"percentage": 42.5%` is not JSON; quote the value so it parses
_BARE_PERCENT = re.compile(r":\s*(\d+\.?\d*)%")


def sanitize_percent_tokens(text: str) -> str:
    """
    Quote bare NN% tokens so a JSON string with them can be parsed.

    Example:
        '[{"label": "Yes", "percentage": 42.5%}]'
        → '[{"label": "Yes", "percentage": "42.5%"}]'
    """
    return _BARE_PERCENT.sub(r': "\1%"', text)


def coerce_json_array(value: Any, field: str = "field") -> List[Any]:
    """
    Return `value` as a list.

    The backend sometimes encodes array fields (questions, options, themes)
    as a JSON string instead of a native array. Such strings are sanitized
    and parsed; anything that still isn't a list becomes [].

    Args:
        value: Raw field from the tool payload
        field: Field name, used in log messages only

    Returns:
        The list, or [] when nothing usable is there
    """
    if isinstance(value, list):
        return value

    if isinstance(value, str):
        try:
            parsed = json.loads(sanitize_percent_tokens(value))
        except (ValueError, TypeError) as e:
            logger.warning(f"Could not parse {field} from JSON string: {e}")
            return []
        if isinstance(parsed, list):
            logger.info(f"Parsed {field} from JSON string (sanitized)")
            return parsed
        logger.warning(f"{field} JSON string did not hold an array")
        return []

    if value is not None:
        logger.warning(f"{field} has unexpected type {type(value).__name__}")
    return []


# ============================================================================
# STEP 3: NORMALIZE OPTIONS
# ============================================================================


def _option_fields(item: Any) -> Optional[Dict[str, Any]]:
    """Plain dict view of one raw option, or None when it has no label."""
    if isinstance(item, CanonicalOption):
        return {"label": item.label, "values": dict(item.values)}
    if isinstance(item, dict) and "label" in item:
        return item
    return None


def normalize_options(raw: Any) -> List[CanonicalOption]:
    """
    Normalize single-audience options into CanonicalOption records.

    Handles:
        - [{"label": "Yes", "percentage": 42.5}, ...]
        - [{"label": "Yes", "percentage": "42.5%"}, ...]
        - {"Gen Z": 45, "Millennials": "55%"} (label -> value map)
        - a JSON string holding the list form
        - CanonicalOption records (so normalizing twice changes nothing)

    Returns:
        List of options, each with values {DEFAULT_SEGMENT_KEY: percentage}

    Example:
        normalize_options({"Yes": "60%", "No": 40})
        → [CanonicalOption(label="Yes", values={"overall": 60.0}),
           CanonicalOption(label="No", values={"overall": 40.0})]
    """
    if isinstance(raw, str):
        raw = coerce_json_array(raw, "options")

    options: List[CanonicalOption] = []

    if isinstance(raw, list):
        for item in raw:
            fields = _option_fields(item)
            if fields is None:
                continue
            if isinstance(fields.get("values"), dict):
                value = fields["values"].get(DEFAULT_SEGMENT_KEY)
            else:
                value = fields.get("percentage")
            options.append(
                CanonicalOption(
                    label=str(fields.get("label") or ""),
                    values={DEFAULT_SEGMENT_KEY: parse_percentage(value)},
                )
            )
        return options

    if isinstance(raw, dict):
        for label, value in raw.items():
            options.append(
                CanonicalOption(
                    label=str(label),
                    values={DEFAULT_SEGMENT_KEY: parse_percentage(value)},
                )
            )

    return options


# Keys a segmented option already uses for itself
RESERVED_OPTION_KEYS = {"label", "values", "percentage"}


def safe_segment_name(name: str) -> str:
    """
    Rename a segment whose name would collide with an option's own keys.

    Example:
        safe_segment_name("label") → "label segment"
    """
    if name.lower() in RESERVED_OPTION_KEYS:
        return f"{name} segment"
    return name


def normalize_comparison_options(
    raw: Any, segment_names: List[str]
) -> List[CanonicalOption]:
    """
    Normalize segmented options so every option carries exactly the
    requested segment keys.

    Handles:
        - [{"label": "Yes", "Gen Z": 45.2, "Millennials": "38%"}, ...]
        - [{"label": "Yes", "values": {"Gen Z": 45.2}}, ...]
        - {"Yes": {"Gen Z": 45.2, "Millennials": 38}} (label -> segment map)

    A segment missing from an option is 0.0, extra keys are dropped.

    Args:
        raw: Options from the tool payload
        segment_names: Segments every option must carry

    Returns:
        List of options keyed by segment name
    """
    if isinstance(raw, str):
        raw = coerce_json_array(raw, "options")

    if isinstance(raw, dict):
        raw = [
            {"label": label, "values": value}
            for label, value in raw.items()
            if isinstance(value, dict)
        ]

    if not isinstance(raw, list):
        return []

    options: List[CanonicalOption] = []
    for item in raw:
        fields = _option_fields(item)
        if fields is None:
            continue
        source = fields["values"] if isinstance(fields.get("values"), dict) else fields
        options.append(
            CanonicalOption(
                label=str(fields.get("label") or ""),
                values={
                    segment: parse_percentage(source.get(segment))
                    for segment in segment_names
                },
            )
        )
    return options
