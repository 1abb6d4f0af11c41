"""Short conversation titles for research queries."""

import logging
import re
from typing import Optional

from research_api.core.config import settings
from research_api.core.research.backend import ResearchBackend, call_with_deadline

logger = logging.getLogger(__name__)

TITLE_SYSTEM_PROMPT = """You are a title generator. Given a research query, output ONLY a 3-5 word title.
Rules:
- Output ONLY the title text, nothing else
- No quotes, punctuation, or explanations
- If the query is unclear, still generate a descriptive title based on key words
- Never apologize or ask questions
- Never start with the word I"""

MAX_TITLE_LENGTH = 60

# Replies that are the model talking to the user, not a title
_REFUSAL_PATTERNS = [
    re.compile(p, re.IGNORECASE)
    for p in (
        r"^I('m| am) sorry",
        r"^I cannot",
        r"^I can't",
        r"^I don't",
        r"^I didn't",
        r"^Unfortunately",
        r"^Could you",
        r"^Please ",
        r"^I need more",
    )
]


def looks_like_refusal(text: str) -> bool:
    stripped = text.strip()
    return any(p.search(stripped) for p in _REFUSAL_PATTERNS)


def simple_title(query: str) -> str:
    """
    Local title: the first five words with @mentions and /commands removed.

    Example:
        "@gen-z what do they think about vinyl records today" → "what do they think about..."
    """
    cleaned = re.sub(r"@[\w-]+", "", query)
    cleaned = re.sub(r"/[\w-]+", "", cleaned).strip()
    words = cleaned.split()
    if not words:
        return "Research Query"
    title = " ".join(words[:5])
    return f"{title}..." if len(words) > 5 else title


async def generate_conversation_title(
    query: str, backend: Optional[ResearchBackend]
) -> str:
    """Ask the backend for a 3-5 word title; any problem gives simple_title()."""
    if not query or len(query.strip()) < 3 or backend is None:
        return simple_title(query or "")

    try:
        title = await call_with_deadline(
            backend.complete_text(
                TITLE_SYSTEM_PROMPT,
                f"Generate title for: {query}",
                settings.TITLE_MAX_TOKENS,
            ),
            settings.BACKEND_DEADLINE_SECONDS,
            "title",
        )
    except Exception as e:
        logger.error(f"Title generation failed: {e}")
        return simple_title(query)

    title = title.strip()
    if not title or looks_like_refusal(title) or len(title) > MAX_TITLE_LENGTH:
        logger.info("Generated title looks like an error, using local title")
        return simple_title(query)
    return title
