import asyncio
from typing import Any, Dict, List, Optional

import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport

from research_api.main import app
from research_api.api.endpoints.research import get_backend
from research_api.core.config import settings
from research_api.core.research.backend import (
    BackendError,
    MalformedResponse,
    ToolInvocation,
)


# Backend that replays canned answers and records every call
class ScriptedBackend:
    def __init__(
        self,
        choice: Optional[ToolInvocation] = None,
        payloads: Optional[Dict[str, Any]] = None,
        title: str = "Coffee Habits Survey",
    ):
        self.choice = choice
        self.payloads = payloads or {}
        self.title = title
        self.calls: List[Dict[str, Any]] = []

    async def choose_tool(self, system, query, tools):
        self.calls.append(
            {"kind": "choose_tool", "system": system, "tools": tools, "query": query}
        )
        return self.choice

    async def generate(self, prompt, tool, max_tokens):
        self.calls.append({"kind": "generate", "tool": tool, "prompt": prompt})
        if tool["name"] not in self.payloads:
            raise MalformedResponse(f"No payload scripted for {tool['name']}")
        return self.payloads[tool["name"]]

    async def complete_text(self, system, prompt, max_tokens):
        self.calls.append({"kind": "complete_text", "prompt": prompt})
        return self.title


# Backend whose every call fails
class FailingBackend:
    def __init__(self):
        self.calls = 0

    async def choose_tool(self, system, query, tools):
        self.calls += 1
        raise BackendError("backend unreachable")

    async def generate(self, prompt, tool, max_tokens):
        self.calls += 1
        raise BackendError("backend unreachable")

    async def complete_text(self, system, prompt, max_tokens):
        self.calls += 1
        raise BackendError("backend unreachable")


# Backend that never answers in time
class HangingBackend:
    async def choose_tool(self, system, query, tools):
        await asyncio.sleep(30)

    async def generate(self, prompt, tool, max_tokens):
        await asyncio.sleep(30)

    async def complete_text(self, system, prompt, max_tokens):
        await asyncio.sleep(30)


@pytest.fixture
def make_backend():
    return ScriptedBackend


@pytest.fixture
def failing_backend():
    return FailingBackend()


@pytest.fixture
def hanging_backend():
    return HangingBackend()


# Short deadline so timeout tests finish quickly
@pytest.fixture
def short_deadline(monkeypatch):
    monkeypatch.setattr(settings, "BACKEND_DEADLINE_SECONDS", 0.1)
    return 0.1


# Payloads shaped like real tool output
@pytest.fixture
def survey_payload():
    return {
        "title": "Coffee Is a Morning Ritual",
        "abstract": "Most drinkers start the day with coffee. Price matters less than taste.",
        "audience": "Coffee drinkers aged 25-45",
        "sample_size": 800,
        "questions": [
            {
                "title": "Daily consumption",
                "question": "How many cups of coffee do you drink per day?",
                "options": [
                    {"label": "None", "percentage": 8.4},
                    {"label": "1-2 cups", "percentage": 54.1},
                    {"label": "3+ cups", "percentage": "37.5%"},
                ],
            },
            {
                "title": "Preferred format",
                "question": "How do you usually prepare coffee?",
                "options": {"Drip": 41.2, "Espresso": "33.6%", "Instant": 25.2},
            },
            {
                "title": "Purchase drivers",
                "question": "What matters most when buying coffee?",
                "options": [
                    {"label": "Taste", "percentage": 47.3},
                    {"label": "Price", "percentage": 28.9},
                    {"label": "Ethics", "percentage": 23.8},
                ],
            },
        ],
    }


@pytest.fixture
def segmented_payload():
    return {
        "title": "Gen Z vs Millennials: Coffee Compared",
        "abstract": "Gen Z prefers cold drinks. Millennials stick to drip.",
        "sample_size_per_segment": 400,
        "questions": [
            {
                "title": "Cold vs hot",
                "question": "Which do you order most often?",
                "options": [
                    {"label": "Iced", "Gen Z": 61.2, "Millennials": "34.8%"},
                    {"label": "Hot", "Gen Z": 38.8},
                ],
            }
        ],
    }


@pytest.fixture
def focus_group_payload():
    return {
        "title": "Why Mondays Hurt",
        "abstract": "Participants dread the loss of autonomy. Rituals soften it.",
        "audience": "Working professionals",
        "participant_count": 10,
        "themes": [
            {
                "id": "t1",
                "topic": "Lost Autonomy",
                "sentiment": "negative",
                "summary": "The weekend's freedom ends abruptly.",
                "quotes": [
                    {"text": "Sunday night I can feel it coming.", "attribution": "Dana, 31"},
                    {"text": "It's the inbox, honestly.", "attribution": "Raj, 44"},
                ],
            },
            {
                "id": "t2",
                "topic": "Coffee Rituals",
                "sentiment": "Positive",
                "summary": "Small rituals make the start bearable.",
                "quotes": [{"text": "First coffee is sacred.", "attribution": "Mo, 27"}],
            },
            {
                "id": "t3",
                "topic": "Team Check-ins",
                "sentiment": "ambivalent",
                "summary": "Stand-ups help some and annoy others.",
                "quotes": ["Depends who's running it."],
            },
        ],
    }


# Client with the backend dependency swapped for a test double
# Tests put a backend under the "backend" key; None means offline
@pytest.fixture
def api_backend():
    return {"backend": None}


@pytest_asyncio.fixture(scope="function")
async def client(api_backend):
    async def override_get_backend():
        return api_backend["backend"]

    app.dependency_overrides[get_backend] = override_get_backend

    async with AsyncClient(
        transport=ASGITransport(app=app), base_url="http://test"
    ) as ac:
        yield ac

    app.dependency_overrides.clear()
