# research_api/core/research/backend.py
"""
BACKEND MODULE - Talk to the generative backend

Purpose:
    1. One adapter class around the Anthropic async client
    2. One error hierarchy for everything that can go wrong out there
    3. One deadline wrapper used by every outbound call

Data Flow:
    classifier / executor / titles → call_with_deadline(backend.method(...))
                                                ↓
                                 ToolInvocation | dict | str  or  BackendError

The adapter never falls back on its own; callers decide what a failure means.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Dict, List, Optional, Protocol, TypeVar

import anthropic
import httpx

from research_api.core.config import Settings

logger = logging.getLogger(__name__)

T = TypeVar("T")


# ============================================================================
# ERRORS
# ============================================================================


class BackendError(Exception):
    """Any failure talking to the generative backend."""


class BackendUnavailable(BackendError):
    """No client configured (missing API key)."""


class BackendTimeout(BackendError):
    """The call did not finish before its deadline."""


class MalformedResponse(BackendError):
    """The reply had no usable tool invocation or a wrong-typed payload."""


# ============================================================================
# TYPES
# ============================================================================


@dataclass(frozen=True)
class ToolInvocation:
    """The first tool the backend chose, with its arguments."""

    name: str
    input: Dict[str, Any] = field(default_factory=dict)


class ResearchBackend(Protocol):
    """What the pipeline needs from a backend. Tests supply fakes."""

    async def choose_tool(
        self, system: str, query: str, tools: List[Dict[str, Any]]
    ) -> Optional[ToolInvocation]: ...

    async def generate(
        self, prompt: str, tool: Dict[str, Any], max_tokens: int
    ) -> Dict[str, Any]: ...

    async def complete_text(self, system: str, prompt: str, max_tokens: int) -> str: ...


# ============================================================================
# DEADLINE
# ============================================================================


async def call_with_deadline(call: Awaitable[T], seconds: float, label: str) -> T:
    """
    Await `call`, cancelling it if it runs past `seconds`.

    Args:
        call: The backend coroutine
        seconds: Deadline for this one call
        label: Name used in the timeout message

    Raises:
        BackendTimeout: when the deadline wins the race, or when no time
            was left to start the call
    """
    if seconds <= 0:
        if asyncio.iscoroutine(call):
            call.close()
        raise BackendTimeout(f"{label} skipped: turn budget already spent")
    try:
        return await asyncio.wait_for(call, timeout=seconds)
    except asyncio.TimeoutError as e:
        raise BackendTimeout(f"{label} exceeded {seconds:.1f}s deadline") from e


class TurnBudget:
    """
    One time budget shared by every backend call of a research turn.

    Example:
        budget = TurnBudget(8.0)
        await call_with_deadline(backend.choose_tool(...), budget.remaining(), "classification")
        await call_with_deadline(backend.generate(...), budget.remaining(), "survey")
    """

    def __init__(self, seconds: float):
        self.seconds = seconds
        self.loop = asyncio.get_running_loop()
        self.started = self.loop.time()

    def remaining(self) -> float:
        return max(0.0, self.seconds - (self.loop.time() - self.started))


# ============================================================================
# ANTHROPIC ADAPTER
# ============================================================================


class AnthropicBackend:
    """
    Backend built on `anthropic.AsyncAnthropic` tool use.

    Classification offers the full tool list and takes whatever the model
    picks; generation forces a single tool so the reply follows its schema.
    Retries are disabled: a failed call goes straight to the caller's
    fallback.
    """

    def __init__(
        self,
        api_key: str,
        classifier_model: str,
        generation_model: str,
        title_model: str,
        classifier_max_tokens: int = 1000,
        request_timeout: float = 30.0,
    ):
        self.client = anthropic.AsyncAnthropic(
            api_key=api_key,
            timeout=httpx.Timeout(request_timeout, connect=5.0),
            max_retries=0,
        )
        self.classifier_model = classifier_model
        self.generation_model = generation_model
        self.title_model = title_model
        self.classifier_max_tokens = classifier_max_tokens

    @classmethod
    def from_settings(cls, config: Settings) -> Optional["AnthropicBackend"]:
        """Build from settings, or None when no API key is configured."""
        if not config.ANTHROPIC_API_KEY:
            logger.warning("ANTHROPIC_API_KEY is not set; research runs offline")
            return None
        return cls(
            api_key=config.ANTHROPIC_API_KEY,
            classifier_model=config.CLASSIFIER_MODEL,
            generation_model=config.GENERATION_MODEL,
            title_model=config.TITLE_MODEL,
            classifier_max_tokens=config.CLASSIFIER_MAX_TOKENS,
            # The SDK timeout only backs up the per-call deadline
            request_timeout=max(config.BACKEND_DEADLINE_SECONDS * 2, 10.0),
        )

    async def _create(self, **kwargs) -> Any:
        try:
            return await self.client.messages.create(**kwargs)
        except anthropic.APITimeoutError as e:
            raise BackendTimeout(f"Backend request timed out: {e}") from e
        except anthropic.APIError as e:
            raise BackendError(f"Backend request failed: {e}") from e

    async def choose_tool(
        self, system: str, query: str, tools: List[Dict[str, Any]]
    ) -> Optional[ToolInvocation]:
        """First tool_use block of a free-choice call, or None if the model only wrote text."""
        response = await self._create(
            model=self.classifier_model,
            max_tokens=self.classifier_max_tokens,
            system=system,
            messages=[{"role": "user", "content": query}],
            tools=tools,
        )
        logger.info(f"Tool selection response received, stop_reason: {response.stop_reason}")

        for block in response.content:
            if block.type == "tool_use":
                payload = block.input if isinstance(block.input, dict) else {}
                return ToolInvocation(name=block.name, input=dict(payload))
        return None

    async def generate(
        self, prompt: str, tool: Dict[str, Any], max_tokens: int
    ) -> Dict[str, Any]:
        """Run a call forced onto `tool` and return the tool's input payload."""
        response = await self._create(
            model=self.generation_model,
            max_tokens=max_tokens,
            messages=[{"role": "user", "content": prompt}],
            tools=[tool],
            tool_choice={"type": "tool", "name": tool["name"]},
        )

        for block in response.content:
            if block.type == "tool_use":
                if not isinstance(block.input, dict):
                    raise MalformedResponse(f"{tool['name']} payload is not an object")
                return dict(block.input)
        raise MalformedResponse(f"No tool_use block in {tool['name']} response")

    async def complete_text(self, system: str, prompt: str, max_tokens: int) -> str:
        response = await self._create(
            model=self.title_model,
            max_tokens=max_tokens,
            system=system,
            messages=[{"role": "user", "content": prompt}],
        )
        for block in response.content:
            if block.type == "text":
                return block.text
        raise MalformedResponse("No text block in completion response")

    async def close(self) -> None:
        await self.client.close()
