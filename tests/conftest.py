"""Shared test fixtures for termagent.

Provides in-memory SQLite engine and store fixtures, a scripted model
stream, a fake summary client, and message factories.
"""

from __future__ import annotations

import pytest

from termagent.llm.protocols import TextDelta, ToolUseEnd, ToolUseStart
from termagent.models.messages import Message, Role, ToolCall
from termagent.storage.engine import create_termagent_engine, init_db
from termagent.storage.memory import InMemorySessionStore
from termagent.storage.sqlite import SqliteSessionStore


@pytest.fixture
def engine():
    """In-memory SQLite engine with all tables created."""
    eng = create_termagent_engine(":memory:")
    init_db(eng)
    yield eng
    eng.dispose()


@pytest.fixture
def sqlite_store(engine) -> SqliteSessionStore:
    return SqliteSessionStore(engine)


@pytest.fixture
def memory_store() -> InMemorySessionStore:
    return InMemorySessionStore()


@pytest.fixture
def sample_session_id() -> str:
    return "test-session-001"


# ------------------------------------------------------------------
# Shared test helpers
# ------------------------------------------------------------------


def make_conversation(n: int, chars: int = 40, start: float = 1000.0) -> list[Message]:
    """Alternating user/assistant messages with ``chars`` characters each."""
    messages = []
    for i in range(n):
        role = Role.USER if i % 2 == 0 else Role.ASSISTANT
        body = f"m{i} "
        content = (body * (chars // len(body) + 1))[:chars]
        messages.append(Message(role=role, content=content, sequence_time=start + i))
    return messages


def text_round(text: str) -> list:
    """Scripted round that only streams text (nothing for empty text)."""
    return [TextDelta(text=text)] if text else []


def tool_round(*calls: ToolCall, text: str = "") -> list:
    """Scripted round that streams optional text and then tool calls."""
    events: list = [TextDelta(text=text)] if text else []
    for call in calls:
        events.append(ToolUseStart(call_id=call.id, name=call.name))
    for call in calls:
        events.append(ToolUseEnd(call=call))
    return events


class ScriptedModel:
    """ModelStream that replays one scripted event list per round.

    Exceptions placed in a round's list are raised at that point.
    """

    def __init__(self, rounds: list[list]) -> None:
        self.rounds = list(rounds)
        self.requests = []

    def stream(self, request):
        self.requests.append(request)
        if not self.rounds:
            raise AssertionError("ScriptedModel ran out of rounds")
        for event in self.rounds.pop(0):
            if isinstance(event, Exception):
                raise event
            yield event


class FakeSummaryClient:
    """ModelClient returning a fixed summary and recording every call."""

    def __init__(
        self,
        summary: str = "Earlier the user and assistant discussed files.",
        *,
        error: Exception | None = None,
        total_tokens: int = 42,
    ) -> None:
        self.summary = summary
        self.error = error
        self.total_tokens = total_tokens
        self.calls: list[dict] = []

    def chat(self, messages, *, model=None, temperature=None, max_tokens=None, **kwargs):
        self.calls.append(
            {
                "messages": messages,
                "model": model,
                "temperature": temperature,
                "max_tokens": max_tokens,
            }
        )
        if self.error is not None:
            raise self.error
        return {
            "choices": [{"message": {"role": "assistant", "content": self.summary}}],
            "usage": {"total_tokens": self.total_tokens},
        }

    def close(self) -> None:
        pass
