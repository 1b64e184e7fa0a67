"""Conversation message models.

Provides Role, ToolCall, ToolResult, and Message -- the canonical,
provider-agnostic representation of a conversation history entry --
plus serialization to storage dicts and to the OpenAI wire format.
"""

from __future__ import annotations

import enum
import json as _json
import time
from dataclasses import dataclass, field, replace
from typing import Any


class Role(str, enum.Enum):
    """Author of a message."""

    USER = "user"
    ASSISTANT = "assistant"
    SYSTEM = "system"
    TOOL = "tool"


@dataclass(frozen=True)
class ToolCall:
    """A tool invocation requested by the model.

    Owned by the round that produced it until tool execution consumes it.
    ``input`` is always a parsed dict; OpenAI's JSON string is parsed at
    ingestion time.
    """

    id: str
    name: str
    input: dict = field(default_factory=dict)

    @classmethod
    def from_openai(cls, tc: dict) -> ToolCall:
        """Parse from OpenAI/compatible format."""
        raw_args = tc.get("function", {}).get("arguments", "{}")
        try:
            arguments = _json.loads(raw_args) if isinstance(raw_args, str) else raw_args
        except (_json.JSONDecodeError, TypeError):
            arguments = {"_raw": raw_args}
        if not isinstance(arguments, dict):
            arguments = {"_raw": arguments}
        return cls(id=tc["id"], name=tc["function"]["name"], input=arguments)

    @classmethod
    def from_dict(cls, d: dict) -> ToolCall:
        return cls(id=d["id"], name=d["name"], input=dict(d.get("input") or {}))

    def to_dict(self) -> dict:
        return {"id": self.id, "name": self.name, "input": self.input}

    def to_openai(self) -> dict:
        """Serialize to OpenAI wire format."""
        return {
            "id": self.id,
            "type": "function",
            "function": {
                "name": self.name,
                "arguments": _json.dumps(self.input),
            },
        }


@dataclass(frozen=True)
class ToolResult:
    """Outcome of executing one ToolCall.

    Attributes:
        tool_use_id: Id of the ToolCall this result answers.
        name: Tool name (may be empty when the executor did not report it).
        content: Text returned to the model.
        is_error: True for failures, unknown tools and gate rejections.
        duration: Wall-clock execution time in milliseconds.
        is_task_complete: Set by the ``task_complete`` tool; ends the loop.
    """

    tool_use_id: str
    name: str = ""
    content: str = ""
    is_error: bool = False
    duration: float = 0.0
    is_task_complete: bool = False

    @classmethod
    def from_dict(cls, d: dict) -> ToolResult:
        return cls(
            tool_use_id=d["tool_use_id"],
            name=d.get("name", ""),
            content=d.get("content", ""),
            is_error=bool(d.get("is_error", False)),
            duration=float(d.get("duration", 0.0)),
            is_task_complete=bool(d.get("is_task_complete", False)),
        )

    def to_dict(self) -> dict:
        return {
            "tool_use_id": self.tool_use_id,
            "name": self.name,
            "content": self.content,
            "is_error": self.is_error,
            "duration": self.duration,
            "is_task_complete": self.is_task_complete,
        }


@dataclass(frozen=True)
class Message:
    """A single entry in a session's stored history.

    Compaction tags:

    - ``is_summary`` / ``condense_id``: this message is a summary created
      by compaction.
    - ``condense_parent``: this original was subsumed by the summary whose
      ``condense_id`` equals this value. It must never be sent to the model
      again; only that summary may represent it.
    - ``is_truncation_marker`` / ``truncation_id`` / ``truncation_parent``:
      the same scheme for truncation.

    Frozen: pipeline stages produce tagged copies with :meth:`evolve`
    instead of mutating stored messages.
    """

    role: Role
    content: str = ""
    sequence_time: float = field(default_factory=time.time)
    tool_calls: tuple[ToolCall, ...] = ()
    tool_results: tuple[ToolResult, ...] = ()
    is_summary: bool = False
    condense_id: str | None = None
    condense_parent: str | None = None
    is_truncation_marker: bool = False
    truncation_id: str | None = None
    truncation_parent: str | None = None
    summary_meta: dict | None = None

    def __post_init__(self) -> None:
        if not isinstance(self.role, Role):
            object.__setattr__(self, "role", Role(self.role))
        if not isinstance(self.tool_calls, tuple):
            object.__setattr__(self, "tool_calls", tuple(self.tool_calls))
        if not isinstance(self.tool_results, tuple):
            object.__setattr__(self, "tool_results", tuple(self.tool_results))

    # ------------------------------------------------------------------
    # Constructors
    # ------------------------------------------------------------------

    @classmethod
    def user(cls, content: str) -> Message:
        return cls(role=Role.USER, content=content)

    @classmethod
    def system(cls, content: str) -> Message:
        return cls(role=Role.SYSTEM, content=content)

    @classmethod
    def assistant(cls, content: str, tool_calls: list[ToolCall] | tuple[ToolCall, ...] = ()) -> Message:
        return cls(role=Role.ASSISTANT, content=content, tool_calls=tuple(tool_calls))

    # ------------------------------------------------------------------
    # Tag helpers
    # ------------------------------------------------------------------

    @property
    def is_subsumed(self) -> bool:
        """True if a later summary or truncation replaced this message."""
        return self.condense_parent is not None or self.truncation_parent is not None

    @property
    def is_marker(self) -> bool:
        """True for summaries and truncation markers."""
        return self.is_summary or self.is_truncation_marker

    def evolve(self, **changes: Any) -> Message:
        """Return a copy with ``changes`` applied."""
        return replace(self, **changes)

    # ------------------------------------------------------------------
    # Serialization
    # ------------------------------------------------------------------

    def to_dict(self) -> dict:
        """Serialize for storage. Unset optional tags are omitted."""
        d: dict[str, Any] = {
            "role": self.role.value,
            "content": self.content,
            "sequence_time": self.sequence_time,
        }
        if self.tool_calls:
            d["tool_calls"] = [tc.to_dict() for tc in self.tool_calls]
        if self.tool_results:
            d["tool_results"] = [tr.to_dict() for tr in self.tool_results]
        for key in (
            "condense_id",
            "condense_parent",
            "truncation_id",
            "truncation_parent",
            "summary_meta",
        ):
            value = getattr(self, key)
            if value is not None:
                d[key] = value
        if self.is_summary:
            d["is_summary"] = True
        if self.is_truncation_marker:
            d["is_truncation_marker"] = True
        return d

    @classmethod
    def from_dict(cls, d: dict) -> Message:
        return cls(
            role=Role(d["role"]),
            content=d.get("content") or "",
            sequence_time=float(d.get("sequence_time", 0.0)),
            tool_calls=tuple(ToolCall.from_dict(tc) for tc in d.get("tool_calls", [])),
            tool_results=tuple(ToolResult.from_dict(tr) for tr in d.get("tool_results", [])),
            is_summary=bool(d.get("is_summary", False)),
            condense_id=d.get("condense_id"),
            condense_parent=d.get("condense_parent"),
            is_truncation_marker=bool(d.get("is_truncation_marker", False)),
            truncation_id=d.get("truncation_id"),
            truncation_parent=d.get("truncation_parent"),
            summary_meta=d.get("summary_meta"),
        )

    def to_openai(self) -> list[dict]:
        """Convert to OpenAI chat-completions wire messages.

        A tool-result message expands to one ``tool`` wire message per
        result so that every ``tool_call_id`` of the preceding assistant
        turn is answered. A tool message without structured results (e.g.
        loaded from an older store) degrades to a user message.
        """
        if self.role == Role.TOOL:
            if not self.tool_results:
                return [{"role": "user", "content": self.content}]
            return [
                {
                    "role": "tool",
                    "tool_call_id": tr.tool_use_id,
                    "content": tr.content,
                }
                for tr in self.tool_results
            ]
        wire: dict[str, Any] = {"role": self.role.value, "content": self.content}
        if self.role == Role.ASSISTANT and self.tool_calls:
            wire["tool_calls"] = [tc.to_openai() for tc in self.tool_calls]
        return [wire]


def to_openai_messages(messages: list[Message]) -> list[dict]:
    """Flatten a message list into OpenAI wire dicts."""
    wire: list[dict] = []
    for message in messages:
        wire.extend(message.to_openai())
    return wire
