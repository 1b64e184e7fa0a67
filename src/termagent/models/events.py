"""Events emitted by the agent loop to its caller.

Each variant is a frozen dataclass with a ``type`` discriminator, mirroring
the wire names: text_delta, tool_use_start, tool_use_end, tool_executing,
tool_executed, tool_error, round_start, round_end, agent_complete, error.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import ClassVar, Union

from termagent.models.messages import ToolCall, ToolResult
from termagent.models.termination import TerminationReason


@dataclass(frozen=True)
class TextDeltaEvent:
    type: ClassVar[str] = "text_delta"
    text: str


@dataclass(frozen=True)
class ToolUseStartEvent:
    type: ClassVar[str] = "tool_use_start"
    call_id: str
    name: str


@dataclass(frozen=True)
class ToolUseEndEvent:
    type: ClassVar[str] = "tool_use_end"
    tool_call: ToolCall


@dataclass(frozen=True)
class ToolExecutingEvent:
    type: ClassVar[str] = "tool_executing"
    tool_call: ToolCall


@dataclass(frozen=True)
class ToolExecutedEvent:
    type: ClassVar[str] = "tool_executed"
    tool_call: ToolCall
    result: ToolResult


@dataclass(frozen=True)
class ToolErrorEvent:
    type: ClassVar[str] = "tool_error"
    tool_call: ToolCall
    result: ToolResult


@dataclass(frozen=True)
class RoundStartEvent:
    type: ClassVar[str] = "round_start"
    round: int


@dataclass(frozen=True)
class RoundEndEvent:
    type: ClassVar[str] = "round_end"
    round: int


@dataclass(frozen=True)
class AgentCompleteEvent:
    type: ClassVar[str] = "agent_complete"
    reason: TerminationReason
    round_count: int
    message: str | None = None


@dataclass(frozen=True)
class ErrorEvent:
    type: ClassVar[str] = "error"
    error: str


AgentEvent = Union[
    TextDeltaEvent,
    ToolUseStartEvent,
    ToolUseEndEvent,
    ToolExecutingEvent,
    ToolExecutedEvent,
    ToolErrorEvent,
    RoundStartEvent,
    RoundEndEvent,
    AgentCompleteEvent,
    ErrorEvent,
]
