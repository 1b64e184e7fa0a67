"""Termination verdict models and per-run agent state."""

from __future__ import annotations

import enum
import hashlib
import json
import time
from dataclasses import dataclass, field


class TerminationReason(str, enum.Enum):
    """Classified cause for ending (or continuing) the agent loop."""

    TASK_COMPLETE = "task_complete"
    NO_TOOLS = "no_tools"
    MENTIONED_TOOL = "mentioned_tool"
    SUMMARIZING = "summarizing"
    REPEATED_TOOL = "repeated_tool"
    HIGH_FAILURE_RATE = "high_failure_rate"
    TIMEOUT = "timeout"
    MAX_ROUNDS = "max_rounds"
    USER_CANCEL = "user_cancel"


class CheckPhase(str, enum.Enum):
    """When the termination detector runs within a round.

    ``AFTER_TOOL_EXECUTION`` skips the no-tool-calls rule, since tools
    were just run.
    """

    AFTER_AI_RESPONSE = "after_ai_response"
    AFTER_TOOL_EXECUTION = "after_tool_execution"


@dataclass(frozen=True)
class TerminationResult:
    """Verdict of one termination check.

    ``reason`` is meaningful even when ``should_terminate`` is False: it
    tells the loop why it is continuing (e.g. ``mentioned_tool``).
    """

    should_terminate: bool
    reason: TerminationReason
    message: str | None = None


def hash_input(tool_input: object) -> str:
    """Stable hash of a tool input for repeat detection.

    Key order does not affect the hash. Inputs that are not JSON
    serializable fall back to their ``repr``.
    """
    try:
        payload = json.dumps(tool_input, sort_keys=True, separators=(",", ":"))
    except (TypeError, ValueError):
        payload = repr(tool_input)
    return hashlib.sha256(payload.encode("utf-8")).hexdigest()[:16]


@dataclass(frozen=True)
class ToolCallRecord:
    """Append-only history entry used for repeat/failure detection."""

    name: str
    input_hash: str
    success: bool
    timestamp: float = field(default_factory=time.time)


@dataclass
class AgentState:
    """Mutable state of one agent-loop invocation.

    Created when a run starts; discarded when it completes, errors, or is
    cancelled.
    """

    current_round: int = 0
    start_time: float = field(default_factory=time.monotonic)
    tool_call_history: list[ToolCallRecord] = field(default_factory=list)
    last_model_text: str = ""
    is_active: bool = True

    def record(self, name: str, tool_input: object, success: bool) -> ToolCallRecord:
        """Append a ToolCallRecord and return it.

        Timestamps are strictly increasing within one history.
        """
        timestamp = time.time()
        if self.tool_call_history:
            timestamp = max(timestamp, self.tool_call_history[-1].timestamp + 1e-6)
        rec = ToolCallRecord(
            name=name, input_hash=hash_input(tool_input), success=success, timestamp=timestamp
        )
        self.tool_call_history.append(rec)
        return rec

    def elapsed_ms(self, now: float | None = None) -> float:
        """Milliseconds since the run started (monotonic clock)."""
        current = time.monotonic() if now is None else now
        return (current - self.start_time) * 1000.0
