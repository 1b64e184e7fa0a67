"""Agent loop configuration types.

Provides LoopPhase (the states of the round state machine) and
AgentLoopConfig (limits, model parameters and callbacks for one run).
"""

from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import TYPE_CHECKING, Callable

if TYPE_CHECKING:
    from termagent.models.termination import TerminationReason


class LoopPhase(str, enum.Enum):
    """States of the agent loop.

    ``ROUND`` streams one model turn, ``EXECUTE`` runs the round's tool
    calls, ``DECIDE`` consults the termination detector after tools ran,
    and ``COMPLETE`` ends the run. Cancellation is checked before
    ``ROUND`` and ``DECIDE``.
    """

    ROUND = "round"
    EXECUTE = "execute"
    DECIDE = "decide"
    COMPLETE = "complete"


@dataclass
class AgentLoopConfig:
    """Configuration for one agent loop run.

    Mutable dataclass: callers may adjust settings between runs.

    Attributes:
        max_rounds: Hard cap on rounds; always checked last.
        timeout_ms: Wall-clock budget for the run.
        repeat_threshold: Identical (name, input) calls tolerated in the
            recent window before stopping with ``repeated_tool``.
        failure_threshold: Failed calls in the recent window that stop the
            run with ``high_failure_rate``.
        max_tokens: Optional reply cap forwarded to the model.
        temperature: Optional sampling temperature forwarded to the model.
        model: Optional model override.
        system_prompt: Optional extra system text placed after the fixed
            agent preamble.
        max_invocation_retries: Optional cap on consecutive rounds spent
            correcting tool-invocation markup written as text. None means
            only ``max_rounds`` bounds them.
        on_round_start: Called with the round number when a round starts.
        on_round_end: Called with the round number when a round ends.
        on_agent_complete: Called with (reason, round_count) at the end.
    """

    max_rounds: int = 15
    timeout_ms: int = 120000
    repeat_threshold: int = 5
    failure_threshold: int = 2
    max_tokens: int | None = None
    temperature: float | None = None
    model: str | None = None
    system_prompt: str | None = None
    max_invocation_retries: int | None = None
    on_round_start: Callable[[int], None] | None = None
    on_round_end: Callable[[int], None] | None = None
    on_agent_complete: Callable[[TerminationReason, int], None] | None = None
