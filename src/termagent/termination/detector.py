"""Termination detector: decides whether the agent loop should stop.

:func:`check` is a pure function of the agent state, the current round's
tool calls and results, the loop configuration and the check phase. Rules
are evaluated in strict priority order and the first match wins:

1. a tool result flagged ``is_task_complete``
2. (``after_ai_response`` only, no tool calls, non-empty text) the text
   rule table: incomplete intent, tool mentioned, summarizing, else stop
   with ``no_tools``
3. the same (name, input) called too often in the recent window
4. too many failures in the recent window
5. wall-clock timeout
6. round cap

If nothing matches, the loop continues.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from termagent.models.termination import (
    CheckPhase,
    TerminationReason,
    TerminationResult,
    hash_input,
)
from termagent.termination.rules import DEFAULT_TEXT_RULES

if TYPE_CHECKING:
    from collections.abc import Sequence

    from termagent.models.messages import ToolCall, ToolResult
    from termagent.models.termination import AgentState
    from termagent.orchestrator.config import AgentLoopConfig
    from termagent.termination.rules import TextRule

logger = logging.getLogger(__name__)

CONTINUE = TerminationResult(should_terminate=False, reason=TerminationReason.NO_TOOLS)


def classify_text(
    text: str, rules: Sequence[TextRule] = DEFAULT_TEXT_RULES
) -> TerminationResult:
    """Classify a tool-less model reply with the text rule table.

    Falls back to stopping with ``no_tools`` when no rule matches.
    """
    for rule in rules:
        if rule.classifier(text):
            if not rule.should_terminate:
                logger.warning(
                    "%s: continuing without tool calls (%r)", rule.name, text[:100]
                )
            return TerminationResult(
                should_terminate=rule.should_terminate,
                reason=rule.reason,
                message=rule.message,
            )
    return TerminationResult(
        should_terminate=True,
        reason=TerminationReason.NO_TOOLS,
        message="No tool calls this round; task considered complete",
    )


def check(
    state: AgentState,
    current_tool_calls: Sequence[ToolCall],
    tool_results: Sequence[ToolResult],
    config: AgentLoopConfig,
    phase: CheckPhase = CheckPhase.AFTER_AI_RESPONSE,
    *,
    text_rules: Sequence[TextRule] = DEFAULT_TEXT_RULES,
    now: float | None = None,
) -> TerminationResult:
    """Evaluate the termination rules for one round.

    Args:
        state: The run's agent state. ``tool_call_history`` holds the calls
            executed in earlier rounds (and this round, after execution).
        current_tool_calls: Calls the model made this round (empty after
            tool execution).
        tool_results: Results of this round's calls.
        config: Loop limits (max_rounds, timeout_ms, repeat_threshold,
            failure_threshold).
        phase: ``AFTER_TOOL_EXECUTION`` skips the text rules.
        text_rules: Text rule table, in priority order.
        now: Monotonic timestamp for the timeout rule (defaults to now).

    Returns:
        The first matching verdict, or a continue verdict.
    """
    logger.debug(
        "Termination check: round=%d/%d calls=%d history=%d phase=%s",
        state.current_round,
        config.max_rounds,
        len(current_tool_calls),
        len(state.tool_call_history),
        phase.value,
    )

    for result in tool_results:
        if result.is_task_complete:
            return TerminationResult(
                should_terminate=True,
                reason=TerminationReason.TASK_COMPLETE,
                message=result.content or "Task complete",
            )

    if (
        phase == CheckPhase.AFTER_AI_RESPONSE
        and not current_tool_calls
        and state.last_model_text
    ):
        return classify_text(state.last_model_text, text_rules)

    if current_tool_calls:
        window = config.repeat_threshold * 2
        recent = state.tool_call_history[-window:] if window > 0 else []
        for call in current_tool_calls:
            input_hash = hash_input(call.input)
            repeats = sum(
                1 for rec in recent if rec.name == call.name and rec.input_hash == input_hash
            )
            if repeats >= config.repeat_threshold - 1:
                return TerminationResult(
                    should_terminate=True,
                    reason=TerminationReason.REPEATED_TOOL,
                    message=(
                        f"Tool {call.name} called {repeats + 1} times with the same "
                        "input; the agent appears stuck"
                    ),
                )

    window = config.failure_threshold * 2
    recent = state.tool_call_history[-window:] if window > 0 else []
    failures = sum(1 for rec in recent if not rec.success)
    if failures >= config.failure_threshold:
        return TerminationResult(
            should_terminate=True,
            reason=TerminationReason.HIGH_FAILURE_RATE,
            message=f"{failures} of the last {len(recent)} tool calls failed",
        )

    elapsed = state.elapsed_ms(now)
    if elapsed > config.timeout_ms:
        return TerminationResult(
            should_terminate=True,
            reason=TerminationReason.TIMEOUT,
            message=f"Run timed out after {round(elapsed / 1000)}s",
        )

    if state.current_round >= config.max_rounds:
        return TerminationResult(
            should_terminate=True,
            reason=TerminationReason.MAX_ROUNDS,
            message=f"Reached the maximum of {config.max_rounds} rounds",
        )

    return CONTINUE
