"""Agent loop: drives a multi-round, tool-using model session.

Provides AgentLoop, which starts runs, and AgentRun, the event stream of
one run. Each run is a state machine over :class:`LoopPhase`:

- ``ROUND``: stream one model turn, append the assistant message (text
  plus tool calls) and consult the termination detector.
- ``EXECUTE``: run the round's tool calls one after another, each behind
  the validation gate when the tool requires it, and append one tool
  result message.
- ``DECIDE``: consult the detector again after tool execution.
- ``COMPLETE``: emit ``agent_complete`` and stop.

Cancellation is cooperative: ``AgentRun.cancel()`` sets a
``threading.Event`` that is checked before each ``ROUND`` and ``DECIDE``
transition. A model stream or a round's tool calls that are already in
flight finish first, so every assistant message carrying tool calls is
always followed by its tool result message.
"""

from __future__ import annotations

import dataclasses
import logging
import threading
from typing import TYPE_CHECKING

from termagent.exceptions import OrchestratorError, ValidationRejectedError
from termagent.llm.protocols import (
    ModelRequest,
    StreamError,
    TextDelta,
    ToolUseEnd,
    ToolUseStart,
)
from termagent.models.events import (
    AgentCompleteEvent,
    ErrorEvent,
    RoundEndEvent,
    RoundStartEvent,
    TextDeltaEvent,
    ToolErrorEvent,
    ToolExecutedEvent,
    ToolExecutingEvent,
    ToolUseEndEvent,
    ToolUseStartEvent,
)
from termagent.models.messages import Message, Role, ToolResult
from termagent.models.termination import (
    AgentState,
    CheckPhase,
    TerminationReason,
    TerminationResult,
)
from termagent.orchestrator.config import AgentLoopConfig, LoopPhase
from termagent.prompts.agent import (
    AGENT_SYSTEM_PREAMBLE,
    INVOCATION_CORRECTION,
    INVOCATION_RETRY_NOTICE,
    build_tool_result_content,
    contains_invocation_markup,
)
from termagent.termination.detector import check
from termagent.toolkit.gates import describe_call, reject_all, risk_context_for
from termagent.toolkit.models import ValidationResult

if TYPE_CHECKING:
    from collections.abc import Iterator

    from termagent.llm.protocols import ModelStream
    from termagent.models.events import AgentEvent
    from termagent.models.messages import ToolCall
    from termagent.toolkit.protocols import ToolRunner, ValidationGate

logger = logging.getLogger(__name__)


class AgentLoop:
    """Runs the round-by-round agent loop against a model and a tool runner.

    Usage::

        loop = AgentLoop(client, ToolExecutor(default_tools()),
                         validation_gate=cli_prompt)
        run = loop.run([Message.user("list the files in /tmp")])
        for event in run:
            ...
        history = run.messages

    Args:
        model: Streaming model capability.
        tools: Tool runner; its definitions are offered to the model.
        validation_gate: Consulted before every call to a tool that
            requires validation. Defaults to rejecting all such calls.
    """

    def __init__(
        self,
        model: ModelStream,
        tools: ToolRunner,
        validation_gate: ValidationGate | None = None,
    ) -> None:
        self._model = model
        self._tools = tools
        self._gate = validation_gate or reject_all

    def run(
        self,
        initial_messages: list[Message],
        config: AgentLoopConfig | None = None,
    ) -> AgentRun:
        """Start a run. Nothing happens until the returned run is iterated.

        Raises:
            OrchestratorError: If ``config.max_rounds`` is below 1.
        """
        config = config or AgentLoopConfig()
        if config.max_rounds < 1:
            raise OrchestratorError(f"max_rounds must be at least 1, got {config.max_rounds}")
        return AgentRun(self, list(initial_messages), config)

    # ------------------------------------------------------------------
    # Internals used by AgentRun
    # ------------------------------------------------------------------

    def _build_request(self, messages: list[Message], config: AgentLoopConfig) -> ModelRequest:
        preamble = AGENT_SYSTEM_PREAMBLE
        if config.system_prompt:
            preamble = f"{preamble}\n\n{config.system_prompt}"
        return ModelRequest(
            messages=[Message.system(preamble), *messages],
            tools=[tool.to_openai() for tool in self._tools.definitions()],
            max_tokens=config.max_tokens,
            temperature=config.temperature,
            model=config.model,
        )

    def _validate(self, call: ToolCall) -> ValidationResult:
        risk = risk_context_for(call)
        try:
            return self._gate(describe_call(call), risk)
        except Exception as exc:
            logger.warning("Validation gate failed for %s: %s", call.name, exc)
            return ValidationResult(
                approved=False,
                reason=f"Validation failed: {exc}",
                risk_level=risk.risk_level,
            )

    def _execute(self, call: ToolCall) -> ToolResult:
        try:
            result = self._tools.execute(call)
        except Exception as exc:
            logger.debug("Tool runner raised for %s", call.name, exc_info=True)
            return ToolResult(
                tool_use_id=call.id,
                name=call.name,
                content=f"{type(exc).__name__}: {exc}",
                is_error=True,
            )
        if result.tool_use_id != call.id or not result.name:
            result = dataclasses.replace(
                result, tool_use_id=call.id, name=result.name or call.name
            )
        return result


class AgentRun:
    """Event stream of one agent loop run.

    Iterate to drive the run; events are yielded as they happen.
    ``messages`` is the running history (initial messages plus everything
    the run appended) and stays readable after the run ends.
    """

    def __init__(
        self, loop: AgentLoop, messages: list[Message], config: AgentLoopConfig
    ) -> None:
        self._loop = loop
        self._config = config
        self._initial_count = len(messages)
        self._cancel_event = threading.Event()
        self._events: Iterator[AgentEvent] | None = None
        self.messages = messages
        self.state = AgentState()
        self.phase = LoopPhase.ROUND
        self.result: TerminationResult | None = None
        self.error: str | None = None

    def __iter__(self) -> Iterator[AgentEvent]:
        if self._events is None:
            self._events = self._drive()
        return self._events

    @property
    def new_messages(self) -> list[Message]:
        """Messages appended by this run."""
        return self.messages[self._initial_count :]

    @property
    def cancelled(self) -> bool:
        return self._cancel_event.is_set()

    def cancel(self) -> None:
        """Request cancellation; observed at the next round boundary."""
        self._cancel_event.set()

    def collect(self) -> list[AgentEvent]:
        """Drive the run to completion and return every event."""
        return list(self)

    # ------------------------------------------------------------------
    # State machine
    # ------------------------------------------------------------------

    def _drive(self) -> Iterator[AgentEvent]:
        config = self._config
        state = self.state
        pending: list[ToolCall] = []
        results: list[ToolResult] = []
        invocation_retries = 0

        while self.phase != LoopPhase.COMPLETE:
            if self.phase in (LoopPhase.ROUND, LoopPhase.DECIDE) and self.cancelled:
                if self.phase == LoopPhase.DECIDE:
                    yield self._round_end()
                yield from self._complete(
                    TerminationResult(
                        should_terminate=True,
                        reason=TerminationReason.USER_CANCEL,
                        message="Cancelled by user",
                    )
                )
                return

            if self.phase == LoopPhase.ROUND:
                state.current_round += 1
                logger.info("Agent round %d started", state.current_round)
                self._callback(config.on_round_start, state.current_round)
                yield RoundStartEvent(round=state.current_round)

                text_parts: list[str] = []
                pending = []
                request = self._loop._build_request(self.messages, config)
                try:
                    for event in self._loop._model.stream(request):
                        if isinstance(event, TextDelta):
                            text_parts.append(event.text)
                            yield TextDeltaEvent(text=event.text)
                        elif isinstance(event, ToolUseStart):
                            yield ToolUseStartEvent(call_id=event.call_id, name=event.name)
                        elif isinstance(event, ToolUseEnd):
                            pending.append(event.call)
                            yield ToolUseEndEvent(tool_call=event.call)
                        elif isinstance(event, StreamError):
                            yield from self._fail(event.error)
                            return
                except Exception as exc:
                    logger.debug("Model stream raised", exc_info=True)
                    yield from self._fail(f"{type(exc).__name__}: {exc}")
                    return

                text = "".join(text_parts)
                state.last_model_text = text
                self.messages.append(Message.assistant(text, pending))

                verdict = check(state, pending, [], config, CheckPhase.AFTER_AI_RESPONSE)

                if (
                    not pending
                    and contains_invocation_markup(text)
                    and state.current_round < config.max_rounds
                    and (
                        config.max_invocation_retries is None
                        or invocation_retries < config.max_invocation_retries
                    )
                ):
                    invocation_retries += 1
                    logger.warning(
                        "Round %d wrote tool-invocation markup without a tool call, retrying",
                        state.current_round,
                    )
                    self.messages.append(Message.system(INVOCATION_CORRECTION))
                    yield TextDeltaEvent(text=INVOCATION_RETRY_NOTICE)
                    yield self._round_end()
                    continue
                invocation_retries = 0

                # Text rules can ask for another round; the round cap still holds.
                if (
                    not verdict.should_terminate
                    and not pending
                    and state.current_round >= config.max_rounds
                ):
                    verdict = TerminationResult(
                        should_terminate=True,
                        reason=TerminationReason.MAX_ROUNDS,
                        message=f"Reached the maximum of {config.max_rounds} rounds",
                    )

                if verdict.should_terminate:
                    if pending:
                        self._append_skipped(pending, verdict)
                    yield self._round_end()
                    yield from self._complete(verdict)
                    return

                if pending:
                    self.phase = LoopPhase.EXECUTE
                else:
                    yield self._round_end()

            elif self.phase == LoopPhase.EXECUTE:
                results = []
                for call in pending:
                    result = yield from self._execute_one(call)
                    results.append(result)
                self.messages.append(
                    Message(
                        role=Role.TOOL,
                        content=build_tool_result_content(results),
                        tool_results=tuple(results),
                    )
                )
                logger.info(
                    "Round %d executed %d tool calls", state.current_round, len(results)
                )
                self.phase = LoopPhase.DECIDE

            elif self.phase == LoopPhase.DECIDE:
                verdict = check(state, [], results, config, CheckPhase.AFTER_TOOL_EXECUTION)
                yield self._round_end()
                if verdict.should_terminate:
                    yield from self._complete(verdict)
                    return
                self.phase = LoopPhase.ROUND

    def _execute_one(self, call: ToolCall):
        """Run one call behind the validation gate, yielding its events."""
        yield ToolExecutingEvent(tool_call=call)

        if self._loop._tools.requires_validation(call.name):
            decision = self._loop._validate(call)
            if not decision.approved:
                rejection = ValidationRejectedError(call.name, decision.reason or "rejected")
                logger.warning("%s", rejection)
                result = ToolResult(
                    tool_use_id=call.id,
                    name=call.name,
                    content=str(rejection),
                    is_error=True,
                )
                self.state.record(call.name, call.input, success=False)
                yield ToolErrorEvent(tool_call=call, result=result)
                return result

        result = self._loop._execute(call)
        self.state.record(call.name, call.input, success=not result.is_error)
        if result.is_error:
            yield ToolErrorEvent(tool_call=call, result=result)
        else:
            yield ToolExecutedEvent(tool_call=call, result=result)
        return result

    def _append_skipped(self, calls: list[ToolCall], verdict: TerminationResult) -> None:
        """Answer calls the run stopped before executing, keeping rounds paired."""
        results = [
            ToolResult(
                tool_use_id=call.id,
                name=call.name,
                content=f"Not executed: agent stopped ({verdict.reason.value})",
                is_error=True,
            )
            for call in calls
        ]
        self.messages.append(
            Message(
                role=Role.TOOL,
                content=build_tool_result_content(results),
                tool_results=tuple(results),
            )
        )

    def _round_end(self) -> RoundEndEvent:
        self._callback(self._config.on_round_end, self.state.current_round)
        return RoundEndEvent(round=self.state.current_round)

    def _complete(self, verdict: TerminationResult) -> Iterator[AgentEvent]:
        self.phase = LoopPhase.COMPLETE
        self.state.is_active = False
        self.result = verdict
        logger.info(
            "Agent finished after %d rounds: %s",
            self.state.current_round,
            verdict.reason.value,
        )
        self._callback(self._config.on_agent_complete, verdict.reason, self.state.current_round)
        yield AgentCompleteEvent(
            reason=verdict.reason,
            round_count=self.state.current_round,
            message=verdict.message,
        )

    def _fail(self, error: str) -> Iterator[AgentEvent]:
        logger.warning("Model stream failed in round %d: %s", self.state.current_round, error)
        self.phase = LoopPhase.COMPLETE
        self.state.is_active = False
        self.error = error
        yield ErrorEvent(error=error)

    @staticmethod
    def _callback(fn, *args) -> None:
        if fn is None:
            return
        try:
            fn(*args)
        except Exception:
            logger.debug("Agent loop callback error", exc_info=True)
