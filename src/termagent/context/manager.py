"""ContextManager: token budgeting and the prune -> compact -> truncate pipeline.

The manager owns no configuration. Every call receives a ContextConfig
derived for that request (see ``ProviderSettings.context_config``), so
concurrent sessions bound to different models never share budget state.
Token usage is recomputed from the stored messages on every call.
"""

from __future__ import annotations

import logging
import time
from typing import TYPE_CHECKING

from termagent.context.compaction import (
    TRUNCATE_THRESHOLD,
    calculate_token_usage,
    compact,
    keep_window,
    prune,
    truncate,
    usage_rate,
)
from termagent.engine.tokens import CharTokenCounter
from termagent.exceptions import CompactionError, SessionNotFoundError
from termagent.models.budget import BudgetAllocation, BudgetReport, TokenUsage, Urgency
from termagent.models.compaction import CompactionEvent, CompactionKind, ManageResult

if TYPE_CHECKING:
    from termagent.context.summary import SummaryGenerator
    from termagent.models.config import ContextConfig
    from termagent.models.messages import Message
    from termagent.protocols import TokenCounter
    from termagent.storage.protocols import SessionStore

logger = logging.getLogger(__name__)

# Urgency levels by usage rate, highest first.
_URGENCY_LEVELS: tuple[tuple[float, Urgency], ...] = (
    (0.95, Urgency.CRITICAL),
    (0.85, Urgency.HIGH),
    (0.70, Urgency.MEDIUM),
)


def effective_messages(messages: list[Message], messages_to_keep: int) -> list[Message]:
    """Filter a stored message list down to what the model should see.

    Messages subsumed by a summary or truncation are dropped; summaries
    and markers that are not themselves subsumed stay. The anchor window
    from :func:`keep_window` is always kept.
    """
    anchor_start = len(messages) - len(keep_window(messages, messages_to_keep))
    return [
        m
        for i, m in enumerate(messages)
        if i >= anchor_start or not m.is_subsumed
    ]


class ContextManager:
    """Keeps a session's stored history inside the model's context window.

    Args:
        store: Session store holding each session's message list.
        summary_generator: Used by the compact stage. Required only when
            compaction actually runs.
        counter: Token counter; defaults to the ``characters / 4`` estimate.
    """

    def __init__(
        self,
        store: SessionStore,
        summary_generator: SummaryGenerator | None = None,
        counter: TokenCounter | None = None,
    ) -> None:
        self._store = store
        self._summary_generator = summary_generator
        self._counter = counter or CharTokenCounter()

    @property
    def counter(self) -> TokenCounter:
        return self._counter

    # ------------------------------------------------------------------
    # Accounting
    # ------------------------------------------------------------------

    def token_usage(self, messages: list[Message]) -> TokenUsage:
        """Fresh token usage of ``messages`` (subsumed messages excluded)."""
        return calculate_token_usage(messages, self._counter)

    def usage_rate(self, messages: list[Message], config: ContextConfig) -> float:
        """Usage as a fraction of ``max_context_tokens - reserved_output_tokens``."""
        return usage_rate(self.token_usage(messages), config)

    def should_manage(self, session_id: str, config: ContextConfig) -> bool:
        """True if the stored history has crossed the prune or compact threshold.

        Unknown sessions return False.
        """
        messages = self._store.load(session_id)
        if not messages:
            return False
        rate = self.usage_rate(messages, config)
        return rate >= config.prune_threshold or rate >= config.compact_threshold

    def budget(self, messages: list[Message], config: ContextConfig) -> BudgetReport:
        """Build a budget report for ``messages`` under ``config``."""
        usage = self.token_usage(messages)
        context = config.available_tokens
        buffer = int(context * config.buffer_percentage)
        allocation = BudgetAllocation(
            context=context,
            reserved=config.reserved_output_tokens,
            buffer=buffer,
            available=max(0, context - buffer),
        )
        rate = usage.total / context
        urgency = Urgency.LOW
        for threshold, level in _URGENCY_LEVELS:
            if rate >= threshold:
                urgency = level
                break

        warnings: list[str] = []
        if urgency == Urgency.CRITICAL:
            warnings.append(
                f"Context nearly exhausted ({rate:.0%}); older messages will be truncated"
            )
        elif urgency == Urgency.HIGH:
            warnings.append(f"Context usage high ({rate:.0%}); compaction recommended")
        elif urgency == Urgency.MEDIUM:
            warnings.append(f"Context usage elevated ({rate:.0%}); pruning recommended")
        if usage.total > allocation.available:
            warnings.append("Usage exceeds the buffered budget")

        return BudgetReport(
            usage=usage,
            allocation=allocation,
            usage_rate=rate,
            remaining=max(0, allocation.available - usage.total),
            urgency=urgency,
            should_prune=rate >= config.prune_threshold,
            should_compact=rate >= config.compact_threshold,
            should_truncate=rate >= TRUNCATE_THRESHOLD,
            warnings=warnings,
        )

    # ------------------------------------------------------------------
    # Pipeline
    # ------------------------------------------------------------------

    def manage(self, session_id: str, config: ContextConfig) -> ManageResult:
        """Run prune -> compact -> truncate on a session's stored history.

        Each stage re-checks the usage rate on the previous stage's output
        against its own threshold. The resulting history is saved back to
        the store and one compaction event is recorded per stage that ran.

        Raises:
            SessionNotFoundError: If the session has no stored history.
            CompactionError: If compaction is due and no summary generator
                was configured.
        """
        messages = self._store.load(session_id)
        if messages is None:
            raise SessionNotFoundError(session_id)

        rate = self.usage_rate(messages, config)
        if rate < config.prune_threshold and rate < config.compact_threshold:
            logger.debug("Session %s at %.2f usage, nothing to manage", session_id, rate)
            return ManageResult()

        prune_result = prune(messages)
        current = prune_result.messages
        events = []
        if prune_result.pruned:
            events.append(
                self._event(
                    session_id,
                    CompactionKind.PRUNE,
                    prune_result.tokens_saved,
                    details={"parts_pruned": prune_result.parts_pruned},
                )
            )

        compact_result = None
        rate = self.usage_rate(current, config)
        if rate >= config.compact_threshold:
            if self._summary_generator is None:
                raise CompactionError(
                    f"Session {session_id} needs compaction but no summary generator is configured"
                )
            compact_result = compact(current, config, self._summary_generator, self._counter)
            current = compact_result.messages
            if compact_result.success and compact_result.condense_id is not None:
                events.append(
                    self._event(
                        session_id,
                        CompactionKind.COMPACT,
                        compact_result.tokens_saved,
                        condense_id=compact_result.condense_id,
                        details={
                            "summarized_count": compact_result.summarized_count,
                            "cost_tokens": compact_result.cost_tokens,
                        },
                    )
                )

        truncate_result = None
        rate = self.usage_rate(current, config)
        if rate >= TRUNCATE_THRESHOLD:
            before = self.token_usage(current).total
            truncate_result = truncate(current, config)
            current = truncate_result.messages
            events.append(
                self._event(
                    session_id,
                    CompactionKind.TRUNCATE,
                    max(0, before - self.token_usage(current).total),
                    details={"messages_removed": truncate_result.messages_removed},
                )
            )

        self._store.save(session_id, current)
        for event in events:
            self._store.record_compaction_event(event)

        result = ManageResult(
            prune_result=prune_result,
            compact_result=compact_result,
            truncate_result=truncate_result,
            messages=current,
        )
        logger.info(
            "Managed session %s: stages=%s, usage %.2f",
            session_id,
            ",".join(result.stages),
            self.usage_rate(current, config),
        )
        return result

    def effective_history(self, session_id: str, config: ContextConfig) -> list[Message]:
        """Messages of a session that should be sent to the model.

        Unknown sessions return an empty list.
        """
        messages = self._store.load(session_id)
        if not messages:
            return []
        return effective_messages(messages, config.messages_to_keep)

    def cleanup_orphaned_tags(self, session_id: str) -> int:
        """Clear parent tags that point to a summary or marker no longer stored.

        Such messages would otherwise be hidden from the model with nothing
        representing them. Returns the number of messages changed (0 for
        unknown sessions).
        """
        messages = self._store.load(session_id)
        if not messages:
            return 0

        condense_ids = {m.condense_id for m in messages if m.is_summary and m.condense_id}
        truncation_ids = {
            m.truncation_id for m in messages if m.is_truncation_marker and m.truncation_id
        }
        cleaned = 0
        result: list[Message] = []
        for message in messages:
            changes: dict = {}
            if message.condense_parent and message.condense_parent not in condense_ids:
                changes["condense_parent"] = None
            if message.truncation_parent and message.truncation_parent not in truncation_ids:
                changes["truncation_parent"] = None
            if changes:
                cleaned += 1
                message = message.evolve(**changes)
            result.append(message)

        if cleaned:
            self._store.save(session_id, result)
            logger.info("Cleared %d orphaned tags in session %s", cleaned, session_id)
        return cleaned

    # ------------------------------------------------------------------

    def _event(
        self,
        session_id: str,
        kind: CompactionKind,
        tokens_saved: int,
        *,
        condense_id: str | None = None,
        details: dict | None = None,
    ) -> CompactionEvent:
        return CompactionEvent(
            session_id=session_id,
            kind=kind,
            tokens_saved=tokens_saved,
            condense_id=condense_id,
            timestamp=time.time(),
            details=details or {},
        )
