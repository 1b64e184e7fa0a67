"""Stage functions of the prune -> compact -> truncate pipeline.

Each stage is a plain function over a message list. None of them mutate
their input: tagged or shortened messages are new copies made with
``Message.evolve``.

Messages already subsumed by an earlier summary or truncation
(``condense_parent`` / ``truncation_parent`` set) are kept in the stored
list but excluded from token accounting and from further summarization.
"""

from __future__ import annotations

import dataclasses
import logging
import uuid
from typing import TYPE_CHECKING

from termagent.context.summary import compression_ratio
from termagent.engine.tokens import CHARS_PER_TOKEN
from termagent.exceptions import SummaryError
from termagent.models.budget import TokenUsage
from termagent.models.compaction import CompactResult, PruneResult, TruncateResult
from termagent.models.messages import Message, Role

if TYPE_CHECKING:
    from termagent.context.summary import SummaryGenerator
    from termagent.models.config import ContextConfig
    from termagent.protocols import TokenCounter

logger = logging.getLogger(__name__)

PRUNE_MIN_CHARS = 1000
PRUNE_KEEP_CHARS = 500
PRUNE_MARKER = "\n[content pruned]"

TRUNCATE_THRESHOLD = 0.95

SUMMARY_PREFIX = "[Conversation summary]\n"


# ---------------------------------------------------------------------------
# Accounting
# ---------------------------------------------------------------------------


def active_messages(messages: list[Message]) -> list[Message]:
    """Messages not subsumed by a summary or truncation."""
    return [m for m in messages if not m.is_subsumed]


def calculate_token_usage(messages: list[Message], counter: TokenCounter) -> TokenUsage:
    """Recompute token usage from scratch over the active messages.

    Assistant messages count as output; user, system and tool messages
    count as input.
    """
    input_tokens = 0
    output_tokens = 0
    for message in active_messages(messages):
        tokens = counter.count_message(message)
        if message.role == Role.ASSISTANT:
            output_tokens += tokens
        else:
            input_tokens += tokens
    return TokenUsage(input=input_tokens, output=output_tokens)


def usage_rate(usage: TokenUsage, config: ContextConfig) -> float:
    """``(input + output) / (max_context_tokens - reserved_output_tokens)``."""
    return usage.total / config.available_tokens


def keep_window(messages: list[Message], count: int) -> list[Message]:
    """The last ``count`` messages (empty for ``count == 0``).

    The window never opens on a tool message: it is widened back to
    include the assistant turn whose calls those results answer.
    """
    if count <= 0:
        return []
    start = max(len(messages) - count, 0)
    while start > 0 and messages[start].role == Role.TOOL:
        start -= 1
    return messages[start:]


# ---------------------------------------------------------------------------
# Stages
# ---------------------------------------------------------------------------


def _prune_text(text: str) -> str:
    if len(text) <= PRUNE_MIN_CHARS:
        return text
    return text[:PRUNE_KEEP_CHARS] + PRUNE_MARKER


def prune(messages: list[Message]) -> PruneResult:
    """Shorten every oversized message body.

    Content longer than 1000 characters is cut to its first 500
    characters followed by :data:`PRUNE_MARKER`. Structured tool-result
    contents are shortened the same way, since they are what reaches the
    model. ``tokens_saved`` is the content character delta divided by 4.
    """
    result: list[Message] = []
    chars_saved = 0
    parts_pruned = 0
    for message in messages:
        if message.is_subsumed:
            result.append(message)
            continue
        content = _prune_text(message.content)
        tool_results = tuple(
            dataclasses.replace(tr, content=_prune_text(tr.content))
            if len(tr.content) > PRUNE_MIN_CHARS
            else tr
            for tr in message.tool_results
        )
        if content is message.content and tool_results == message.tool_results:
            result.append(message)
            continue
        chars_saved += len(message.content) - len(content)
        parts_pruned += 1
        result.append(message.evolve(content=content, tool_results=tool_results))

    tokens_saved = chars_saved // CHARS_PER_TOKEN
    if parts_pruned:
        logger.debug("Pruned %d messages, ~%d tokens saved", parts_pruned, tokens_saved)
    return PruneResult(
        messages=result,
        pruned=parts_pruned > 0,
        tokens_saved=tokens_saved,
        parts_pruned=parts_pruned,
    )


def compact(
    messages: list[Message],
    config: ContextConfig,
    generator: SummaryGenerator,
    counter: TokenCounter,
) -> CompactResult:
    """Replace everything older than the anchor window with one summary.

    The anchor window (see :func:`keep_window`) is untouched.
    Older active messages are summarized into a new ``is_summary``
    message placed just before the anchor window, and each original gets
    ``condense_parent`` set to the summary's ``condense_id``.

    A summary failure returns the input list unchanged with
    ``success=False``.
    """
    active_idx = [i for i, m in enumerate(messages) if not m.is_subsumed]
    active = [messages[i] for i in active_idx]
    kept_count = len(keep_window(active, config.messages_to_keep))
    older_idx = active_idx[: len(active_idx) - kept_count]
    kept_idx = active_idx[len(active_idx) - kept_count :]
    older = [messages[i] for i in older_idx]
    if not older:
        return CompactResult(messages=list(messages), success=True)

    try:
        summary = generator.generate(older, instructions=config.summary_prompt)
    except SummaryError as exc:
        logger.warning("Compaction skipped, summary failed: %s", exc)
        return CompactResult(messages=list(messages), success=False, error=str(exc))

    condense_id = uuid.uuid4().hex
    anchor_time = (
        messages[kept_idx[0]].sequence_time if kept_idx else older[-1].sequence_time
    )
    summary_message = Message(
        role=Role.SYSTEM,
        content=SUMMARY_PREFIX + summary.summary,
        sequence_time=anchor_time,
        is_summary=True,
        condense_id=condense_id,
        summary_meta={
            "original_message_count": summary.original_message_count,
            "tokens_cost": summary.tokens_cost,
            "compression_ratio": compression_ratio(older, summary.summary),
        },
    )

    older_set = set(older_idx)
    first_kept = kept_idx[0] if kept_idx else None
    result: list[Message] = []
    for i, message in enumerate(messages):
        if i == first_kept:
            result.append(summary_message)
        if i in older_set:
            result.append(message.evolve(condense_parent=condense_id))
        else:
            result.append(message)
    if first_kept is None:
        result.append(summary_message)

    original_tokens = sum(counter.count_message(m) for m in older)
    tokens_saved = max(0, original_tokens - counter.count_message(summary_message))
    logger.info(
        "Compacted %d messages into summary %s, ~%d tokens saved",
        len(older),
        condense_id,
        tokens_saved,
    )
    return CompactResult(
        messages=result,
        success=True,
        summary=summary.summary,
        condense_id=condense_id,
        tokens_saved=tokens_saved,
        summarized_count=len(older),
        cost_tokens=summary.tokens_cost,
    )


def truncate(messages: list[Message], config: ContextConfig) -> TruncateResult:
    """Keep only the anchor window and append a truncation marker.

    Everything older than the last ``messages_to_keep`` active messages
    is dropped from the stored list, including originals that an earlier
    summary had already subsumed.
    """
    kept = keep_window(active_messages(messages), config.messages_to_keep)
    removed = len(messages) - len(kept)
    truncation_id = uuid.uuid4().hex
    marker = Message(
        role=Role.SYSTEM,
        content=f"[{removed} earlier messages were truncated to save tokens]",
        is_truncation_marker=True,
        truncation_id=truncation_id,
    )
    logger.info("Truncated %d messages (marker %s)", removed, truncation_id)
    return TruncateResult(
        messages=[*kept, marker],
        truncation_id=truncation_id,
        messages_removed=removed,
    )
