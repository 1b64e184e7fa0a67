"""Result models for the prune -> compact -> truncate pipeline.

Every stage returns the full message list it produced so the next stage
works from that output rather than the original set.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from termagent.models.messages import Message


class CompactionKind(str, enum.Enum):
    """Pipeline stage that produced a compaction event."""

    PRUNE = "prune"
    COMPACT = "compact"
    TRUNCATE = "truncate"


@dataclass(frozen=True)
class PruneResult:
    """Result of the prune stage.

    Attributes:
        messages: Message list with oversized bodies shortened.
        pruned: True if at least one message was shortened.
        tokens_saved: Estimated from the character delta.
        parts_pruned: Number of messages shortened.
    """

    messages: list[Message]
    pruned: bool = False
    tokens_saved: int = 0
    parts_pruned: int = 0


@dataclass(frozen=True)
class CompactResult:
    """Result of the compact stage.

    On summary failure ``success`` is False, ``messages`` is the input
    unchanged and ``error`` carries the failure text.
    """

    messages: list[Message]
    success: bool = True
    summary: str | None = None
    condense_id: str | None = None
    tokens_saved: int = 0
    summarized_count: int = 0
    cost_tokens: int = 0
    error: str | None = None


@dataclass(frozen=True)
class TruncateResult:
    """Result of the truncate stage."""

    messages: list[Message]
    truncation_id: str
    messages_removed: int = 0


@dataclass(frozen=True)
class ManageResult:
    """Outcome of one ``ContextManager.manage()`` call.

    ``messages`` is the new stored history (None when no stage ran).
    """

    prune_result: PruneResult | None = None
    compact_result: CompactResult | None = None
    truncate_result: TruncateResult | None = None
    messages: list[Message] | None = None

    @property
    def stages(self) -> list[str]:
        """Names of the stages that ran, in order."""
        names = []
        if self.prune_result is not None:
            names.append(CompactionKind.PRUNE.value)
        if self.compact_result is not None:
            names.append(CompactionKind.COMPACT.value)
        if self.truncate_result is not None:
            names.append(CompactionKind.TRUNCATE.value)
        return names


@dataclass(frozen=True)
class SummaryResult:
    """Output of the summary generator.

    Attributes:
        summary: Summary text (empty when no messages were given).
        tokens_cost: Total tokens the model reported for the call.
        original_message_count: Number of messages summarized.
    """

    summary: str
    tokens_cost: int = 0
    original_message_count: int = 0


@dataclass(frozen=True)
class CompactionEvent:
    """Audit record of a pipeline stage applied to a session."""

    session_id: str
    kind: CompactionKind
    tokens_saved: int
    condense_id: str | None = None
    timestamp: float = 0.0
    details: dict = field(default_factory=dict)
