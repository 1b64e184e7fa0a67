"""Token usage and budget report models."""

from __future__ import annotations

import enum
from dataclasses import dataclass, field


@dataclass(frozen=True)
class TokenUsage:
    """Token usage of a message set.

    Always recomputed from the full message list; never updated in place.
    """

    input: int = 0
    output: int = 0
    cache_read: int = 0
    cache_write: int = 0

    @property
    def total(self) -> int:
        """Input plus output tokens (cache counters excluded)."""
        return self.input + self.output


class Urgency(str, enum.Enum):
    """How urgently the context needs management."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


@dataclass(frozen=True)
class BudgetAllocation:
    """How the context window is split.

    Attributes:
        context: Window minus reserved output tokens.
        reserved: Tokens reserved for the model's reply.
        buffer: Safety buffer carved out of ``context``.
        available: ``context - buffer``, floored at zero.
    """

    context: int
    reserved: int
    buffer: int
    available: int


@dataclass(frozen=True)
class BudgetReport:
    """Snapshot of a message set against a ContextConfig."""

    usage: TokenUsage
    allocation: BudgetAllocation
    usage_rate: float
    remaining: int
    urgency: Urgency
    should_prune: bool
    should_compact: bool
    should_truncate: bool
    warnings: list[str] = field(default_factory=list)
