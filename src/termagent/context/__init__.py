"""Context management: token budgeting, pruning, compaction and truncation."""

from termagent.context.compaction import (
    PRUNE_MARKER,
    calculate_token_usage,
    compact,
    prune,
    truncate,
    usage_rate,
)
from termagent.context.manager import ContextManager, effective_messages
from termagent.context.summary import SummaryGenerator

__all__ = [
    "PRUNE_MARKER",
    "ContextManager",
    "SummaryGenerator",
    "calculate_token_usage",
    "compact",
    "effective_messages",
    "prune",
    "truncate",
    "usage_rate",
]
