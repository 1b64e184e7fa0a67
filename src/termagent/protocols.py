"""Protocol definitions shared across termagent.

Defines the pluggable TokenCounter interface. Capability protocols for the
model, tools, validation and storage live beside their default
implementations (``termagent.llm.protocols``, ``termagent.toolkit.protocols``,
``termagent.storage.protocols``).
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from termagent.models.messages import Message


@runtime_checkable
class TokenCounter(Protocol):
    """Protocol for token counting.

    The default is :class:`termagent.engine.tokens.CharTokenCounter`
    (characters / 4). Compaction thresholds are tuned against that
    approximation.
    """

    def count_text(self, text: str) -> int:
        """Count tokens in a plain text string."""
        ...

    def count_message(self, message: Message) -> int:
        """Count tokens for one message, including tool-call payloads."""
        ...
