"""Token counting implementations for termagent.

Provides CharTokenCounter (the default ``characters / 4`` estimate),
TiktokenCounter (real tokenizer, opt-in) and NullTokenCounter (testing).
All implement the TokenCounter protocol from protocols.py.
"""

from __future__ import annotations

import json
import math
import re
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from termagent.models.messages import Message

CHARS_PER_TOKEN = 4
CJK_CHARS_PER_TOKEN = 1.5

_CJK_RE = re.compile("[\\u4e00-\\u9fa5]")


def estimate_tokens(text: str) -> int:
    """Estimate tokens as ``ceil(len(text) / 4)``.

    Returns 0 for empty text.
    """
    if not text:
        return 0
    return math.ceil(len(text) / CHARS_PER_TOKEN)


def estimate_tokens_cjk(text: str) -> int:
    """Estimate tokens counting CJK ideographs at 1.5 characters per token.

    Other characters count at 4 per token, as in :func:`estimate_tokens`.
    """
    if not text:
        return 0
    cjk = len(_CJK_RE.findall(text))
    other = len(text) - cjk
    return math.ceil(cjk / CJK_CHARS_PER_TOKEN + other / CHARS_PER_TOKEN)


def message_text(message: Message) -> str:
    """Flatten a message into the text that is counted for budgeting.

    Assistant tool calls are serialized as JSON so their inputs count
    against the budget.
    """
    if not message.tool_calls:
        return message.content
    calls = json.dumps([tc.to_dict() for tc in message.tool_calls], ensure_ascii=False)
    return f"{message.content}{calls}"


class CharTokenCounter:
    """Token counter using the ``characters / 4`` approximation.

    Implements the TokenCounter protocol.
    """

    def __init__(self, *, cjk_aware: bool = False) -> None:
        self._estimate = estimate_tokens_cjk if cjk_aware else estimate_tokens

    def count_text(self, text: str) -> int:
        return self._estimate(text)

    def count_message(self, message: Message) -> int:
        return self._estimate(message_text(message))


class TiktokenCounter:
    """Token counter using tiktoken (OpenAI's tokenizer).

    Lazily imports tiktoken and caches the Encoding instance.
    Falls back to o200k_base encoding if model is unknown.

    Implements the TokenCounter protocol.
    """

    def __init__(self, model: str = "gpt-4o", encoding_name: str | None = None) -> None:
        import tiktoken

        if encoding_name is not None:
            self._enc = tiktoken.get_encoding(encoding_name)
        else:
            try:
                self._enc = tiktoken.encoding_for_model(model)
            except KeyError:
                self._enc = tiktoken.get_encoding("o200k_base")

        self._encoding_name = self._enc.name

    @property
    def encoding_name(self) -> str:
        """Name of the tiktoken encoding being used."""
        return self._encoding_name

    def count_text(self, text: str) -> int:
        if not text:
            return 0
        return len(self._enc.encode(text))

    def count_message(self, message: Message) -> int:
        """Count one message plus 3 tokens of role/separator overhead."""
        return 3 + self.count_text(message_text(message))


class NullTokenCounter:
    """Token counter that always returns 0.

    Useful for testing when token counts are irrelevant.
    """

    def count_text(self, text: str) -> int:
        return 0

    def count_message(self, message: Message) -> int:
        return 0
