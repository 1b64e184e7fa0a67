"""Summary generator: digests a message range with one model call."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from termagent.exceptions import SummaryError
from termagent.llm.client import OpenAIClient
from termagent.models.compaction import SummaryResult
from termagent.prompts.summarize import (
    CONVERSATION_SUMMARIZE_SYSTEM,
    DEFAULT_SUMMARY_MAX_CHARS,
    build_summarize_prompt,
)

if TYPE_CHECKING:
    from termagent.llm.protocols import ModelClient
    from termagent.models.messages import Message

logger = logging.getLogger(__name__)


class SummaryGenerator:
    """Produces a short summary of a message range via ``ModelClient.chat``.

    Uses a low temperature for stable output. Failures are raised as
    :class:`SummaryError`; the context manager turns them into an
    unsuccessful CompactResult.
    """

    def __init__(
        self,
        client: ModelClient,
        *,
        model: str | None = None,
        max_tokens: int = 500,
        temperature: float = 0.3,
        max_chars: int = DEFAULT_SUMMARY_MAX_CHARS,
        system_prompt: str = CONVERSATION_SUMMARIZE_SYSTEM,
    ) -> None:
        self._client = client
        self._model = model
        self._max_tokens = max_tokens
        self._temperature = temperature
        self._max_chars = max_chars
        self._system_prompt = system_prompt

    def generate(
        self, messages: list[Message], *, instructions: str | None = None
    ) -> SummaryResult:
        """Summarize ``messages``.

        Args:
            messages: Range to summarize, oldest first.
            instructions: Optional override for the summary instruction.

        Returns:
            SummaryResult with the summary text, the model-reported token
            cost and the number of messages summarized. An empty range
            yields an empty summary without calling the model.

        Raises:
            SummaryError: If the model call fails or returns no text.
        """
        if not messages:
            return SummaryResult(summary="", tokens_cost=0, original_message_count=0)

        prompt = build_summarize_prompt(
            messages, max_chars=self._max_chars, instructions=instructions
        )
        try:
            response = self._client.chat(
                [
                    {"role": "system", "content": self._system_prompt},
                    {"role": "user", "content": prompt},
                ],
                model=self._model,
                max_tokens=self._max_tokens,
                temperature=self._temperature,
            )
            summary = OpenAIClient.extract_content(response).strip()
        except Exception as exc:
            logger.warning("Summary generation failed: %s", exc)
            raise SummaryError(f"Summary generation failed: {exc}") from exc

        if not summary:
            raise SummaryError("Summary generation returned empty text")

        usage = OpenAIClient.extract_usage(response) or {}
        tokens_cost = int(usage.get("total_tokens") or 0)
        logger.debug(
            "Summarized %d messages into %d chars (%d tokens)",
            len(messages),
            len(summary),
            tokens_cost,
        )
        return SummaryResult(
            summary=summary,
            tokens_cost=tokens_cost,
            original_message_count=len(messages),
        )


def compression_ratio(messages: list[Message], summary: str) -> int:
    """Percentage of characters removed by replacing ``messages`` with ``summary``."""
    original = sum(len(m.content) for m in messages)
    if original <= 0:
        return 0
    return round((1 - len(summary) / original) * 100)
