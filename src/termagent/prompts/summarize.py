"""Summarization prompts for context compaction.

Provides the system prompt and the user prompt builder used by
:class:`termagent.context.summary.SummaryGenerator`.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from termagent.engine.tokens import message_text

if TYPE_CHECKING:
    from termagent.models.messages import Message

# Only the tail of the range is shown to the summarizer.
MAX_SUMMARY_MESSAGES = 20
DEFAULT_SUMMARY_MAX_CHARS = 200

CONVERSATION_SUMMARIZE_SYSTEM: str = (
    "You are a context summarizer for a terminal assistant's conversation "
    "history. Your job is to produce a concise summary that preserves the "
    "information most relevant to continuing the task.\n\n"
    "Guidelines:\n"
    "- Preserve specific details: commands run, file paths, error messages, "
    "numbers, and decisions made.\n"
    "- State what was accomplished and what is still pending.\n"
    "- Omit pleasantries, greetings and filler.\n"
    "- Return only the summary, with no preamble or explanation."
)


def format_transcript(messages: list[Message]) -> str:
    """Render messages as ``[role] text`` lines separated by blank lines.

    Assistant tool calls are included as JSON after the message text.
    """
    return "\n\n".join(f"[{m.role.value}] {message_text(m)}" for m in messages)


def build_summarize_prompt(
    messages: list[Message],
    *,
    max_chars: int = DEFAULT_SUMMARY_MAX_CHARS,
    instructions: str | None = None,
) -> str:
    """Build the user prompt asking for a summary of ``messages``.

    Only the last :data:`MAX_SUMMARY_MESSAGES` messages are included; when
    more were given, the prompt states the total.

    Args:
        messages: The range to summarize, oldest first.
        max_chars: Requested upper bound on summary length in characters.
        instructions: Optional replacement for the leading instruction
            (``ContextConfig.summary_prompt``).

    Returns:
        The prompt text.
    """
    shown = messages[-MAX_SUMMARY_MESSAGES:]
    parts = [
        instructions
        or (
            "Concisely summarize the main content and conclusions of the "
            f"following conversation in no more than {max_chars} characters."
        )
    ]
    if len(messages) > len(shown):
        parts.append(
            f"({len(messages)} messages in total, showing the last {len(shown)})"
        )
    parts.append("")
    parts.append(format_transcript(shown))
    parts.append("")
    parts.append("Return the summary directly, without any other explanation.")
    return "\n".join(parts)
