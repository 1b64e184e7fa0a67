"""Model capability protocols and stream event types.

Defines the two model capabilities the agent core consumes:

- :class:`ModelStream` -- streaming completion used by the agent loop.
- :class:`ModelClient` -- one-shot chat completion used by the summary
  generator.

The built-in :class:`termagent.llm.client.OpenAIClient` implements both.
"""

from __future__ import annotations

from collections.abc import Iterator
from dataclasses import dataclass, field
from typing import Any, Protocol, Union, runtime_checkable

from termagent.models.messages import Message, ToolCall


@dataclass(frozen=True)
class ModelRequest:
    """One streaming request to the model.

    Attributes:
        messages: Full running history for this round.
        tools: Tool definitions in OpenAI function-calling format.
        max_tokens: Optional cap on the reply length.
        temperature: Optional sampling temperature.
        model: Optional model override.
    """

    messages: list[Message]
    tools: list[dict] = field(default_factory=list)
    max_tokens: int | None = None
    temperature: float | None = None
    model: str | None = None


@dataclass(frozen=True)
class TextDelta:
    """Incremental assistant text."""

    text: str


@dataclass(frozen=True)
class ToolUseStart:
    """The model began emitting a tool call."""

    call_id: str
    name: str


@dataclass(frozen=True)
class ToolUseEnd:
    """A complete tool call. ``call.id`` matches the earlier ToolUseStart."""

    call: ToolCall


@dataclass(frozen=True)
class StreamError:
    """An error reported in-band by the stream."""

    error: str


StreamEvent = Union[TextDelta, ToolUseStart, ToolUseEnd, StreamError]


@runtime_checkable
class ModelStream(Protocol):
    """Protocol for streaming model completions."""

    def stream(self, request: ModelRequest) -> Iterator[StreamEvent]:
        """Yield stream events until the model's turn is complete.

        Implementations may either yield :class:`StreamError` or raise;
        the agent loop treats both as fatal to the current run.
        """
        ...


@runtime_checkable
class ModelClient(Protocol):
    """Protocol for pluggable one-shot LLM clients.

    Any object with chat() and close() methods matching this signature works.
    The built-in OpenAIClient implements this protocol.

    Custom clients can override ``extract_content()`` and ``extract_usage()``
    to support non-OpenAI response formats.  The defaults assume OpenAI-style
    responses (``choices[0].message.content`` and ``.usage``).
    """

    def chat(
        self,
        messages: list[dict],
        *,
        model: str | None = None,
        temperature: float | None = None,
        max_tokens: int | None = None,
        **kwargs: Any,
    ) -> dict:
        """Send messages, return response dict."""
        ...

    def close(self) -> None:
        """Release underlying resources."""
        ...

    def extract_content(self, response: dict) -> str:
        """Extract assistant message content from an LLM response."""
        try:
            return response["choices"][0]["message"]["content"] or ""
        except (KeyError, IndexError, TypeError) as exc:
            raise ValueError(
                f"Cannot extract content from response: {exc}. "
                f"Override extract_content() for custom formats."
            ) from exc

    def extract_usage(self, response: dict) -> dict | None:
        """Extract usage dict from an LLM response."""
        return response.get("usage")
