"""Built-in OpenAI-compatible httpx client with tenacity retry.

Provides a sync HTTP client for OpenAI-compatible chat completion APIs,
both one-shot (:meth:`OpenAIClient.chat`) and streamed over server-sent
events (:meth:`OpenAIClient.stream`). Reads configuration from constructor
arguments or environment variables.
"""

from __future__ import annotations

import json
import logging
import os
from collections.abc import Iterator
from typing import Any

import httpx
import tenacity

from termagent.llm.errors import (
    LLMAuthError,
    LLMConfigError,
    LLMRateLimitError,
    LLMResponseError,
    LLMStreamError,
)
from termagent.llm.protocols import (
    ModelRequest,
    StreamError,
    StreamEvent,
    TextDelta,
    ToolUseEnd,
    ToolUseStart,
)
from termagent.models.messages import ToolCall, to_openai_messages

logger = logging.getLogger(__name__)

_RETRYABLE_STATUS_CODES = {429, 500, 502, 503, 504}
_AUTH_ERROR_STATUS_CODES = {401, 403}


def _is_retryable(exc: BaseException) -> bool:
    """Check if an exception is retryable.

    Retryable: 429, 500, 502, 503, 504, connection errors.
    Not retryable: 401, 403, 400, other client errors.
    """
    if isinstance(exc, LLMAuthError):
        return False
    if isinstance(exc, LLMRateLimitError):
        return True
    if isinstance(exc, httpx.HTTPStatusError):
        return exc.response.status_code in _RETRYABLE_STATUS_CODES
    return isinstance(exc, (httpx.ConnectError, httpx.ConnectTimeout))


def _check_status(response: httpx.Response) -> None:
    """Raise the matching LLM error for a failed response.

    The response body must already be read.
    """
    if response.status_code in _AUTH_ERROR_STATUS_CODES:
        raise LLMAuthError(
            f"Authentication failed: HTTP {response.status_code} - {response.text}"
        )
    if response.status_code == 429:
        retry_after_raw = response.headers.get("Retry-After")
        retry_after: float | None = None
        if retry_after_raw is not None:
            try:
                retry_after = float(retry_after_raw)
            except (ValueError, TypeError):
                pass
        raise LLMRateLimitError(
            f"Rate limited: HTTP 429 - {response.text}",
            retry_after=retry_after,
        )
    response.raise_for_status()


class _PendingToolCall:
    """Tool call being assembled from streamed deltas."""

    __slots__ = ("id", "name", "arguments")

    def __init__(self, call_id: str, name: str) -> None:
        self.id = call_id
        self.name = name
        self.arguments: list[str] = []

    def finish(self) -> ToolCall:
        return ToolCall.from_openai(
            {
                "id": self.id,
                "function": {"name": self.name, "arguments": "".join(self.arguments) or "{}"},
            }
        )


class OpenAIClient:
    """Sync httpx client for OpenAI-compatible chat completions.

    Implements both the ModelClient and ModelStream protocols. Supports
    retry with exponential backoff for transient errors (429, 5xx). Fails
    immediately on authentication errors (401, 403).

    Usage::

        with OpenAIClient(api_key="sk-...") as client:
            response = client.chat([{"role": "user", "content": "Hello"}])
            text = OpenAIClient.extract_content(response)
    """

    def __init__(
        self,
        api_key: str | None = None,
        base_url: str | None = None,
        default_model: str = "gpt-4o-mini",
        timeout: float = 120.0,
        max_retries: int = 3,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        """Initialize the OpenAI-compatible client.

        Args:
            api_key: API key. Falls back to TERMAGENT_OPENAI_API_KEY env var.
            base_url: API base URL. Falls back to TERMAGENT_OPENAI_BASE_URL
                env var, then to https://api.openai.com/v1.
            default_model: Default model for chat requests.
            timeout: Request timeout in seconds.
            max_retries: Maximum number of attempts for retryable errors.
            transport: Optional httpx transport (tests use MockTransport).

        Raises:
            LLMConfigError: If no API key is provided or found in environment.
        """
        self._api_key = api_key or os.environ.get("TERMAGENT_OPENAI_API_KEY", "")
        if not self._api_key:
            raise LLMConfigError(
                "No API key provided. Pass api_key= or set TERMAGENT_OPENAI_API_KEY "
                "environment variable."
            )
        self._base_url = (
            base_url
            or os.environ.get("TERMAGENT_OPENAI_BASE_URL", "https://api.openai.com/v1")
        ).rstrip("/")
        self._default_model = default_model
        self._timeout = timeout
        self._max_retries = max_retries
        self._client = httpx.Client(
            timeout=timeout,
            transport=transport,
            headers={
                "Content-Type": "application/json",
                "Authorization": f"Bearer {self._api_key}",
            },
        )

    @property
    def default_model(self) -> str:
        return self._default_model

    def _retryer(self) -> tenacity.Retrying:
        return tenacity.Retrying(
            retry=tenacity.retry_if_exception(_is_retryable),
            wait=(
                tenacity.wait_exponential(multiplier=1, min=1, max=30)
                + tenacity.wait_random(0, 2)
            ),
            stop=tenacity.stop_after_attempt(self._max_retries),
            before_sleep=tenacity.before_sleep_log(logger, logging.WARNING),
            reraise=True,
        )

    def _payload(
        self,
        messages: list[dict],
        *,
        model: str | None,
        temperature: float | None,
        max_tokens: int | None,
        **kwargs: Any,
    ) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "model": model or self._default_model,
            "messages": messages,
        }
        if temperature is not None:
            payload["temperature"] = temperature
        if max_tokens is not None:
            payload["max_tokens"] = max_tokens
        payload.update(kwargs)
        return payload

    # ------------------------------------------------------------------
    # One-shot completion
    # ------------------------------------------------------------------

    def chat(
        self,
        messages: list[dict],
        *,
        model: str | None = None,
        temperature: float | None = None,
        max_tokens: int | None = None,
        **kwargs: Any,
    ) -> dict:
        """Send chat completion request with retry.

        Uses tenacity.Retrying programmatically (not as decorator) so that
        max_retries is configurable per-instance.

        Args:
            messages: List of OpenAI wire message dicts.
            model: Model to use. Falls back to default_model.
            temperature: Sampling temperature.
            max_tokens: Maximum tokens to generate.
            **kwargs: Additional payload parameters forwarded to the API.

        Returns:
            Full response dict with 'choices', 'usage', 'model', etc.

        Raises:
            LLMAuthError: On 401/403 (no retry).
            LLMRateLimitError: On 429 after all retries exhausted.
            LLMResponseError: On unexpected response format.
            httpx.HTTPStatusError: On other non-retryable HTTP errors.
        """
        payload = self._payload(
            messages, model=model, temperature=temperature, max_tokens=max_tokens, **kwargs
        )
        return self._retryer()(self._do_chat, payload)

    def _do_chat(self, payload: dict[str, Any]) -> dict:
        """Execute a single chat completion request (no retry)."""
        response = self._client.post(f"{self._base_url}/chat/completions", json=payload)
        _check_status(response)

        data = response.json()
        if "choices" not in data:
            raise LLMResponseError(
                f"Unexpected response format: missing 'choices' key. "
                f"Response: {data}"
            )
        return data

    # ------------------------------------------------------------------
    # Streaming completion
    # ------------------------------------------------------------------

    def stream(self, request: ModelRequest) -> Iterator[StreamEvent]:
        """Stream one model turn as TextDelta / ToolUseStart / ToolUseEnd events.

        Opening the connection is retried like :meth:`chat`. Once the first
        byte has arrived no retry happens: transport failures raise
        :class:`LLMStreamError` and in-band API errors are yielded as
        :class:`StreamError`.

        Tool-call fragments are assembled per stream index. Every
        ToolUseEnd is emitted after the model's text, in index order,
        carrying the same id as its ToolUseStart.
        """
        extra: dict[str, Any] = {"stream": True}
        if request.tools:
            extra["tools"] = request.tools
        payload = self._payload(
            to_openai_messages(request.messages),
            model=request.model,
            temperature=request.temperature,
            max_tokens=request.max_tokens,
            **extra,
        )
        http_request = self._client.build_request(
            "POST", f"{self._base_url}/chat/completions", json=payload
        )
        response = self._retryer()(self._open_stream, http_request)

        pending: dict[int, _PendingToolCall] = {}
        try:
            for line in response.iter_lines():
                if not line.startswith("data:"):
                    continue
                data = line[len("data:"):].strip()
                if data == "[DONE]":
                    break
                try:
                    chunk = json.loads(data)
                except json.JSONDecodeError:
                    logger.debug("Skipping malformed stream chunk: %r", data)
                    continue

                if "error" in chunk:
                    error = chunk["error"]
                    message = error.get("message") if isinstance(error, dict) else str(error)
                    yield StreamError(error=message or "Unknown stream error")
                    return

                for choice in chunk.get("choices") or []:
                    delta = choice.get("delta") or {}
                    if delta.get("content"):
                        yield TextDelta(text=delta["content"])
                    for tc in delta.get("tool_calls") or []:
                        index = tc.get("index", len(pending))
                        function = tc.get("function") or {}
                        call = pending.get(index)
                        if call is None:
                            call = _PendingToolCall(
                                tc.get("id") or f"call_{index}",
                                function.get("name", ""),
                            )
                            pending[index] = call
                            yield ToolUseStart(call_id=call.id, name=call.name)
                        if function.get("arguments"):
                            call.arguments.append(function["arguments"])
        except httpx.HTTPError as exc:
            raise LLMStreamError(f"Stream interrupted: {exc}") from exc
        finally:
            response.close()

        for index in sorted(pending):
            yield ToolUseEnd(call=pending[index].finish())

    def _open_stream(self, http_request: httpx.Request) -> httpx.Response:
        """Send a streaming request and check its status (no retry)."""
        response = self._client.send(http_request, stream=True)
        if response.status_code >= 400:
            try:
                response.read()
            finally:
                response.close()
            _check_status(response)
        return response

    # ------------------------------------------------------------------
    # Lifecycle and response helpers
    # ------------------------------------------------------------------

    def close(self) -> None:
        """Close the underlying httpx client."""
        self._client.close()

    def __enter__(self) -> OpenAIClient:
        return self

    def __exit__(self, *args: object) -> None:
        self.close()

    @staticmethod
    def extract_content(response: dict) -> str:
        """Extract the assistant's message content from a response dict.

        Raises:
            LLMResponseError: If the response format is unexpected.
        """
        try:
            return response["choices"][0]["message"].get("content") or ""
        except (KeyError, IndexError, TypeError, AttributeError) as exc:
            raise LLMResponseError(
                f"Cannot extract content from response: {exc}. "
                f"Response: {response}"
            ) from exc

    @staticmethod
    def extract_usage(response: dict) -> dict | None:
        """Extract usage information (prompt/completion/total tokens) or None."""
        return response.get("usage")
