"""Tests for the termagent.llm package.

Tests cover:
- OpenAIClient.chat: request formatting, retry behavior, auth errors, env config
- OpenAIClient.stream: SSE parsing, tool-call assembly, in-band errors
- Response helpers and the error hierarchy
"""

from __future__ import annotations

import json

import httpx
import pytest

from termagent.exceptions import TermAgentError
from termagent.llm import (
    LLMAuthError,
    LLMClientError,
    LLMConfigError,
    LLMRateLimitError,
    LLMResponseError,
    ModelClient,
    ModelRequest,
    ModelStream,
    OpenAIClient,
    StreamError,
    TextDelta,
    ToolUseEnd,
    ToolUseStart,
)
from termagent.models.messages import Message

# ---------------------------------------------------------------------------
# Fixtures and helpers
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def no_retry_sleep(monkeypatch):
    """Retries back off through tenacity's nap; skip the real waiting."""
    monkeypatch.setattr("tenacity.nap.time.sleep", lambda _seconds: None)


def _success_response(content: str = "Hello!", total_tokens: int = 15) -> dict:
    return {
        "id": "chatcmpl-test123",
        "object": "chat.completion",
        "model": "gpt-4o-mini",
        "choices": [
            {
                "index": 0,
                "message": {"role": "assistant", "content": content},
                "finish_reason": "stop",
            }
        ],
        "usage": {"prompt_tokens": 10, "completion_tokens": 5, "total_tokens": total_tokens},
    }


def _make_client(handler, max_retries: int = 3, **kwargs) -> OpenAIClient:
    return OpenAIClient(
        api_key="test-key",
        base_url="http://test-api",
        max_retries=max_retries,
        transport=httpx.MockTransport(handler),
        **kwargs,
    )


def _sse(*chunks) -> bytes:
    """Encode chunks as a server-sent event body ending in [DONE]."""
    lines = []
    for chunk in chunks:
        data = chunk if isinstance(chunk, str) else json.dumps(chunk)
        lines.append(f"data: {data}\n\n")
    lines.append("data: [DONE]\n\n")
    return "".join(lines).encode()


def _delta(**delta) -> dict:
    return {"choices": [{"index": 0, "delta": delta}]}


def _stream_client(body: bytes, seen: list | None = None) -> OpenAIClient:
    def handler(request: httpx.Request) -> httpx.Response:
        if seen is not None:
            seen.append(json.loads(request.content))
        return httpx.Response(
            200, content=body, headers={"Content-Type": "text/event-stream"}
        )

    return _make_client(handler)


def _request(**kwargs) -> ModelRequest:
    return ModelRequest(messages=[Message.user("hi")], **kwargs)


# ---------------------------------------------------------------------------
# Error hierarchy
# ---------------------------------------------------------------------------


class TestErrorHierarchy:
    def test_all_errors_catchable_as_termagent_error(self):
        for error_class in [LLMConfigError, LLMRateLimitError, LLMAuthError, LLMResponseError]:
            assert issubclass(error_class, LLMClientError)
            assert issubclass(error_class, TermAgentError)

    def test_rate_limit_error_has_retry_after(self):
        err = LLMRateLimitError("slow down", retry_after=2.5)
        assert err.retry_after == 2.5
        assert "retry after 2.5s" in str(err)

    def test_rate_limit_error_no_retry_after(self):
        assert LLMRateLimitError().retry_after is None


# ---------------------------------------------------------------------------
# chat()
# ---------------------------------------------------------------------------


class TestChat:
    def test_chat_success(self):
        client = _make_client(lambda request: httpx.Response(200, json=_success_response()))
        response = client.chat([{"role": "user", "content": "Hi"}])
        assert OpenAIClient.extract_content(response) == "Hello!"
        client.close()

    def test_request_format(self):
        captured = {}

        def handler(request: httpx.Request) -> httpx.Response:
            captured["url"] = str(request.url)
            captured["auth"] = request.headers["Authorization"]
            captured["body"] = json.loads(request.content)
            return httpx.Response(200, json=_success_response())

        with _make_client(handler, default_model="m-default") as client:
            client.chat(
                [{"role": "user", "content": "Hi"}],
                temperature=0.2,
                max_tokens=64,
                top_p=0.9,
            )

        assert captured["url"] == "http://test-api/chat/completions"
        assert captured["auth"] == "Bearer test-key"
        assert captured["body"]["model"] == "m-default"
        assert captured["body"]["temperature"] == 0.2
        assert captured["body"]["max_tokens"] == 64
        assert captured["body"]["top_p"] == 0.9

    def test_optional_params_omitted(self):
        captured = {}

        def handler(request: httpx.Request) -> httpx.Response:
            captured["body"] = json.loads(request.content)
            return httpx.Response(200, json=_success_response())

        with _make_client(handler) as client:
            client.chat([{"role": "user", "content": "Hi"}], model="override")

        assert captured["body"]["model"] == "override"
        assert "temperature" not in captured["body"]
        assert "max_tokens" not in captured["body"]

    def test_missing_choices_raises(self):
        with _make_client(lambda request: httpx.Response(200, json={"id": "x"})) as client:
            with pytest.raises(LLMResponseError):
                client.chat([{"role": "user", "content": "Hi"}])


class TestRetry:
    @pytest.mark.parametrize("status", [429, 500, 502, 503, 504])
    def test_retries_transient_status_then_succeeds(self, status):
        calls = []

        def handler(request: httpx.Request) -> httpx.Response:
            calls.append(request)
            if len(calls) == 1:
                return httpx.Response(status, json={"error": "transient"})
            return httpx.Response(200, json=_success_response())

        with _make_client(handler) as client:
            response = client.chat([{"role": "user", "content": "Hi"}])

        assert len(calls) == 2
        assert "choices" in response

    @pytest.mark.parametrize(("status", "error"), [(401, LLMAuthError), (403, LLMAuthError)])
    def test_no_retry_on_auth_errors(self, status, error):
        calls = []

        def handler(request: httpx.Request) -> httpx.Response:
            calls.append(request)
            return httpx.Response(status, json={"error": "denied"})

        with _make_client(handler) as client:
            with pytest.raises(error):
                client.chat([{"role": "user", "content": "Hi"}])
        assert len(calls) == 1

    def test_no_retry_on_400(self):
        calls = []

        def handler(request: httpx.Request) -> httpx.Response:
            calls.append(request)
            return httpx.Response(400, json={"error": "bad request"})

        with _make_client(handler) as client:
            with pytest.raises(httpx.HTTPStatusError):
                client.chat([{"role": "user", "content": "Hi"}])
        assert len(calls) == 1

    def test_max_retries_exhausted(self):
        calls = []

        def handler(request: httpx.Request) -> httpx.Response:
            calls.append(request)
            return httpx.Response(429, json={"error": "busy"}, headers={"Retry-After": "7"})

        with _make_client(handler, max_retries=2) as client:
            with pytest.raises(LLMRateLimitError) as excinfo:
                client.chat([{"role": "user", "content": "Hi"}])

        assert len(calls) == 2
        assert excinfo.value.retry_after == 7.0

    def test_unparseable_retry_after(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(429, headers={"Retry-After": "soon"})

        with _make_client(handler, max_retries=1) as client:
            with pytest.raises(LLMRateLimitError) as excinfo:
                client.chat([{"role": "user", "content": "Hi"}])
        assert excinfo.value.retry_after is None


class TestConfig:
    def test_env_var_api_key(self, monkeypatch):
        monkeypatch.setenv("TERMAGENT_OPENAI_API_KEY", "env-key")
        client = OpenAIClient()
        assert client._api_key == "env-key"
        client.close()

    def test_env_var_base_url(self, monkeypatch):
        monkeypatch.setenv("TERMAGENT_OPENAI_API_KEY", "env-key")
        monkeypatch.setenv("TERMAGENT_OPENAI_BASE_URL", "http://env-api/v1/")
        client = OpenAIClient()
        assert client._base_url == "http://env-api/v1"
        client.close()

    def test_missing_api_key_raises(self, monkeypatch):
        monkeypatch.delenv("TERMAGENT_OPENAI_API_KEY", raising=False)
        with pytest.raises(LLMConfigError):
            OpenAIClient()

    def test_protocol_conformance(self):
        with OpenAIClient(api_key="k") as client:
            assert isinstance(client, ModelClient)
            assert isinstance(client, ModelStream)


# ---------------------------------------------------------------------------
# stream()
# ---------------------------------------------------------------------------


class TestStream:
    def test_text_deltas(self):
        body = _sse(_delta(role="assistant"), _delta(content="Hel"), _delta(content="lo"))
        with _stream_client(body) as client:
            events = list(client.stream(_request()))
        assert events == [TextDelta(text="Hel"), TextDelta(text="lo")]

    def test_payload_is_streamed_with_tools(self):
        seen = []
        tools = [{"type": "function", "function": {"name": "list_dir", "parameters": {}}}]
        with _stream_client(_sse(_delta(content="ok")), seen) as client:
            list(client.stream(_request(tools=tools, max_tokens=32, model="m-2")))

        payload = seen[0]
        assert payload["stream"] is True
        assert payload["tools"] == tools
        assert payload["max_tokens"] == 32
        assert payload["model"] == "m-2"
        assert payload["messages"] == [{"role": "user", "content": "hi"}]

    def test_tool_call_fragments_assembled(self):
        body = _sse(
            _delta(content="Checking."),
            _delta(
                tool_calls=[
                    {"index": 0, "id": "call_a", "function": {"name": "list_dir", "arguments": ""}}
                ]
            ),
            _delta(tool_calls=[{"index": 0, "function": {"arguments": '{"path": '}}]),
            _delta(
                tool_calls=[
                    {"index": 1, "id": "call_b", "function": {"name": "run_command", "arguments": "{}"}}
                ]
            ),
            _delta(tool_calls=[{"index": 0, "function": {"arguments": '"/tmp"}'}}]),
        )
        with _stream_client(body) as client:
            events = list(client.stream(_request()))

        assert events[0] == TextDelta(text="Checking.")
        assert events[1] == ToolUseStart(call_id="call_a", name="list_dir")
        assert events[2] == ToolUseStart(call_id="call_b", name="run_command")
        ends = [e for e in events if isinstance(e, ToolUseEnd)]
        assert [e.call.id for e in ends] == ["call_a", "call_b"]
        assert ends[0].call.input == {"path": "/tmp"}
        assert ends[1].call.input == {}
        assert events[-2:] == ends

    def test_in_band_error(self):
        body = _sse(_delta(content="partial"), {"error": {"message": "overloaded"}})
        with _stream_client(body) as client:
            events = list(client.stream(_request()))
        assert events == [TextDelta(text="partial"), StreamError(error="overloaded")]

    def test_malformed_and_non_data_lines_skipped(self):
        body = b": keep-alive\n\ndata: not-json\n\n" + _sse(_delta(content="fine"))
        with _stream_client(body) as client:
            events = list(client.stream(_request()))
        assert events == [TextDelta(text="fine")]

    def test_auth_error_when_opening(self):
        calls = []

        def handler(request: httpx.Request) -> httpx.Response:
            calls.append(request)
            return httpx.Response(401, json={"error": "bad key"})

        with _make_client(handler) as client:
            with pytest.raises(LLMAuthError):
                list(client.stream(_request()))
        assert len(calls) == 1

    def test_opening_is_retried(self):
        calls = []

        def handler(request: httpx.Request) -> httpx.Response:
            calls.append(request)
            if len(calls) == 1:
                return httpx.Response(503)
            return httpx.Response(200, content=_sse(_delta(content="up")))

        with _make_client(handler) as client:
            events = list(client.stream(_request()))
        assert len(calls) == 2
        assert events == [TextDelta(text="up")]


class TestExtractors:
    def test_extract_content(self):
        assert OpenAIClient.extract_content(_success_response("Hi")) == "Hi"

    def test_extract_content_null_is_empty(self):
        response = {"choices": [{"message": {"role": "assistant", "content": None}}]}
        assert OpenAIClient.extract_content(response) == ""

    def test_extract_content_bad_format(self):
        with pytest.raises(LLMResponseError):
            OpenAIClient.extract_content({"choices": []})

    def test_extract_usage(self):
        assert OpenAIClient.extract_usage(_success_response(total_tokens=99))["total_tokens"] == 99
        assert OpenAIClient.extract_usage({"choices": []}) is None
