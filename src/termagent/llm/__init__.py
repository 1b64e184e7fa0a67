"""LLM client package.

Provides the model capability protocols, the OpenAI-compatible httpx
client, and the LLM error hierarchy.
"""

from termagent.llm.client import OpenAIClient
from termagent.llm.errors import (
    LLMAuthError,
    LLMClientError,
    LLMConfigError,
    LLMRateLimitError,
    LLMResponseError,
    LLMStreamError,
)
from termagent.llm.protocols import (
    ModelClient,
    ModelRequest,
    ModelStream,
    StreamError,
    StreamEvent,
    TextDelta,
    ToolUseEnd,
    ToolUseStart,
)

__all__ = [
    "OpenAIClient",
    "ModelClient",
    "ModelRequest",
    "ModelStream",
    "StreamError",
    "StreamEvent",
    "TextDelta",
    "ToolUseEnd",
    "ToolUseStart",
    "LLMClientError",
    "LLMConfigError",
    "LLMRateLimitError",
    "LLMAuthError",
    "LLMResponseError",
    "LLMStreamError",
]
