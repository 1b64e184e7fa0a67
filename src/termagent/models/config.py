"""Configuration models for termagent.

ContextConfig holds the token-budget settings used by the context manager.
ProviderSettings describes the active model provider and derives a fresh
ContextConfig from the model's declared context window.

ContextConfig is frozen: every budget check receives a value derived for
that request, never a shared instance that another session could change.
"""

from __future__ import annotations

import os
from typing import Optional

from pydantic import BaseModel, model_validator

from termagent.exceptions import ConfigError

DEFAULT_CONTEXT_WINDOW = 200000

# Declared context windows per provider, used when no explicit
# context_window is configured.
PROVIDER_DEFAULTS: dict[str, int] = {
    "openai": 128000,
    "anthropic": 200000,
    "minimax": 128000,
    "glm": 128000,
    "ollama": 8192,
    "openai-compatible": 8192,
}


class ContextConfig(BaseModel):
    """Token-budget configuration for context management.

    Attributes:
        max_context_tokens: The active model's context window.
        reserved_output_tokens: Tokens held back for the model's reply.
        compact_threshold: Usage rate at which compaction runs.
        prune_threshold: Usage rate at which pruning runs.
        messages_to_keep: Size of the anchor window that survives every
            stage untouched.
        buffer_percentage: Safety buffer used by the budget report.
        summary_prompt: Optional override for the summary instruction.
    """

    model_config = {"frozen": True}

    max_context_tokens: int = DEFAULT_CONTEXT_WINDOW
    reserved_output_tokens: int = 16000
    compact_threshold: float = 0.85
    prune_threshold: float = 0.70
    messages_to_keep: int = 3
    buffer_percentage: float = 0.10
    summary_prompt: Optional[str] = None

    @model_validator(mode="after")
    def _check_ranges(self) -> ContextConfig:
        if self.max_context_tokens <= 0:
            raise ValueError("max_context_tokens must be positive")
        if not 0 <= self.reserved_output_tokens < self.max_context_tokens:
            raise ValueError(
                "reserved_output_tokens must be non-negative and smaller "
                "than max_context_tokens"
            )
        for name in ("compact_threshold", "prune_threshold"):
            value = getattr(self, name)
            if not 0 < value <= 1:
                raise ValueError(f"{name} must be in (0, 1], got {value}")
        if not 0 <= self.buffer_percentage < 1:
            raise ValueError("buffer_percentage must be in [0, 1)")
        if self.messages_to_keep < 0:
            raise ValueError("messages_to_keep must be non-negative")
        return self

    @property
    def available_tokens(self) -> int:
        """Tokens available for history: window minus reserved output."""
        return self.max_context_tokens - self.reserved_output_tokens

    def with_context_window(self, max_context_tokens: int) -> ContextConfig:
        """Return a copy bound to a different context window.

        The reserved output is clamped so the copy stays valid for small
        windows (e.g. 8k local models).
        """
        reserved = min(self.reserved_output_tokens, max_context_tokens // 2)
        return self.model_copy(
            update={
                "max_context_tokens": max_context_tokens,
                "reserved_output_tokens": reserved,
            }
        )


class ProviderSettings(BaseModel):
    """Settings for the active model provider.

    ``context_window`` overrides the provider default from
    :data:`PROVIDER_DEFAULTS` when set to a positive value.
    """

    provider: str = "openai"
    model: str = "gpt-4o-mini"
    api_key: Optional[str] = None
    base_url: Optional[str] = None
    context_window: Optional[int] = None

    @classmethod
    def from_env(cls) -> ProviderSettings:
        """Build settings from ``TERMAGENT_*`` environment variables."""
        raw_window = os.environ.get("TERMAGENT_CONTEXT_WINDOW")
        window: int | None = None
        if raw_window:
            try:
                window = int(raw_window)
            except ValueError:
                raise ConfigError(
                    f"TERMAGENT_CONTEXT_WINDOW must be an integer, got {raw_window!r}"
                ) from None
        return cls(
            provider=os.environ.get("TERMAGENT_PROVIDER", "openai"),
            model=os.environ.get("TERMAGENT_MODEL", "gpt-4o-mini"),
            api_key=os.environ.get("TERMAGENT_OPENAI_API_KEY") or None,
            base_url=os.environ.get("TERMAGENT_OPENAI_BASE_URL") or None,
            context_window=window,
        )

    def resolve_context_window(self) -> int:
        """Return the model's declared context window."""
        if self.context_window and self.context_window > 0:
            return self.context_window
        return PROVIDER_DEFAULTS.get(self.provider, DEFAULT_CONTEXT_WINDOW)

    def context_config(self, base: ContextConfig | None = None) -> ContextConfig:
        """Derive a fresh ContextConfig for the current request."""
        base = base or ContextConfig()
        return base.with_context_window(self.resolve_context_window())
