"""Toolkit data models: tool definitions and validation types.

Frozen dataclasses for tool definitions, command risk context and
validation decisions.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Callable


@dataclass(frozen=True)
class ToolDefinition:
    """A single tool definition for LLM consumption.

    Attributes:
        name: Tool name (e.g. "run_command").
        description: Human-readable description of when/why to use this tool.
        parameters: JSON Schema dict describing tool parameters.
        handler: Callable that executes the tool. It receives the call's
            input as keyword arguments and returns either a string or a
            :class:`termagent.models.messages.ToolResult`.
        requires_validation: If True, the agent loop asks the validation
            gate before each call.
    """

    name: str
    description: str
    parameters: dict
    handler: Callable[..., object]
    requires_validation: bool = False

    def to_openai(self) -> dict:
        """Convert to OpenAI function-calling format."""
        return {
            "type": "function",
            "function": {
                "name": self.name,
                "description": self.description,
                "parameters": self.parameters,
            },
        }


class RiskLevel(str, enum.Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


@dataclass(frozen=True)
class RiskContext:
    """Risk assessment handed to the validation gate.

    Attributes:
        tool_name: Tool about to run.
        tool_input: The call's input.
        risk_level: Classified risk of the call.
        reasons: Names of the risk patterns that matched.
    """

    tool_name: str
    tool_input: dict
    risk_level: RiskLevel = RiskLevel.LOW
    reasons: tuple[str, ...] = ()


@dataclass(frozen=True)
class ValidationResult:
    """Decision returned by a validation gate."""

    approved: bool
    reason: str = ""
    risk_level: RiskLevel = RiskLevel.LOW
    extra: dict = field(default_factory=dict)
