"""Tool execution and validation capability protocols."""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from termagent.models.messages import ToolCall, ToolResult
    from termagent.toolkit.models import RiskContext, ToolDefinition, ValidationResult


@runtime_checkable
class ToolRunner(Protocol):
    """Executes tool calls for the agent loop.

    ``execute`` must not raise for tool-level failures; it returns a
    ToolResult with ``is_error=True`` instead.
    """

    def definitions(self) -> list[ToolDefinition]:
        """Tool definitions offered to the model."""
        ...

    def requires_validation(self, tool_name: str) -> bool:
        """Whether calls to ``tool_name`` must pass the validation gate."""
        ...

    def execute(self, call: ToolCall) -> ToolResult:
        """Run one tool call."""
        ...


class ValidationGate(Protocol):
    """Approves or rejects a consequential tool call before it runs."""

    def __call__(self, description: str, risk: RiskContext) -> ValidationResult:
        ...
