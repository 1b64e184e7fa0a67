"""ToolExecutor: dispatches tool calls to registered handlers.

Provides a single ``execute()`` method that looks up the tool by name,
invokes its handler with the call's input, and returns a structured
``ToolResult``.
"""

from __future__ import annotations

import dataclasses
import logging
import time
from typing import TYPE_CHECKING

from termagent.exceptions import UnknownToolError
from termagent.models.messages import ToolCall, ToolResult

if TYPE_CHECKING:
    from collections.abc import Iterable

    from termagent.toolkit.models import ToolDefinition

logger = logging.getLogger(__name__)


class ToolExecutor:
    """Registry of tools that executes calls and returns structured results.

    Implements the ToolRunner protocol. Unknown tools and handler
    exceptions become ``is_error`` results; nothing raised by a handler
    escapes ``execute``.

    Usage::

        executor = ToolExecutor(default_tools())
        result = executor.execute(ToolCall(id="c1", name="run_command",
                                           input={"command": "ls"}))
        if result.is_error:
            print(result.content)
    """

    def __init__(self, tools: Iterable[ToolDefinition] = ()) -> None:
        self._tools: dict[str, ToolDefinition] = {}
        for tool in tools:
            self.register(tool)

    def register(self, tool: ToolDefinition) -> None:
        """Add or replace a tool."""
        self._tools[tool.name] = tool

    def unregister(self, tool_name: str) -> None:
        """Remove a tool.

        Raises:
            UnknownToolError: If no tool with that name is registered.
        """
        if tool_name not in self._tools:
            raise UnknownToolError(tool_name)
        del self._tools[tool_name]

    def definitions(self) -> list[ToolDefinition]:
        return list(self._tools.values())

    def available_tools(self) -> list[str]:
        """Return the names of all registered tools."""
        return list(self._tools.keys())

    def requires_validation(self, tool_name: str) -> bool:
        tool = self._tools.get(tool_name)
        return tool is not None and tool.requires_validation

    def execute(self, call: ToolCall) -> ToolResult:
        """Execute a tool call.

        Args:
            call: The call to run. Its ``input`` is passed to the handler
                as keyword arguments.

        Returns:
            ToolResult answering ``call.id``, with ``duration`` in
            milliseconds.
        """
        tool = self._tools.get(call.name)
        if tool is None:
            return ToolResult(
                tool_use_id=call.id,
                name=call.name,
                content=str(UnknownToolError(call.name)),
                is_error=True,
            )

        started = time.perf_counter()
        try:
            output = tool.handler(**call.input)
        except Exception as exc:
            logger.debug("Tool %s failed: %s", call.name, exc, exc_info=True)
            return ToolResult(
                tool_use_id=call.id,
                name=call.name,
                content=f"{type(exc).__name__}: {exc}",
                is_error=True,
                duration=(time.perf_counter() - started) * 1000.0,
            )
        duration = (time.perf_counter() - started) * 1000.0

        if isinstance(output, ToolResult):
            return dataclasses.replace(
                output, tool_use_id=call.id, name=call.name, duration=duration
            )
        return ToolResult(
            tool_use_id=call.id,
            name=call.name,
            content="" if output is None else str(output),
            duration=duration,
        )
