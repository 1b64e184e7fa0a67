"""Built-in tool definitions.

``task_complete`` lets the model end the agent loop explicitly;
``run_command`` runs a shell command and is gated by validation.
Handlers use explicit parameters (no ``**kwargs`` passthrough) so that
hallucinated arguments fail as ordinary tool errors.
"""

from __future__ import annotations

import logging
import subprocess

from termagent.models.messages import ToolResult
from termagent.toolkit.models import ToolDefinition

logger = logging.getLogger(__name__)

TASK_COMPLETE = "task_complete"
RUN_COMMAND = "run_command"

DEFAULT_COMMAND_TIMEOUT = 30.0
MAX_OUTPUT_CHARS = 10000


def _task_complete(summary: str = "") -> ToolResult:
    return ToolResult(
        tool_use_id="",
        content=summary or "Task complete.",
        is_task_complete=True,
    )


def _truncate_output(text: str) -> str:
    if len(text) <= MAX_OUTPUT_CHARS:
        return text
    return text[:MAX_OUTPUT_CHARS] + f"\n... [{len(text) - MAX_OUTPUT_CHARS} more characters]"


def make_run_command(timeout: float = DEFAULT_COMMAND_TIMEOUT, cwd: str | None = None):
    """Build a ``run_command`` handler bound to a timeout and working directory."""

    def run_command(command: str) -> ToolResult:
        logger.debug("Running command: %s", command)
        try:
            proc = subprocess.run(
                command,
                shell=True,
                capture_output=True,
                text=True,
                timeout=timeout,
                cwd=cwd,
            )
        except subprocess.TimeoutExpired:
            return ToolResult(
                tool_use_id="",
                content=f"Command timed out after {timeout:g}s: {command}",
                is_error=True,
            )
        output = proc.stdout
        if proc.stderr:
            output = f"{output}\n[stderr]\n{proc.stderr}" if output else proc.stderr
        output = _truncate_output(output.strip())
        if proc.returncode != 0:
            return ToolResult(
                tool_use_id="",
                content=f"Exit code {proc.returncode}\n{output}".rstrip(),
                is_error=True,
            )
        return ToolResult(tool_use_id="", content=output or "(no output)")

    return run_command


def task_complete_tool() -> ToolDefinition:
    return ToolDefinition(
        name=TASK_COMPLETE,
        description=(
            "Call this when the user's task is fully done. Pass a short "
            "summary of what was accomplished. Ends the session."
        ),
        parameters={
            "type": "object",
            "properties": {
                "summary": {
                    "type": "string",
                    "description": "Short summary of the completed work.",
                },
            },
            "required": ["summary"],
        },
        handler=_task_complete,
    )


def run_command_tool(
    timeout: float = DEFAULT_COMMAND_TIMEOUT, cwd: str | None = None
) -> ToolDefinition:
    return ToolDefinition(
        name=RUN_COMMAND,
        description=(
            "Run a shell command in the terminal and return its output. "
            "Use this to inspect files, run programs and check results."
        ),
        parameters={
            "type": "object",
            "properties": {
                "command": {
                    "type": "string",
                    "description": "The shell command to run.",
                },
            },
            "required": ["command"],
        },
        handler=make_run_command(timeout=timeout, cwd=cwd),
        requires_validation=True,
    )


def default_tools(
    command_timeout: float = DEFAULT_COMMAND_TIMEOUT, cwd: str | None = None
) -> list[ToolDefinition]:
    """Return the built-in tool set."""
    return [
        task_complete_tool(),
        run_command_tool(timeout=command_timeout, cwd=cwd),
    ]
