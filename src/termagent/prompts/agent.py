"""Prompts injected by the agent loop.

- **AGENT_SYSTEM_PREAMBLE** -- fixed rules prepended to every round's
  request: call tools directly, finish with ``task_complete``, never
  describe a call as text.
- **INVOCATION_CORRECTION** -- sent after the model wrote tool-invocation
  markup instead of making a real call.
- :func:`build_tool_result_content` -- text of the synthetic tool-result
  message appended after each round's tool execution.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from termagent.models.messages import ToolResult

AGENT_SYSTEM_PREAMBLE: str = (
    "## Agent mode\n"
    "You are a task-executing agent with access to terminal tools.\n\n"
    "### Tool rules\n"
    "1. When an action is needed, call the tool directly.\n"
    "2. After calling a tool, wait for the real result from the system.\n"
    "3. When every task is finished, call the task_complete tool.\n\n"
    "### Never\n"
    "- Describe a tool call as text (such as <invoke> or <parameter> tags).\n"
    "- Pretend a tool succeeded.\n"
    "- Answer the user before the real result arrives.\n\n"
    "Your tool calls are handled by the system automatically. Any tool "
    "result you see is a real execution result."
)

INVOCATION_CORRECTION: str = (
    "[System notice] You wrote tool-invocation markup such as <invoke> as "
    "text. That does not call a tool. Call the tool directly instead of "
    "describing the call; the system handles tool calls automatically."
)

INVOCATION_RETRY_NOTICE: str = "\n\n[System: malformed tool call detected, retrying...]\n"

# Substrings that mark tool-invocation-shaped text.
INVOCATION_MARKERS: tuple[str, ...] = ("<invoke", "<parameter", "</invoke>")


def contains_invocation_markup(text: str) -> bool:
    """True if ``text`` contains literal tool-invocation markup."""
    return any(marker in text for marker in INVOCATION_MARKERS)


def build_tool_result_content(results: list[ToolResult]) -> str:
    """Summarize a round's tool results for the follow-up model turn."""
    blocks = []
    for result in results:
        label = result.name or result.tool_use_id
        status = "failed" if result.is_error else "succeeded"
        blocks.append(f"[{label}] {status}.\nResult: {result.content}")
    body = "\n\n".join(blocks)
    return (
        f"Tools executed:\n\n{body}\n\n"
        "Check the user's original request. If any task is still unfinished, "
        "continue by calling the appropriate tools. If everything is done, "
        "summarize the results for the user."
    )
