"""termagent exception hierarchy.

All termagent-specific exceptions inherit from TermAgentError.
"""


class TermAgentError(Exception):
    """Base exception for all termagent errors."""


class ConfigError(TermAgentError):
    """Raised when a configuration value is missing or inconsistent."""


class ContextError(TermAgentError):
    """Base for context-management failures."""


class SessionNotFoundError(ContextError):
    """Raised when a session id has no stored history."""

    def __init__(self, session_id: str) -> None:
        self.session_id = session_id
        super().__init__(f"Session not found: {session_id}")


class CompactionError(ContextError):
    """Raised when a compaction stage cannot run at all.

    Summary failures during compaction are NOT raised; they are reported
    through ``CompactResult.success`` instead.
    """


class SummaryError(TermAgentError):
    """Raised by the summary generator when the model call fails."""


class OrchestratorError(TermAgentError):
    """Raised when the agent loop is misconfigured or misused."""


class ToolError(TermAgentError):
    """Base for tool execution errors."""


class UnknownToolError(ToolError):
    """Raised when a tool name is not in the registry."""

    def __init__(self, tool_name: str) -> None:
        self.tool_name = tool_name
        super().__init__(f"Unknown tool: {tool_name}")


class ValidationRejectedError(ToolError):
    """Raised when the validation gate rejects a tool call.

    The agent loop converts this into an ``is_error`` ToolResult; it never
    escapes the loop.
    """

    def __init__(self, tool_name: str, reason: str) -> None:
        self.tool_name = tool_name
        self.reason = reason
        super().__init__(f"Tool call '{tool_name}' rejected: {reason}")
