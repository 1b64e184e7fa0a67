"""termagent: a tool-using terminal agent with managed context.

A round-based agent loop streams model turns, runs the tools the model asks
for behind a validation gate and decides when to stop. A context manager
keeps each session's stored history inside the model's window by pruning,
summarizing and truncating it.
"""

from termagent._version import __version__

# Session driver
from termagent.session import ChatSession

# Messages and events
from termagent.models.messages import Message, Role, ToolCall, ToolResult, to_openai_messages
from termagent.models.events import (
    AgentCompleteEvent,
    AgentEvent,
    ErrorEvent,
    RoundEndEvent,
    RoundStartEvent,
    TextDeltaEvent,
    ToolErrorEvent,
    ToolExecutedEvent,
    ToolExecutingEvent,
    ToolUseEndEvent,
    ToolUseStartEvent,
)

# Configuration
from termagent.models.config import ContextConfig, ProviderSettings, PROVIDER_DEFAULTS
from termagent.orchestrator.config import AgentLoopConfig

# Budget, compaction and termination results
from termagent.models.budget import BudgetReport, TokenUsage, Urgency
from termagent.models.compaction import (
    CompactionEvent,
    CompactionKind,
    CompactResult,
    ManageResult,
    PruneResult,
    SummaryResult,
    TruncateResult,
)
from termagent.models.termination import (
    AgentState,
    CheckPhase,
    TerminationReason,
    TerminationResult,
)

# Protocols and token counting
from termagent.protocols import TokenCounter
from termagent.engine.tokens import (
    CharTokenCounter,
    NullTokenCounter,
    TiktokenCounter,
    estimate_tokens,
    estimate_tokens_cjk,
)

# Context management
from termagent.context.manager import ContextManager, effective_messages
from termagent.context.summary import SummaryGenerator

# Agent loop
from termagent.orchestrator.loop import AgentLoop, AgentRun

# Termination
from termagent.termination.detector import check

# Tools
from termagent.toolkit.definitions import default_tools
from termagent.toolkit.executor import ToolExecutor
from termagent.toolkit.models import RiskLevel, ToolDefinition, ValidationResult

# LLM
from termagent.llm.client import OpenAIClient

# Storage
from termagent.storage.memory import InMemorySessionStore
from termagent.storage.protocols import SessionStore
from termagent.storage.sqlite import SqliteSessionStore

# Exceptions
from termagent.exceptions import (
    CompactionError,
    ConfigError,
    ContextError,
    OrchestratorError,
    SessionNotFoundError,
    SummaryError,
    TermAgentError,
    ToolError,
    UnknownToolError,
    ValidationRejectedError,
)

__all__ = [
    "__version__",
    # Session driver
    "ChatSession",
    # Messages and events
    "Message",
    "Role",
    "ToolCall",
    "ToolResult",
    "to_openai_messages",
    "AgentCompleteEvent",
    "AgentEvent",
    "ErrorEvent",
    "RoundEndEvent",
    "RoundStartEvent",
    "TextDeltaEvent",
    "ToolErrorEvent",
    "ToolExecutedEvent",
    "ToolExecutingEvent",
    "ToolUseEndEvent",
    "ToolUseStartEvent",
    # Configuration
    "ContextConfig",
    "ProviderSettings",
    "PROVIDER_DEFAULTS",
    "AgentLoopConfig",
    # Results
    "BudgetReport",
    "TokenUsage",
    "Urgency",
    "CompactionEvent",
    "CompactionKind",
    "CompactResult",
    "ManageResult",
    "PruneResult",
    "SummaryResult",
    "TruncateResult",
    "AgentState",
    "CheckPhase",
    "TerminationReason",
    "TerminationResult",
    # Token counting
    "TokenCounter",
    "CharTokenCounter",
    "NullTokenCounter",
    "TiktokenCounter",
    "estimate_tokens",
    "estimate_tokens_cjk",
    # Context management
    "ContextManager",
    "effective_messages",
    "SummaryGenerator",
    # Agent loop
    "AgentLoop",
    "AgentRun",
    "check",
    # Tools
    "default_tools",
    "ToolExecutor",
    "RiskLevel",
    "ToolDefinition",
    "ValidationResult",
    # LLM
    "OpenAIClient",
    # Storage
    "InMemorySessionStore",
    "SessionStore",
    "SqliteSessionStore",
    # Exceptions
    "CompactionError",
    "ConfigError",
    "ContextError",
    "OrchestratorError",
    "SessionNotFoundError",
    "SummaryError",
    "TermAgentError",
    "ToolError",
    "UnknownToolError",
    "ValidationRejectedError",
]
