"""Tool definitions, execution and validation gates for the agent loop."""

from termagent.toolkit.definitions import (
    RUN_COMMAND,
    TASK_COMPLETE,
    default_tools,
    run_command_tool,
    task_complete_tool,
)
from termagent.toolkit.executor import ToolExecutor
from termagent.toolkit.gates import (
    assess_command_risk,
    auto_approve,
    cli_prompt,
    describe_call,
    log_and_approve,
    reject_all,
    reject_high_risk,
    risk_context_for,
)
from termagent.toolkit.models import RiskContext, RiskLevel, ToolDefinition, ValidationResult
from termagent.toolkit.protocols import ToolRunner, ValidationGate

__all__ = [
    "RUN_COMMAND",
    "TASK_COMPLETE",
    "RiskContext",
    "RiskLevel",
    "ToolDefinition",
    "ToolExecutor",
    "ToolRunner",
    "ValidationGate",
    "ValidationResult",
    "assess_command_risk",
    "auto_approve",
    "cli_prompt",
    "default_tools",
    "describe_call",
    "log_and_approve",
    "reject_all",
    "reject_high_risk",
    "risk_context_for",
    "run_command_tool",
    "task_complete_tool",
]
