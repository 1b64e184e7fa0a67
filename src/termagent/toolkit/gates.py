"""Built-in validation gates and command risk assessment.

Provides ready-made gates for common approval workflows: auto_approve,
log_and_approve, cli_prompt and reject_all. Each gate receives a
human-readable description of the call and a RiskContext.
"""

from __future__ import annotations

import json
import logging
import re

from termagent.models.messages import ToolCall
from termagent.toolkit.models import RiskContext, RiskLevel, ValidationResult

logger = logging.getLogger(__name__)

# (name, pattern, level); the highest matching level wins.
_RISK_PATTERNS: tuple[tuple[str, re.Pattern[str], RiskLevel], ...] = (
    ("recursive_delete", re.compile(r"\brm\s+(-\w*[rf]\w*\s+)+"), RiskLevel.HIGH),
    ("filesystem_format", re.compile(r"\bmkfs(\.\w+)?\b"), RiskLevel.HIGH),
    ("raw_disk_write", re.compile(r"\bdd\s+if="), RiskLevel.HIGH),
    ("write_to_etc", re.compile(r">\s*/etc/"), RiskLevel.HIGH),
    ("fork_bomb", re.compile(r":\(\)\s*\{\s*:\|:&\s*\};:"), RiskLevel.HIGH),
    ("privilege_escalation", re.compile(r"\b(sudo|su)\b"), RiskLevel.MEDIUM),
    ("permission_change", re.compile(r"\b(chmod|chown)\b"), RiskLevel.MEDIUM),
    ("process_kill", re.compile(r"\b(kill|killall|pkill)\b"), RiskLevel.MEDIUM),
    ("remote_script", re.compile(r"\b(curl|wget)\b.*\|\s*(ba)?sh\b"), RiskLevel.HIGH),
    ("system_power", re.compile(r"\b(shutdown|reboot|halt)\b"), RiskLevel.HIGH),
)

_LEVEL_ORDER = {RiskLevel.LOW: 0, RiskLevel.MEDIUM: 1, RiskLevel.HIGH: 2}


def assess_command_risk(command: str) -> tuple[RiskLevel, tuple[str, ...]]:
    """Classify a shell command as low, medium or high risk.

    Returns:
        Tuple of (risk level, names of the matching patterns).
    """
    level = RiskLevel.LOW
    reasons: list[str] = []
    for name, pattern, pattern_level in _RISK_PATTERNS:
        if pattern.search(command):
            reasons.append(name)
            if _LEVEL_ORDER[pattern_level] > _LEVEL_ORDER[level]:
                level = pattern_level
    return level, tuple(reasons)


def risk_context_for(call: ToolCall) -> RiskContext:
    """Build the RiskContext for a tool call.

    Calls carrying a ``command`` string are assessed with
    :func:`assess_command_risk`; anything else is low risk.
    """
    command = call.input.get("command")
    if isinstance(command, str):
        level, reasons = assess_command_risk(command)
    else:
        level, reasons = RiskLevel.LOW, ()
    return RiskContext(
        tool_name=call.name, tool_input=call.input, risk_level=level, reasons=reasons
    )


def describe_call(call: ToolCall) -> str:
    """Human-readable one-line description of a tool call."""
    command = call.input.get("command")
    if isinstance(command, str):
        return f"{call.name}: {command}"
    return f"{call.name}({json.dumps(call.input, ensure_ascii=False)})"


# ---------------------------------------------------------------------------
# Gates
# ---------------------------------------------------------------------------


def auto_approve(description: str, risk: RiskContext) -> ValidationResult:
    """Approve every call.

    For autonomous mode where no human review is needed.
    """
    return ValidationResult(approved=True, risk_level=risk.risk_level)


def log_and_approve(description: str, risk: RiskContext) -> ValidationResult:
    """Log the call then approve it, leaving an audit trail."""
    logger.info(
        "Tool call approved: %s (risk=%s, reasons=%s)",
        description,
        risk.risk_level.value,
        ",".join(risk.reasons) or "-",
    )
    return ValidationResult(approved=True, risk_level=risk.risk_level)


def reject_all(description: str, risk: RiskContext) -> ValidationResult:
    """Reject every call.

    For testing and safety; blocks all consequential tools.
    """
    return ValidationResult(
        approved=False, reason="Auto-rejected", risk_level=risk.risk_level
    )


def reject_high_risk(description: str, risk: RiskContext) -> ValidationResult:
    """Approve low and medium risk calls, reject high risk ones."""
    if risk.risk_level == RiskLevel.HIGH:
        return ValidationResult(
            approved=False,
            reason=f"High-risk command ({', '.join(risk.reasons)})",
            risk_level=risk.risk_level,
        )
    return ValidationResult(approved=True, risk_level=risk.risk_level)


def cli_prompt(description: str, risk: RiskContext) -> ValidationResult:
    """Interactive terminal confirmation using rich and click."""
    import click
    from rich.panel import Panel

    from termagent.cli.formatting import get_console

    style = {"low": "green", "medium": "yellow", "high": "red"}[risk.risk_level.value]
    body = f"[bold]{description}[/bold]\n[{style}]Risk: {risk.risk_level.value}[/{style}]"
    if risk.reasons:
        body += f" ({', '.join(risk.reasons)})"
    get_console().print(Panel(body, title=f"Approve {risk.tool_name}?"))

    try:
        approved = click.confirm("Run this command?", default=False)
    except (EOFError, KeyboardInterrupt, click.Abort):
        return ValidationResult(
            approved=False, reason="Input closed", risk_level=risk.risk_level
        )
    if approved:
        return ValidationResult(approved=True, risk_level=risk.risk_level)
    return ValidationResult(
        approved=False, reason="Rejected by user", risk_level=risk.risk_level
    )
