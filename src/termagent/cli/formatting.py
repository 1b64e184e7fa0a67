"""Rich formatting helpers for the termagent CLI.

Provides functions that format agent events, histories and budget reports
for terminal display. Rich auto-detects TTY and degrades gracefully when
piped (no ANSI codes).
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from rich.console import Console
from rich.markup import escape
from rich.table import Table

from termagent.models.budget import Urgency

if TYPE_CHECKING:
    from termagent.models.budget import BudgetReport
    from termagent.models.compaction import CompactionEvent, ManageResult
    from termagent.models.events import AgentEvent
    from termagent.models.messages import Message

_PREVIEW_CHARS = 80

_URGENCY_STYLES = {
    Urgency.LOW: "green",
    Urgency.MEDIUM: "yellow",
    Urgency.HIGH: "bold yellow",
    Urgency.CRITICAL: "bold red",
}


def get_console() -> Console:
    """Create a Rich Console that auto-detects TTY for graceful pipe degradation."""
    return Console(stderr=False)


def _preview(text: str, limit: int = _PREVIEW_CHARS) -> str:
    flat = " ".join(text.split())
    if len(flat) > limit:
        flat = flat[: limit - 3] + "..."
    return escape(flat)


def _tags(message: Message) -> str:
    tags = []
    if message.is_summary:
        tags.append(f"summary:{(message.condense_id or '')[:8]}")
    if message.is_truncation_marker:
        tags.append(f"truncation:{(message.truncation_id or '')[:8]}")
    if message.condense_parent:
        tags.append(f"condensed->{message.condense_parent[:8]}")
    if message.truncation_parent:
        tags.append(f"truncated->{message.truncation_parent[:8]}")
    if message.tool_calls:
        tags.append(f"calls:{len(message.tool_calls)}")
    return " ".join(tags)


def format_event(event: AgentEvent, console: Console) -> None:
    """Render one agent event as it arrives."""
    if event.type == "text_delta":
        console.print(escape(event.text), end="", highlight=False)
    elif event.type == "round_start":
        console.print(f"\n[dim]-- round {event.round} --[/dim]")
    elif event.type == "tool_executing":
        console.print(f"\n[cyan]>[/cyan] {escape(event.tool_call.name)}", highlight=False)
    elif event.type == "tool_executed":
        console.print(f"  [green]ok[/green] {_preview(event.result.content)}", highlight=False)
    elif event.type == "tool_error":
        console.print(f"  [red]failed[/red] {_preview(event.result.content)}", highlight=False)
    elif event.type == "agent_complete":
        console.print(
            f"\n[bold]Done[/bold] [dim]({event.reason.value}, "
            f"{event.round_count} rounds)[/dim]"
        )
    elif event.type == "error":
        format_error(event.error, console)


def format_history(messages: list[Message], console: Console) -> None:
    """Display a message list as a table."""
    if not messages:
        console.print("[dim]No messages.[/dim]")
        return

    table = Table(show_header=True, header_style="bold", box=None, pad_edge=False)
    table.add_column("#", justify="right", style="dim")
    table.add_column("Role", style="cyan", width=9)
    table.add_column("Tags", style="yellow")
    table.add_column("Content")

    for i, message in enumerate(messages):
        table.add_row(str(i), message.role.value, _tags(message), _preview(message.content))

    console.print(table)


def format_budget(report: BudgetReport, console: Console) -> None:
    """Display a budget report."""
    style = _URGENCY_STYLES.get(report.urgency, "")
    allocation = report.allocation
    console.print(
        f"[bold]Usage:[/bold] {report.usage.total} tokens "
        f"(input {report.usage.input}, output {report.usage.output})"
    )
    console.print(
        f"[bold]Rate:[/bold] [{style}]{report.usage_rate:.1%}[/{style}] "
        f"[dim]urgency {report.urgency.value}[/dim]"
    )
    console.print(
        f"[bold]Allocation:[/bold] context {allocation.context}, reserved "
        f"{allocation.reserved}, buffer {allocation.buffer}, available {allocation.available}"
    )
    console.print(f"[bold]Remaining:[/bold] {report.remaining} tokens")
    stages = [
        name
        for name, due in (
            ("prune", report.should_prune),
            ("compact", report.should_compact),
            ("truncate", report.should_truncate),
        )
        if due
    ]
    console.print(f"[bold]Due stages:[/bold] {', '.join(stages) or 'none'}")
    for warning in report.warnings:
        console.print(f"[yellow]Warning:[/yellow] {escape(warning)}", highlight=False)


def format_manage_result(result: ManageResult, console: Console) -> None:
    """Display the outcome of a manage() run."""
    if not result.stages:
        console.print("[dim]Nothing to manage.[/dim]")
        return

    if result.prune_result is not None:
        pr = result.prune_result
        console.print(
            f"[green]Pruned[/green] {pr.parts_pruned} message(s), ~{pr.tokens_saved} tokens saved"
        )
    if result.compact_result is not None:
        cr = result.compact_result
        if cr.success and cr.condense_id:
            console.print(
                f"[green]Compacted[/green] {cr.summarized_count} message(s) into summary "
                f"[yellow]{cr.condense_id[:8]}[/yellow], ~{cr.tokens_saved} tokens saved"
            )
        elif cr.success:
            console.print("[dim]Nothing old enough to compact.[/dim]")
        else:
            console.print(f"[red]Compaction failed:[/red] {escape(cr.error or '')}", highlight=False)
    if result.truncate_result is not None:
        tr = result.truncate_result
        console.print(f"[green]Truncated[/green] {tr.messages_removed} message(s)")


def format_compaction_events(events: list[CompactionEvent], console: Console) -> None:
    """Display a session's compaction event log."""
    if not events:
        console.print("[dim]No compaction events.[/dim]")
        return

    table = Table(show_header=True, header_style="bold", box=None, pad_edge=False)
    table.add_column("Kind", style="cyan")
    table.add_column("Tokens saved", justify="right", style="green")
    table.add_column("Condense id", style="yellow")
    for event in events:
        table.add_row(event.kind.value, str(event.tokens_saved), (event.condense_id or "")[:8])
    console.print(table)


def format_error(message: str, console: Console) -> None:
    """Display an error message."""
    console.print(f"[red]Error:[/red] {escape(message)}", highlight=False)
