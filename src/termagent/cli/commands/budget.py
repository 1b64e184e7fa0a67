"""termagent budget -- show a session's token budget."""

from __future__ import annotations

import click


@click.command()
@click.argument("session_id")
@click.pass_context
def budget(ctx: click.Context, session_id: str) -> None:
    """Show token usage, allocation and urgency for SESSION_ID."""
    from termagent.cli import _require_messages, _settings, _store_session
    from termagent.cli.formatting import format_budget
    from termagent.context.manager import ContextManager

    with _store_session(ctx) as (store, console):
        messages = _require_messages(store, session_id, console)
        report = ContextManager(store).budget(messages, _settings().context_config())
        format_budget(report, console)
