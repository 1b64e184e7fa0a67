"""termagent sessions -- list stored sessions."""

from __future__ import annotations

import click


@click.command()
@click.option("--delete", "to_delete", default=None, help="Delete the given session instead.")
@click.pass_context
def sessions(ctx: click.Context, to_delete: str | None) -> None:
    """List stored sessions, oldest first."""
    from termagent.cli import _store_session
    from termagent.cli.formatting import format_error

    with _store_session(ctx) as (store, console):
        if to_delete is not None:
            if not store.delete(to_delete):
                format_error(f"Session not found: {to_delete}", console)
                raise SystemExit(1)
            console.print(f"Deleted session [yellow]{to_delete}[/yellow]")
            return

        ids = store.list_sessions()
        if not ids:
            console.print("[dim]No sessions.[/dim]")
            return
        for session_id in ids:
            messages = store.load(session_id) or []
            console.print(f"[yellow]{session_id}[/yellow]  [dim]{len(messages)} messages[/dim]")
