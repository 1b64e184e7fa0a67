"""termagent history -- show a session's messages."""

from __future__ import annotations

import click


@click.command()
@click.argument("session_id")
@click.option("--all", "show_all", is_flag=True, help="Show the full stored history, subsumed messages included.")
@click.pass_context
def history(ctx: click.Context, session_id: str, show_all: bool) -> None:
    """Show the messages the model sees for SESSION_ID.

    By default only the effective history is shown; --all also lists
    messages replaced by summaries or truncation.
    """
    from termagent.cli import _require_messages, _settings, _store_session
    from termagent.cli.formatting import format_history
    from termagent.context.manager import effective_messages

    with _store_session(ctx) as (store, console):
        messages = _require_messages(store, session_id, console)
        if not show_all:
            config = _settings().context_config()
            messages = effective_messages(messages, config.messages_to_keep)
        format_history(messages, console)
