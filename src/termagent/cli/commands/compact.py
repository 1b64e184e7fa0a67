"""termagent compact -- run the context management pipeline on a session."""

from __future__ import annotations

import click

# Lowest valid threshold; makes every stage but truncation due.
_FORCE_THRESHOLD = 1e-6


@click.command()
@click.argument("session_id")
@click.option(
    "--if-needed",
    is_flag=True,
    help="Only run stages whose usage threshold has been crossed.",
)
@click.pass_context
def compact(ctx: click.Context, session_id: str, if_needed: bool) -> None:
    """Prune and compact SESSION_ID now.

    Truncation still only happens when usage stays critical after
    compaction.
    """
    from termagent.cli import _build_client, _require_messages, _settings, _store_session
    from termagent.cli.formatting import format_compaction_events, format_manage_result
    from termagent.context.manager import ContextManager
    from termagent.context.summary import SummaryGenerator

    with _store_session(ctx) as (store, console):
        _require_messages(store, session_id, console)
        settings = _settings()
        config = settings.context_config()
        if not if_needed:
            config = config.model_copy(
                update={
                    "prune_threshold": _FORCE_THRESHOLD,
                    "compact_threshold": _FORCE_THRESHOLD,
                }
            )

        with _build_client(settings) as client:
            manager = ContextManager(store, SummaryGenerator(client, model=settings.model))
            result = manager.manage(session_id, config)

        format_manage_result(result, console)
        if result.stages:
            format_compaction_events(store.compaction_events(session_id), console)
