"""termagent CLI -- terminal interface for persistent agent sessions.

This module is NEVER imported from termagent/__init__.py.
It is only loaded via the ``termagent`` entry point defined in pyproject.toml.
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import TYPE_CHECKING

try:
    import click
except ImportError:
    raise ImportError(
        "CLI dependencies not installed. Install with: pip install termagent[cli]"
    ) from None

from termagent.cli.formatting import format_error, get_console

if TYPE_CHECKING:
    from collections.abc import Iterator

    from rich.console import Console

    from termagent.llm.client import OpenAIClient
    from termagent.models.config import ProviderSettings
    from termagent.storage.sqlite import SqliteSessionStore


@click.group()
@click.option(
    "--db",
    default=".termagent.db",
    envvar="TERMAGENT_DB",
    help="Path to the session database.",
)
@click.option("-v", "--verbose", is_flag=True, help="Enable debug logging.")
@click.pass_context
def cli(ctx: click.Context, db: str, verbose: bool) -> None:
    """termagent: a tool-using terminal agent with persistent sessions."""
    ctx.ensure_object(dict)
    ctx.obj["db_path"] = db
    _configure_logging(verbose)


def _configure_logging(verbose: bool) -> None:
    from rich.logging import RichHandler

    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=get_console(), show_path=False)],
        force=True,
    )


def _settings() -> ProviderSettings:
    from termagent.models.config import ProviderSettings

    return ProviderSettings.from_env()


def _open_store(ctx: click.Context) -> SqliteSessionStore:
    from termagent.storage.sqlite import SqliteSessionStore

    return SqliteSessionStore(db_path=ctx.obj["db_path"])


def _build_client(settings: ProviderSettings) -> OpenAIClient:
    from termagent.llm.client import OpenAIClient

    return OpenAIClient(
        api_key=settings.api_key,
        base_url=settings.base_url,
        default_model=settings.model,
    )


@contextmanager
def _store_session(ctx: click.Context) -> Iterator[tuple[SqliteSessionStore, Console]]:
    """Context manager that opens the store, yields (store, console), and handles cleanup.

    Ensures the store is closed on exit and formats exceptions as CLI errors.
    """
    console = get_console()
    try:
        store = _open_store(ctx)
        try:
            yield store, console
        finally:
            store.close()
    except SystemExit:
        raise
    except Exception as e:
        format_error(str(e), console)
        raise SystemExit(1) from None


def _require_messages(store: SqliteSessionStore, session_id: str, console: Console) -> list:
    messages = store.load(session_id)
    if messages is None:
        format_error(f"Session not found: {session_id}", console)
        raise SystemExit(1)
    return messages


# Register subcommands after cli group is defined
from termagent.cli.commands.run import run  # noqa: E402
from termagent.cli.commands.history import history  # noqa: E402
from termagent.cli.commands.budget import budget  # noqa: E402
from termagent.cli.commands.compact import compact  # noqa: E402
from termagent.cli.commands.sessions import sessions  # noqa: E402

cli.add_command(run)
cli.add_command(history)
cli.add_command(budget)
cli.add_command(compact)
cli.add_command(sessions)
