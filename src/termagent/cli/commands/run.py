"""termagent run -- drive one user turn through the agent loop."""

from __future__ import annotations

import click


@click.command()
@click.argument("prompt")
@click.option("--session", "session_id", default=None, help="Session to continue (new if omitted).")
@click.option("--max-rounds", type=int, default=None, help="Maximum agent rounds for this turn.")
@click.option("--model", default=None, help="Model name (overrides TERMAGENT_MODEL).")
@click.option("--yes", "auto_yes", is_flag=True, help="Approve every tool call without asking.")
@click.pass_context
def run(
    ctx: click.Context,
    prompt: str,
    session_id: str | None,
    max_rounds: int | None,
    model: str | None,
    auto_yes: bool,
) -> None:
    """Send PROMPT to the agent and stream its work.

    Commands the agent wants to run are confirmed interactively unless
    --yes is given.
    """
    from termagent.cli import _build_client, _settings, _store_session
    from termagent.cli.formatting import format_event
    from termagent.context.manager import ContextManager
    from termagent.context.summary import SummaryGenerator
    from termagent.orchestrator.config import AgentLoopConfig
    from termagent.orchestrator.loop import AgentLoop
    from termagent.session import ChatSession
    from termagent.toolkit.definitions import default_tools
    from termagent.toolkit.executor import ToolExecutor
    from termagent.toolkit.gates import auto_approve, cli_prompt

    with _store_session(ctx) as (store, console):
        settings = _settings()
        if model is not None:
            settings = settings.model_copy(update={"model": model})

        loop_config = AgentLoopConfig(model=settings.model)
        if max_rounds is not None:
            loop_config.max_rounds = max_rounds

        with _build_client(settings) as client:
            manager = ContextManager(store, SummaryGenerator(client, model=settings.model))
            loop = AgentLoop(
                client,
                ToolExecutor(default_tools()),
                validation_gate=auto_approve if auto_yes else cli_prompt,
            )
            session = ChatSession(
                store,
                manager,
                loop,
                session_id=session_id,
                settings=settings,
                loop_config=loop_config,
            )

            events = session.send(prompt)
            try:
                for event in events:
                    format_event(event, console)
            except KeyboardInterrupt:
                console.print("\n[yellow]Interrupted.[/yellow]")
            finally:
                events.close()

            if session.last_manage is not None and session.last_manage.stages:
                console.print(
                    f"[dim]Context managed: {', '.join(session.last_manage.stages)}[/dim]"
                )
            console.print(f"[dim]Session: {session.session_id}[/dim]")
