"""ChatSession: one conversation driven turn by turn.

Ties together the session store, the context manager and the agent loop.
Each user turn:

1. appends the user message to the stored history and saves it,
2. derives a fresh ContextConfig from the provider settings,
3. runs the prune/compact/truncate pipeline when usage calls for it,
4. builds the effective history and starts an agent run on it,
5. forwards the run's events to the caller and, once the run ends,
   appends the messages it produced to the stored history.
"""

from __future__ import annotations

import logging
import uuid
from typing import TYPE_CHECKING

from termagent.context.manager import ContextManager
from termagent.models.config import ContextConfig, ProviderSettings
from termagent.models.messages import Message
from termagent.orchestrator.config import AgentLoopConfig
from termagent.orchestrator.loop import AgentLoop

if TYPE_CHECKING:
    from collections.abc import Iterator

    from termagent.models.compaction import ManageResult
    from termagent.models.events import AgentEvent
    from termagent.orchestrator.loop import AgentRun
    from termagent.storage.protocols import SessionStore

logger = logging.getLogger(__name__)


class ChatSession:
    """A persistent chat session with automatic context management.

    Usage::

        session = ChatSession(store, manager, loop, settings=settings)
        for event in session.send("list the files in /tmp"):
            render(event)

    Args:
        store: Where the session's full history lives.
        manager: Context manager bound to the same store.
        loop: Agent loop used for every turn.
        session_id: Existing id to resume; a new one is generated if omitted.
        settings: Provider settings used to derive the context window.
        context_config: Base budget settings; the window is taken from
            *settings* on every turn.
        loop_config: Agent loop settings for every turn.
    """

    def __init__(
        self,
        store: SessionStore,
        manager: ContextManager,
        loop: AgentLoop,
        *,
        session_id: str | None = None,
        settings: ProviderSettings | None = None,
        context_config: ContextConfig | None = None,
        loop_config: AgentLoopConfig | None = None,
    ) -> None:
        self.store = store
        self.manager = manager
        self.loop = loop
        self.session_id = session_id or uuid.uuid4().hex
        self.settings = settings or ProviderSettings()
        self.context_config = context_config or ContextConfig()
        self.loop_config = loop_config or AgentLoopConfig()
        self.last_manage: ManageResult | None = None
        self._run: AgentRun | None = None

    @property
    def messages(self) -> list[Message]:
        """The full stored history, tags included."""
        return self.store.load(self.session_id) or []

    @property
    def current_run(self) -> AgentRun | None:
        return self._run

    def config(self) -> ContextConfig:
        """Budget settings for the current request."""
        return self.settings.context_config(self.context_config)

    def send(self, text: str) -> Iterator[AgentEvent]:
        """Run one user turn, yielding the agent's events as they happen.

        The run's messages are persisted when the iterator is exhausted or
        closed early.
        """
        history = self.messages
        history.append(Message.user(text))
        self.store.save(self.session_id, history)

        config = self.config()
        self.last_manage = None
        if self.manager.should_manage(self.session_id, config):
            self.last_manage = self.manager.manage(self.session_id, config)
            logger.info(
                "Session %s context managed: %s",
                self.session_id,
                ",".join(self.last_manage.stages) or "none",
            )

        effective = self.manager.effective_history(self.session_id, config)
        run = self.loop.run(effective, self.loop_config)
        self._run = run
        try:
            yield from run
        finally:
            self._persist(run)
            self._run = None

    def cancel(self) -> None:
        """Cancel the turn in progress, if any."""
        if self._run is not None:
            self._run.cancel()

    def _persist(self, run: AgentRun) -> None:
        produced = run.new_messages
        # An iterator closed mid-round can leave tool calls with no results.
        if produced and produced[-1].tool_calls:
            produced = produced[:-1]
        if not produced:
            return
        stored = self.messages
        stored.extend(produced)
        self.store.save(self.session_id, stored)
        logger.debug(
            "Session %s stored %d new messages", self.session_id, len(produced)
        )
