"""In-memory session store, for tests and short-lived sessions."""

from __future__ import annotations

import threading
from typing import TYPE_CHECKING

from termagent.storage.protocols import SessionStore

if TYPE_CHECKING:
    from termagent.models.compaction import CompactionEvent
    from termagent.models.messages import Message


class InMemorySessionStore(SessionStore):
    """Dict-backed SessionStore.

    Messages are frozen, so storing list copies is enough to keep callers
    from mutating stored history.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._sessions: dict[str, list[Message]] = {}
        self._events: dict[str, list[CompactionEvent]] = {}

    def load(self, session_id: str) -> list[Message] | None:
        with self._lock:
            messages = self._sessions.get(session_id)
            return None if messages is None else list(messages)

    def save(self, session_id: str, messages: list[Message]) -> None:
        with self._lock:
            self._sessions[session_id] = list(messages)

    def list_sessions(self) -> list[str]:
        with self._lock:
            return list(self._sessions)

    def delete(self, session_id: str) -> bool:
        with self._lock:
            self._events.pop(session_id, None)
            return self._sessions.pop(session_id, None) is not None

    def record_compaction_event(self, event: CompactionEvent) -> None:
        with self._lock:
            self._events.setdefault(event.session_id, []).append(event)

    def compaction_events(self, session_id: str) -> list[CompactionEvent]:
        with self._lock:
            return list(self._events.get(session_id, []))
