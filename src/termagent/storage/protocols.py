"""Abstract session store interface.

No SQLAlchemy imports here -- pure abstract contract. Concrete
implementations are in memory.py and sqlite.py.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from termagent.models.compaction import CompactionEvent
    from termagent.models.messages import Message


class SessionStore(ABC):
    """Stores each session's full message list, tags included."""

    @abstractmethod
    def load(self, session_id: str) -> list[Message] | None:
        """Return the stored messages, or None if the session is unknown."""
        ...

    @abstractmethod
    def save(self, session_id: str, messages: list[Message]) -> None:
        """Replace the stored messages of a session (creating it if needed)."""
        ...

    @abstractmethod
    def list_sessions(self) -> list[str]:
        """Return all session ids, oldest first."""
        ...

    @abstractmethod
    def delete(self, session_id: str) -> bool:
        """Delete a session and its events. Returns False if it did not exist."""
        ...

    @abstractmethod
    def record_compaction_event(self, event: CompactionEvent) -> None:
        """Append an audit record for a pipeline stage."""
        ...

    @abstractmethod
    def compaction_events(self, session_id: str) -> list[CompactionEvent]:
        """Return a session's compaction events, oldest first."""
        ...
