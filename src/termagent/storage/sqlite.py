"""SQLite implementation of the session store.

Uses SQLAlchemy 2.0-style queries (select() + session.execute()). Each
operation runs in its own short-lived Session from the factory.
"""

from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import Engine, delete, select
from sqlalchemy.orm import Session, sessionmaker

from termagent.models.compaction import CompactionEvent
from termagent.models.messages import Message
from termagent.storage.engine import create_session_factory, create_termagent_engine, init_db
from termagent.storage.protocols import SessionStore
from termagent.storage.schema import CompactionEventRow, SessionRow


def _now() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


class SqliteSessionStore(SessionStore):
    """SessionStore backed by a SQL database (SQLite by default).

    Messages are stored as one JSON list per session, in the dict form
    produced by :meth:`Message.to_dict`, so compaction tags survive a
    round trip.

    Args:
        engine: Engine to use. When omitted, one is created for *db_path*.
        db_path: SQLite file path, or ``":memory:"``.
    """

    def __init__(self, engine: Engine | None = None, *, db_path: str = ":memory:") -> None:
        self._engine = engine or create_termagent_engine(db_path)
        init_db(self._engine)
        self._session_factory: sessionmaker[Session] = create_session_factory(self._engine)

    @property
    def engine(self) -> Engine:
        return self._engine

    def close(self) -> None:
        self._engine.dispose()

    def __enter__(self) -> SqliteSessionStore:
        return self

    def __exit__(self, *args: object) -> None:
        self.close()

    # ------------------------------------------------------------------
    # Sessions
    # ------------------------------------------------------------------

    def load(self, session_id: str) -> list[Message] | None:
        with self._session_factory() as session:
            row = session.get(SessionRow, session_id)
            if row is None:
                return None
            return [Message.from_dict(d) for d in row.messages_json]

    def save(self, session_id: str, messages: list[Message]) -> None:
        payload = [m.to_dict() for m in messages]
        now = _now()
        with self._session_factory() as session:
            row = session.get(SessionRow, session_id)
            if row is None:
                session.add(
                    SessionRow(
                        session_id=session_id,
                        messages_json=payload,
                        message_count=len(payload),
                        created_at=now,
                        updated_at=now,
                    )
                )
            else:
                row.messages_json = payload
                row.message_count = len(payload)
                row.updated_at = now
            session.commit()

    def list_sessions(self) -> list[str]:
        stmt = select(SessionRow.session_id).order_by(
            SessionRow.created_at, SessionRow.session_id
        )
        with self._session_factory() as session:
            return list(session.execute(stmt).scalars())

    def delete(self, session_id: str) -> bool:
        with self._session_factory() as session:
            row = session.get(SessionRow, session_id)
            session.execute(
                delete(CompactionEventRow).where(CompactionEventRow.session_id == session_id)
            )
            if row is not None:
                session.delete(row)
            session.commit()
            return row is not None

    # ------------------------------------------------------------------
    # Compaction events
    # ------------------------------------------------------------------

    def record_compaction_event(self, event: CompactionEvent) -> None:
        with self._session_factory() as session:
            session.add(
                CompactionEventRow(
                    session_id=event.session_id,
                    kind=event.kind,
                    tokens_saved=event.tokens_saved,
                    condense_id=event.condense_id,
                    details_json=event.details or None,
                    timestamp=event.timestamp,
                )
            )
            session.commit()

    def compaction_events(self, session_id: str) -> list[CompactionEvent]:
        stmt = (
            select(CompactionEventRow)
            .where(CompactionEventRow.session_id == session_id)
            .order_by(CompactionEventRow.id)
        )
        with self._session_factory() as session:
            rows = session.execute(stmt).scalars().all()
            return [
                CompactionEvent(
                    session_id=row.session_id,
                    kind=row.kind,
                    tokens_saved=row.tokens_saved,
                    condense_id=row.condense_id,
                    timestamp=row.timestamp,
                    details=dict(row.details_json or {}),
                )
                for row in rows
            ]
