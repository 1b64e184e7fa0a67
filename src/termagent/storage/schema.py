"""SQLAlchemy ORM schema for termagent session storage.

Defines the tables: sessions, compaction_events, _termagent_meta.
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from sqlalchemy import JSON, DateTime, Float, Integer, String, Text
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from termagent.models.compaction import CompactionKind


class Base(DeclarativeBase):
    """Base class for all termagent ORM models."""

    pass


class SessionRow(Base):
    """One chat session and its full message list."""

    __tablename__ = "sessions"

    session_id: Mapped[str] = mapped_column(String(64), primary_key=True)
    messages_json: Mapped[list] = mapped_column(JSON, nullable=False)
    message_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)


class CompactionEventRow(Base):
    """Audit record of a prune/compact/truncate stage applied to a session."""

    __tablename__ = "compaction_events"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    session_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    kind: Mapped[CompactionKind] = mapped_column(nullable=False)
    tokens_saved: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    condense_id: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    details_json: Mapped[Optional[dict]] = mapped_column(JSON, nullable=True)
    timestamp: Mapped[float] = mapped_column(Float, nullable=False)


class MetaRow(Base):
    """Key-value metadata for the database itself (e.g., schema version)."""

    __tablename__ = "_termagent_meta"

    key: Mapped[str] = mapped_column(String(255), primary_key=True)
    value: Mapped[str] = mapped_column(Text, nullable=False)
