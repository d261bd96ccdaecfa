"""Thinking session and session message ORM models."""
from __future__ import annotations

from datetime import datetime, timezone
from uuid import uuid4

from sqlalchemy import CheckConstraint, Column, DateTime, ForeignKey, Index, Integer, String, Text, UniqueConstraint
from sqlalchemy.dialects.postgresql import UUID

from mindclear.db.base import Base
from mindclear.db.types import JSONBCompat

PHASE_CHECK = "IN ('DUMP', 'CLARITY', 'DECISION', 'PLANNING', 'EXECUTION')"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ThinkingSession(Base):
    __tablename__ = "sessions"
    __table_args__ = (
        Index("ix_sessions_user_id", "user_id"),
        Index("ix_sessions_updated_at", "updated_at"),
        CheckConstraint(f"current_phase {PHASE_CHECK}", name="valid_phase"),
    )

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid4)
    user_id = Column(UUID(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), nullable=True)
    current_phase = Column(String(20), nullable=False, default="DUMP")
    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)


class SessionMessage(Base):
    __tablename__ = "session_messages"
    __table_args__ = (
        Index("ix_session_messages_session_id", "session_id"),
        UniqueConstraint("session_id", "position", name="uq_session_messages_position"),
        CheckConstraint("role IN ('user', 'assistant', 'system')", name="valid_role"),
        CheckConstraint(f"phase {PHASE_CHECK}", name="valid_message_phase"),
    )

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid4)
    session_id = Column(UUID(as_uuid=True), ForeignKey("sessions.id", ondelete="CASCADE"), nullable=False)
    # Monotonic per session; created_at alone cannot order messages written in the same tick.
    position = Column(Integer, nullable=False)
    role = Column(String(20), nullable=False)
    content = Column(Text, nullable=False)
    phase = Column(String(20), nullable=False)
    metadata_json = Column("metadata", JSONBCompat, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)
