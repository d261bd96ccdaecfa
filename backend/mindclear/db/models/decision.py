"""Decision ORM model."""
from __future__ import annotations

from datetime import datetime, timezone
from uuid import uuid4

from sqlalchemy import Column, DateTime, Float, ForeignKey, Index, Text
from sqlalchemy.dialects.postgresql import UUID

from mindclear.db.base import Base


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Decision(Base):
    __tablename__ = "decisions"
    __table_args__ = (
        Index("ix_decisions_user_id", "user_id"),
        Index("ix_decisions_created_at", "created_at"),
    )

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid4)
    user_id = Column(UUID(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), nullable=True)
    user_input = Column(Text, nullable=False)
    decision = Column(Text, nullable=False)
    reasoning = Column(Text, nullable=True)
    confidence_score = Column(Float, nullable=True)
    # Set client-side so "most recent" ordering is stable within one second.
    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)
