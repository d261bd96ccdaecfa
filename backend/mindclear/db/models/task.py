"""Task ORM model."""
from __future__ import annotations

from uuid import uuid4

from sqlalchemy import CheckConstraint, Column, DateTime, ForeignKey, Index, Integer, String, func, text as sa_text
from sqlalchemy.dialects.postgresql import UUID

from mindclear.db.base import Base

TASK_STATUSES = ("pending", "in_progress", "completed", "skipped")


class Task(Base):
    __tablename__ = "tasks"
    __table_args__ = (
        Index("ix_tasks_decision_id", "decision_id"),
        Index("ix_tasks_status", "status"),
        CheckConstraint("priority >= 1", name="valid_priority"),
        CheckConstraint(
            "status IN ('pending', 'in_progress', 'completed', 'skipped')",
            name="valid_status",
        ),
    )

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid4)
    decision_id = Column(UUID(as_uuid=True), ForeignKey("decisions.id", ondelete="CASCADE"), nullable=False)
    title = Column(String(500), nullable=False)
    priority = Column(Integer, nullable=False, server_default=sa_text("1"))
    status = Column(String(50), nullable=False, default="pending", server_default=sa_text("'pending'"))
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
        onupdate=func.now(),
    )
