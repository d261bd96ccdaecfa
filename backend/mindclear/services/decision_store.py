"""Persistence helpers for generated decisions."""
from __future__ import annotations

from typing import List, Optional, Tuple
from uuid import UUID

from sqlalchemy.orm import Session

from mindclear.db.models.decision import Decision as DecisionRow
from mindclear.db.models.task import Task
from mindclear.services.response_parser import Decision
from mindclear.services.task_service import create_tasks_for_decision, get_tasks_by_decision
from mindclear.services.user_service import get_or_create_user


def save_decision(db: Session, *, user_id: UUID, user_input: str, decision: Decision) -> DecisionRow:
    """Insert the decision and its tasks in one transaction."""
    get_or_create_user(db, user_id)
    row = DecisionRow(
        user_id=user_id,
        user_input=user_input,
        decision=decision.decision,
        reasoning=decision.reasoning,
        confidence_score=decision.confidence_score,
    )
    db.add(row)
    db.flush()
    create_tasks_for_decision(db, row.id, decision.tasks)
    db.commit()
    db.refresh(row)
    return row


def get_decision(db: Session, decision_id: UUID) -> Optional[DecisionRow]:
    return db.get(DecisionRow, decision_id)


def list_decisions_for_user(db: Session, user_id: UUID, limit: int = 10) -> List[DecisionRow]:
    return (
        db.query(DecisionRow)
        .filter(DecisionRow.user_id == user_id)
        .order_by(DecisionRow.created_at.desc())
        .limit(limit)
        .all()
    )


def recent_decisions_with_tasks(db: Session, user_id: UUID, limit: int = 5) -> List[Tuple[DecisionRow, List[Task]]]:
    return [(row, get_tasks_by_decision(db, row.id)) for row in list_decisions_for_user(db, user_id, limit)]
