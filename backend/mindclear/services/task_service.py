"""Persistence helpers for decision tasks."""
from __future__ import annotations

from typing import List, Optional, Sequence
from uuid import UUID

from sqlalchemy.orm import Session

from mindclear.db.models.decision import Decision
from mindclear.db.models.task import TASK_STATUSES, Task
from mindclear.services.priority_service import reorder_on_manual_change
from mindclear.services.response_parser import DecisionTask


def create_tasks_for_decision(db: Session, decision_id: UUID, tasks: Sequence[DecisionTask]) -> List[Task]:
    rows = [Task(decision_id=decision_id, title=task.title, priority=task.priority, status="pending") for task in tasks]
    db.add_all(rows)
    db.flush()
    return rows


def get_task(db: Session, task_id: UUID) -> Optional[Task]:
    return db.get(Task, task_id)


def get_tasks_by_decision(db: Session, decision_id: UUID) -> List[Task]:
    return (
        db.query(Task)
        .filter(Task.decision_id == decision_id)
        .order_by(Task.priority.asc(), Task.created_at.asc())
        .all()
    )


def get_pending_tasks_for_user(db: Session, user_id: UUID) -> List[Task]:
    return (
        db.query(Task)
        .join(Decision, Decision.id == Task.decision_id)
        .filter(Decision.user_id == user_id, Task.status == "pending")
        .order_by(Task.priority.asc())
        .all()
    )


def update_status(db: Session, task: Task, status: str) -> Task:
    if status not in TASK_STATUSES:
        raise ValueError(f"Invalid status {status!r}")
    task.status = status
    db.add(task)
    return task


def update_priority(db: Session, task: Task, new_priority: int) -> List[Task]:
    """Move ``task`` to ``new_priority`` and renumber its siblings; returns them in order."""
    siblings = get_tasks_by_decision(db, task.decision_id)
    by_id = {sibling.id: sibling for sibling in siblings}
    reordered = reorder_on_manual_change(
        [{"id": sibling.id, "priority": sibling.priority} for sibling in siblings],
        task.id,
        new_priority,
    )
    for entry in reordered:
        by_id[entry["id"]].priority = entry["priority"]
    db.flush()
    return [by_id[entry["id"]] for entry in reordered]


def delete_task(db: Session, task: Task) -> None:
    db.delete(task)
    db.flush()


def bulk_update_status(db: Session, task_ids: Sequence[UUID], status: str) -> List[Task]:
    updated: List[Task] = []
    for task_id in task_ids:
        task = db.get(Task, task_id)
        if not task:
            continue
        updated.append(update_status(db, task, status))
    db.flush()
    return updated
