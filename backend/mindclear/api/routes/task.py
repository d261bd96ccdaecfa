"""Task API routes."""
from __future__ import annotations

from typing import List
from uuid import UUID

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from mindclear.api.schemas.task import (
    BulkStatusRequest,
    BulkStatusResponse,
    TaskDeleteResponse,
    TaskOut,
    TaskPriorityRequest,
    TaskPriorityResponse,
    TaskStatusRequest,
)
from mindclear.core.errors import InputValidationError, NotFoundError
from mindclear.db.deps import get_db
from mindclear.db.models.task import TASK_STATUSES, Task
from mindclear.services import task_service

router = APIRouter()


@router.post("/task/bulk-status", response_model=BulkStatusResponse, tags=["task"])
def bulk_update_status(request: BulkStatusRequest, db: Session = Depends(get_db)) -> BulkStatusResponse:
    """Set one status on many tasks; unknown ids are skipped."""
    _check_status(request.status)
    updated = task_service.bulk_update_status(db, request.task_ids, request.status)
    db.commit()
    for task in updated:
        db.refresh(task)
    return BulkStatusResponse(updated=len(updated), tasks=[_task_out(task) for task in updated])


@router.get("/task/decision/{decision_id}", response_model=List[TaskOut], tags=["task"])
def list_decision_tasks(decision_id: UUID, db: Session = Depends(get_db)) -> List[TaskOut]:
    return [_task_out(task) for task in task_service.get_tasks_by_decision(db, decision_id)]


@router.get("/task/user/{user_id}/pending", response_model=List[TaskOut], tags=["task"])
def list_pending_tasks(user_id: UUID, db: Session = Depends(get_db)) -> List[TaskOut]:
    return [_task_out(task) for task in task_service.get_pending_tasks_for_user(db, user_id)]


@router.get("/task/{task_id}", response_model=TaskOut, tags=["task"])
def get_task(task_id: UUID, db: Session = Depends(get_db)) -> TaskOut:
    return _task_out(_load_task(db, task_id))


@router.patch("/task/{task_id}/status", response_model=TaskOut, tags=["task"])
def update_task_status(task_id: UUID, request: TaskStatusRequest, db: Session = Depends(get_db)) -> TaskOut:
    _check_status(request.status)
    task = _load_task(db, task_id)
    task_service.update_status(db, task, request.status)
    db.commit()
    db.refresh(task)
    return _task_out(task)


@router.patch("/task/{task_id}/priority", response_model=TaskPriorityResponse, tags=["task"])
def update_task_priority(task_id: UUID, request: TaskPriorityRequest, db: Session = Depends(get_db)) -> TaskPriorityResponse:
    """Move a task within its decision; siblings are renumbered densely."""
    task = _load_task(db, task_id)
    reordered = task_service.update_priority(db, task, request.priority)
    db.commit()
    for sibling in reordered:
        db.refresh(sibling)
    return TaskPriorityResponse(task=_task_out(task), reordered_tasks=[_task_out(sibling) for sibling in reordered])


@router.delete("/task/{task_id}", response_model=TaskDeleteResponse, tags=["task"])
def delete_task(task_id: UUID, db: Session = Depends(get_db)) -> TaskDeleteResponse:
    task = _load_task(db, task_id)
    task_service.delete_task(db, task)
    db.commit()
    return TaskDeleteResponse(id=task_id, deleted=True)


def _load_task(db: Session, task_id: UUID) -> Task:
    task = task_service.get_task(db, task_id)
    if not task:
        raise NotFoundError("Task not found")
    return task


def _check_status(value: str) -> None:
    if value not in TASK_STATUSES:
        raise InputValidationError(
            [{"code": "INVALID_STATUS", "message": f"Invalid status. Must be one of: {', '.join(TASK_STATUSES)}"}]
        )


def _task_out(task: Task) -> TaskOut:
    return TaskOut(
        id=task.id,
        decision_id=task.decision_id,
        title=task.title,
        priority=task.priority,
        status=task.status,
        created_at=task.created_at,
        updated_at=task.updated_at,
    )
