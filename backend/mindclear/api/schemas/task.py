"""Schemas for decision tasks."""
from __future__ import annotations

from datetime import datetime
from typing import List
from uuid import UUID

from pydantic import BaseModel, Field


class TaskOut(BaseModel):
    id: UUID
    decision_id: UUID
    title: str
    priority: int
    status: str
    created_at: datetime
    updated_at: datetime


class TaskStatusRequest(BaseModel):
    status: str


class TaskPriorityRequest(BaseModel):
    priority: int = Field(..., ge=1)


class TaskPriorityResponse(BaseModel):
    task: TaskOut
    reordered_tasks: List[TaskOut]


class TaskDeleteResponse(BaseModel):
    id: UUID
    deleted: bool


class BulkStatusRequest(BaseModel):
    task_ids: List[UUID] = Field(..., min_length=1)
    status: str


class BulkStatusResponse(BaseModel):
    updated: int
    tasks: List[TaskOut]
