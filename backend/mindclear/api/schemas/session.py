"""Schemas for thinking sessions."""
from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Optional
from uuid import UUID

from pydantic import BaseModel, Field


class SessionCreateRequest(BaseModel):
    user_id: Optional[UUID] = None


class SessionMessageRequest(BaseModel):
    content: str


class SessionMessageOut(BaseModel):
    id: UUID
    role: str
    content: str
    phase: str
    created_at: datetime
    metadata: Optional[Dict[str, Any]] = None


class SessionOut(BaseModel):
    id: UUID
    user_id: Optional[UUID]
    phase: str
    created_at: datetime
    updated_at: datetime


class SessionDetail(SessionOut):
    messages: List[SessionMessageOut] = Field(default_factory=list)


class ReplyMeta(BaseModel):
    validation_passed: bool
    regenerated: bool
    violations: List[str] = Field(default_factory=list)


class SessionReplyResponse(BaseModel):
    message: SessionMessageOut
    phase: str
    meta: ReplyMeta


class PhaseAdvanceResponse(BaseModel):
    id: UUID
    previous_phase: str
    current_phase: str


class SessionStopResponse(BaseModel):
    id: UUID
    phase: str
    message_count: int
    message: str
