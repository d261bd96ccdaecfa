"""Schemas for decision generation and history."""
from __future__ import annotations

from datetime import datetime
from typing import Dict, List, Optional
from uuid import UUID

from pydantic import BaseModel, Field


class DecisionRequest(BaseModel):
    user_input: str
    user_id: Optional[UUID] = None


class RefineRequest(BaseModel):
    feedback: str


class ClarifyRequest(BaseModel):
    original_input: str
    clarification: str


class DecisionTaskOut(BaseModel):
    title: str
    priority: int


class ConfidenceOut(BaseModel):
    overall: float
    level: str
    factors: Dict[str, float]
    percentage: str
    summary: str


class DecisionResult(BaseModel):
    id: Optional[UUID] = None
    decision: str
    reasoning: str
    tasks: List[DecisionTaskOut]
    confidence: ConfidenceOut
    persisted: bool = False
    refined_from: Optional[UUID] = None


class StoredTask(BaseModel):
    id: UUID
    title: str
    priority: int
    status: str


class DecisionSummary(BaseModel):
    id: UUID
    user_id: Optional[UUID]
    user_input: str
    decision: str
    reasoning: Optional[str]
    confidence_score: Optional[float]
    created_at: datetime


class DecisionDetail(DecisionSummary):
    tasks: List[StoredTask] = Field(default_factory=list)


class DecisionProgress(BaseModel):
    completed: int
    total: int
    percentage: int


class DecisionHistorySummary(BaseModel):
    user_id: UUID
    decisions_count: int
    themes: List[str] = Field(default_factory=list)
    progress: DecisionProgress
    summary: str
