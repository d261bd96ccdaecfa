"""Decision API routes."""
from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, Request, status
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from mindclear.api.deps import get_decision_engine
from mindclear.api.schemas.decision import (
    ClarifyRequest,
    ConfidenceOut,
    DecisionDetail,
    DecisionHistorySummary,
    DecisionProgress,
    DecisionRequest,
    DecisionResult,
    DecisionSummary,
    DecisionTaskOut,
    RefineRequest,
    StoredTask,
)
from mindclear.core.errors import InputValidationError, NotFoundError
from mindclear.db.deps import get_db
from mindclear.db.models.decision import Decision as DecisionRow
from mindclear.db.models.task import Task
from mindclear.observability.metrics import log_metric
from mindclear.observability.tracing import trace
from mindclear.services import decision_store
from mindclear.services.confidence import ConfidenceResult, format_confidence, score_confidence
from mindclear.services.context_service import get_recent_context
from mindclear.services.decision_engine import DecisionEngine
from mindclear.services.input_normalizer import detect_intent_type, normalize, validate
from mindclear.services.response_parser import Decision
from mindclear.services.summary_service import summarize_session
from mindclear.services.task_service import get_tasks_by_decision

router = APIRouter()
logger = logging.getLogger(__name__)

EMPTY_HISTORY_SUMMARY = "No decisions yet."


@router.post("/decision", response_model=DecisionResult, status_code=status.HTTP_201_CREATED, tags=["decision"])
def create_decision(
    request: DecisionRequest,
    http_request: Request,
    db: Session = Depends(get_db),
    engine: DecisionEngine = Depends(get_decision_engine),
) -> DecisionResult:
    """Turn free-form text into one decision with prioritized tasks."""
    validation = validate(request.user_input)
    if not validation.valid:
        raise InputValidationError(validation.errors)
    user_input = validation.normalized

    user_id = request.user_id
    request_id = getattr(http_request.state, "request_id", None)
    metadata: Dict[str, Any] = {
        "route": "/decision",
        "input_length": len(user_input),
        "intent": detect_intent_type(user_input),
    }

    with trace("decision.request", metadata=metadata, user_id=str(user_id) if user_id else None, request_id=request_id):
        context = get_recent_context(db, user_id) if user_id else None
        decision = engine.generate(user_input, context)
        confidence = score_confidence(decision, user_input=user_input, has_context=bool(context))
        decision = decision.model_copy(update={"confidence_score": confidence.overall})
        log_metric("decision.confidence", confidence.overall, metadata={"level": confidence.level})

        decision_id: Optional[UUID] = None
        persisted = False
        if user_id:
            try:
                row = decision_store.save_decision(db, user_id=user_id, user_input=user_input, decision=decision)
            except SQLAlchemyError as exc:
                db.rollback()
                logger.warning("Database unavailable, skipping decision persistence: %s", exc)
            else:
                decision_id = row.id
                persisted = True
            log_metric("decision.persisted", 1 if persisted else 0)

    return _decision_result(decision, confidence, decision_id=decision_id, persisted=persisted)


@router.post("/decision/clarify", response_model=DecisionResult, tags=["decision"])
def clarify_decision(
    request: ClarifyRequest,
    engine: DecisionEngine = Depends(get_decision_engine),
) -> DecisionResult:
    """Re-run generation once the user has answered a clarifying question."""
    validation = validate(request.original_input)
    if not validation.valid:
        raise InputValidationError(validation.errors)
    clarification = normalize(request.clarification)
    if not clarification:
        raise InputValidationError([{"code": "EMPTY_CLARIFICATION", "message": "Clarification is required"}])

    decision = engine.clarify(validation.normalized, clarification)
    confidence = score_confidence(decision, user_input=f"{validation.normalized} {clarification}")
    decision = decision.model_copy(update={"confidence_score": confidence.overall})
    log_metric("decision.confidence", confidence.overall, metadata={"level": confidence.level, "flow": "clarify"})
    return _decision_result(decision, confidence)


@router.get("/decision/user/{user_id}", response_model=List[DecisionSummary], tags=["decision"])
def list_user_decisions(
    user_id: UUID,
    limit: int = Query(10, ge=1, le=100),
    db: Session = Depends(get_db),
) -> List[DecisionSummary]:
    rows = decision_store.list_decisions_for_user(db, user_id, limit)
    return [_decision_summary(row) for row in rows]


@router.get("/decision/user/{user_id}/summary", response_model=DecisionHistorySummary, tags=["decision"])
def summarize_user_decisions(
    user_id: UUID,
    limit: int = Query(10, ge=1, le=100),
    db: Session = Depends(get_db),
) -> DecisionHistorySummary:
    """Themes and task progress across the user's recent decisions."""
    summary = summarize_session(decision_store.recent_decisions_with_tasks(db, user_id, limit))
    if summary is None:
        return DecisionHistorySummary(
            user_id=user_id,
            decisions_count=0,
            progress=DecisionProgress(completed=0, total=0, percentage=0),
            summary=EMPTY_HISTORY_SUMMARY,
        )
    return DecisionHistorySummary(
        user_id=user_id,
        decisions_count=summary["decisions_count"],
        themes=summary["themes"],
        progress=DecisionProgress(**summary["progress"]),
        summary=summary["summary"],
    )


@router.get("/decision/{decision_id}", response_model=DecisionDetail, tags=["decision"])
def get_decision(decision_id: UUID, db: Session = Depends(get_db)) -> DecisionDetail:
    row = _load_decision(db, decision_id)
    tasks = get_tasks_by_decision(db, row.id)
    return DecisionDetail(**_decision_summary(row).model_dump(), tasks=[_stored_task(task) for task in tasks])


@router.post("/decision/{decision_id}/refine", response_model=DecisionResult, tags=["decision"])
def refine_decision(
    decision_id: UUID,
    request: RefineRequest,
    db: Session = Depends(get_db),
    engine: DecisionEngine = Depends(get_decision_engine),
) -> DecisionResult:
    """Regenerate a stored decision with the user's feedback; the result is not saved."""
    feedback = normalize(request.feedback)
    if not feedback:
        raise InputValidationError([{"code": "EMPTY_FEEDBACK", "message": "Feedback is required"}])

    row = _load_decision(db, decision_id)
    tasks = get_tasks_by_decision(db, row.id)
    original = {
        "decision": row.decision,
        "reasoning": row.reasoning or "",
        "tasks": [{"title": task.title, "priority": task.priority} for task in tasks],
    }

    decision = engine.refine(original, feedback)
    confidence = score_confidence(decision, user_input=row.user_input, has_context=True)
    decision = decision.model_copy(update={"confidence_score": confidence.overall})
    log_metric("decision.confidence", confidence.overall, metadata={"level": confidence.level, "flow": "refine"})
    return _decision_result(decision, confidence, refined_from=row.id)


def _load_decision(db: Session, decision_id: UUID) -> DecisionRow:
    row = decision_store.get_decision(db, decision_id)
    if not row:
        raise NotFoundError("Decision not found")
    return row


def _decision_result(
    decision: Decision,
    confidence: ConfidenceResult,
    *,
    decision_id: Optional[UUID] = None,
    persisted: bool = False,
    refined_from: Optional[UUID] = None,
) -> DecisionResult:
    return DecisionResult(
        id=decision_id,
        decision=decision.decision,
        reasoning=decision.reasoning,
        tasks=[DecisionTaskOut(title=task.title, priority=task.priority) for task in decision.tasks],
        confidence=ConfidenceOut(**{**confidence.to_dict(), **format_confidence(confidence)}),
        persisted=persisted,
        refined_from=refined_from,
    )


def _decision_summary(row: DecisionRow) -> DecisionSummary:
    return DecisionSummary(
        id=row.id,
        user_id=row.user_id,
        user_input=row.user_input,
        decision=row.decision,
        reasoning=row.reasoning,
        confidence_score=row.confidence_score,
        created_at=row.created_at,
    )


def _stored_task(task: Task) -> StoredTask:
    return StoredTask(id=task.id, title=task.title, priority=task.priority, status=task.status)
