"""Thinking session API routes."""
from __future__ import annotations

from typing import List
from uuid import UUID

from fastapi import APIRouter, Depends, Query, Request, status

from mindclear.api.deps import get_session_service
from mindclear.api.schemas.session import (
    PhaseAdvanceResponse,
    ReplyMeta,
    SessionCreateRequest,
    SessionDetail,
    SessionMessageOut,
    SessionMessageRequest,
    SessionOut,
    SessionReplyResponse,
    SessionStopResponse,
)
from mindclear.core.config import settings
from mindclear.observability.tracing import trace
from mindclear.services.session_service import SessionService
from mindclear.services.session_store import MessageRecord, SessionRecord

router = APIRouter()


@router.post("/session", response_model=SessionOut, status_code=status.HTTP_201_CREATED, tags=["session"])
def create_session(
    request: SessionCreateRequest,
    service: SessionService = Depends(get_session_service),
) -> SessionOut:
    """Start a conversation; every session opens in the DUMP phase."""
    return _session_out(service.create_session(request.user_id))


@router.get("/session/user/{user_id}", response_model=List[SessionOut], tags=["session"])
def list_user_sessions(
    user_id: UUID,
    limit: int = Query(10, ge=1, le=100),
    service: SessionService = Depends(get_session_service),
) -> List[SessionOut]:
    return [_session_out(session) for session in service.list_user_sessions(user_id, limit)]


@router.get("/session/{session_id}", response_model=SessionDetail, tags=["session"])
def get_session(session_id: UUID, service: SessionService = Depends(get_session_service)) -> SessionDetail:
    session = service.get_session(session_id)
    return SessionDetail(
        **_session_out(session).model_dump(),
        messages=[_message_out(message) for message in session.messages],
    )


@router.post("/session/{session_id}/message", response_model=SessionReplyResponse, tags=["session"])
def post_message(
    session_id: UUID,
    request: SessionMessageRequest,
    http_request: Request,
    service: SessionService = Depends(get_session_service),
) -> SessionReplyResponse:
    """Send a user turn and receive the phase-constrained reply."""
    request_id = getattr(http_request.state, "request_id", None)
    with trace("session.request", metadata={"route": "/session/{id}/message"}, request_id=request_id):
        reply = service.post_message(session_id, request.content, timeout=settings.llm_timeout_seconds)
    return SessionReplyResponse(
        message=_message_out(reply.message),
        phase=reply.phase.value,
        meta=ReplyMeta(
            validation_passed=reply.validation_passed,
            regenerated=reply.regenerated,
            violations=reply.violations,
        ),
    )


@router.post("/session/{session_id}/advance", response_model=PhaseAdvanceResponse, tags=["session"])
def advance_phase(session_id: UUID, service: SessionService = Depends(get_session_service)) -> PhaseAdvanceResponse:
    """Move to the next phase; only ever triggered by the user."""
    result = service.advance_phase(session_id)
    return PhaseAdvanceResponse(
        id=result.session.id,
        previous_phase=result.previous_phase.value,
        current_phase=result.session.current_phase.value,
    )


@router.post("/session/{session_id}/stop", response_model=SessionStopResponse, tags=["session"])
def stop_session(session_id: UUID, service: SessionService = Depends(get_session_service)) -> SessionStopResponse:
    stopped = service.stop_session(session_id)
    return SessionStopResponse(
        id=stopped["id"],
        phase=stopped["phase"].value,
        message_count=stopped["message_count"],
        message=stopped["message"],
    )


def _session_out(session: SessionRecord) -> SessionOut:
    return SessionOut(
        id=session.id,
        user_id=session.owner_id,
        phase=session.current_phase.value,
        created_at=session.created_at,
        updated_at=session.updated_at,
    )


def _message_out(message: MessageRecord) -> SessionMessageOut:
    return SessionMessageOut(
        id=message.id,
        role=message.role,
        content=message.content,
        phase=message.phase.value,
        created_at=message.created_at,
        metadata=message.metadata,
    )
