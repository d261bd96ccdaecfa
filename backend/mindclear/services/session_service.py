"""Thinking-session use cases: create, converse, advance, list, stop."""
from __future__ import annotations

from dataclasses import dataclass, field
import logging
from threading import Event
from typing import Any, Dict, List, Optional
from uuid import UUID

from mindclear.core.context import session_id_ctx_var
from mindclear.core.errors import (
    GenerationCancelledError,
    InputValidationError,
    NotFoundError,
    PhaseNotSupportedError,
    PhaseTransitionError,
)
from mindclear.services.phase_engine import PhaseRuleEngine
from mindclear.services.phase_prompts import Phase, can_advance
from mindclear.services.session_store import MessageRecord, SessionLocks, SessionRecord, SessionStore

logger = logging.getLogger(__name__)

CLARITY_NOT_IMPLEMENTED = "Phase 2 (CLARITY) is not yet implemented. Stay in the dump phase for now."
SESSION_SAVED_NOTE = "Session saved. You can return to it anytime."


@dataclass
class SessionReply:
    message: MessageRecord
    phase: Phase
    validation_passed: bool
    regenerated: bool
    violations: List[str] = field(default_factory=list)


@dataclass
class PhaseAdvance:
    previous_phase: Phase
    session: SessionRecord


class SessionService:
    def __init__(self, store: SessionStore, engine: PhaseRuleEngine, locks: Optional[SessionLocks] = None):
        self.store = store
        self.engine = engine
        self.locks = locks if locks is not None else SessionLocks()

    def create_session(self, owner_id: Optional[UUID] = None) -> SessionRecord:
        session = self.store.create(owner_id)
        logger.info("Created thinking session %s (owner=%s)", session.id, owner_id or "-")
        return session

    def get_session(self, session_id: UUID) -> SessionRecord:
        session = self.store.get_with_messages(session_id)
        if not session:
            raise NotFoundError("Session not found")
        return session

    def post_message(
        self,
        session_id: UUID,
        content: str,
        *,
        timeout: Optional[float] = None,
        cancel_event: Optional[Event] = None,
    ) -> SessionReply:
        """
        Generate the phase reply for ``content`` and append both turns.

        The session lock is held from load to append so two posts to the same
        session cannot interleave. Nothing is written unless generation
        completes.
        """
        content = (content or "").strip() if isinstance(content, str) else ""
        if not content:
            raise InputValidationError([{"code": "EMPTY_CONTENT", "message": "Content is required"}])

        token = session_id_ctx_var.set(str(session_id))
        try:
            with self.locks.lock_for(session_id):
                session = self.get_session(session_id)
                phase = session.current_phase
                if not self.engine.supports(phase):
                    raise PhaseNotSupportedError(phase.value)

                history = [{"role": message.role, "content": message.content} for message in session.messages]
                history.append({"role": "user", "content": content})

                response = self.engine.generate(phase, history, timeout=timeout, cancel_event=cancel_event)

                if cancel_event is not None and cancel_event.is_set():
                    raise GenerationCancelledError("Reply generation was cancelled.")

                _, saved = self.store.append_exchange(
                    session_id,
                    phase,
                    content,
                    response.content,
                    metadata={
                        "validation_passed": response.validation_passed,
                        "regenerated": response.regenerated,
                        "attempts": response.attempts,
                        "violations": response.violations,
                    },
                )
        finally:
            session_id_ctx_var.reset(token)

        if not response.validation_passed:
            logger.warning(
                "Session %s reply kept after %s attempts with violations %s",
                session_id,
                response.attempts,
                response.violations,
            )
        return SessionReply(
            message=saved,
            phase=phase,
            validation_passed=response.validation_passed,
            regenerated=response.regenerated,
            violations=response.violations,
        )

    def advance_phase(self, session_id: UUID) -> PhaseAdvance:
        with self.locks.lock_for(session_id):
            session = self.store.get(session_id)
            if not session:
                raise NotFoundError("Session not found")

            # DUMP could advance by the ordering rule, but CLARITY has no behaviour yet.
            if session.current_phase == Phase.DUMP:
                raise PhaseNotSupportedError(Phase.CLARITY.value, CLARITY_NOT_IMPLEMENTED)
            if not can_advance(session.current_phase):
                raise PhaseTransitionError("Cannot advance from current phase")

            updated = self.store.advance_phase(session_id)
            if updated is None:
                raise PhaseTransitionError("Cannot advance from current phase")

        logger.info("Session %s advanced %s -> %s", session_id, session.current_phase.value, updated.current_phase.value)
        return PhaseAdvance(previous_phase=session.current_phase, session=updated)

    def list_user_sessions(self, owner_id: UUID, limit: int = 10) -> List[SessionRecord]:
        return self.store.list_by_owner(owner_id, limit)

    def stop_session(self, session_id: UUID) -> Dict[str, Any]:
        """End the conversation for now without changing its phase."""
        session = self.get_session(session_id)
        return {
            "id": session.id,
            "phase": session.current_phase,
            "message_count": len(session.messages),
            "message": SESSION_SAVED_NOTE,
        }
