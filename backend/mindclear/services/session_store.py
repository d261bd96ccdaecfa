"""Storage for thinking sessions and their message logs."""
from __future__ import annotations

from collections import defaultdict
from contextlib import contextmanager
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from threading import Lock
from typing import Any, Callable, Dict, Iterator, List, Optional, Protocol, Tuple
from uuid import UUID, uuid4

from sqlalchemy import func
from sqlalchemy.orm import Session

from mindclear.core.errors import NotFoundError
from mindclear.db.models.thinking_session import SessionMessage, ThinkingSession
from mindclear.services.phase_prompts import INITIAL_PHASE, Phase, next_phase
from mindclear.services.user_service import get_or_create_user


@dataclass
class MessageRecord:
    id: UUID
    session_id: UUID
    role: str
    content: str
    phase: Phase
    created_at: datetime
    metadata: Optional[Dict[str, Any]] = None


@dataclass
class SessionRecord:
    id: UUID
    owner_id: Optional[UUID]
    current_phase: Phase
    created_at: datetime
    updated_at: datetime
    messages: List[MessageRecord] = field(default_factory=list)


class SessionStore(Protocol):
    def create(self, owner_id: Optional[UUID] = None) -> SessionRecord:
        ...

    def get(self, session_id: UUID) -> Optional[SessionRecord]:
        ...

    def get_with_messages(self, session_id: UUID) -> Optional[SessionRecord]:
        ...

    def append_message(
        self,
        session_id: UUID,
        role: str,
        content: str,
        phase: Phase,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> MessageRecord:
        ...

    def append_exchange(
        self,
        session_id: UUID,
        phase: Phase,
        user_content: str,
        assistant_content: str,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> Tuple[MessageRecord, MessageRecord]:
        """Append a user turn and its reply together; neither is stored if either fails."""
        ...

    def advance_phase(self, session_id: UUID) -> Optional[SessionRecord]:
        """Move to the next phase; None when already terminal."""
        ...

    def list_by_owner(self, owner_id: UUID, limit: int = 10) -> List[SessionRecord]:
        ...


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class InMemorySessionStore:
    """Dict-backed store; create one per app (or per test) and pass it around."""

    def __init__(self) -> None:
        self._sessions: Dict[UUID, SessionRecord] = {}
        self._messages: Dict[UUID, List[MessageRecord]] = defaultdict(list)
        self._lock = Lock()

    def create(self, owner_id: Optional[UUID] = None) -> SessionRecord:
        now = _utcnow()
        record = SessionRecord(id=uuid4(), owner_id=owner_id, current_phase=INITIAL_PHASE, created_at=now, updated_at=now)
        with self._lock:
            self._sessions[record.id] = record
            self._messages[record.id] = []
        return replace(record)

    def get(self, session_id: UUID) -> Optional[SessionRecord]:
        with self._lock:
            record = self._sessions.get(session_id)
            return replace(record, messages=[]) if record else None

    def get_with_messages(self, session_id: UUID) -> Optional[SessionRecord]:
        with self._lock:
            record = self._sessions.get(session_id)
            if not record:
                return None
            return replace(record, messages=[replace(message) for message in self._messages[session_id]])

    def append_message(
        self,
        session_id: UUID,
        role: str,
        content: str,
        phase: Phase,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> MessageRecord:
        with self._lock:
            record = self._sessions.get(session_id)
            if not record:
                raise NotFoundError("Session not found")
            message = _new_record(session_id, role, content, phase, metadata)
            self._messages[session_id].append(message)
            record.updated_at = message.created_at
            return replace(message)

    def append_exchange(
        self,
        session_id: UUID,
        phase: Phase,
        user_content: str,
        assistant_content: str,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> Tuple[MessageRecord, MessageRecord]:
        with self._lock:
            record = self._sessions.get(session_id)
            if not record:
                raise NotFoundError("Session not found")
            user_message = _new_record(session_id, "user", user_content, phase)
            reply = _new_record(session_id, "assistant", assistant_content, phase, metadata)
            self._messages[session_id].extend([user_message, reply])
            record.updated_at = reply.created_at
            return replace(user_message), replace(reply)

    def advance_phase(self, session_id: UUID) -> Optional[SessionRecord]:
        with self._lock:
            record = self._sessions.get(session_id)
            if not record:
                raise NotFoundError("Session not found")
            upcoming = next_phase(record.current_phase)
            if upcoming is None:
                return None
            record.current_phase = upcoming
            record.updated_at = _utcnow()
            return replace(record, messages=[])

    def list_by_owner(self, owner_id: UUID, limit: int = 10) -> List[SessionRecord]:
        with self._lock:
            owned = [record for record in self._sessions.values() if record.owner_id == owner_id]
        owned.sort(key=lambda record: record.updated_at, reverse=True)
        return [replace(record, messages=[]) for record in owned[:limit]]

    def clear(self) -> None:
        with self._lock:
            self._sessions.clear()
            self._messages.clear()


class SqlSessionStore:
    """SQLAlchemy-backed store; every call runs in its own short transaction."""

    def __init__(self, session_factory: Callable[[], Session]):
        self.session_factory = session_factory

    def create(self, owner_id: Optional[UUID] = None) -> SessionRecord:
        with self.session_factory() as db:
            if owner_id is not None:
                get_or_create_user(db, owner_id)
            row = ThinkingSession(user_id=owner_id, current_phase=INITIAL_PHASE.value)
            db.add(row)
            db.commit()
            db.refresh(row)
            return _session_record(row)

    def get(self, session_id: UUID) -> Optional[SessionRecord]:
        with self.session_factory() as db:
            row = db.get(ThinkingSession, session_id)
            return _session_record(row) if row else None

    def get_with_messages(self, session_id: UUID) -> Optional[SessionRecord]:
        with self.session_factory() as db:
            row = db.get(ThinkingSession, session_id)
            if not row:
                return None
            messages = (
                db.query(SessionMessage)
                .filter(SessionMessage.session_id == session_id)
                .order_by(SessionMessage.position.asc())
                .all()
            )
            return _session_record(row, [_message_record(message) for message in messages])

    def append_message(
        self,
        session_id: UUID,
        role: str,
        content: str,
        phase: Phase,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> MessageRecord:
        with self.session_factory() as db:
            row = db.get(ThinkingSession, session_id)
            if not row:
                raise NotFoundError("Session not found")
            position = self._last_position(db, session_id) + 1
            message = self._new_message(session_id, position, role, content, phase, metadata)
            db.add(message)
            row.updated_at = message.created_at
            db.commit()
            db.refresh(message)
            return _message_record(message)

    def append_exchange(
        self,
        session_id: UUID,
        phase: Phase,
        user_content: str,
        assistant_content: str,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> Tuple[MessageRecord, MessageRecord]:
        with self.session_factory() as db:
            row = db.get(ThinkingSession, session_id)
            if not row:
                raise NotFoundError("Session not found")
            position = self._last_position(db, session_id)
            user_message = self._new_message(session_id, position + 1, "user", user_content, phase)
            reply = self._new_message(session_id, position + 2, "assistant", assistant_content, phase, metadata)
            db.add_all([user_message, reply])
            row.updated_at = reply.created_at
            db.commit()
            db.refresh(user_message)
            db.refresh(reply)
            return _message_record(user_message), _message_record(reply)

    @staticmethod
    def _last_position(db: Session, session_id: UUID) -> int:
        last = db.query(func.max(SessionMessage.position)).filter(SessionMessage.session_id == session_id).scalar()
        return last or 0

    def _new_message(
        self,
        session_id: UUID,
        position: int,
        role: str,
        content: str,
        phase: Phase,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> SessionMessage:
        return SessionMessage(
            session_id=session_id,
            position=position,
            role=role,
            content=content,
            phase=Phase(phase).value,
            metadata_json=metadata,
            created_at=_utcnow(),
        )

    def advance_phase(self, session_id: UUID) -> Optional[SessionRecord]:
        with self.session_factory() as db:
            row = db.get(ThinkingSession, session_id)
            if not row:
                raise NotFoundError("Session not found")
            upcoming = next_phase(row.current_phase)
            if upcoming is None:
                return None
            row.current_phase = upcoming.value
            row.updated_at = _utcnow()
            db.commit()
            db.refresh(row)
            return _session_record(row)

    def list_by_owner(self, owner_id: UUID, limit: int = 10) -> List[SessionRecord]:
        with self.session_factory() as db:
            rows = (
                db.query(ThinkingSession)
                .filter(ThinkingSession.user_id == owner_id)
                .order_by(ThinkingSession.updated_at.desc())
                .limit(limit)
                .all()
            )
            return [_session_record(row) for row in rows]


def _session_record(row: ThinkingSession, messages: Optional[List[MessageRecord]] = None) -> SessionRecord:
    return SessionRecord(
        id=row.id,
        owner_id=row.user_id,
        current_phase=Phase(row.current_phase),
        created_at=row.created_at,
        updated_at=row.updated_at,
        messages=messages or [],
    )


def _message_record(row: SessionMessage) -> MessageRecord:
    return MessageRecord(
        id=row.id,
        session_id=row.session_id,
        role=row.role,
        content=row.content,
        phase=Phase(row.phase),
        created_at=row.created_at,
        metadata=row.metadata_json,
    )


def _new_record(
    session_id: UUID,
    role: str,
    content: str,
    phase: Phase,
    metadata: Optional[Dict[str, Any]] = None,
) -> MessageRecord:
    return MessageRecord(
        id=uuid4(),
        session_id=session_id,
        role=role,
        content=content,
        phase=Phase(phase),
        created_at=_utcnow(),
        metadata=dict(metadata) if metadata else None,
    )


class SessionLocks:
    """One lock per session id so appends for a session never interleave.

    An entry lives only while some caller holds or waits on it, so the
    registry stays as small as the number of sessions in flight.
    """

    def __init__(self) -> None:
        self._locks: Dict[UUID, Lock] = {}
        self._waiters: Dict[UUID, int] = {}
        self._guard = Lock()

    @contextmanager
    def lock_for(self, session_id: UUID) -> Iterator[None]:
        with self._guard:
            lock = self._locks.setdefault(session_id, Lock())
            self._waiters[session_id] = self._waiters.get(session_id, 0) + 1
        try:
            with lock:
                yield
        finally:
            with self._guard:
                self._waiters[session_id] -= 1
                if not self._waiters[session_id]:
                    del self._waiters[session_id]
                    del self._locks[session_id]

    def __len__(self) -> int:
        with self._guard:
            return len(self._locks)
