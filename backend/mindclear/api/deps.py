"""FastAPI dependencies wiring the decision and session services."""
from __future__ import annotations

from threading import Lock
from typing import Optional

from fastapi import Depends

from mindclear.core.config import settings
from mindclear.db.session import SessionLocal
from mindclear.services.decision_engine import DecisionEngine
from mindclear.services.llm_client import LLMClient, get_llm_client
from mindclear.services.phase_engine import PhaseRuleEngine
from mindclear.services.session_service import SessionService
from mindclear.services.session_store import InMemorySessionStore, SessionLocks, SessionStore, SqlSessionStore

_session_store: Optional[SessionStore] = None
_session_store_lock = Lock()
_session_locks = SessionLocks()


def get_decision_engine(llm: LLMClient = Depends(get_llm_client)) -> DecisionEngine:
    return DecisionEngine(llm)


def get_phase_engine(llm: LLMClient = Depends(get_llm_client)) -> PhaseRuleEngine:
    return PhaseRuleEngine(llm)


def get_session_store() -> SessionStore:
    """Process-wide store selected by ``settings.session_store``."""
    global _session_store

    with _session_store_lock:
        if _session_store is None:
            if settings.session_store == "database":
                _session_store = SqlSessionStore(SessionLocal)
            else:
                _session_store = InMemorySessionStore()
        return _session_store


def get_session_locks() -> SessionLocks:
    return _session_locks


def get_session_service(
    store: SessionStore = Depends(get_session_store),
    engine: PhaseRuleEngine = Depends(get_phase_engine),
    locks: SessionLocks = Depends(get_session_locks),
) -> SessionService:
    return SessionService(store, engine, locks)
