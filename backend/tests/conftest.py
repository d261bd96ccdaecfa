from __future__ import annotations

import json
from typing import Any, Dict, List, Sequence

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from mindclear.db.base import Base
import mindclear.db.models  # noqa: F401


class ScriptedLLM:
    """Returns queued replies in order; queued exceptions are raised instead."""

    model = "scripted-model"

    def __init__(self, replies: Sequence[Any] = ()):
        self.replies: List[Any] = list(replies)
        self.calls: List[Dict[str, Any]] = []

    def complete(self, messages, sampling, *, json_mode=False, timeout=None):
        self.calls.append({"messages": list(messages), "sampling": sampling, "json_mode": json_mode, "timeout": timeout})
        if not self.replies:
            raise AssertionError("LLM called more often than scripted")
        reply = self.replies.pop(0)
        if isinstance(reply, Exception):
            raise reply
        return reply


def decision_json(
    decision: str = "Focus on shipping the onboarding flow this week",
    reasoning: str = "Because onboarding blocks every other metric, it should come first",
    tasks: Sequence[Dict[str, Any]] = (
        {"title": "Write the onboarding copy for 3 screens", "priority": 1},
        {"title": "Review analytics for drop-off", "priority": 2},
    ),
) -> str:
    return json.dumps({"decision": decision, "reasoning": reasoning, "tasks": list(tasks)})


@pytest.fixture()
def scripted_llm():
    return ScriptedLLM


@pytest.fixture()
def make_decision_json():
    return decision_json


@pytest.fixture()
def session_factory():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
        future=True,
    )

    @event.listens_for(engine, "connect")
    def set_sqlite_pragma(dbapi_connection, connection_record):  # pragma: no cover - sqlite setup
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    Base.metadata.create_all(bind=engine)
    TestingSessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False, future=True)
    yield TestingSessionLocal
    engine.dispose()


@pytest.fixture()
def api(session_factory):
    """TestClient over SQLite with a scripted LLM and a fresh in-memory session store."""
    from mindclear.api.deps import get_session_store
    from mindclear.db.deps import get_db
    from mindclear.main import app
    from mindclear.services.llm_client import get_llm_client
    from mindclear.services.session_store import InMemorySessionStore

    llm = ScriptedLLM()
    store = InMemorySessionStore()

    def override_get_db():
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_llm_client] = lambda: llm
    app.dependency_overrides[get_session_store] = lambda: store
    with TestClient(app) as test_client:
        yield test_client, llm, session_factory
    app.dependency_overrides.clear()
