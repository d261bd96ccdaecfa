from __future__ import annotations

from threading import Event, Thread
from uuid import uuid4

import pytest
from sqlalchemy.exc import IntegrityError

from mindclear.core.errors import (
    PROVIDER_RATE_LIMITED,
    GenerationCancelledError,
    InputValidationError,
    NotFoundError,
    PhaseNotSupportedError,
    PhaseTransitionError,
    ProviderError,
)
from mindclear.services.phase_engine import PhaseResponse, PhaseRuleEngine
from mindclear.services.phase_prompts import Phase
from mindclear.services.session_service import CLARITY_NOT_IMPLEMENTED, SessionService
from mindclear.services.session_store import InMemorySessionStore, SessionLocks, SqlSessionStore

CLEAN_REPLY = "That is a lot to carry.\nIt makes sense that it feels heavy."


def _service(llm, store=None) -> SessionService:
    return SessionService(store or InMemorySessionStore(), PhaseRuleEngine(llm))


def test_new_session_starts_in_dump(scripted_llm) -> None:
    service = _service(scripted_llm())
    owner = uuid4()

    session = service.create_session(owner)

    assert session.current_phase == Phase.DUMP
    assert session.owner_id == owner
    assert service.get_session(session.id).messages == []


def test_post_message_appends_user_and_assistant_turns(scripted_llm) -> None:
    llm = scripted_llm([CLEAN_REPLY])
    service = _service(llm)
    session = service.create_session()

    reply = service.post_message(session.id, "  Too many things at once  ")

    assert reply.message.role == "assistant"
    assert reply.message.content == CLEAN_REPLY
    assert reply.validation_passed is True
    messages = service.get_session(session.id).messages
    assert [(m.role, m.content) for m in messages] == [("user", "Too many things at once"), ("assistant", CLEAN_REPLY)]
    assert messages[1].metadata == {"validation_passed": True, "regenerated": False, "attempts": 1, "violations": []}


def test_history_is_sent_on_later_turns(scripted_llm) -> None:
    llm = scripted_llm([CLEAN_REPLY, CLEAN_REPLY])
    service = _service(llm)
    session = service.create_session()

    service.post_message(session.id, "First thought")
    service.post_message(session.id, "Second thought")

    sent = llm.calls[1]["messages"]
    assert [m["role"] for m in sent] == ["system", "user", "assistant", "user"]
    assert sent[-1]["content"] == "Second thought"


def test_empty_content_is_rejected(scripted_llm) -> None:
    service = _service(scripted_llm())
    session = service.create_session()

    with pytest.raises(InputValidationError):
        service.post_message(session.id, "   ")


def test_unknown_session_raises_not_found(scripted_llm) -> None:
    service = _service(scripted_llm())

    with pytest.raises(NotFoundError):
        service.post_message(uuid4(), "hello there")


def test_provider_error_persists_nothing(scripted_llm) -> None:
    llm = scripted_llm([ProviderError(PROVIDER_RATE_LIMITED, "slow down")])
    service = _service(llm)
    session = service.create_session()

    with pytest.raises(ProviderError):
        service.post_message(session.id, "Everything at once")

    assert service.get_session(session.id).messages == []


def test_unvalidated_reply_is_still_saved(scripted_llm) -> None:
    llm = scripted_llm(["Why?", "Why?", "Why though?"])
    service = _service(llm)
    session = service.create_session()

    reply = service.post_message(session.id, "Everything at once")

    assert reply.validation_passed is False
    assert reply.violations == ["questions"]
    assert len(service.get_session(session.id).messages) == 2


def test_advance_from_dump_is_rejected(scripted_llm) -> None:
    service = _service(scripted_llm())
    session = service.create_session()

    with pytest.raises(PhaseNotSupportedError) as excinfo:
        service.advance_phase(session.id)

    assert excinfo.value.message == CLARITY_NOT_IMPLEMENTED
    assert service.get_session(session.id).current_phase == Phase.DUMP


def test_advance_moves_forward_and_stops_at_execution(scripted_llm) -> None:
    store = InMemorySessionStore()
    service = _service(scripted_llm(), store)
    session = service.create_session()
    store.advance_phase(session.id)

    result = service.advance_phase(session.id)
    assert (result.previous_phase, result.session.current_phase) == (Phase.CLARITY, Phase.DECISION)

    service.advance_phase(session.id)
    service.advance_phase(session.id)
    with pytest.raises(PhaseTransitionError):
        service.advance_phase(session.id)
    assert service.get_session(session.id).current_phase == Phase.EXECUTION


def test_reserved_phase_messages_are_rejected(scripted_llm) -> None:
    store = InMemorySessionStore()
    llm = scripted_llm([CLEAN_REPLY])
    service = _service(llm, store)
    session = service.create_session()
    store.advance_phase(session.id)

    with pytest.raises(PhaseNotSupportedError):
        service.post_message(session.id, "Still thinking")

    assert llm.calls == []
    assert service.get_session(session.id).messages == []


def test_stop_reports_without_changing_state(scripted_llm) -> None:
    service = _service(scripted_llm([CLEAN_REPLY]))
    session = service.create_session()
    service.post_message(session.id, "Everything at once")

    stopped = service.stop_session(session.id)

    assert stopped["message_count"] == 2
    assert stopped["phase"] == Phase.DUMP
    assert stopped["message"] == "Session saved. You can return to it anytime."


def test_concurrent_posts_do_not_interleave(scripted_llm) -> None:
    llm = scripted_llm([CLEAN_REPLY] * 4)
    service = _service(llm)
    session = service.create_session()

    threads = [Thread(target=service.post_message, args=(session.id, f"Thought {i}")) for i in range(4)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    roles = [m.role for m in service.get_session(session.id).messages]
    assert roles == ["user", "assistant"] * 4


def test_list_user_sessions_filters_by_owner(scripted_llm) -> None:
    service = _service(scripted_llm())
    owner = uuid4()
    mine = service.create_session(owner)
    service.create_session(uuid4())

    assert [s.id for s in service.list_user_sessions(owner)] == [mine.id]


def test_sql_store_keeps_message_order(scripted_llm, session_factory) -> None:
    store = SqlSessionStore(session_factory)
    service = _service(scripted_llm([CLEAN_REPLY, CLEAN_REPLY]), store)
    session = service.create_session()

    service.post_message(session.id, "First thought")
    service.post_message(session.id, "Second thought")

    loaded = service.get_session(session.id)
    assert [m.content for m in loaded.messages] == ["First thought", CLEAN_REPLY, "Second thought", CLEAN_REPLY]
    assert loaded.messages[1].metadata["attempts"] == 1
    assert loaded.current_phase == Phase.DUMP


def test_in_memory_store_clear_forgets_sessions() -> None:
    store = InMemorySessionStore()
    session = store.create()

    store.clear()

    assert store.get(session.id) is None


def test_cancel_during_in_flight_call_persists_nothing(scripted_llm) -> None:
    cancel = Event()

    class LateCancellingLLM(scripted_llm):
        def complete(self, messages, sampling, *, json_mode=False, timeout=None):
            reply = super().complete(messages, sampling, json_mode=json_mode, timeout=timeout)
            if len(self.calls) == 2:
                cancel.set()
            return reply

    service = _service(LateCancellingLLM(["Why?", CLEAN_REPLY]))
    session = service.create_session()

    with pytest.raises(GenerationCancelledError):
        service.post_message(session.id, "Everything at once", cancel_event=cancel)

    assert service.get_session(session.id).messages == []


def test_cancel_after_generation_returns_persists_nothing(scripted_llm) -> None:
    cancel = Event()

    class CancelOnReturnEngine(PhaseRuleEngine):
        def generate(self, phase, history, *, timeout=None, cancel_event=None) -> PhaseResponse:
            response = super().generate(phase, history, timeout=timeout, cancel_event=cancel_event)
            cancel.set()
            return response

    store = InMemorySessionStore()
    service = SessionService(store, CancelOnReturnEngine(scripted_llm([CLEAN_REPLY])))
    session = service.create_session()

    with pytest.raises(GenerationCancelledError):
        service.post_message(session.id, "Everything at once", cancel_event=cancel)

    assert store.get_with_messages(session.id).messages == []


def test_sql_store_creates_owner_on_first_session(session_factory) -> None:
    store = SqlSessionStore(session_factory)
    owner = uuid4()

    first = store.create(owner)
    second = store.create(owner)

    assert first.owner_id == owner
    assert {s.id for s in store.list_by_owner(owner)} == {first.id, second.id}


def test_failed_reply_insert_rolls_back_user_turn(scripted_llm, session_factory) -> None:
    class BrokenReplyStore(SqlSessionStore):
        def _new_message(self, session_id, position, role, content, phase, metadata=None):
            if role == "assistant":
                content = None
            return super()._new_message(session_id, position, role, content, phase, metadata)

    store = BrokenReplyStore(session_factory)
    service = _service(scripted_llm([CLEAN_REPLY]), store)
    session = service.create_session()

    with pytest.raises(IntegrityError):
        service.post_message(session.id, "Everything at once")

    assert store.get_with_messages(session.id).messages == []


def test_session_locks_registry_drains_after_release() -> None:
    locks = SessionLocks()

    for _ in range(1000):
        with locks.lock_for(uuid4()):
            pass

    assert len(locks) == 0


def test_session_locks_share_one_lock_while_held() -> None:
    locks = SessionLocks()
    session_id = uuid4()
    entered = Event()
    order = []

    def contender() -> None:
        entered.set()
        with locks.lock_for(session_id):
            order.append("second")

    with locks.lock_for(session_id):
        thread = Thread(target=contender)
        thread.start()
        entered.wait(timeout=1)
        order.append("first")
        assert len(locks) == 1

    thread.join(timeout=1)
    assert order == ["first", "second"]
    assert len(locks) == 0
