from __future__ import annotations

from threading import Event

import pytest

from mindclear.core.errors import (
    PROVIDER_TIMEOUT,
    GenerationCancelledError,
    PhaseNotSupportedError,
    ProviderError,
)
from mindclear.services.phase_engine import (
    DUMP_FORBIDDEN_PATTERNS,
    ForbiddenContentValidator,
    PhaseRuleEngine,
    count_lines,
)
from mindclear.services.phase_prompts import VIOLATION_REMINDER, Phase

CLEAN_REPLY = (
    "That is a lot to hold at once.\n"
    "Work, the move and your sister all pulling at the same time.\n"
    "It makes sense that it feels heavy."
)
HISTORY = [{"role": "user", "content": "Work is chaos and we are moving next month"}]


@pytest.fixture()
def validator() -> ForbiddenContentValidator:
    return ForbiddenContentValidator(DUMP_FORBIDDEN_PATTERNS)


def test_clean_reflection_passes(validator) -> None:
    outcome = validator.check(CLEAN_REPLY)

    assert outcome.passed
    assert outcome.line_count == 3


@pytest.mark.parametrize(
    "reply, category",
    [
        ("That sounds heavy.\nHow long has it been like this?", "questions"),
        ("That sounds heavy.\nYou should take a break.", "advice"),
        ("That sounds heavy.\n- work\n- the move", "structure"),
        ("That sounds heavy.\n1. work", "structure"),
        ("That sounds heavy.\nThe first step is to rest.", "next_steps"),
    ],
)
def test_forbidden_content_is_flagged(validator, reply: str, category: str) -> None:
    outcome = validator.check(reply)

    assert not outcome.passed
    assert category in outcome.categories


def test_one_violation_per_category(validator) -> None:
    outcome = validator.check("What now?\nWhy me?\nHow so?")

    assert outcome.categories.count("questions") == 1


def test_line_count_window(validator) -> None:
    too_long = "\n".join(f"Line number {i} of the reflection." for i in range(1, 8))

    assert validator.check(too_long).categories == ["length"]
    assert validator.check("   ").categories == ["length"]
    assert count_lines("one\n\n  \ntwo") == 2


def test_clean_first_reply_is_not_regenerated(scripted_llm) -> None:
    llm = scripted_llm([CLEAN_REPLY])
    engine = PhaseRuleEngine(llm)

    response = engine.generate(Phase.DUMP, HISTORY)

    assert response.content == CLEAN_REPLY
    assert response.validation_passed is True
    assert response.regenerated is False
    assert response.attempts == 1
    assert llm.calls[0]["sampling"].temperature == 0.4
    assert llm.calls[0]["sampling"].max_tokens == 150
    assert llm.calls[0]["json_mode"] is False


def test_question_triggers_regeneration_with_reminder(scripted_llm) -> None:
    llm = scripted_llm(["That sounds heavy.\nWhat is the hardest part?", CLEAN_REPLY])
    engine = PhaseRuleEngine(llm)

    response = engine.generate(Phase.DUMP, HISTORY)

    assert response.content == CLEAN_REPLY
    assert response.validation_passed is True
    assert response.regenerated is True
    assert response.attempts == 2
    retry_messages = llm.calls[1]["messages"]
    assert retry_messages[-1] == {"role": "system", "content": VIOLATION_REMINDER}
    assert retry_messages[-2] == HISTORY[-1]


def test_attempts_are_bounded_and_last_reply_is_kept(scripted_llm) -> None:
    replies = ["Why?", "You should rest.", "- a list"]
    llm = scripted_llm(replies)
    engine = PhaseRuleEngine(llm, max_attempts=3)

    response = engine.generate(Phase.DUMP, HISTORY)

    assert len(llm.calls) == 3
    assert response.content == "- a list"
    assert response.validation_passed is False
    assert response.regenerated is True
    assert response.violations == ["structure"]
    # reminders accumulate between attempts but not after the last one
    assert [m["content"] for m in llm.calls[2]["messages"]].count(VIOLATION_REMINDER) == 2


def test_reserved_phases_are_rejected(scripted_llm) -> None:
    llm = scripted_llm([CLEAN_REPLY])
    engine = PhaseRuleEngine(llm)

    assert engine.supports(Phase.DUMP)
    assert not engine.supports(Phase.CLARITY)
    with pytest.raises(PhaseNotSupportedError) as excinfo:
        engine.generate(Phase.CLARITY, HISTORY)

    assert excinfo.value.details == {"phase": "CLARITY"}
    assert llm.calls == []


def test_provider_failure_aborts_the_loop(scripted_llm) -> None:
    llm = scripted_llm(["Why?", ProviderError(PROVIDER_TIMEOUT, "timed out")])
    engine = PhaseRuleEngine(llm)

    with pytest.raises(ProviderError) as excinfo:
        engine.generate(Phase.DUMP, HISTORY, timeout=5)

    assert excinfo.value.code == PROVIDER_TIMEOUT
    assert len(llm.calls) == 2
    assert llm.calls[0]["timeout"] == 5


def test_cancellation_stops_before_next_attempt(scripted_llm) -> None:
    cancel = Event()

    class CancellingLLM(scripted_llm):
        def complete(self, messages, sampling, *, json_mode=False, timeout=None):
            cancel.set()
            return super().complete(messages, sampling, json_mode=json_mode, timeout=timeout)

    llm = CancellingLLM(["Why?", CLEAN_REPLY])
    engine = PhaseRuleEngine(llm)

    with pytest.raises(GenerationCancelledError):
        engine.generate(Phase.DUMP, HISTORY, cancel_event=cancel)

    assert len(llm.calls) == 1


def test_cancellation_during_final_call_discards_clean_reply(scripted_llm) -> None:
    cancel = Event()

    class LateCancellingLLM(scripted_llm):
        def complete(self, messages, sampling, *, json_mode=False, timeout=None):
            reply = super().complete(messages, sampling, json_mode=json_mode, timeout=timeout)
            if len(self.calls) == 2:
                cancel.set()
            return reply

    llm = LateCancellingLLM(["Why?", CLEAN_REPLY])
    engine = PhaseRuleEngine(llm)

    with pytest.raises(GenerationCancelledError):
        engine.generate(Phase.DUMP, HISTORY, cancel_event=cancel)

    assert len(llm.calls) == 2
