"""
Phase-governed reply generation for thinking sessions.

Each implemented phase pairs a system prompt with a validator. A reply that
breaks the phase rules is regenerated with a corrective reminder appended to the
history, up to a fixed number of attempts. When every attempt fails the last
reply is still returned, flagged as unvalidated.
"""
from __future__ import annotations

from dataclasses import dataclass, field
import logging
import re
from threading import Event
from typing import Dict, List, Mapping, Optional, Pattern, Protocol, Sequence, Tuple

from mindclear.core.config import settings
from mindclear.core.errors import GenerationCancelledError, PhaseNotSupportedError
from mindclear.observability.metrics import log_metric
from mindclear.observability.tracing import annotate, trace
from mindclear.services.llm_client import LLMClient
from mindclear.services.phase_prompts import (
    VIOLATION_REMINDER,
    Phase,
    build_phase_messages,
    get_phase_definition,
)

logger = logging.getLogger(__name__)

DEFAULT_MAX_ATTEMPTS = 3


@dataclass
class Violation:
    category: str
    pattern: str


@dataclass
class ValidationOutcome:
    violations: List[Violation] = field(default_factory=list)
    line_count: int = 0

    @property
    def passed(self) -> bool:
        return not self.violations

    @property
    def categories(self) -> List[str]:
        return [violation.category for violation in self.violations]


class PhaseValidator(Protocol):
    def check(self, content: str) -> ValidationOutcome:
        ...


DUMP_FORBIDDEN_PATTERNS: Dict[str, List[Pattern[str]]] = {
    "questions": [
        re.compile(r"\?$", re.MULTILINE),
        re.compile(
            r"^(what|how|why|when|where|who|would|could|can|do|does|have|has|are|is)\s",
            re.IGNORECASE | re.MULTILINE,
        ),
    ],
    "advice": [
        re.compile(
            r"\b(you should|you could|try to|consider|i suggest|i recommend|maybe you|perhaps you)\b",
            re.IGNORECASE,
        ),
        re.compile(r"\b(why don't you|what if you|have you tried)\b", re.IGNORECASE),
    ],
    "structure": [
        re.compile(r"^\s*[-•*]\s", re.MULTILINE),
        re.compile(r"^\s*\d+\.\s", re.MULTILINE),
        re.compile(r"^#{1,6}\s", re.MULTILINE),
    ],
    "next_steps": [
        re.compile(r"\b(next step|first step|start by|begin with|action item)\b", re.IGNORECASE),
        re.compile(r"\b(to-do|todo|task|plan)\b", re.IGNORECASE),
    ],
}


class ForbiddenContentValidator:
    """Regex policy: at most one violation per category plus a line-count window."""

    def __init__(
        self,
        patterns: Mapping[str, Sequence[Pattern[str]]],
        *,
        min_lines: int = 1,
        max_lines: int = 6,
    ):
        self.patterns = patterns
        self.min_lines = min_lines
        self.max_lines = max_lines

    def check(self, content: str) -> ValidationOutcome:
        violations: List[Violation] = []
        for category, patterns in self.patterns.items():
            for pattern in patterns:
                if pattern.search(content):
                    violations.append(Violation(category=category, pattern=pattern.pattern))
                    break

        line_count = count_lines(content)
        if not self.min_lines <= line_count <= self.max_lines:
            violations.append(Violation(category="length", pattern=f"{self.min_lines}-{self.max_lines} lines"))
        return ValidationOutcome(violations=violations, line_count=line_count)


def count_lines(content: str) -> int:
    return sum(1 for line in content.strip().split("\n") if line.strip())


def default_validators() -> Dict[Phase, PhaseValidator]:
    return {Phase.DUMP: ForbiddenContentValidator(DUMP_FORBIDDEN_PATTERNS)}


@dataclass
class PhaseResponse:
    content: str
    validation_passed: bool
    regenerated: bool
    attempts: int
    violations: List[str] = field(default_factory=list)


class PhaseRuleEngine:
    """Generates a reply for the active phase and enforces its rules."""

    def __init__(
        self,
        llm: LLMClient,
        validators: Optional[Mapping[Phase, PhaseValidator]] = None,
        *,
        max_attempts: Optional[int] = None,
    ):
        self.llm = llm
        self.validators = dict(validators) if validators is not None else default_validators()
        self.max_attempts = max(1, max_attempts or settings.phase_max_attempts or DEFAULT_MAX_ATTEMPTS)

    def supports(self, phase: Phase | str) -> bool:
        phase = Phase(phase)
        return get_phase_definition(phase).implemented and phase in self.validators

    def generate(
        self,
        phase: Phase | str,
        history: Sequence[Mapping[str, str]],
        *,
        timeout: Optional[float] = None,
        cancel_event: Optional[Event] = None,
    ) -> PhaseResponse:
        """
        Produce a reply for ``history`` (which already ends with the new user turn).

        Raises PhaseNotSupportedError for reserved phases, ProviderError when the
        model call fails and GenerationCancelledError when ``cancel_event`` is set
        before an attempt or while the last one was in flight.
        """
        phase = Phase(phase)
        if not self.supports(phase):
            raise PhaseNotSupportedError(phase.value)

        definition = get_phase_definition(phase)
        validator = self.validators[phase]
        attempt_history: List[Mapping[str, str]] = list(history)
        content = ""
        outcome = ValidationOutcome()

        with trace("session.message", metadata={"phase": phase.value, "history_length": len(history)}) as span:
            for attempt in range(1, self.max_attempts + 1):
                if cancel_event is not None and cancel_event.is_set():
                    raise GenerationCancelledError("Reply generation was cancelled.")

                content, outcome = self._attempt(phase, definition.sampling, attempt_history, validator, attempt, timeout)
                if outcome.passed:
                    break

                logger.warning(
                    "Phase %s violation on attempt %s/%s: categories=%s lines=%s",
                    phase.value,
                    attempt,
                    self.max_attempts,
                    outcome.categories,
                    outcome.line_count,
                )
                if attempt < self.max_attempts:
                    attempt_history.append({"role": "system", "content": VIOLATION_REMINDER})

            if cancel_event is not None and cancel_event.is_set():
                raise GenerationCancelledError("Reply generation was cancelled.")

            annotate(span, phase=phase.value, attempts=attempt, validation_passed=outcome.passed)

        log_metric("session.phase.attempts", attempt, metadata={"phase": phase.value})
        log_metric("session.phase.validation_passed", 1 if outcome.passed else 0, metadata={"phase": phase.value})

        return PhaseResponse(
            content=content,
            validation_passed=outcome.passed,
            regenerated=attempt > 1,
            attempts=attempt,
            violations=outcome.categories,
        )

    def _attempt(
        self,
        phase: Phase,
        sampling,
        history: Sequence[Mapping[str, str]],
        validator: PhaseValidator,
        attempt: int,
        timeout: Optional[float],
    ) -> Tuple[str, ValidationOutcome]:
        with trace("session.phase_attempt", metadata={"phase": phase.value, "attempt": attempt}) as span:
            messages = build_phase_messages(phase, history)
            content = self.llm.complete(messages, sampling, timeout=timeout).strip()
            outcome = validator.check(content)
            annotate(span, phase=phase.value, attempt=attempt, violations=outcome.categories)
        return content, outcome
