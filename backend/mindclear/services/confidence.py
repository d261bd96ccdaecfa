"""Heuristic confidence scoring for generated decisions."""
from __future__ import annotations

from dataclasses import dataclass, field
import re
from typing import Any, Dict, Iterable, Optional, Sequence

FACTOR_WEIGHTS: Dict[str, float] = {
    "input_clarity": 0.2,
    "decision_specificity": 0.25,
    "task_actionability": 0.25,
    "reasoning_quality": 0.2,
    "context_availability": 0.1,
}

CLARITY_KEYWORDS = ["want", "need", "goal", "problem", "decision"]
DECISION_ACTION_VERBS = ["create", "build", "implement", "start", "focus", "prioritize"]
VAGUE_WORDS = ["maybe", "perhaps", "might", "could", "possibly"]
TASK_ACTION_VERBS = [
    "create",
    "build",
    "write",
    "set up",
    "implement",
    "design",
    "review",
    "test",
    "deploy",
    "configure",
]
CAUSAL_CONNECTIVES = ["because", "therefore", "since", "as a result", "this means"]

LEVEL_THRESHOLDS = [(0.8, "high"), (0.6, "medium"), (0.4, "low")]

FACTOR_SUGGESTIONS = {
    "input_clarity": "Try providing more specific details.",
    "decision_specificity": "The decision could be more concrete.",
    "task_actionability": "Tasks could be more specific.",
    "reasoning_quality": "Reasoning could use more justification.",
    "context_availability": "More context would help.",
}

_DIGIT_RE = re.compile(r"\d")


@dataclass
class ConfidenceResult:
    overall: float
    factors: Dict[str, float] = field(default_factory=dict)
    level: str = "very_low"

    def to_dict(self) -> Dict[str, Any]:
        return {"overall": self.overall, "factors": dict(self.factors), "level": self.level}


def score_confidence(decision: Any, *, user_input: Optional[str] = None, has_context: bool = False) -> ConfidenceResult:
    """
    Weighted blend of five factors, each in [0, 1].

    ``decision`` may be a parsed Decision or a plain mapping with ``decision``,
    ``reasoning`` and ``tasks`` keys.
    """
    factors = {
        "input_clarity": input_clarity(user_input),
        "decision_specificity": decision_specificity(_field(decision, "decision")),
        "task_actionability": task_actionability(_field(decision, "tasks") or []),
        "reasoning_quality": reasoning_quality(_field(decision, "reasoning")),
        "context_availability": context_availability(has_context),
    }
    total = sum(score * FACTOR_WEIGHTS[name] for name, score in factors.items())
    overall = _clamp(round(total, 2))
    return ConfidenceResult(overall=overall, factors=factors, level=confidence_level(overall))


def input_clarity(text: Optional[str]) -> float:
    if not text:
        return 0.5
    lowered = text.lower()
    score = 0.5
    score += 0.1 * sum(1 for threshold in (50, 100, 200) if len(text) > threshold)
    score += 0.05 * _count_present(lowered, CLARITY_KEYWORDS)
    if len(text) < 20:
        score -= 0.2
    return _clamp(score)


def decision_specificity(text: Optional[str]) -> float:
    if not text:
        return 0.0
    lowered = text.lower()
    word_count = len(text.split())
    score = 0.5
    if word_count > 5:
        score += 0.1
    if word_count > 10:
        score += 0.1
    score += 0.05 * _count_present(lowered, DECISION_ACTION_VERBS)
    score -= 0.1 * _count_present(lowered, VAGUE_WORDS)
    return _clamp(score)


def task_actionability(tasks: Sequence[Any]) -> float:
    if not tasks:
        return 0.0
    total = 0.0
    for task in tasks:
        title = _field(task, "title") or ""
        lowered = title.lower()
        task_score = 0.5
        if any(lowered.startswith(verb) for verb in TASK_ACTION_VERBS):
            task_score += 0.2
        if _DIGIT_RE.search(title):
            task_score += 0.1
        if len(title) > 10:
            task_score += 0.1
        if "etc" in lowered or "..." in lowered:
            task_score -= 0.2
        total += task_score
    return _clamp(total / len(tasks))


def reasoning_quality(text: Optional[str]) -> float:
    if not text:
        return 0.0
    lowered = text.lower()
    score = 0.5
    score += 0.1 * _count_present(lowered, CAUSAL_CONNECTIVES)
    if 10 <= len(text.split()) <= 100:
        score += 0.1
    if "aligned" in text:
        score += 0.1
    return _clamp(score)


def context_availability(has_context: bool) -> float:
    return 0.1 if has_context else 0.0


def confidence_level(score: float) -> str:
    for threshold, level in LEVEL_THRESHOLDS:
        if score >= threshold:
            return level
    return "very_low"


def format_confidence(result: ConfidenceResult) -> Dict[str, str]:
    return {
        "percentage": f"{round(result.overall * 100)}%",
        "level": result.level,
        "summary": confidence_summary(result),
    }


def confidence_summary(result: ConfidenceResult) -> str:
    if result.level == "high":
        return "Strong confidence in this recommendation."
    if result.level == "medium":
        return "Reasonable confidence. Consider validating key assumptions."
    if not result.factors:
        return "Lower confidence. Consider adding more detail."
    weakest = min(result.factors.items(), key=lambda item: item[1])[0]
    return f"Lower confidence. {FACTOR_SUGGESTIONS.get(weakest, 'Consider adding more detail.')}"


def _count_present(haystack: str, needles: Iterable[str]) -> int:
    return sum(1 for needle in needles if needle in haystack)


def _field(obj: Any, name: str) -> Any:
    if isinstance(obj, dict):
        return obj.get(name)
    return getattr(obj, name, None)


def _clamp(value: float) -> float:
    return max(0.0, min(1.0, value))
