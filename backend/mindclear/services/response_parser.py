"""Turn raw LLM JSON into a validated decision with dense task priorities."""
from __future__ import annotations

import json
import math
import re
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from mindclear.core.errors import MALFORMED_JSON, SCHEMA_VIOLATION, ResponseSchemaError

ALIGNMENT_SUFFIX = "Are we aligned, or should we challenge this before moving on?"
MAX_TASKS = 5

_TRAILING_PUNCTUATION_RE = re.compile(r"[.!?]$")

HIGH_CONFIDENCE_WORDS = ["clearly", "definitely", "certainly", "obviously", "must"]
LOW_CONFIDENCE_WORDS = ["maybe", "perhaps", "possibly", "might", "could"]


class DecisionTask(BaseModel):
    """A single action inside a decision; priority is relative to its siblings."""

    title: str = Field(..., min_length=1)
    priority: int = Field(..., ge=1)


class Decision(BaseModel):
    decision: str
    reasoning: str
    tasks: List[DecisionTask] = Field(..., min_length=1, max_length=MAX_TASKS)
    confidence_score: Optional[float] = Field(default=None, ge=0, le=1)


def parse_decision_response(raw_response: str) -> Decision:
    try:
        data = json.loads(raw_response)
    except (TypeError, ValueError) as exc:
        raise ResponseSchemaError(MALFORMED_JSON, ["Failed to parse AI response as JSON"]) from exc

    errors = validate_decision_structure(data)
    if errors:
        raise ResponseSchemaError(SCHEMA_VIOLATION, errors)

    return Decision(
        decision=data["decision"].strip(),
        reasoning=ensure_alignment_question(data["reasoning"].strip()),
        tasks=normalize_tasks(data["tasks"]),
    )


def validate_decision_structure(data: Any) -> List[str]:
    """Return field-level problems with a decoded reply; empty means valid."""
    if not isinstance(data, dict):
        return ["Response must be a JSON object"]

    errors: List[str] = []
    if not _is_text(data.get("decision")):
        errors.append('Missing or invalid "decision" field')
    if not _is_text(data.get("reasoning")):
        errors.append('Missing or invalid "reasoning" field')

    tasks = data.get("tasks")
    if not isinstance(tasks, list) or not tasks:
        errors.append('Missing or empty "tasks" array')
        return errors
    if len(tasks) > MAX_TASKS:
        errors.append(f"Maximum {MAX_TASKS} tasks allowed")

    for index, task in enumerate(tasks, start=1):
        task = task if isinstance(task, dict) else {}
        if not _is_text(task.get("title")):
            errors.append(f'Task {index}: missing or invalid "title"')
        if not _is_priority(task.get("priority")):
            errors.append(f'Task {index}: missing or invalid "priority"')
    return errors


def normalize_tasks(tasks: List[Dict[str, Any]]) -> List[DecisionTask]:
    """Stable-sort by declared priority, then renumber densely from 1."""
    ordered = sorted(tasks, key=lambda task: task["priority"])
    return [
        DecisionTask(title=task["title"].strip(), priority=position)
        for position, task in enumerate(ordered, start=1)
    ]


def ensure_alignment_question(reasoning: str) -> str:
    if reasoning.endswith(ALIGNMENT_SUFFIX):
        return reasoning
    trimmed = _TRAILING_PUNCTUATION_RE.sub("", reasoning).strip()
    return f"{trimmed}. {ALIGNMENT_SUFFIX}"


def extract_confidence_indicators(reasoning: str) -> float:
    """Hedge-word heuristic over the reasoning text, clamped to [0.1, 1.0]."""
    lowered = reasoning.lower()
    score = 0.7
    score += 0.05 * sum(1 for word in HIGH_CONFIDENCE_WORDS if word in lowered)
    score -= 0.1 * sum(1 for word in LOW_CONFIDENCE_WORDS if word in lowered)
    return max(0.1, min(1.0, score))


def _is_text(value: Any) -> bool:
    return isinstance(value, str) and bool(value.strip())


def _is_priority(value: Any) -> bool:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return False
    return math.isfinite(value) and value >= 1
