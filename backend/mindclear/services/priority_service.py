"""Task priority heuristics and reordering."""
from __future__ import annotations

from typing import Any, Dict, Iterable, List, Mapping, Sequence

BASE_PRIORITY_SCORE = 50

URGENT_KEYWORDS = ["urgent", "asap", "immediately", "critical", "blocker"]
HIGH_KEYWORDS = ["important", "first", "before", "must", "required"]
LOW_KEYWORDS = ["later", "eventually", "nice to have", "optional", "when possible"]
LEADING_ACTION_VERBS = ["create", "build", "fix", "implement", "setup"]


def score_for_priority(title: str) -> int:
    """Lower is more pressing. Only used for initial auto-assignment."""
    lowered = title.lower()
    score = BASE_PRIORITY_SCORE
    score -= 30 * _hits(lowered, URGENT_KEYWORDS)
    score -= 15 * _hits(lowered, HIGH_KEYWORDS)
    score += 20 * _hits(lowered, LOW_KEYWORDS)
    score -= 5 * sum(1 for verb in LEADING_ACTION_VERBS if lowered.startswith(verb))
    return score


def assign_priorities(titles: Iterable[str]) -> List[Dict[str, Any]]:
    scored = sorted(titles, key=score_for_priority)
    return [{"title": title, "priority": position} for position, title in enumerate(scored, start=1)]


def normalize_priorities(tasks: Sequence[Mapping[str, Any]]) -> List[Dict[str, Any]]:
    ordered = sorted(tasks, key=lambda task: task["priority"])
    return [{**task, "priority": position} for position, task in enumerate(ordered, start=1)]


def reorder_on_manual_change(
    tasks: Sequence[Mapping[str, Any]],
    target_id: Any,
    new_priority: int,
) -> List[Dict[str, Any]]:
    """
    Move one task to ``new_priority`` and renumber the rest around it.

    The other tasks keep their relative order. Out-of-range priorities are
    clamped to the list bounds; an unknown ``target_id`` returns the list as is.
    """
    target = next((task for task in tasks if task["id"] == target_id), None)
    if target is None:
        return [dict(task) for task in tasks]

    others = sorted((task for task in tasks if task["id"] != target_id), key=lambda task: task["priority"])
    slot = max(1, min(int(new_priority), len(others) + 1))
    ordered = others[: slot - 1] + [target] + others[slot - 1 :]
    return [{**task, "priority": position} for position, task in enumerate(ordered, start=1)]


def _hits(haystack: str, keywords: Iterable[str]) -> int:
    return sum(1 for keyword in keywords if keyword in haystack)
