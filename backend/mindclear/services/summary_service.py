"""Condensed views over a user's decision history."""
from __future__ import annotations

from collections import Counter
import re
from typing import Any, Dict, List, Optional, Sequence, Tuple

from mindclear.services.response_parser import ALIGNMENT_SUFFIX

MAX_SUMMARY_LENGTH = 500

THEME_STOP_WORDS = {
    "about", "after", "again", "being", "could", "doing",
    "during", "first", "getting", "going", "having", "their",
    "there", "these", "thing", "think", "those", "through",
    "would", "should", "before", "because", "while",
}

_WORD_SPLIT_RE = re.compile(r"\W+")


def summarize_decision(decision: Any, tasks: Sequence[Any]) -> Dict[str, str]:
    top_task = tasks[0].title if tasks else "No tasks"
    return {
        "short_summary": f"{decision.decision} ({len(tasks)} tasks)",
        "full_summary": f"Decision: {decision.decision}. First action: {top_task}",
    }


def summarize_session(decisions: Sequence[Tuple[Any, Sequence[Any]]]) -> Optional[Dict[str, Any]]:
    if not decisions:
        return None

    themes = extract_themes([decision for decision, _tasks in decisions])
    completed = sum(1 for _decision, tasks in decisions for task in tasks if task.status == "completed")
    total = sum(len(tasks) for _decision, tasks in decisions)

    return {
        "decisions_count": len(decisions),
        "themes": themes[:3],
        "progress": {
            "completed": completed,
            "total": total,
            "percentage": round(completed / total * 100) if total else 0,
        },
        "summary": narrative_summary([decision for decision, _tasks in decisions], themes),
    }


def extract_themes(decisions: Sequence[Any], limit: int = 5) -> List[str]:
    """Most frequent long words across decisions and their reasoning."""
    counts: Counter = Counter()
    for decision in decisions:
        # The alignment question closes every reasoning and would drown out real themes.
        reasoning = (decision.reasoning or "").replace(ALIGNMENT_SUFFIX, "")
        text = f"{decision.decision} {reasoning}".lower()
        counts.update(word for word in _WORD_SPLIT_RE.split(text) if len(word) > 4 and word not in THEME_STOP_WORDS)
    return [word for word, _count in counts.most_common(limit)]


def narrative_summary(decisions: Sequence[Any], themes: Sequence[str]) -> str:
    if len(decisions) == 1:
        return f"Focused on: {decisions[0].decision}"
    theme_text = f"Key themes: {', '.join(themes)}." if themes else ""
    return f"Made {len(decisions)} decisions. {theme_text}".strip()


def truncate(text: Optional[str], max_length: int = MAX_SUMMARY_LENGTH) -> Optional[str]:
    if not text or len(text) <= max_length:
        return text
    return text[: max_length - 3] + "..."
