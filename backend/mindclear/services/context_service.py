"""Recent-decision memory fed back into new decision prompts."""
from __future__ import annotations

from datetime import datetime, timezone
import logging
from typing import Any, List, Optional, Sequence, Tuple
from uuid import UUID

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from mindclear.core.config import settings
from mindclear.services.decision_store import recent_decisions_with_tasks

logger = logging.getLogger(__name__)

RELEVANCE_WINDOW_DAYS = 7


def get_recent_context(db: Session, user_id: Optional[UUID], *, now: Optional[datetime] = None) -> Optional[str]:
    """Formatted recent decisions for ``user_id``, or None if there are none or the store is down."""
    if not user_id:
        return None
    try:
        recent = recent_decisions_with_tasks(db, user_id, settings.context_max_entries)
    except SQLAlchemyError as exc:
        db.rollback()
        logger.warning("Database unavailable, skipping context: %s", exc)
        return None
    if not recent:
        return None
    return format_context(recent, now=now)


def format_context(decisions: Sequence[Tuple[Any, Sequence[Any]]], *, now: Optional[datetime] = None) -> Optional[str]:
    if not decisions:
        return None
    parts = []
    for index, (decision, tasks) in enumerate(decisions, start=1):
        parts.append(
            f"[{index}] Decision: {decision.decision}\n"
            f"   Tasks: {summarize_tasks(tasks)}\n"
            f"   When: {format_time_ago(decision.created_at, now=now)}"
        )
    return "Recent decisions:\n" + "\n\n".join(parts)


def summarize_tasks(tasks: Sequence[Any]) -> str:
    titles: List[str] = [task.title for task in tasks if task is not None and getattr(task, "title", None)]
    if not titles:
        return "None"
    if len(titles) <= 2:
        return ", ".join(titles)
    return f"{titles[0]} + {len(titles) - 1} more"


def format_time_ago(moment: datetime, *, now: Optional[datetime] = None) -> str:
    now = _aware(now or datetime.now(timezone.utc))
    moment = _aware(moment)
    seconds = (now - moment).total_seconds()
    minutes = int(seconds // 60)
    hours = int(seconds // 3600)
    days = int(seconds // 86400)

    if minutes < 1:
        return "just now"
    if minutes < 60:
        return f"{minutes} minute{'s' if minutes > 1 else ''} ago"
    if hours < 24:
        return f"{hours} hour{'s' if hours > 1 else ''} ago"
    if days < RELEVANCE_WINDOW_DAYS:
        return f"{days} day{'s' if days > 1 else ''} ago"
    return moment.date().isoformat()


def is_context_relevant(decisions: Sequence[Any], *, now: Optional[datetime] = None) -> bool:
    """True when the newest decision is less than a week old."""
    if not decisions:
        return False
    now = _aware(now or datetime.now(timezone.utc))
    age = now - _aware(decisions[0].created_at)
    return age.total_seconds() < RELEVANCE_WINDOW_DAYS * 86400


def _aware(moment: datetime) -> datetime:
    # SQLite hands back naive timestamps; they are stored as UTC.
    return moment if moment.tzinfo else moment.replace(tzinfo=timezone.utc)
