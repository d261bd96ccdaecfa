"""ORM models exposed for metadata discovery."""
from mindclear.db.models.decision import Decision
from mindclear.db.models.task import Task
from mindclear.db.models.thinking_session import SessionMessage, ThinkingSession
from mindclear.db.models.user import User

__all__ = [
    "Decision",
    "SessionMessage",
    "Task",
    "ThinkingSession",
    "User",
]
