"""Database utilities and models."""

from mindclear.db.base import Base
from mindclear.db import models  # noqa: F401  (imported for side effects)

__all__ = ["Base"]
