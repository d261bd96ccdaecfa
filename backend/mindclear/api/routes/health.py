"""Health and readiness probes."""
from __future__ import annotations

from datetime import datetime, timezone
import logging
from time import monotonic
from typing import Any, Dict

from fastapi import APIRouter, Depends, Request, status
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from mindclear.api.deps import get_decision_engine
from mindclear.core.config import settings
from mindclear.db.deps import get_db
from mindclear.observability.tracing import trace
from mindclear.services.decision_engine import DecisionEngine

router = APIRouter()
logger = logging.getLogger(__name__)

_STARTED_AT = monotonic()


@router.get("/health", tags=["health"], summary="Liveness probe")
def health_check(request: Request) -> Dict[str, str]:
    """Return a simple status payload so automation can probe the API."""
    with trace("http.health_check", metadata={"route": "/health"}, request_id=getattr(request.state, "request_id", None)):
        return {"status": "ok"}


@router.get("/health/detailed", tags=["health"], summary="Dependency status")
def detailed_health(
    db: Session = Depends(get_db),
    engine: DecisionEngine = Depends(get_decision_engine),
) -> JSONResponse:
    """Database and AI provider status; 503 when anything is degraded."""
    health: Dict[str, Any] = {
        "status": "ok",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "uptime": round(monotonic() - _STARTED_AT, 3),
        "checks": {},
    }

    if _database_ok(db):
        health["checks"]["database"] = {"status": "ok"}
    else:
        health["checks"]["database"] = {"status": "error", "message": "Database connection failed"}
        health["status"] = "degraded"

    if settings.ai_provider().configured:
        ai_health = engine.health_check()
        health["checks"]["ai"] = ai_health
        if ai_health.get("status") != "ok":
            health["status"] = "degraded"
    else:
        health["checks"]["ai"] = {"status": "unconfigured", "message": "API key not set"}

    status_code = status.HTTP_200_OK if health["status"] == "ok" else status.HTTP_503_SERVICE_UNAVAILABLE
    return JSONResponse(status_code=status_code, content=health)


@router.get("/health/ready", tags=["health"], summary="Readiness probe")
def readiness(db: Session = Depends(get_db)) -> JSONResponse:
    if _database_ok(db):
        return JSONResponse(status_code=status.HTTP_200_OK, content={"ready": True})
    return JSONResponse(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, content={"ready": False, "reason": "database"})


def _database_ok(db: Session) -> bool:
    try:
        db.execute(text("SELECT 1"))
    except SQLAlchemyError as exc:
        logger.warning("Database health check failed: %s", exc)
        return False
    return True
