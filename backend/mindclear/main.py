"""Main FastAPI application for the MindClear backend."""
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from mindclear.api.routes.decision import router as decision_router
from mindclear.api.routes.health import router as health_router
from mindclear.api.routes.session import router as session_router
from mindclear.api.routes.task import router as task_router
from mindclear.core.config import settings
from mindclear.core.errors import MindClearError
from mindclear.core.logging import configure_logging
from mindclear.core.middleware import RequestIDMiddleware
from mindclear.observability.client import init_opik

configure_logging(log_level=settings.log_level)

app = FastAPI(title=settings.app_name, version="0.1.0")
app.add_middleware(RequestIDMiddleware)
app.include_router(health_router)
app.include_router(decision_router)
app.include_router(session_router)
app.include_router(task_router)


@app.exception_handler(MindClearError)
async def handle_mindclear_error(request: Request, exc: MindClearError) -> JSONResponse:
    """Render domain errors as the shared error envelope."""
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.on_event("startup")
async def startup_observability() -> None:
    """Initialize observability backends after the event loop starts."""
    init_opik()
