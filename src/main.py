"""questlog - gamified quest log for recurring and one-off tasks."""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from src.core.db_client import DatabaseError, RecordNotFoundError, close_connection, init_db
from src.core.errors import classify_error_with_response
from src.core.generation_tracker import generation_tracker
from src.core.logging import configure_logfire, instrument_fastapi
from src.interface.quest_router import router as quest_router


logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncIterator[None]:
    """Application lifespan context manager."""
    # Startup
    configure_logfire()

    await init_db()
    logger.info("Database initialized")

    yield
    # Shutdown
    await close_connection()


app = FastAPI(
    title="questlog",
    description="Gamified quest log for recurring and one-off tasks",
    version="0.1.0",
    lifespan=lifespan,
)

# Instrument FastAPI with Logfire
instrument_fastapi(app)

# Register routers
app.include_router(quest_router)


async def _error_response(request: Request, exc: Exception) -> JSONResponse:
    response = classify_error_with_response(exc)
    log = logger.error if response.status_code >= 500 else logger.info
    log(
        "request_failed",
        extra={"path": request.url.path, "code": response.code, "error": str(exc), "status_code": response.status_code},
    )
    return JSONResponse(content=response.model_dump(mode="json"), status_code=response.status_code)


app.add_exception_handler(RecordNotFoundError, _error_response)
app.add_exception_handler(ValueError, _error_response)
app.add_exception_handler(DatabaseError, _error_response)


@app.get("/health")
async def health_check() -> JSONResponse:
    """Health check endpoint."""
    return JSONResponse(content={"status": "healthy"}, status_code=200)


@app.get("/health/generation")
async def generation_health_check() -> JSONResponse:
    """Generation health check endpoint with per-user pass statuses."""
    statuses = generation_tracker.get_all_statuses()
    dlq = generation_tracker.get_dead_letter_queue()

    # Determine overall health
    has_failures = any(entry["consecutive_failures"] > 0 for entry in statuses)

    overall_status = "degraded" if dlq else "healthy"
    if has_failures:
        overall_status = "critical"

    return JSONResponse(
        content={
            "status": overall_status,
            "users": statuses,
            "dead_letter_queue_size": len(dlq),
            "dead_letter_queue": dlq,
        },
        status_code=200 if overall_status == "healthy" else 503,
    )
