# src/iceberg_daemon/main.py
"""Main entry point for the Iceberg daemon."""

from __future__ import annotations

import logging

from fastapi import Depends, FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import JSONResponse

from iceberg_daemon.api.v1 import (
    consensus_router,
    items_router,
    metrics_router,
    moderation_router,
    system_router,
    votes_router,
)
from iceberg_daemon.api.v1.dependencies import rate_limit
from iceberg_daemon.core.errors import (
    InvalidVoteType,
    NotFound,
    RateLimited,
    SelfVoteRejected,
    SubmissionDenied,
)
from iceberg_daemon.core.rules import load_rules
from iceberg_daemon.core.settings import settings
from iceberg_daemon.db.session import create_tables
from iceberg_daemon.services.anti_abuse import build_guard
from iceberg_daemon.services.reconciliation import ReconciliationScheduler

logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s %(levelname)s %(name)s %(message)s",
)
logger = logging.getLogger(__name__)

# Initialize FastAPI app
app = FastAPI(
    title="Iceberg API",
    description="Community trust-level consensus for anonymous content",
    version=settings.app_version,
)

# Rules and rate-limit counters are owned by this app instance.
app.state.rules = load_rules(settings.rules_path)
app.state.guard = build_guard()
app.state.scheduler = None

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=settings.cors_allow_credentials,
    allow_methods=settings.cors_allow_methods,
    allow_headers=settings.cors_allow_headers,
)

# Add GZip middleware for compression
app.add_middleware(GZipMiddleware)

# Include API routers; every route also counts against the general bucket
general_limit = [Depends(rate_limit("general"))]
app.include_router(items_router, prefix="/api/v1", dependencies=general_limit)
app.include_router(votes_router, prefix="/api/v1", dependencies=general_limit)
app.include_router(consensus_router, prefix="/api/v1", dependencies=general_limit)
app.include_router(moderation_router, prefix="/api/v1", dependencies=general_limit)
app.include_router(metrics_router, prefix="/api/v1", dependencies=general_limit)
app.include_router(system_router, prefix="/api/v1", dependencies=general_limit)


def _error(
    status_code: int,
    detail: str,
    retry_after: int | None = None,
    extra_headers: dict[str, str] | None = None,
) -> JSONResponse:
    content: dict[str, object] = {"detail": detail}
    headers = dict(extra_headers or {})
    if retry_after is not None:
        content["retry_after"] = retry_after
        headers["Retry-After"] = str(retry_after)
    return JSONResponse(status_code=status_code, content=content, headers=headers)


@app.exception_handler(NotFound)
async def not_found_handler(request: Request, exc: NotFound) -> JSONResponse:
    return _error(status.HTTP_404_NOT_FOUND, str(exc))


@app.exception_handler(InvalidVoteType)
async def invalid_vote_handler(request: Request, exc: InvalidVoteType) -> JSONResponse:
    return _error(status.HTTP_400_BAD_REQUEST, str(exc))


@app.exception_handler(SelfVoteRejected)
async def self_vote_handler(request: Request, exc: SelfVoteRejected) -> JSONResponse:
    return _error(status.HTTP_403_FORBIDDEN, str(exc))


@app.exception_handler(RateLimited)
async def rate_limited_handler(request: Request, exc: RateLimited) -> JSONResponse:
    return _error(
        status.HTTP_429_TOO_MANY_REQUESTS,
        str(exc),
        exc.retry_after_seconds,
        extra_headers=exc.headers,
    )


@app.exception_handler(SubmissionDenied)
async def submission_denied_handler(request: Request, exc: SubmissionDenied) -> JSONResponse:
    return _error(status.HTTP_429_TOO_MANY_REQUESTS, exc.reason, exc.retry_after_seconds)


@app.on_event("startup")
async def on_startup() -> None:
    if settings.auto_create_tables:
        create_tables()
    if settings.scheduler_enabled:
        scheduler = ReconciliationScheduler(app.state.rules)
        await scheduler.start()
        app.state.scheduler = scheduler
    else:
        logger.info("Background scheduler disabled")
        app.state.scheduler = None


@app.on_event("shutdown")
async def on_shutdown() -> None:
    scheduler: ReconciliationScheduler | None = getattr(app.state, "scheduler", None)
    if scheduler:
        await scheduler.stop()
        app.state.scheduler = None


@app.get("/health")
async def health_check() -> dict[str, str]:
    """Health check endpoint to verify the service is running."""
    return {"status": "ok"}


@app.get("/")
async def root() -> dict[str, str]:
    """Root endpoint with basic information about the API."""
    return {
        "name": "Iceberg API",
        "version": settings.app_version,
        "description": "Community trust-level consensus for anonymous content",
        "docs": "/docs",
        "redoc": "/redoc",
    }


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("iceberg_daemon.main:app", host="0.0.0.0", port=8000, reload=settings.debug)
