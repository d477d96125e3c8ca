"""Shared FastAPI dependencies for v1 endpoints."""

from __future__ import annotations

from collections.abc import Callable
from typing import Annotated

from fastapi import Depends, Request, Response
from sqlalchemy.orm import Session, sessionmaker

from iceberg_daemon.core.rules import RulesConfig
from iceberg_daemon.db.session import SessionLocal, get_db
from iceberg_daemon.services.anti_abuse import AntiAbuseGuard
from iceberg_daemon.services.consensus import ConsensusService
from iceberg_daemon.services.reconciliation import ReconciliationScheduler


def get_rules(request: Request) -> RulesConfig:
    """Return the rules loaded at startup."""
    return request.app.state.rules


def get_guard(request: Request) -> AntiAbuseGuard:
    """Return the application's rate-limit guard."""
    return request.app.state.guard


def get_scheduler(request: Request) -> ReconciliationScheduler | None:
    """Return the background scheduler, or None when it is disabled."""
    return getattr(request.app.state, "scheduler", None)


def get_session_factory() -> sessionmaker[Session]:
    """Return the factory for sessions owned by background work."""
    return SessionLocal


def client_key(request: Request) -> str:
    """Identify the caller for rate limiting."""
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    if request.client is not None:
        return request.client.host
    return "unknown"


SessionDep = Annotated[Session, Depends(get_db)]
RulesDep = Annotated[RulesConfig, Depends(get_rules)]
GuardDep = Annotated[AntiAbuseGuard, Depends(get_guard)]
SchedulerDep = Annotated[ReconciliationScheduler | None, Depends(get_scheduler)]
ClientKeyDep = Annotated[str, Depends(client_key)]
SessionFactoryDep = Annotated[sessionmaker[Session], Depends(get_session_factory)]


def get_consensus_service(db: SessionDep, rules: RulesDep) -> ConsensusService:
    """Build a consensus service bound to the request's session."""
    return ConsensusService(db, rules)


ConsensusDep = Annotated[ConsensusService, Depends(get_consensus_service)]


def rate_limit(bucket: str) -> Callable[..., None]:
    """Return a dependency that counts the request against ``bucket``."""

    def _enforce(guard: GuardDep, key: ClientKeyDep, response: Response) -> None:
        decision = guard.enforce(bucket, key)
        response.headers.update(decision.to_headers())

    return _enforce
