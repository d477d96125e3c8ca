"""Moderation endpoints: sweep history, manual sweeps and reinstatement."""

import asyncio

from fastapi import APIRouter, HTTPException, Query, status

from iceberg_daemon.core.levels import LEVEL_NAMES
from iceberg_daemon.models import ModerationSnapshot
from iceberg_daemon.schemas.snapshot import ModerationSnapshotResponse
from iceberg_daemon.services.reconciliation import MODERATION_JOB, run_moderation_sweep

from ..dependencies import (
    ConsensusDep,
    RulesDep,
    SchedulerDep,
    SessionDep,
    SessionFactoryDep,
)

router = APIRouter(prefix="/moderation", tags=["moderation"])


@router.get("/snapshots", response_model=list[ModerationSnapshotResponse])
async def list_moderation_snapshots(
    db: SessionDep,
    limit: int = Query(20, ge=1, le=500),
) -> list[ModerationSnapshot]:
    """Return the most recent moderation sweep summaries."""
    return (
        db.query(ModerationSnapshot)
        .order_by(ModerationSnapshot.id.desc())
        .limit(limit)
        .all()
    )


@router.post("/sweep", response_model=ModerationSnapshotResponse)
async def trigger_sweep(
    rules: RulesDep,
    scheduler: SchedulerDep,
    session_factory: SessionFactoryDep,
) -> ModerationSnapshot:
    """Run a moderation sweep now.

    With the scheduler running, the sweep goes through its re-entrancy
    guard and a sweep already in progress answers 409. Without it the sweep
    runs in a worker thread on its own session.
    """
    if scheduler is None:

        def _sweep() -> ModerationSnapshot | None:
            with session_factory() as db:
                return run_moderation_sweep(db, rules)

        return await asyncio.to_thread(_sweep)

    if scheduler.is_running(MODERATION_JOB):
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="A moderation sweep is already running",
        )
    snapshot = await scheduler.run_moderation_sweep()
    if snapshot is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Moderation sweep did not complete",
        )
    return snapshot


@router.post("/{item_id}/restore")
async def restore_item(item_id: str, consensus: ConsensusDep) -> dict[str, object]:
    """Bring a hidden item back at the Wild tier."""
    level = consensus.restore_item(item_id)
    return {"id": item_id, "level": int(level), "level_name": LEVEL_NAMES[level]}
