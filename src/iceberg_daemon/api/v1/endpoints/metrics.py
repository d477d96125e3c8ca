"""Network metrics snapshot endpoints."""

from fastapi import APIRouter, Query, status

from iceberg_daemon.models import MetricsSnapshot
from iceberg_daemon.schemas.snapshot import MetricsSnapshotResponse
from iceberg_daemon.services.reconciliation import run_metrics_snapshot

from ..dependencies import SessionDep

router = APIRouter(prefix="/metrics", tags=["metrics"])


@router.get("/snapshots", response_model=list[MetricsSnapshotResponse])
async def list_metrics_snapshots(
    db: SessionDep,
    limit: int = Query(20, ge=1, le=500),
) -> list[MetricsSnapshot]:
    """Return the most recent metrics snapshots."""
    return (
        db.query(MetricsSnapshot)
        .order_by(MetricsSnapshot.id.desc())
        .limit(limit)
        .all()
    )


@router.post(
    "/snapshots",
    status_code=status.HTTP_201_CREATED,
    response_model=MetricsSnapshotResponse,
)
async def create_metrics_snapshot(db: SessionDep) -> MetricsSnapshot:
    """Append a metrics snapshot immediately."""
    return run_metrics_snapshot(db)
