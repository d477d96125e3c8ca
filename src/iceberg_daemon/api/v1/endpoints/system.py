"""System and transparency endpoints."""

from __future__ import annotations

from fastapi import APIRouter

from iceberg_daemon.core.settings import settings

from ..dependencies import GuardDep, RulesDep, SchedulerDep

router = APIRouter(prefix="/system", tags=["system", "transparency"])


@router.get("/rules")
async def get_rules(rules: RulesDep) -> dict[str, object]:
    """Return the consensus rules in effect after merging over defaults."""
    return rules.model_dump()


@router.get("/config")
async def get_public_config(guard: GuardDep, scheduler: SchedulerDep) -> dict[str, object]:
    """Return a sanitized snapshot of runtime configuration.

    Excludes connection strings; suitable for transparency UIs.
    """
    return {
        "app": {
            "name": settings.app_name,
            "version": settings.app_version,
            "debug": settings.debug,
        },
        "rate_limits": {
            name: {"window_ms": policy.window_ms, "max_requests": policy.max_requests}
            for name, policy in guard.buckets.items()
        },
        "scheduler": {
            "enabled": scheduler is not None,
            "moderation_check_hours": settings.moderation_check_hours,
            "metrics_snapshot_days": settings.metrics_snapshot_days,
            "min_votes_for_review": settings.min_votes_for_review,
            "report_threshold_percent": settings.report_threshold_percent,
        },
    }
