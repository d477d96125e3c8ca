"""Background reconciliation: moderation sweeps and metrics snapshots.

Two jobs run on independent timers against the shared store:

- the moderation sweep re-checks active items for abuse that individual
  votes did not catch and hides items with too many reports;
- the metrics snapshot appends network-wide totals.

Each job is guarded against running concurrently with itself, and any error
inside a job is logged and dropped so the next tick runs normally.
"""

from __future__ import annotations

import asyncio
import logging
import threading
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any, TypeVar

from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from iceberg_daemon.core.errors import SweepFailure
from iceberg_daemon.core.levels import TrustLevel
from iceberg_daemon.core.rules import RulesConfig
from iceberg_daemon.core.settings import settings
from iceberg_daemon.db.session import SessionLocal
from iceberg_daemon.models import (
    Comment,
    ContentItem,
    MetricsSnapshot,
    ModerationSnapshot,
    SavedItem,
    VoteType,
)
from iceberg_daemon.services.consensus import swap_level
from iceberg_daemon.services.trust import TrustStateMachine
from iceberg_daemon.services.vote_ledger import VoteLedger

logger = logging.getLogger(__name__)

MODERATION_JOB = "moderation_sweep"
METRICS_JOB = "metrics_snapshot"

SleepFn = Callable[[float], Awaitable[None]]
SessionFactory = Callable[[], Session]
_T = TypeVar("_T")


@dataclass(frozen=True)
class SweepConfig:
    """Tuning for the moderation sweep."""

    min_votes_for_review: int = 5
    report_threshold_percent: float = 50.0
    batch_size: int = 100

    @classmethod
    def from_settings(cls) -> SweepConfig:
        return cls(
            min_votes_for_review=settings.min_votes_for_review,
            report_threshold_percent=settings.report_threshold_percent,
            batch_size=settings.sweep_batch_size,
        )


def run_moderation_sweep(
    db: Session,
    rules: RulesConfig,
    config: SweepConfig | None = None,
    *,
    should_stop: Callable[[], bool] = lambda: False,
) -> ModerationSnapshot | None:
    """Check every active item once and record a moderation snapshot.

    Items are read in primary-key batches; each batch is committed before
    the next is fetched. ``should_stop`` is polled between items, and a
    cancelled sweep keeps the work already committed but writes no snapshot.

    Args:
        db: Database session
        rules: Active consensus rules (``spam.auto_hide_threshold`` is used here)
        config: Sweep tuning; defaults to the values from settings
        should_stop: Cancellation flag checked between items

    Returns:
        The snapshot written, or None when the sweep was cancelled
    """
    config = config or SweepConfig.from_settings()
    ledger = VoteLedger(db)
    checked = flagged = hidden = demoted = 0
    last_id: str | None = None

    while True:
        query = db.query(ContentItem).filter(ContentItem.trust_level != int(TrustLevel.HIDDEN))
        if last_id is not None:
            query = query.filter(ContentItem.id > last_id)
        batch = query.order_by(ContentItem.id).limit(config.batch_size).all()
        if not batch:
            break

        for item in batch:
            if should_stop():
                db.commit()
                logger.info("moderation_sweep cancelled checked=%d", checked)
                return None

            checked += 1
            aggregate = ledger.get_aggregate(item.id)
            if aggregate.total_votes < config.min_votes_for_review:
                continue

            # Votes may have moved the item since the batch was read.
            db.refresh(item, with_for_update=True)
            current = TrustLevel(item.trust_level)
            if not current.is_active:
                continue

            ratio_percent = aggregate.report_ratio * 100
            if ratio_percent >= config.report_threshold_percent:
                flagged += 1
                report_count = ledger.count_votes(item.id, VoteType.REPORT)
                logger.warning(
                    "moderation_flag item=%s report_ratio=%.1f%% reports=%d",
                    item.id[:16],
                    ratio_percent,
                    report_count,
                )
                if report_count >= rules.spam.auto_hide_threshold:
                    new_level = TrustStateMachine.hide(current)
                    if swap_level(db, item, current, new_level, reason="auto_hide"):
                        hidden += 1
                    continue

            # The sweep only narrows visibility; promotions happen on vote.
            new_level = TrustStateMachine.evaluate(current, aggregate, rules)
            if new_level < current and swap_level(db, item, current, new_level, reason="sweep"):
                demoted += 1

        db.commit()
        last_id = batch[-1].id

    snapshot = ModerationSnapshot(
        items_checked=checked,
        items_flagged=flagged,
        items_hidden=hidden,
        items_demoted=demoted,
    )
    db.add(snapshot)
    db.commit()
    db.refresh(snapshot)
    logger.info(
        "moderation_sweep checked=%d flagged=%d hidden=%d demoted=%d",
        checked,
        flagged,
        hidden,
        demoted,
    )
    return snapshot


def run_metrics_snapshot(db: Session) -> MetricsSnapshot:
    """Append a snapshot of network-wide totals."""
    totals = VoteLedger(db).totals()
    total_items = db.query(func.count()).select_from(ContentItem).scalar() or 0
    hidden_items = (
        db.query(func.count())
        .select_from(ContentItem)
        .filter(ContentItem.trust_level == int(TrustLevel.HIDDEN))
        .scalar()
        or 0
    )
    total_comments = db.query(func.count()).select_from(Comment).scalar() or 0
    total_saved = db.query(func.count()).select_from(SavedItem).scalar() or 0

    snapshot = MetricsSnapshot(
        total_items=total_items,
        hidden_items=hidden_items,
        total_votes_up=totals.up,
        total_votes_down=totals.down,
        total_reports=totals.reports,
        total_comments=total_comments,
        total_saved_items=total_saved,
    )
    db.add(snapshot)
    db.commit()
    db.refresh(snapshot)
    logger.info(
        "metrics_snapshot items=%d hidden=%d up=%.1f down=%.1f reports=%.1f comments=%d saved=%d",
        total_items,
        hidden_items,
        totals.up,
        totals.down,
        totals.reports,
        total_comments,
        total_saved,
    )
    return snapshot


class ReconciliationScheduler:
    """Owns the timers for the moderation sweep and the metrics snapshot.

    Jobs run on the event loop as cooperative timers; their store work is
    pushed to a worker thread so request handling keeps going during a long
    sweep. ``sleep`` can be replaced to simulate elapsed time in tests.
    """

    def __init__(
        self,
        rules: RulesConfig,
        *,
        session_factory: SessionFactory = SessionLocal,
        sweep_config: SweepConfig | None = None,
        moderation_interval_seconds: float | None = None,
        metrics_interval_seconds: float | None = None,
        first_run_delay_seconds: float | None = None,
        sleep: SleepFn = asyncio.sleep,
    ) -> None:
        self.rules = rules
        self._session_factory = session_factory
        self.sweep_config = sweep_config or SweepConfig.from_settings()
        self.moderation_interval = (
            moderation_interval_seconds
            if moderation_interval_seconds is not None
            else settings.moderation_check_hours * 3600
        )
        self.metrics_interval = (
            metrics_interval_seconds
            if metrics_interval_seconds is not None
            else settings.metrics_snapshot_days * 86400
        )
        self.first_run_delay = (
            first_run_delay_seconds
            if first_run_delay_seconds is not None
            else settings.moderation_first_run_delay_seconds
        )
        self._sleep = sleep
        self._tasks: list[asyncio.Task[None]] = []
        # Read from worker threads between sweep items.
        self._stopping = threading.Event()
        self._running: set[str] = set()
        self._inflight: set[asyncio.Task[Any]] = set()

    @property
    def started(self) -> bool:
        return any(not task.done() for task in self._tasks)

    def is_running(self, job: str) -> bool:
        return job in self._running

    async def start(self) -> None:
        """Schedule both jobs plus the delayed first moderation sweep."""
        if self.started:
            return
        # A job left over from a previous stop() must not see the flag cleared.
        await self._wait_for_inflight()
        self._stopping.clear()
        self._tasks = [
            asyncio.create_task(self._run_once_after(self.first_run_delay, self.run_moderation_sweep)),
            asyncio.create_task(self._run_every(self.moderation_interval, self.run_moderation_sweep)),
            asyncio.create_task(self._run_every(self.metrics_interval, self.run_metrics_snapshot)),
        ]
        logger.info(
            "Background tasks started: moderation every %.0fs (first after %.0fs), metrics every %.0fs",
            self.moderation_interval,
            self.first_run_delay,
            self.metrics_interval,
        )

    async def stop(self) -> None:
        """Cancel pending timers and wait for running jobs to finish.

        A sweep in progress sees the cancellation flag between items and
        returns early; ``stop`` only returns once its thread is done.
        """
        self._stopping.set()
        tasks, self._tasks = self._tasks, []
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        await self._wait_for_inflight()
        logger.info("Background tasks stopped")

    async def _wait_for_inflight(self) -> None:
        if self._inflight:
            await asyncio.gather(*self._inflight, return_exceptions=True)

    async def _run_once_after(self, delay: float, job: Callable[[], Awaitable[object]]) -> None:
        await self._sleep(delay)
        if not self._stopping.is_set():
            await job()

    async def _run_every(self, interval: float, job: Callable[[], Awaitable[object]]) -> None:
        interval = max(0.1, float(interval))
        while not self._stopping.is_set():
            await self._sleep(interval)
            if self._stopping.is_set():
                break
            await job()

    async def run_moderation_sweep(self) -> ModerationSnapshot | None:
        """Run one sweep now unless one is already in progress."""
        return await self._run_guarded(MODERATION_JOB, self._moderation_sweep_sync)

    async def run_metrics_snapshot(self) -> MetricsSnapshot | None:
        """Write one metrics snapshot now unless one is already in progress."""
        return await self._run_guarded(METRICS_JOB, self._metrics_snapshot_sync)

    async def _run_guarded(self, job: str, work: Callable[[], _T]) -> _T | None:
        if job in self._running:
            logger.warning("%s still running; skipping this tick", job)
            return None
        self._running.add(job)
        inner = asyncio.create_task(self._run_in_thread(job, work))
        self._inflight.add(inner)
        inner.add_done_callback(self._inflight.discard)
        # Cancelling the caller must not release the guard while the thread
        # is still working; the inner task owns it until the thread returns.
        return await asyncio.shield(inner)

    async def _run_in_thread(self, job: str, work: Callable[[], _T]) -> _T | None:
        try:
            return await asyncio.to_thread(work)
        except SweepFailure as exc:
            logger.error("%s failed, retrying next tick: %s", job, exc, exc_info=exc.__cause__)
            return None
        except Exception:
            logger.exception("%s raised an unexpected error, retrying next tick", job)
            return None
        finally:
            self._running.discard(job)

    def _moderation_sweep_sync(self) -> ModerationSnapshot | None:
        try:
            with self._session_factory() as db:
                return run_moderation_sweep(
                    db,
                    self.rules,
                    self.sweep_config,
                    should_stop=self._stopping.is_set,
                )
        except SQLAlchemyError as exc:
            raise SweepFailure(f"Moderation sweep failed: {exc}") from exc

    def _metrics_snapshot_sync(self) -> MetricsSnapshot:
        try:
            with self._session_factory() as db:
                return run_metrics_snapshot(db)
        except SQLAlchemyError as exc:
            raise SweepFailure(f"Metrics snapshot failed: {exc}") from exc
