"""Fixed-window rate limiting for request shaping and submission throttling."""

from __future__ import annotations

import logging
import math
import time
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from threading import Lock
from typing import Final

from iceberg_daemon.core.errors import RateLimited
from iceberg_daemon.core.settings import settings

logger = logging.getLogger(__name__)

DEFAULT_BUCKET: Final[str] = "general"


@dataclass(frozen=True)
class BucketPolicy:
    """Window length and request allowance for one named bucket."""

    window_ms: int
    max_requests: int


@dataclass
class _Counter:
    window_start: float
    reset_at: float
    count: int


@dataclass(frozen=True)
class RateLimitDecision:
    """Result of a single ``check`` call.

    ``reset_at`` is on the guard's monotonic clock; ``reset_epoch`` is the
    same instant as a Unix timestamp, for clients.
    """

    allowed: bool
    limit: int
    remaining: int
    reset_at: float
    reset_epoch: float = 0.0
    retry_after_seconds: int = 0

    def to_headers(self) -> dict[str, str]:
        """Return the ``X-RateLimit-*`` headers, plus ``Retry-After`` on denial."""
        headers = {
            "X-RateLimit-Limit": str(self.limit),
            "X-RateLimit-Remaining": str(max(0, self.remaining)),
            "X-RateLimit-Reset": str(math.ceil(self.reset_epoch)),
        }
        if not self.allowed:
            headers["Retry-After"] = str(self.retry_after_seconds)
        return headers


class AntiAbuseGuard:
    """Fixed-window counters keyed by bucket name and client identity.

    Counters live in process memory only; a restart resets every bucket.
    All reads and writes of the counter table happen under one lock, so
    concurrent increments are never lost.
    """

    def __init__(
        self,
        buckets: Mapping[str, BucketPolicy | tuple[int, int]],
        *,
        clock: Callable[[], float] = time.monotonic,
        wall_clock: Callable[[], float] = time.time,
        cleanup_interval_seconds: float = 300.0,
    ) -> None:
        self._policies: dict[str, BucketPolicy] = {
            name: policy if isinstance(policy, BucketPolicy) else BucketPolicy(*policy)
            for name, policy in buckets.items()
        }
        self._clock = clock
        self._wall_clock = wall_clock
        self._cleanup_interval = cleanup_interval_seconds
        self._counters: dict[tuple[str, str], _Counter] = {}
        self._lock = Lock()
        self._last_cleanup = clock()

    @property
    def buckets(self) -> dict[str, BucketPolicy]:
        return dict(self._policies)

    def policy(self, bucket: str) -> BucketPolicy:
        try:
            return self._policies[bucket]
        except KeyError:
            raise KeyError(f"Unknown rate-limit bucket '{bucket}'") from None

    def check(self, bucket: str, client_key: str) -> RateLimitDecision:
        """Count one request against ``bucket`` for ``client_key``.

        A missing or expired counter restarts at 1 and allows the request.
        Otherwise the counter is incremented and the request is denied once
        the count exceeds the bucket's maximum.
        """
        policy = self.policy(bucket)
        key = (bucket, client_key)
        with self._lock:
            now = self._clock()
            if now - self._last_cleanup >= self._cleanup_interval:
                self._cleanup_locked(now)

            counter = self._counters.get(key)
            if counter is None or counter.reset_at <= now:
                counter = _Counter(
                    window_start=now,
                    reset_at=now + policy.window_ms / 1000,
                    count=1,
                )
                self._counters[key] = counter
            else:
                counter.count += 1

            count = counter.count
            reset_at = counter.reset_at

        reset_epoch = self._wall_clock() + (reset_at - now)
        if count > policy.max_requests:
            return RateLimitDecision(
                allowed=False,
                limit=policy.max_requests,
                remaining=0,
                reset_at=reset_at,
                reset_epoch=reset_epoch,
                retry_after_seconds=max(1, math.ceil(reset_at - now)),
            )
        return RateLimitDecision(
            allowed=True,
            limit=policy.max_requests,
            remaining=policy.max_requests - count,
            reset_at=reset_at,
            reset_epoch=reset_epoch,
        )

    def enforce(self, bucket: str, client_key: str) -> RateLimitDecision:
        """Like ``check`` but raise ``RateLimited`` on denial.

        Raises:
            RateLimited: If the bucket is exhausted for this client.
        """
        decision = self.check(bucket, client_key)
        if not decision.allowed:
            logger.warning(
                "rate_limited bucket=%s client=%s retry_after=%d limit=%d",
                bucket,
                client_key,
                decision.retry_after_seconds,
                decision.limit,
            )
            raise RateLimited(
                decision.retry_after_seconds,
                bucket=bucket,
                headers=decision.to_headers(),
            )
        return decision

    def cleanup(self) -> int:
        """Drop expired counters and return how many were removed."""
        with self._lock:
            return self._cleanup_locked(self._clock())

    def _cleanup_locked(self, now: float) -> int:
        expired = [key for key, counter in self._counters.items() if counter.reset_at <= now]
        for key in expired:
            del self._counters[key]
        self._last_cleanup = now
        if expired:
            logger.debug("Removed %d expired rate-limit counters", len(expired))
        return len(expired)

    def active_counters(self) -> int:
        with self._lock:
            return len(self._counters)

    def reset(self) -> None:
        """Forget every counter."""
        with self._lock:
            self._counters.clear()


def build_guard(
    clock: Callable[[], float] = time.monotonic,
    wall_clock: Callable[[], float] = time.time,
) -> AntiAbuseGuard:
    """Return a guard configured with the buckets from settings."""
    return AntiAbuseGuard(
        settings.rate_limit_buckets,
        clock=clock,
        wall_clock=wall_clock,
        cleanup_interval_seconds=settings.rate_limit_cleanup_seconds,
    )
