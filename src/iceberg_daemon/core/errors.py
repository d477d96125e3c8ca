"""Exception taxonomy for the consensus and anti-abuse engine."""

from __future__ import annotations


class IcebergError(RuntimeError):
    """Base exception for all engine failures."""


class NotFound(IcebergError):
    """Raised when an item or voter reference does not exist."""


class InvalidVoteType(IcebergError):
    """Raised when a vote type is not one of ``up``, ``down`` or ``report``."""


class SelfVoteRejected(IcebergError):
    """Raised when an author tries to vote on their own item."""


class RateLimited(IcebergError):
    """Raised when a rate-limit bucket denies a request.

    Rate limiting is advisory: callers may retry after ``retry_after_seconds``.
    """

    def __init__(
        self,
        retry_after_seconds: int,
        bucket: str = "general",
        headers: dict[str, str] | None = None,
    ) -> None:
        super().__init__(f"Rate limit exceeded for {bucket}; retry in {retry_after_seconds}s")
        self.retry_after_seconds = retry_after_seconds
        self.bucket = bucket
        self.headers = headers or {}


class SubmissionDenied(IcebergError):
    """Raised when the spam gate refuses a new item from an author."""

    def __init__(self, reason: str, retry_after_seconds: int) -> None:
        super().__init__(reason)
        self.reason = reason
        self.retry_after_seconds = retry_after_seconds


class ConfigLoadFailure(IcebergError):
    """Raised when the rules document cannot be read or validated.

    Never fatal: the loader logs it and falls back to defaults.
    """


class SweepFailure(IcebergError):
    """Raised when a background reconciliation job fails.

    Never fatal: the scheduler logs it and retries at the next tick.
    """
