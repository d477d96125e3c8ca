"""Trust-level state machine and submission gate.

Levels move one tier per evaluation:

    Wild(0) -> Regional(1) -> Surface(2) -> Legacy(3)

Hidden(-1) is entered from any active tier through ``hide`` and left only
through ``restore``. ``evaluate`` is a pure function of its arguments so the
moderation sweep can re-run it safely.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import datetime, timedelta

from sqlalchemy import func
from sqlalchemy.orm import Session

from iceberg_daemon.core.levels import TrustLevel
from iceberg_daemon.core.rules import RulesConfig
from iceberg_daemon.db.time import as_utc, utcnow
from iceberg_daemon.models import ContentItem
from iceberg_daemon.services.vote_ledger import VoteAggregate

SUBMISSION_WINDOW = timedelta(hours=1)


@dataclass(frozen=True)
class SubmissionDecision:
    """Outcome of the spam gate for one author."""

    allowed: bool
    reason: str | None = None
    retry_after_seconds: int = 0


@dataclass(frozen=True)
class TierProgress:
    """How far an item is from the thresholds of the next tier."""

    next_level: TrustLevel
    score: float
    required_score: float
    votes: float
    required_votes: float

    @property
    def percentage(self) -> float:
        """Progress of the weaker of the two requirements, capped at 100."""
        parts = []
        for current, required in ((self.score, self.required_score), (self.votes, self.required_votes)):
            if required <= 0:
                parts.append(100.0)
            else:
                parts.append(max(0.0, min(100.0, current / required * 100)))
        return min(parts)


def _retry_seconds(remaining: timedelta) -> int:
    return max(1, math.ceil(remaining.total_seconds()))


class TrustStateMachine:
    """Rules turning vote aggregates into trust-tier transitions."""

    @staticmethod
    def promotion_candidate(
        level: TrustLevel, aggregate: VoteAggregate, rules: RulesConfig
    ) -> TrustLevel:
        """Return the next tier if both inclusive thresholds are met."""
        rule = rules.promotion_for(level)
        if rule is None:
            return level
        if aggregate.score >= rule.min_score and aggregate.total_votes >= rule.min_votes:
            return TrustLevel(level + 1)
        return level

    @staticmethod
    def demotion_candidate(
        level: TrustLevel, aggregate: VoteAggregate, rules: RulesConfig
    ) -> TrustLevel:
        """Return one tier down if reports or the score floor call for it."""
        if level <= TrustLevel.WILD:
            return level
        if aggregate.report_ratio >= rules.spam.report_threshold:
            return TrustLevel(level - 1)
        floor = rules.demotion_for(level)
        if floor is not None and aggregate.score <= floor.max_score:
            return TrustLevel(level - 1)
        return level

    @staticmethod
    def evaluate(
        current_level: int | TrustLevel, aggregate: VoteAggregate, rules: RulesConfig
    ) -> TrustLevel:
        """Return the level an item should occupy given a vote snapshot.

        Promotion and demotion are computed independently from the same
        snapshot and the lower of the two wins, so visibility never expands
        in the evaluation that detects abuse. At most one tier moves.

        Args:
            current_level: Level the item occupies now.
            aggregate: Fresh vote aggregate for the item.
            rules: Active consensus rules.

        Returns:
            The new level; equal to ``current_level`` when nothing fires.
        """
        level = TrustLevel(current_level)
        if not level.is_active:
            return level
        promoted = TrustStateMachine.promotion_candidate(level, aggregate, rules)
        demoted = TrustStateMachine.demotion_candidate(level, aggregate, rules)
        return min(promoted, demoted)

    @staticmethod
    def hide(current_level: int | TrustLevel) -> TrustLevel:
        """Force an item out of view regardless of its tier."""
        level = TrustLevel(current_level)
        if not level.is_active:
            return level
        return TrustLevel.HIDDEN

    @staticmethod
    def restore(current_level: int | TrustLevel) -> TrustLevel:
        """Bring a hidden item back at the bottom tier; active items are unchanged."""
        level = TrustLevel(current_level)
        if level is TrustLevel.HIDDEN:
            return TrustLevel.WILD
        return level

    @staticmethod
    def progress(
        current_level: int | TrustLevel, aggregate: VoteAggregate, rules: RulesConfig
    ) -> TierProgress | None:
        """Describe progress toward the next tier, or None at the top or when hidden."""
        level = TrustLevel(current_level)
        rule = rules.promotion_for(level)
        if rule is None:
            return None
        return TierProgress(
            next_level=TrustLevel(level + 1),
            score=aggregate.score,
            required_score=rule.min_score,
            votes=aggregate.total_votes,
            required_votes=rule.min_votes,
        )

    @staticmethod
    def can_submit(
        db: Session,
        author_id: str,
        rules: RulesConfig,
        now: datetime | None = None,
    ) -> SubmissionDecision:
        """Check the author against the hourly cap and minimum interval.

        Args:
            db: Database session
            author_id: Identity submitting the new item
            rules: Active consensus rules
            now: Reference time, defaults to the current UTC time

        Returns:
            An allowed decision, or a denial with a reason and retry delay
        """
        now = now or utcnow()
        window_start = now - SUBMISSION_WINDOW
        recent = [
            as_utc(created_at)
            for (created_at,) in db.query(ContentItem.created_at)
            .filter(
                ContentItem.author_id == author_id,
                ContentItem.created_at > window_start,
            )
            .order_by(ContentItem.created_at.desc())
            .all()
        ]

        spam = rules.spam
        if len(recent) >= spam.max_items_per_hour:
            oldest = recent[spam.max_items_per_hour - 1]
            return SubmissionDecision(
                allowed=False,
                reason=f"Hourly limit of {spam.max_items_per_hour} items reached",
                retry_after_seconds=_retry_seconds(oldest + SUBMISSION_WINDOW - now),
            )

        if recent:
            elapsed = now - recent[0]
            gap = timedelta(seconds=spam.min_interval_seconds) - elapsed
            if gap > timedelta(0):
                retry_after = _retry_seconds(gap)
                return SubmissionDecision(
                    allowed=False,
                    reason=f"Wait {retry_after}s before submitting another item",
                    retry_after_seconds=retry_after,
                )

        return SubmissionDecision(allowed=True)

    @staticmethod
    def vote_weight(db: Session, voter_id: str, rules: RulesConfig) -> float:
        """Return the weight of a vote cast by ``voter_id``.

        Reputation is the sum of the active tiers reached by the voter's own
        items; each tier adds ``reputation_multiplier`` on top of the base
        weight, up to ``max_weight``.
        """
        reputation = (
            db.query(func.coalesce(func.sum(ContentItem.trust_level), 0))
            .filter(
                ContentItem.author_id == voter_id,
                ContentItem.trust_level > int(TrustLevel.WILD),
            )
            .scalar()
            or 0
        )
        voting = rules.voting
        weight = voting.base_weight + voting.reputation_multiplier * float(reputation)
        return min(weight, voting.max_weight)
