"""Consensus orchestration used by the ingestion layer.

Combines the vote ledger and the trust state machine so that a vote and the
level recalculation it triggers are applied in one session unit.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime

from sqlalchemy import update
from sqlalchemy.orm import Session

from iceberg_daemon.core.errors import NotFound, SubmissionDenied
from iceberg_daemon.core.levels import LEVEL_NAMES, TrustLevel
from iceberg_daemon.core.rules import RulesConfig
from iceberg_daemon.db.time import utcnow
from iceberg_daemon.models import ContentItem, VoteType
from iceberg_daemon.services.trust import TrustStateMachine
from iceberg_daemon.services.vote_ledger import VoteAggregate, VoteLedger, parse_vote_type
from iceberg_daemon.utils.hash import content_id

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class VoteOutcome:
    """What the ingestion layer receives after a vote is accepted."""

    accepted: bool
    aggregate: VoteAggregate
    level: TrustLevel
    previous_level: TrustLevel
    weight: float

    @property
    def level_changed(self) -> bool:
        return self.level != self.previous_level


def apply_level(item: ContentItem, new_level: TrustLevel, *, reason: str) -> bool:
    """Persist ``new_level`` on ``item`` if it differs; return whether it changed."""
    old_level = TrustLevel(item.trust_level)
    if new_level == old_level:
        return False
    item.trust_level = int(new_level)
    item.updated_at = utcnow()
    logger.info(
        "trust_transition item=%s from=%s to=%s reason=%s",
        item.id[:16],
        LEVEL_NAMES[old_level],
        LEVEL_NAMES[new_level],
        reason,
    )
    return True


def swap_level(
    db: Session,
    item: ContentItem,
    expected: TrustLevel,
    new_level: TrustLevel,
    *,
    reason: str,
) -> bool:
    """Write ``new_level`` only if the stored level still equals ``expected``.

    The check and the write are one ``UPDATE``, so a transition committed by
    another session after ``expected`` was read is never overwritten.
    """
    if new_level == expected:
        return False
    result = db.execute(
        update(ContentItem)
        .where(ContentItem.id == item.id, ContentItem.trust_level == int(expected))
        .values(trust_level=int(new_level), updated_at=utcnow())
    )
    if result.rowcount != 1:
        logger.warning(
            "trust_transition_skipped item=%s expected=%s reason=%s",
            item.id[:16],
            LEVEL_NAMES[expected],
            reason,
        )
        db.refresh(item)
        return False
    logger.info(
        "trust_transition item=%s from=%s to=%s reason=%s",
        item.id[:16],
        LEVEL_NAMES[expected],
        LEVEL_NAMES[new_level],
        reason,
    )
    return True


class ConsensusService:
    """Entry points for submitting items and casting votes."""

    def __init__(self, db: Session, rules: RulesConfig) -> None:
        self.db = db
        self.rules = rules
        self.ledger = VoteLedger(db)

    def _get_item(self, item_id: str) -> ContentItem:
        item = self.db.get(ContentItem, item_id)
        if item is None:
            raise NotFound(f"Item {item_id} not found")
        return item

    def submit_item(
        self,
        author_id: str,
        body: str,
        title: str = "",
        now: datetime | None = None,
    ) -> ContentItem:
        """Persist a new Wild item after the spam gate allows it.

        Raises:
            SubmissionDenied: If the author exceeded the hourly cap or the
                minimum interval since their last item.
        """
        now = now or utcnow()
        decision = TrustStateMachine.can_submit(self.db, author_id, self.rules, now=now)
        if not decision.allowed:
            raise SubmissionDenied(decision.reason or "Submission denied", decision.retry_after_seconds)

        item = ContentItem(
            id=content_id(author_id, title, body, int(now.timestamp() * 1000)),
            author_id=author_id,
            title=title,
            body=body,
            trust_level=int(TrustLevel.WILD),
            created_at=now,
            updated_at=now,
        )
        self.db.add(item)
        self.db.commit()
        self.db.refresh(item)
        return item

    def cast_vote(self, item_id: str, voter_id: str, vote_type: str | VoteType) -> VoteOutcome:
        """Record a vote and re-evaluate the item's level in the same transaction.

        Raises:
            InvalidVoteType: For a vote type other than up, down or report.
            NotFound: If the item does not exist.
            SelfVoteRejected: If the voter authored the item.
        """
        kind = parse_vote_type(vote_type)
        item = self._get_item(item_id)
        weight = TrustStateMachine.vote_weight(self.db, voter_id, self.rules)
        aggregate = self.ledger.cast_vote(item_id, voter_id, kind, weight)

        # The vote write holds the store's write lock (or the row lock), so
        # the level read here cannot be changed before this commit.
        self.db.refresh(item, with_for_update=True)
        previous = TrustLevel(item.trust_level)
        new_level = TrustStateMachine.evaluate(previous, aggregate, self.rules)
        apply_level(item, new_level, reason=f"vote:{kind.value}")
        self.db.commit()

        return VoteOutcome(
            accepted=True,
            aggregate=aggregate,
            level=new_level,
            previous_level=previous,
            weight=weight,
        )

    def recalculate_level(self, item_id: str) -> TrustLevel:
        """Re-run the evaluation for one item and persist the result."""
        item = self._get_item(item_id)
        aggregate = self.ledger.get_aggregate(item_id)
        new_level = TrustStateMachine.evaluate(item.trust_level, aggregate, self.rules)
        apply_level(item, new_level, reason="recalculate")
        self.db.commit()
        return new_level

    def recalculate_all(self, limit: int = 1000) -> dict[str, int]:
        """Re-evaluate the most recent ``limit`` items; return processed/changed counts."""
        items = (
            self.db.query(ContentItem)
            .order_by(ContentItem.created_at.desc())
            .limit(limit)
            .all()
        )
        changed = 0
        for item in items:
            aggregate = self.ledger.get_aggregate(item.id)
            new_level = TrustStateMachine.evaluate(item.trust_level, aggregate, self.rules)
            if apply_level(item, new_level, reason="recalculate"):
                changed += 1
        self.db.commit()
        return {"processed": len(items), "changed": changed}

    def restore_item(self, item_id: str) -> TrustLevel:
        """Reinstate a hidden item at the Wild tier."""
        item = self._get_item(item_id)
        new_level = TrustStateMachine.restore(item.trust_level)
        apply_level(item, new_level, reason="restore")
        self.db.commit()
        return new_level
