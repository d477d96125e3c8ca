"""Vote storage and on-demand aggregation."""

from __future__ import annotations

from dataclasses import dataclass

from sqlalchemy import func
from sqlalchemy.orm import Session

from iceberg_daemon.core.errors import InvalidVoteType, NotFound, SelfVoteRejected
from iceberg_daemon.db.time import utcnow
from iceberg_daemon.models import ContentItem, VoteRecord, VoteType

__all__ = ["VoteAggregate", "VoteLedger", "parse_vote_type"]


@dataclass(frozen=True)
class VoteAggregate:
    """Weighted vote sums for one item, derived from its vote records."""

    up: float = 0.0
    down: float = 0.0
    reports: float = 0.0

    @property
    def score(self) -> float:
        return self.up - self.down

    @property
    def total_votes(self) -> float:
        """Up and down votes; reports are not counted as votes."""
        return self.up + self.down

    @property
    def report_ratio(self) -> float:
        """Reports relative to votes, 0 when nobody has voted."""
        if self.total_votes <= 0:
            return 0.0
        return self.reports / self.total_votes

    def as_dict(self) -> dict[str, float]:
        return {
            "up": self.up,
            "down": self.down,
            "reports": self.reports,
            "score": self.score,
            "total_votes": self.total_votes,
        }


def parse_vote_type(value: str | VoteType) -> VoteType:
    """Return the vote type for ``value`` or raise ``InvalidVoteType``."""
    try:
        return VoteType(value)
    except ValueError as exc:
        raise InvalidVoteType(
            f"Invalid vote type {value!r}; use up, down or report"
        ) from exc


def _aggregate_from_rows(rows: list[tuple[str, float | None]]) -> VoteAggregate:
    sums = {vote_type: float(total or 0.0) for vote_type, total in rows}
    return VoteAggregate(
        up=sums.get(VoteType.UP.value, 0.0),
        down=sums.get(VoteType.DOWN.value, 0.0),
        reports=sums.get(VoteType.REPORT.value, 0.0),
    )


class VoteLedger:
    """One vote per (item, voter), aggregated on demand.

    The ledger only flushes; committing is left to the caller so a vote and
    the level recalculation it triggers land in the same transaction.
    """

    def __init__(self, db: Session) -> None:
        self.db = db

    def _get_item(self, item_id: str) -> ContentItem:
        item = self.db.get(ContentItem, item_id)
        if item is None:
            raise NotFound(f"Item {item_id} not found")
        return item

    def cast_vote(
        self,
        item_id: str,
        voter_id: str,
        vote_type: str | VoteType,
        weight: float = 1.0,
    ) -> VoteAggregate:
        """Record ``voter_id``'s vote on ``item_id``, replacing any earlier vote.

        Returns:
            The aggregate recomputed after the write.

        Raises:
            InvalidVoteType: If ``vote_type`` is not up, down or report.
            NotFound: If the item does not exist.
            SelfVoteRejected: If the voter is the item's author.
        """
        kind = parse_vote_type(vote_type)
        item = self._get_item(item_id)
        if item.author_id == voter_id:
            raise SelfVoteRejected("Authors cannot vote on their own items")

        existing = self.db.get(VoteRecord, (item_id, voter_id))
        if existing is None:
            self.db.add(
                VoteRecord(
                    item_id=item_id,
                    voter_id=voter_id,
                    vote_type=kind.value,
                    weight=weight,
                    created_at=utcnow(),
                )
            )
        else:
            existing.vote_type = kind.value
            existing.weight = weight
            existing.created_at = utcnow()

        # Make the write visible to the aggregate query below.
        self.db.flush()
        return self.get_aggregate(item_id)

    def get_vote(self, item_id: str, voter_id: str) -> VoteRecord | None:
        """Return the voter's current record on the item, if any."""
        return self.db.get(VoteRecord, (item_id, voter_id))

    def get_aggregate(self, item_id: str) -> VoteAggregate:
        """Sum vote weights for ``item_id`` grouped by type.

        Raises:
            NotFound: If the item does not exist.
        """
        self._get_item(item_id)
        rows = (
            self.db.query(VoteRecord.vote_type, func.sum(VoteRecord.weight))
            .filter(VoteRecord.item_id == item_id)
            .group_by(VoteRecord.vote_type)
            .all()
        )
        return _aggregate_from_rows(rows)

    def count_votes(self, item_id: str, vote_type: str | VoteType | None = None) -> int:
        """Return the number of vote records on the item, ignoring weights.

        With ``vote_type`` only records of that type are counted.
        """
        query = self.db.query(func.count()).select_from(VoteRecord).filter(VoteRecord.item_id == item_id)
        if vote_type is not None:
            query = query.filter(VoteRecord.vote_type == parse_vote_type(vote_type).value)
        return query.scalar() or 0

    def totals(self) -> VoteAggregate:
        """Return weighted sums across every item in the store."""
        rows = (
            self.db.query(VoteRecord.vote_type, func.sum(VoteRecord.weight))
            .group_by(VoteRecord.vote_type)
            .all()
        )
        return _aggregate_from_rows(rows)
