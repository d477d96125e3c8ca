"""Models capturing voting interactions on content items."""

from datetime import datetime
from enum import StrEnum

from sqlalchemy import CheckConstraint, DateTime, Float, ForeignKey, Index, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from iceberg_daemon.db.session import Base
from iceberg_daemon.db.time import utcnow


class VoteType(StrEnum):
    UP = "up"
    DOWN = "down"
    REPORT = "report"


class VoteRecord(Base):
    """Per-voter vote on an item.

    The composite primary key keeps exactly one record per (item, voter);
    casting again overwrites the earlier choice.
    """

    __tablename__ = "vote_record"
    __table_args__ = (
        CheckConstraint("vote_type IN ('up', 'down', 'report')", name="ck_vote_record_type"),
        Index("ix_vote_record_item_id", "item_id"),
    )

    item_id: Mapped[str] = mapped_column(
        String(64),
        ForeignKey("content_item.id", ondelete="CASCADE"),
        primary_key=True,
    )
    voter_id: Mapped[str] = mapped_column(Text, primary_key=True)

    vote_type: Mapped[str] = mapped_column(String(8), nullable=False)
    weight: Mapped[float] = mapped_column(Float, nullable=False, default=1.0)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
    )
