"""Append-only snapshot rows written by the reconciliation scheduler."""

from datetime import datetime

from sqlalchemy import DateTime, Float, Integer
from sqlalchemy.orm import Mapped, mapped_column

from iceberg_daemon.db.session import Base
from iceberg_daemon.db.time import utcnow


class ModerationSnapshot(Base):
    """Summary of one moderation sweep."""

    __tablename__ = "moderation_snapshot"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
    )
    items_checked: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    items_flagged: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    items_hidden: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    # Items whose level changed through a regular evaluation during the sweep.
    items_demoted: Mapped[int] = mapped_column(Integer, nullable=False, default=0)


class MetricsSnapshot(Base):
    """Network-wide totals captured periodically."""

    __tablename__ = "metrics_snapshot"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
    )
    total_items: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    hidden_items: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    total_votes_up: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    total_votes_down: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    total_reports: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    total_comments: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    total_saved_items: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
