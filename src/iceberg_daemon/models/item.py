"""SQLAlchemy model for submitted content items."""

from datetime import datetime

from sqlalchemy import DateTime, Index, SmallInteger, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from iceberg_daemon.core.levels import LEVEL_NAMES, TrustLevel
from iceberg_daemon.db.session import Base
from iceberg_daemon.db.time import utcnow


class ContentItem(Base):
    """Primary content entity submitted by anonymous authors.

    The identifier is an opaque content hash. ``trust_level`` is only ever
    written by the trust state machine.
    """

    __tablename__ = "content_item"
    __table_args__ = (
        Index("ix_content_item_author_created", "author_id", "created_at"),
        Index("ix_content_item_trust_level", "trust_level"),
    )

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    author_id: Mapped[str] = mapped_column(Text, nullable=False)
    title: Mapped[str] = mapped_column(Text, nullable=False, default="")
    body: Mapped[str] = mapped_column(Text, nullable=False)

    # -1 = hidden, 0 = wild, 1 = regional, 2 = surface, 3 = legacy.
    trust_level: Mapped[int] = mapped_column(
        SmallInteger,
        nullable=False,
        default=int(TrustLevel.WILD),
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
        onupdate=utcnow,
    )

    @property
    def level(self) -> TrustLevel:
        return TrustLevel(self.trust_level)

    @property
    def level_name(self) -> str:
        return LEVEL_NAMES[self.level]
