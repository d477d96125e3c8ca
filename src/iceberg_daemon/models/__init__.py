"""SQLAlchemy models for the Iceberg daemon."""

from .engagement import Comment, SavedItem
from .item import ContentItem
from .snapshot import MetricsSnapshot, ModerationSnapshot
from .vote import VoteRecord, VoteType

__all__ = [
    "Comment", "SavedItem",
    "ContentItem",
    "MetricsSnapshot", "ModerationSnapshot",
    "VoteRecord", "VoteType",
]
