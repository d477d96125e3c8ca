"""
Pydantic schemas for API request/response models.
"""

from .item import ItemCreate, ItemDetailResponse, ItemResponse, TierProgressResponse
from .snapshot import MetricsSnapshotResponse, ModerationSnapshotResponse
from .vote import AggregateResponse, VoteCreate, VoteResponse, VoteStatusResponse

__all__ = [
    "ItemCreate", "ItemDetailResponse", "ItemResponse", "TierProgressResponse",
    "MetricsSnapshotResponse", "ModerationSnapshotResponse",
    "AggregateResponse", "VoteCreate", "VoteResponse", "VoteStatusResponse",
]
