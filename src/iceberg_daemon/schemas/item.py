"""Item-related Pydantic schemas."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field


class ItemCreate(BaseModel):
    """Schema for submitting a new content item."""

    author_id: str = Field(..., min_length=1, max_length=256, description="Anonymous author identity")
    title: str = Field("", max_length=300)
    body: str = Field(..., min_length=1, max_length=20_000)


class TierProgressResponse(BaseModel):
    next_level: int
    next_level_name: str
    score: float
    required_score: float
    votes: float
    required_votes: float
    percentage: float


class ItemResponse(BaseModel):
    """Schema for item information returned by the API."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    author_id: str
    title: str
    body: str
    trust_level: int
    level_name: str
    created_at: datetime
    updated_at: datetime


class ItemDetailResponse(ItemResponse):
    up: float
    down: float
    reports: float
    score: float
    progress: TierProgressResponse | None = None
