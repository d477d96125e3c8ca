"""Snapshot schemas for moderation and metrics history."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict


class ModerationSnapshotResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    created_at: datetime
    items_checked: int
    items_flagged: int
    items_hidden: int
    items_demoted: int


class MetricsSnapshotResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    created_at: datetime
    total_items: int
    hidden_items: int
    total_votes_up: float
    total_votes_down: float
    total_reports: float
    total_comments: int
    total_saved_items: int
