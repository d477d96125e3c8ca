"""Vote-related Pydantic schemas."""

from pydantic import BaseModel, Field


class VoteCreate(BaseModel):
    """Schema for casting a vote.

    ``type`` is validated by the vote ledger so an unknown value surfaces as
    an invalid-vote-type error rather than a schema error.
    """

    voter_id: str = Field(..., min_length=1, max_length=256)
    type: str = Field(..., description="up, down or report")


class AggregateResponse(BaseModel):
    up: float
    down: float
    reports: float
    score: float
    total_votes: float


class VoteResponse(BaseModel):
    """Outcome returned to the caller after a vote is recorded."""

    accepted: bool
    your_vote: str
    weight: float
    aggregate: AggregateResponse
    level: int
    level_name: str
    previous_level: int


class VoteStatusResponse(BaseModel):
    aggregate: AggregateResponse
    level: int
    my_vote: str | None = None
