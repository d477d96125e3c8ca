"""Vote-related endpoints."""

from fastapi import APIRouter, Response, status

from iceberg_daemon.core.levels import LEVEL_NAMES
from iceberg_daemon.models import ContentItem, VoteType
from iceberg_daemon.schemas.vote import (
    AggregateResponse,
    VoteCreate,
    VoteResponse,
    VoteStatusResponse,
)
from iceberg_daemon.services.vote_ledger import parse_vote_type

from ..dependencies import ClientKeyDep, ConsensusDep, GuardDep

router = APIRouter(prefix="/votes", tags=["votes"])


@router.post("/{item_id}", status_code=status.HTTP_201_CREATED, response_model=VoteResponse)
async def cast_vote(
    item_id: str,
    vote_data: VoteCreate,
    consensus: ConsensusDep,
    guard: GuardDep,
    key: ClientKeyDep,
    response: Response,
) -> VoteResponse:
    """Cast or replace a vote and return the refreshed aggregate and level."""
    kind = parse_vote_type(vote_data.type)
    decision = guard.enforce("reports" if kind is VoteType.REPORT else "votes", key)
    response.headers.update(decision.to_headers())

    outcome = consensus.cast_vote(item_id, vote_data.voter_id, kind)
    return VoteResponse(
        accepted=outcome.accepted,
        your_vote=kind.value,
        weight=outcome.weight,
        aggregate=AggregateResponse(**outcome.aggregate.as_dict()),
        level=int(outcome.level),
        level_name=LEVEL_NAMES[outcome.level],
        previous_level=int(outcome.previous_level),
    )


@router.get("/{item_id}", response_model=VoteStatusResponse)
async def get_votes(
    item_id: str,
    consensus: ConsensusDep,
    voter_id: str | None = None,
) -> VoteStatusResponse:
    """Return the item's aggregate and, if ``voter_id`` is given, that voter's vote."""
    aggregate = consensus.ledger.get_aggregate(item_id)
    item = consensus.db.get(ContentItem, item_id)
    my_vote = None
    if voter_id:
        record = consensus.ledger.get_vote(item_id, voter_id)
        my_vote = record.vote_type if record else None
    return VoteStatusResponse(
        aggregate=AggregateResponse(**aggregate.as_dict()),
        level=item.trust_level,
        my_vote=my_vote,
    )
