"""Item submission and lookup endpoints."""

from fastapi import APIRouter, Depends, status

from iceberg_daemon.core.levels import LEVEL_NAMES
from iceberg_daemon.models import ContentItem
from iceberg_daemon.schemas.item import (
    ItemCreate,
    ItemDetailResponse,
    ItemResponse,
    TierProgressResponse,
)
from iceberg_daemon.services.trust import TrustStateMachine

from ..dependencies import ConsensusDep, RulesDep, rate_limit

router = APIRouter(prefix="/items", tags=["items"])


@router.post(
    "/",
    status_code=status.HTTP_201_CREATED,
    response_model=ItemResponse,
    dependencies=[Depends(rate_limit("items"))],
)
async def submit_item(payload: ItemCreate, consensus: ConsensusDep) -> ContentItem:
    """Create a new Wild item once the spam gate allows the author."""
    return consensus.submit_item(payload.author_id, payload.body, title=payload.title)


@router.get("/{item_id}", response_model=ItemDetailResponse)
async def get_item(item_id: str, consensus: ConsensusDep, rules: RulesDep) -> ItemDetailResponse:
    """Return an item with its current aggregate and progress toward the next tier."""
    aggregate = consensus.ledger.get_aggregate(item_id)
    item = consensus.db.get(ContentItem, item_id)
    progress = TrustStateMachine.progress(item.trust_level, aggregate, rules)
    return ItemDetailResponse(
        **ItemResponse.model_validate(item).model_dump(),
        up=aggregate.up,
        down=aggregate.down,
        reports=aggregate.reports,
        score=aggregate.score,
        progress=(
            TierProgressResponse(
                next_level=int(progress.next_level),
                next_level_name=LEVEL_NAMES[progress.next_level],
                score=progress.score,
                required_score=progress.required_score,
                votes=progress.votes,
                required_votes=progress.required_votes,
                percentage=progress.percentage,
            )
            if progress is not None
            else None
        ),
    )
