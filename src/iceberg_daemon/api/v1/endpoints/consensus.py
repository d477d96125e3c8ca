"""Manual level recalculation endpoints."""

from fastapi import APIRouter, Query

from iceberg_daemon.core.levels import LEVEL_NAMES

from ..dependencies import ConsensusDep

router = APIRouter(prefix="/consensus", tags=["consensus"])


@router.post("/recalculate")
async def recalculate_all(
    consensus: ConsensusDep,
    limit: int = Query(1000, ge=1, le=10_000),
) -> dict[str, int]:
    """Re-evaluate the most recent items against the current votes."""
    return consensus.recalculate_all(limit=limit)


@router.post("/{item_id}/recalculate")
async def recalculate_item(item_id: str, consensus: ConsensusDep) -> dict[str, object]:
    """Re-evaluate one item against its current votes."""
    level = consensus.recalculate_level(item_id)
    return {"id": item_id, "level": int(level), "level_name": LEVEL_NAMES[level]}
