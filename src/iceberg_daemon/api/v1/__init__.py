"""Version 1 API endpoints."""

from .endpoints import (
    consensus_router,
    items_router,
    metrics_router,
    moderation_router,
    system_router,
    votes_router,
)

__all__ = [
    "consensus_router",
    "items_router",
    "metrics_router",
    "moderation_router",
    "system_router",
    "votes_router",
]
