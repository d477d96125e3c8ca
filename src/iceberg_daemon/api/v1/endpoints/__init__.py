"""API endpoint modules for version 1."""

from .consensus import router as consensus_router
from .items import router as items_router
from .metrics import router as metrics_router
from .moderation import router as moderation_router
from .system import router as system_router
from .votes import router as votes_router

__all__ = [
    "consensus_router",
    "items_router",
    "metrics_router",
    "moderation_router",
    "system_router",
    "votes_router",
]
