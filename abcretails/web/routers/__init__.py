"""HTTP routers for the ABC Retails web shell."""

from abcretails.web.routers.entities import create_entity_router
from abcretails.web.routers.health import router as health_router
from abcretails.web.routers.uploads import router as uploads_router
from abcretails.web.routers.contracts import router as contracts_router
from abcretails.web.routers.queues import router as queues_router

__all__ = [
    "create_entity_router",
    "health_router",
    "uploads_router",
    "contracts_router",
    "queues_router",
]
