from coincatalog.api.auth import router as auth_router
from coincatalog.api.collection import router as collection_router
from coincatalog.api.health import router as health_router

__all__ = [
    "auth_router",
    "collection_router",
    "health_router",
]
