"""Token service routers."""

from services.tokens_service.routers.campaigns import router as campaigns_router
from services.tokens_service.routers.notifications import (
    router as notifications_router,
)
from services.tokens_service.routers.payments import router as payments_router
from services.tokens_service.routers.profiles import router as profiles_router
from services.tokens_service.routers.user import router as user_router

__all__ = [
    "campaigns_router",
    "notifications_router",
    "payments_router",
    "profiles_router",
    "user_router",
]
