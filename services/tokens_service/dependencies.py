"""FastAPI dependencies for clients built at startup and stored on ``app.state``."""

from typing import Annotated

from fastapi import Depends, Request
from libs.auth.dependencies import CurrentUser
from libs.auth.models import AuthUser
from libs.common.config import Settings
from libs.common.errors import ConfigurationError
from libs.db.session import get_async_db
from services.tokens_service.services.notifier import Notifier
from services.tokens_service.services.profile_service import ensure_user
from services.tokens_service.services.stripe_client import CheckoutClient
from sqlalchemy.ext.asyncio import AsyncSession


def _state(request: Request, name: str):
    value = getattr(request.app.state, name, None)
    if value is None:
        raise ConfigurationError(f"{name} is not configured")
    return value


def get_app_settings(request: Request) -> Settings:
    return _state(request, "settings")


def get_checkout_client(request: Request) -> CheckoutClient:
    return _state(request, "checkout_client")


def get_notifier(request: Request) -> Notifier:
    return _state(request, "notifier")


async def get_registered_user(
    user: CurrentUser,
    db: Annotated[AsyncSession, Depends(get_async_db)],
) -> AuthUser:
    """The authenticated user, with their ``users`` row created on first sight."""
    await ensure_user(
        db,
        user_id=user.user_id,
        email=user.email,
        email_verified=user.email_verified,
    )
    return user


RegisteredUser = Annotated[AuthUser, Depends(get_registered_user)]
ServiceDB = Annotated[AsyncSession, Depends(get_async_db)]
AppSettings = Annotated[Settings, Depends(get_app_settings)]
CheckoutClientDep = Annotated[CheckoutClient, Depends(get_checkout_client)]
NotifierDep = Annotated[Notifier, Depends(get_notifier)]
