"""FastAPI application for the Token Service."""

from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from slowapi.errors import RateLimitExceeded

from libs.auth.verifier import IdentityVerifier
from libs.common.config import Settings, get_settings
from libs.common.errors import register_error_handlers
from libs.common.logging import get_logger
from libs.common.middleware import add_observability_middleware
from libs.common.rate_limit import limiter, rate_limit_exceeded_handler
from libs.db.config import Database
from services.tokens_service.routers import (
    campaigns_router,
    notifications_router,
    payments_router,
    profiles_router,
    user_router,
)
from services.tokens_service.services.notifier import Notifier
from services.tokens_service.services.stripe_client import (
    CheckoutClient,
    StripeCheckoutClient,
)

logger = get_logger(__name__)


def create_app(
    settings: Optional[Settings] = None,
    *,
    database: Optional[Database] = None,
    checkout_client: Optional[CheckoutClient] = None,
) -> FastAPI:
    """Create and configure the Token Service FastAPI app.

    Clients are built once in the lifespan and stored on ``app.state``.
    Tests pass their own ``database`` and ``checkout_client``.
    """
    settings = settings or get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        db = database or Database.from_settings(settings)
        app.state.settings = settings
        app.state.database = db
        app.state.identity_verifier = IdentityVerifier.from_settings(settings)
        app.state.checkout_client = checkout_client or StripeCheckoutClient.from_settings(
            settings
        )
        app.state.notifier = Notifier(db.sessionmaker)
        logger.info("Token service started (environment=%s)", settings.ENVIRONMENT)
        try:
            yield
        finally:
            # Engines passed in by the caller are theirs to dispose
            if database is None:
                await db.dispose()
            logger.info("Token service stopped")

    app = FastAPI(
        title="InfluencerHub Token Service",
        version="0.1.0",
        description="Token purchases, balances and ledger for InfluencerHub.",
        lifespan=lifespan,
    )

    # Add rate limiter state to app
    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, rate_limit_exceeded_handler)

    # Add observability (structured logging + request tracing)
    add_observability_middleware(app, settings)

    register_error_handlers(app)

    @app.get("/health", tags=["system"])
    async def health_check() -> dict[str, str]:
        """Health check endpoint."""
        return {"status": "ok", "service": settings.SERVICE_NAME}

    app.include_router(payments_router)
    app.include_router(user_router)
    app.include_router(profiles_router)
    app.include_router(notifications_router)
    app.include_router(campaigns_router)

    return app


app = create_app()
