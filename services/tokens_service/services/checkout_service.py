"""Checkout initiation: turn a catalog package into a hosted Stripe session."""

from dataclasses import dataclass
from typing import Any, Optional

from libs.common.config import Settings
from libs.common.logging import get_logger
from services.tokens_service.services.packages import TokenPackage, get_package
from services.tokens_service.services.stripe_client import CheckoutClient

logger = get_logger(__name__)

# Stripe substitutes the real session id into this placeholder
SESSION_ID_PLACEHOLDER = "{CHECKOUT_SESSION_ID}"


@dataclass
class CheckoutResult:
    session_id: str
    url: Optional[str]
    amount: int
    tokens: int
    package_name: str


def build_session_params(
    *, user_id: str, package: TokenPackage, settings: Settings
) -> dict[str, Any]:
    """Keyword arguments for ``stripe.checkout.Session.create``."""
    base_url = settings.PUBLIC_BASE_URL
    return {
        "payment_method_types": ["card"],
        "line_items": [
            {
                "price_data": {
                    "currency": settings.STRIPE_CURRENCY,
                    "product_data": {
                        "name": package.line_item_name,
                        "description": package.line_item_description,
                    },
                    "unit_amount": package.price_cents,
                },
                "quantity": 1,
            }
        ],
        "mode": "payment",
        "success_url": (
            f"{base_url}/store?success=true&session_id={SESSION_ID_PLACEHOLDER}"
        ),
        "cancel_url": f"{base_url}/store?canceled=true",
        "client_reference_id": user_id,
        "metadata": {
            "userId": user_id,
            "packageId": package.id,
            "tokenCount": str(package.tokens),
            "packageName": package.name,
        },
    }


async def create_checkout(
    *,
    client: CheckoutClient,
    settings: Settings,
    user_id: str,
    package_id: str,
    idempotency_key: Optional[str] = None,
) -> CheckoutResult:
    """Open a hosted checkout session for ``package_id``.

    The package is validated before the processor is contacted. The result
    carries a redirect URL only; tokens are credited on confirmation.
    """
    package = get_package(package_id)
    params = build_session_params(user_id=user_id, package=package, settings=settings)
    session = await client.create_session(params, idempotency_key=idempotency_key)

    logger.info(
        "Created checkout session %s for user %s: %s (%d tokens, %d cents)",
        session.id,
        user_id,
        package.id,
        package.tokens,
        package.price_cents,
    )
    return CheckoutResult(
        session_id=session.id,
        url=session.url,
        amount=package.price_cents,
        tokens=package.tokens,
        package_name=package.name,
    )
