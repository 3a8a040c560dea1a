"""Token purchase endpoints: catalog, checkout, webhook and session polling."""

from typing import Annotated, Optional

from fastapi import APIRouter, Header, Request
from libs.common.logging import get_logger
from libs.common.rate_limit import checkout_limit
from services.tokens_service.dependencies import (
    AppSettings,
    CheckoutClientDep,
    NotifierDep,
    RegisteredUser,
    ServiceDB,
)
from services.tokens_service.schemas import (
    CheckoutRequest,
    CheckoutResponse,
    ConfirmationResponse,
    PackageListResponse,
    PackageResponse,
    WebhookAck,
)
from services.tokens_service.services.checkout_service import create_checkout
from services.tokens_service.services.confirmation_service import (
    CREDITED,
    ConfirmationOutcome,
    handle_webhook_event,
    reconcile_checkout_session,
)
from services.tokens_service.services.packages import list_packages

logger = get_logger(__name__)
router = APIRouter(prefix="/payments", tags=["payments"])


def _confirmation_response(outcome: ConfirmationOutcome) -> ConfirmationResponse:
    return ConfirmationResponse(
        session_id=outcome.session_id,
        status=outcome.status,
        tokens_credited=outcome.transaction.amount if outcome.status == CREDITED else 0,
        token_balance=outcome.balance,
    )


@router.get("/packages", response_model=PackageListResponse)
async def get_packages(settings: AppSettings):
    """List the token packages available for purchase."""
    return PackageListResponse(
        packages=[
            PackageResponse(
                id=p.id, name=p.name, tokens=p.tokens, price_cents=p.price_cents
            )
            for p in list_packages()
        ],
        currency=settings.STRIPE_CURRENCY,
    )


@router.post("/create-payment-intent", response_model=CheckoutResponse)
@checkout_limit
async def create_payment_intent(
    request: Request,
    body: CheckoutRequest,
    current_user: RegisteredUser,
    settings: AppSettings,
    client: CheckoutClientDep,
    idempotency_key: Annotated[Optional[str], Header(alias="Idempotency-Key")] = None,
):
    """Start a hosted checkout for a token package.

    Returns the redirect URL. Tokens are credited only once the payment is
    confirmed through the webhook or the session poll.
    """
    result = await create_checkout(
        client=client,
        settings=settings,
        user_id=current_user.user_id,
        package_id=body.package_id,
        idempotency_key=idempotency_key,
    )
    return CheckoutResponse(
        session_id=result.session_id,
        url=result.url,
        amount=result.amount,
        tokens=result.tokens,
        package_name=result.package_name,
    )


@router.post("/webhook", response_model=WebhookAck)
async def stripe_webhook(
    request: Request,
    db: ServiceDB,
    client: CheckoutClientDep,
    notifier: NotifierDep,
    stripe_signature: Annotated[Optional[str], Header(alias="Stripe-Signature")] = None,
):
    """Receive Stripe events. The signature is verified before anything else."""
    payload = await request.body()
    event = client.verify_webhook(payload, stripe_signature)
    logger.info("Received Stripe event %s (%s)", event.get("id"), event.get("type"))
    outcome = await handle_webhook_event(db, event, notifier=notifier)
    return WebhookAck(status=outcome.status)


@router.post(
    "/sessions/{session_id}/reconcile", response_model=ConfirmationResponse
)
async def reconcile_session(
    session_id: str,
    current_user: RegisteredUser,
    db: ServiceDB,
    client: CheckoutClientDep,
    notifier: NotifierDep,
):
    """Confirm a checkout from the return page without waiting for the webhook."""
    outcome = await reconcile_checkout_session(
        db,
        client=client,
        session_id=session_id,
        user_id=current_user.user_id,
        notifier=notifier,
    )
    return _confirmation_response(outcome)
