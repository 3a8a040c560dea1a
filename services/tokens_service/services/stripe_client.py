"""
Stripe client for hosted checkout sessions and webhook verification.

The ``stripe`` SDK is synchronous, so calls run in Starlette's threadpool.
The API key is passed per call instead of through the global ``stripe.api_key``
so one process can hold several independently configured clients.
"""

import json
from dataclasses import dataclass, field
from typing import Any, Optional, Protocol

import stripe
from libs.common.config import Settings
from libs.common.errors import (
    InvalidRequest,
    PaymentDeclined,
    ProcessorRateLimited,
    UpstreamUnavailable,
)
from libs.common.logging import get_logger
from starlette.concurrency import run_in_threadpool

logger = get_logger(__name__)

# Stripe's default tolerance for webhook timestamps (seconds)
WEBHOOK_TOLERANCE = 300


@dataclass
class CheckoutSessionResult:
    """The fields of a Stripe Checkout Session this service relies on."""

    id: str
    url: Optional[str] = None
    payment_status: Optional[str] = None
    amount_total: Optional[int] = None
    currency: Optional[str] = None
    metadata: dict[str, str] = field(default_factory=dict)

    @classmethod
    def from_stripe(cls, obj: Any) -> "CheckoutSessionResult":
        """Build from a Stripe session object or a webhook ``data.object`` dict."""
        metadata = obj.get("metadata") or {}
        return cls(
            id=obj["id"],
            url=obj.get("url"),
            payment_status=obj.get("payment_status"),
            amount_total=obj.get("amount_total"),
            currency=obj.get("currency"),
            metadata={str(k): str(v) for k, v in dict(metadata).items()},
        )


class CheckoutClient(Protocol):
    async def create_session(
        self, params: dict[str, Any], *, idempotency_key: Optional[str] = None
    ) -> CheckoutSessionResult: ...

    async def retrieve_session(self, session_id: str) -> CheckoutSessionResult: ...

    def verify_webhook(self, payload: bytes, signature: Optional[str]) -> dict: ...


def map_stripe_error(exc: Exception) -> Exception:
    """Translate a Stripe SDK exception into a domain error with a readable message."""
    if isinstance(exc, stripe.CardError):
        return PaymentDeclined(exc.user_message or "Your card was declined.")
    if isinstance(exc, stripe.RateLimitError):
        return ProcessorRateLimited()
    if isinstance(exc, stripe.InvalidRequestError):
        return InvalidRequest("Invalid parameters were supplied to the payment processor.")
    return UpstreamUnavailable(
        "The payment processor is unavailable. Please try again."
    )


class StripeCheckoutClient:
    """Thin async wrapper over ``stripe.checkout.Session``."""

    def __init__(self, secret_key: str, webhook_secret: str):
        if not secret_key:
            raise ValueError("STRIPE_SECRET_KEY is required")
        if not webhook_secret:
            raise ValueError("STRIPE_WEBHOOK_SECRET is required")
        self._secret_key = secret_key
        self._webhook_secret = webhook_secret

    @classmethod
    def from_settings(cls, settings: Settings) -> "StripeCheckoutClient":
        return cls(settings.STRIPE_SECRET_KEY, settings.STRIPE_WEBHOOK_SECRET)

    async def create_session(
        self, params: dict[str, Any], *, idempotency_key: Optional[str] = None
    ) -> CheckoutSessionResult:
        options: dict[str, Any] = {"api_key": self._secret_key}
        if idempotency_key:
            options["idempotency_key"] = idempotency_key
        try:
            session = await run_in_threadpool(
                stripe.checkout.Session.create, **params, **options
            )
        except stripe.StripeError as e:
            logger.error(
                "Stripe session creation failed: %s (%s)",
                e.user_message or str(e),
                type(e).__name__,
            )
            raise map_stripe_error(e) from e
        return CheckoutSessionResult.from_stripe(session)

    async def retrieve_session(self, session_id: str) -> CheckoutSessionResult:
        try:
            session = await run_in_threadpool(
                stripe.checkout.Session.retrieve, session_id, api_key=self._secret_key
            )
        except stripe.StripeError as e:
            logger.error(
                "Stripe session retrieval failed for %s: %s", session_id, type(e).__name__
            )
            raise map_stripe_error(e) from e
        return CheckoutSessionResult.from_stripe(session)

    def verify_webhook(self, payload: bytes, signature: Optional[str]) -> dict:
        """Verify the ``Stripe-Signature`` header and return the parsed event.

        Raises InvalidRequest when the header is missing or does not match.
        """
        if not signature:
            raise InvalidRequest("Missing Stripe-Signature header")
        try:
            text = payload.decode("utf-8")
        except UnicodeDecodeError as e:
            raise InvalidRequest("Invalid webhook payload") from e
        try:
            stripe.WebhookSignature.verify_header(
                text, signature, self._webhook_secret, WEBHOOK_TOLERANCE
            )
        except stripe.SignatureVerificationError as e:
            logger.warning("Rejected webhook with invalid signature: %s", e)
            raise InvalidRequest("Invalid webhook signature") from e
        try:
            return json.loads(text)
        except ValueError as e:
            raise InvalidRequest("Invalid webhook payload") from e
