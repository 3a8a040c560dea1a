"""
Factories for test data: bearer tokens, profiles with balances, checkout
sessions and signed webhook events.

Usage:
    headers = auth_headers("user-1")
    await make_profile(db_session, user_id="user-1", tokens=500)
"""

import hashlib
import hmac
import json
import time
import uuid
from typing import Any, Optional

from jose import jwt

from libs.common.config import Settings, load_settings
from libs.common.errors import InvalidRequest
from services.tokens_service.models import ProfileKind, TokenTransaction, TransactionType
from services.tokens_service.services.ledger_ops import record_credit
from services.tokens_service.services.profile_service import ensure_profile
from services.tokens_service.services.stripe_client import (
    CheckoutSessionResult,
    StripeCheckoutClient,
)

TEST_JWT_SECRET = "test-jwt-secret"
TEST_WEBHOOK_SECRET = "whsec_test_secret"
TEST_BASE_URL = "https://app.influencerhub.test"

PACKAGE_TOKENS = {"small": 1000, "medium": 2500, "large": 5000}
PACKAGE_PRICES = {"small": 9900, "medium": 19900, "large": 34900}


def unique_user_id() -> str:
    return f"user-{uuid.uuid4().hex[:8]}"


def make_settings(tmp_path, **overrides: Any) -> Settings:
    """Settings pointing at a SQLite database under ``tmp_path``."""
    values = {
        "ENVIRONMENT": "test",
        "DATABASE_URL": f"sqlite+aiosqlite:///{tmp_path / 'tokens.db'}",
        "AUTH_JWT_SECRET": TEST_JWT_SECRET,
        "STRIPE_SECRET_KEY": "sk_test_dummy",
        "STRIPE_WEBHOOK_SECRET": TEST_WEBHOOK_SECRET,
        "PUBLIC_BASE_URL": TEST_BASE_URL,
        "RATE_LIMIT_ENABLED": False,
    }
    values.update(overrides)
    return load_settings(**values)


# ---------------------------------------------------------------------------
# Auth
# ---------------------------------------------------------------------------


def make_token(
    user_id: str,
    *,
    email: Optional[str] = None,
    secret: str = TEST_JWT_SECRET,
    expires_in: int = 3600,
    **claims: Any,
) -> str:
    """Mint an identity-provider style HS256 JWT."""
    now = int(time.time())
    payload = {
        "sub": user_id,
        "email": email or f"{user_id}@example.com",
        "role": "authenticated",
        "aud": "authenticated",
        "iat": now,
        "exp": now + expires_in,
    }
    payload.update(claims)
    return jwt.encode(payload, secret, algorithm="HS256")


def auth_headers(user_id: str, **kwargs: Any) -> dict[str, str]:
    return {"Authorization": f"Bearer {make_token(user_id, **kwargs)}"}


# ---------------------------------------------------------------------------
# Profiles & balances
# ---------------------------------------------------------------------------


async def make_profile(
    db,
    *,
    user_id: Optional[str] = None,
    kind: ProfileKind = ProfileKind.BUSINESS,
    tokens: int = 0,
):
    """Create a profile and, if ``tokens`` is positive, fund it via the ledger."""
    user_id = user_id or unique_user_id()
    profile, _ = await ensure_profile(
        db, user_id=user_id, kind=kind, company_name="Acme Co", display_name="Ada"
    )
    if tokens > 0:
        await fund(db, user_id=user_id, amount=tokens)
    return profile


async def fund(db, *, user_id: str, amount: int) -> TokenTransaction:
    return await record_credit(
        db,
        user_id=user_id,
        amount=amount,
        transaction_type=TransactionType.BONUS,
        description="Test funding",
    )


# ---------------------------------------------------------------------------
# Stripe
# ---------------------------------------------------------------------------


class FakeCheckoutClient(StripeCheckoutClient):
    """In-memory checkout sessions; webhook verification is the real one."""

    def __init__(self, webhook_secret: str = TEST_WEBHOOK_SECRET):
        super().__init__("sk_test_dummy", webhook_secret)
        self.created: list[tuple[dict, Optional[str]]] = []
        self.sessions: dict[str, CheckoutSessionResult] = {}
        self.error: Optional[Exception] = None

    async def create_session(self, params, *, idempotency_key=None):
        if self.error is not None:
            raise self.error
        self.created.append((params, idempotency_key))
        price_data = params["line_items"][0]["price_data"]
        session_id = f"cs_test_{uuid.uuid4().hex[:24]}"
        session = CheckoutSessionResult(
            id=session_id,
            url=f"https://checkout.stripe.com/c/pay/{session_id}",
            payment_status="unpaid",
            amount_total=price_data["unit_amount"],
            currency=price_data["currency"],
            metadata=dict(params["metadata"]),
        )
        self.sessions[session_id] = session
        return session

    async def retrieve_session(self, session_id):
        if session_id not in self.sessions:
            raise InvalidRequest("No such checkout session")
        return self.sessions[session_id]

    def mark_paid(self, session_id: str) -> CheckoutSessionResult:
        session = self.sessions[session_id]
        session.payment_status = "paid"
        return session


def make_session(
    *,
    user_id: str,
    package_id: str = "small",
    token_count: Optional[str] = None,
    amount_total: Optional[int] = None,
    payment_status: str = "paid",
    session_id: Optional[str] = None,
) -> CheckoutSessionResult:
    """A checkout session as Stripe would report it after payment."""
    if amount_total is None:
        amount_total = PACKAGE_PRICES.get(package_id, 100)
    if token_count is None:
        token_count = str(PACKAGE_TOKENS.get(package_id, 0))
    return CheckoutSessionResult(
        id=session_id or f"cs_test_{uuid.uuid4().hex[:24]}",
        payment_status=payment_status,
        amount_total=amount_total,
        currency="usd",
        metadata={
            "userId": user_id,
            "packageId": package_id,
            "tokenCount": token_count,
            "packageName": f"{package_id.title()} Package",
        },
    )


def make_event(event_type: str, session: CheckoutSessionResult) -> str:
    return json.dumps(
        {
            "id": f"evt_{uuid.uuid4().hex[:24]}",
            "object": "event",
            "type": event_type,
            "data": {
                "object": {
                    "id": session.id,
                    "object": "checkout.session",
                    "payment_status": session.payment_status,
                    "amount_total": session.amount_total,
                    "currency": session.currency,
                    "metadata": session.metadata,
                }
            },
        }
    )


def sign_payload(
    payload: str, secret: str = TEST_WEBHOOK_SECRET, timestamp: Optional[int] = None
) -> str:
    """Build a ``Stripe-Signature`` header the way Stripe does."""
    timestamp = timestamp or int(time.time())
    signature = hmac.new(
        secret.encode("utf-8"),
        f"{timestamp}.{payload}".encode("utf-8"),
        hashlib.sha256,
    ).hexdigest()
    return f"t={timestamp},v1={signature}"
