"""Payment confirmation: credit a paid checkout session exactly once.

Both the webhook and the return-page poll funnel into
``confirm_checkout_session``. The ``payment_confirmations`` row and the
ledger credit are written in the same transaction, and the unique
``session_id`` turns any repeat into a no-op.
"""

from dataclasses import dataclass
from typing import Any, Optional

from libs.common.errors import NotFound
from libs.common.logging import get_logger
from services.tokens_service.models import (
    ConfirmationStatus,
    NotificationType,
    PaymentConfirmation,
    TokenTransaction,
    TransactionType,
)
from services.tokens_service.services.ledger_ops import apply_credit, get_balance
from services.tokens_service.services.notifier import Notifier
from services.tokens_service.services.packages import TOKEN_PACKAGES
from services.tokens_service.services.profile_service import (
    ensure_user,
    resolve_profile_kind,
)
from services.tokens_service.services.stripe_client import (
    CheckoutClient,
    CheckoutSessionResult,
)
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

logger = get_logger(__name__)

CREDITED = "credited"
REPLAYED = "replayed"
FAILED = "failed"
PENDING = "pending"
IGNORED = "ignored"

SESSION_COMPLETED = "checkout.session.completed"
ASYNC_PAYMENT_SUCCEEDED = "checkout.session.async_payment_succeeded"
ASYNC_PAYMENT_FAILED = "checkout.session.async_payment_failed"


@dataclass
class ConfirmationOutcome:
    status: str
    session_id: str
    confirmation: Optional[PaymentConfirmation] = None
    transaction: Optional[TokenTransaction] = None
    balance: Optional[int] = None


def checkout_idempotency_key(session_id: str) -> str:
    return f"checkout:{session_id}"


async def get_confirmation(
    db: AsyncSession, session_id: str
) -> Optional[PaymentConfirmation]:
    result = await db.execute(
        select(PaymentConfirmation).where(PaymentConfirmation.session_id == session_id)
    )
    return result.scalar_one_or_none()


async def _replay(
    db: AsyncSession, confirmation: PaymentConfirmation
) -> ConfirmationOutcome:
    logger.info(
        "Checkout session %s already processed (%s)",
        confirmation.session_id,
        confirmation.status.value,
    )
    return ConfirmationOutcome(
        status=REPLAYED,
        session_id=confirmation.session_id,
        confirmation=confirmation,
        balance=await get_balance(db, confirmation.user_id),
    )


async def record_failed_confirmation(
    db: AsyncSession,
    session: CheckoutSessionResult,
    *,
    reason: str,
    notifier: Optional[Notifier] = None,
) -> ConfirmationOutcome:
    """Record a session that will never be credited. Idempotent per session."""
    existing = await get_confirmation(db, session.id)
    if existing is not None:
        return await _replay(db, existing)

    user_id = session.metadata.get("userId")
    package_id = session.metadata.get("packageId", "")
    package = TOKEN_PACKAGES.get(package_id)
    if not user_id:
        logger.error("Checkout session %s has no userId metadata", session.id)
        return ConfirmationOutcome(status=IGNORED, session_id=session.id)

    await ensure_user(db, user_id=user_id)
    confirmation = PaymentConfirmation(
        session_id=session.id,
        user_id=user_id,
        package_id=package_id,
        tokens=package.tokens if package else 0,
        amount_total=session.amount_total,
        currency=session.currency,
        status=ConfirmationStatus.FAILED,
        failure_reason=reason,
    )
    db.add(confirmation)
    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        existing = await get_confirmation(db, session.id)
        if existing is None:
            raise
        return await _replay(db, existing)

    logger.warning("Checkout session %s not credited: %s", session.id, reason)
    if notifier is not None:
        package_name = package.name if package else "your token package"
        await notifier.notify(
            user_id=user_id,
            title="Payment Failed",
            message=f"Your payment for {package_name} could not be completed.",
            type=NotificationType.PAYMENT,
            related_id=session.id,
        )
    return ConfirmationOutcome(
        status=FAILED, session_id=session.id, confirmation=confirmation
    )


async def confirm_checkout_session(
    db: AsyncSession,
    session: CheckoutSessionResult,
    *,
    notifier: Optional[Notifier] = None,
) -> ConfirmationOutcome:
    """Credit the tokens bought in a paid checkout session, exactly once.

    The token count is re-derived from the catalog; the session metadata is
    only used to find the user and the package.
    """
    existing = await get_confirmation(db, session.id)
    if existing is not None:
        return await _replay(db, existing)

    user_id = session.metadata.get("userId")
    package_id = session.metadata.get("packageId")
    if not user_id:
        logger.error("Checkout session %s has no userId metadata", session.id)
        return ConfirmationOutcome(status=IGNORED, session_id=session.id)

    package = TOKEN_PACKAGES.get(package_id or "")
    if package is None:
        return await record_failed_confirmation(
            db, session, reason=f"Unknown package {package_id!r}", notifier=notifier
        )

    claimed = session.metadata.get("tokenCount")
    if claimed is not None and claimed != str(package.tokens):
        logger.warning(
            "Session %s metadata tokenCount=%s differs from catalog %d for %s",
            session.id,
            claimed,
            package.tokens,
            package.id,
        )

    if session.amount_total is not None and session.amount_total != package.price_cents:
        return await record_failed_confirmation(
            db,
            session,
            reason=(
                f"Amount mismatch: paid {session.amount_total}, "
                f"expected {package.price_cents}"
            ),
            notifier=notifier,
        )

    await ensure_user(db, user_id=user_id)
    kind = await resolve_profile_kind(db, user_id)
    if kind is None:
        return await record_failed_confirmation(
            db, session, reason="User has no profile to credit", notifier=notifier
        )

    confirmation = PaymentConfirmation(
        session_id=session.id,
        user_id=user_id,
        package_id=package.id,
        tokens=package.tokens,
        amount_total=session.amount_total,
        currency=session.currency,
        status=ConfirmationStatus.COMPLETED,
    )
    try:
        db.add(confirmation)
        await db.flush()
        txn = await apply_credit(
            db,
            user_id=user_id,
            amount=package.tokens,
            transaction_type=TransactionType.PURCHASE,
            description=f"Purchased {package.name} ({package.tokens:,} tokens)",
            kind=kind,
            related_entity_type="checkout_session",
            related_entity_id=session.id,
            idempotency_key=checkout_idempotency_key(session.id),
        )
        confirmation.transaction_id = txn.id
        await db.commit()
    except IntegrityError:
        # Another delivery of the same session won the race
        await db.rollback()
        existing = await get_confirmation(db, session.id)
        if existing is None:
            raise
        return await _replay(db, existing)

    logger.info(
        "Confirmed checkout session %s: +%d tokens for user %s, balance %d",
        session.id,
        package.tokens,
        user_id,
        txn.balance_after,
    )
    if notifier is not None:
        await notifier.tokens_added(
            user_id=user_id, amount=package.tokens, related_id=str(txn.id)
        )
    return ConfirmationOutcome(
        status=CREDITED,
        session_id=session.id,
        confirmation=confirmation,
        transaction=txn,
        balance=txn.balance_after,
    )


async def handle_webhook_event(
    db: AsyncSession,
    event: dict[str, Any],
    *,
    notifier: Optional[Notifier] = None,
) -> ConfirmationOutcome:
    """Dispatch a verified Stripe event. Unhandled event types are ignored."""
    event_type = event.get("type")
    obj = (event.get("data") or {}).get("object") or {}
    if not obj.get("id"):
        logger.info("Ignoring webhook event %s without an object id", event_type)
        return ConfirmationOutcome(status=IGNORED, session_id="")

    session = CheckoutSessionResult.from_stripe(obj)

    if event_type == SESSION_COMPLETED:
        if session.payment_status != "paid":
            # Delayed payment methods complete later via async_payment_succeeded
            logger.info(
                "Checkout session %s completed with payment_status=%s",
                session.id,
                session.payment_status,
            )
            return ConfirmationOutcome(status=PENDING, session_id=session.id)
        return await confirm_checkout_session(db, session, notifier=notifier)

    if event_type == ASYNC_PAYMENT_SUCCEEDED:
        return await confirm_checkout_session(db, session, notifier=notifier)

    if event_type == ASYNC_PAYMENT_FAILED:
        return await record_failed_confirmation(
            db, session, reason="Asynchronous payment failed", notifier=notifier
        )

    logger.info("Ignoring webhook event %s", event_type)
    return ConfirmationOutcome(status=IGNORED, session_id=session.id)


async def reconcile_checkout_session(
    db: AsyncSession,
    *,
    client: CheckoutClient,
    session_id: str,
    user_id: str,
    notifier: Optional[Notifier] = None,
) -> ConfirmationOutcome:
    """Poll the processor for ``session_id`` and confirm it if paid.

    Only the user the session was opened for may reconcile it.
    """
    session = await client.retrieve_session(session_id)
    if session.metadata.get("userId") != user_id:
        raise NotFound("Checkout session not found")

    if session.payment_status != "paid":
        existing = await get_confirmation(db, session.id)
        if existing is not None:
            return await _replay(db, existing)
        return ConfirmationOutcome(
            status=PENDING,
            session_id=session.id,
            balance=await get_balance(db, user_id),
        )
    return await confirm_checkout_session(db, session, notifier=notifier)
