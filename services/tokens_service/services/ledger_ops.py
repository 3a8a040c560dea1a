"""Core ledger operations: atomic credit/debit with idempotency.

The cached balance on the profile row and the ``token_transactions`` ledger
move together: every balance change is a single conditional
``UPDATE ... RETURNING`` on the profile followed by the ledger insert, both
in one database transaction.
"""

from typing import Optional

from libs.common.datetime_utils import utc_now
from libs.common.errors import InsufficientBalance, NotFound
from libs.common.logging import get_logger
from services.tokens_service.models import (
    ProfileKind,
    TokenTransaction,
    TransactionType,
)
from services.tokens_service.services.notifier import Notifier
from services.tokens_service.services.profile_service import (
    profile_model,
    resolve_profile_kind,
)
from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

logger = get_logger(__name__)

DEFAULT_PAGE_SIZE = 50
MAX_PAGE_SIZE = 100


def _require_positive_int(amount: int) -> None:
    if isinstance(amount, bool) or not isinstance(amount, int) or amount <= 0:
        raise ValueError("amount must be a positive integer")


async def _resolve_kind(
    db: AsyncSession, user_id: str, kind: Optional[ProfileKind]
) -> ProfileKind:
    if kind is not None:
        return kind
    resolved = await resolve_profile_kind(db, user_id)
    if resolved is None:
        raise NotFound("Profile not found")
    return resolved


async def get_transaction_by_key(
    db: AsyncSession, idempotency_key: str
) -> Optional[TokenTransaction]:
    result = await db.execute(
        select(TokenTransaction).where(
            TokenTransaction.idempotency_key == idempotency_key
        )
    )
    return result.scalar_one_or_none()


# ---------------------------------------------------------------------------
# Uncommitted building blocks
# ---------------------------------------------------------------------------


async def apply_credit(
    db: AsyncSession,
    *,
    user_id: str,
    amount: int,
    transaction_type: TransactionType,
    description: str,
    kind: ProfileKind,
    related_entity_type: Optional[str] = None,
    related_entity_id: Optional[str] = None,
    idempotency_key: Optional[str] = None,
) -> TokenTransaction:
    """Increment the balance and append the ledger row without committing.

    Callers that need other writes in the same transaction (payment
    confirmation) use this directly and commit themselves.
    """
    _require_positive_int(amount)
    model = profile_model(kind)
    result = await db.execute(
        update(model)
        .where(model.user_id == user_id)
        .values(tokens=model.tokens + amount, updated_at=utc_now())
        .returning(model.tokens)
        .execution_options(synchronize_session=False)
    )
    balance_after = result.scalar_one_or_none()
    if balance_after is None:
        raise NotFound("Profile not found")

    txn = TokenTransaction(
        user_id=user_id,
        amount=amount,
        transaction_type=transaction_type,
        description=description,
        related_entity_type=related_entity_type,
        related_entity_id=related_entity_id,
        idempotency_key=idempotency_key,
        balance_after=balance_after,
    )
    db.add(txn)
    await db.flush()
    return txn


async def apply_debit(
    db: AsyncSession,
    *,
    user_id: str,
    amount: int,
    description: str,
    kind: ProfileKind,
    transaction_type: TransactionType = TransactionType.SPEND,
    related_entity_type: Optional[str] = None,
    related_entity_id: Optional[str] = None,
    idempotency_key: Optional[str] = None,
) -> TokenTransaction:
    """Conditionally decrement the balance and append the ledger row.

    The ``tokens >= amount`` guard is evaluated by the database, so two
    concurrent debits can never both pass a stale balance check.
    """
    _require_positive_int(amount)
    model = profile_model(kind)
    result = await db.execute(
        update(model)
        .where(model.user_id == user_id, model.tokens >= amount)
        .values(tokens=model.tokens - amount, updated_at=utc_now())
        .returning(model.tokens)
        .execution_options(synchronize_session=False)
    )
    balance_after = result.scalar_one_or_none()
    if balance_after is None:
        current = (
            await db.execute(select(model.tokens).where(model.user_id == user_id))
        ).scalar_one_or_none()
        await db.rollback()
        if current is None:
            raise NotFound("Profile not found")
        raise InsufficientBalance(balance=current, required=amount)

    txn = TokenTransaction(
        user_id=user_id,
        amount=-amount,
        transaction_type=transaction_type,
        description=description,
        related_entity_type=related_entity_type,
        related_entity_id=related_entity_id,
        idempotency_key=idempotency_key,
        balance_after=balance_after,
    )
    db.add(txn)
    await db.flush()
    return txn


# ---------------------------------------------------------------------------
# Credit / debit
# ---------------------------------------------------------------------------


async def record_credit(
    db: AsyncSession,
    *,
    user_id: str,
    amount: int,
    transaction_type: TransactionType,
    description: str,
    related_entity_type: Optional[str] = None,
    related_entity_id: Optional[str] = None,
    idempotency_key: Optional[str] = None,
    kind: Optional[ProfileKind] = None,
    notifier: Optional[Notifier] = None,
) -> TokenTransaction:
    """Credit ``amount`` tokens to a user and record it in the ledger.

    A replayed ``idempotency_key`` returns the original transaction.
    """
    _require_positive_int(amount)
    if idempotency_key:
        existing = await get_transaction_by_key(db, idempotency_key)
        if existing:
            logger.info(
                "Idempotent replay for key=%s, txn=%s", idempotency_key, existing.id
            )
            return existing

    kind = await _resolve_kind(db, user_id, kind)
    try:
        txn = await apply_credit(
            db,
            user_id=user_id,
            amount=amount,
            transaction_type=transaction_type,
            description=description,
            kind=kind,
            related_entity_type=related_entity_type,
            related_entity_id=related_entity_id,
            idempotency_key=idempotency_key,
        )
        await db.commit()
    except IntegrityError:
        await db.rollback()
        existing = (
            await get_transaction_by_key(db, idempotency_key)
            if idempotency_key
            else None
        )
        if existing is None:
            raise
        return existing
    except NotFound:
        await db.rollback()
        raise

    logger.info(
        "Credit %d to user %s (key=%s), balance now %d",
        amount,
        user_id,
        idempotency_key,
        txn.balance_after,
    )
    if notifier is not None:
        await notifier.tokens_added(
            user_id=user_id, amount=amount, related_id=str(txn.id)
        )
    return txn


async def record_debit(
    db: AsyncSession,
    *,
    user_id: str,
    amount: int,
    description: str,
    related_entity_type: Optional[str] = None,
    related_entity_id: Optional[str] = None,
    idempotency_key: Optional[str] = None,
    kind: Optional[ProfileKind] = None,
    notifier: Optional[Notifier] = None,
) -> TokenTransaction:
    """Spend ``amount`` tokens, failing with InsufficientBalance if short.

    Nothing is written when the debit fails.
    """
    _require_positive_int(amount)
    if idempotency_key:
        existing = await get_transaction_by_key(db, idempotency_key)
        if existing:
            logger.info(
                "Idempotent replay for key=%s, txn=%s", idempotency_key, existing.id
            )
            return existing

    kind = await _resolve_kind(db, user_id, kind)
    try:
        txn = await apply_debit(
            db,
            user_id=user_id,
            amount=amount,
            description=description,
            kind=kind,
            related_entity_type=related_entity_type,
            related_entity_id=related_entity_id,
            idempotency_key=idempotency_key,
        )
        await db.commit()
    except IntegrityError:
        await db.rollback()
        existing = (
            await get_transaction_by_key(db, idempotency_key)
            if idempotency_key
            else None
        )
        if existing is None:
            raise
        return existing

    logger.info(
        "Debit %d from user %s (key=%s), balance now %d",
        amount,
        user_id,
        idempotency_key,
        txn.balance_after,
    )
    if notifier is not None:
        await notifier.tokens_spent(
            user_id=user_id,
            amount=amount,
            description=description,
            related_id=str(txn.id),
        )
    return txn


# ---------------------------------------------------------------------------
# Queries
# ---------------------------------------------------------------------------


async def get_balance(
    db: AsyncSession, user_id: str, kind: Optional[ProfileKind] = None
) -> int:
    """Cached balance from the profile row; 0 when the user has no profile."""
    if kind is None:
        kind = await resolve_profile_kind(db, user_id)
        if kind is None:
            return 0
    model = profile_model(kind)
    result = await db.execute(select(model.tokens).where(model.user_id == user_id))
    return result.scalar_one_or_none() or 0


async def list_transactions(
    db: AsyncSession,
    *,
    user_id: str,
    limit: int = DEFAULT_PAGE_SIZE,
    offset: int = 0,
) -> tuple[list[TokenTransaction], int, int, int]:
    """Return ``(page, total, limit, offset)``, newest first.

    ``limit`` and ``offset`` are clamped to non-negative values and ``limit``
    is capped at MAX_PAGE_SIZE.
    """
    limit = min(max(int(limit), 0), MAX_PAGE_SIZE)
    offset = max(int(offset), 0)

    total = (
        await db.execute(
            select(func.count())
            .select_from(TokenTransaction)
            .where(TokenTransaction.user_id == user_id)
        )
    ).scalar_one()

    if limit == 0:
        return [], total, limit, offset

    result = await db.execute(
        select(TokenTransaction)
        .where(TokenTransaction.user_id == user_id)
        .order_by(TokenTransaction.created_at.desc(), TokenTransaction.id.desc())
        .offset(offset)
        .limit(limit)
    )
    return list(result.scalars().all()), total, limit, offset


async def get_ledger_balance(db: AsyncSession, user_id: str) -> int:
    """Sum of the user's ledger amounts (the source of truth)."""
    result = await db.execute(
        select(func.coalesce(func.sum(TokenTransaction.amount), 0)).where(
            TokenTransaction.user_id == user_id
        )
    )
    return int(result.scalar_one())


async def reconcile_balance(
    db: AsyncSession, *, user_id: str, kind: Optional[ProfileKind] = None
) -> int:
    """Re-project the cached balance from the ledger sum and return it.

    The sum is evaluated inside the UPDATE on the locked profile row, so a
    credit or debit committed in the meantime is included, never overwritten.
    """
    kind = await _resolve_kind(db, user_id, kind)
    model = profile_model(kind)
    cached = (
        await db.execute(
            select(model.tokens).where(model.user_id == user_id).with_for_update()
        )
    ).scalar_one_or_none()
    if cached is None:
        await db.rollback()
        raise NotFound("Profile not found")

    ledger_sum = (
        select(func.coalesce(func.sum(TokenTransaction.amount), 0))
        .where(TokenTransaction.user_id == user_id)
        .scalar_subquery()
    )
    result = await db.execute(
        update(model)
        .where(model.user_id == user_id)
        .values(tokens=ledger_sum, updated_at=utc_now())
        .returning(model.tokens)
        .execution_options(synchronize_session=False)
    )
    ledger_balance = result.scalar_one_or_none()
    if ledger_balance is None:
        await db.rollback()
        raise NotFound("Profile not found")
    await db.commit()

    if cached != ledger_balance:
        logger.warning(
            "Balance drift for user %s: cached=%d ledger=%d",
            user_id,
            cached,
            ledger_balance,
        )
    logger.info("Reconciled balance for user %s to %d", user_id, ledger_balance)
    return ledger_balance
