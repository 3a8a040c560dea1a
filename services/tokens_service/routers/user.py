"""Balance and ledger endpoints for the signed-in user."""

from typing import Annotated

from fastapi import APIRouter, Depends
from libs.common.errors import InvalidRequest
from libs.common.logging import get_logger
from libs.db.session import get_read_db
from services.tokens_service.dependencies import NotifierDep, RegisteredUser, ServiceDB
from services.tokens_service.schemas import (
    BalanceResponse,
    LedgerBalanceResponse,
    SpendRequest,
    SpendResponse,
    TransactionListResponse,
    TransactionResponse,
)
from services.tokens_service.services.ledger_ops import (
    DEFAULT_PAGE_SIZE,
    get_balance,
    get_ledger_balance,
    list_transactions,
    reconcile_balance,
    record_debit,
)
from sqlalchemy.ext.asyncio import AsyncSession

logger = get_logger(__name__)
router = APIRouter(prefix="/user", tags=["tokens"])

ReadDB = Annotated[AsyncSession, Depends(get_read_db)]


@router.get("/tokens", response_model=BalanceResponse)
async def get_my_balance(current_user: RegisteredUser, db: ReadDB):
    """Get the current user's token balance."""
    balance = await get_balance(db, current_user.user_id)
    return BalanceResponse(token_balance=balance, user_id=current_user.user_id)


@router.get("/transactions", response_model=TransactionListResponse)
async def get_my_transactions(
    current_user: RegisteredUser,
    db: ReadDB,
    limit: int = DEFAULT_PAGE_SIZE,
    offset: int = 0,
):
    """List the current user's token transactions, newest first."""
    transactions, total, limit, offset = await list_transactions(
        db, user_id=current_user.user_id, limit=limit, offset=offset
    )
    return TransactionListResponse(
        transactions=[TransactionResponse.model_validate(t) for t in transactions],
        total=total,
        limit=limit,
        offset=offset,
    )


@router.post("/tokens/spend", response_model=SpendResponse)
async def spend_tokens(
    body: SpendRequest,
    current_user: RegisteredUser,
    db: ServiceDB,
    notifier: NotifierDep,
):
    """Spend tokens from the current user's balance."""
    try:
        txn = await record_debit(
            db,
            user_id=current_user.user_id,
            amount=body.amount,
            description=body.description,
            related_entity_type=body.related_entity_type,
            related_entity_id=body.related_entity_id,
            idempotency_key=body.idempotency_key,
            notifier=notifier,
        )
    except ValueError as e:
        raise InvalidRequest(str(e)) from e

    return SpendResponse(
        success=True,
        transaction=TransactionResponse.model_validate(txn),
        token_balance=txn.balance_after,
    )


@router.get("/tokens/audit", response_model=LedgerBalanceResponse)
async def audit_my_balance(current_user: RegisteredUser, db: ReadDB):
    """Compare the cached balance with the ledger sum."""
    cached = await get_balance(db, current_user.user_id)
    ledger = await get_ledger_balance(db, current_user.user_id)
    return LedgerBalanceResponse(
        user_id=current_user.user_id,
        token_balance=cached,
        ledger_balance=ledger,
        in_sync=cached == ledger,
    )


@router.post("/tokens/reconcile", response_model=LedgerBalanceResponse)
async def reconcile_my_balance(current_user: RegisteredUser, db: ServiceDB):
    """Rebuild the cached balance from the ledger."""
    balance = await reconcile_balance(db, user_id=current_user.user_id)
    return LedgerBalanceResponse(
        user_id=current_user.user_id,
        token_balance=balance,
        ledger_balance=balance,
        in_sync=True,
    )
