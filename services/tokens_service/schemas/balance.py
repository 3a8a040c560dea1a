"""Balance schemas."""

from pydantic import BaseModel


class BalanceResponse(BaseModel):
    token_balance: int
    user_id: str


class LedgerBalanceResponse(BaseModel):
    """Cached balance next to the ledger sum it is derived from."""

    user_id: str
    token_balance: int
    ledger_balance: int
    in_sync: bool
