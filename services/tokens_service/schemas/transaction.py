"""Ledger request/response schemas."""

import uuid
from datetime import datetime
from typing import Optional

from libs.common.datetime_utils import as_utc
from pydantic import BaseModel, ConfigDict, Field, field_validator
from services.tokens_service.models.enums import TransactionType


class TransactionResponse(BaseModel):
    id: uuid.UUID
    user_id: str
    amount: int
    transaction_type: TransactionType
    description: str
    related_entity_type: Optional[str] = None
    related_entity_id: Optional[str] = None
    balance_after: int
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)

    @field_validator("created_at")
    @classmethod
    def ensure_utc(cls, v: datetime) -> datetime:
        return as_utc(v)


class TransactionListResponse(BaseModel):
    transactions: list[TransactionResponse]
    total: int
    limit: int
    offset: int


class SpendRequest(BaseModel):
    """Authenticated debit of the caller's own balance."""

    amount: int = Field(..., gt=0)
    description: str = Field(..., min_length=1, max_length=500)
    related_entity_type: Optional[str] = Field(default=None, max_length=50)
    related_entity_id: Optional[str] = Field(default=None, max_length=128)
    idempotency_key: Optional[str] = Field(default=None, max_length=255)


class SpendResponse(BaseModel):
    success: bool
    transaction: TransactionResponse
    token_balance: int
