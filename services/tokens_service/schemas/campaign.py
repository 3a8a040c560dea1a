"""Campaign schemas."""

import uuid
from datetime import datetime
from typing import Optional

from libs.common.datetime_utils import as_utc
from pydantic import BaseModel, ConfigDict, Field, field_validator
from services.tokens_service.models.enums import CampaignStatus


class CampaignCreateRequest(BaseModel):
    title: str = Field(..., min_length=1, max_length=200)
    description: Optional[str] = None
    budget: Optional[int] = Field(default=None, ge=0)
    status: CampaignStatus = CampaignStatus.DRAFT


class CampaignResponse(BaseModel):
    id: uuid.UUID
    custom_id: str
    business_id: uuid.UUID
    title: str
    description: Optional[str] = None
    budget: Optional[int] = None
    status: CampaignStatus
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)

    @field_validator("created_at")
    @classmethod
    def ensure_utc(cls, v: datetime) -> datetime:
        return as_utc(v)


class CampaignCreateResponse(BaseModel):
    campaign: CampaignResponse
    tokens_spent: int
    token_balance: int
