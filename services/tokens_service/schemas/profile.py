"""Profile schemas."""

import uuid
from typing import Optional

from pydantic import BaseModel, Field
from services.tokens_service.models.enums import ProfileKind


class ProfileCreateRequest(BaseModel):
    kind: ProfileKind
    company_name: Optional[str] = Field(default=None, max_length=200)
    display_name: Optional[str] = Field(default=None, max_length=200)
    website: Optional[str] = Field(default=None, max_length=500)
    niche: Optional[str] = Field(default=None, max_length=100)
    bio: Optional[str] = None


class ProfileResponse(BaseModel):
    id: uuid.UUID
    user_id: str
    kind: ProfileKind
    name: Optional[str] = None
    token_balance: int
    created: bool = False
