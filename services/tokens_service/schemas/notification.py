"""Notification schemas."""

import uuid
from datetime import datetime
from typing import Optional

from libs.common.datetime_utils import as_utc
from pydantic import BaseModel, ConfigDict, field_validator
from services.tokens_service.models.enums import NotificationType


class NotificationResponse(BaseModel):
    id: uuid.UUID
    title: str
    message: str
    type: NotificationType
    related_id: Optional[str] = None
    is_read: bool
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)

    @field_validator("created_at")
    @classmethod
    def ensure_utc(cls, v: datetime) -> datetime:
        return as_utc(v)


class NotificationListResponse(BaseModel):
    notifications: list[NotificationResponse]
    total: int
    unread: int
    limit: int
    offset: int


class MarkAllReadResponse(BaseModel):
    updated: int
