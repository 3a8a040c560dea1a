"""Notification endpoints."""

import uuid
from typing import Annotated

from fastapi import APIRouter, Depends, Query
from libs.db.session import get_read_db
from services.tokens_service.dependencies import RegisteredUser, ServiceDB
from services.tokens_service.schemas import (
    MarkAllReadResponse,
    NotificationListResponse,
    NotificationResponse,
)
from services.tokens_service.services.notifier import (
    list_notifications,
    mark_all_read,
    mark_read,
)
from sqlalchemy.ext.asyncio import AsyncSession

router = APIRouter(prefix="/notifications", tags=["notifications"])


@router.get("", response_model=NotificationListResponse)
async def get_notifications(
    current_user: RegisteredUser,
    db: Annotated[AsyncSession, Depends(get_read_db)],
    unread_only: bool = False,
    limit: int = Query(20, ge=1, le=100),
    offset: int = Query(0, ge=0),
):
    items, total, unread = await list_notifications(
        db,
        user_id=current_user.user_id,
        unread_only=unread_only,
        limit=limit,
        offset=offset,
    )
    return NotificationListResponse(
        notifications=[NotificationResponse.model_validate(n) for n in items],
        total=total,
        unread=unread,
        limit=limit,
        offset=offset,
    )


@router.post("/read-all", response_model=MarkAllReadResponse)
async def read_all_notifications(current_user: RegisteredUser, db: ServiceDB):
    updated = await mark_all_read(db, user_id=current_user.user_id)
    return MarkAllReadResponse(updated=updated)


@router.post("/{notification_id}/read", response_model=NotificationResponse)
async def read_notification(
    notification_id: uuid.UUID, current_user: RegisteredUser, db: ServiceDB
):
    notification = await mark_read(
        db, user_id=current_user.user_id, notification_id=notification_id
    )
    return NotificationResponse.model_validate(notification)
