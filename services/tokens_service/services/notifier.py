"""Best-effort user notifications.

``Notifier.notify`` writes through its own session so a failed insert can
never roll back, or fail, the ledger operation that triggered it.
"""

import uuid
from typing import Optional

from libs.common.errors import NotFound
from libs.common.logging import get_logger
from services.tokens_service.models import Notification, NotificationType
from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

logger = get_logger(__name__)


class Notifier:
    def __init__(self, sessionmaker: async_sessionmaker[AsyncSession]):
        self._sessionmaker = sessionmaker

    async def notify(
        self,
        *,
        user_id: str,
        title: str,
        message: str,
        type: NotificationType = NotificationType.SYSTEM,
        related_id: Optional[str] = None,
    ) -> Optional[Notification]:
        """Insert a notification. Returns None (after logging) on failure."""
        try:
            async with self._sessionmaker() as session:
                notification = Notification(
                    user_id=user_id,
                    title=title,
                    message=message,
                    type=type,
                    related_id=related_id,
                    is_read=False,
                )
                session.add(notification)
                await session.commit()
                return notification
        except Exception:
            logger.exception(
                "Failed to create %s notification for user %s", type.value, user_id
            )
            return None

    async def tokens_added(
        self, *, user_id: str, amount: int, related_id: Optional[str] = None
    ) -> Optional[Notification]:
        return await self.notify(
            user_id=user_id,
            title="Tokens Added",
            message=f"{amount} tokens have been added to your account.",
            type=NotificationType.TOKEN_UPDATE,
            related_id=related_id,
        )

    async def tokens_spent(
        self,
        *,
        user_id: str,
        amount: int,
        description: str,
        related_id: Optional[str] = None,
    ) -> Optional[Notification]:
        return await self.notify(
            user_id=user_id,
            title="Tokens Spent",
            message=f"{amount} tokens have been spent: {description}",
            type=NotificationType.TOKEN_UPDATE,
            related_id=related_id,
        )


async def list_notifications(
    db: AsyncSession,
    *,
    user_id: str,
    unread_only: bool = False,
    limit: int = 20,
    offset: int = 0,
) -> tuple[list[Notification], int, int]:
    """Return ``(page, total, unread)`` for a user's notifications, newest first."""
    query = select(Notification).where(Notification.user_id == user_id)
    if unread_only:
        query = query.where(Notification.is_read.is_(False))

    total = (
        await db.execute(select(func.count()).select_from(query.subquery()))
    ).scalar_one()
    unread = (
        await db.execute(
            select(func.count())
            .select_from(Notification)
            .where(Notification.user_id == user_id, Notification.is_read.is_(False))
        )
    ).scalar_one()

    result = await db.execute(
        query.order_by(Notification.created_at.desc(), Notification.id.desc())
        .offset(offset)
        .limit(limit)
    )
    return list(result.scalars().all()), total, unread


async def mark_read(
    db: AsyncSession, *, user_id: str, notification_id: uuid.UUID
) -> Notification:
    """Mark one of the user's notifications read. Marking twice is a no-op."""
    result = await db.execute(
        select(Notification).where(
            Notification.id == notification_id, Notification.user_id == user_id
        )
    )
    notification = result.scalar_one_or_none()
    if notification is None:
        raise NotFound("Notification not found")
    if not notification.is_read:
        notification.is_read = True
        await db.commit()
        await db.refresh(notification)
    return notification


async def mark_all_read(db: AsyncSession, *, user_id: str) -> int:
    """Mark every unread notification read; returns how many changed."""
    result = await db.execute(
        update(Notification)
        .where(Notification.user_id == user_id, Notification.is_read.is_(False))
        .values(is_read=True)
        .execution_options(synchronize_session=False)
    )
    await db.commit()
    return result.rowcount or 0
