"""Tests for the best-effort notifier and notification endpoints."""

import uuid

import pytest
from libs.common.errors import NotFound
from services.tokens_service.models import NotificationType
from services.tokens_service.services.notifier import (
    Notifier,
    list_notifications,
    mark_all_read,
    mark_read,
)
from services.tokens_service.services.profile_service import ensure_user
from tests.factories import auth_headers, unique_user_id


@pytest.mark.asyncio
@pytest.mark.unit
async def test_notify_creates_unread_notification(db_session, notifier, user_id):
    await ensure_user(db_session, user_id=user_id)

    created = await notifier.notify(
        user_id=user_id,
        title="Welcome",
        message="Thanks for joining",
        type=NotificationType.SYSTEM,
        related_id="welcome",
    )

    assert created is not None
    items, total, unread = await list_notifications(db_session, user_id=user_id)
    assert total == unread == 1
    assert items[0].title == "Welcome"
    assert items[0].is_read is False
    assert items[0].related_id == "welcome"


@pytest.mark.asyncio
@pytest.mark.unit
async def test_notify_swallows_store_failures():
    class BrokenSessionmaker:
        def __call__(self):
            raise RuntimeError("database unavailable")

    result = await Notifier(BrokenSessionmaker()).notify(
        user_id="anyone", title="t", message="m"
    )

    assert result is None


@pytest.mark.asyncio
@pytest.mark.unit
async def test_mark_read_is_idempotent(db_session, notifier, user_id):
    await ensure_user(db_session, user_id=user_id)
    created = await notifier.notify(user_id=user_id, title="Hi", message="There")

    first = await mark_read(db_session, user_id=user_id, notification_id=created.id)
    second = await mark_read(db_session, user_id=user_id, notification_id=created.id)

    assert first.is_read is True
    assert second.is_read is True
    _, _, unread = await list_notifications(db_session, user_id=user_id)
    assert unread == 0


@pytest.mark.asyncio
@pytest.mark.unit
async def test_mark_read_rejects_other_users_notification(db_session, notifier, user_id):
    await ensure_user(db_session, user_id=user_id)
    created = await notifier.notify(user_id=user_id, title="Private", message="Mine")

    with pytest.raises(NotFound):
        await mark_read(db_session, user_id=unique_user_id(), notification_id=created.id)


@pytest.mark.asyncio
@pytest.mark.unit
async def test_mark_all_read_is_idempotent(db_session, notifier, user_id):
    await ensure_user(db_session, user_id=user_id)
    for i in range(3):
        await notifier.notify(user_id=user_id, title=f"N{i}", message="m")

    assert await mark_all_read(db_session, user_id=user_id) == 3
    assert await mark_all_read(db_session, user_id=user_id) == 0

    items, total, unread = await list_notifications(
        db_session, user_id=user_id, unread_only=True
    )
    assert items == []
    assert total == 0
    assert unread == 0


# ---------------------------------------------------------------------------
# HTTP
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
@pytest.mark.integration
async def test_notification_endpoints(client, notifier, user_id):
    headers = auth_headers(user_id)
    # First authenticated call creates the user row
    empty = await client.get("/notifications", headers=headers)
    assert empty.status_code == 200
    assert empty.json()["total"] == 0

    first = await notifier.notify(user_id=user_id, title="One", message="1")
    await notifier.notify(user_id=user_id, title="Two", message="2")

    listing = await client.get("/notifications", headers=headers)
    data = listing.json()
    assert data["total"] == 2
    assert data["unread"] == 2
    assert [n["title"] for n in data["notifications"]] == ["Two", "One"]

    read = await client.post(f"/notifications/{first.id}/read", headers=headers)
    assert read.status_code == 200
    assert read.json()["is_read"] is True

    unread_only = await client.get(
        "/notifications", params={"unread_only": "true"}, headers=headers
    )
    assert [n["title"] for n in unread_only.json()["notifications"]] == ["Two"]

    read_all = await client.post("/notifications/read-all", headers=headers)
    assert read_all.json() == {"updated": 1}
    read_all_again = await client.post("/notifications/read-all", headers=headers)
    assert read_all_again.json() == {"updated": 0}


@pytest.mark.asyncio
@pytest.mark.integration
async def test_mark_unknown_notification_read_is_404(client, user_id):
    response = await client.post(
        f"/notifications/{uuid.uuid4()}/read", headers=auth_headers(user_id)
    )

    assert response.status_code == 404
