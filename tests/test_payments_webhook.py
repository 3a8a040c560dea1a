"""Tests for payment confirmation: webhook, session poll and exactly-once crediting."""

import asyncio
import json

import pytest
from services.tokens_service.models import (
    ConfirmationStatus,
    NotificationType,
    PaymentConfirmation,
    ProfileKind,
    TransactionType,
)
from services.tokens_service.services.checkout_service import create_checkout
from services.tokens_service.services.confirmation_service import (
    CREDITED,
    FAILED,
    IGNORED,
    PENDING,
    REPLAYED,
    confirm_checkout_session,
    handle_webhook_event,
    reconcile_checkout_session,
)
from services.tokens_service.services.ledger_ops import (
    get_balance,
    get_ledger_balance,
    list_transactions,
)
from services.tokens_service.services.notifier import list_notifications
from sqlalchemy import func, select
from tests.factories import (
    auth_headers,
    make_event,
    make_profile,
    make_session,
    sign_payload,
)


async def _confirmation_count(db, session_id):
    return (
        await db.execute(
            select(func.count())
            .select_from(PaymentConfirmation)
            .where(PaymentConfirmation.session_id == session_id)
        )
    ).scalar_one()


# ---------------------------------------------------------------------------
# confirm_checkout_session
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
@pytest.mark.unit
async def test_small_package_credits_once_with_notification(
    db_session, notifier, user_id
):
    await make_profile(db_session, user_id=user_id)
    session = make_session(user_id=user_id, package_id="small")

    outcome = await confirm_checkout_session(db_session, session, notifier=notifier)

    assert outcome.status == CREDITED
    assert outcome.balance == 1000
    txn = outcome.transaction
    assert txn.amount == 1000
    assert txn.transaction_type == TransactionType.PURCHASE
    assert txn.idempotency_key == f"checkout:{session.id}"
    assert txn.related_entity_id == session.id
    assert outcome.confirmation.status == ConfirmationStatus.COMPLETED
    assert outcome.confirmation.transaction_id == txn.id

    assert await get_balance(db_session, user_id) == 1000
    items, total, _ = await list_notifications(db_session, user_id=user_id)
    assert total == 1
    assert items[0].type == NotificationType.TOKEN_UPDATE
    assert items[0].message == "1000 tokens have been added to your account."


@pytest.mark.asyncio
@pytest.mark.unit
async def test_duplicate_confirmation_is_noop(db_session, notifier, user_id):
    await make_profile(db_session, user_id=user_id)
    session = make_session(user_id=user_id, package_id="medium")

    first = await confirm_checkout_session(db_session, session, notifier=notifier)
    second = await confirm_checkout_session(db_session, session, notifier=notifier)

    assert first.status == CREDITED
    assert second.status == REPLAYED
    assert second.balance == 2500
    assert await get_balance(db_session, user_id) == 2500
    _, total, _, _ = await list_transactions(db_session, user_id=user_id)
    assert total == 1
    _, notifications, _ = await list_notifications(db_session, user_id=user_id)
    assert notifications == 1


@pytest.mark.asyncio
@pytest.mark.unit
async def test_concurrent_confirmations_credit_once(
    db_session, session_factory, user_id
):
    await make_profile(db_session, user_id=user_id)
    session = make_session(user_id=user_id, package_id="large")

    async def _confirm():
        async with session_factory() as s:
            return (await confirm_checkout_session(s, session)).status

    statuses = await asyncio.gather(_confirm(), _confirm(), _confirm())

    assert statuses.count(CREDITED) == 1
    assert statuses.count(REPLAYED) == 2
    async with session_factory() as s:
        assert await get_balance(s, user_id) == 5000
        assert await get_ledger_balance(s, user_id) == 5000
        assert await _confirmation_count(s, session.id) == 1


@pytest.mark.asyncio
@pytest.mark.unit
async def test_catalog_wins_over_metadata_token_count(db_session, user_id):
    await make_profile(db_session, user_id=user_id)
    session = make_session(user_id=user_id, package_id="small", token_count="999999")

    outcome = await confirm_checkout_session(db_session, session)

    assert outcome.status == CREDITED
    assert await get_balance(db_session, user_id) == 1000


@pytest.mark.asyncio
@pytest.mark.unit
async def test_amount_mismatch_recorded_as_failed(db_session, notifier, user_id):
    await make_profile(db_session, user_id=user_id)
    session = make_session(user_id=user_id, package_id="large", amount_total=100)

    outcome = await confirm_checkout_session(db_session, session, notifier=notifier)

    assert outcome.status == FAILED
    assert outcome.confirmation.status == ConfirmationStatus.FAILED
    assert "Amount mismatch" in outcome.confirmation.failure_reason
    assert await get_balance(db_session, user_id) == 0

    # A later delivery of the same session cannot credit it either
    replay = await confirm_checkout_session(db_session, session)
    assert replay.status == REPLAYED
    assert await get_balance(db_session, user_id) == 0

    items, _, _ = await list_notifications(db_session, user_id=user_id)
    assert [n.type for n in items] == [NotificationType.PAYMENT]


@pytest.mark.asyncio
@pytest.mark.unit
async def test_unknown_package_recorded_as_failed(db_session, user_id):
    await make_profile(db_session, user_id=user_id)
    session = make_session(user_id=user_id, package_id="xl")

    outcome = await confirm_checkout_session(db_session, session)

    assert outcome.status == FAILED
    assert await get_balance(db_session, user_id) == 0


@pytest.mark.asyncio
@pytest.mark.unit
async def test_credit_goes_to_influencer_profile(db_session, user_id):
    await make_profile(db_session, user_id=user_id, kind=ProfileKind.INFLUENCER)

    await confirm_checkout_session(db_session, make_session(user_id=user_id))

    assert await get_balance(db_session, user_id, ProfileKind.INFLUENCER) == 1000


@pytest.mark.asyncio
@pytest.mark.unit
async def test_session_without_user_is_ignored(db_session):
    session = make_session(user_id="")

    outcome = await confirm_checkout_session(db_session, session)

    assert outcome.status == IGNORED


# ---------------------------------------------------------------------------
# handle_webhook_event
# ---------------------------------------------------------------------------


def _event_dict(event_type, session):
    return json.loads(make_event(event_type, session))


@pytest.mark.asyncio
@pytest.mark.unit
async def test_completed_but_unpaid_session_waits(db_session, user_id):
    await make_profile(db_session, user_id=user_id)
    session = make_session(user_id=user_id, payment_status="unpaid")

    outcome = await handle_webhook_event(
        db_session, _event_dict("checkout.session.completed", session)
    )

    assert outcome.status == PENDING
    assert await get_balance(db_session, user_id) == 0

    session.payment_status = "paid"
    outcome = await handle_webhook_event(
        db_session, _event_dict("checkout.session.async_payment_succeeded", session)
    )
    assert outcome.status == CREDITED
    assert await get_balance(db_session, user_id) == 1000


@pytest.mark.asyncio
@pytest.mark.unit
async def test_async_payment_failed_records_failure(db_session, notifier, user_id):
    await make_profile(db_session, user_id=user_id)
    session = make_session(user_id=user_id, payment_status="unpaid")

    outcome = await handle_webhook_event(
        db_session,
        _event_dict("checkout.session.async_payment_failed", session),
        notifier=notifier,
    )

    assert outcome.status == FAILED
    assert await get_balance(db_session, user_id) == 0
    items, _, _ = await list_notifications(db_session, user_id=user_id)
    assert items[0].title == "Payment Failed"
    assert items[0].message == "Your payment for Small Package could not be completed."


@pytest.mark.asyncio
@pytest.mark.unit
async def test_unrelated_event_is_ignored(db_session, user_id):
    session = make_session(user_id=user_id)

    outcome = await handle_webhook_event(
        db_session, _event_dict("checkout.session.expired", session)
    )

    assert outcome.status == IGNORED


# ---------------------------------------------------------------------------
# reconcile_checkout_session
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
@pytest.mark.unit
async def test_reconcile_confirms_paid_session(
    db_session, checkout_client, settings, notifier, user_id
):
    await make_profile(db_session, user_id=user_id)
    result = await create_checkout(
        client=checkout_client, settings=settings, user_id=user_id, package_id="small"
    )

    pending = await reconcile_checkout_session(
        db_session, client=checkout_client, session_id=result.session_id, user_id=user_id
    )
    assert pending.status == PENDING
    assert pending.balance == 0

    checkout_client.mark_paid(result.session_id)
    credited = await reconcile_checkout_session(
        db_session,
        client=checkout_client,
        session_id=result.session_id,
        user_id=user_id,
        notifier=notifier,
    )
    assert credited.status == CREDITED
    assert credited.balance == 1000


# ---------------------------------------------------------------------------
# HTTP
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
@pytest.mark.integration
async def test_webhook_credits_small_package_once(client, db_session, user_id):
    await make_profile(db_session, user_id=user_id)
    session = make_session(user_id=user_id, package_id="small")
    payload = make_event("checkout.session.completed", session)
    headers = {"Stripe-Signature": sign_payload(payload), "Content-Type": "application/json"}

    first = await client.post("/payments/webhook", content=payload, headers=headers)
    second = await client.post("/payments/webhook", content=payload, headers=headers)

    assert first.status_code == 200, first.text
    assert first.json() == {"received": True, "status": "credited"}
    assert second.json() == {"received": True, "status": "replayed"}

    balance = await client.get("/user/tokens", headers=auth_headers(user_id))
    assert balance.json() == {"token_balance": 1000, "user_id": user_id}

    notifications = await client.get("/notifications", headers=auth_headers(user_id))
    assert notifications.json()["total"] == 1


@pytest.mark.asyncio
@pytest.mark.integration
async def test_webhook_rejects_bad_signature(client, db_session, user_id):
    await make_profile(db_session, user_id=user_id)
    payload = make_event("checkout.session.completed", make_session(user_id=user_id))

    forged = await client.post(
        "/payments/webhook",
        content=payload,
        headers={"Stripe-Signature": sign_payload(payload, secret="whsec_wrong")},
    )
    missing = await client.post("/payments/webhook", content=payload)

    assert forged.status_code == 400
    assert forged.json()["code"] == "INVALID_REQUEST"
    assert missing.status_code == 400
    assert await get_balance(db_session, user_id) == 0


@pytest.mark.asyncio
@pytest.mark.integration
async def test_reconcile_endpoint(client, checkout_client, db_session, user_id):
    await make_profile(db_session, user_id=user_id)
    headers = auth_headers(user_id)
    created = await client.post(
        "/payments/create-payment-intent", json={"packageId": "medium"}, headers=headers
    )
    session_id = created.json()["sessionId"]
    checkout_client.mark_paid(session_id)

    response = await client.post(
        f"/payments/sessions/{session_id}/reconcile", headers=headers
    )

    assert response.status_code == 200, response.text
    assert response.json() == {
        "sessionId": session_id,
        "status": "credited",
        "tokensCredited": 2500,
        "tokenBalance": 2500,
    }


@pytest.mark.asyncio
@pytest.mark.integration
async def test_reconcile_other_users_session_is_404(
    client, checkout_client, db_session, user_id
):
    await make_profile(db_session, user_id=user_id)
    created = await client.post(
        "/payments/create-payment-intent",
        json={"packageId": "small"},
        headers=auth_headers(user_id),
    )
    session_id = created.json()["sessionId"]
    checkout_client.mark_paid(session_id)

    response = await client.post(
        f"/payments/sessions/{session_id}/reconcile",
        headers=auth_headers("someone-else"),
    )

    assert response.status_code == 404
    assert await get_balance(db_session, user_id) == 0


@pytest.mark.asyncio
@pytest.mark.integration
async def test_webhook_rejects_non_utf8_body(client):
    response = await client.post(
        "/payments/webhook",
        content=b"\xff\xfe{not json",
        headers={"Stripe-Signature": "t=1,v1=deadbeef"},
    )

    assert response.status_code == 400
    assert response.json() == {
        "detail": "Invalid webhook payload",
        "code": "INVALID_REQUEST",
    }
