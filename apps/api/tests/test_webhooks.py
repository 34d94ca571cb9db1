import base64
import json

import pytest
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import padding, rsa
from sqlalchemy.future import select

from main import app
from models.credit_account import UserCredit
from models.credit_transaction import CreditTransaction
from models.enums import TransactionStatus, TransactionType
from models.subscription_plan import SubscriptionPlan
from models.user_subscription import UserSubscription
from routers.paddle import get_paddle_public_key
from services.credits import create_pending_purchase
from services.errors import WebhookSignatureInvalid
from services.webhooks import serialize_for_signature, verify_signature

from conftest import auth_header

PRIVATE_KEY = rsa.generate_private_key(public_exponent=65537, key_size=2048)
PUBLIC_KEY_PEM = (
    PRIVATE_KEY.public_key()
    .public_bytes(serialization.Encoding.PEM, serialization.PublicFormat.SubjectPublicKeyInfo)
    .decode("utf-8")
)


def signed(fields):
    message = serialize_for_signature(fields).encode("utf-8")
    signature = PRIVATE_KEY.sign(message, padding.PKCS1v15(), hashes.SHA1())
    return {**fields, "p_signature": base64.b64encode(signature).decode("ascii")}


@pytest.fixture
def webhook_client(api_client):
    app.dependency_overrides[get_paddle_public_key] = lambda: PUBLIC_KEY_PEM
    yield api_client


async def _post(client, fields):
    return await client.post("/paddle/webhook", data=signed(fields))


async def _plan_id(session_maker, name):
    async with session_maker() as session:
        return (await session.execute(select(SubscriptionPlan.id).where(SubscriptionPlan.name == name))).scalar_one()


async def _account(session_maker, user_id):
    async with session_maker() as session:
        return (await session.execute(select(UserCredit).where(UserCredit.user_id == user_id))).scalar_one()


async def _subscriptions(session_maker, user_id):
    async with session_maker() as session:
        result = await session.execute(
            select(UserSubscription).where(UserSubscription.user_id == user_id).order_by(UserSubscription.created_at)
        )
        return list(result.scalars().all())


async def _pending_purchase(session_maker, user_id, credits):
    async with session_maker() as session:
        return await create_pending_purchase(user_id, credits, session)


def test_serialization_sorts_keys_and_skips_signature():
    fields = {"b": "2", "a": "1", "p_signature": "sig", "flag": True, "empty": None}
    assert serialize_for_signature(fields) == "a=1&b=2&empty=&flag=true"


def test_verify_signature_accepts_valid_and_rejects_tampered_payloads():
    fields = signed({"alert_name": "payment_succeeded", "order_id": "o-1"})
    verify_signature(fields, PUBLIC_KEY_PEM)

    with pytest.raises(WebhookSignatureInvalid):
        verify_signature({**fields, "order_id": "o-2"}, PUBLIC_KEY_PEM)
    with pytest.raises(WebhookSignatureInvalid):
        verify_signature({**fields, "p_signature": "%%%not-base64%%%"}, PUBLIC_KEY_PEM)
    with pytest.raises(WebhookSignatureInvalid):
        verify_signature({"alert_name": "payment_succeeded"}, PUBLIC_KEY_PEM)


@pytest.mark.asyncio
async def test_credit_purchase_completes_once_on_redelivery(webhook_client, session_maker, make_user):
    await make_user("hook-buyer")
    pending = await _pending_purchase(session_maker, "hook-buyer", 250)
    fields = {
        "alert_name": "payment_succeeded",
        "order_id": "order-250",
        "passthrough": json.dumps(
            {"type": "credits", "userId": "hook-buyer", "credits": 250, "transactionId": pending.id}
        ),
    }

    first = await _post(webhook_client, fields)
    assert first.status_code == 200
    assert first.json() == {"success": True, "outcome": "applied"}

    replay = await _post(webhook_client, fields)
    assert replay.status_code == 200
    assert replay.json()["outcome"] == "duplicate"

    account = await _account(session_maker, "hook-buyer")
    assert account.total_credits == 260
    async with session_maker() as session:
        transaction = (
            await session.execute(select(CreditTransaction).where(CreditTransaction.id == pending.id))
        ).scalar_one()
    assert transaction.status == TransactionStatus.COMPLETED.value
    assert transaction.paddle_payment_id == "order-250"


@pytest.mark.asyncio
async def test_json_encoded_delivery_is_accepted(webhook_client, session_maker, make_user):
    await make_user("hook-json")
    pending = await _pending_purchase(session_maker, "hook-json", 40)
    fields = signed(
        {
            "alert_name": "payment_succeeded",
            "order_id": "order-json",
            "passthrough": json.dumps(
                {"type": "credits", "userId": "hook-json", "credits": 40, "transactionId": pending.id}
            ),
        }
    )

    response = await webhook_client.post("/paddle/webhook", json=fields)
    assert response.status_code == 200
    assert response.json()["outcome"] == "applied"
    assert (await _account(session_maker, "hook-json")).total_credits == 50


@pytest.mark.asyncio
async def test_bad_signature_changes_nothing(webhook_client, session_maker, make_user):
    await make_user("hook-forged")
    pending = await _pending_purchase(session_maker, "hook-forged", 500)
    fields = signed(
        {
            "alert_name": "payment_succeeded",
            "order_id": "order-forged",
            "passthrough": json.dumps(
                {"type": "credits", "userId": "hook-forged", "credits": 5, "transactionId": pending.id}
            ),
        }
    )
    fields["order_id"] = "order-tampered"

    response = await webhook_client.post("/paddle/webhook", data=fields)
    assert response.status_code == 400
    assert response.json()["detail"] == "Invalid webhook signature"

    assert (await _account(session_maker, "hook-forged")).total_credits == 10
    async with session_maker() as session:
        status = (
            await session.execute(select(CreditTransaction.status).where(CreditTransaction.id == pending.id))
        ).scalar_one()
    assert status == TransactionStatus.PENDING.value


@pytest.mark.asyncio
async def test_missing_public_key_rejects_every_delivery(api_client, monkeypatch):
    monkeypatch.setattr("config.settings.PADDLE_PUBLIC_KEY", "")
    response = await api_client.post("/paddle/webhook", data={"alert_name": "payment_succeeded"})
    assert response.status_code == 400


@pytest.mark.asyncio
async def test_unknown_event_is_acknowledged_and_ignored(webhook_client):
    response = await _post(webhook_client, {"alert_name": "high_risk_transaction_created", "order_id": "x"})
    assert response.status_code == 200
    assert response.json()["outcome"] == "ignored"


@pytest.mark.asyncio
async def test_malformed_passthrough_is_rejected(webhook_client, session_maker, make_user):
    await make_user("hook-garbled")
    response = await _post(
        webhook_client,
        {"alert_name": "payment_succeeded", "order_id": "order-garbled", "passthrough": "{not json"},
    )
    assert response.status_code == 400
    assert response.json()["detail"] == "Webhook passthrough payload is missing or malformed"

    missing = await _post(webhook_client, {"alert_name": "payment_succeeded", "order_id": "order-none"})
    assert missing.status_code == 400


@pytest.mark.asyncio
async def test_passthrough_user_must_own_the_transaction(webhook_client, session_maker, make_user):
    await make_user("hook-owner")
    await make_user("hook-thief")
    pending = await _pending_purchase(session_maker, "hook-owner", 100)

    response = await _post(
        webhook_client,
        {
            "alert_name": "payment_succeeded",
            "order_id": "order-steal",
            "passthrough": json.dumps(
                {"type": "credits", "userId": "hook-thief", "credits": 100, "transactionId": pending.id}
            ),
        },
    )

    assert response.status_code == 400
    assert (await _account(session_maker, "hook-owner")).total_credits == 10
    assert (await _account(session_maker, "hook-thief")).total_credits == 10


@pytest.mark.asyncio
async def test_subscription_created_activates_plan_once(webhook_client, session_maker, make_user, subscribe):
    await make_user("hook-sub")
    await subscribe("hook-sub", "Free")
    pro_id = await _plan_id(session_maker, "Pro")
    fields = {
        "alert_name": "subscription_created",
        "subscription_id": "sub-100",
        "user_id": "cust-100",
        "status": "active",
        "passthrough": json.dumps({"type": "subscription", "userId": "hook-sub", "planId": pro_id}),
    }

    first = await _post(webhook_client, fields)
    assert first.json()["outcome"] == "applied"
    replay = await _post(webhook_client, fields)
    assert replay.json()["outcome"] == "duplicate"

    rows = await _subscriptions(session_maker, "hook-sub")
    active = [row for row in rows if row.is_active]
    assert len(active) == 1
    assert active[0].plan_id == pro_id
    assert active[0].paddle_subscription_id == "sub-100"
    assert active[0].paddle_customer_id == "cust-100"

    account = await _account(session_maker, "hook-sub")
    assert account.total_credits == 110
    assert account.plan_type == "SUBSCRIPTION"


@pytest.mark.asyncio
async def test_subscription_cancelled_falls_back_to_free_tier(webhook_client, session_maker, make_user, subscribe):
    await make_user("hook-cancel")
    await subscribe("hook-cancel", "Pro", paddle_subscription_id="sub-200")
    async with session_maker() as session:
        account = (await session.execute(select(UserCredit).where(UserCredit.user_id == "hook-cancel"))).scalar_one()
        account.plan_type = "SUBSCRIPTION"
        await session.commit()

    response = await _post(webhook_client, {"alert_name": "subscription_cancelled", "subscription_id": "sub-200"})
    assert response.json()["outcome"] == "applied"

    [row] = await _subscriptions(session_maker, "hook-cancel")
    assert row.is_active is False
    assert row.auto_renew is False
    assert (await _account(session_maker, "hook-cancel")).plan_type == "FREE"

    me = await webhook_client.get("/subscriptions/my-subscription", headers=auth_header("hook-cancel"))
    assert me.json() is None


@pytest.mark.asyncio
async def test_cancel_before_created_is_refused_until_subscription_lands(webhook_client, session_maker, make_user):
    await make_user("hook-ooo")
    pro_id = await _plan_id(session_maker, "Pro")
    cancel = {"alert_name": "subscription_cancelled", "subscription_id": "sub-ooo"}

    early = await _post(webhook_client, cancel)
    assert early.status_code == 409
    assert early.json()["detail"] == "Subscription is not on file yet. Retry later."

    created = await _post(
        webhook_client,
        {
            "alert_name": "subscription_created",
            "subscription_id": "sub-ooo",
            "user_id": "cust-ooo",
            "passthrough": json.dumps({"type": "subscription", "userId": "hook-ooo", "planId": pro_id}),
        },
    )
    assert created.json()["outcome"] == "applied"

    redelivered = await _post(webhook_client, cancel)
    assert redelivered.status_code == 200
    assert redelivered.json()["outcome"] == "applied"
    assert [row.is_active for row in await _subscriptions(session_maker, "hook-ooo")] == [False]
    assert (await _account(session_maker, "hook-ooo")).plan_type == "FREE"


@pytest.mark.asyncio
async def test_lifecycle_events_for_unknown_subscription_are_retryable(webhook_client):
    for alert_name in ("subscription_updated", "subscription_payment_succeeded"):
        response = await _post(
            webhook_client,
            {"alert_name": alert_name, "subscription_id": "sub-missing", "status": "active", "order_id": "order-x"},
        )
        assert response.status_code == 409

    missing_id = await _post(webhook_client, {"alert_name": "subscription_cancelled"})
    assert missing_id.status_code == 400


@pytest.mark.asyncio
async def test_subscription_updated_sets_status_and_next_bill_date(webhook_client, session_maker, make_user, subscribe):
    await make_user("hook-update")
    await subscribe("hook-update", "Pro", paddle_subscription_id="sub-300")

    paused = await _post(
        webhook_client,
        {
            "alert_name": "subscription_updated",
            "subscription_id": "sub-300",
            "status": "paused",
            "next_bill_date": "2026-04-15",
        },
    )
    assert paused.json()["outcome"] == "applied"
    [row] = await _subscriptions(session_maker, "hook-update")
    assert row.is_active is False
    assert row.end_date.date().isoformat() == "2026-04-15"
    assert (await _account(session_maker, "hook-update")).plan_type == "FREE"

    resumed = await _post(
        webhook_client,
        {
            "alert_name": "subscription_updated",
            "subscription_id": "sub-300",
            "status": "active",
            "next_bill_date": "2026-05-15",
        },
    )
    assert resumed.json()["outcome"] == "applied"
    [row] = await _subscriptions(session_maker, "hook-update")
    assert row.is_active is True
    assert (await _account(session_maker, "hook-update")).plan_type == "SUBSCRIPTION"


@pytest.mark.asyncio
async def test_subscription_updated_rejects_bad_bill_date(webhook_client, session_maker, make_user, subscribe):
    await make_user("hook-baddate")
    await subscribe("hook-baddate", "Pro", paddle_subscription_id="sub-350")

    response = await _post(
        webhook_client,
        {
            "alert_name": "subscription_updated",
            "subscription_id": "sub-350",
            "status": "active",
            "next_bill_date": "next tuesday",
        },
    )
    assert response.status_code == 400
    [row] = await _subscriptions(session_maker, "hook-baddate")
    assert row.end_date is None


@pytest.mark.asyncio
async def test_renewal_grants_plan_credits_once_per_order(webhook_client, session_maker, make_user, subscribe):
    await make_user("hook-renew")
    await subscribe("hook-renew", "Pro", paddle_subscription_id="sub-400")
    fields = {"alert_name": "subscription_payment_succeeded", "subscription_id": "sub-400", "order_id": "order-renew-1"}

    assert (await _post(webhook_client, fields)).json()["outcome"] == "applied"
    assert (await _post(webhook_client, fields)).json()["outcome"] == "duplicate"
    assert (await _account(session_maker, "hook-renew")).total_credits == 110

    next_month = {**fields, "order_id": "order-renew-2"}
    assert (await _post(webhook_client, next_month)).json()["outcome"] == "applied"
    assert (await _account(session_maker, "hook-renew")).total_credits == 210

    async with session_maker() as session:
        grants = (
            await session.execute(
                select(CreditTransaction).where(
                    CreditTransaction.user_id == "hook-renew",
                    CreditTransaction.type == TransactionType.SUBSCRIPTION_GRANT.value,
                )
            )
        ).scalars().all()
    assert sorted(grant.paddle_payment_id for grant in grants) == ["order-renew-1", "order-renew-2"]
