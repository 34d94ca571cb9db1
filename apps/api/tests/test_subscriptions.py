import json

import httpx
import pytest
from sqlalchemy.exc import IntegrityError
from sqlalchemy.future import select

from main import app
from models.credit_account import UserCredit
from models.subscription_plan import SubscriptionPlan
from models.user_subscription import UserSubscription
from services import subscriptions as subscription_service
from services.clock import fixed_clock
from services.errors import SubscriptionConflict
from services.paddle import PaddleClient, get_paddle_client

from conftest import FIXED_NOW, auth_header


class PaddleRecorder:
    def __init__(self, succeed=True):
        self.succeed = succeed
        self.calls = []

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.calls.append((request.url.path, json.loads(request.content)))
        if not self.succeed:
            return httpx.Response(200, json={"success": False, "error": {"message": "Subscription not found"}})
        return httpx.Response(200, json={"success": True, "response": {"url": "https://pay.test/link"}})

    def client(self) -> PaddleClient:
        return PaddleClient(
            vendor_id="vendor-1",
            api_key="secret-auth",
            base_url="https://paddle.test/api",
            transport=httpx.MockTransport(self.handler),
        )


@pytest.fixture
def paddle(api_client):
    recorder = PaddleRecorder()
    app.dependency_overrides[get_paddle_client] = recorder.client
    return recorder


async def _plan(session_maker, name):
    async with session_maker() as session:
        return (await session.execute(select(SubscriptionPlan).where(SubscriptionPlan.name == name))).scalar_one()


async def _active_rows(session_maker, user_id):
    async with session_maker() as session:
        result = await session.execute(
            select(UserSubscription).where(UserSubscription.user_id == user_id, UserSubscription.is_active.is_(True))
        )
        return list(result.scalars().all())


@pytest.mark.asyncio
async def test_plans_are_listed_by_price_with_services(api_client):
    response = await api_client.get("/subscriptions/plans")
    assert response.status_code == 200
    plans = response.json()
    assert [plan["name"] for plan in plans] == ["Free", "Pro", "Business"]
    free = plans[0]
    assert free["creditsIncluded"] == 10
    assert {service["serviceName"] for service in free["services"]} == {
        "ai_prompt_marketplace",
        "hook_generator_ai",
        "post_generator_ai",
        "ai_headline_generator",
        "content_scheduler",
    }
    business = plans[2]
    assert all(service["usageLimit"] == -1 for service in business["services"])

    detail = await api_client.get(f"/subscriptions/plans/{free['id']}")
    assert detail.json()["name"] == "Free"
    missing = await api_client.get("/subscriptions/plans/nope")
    assert missing.status_code == 404


@pytest.mark.asyncio
async def test_subscribing_to_free_plan_activates_and_grants_credits(api_client, session_maker, make_user, paddle):
    await make_user("sub-free")
    free = await _plan(session_maker, "Free")

    response = await api_client.post("/subscriptions/subscribe", json={"planId": free.id}, headers=auth_header("sub-free"))

    assert response.status_code == 200
    payload = response.json()
    assert payload["requiresPayment"] is False
    assert payload["subscription"]["planId"] == free.id
    assert payload["subscription"]["isActive"] is True
    assert paddle.calls == []

    async with session_maker() as session:
        account = (await session.execute(select(UserCredit).where(UserCredit.user_id == "sub-free"))).scalar_one()
    assert account.total_credits == 20
    assert account.plan_type == "SUBSCRIPTION"

    mine = await api_client.get("/subscriptions/my-subscription", headers=auth_header("sub-free"))
    assert mine.json()["plan"]["name"] == "Free"


@pytest.mark.asyncio
async def test_subscribing_to_paid_plan_returns_checkout(api_client, session_maker, make_user, paddle):
    await make_user("sub-pro")
    pro = await _plan(session_maker, "Pro")

    response = await api_client.post("/subscriptions/subscribe", json={"planId": pro.id}, headers=auth_header("sub-pro"))

    assert response.status_code == 200
    assert response.json() == {"checkout_url": "https://pay.test/link", "requiresPayment": True}
    assert await _active_rows(session_maker, "sub-pro") == []


@pytest.mark.asyncio
async def test_resubscribing_to_current_plan_is_rejected_without_new_credits(
    api_client, session_maker, make_user, paddle
):
    await make_user("sub-again")
    free = await _plan(session_maker, "Free")

    statuses = []
    for _ in range(5):
        response = await api_client.post(
            "/subscriptions/subscribe",
            json={"planId": free.id},
            headers=auth_header("sub-again"),
        )
        statuses.append(response.status_code)

    assert statuses == [200, 409, 409, 409, 409]
    assert len(await _active_rows(session_maker, "sub-again")) == 1
    async with session_maker() as session:
        account = (await session.execute(select(UserCredit).where(UserCredit.user_id == "sub-again"))).scalar_one()
    assert account.total_credits == 20


@pytest.mark.asyncio
async def test_free_plan_credits_are_granted_only_on_first_activation(api_client, session_maker, make_user, paddle):
    await make_user("sub-cycle")
    free = await _plan(session_maker, "Free")

    first = await api_client.post("/subscriptions/subscribe", json={"planId": free.id}, headers=auth_header("sub-cycle"))
    assert first.status_code == 200
    cancelled = await api_client.delete("/subscriptions/cancel", headers=auth_header("sub-cycle"))
    assert cancelled.status_code == 200
    again = await api_client.post("/subscriptions/subscribe", json={"planId": free.id}, headers=auth_header("sub-cycle"))
    assert again.status_code == 200

    assert len(await _active_rows(session_maker, "sub-cycle")) == 1
    async with session_maker() as session:
        account = (await session.execute(select(UserCredit).where(UserCredit.user_id == "sub-cycle"))).scalar_one()
    assert account.total_credits == 20


@pytest.mark.asyncio
async def test_switching_to_free_cancels_billed_subscription_at_provider(
    api_client, session_maker, make_user, subscribe, paddle
):
    await make_user("sub-downgrade")
    await subscribe("sub-downgrade", "Pro", paddle_subscription_id="sub-pro-1")
    free = await _plan(session_maker, "Free")

    response = await api_client.post(
        "/subscriptions/subscribe",
        json={"planId": free.id},
        headers=auth_header("sub-downgrade"),
    )

    assert response.status_code == 200
    [(path, body)] = paddle.calls
    assert path == "/api/2.0/subscription/users_cancel"
    assert body["subscription_id"] == "sub-pro-1"
    [row] = await _active_rows(session_maker, "sub-downgrade")
    assert row.plan_id == free.id


@pytest.mark.asyncio
async def test_failed_provider_cancel_blocks_switch_to_free(api_client, session_maker, make_user, subscribe, paddle):
    await make_user("sub-downgrade-stuck")
    await subscribe("sub-downgrade-stuck", "Pro", paddle_subscription_id="sub-pro-2")
    free = await _plan(session_maker, "Free")
    paddle.succeed = False

    response = await api_client.post(
        "/subscriptions/subscribe",
        json={"planId": free.id},
        headers=auth_header("sub-downgrade-stuck"),
    )

    assert response.status_code == 502
    [row] = await _active_rows(session_maker, "sub-downgrade-stuck")
    assert row.paddle_subscription_id == "sub-pro-2"


@pytest.mark.asyncio
async def test_cancel_deactivates_and_returns_to_free_tier(api_client, session_maker, make_user, subscribe, paddle):
    await make_user("sub-cancel")
    await subscribe("sub-cancel", "Pro", paddle_subscription_id="sub-remote-1")

    response = await api_client.delete("/subscriptions/cancel", headers=auth_header("sub-cancel"))

    assert response.status_code == 200
    assert response.json() == {"success": True, "message": "Subscription cancelled successfully"}
    [(path, body)] = paddle.calls
    assert path == "/api/2.0/subscription/users_cancel"
    assert body["subscription_id"] == "sub-remote-1"
    assert await _active_rows(session_maker, "sub-cancel") == []

    mine = await api_client.get("/subscriptions/my-subscription", headers=auth_header("sub-cancel"))
    assert mine.json() is None


@pytest.mark.asyncio
async def test_cancel_local_subscription_skips_provider(api_client, session_maker, make_user, subscribe, paddle):
    await make_user("sub-local")
    await subscribe("sub-local", "Free")

    response = await api_client.post("/paddle/subscription/cancel", headers=auth_header("sub-local"))

    assert response.status_code == 200
    assert paddle.calls == []
    assert await _active_rows(session_maker, "sub-local") == []


@pytest.mark.asyncio
async def test_cancel_without_subscription_is_bad_request(api_client, make_user, paddle):
    await make_user("sub-nothing")
    response = await api_client.delete("/subscriptions/cancel", headers=auth_header("sub-nothing"))
    assert response.status_code == 400
    assert response.json()["detail"] == "No active subscription found"


@pytest.mark.asyncio
async def test_provider_cancel_failure_keeps_subscription_active(api_client, session_maker, make_user, subscribe, paddle):
    await make_user("sub-stuck")
    await subscribe("sub-stuck", "Pro", paddle_subscription_id="sub-remote-2")
    paddle.succeed = False

    response = await api_client.delete("/subscriptions/cancel", headers=auth_header("sub-stuck"))

    assert response.status_code == 502
    assert response.json()["detail"] == "Failed to cancel subscription"
    assert len(await _active_rows(session_maker, "sub-stuck")) == 1


@pytest.mark.asyncio
async def test_second_active_row_is_rejected_by_the_store(session_maker, make_user, subscribe):
    await make_user("sub-index")
    await subscribe("sub-index", "Free")

    with pytest.raises(IntegrityError):
        await subscribe("sub-index", "Pro")

    assert len(await _active_rows(session_maker, "sub-index")) == 1


@pytest.mark.asyncio
async def test_racing_activation_surfaces_as_conflict(session_maker, make_user, subscribe, monkeypatch):
    await make_user("sub-race")
    await subscribe("sub-race", "Free")

    async def lost_race(user_id, db, **kwargs):
        return 0

    # The other writer's row is still active when this activation inserts.
    monkeypatch.setattr(subscription_service, "deactivate_active_subscriptions", lost_race)
    async with session_maker() as session:
        pro = (await session.execute(select(SubscriptionPlan).where(SubscriptionPlan.name == "Pro"))).scalar_one()
        with pytest.raises(SubscriptionConflict) as excinfo:
            await subscription_service.activate_subscription(
                "sub-race", pro, session, clock=fixed_clock(FIXED_NOW)
            )

    assert excinfo.value.status_code == 409
    [row] = await _active_rows(session_maker, "sub-race")
    async with session_maker() as session:
        account = (await session.execute(select(UserCredit).where(UserCredit.user_id == "sub-race"))).scalar_one()
    assert account.total_credits == 10


@pytest.mark.asyncio
async def test_provider_subscription_details(api_client, make_user, subscribe, paddle):
    await make_user("sub-details")
    await subscribe("sub-details", "Business", paddle_subscription_id="sub-remote-3")

    response = await api_client.get("/paddle/subscription/details", headers=auth_header("sub-details"))

    assert response.status_code == 200
    [(path, body)] = paddle.calls
    assert path == "/api/2.0/subscription/users"
    assert body["subscription_id"] == "sub-remote-3"


@pytest.mark.asyncio
async def test_provider_details_require_a_billed_subscription(api_client, make_user, subscribe, paddle):
    await make_user("sub-unbilled")
    await subscribe("sub-unbilled", "Free")

    response = await api_client.get("/paddle/subscription/details", headers=auth_header("sub-unbilled"))
    assert response.status_code == 400
    assert paddle.calls == []
