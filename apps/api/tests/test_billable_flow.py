import pytest
from sqlalchemy import func
from sqlalchemy.future import select

from models.credit_account import UserCredit
from models.credit_usage_log import CreditUsageLog
from models.enums import CreditActionType
from models.service_usage import UserServiceUsage
from services.billable import run_billable_action
from services.clock import fixed_clock

from conftest import FIXED_NOW, auth_header

POST_REQUEST = {"topic": "remote work", "tone": "professional", "platform": "linkedin"}


async def _ledger_state(session_maker, user_id):
    async with session_maker() as session:
        account = (await session.execute(select(UserCredit).where(UserCredit.user_id == user_id))).scalar_one()
        logs = (
            await session.execute(select(func.count(CreditUsageLog.id)).where(CreditUsageLog.user_id == user_id))
        ).scalar_one()
        usage = (
            await session.execute(
                select(func.coalesce(func.sum(UserServiceUsage.usage_count), 0)).where(
                    UserServiceUsage.user_id == user_id
                )
            )
        ).scalar_one()
    return account.available_credits, logs, usage


@pytest.mark.asyncio
async def test_generation_without_plan_is_forbidden_and_free_of_charge(api_client, session_maker, make_user):
    await make_user("flow-noplan")

    response = await api_client.post(
        "/ai-services/post-generator/generate",
        json=POST_REQUEST,
        headers=auth_header("flow-noplan"),
    )

    assert response.status_code == 403
    assert response.json()["detail"] == "This service is not available in your current subscription plan"
    assert await _ledger_state(session_maker, "flow-noplan") == (10, 0, 0)


@pytest.mark.asyncio
async def test_successful_generation_charges_and_meters_once(api_client, session_maker, make_user, subscribe):
    await make_user("flow-post")
    await subscribe("flow-post", "Free")

    response = await api_client.post(
        "/ai-services/post-generator/generate",
        json={**POST_REQUEST, "targetAudience": "founders"},
        headers=auth_header("flow-post"),
    )

    assert response.status_code == 200
    payload = response.json()
    assert payload["success"] is True
    assert payload["creditsUsed"] == 3
    assert payload["message"] == "Post generated successfully"
    assert "remote work" in payload["content"]
    assert payload["hashtags"]
    assert await _ledger_state(session_maker, "flow-post") == (7, 1, 1)


@pytest.mark.asyncio
async def test_marketplace_quota_blocks_sixth_use_without_charging(api_client, session_maker, make_user, subscribe):
    await make_user("flow-market")
    await subscribe("flow-market", "Free")
    body = {"promptId": "social-post-creator", "variables": {"topic": "coffee"}}

    for _ in range(5):
        response = await api_client.post("/ai-services/prompt-marketplace/use", json=body, headers=auth_header("flow-market"))
        assert response.status_code == 200
        assert response.json()["creditsUsed"] == 1

    assert await _ledger_state(session_maker, "flow-market") == (5, 5, 5)

    blocked = await api_client.post("/ai-services/prompt-marketplace/use", json=body, headers=auth_header("flow-market"))
    assert blocked.status_code == 403
    detail = blocked.json()["detail"]
    assert detail["limit"] == 5
    assert detail["current_usage"] == 5
    assert detail["period"] == "MONTHLY"
    assert await _ledger_state(session_maker, "flow-market") == (5, 5, 5)


@pytest.mark.asyncio
async def test_marketplace_fills_variables_and_defaults(api_client, make_user, subscribe):
    await make_user("flow-render")
    await subscribe("flow-render", "Free")

    response = await api_client.post(
        "/ai-services/prompt-marketplace/use",
        json={"promptId": "social-post-creator", "variables": {"topic": "coffee"}},
        headers=auth_header("flow-render"),
    )

    content = response.json()["content"]
    assert "about coffee" in content
    assert "[TONE]" not in content
    assert "professional" in content


@pytest.mark.asyncio
async def test_unknown_prompt_is_not_found_and_not_charged(api_client, session_maker, make_user, subscribe):
    await make_user("flow-missing")
    await subscribe("flow-missing", "Free")

    response = await api_client.post(
        "/ai-services/prompt-marketplace/use",
        json={"promptId": "does-not-exist"},
        headers=auth_header("flow-missing"),
    )

    assert response.status_code == 404
    assert await _ledger_state(session_maker, "flow-missing") == (10, 0, 0)


@pytest.mark.asyncio
async def test_insufficient_credits_returns_payment_required(api_client, session_maker, make_user, subscribe):
    await make_user("flow-broke")
    await subscribe("flow-broke", "Pro")

    # Voice scripts cost 5; two succeed on the 10 credit bonus, the third cannot.
    body = {
        "topic": "budgeting",
        "audience": "students",
        "scriptType": "podcast",
        "voiceStyle": "friendly",
        "keyPoints": ["track spending"],
    }
    for _ in range(2):
        ok = await api_client.post("/ai-services/voice-script-writer/generate", json=body, headers=auth_header("flow-broke"))
        assert ok.status_code == 200

    response = await api_client.post("/ai-services/voice-script-writer/generate", json=body, headers=auth_header("flow-broke"))
    assert response.status_code == 402
    assert response.json()["detail"] == "Insufficient credits. Required: 5, Available: 0"
    assert await _ledger_state(session_maker, "flow-broke") == (0, 2, 2)


@pytest.mark.asyncio
async def test_invalid_request_body_is_rejected_before_billing(api_client, session_maker, make_user, subscribe):
    await make_user("flow-invalid")
    await subscribe("flow-invalid", "Free")

    response = await api_client.post(
        "/ai-services/hook-generator/generate",
        json={"topic": "ai", "hookType": "riddle", "platform": "blog"},
        headers=auth_header("flow-invalid"),
    )

    assert response.status_code == 422
    assert await _ledger_state(session_maker, "flow-invalid") == (10, 0, 0)


@pytest.mark.asyncio
async def test_failing_generator_leaves_ledger_untouched(session_maker, make_user, subscribe):
    await make_user("flow-crash")
    await subscribe("flow-crash", "Free")

    def explode():
        raise RuntimeError("generator unavailable")

    async with session_maker() as session:
        with pytest.raises(RuntimeError):
            await run_billable_action(
                session,
                "flow-crash",
                service_name="hook_generator_ai",
                action=CreditActionType.GENERATE_HOOK,
                perform=explode,
                message="unused",
                clock=fixed_clock(FIXED_NOW),
            )

    assert await _ledger_state(session_maker, "flow-crash") == (10, 0, 0)


@pytest.mark.asyncio
async def test_async_generator_result_is_awaited(session_maker, make_user, subscribe):
    await make_user("flow-async")
    await subscribe("flow-async", "Free")

    async def perform():
        return {"hook": "Ready?"}

    async with session_maker() as session:
        result = await run_billable_action(
            session,
            "flow-async",
            service_name="hook_generator_ai",
            action=CreditActionType.GENERATE_HOOK,
            perform=perform,
            message="Hook generated successfully",
            clock=fixed_clock(FIXED_NOW),
        )

    assert result == {"hook": "Ready?", "creditsUsed": 2, "success": True, "message": "Hook generated successfully"}
    assert await _ledger_state(session_maker, "flow-async") == (8, 1, 1)
