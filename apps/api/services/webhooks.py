"""Paddle webhook verification and reconciliation onto the ledger.

Events are verified against the vendor public key before anything is read from
the store. Handlers are written so that redelivery of the same event is safe:
credit purchases only complete from PENDING, renewal grants are keyed by the
provider order id, and known subscription ids are not re-created. Lifecycle
events for a subscription id that is not on file yet are refused with a 409 so
the provider redelivers them after ``subscription_created`` lands.
"""

from __future__ import annotations

import base64
import binascii
import logging
from datetime import datetime
from typing import Annotated, Any, Awaitable, Callable, Dict, List, Literal, Mapping, Optional, Union

from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import padding, rsa
from fastapi import HTTPException
from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError
from sqlalchemy import or_, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select

from models.credit_transaction import CreditTransaction
from models.enums import PlanType, TransactionType
from models.user_subscription import UserSubscription
from services.clock import Clock, as_utc, utc_now
from services.credits import add_credits, complete_pending_purchase, set_plan_type
from services.entitlements import get_active_subscription
from services.errors import (
    DuplicateDelivery,
    InvalidPassthrough,
    SubscriptionNotYetKnown,
    WebhookPayloadInvalid,
    WebhookSignatureInvalid,
)
from services.subscriptions import (
    activate_subscription,
    find_subscriptions_by_external_id,
    get_plan,
)

logger = logging.getLogger(__name__)

SIGNATURE_FIELD = "p_signature"

APPLIED = "applied"
DUPLICATE = "duplicate"
IGNORED = "ignored"


class CreditsPassthrough(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    type: Literal["credits"]
    user_id: str = Field(alias="userId", min_length=1)
    credits: int = Field(gt=0)
    transaction_id: str = Field(alias="transactionId", min_length=1)


class SubscriptionPassthrough(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    type: Literal["subscription"]
    user_id: str = Field(alias="userId", min_length=1)
    plan_id: str = Field(alias="planId", min_length=1)


Passthrough = Annotated[
    Union[CreditsPassthrough, SubscriptionPassthrough],
    Field(discriminator="type"),
]
_passthrough_adapter = TypeAdapter(Passthrough)


def decode_passthrough(raw: Any) -> Union[CreditsPassthrough, SubscriptionPassthrough]:
    """Parse the JSON correlation payload set at checkout creation."""
    if not isinstance(raw, str) or not raw.strip():
        raise InvalidPassthrough()
    try:
        return _passthrough_adapter.validate_json(raw)
    except ValidationError as exc:
        logger.warning("Rejected webhook passthrough: %s", exc.errors(include_url=False))
        raise InvalidPassthrough() from exc


def _signature_value(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def serialize_for_signature(fields: Mapping[str, Any]) -> str:
    """Key-sorted ``key=value`` pairs joined by ``&``, signature field excluded."""
    return "&".join(
        f"{key}={_signature_value(fields[key])}"
        for key in sorted(fields)
        if key != SIGNATURE_FIELD
    )


def verify_signature(fields: Mapping[str, Any], public_key_pem: str) -> None:
    """Raise ``WebhookSignatureInvalid`` unless ``p_signature`` is a valid RSA-SHA1 signature."""
    signature = fields.get(SIGNATURE_FIELD)
    if not isinstance(signature, str) or not signature.strip():
        raise WebhookSignatureInvalid()
    try:
        signature_bytes = base64.b64decode(signature, validate=True)
    except (binascii.Error, ValueError) as exc:
        raise WebhookSignatureInvalid() from exc

    try:
        public_key = serialization.load_pem_public_key(public_key_pem.encode("utf-8"))
    except ValueError as exc:
        logger.error("Configured Paddle public key could not be loaded: %s", exc)
        raise WebhookSignatureInvalid() from exc
    if not isinstance(public_key, rsa.RSAPublicKey):
        logger.error("Configured Paddle public key is not an RSA key")
        raise WebhookSignatureInvalid()

    message = serialize_for_signature(fields).encode("utf-8")
    try:
        public_key.verify(signature_bytes, message, padding.PKCS1v15(), hashes.SHA1())
    except InvalidSignature as exc:
        raise WebhookSignatureInvalid() from exc


def _parse_bill_date(value: Any) -> Optional[datetime]:
    if value in (None, ""):
        return None
    try:
        return as_utc(datetime.fromisoformat(str(value)))
    except ValueError as exc:
        raise WebhookPayloadInvalid(f"Invalid next_bill_date: {value}") from exc


async def _handle_payment_succeeded(fields: Mapping[str, Any], db: AsyncSession, clock: Clock) -> str:
    passthrough = decode_passthrough(fields.get("passthrough"))
    if not isinstance(passthrough, CreditsPassthrough):
        logger.info("payment_succeeded carries a subscription passthrough; nothing to apply")
        return IGNORED

    result = await db.execute(select(CreditTransaction).where(CreditTransaction.id == passthrough.transaction_id))
    transaction = result.scalar_one_or_none()
    if transaction is None:
        logger.warning("payment_succeeded for unknown transaction %s", passthrough.transaction_id)
        return IGNORED
    if transaction.user_id != passthrough.user_id:
        logger.warning(
            "payment_succeeded passthrough user %s does not own transaction %s",
            passthrough.user_id,
            transaction.id,
        )
        raise InvalidPassthrough()

    completed = await complete_pending_purchase(
        transaction.id,
        db,
        paddle_payment_id=_optional_str(fields.get("order_id")),
    )
    if completed is None:
        logger.info("payment_succeeded replay for transaction %s ignored", transaction.id)
        return DUPLICATE
    if int(completed.amount) != passthrough.credits:
        logger.warning(
            "Passthrough credits %s differ from transaction amount %s; granting the transaction amount",
            passthrough.credits,
            completed.amount,
        )
    logger.info("Added %s credits to user %s", completed.amount, completed.user_id)
    return APPLIED


async def _handle_subscription_created(fields: Mapping[str, Any], db: AsyncSession, clock: Clock) -> str:
    passthrough = decode_passthrough(fields.get("passthrough"))
    if not isinstance(passthrough, SubscriptionPassthrough):
        raise InvalidPassthrough()

    external_id = _optional_str(fields.get("subscription_id"))
    if external_id and await find_subscriptions_by_external_id(external_id, db):
        logger.info("subscription_created replay for %s ignored", external_id)
        return DUPLICATE

    plan = await get_plan(passthrough.plan_id, db)
    if plan is None:
        logger.warning("subscription_created references unknown plan %s", passthrough.plan_id)
        return IGNORED

    await activate_subscription(
        passthrough.user_id,
        plan,
        db,
        paddle_subscription_id=external_id,
        paddle_customer_id=_optional_str(fields.get("user_id")),
        clock=clock,
        commit=False,
    )
    logger.info("Created subscription for user %s", passthrough.user_id)
    return APPLIED


async def _known_subscriptions(
    alert_name: str,
    fields: Mapping[str, Any],
    db: AsyncSession,
) -> List[UserSubscription]:
    """Rows for the event's subscription id. An id not on file yet is answered with a retryable 409."""
    external_id = _optional_str(fields.get("subscription_id"))
    if external_id is None:
        raise WebhookPayloadInvalid(f"{alert_name} is missing subscription_id")
    rows = await find_subscriptions_by_external_id(external_id, db)
    if not rows:
        logger.warning("%s for subscription %s arrived before subscription_created", alert_name, external_id)
        raise SubscriptionNotYetKnown()
    return rows


async def _handle_subscription_updated(fields: Mapping[str, Any], db: AsyncSession, clock: Clock) -> str:
    external_id = _optional_str(fields.get("subscription_id"))
    rows = await _known_subscriptions("subscription_updated", fields, db)

    activate = str(fields.get("status") or "").strip().lower() == "active"
    end_date = _parse_bill_date(fields.get("next_bill_date"))
    newest = rows[0]

    if activate:
        await db.execute(
            update(UserSubscription)
            .where(
                UserSubscription.user_id == newest.user_id,
                UserSubscription.is_active.is_(True),
                or_(
                    UserSubscription.paddle_subscription_id.is_(None),
                    UserSubscription.paddle_subscription_id != external_id,
                ),
            )
            .values(is_active=False)
            .execution_options(synchronize_session=False)
        )

    for row in rows:
        row.is_active = activate and row is newest
        row.end_date = end_date
    await db.flush()
    if activate:
        await set_plan_type(newest.user_id, PlanType.SUBSCRIPTION, db)
    elif await get_active_subscription(newest.user_id, db, clock=clock) is None:
        await set_plan_type(newest.user_id, PlanType.FREE, db)
    logger.info("Updated subscription %s active=%s", external_id, activate)
    return APPLIED


async def _handle_subscription_cancelled(fields: Mapping[str, Any], db: AsyncSession, clock: Clock) -> str:
    external_id = _optional_str(fields.get("subscription_id"))
    rows = await _known_subscriptions("subscription_cancelled", fields, db)

    for row in rows:
        row.is_active = False
        row.auto_renew = False
    await db.flush()

    for user_id in {row.user_id for row in rows}:
        if await get_active_subscription(user_id, db, clock=clock) is None:
            await set_plan_type(user_id, PlanType.FREE, db)
        logger.info("Cancelled subscription %s for user %s", external_id, user_id)
    return APPLIED


async def _handle_subscription_payment_succeeded(
    fields: Mapping[str, Any],
    db: AsyncSession,
    clock: Clock,
) -> str:
    rows = await _known_subscriptions("subscription_payment_succeeded", fields, db)
    subscription = rows[0]
    credits = int(subscription.plan.credits_included or 0) if subscription.plan else 0
    if credits <= 0:
        return IGNORED

    order_id = _optional_str(fields.get("order_id"))
    if order_id:
        seen = await db.execute(
            select(CreditTransaction.id).where(CreditTransaction.paddle_payment_id == order_id)
        )
        if seen.scalar_one_or_none() is not None:
            logger.info("subscription_payment_succeeded replay for order %s ignored", order_id)
            return DUPLICATE

    await add_credits(
        subscription.user_id,
        db,
        amount=credits,
        type=TransactionType.SUBSCRIPTION_GRANT,
        description=f"{subscription.plan.name} plan renewal credits",
        paddle_payment_id=order_id,
        commit=False,
    )
    logger.info("Added monthly credits to user %s", subscription.user_id)
    return APPLIED


def _optional_str(value: Any) -> Optional[str]:
    text = str(value).strip() if value is not None else ""
    return text or None


EventHandler = Callable[[Mapping[str, Any], AsyncSession, Clock], Awaitable[str]]

EVENT_HANDLERS: Dict[str, EventHandler] = {
    "payment_succeeded": _handle_payment_succeeded,
    "subscription_created": _handle_subscription_created,
    "subscription_updated": _handle_subscription_updated,
    "subscription_cancelled": _handle_subscription_cancelled,
    "subscription_payment_succeeded": _handle_subscription_payment_succeeded,
}


async def apply_event(
    fields: Mapping[str, Any],
    db: AsyncSession,
    *,
    clock: Clock = utc_now,
) -> str:
    """Apply one verified webhook event and commit. Returns applied, duplicate or ignored."""
    alert_name = str(fields.get("alert_name") or "")
    logger.info("Processing Paddle webhook: %s", alert_name)

    handler = EVENT_HANDLERS.get(alert_name)
    if handler is None:
        logger.warning("Unhandled webhook event: %s", alert_name)
        return IGNORED

    try:
        outcome = await handler(fields, db, clock)
        await db.commit()
    except IntegrityError as exc:
        await db.rollback()
        logger.warning("Webhook %s lost a concurrent write race: %s", alert_name, exc)
        raise DuplicateDelivery() from exc
    except HTTPException as exc:
        await db.rollback()
        logger.warning("Webhook %s rejected: %s", alert_name, exc.detail)
        raise
    except Exception:
        await db.rollback()
        logger.exception("Failed to handle webhook %s", alert_name)
        raise

    logger.info("Webhook %s %s", alert_name, outcome)
    return outcome

