"""Credit ledger: balances, deductions, grants and their audit trail."""

from __future__ import annotations

import logging
import uuid
from typing import Any, Dict, Optional

from fastapi import HTTPException
from sqlalchemy import update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select
from sqlalchemy.orm import selectinload

from config import settings
from database import dialect_insert
from models.credit_account import UserCredit
from models.credit_transaction import CreditTransaction
from models.credit_usage_log import CreditUsageLog
from models.enums import CreditActionType, PlanType, TransactionStatus, TransactionType
from services.errors import InsufficientCredits, TransactionNotFound

logger = logging.getLogger(__name__)

SIGNUP_BONUS_DESCRIPTION = "Welcome bonus credits"


async def _load_account(user_id: str, db: AsyncSession) -> Optional[UserCredit]:
    result = await db.execute(
        select(UserCredit)
        .where(UserCredit.user_id == user_id)
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


async def get_or_create_account(user_id: str, db: AsyncSession) -> UserCredit:
    """Return the user's credit account, creating it with the signup bonus on first access."""
    account = await _load_account(user_id, db)
    if account:
        return account

    bonus = max(int(settings.SIGNUP_BONUS_CREDITS), 0)
    insert = dialect_insert(db)
    created = await db.execute(
        insert(UserCredit)
        .values(
            id=str(uuid.uuid4()),
            user_id=user_id,
            total_credits=bonus,
            used_credits=0,
            plan_type=PlanType.FREE.value,
        )
        .on_conflict_do_nothing(index_elements=["user_id"])
    )
    if created.rowcount == 1 and bonus > 0:
        db.add(
            CreditTransaction(
                user_id=user_id,
                type=TransactionType.BONUS.value,
                amount=bonus,
                status=TransactionStatus.COMPLETED.value,
                description=SIGNUP_BONUS_DESCRIPTION,
            )
        )
        await db.flush()
        logger.info("credit_account_created user=%s bonus=%s", user_id, bonus)

    return await _load_account(user_id, db)


def account_to_dict(account: UserCredit) -> Dict[str, Any]:
    return {
        "userId": account.user_id,
        "totalCredits": int(account.total_credits or 0),
        "usedCredits": int(account.used_credits or 0),
        "availableCredits": account.available_credits,
        "planType": account.plan_type,
    }


async def get_user_credits(user_id: str, db: AsyncSession) -> Dict[str, Any]:
    account = await get_or_create_account(user_id, db)
    await db.commit()
    return account_to_dict(account)


async def check_credit_availability(user_id: str, required: int, db: AsyncSession) -> Dict[str, Any]:
    required_credits = int(required)
    if required_credits <= 0:
        raise HTTPException(status_code=422, detail="required credits must be greater than 0")

    account = await get_or_create_account(user_id, db)
    available = account.available_credits
    has_enough = available >= required_credits
    payload: Dict[str, Any] = {
        "hasEnoughCredits": has_enough,
        "requiredCredits": required_credits,
        "availableCredits": available,
    }
    if not has_enough:
        payload["message"] = f"Insufficient credits. Required: {required_credits}, Available: {available}"
    return payload


async def deduct_credits(
    user_id: str,
    db: AsyncSession,
    *,
    service_id: str,
    action: CreditActionType | str,
    cost: int,
    result: Optional[Dict[str, Any]] = None,
    commit: bool = True,
) -> UserCredit:
    """Spend ``cost`` credits and append the usage log in one transaction.

    The balance check and the increment are a single conditional UPDATE, so a
    concurrent deduction that already drained the balance makes this one fail
    with ``InsufficientCredits`` instead of overdrawing.
    """
    debit = int(cost)
    if debit <= 0:
        raise HTTPException(status_code=422, detail="cost must be greater than 0")

    await get_or_create_account(user_id, db)
    outcome = await db.execute(
        update(UserCredit)
        .where(
            UserCredit.user_id == user_id,
            UserCredit.total_credits - UserCredit.used_credits >= debit,
        )
        .values(used_credits=UserCredit.used_credits + debit)
        .execution_options(synchronize_session=False)
    )
    if outcome.rowcount != 1:
        account = await _load_account(user_id, db)
        available = account.available_credits if account else 0
        raise InsufficientCredits(required=debit, available=available)

    db.add(
        CreditUsageLog(
            user_id=user_id,
            service_id=service_id,
            action=CreditActionType(action).value,
            cost=debit,
            result_json=result,
            success=True,
        )
    )
    await db.flush()
    if commit:
        await db.commit()

    account = await _load_account(user_id, db)
    logger.info(
        "credits_deducted user=%s service=%s action=%s cost=%s available=%s",
        user_id,
        service_id,
        action,
        debit,
        account.available_credits,
    )
    return account


async def _increment_total(user_id: str, amount: int, db: AsyncSession) -> None:
    await get_or_create_account(user_id, db)
    await db.execute(
        update(UserCredit)
        .where(UserCredit.user_id == user_id)
        .values(total_credits=UserCredit.total_credits + amount)
        .execution_options(synchronize_session=False)
    )


async def add_credits(
    user_id: str,
    db: AsyncSession,
    *,
    amount: int,
    type: TransactionType | str = TransactionType.PURCHASE,
    description: Optional[str] = None,
    paddle_payment_id: Optional[str] = None,
    commit: bool = True,
) -> UserCredit:
    """Grant ``amount`` credits and record a COMPLETED transaction."""
    grant = int(amount)
    if grant <= 0:
        raise HTTPException(status_code=422, detail="credits must be greater than 0")

    await _increment_total(user_id, grant, db)
    db.add(
        CreditTransaction(
            user_id=user_id,
            type=TransactionType(type).value,
            amount=grant,
            status=TransactionStatus.COMPLETED.value,
            description=description,
            paddle_payment_id=paddle_payment_id,
        )
    )
    await db.flush()
    if commit:
        await db.commit()

    logger.info("credits_added user=%s amount=%s type=%s", user_id, grant, TransactionType(type).value)
    return await _load_account(user_id, db)


async def create_pending_purchase(user_id: str, credits: int, db: AsyncSession) -> CreditTransaction:
    transaction = CreditTransaction(
        user_id=user_id,
        type=TransactionType.PURCHASE.value,
        amount=int(credits),
        status=TransactionStatus.PENDING.value,
        description=f"Purchase {int(credits)} credits",
    )
    db.add(transaction)
    await db.commit()
    return transaction


async def mark_transaction_failed(transaction_id: str, db: AsyncSession) -> None:
    await db.execute(
        update(CreditTransaction)
        .where(
            CreditTransaction.id == transaction_id,
            CreditTransaction.status == TransactionStatus.PENDING.value,
        )
        .values(status=TransactionStatus.FAILED.value)
        .execution_options(synchronize_session=False)
    )
    await db.commit()


async def complete_pending_purchase(
    transaction_id: str,
    db: AsyncSession,
    *,
    paddle_payment_id: Optional[str] = None,
) -> Optional[CreditTransaction]:
    """Flip a PENDING purchase to COMPLETED and credit its owner.

    Returns ``None`` when the transaction is unknown or no longer PENDING, which
    makes repeated deliveries of the same payment a no-op. Does not commit.
    """
    flipped = await db.execute(
        update(CreditTransaction)
        .where(
            CreditTransaction.id == transaction_id,
            CreditTransaction.status == TransactionStatus.PENDING.value,
        )
        .values(status=TransactionStatus.COMPLETED.value, paddle_payment_id=paddle_payment_id)
        .execution_options(synchronize_session=False)
    )
    if flipped.rowcount != 1:
        return None

    result = await db.execute(
        select(CreditTransaction)
        .where(CreditTransaction.id == transaction_id)
        .execution_options(populate_existing=True)
    )
    transaction = result.scalar_one()
    await _increment_total(transaction.user_id, int(transaction.amount), db)
    await db.flush()
    return transaction


async def set_plan_type(user_id: str, plan_type: PlanType, db: AsyncSession) -> None:
    await get_or_create_account(user_id, db)
    await db.execute(
        update(UserCredit)
        .where(UserCredit.user_id == user_id)
        .values(plan_type=plan_type.value)
        .execution_options(synchronize_session=False)
    )


def _transaction_to_dict(transaction: CreditTransaction) -> Dict[str, Any]:
    return {
        "id": transaction.id,
        "type": transaction.type,
        "amount": int(transaction.amount),
        "status": transaction.status,
        "description": transaction.description,
        "paddlePaymentId": transaction.paddle_payment_id,
        "createdAt": transaction.created_at.isoformat() if transaction.created_at else None,
    }


def _usage_log_to_dict(log: CreditUsageLog) -> Dict[str, Any]:
    return {
        "id": log.id,
        "serviceId": log.service_id,
        "serviceName": log.service.name if log.service else None,
        "action": log.action,
        "cost": int(log.cost),
        "result": log.result_json,
        "success": bool(log.success),
        "createdAt": log.created_at.isoformat() if log.created_at else None,
    }


async def get_transaction(user_id: str, transaction_id: str, db: AsyncSession) -> Dict[str, Any]:
    result = await db.execute(
        select(CreditTransaction).where(
            CreditTransaction.id == transaction_id,
            CreditTransaction.user_id == user_id,
        )
    )
    transaction = result.scalar_one_or_none()
    if transaction is None:
        raise TransactionNotFound()
    return _transaction_to_dict(transaction)


async def get_credit_history(user_id: str, db: AsyncSession) -> Dict[str, Any]:
    transactions = await db.execute(
        select(CreditTransaction)
        .where(CreditTransaction.user_id == user_id)
        .order_by(CreditTransaction.created_at.desc())
    )
    usage_logs = await db.execute(
        select(CreditUsageLog)
        .options(selectinload(CreditUsageLog.service))
        .where(CreditUsageLog.user_id == user_id)
        .order_by(CreditUsageLog.created_at.desc())
    )
    return {
        "transactions": [_transaction_to_dict(item) for item in transactions.scalars().all()],
        "usageLogs": [_usage_log_to_dict(item) for item in usage_logs.scalars().all()],
    }
