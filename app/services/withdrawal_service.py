"""
Withdrawal service — payout requests, their rules and their review.

A withdrawal request, in one atomic unit:
  1. amount ≥ min_withdrawal                        → WithdrawalNotAllowedError
  2. payout details are on file                     → WithdrawalNotAllowedError
  3. the account owns at least one plant position   → WithdrawalNotAllowedError
  4. the business-local hour is in [start, end) and
     the weekday is allowed                         → WithdrawalNotAllowedError
  5. fewer than daily_limit pending/approved
     requests today (business-local day)            → LimitExceededError
  6. balance ≥ amount                               → InsufficientBalanceError
  then: debit the full amount, record one ledger entry, and queue the
  request with its fee and net amount and a snapshot of the destination.

Review:
  approve → the admin pays out net_amount; no balance effect
  reject  → the full amount is credited back with its own ledger entry, so
            the pair of entries nets to zero

Rules are read from config:withdrawals on every request.
"""

import logging
import uuid
from datetime import datetime, timezone
from typing import Literal
from zoneinfo import ZoneInfo

from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.database import run_atomic
from app.exceptions import (
    InsufficientBalanceError,
    LimitExceededError,
    NotFoundError,
    RequestAlreadyProcessedError,
    WithdrawalNotAllowedError,
)
from app.models.account import Account
from app.models.ledger_entry import EntryKind
from app.models.payment_request import RequestStatus
from app.models.position import PurchasedPosition
from app.models.withdrawal_request import WithdrawalRequest
from app.money import percent_of
from app.schemas.account import WithdrawalInfo
from app.schemas.settings import WithdrawalSettings
from app.security import decrypt_json, encrypt_json
from app.services import balance_service, config_service
from app.timeutils import utc_now

logger = logging.getLogger(__name__)

WEEKDAY_NAMES = ["Sunday", "Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday"]


def business_weekday(local: datetime) -> int:
    """Weekday of a local datetime, 0=Sunday … 6=Saturday."""
    return local.isoweekday() % 7


def business_day_start(now: datetime) -> datetime:
    """UTC instant of the most recent business-local midnight."""
    local = now.astimezone(ZoneInfo(settings.BUSINESS_TIMEZONE))
    midnight = local.replace(hour=0, minute=0, second=0, microsecond=0)
    return midnight.astimezone(timezone.utc)


def check_window(rules: WithdrawalSettings, now: datetime) -> None:
    """
    Refuse a withdrawal outside the configured hours and weekdays.

    Raises:
        WithdrawalNotAllowedError: If `now` falls outside the window.
    """
    local = now.astimezone(ZoneInfo(settings.BUSINESS_TIMEZONE))
    if business_weekday(local) not in rules.allowed_weekdays:
        allowed = ", ".join(WEEKDAY_NAMES[day] for day in sorted(rules.allowed_weekdays))
        raise WithdrawalNotAllowedError(f"Withdrawals are only available on: {allowed}")
    if not rules.start_hour <= local.hour < rules.end_hour:
        raise WithdrawalNotAllowedError(
            f"Withdrawals are only available from {rules.start_hour}:00 to {rules.end_hour}:00"
        )


async def set_withdrawal_info(
    db: AsyncSession,
    account_id: uuid.UUID,
    info: WithdrawalInfo,
) -> Account:
    """Store (or replace) an account's payout details, encrypted."""
    encrypted = encrypt_json(info.model_dump())

    async def operation() -> Account:
        account = await balance_service.get_account_for_update(db, account_id)
        account.withdrawal_info_encrypted = encrypted
        return account

    account = await run_atomic(db, operation)
    logger.info("Withdrawal info updated for account %s", account_id)
    return account


async def get_withdrawal_info(db: AsyncSession, account_id: uuid.UUID) -> WithdrawalInfo | None:
    account = await db.get(Account, account_id)
    if account is None:
        raise NotFoundError("Account", account_id)
    if account.withdrawal_info_encrypted is None:
        return None
    return WithdrawalInfo(**decrypt_json(account.withdrawal_info_encrypted))


async def _count_today(db: AsyncSession, account_id: uuid.UUID, now: datetime) -> int:
    result = await db.execute(
        select(func.count(WithdrawalRequest.id))
        .where(WithdrawalRequest.account_id == account_id)
        .where(WithdrawalRequest.status.in_(
            [RequestStatus.PENDING.value, RequestStatus.APPROVED.value]
        ))
        .where(WithdrawalRequest.requested_at >= business_day_start(now))
    )
    return int(result.scalar())


async def request_withdrawal(
    db: AsyncSession,
    account_id: uuid.UUID,
    amount: int,
    now: datetime | None = None,
) -> WithdrawalRequest:
    """
    Debit `amount` and queue a payout for admin review.

    Raises:
        NotFoundError: If the account doesn't exist.
        WithdrawalNotAllowedError: If a withdrawal rule refuses the request.
        LimitExceededError: If today's request allowance is used up.
        InsufficientBalanceError: If the balance can't cover the amount.
    """
    now = now or utc_now()

    async def operation() -> WithdrawalRequest:
        rules = await config_service.get_withdrawal_settings(db)
        account = await balance_service.get_account_for_update(db, account_id)

        if amount < rules.min_withdrawal:
            raise WithdrawalNotAllowedError(
                f"The minimum withdrawal is {rules.min_withdrawal}"
            )
        if account.withdrawal_info_encrypted is None:
            raise WithdrawalNotAllowedError(
                "Set your withdrawal information before requesting a withdrawal"
            )

        owns_position = await db.execute(
            select(PurchasedPosition.id)
            .where(PurchasedPosition.account_id == account_id)
            .limit(1)
        )
        if owns_position.scalar_one_or_none() is None:
            raise WithdrawalNotAllowedError(
                "You need at least one energy plant to request a withdrawal"
            )

        check_window(rules, now)

        if await _count_today(db, account_id, now) >= rules.daily_limit:
            raise LimitExceededError(
                f"You can make {rules.daily_limit} withdrawal request(s) per day",
                limit=rules.daily_limit,
            )

        if account.balance < amount:
            raise InsufficientBalanceError(
                account_id=account_id,
                requested=amount,
                available=account.balance,
            )

        fee = percent_of(amount, rules.fee_percentage)
        await balance_service.post(
            db,
            account_id,
            EntryKind.DEBIT,
            amount,
            "Withdrawal request to Nequi",
            occurred_at=now,
            # today's count was taken at this version
            expected_version=account.version,
        )

        request = WithdrawalRequest(
            id=uuid.uuid4(),
            account_id=account_id,
            phone=account.phone,
            amount=amount,
            fee_amount=fee,
            net_amount=amount - fee,
            destination_encrypted=account.withdrawal_info_encrypted,
            status=RequestStatus.PENDING.value,
            requested_at=now,
        )
        db.add(request)
        return request

    request = await run_atomic(db, operation)
    logger.info(
        "Account %s requested withdrawal %s of %d (fee %d)",
        account_id, request.id, request.amount, request.fee_amount,
    )
    return request


async def review_withdrawal_request(
    db: AsyncSession,
    request_id: uuid.UUID,
    decision: Literal["approve", "reject"],
    reviewer_id: uuid.UUID,
    now: datetime | None = None,
) -> WithdrawalRequest:
    """
    Approve or reject a pending withdrawal.

    A rejection refunds the full amount. If the requester's account no
    longer exists the refund is impossible; the request is still marked
    rejected and the failure is logged for manual follow-up.

    Raises:
        NotFoundError: If the request doesn't exist.
        RequestAlreadyProcessedError: If the request is not pending.
    """
    now = now or utc_now()

    async def operation() -> WithdrawalRequest:
        result = await db.execute(
            select(WithdrawalRequest)
            .where(WithdrawalRequest.id == request_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        request = result.scalar_one_or_none()

        if request is None:
            raise NotFoundError("Withdrawal request", request_id)
        if request.status != RequestStatus.PENDING.value:
            raise RequestAlreadyProcessedError(request_id, request.status)

        if decision == "approve":
            request.status = RequestStatus.APPROVED.value
        else:
            owner = await db.execute(
                select(Account.id).where(Account.id == request.account_id)
            )
            if owner.scalar_one_or_none() is None:
                logger.error(
                    "Cannot refund rejected withdrawal %s: account %s not found",
                    request_id, request.account_id,
                )
            else:
                await balance_service.post(
                    db,
                    request.account_id,
                    EntryKind.CREDIT,
                    request.amount,
                    "Refund for rejected withdrawal",
                    occurred_at=now,
                )
            request.status = RequestStatus.REJECTED.value

        request.processed_at = now
        request.processed_by_account_id = reviewer_id
        return request

    request = await run_atomic(db, operation)
    logger.info("Withdrawal request %s %s by %s", request_id, request.status, reviewer_id)
    return request


async def list_for_account(db: AsyncSession, account_id: uuid.UUID) -> list[WithdrawalRequest]:
    result = await db.execute(
        select(WithdrawalRequest)
        .where(WithdrawalRequest.account_id == account_id)
        .order_by(WithdrawalRequest.requested_at.desc())
    )
    return list(result.scalars().all())


async def admin_list(
    db: AsyncSession,
    status_filter: str | None = None,
    limit: int = 50,
    offset: int = 0,
) -> list[WithdrawalRequest]:
    """[ADMIN ONLY] List withdrawal requests, oldest first."""
    query = (
        select(WithdrawalRequest)
        .order_by(WithdrawalRequest.requested_at)
        .limit(limit)
        .offset(offset)
    )
    if status_filter:
        query = query.where(WithdrawalRequest.status == status_filter)

    result = await db.execute(query)
    return list(result.scalars().all())
