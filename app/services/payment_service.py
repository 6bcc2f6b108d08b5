"""
Payment service — recharge requests and their admin review.

Recharge flow:
  1. The user pays out of band and records the amount and payment
     reference (record_payment_reference) → a PENDING request
  2. An admin matches the reference against the real payment and
     approves or rejects it (review_payment_request)

Approval, in one atomic unit:
  - Refuse if the same reference is already APPROVED anywhere
    (DuplicateReferenceError; the request stays pending)
  - Credit the amount to the requester with a ledger entry naming the
    reference
  - If this is the requester's FIRST approved recharge and they signed up
    with a referral code, credit the referrer
    floor(amount × commission_percentage / 100), with its own entry
  - Mark the request approved, stamping who and when

Both checks run inside the unit rather than as separate pre-queries.
The requester's account row is version-bumped by the credit, so two
simultaneous first recharges of the same user conflict and the retry
sees the other approval. A partial unique index on approved references
catches two simultaneous approvals of the same reference for different
users.

Rejection only marks the request: nothing was ever debited for a recharge.
"""

import logging
import uuid
from datetime import datetime
from typing import Literal

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import run_atomic
from app.exceptions import (
    DuplicateReferenceError,
    InvalidRequestError,
    NotFoundError,
    RequestAlreadyProcessedError,
)
from app.models.account import Account
from app.models.ledger_entry import EntryKind
from app.models.payment_request import PaymentRequest, RequestStatus
from app.money import percent_of
from app.services import balance_service, config_service
from app.timeutils import utc_now

logger = logging.getLogger(__name__)

COMMISSION_DESCRIPTION = "Referral commission"


async def record_payment_reference(
    db: AsyncSession,
    account_id: uuid.UUID,
    amount: int,
    reference_number: str,
) -> PaymentRequest:
    """
    Record a claimed recharge for admin review.

    Raises:
        InvalidRequestError: If the amount isn't positive or the reference is blank.
        NotFoundError: If the account doesn't exist.
    """
    reference = reference_number.strip()
    if amount <= 0:
        raise InvalidRequestError("Recharge amount must be positive")
    if not reference:
        raise InvalidRequestError("A payment reference is required")

    account = await db.get(Account, account_id)
    if account is None:
        raise NotFoundError("Account", account_id)

    request = PaymentRequest(
        id=uuid.uuid4(),
        account_id=account_id,
        phone=account.phone,
        amount=amount,
        reference_number=reference,
        status=RequestStatus.PENDING.value,
    )
    db.add(request)
    await db.flush()
    return request


async def _pay_referral_commission(
    db: AsyncSession,
    requester: Account,
    request: PaymentRequest,
) -> None:
    result = await db.execute(
        select(Account).where(Account.referral_code == requester.invited_by_code)
    )
    referrer = result.scalar_one_or_none()
    if referrer is None or referrer.id == requester.id:
        return

    percentage = (await config_service.get_referral_settings(db)).commission_percentage
    commission = percent_of(request.amount, percentage)
    if commission <= 0:
        return

    await balance_service.post(
        db,
        referrer.id,
        EntryKind.CREDIT,
        commission,
        f"{COMMISSION_DESCRIPTION}: {requester.phone}",
    )
    logger.info(
        "Paid referral commission %d to %s for first recharge of %s",
        commission, referrer.id, requester.id,
    )


async def review_payment_request(
    db: AsyncSession,
    request_id: uuid.UUID,
    decision: Literal["approve", "reject"],
    reviewer_id: uuid.UUID,
    now: datetime | None = None,
) -> PaymentRequest:
    """
    Approve or reject a pending recharge request.

    Raises:
        NotFoundError: If the request or the requester's account doesn't exist.
        RequestAlreadyProcessedError: If the request is not pending.
        DuplicateReferenceError: If the reference was already approved.
    """
    now = now or utc_now()

    async def operation() -> PaymentRequest:
        result = await db.execute(
            select(PaymentRequest)
            .where(PaymentRequest.id == request_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        request = result.scalar_one_or_none()

        if request is None:
            raise NotFoundError("Payment request", request_id)
        if request.status != RequestStatus.PENDING.value:
            raise RequestAlreadyProcessedError(request_id, request.status)

        if decision == "approve":
            duplicate = await db.execute(
                select(PaymentRequest.id)
                .where(PaymentRequest.reference_number == request.reference_number)
                .where(PaymentRequest.status == RequestStatus.APPROVED.value)
                .where(PaymentRequest.id != request.id)
                .limit(1)
            )
            if duplicate.scalar_one_or_none() is not None:
                raise DuplicateReferenceError(request.reference_number)

            requester = await balance_service.get_account_for_update(db, request.account_id)

            earlier_approval = await db.execute(
                select(PaymentRequest.id)
                .where(PaymentRequest.account_id == request.account_id)
                .where(PaymentRequest.status == RequestStatus.APPROVED.value)
                .limit(1)
            )
            is_first_recharge = earlier_approval.scalar_one_or_none() is None

            await balance_service.post(
                db,
                requester.id,
                EntryKind.CREDIT,
                request.amount,
                f"Recharge approved (Ref: {request.reference_number})",
                occurred_at=now,
                # is_first_recharge holds only at the version we read
                expected_version=requester.version,
            )

            if is_first_recharge and requester.invited_by_code:
                await _pay_referral_commission(db, requester, request)

            request.status = RequestStatus.APPROVED.value
        else:
            request.status = RequestStatus.REJECTED.value

        request.processed_at = now
        request.processed_by_account_id = reviewer_id
        return request

    request = await run_atomic(db, operation)
    logger.info("Payment request %s %s by %s", request_id, request.status, reviewer_id)
    return request


async def list_for_account(db: AsyncSession, account_id: uuid.UUID) -> list[PaymentRequest]:
    result = await db.execute(
        select(PaymentRequest)
        .where(PaymentRequest.account_id == account_id)
        .order_by(PaymentRequest.created_at.desc())
    )
    return list(result.scalars().all())


async def admin_list(
    db: AsyncSession,
    status_filter: str | None = None,
    limit: int = 50,
    offset: int = 0,
) -> list[PaymentRequest]:
    """[ADMIN ONLY] List recharge requests, oldest pending first."""
    query = (
        select(PaymentRequest)
        .order_by(PaymentRequest.created_at)
        .limit(limit)
        .offset(offset)
    )
    if status_filter:
        query = query.where(PaymentRequest.status == status_filter)

    result = await db.execute(query)
    return list(result.scalars().all())
