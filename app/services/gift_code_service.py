"""
Gift code service — creating and redeeming promotional credit codes.

Redemption checks, in order:
  1. the code exists (case-insensitive)      → NotFoundError
  2. now ≤ expires_at                         → ExpiredError
  3. fewer than usage_limit redemptions       → LimitExceededError
  4. this account hasn't redeemed it before   → AlreadyRedeemedError

The checks and the write (credit, ledger entry, redemption row, usage
counter bump) happen in one atomic unit. The gift code's own version
column serializes concurrent redemptions, so two users can't both take
the last remaining use.
"""

import logging
import uuid
from datetime import datetime

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import run_atomic
from app.exceptions import (
    AlreadyRedeemedError,
    ExpiredError,
    InvalidRequestError,
    LimitExceededError,
    NotFoundError,
)
from app.models.gift_code import GiftCode, GiftCodeRedemption
from app.models.ledger_entry import EntryKind, LedgerEntry
from app.schemas.gift_code import GiftCodeCreateRequest
from app.services import balance_service
from app.timeutils import utc_now

logger = logging.getLogger(__name__)


def normalize_code(code: str) -> str:
    return code.strip().upper()


async def create_gift_code(
    db: AsyncSession,
    request: GiftCodeCreateRequest,
    now: datetime | None = None,
) -> GiftCode:
    """
    Create a gift code. Its expiry clock starts now.

    Raises:
        InvalidRequestError: If a code with the same (normalized) text exists.
    """
    code = normalize_code(request.code)
    existing = await db.execute(select(GiftCode.id).where(GiftCode.code == code))
    if existing.scalar_one_or_none() is not None:
        raise InvalidRequestError(f"Gift code {code} already exists")

    gift_code = GiftCode(
        id=uuid.uuid4(),
        code=code,
        amount=request.amount,
        usage_limit=request.usage_limit,
        expires_in_minutes=request.expires_in_minutes,
        times_redeemed=0,
        created_at=now or utc_now(),
        redemptions=[],
    )
    db.add(gift_code)
    await db.flush()
    return gift_code


async def redeem_gift_code(
    db: AsyncSession,
    account_id: uuid.UUID,
    code: str,
    now: datetime | None = None,
) -> tuple[LedgerEntry, int]:
    """
    Redeem a gift code for an account.

    Returns:
        Tuple of (the credit ledger entry, new balance).

    Raises:
        NotFoundError: If the code or account doesn't exist.
        ExpiredError: If the code has expired.
        LimitExceededError: If the code's usage limit is reached.
        AlreadyRedeemedError: If this account already redeemed the code.
    """
    normalized = normalize_code(code)
    now = now or utc_now()

    async def operation() -> tuple[LedgerEntry, int]:
        result = await db.execute(
            select(GiftCode)
            .where(GiftCode.code == normalized)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        gift_code = result.scalar_one_or_none()

        if gift_code is None:
            raise NotFoundError("Gift code", normalized)
        if now > gift_code.expires_at:
            raise ExpiredError(f"Gift code {normalized} has expired")
        if len(gift_code.redeemed_by) >= gift_code.usage_limit:
            raise LimitExceededError(
                f"Gift code {normalized} has reached its usage limit",
                limit=gift_code.usage_limit,
            )
        if account_id in gift_code.redeemed_by:
            raise AlreadyRedeemedError(normalized)

        entry, new_balance = await balance_service.post(
            db,
            account_id,
            EntryKind.CREDIT,
            gift_code.amount,
            f"Gift code: {gift_code.code}",
            occurred_at=now,
        )
        gift_code.redemptions.append(
            GiftCodeRedemption(id=uuid.uuid4(), account_id=account_id, redeemed_at=now)
        )
        gift_code.times_redeemed += 1
        return entry, new_balance

    entry, new_balance = await run_atomic(db, operation)
    logger.info("Account %s redeemed gift code %s for %d", account_id, normalized, entry.amount)
    return entry, new_balance
