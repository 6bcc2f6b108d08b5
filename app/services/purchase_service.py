"""
Purchase service — buying energy plant positions with balance.

A purchase of N units is one atomic unit containing:
  - one debit of price × N from the balance
  - one ledger entry describing the whole batch
  - N PurchasedPosition rows, each with its own purchase_date and cursor

Validation (all before anything is written):
  1. quantity is a positive integer
  2. the catalog item exists and, if time-limited, is still on sale
  3. balance ≥ price × quantity                      → InsufficientBalanceError
  4. units already owned + quantity ≤ purchase_limit → LimitExceededError

Units already owned counts every position ever bought of the item,
completed ones included: the limit is per account, not per active slot.
"""

import logging
import uuid
from dataclasses import dataclass
from datetime import datetime

from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import run_atomic
from app.exceptions import ExpiredError, InsufficientBalanceError, InvalidRequestError, LimitExceededError
from app.models.ledger_entry import EntryKind, LedgerEntry
from app.models.position import PurchasedPosition, PositionStatus
from app.services import balance_service, catalog_service, ledger_service
from app.timeutils import utc_now

logger = logging.getLogger(__name__)


@dataclass
class PurchaseResult:
    positions: list[PurchasedPosition]
    ledger_entry: LedgerEntry
    balance: int


async def count_owned(db: AsyncSession, account_id: uuid.UUID, catalog_item_id: uuid.UUID) -> int:
    result = await db.execute(
        select(func.count(PurchasedPosition.id))
        .where(PurchasedPosition.account_id == account_id)
        .where(PurchasedPosition.catalog_item_id == catalog_item_id)
    )
    return int(result.scalar())


async def purchase(
    db: AsyncSession,
    account_id: uuid.UUID,
    catalog_item_id: uuid.UUID,
    quantity: int,
    now: datetime | None = None,
) -> PurchaseResult:
    """
    Buy `quantity` units of a catalog item.

    Raises:
        InvalidRequestError: If quantity is not a positive integer.
        NotFoundError: If the account or catalog item doesn't exist.
        ExpiredError: If a time-limited offer has closed.
        InsufficientBalanceError: If the balance can't cover the total.
        LimitExceededError: If the per-account purchase limit would be exceeded.
    """
    if not isinstance(quantity, int) or isinstance(quantity, bool) or quantity < 1:
        raise InvalidRequestError("Quantity must be a positive integer")

    now = now or utc_now()

    async def operation() -> PurchaseResult:
        item = await catalog_service.get_item(db, catalog_item_id)
        if not item.is_on_sale(now):
            raise ExpiredError(f"The offer for {item.name} has ended")

        account = await balance_service.get_account_for_update(db, account_id)
        total_cost = item.price * quantity

        if account.balance < total_cost:
            raise InsufficientBalanceError(
                account_id=account_id,
                requested=total_cost,
                available=account.balance,
            )

        owned = await count_owned(db, account_id, catalog_item_id)
        if owned + quantity > item.purchase_limit:
            raise LimitExceededError(
                f"The limit for {item.name} is {item.purchase_limit} and you already own {owned}",
                limit=item.purchase_limit,
            )

        # The owned count is only valid at the version we read
        new_balance = await balance_service.apply_delta(
            db, account_id, -total_cost, expected_version=account.version
        )
        entry = ledger_service.append(
            db,
            account_id,
            EntryKind.DEBIT,
            total_cost,
            f"Purchase: {item.name} (x{quantity})",
            occurred_at=now,
        )

        positions = [
            PurchasedPosition(
                id=uuid.uuid4(),
                account_id=account_id,
                catalog_item_id=item.id,
                name=item.name,
                unit_price=item.price,
                daily_yield_percent=item.daily_yield_percent,
                duration_days=item.duration_days,
                purchase_date=now,
                status=PositionStatus.ACTIVE.value,
            )
            for _ in range(quantity)
        ]
        db.add_all(positions)

        return PurchaseResult(positions=positions, ledger_entry=entry, balance=new_balance)

    result = await run_atomic(db, operation)
    logger.info(
        "Account %s bought %d x %s for %d",
        account_id, quantity, catalog_item_id, result.ledger_entry.amount,
    )
    return result


async def list_positions(
    db: AsyncSession,
    account_id: uuid.UUID,
    status_filter: str | None = None,
) -> list[PurchasedPosition]:
    """List an account's positions, newest purchase first."""
    query = (
        select(PurchasedPosition)
        .where(PurchasedPosition.account_id == account_id)
        .order_by(PurchasedPosition.purchase_date.desc())
    )
    if status_filter:
        query = query.where(PurchasedPosition.status == status_filter)

    result = await db.execute(query)
    return list(result.scalars().all())
