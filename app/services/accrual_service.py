"""
Yield accrual service — pays out the daily yield of purchased positions.

Accrual is pull-on-access: nothing runs on a timer. Whenever an account's
session becomes active (GET /accounts/me, or an explicit
POST /accounts/me/reconcile-yields), reconcile_yields() catches up every
24h cycle that has ended since the position's cursor, in one pass.

Per position:
  cursor = last_yield_date or purchase_date
  expiry = purchase_date + duration_days
  repeat:
    next = cursor + 24h
    next > now     → stop, nothing more is due yet
    next > expiry  → stop and complete; the final partial cycle never pays
    otherwise      → one credit of unit_price × daily_yield_percent / 100,
                     dated `next`; cursor = next
  now >= expiry    → completed

All credits of all positions become ONE balance delta plus one ledger
entry per cycle, committed together with the advanced cursors and status
flips. That shared unit is what makes the pass idempotent: a second pass
(or a concurrent session) reads the advanced cursors and finds no due
cycles. A crash before commit leaves everything as it was, so the next
access simply redoes the work.
"""

import logging
import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import run_atomic
from app.models.ledger_entry import EntryKind
from app.models.position import PurchasedPosition, PositionStatus
from app.money import percent_of
from app.services import balance_service, ledger_service
from app.timeutils import as_utc, utc_now

logger = logging.getLogger(__name__)

ACCRUAL_CYCLE = timedelta(hours=24)


@dataclass
class YieldReport:
    credits_applied: int
    amount_credited: int
    positions_completed: int
    balance: int


def daily_yield_amount(position: PurchasedPosition) -> int:
    return percent_of(position.unit_price, position.daily_yield_percent)


def due_cycles(position: PurchasedPosition, now: datetime) -> tuple[list[datetime], bool]:
    """
    Work out which cycles of a position are payable at `now`.

    Returns:
        Tuple of (end time of each payable cycle in order, whether the
        position is now complete).
    """
    cursor = as_utc(position.last_yield_date or position.purchase_date)
    expiry = position.expires_at
    cycle_ends: list[datetime] = []
    completed = False

    while True:
        next_cycle = cursor + ACCRUAL_CYCLE
        if next_cycle > now:
            break
        if next_cycle > expiry:
            completed = True
            break
        cycle_ends.append(next_cycle)
        cursor = next_cycle

    if now >= expiry:
        completed = True

    return cycle_ends, completed


async def reconcile_yields(
    db: AsyncSession,
    account_id: uuid.UUID,
    now: datetime | None = None,
) -> YieldReport:
    """
    Credit every missed daily-yield cycle of the account's active positions.

    Args:
        db: Database session.
        account_id: The account whose session just became active.
        now: Clock override for tests; defaults to the current UTC time.

    Returns:
        A YieldReport with the number of ledger credits written, their total,
        how many positions were completed, and the resulting balance.

    Raises:
        NotFoundError: If the account doesn't exist.
    """
    now = now or utc_now()

    async def operation() -> YieldReport:
        # Lock the account first so a concurrent pass waits, then sees our cursors
        account = await balance_service.get_account_for_update(db, account_id)
        # The cycles below are computed from cursors read at this version
        seen_version = account.version

        result = await db.execute(
            select(PurchasedPosition)
            .where(PurchasedPosition.account_id == account_id)
            .where(PurchasedPosition.status == PositionStatus.ACTIVE.value)
            .order_by(PurchasedPosition.purchase_date)
            .execution_options(populate_existing=True)
        )
        positions = list(result.scalars().all())

        credits: list[tuple[PurchasedPosition, int, datetime]] = []
        completed = 0

        for position in positions:
            cycle_ends, is_complete = due_cycles(position, now)
            amount = daily_yield_amount(position)

            if cycle_ends:
                position.last_yield_date = cycle_ends[-1]
                if amount > 0:
                    credits.extend((position, amount, end) for end in cycle_ends)

            if is_complete:
                position.status = PositionStatus.COMPLETED.value
                completed += 1

        total = sum(amount for _, amount, _ in credits)
        balance = account.balance

        if total > 0:
            balance = await balance_service.apply_delta(
                db, account_id, total, expected_version=seen_version
            )
            for position, amount, occurred_at in credits:
                ledger_service.append(
                    db,
                    account_id,
                    EntryKind.CREDIT,
                    amount,
                    f"Daily yield: {position.name} ({str(position.id)[:8]})",
                    occurred_at=occurred_at,
                )
            logger.info(
                "Accrued %d cycle(s) totalling %d for account %s",
                len(credits), total, account_id,
            )

        return YieldReport(
            credits_applied=len(credits),
            amount_credited=total,
            positions_completed=completed,
            balance=balance,
        )

    return await run_atomic(db, operation)
