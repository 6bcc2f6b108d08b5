"""
Ledger service — the append-only record of every balance movement.

This module is the ONLY place LedgerEntry rows are created. It handles:
  - Appending a credit or debit entry (append)
  - Listing an account's history newest-first (list_transactions)
  - Summing the ledger for reconciliation (compute_balance)

Atomicity:
  append() only adds the entry to the session; it is written by the flush
  at the end of the caller's atomic unit, together with the balance change
  made by app.services.balance_service.apply_delta(). If that flush fails,
  both are rolled back. Callers never call append() outside run_atomic().

Backdating:
  occurred_at defaults to now. Catch-up yield accrual passes the end of
  each missed 24h cycle instead, so a user who was away for five days sees
  five entries on five different days, not five entries stamped "today".
"""

import uuid
from datetime import datetime

from sqlalchemy import select, func, case
from sqlalchemy.ext.asyncio import AsyncSession

from app.exceptions import InvalidRequestError
from app.models.ledger_entry import LedgerEntry, EntryKind
from app.timeutils import utc_now


def append(
    db: AsyncSession,
    account_id: uuid.UUID,
    kind: EntryKind,
    amount: int,
    description: str,
    occurred_at: datetime | None = None,
) -> LedgerEntry:
    """
    Add one immutable ledger entry to the current atomic unit.

    Args:
        db: Database session (inside run_atomic).
        account_id: The account whose balance moved.
        kind: EntryKind.CREDIT or EntryKind.DEBIT.
        amount: Positive whole-unit amount; direction comes from `kind`.
        description: Human-readable reason shown in the transaction history.
        occurred_at: Economic time of the movement, defaults to now.

    Returns:
        The pending LedgerEntry (persisted by the unit's flush).

    Raises:
        InvalidRequestError: If amount is not positive.
    """
    if amount <= 0:
        raise InvalidRequestError(f"Ledger amounts must be positive, got {amount}")

    entry = LedgerEntry(
        id=uuid.uuid4(),
        account_id=account_id,
        kind=EntryKind(kind).value,
        amount=amount,
        description=description,
        occurred_at=occurred_at or utc_now(),
    )
    db.add(entry)
    return entry


async def list_transactions(
    db: AsyncSession,
    account_id: uuid.UUID,
    kind_filter: str | None = None,
    description_prefix: str | None = None,
    limit: int = 50,
    offset: int = 0,
) -> list[LedgerEntry]:
    """
    List an account's ledger entries, newest first by occurred_at.

    Entries sharing an occurred_at (e.g. a purchase and the positions it
    creates) fall back to write order, newest first.
    """
    query = (
        select(LedgerEntry)
        .where(LedgerEntry.account_id == account_id)
        .order_by(LedgerEntry.occurred_at.desc(), LedgerEntry.created_at.desc())
        .limit(limit)
        .offset(offset)
    )

    if kind_filter:
        query = query.where(LedgerEntry.kind == kind_filter)
    if description_prefix:
        query = query.where(LedgerEntry.description.startswith(description_prefix))

    result = await db.execute(query)
    return list(result.scalars().all())


async def compute_balance(db: AsyncSession, account_id: uuid.UUID) -> int:
    """
    Compute the balance by summing the account's ledger.

    Credits add, debits subtract. This is the integrity-check counterpart
    to Account.balance.
    """
    signed = case(
        (LedgerEntry.kind == EntryKind.CREDIT.value, LedgerEntry.amount),
        else_=-LedgerEntry.amount,
    )
    result = await db.execute(
        select(func.coalesce(func.sum(signed), 0))
        .where(LedgerEntry.account_id == account_id)
    )
    return int(result.scalar())
