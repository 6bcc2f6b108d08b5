"""
Balance service — the only code that changes Account.balance.

This module handles:
  - Locking an account row for a read-modify-write (get_account_for_update)
  - Applying a signed delta with the non-negative guarantee (apply_delta)
  - The common "move money and explain it" pair (post)
  - Manual admin corrections: add, subtract or set (adjust_balance)
  - The cached-vs-ledger balance check (get_balance)

Concurrency:
  apply_delta() reads the row FOR UPDATE (a row lock on PostgreSQL, a no-op
  on SQLite) and writes it back through the ORM. Because Account.version is
  the mapper's version_id_col, the UPDATE carries "AND version = <read>"
  and bumps the version by exactly one. A concurrent writer turns that
  UPDATE into a StaleDataError, which run_atomic() retries.

  That read refreshes the row, so it only guards the write itself. A unit
  that decided something from an EARLIER read (yield cursors, an owned
  count, today's withdrawals, "is this the first recharge") must pass the
  version it saw as expected_version; a mismatch raises
  TransactionConflictError and run_atomic() re-runs the whole unit.

  Each atomic unit calls apply_delta() at most once per account, so an
  account's version goes up by one per committed operation no matter how
  many ledger entries that operation wrote.
"""

import logging
import uuid
from datetime import datetime
from typing import Literal

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import run_atomic
from app.exceptions import (
    InsufficientBalanceError,
    InvalidRequestError,
    NotFoundError,
    TransactionConflictError,
)
from app.models.account import Account
from app.models.ledger_entry import LedgerEntry, EntryKind
from app.services import ledger_service

logger = logging.getLogger(__name__)


async def get_account_for_update(db: AsyncSession, account_id: uuid.UUID) -> Account:
    """
    Load an account for a read-modify-write, refreshing any cached copy.

    Raises:
        NotFoundError: If the account doesn't exist.
    """
    result = await db.execute(
        select(Account)
        .where(Account.id == account_id)
        .with_for_update()  # No-op on SQLite, locks row on PostgreSQL
        .execution_options(populate_existing=True)
    )
    account = result.scalar_one_or_none()

    if account is None:
        raise NotFoundError("Account", account_id)

    return account


async def apply_delta(
    db: AsyncSession,
    account_id: uuid.UUID,
    signed_amount: int,
    expected_version: int | None = None,
) -> int:
    """
    Add `signed_amount` to an account's balance.

    Must run inside run_atomic(), in the same unit as the ledger entries
    that explain the change.

    Args:
        db: Database session.
        account_id: The account to change.
        signed_amount: Positive to credit, negative to debit. Never zero.
        expected_version: If given, the change is refused unless the
            account is still at this version (compare-and-swap by caller).

    Returns:
        The new balance.

    Raises:
        NotFoundError: If the account doesn't exist.
        TransactionConflictError: If expected_version no longer matches.
        InsufficientBalanceError: If a debit would make the balance negative.
    """
    if signed_amount == 0:
        raise InvalidRequestError("A balance delta must be non-zero")

    account = await get_account_for_update(db, account_id)

    if expected_version is not None and account.version != expected_version:
        raise TransactionConflictError(
            f"Account {account_id} is at version {account.version}, expected {expected_version}"
        )

    new_balance = account.balance + signed_amount
    if new_balance < 0:
        raise InsufficientBalanceError(
            account_id=account_id,
            requested=-signed_amount,
            available=account.balance,
        )

    account.balance = new_balance
    # Flush now so the versioned UPDATE is emitted exactly once for this delta
    await db.flush()
    return new_balance


async def post(
    db: AsyncSession,
    account_id: uuid.UUID,
    kind: EntryKind,
    amount: int,
    description: str,
    occurred_at: datetime | None = None,
    expected_version: int | None = None,
) -> tuple[LedgerEntry, int]:
    """
    Credit or debit an account and record one ledger entry for it.

    Returns:
        Tuple of (ledger entry, new balance).
    """
    if amount <= 0:
        raise InvalidRequestError(f"Ledger amounts must be positive, got {amount}")

    signed_amount = amount if kind == EntryKind.CREDIT else -amount
    new_balance = await apply_delta(db, account_id, signed_amount, expected_version)
    entry = ledger_service.append(db, account_id, kind, amount, description, occurred_at)
    return entry, new_balance


async def adjust_balance(
    db: AsyncSession,
    account_id: uuid.UUID,
    action: Literal["add", "subtract", "set"],
    amount: int,
    description: str,
    adjusted_by: uuid.UUID,
) -> tuple[LedgerEntry | None, int]:
    """
    Manually correct an account's balance on behalf of an admin.

    "add" credits and "subtract" debits `amount`. "set" credits or debits the
    difference to reach `amount`; if the balance is already there nothing is
    written and no entry is returned.

    Raises:
        NotFoundError: If the account doesn't exist.
        InsufficientBalanceError: If a subtraction would go below zero.
    """
    async def operation() -> tuple[LedgerEntry | None, int]:
        account = await get_account_for_update(db, account_id)

        if action == "add":
            kind, delta = EntryKind.CREDIT, amount
        elif action == "subtract":
            kind, delta = EntryKind.DEBIT, amount
        else:
            difference = amount - account.balance
            if difference == 0:
                return None, account.balance
            kind = EntryKind.CREDIT if difference > 0 else EntryKind.DEBIT
            delta = abs(difference)

        # "set" computed the difference from this version's balance
        return await post(
            db, account_id, kind, delta, description, expected_version=account.version
        )

    entry, balance = await run_atomic(db, operation)
    if entry is not None:
        logger.info(
            "Admin %s adjusted account %s: %s %d (%s), balance now %d",
            adjusted_by, account_id, entry.kind, entry.amount, action, balance,
        )
    return entry, balance


async def get_balance(db: AsyncSession, account_id: uuid.UUID) -> dict:
    """
    Get the account balance — both cached and computed from the ledger.

    A mismatch signals a data integrity issue.

    Returns:
        Dict with account_id, cached_balance, computed_balance, match, version.
    """
    account = await db.get(Account, account_id, populate_existing=True)
    if account is None:
        raise NotFoundError("Account", account_id)

    computed_balance = await ledger_service.compute_balance(db, account_id)

    return {
        "account_id": account.id,
        "cached_balance": account.balance,
        "computed_balance": computed_balance,
        "match": account.balance == computed_balance,
        "version": account.version,
    }
