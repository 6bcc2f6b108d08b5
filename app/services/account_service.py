"""
Account service — reading accounts, referrals and roles.

This module handles:
  - Account retrieval (by id, or by the owning user)
  - The referral summary: who signed up with my code and what I earned
  - Role management, which the router restricts to SUPERADMIN

Ownership enforcement:
  Member-facing functions receive the authenticated account's id from the
  dependency layer. There is no way for a member to read another account
  through this service.

Admin access:
  Functions prefixed with `admin_` do NOT scope by owner. The router layer
  enforces that only ADMIN or SUPERADMIN accounts reach them.
"""

import logging
import uuid

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import run_atomic
from app.exceptions import InvalidRequestError, NotFoundError
from app.models.account import Account, AccountRole
from app.services import ledger_service
from app.services.payment_service import COMMISSION_DESCRIPTION

logger = logging.getLogger(__name__)


async def get_account(db: AsyncSession, account_id: uuid.UUID) -> Account:
    """
    Raises:
        NotFoundError: If the account doesn't exist.
    """
    account = await db.get(Account, account_id, populate_existing=True)
    if account is None:
        raise NotFoundError("Account", account_id)
    return account


async def get_account_for_user(db: AsyncSession, user_id: uuid.UUID) -> Account | None:
    result = await db.execute(select(Account).where(Account.user_id == user_id))
    return result.scalar_one_or_none()


async def get_referral_summary(db: AsyncSession, account_id: uuid.UUID) -> dict:
    """
    Summarize an account's referrals.

    Returns:
        Dict with referral_code, referred_accounts (newest first),
        commissions (the commission ledger entries) and total_commissions.
    """
    account = await get_account(db, account_id)

    result = await db.execute(
        select(Account)
        .where(Account.invited_by_code == account.referral_code)
        .order_by(Account.created_at.desc())
    )
    referred = list(result.scalars().all())

    commissions = await ledger_service.list_transactions(
        db,
        account_id,
        description_prefix=COMMISSION_DESCRIPTION,
        limit=500,
    )

    return {
        "referral_code": account.referral_code,
        "referred_accounts": referred,
        "commissions": commissions,
        "total_commissions": sum(entry.amount for entry in commissions),
    }


# ---------------------------------------------------------------------------
# Admin functions
# ---------------------------------------------------------------------------

async def admin_list_accounts(
    db: AsyncSession,
    limit: int = 50,
    offset: int = 0,
) -> list[Account]:
    """[ADMIN ONLY] List all accounts, newest first."""
    result = await db.execute(
        select(Account)
        .order_by(Account.created_at.desc())
        .limit(limit)
        .offset(offset)
    )
    return list(result.scalars().all())


async def admin_set_role(
    db: AsyncSession,
    account_id: uuid.UUID,
    role: AccountRole,
    changed_by: uuid.UUID,
) -> Account:
    """
    [SUPERADMIN ONLY] Change an account's role.

    Raises:
        NotFoundError: If the account doesn't exist.
        InvalidRequestError: If a superadmin tries to change their own role.
    """
    if account_id == changed_by:
        raise InvalidRequestError("You cannot change your own role")

    async def operation() -> tuple[Account, AccountRole]:
        account = await get_account(db, account_id)
        previous = account.role
        account.role = role
        return account, previous

    account, previous = await run_atomic(db, operation)
    logger.info(
        "Account %s role changed from %s to %s by %s",
        account_id, previous.value, role.value, changed_by,
    )
    return account
