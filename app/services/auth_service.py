"""
Authentication service — registration and login business logic.

This module contains the core auth logic, separated from HTTP concerns.
The router calls these functions and translates the results into HTTP
responses.

Registration flow (one atomic unit):
  1. Check the phone number isn't already registered
  2. If a referral code was given, normalize it to upper case and make sure
     it belongs to an existing account (unknown codes are rejected)
  3. Create the User (credentials) and the Account (balance) records
  4. Grant the configured registration bonus: it becomes the opening
     balance AND a "Registration bonus" credit in the ledger, so the
     reconciliation invariant holds from the first moment
  5. Return a JWT token so the user is immediately logged in

The referrer's row is not touched: its referred accounts are found by
querying invited_by_code.

Login flow:
  1. Look up user by phone number
  2. Verify password against stored hash
  3. Return a JWT token
"""

import logging
import random
import string
import uuid

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import run_atomic
from app.exceptions import DuplicatePhoneError, InvalidCredentialsError, NotFoundError
from app.models.account import Account, AccountRole
from app.models.ledger_entry import EntryKind
from app.models.user import User
from app.security import hash_password, verify_password, create_access_token
from app.services import config_service, ledger_service

logger = logging.getLogger(__name__)


def _generate_referral_code() -> str:
    """A random 6-digit code that never starts with 0."""
    return random.choice("123456789") + "".join(random.choices(string.digits, k=5))


async def _unique_referral_code(db: AsyncSession) -> str:
    # Retry on collision; with 900k codes this loop almost never repeats
    for _ in range(10):
        code = _generate_referral_code()
        existing = await db.execute(
            select(Account.id).where(Account.referral_code == code)
        )
        if existing.scalar_one_or_none() is None:
            return code
    raise RuntimeError("Failed to generate a unique referral code")


async def register_account(
    db: AsyncSession,
    phone: str,
    password: str,
    referral_code: str | None = None,
) -> tuple[Account, str]:
    """
    Register a new user and open their account with the registration bonus.

    Args:
        db: Database session.
        phone: Login phone number (must be unique).
        password: Plaintext password (hashed before storage).
        referral_code: Optional code of the inviting account, any case.

    Returns:
        Tuple of (Account instance, JWT token string).

    Raises:
        DuplicatePhoneError: If the phone number is already registered.
        NotFoundError: If the referral code doesn't belong to any account.
    """
    invited_by_code = referral_code.strip().upper() if referral_code and referral_code.strip() else None
    hashed = hash_password(password)

    async def operation() -> Account:
        existing = await db.execute(select(User.id).where(User.phone == phone))
        if existing.scalar_one_or_none() is not None:
            raise DuplicatePhoneError(phone)

        if invited_by_code is not None:
            referrer = await db.execute(
                select(Account.id).where(Account.referral_code == invited_by_code)
            )
            if referrer.scalar_one_or_none() is None:
                raise NotFoundError("Referral code", invited_by_code)

        bonus = (await config_service.get_referral_settings(db)).registration_bonus

        user = User(id=uuid.uuid4(), phone=phone, hashed_password=hashed)
        db.add(user)

        account_id = uuid.uuid4()
        account = Account(
            id=account_id,
            user_id=user.id,
            phone=phone,
            display_id=account_id.hex[:7].upper(),
            balance=bonus,
            referral_code=await _unique_referral_code(db),
            invited_by_code=invited_by_code,
            role=AccountRole.USER,
        )
        db.add(account)

        if bonus > 0:
            ledger_service.append(db, account_id, EntryKind.CREDIT, bonus, "Registration bonus")

        return account

    account = await run_atomic(db, operation)
    logger.info("Registered account %s (invited by %s)", account.id, invited_by_code or "-")

    token = create_access_token(data={"sub": str(account.user_id)})
    return account, token


async def login(
    db: AsyncSession,
    phone: str,
    password: str,
) -> tuple[User, str]:
    """
    Authenticate a user and return a JWT token.

    Returns the same error for both "wrong password" and "phone not found"
    so attackers can't enumerate registered numbers.

    Raises:
        InvalidCredentialsError: If the phone doesn't exist or the password is wrong.
    """
    result = await db.execute(select(User).where(User.phone == phone))
    user = result.scalar_one_or_none()

    if not user:
        raise InvalidCredentialsError()

    if not verify_password(password, user.hashed_password):
        raise InvalidCredentialsError()

    if not user.is_active:
        raise InvalidCredentialsError()

    token = create_access_token(data={"sub": str(user.id)})
    return user, token
