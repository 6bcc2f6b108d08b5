"""
FastAPI dependencies for authentication and authorization.

Dependencies are reusable functions that FastAPI injects into route handlers.
They form a dependency chain that enforces both authentication and
role-based access control:

  get_current_user (JWT -> User)
      └── get_current_account (User -> Account)
              ├── require_admin       [ADMIN or SUPERADMIN role]
              └── require_superadmin  [SUPERADMIN role]

Role-based access control:
  - USER: Can only see and move their own balance. Every member endpoint
    uses get_current_account, which scopes all queries to the caller.
  - ADMIN: Reviews recharge and withdrawal requests, manages the catalog
    and gift codes, and can read any account's balance.
  - SUPERADMIN: Everything an admin can do, plus editing the business
    configuration and changing other accounts' roles.

Admins are members too: they have a balance and may use member endpoints.

Every protected endpoint declares one of these as a parameter. FastAPI
automatically calls the dependency, and if it fails (e.g., invalid token
or wrong role), the request is rejected before the route handler runs.
"""

import uuid

from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from jose import JWTError
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import get_db
from app.exceptions import UnauthorizedAccessError
from app.models.account import Account, AccountRole
from app.models.user import User
from app.security import decode_access_token
from app.services import account_service


# OAuth2PasswordBearer tells FastAPI where to look for the token:
# the "Authorization: Bearer <token>" header. The tokenUrl points to
# the login endpoint (used by Swagger UI's "Authorize" button).
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/auth/login")


async def get_current_user(
    token: str = Depends(oauth2_scheme),
    db: AsyncSession = Depends(get_db),
) -> User:
    """
    Extract and validate the JWT token, then return the corresponding User.

    Raises:
        HTTPException 401: If the token is invalid or the user doesn't exist.
    """
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )

    try:
        payload = decode_access_token(token)
        user_id_str: str | None = payload.get("sub")
        if user_id_str is None:
            raise credentials_exception
        user_id = uuid.UUID(user_id_str)
    except (JWTError, ValueError):
        raise credentials_exception

    result = await db.execute(select(User).where(User.id == user_id))
    user = result.scalar_one_or_none()

    if user is None or not user.is_active:
        raise credentials_exception

    return user


async def get_current_account(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> Account:
    """
    Get the Account of the authenticated user.

    Raises:
        HTTPException 404: If the user has no account.
    """
    account = await account_service.get_account_for_user(db, user.id)
    if account is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Account not found",
        )
    return account


async def require_admin(
    account: Account = Depends(get_current_account),
) -> Account:
    """
    Require the ADMIN or SUPERADMIN role.

    Raises:
        UnauthorizedAccessError: If the caller is a regular user (403).
    """
    if account.role not in (AccountRole.ADMIN, AccountRole.SUPERADMIN):
        raise UnauthorizedAccessError("Admin access required")
    return account


async def require_superadmin(
    account: Account = Depends(get_current_account),
) -> Account:
    """
    Require the SUPERADMIN role.

    Raises:
        UnauthorizedAccessError: If the caller is not a superadmin (403).
    """
    if account.role != AccountRole.SUPERADMIN:
        raise UnauthorizedAccessError("Superadmin access required")
    return account
