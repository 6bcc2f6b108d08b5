"""
Authentication router — registration and login endpoints.

These are the only public (unauthenticated) endpoints in the API besides
the health check. Everything else requires a valid JWT token.

Endpoints:
  POST /auth/register — Register a new user and get a token
  POST /auth/login    — Authenticate and get a token

Passwords exist in plaintext only in memory during request processing;
they are hashed before any database operation and never logged.
"""

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import get_db
from app.schemas.auth import (
    RegisterRequest,
    LoginRequest,
    TokenResponse,
    RegisterResponse,
)
from app.services import auth_service

router = APIRouter()


@router.post(
    "/register",
    response_model=RegisterResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Register a new user",
)
async def register(
    request: RegisterRequest,
    db: AsyncSession = Depends(get_db),
):
    """
    Register a new member.

    Creates the login identity and the account in a single atomic unit and
    grants the configured registration bonus. Returns a JWT token so the
    user is immediately logged in.

    - **phone**: Digits with an optional leading +, not already registered
    - **password**: Minimum 6 characters
    - **referral_code**: Optional code of the inviting member (any case)
    """
    account, token = await auth_service.register_account(
        db=db,
        phone=request.phone,
        password=request.password,
        referral_code=request.referral_code,
    )

    return RegisterResponse(
        user_id=account.user_id,
        account_id=account.id,
        phone=account.phone,
        role=account.role.value,
        balance=account.balance,
        referral_code=account.referral_code,
        token=token,
    )


@router.post(
    "/login",
    response_model=TokenResponse,
    summary="Authenticate and get a token",
)
async def login(
    request: LoginRequest,
    db: AsyncSession = Depends(get_db),
):
    """
    Authenticate with phone and password.

    Returns a JWT bearer token for the Authorization header:

        Authorization: Bearer <token>
    """
    user, token = await auth_service.login(
        db=db,
        phone=request.phone,
        password=request.password,
    )

    return TokenResponse(token=token)
