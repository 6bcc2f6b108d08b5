"""
Pydantic schemas for authentication endpoints (register and login).

These schemas define the request/response contracts for the auth API.
Pydantic validates incoming data automatically — if a required field is
missing or the wrong type, FastAPI returns a 422 error before our code
even runs.
"""

import uuid

from pydantic import BaseModel, Field


class RegisterRequest(BaseModel):
    """Request body for POST /auth/register."""
    phone: str = Field(min_length=7, max_length=20, pattern=r"^\+?\d+$")
    password: str = Field(min_length=6)
    referral_code: str | None = Field(None, max_length=6)


class LoginRequest(BaseModel):
    """Request body for POST /auth/login."""
    phone: str
    password: str


class TokenResponse(BaseModel):
    """Response body for successful login — contains the JWT."""
    token: str
    token_type: str = "bearer"


class RegisterResponse(BaseModel):
    """Response body for successful registration — account info + JWT."""
    user_id: uuid.UUID
    account_id: uuid.UUID
    phone: str
    role: str
    balance: int
    referral_code: str
    token: str
    token_type: str = "bearer"
