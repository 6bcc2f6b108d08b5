"""
Pydantic schemas for gift codes.
"""

import uuid
from datetime import datetime

from pydantic import BaseModel, Field

from app.schemas.ledger import LedgerEntryResponse


class GiftCodeCreateRequest(BaseModel):
    """Request body for POST /admin/gift-codes."""
    code: str = Field(min_length=3, max_length=32, pattern=r"^[A-Za-z0-9_-]+$")
    amount: int = Field(gt=0)
    usage_limit: int = Field(ge=1)
    expires_in_minutes: int = Field(gt=0)


class GiftCodeResponse(BaseModel):
    id: uuid.UUID
    code: str
    amount: int
    usage_limit: int
    times_redeemed: int
    expires_at: datetime
    redeemed_by: list[uuid.UUID]
    created_at: datetime

    model_config = {"from_attributes": True}


class RedeemRequest(BaseModel):
    """Request body for POST /gift-codes/redeem."""
    code: str = Field(min_length=1, max_length=32)


class RedeemResponse(BaseModel):
    ledger_entry: LedgerEntryResponse
    balance: int
