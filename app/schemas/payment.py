"""
Pydantic schemas for recharge (payment) requests and admin reviews.
"""

import uuid
from datetime import datetime
from typing import Literal

from pydantic import BaseModel, Field


class PaymentCreateRequest(BaseModel):
    """Request body for POST /payments."""
    amount: int = Field(gt=0)
    reference_number: str = Field(min_length=1, max_length=64)


class PaymentRequestResponse(BaseModel):
    id: uuid.UUID
    account_id: uuid.UUID
    phone: str
    amount: int
    reference_number: str
    status: str
    created_at: datetime
    processed_at: datetime | None
    processed_by_account_id: uuid.UUID | None

    model_config = {"from_attributes": True}


class ReviewRequest(BaseModel):
    """Request body for POST /admin/{payments,withdrawals}/{id}/review."""
    decision: Literal["approve", "reject"]
