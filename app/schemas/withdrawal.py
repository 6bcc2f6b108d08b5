"""
Pydantic schemas for withdrawal requests.

The payout destination is stored encrypted; responses carry it decrypted
because both the owner and the reviewing admin need to read it.
"""

import uuid
from datetime import datetime

from pydantic import BaseModel, Field

from app.models.withdrawal_request import WithdrawalRequest
from app.schemas.account import WithdrawalInfo
from app.security import decrypt_json


class WithdrawalCreateRequest(BaseModel):
    """Request body for POST /withdrawals."""
    amount: int = Field(gt=0)


class WithdrawalRequestResponse(BaseModel):
    id: uuid.UUID
    account_id: uuid.UUID
    phone: str
    amount: int
    fee_amount: int
    net_amount: int
    destination: WithdrawalInfo
    status: str
    requested_at: datetime
    processed_at: datetime | None
    processed_by_account_id: uuid.UUID | None

    @classmethod
    def from_request(cls, request: WithdrawalRequest) -> "WithdrawalRequestResponse":
        return cls(
            id=request.id,
            account_id=request.account_id,
            phone=request.phone,
            amount=request.amount,
            fee_amount=request.fee_amount,
            net_amount=request.net_amount,
            destination=WithdrawalInfo(**decrypt_json(request.destination_encrypted)),
            status=request.status,
            requested_at=request.requested_at,
            processed_at=request.processed_at,
            processed_by_account_id=request.processed_by_account_id,
        )
