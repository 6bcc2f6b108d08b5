"""
Payments router — recharge requests.

Endpoints:
  POST /payments — Record an out-of-band payment for admin review
  GET  /payments — List your recharge requests, newest first

Nothing is credited here: the balance changes only when an admin approves
the request (see the admin router).
"""

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import get_db
from app.dependencies import get_current_account
from app.models.account import Account
from app.schemas.payment import PaymentCreateRequest, PaymentRequestResponse
from app.services import payment_service

router = APIRouter()


@router.post(
    "",
    response_model=PaymentRequestResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Submit a recharge",
)
async def create_payment_request(
    request: PaymentCreateRequest,
    account: Account = Depends(get_current_account),
    db: AsyncSession = Depends(get_db),
):
    """
    Record the amount and reference number of a payment you made.

    The request stays pending until an admin matches the reference
    against the real payment.
    """
    return await payment_service.record_payment_reference(
        db, account.id, request.amount, request.reference_number
    )


@router.get(
    "",
    response_model=list[PaymentRequestResponse],
    summary="List your recharges",
)
async def list_payment_requests(
    account: Account = Depends(get_current_account),
    db: AsyncSession = Depends(get_db),
):
    return await payment_service.list_for_account(db, account.id)
