"""
Withdrawals router — payout requests.

Endpoints:
  POST /withdrawals — Request a payout to your Nequi account
  GET  /withdrawals — List your withdrawal requests, newest first

The amount is debited when the request is created and refunded in full if
an admin rejects it.
"""

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import get_db
from app.dependencies import get_current_account
from app.models.account import Account
from app.schemas.withdrawal import WithdrawalCreateRequest, WithdrawalRequestResponse
from app.services import withdrawal_service

router = APIRouter()


@router.post(
    "",
    response_model=WithdrawalRequestResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Request a withdrawal",
)
async def create_withdrawal_request(
    request: WithdrawalCreateRequest,
    account: Account = Depends(get_current_account),
    db: AsyncSession = Depends(get_db),
):
    """
    Request a payout.

    Allowed only within the configured hours and weekdays, above the
    minimum amount, within the daily request limit, with payout details
    on file and at least one energy plant owned. The platform fee is
    deducted from what is paid out, not from the balance.
    """
    withdrawal = await withdrawal_service.request_withdrawal(db, account.id, request.amount)
    return WithdrawalRequestResponse.from_request(withdrawal)


@router.get(
    "",
    response_model=list[WithdrawalRequestResponse],
    summary="List your withdrawals",
)
async def list_withdrawal_requests(
    account: Account = Depends(get_current_account),
    db: AsyncSession = Depends(get_db),
):
    requests = await withdrawal_service.list_for_account(db, account.id)
    return [WithdrawalRequestResponse.from_request(r) for r in requests]
