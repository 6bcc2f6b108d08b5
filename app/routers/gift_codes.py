"""
Gift codes router — redeeming promotional credit.

Endpoints:
  POST /gift-codes/redeem — Redeem a code (case-insensitive)

Creating codes is an admin operation and lives in the admin router.
"""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import get_db
from app.dependencies import get_current_account
from app.models.account import Account
from app.schemas.gift_code import RedeemRequest, RedeemResponse
from app.schemas.ledger import LedgerEntryResponse
from app.services import gift_code_service

router = APIRouter()


@router.post(
    "/redeem",
    response_model=RedeemResponse,
    summary="Redeem a gift code",
)
async def redeem(
    request: RedeemRequest,
    account: Account = Depends(get_current_account),
    db: AsyncSession = Depends(get_db),
):
    """
    Credit the gift code's amount to the caller.

    Each account may redeem a code once, and only while the code is
    unexpired and has uses left.
    """
    entry, balance = await gift_code_service.redeem_gift_code(db, account.id, request.code)
    return RedeemResponse(
        ledger_entry=LedgerEntryResponse.model_validate(entry),
        balance=balance,
    )
