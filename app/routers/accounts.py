"""
Accounts router — the caller's own account.

All endpoints require a JWT and are scoped to the authenticated account:

  GET  /accounts/me                     — Account details (catches up yields first)
  GET  /accounts/me/balance             — Cached vs. ledger-computed balance
  GET  /accounts/me/transactions        — Ledger history, newest first
  GET  /accounts/me/positions           — Purchased energy plant positions
  GET  /accounts/me/referrals           — Referred members and commissions
  POST /accounts/me/reconcile-yields    — Credit any missed daily yields now
  PUT  /accounts/me/withdrawal-info     — Set the payout destination

Yield accrual is pull-based: there is no scheduler, so opening the account
(GET /accounts/me) is what credits the days that passed since the last visit.
"""

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import get_db
from app.dependencies import get_current_account
from app.models.account import Account
from app.schemas.account import (
    AccountResponse,
    BalanceResponse,
    ReconcileResponse,
    ReferralSummary,
    WithdrawalInfo,
)
from app.schemas.catalog import PositionResponse
from app.schemas.ledger import LedgerEntryResponse
from app.services import (
    account_service,
    accrual_service,
    balance_service,
    ledger_service,
    purchase_service,
    withdrawal_service,
)

router = APIRouter()


@router.get(
    "/me",
    response_model=AccountResponse,
    summary="Get your account",
)
async def get_my_account(
    account: Account = Depends(get_current_account),
    db: AsyncSession = Depends(get_db),
):
    """
    Return the caller's account after crediting any daily yields that came
    due since the last visit.
    """
    account_id = account.id
    await accrual_service.reconcile_yields(db, account_id)
    return await account_service.get_account(db, account_id)


@router.get(
    "/me/balance",
    response_model=BalanceResponse,
    summary="Get your balance",
)
async def get_my_balance(
    account: Account = Depends(get_current_account),
    db: AsyncSession = Depends(get_db),
):
    """
    Return both the cached balance and the balance computed from the ledger.

    `match` must always be true; a mismatch signals a data integrity issue.
    """
    return await balance_service.get_balance(db, account.id)


@router.get(
    "/me/transactions",
    response_model=list[LedgerEntryResponse],
    summary="List your ledger entries",
)
async def list_my_transactions(
    kind: str | None = Query(None, pattern="^(credit|debit)$"),
    limit: int = Query(50, ge=1, le=500),
    offset: int = Query(0, ge=0),
    account: Account = Depends(get_current_account),
    db: AsyncSession = Depends(get_db),
):
    return await ledger_service.list_transactions(
        db, account.id, kind_filter=kind, limit=limit, offset=offset
    )


@router.get(
    "/me/positions",
    response_model=list[PositionResponse],
    summary="List your energy plants",
)
async def list_my_positions(
    status_filter: str | None = Query(None, alias="status", pattern="^(active|completed)$"),
    account: Account = Depends(get_current_account),
    db: AsyncSession = Depends(get_db),
):
    return await purchase_service.list_positions(db, account.id, status_filter)


@router.get(
    "/me/referrals",
    response_model=ReferralSummary,
    summary="Get your referrals and commissions",
)
async def get_my_referrals(
    account: Account = Depends(get_current_account),
    db: AsyncSession = Depends(get_db),
):
    return await account_service.get_referral_summary(db, account.id)


@router.post(
    "/me/reconcile-yields",
    response_model=ReconcileResponse,
    summary="Credit missed daily yields",
)
async def reconcile_my_yields(
    account: Account = Depends(get_current_account),
    db: AsyncSession = Depends(get_db),
):
    """
    Credit every daily-yield cycle that completed since the last
    reconciliation. Calling it again right away credits nothing.
    """
    return await accrual_service.reconcile_yields(db, account.id)


@router.put(
    "/me/withdrawal-info",
    response_model=AccountResponse,
    summary="Set your withdrawal destination",
)
async def set_my_withdrawal_info(
    info: WithdrawalInfo,
    account: Account = Depends(get_current_account),
    db: AsyncSession = Depends(get_db),
):
    """
    Store the Nequi account and holder identity used for payouts.

    The details are encrypted at rest. Pending withdrawals keep the
    destination they were requested with.
    """
    return await withdrawal_service.set_withdrawal_info(db, account.id, info)
