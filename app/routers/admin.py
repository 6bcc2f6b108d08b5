"""
Admin router — review queues, catalog, gift codes and configuration.

All endpoints require the ADMIN or SUPERADMIN role; configuration writes
and role changes require SUPERADMIN.

Endpoints:
  GET  /admin/payments                       — List recharge requests
  POST /admin/payments/{request_id}/review   — Approve or reject a recharge
  GET  /admin/withdrawals                    — List withdrawal requests
  POST /admin/withdrawals/{request_id}/review — Approve or reject a withdrawal
  POST /admin/catalog                        — Add a catalog item
  POST /admin/gift-codes                     — Create a gift code
  GET  /admin/config/referrals               — Read referral settings
  PUT  /admin/config/referrals               — [Superadmin] Update referral settings
  GET  /admin/config/withdrawals             — Read withdrawal rules
  PUT  /admin/config/withdrawals             — [Superadmin] Update withdrawal rules
  GET  /admin/accounts                       — List all accounts
  GET  /admin/accounts/{account_id}/balance  — Any account's balance check
  POST /admin/accounts/{account_id}/adjust-balance — Manually add, subtract or set a balance
  PUT  /admin/accounts/{account_id}/role     — [Superadmin] Change a role

By consolidating all admin routes in one router, we avoid route-ordering
conflicts that arise when multiple routers share a prefix and have
overlapping parameterized paths.
"""

import uuid

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import get_db
from app.dependencies import require_admin, require_superadmin
from app.models.account import Account
from app.schemas.account import (
    AccountResponse,
    BalanceAdjustmentRequest,
    BalanceAdjustmentResponse,
    BalanceResponse,
    RoleUpdateRequest,
)
from app.schemas.catalog import CatalogItemCreateRequest, CatalogItemResponse
from app.schemas.gift_code import GiftCodeCreateRequest, GiftCodeResponse
from app.schemas.ledger import LedgerEntryResponse
from app.schemas.payment import PaymentRequestResponse, ReviewRequest
from app.schemas.settings import ReferralSettings, WithdrawalSettings
from app.schemas.withdrawal import WithdrawalRequestResponse
from app.services import (
    account_service,
    balance_service,
    catalog_service,
    config_service,
    gift_code_service,
    payment_service,
    withdrawal_service,
)

router = APIRouter()

STATUS_PATTERN = "^(pending|approved|rejected)$"


# ---------------------------------------------------------------------------
# Review queues
# ---------------------------------------------------------------------------

@router.get(
    "/payments",
    response_model=list[PaymentRequestResponse],
    summary="[Admin] List recharge requests",
)
async def admin_list_payments(
    status_filter: str | None = Query(None, alias="status", pattern=STATUS_PATTERN),
    limit: int = Query(50, ge=1, le=500),
    offset: int = Query(0, ge=0),
    admin: Account = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    return await payment_service.admin_list(db, status_filter, limit, offset)


@router.post(
    "/payments/{request_id}/review",
    response_model=PaymentRequestResponse,
    summary="[Admin] Review a recharge request",
)
async def admin_review_payment(
    request_id: uuid.UUID,
    review: ReviewRequest,
    admin: Account = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    """
    Approve (credit the amount, and on a first recharge pay the referrer's
    commission) or reject (no balance effect) a pending recharge.
    """
    return await payment_service.review_payment_request(
        db, request_id, review.decision, admin.id
    )


@router.get(
    "/withdrawals",
    response_model=list[WithdrawalRequestResponse],
    summary="[Admin] List withdrawal requests",
)
async def admin_list_withdrawals(
    status_filter: str | None = Query(None, alias="status", pattern=STATUS_PATTERN),
    limit: int = Query(50, ge=1, le=500),
    offset: int = Query(0, ge=0),
    admin: Account = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    requests = await withdrawal_service.admin_list(db, status_filter, limit, offset)
    return [WithdrawalRequestResponse.from_request(r) for r in requests]


@router.post(
    "/withdrawals/{request_id}/review",
    response_model=WithdrawalRequestResponse,
    summary="[Admin] Review a withdrawal request",
)
async def admin_review_withdrawal(
    request_id: uuid.UUID,
    review: ReviewRequest,
    admin: Account = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    """
    Approve (pay out net_amount off-platform) or reject (refund the full
    amount to the requester) a pending withdrawal.
    """
    withdrawal = await withdrawal_service.review_withdrawal_request(
        db, request_id, review.decision, admin.id
    )
    return WithdrawalRequestResponse.from_request(withdrawal)


# ---------------------------------------------------------------------------
# Catalog and gift codes
# ---------------------------------------------------------------------------

@router.post(
    "/catalog",
    response_model=CatalogItemResponse,
    status_code=status.HTTP_201_CREATED,
    summary="[Admin] Add a catalog item",
)
async def admin_create_catalog_item(
    request: CatalogItemCreateRequest,
    admin: Account = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    return await catalog_service.create_item(db, request, created_by=admin.id)


@router.post(
    "/gift-codes",
    response_model=GiftCodeResponse,
    status_code=status.HTTP_201_CREATED,
    summary="[Admin] Create a gift code",
)
async def admin_create_gift_code(
    request: GiftCodeCreateRequest,
    admin: Account = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    return await gift_code_service.create_gift_code(db, request)


# ---------------------------------------------------------------------------
# Business configuration
# ---------------------------------------------------------------------------

@router.get(
    "/config/referrals",
    response_model=ReferralSettings,
    summary="[Admin] Get referral settings",
)
async def admin_get_referral_settings(
    admin: Account = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    return await config_service.get_referral_settings(db)


@router.put(
    "/config/referrals",
    response_model=ReferralSettings,
    summary="[Superadmin] Update referral settings",
)
async def admin_update_referral_settings(
    new_settings: ReferralSettings,
    superadmin: Account = Depends(require_superadmin),
    db: AsyncSession = Depends(get_db),
):
    return await config_service.update_referral_settings(db, new_settings, superadmin.id)


@router.get(
    "/config/withdrawals",
    response_model=WithdrawalSettings,
    summary="[Admin] Get withdrawal rules",
)
async def admin_get_withdrawal_settings(
    admin: Account = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    return await config_service.get_withdrawal_settings(db)


@router.put(
    "/config/withdrawals",
    response_model=WithdrawalSettings,
    summary="[Superadmin] Update withdrawal rules",
)
async def admin_update_withdrawal_settings(
    new_settings: WithdrawalSettings,
    superadmin: Account = Depends(require_superadmin),
    db: AsyncSession = Depends(get_db),
):
    return await config_service.update_withdrawal_settings(db, new_settings, superadmin.id)


# ---------------------------------------------------------------------------
# Accounts
# ---------------------------------------------------------------------------

@router.get(
    "/accounts",
    response_model=list[AccountResponse],
    summary="[Admin] List all accounts",
)
async def admin_list_accounts(
    limit: int = Query(50, ge=1, le=500),
    offset: int = Query(0, ge=0),
    admin: Account = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    return await account_service.admin_list_accounts(db, limit, offset)


@router.get(
    "/accounts/{account_id}/balance",
    response_model=BalanceResponse,
    summary="[Admin] Get any account's balance",
)
async def admin_get_balance(
    account_id: uuid.UUID,
    admin: Account = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    return await balance_service.get_balance(db, account_id)


@router.post(
    "/accounts/{account_id}/adjust-balance",
    response_model=BalanceAdjustmentResponse,
    summary="[Admin] Manually adjust an account's balance",
)
async def admin_adjust_balance(
    account_id: uuid.UUID,
    request: BalanceAdjustmentRequest,
    admin: Account = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    """
    Add, subtract or set a balance. Every change is written to the ledger
    with the given description, so the account still reconciles.
    """
    entry, balance = await balance_service.adjust_balance(
        db, account_id, request.action, request.amount, request.description, admin.id
    )
    return BalanceAdjustmentResponse(
        ledger_entry=LedgerEntryResponse.model_validate(entry) if entry else None,
        balance=balance,
    )


@router.put(
    "/accounts/{account_id}/role",
    response_model=AccountResponse,
    summary="[Superadmin] Change an account's role",
)
async def admin_set_role(
    account_id: uuid.UUID,
    request: RoleUpdateRequest,
    superadmin: Account = Depends(require_superadmin),
    db: AsyncSession = Depends(get_db),
):
    return await account_service.admin_set_role(db, account_id, request.role, superadmin.id)
