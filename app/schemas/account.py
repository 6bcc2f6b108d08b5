"""
Pydantic schemas for Account endpoints.

These schemas define the API contract for the caller's own account,
its balance check, payout details and referrals. All monetary amounts
are whole currency units.
"""

import uuid
from datetime import datetime
from typing import Literal

from pydantic import BaseModel, Field, model_validator

from app.models.account import AccountRole
from app.schemas.ledger import LedgerEntryResponse


class AccountResponse(BaseModel):
    """Public representation of an account."""
    id: uuid.UUID
    phone: str
    display_id: str
    balance: int
    version: int
    referral_code: str
    invited_by_code: str | None
    role: AccountRole
    has_withdrawal_info: bool
    created_at: datetime

    model_config = {"from_attributes": True}


class BalanceResponse(BaseModel):
    """
    Balance check response — includes both cached and computed values.

    `match` is the reconciliation invariant made visible: the cached
    balance must equal the signed sum of the account's ledger entries.
    """
    account_id: uuid.UUID
    cached_balance: int
    computed_balance: int
    match: bool
    version: int


class WithdrawalInfo(BaseModel):
    """Payout destination: a Nequi wallet and the holder's identity."""
    nequi_account: str = Field(pattern=r"^\d{10}$", description="10-digit Nequi number")
    full_name: str = Field(min_length=3, max_length=100)
    id_number: str = Field(min_length=5, max_length=20)


class ReconcileResponse(BaseModel):
    """Outcome of one yield catch-up pass."""
    credits_applied: int
    amount_credited: int
    positions_completed: int
    balance: int


class ReferredAccount(BaseModel):
    id: uuid.UUID
    display_id: str
    phone: str
    created_at: datetime

    model_config = {"from_attributes": True}


class ReferralSummary(BaseModel):
    referral_code: str
    referred_accounts: list[ReferredAccount]
    commissions: list[LedgerEntryResponse]
    total_commissions: int


class RoleUpdateRequest(BaseModel):
    """Request body for PUT /admin/accounts/{id}/role."""
    role: AccountRole


class BalanceAdjustmentRequest(BaseModel):
    """Request body for POST /admin/accounts/{id}/adjust-balance."""
    action: Literal["add", "subtract", "set"]
    amount: int = Field(ge=0)
    description: str = Field(min_length=1, max_length=200)

    @model_validator(mode="after")
    def add_and_subtract_move_money(self):
        """Only "set" may carry 0 (empty the account)."""
        if self.action != "set" and self.amount == 0:
            raise ValueError("amount must be greater than 0 to add or subtract")
        return self


class BalanceAdjustmentResponse(BaseModel):
    """Result of a manual adjustment. No entry when "set" matched the balance."""
    ledger_entry: LedgerEntryResponse | None
    balance: int
