"""
Pydantic models for the business configuration documents.

These double as the storage schema (validated when read from the
config_documents table) and the API contract for the admin settings
endpoints. Every field has a default so a missing or partial document
still yields a complete configuration.
"""

from pydantic import BaseModel, Field, model_validator

from app.config import settings


class ReferralSettings(BaseModel):
    """config:referrals — what new users get and what referrers earn."""
    commission_percentage: float = Field(
        default=settings.DEFAULT_COMMISSION_PERCENTAGE, ge=0, le=100
    )
    registration_bonus: int = Field(default=settings.DEFAULT_REGISTRATION_BONUS, ge=0)


class WithdrawalSettings(BaseModel):
    """
    config:withdrawals — the rules a withdrawal request must pass.

    Hours are in the business timezone; the window is [start_hour, end_hour).
    Weekdays use 0=Sunday … 6=Saturday.
    """
    min_withdrawal: int = Field(default=10000, gt=0)
    daily_limit: int = Field(default=1, ge=0)
    fee_percentage: float = Field(default=8, ge=0, le=100)
    start_hour: int = Field(default=10, ge=0, le=23)
    end_hour: int = Field(default=15, ge=1, le=24)
    allowed_weekdays: list[int] = Field(default_factory=lambda: [1, 2, 3, 4, 5])

    @model_validator(mode="after")
    def check_window(self):
        """The window must be non-empty and the weekdays real days."""
        if self.start_hour >= self.end_hour:
            raise ValueError("start_hour must be before end_hour")
        if any(day < 0 or day > 6 for day in self.allowed_weekdays):
            raise ValueError("allowed_weekdays must be between 0 (Sunday) and 6 (Saturday)")
        return self
