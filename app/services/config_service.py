"""
Config service — read and write the business configuration documents.

Documents are fetched fresh on every operation that needs them, so an
admin's change takes effect on the very next request with no cache to
invalidate.
"""

import logging
import uuid

from sqlalchemy.ext.asyncio import AsyncSession

from app.models.config_document import ConfigDocument
from app.schemas.settings import ReferralSettings, WithdrawalSettings

logger = logging.getLogger(__name__)

REFERRALS_KEY = "referrals"
WITHDRAWALS_KEY = "withdrawals"


async def _load(db: AsyncSession, key: str) -> dict:
    document = await db.get(ConfigDocument, key)
    return dict(document.data) if document is not None else {}


async def _store(
    db: AsyncSession,
    key: str,
    data: dict,
    updated_by: uuid.UUID | None,
) -> None:
    document = await db.get(ConfigDocument, key)
    if document is None:
        db.add(ConfigDocument(key=key, data=data, updated_by_account_id=updated_by))
    else:
        # Reassign rather than mutate so the JSON column is marked dirty
        document.data = data
        document.updated_by_account_id = updated_by
    await db.flush()
    logger.info("Config document %s updated by %s", key, updated_by)


async def get_referral_settings(db: AsyncSession) -> ReferralSettings:
    return ReferralSettings.model_validate(await _load(db, REFERRALS_KEY))


async def get_withdrawal_settings(db: AsyncSession) -> WithdrawalSettings:
    return WithdrawalSettings.model_validate(await _load(db, WITHDRAWALS_KEY))


async def update_referral_settings(
    db: AsyncSession,
    new_settings: ReferralSettings,
    updated_by: uuid.UUID | None = None,
) -> ReferralSettings:
    await _store(db, REFERRALS_KEY, new_settings.model_dump(), updated_by)
    return new_settings


async def update_withdrawal_settings(
    db: AsyncSession,
    new_settings: WithdrawalSettings,
    updated_by: uuid.UUID | None = None,
) -> WithdrawalSettings:
    await _store(db, WITHDRAWALS_KEY, new_settings.model_dump(), updated_by)
    return new_settings
