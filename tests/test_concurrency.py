"""
Tests for operations racing on the same rows from separate sessions.

These tests verify:
  - Two yield passes at once credit each missed cycle exactly once
  - Two purchases at once can't exceed the per-account limit
  - Two withdrawals at once can't exceed the daily limit
  - Two redemptions racing for a gift code's last use: one wins
  - Two approvals of the same reference at once: one wins
  - Two first-recharge approvals at once pay the referrer once

The in-memory database used elsewhere shares one connection between all
sessions, so these tests run on a temporary SQLite file where each session
has its own connection and its own transaction. Every unit is committed by
the session that ran it, like get_db does for a request.
"""

import asyncio
from datetime import datetime, timedelta, timezone

import pytest_asyncio
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker

from app.database import Base
from app.models.ledger_entry import EntryKind, LedgerEntry
from app.schemas.account import WithdrawalInfo
from app.schemas.catalog import CatalogItemCreateRequest
from app.schemas.gift_code import GiftCodeCreateRequest
from app.schemas.settings import ReferralSettings, WithdrawalSettings
from app.services import (
    accrual_service,
    auth_service,
    balance_service,
    catalog_service,
    config_service,
    gift_code_service,
    payment_service,
    purchase_service,
    withdrawal_service,
)

T0 = datetime(2026, 3, 4, 17, 0, tzinfo=timezone.utc)


@pytest_asyncio.fixture
async def sessions(tmp_path):
    """Session factory over a fresh file database."""
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'race.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    async with factory() as session:
        await config_service.update_referral_settings(
            session, ReferralSettings(commission_percentage=10, registration_bonus=0)
        )
        await session.commit()

    yield factory
    await engine.dispose()


async def run_committed(factory, call):
    """Run `call(session)` in its own session and commit it."""
    async with factory() as session:
        result = await call(session)
        await session.commit()
        return result


async def race(factory, *calls) -> list[str]:
    """Run the calls at once; report "ok" or the exception class name for each."""
    results = await asyncio.gather(
        *(run_committed(factory, call) for call in calls), return_exceptions=True
    )
    return sorted("ok" if not isinstance(r, Exception) else type(r).__name__ for r in results)


async def new_account(factory, phone, balance=0, referral_code=None):
    async def call(session):
        account, _ = await auth_service.register_account(session, phone, "secret123", referral_code)
        if balance:
            await balance_service.post(session, account.id, EntryKind.CREDIT, balance, "Test funding")
        return account
    account = await run_committed(factory, call)
    return account.id, account.referral_code


async def new_item(factory, **fields):
    values = dict(name="Solar Panel", price=10000, daily_yield_percent=20,
                  purchase_limit=5, duration_days=3)
    values.update(fields)
    item = await run_committed(
        factory,
        lambda s: catalog_service.create_item(s, CatalogItemCreateRequest(**values), now=T0),
    )
    return item.id


async def entries_matching(factory, account_id, prefix):
    async with factory() as session:
        result = await session.execute(
            select(func.count(LedgerEntry.id))
            .where(LedgerEntry.account_id == account_id)
            .where(LedgerEntry.description.startswith(prefix))
        )
        return result.scalar()


async def balance_check(factory, account_id):
    async with factory() as session:
        return await balance_service.get_balance(session, account_id)


class TestAccrualRace:

    async def test_two_passes_credit_each_cycle_once(self, sessions):
        account_id, _ = await new_account(sessions, "3200000001", balance=10000)
        item_id = await new_item(sessions)
        await run_committed(
            sessions, lambda s: purchase_service.purchase(s, account_id, item_id, 1, now=T0)
        )
        later = T0 + timedelta(days=3, hours=1)

        reports = await asyncio.gather(
            run_committed(sessions, lambda s: accrual_service.reconcile_yields(s, account_id, now=later)),
            run_committed(sessions, lambda s: accrual_service.reconcile_yields(s, account_id, now=later)),
        )

        assert sorted(r.credits_applied for r in reports) == [0, 3]
        assert await entries_matching(sessions, account_id, "Daily yield") == 3

        check = await balance_check(sessions, account_id)
        assert check["cached_balance"] == 6000
        assert check["match"] is True


class TestLimitRaces:

    async def test_purchase_limit_holds(self, sessions):
        account_id, _ = await new_account(sessions, "3200000002", balance=50000)
        item_id = await new_item(sessions, purchase_limit=1)

        def buy(session):
            return purchase_service.purchase(session, account_id, item_id, 1, now=T0)

        assert await race(sessions, buy, buy) == ["LimitExceededError", "ok"]

        check = await balance_check(sessions, account_id)
        assert check["cached_balance"] == 40000
        assert check["match"] is True

    async def test_daily_withdrawal_limit_holds(self, sessions):
        account_id, _ = await new_account(sessions, "3200000003", balance=60000)
        item_id = await new_item(sessions, price=1000)
        await run_committed(
            sessions,
            lambda s: purchase_service.purchase(s, account_id, item_id, 1, now=T0 - timedelta(hours=1)),
        )
        await run_committed(
            sessions,
            lambda s: withdrawal_service.set_withdrawal_info(
                s, account_id,
                WithdrawalInfo(nequi_account="3001234567", full_name="Ana Torres", id_number="1020304050"),
            ),
        )
        await run_committed(
            sessions,
            lambda s: config_service.update_withdrawal_settings(
                s, WithdrawalSettings(start_hour=0, end_hour=24, allowed_weekdays=[0, 1, 2, 3, 4, 5, 6])
            ),
        )

        def withdraw(session):
            return withdrawal_service.request_withdrawal(session, account_id, 10000, now=T0)

        assert await race(sessions, withdraw, withdraw) == ["LimitExceededError", "ok"]
        assert (await balance_check(sessions, account_id))["cached_balance"] == 49000


class TestGiftCodeRace:

    async def test_last_use_goes_to_one_account(self, sessions):
        first, _ = await new_account(sessions, "3200000004")
        second, _ = await new_account(sessions, "3200000005")
        await run_committed(
            sessions,
            lambda s: gift_code_service.create_gift_code(
                s,
                GiftCodeCreateRequest(code="LASTONE", amount=2500, usage_limit=1, expires_in_minutes=60),
                now=T0,
            ),
        )

        outcome = await race(
            sessions,
            lambda s: gift_code_service.redeem_gift_code(s, first, "LASTONE", now=T0),
            lambda s: gift_code_service.redeem_gift_code(s, second, "LASTONE", now=T0),
        )

        assert outcome == ["LimitExceededError", "ok"]
        credited = [
            await entries_matching(sessions, account_id, "Gift code") for account_id in (first, second)
        ]
        assert sorted(credited) == [0, 1]


class TestRechargeRaces:

    async def test_same_reference_approved_once(self, sessions):
        first, _ = await new_account(sessions, "3200000006")
        second, _ = await new_account(sessions, "3200000007")
        admin_id, _ = await new_account(sessions, "3200000008")

        requests = [
            await run_committed(
                sessions,
                lambda s, a=account_id: payment_service.record_payment_reference(s, a, 10000, "NEQ-777"),
            )
            for account_id in (first, second)
        ]

        outcome = await race(
            sessions,
            *(
                lambda s, r=request.id: payment_service.review_payment_request(s, r, "approve", admin_id)
                for request in requests
            ),
        )

        assert outcome == ["DuplicateReferenceError", "ok"]
        credited = [
            await entries_matching(sessions, account_id, "Recharge approved") for account_id in (first, second)
        ]
        assert sorted(credited) == [0, 1]

    async def test_first_recharge_commission_paid_once(self, sessions):
        referrer_id, code = await new_account(sessions, "3200000009")
        referred_id, _ = await new_account(sessions, "3200000010", referral_code=code)
        admin_id, _ = await new_account(sessions, "3200000011")

        requests = [
            await run_committed(
                sessions,
                lambda s, ref=ref: payment_service.record_payment_reference(s, referred_id, 20000, ref),
            )
            for ref in ("NEQ-A", "NEQ-B")
        ]

        outcome = await race(
            sessions,
            *(
                lambda s, r=request.id: payment_service.review_payment_request(s, r, "approve", admin_id)
                for request in requests
            ),
        )

        assert outcome == ["ok", "ok"]
        assert await entries_matching(sessions, referrer_id, "Referral commission") == 1

        check = await balance_check(sessions, referrer_id)
        assert check["cached_balance"] == 2000
        assert check["match"] is True
        assert (await balance_check(sessions, referred_id))["cached_balance"] == 40000
