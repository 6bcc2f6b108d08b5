"""
Tests for the balance ledger and whole-unit money math.

These tests verify:
  - The cached balance always equals the signed sum of the ledger
  - The balance can never go negative; a refused debit leaves no trace
  - Ledger entries are immutable once written
  - Each committed balance change bumps the account version once
  - Percentages are floored to whole units without float drift
  - Transaction history is newest first and filterable by kind
  - Manual admin adjustments go through the ledger and still reconcile
"""

import pytest
from sqlalchemy import select

from app.exceptions import InsufficientBalanceError, InvalidRequestError, TransactionConflictError
from app.models.ledger_entry import EntryKind, LedgerEntry
from app.money import percent_of
from app.services import balance_service, ledger_service


class TestBalance:

    async def test_credits_and_debits_reconcile(self, db_session, make_account):
        account_id = await make_account(balance=10000)

        await balance_service.post(db_session, account_id, EntryKind.DEBIT, 2500, "Purchase: Test (x1)")
        await balance_service.post(db_session, account_id, EntryKind.CREDIT, 700, "Daily yield: Test")
        await db_session.commit()

        check = await balance_service.get_balance(db_session, account_id)
        assert check["cached_balance"] == 8200
        assert check["computed_balance"] == 8200
        assert check["match"] is True

    async def test_overdraft_refused(self, db_session, make_account):
        account_id = await make_account(balance=1000)

        with pytest.raises(InsufficientBalanceError) as exc_info:
            await balance_service.post(db_session, account_id, EntryKind.DEBIT, 1001, "Too much")
        await db_session.rollback()

        assert exc_info.value.status_code == 422
        assert exc_info.value.extra == {"requested": 1001, "available": 1000}

        check = await balance_service.get_balance(db_session, account_id)
        assert check["cached_balance"] == 1000
        assert check["match"] is True

    async def test_debit_to_exactly_zero(self, db_session, make_account):
        account_id = await make_account(balance=1000)

        _, balance = await balance_service.post(db_session, account_id, EntryKind.DEBIT, 1000, "All of it")
        assert balance == 0

    async def test_non_positive_amounts_refused(self, db_session, make_account):
        account_id = await make_account(balance=1000)

        with pytest.raises(InvalidRequestError):
            await balance_service.post(db_session, account_id, EntryKind.CREDIT, 0, "Nothing")
        with pytest.raises(InvalidRequestError):
            await balance_service.post(db_session, account_id, EntryKind.DEBIT, -5, "Negative")

    async def test_version_bumps_once_per_change(self, db_session, make_account):
        account_id = await make_account(balance=0)
        before = (await balance_service.get_balance(db_session, account_id))["version"]

        await balance_service.post(db_session, account_id, EntryKind.CREDIT, 100, "One")
        await db_session.commit()

        after = (await balance_service.get_balance(db_session, account_id))["version"]
        assert after == before + 1

    async def test_expected_version_mismatch(self, db_session, make_account):
        account_id = await make_account(balance=1000)
        version = (await balance_service.get_balance(db_session, account_id))["version"]

        with pytest.raises(TransactionConflictError):
            await balance_service.apply_delta(db_session, account_id, -100, expected_version=version - 1)

        new_balance = await balance_service.apply_delta(
            db_session, account_id, -100, expected_version=version
        )
        assert new_balance == 900


class TestLedger:

    async def test_entries_are_immutable(self, db_session, make_account):
        account_id = await make_account(balance=1000)
        result = await db_session.execute(
            select(LedgerEntry).where(LedgerEntry.account_id == account_id)
        )
        entry = result.scalar_one()

        entry.amount = 999999
        with pytest.raises(RuntimeError, match="immutable"):
            await db_session.flush()
        await db_session.rollback()

    async def test_entries_cannot_be_deleted(self, db_session, make_account):
        account_id = await make_account(balance=1000)
        result = await db_session.execute(
            select(LedgerEntry).where(LedgerEntry.account_id == account_id)
        )
        await db_session.delete(result.scalar_one())

        with pytest.raises(RuntimeError, match="cannot be deleted"):
            await db_session.flush()
        await db_session.rollback()

    async def test_history_filters(self, authenticated_client):
        response = await authenticated_client.get("/accounts/me/transactions", params={"kind": "debit"})
        assert response.status_code == 200
        assert response.json() == []

        response = await authenticated_client.get("/accounts/me/transactions", params={"kind": "credit"})
        assert len(response.json()) == 1

        response = await authenticated_client.get("/accounts/me/transactions", params={"kind": "refund"})
        assert response.status_code == 422

    async def test_history_newest_first(self, db_session, make_account):
        account_id = await make_account(balance=1000)
        await balance_service.post(db_session, account_id, EntryKind.DEBIT, 10, "Second")
        await db_session.commit()

        entries = await ledger_service.list_transactions(db_session, account_id)
        assert [e.description for e in entries] == ["Second", "Test funding"]


class TestPercentOf:

    @pytest.mark.parametrize(
        "amount, percent, expected",
        [
            (100000, 2, 2000),
            (999, 8, 79),
            (1001, 7.5, 75),
            (10000, 0.1, 10),
            (3, 33.3, 0),
            (0, 50, 0),
            (12345, 0, 0),
            (20000, 100, 20000),
        ],
    )
    def test_floored(self, amount, percent, expected):
        assert percent_of(amount, percent) == expected

    def test_no_float_drift(self):
        """0.1 + 0.2 style error must not leak in: 0.29% of 10000 is exactly 29."""
        assert percent_of(10000, 0.29) == 29


class TestManualAdjustment:

    async def adjust(self, admin_client, account_id, action, amount, description="Support correction"):
        return await admin_client.post(
            f"/admin/accounts/{account_id}/adjust-balance",
            json={"action": action, "amount": amount, "description": description},
        )

    async def test_add_subtract_and_set(self, admin_client, register_user):
        member = await register_user("3005550001")
        account_id = member["account_id"]

        added = await self.adjust(admin_client, account_id, "add", 3000)
        assert added.status_code == 200
        assert added.json()["balance"] == 8000
        assert added.json()["ledger_entry"]["kind"] == "credit"

        subtracted = await self.adjust(admin_client, account_id, "subtract", 500)
        assert subtracted.json()["balance"] == 7500
        assert subtracted.json()["ledger_entry"]["kind"] == "debit"

        lowered = await self.adjust(admin_client, account_id, "set", 2000, "Reverse duplicate bonus")
        assert lowered.json()["balance"] == 2000
        assert lowered.json()["ledger_entry"]["kind"] == "debit"
        assert lowered.json()["ledger_entry"]["amount"] == 5500
        assert lowered.json()["ledger_entry"]["description"] == "Reverse duplicate bonus"

        raised = await self.adjust(admin_client, account_id, "set", 12000)
        assert raised.json()["ledger_entry"]["kind"] == "credit"
        assert raised.json()["ledger_entry"]["amount"] == 10000

        check = await admin_client.get(f"/admin/accounts/{account_id}/balance")
        assert check.json()["cached_balance"] == 12000
        assert check.json()["computed_balance"] == 12000
        assert check.json()["match"] is True

    async def test_set_to_current_balance_writes_nothing(self, admin_client, register_user):
        member = await register_user("3005550002")

        response = await self.adjust(admin_client, member["account_id"], "set", 5000)
        assert response.status_code == 200
        assert response.json() == {"ledger_entry": None, "balance": 5000}

        history = await admin_client.get("/accounts/me/transactions", headers=member["headers"])
        assert len(history.json()) == 1

    async def test_subtract_below_zero_refused(self, admin_client, register_user):
        member = await register_user("3005550003")

        response = await self.adjust(admin_client, member["account_id"], "subtract", 5001)
        assert response.status_code == 422
        assert response.json()["error_type"] == "insufficient_balance"

        check = await admin_client.get(f"/admin/accounts/{member['account_id']}/balance")
        assert check.json()["cached_balance"] == 5000
        assert check.json()["match"] is True

    async def test_version_bumps_once(self, db_session, make_account):
        account_id = await make_account(balance=1000)
        admin_id = await make_account()
        before = (await balance_service.get_balance(db_session, account_id))["version"]

        entry, balance = await balance_service.adjust_balance(
            db_session, account_id, "set", 250, "Chargeback", admin_id
        )
        await db_session.commit()

        assert (entry.kind, entry.amount, balance) == ("debit", 750, 250)
        assert (await balance_service.get_balance(db_session, account_id))["version"] == before + 1

    async def test_zero_only_for_set(self, admin_client, register_user):
        member = await register_user("3005550004")
        response = await self.adjust(admin_client, member["account_id"], "add", 0)
        assert response.status_code == 422

        emptied = await self.adjust(admin_client, member["account_id"], "set", 0)
        assert emptied.json()["balance"] == 0

    async def test_members_cannot_adjust(self, authenticated_client):
        own_id = authenticated_client.account["account_id"]
        response = await self.adjust(authenticated_client, own_id, "add", 1000000)
        assert response.status_code == 403
