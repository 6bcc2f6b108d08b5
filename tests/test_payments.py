"""
Tests for recharge requests and their admin review.

These tests verify:
  - Recording a reference creates a pending request and moves no money
  - Approval credits the amount with a ledger entry naming the reference
  - A reference can be approved only once system-wide
  - The referrer earns a commission on the referred user's FIRST approved
    recharge only, floored to whole units
  - Rejection has no balance effect; processed requests can't be reviewed again
"""

import uuid

import pytest

from app.exceptions import (
    DuplicateReferenceError,
    InvalidRequestError,
    NotFoundError,
    RequestAlreadyProcessedError,
)
from app.schemas.settings import ReferralSettings
from app.services import account_service, balance_service, config_service, ledger_service, payment_service


async def submit_and_approve(db_session, account_id, reviewer_id, amount, reference):
    request = await payment_service.record_payment_reference(db_session, account_id, amount, reference)
    await db_session.commit()
    request_id = request.id
    reviewed = await payment_service.review_payment_request(
        db_session, request_id, "approve", reviewer_id
    )
    await db_session.commit()
    return reviewed


class TestRecordPayment:

    async def test_creates_pending_request(self, db_session, make_account):
        account_id = await make_account()

        request = await payment_service.record_payment_reference(
            db_session, account_id, 20000, "  REF-001 "
        )
        await db_session.commit()

        assert request.status == "pending"
        assert request.reference_number == "REF-001"
        assert request.phone.startswith("31")

        check = await balance_service.get_balance(db_session, account_id)
        assert check["cached_balance"] == 0

    async def test_blank_reference_rejected(self, db_session, make_account):
        account_id = await make_account()

        with pytest.raises(InvalidRequestError):
            await payment_service.record_payment_reference(db_session, account_id, 100, "   ")


class TestReview:

    async def test_approve_credits_requester(self, db_session, make_account):
        account_id = await make_account()
        admin_id = await make_account()

        reviewed = await submit_and_approve(db_session, account_id, admin_id, 20000, "REF-1")

        assert reviewed.status == "approved"
        assert reviewed.processed_by_account_id == admin_id
        assert reviewed.processed_at is not None

        entries = await ledger_service.list_transactions(db_session, account_id)
        assert entries[0].amount == 20000
        assert entries[0].description == "Recharge approved (Ref: REF-1)"

        check = await balance_service.get_balance(db_session, account_id)
        assert check["cached_balance"] == 20000
        assert check["match"] is True

    async def test_duplicate_reference_rejected(self, db_session, make_account):
        first = await make_account()
        second = await make_account()
        admin_id = await make_account()

        await submit_and_approve(db_session, first, admin_id, 10000, "SAME-REF")

        request = await payment_service.record_payment_reference(
            db_session, second, 10000, "SAME-REF"
        )
        await db_session.commit()
        request_id = request.id

        with pytest.raises(DuplicateReferenceError):
            await payment_service.review_payment_request(
                db_session, request_id, "approve", admin_id
            )
        await db_session.rollback()

        check = await balance_service.get_balance(db_session, second)
        assert check["cached_balance"] == 0

        # Still pending, so it can be rejected
        rejected = await payment_service.review_payment_request(
            db_session, request_id, "reject", admin_id
        )
        assert rejected.status == "rejected"

    async def test_reject_has_no_balance_effect(self, db_session, make_account):
        account_id = await make_account()
        admin_id = await make_account()
        request = await payment_service.record_payment_reference(
            db_session, account_id, 5000, "REF-X"
        )
        await db_session.commit()

        reviewed = await payment_service.review_payment_request(
            db_session, request.id, "reject", admin_id
        )
        await db_session.commit()

        assert reviewed.status == "rejected"
        assert await ledger_service.list_transactions(db_session, account_id) == []

    async def test_cannot_review_twice(self, db_session, make_account):
        account_id = await make_account()
        admin_id = await make_account()
        reviewed = await submit_and_approve(db_session, account_id, admin_id, 5000, "REF-2")

        with pytest.raises(RequestAlreadyProcessedError):
            await payment_service.review_payment_request(
                db_session, reviewed.id, "reject", admin_id
            )
        await db_session.rollback()

        check = await balance_service.get_balance(db_session, account_id)
        assert check["cached_balance"] == 5000

    async def test_unknown_request(self, db_session, make_account):
        admin_id = await make_account()

        with pytest.raises(NotFoundError):
            await payment_service.review_payment_request(
                db_session, uuid.uuid4(), "approve", admin_id
            )


class TestReferralCommission:

    async def test_commission_only_on_first_recharge(self, db_session, make_account):
        referrer_id = await make_account()
        referrer = await account_service.get_account(db_session, referrer_id)
        referred_id = await make_account(referral_code=referrer.referral_code)
        admin_id = await make_account()

        await submit_and_approve(db_session, referred_id, admin_id, 20000, "REF-A")
        await submit_and_approve(db_session, referred_id, admin_id, 30000, "REF-B")

        check = await balance_service.get_balance(db_session, referrer_id)
        assert check["cached_balance"] == 2000
        assert check["match"] is True

        summary = await account_service.get_referral_summary(db_session, referrer_id)
        assert [a.id for a in summary["referred_accounts"]] == [referred_id]
        assert summary["total_commissions"] == 2000
        assert len(summary["commissions"]) == 1
        assert summary["commissions"][0].description.startswith("Referral commission: ")

    async def test_commission_is_floored(self, db_session, make_account):
        await config_service.update_referral_settings(
            db_session, ReferralSettings(commission_percentage=7.5, registration_bonus=0)
        )
        await db_session.commit()
        referrer_id = await make_account()
        referrer = await account_service.get_account(db_session, referrer_id)
        referred_id = await make_account(referral_code=referrer.referral_code)
        admin_id = await make_account()

        # 7.5% of 1001 is 75.075
        await submit_and_approve(db_session, referred_id, admin_id, 1001, "REF-F")

        check = await balance_service.get_balance(db_session, referrer_id)
        assert check["cached_balance"] == 75

    async def test_rejected_first_request_keeps_commission_pending(self, db_session, make_account):
        """A rejected recharge doesn't count: the next approval is still the first."""
        referrer_id = await make_account()
        referrer = await account_service.get_account(db_session, referrer_id)
        referred_id = await make_account(referral_code=referrer.referral_code)
        admin_id = await make_account()

        request = await payment_service.record_payment_reference(
            db_session, referred_id, 50000, "REF-R"
        )
        await db_session.commit()
        await payment_service.review_payment_request(db_session, request.id, "reject", admin_id)
        await db_session.commit()

        await submit_and_approve(db_session, referred_id, admin_id, 10000, "REF-OK")

        check = await balance_service.get_balance(db_session, referrer_id)
        assert check["cached_balance"] == 1000

    async def test_no_commission_without_referrer(self, db_session, make_account):
        account_id = await make_account()
        admin_id = await make_account()

        await submit_and_approve(db_session, account_id, admin_id, 10000, "REF-N")

        entries = await ledger_service.list_transactions(db_session, account_id)
        assert len(entries) == 1


class TestPaymentEndpoints:

    async def test_submit_and_admin_approve(self, admin_client, register_user):
        member = await register_user("3007770001")

        submitted = await admin_client.post(
            "/payments",
            json={"amount": 15000, "reference_number": "NEQ-123"},
            headers=member["headers"],
        )
        assert submitted.status_code == 201
        request_id = submitted.json()["id"]

        queue = await admin_client.get("/admin/payments", params={"status": "pending"})
        assert [r["id"] for r in queue.json()] == [request_id]

        reviewed = await admin_client.post(
            f"/admin/payments/{request_id}/review", json={"decision": "approve"}
        )
        assert reviewed.status_code == 200
        assert reviewed.json()["status"] == "approved"
        assert reviewed.json()["processed_by_account_id"] == admin_client.account["account_id"]

        me = await admin_client.get("/accounts/me", headers=member["headers"])
        assert me.json()["balance"] == 5000 + 15000

        again = await admin_client.post(
            f"/admin/payments/{request_id}/review", json={"decision": "reject"}
        )
        assert again.status_code == 409
        assert again.json()["error_type"] == "already_processed"

    async def test_list_own_requests(self, authenticated_client):
        await authenticated_client.post(
            "/payments", json={"amount": 100, "reference_number": "A"}
        )
        response = await authenticated_client.get("/payments")
        assert response.status_code == 200
        assert len(response.json()) == 1

    async def test_member_cannot_review(self, authenticated_client):
        submitted = await authenticated_client.post(
            "/payments", json={"amount": 100, "reference_number": "SELF"}
        )
        response = await authenticated_client.post(
            f"/admin/payments/{submitted.json()['id']}/review", json={"decision": "approve"}
        )
        assert response.status_code == 403

    async def test_invalid_decision(self, admin_client):
        response = await admin_client.post(
            "/admin/payments/00000000-0000-0000-0000-000000000000/review",
            json={"decision": "maybe"},
        )
        assert response.status_code == 422
