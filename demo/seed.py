#!/usr/bin/env python3
"""
Demo seed script — populates the database with sample data for demos.

!! NOT FOR PRODUCTION !!
This script creates test users with known passwords, a small plant catalog
and some recharge/withdrawal traffic. It is intended ONLY for local demos
and frontend development.

Usage:
    # With the API server running on localhost:8000:
    python demo/seed.py

    # Reset the database and re-seed:
    python demo/seed.py --reset

    # Custom server URL:
    python demo/seed.py --base-url http://localhost:9000

Login credentials after seeding:
    ┌──────────────┬───────────────────┬────────────┐
    │ Phone        │ Password          │ Role       │
    ├──────────────┼───────────────────┼────────────┤
    │ 3000000001   │ AdminDemo123!     │ SUPERADMIN │
    │ 3101112233   │ AnaDemo123!       │ USER       │
    │ 3102223344   │ BrunoDemo123!     │ USER       │
    │ 3103334455   │ CamilaDemo123!    │ USER       │
    └──────────────┴───────────────────┴────────────┘

Bruno and Camila register with Ana's referral code, so Ana earns a
commission when their first recharge is approved.
"""

import argparse
import asyncio
import os
import random
import sys
from datetime import datetime, timedelta, timezone

import httpx

BASE_URL = "http://localhost:8000"

# ---------------------------------------------------------------------------
# Demo data
# ---------------------------------------------------------------------------

ADMIN = {"phone": "3000000001", "password": "AdminDemo123!"}

MEMBERS = [
    {"phone": "3101112233", "password": "AnaDemo123!", "name": "Ana Rojas", "recharge": 150_000},
    {"phone": "3102223344", "password": "BrunoDemo123!", "name": "Bruno Díaz", "recharge": 60_000},
    {"phone": "3103334455", "password": "CamilaDemo123!", "name": "Camila Ortiz", "recharge": 90_000},
]

CATALOG = [
    {"name": "Solar Panel S1", "price": 20_000, "daily_yield_percent": 3,
     "purchase_limit": 3, "duration_days": 30},
    {"name": "Wind Turbine W2", "price": 50_000, "daily_yield_percent": 2.5,
     "purchase_limit": 2, "duration_days": 60},
    {"name": "Hydro Station H1", "price": 120_000, "daily_yield_percent": 2,
     "purchase_limit": 1, "duration_days": 90},
    {"name": "Weekend Flash Offer", "price": 10_000, "daily_yield_percent": 5,
     "purchase_limit": 1, "duration_days": 7, "is_time_limited": True, "time_limit_hours": 72},
]

GIFT_CODE = {"code": "WELCOME2026", "amount": 2_000, "usage_limit": 50, "expires_in_minutes": 7 * 24 * 60}


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def log(msg: str) -> None:
    print(f"  {msg}")


def money(amount: int) -> str:
    return f"${amount:,}"


def auth_header(token: str) -> dict:
    return {"Authorization": f"Bearer {token}"}


async def register(client: httpx.AsyncClient, user: dict, referral_code: str | None = None) -> dict:
    """Register a user, return the registration body (token, account_id, referral_code...)."""
    body = {"phone": user["phone"], "password": user["password"]}
    if referral_code:
        body["referral_code"] = referral_code
    resp = await client.post(f"{BASE_URL}/auth/register", json=body)
    resp.raise_for_status()
    return resp.json()


async def login(client: httpx.AsyncClient, user: dict) -> str:
    resp = await client.post(
        f"{BASE_URL}/auth/login",
        json={"phone": user["phone"], "password": user["password"]},
    )
    resp.raise_for_status()
    return resp.json()["token"]


async def recharge(client: httpx.AsyncClient, token: str, admin_token: str,
                   amount: int, reference: str) -> None:
    """Submit a recharge reference and have the admin approve it."""
    resp = await client.post(
        f"{BASE_URL}/payments",
        json={"amount": amount, "reference_number": reference},
        headers=auth_header(token),
    )
    resp.raise_for_status()
    resp = await client.post(
        f"{BASE_URL}/admin/payments/{resp.json()['id']}/review",
        json={"decision": "approve"},
        headers=auth_header(admin_token),
    )
    resp.raise_for_status()


async def get_balance(client: httpx.AsyncClient, token: str) -> int:
    resp = await client.get(f"{BASE_URL}/accounts/me/balance", headers=auth_header(token))
    resp.raise_for_status()
    return resp.json()["cached_balance"]


# ---------------------------------------------------------------------------
# Direct database access
# ---------------------------------------------------------------------------

async def promote_to_superadmin(phone: str) -> None:
    """Set the account role in the database.

    The API only lets an existing superadmin grant roles, so the first one
    has to be provisioned by an operator.
    """
    from sqlalchemy import select, update
    from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
    from app.config import settings
    from app.models.account import Account, AccountRole
    from app.models.user import User

    engine = create_async_engine(settings.DATABASE_URL)
    session_factory = async_sessionmaker(engine, class_=AsyncSession)

    async with session_factory() as session:
        user_ids = select(User.id).where(User.phone == phone)
        await session.execute(
            update(Account)
            .where(Account.user_id.in_(user_ids))
            .values(role=AccountRole.SUPERADMIN, version=Account.version + 1)
        )
        await session.commit()

    await engine.dispose()


async def backdate_positions(days: int) -> int:
    """Move every active position's purchase date back so yields are due on next login."""
    from sqlalchemy import update
    from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
    from app.config import settings
    from app.models.position import PurchasedPosition

    engine = create_async_engine(settings.DATABASE_URL)
    session_factory = async_sessionmaker(engine, class_=AsyncSession)
    purchased = datetime.now(timezone.utc) - timedelta(days=days, hours=random.randint(1, 6))

    async with session_factory() as session:
        result = await session.execute(
            update(PurchasedPosition)
            .where(PurchasedPosition.status == "active")
            .where(PurchasedPosition.last_yield_date.is_(None))
            .values(purchase_date=purchased)
        )
        await session.commit()

    await engine.dispose()
    return result.rowcount


# ---------------------------------------------------------------------------
# Seed logic
# ---------------------------------------------------------------------------

async def seed(base_url: str) -> None:
    global BASE_URL
    BASE_URL = base_url

    print("\n========================================")
    print("  DEMO SEED — NOT FOR PRODUCTION")
    print("========================================\n")

    async with httpx.AsyncClient(timeout=30.0) as client:
        # Health check
        try:
            health = await client.get(f"{BASE_URL}/health")
            health.raise_for_status()
        except (httpx.ConnectError, httpx.HTTPStatusError):
            print(f"  ERROR: Cannot connect to {BASE_URL}")
            print("  Start the server first: uvicorn app.main:app --reload\n")
            sys.exit(1)

        # --- Admin ---
        print("Creating superadmin...")
        await register(client, ADMIN)
        await promote_to_superadmin(ADMIN["phone"])
        admin_token = await login(client, ADMIN)
        log(f"Superadmin: {ADMIN['phone']} / {ADMIN['password']}")

        # Demo-friendly withdrawal rules: any day, any hour
        resp = await client.put(
            f"{BASE_URL}/admin/config/withdrawals",
            json={"min_withdrawal": 10_000, "daily_limit": 1, "fee_percentage": 8,
                  "start_hour": 0, "end_hour": 24, "allowed_weekdays": [0, 1, 2, 3, 4, 5, 6]},
            headers=auth_header(admin_token),
        )
        resp.raise_for_status()

        # --- Catalog and gift code ---
        print("\nCreating catalog...")
        item_ids: list[str] = []
        for item in CATALOG:
            resp = await client.post(f"{BASE_URL}/admin/catalog", json=item, headers=auth_header(admin_token))
            resp.raise_for_status()
            item_ids.append(resp.json()["id"])
            log(f"{item['name']}: {money(item['price'])} at {item['daily_yield_percent']}%/day")

        resp = await client.post(f"{BASE_URL}/admin/gift-codes", json=GIFT_CODE, headers=auth_header(admin_token))
        resp.raise_for_status()
        log(f"Gift code {GIFT_CODE['code']}: {money(GIFT_CODE['amount'])}")

        # --- Members ---
        referral_code = None
        tokens: list[str] = []
        for n, member in enumerate(MEMBERS, start=1):
            print(f"\nCreating {member['name']}...")
            data = await register(client, member, referral_code=referral_code)
            token = data["token"]
            tokens.append(token)
            log(f"Login: {member['phone']} / {member['password']}")
            if referral_code is None:
                referral_code = data["referral_code"]
                log(f"Referral code: {referral_code}")

            await recharge(client, token, admin_token, member["recharge"], f"NEQ-DEMO-{n:04d}")
            log(f"Recharge approved: {money(member['recharge'])}")

            resp = await client.post(
                f"{BASE_URL}/gift-codes/redeem", json={"code": GIFT_CODE["code"].lower()},
                headers=auth_header(token),
            )
            resp.raise_for_status()

            item_id = random.choice(item_ids[:2])
            resp = await client.post(
                f"{BASE_URL}/catalog/{item_id}/purchase", json={"quantity": 1},
                headers=auth_header(token),
            )
            if resp.status_code == 201:
                log("Bought 1 plant")

            resp = await client.put(
                f"{BASE_URL}/accounts/me/withdrawal-info",
                json={"nequi_account": member["phone"], "full_name": member["name"],
                      "id_number": f"10{n:08d}"},
                headers=auth_header(token),
            )
            resp.raise_for_status()

            log(f"Balance: {money(await get_balance(client, token))}")

        # --- Withdrawals ---
        print("\nCreating withdrawal requests...")
        for token, member in zip(tokens, MEMBERS):
            resp = await client.post(
                f"{BASE_URL}/withdrawals", json={"amount": 10_000}, headers=auth_header(token)
            )
            if resp.status_code == 201:
                log(f"{member['name']}: {money(10_000)} pending review")
            else:
                log(f"{member['name']}: {resp.json().get('detail')}")

    # --- Backdate plants so daily yields are waiting on next login ---
    print("\nBackdating plant purchases by 3 days...")
    moved = await backdate_positions(3)
    log(f"{moved} positions will catch up 3 daily yields on next access")

    # --- Summary ---
    print("\n========================================")
    print("  SEED COMPLETE — Login Credentials")
    print("========================================")
    print(f"\n  {'Phone':<14s} {'Password':<20s} {'Role'}")
    print(f"  {'─' * 14} {'─' * 20} {'─' * 10}")
    print(f"  {ADMIN['phone']:<14s} {ADMIN['password']:<20s} SUPERADMIN")
    for m in MEMBERS:
        print(f"  {m['phone']:<14s} {m['password']:<20s} USER")
    print()


def reset_database() -> None:
    """Delete the SQLite database file so the server recreates it on restart."""
    db_path = os.path.join(os.path.dirname(__file__), "..", "data", "rewards.db")
    db_path = os.path.normpath(db_path)

    if os.path.exists(db_path):
        os.remove(db_path)
        print(f"\n  Deleted {db_path}")
        print("  Restart the server to recreate empty tables.\n")
    else:
        print(f"\n  No database found at {db_path}\n")


# ---------------------------------------------------------------------------
# CLI
# ---------------------------------------------------------------------------

async def main() -> None:
    parser = argparse.ArgumentParser(
        description="Demo seed script — NOT FOR PRODUCTION",
        epilog="Creates sample users, plants, recharges and withdrawals for demos.",
    )
    parser.add_argument(
        "--base-url", default="http://localhost:8000",
        help="Base URL of the running API (default: http://localhost:8000)",
    )
    parser.add_argument(
        "--reset", action="store_true",
        help="Delete the database file and exit (restart server to recreate)",
    )
    args = parser.parse_args()

    if args.reset:
        reset_database()
        return

    await seed(args.base_url)


if __name__ == "__main__":
    asyncio.run(main())
