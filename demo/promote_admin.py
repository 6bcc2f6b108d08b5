#!/usr/bin/env python3
"""One-time script to make an account superadmin. Run on the server.

Usage: DATABASE_URL=... python demo/promote_admin.py 3000000001
"""
import asyncio
import os
import sys
from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from app.models.account import Account, AccountRole
from app.models.user import User

async def promote(phone: str):
    engine = create_async_engine(os.environ["DATABASE_URL"])
    sf = async_sessionmaker(engine, class_=AsyncSession)
    async with sf() as s:
        r = await s.execute(
            update(Account)
            .where(Account.user_id.in_(select(User.id).where(User.phone == phone)))
            .values(role=AccountRole.SUPERADMIN, version=Account.version + 1)
        )
        await s.commit()
        print(f"Rows updated: {r.rowcount}")
    await engine.dispose()

asyncio.run(promote(sys.argv[1] if len(sys.argv) > 1 else "3000000001"))
