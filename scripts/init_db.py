#!/usr/bin/env python3
"""
Create all tables and optionally seed the first admin account.

Admins cannot self-register, so the first one is created here.

Usage:
    python scripts/init_db.py

Environment Variables:
    DATABASE_URL: Target database
    ADMIN_EMAIL: E-mail for the seeded admin (optional)
    ADMIN_PASSWORD: Password for the seeded admin (optional)
    ADMIN_FULL_NAME: Display name for the seeded admin (default: Administrator)
"""

import asyncio
import os

import dotenv
from sqlalchemy import insert, select

dotenv.load_dotenv()

from app.core.security import get_password_hash  # noqa: E402
from app.database import engine  # noqa: E402
from app.models import admins, metadata, users  # noqa: E402


async def seed_admin(email: str, password: str, full_name: str) -> None:
    """Create a verified admin user unless the e-mail is taken."""
    async with engine.begin() as conn:
        existing = await conn.execute(select(users.c.id).where(users.c.email == email.lower()))
        if existing.scalar_one_or_none() is not None:
            print(f"• Admin {email} already exists")
            return

        result = await conn.execute(
            insert(users)
            .values(
                email=email.lower(),
                password_hash=get_password_hash(password),
                full_name=full_name,
                role="ADMIN",
                email_verified=True,
            )
            .returning(users.c.id)
        )
        await conn.execute(insert(admins).values(user_id=result.scalar_one()))
        print(f"✓ Admin {email} created")


async def init_db() -> None:
    """Initialize the database by creating all tables."""
    async with engine.begin() as conn:
        await conn.run_sync(metadata.create_all)
    print("✓ Database initialized successfully!")

    email = os.getenv("ADMIN_EMAIL")
    password = os.getenv("ADMIN_PASSWORD")
    if email and password:
        await seed_admin(email, password, os.getenv("ADMIN_FULL_NAME", "Administrator"))

    await engine.dispose()


if __name__ == "__main__":
    asyncio.run(init_db())
