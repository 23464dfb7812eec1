"""Script to create an admin account or promote an existing user to admin."""

import argparse
import asyncio
import sys

from sqlalchemy import insert, select, update

from mediconnect.core.security import get_password_hash
from mediconnect.database import AsyncSessionLocal, engine
from mediconnect.models.users import users


async def create_admin(email: str, password: str, full_name: str) -> None:
    """Create the admin user, or reset the password and role of an existing one."""
    email = email.lower()
    password_hash = get_password_hash(password)

    async with AsyncSessionLocal() as db:
        result = await db.execute(select(users.c.id).where(users.c.email == email))
        user_id = result.scalar_one_or_none()

        if user_id:
            print("User found, updating to admin...")
            await db.execute(
                update(users)
                .where(users.c.id == user_id)
                .values(password_hash=password_hash, role="admin", full_name=full_name)
            )
        else:
            print("Creating new admin user...")
            await db.execute(
                insert(users).values(
                    email=email,
                    password_hash=password_hash,
                    full_name=full_name,
                    role="admin",
                )
            )

        await db.commit()

    await engine.dispose()
    print(f"✓ Admin ready: {email}")


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("email")
    parser.add_argument("password")
    parser.add_argument("--full-name", default="Admin User")
    args = parser.parse_args()

    try:
        asyncio.run(create_admin(args.email, args.password, args.full_name))
    except Exception as e:
        print(f"✗ Failed to create admin: {e}", file=sys.stderr)
        sys.exit(1)
