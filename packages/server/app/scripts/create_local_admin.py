"""
Script to create (or promote) a site administrator for local testing.

    python -m app.scripts.create_local_admin --email admin@example.com --password secret123
"""

import argparse
import asyncio

from sqlmodel import select

from app.core.auth import hash_password
from app.core.database import get_session_context
from app.models.user import User
from modstore_shared.schemas.common import UserRole


async def create_admin(email: str, password: str, username: str, role: UserRole) -> None:
    async with get_session_context() as session:
        result = await session.execute(select(User).where(User.email == email))
        user = result.scalar_one_or_none()

        if not user:
            user = User(
                username=username,
                email=email,
                role=role.value,
                password_hash=hash_password(password),
            )
            session.add(user)
            print(f"Created {role.value}: {email}")
        else:
            user.role = role.value
            user.password_hash = hash_password(password)
            print(f"User {email} already exists, set role to {role.value}.")

    print("Done.")


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Create a local site administrator.")
    parser.add_argument("--email", required=True, help="Email address for the user")
    parser.add_argument("--password", required=True, help="Password for the user")
    parser.add_argument("--username", default="admin", help="Display name for a new user")
    parser.add_argument(
        "--superadmin", action="store_true", help="Create a superadmin instead of an admin"
    )

    args = parser.parse_args()
    role = UserRole.SUPERADMIN if args.superadmin else UserRole.ADMIN

    asyncio.run(create_admin(args.email, args.password, args.username, role))
