"""
Create a user with any role (dev/ops script).

The API has no signup for plain users or admins: creators are provisioned by
the Stripe webhook, everyone else is created here.

Usage (from backend/):
  python -m scripts.create_user --email admin@example.com --name "Admin" --role admin
  python -m scripts.create_user --email anna@example.com --name "Anna" --password secret123
"""

import asyncio
import argparse
import getpass
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))

from pymongo.errors import DuplicateKeyError

from auth import hash_password
from database import get_db_context
from models import User, UserRole
import logging

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


async def create_user(db, name: str, email: str, password: str, role: UserRole) -> bool:
    """Insert the user. Returns False when the email is already registered."""
    user = User(name=name, email=email, password_hash=hash_password(password), role=role)
    try:
        await db.users.insert_one(user.model_dump())
    except DuplicateKeyError:
        logger.warning("Email already registered: %s", user.email)
        return False
    logger.info("Created %s user %s (user_id=%s)", role.value, user.email, user.user_id)
    return True


async def _run(args) -> bool:
    async with get_db_context() as db:
        return await create_user(db, args.name, args.email, args.password, UserRole(args.role))


def main():
    parser = argparse.ArgumentParser(description="Create a Valoris user")
    parser.add_argument("--email", required=True)
    parser.add_argument("--name", required=True)
    parser.add_argument("--role", choices=[r.value for r in UserRole], default=UserRole.USER.value)
    parser.add_argument("--password", help="Prompted for when omitted")
    args = parser.parse_args()

    if not args.password:
        args.password = getpass.getpass("Password: ")
    if not args.password:
        logger.error("Password is required")
        sys.exit(1)

    ok = asyncio.run(_run(args))
    sys.exit(0 if ok else 1)


if __name__ == "__main__":
    main()
