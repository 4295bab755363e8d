"""Seed the users table with demo accounts.

Usage:
    admin-seed            # inserts the demo accounts when the table is empty
    admin-seed --force    # inserts them even if other accounts exist
"""

import argparse
import asyncio

from .auth import hash_password
from .crud import count_users, insert_users
from . import db
from .logger import get_logger

logger = get_logger("database")

DEMO_PASSWORD = "password123"

DEMO_USERS = [
    ("John", "Doe"), ("Jane", "Smith"), ("Michael", "Johnson"), ("Sarah", "Wilson"),
    ("David", "Brown"), ("Emily", "Davis"), ("James", "Miller"), ("Lisa", "Garcia"),
    ("Robert", "Martinez"), ("Jennifer", "Anderson"), ("William", "Taylor"),
    ("Amanda", "Thomas"), ("Christopher", "White"), ("Michelle", "Harris"),
    ("Daniel", "Clark"), ("Stephanie", "Lewis"), ("Matthew", "Walker"), ("Nicole", "Hall"),
    ("Anthony", "Allen"), ("Kimberly", "Young"), ("Joshua", "King"), ("Ashley", "Wright"),
    ("Andrew", "Lopez"), ("Megan", "Hill"), ("Kevin", "Green"),
]


def demo_user_items(password: str = DEMO_PASSWORD) -> list[dict]:
    """Insert-ready rows for the demo accounts, sharing one password hash."""
    hashed = hash_password(password)
    return [
        {
            "first_name": first,
            "last_name": last,
            "email": f"{first.lower()}.{last.lower()}@example.com",
            "hashed_password": hashed,
        }
        for first, last in DEMO_USERS
    ]


async def seed_users(force: bool = False) -> int:
    """Insert the demo accounts. Returns how many were created (0 when skipped)."""
    existing = await count_users()
    if existing and not force:
        logger.info(f"Database already has {existing} users - skipping seed")
        return 0

    users = await insert_users(demo_user_items())
    logger.info(f"Seeded {len(users)} users (password: {DEMO_PASSWORD})")
    return len(users)


async def _run(force: bool, create_tables: bool) -> int:
    try:
        if create_tables:
            await db.create_tables()
        return await seed_users(force=force)
    finally:
        await db.dispose_engine()


def _parse_args():
    parser = argparse.ArgumentParser(description="Seed the users table with demo accounts.")
    parser.add_argument("--force", action="store_true", help="Seed even if the table already has users.")
    parser.add_argument("--create-tables", action="store_true", help="Create missing tables first.")
    return parser.parse_args()


def main() -> None:
    args = _parse_args()
    try:
        created = asyncio.run(_run(force=args.force, create_tables=args.create_tables))
    except ValueError as e:
        logger.error(f"Seeding failed: {e}")
        raise SystemExit(1)
    print(f"seed_done created={created}")


if __name__ == "__main__":
    main()
