"""
Tests for the demo-account seeding script.
"""

import pytest

from admin_service.auth import verify_password
from admin_service.crud import count_users, insert_user, select_user_by_email
from admin_service.seed import DEMO_PASSWORD, DEMO_USERS, demo_user_items, seed_users


def test_demo_user_items():
    items = demo_user_items()

    assert len(items) == len(DEMO_USERS) == 25
    assert items[0]["email"] == "john.doe@example.com"
    assert len({item["email"] for item in items}) == 25
    assert verify_password(DEMO_PASSWORD, items[0]["hashed_password"])


@pytest.mark.asyncio
async def test_seed_empty_table(test_db_engine):
    created = await seed_users()

    assert created == 25
    assert await count_users() == 25
    user = await select_user_by_email("jane.smith@example.com")
    assert user.is_active is True
    assert verify_password("password123", user.hashed_password)


@pytest.mark.asyncio
async def test_seed_skips_populated_table(test_db_engine):
    await insert_user("Only", "User", "only@example.com", "hash")

    assert await seed_users() == 0
    assert await count_users() == 1


@pytest.mark.asyncio
async def test_seed_force(test_db_engine):
    await insert_user("Only", "User", "only@example.com", "hash")

    assert await seed_users(force=True) == 25
    assert await count_users() == 26


@pytest.mark.asyncio
async def test_seeded_user_can_log_in(client):
    await seed_users()

    response = await client.post("/auth/login", json={"email": "kevin.green@example.com", "password": DEMO_PASSWORD})

    assert response.status_code == 200
