"""
Unit tests for business logic (services layer).
Tests service functions with mocked database calls.
"""

import pytest
from unittest.mock import AsyncMock, patch
from fastapi import HTTPException
from datetime import datetime, timezone
from admin_service.services import (
    get_user,
    list_users,
    create_user,
    update_user,
    update_profile,
    change_password,
    delete_user,
    deactivate_account,
    register_user,
    authenticate_user,
)
from admin_service.schemas import (
    UserCreate,
    UserUpdate,
    ProfileUpdate,
    PasswordChange,
    UserRegister,
    UserLogin,
)
from admin_service.auth import hash_password, decode_access_token
from admin_service.config import settings

PASSWORD = "password123"
PASSWORD_HASH = hash_password(PASSWORD)


class MockUser:
    """Mock User object for testing with all required fields."""
    def __init__(self, id: int, email: str, first_name: str = "Test", last_name: str = "User",
                 is_active: bool = True):
        self.id = id
        self.email = email
        self.first_name = first_name
        self.last_name = last_name
        self.hashed_password = PASSWORD_HASH
        self.is_active = is_active
        self.created_at = datetime.now(timezone.utc)
        self.updated_at = self.created_at


def create_mock_user(id: int, email: str, **kwargs):
    return MockUser(id, email, **kwargs)


@pytest.mark.asyncio
class TestGetUser:
    """Test get_user service function."""

    async def test_get_user_success(self):
        mock_user = create_mock_user(1, "test@example.com")

        with patch('admin_service.services.select_user', new_callable=AsyncMock, return_value=mock_user):
            result = await get_user(1)

        assert result.user.id == 1
        assert result.user.email == "test@example.com"
        assert "hashed_password" not in result.user.model_dump()

    async def test_get_user_not_found(self):
        with patch('admin_service.services.select_user', new_callable=AsyncMock, return_value=None):
            with pytest.raises(HTTPException) as exc_info:
                await get_user(999)

        assert exc_info.value.status_code == 404
        assert exc_info.value.detail == "User not found"

    async def test_get_user_out_of_range_skips_lookup(self):
        with patch('admin_service.services.select_user', new_callable=AsyncMock) as mock_select:
            with pytest.raises(HTTPException) as exc_info:
                await get_user(10 ** 20)

        assert exc_info.value.status_code == 404
        mock_select.assert_not_called()


@pytest.mark.asyncio
class TestListUsers:
    """Test list_users service function."""

    async def test_list_users_success(self):
        mock_users = [create_mock_user(1, "user1@example.com"), create_mock_user(2, "user2@example.com")]

        with patch('admin_service.services.crud_list_users', new_callable=AsyncMock,
                   return_value=(mock_users, 2)):
            result = await list_users(page=1, limit=10)

        assert result.count == 2
        assert [u.id for u in result.users] == [1, 2]
        assert result.pagination.total_items == 2
        assert result.pagination.total_pages == 1
        assert result.pagination.has_next_page is False
        assert result.pagination.has_previous_page is False

    async def test_pagination_calculation(self):
        mock_users = [create_mock_user(i, f"user{i}@example.com") for i in range(1, 6)]

        with patch('admin_service.services.crud_list_users', new_callable=AsyncMock,
                   return_value=(mock_users, 25)) as mock_list:
            result = await list_users(page=2, limit=5)

        assert result.pagination.total_pages == 5
        assert result.pagination.current_page == 2
        assert result.pagination.has_next_page is True
        assert result.pagination.has_previous_page is True
        args, kwargs = mock_list.call_args
        assert args == (5, 5)

    async def test_empty_listing_has_one_page(self):
        with patch('admin_service.services.crud_list_users', new_callable=AsyncMock, return_value=([], 0)):
            result = await list_users()

        assert result.count == 0
        assert result.pagination.total_pages == 1

    async def test_invalid_params_normalized(self):
        with patch('admin_service.services.crud_list_users', new_callable=AsyncMock,
                   return_value=([], 0)) as mock_list:
            result = await list_users(page=-3, limit=5000, sort="hashed_password", order="random")

        assert result.pagination.current_page == 1
        assert result.pagination.items_per_page == settings.MAX_LIMIT
        _, kwargs = mock_list.call_args
        assert kwargs["sort"] == "createdAt"
        assert kwargs["order"] == "desc"

    @pytest.mark.parametrize("status,expected", [
        ("all", None), ("active", True), ("inactive", False), ("bogus", None),
    ])
    async def test_status_maps_to_filter(self, status, expected):
        with patch('admin_service.services.crud_list_users', new_callable=AsyncMock,
                   return_value=([], 0)) as mock_list:
            await list_users(status=status, search="  smith ")

        _, kwargs = mock_list.call_args
        assert kwargs["is_active"] is expected
        assert kwargs["search"] == "smith"


@pytest.mark.asyncio
class TestCreateUser:
    """Test administrative user creation."""

    def _data(self, **overrides):
        fields = {"email": "New@Example.com", "password": PASSWORD, "first_name": "New", "last_name": "Person"}
        fields.update(overrides)
        return UserCreate(**fields)

    async def test_create_user_success(self):
        created = create_mock_user(5, "new@example.com", first_name="New", last_name="Person")

        with patch('admin_service.services.select_user_by_email', new_callable=AsyncMock, return_value=None), \
             patch('admin_service.services.insert_user', new_callable=AsyncMock, return_value=created) as mock_insert:
            result = await create_user(self._data())

        assert result.message == "User created successfully"
        assert result.user.id == 5
        args = mock_insert.call_args.args
        assert args[2] == "new@example.com"
        assert args[3] != PASSWORD  # stored hashed

    async def test_duplicate_checked_before_password_length(self):
        existing = create_mock_user(1, "new@example.com")

        with patch('admin_service.services.select_user_by_email', new_callable=AsyncMock, return_value=existing):
            with pytest.raises(HTTPException) as exc_info:
                await create_user(self._data(password="1"))

        assert exc_info.value.status_code == 409
        assert exc_info.value.detail == "Email already in use"

    async def test_short_password(self):
        with patch('admin_service.services.select_user_by_email', new_callable=AsyncMock, return_value=None):
            with pytest.raises(HTTPException) as exc_info:
                await create_user(self._data(password="12345"))

        assert exc_info.value.status_code == 400

    async def test_password_over_bcrypt_limit(self):
        with patch('admin_service.services.select_user_by_email', new_callable=AsyncMock, return_value=None):
            with pytest.raises(HTTPException) as exc_info:
                await create_user(self._data(password="x" * 73))

        assert exc_info.value.status_code == 400
        assert "bytes" in exc_info.value.detail

    async def test_insert_race_maps_to_conflict(self):
        with patch('admin_service.services.select_user_by_email', new_callable=AsyncMock, return_value=None), \
             patch('admin_service.services.insert_user', new_callable=AsyncMock,
                   side_effect=ValueError("duplicate email")):
            with pytest.raises(HTTPException) as exc_info:
                await create_user(self._data())

        assert exc_info.value.status_code == 409


@pytest.mark.asyncio
class TestUpdateUser:
    """Test administrative and self-service updates."""

    async def test_update_passes_only_provided_fields(self):
        user = create_mock_user(2, "b@example.com")
        updated = create_mock_user(2, "b@example.com", first_name="Renamed")

        with patch('admin_service.services.select_user', new_callable=AsyncMock, return_value=user), \
             patch('admin_service.services.crud_update_user', new_callable=AsyncMock,
                   return_value=updated) as mock_update:
            result = await update_user(2, UserUpdate(first_name="Renamed"))

        assert result.message == "User updated successfully"
        assert mock_update.call_args.kwargs == {"first_name": "Renamed"}

    async def test_update_not_found(self):
        with patch('admin_service.services.select_user', new_callable=AsyncMock, return_value=None):
            with pytest.raises(HTTPException) as exc_info:
                await update_user(999, UserUpdate(first_name="X"))

        assert exc_info.value.status_code == 404

    async def test_update_email_collision(self):
        user = create_mock_user(2, "b@example.com")
        other = create_mock_user(1, "a@example.com")

        with patch('admin_service.services.select_user', new_callable=AsyncMock, return_value=user), \
             patch('admin_service.services.select_user_by_email', new_callable=AsyncMock, return_value=other):
            with pytest.raises(HTTPException) as exc_info:
                await update_user(2, UserUpdate(email="A@example.com"))

        assert exc_info.value.status_code == 409
        assert exc_info.value.detail == "Email already in use"

    async def test_profile_update_skips_blank_fields(self):
        user = create_mock_user(3, "me@example.com")

        with patch('admin_service.services.crud_update_user', new_callable=AsyncMock,
                   return_value=user) as mock_update:
            result = await update_profile(user, ProfileUpdate(first_name="Me", last_name="  "))

        assert result.message == "Profile updated successfully"
        assert mock_update.call_args.kwargs == {"first_name": "Me"}


@pytest.mark.asyncio
class TestChangePassword:
    """Test change_password service function."""

    async def test_success_stores_new_hash(self):
        user = create_mock_user(1, "me@example.com")

        with patch('admin_service.services.crud_update_user', new_callable=AsyncMock,
                   return_value=user) as mock_update:
            result = await change_password(user, PasswordChange(current_password=PASSWORD, new_password="newpass1"))

        assert result.message == "Password updated successfully"
        new_hash = mock_update.call_args.kwargs["hashed_password"]
        assert new_hash != PASSWORD_HASH
        assert new_hash != "newpass1"

    async def test_wrong_current_password(self):
        user = create_mock_user(1, "me@example.com")

        with pytest.raises(HTTPException) as exc_info:
            await change_password(user, PasswordChange(current_password="nope", new_password="newpass1"))

        assert exc_info.value.status_code == 401
        assert exc_info.value.detail == "Current password is incorrect"

    async def test_new_password_too_short(self):
        user = create_mock_user(1, "me@example.com")

        with pytest.raises(HTTPException) as exc_info:
            await change_password(user, PasswordChange(current_password=PASSWORD, new_password="abc"))

        assert exc_info.value.status_code == 400
        assert exc_info.value.detail.startswith("New password")


@pytest.mark.asyncio
class TestDeleteUser:
    """Test delete_user and deactivate_account."""

    async def test_delete_other_user(self):
        me = create_mock_user(1, "me@example.com")
        other = create_mock_user(2, "other@example.com")

        with patch('admin_service.services.select_user', new_callable=AsyncMock, return_value=other), \
             patch('admin_service.services.crud_delete_user', new_callable=AsyncMock, return_value=other):
            result = await delete_user(2, me)

        assert result.message == "User deleted successfully"

    async def test_cannot_delete_self(self):
        me = create_mock_user(1, "me@example.com")

        with patch('admin_service.services.select_user', new_callable=AsyncMock, return_value=me), \
             patch('admin_service.services.crud_delete_user', new_callable=AsyncMock) as mock_delete:
            with pytest.raises(HTTPException) as exc_info:
                await delete_user(1, me)

        assert exc_info.value.status_code == 400
        assert exc_info.value.detail == "Cannot delete your own account"
        mock_delete.assert_not_called()

    async def test_delete_not_found(self):
        me = create_mock_user(1, "me@example.com")

        with patch('admin_service.services.select_user', new_callable=AsyncMock, return_value=None):
            with pytest.raises(HTTPException) as exc_info:
                await delete_user(999, me)

        assert exc_info.value.status_code == 404

    async def test_deactivate_account(self):
        me = create_mock_user(1, "me@example.com")

        with patch('admin_service.services.crud_update_user', new_callable=AsyncMock,
                   return_value=me) as mock_update:
            result = await deactivate_account(me)

        assert result.message == "Account deactivated successfully"
        assert mock_update.call_args.kwargs == {"is_active": False}


@pytest.mark.asyncio
class TestAuthentication:
    """Test register_user and authenticate_user."""

    async def test_register_issues_token_for_new_user(self):
        created = create_mock_user(7, "new@example.com")

        with patch('admin_service.services.select_user_by_email', new_callable=AsyncMock, return_value=None), \
             patch('admin_service.services.insert_user', new_callable=AsyncMock, return_value=created):
            result = await register_user(UserRegister(
                email="new@example.com", password=PASSWORD, first_name="New", last_name="User",
            ))

        assert result.message == "User created successfully"
        token_data = decode_access_token(result.token)
        assert token_data.user_id == 7
        assert token_data.email == "new@example.com"

    async def test_register_duplicate(self):
        existing = create_mock_user(1, "new@example.com")

        with patch('admin_service.services.select_user_by_email', new_callable=AsyncMock, return_value=existing):
            with pytest.raises(HTTPException) as exc_info:
                await register_user(UserRegister(
                    email="new@example.com", password=PASSWORD, first_name="New", last_name="User",
                ))

        assert exc_info.value.status_code == 409
        assert exc_info.value.detail == "User already exists with this email"

    async def test_register_duplicate_with_blank_name_conflicts(self):
        existing = create_mock_user(1, "new@example.com")

        with patch('admin_service.services.select_user_by_email', new_callable=AsyncMock, return_value=existing):
            with pytest.raises(HTTPException) as exc_info:
                await register_user(UserRegister(
                    email="new@example.com", password=PASSWORD, first_name="   ", last_name="User",
                ))

        assert exc_info.value.status_code == 409

    async def test_register_blank_name(self):
        with patch('admin_service.services.select_user_by_email', new_callable=AsyncMock, return_value=None), \
             patch('admin_service.services.insert_user', new_callable=AsyncMock) as mock_insert:
            with pytest.raises(HTTPException) as exc_info:
                await register_user(UserRegister(
                    email="new@example.com", password=PASSWORD, first_name="New", last_name="   ",
                ))

        assert exc_info.value.status_code == 400
        mock_insert.assert_not_called()

    async def test_login_success(self):
        user = create_mock_user(1, "me@example.com")

        with patch('admin_service.services.select_user_by_email', new_callable=AsyncMock, return_value=user):
            result = await authenticate_user(UserLogin(email="ME@example.com", password=PASSWORD))

        assert result.message == "Login successful"
        assert decode_access_token(result.token).user_id == 1

    async def test_login_unknown_email(self):
        with patch('admin_service.services.select_user_by_email', new_callable=AsyncMock, return_value=None):
            with pytest.raises(HTTPException) as exc_info:
                await authenticate_user(UserLogin(email="x@example.com", password=PASSWORD))

        assert exc_info.value.status_code == 401
        assert exc_info.value.detail == "Invalid credentials"

    async def test_login_wrong_password(self):
        user = create_mock_user(1, "me@example.com")

        with patch('admin_service.services.select_user_by_email', new_callable=AsyncMock, return_value=user):
            with pytest.raises(HTTPException) as exc_info:
                await authenticate_user(UserLogin(email="me@example.com", password="wrong"))

        assert exc_info.value.detail == "Invalid credentials"

    async def test_login_inactive(self):
        user = create_mock_user(1, "me@example.com", is_active=False)

        with patch('admin_service.services.select_user_by_email', new_callable=AsyncMock, return_value=user):
            with pytest.raises(HTTPException) as exc_info:
                await authenticate_user(UserLogin(email="me@example.com", password=PASSWORD))

        assert exc_info.value.status_code == 401
        assert exc_info.value.detail == "Account is deactivated"
