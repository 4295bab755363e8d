"""Business logic layer for user operations.

Handles registration, login, user CRUD, profile/password changes and account
deactivation. Every user leaving this module is a ``UserOut``, so password
hashes never reach a response.
"""

from fastapi import HTTPException

from .schemas import (
    UserOut,
    UserCreate,
    UserUpdate,
    ProfileUpdate,
    PasswordChange,
    UserRegister,
    UserLogin,
    AuthResponse,
    MessageResponse,
    UserResponse,
    UserMessageResponse,
    UserListResponse,
    Pagination,
)
from .crud import (
    insert_user,
    select_user,
    select_user_by_email,
    update_user as crud_update_user,
    list_users as crud_list_users,
    delete_user as crud_delete_user,
    SORTABLE_COLUMNS,
)
from .auth import hash_password, verify_password, create_access_token
from .config import settings
from .models import User
from .utils import normalize_email, total_pages
from .logger import get_logger

logger = get_logger("user")
auth_logger = get_logger("auth")

STATUS_FILTERS = {"all": None, "active": True, "inactive": False}
USER_ID_MAX = 2_147_483_647  # INTEGER primary key range

# ==================== Helper Functions ====================


def _convert_to_user_out(user: User) -> UserOut:
    """Convert ORM User model to UserOut schema."""
    return UserOut.model_validate(user)


def _validate_pagination(page: int, limit: int) -> tuple[int, int, int]:
    """Validate and normalize pagination parameters.

    Returns:
        tuple: (page, limit, skip) normalized values
    """
    if page < 1:
        page = settings.DEFAULT_PAGE
    if limit < 1:
        limit = settings.DEFAULT_LIMIT
    if limit > settings.MAX_LIMIT:
        limit = settings.MAX_LIMIT
    skip = (page - 1) * limit
    return page, limit, skip


def _validate_sort_params(sort: str, order: str) -> tuple[str, str]:
    """Validate and normalize sort parameters.

    Returns:
        tuple: (sort, order) normalized values
    """
    if sort not in SORTABLE_COLUMNS:
        sort = "createdAt"
    if order not in ("asc", "desc"):
        order = "desc"
    return sort, order


def _check_password_length(password: str, label: str = "Password") -> None:
    if len(password) < settings.PASSWORD_MIN_LENGTH:
        raise HTTPException(
            status_code=400,
            detail=f"{label} must be at least {settings.PASSWORD_MIN_LENGTH} characters long",
        )
    if len(password.encode("utf-8")) > settings.PASSWORD_MAX_LENGTH:
        raise HTTPException(
            status_code=400,
            detail=f"{label} must be at most {settings.PASSWORD_MAX_LENGTH} bytes long",
        )


def _check_names(*names: str | None) -> None:
    for name in names:
        if name is None:
            continue
        if not name:
            raise HTTPException(status_code=400, detail="Names cannot be empty or only whitespace")
        if len(name) > settings.USER_NAME_MAX_LENGTH:
            raise HTTPException(
                status_code=400,
                detail=f"Names must be at most {settings.USER_NAME_MAX_LENGTH} characters long",
            )


async def _ensure_email_available(email: str, current_email: str | None = None) -> None:
    """Raise 409 when another account already owns the email."""
    if email == current_email:
        return
    if await select_user_by_email(email):
        logger.warning(f"Email collision rejected: {email}")
        raise HTTPException(status_code=409, detail="Email already in use")


async def _get_user_or_404(user_id: int) -> User:
    # Ids outside the column range cannot exist and would overflow the driver
    user = await select_user(user_id) if 1 <= user_id <= USER_ID_MAX else None
    if not user:
        logger.warning(f"User not found: id={user_id}")
        raise HTTPException(status_code=404, detail="User not found")
    return user


async def _apply_update(user: User, fields: dict) -> User:
    try:
        updated = await crud_update_user(user.id, **fields)
    except ValueError as e:
        raise HTTPException(status_code=409, detail="Email already in use") from e
    if updated is None:
        raise HTTPException(status_code=404, detail="User not found")
    return updated


# ==================== User Operations ====================


async def get_user(user_id: int) -> UserResponse:
    """Retrieve a user by ID."""
    logger.debug(f"Fetching user: id={user_id}")
    user = await _get_user_or_404(user_id)
    return UserResponse(user=_convert_to_user_out(user))


async def list_users(
    page: int = settings.DEFAULT_PAGE,
    limit: int = settings.DEFAULT_LIMIT,
    search: str | None = None,
    status: str = "all",
    sort: str = "createdAt",
    order: str = "desc",
) -> UserListResponse:
    """List users with pagination, search, status filter and sorting."""
    page, limit, skip = _validate_pagination(page, limit)
    sort, order = _validate_sort_params(sort, order)
    is_active = STATUS_FILTERS.get(status)
    search = search.strip() if search else None

    logger.debug(
        f"Listing users: page={page} limit={limit} "
        f"filters=(search={search}, status={status}) sort={sort} order={order}"
    )

    users, total = await crud_list_users(
        skip, limit, search=search, is_active=is_active, sort=sort, order=order
    )

    pages = total_pages(total, limit)
    items = [_convert_to_user_out(u) for u in users]

    return UserListResponse(
        users=items,
        count=len(items),
        pagination=Pagination(
            current_page=page,
            total_pages=pages,
            total_items=total,
            items_per_page=limit,
            has_next_page=page < pages,
            has_previous_page=page > 1,
        ),
    )


async def create_user(data: UserCreate) -> UserMessageResponse:
    """Administrative account creation."""
    email = normalize_email(data.email)
    logger.info(f"Creating user: {email}")

    await _ensure_email_available(email)
    _check_password_length(data.password)
    _check_names(data.first_name, data.last_name)

    try:
        user = await insert_user(
            data.first_name, data.last_name, email, hash_password(data.password), data.is_active
        )
    except ValueError as e:
        raise HTTPException(status_code=409, detail="Email already in use") from e

    logger.info(f"User created successfully: id={user.id} email={user.email}")
    return UserMessageResponse(message="User created successfully", user=_convert_to_user_out(user))


async def update_user(user_id: int, data: UserUpdate) -> UserMessageResponse:
    """Administrative update of names, email and active flag."""
    user = await _get_user_or_404(user_id)

    fields = data.model_dump(exclude_unset=True, exclude_none=True)
    if "email" in fields:
        fields["email"] = normalize_email(fields["email"])
        await _ensure_email_available(fields["email"], user.email)
    _check_names(fields.get("first_name"), fields.get("last_name"))

    logger.info(f"Updating user: id={user_id} fields={sorted(fields)}")
    updated = await _apply_update(user, fields)
    return UserMessageResponse(message="User updated successfully", user=_convert_to_user_out(updated))


async def update_profile(current_user: User, data: ProfileUpdate) -> UserMessageResponse:
    """Update the caller's own names and email."""
    fields = data.model_dump(exclude_none=True)
    if "email" in fields:
        fields["email"] = normalize_email(fields["email"])
        await _ensure_email_available(fields["email"], current_user.email)
    _check_names(fields.get("first_name"), fields.get("last_name"))

    logger.info(f"Updating profile: id={current_user.id} fields={sorted(fields)}")
    updated = await _apply_update(current_user, fields)
    return UserMessageResponse(message="Profile updated successfully", user=_convert_to_user_out(updated))


async def change_password(current_user: User, data: PasswordChange) -> MessageResponse:
    """Re-verify the current password, then store a new hash."""
    if not verify_password(data.current_password, current_user.hashed_password):
        auth_logger.warning(f"Password change rejected - wrong current password: id={current_user.id}")
        raise HTTPException(status_code=401, detail="Current password is incorrect")

    _check_password_length(data.new_password, label="New password")

    await _apply_update(current_user, {"hashed_password": hash_password(data.new_password)})
    auth_logger.info(f"Password updated: id={current_user.id}")
    return MessageResponse(message="Password updated successfully")


async def delete_user(user_id: int, current_user: User) -> MessageResponse:
    """Hard-delete another account."""
    logger.info(f"Deleting user: id={user_id} requested_by={current_user.id}")
    await _get_user_or_404(user_id)

    if user_id == current_user.id:
        logger.warning(f"Self-deletion rejected: id={user_id}")
        raise HTTPException(status_code=400, detail="Cannot delete your own account")

    user = await crud_delete_user(user_id)
    if not user:
        raise HTTPException(status_code=404, detail="User not found")

    logger.info(f"User deleted successfully: id={user.id} email={user.email}")
    return MessageResponse(message="User deleted successfully")


async def deactivate_account(current_user: User) -> MessageResponse:
    """Soft-delete the caller's own account."""
    await _apply_update(current_user, {"is_active": False})
    logger.info(f"Account deactivated: id={current_user.id}")
    return MessageResponse(message="Account deactivated successfully")

# ==================== Authentication ====================


async def register_user(data: UserRegister) -> AuthResponse:
    """Register a new account and issue a bearer token for it."""
    email = normalize_email(data.email)
    auth_logger.info(f"Registering new user: {email}")

    if await select_user_by_email(email):
        auth_logger.warning(f"Registration failed - email already exists: {email}")
        raise HTTPException(status_code=409, detail="User already exists with this email")

    _check_password_length(data.password)
    _check_names(data.first_name, data.last_name)

    try:
        user = await insert_user(data.first_name, data.last_name, email, hash_password(data.password))
    except ValueError as e:
        auth_logger.warning(f"Registration lost a race on email: {email}")
        raise HTTPException(status_code=409, detail="User already exists with this email") from e

    auth_logger.info(f"User registered successfully: id={user.id} email={user.email}")
    token = create_access_token(user.id, user.email)
    return AuthResponse(message="User created successfully", token=token, user=_convert_to_user_out(user))


async def authenticate_user(data: UserLogin) -> AuthResponse:
    """Authenticate a user and return a JWT access token.

    Unknown emails and wrong passwords get the same message so the endpoint
    cannot be used to enumerate accounts.
    """
    email = normalize_email(data.email)
    auth_logger.info(f"Authentication attempt for user: {email}")

    user = await select_user_by_email(email)
    if not user:
        auth_logger.warning(f"Authentication failed - user not found: {email}")
        raise HTTPException(status_code=401, detail="Invalid credentials")

    if not user.is_active:
        auth_logger.warning(f"Authentication failed - user is inactive: {email}")
        raise HTTPException(status_code=401, detail="Account is deactivated")

    if not verify_password(data.password, user.hashed_password):
        auth_logger.warning(f"Authentication failed - invalid password for user: {email}")
        raise HTTPException(status_code=401, detail="Invalid credentials")

    token = create_access_token(user.id, user.email)
    auth_logger.info(f"Authentication successful for user: {email} (id={user.id})")
    return AuthResponse(message="Login successful", token=token, user=_convert_to_user_out(user))
