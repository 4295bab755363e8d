"""Database CRUD operations for user management."""

from sqlalchemy import select, func, or_
from sqlalchemy.exc import IntegrityError

from . import db
from .models import User
from .logger import get_logger

logger = get_logger("database")

SORTABLE_COLUMNS = {
    "id": User.id,
    "email": User.email,
    "firstName": User.first_name,
    "lastName": User.last_name,
    "createdAt": User.created_at,
    "updatedAt": User.updated_at,
}


# ==================== Helper Functions ====================

def _create_user_snapshot(user: User) -> User:
    """Create a detached snapshot of a user before deletion."""
    snapshot = User()
    snapshot.id = user.id
    snapshot.email = user.email
    snapshot.hashed_password = user.hashed_password
    snapshot.first_name = user.first_name
    snapshot.last_name = user.last_name
    snapshot.is_active = user.is_active
    snapshot.created_at = user.created_at
    snapshot.updated_at = user.updated_at
    return snapshot


def _escape_like(term: str) -> str:
    """Escape special LIKE characters (%, _, \\) so they match literally."""
    return term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def _list_conditions(search: str | None, is_active: bool | None) -> list:
    conditions: list = []
    if search:
        pattern = f"%{_escape_like(search)}%"
        conditions.append(or_(
            User.first_name.ilike(pattern, escape="\\"),
            User.last_name.ilike(pattern, escape="\\"),
            User.email.ilike(pattern, escape="\\"),
        ))
    if is_active is not None:
        conditions.append(User.is_active.is_(is_active))
    return conditions


# ==================== Single User Operations ====================


async def insert_user(
    first_name: str,
    last_name: str,
    email: str,
    hashed_password: str,
    is_active: bool = True,
) -> User:
    """Insert a new user with hashed password. Raises ValueError on duplicate email."""
    async with db.async_session() as session:
        try:
            async with session.begin():
                user = User(
                    first_name=first_name,
                    last_name=last_name,
                    email=email,
                    hashed_password=hashed_password,
                    is_active=is_active,
                )
                session.add(user)
            await session.refresh(user)  # Load server-side timestamps
            return user
        except IntegrityError as e:
            logger.debug(f"Duplicate email rejected: {email}")
            raise ValueError("duplicate email") from e


async def select_user_by_email(email: str) -> User | None:
    """Retrieve a user by email address."""
    async with db.async_session() as session:
        result = await session.execute(select(User).where(User.email == email))
        return result.scalars().first()


async def select_user(user_id: int) -> User | None:
    """Retrieve a user by ID."""
    async with db.async_session() as session:
        return await session.get(User, user_id)


async def update_user(user_id: int, **fields) -> User | None:
    """Apply column updates to a user. Returns None if the user does not exist.

    Raises ValueError on duplicate email.
    """
    async with db.async_session() as session:
        try:
            async with session.begin():
                user = await session.get(User, user_id)
                if user is None:
                    return None
                for name, value in fields.items():
                    setattr(user, name, value)
            await session.refresh(user)  # Pick up the bumped updated_at
            return user
        except IntegrityError as e:
            logger.debug(f"Duplicate email rejected on update: id={user_id}")
            raise ValueError("duplicate email") from e


async def delete_user(user_id: int) -> User | None:
    """Delete a user by ID and return a snapshot of the deleted user."""
    async with db.async_session() as session:
        user = await session.get(User, user_id)
        if not user:
            return None
        try:
            snapshot = _create_user_snapshot(user)
            await session.delete(user)
            await session.commit()
            return snapshot
        except Exception:
            await session.rollback()
            logger.error(f"Failed to delete user id={user_id}", exc_info=True)
            raise


async def list_users(
    skip: int,
    limit: int,
    search: str | None = None,
    is_active: bool | None = None,
    sort: str = "createdAt",
    order: str = "desc",
) -> tuple[list[User], int]:
    """List users with optional search/status filters, sorting, and pagination.

    Returns the page of users and the total count matching the filters.
    """
    async with db.async_session() as session:
        try:
            conditions = _list_conditions(search, is_active)

            count_stmt = select(func.count()).select_from(User)
            if conditions:
                count_stmt = count_stmt.where(*conditions)
            count_result = await session.execute(count_stmt)
            total = count_result.scalar() or 0

            stmt = select(User)
            if conditions:
                stmt = stmt.where(*conditions)
            sort_column = SORTABLE_COLUMNS.get(sort, User.created_at)
            # id breaks ties between rows created in the same second
            if order == "desc":
                stmt = stmt.order_by(sort_column.desc(), User.id.desc())
            else:
                stmt = stmt.order_by(sort_column.asc(), User.id.asc())
            stmt = stmt.offset(skip).limit(limit)
            result = await session.execute(stmt)
            users = list(result.scalars().all())
            logger.debug(f"Query executed: returned {len(users)} users out of {total} total")
            return users, total
        except Exception:
            await session.rollback()
            logger.error("Failed to list users", exc_info=True)
            raise


async def count_users() -> int:
    async with db.async_session() as session:
        result = await session.execute(select(func.count()).select_from(User))
        return result.scalar() or 0


# ==================== Batch Operations ====================

async def insert_users(items: list[dict]) -> list[User]:
    """Insert multiple users in a single transaction.

    All-or-nothing: either all users are inserted or none are.
    Each item dict must contain first_name, last_name, email and hashed_password.
    Raises ValueError on duplicate email.
    """
    if not items:
        return []

    for item in items:
        if 'hashed_password' not in item:
            raise ValueError("Each user item must include 'hashed_password' field")

    async with db.async_session() as session:
        try:
            async with session.begin():
                objs = [
                    User(
                        first_name=item["first_name"],
                        last_name=item["last_name"],
                        email=item["email"],
                        hashed_password=item["hashed_password"],
                        is_active=item.get("is_active", True),
                    )
                    for item in items
                ]
                session.add_all(objs)

            for obj in objs:
                await session.refresh(obj)

            logger.debug(f"Batch insert completed: {len(objs)} users created")
            return objs
        except IntegrityError as e:
            logger.error("Batch insert failed: duplicate email (transaction rolled back)")
            raise ValueError("duplicate email") from e
