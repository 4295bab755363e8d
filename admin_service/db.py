"""Database connection pooling, session management, and resilience utilities."""

from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.orm import declarative_base
from sqlalchemy.exc import OperationalError, DBAPIError
from sqlalchemy import text
import asyncio
from .config import settings
from .logger import get_logger

logger = get_logger("database")

# ==================== Connection Pool Setup ====================


def _engine_options(db_url: str) -> dict:
    """Pool and driver options for the configured backend.

    Pool sizing and asyncpg timeouts only apply to PostgreSQL; SQLite
    (used for local runs and tests) gets the driver defaults.
    """
    if not db_url.startswith("postgresql"):
        return {}
    return {
        "pool_size": settings.DB_POOL_SIZE,
        "max_overflow": settings.DB_MAX_OVERFLOW,
        "pool_timeout": settings.DB_POOL_TIMEOUT,
        "pool_recycle": settings.DB_POOL_RECYCLE,
        "pool_pre_ping": True,  # Verify connections before use
        "connect_args": {
            "timeout": settings.DB_CONNECT_TIMEOUT,
            "command_timeout": settings.DB_QUERY_TIMEOUT,
        },
    }


engine = create_async_engine(settings.DB_URL, echo=False, **_engine_options(settings.DB_URL))

logger.info(
    f"Database engine configured: backend={engine.dialect.name} "
    f"pool_size={settings.DB_POOL_SIZE} max_overflow={settings.DB_MAX_OVERFLOW}"
)

# Session factory for creating database sessions
async_session = async_sessionmaker(engine, expire_on_commit=False, class_=AsyncSession)

# Base class for ORM models
Base = declarative_base()

# ==================== Database Resilience ====================

_RETRYABLE_MARKERS = (
    "connection",
    "timeout",
    "database is locked",
    "server closed the connection",
    "connection reset",
    "unable to open database",
)


def is_retryable_error(error: Exception) -> bool:
    """Connection-class failures are retryable; constraint violations are not."""
    error_msg = str(error).lower()
    return any(marker in error_msg for marker in _RETRYABLE_MARKERS)


async def retry_on_db_error(func, max_retries: int = 3, base_delay: float = 0.5):
    """Retry database operations with exponential backoff.

    Args:
        func: Async function to retry
        max_retries: Maximum number of retry attempts
        base_delay: Base delay in seconds (doubles each retry)

    Returns:
        Result of the function call

    Raises:
        Last exception if all retries fail
    """
    last_exception = None

    for attempt in range(max_retries):
        try:
            return await func()
        except (OperationalError, DBAPIError) as e:
            last_exception = e

            if not is_retryable_error(e) or attempt == max_retries - 1:
                logger.error(
                    f"Database operation failed (attempt {attempt + 1}/{max_retries}): {str(e)}",
                    exc_info=True
                )
                raise

            delay = base_delay * (2 ** attempt)
            logger.warning(
                f"Database error on attempt {attempt + 1}/{max_retries}, "
                f"retrying in {delay}s: {str(e)}"
            )
            await asyncio.sleep(delay)

    raise last_exception


async def _ping() -> None:
    async with async_session() as session:
        await session.execute(text("SELECT 1"))


async def check_db_connection() -> bool:
    """Check if database connection is healthy.

    Returns:
        True if connection is healthy, False otherwise
    """
    try:
        await retry_on_db_error(_ping, max_retries=2, base_delay=0.1)
        return True
    except Exception as e:
        logger.error(f"Database health check failed: {str(e)}")
        return False


async def wait_for_db(
    max_attempts: int = settings.DB_STARTUP_MAX_ATTEMPTS,
    base_delay: float = settings.DB_STARTUP_RETRY_DELAY,
) -> None:
    """Block until the database answers, backing off between attempts.

    Raises:
        RuntimeError: if the database is still unreachable after max_attempts
    """
    for attempt in range(1, max_attempts + 1):
        try:
            await _ping()
            logger.info("Database connection has been established successfully")
            return
        except (OperationalError, DBAPIError, OSError) as e:
            if attempt == max_attempts:
                logger.critical(f"Database unreachable after {max_attempts} attempt(s): {e}")
                raise RuntimeError("Unable to connect to the database") from e
            delay = min(base_delay * (2 ** (attempt - 1)), 10.0)
            logger.warning(
                f"Database not ready (attempt {attempt}/{max_attempts}), retrying in {delay}s: {e}"
            )
            await asyncio.sleep(delay)


async def create_tables() -> None:
    """Create any missing tables from the ORM metadata (development convenience)."""
    from . import models  # noqa: F401  registers the mapped tables on Base

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("Database models synchronized")

# ==================== Cleanup ====================

async def dispose_engine():
    """Gracefully close all database connections.

    Called during application shutdown to properly cleanup connection pool.
    """
    logger.info("Disposing database engine and closing connections")
    try:
        await engine.dispose()
        logger.info("Database connections closed successfully")
    except Exception as e:
        logger.error(f"Error disposing database engine: {str(e)}", exc_info=True)
