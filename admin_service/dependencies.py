"""FastAPI dependencies for authentication."""

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from .auth import (
    decode_access_token,
    SecretNotConfiguredError,
    TokenExpiredError,
    InvalidTokenError,
)
from .crud import select_user
from .models import User
from .logger import get_logger

logger = get_logger("auth")

# ==================== Authentication Dependencies ====================

# auto_error=False: a missing header must produce our own 401 body, not FastAPI's
security = HTTPBearer(auto_error=False)

_BEARER_HEADERS = {"WWW-Authenticate": "Bearer"}


def _unauthorized(message: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=message,
        headers=_BEARER_HEADERS,
    )


async def get_current_user(
    request: Request,
    credentials: HTTPAuthorizationCredentials | None = Depends(security),
) -> User:
    """Resolve the account behind the bearer token and attach it to the request.

    401 when the token is missing, expired or invalid, or when the account is
    gone or deactivated; 500 when the signing secret is not configured.
    """
    if credentials is None or not credentials.credentials:
        raise _unauthorized("Access token required")

    try:
        token_data = decode_access_token(credentials.credentials)
    except SecretNotConfiguredError:
        logger.error("Rejecting authenticated request: JWT secret not configured")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="JWT secret not configured",
        )
    except TokenExpiredError:
        raise _unauthorized("Token expired")
    except InvalidTokenError:
        raise _unauthorized("Invalid token")

    user = await select_user(token_data.user_id)
    if user is None or not user.is_active:
        logger.warning(f"Token rejected - user missing or inactive: id={token_data.user_id}")
        raise _unauthorized("Invalid token or user not found")

    request.state.user = user
    return user
