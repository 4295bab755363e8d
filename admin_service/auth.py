"""Authentication utilities for password hashing and JWT token management."""

from datetime import datetime, timedelta, timezone
from jose import ExpiredSignatureError, JWTError, jwt
import bcrypt
from .config import settings
from .schemas import TokenData


class SecretNotConfiguredError(RuntimeError):
    """Raised when a token must be signed or verified but JWT_SECRET_KEY is unset."""

    def __init__(self):
        super().__init__("JWT secret not configured")


class TokenError(Exception):
    """Base class for bearer token rejections."""


class TokenExpiredError(TokenError):
    """The token signature is valid but its exp claim has passed."""


class InvalidTokenError(TokenError):
    """The token is malformed, badly signed, or carries unusable claims."""


# ==================== Password Hashing ====================

def hash_password(password: str) -> str:
    """Hash a plain text password using bcrypt for secure storage."""
    # bcrypt requires bytes and returns bytes
    password_bytes = password.encode('utf-8')
    salt = bcrypt.gensalt(rounds=settings.BCRYPT_ROUNDS)
    hashed = bcrypt.hashpw(password_bytes, salt)
    # Return as string for database storage
    return hashed.decode('utf-8')


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Verify a plain text password against a hashed password (constant-time)."""
    password_bytes = plain_password.encode('utf-8')
    hashed_bytes = hashed_password.encode('utf-8')
    try:
        return bcrypt.checkpw(password_bytes, hashed_bytes)
    except ValueError:
        # Stored value is not a bcrypt hash
        return False


# ==================== JWT Token Management ====================

def _require_secret() -> str:
    if not settings.JWT_SECRET_KEY:
        raise SecretNotConfiguredError()
    return settings.JWT_SECRET_KEY


def create_access_token(user_id: int, email: str, expires_delta: timedelta | None = None) -> str:
    """Create a signed JWT carrying the user id and email. Defaults to configured expiration time."""
    secret = _require_secret()

    now = datetime.now(timezone.utc)
    if expires_delta is None:
        expires_delta = timedelta(minutes=settings.JWT_EXPIRATION_MINUTES)

    to_encode = {
        "sub": str(user_id),
        "email": email,
        "iat": now,
        "exp": now + expires_delta,
    }
    return jwt.encode(to_encode, secret, algorithm=settings.JWT_ALGORITHM)


def decode_access_token(token: str) -> TokenData:
    """Decode and verify a JWT token.

    Raises:
        SecretNotConfiguredError: JWT_SECRET_KEY is unset
        TokenExpiredError: the token has expired
        InvalidTokenError: bad signature, malformed token or missing claims
    """
    secret = _require_secret()
    try:
        payload = jwt.decode(token, secret, algorithms=[settings.JWT_ALGORITHM])
    except ExpiredSignatureError as e:
        raise TokenExpiredError("Token expired") from e
    except JWTError as e:
        raise InvalidTokenError("Invalid token") from e

    try:
        return TokenData(user_id=int(payload["sub"]), email=payload["email"])
    except (KeyError, TypeError, ValueError) as e:
        raise InvalidTokenError("Invalid token") from e
