"""Pydantic schemas for request/response validation and serialization.

Every schema speaks camelCase on the wire (``firstName``, ``isActive``...), the
shape the dashboard consumes, while still accepting snake_case input.
"""

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator
from pydantic.alias_generators import to_camel
from datetime import datetime
from .config import settings


class CamelModel(BaseModel):
    """Base schema with camelCase aliases."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


def _strip_name(v: str) -> str:
    # Blank names are rejected by the service, after the duplicate-email check
    return v.strip()


def _require_name(v: str) -> str:
    if not v.strip():
        raise ValueError("Name cannot be empty or only whitespace")
    return v.strip()


# ==================== Error Schemas ====================

class ErrorResponse(BaseModel):
    """Error body returned by every failing request."""
    error: str
    stack: str | None = None


# ==================== User Schemas ====================

class UserOut(CamelModel):
    """User output schema. There is deliberately no password field."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)

    id: int
    email: str
    first_name: str
    last_name: str
    is_active: bool
    created_at: datetime
    updated_at: datetime | None = None


class UserCreate(CamelModel):
    """Administrative creation of an account (no token is issued)."""
    email: EmailStr = Field(..., max_length=settings.USER_EMAIL_MAX_LENGTH)
    password: str = Field(..., min_length=1)
    first_name: str = Field(..., min_length=1)
    last_name: str = Field(..., min_length=1)
    is_active: bool = True

    strip_names = field_validator("first_name", "last_name")(_strip_name)


class UserUpdate(CamelModel):
    """Partial administrative update; omitted fields are left untouched."""
    email: EmailStr | None = None
    first_name: str | None = Field(None, min_length=1)
    last_name: str | None = Field(None, min_length=1)
    is_active: bool | None = None

    @field_validator("first_name", "last_name")
    @classmethod
    def validate_names(cls, v: str | None) -> str | None:
        return None if v is None else _require_name(v)


class ProfileUpdate(CamelModel):
    """Self-service profile update; empty values are ignored."""
    email: EmailStr | None = None
    first_name: str | None = None
    last_name: str | None = None

    @field_validator("email", "first_name", "last_name", mode="before")
    @classmethod
    def blank_to_none(cls, v):
        if isinstance(v, str) and not v.strip():
            return None
        return v.strip() if isinstance(v, str) else v


class PasswordChange(CamelModel):
    """Password change; the current password is re-verified before the new one is accepted."""
    current_password: str = Field(..., min_length=1)
    new_password: str = Field(..., min_length=1)


# ==================== Authentication Schemas ====================

class UserRegister(CamelModel):
    """Schema for self-registration."""
    email: EmailStr = Field(..., max_length=settings.USER_EMAIL_MAX_LENGTH, description="User's email address")
    password: str = Field(..., min_length=1, description="User's password")
    first_name: str = Field(..., min_length=1, description="User's first name")
    last_name: str = Field(..., min_length=1, description="User's last name")

    strip_names = field_validator("first_name", "last_name")(_strip_name)


class UserLogin(CamelModel):
    """Schema for user login credentials."""
    email: str = Field(..., min_length=1, description="User's email address")
    password: str = Field(..., min_length=1, description="User's password")


class TokenData(BaseModel):
    """Claims recovered from a verified bearer token."""
    user_id: int
    email: str


# ==================== Response Schemas ====================

class MessageResponse(BaseModel):
    message: str


class UserResponse(BaseModel):
    user: UserOut


class UserMessageResponse(BaseModel):
    message: str
    user: UserOut


class AuthResponse(BaseModel):
    """Login/registration response: a bearer token plus the account."""
    message: str
    token: str
    user: UserOut


# ==================== Pagination Schemas ====================

class Pagination(CamelModel):
    current_page: int
    total_pages: int
    total_items: int
    items_per_page: int
    has_next_page: bool
    has_previous_page: bool


class UserListResponse(BaseModel):
    """Paginated response with user items and metadata."""
    users: list[UserOut]
    count: int
    pagination: Pagination
