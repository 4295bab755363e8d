# API route definitions (HTTP layer)
# Fixed /users/* paths are declared before /users/{user_id} so they are matched first

import os
from datetime import datetime, timezone
from fastapi import APIRouter, Request, Depends
from fastapi.responses import JSONResponse, Response
from .schemas import (
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
    UserOut,
    ErrorResponse,
)
from .models import User
from .dependencies import get_current_user
from . import db
from . import services
from .config import settings
from slowapi import Limiter
from slowapi.util import get_remote_address

limiter = Limiter(key_func=get_remote_address)

AUTH_ERRORS = {401: {"model": ErrorResponse}}


# Helper to conditionally apply rate limiting (skip in tests)
def conditional_limit(limit_string):
    """Apply rate limit only if not in test mode."""
    if os.getenv('TEST_MODE'):
        def decorator(func):
            return func
        return decorator
    return limiter.limit(limit_string)


router = APIRouter()


@router.get("/")
def root():
    return {"app": settings.APP_NAME, "env": settings.APP_ENV}


@router.get("/health")
async def health_check():
    """Health check endpoint for load balancers and monitoring.

    Returns:
        - 200 OK if the service and database are healthy
        - 503 Service Unavailable if the database is unreachable
    """
    health_status = {
        "status": "OK",
        "message": "Server is running",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "service": settings.APP_NAME,
        "environment": settings.APP_ENV,
        "database": "connected",
    }

    if not await db.check_db_connection():
        health_status["status"] = "unhealthy"
        health_status["message"] = "Database unavailable"
        health_status["database"] = "disconnected"
        return JSONResponse(status_code=503, content=health_status)

    return health_status


@router.get("/favicon.ico", include_in_schema=False)
async def favicon():
    return Response(status_code=204)


# ============================================================================
# Authentication Endpoints
# ============================================================================

@router.post("/auth/register", response_model=AuthResponse, status_code=201,
             responses={409: {"model": ErrorResponse}})
@conditional_limit(settings.RATE_LIMIT_AUTH)
async def register(user: UserRegister, request: Request):
    """Register a new account and return a bearer token for it.

    Raises:
        400: Missing fields, malformed email or short password
        409: Email already registered
    """
    return await services.register_user(user)


@router.post("/auth/login", response_model=AuthResponse, responses=AUTH_ERRORS)
@conditional_limit(settings.RATE_LIMIT_AUTH)
async def login(credentials: UserLogin, request: Request):
    """Exchange email and password for a bearer token.

    Raises:
        401: Invalid credentials or deactivated account
    """
    return await services.authenticate_user(credentials)


@router.get("/auth/me", response_model=UserResponse, responses=AUTH_ERRORS)
@conditional_limit(settings.RATE_LIMIT_READ)
async def me(request: Request, current_user: User = Depends(get_current_user)):
    """Return the account behind the bearer token."""
    return UserResponse(user=UserOut.model_validate(current_user))


@router.post("/auth/logout", response_model=MessageResponse, responses=AUTH_ERRORS)
async def logout(current_user: User = Depends(get_current_user)):
    # Tokens are stateless: the client drops its copy
    return MessageResponse(message="Logout successful")


# ============================================================================
# User Management Endpoints
# ============================================================================

@router.get("/users", response_model=UserListResponse, responses=AUTH_ERRORS)
@conditional_limit(settings.RATE_LIMIT_READ)
async def list_users(
    request: Request,
    page: int = settings.DEFAULT_PAGE,
    limit: int = settings.DEFAULT_LIMIT,
    search: str | None = None,  # matches first name, last name or email
    status: str = "all",  # all | active | inactive
    sort: str = "createdAt",
    order: str = "desc",
    current_user: User = Depends(get_current_user),
):
    return await services.list_users(
        page=page,
        limit=limit,
        search=search,
        status=status,
        sort=sort,
        order=order,
    )


@router.post("/users", response_model=UserMessageResponse, status_code=201, responses=AUTH_ERRORS)
@conditional_limit(settings.RATE_LIMIT_WRITE)
async def create_user(
    data: UserCreate,
    request: Request,
    current_user: User = Depends(get_current_user),
):
    return await services.create_user(data)


@router.put("/users/profile", response_model=UserMessageResponse, responses=AUTH_ERRORS)
@conditional_limit(settings.RATE_LIMIT_WRITE)
async def update_profile(
    data: ProfileUpdate,
    request: Request,
    current_user: User = Depends(get_current_user),
):
    return await services.update_profile(current_user, data)


@router.put("/users/password", response_model=MessageResponse, responses=AUTH_ERRORS)
@conditional_limit(settings.RATE_LIMIT_WRITE)
async def change_password(
    data: PasswordChange,
    request: Request,
    current_user: User = Depends(get_current_user),
):
    return await services.change_password(current_user, data)


@router.delete("/users/account", response_model=MessageResponse, responses=AUTH_ERRORS)
@conditional_limit(settings.RATE_LIMIT_WRITE)
async def deactivate_account(request: Request, current_user: User = Depends(get_current_user)):
    return await services.deactivate_account(current_user)


@router.get("/users/{user_id}", response_model=UserResponse, responses=AUTH_ERRORS)
@conditional_limit(settings.RATE_LIMIT_READ)
async def get_user(user_id: int, request: Request, current_user: User = Depends(get_current_user)):
    return await services.get_user(user_id)


@router.put("/users/{user_id}", response_model=UserMessageResponse, responses=AUTH_ERRORS)
@conditional_limit(settings.RATE_LIMIT_WRITE)
async def update_user(
    user_id: int,
    data: UserUpdate,
    request: Request,
    current_user: User = Depends(get_current_user),
):
    return await services.update_user(user_id, data)


@router.delete("/users/{user_id}", response_model=MessageResponse, responses=AUTH_ERRORS)
@conditional_limit(settings.RATE_LIMIT_WRITE)
async def delete_user(user_id: int, request: Request, current_user: User = Depends(get_current_user)):
    return await services.delete_user(user_id, current_user)
