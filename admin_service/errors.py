"""Exception handlers rendering every failure as ``{"error": message}``."""

import traceback

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.exc import IntegrityError
from starlette.exceptions import HTTPException as StarletteHTTPException

from .auth import SecretNotConfiguredError
from .config import settings
from .logger import get_logger

logger = get_logger("error")


def _field_name(loc) -> str:
    # loc looks like ("body", "firstName") or ("query", "page")
    parts = [str(p) for p in loc if p not in ("body", "query", "path", "header")]
    return ".".join(parts) or "body"


def format_validation_errors(errors: list[dict]) -> str:
    """Turn pydantic error entries into one readable sentence."""
    if any(e.get("type") == "json_invalid" for e in errors):
        return "Invalid JSON body"
    missing = [_field_name(e["loc"]) for e in errors if e.get("type") == "missing"]
    if missing:
        verb = "is" if len(missing) == 1 else "are"
        return f"{', '.join(missing)} {verb} required"
    return "; ".join(f"{_field_name(e['loc'])}: {e['msg']}" for e in errors)


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    detail = exc.detail if isinstance(exc.detail, str) else str(exc.detail)
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": detail},
        headers=getattr(exc, "headers", None),
    )


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    message = format_validation_errors(exc.errors())
    logger.debug(f"Validation failed for {request.method} {request.url.path}: {message}")
    return JSONResponse(status_code=400, content={"error": message})


async def secret_not_configured_handler(request: Request, exc: SecretNotConfiguredError) -> JSONResponse:
    logger.error(f"{request.method} {request.url.path} - JWT secret not configured")
    return JSONResponse(status_code=500, content={"error": "JWT secret not configured"})


async def integrity_error_handler(request: Request, exc: IntegrityError) -> JSONResponse:
    logger.warning(f"{request.method} {request.url.path} - integrity error: {exc.orig}")
    return JSONResponse(status_code=409, content={"error": "Resource already exists"})


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Last-resort handler: log with request context, hide details in production."""
    request_id = getattr(request.state, "request_id", "unknown")
    logger.error(
        f"[{request_id}] Unhandled error on {request.method} {request.url.path}: {exc}",
        exc_info=exc,
    )
    content = {"error": "Internal server error"}
    if not settings.is_production:
        content["stack"] = "".join(traceback.format_exception(type(exc), exc, exc.__traceback__))
    return JSONResponse(status_code=500, content=content)


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(SecretNotConfiguredError, secret_not_configured_handler)
    app.add_exception_handler(IntegrityError, integrity_error_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)
