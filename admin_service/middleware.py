"""HTTP middleware for request tracking, logging, and security headers."""

from fastapi import Request
from fastapi.responses import JSONResponse
import time
import uuid
from .config import settings
from .logger import get_logger

logger = get_logger("server")

# Set by main.py to avoid a circular import
shutdown_manager = None

REQUEST_ID_HEADER = "X-Request-ID"

SECURITY_HEADERS = {
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "DENY",
    "X-XSS-Protection": "0",
    "Referrer-Policy": "no-referrer",
    "Cross-Origin-Opener-Policy": "same-origin",
    "Cross-Origin-Resource-Policy": "same-origin",
    "X-DNS-Prefetch-Control": "off",
    "X-Permitted-Cross-Domain-Policies": "none",
    # The interactive docs pull their assets from jsdelivr
    "Content-Security-Policy": (
        "default-src 'self'; "
        "script-src 'self' 'unsafe-inline' https://cdn.jsdelivr.net; "
        "style-src 'self' 'unsafe-inline' https://cdn.jsdelivr.net; "
        "img-src 'self' data: https://fastapi.tiangolo.com; "
        "frame-ancestors 'none'"
    ),
}


def set_shutdown_manager(manager):
    """Register the shutdown manager instance (called from main.py)."""
    global shutdown_manager
    shutdown_manager = manager


# ==================== Graceful Shutdown Middleware ====================

async def graceful_shutdown_middleware(request: Request, call_next):
    """Count in-flight requests and turn new ones away once shutdown has begun."""
    if shutdown_manager is None:
        return await call_next(request)

    if shutdown_manager.is_shutting_down:
        logger.warning(f"Rejecting {request.method} {request.url.path} - shutdown in progress")
        return JSONResponse(
            status_code=503,
            content={"error": "Service is shutting down - please retry shortly"},
            headers={"Retry-After": "10"},
        )

    shutdown_manager.request_started()
    try:
        return await call_next(request)
    finally:
        shutdown_manager.request_finished()


# ==================== Request ID Middleware ====================

async def add_request_id_middleware(request: Request, call_next):
    """Propagate the caller's X-Request-ID, or mint one, for log correlation."""
    request_id = request.headers.get(REQUEST_ID_HEADER) or uuid.uuid4().hex
    request.state.request_id = request_id

    response = await call_next(request)
    response.headers[REQUEST_ID_HEADER] = request_id
    return response


# ==================== Request Logging Middleware ====================

async def request_logging_middleware(request: Request, call_next):
    """Log each request with its status and duration."""
    started = time.perf_counter()
    request_id = getattr(request.state, "request_id", "unknown")
    client = request.client.host if request.client else "-"

    try:
        response = await call_next(request)
    except Exception as e:
        logger.error(
            f"[{request_id}] {request.method} {request.url.path} from {client} - "
            f"failed after {time.perf_counter() - started:.3f}s: {e}"
        )
        raise

    level_log = logger.warning if response.status_code >= 500 else logger.info
    level_log(
        f"[{request_id}] {request.method} {request.url.path} from {client} - "
        f"{response.status_code} in {time.perf_counter() - started:.3f}s"
    )
    return response


# ==================== Security Headers Middleware ====================

async def security_headers_middleware(request: Request, call_next):
    """Attach helmet-style security headers to every response."""
    response = await call_next(request)

    for name, value in SECURITY_HEADERS.items():
        response.headers.setdefault(name, value)

    if settings.is_production:
        response.headers["Strict-Transport-Security"] = "max-age=31536000; includeSubDomains"

    return response
