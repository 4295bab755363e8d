"""FastAPI application entry point with lifecycle management."""

from fastapi import FastAPI
from contextlib import asynccontextmanager
from fastapi.middleware.cors import CORSMiddleware
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
import asyncio

from .config import settings
from .routes import router, limiter
from . import db
from .errors import register_exception_handlers
from .logger import get_logger
from .middleware import (
    graceful_shutdown_middleware,
    add_request_id_middleware,
    request_logging_middleware,
    security_headers_middleware,
    set_shutdown_manager,
)
from .monitoring import setup_monitoring

logger = get_logger("server")

# ==================== Graceful Shutdown ====================


class GracefulShutdownManager:
    """Manages graceful shutdown of the application.

    Tracks active requests and lets in-flight requests complete (up to
    ``shutdown_timeout`` seconds) before the database pool is closed.
    """

    def __init__(self):
        self.is_shutting_down = False
        self.active_requests = 0
        self.shutdown_timeout = settings.GRACEFUL_SHUTDOWN_TIMEOUT

    def request_started(self):
        """Track a new incoming request."""
        if not self.is_shutting_down:
            self.active_requests += 1

    def request_finished(self):
        """Mark a request as completed."""
        if self.active_requests > 0:
            self.active_requests -= 1

    async def initiate_shutdown(self) -> bool:
        """Stop admitting requests and wait for the in-flight ones.

        Returns:
            True if every active request finished, False if the timeout forced the stop
        """
        if self.is_shutting_down:
            return self.active_requests == 0

        logger.info("Graceful shutdown initiated")
        self.is_shutting_down = True

        if self.active_requests == 0:
            logger.info("No active requests - proceeding with immediate shutdown")
            return True

        logger.info(f"Waiting for {self.active_requests} active request(s) to complete...")
        loop = asyncio.get_running_loop()
        deadline = loop.time() + self.shutdown_timeout
        while self.active_requests > 0:
            if loop.time() >= deadline:
                logger.error(
                    f"Shutdown timeout ({self.shutdown_timeout}s) reached with "
                    f"{self.active_requests} request(s) still active - forcing shutdown"
                )
                return False
            await asyncio.sleep(0.1)

        logger.info("All active requests completed successfully")
        return True


shutdown_manager = GracefulShutdownManager()
set_shutdown_manager(shutdown_manager)

# ==================== Application Lifecycle ====================


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan - blocks until the database answers, drains requests on shutdown."""
    logger.info(f"Starting {settings.APP_NAME} in {settings.APP_ENV} mode")
    if not settings.JWT_SECRET_KEY:
        logger.warning("JWT_SECRET_KEY is not set - login, registration and protected routes will fail")

    await db.wait_for_db()
    if settings.DB_AUTO_CREATE:
        await db.create_tables()
    else:
        logger.info("Database schema managed by Alembic migrations")

    logger.info(f"{settings.APP_NAME} started successfully - ready to accept requests")

    yield

    logger.info(f"Shutting down {settings.APP_NAME}...")
    await shutdown_manager.initiate_shutdown()
    await db.dispose_engine()
    logger.info(f"{settings.APP_NAME} shutdown complete")

# ==================== Application Setup ====================


def create_app() -> FastAPI:
    app = FastAPI(title=settings.APP_NAME, lifespan=lifespan)

    # Middleware registration (last registered = outermost layer)
    app.middleware("http")(security_headers_middleware)
    app.middleware("http")(request_logging_middleware)
    app.middleware("http")(add_request_id_middleware)
    app.middleware("http")(graceful_shutdown_middleware)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.get_cors_origins(),
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["X-Request-ID"],
    )

    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)
    register_exception_handlers(app)

    app.include_router(router, prefix=settings.API_PREFIX)

    setup_monitoring(app)
    return app


app = create_app()


def run() -> None:
    """Serve the API with uvicorn.

    uvicorn handles SIGINT/SIGTERM: it stops accepting connections, runs the
    lifespan shutdown above and kills whatever is left after the timeout.
    """
    import uvicorn

    uvicorn.run(
        "admin_service.main:app",
        host=settings.HOST,
        port=settings.PORT,
        log_level=settings.LOG_LEVEL.lower(),
        timeout_graceful_shutdown=settings.GRACEFUL_SHUTDOWN_TIMEOUT,
    )


if __name__ == "__main__":
    run()
