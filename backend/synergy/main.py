"""
Synergy Backend: FastAPI Application Factory
=============================================

What:  Creates and configures the FastAPI application instance.
How:   create_app() registers middleware, exception handlers and routers,
       and attaches the lifespan that validates configuration on startup
       and disposes the engine on shutdown.
Who:   uvicorn (`uvicorn synergy.main:app`) and the API test suite.

Application Architecture:
    ┌──────────────────────────────────────────────────────────────┐
    │                        FastAPI App                           │
    │                                                              │
    │  Middleware: Request ID → Rate Limit → Logging → GZip → CORS │
    │                                                              │
    │  Routes: /api/users  /api/projects  /api/projects/{id}/...   │
    │          /api/notifications  /health                         │
    │                                                              │
    │  Exception Handlers:                                         │
    │   Validation→400  Auth→401  Forbidden→403  NotFound→404      │
    │   WorkflowConflict→409  RateLimit→429  Database→500          │
    └──────────────────────────────────────────────────────────────┘

Lifecycle:
    Startup:  logging, configuration check, purge of expired notifications
    Shutdown: dispose database engine
"""

import logging
import sys
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

from synergy import __version__
from synergy.config import settings
from synergy.database import async_session_factory, dispose_engine
from synergy.exceptions import (
    AuthenticationError,
    DatabaseError,
    ForbiddenError,
    NotFoundError,
    RateLimitExceededError,
    ValidationError,
    WorkflowConflictError,
)
from synergy.middleware.logging import RequestContextFilter, RequestLoggingMiddleware
from synergy.middleware.rate_limit import RateLimitMiddleware
from synergy.middleware.request_id import RequestIDMiddleware, request_id_var
from synergy.routes import applications, health, notifications, projects, users
from synergy.services.notification_service import notification_service

logger = logging.getLogger(__name__)


# ══════════════════════════════════════════════════════════════════════════
# Logging Configuration
# ══════════════════════════════════════════════════════════════════════════

def setup_logging() -> None:
    """
    Configure logging for the entire application.

    Format: timestamp [LEVEL] logger [request_id user_id]: message
    The request context comes from RequestContextFilter, attached to the
    stdout handler so records from any logger carry it.
    """
    handler = logging.StreamHandler(sys.stdout)
    handler.addFilter(RequestContextFilter())

    logging.basicConfig(
        level=getattr(logging, settings.log_level, logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s [%(request_id)s %(user_id)s]: %(message)s",
        datefmt="%Y-%m-%dT%H:%M:%S",
        handlers=[handler],
        force=True,
    )

    # Third-party libraries are chatty at INFO
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)


# ══════════════════════════════════════════════════════════════════════════
# Application Lifespan (Startup & Shutdown)
# ══════════════════════════════════════════════════════════════════════════

@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    # ── Startup ───────────────────────────────────────────────────────────
    setup_logging()
    logger.info("=" * 60)
    logger.info("Synergy Backend %s starting up (%s)...", __version__, settings.environment)

    # Misconfiguration in production must stop the process
    settings.validate_required_for_production()

    try:
        async with async_session_factory() as session:
            await notification_service.purge_expired(session)
            await session.commit()
    except SQLAlchemyError as e:
        # Database may still be coming up; /health reports it
        logger.warning("Skipping notification purge: %s", str(e))

    logger.info("Server ready at http://%s:%d", settings.backend_host, settings.backend_port)
    logger.info("=" * 60)

    yield

    # ── Shutdown ──────────────────────────────────────────────────────────
    logger.info("Synergy Backend shutting down...")
    await dispose_engine()
    logger.info("Shutdown complete.")


# ══════════════════════════════════════════════════════════════════════════
# Exception Handlers
# ══════════════════════════════════════════════════════════════════════════

def _error(status_code: int, error: str, message: str, details=None, headers=None) -> JSONResponse:
    content = {"error": error, "message": message, "request_id": request_id_var.get("")}
    if details:
        content["details"] = details
    return JSONResponse(status_code=status_code, content=content, headers=headers)


def register_exception_handlers(app: FastAPI) -> None:
    """
    Maps application exceptions to HTTP responses.

    Handler hierarchy:
        ValidationError         → 400 validation_error
        AuthenticationError     → 401 not_authenticated
        ForbiddenError          → 403 forbidden
        NotFoundError           → 404 not_found
        WorkflowConflictError   → 409 exc.error_code (duplicate_application,
                                  already_engaged, role_unavailable, team_full,
                                  invalid_state, capacity_conflict,
                                  concurrent_modification)
        RateLimitExceededError  → 429 rate_limit_exceeded
        DatabaseError           → 500 server_error
        Exception (fallback)    → 500 internal_server_error

    5xx responses never carry internal details; they are logged instead.
    """

    @app.exception_handler(ValidationError)
    async def handle_validation_error(request: Request, exc: ValidationError):
        logger.warning("Validation error: %s", exc.message)
        return _error(400, "validation_error", exc.message, exc.context)

    @app.exception_handler(AuthenticationError)
    async def handle_authentication_error(request: Request, exc: AuthenticationError):
        return _error(401, "not_authenticated", exc.message)

    @app.exception_handler(ForbiddenError)
    async def handle_forbidden(request: Request, exc: ForbiddenError):
        logger.warning("Forbidden: %s", exc.message)
        return _error(403, "forbidden", exc.message, exc.context)

    @app.exception_handler(NotFoundError)
    async def handle_not_found(request: Request, exc: NotFoundError):
        return _error(404, "not_found", exc.message, exc.context)

    @app.exception_handler(WorkflowConflictError)
    async def handle_workflow_conflict(request: Request, exc: WorkflowConflictError):
        logger.info("Rejected with %s: %s", exc.error_code, exc.message)
        return _error(409, exc.error_code, exc.message, exc.context)

    @app.exception_handler(RateLimitExceededError)
    async def handle_rate_limit(request: Request, exc: RateLimitExceededError):
        return _error(
            429,
            "rate_limit_exceeded",
            exc.message,
            exc.context,
            headers={"Retry-After": str(exc.retry_after)},
        )

    @app.exception_handler(DatabaseError)
    async def handle_database_error(request: Request, exc: DatabaseError):
        logger.error("Database error: %s | Context: %s", exc.message, exc.context)
        return _error(500, "server_error", "An internal error occurred. Please try again later.")

    @app.exception_handler(Exception)
    async def handle_unexpected_error(request: Request, exc: Exception):
        logger.error("Unexpected error: %s", str(exc), exc_info=True)
        return _error(
            500,
            "internal_server_error",
            "An unexpected error occurred. Please try again or contact support.",
        )


# ══════════════════════════════════════════════════════════════════════════
# Application Factory
# ══════════════════════════════════════════════════════════════════════════

def create_app() -> FastAPI:
    app = FastAPI(
        title="Synergy API",
        description=(
            "Startup team building: founders publish projects with open roles, "
            "job seekers apply, founders accept or reject, and teams form."
        ),
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        lifespan=lifespan,
    )

    # ── Register Middleware ───────────────────────────────────────────────
    # Last added runs first: RequestID → RateLimit → Logging → GZip → CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["X-Request-ID", "X-Total-Count", "Retry-After"],
    )
    app.add_middleware(GZipMiddleware, minimum_size=500)
    app.add_middleware(RequestLoggingMiddleware)
    app.add_middleware(RateLimitMiddleware)
    app.add_middleware(RequestIDMiddleware)

    # ── Register Exception Handlers ───────────────────────────────────────
    register_exception_handlers(app)

    # ── Register Routes ───────────────────────────────────────────────────
    app.include_router(users.router)
    app.include_router(projects.router)
    app.include_router(applications.router)
    app.include_router(notifications.router)
    app.include_router(health.router)

    return app


# ── Application Instance ─────────────────────────────────────────────────
app = create_app()
