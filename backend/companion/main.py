"""
Companion Backend — FastAPI Application Factory
=================================================

What:  Creates and configures the FastAPI application instance.
How:   create_app() registers middleware, exception handlers and routers;
       the lifespan context configures logging and disposes the engine.
Who:   uvicorn (`uvicorn companion.main:app`) and the API test suite.

Application Architecture:
    ┌──────────────────────────────────────────────────────────┐
    │                       FastAPI App                         │
    │                                                           │
    │  Middleware: RateLimit → RequestID → AccessLog → GZip → CORS
    │                                                           │
    │  Routes:                                                  │
    │    /api/auth      register, login, verify-email           │
    │    /api/users     profile, creator settings, uploads      │
    │    /api/kyc       upload-url, submit, status              │
    │    /api/admin     KYC review, seed, clear                 │
    │    /api/creators  directory, profile                      │
    │    /api/posts     upload-url, publish   /api/feed         │
    │    /api/messages  send, conversation                      │
    │    /api/bookings  request → approve/reject → complete     │
    │    /api/stripe    subscriptions, Connect, webhook         │
    │    /health                                                │
    │                                                           │
    │  Exception handlers: CompanionError → its status code,    │
    │  anything else → 500 with a request ID                    │
    └──────────────────────────────────────────────────────────┘
"""

import logging
import sys
from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncGenerator

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import JSONResponse

from companion.config import settings
from companion.database import dispose_engine
from companion.exceptions import (
    CircuitBreakerOpenError,
    CompanionError,
    RateLimitExceededError,
)
from companion.middleware.logging import RequestLoggingMiddleware
from companion.middleware.rate_limit import RateLimitMiddleware
from companion.middleware.request_id import RequestIDMiddleware, request_id_var
from companion.routes import (
    admin,
    auth,
    bookings,
    content,
    health,
    kyc,
    subscriptions,
    users,
)

logger = logging.getLogger(__name__)

NOISY_LOGGERS = ("uvicorn.access", "sqlalchemy.engine", "httpcore", "httpx", "botocore", "stripe")


# ══════════════════════════════════════════════════════════════════════════
# Logging
# ══════════════════════════════════════════════════════════════════════════

def setup_logging() -> None:
    """
    Configure root logging once, at startup.

    Format: %(asctime)s [%(levelname)s] %(name)s: %(message)s

    uvicorn's access log is replaced by RequestLoggingMiddleware; SDK
    loggers (boto, stripe, httpx) log every HTTP call at INFO and are
    raised to WARNING.
    """
    logging.basicConfig(
        level=getattr(logging, settings.log_level, logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%dT%H:%M:%S",
        handlers=[logging.StreamHandler(sys.stdout)],
        force=True,
    )
    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


# ══════════════════════════════════════════════════════════════════════════
# Application Lifespan
# ══════════════════════════════════════════════════════════════════════════

@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    # ── Startup ───────────────────────────────────────────────────────────
    setup_logging()
    logger.info("=" * 60)
    logger.info("Companion Backend starting up (environment=%s)", settings.environment)

    # Missing integrations degrade individual features; /health reports them.
    try:
        settings.validate_required_for_production()
    except ValueError as e:
        logger.error("Configuration error: %s", str(e))

    storage = Path(settings.storage_root)
    storage.mkdir(parents=True, exist_ok=True)
    logger.info("Local storage directory: %s", storage.resolve())
    logger.info("Server ready at http://%s:%d", settings.backend_host, settings.backend_port)
    logger.info("=" * 60)

    yield

    # ── Shutdown ──────────────────────────────────────────────────────────
    logger.info("Companion Backend shutting down...")
    await dispose_engine()
    logger.info("Shutdown complete.")


# ══════════════════════════════════════════════════════════════════════════
# Exception Handlers
# ══════════════════════════════════════════════════════════════════════════

def error_body(exc: CompanionError, rid: str) -> dict:
    body = {"error": exc.error_code, "message": exc.message, "request_id": rid}
    if exc.expose_context and exc.context:
        body["details"] = exc.context
    return body


def register_exception_handlers(app: FastAPI) -> None:
    """
    Map the CompanionError hierarchy onto JSON error responses.

    Every response has the shape {"error", "message", "details"?, "request_id"}.
    Status and error code come from the exception class. `details` is
    included only for classes that expose their context (validation,
    permission, conflict, card declines, rate limits).

    Server-side context is always logged; 5xx responses never include it.
    """

    @app.exception_handler(CircuitBreakerOpenError)
    async def handle_circuit_breaker(request: Request, exc: CircuitBreakerOpenError):
        rid = request_id_var.get("")
        logger.warning("[%s] Circuit breaker open: %s", rid, exc.message)
        body = error_body(exc, rid)
        body["details"] = {"recovery_time": exc.recovery_time}
        return JSONResponse(
            status_code=exc.status_code,
            content=body,
            headers={"Retry-After": str(exc.recovery_time)},
        )

    @app.exception_handler(RateLimitExceededError)
    async def handle_rate_limit(request: Request, exc: RateLimitExceededError):
        rid = request_id_var.get("")
        return JSONResponse(
            status_code=exc.status_code,
            content=error_body(exc, rid),
            headers={"Retry-After": str(exc.retry_after)},
        )

    @app.exception_handler(CompanionError)
    async def handle_companion_error(request: Request, exc: CompanionError):
        rid = request_id_var.get("")
        if exc.status_code >= 500:
            logger.error(
                "[%s] %s: %s | Context: %s", rid, type(exc).__name__, exc.message, exc.context
            )
        else:
            logger.warning("[%s] %s: %s", rid, type(exc).__name__, exc.message)
        return JSONResponse(status_code=exc.status_code, content=error_body(exc, rid))

    @app.exception_handler(Exception)
    async def handle_unexpected_error(request: Request, exc: Exception):
        """Stack trace goes to the log only; the client gets a request ID."""
        rid = request_id_var.get("")
        logger.error("[%s] Unexpected error: %s", rid, str(exc), exc_info=True)
        return JSONResponse(
            status_code=500,
            content={
                "error": "internal_server_error",
                "message": "An unexpected error occurred. Please try again or contact support.",
                "request_id": rid,
            },
        )


# ══════════════════════════════════════════════════════════════════════════
# Application Factory
# ══════════════════════════════════════════════════════════════════════════

def create_app() -> FastAPI:
    app = FastAPI(
        title="Companion API",
        description=(
            "Creator subscription and booking platform: KYC-verified creators, "
            "tiered subscriptions, paid in-person bookings with manual-capture "
            "payments, and Stripe Connect payouts."
        ),
        version="1.0.0",
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        lifespan=lifespan,
    )

    # ── Middleware ────────────────────────────────────────────────────────
    # Last added runs first: RateLimit → RequestID → Logging → GZip → CORS.
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["X-Request-ID", "Retry-After"],
    )
    app.add_middleware(GZipMiddleware, minimum_size=500)
    app.add_middleware(RequestLoggingMiddleware)
    app.add_middleware(RequestIDMiddleware)
    app.add_middleware(RateLimitMiddleware)

    register_exception_handlers(app)

    # ── Routes ────────────────────────────────────────────────────────────
    for module in (auth, users, kyc, admin, content, bookings, subscriptions, health):
        app.include_router(module.router)

    return app


app = create_app()
