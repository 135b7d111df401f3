"""
SheetServer — FastAPI Application Factory
===========================================

What:  Creates and configures the FastAPI application instance.
How:   Factory pattern: create_app() returns a configured FastAPI instance.
Who:   Called by uvicorn to start the server (uvicorn sheetserver.main:app).
When:  Once at server startup; the returned app handles all subsequent requests.

Application Architecture:
    ┌──────────────────────────────────────────────────────────┐
    │                      FastAPI App                         │
    │                                                          │
    │  Middleware Chain:                                       │
    │  ┌──────────────┐ ┌──────────┐ ┌──────────────────────┐  │
    │  │  Rate Limit  │→│ Req ID   │→│  Logging             │  │
    │  └──────────────┘ └──────────┘ └──────────────────────┘  │
    │                                                          │
    │  Routes:                                                 │
    │  ┌───────────────────────────────────────┐ ┌──────────┐  │
    │  │ /api/spreadsheet/{id}/{resource}/...  │ │ /health  │  │
    │  └───────────────────────────────────────┘ └──────────┘  │
    │                                                          │
    │  Exception Handlers:                                     │
    │  ┌────────────────────────────────────────────────────┐  │
    │  │ InvalidInput→400 │ Unknown/NotFound→404 │          │  │
    │  │ Unsupported→405  │ Engine/LabelStore→500           │  │
    │  └────────────────────────────────────────────────────┘  │
    └──────────────────────────────────────────────────────────┘

Lifecycle:
    Startup:   logging → configuration check → label table creation (SQLite)
    Shutdown:  dispose database engine
"""

import logging
import sys
from contextlib import asynccontextmanager
from typing import Any, AsyncGenerator, Dict, Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import JSONResponse

from sheetserver import __version__
from sheetserver.config import settings
from sheetserver.database import dispose_engine, init_models
from sheetserver.exceptions import (
    InvalidInputError,
    LabelStoreError,
    NotFoundError,
    RateLimitExceededError,
    SheetServerError,
    SpreadsheetEngineError,
    UnknownReferenceError,
    UnsupportedOperationError,
)
from sheetserver.middleware.logging import RequestLoggingMiddleware
from sheetserver.middleware.rate_limit import RateLimitMiddleware
from sheetserver.middleware.request_id import RequestIDMiddleware, request_id_var
from sheetserver.routes import health, spreadsheet
from sheetserver.schemas.common import ErrorResponse

logger = logging.getLogger(__name__)


# ══════════════════════════════════════════════════════════════════════════
# Logging Configuration
# ══════════════════════════════════════════════════════════════════════════

def setup_logging() -> None:
    """
    Configure logging for the entire application.

    When:    Called once during app startup, before any other initialization.
    Format:  %(asctime)s [%(levelname)s] %(name)s: %(message)s
    """
    logging.basicConfig(
        level=getattr(logging, settings.log_level, logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%dT%H:%M:%S",
        handlers=[logging.StreamHandler(sys.stdout)],
        force=True,
    )

    # Third-party loggers are noisy at DEBUG/INFO
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
    logging.getLogger("aiosqlite").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)


# ══════════════════════════════════════════════════════════════════════════
# Application Lifespan (Startup & Shutdown)
# ══════════════════════════════════════════════════════════════════════════

@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """
    Startup sequence:
        1. Setup logging
        2. Validate critical configuration (logged, not fatal)
        3. Create the label_mappings table when running on SQLite
    Shutdown sequence:
        1. Dispose database engine (close all pooled connections)
    """
    # ── Startup ───────────────────────────────────────────────────────────
    setup_logging()
    logger.info("=" * 60)
    logger.info("SheetServer %s starting up...", __version__)

    try:
        settings.validate_required_for_production()
    except ValueError as e:
        logger.error("Configuration error: %s", str(e))
        logger.error("Fix the configuration and restart the server.")

    if settings.is_sqlite:
        await init_models()
        logger.info("Label store tables ready (SQLite)")

    logger.info("Server ready at http://%s:%d", settings.backend_host, settings.backend_port)
    logger.info("API docs: http://%s:%d/docs", settings.backend_host, settings.backend_port)
    logger.info("=" * 60)

    yield

    # ── Shutdown ──────────────────────────────────────────────────────────
    logger.info("SheetServer shutting down...")
    await dispose_engine()
    logger.info("Shutdown complete.")


# ══════════════════════════════════════════════════════════════════════════
# Exception Handlers
# ══════════════════════════════════════════════════════════════════════════

def _error(
    status_code: int,
    error: str,
    message: str,
    details: Optional[Dict[str, Any]] = None,
    headers: Optional[Dict[str, str]] = None,
) -> JSONResponse:
    body = ErrorResponse(
        error=error,
        message=message,
        details=details or None,
        request_id=request_id_var.get("") or None,
    )
    return JSONResponse(status_code=status_code, content=body.model_dump(), headers=headers)


def register_exception_handlers(app: FastAPI) -> None:
    """
    Register global exception handlers for consistent error responses.

    Handler hierarchy:
        InvalidInputError          → 400 invalid_input
        UnknownReferenceError      → 404 unknown_reference
        NotFoundError              → 404 not_found
        UnsupportedOperationError  → 405 unsupported_operation
        RateLimitExceededError     → 429 rate_limit_exceeded
        SpreadsheetEngineError     → 500 engine_error (engine message passed through)
        LabelStoreError            → 500 server_error (generic message)
        SheetServerError (base)    → 500 server_error
        Exception (fallback)       → 500 internal_server_error

    Server-side details (SQL errors, stack traces) are logged, never returned.
    """

    @app.exception_handler(InvalidInputError)
    async def handle_invalid_input(request: Request, exc: InvalidInputError):
        logger.warning("[%s] Invalid input: %s", request_id_var.get(""), exc.message)
        return _error(400, "invalid_input", exc.message, exc.context)

    @app.exception_handler(UnknownReferenceError)
    async def handle_unknown_reference(request: Request, exc: UnknownReferenceError):
        logger.warning("[%s] Unknown reference: %s", request_id_var.get(""), exc.label)
        return _error(404, "unknown_reference", exc.message, exc.context)

    @app.exception_handler(NotFoundError)
    async def handle_not_found(request: Request, exc: NotFoundError):
        return _error(404, "not_found", exc.message, exc.context)

    @app.exception_handler(UnsupportedOperationError)
    async def handle_unsupported(request: Request, exc: UnsupportedOperationError):
        logger.warning("[%s] Unsupported operation: %s", request_id_var.get(""), exc.message)
        return _error(405, "unsupported_operation", exc.message, exc.context)

    @app.exception_handler(RateLimitExceededError)
    async def handle_rate_limit(request: Request, exc: RateLimitExceededError):
        return _error(
            429, "rate_limit_exceeded", exc.message, exc.context,
            headers={"Retry-After": str(exc.retry_after)},
        )

    @app.exception_handler(SpreadsheetEngineError)
    async def handle_engine_error(request: Request, exc: SpreadsheetEngineError):
        logger.error(
            "[%s] Engine error: %s | Context: %s",
            request_id_var.get(""), exc.message, exc.context,
        )
        return _error(500, "engine_error", exc.message)

    @app.exception_handler(LabelStoreError)
    async def handle_label_store_error(request: Request, exc: LabelStoreError):
        logger.error(
            "[%s] Label store error: %s | Context: %s",
            request_id_var.get(""), exc.message, exc.context,
        )
        return _error(500, "server_error", "An internal error occurred. Please try again later.")

    @app.exception_handler(SheetServerError)
    async def handle_sheetserver_error(request: Request, exc: SheetServerError):
        logger.error("[%s] Unhandled application error: %s", request_id_var.get(""), exc.message)
        return _error(500, "server_error", exc.message)

    @app.exception_handler(Exception)
    async def handle_unexpected_error(request: Request, exc: Exception):
        """Stack trace is logged server-side only."""
        logger.error(
            "[%s] Unexpected error: %s", request_id_var.get(""), str(exc), exc_info=True
        )
        return _error(
            500,
            "internal_server_error",
            "An unexpected error occurred. Please try again or contact support.",
        )


# ══════════════════════════════════════════════════════════════════════════
# Application Factory
# ══════════════════════════════════════════════════════════════════════════

def create_app() -> FastAPI:
    """
    Create and configure the FastAPI application.

    Returns: Fully configured FastAPI instance ready to receive requests.
    Tests build fresh instances and override route dependencies on them.
    """
    app = FastAPI(
        title="SheetServer API",
        description=(
            "Hypermedia spreadsheet API: load, save, fill, insert and delete cells, "
            "columns and rows; resolve references and labels; compute viewport ranges."
        ),
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        lifespan=lifespan,
    )

    # ── Register Middleware ───────────────────────────────────────────────
    # Middleware executes in REVERSE order of addition:
    # RateLimit → RequestID → Logging → GZip → CORS → route
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["GET", "POST", "DELETE"],
        allow_headers=["*"],
        expose_headers=["X-Request-ID", "Retry-After"],
    )
    app.add_middleware(GZipMiddleware, minimum_size=500)
    app.add_middleware(RequestLoggingMiddleware)
    app.add_middleware(RequestIDMiddleware)
    app.add_middleware(RateLimitMiddleware)

    # ── Register Exception Handlers ───────────────────────────────────────
    register_exception_handlers(app)

    # ── Register Routes ───────────────────────────────────────────────────
    app.include_router(spreadsheet.router)
    app.include_router(health.router)

    return app


# ── Application Instance ─────────────────────────────────────────────────
# uvicorn imports `sheetserver.main:app`
app = create_app()
