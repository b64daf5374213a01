"""
FastAPI application entry point for the energy analytics API.

Loads settings at startup, parses USER_TOKENS into a BearerAuth instance,
creates the shared database session factory, and registers the analytics
and health routers. AnalyticsError subclasses are turned into JSON error
responses carrying their status code.

CHANGELOG:
- 2026-10-15: Register analytics router and AnalyticsError handler (STORY-112)
- 2026-10-14: Structured JSON logging (STORY-112)
- 2026-10-12: Initial creation (STORY-102)
"""

import json
import logging
import os
import sys
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from datetime import UTC, datetime

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from energy_analytics import __version__
from energy_analytics.api.analytics import router as analytics_router
from energy_analytics.api.auth import BearerAuth, parse_user_tokens
from energy_analytics.api.health import router as health_router
from energy_analytics.config import get_settings, parse_cors_origins
from energy_analytics.db.session import dispose_engine, init_engine
from energy_analytics.errors import AnalyticsError

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Structured JSON logging setup
# ---------------------------------------------------------------------------


class _JsonFormatter(logging.Formatter):
    """Minimal JSON log formatter."""

    def format(self, record: logging.LogRecord) -> str:
        log_entry = {
            "ts": datetime.fromtimestamp(record.created, tz=UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
        }
        if record.exc_info and record.exc_info[1] is not None:
            log_entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(log_entry)


def configure_logging(level: str = "INFO") -> None:
    """Install a JSON handler writing to stderr on the root logger."""
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(_JsonFormatter())
    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(level)


# ---------------------------------------------------------------------------
# Lifespan
# ---------------------------------------------------------------------------


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan: configuration, auth, and database setup.

    Raises:
        RuntimeError: If USER_TOKENS contains no valid token:user_id entries.
    """
    settings = get_settings()
    configure_logging(settings.log_level)
    app.state.settings = settings

    token_map = parse_user_tokens(settings.user_tokens)
    if not token_map:
        raise RuntimeError(
            "USER_TOKENS parsed but contains no valid token:user_id entries"
        )
    app.state.auth = BearerAuth(token_map)
    logger.info("Parsed %d user token(s) from USER_TOKENS", len(token_map))

    app.state.session_factory = init_engine(settings.database_url)

    logger.info("Environment validated, energy analytics API ready")
    yield
    await dispose_engine()
    logger.info("Energy analytics API shutting down")


def create_app() -> FastAPI:
    """Build the FastAPI application."""
    application = FastAPI(
        title="Energy Analytics API",
        description="Site analytics for the P2P energy-trading platform.",
        version=__version__,
        lifespan=lifespan,
    )

    # Middleware must be installed before startup, so CORS is read eagerly.
    origins = parse_cors_origins(os.environ.get("CORS_ORIGINS", ""))
    if origins:
        application.add_middleware(
            CORSMiddleware,
            allow_origins=origins,
            allow_methods=["GET"],
            allow_headers=["Authorization"],
        )

    @application.exception_handler(AnalyticsError)
    async def _analytics_error_handler(
        request: Request, exc: AnalyticsError
    ) -> JSONResponse:
        if exc.status_code >= 500:
            logger.error("%s %s failed: %s", request.method, request.url.path, exc)
        return JSONResponse(status_code=exc.status_code, content={"detail": exc.message})

    application.include_router(health_router)
    application.include_router(analytics_router)

    @application.get("/")
    async def root() -> dict:
        """Root health check endpoint."""
        return {"status": "ok"}

    return application


app = create_app()
