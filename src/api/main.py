"""
Application factory.

Wires the SQLite store, the email client and the notification dispatcher
into a FastAPI app. Everything shared across requests is built here once
and released in the lifespan shutdown.
"""

from __future__ import annotations

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from src.adapters.dev_email import DevEmailAdapter
from src.adapters.http_email import HttpEmailClient
from src.adapters.sqlite_db import SQLiteSubscriptionStore
from src.app_shell.config import Settings
from src.components.notifications import NotificationDispatcher
from src.components.subscriptions.models import PersistenceError
from src.core.ports.email import EmailPort
from src.shell.http.health import DatabaseCheck, create_health_router
from src.shell.http.request_context import RequestContextMiddleware

logger = logging.getLogger(__name__)

APP_VERSION = "0.1.0"


def build_email_client(settings: Settings) -> HttpEmailClient | DevEmailAdapter:
    """Build the email client selected by email_client.backend."""
    cfg = settings.email_client
    if cfg.backend == "dev":
        return DevEmailAdapter()
    return HttpEmailClient(
        base_url=cfg.base_url,
        sender=cfg.sender(),
        authorization_token=cfg.credential(),
        timeout_ms=cfg.timeout_milliseconds,
    )


async def persistence_error_handler(request: Request, exc: Exception) -> JSONResponse:
    """Log storage failures with their cause chain; clients get a generic 500."""
    logger.error(
        "Storage failure handling %s %s",
        request.method,
        request.url.path,
        exc_info=exc,
    )
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": "Internal server error"},
    )


async def request_validation_error_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """Undecodable or invalid request bodies are client errors: 400."""
    problems = [
        f"{'.'.join(str(part) for part in error['loc'][1:]) or 'body'}: {error['msg']}"
        for error in exc.errors()
    ]
    logger.info("Rejected %s %s: %s", request.method, request.url.path, problems)
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"detail": "; ".join(problems) or "Invalid request"},
    )


def create_app(
    settings: Settings,
    email_client: EmailPort | None = None,
) -> FastAPI:
    """
    Create the application.

    Args:
        settings: Validated settings
        email_client: Overrides the configured email backend (tests)

    Returns:
        Configured FastAPI app
    """
    client = email_client if email_client is not None else build_email_client(settings)
    store = SQLiteSubscriptionStore(
        settings.database.path,
        busy_timeout_seconds=settings.database.busy_timeout_seconds,
    )

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        """Application lifespan handler for startup/shutdown."""
        logger.info(
            "Starting letterbox (database=%s, email backend=%s)",
            settings.database.path,
            settings.email_client.backend,
        )
        yield
        close = getattr(client, "close", None)
        if close is not None:
            close()
        logger.info("Shutdown complete")

    app = FastAPI(
        title="Letterbox API",
        version=APP_VERSION,
        lifespan=lifespan,
        docs_url="/docs",
        redoc_url="/redoc",
    )

    app.state.settings = settings
    app.state.email_client = client
    app.state.subscription_store = store
    app.state.notification_dispatcher = NotificationDispatcher(
        email_client=client,
        base_url=settings.application.base_url,
    )

    app.add_middleware(RequestContextMiddleware)
    app.add_exception_handler(PersistenceError, persistence_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_error_handler)

    # --- Routers ---
    from src.api.routes import newsletters, subscriptions

    app.include_router(subscriptions.router, tags=["Subscriptions"])
    app.include_router(newsletters.router, tags=["Newsletters"])
    app.include_router(
        create_health_router(APP_VERSION, [DatabaseCheck(store.ping)]),
    )

    return app
