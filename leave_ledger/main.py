from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from leave_ledger.api.health import router as health_router
from leave_ledger.api.router import api_router
from leave_ledger.config import Settings, get_settings
from leave_ledger.db import dispose_engine, get_session_factory
from leave_ledger.exceptions import setup_exception_handlers
from leave_ledger.services.directory import (
    CachedEmployeeDirectory,
    EmployeeDirectory,
    HttpEmployeeSource,
    InMemoryEmployeeDirectory,
)
from leave_ledger.services.notification import NotificationBridge, Notifier, NullNotifier, WebhookTransport

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

logger = logging.getLogger(__name__)


def build_directory(settings: Settings) -> EmployeeDirectory:
    """Cached HTTP directory when ``directory_url`` is configured, else an empty in-memory one."""
    if settings.directory_url is None:
        logger.warning("DIRECTORY_URL not set, using an empty in-memory employee directory")
        return InMemoryEmployeeDirectory()
    source = HttpEmployeeSource(settings.directory_url, timeout=settings.directory_timeout_seconds)
    return CachedEmployeeDirectory(source, max_age_seconds=settings.directory_max_age_seconds)


def build_notifier(settings: Settings, directory: EmployeeDirectory) -> Notifier:
    """Notification bridge, or a no-op notifier when notifications are disabled."""
    if not settings.notifications_enabled:
        return NullNotifier()
    transport = None
    if settings.notification_webhook_url is not None:
        transport = WebhookTransport(settings.notification_webhook_url)
    return NotificationBridge(get_session_factory(), directory, transport)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Own the directory and notifier for the lifetime of the application."""
    settings = get_settings()
    logger.info("Starting %s v%s [%s]", settings.app_name, settings.app_version, settings.environment)

    directory = build_directory(settings)
    notifier = build_notifier(settings, directory)
    app.state.directory = directory
    app.state.notifier = notifier

    yield

    if isinstance(notifier, NotificationBridge):
        await notifier.drain()
    await dispose_engine()
    logger.info("Shutting down %s", settings.app_name)


def create_app() -> FastAPI:
    """Application factory."""
    settings = get_settings()

    application = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        debug=settings.debug,
        lifespan=lifespan,
        docs_url="/docs" if settings.environment != "production" else None,
        redoc_url="/redoc" if settings.environment != "production" else None,
    )

    application.add_middleware(
        CORSMiddleware,  # ty: ignore[invalid-argument-type]
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    setup_exception_handlers(application)

    application.include_router(health_router)
    application.include_router(api_router)

    return application


app = create_app()
