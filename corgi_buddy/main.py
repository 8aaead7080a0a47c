from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import Callable, Optional

from fastapi import FastAPI
from sqlalchemy.orm import Session

from corgi_buddy.api.v1.router import v1_router
from corgi_buddy.core.config import Settings, get_settings
from corgi_buddy.core.container import build_container
from corgi_buddy.core.errors import register_exception_handlers
from corgi_buddy.core.logging import configure_logging
from corgi_buddy.core.middleware import RequestIdMiddleware
from corgi_buddy.jobs.scheduler import ReconciliationScheduler
from corgi_buddy.services.chain_client import ChainClient
from corgi_buddy.services.notification_service import NotificationService
from corgi_buddy.services.retry import Sleep

logger = logging.getLogger(__name__)


def create_app(
    settings: Optional[Settings] = None,
    *,
    session_factory: Optional[Callable[[], Session]] = None,
    chain: Optional[ChainClient] = None,
    notifications: Optional[NotificationService] = None,
    sleep: Optional[Sleep] = None,
) -> FastAPI:
    settings = settings or get_settings()
    configure_logging(settings)

    if session_factory is None:
        from corgi_buddy.db.session import SessionLocal

        session_factory = SessionLocal

    container = build_container(
        settings,
        session_factory=session_factory,
        chain=chain,
        notifications=notifications,
        sleep=sleep,
    )

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        scheduler = None
        if settings.reconciliation_enabled:
            scheduler = ReconciliationScheduler(container)
            scheduler.start()
        app.state.scheduler = scheduler
        logger.info("[app] started env=%s", settings.environment)
        try:
            yield
        finally:
            if scheduler is not None:
                scheduler.shutdown()

    app = FastAPI(
        title=settings.app_name,
        version="0.1.0",
        lifespan=lifespan,
    )
    app.state.container = container

    # Middleware: Request ID
    app.add_middleware(RequestIdMiddleware, header_name=settings.request_id_header)

    register_exception_handlers(app)

    # API v1
    app.include_router(v1_router, prefix=settings.api_prefix)

    return app
