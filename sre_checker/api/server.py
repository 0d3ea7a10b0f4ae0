"""FastAPI server for the status feed."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from sre_checker.api.feed_routes import feed_router
from sre_checker.config import Settings
from sre_checker.health.scheduler import HealthScheduler
from sre_checker.health.store import StatusStore

logger = logging.getLogger(__name__)


def create_app(
    settings: Settings,
    store: StatusStore,
    scheduler: HealthScheduler | None = None,
) -> FastAPI:
    """Build the feed app; the scheduler, if given, runs for the app's lifetime."""

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if scheduler is not None:
            try:
                await scheduler.start()
            except Exception:
                logger.exception("Scheduler failed to start")
                raise
        try:
            yield
        finally:
            if scheduler is not None:
                await scheduler.stop()

    app = FastAPI(
        title=f"{settings.service_name} Services Monitor",
        version="0.1.0",
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.store = store
    app.state.scheduler = scheduler
    app.include_router(feed_router)
    return app
