"""FastAPI application factory and lifecycle."""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from newsdesk import __version__
from newsdesk.api.routes import router
from newsdesk.config import Settings
from newsdesk.errors import FeatureDisabledError, NewsdeskError, NotFoundError, ValidationError
from newsdesk.http.fetcher import HttpFetcher
from newsdesk.ingestion.scheduler import RefreshScheduler
from newsdesk.ingestion.sources.base import FeedSource
from newsdesk.services import build_services

logger = logging.getLogger(__name__)

ERROR_STATUS: dict[type[NewsdeskError], int] = {
    ValidationError: 400,
    NotFoundError: 404,
    FeatureDisabledError: 403,
}


def create_app(
    settings: Settings | None = None,
    *,
    source: FeedSource | None = None,
    fetcher: HttpFetcher | None = None,
) -> FastAPI:
    """Build the API; ``source`` and ``fetcher`` replace the network-facing collaborators."""

    app_settings = settings or Settings.from_env()
    app_settings.validate()

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        services = build_services(app_settings, fetcher=fetcher, source=source)
        scheduler = RefreshScheduler(
            refresh=services.refresher.refresh_all,
            refresh_minutes=services.reader_settings.get().refresh_minutes,
            retention=services.retention.sweep,
            retention_minutes=app_settings.scheduler.retention_sweep_minutes,
        )
        app.state.services = services
        app.state.scheduler = scheduler
        if app_settings.scheduler.enabled:
            scheduler.start()
            scheduler.trigger_poll()
        else:
            logger.info("Scheduler disabled by configuration")
        try:
            yield
        finally:
            scheduler.stop()
            services.close()

    app = FastAPI(title="Newsdesk", version=__version__, lifespan=lifespan)
    app.include_router(router, prefix="/api")

    @app.exception_handler(NewsdeskError)
    async def handle_newsdesk_error(_: Request, error: NewsdeskError) -> JSONResponse:
        status_code = ERROR_STATUS.get(type(error), 400)
        return JSONResponse(
            status_code=status_code,
            content={"message": error.message, "code": error.code},
        )

    @app.exception_handler(RequestValidationError)
    async def handle_request_validation(_: Request, error: RequestValidationError) -> JSONResponse:
        problems = "; ".join(
            f"{'.'.join(str(part) for part in issue['loc'] if part != 'body')}: {issue['msg']}"
            for issue in error.errors()
        )
        return JSONResponse(
            status_code=400,
            content={"message": problems or "Invalid request", "code": "validation_error"},
        )

    return app
