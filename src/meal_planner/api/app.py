"""FastAPI application factory."""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

from meal_planner.api.calendars import router as calendars_router
from meal_planner.api.sync import router as sync_router
from meal_planner.api.unmatched_events import router as unmatched_router
from meal_planner.app_logging import configure_logging
from meal_planner.containers import AppContainer
from meal_planner.domain.errors import (
    CalendarApiError,
    MealSyncError,
    MissingCredentialsError,
    RecipeNotFoundError,
    SlotOccupiedError,
    UnmatchedEventClosedError,
    UnmatchedEventNotFoundError,
)

_ERROR_STATUS: dict[type[MealSyncError], int] = {
    UnmatchedEventNotFoundError: status.HTTP_404_NOT_FOUND,
    RecipeNotFoundError: status.HTTP_404_NOT_FOUND,
    UnmatchedEventClosedError: status.HTTP_409_CONFLICT,
    SlotOccupiedError: status.HTTP_409_CONFLICT,
    MissingCredentialsError: status.HTTP_401_UNAUTHORIZED,
    CalendarApiError: status.HTTP_502_BAD_GATEWAY,
}


def create_app(container: AppContainer) -> FastAPI:
    """Create a FastAPI app configured with dependencies."""
    configure_logging()
    logger = logging.getLogger(__name__)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        state_container: AppContainer = app.state.container
        if state_container.settings.sync_enabled:
            state_container.scheduler.start()
        else:
            logger.info("Background sync disabled")
        yield
        await state_container.scheduler.stop()
        await state_container.close_resources()

    app = FastAPI(lifespan=lifespan)
    app.state.container = container

    app.include_router(sync_router)
    app.include_router(unmatched_router)
    app.include_router(calendars_router)

    @app.exception_handler(MealSyncError)
    async def handle_sync_error(_request: Request, exc: MealSyncError) -> JSONResponse:
        status_code = _status_for(exc)
        if status_code >= status.HTTP_500_INTERNAL_SERVER_ERROR:
            logger.warning("Request failed: %s", exc)
        return JSONResponse(status_code=status_code, content={"detail": str(exc)})

    @app.get("/health")
    async def health() -> dict[str, str]:
        """Simple health check endpoint."""
        return {"status": "ok"}

    return app


def _status_for(exc: MealSyncError) -> int:
    for error_type in type(exc).__mro__:
        if error_type in _ERROR_STATUS:
            return _ERROR_STATUS[error_type]
    return status.HTTP_502_BAD_GATEWAY
