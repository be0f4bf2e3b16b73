"""FastAPI application factory."""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

from yogaageproof.api.ai import router as ai_router
from yogaageproof.api.photos import router as photos_router
from yogaageproof.api.sessions import router as sessions_router
from yogaageproof.app_logging import configure_logging
from yogaageproof.containers import AppContainer
from yogaageproof.domain.errors import (
    AIRateLimitError,
    AITimeoutError,
    AppError,
    BackupDisabledError,
    ClientError,
    InvalidSessionStateError,
    NetworkError,
    ServerError,
    StorageFullError,
    ValidationError,
    user_friendly_message,
)

# Checked in order, so subclasses come before their bases.
_ERROR_STATUS: tuple[tuple[type[AppError], int], ...] = (
    (BackupDisabledError, status.HTTP_409_CONFLICT),
    (InvalidSessionStateError, status.HTTP_409_CONFLICT),
    (ValidationError, status.HTTP_400_BAD_REQUEST),
    (StorageFullError, status.HTTP_507_INSUFFICIENT_STORAGE),
    (AIRateLimitError, status.HTTP_429_TOO_MANY_REQUESTS),
    (AITimeoutError, status.HTTP_504_GATEWAY_TIMEOUT),
    (NetworkError, status.HTTP_503_SERVICE_UNAVAILABLE),
    (ServerError, status.HTTP_502_BAD_GATEWAY),
    (ClientError, status.HTTP_502_BAD_GATEWAY),
)


def status_for_error(exc: AppError) -> int:
    """Return the HTTP status used to report an application error."""
    for error_type, status_code in _ERROR_STATUS:
        if isinstance(exc, error_type):
            return status_code
    return status.HTTP_500_INTERNAL_SERVER_ERROR


def create_app(container: AppContainer) -> FastAPI:
    """Create a FastAPI app configured with dependencies."""
    configure_logging(container.settings.log_level)
    logger = logging.getLogger(__name__)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        state_container: AppContainer = app.state.container
        state_container.network_watcher.start()
        stop_sync = state_container.sync_queue.start_background_sync(
            state_container.network_watcher
        )
        state_container.session_outbox.start()
        yield
        stop_sync()
        await state_container.network_watcher.stop()
        await state_container.session_outbox.stop()
        await state_container.sync_queue.wait_idle()
        await state_container.close_resources()

    app = FastAPI(lifespan=lifespan)
    app.state.container = container

    app.include_router(photos_router)
    app.include_router(sessions_router)
    app.include_router(ai_router)

    @app.exception_handler(AppError)
    async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
        status_code = status_for_error(exc)
        if status_code >= status.HTTP_500_INTERNAL_SERVER_ERROR:
            logger.error("%s %s failed: %s", request.method, request.url.path, exc)
        return JSONResponse(
            status_code=status_code,
            content={"error": exc.code, "message": user_friendly_message(exc)},
        )

    @app.get("/health")
    async def health() -> dict[str, str]:
        """Simple health check endpoint."""
        return {"status": "ok"}

    return app
