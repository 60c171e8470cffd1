import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import OperationalError

from calmflow.api.routes import checkins, health, recovery, sessions
from calmflow.core.config import settings
from calmflow.core.errors import (
    NoActiveSessionError,
    NotFoundError,
    PhaseNotCompleteError,
    SessionAlreadyActiveError,
    SessionCoreError,
    StaleSnapshotError,
)
from calmflow.core.logging import configure_logging
from calmflow.schemas.common import ErrorResponse, StorageError
from calmflow.services.runtime import Runtime, build_sql_runtime
from calmflow.services.ticker import Ticker

logger = logging.getLogger(__name__)

STATUS_BY_ERROR = {
    NotFoundError: 404,
    SessionAlreadyActiveError: 409,
    PhaseNotCompleteError: 409,
    NoActiveSessionError: 409,
    StaleSnapshotError: 410,
}


def _status_for(exc: SessionCoreError) -> int:
    for error_type, status in STATUS_BY_ERROR.items():
        if isinstance(exc, error_type):
            return status
    return 400


@asynccontextmanager
async def lifespan(app: FastAPI):
    if app.state.runtime is None:
        app.state.runtime = build_sql_runtime()
    ticker = Ticker(app.state.runtime.controller, settings.TICK_INTERVAL_SECONDS)
    app.state.ticker = ticker
    ticker.start()
    yield
    await ticker.stop()
    # Leave a snapshot behind so the next launch can offer to resume.
    app.state.runtime.controller.background()
    app.state.runtime.close()


def create_app(runtime: Runtime | None = None) -> FastAPI:
    configure_logging()
    app = FastAPI(title=settings.APP_NAME, version=settings.APP_VERSION, lifespan=lifespan)
    app.state.runtime = runtime
    app.state.ticker = None

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"], allow_credentials=True,
        allow_methods=["*"], allow_headers=["*"],
    )

    # Exception handlers
    @app.exception_handler(SessionCoreError)
    async def session_error_handler(request: Request, exc: SessionCoreError):
        status = _status_for(exc)
        logger.warning("Session error %s (%s): %s", exc.error_code, status, exc.message)
        if isinstance(exc, StaleSnapshotError) and request.app.state.runtime is not None:
            request.app.state.runtime.persistence.discard(exc.key)
        body = ErrorResponse(error=type(exc).__name__, detail=exc.message, error_code=exc.error_code)
        return JSONResponse(status_code=status, content=body.model_dump())

    @app.exception_handler(OperationalError)
    async def operational_error_handler(request: Request, exc: OperationalError):
        logger.error("Snapshot storage error: %s", exc)
        body = StorageError(
            error="Snapshot storage error",
            detail="Unable to reach the on-device snapshot database. Please try again.",
        )
        return JSONResponse(status_code=503, content=body.model_dump())

    # routes
    app.include_router(health.router)
    app.include_router(sessions.router)
    app.include_router(checkins.router)
    app.include_router(recovery.router)
    return app


app = create_app()
