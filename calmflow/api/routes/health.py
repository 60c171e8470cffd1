'''
Health checks: simple API status, and a full check that includes the
snapshot store and the live session status.
'''
import logging
from datetime import datetime, timezone

from fastapi import APIRouter, Depends, Request

from calmflow.api.deps import get_runtime
from calmflow.core.config import settings
from calmflow.db.session import check_db_connection
from calmflow.repositories.snapshot_repo import SqlSnapshotStore
from calmflow.services.runtime import Runtime

logger = logging.getLogger(__name__)

router = APIRouter(tags=["health"])

SERVICE_NAME = "calmflow-session-core"


@router.get("/health")
async def health():
    """
    Simple health check. Does not touch the snapshot store.
    """
    return {
        "status": "healthy",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "message": "API is running",
        "service": SERVICE_NAME,
    }


@router.get("/health/full")
async def health_full(request: Request, runtime: Runtime = Depends(get_runtime)):
    """
    Verifies the snapshot store and reports the ticker and session state.
    """
    controller = runtime.controller
    ticker = request.app.state.ticker
    health_status = {
        "status": "healthy",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "storage": "memory",
        "ticker": "running" if ticker is not None and ticker.running else "stopped",
        "session": controller.status.value if controller.status is not None else "idle",
        "version": settings.APP_VERSION,
        "service": SERVICE_NAME,
    }

    store = runtime.persistence.store
    if isinstance(store, SqlSnapshotStore):
        if check_db_connection(store.session_factory):
            health_status["storage"] = "connected"
            logger.info("Snapshot store health check successful")
        else:
            health_status["status"] = "unhealthy"
            health_status["storage"] = "disconnected"

    return health_status
