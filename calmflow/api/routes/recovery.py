'''
Cold-start recovery: inspect, resume or discard the last saved session.
'''
import logging

from fastapi import APIRouter, Depends, HTTPException

from calmflow.api.deps import get_runtime
from calmflow.schemas.session import SessionView
from calmflow.schemas.snapshot import RecoveryOut
from calmflow.services.runtime import Runtime

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/recovery", tags=["recovery"])


@router.get("", response_model=RecoveryOut | None)
async def pending(runtime: Runtime = Depends(get_runtime)):
    """The resumable snapshot, if any. Stale snapshots answer 410 and are discarded."""
    snapshot = runtime.persistence.restore_latest()
    if snapshot is None:
        return None
    session = snapshot.session
    return RecoveryOut(
        key=runtime.persistence.key_for(session),
        mode=session.mode.value,
        source_id=session.source_id,
        label=session.label,
        current_index=session.current_index,
        queue_length=len(session.queue),
        persisted_at=snapshot.persisted_at,
    )


@router.post("/resume", response_model=SessionView)
async def resume(runtime: Runtime = Depends(get_runtime)):
    snapshot = runtime.persistence.restore_latest()
    if snapshot is None:
        raise HTTPException(status_code=404, detail="No session to recover")
    runtime.controller.recover(snapshot)
    return runtime.controller.view()


@router.delete("", status_code=204)
async def discard(runtime: Runtime = Depends(get_runtime)):
    logger.info("Discarding saved session %s", runtime.persistence.latest_key())
    runtime.persistence.discard()
