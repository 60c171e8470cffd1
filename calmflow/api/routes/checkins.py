from fastapi import APIRouter, Depends

from calmflow.api.deps import get_controller
from calmflow.schemas.checkin import CheckInOut, CheckInResponse, CheckInState, CheckInTrigger
from calmflow.services.session import SessionController

router = APIRouter(prefix="/api/checkins", tags=["checkins"])


@router.get("", response_model=CheckInState)
async def state(controller: SessionController = Depends(get_controller)):
    return controller.check_in.state


@router.post("", response_model=CheckInOut)
async def respond(payload: CheckInResponse, controller: SessionController = Depends(get_controller)):
    forwarded = controller.respond_to_check_in(payload)
    return {
        "adaptive_pacing": controller.check_in.state.adaptive_pacing,
        "suggested_action": controller.check_in.suggested_action(),
        "forwarded": forwarded,
    }


@router.post("/trigger", response_model=CheckInState)
async def trigger(reason: CheckInTrigger = CheckInTrigger.USER_PAUSE,
                  controller: SessionController = Depends(get_controller)):
    controller.request_check_in(reason)
    return controller.check_in.state


@router.post("/dismiss", response_model=CheckInState)
async def dismiss(controller: SessionController = Depends(get_controller)):
    controller.check_in.dismiss()
    return controller.check_in.state
