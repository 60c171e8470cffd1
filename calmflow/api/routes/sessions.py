from fastapi import APIRouter, Depends, HTTPException, Query

from calmflow.api.deps import get_controller, get_runtime
from calmflow.schemas.activity import ActivityRef
from calmflow.schemas.session import (
    SessionMode,
    SessionSummary,
    SessionView,
    StartPresetIn,
    StartSessionIn,
)
from calmflow.services.activities import activity_from_ref, build_preset_queue, build_queue
from calmflow.services.runtime import Runtime
from calmflow.services.session import SessionController

router = APIRouter(prefix="/api/session", tags=["session"])


@router.post("", response_model=SessionView, status_code=201)
async def start(payload: StartSessionIn, runtime: Runtime = Depends(get_runtime)):
    try:
        queue = build_queue(payload.activities, runtime.library)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    runtime.controller.start(queue, payload.mode, source_id=payload.source_id, label=payload.label)
    return runtime.controller.view()


@router.post("/ritual/{ritual_id}", response_model=SessionView, status_code=201)
async def start_ritual(ritual_id: str, runtime: Runtime = Depends(get_runtime)):
    return _start_preset(runtime, SessionMode.RITUAL, ritual_id)


@router.post("/sos/{preset_id}", response_model=SessionView, status_code=201)
async def start_sos(preset_id: str, runtime: Runtime = Depends(get_runtime)):
    return _start_preset(runtime, SessionMode.SOS, preset_id)


@router.post("/program/{program_id}", response_model=SessionView, status_code=201)
async def start_program_day(program_id: str, payload: StartPresetIn | None = None,
                            runtime: Runtime = Depends(get_runtime)):
    day = payload.day if payload is not None and payload.day else 1
    return _start_preset(runtime, SessionMode.PROGRAM_DAY, program_id, day=day)


def _start_preset(runtime: Runtime, mode: SessionMode, preset_id: str, day: int | None = None) -> SessionView:
    queue, source_id, label = build_preset_queue(mode, preset_id, day=day, library=runtime.library)
    runtime.controller.start(queue, mode, source_id=source_id, label=label, program_day=day)
    return runtime.controller.view()


@router.get("", response_model=SessionView)
async def current(controller: SessionController = Depends(get_controller)):
    return controller.view()


@router.get("/summary", response_model=SessionSummary)
async def summary(controller: SessionController = Depends(get_controller)):
    return controller.summary()


@router.post("/advance", response_model=SessionView)
async def advance(controller: SessionController = Depends(get_controller)):
    controller.advance()
    return controller.view()


@router.post("/step", response_model=SessionView)
async def advance_step(controller: SessionController = Depends(get_controller)):
    try:
        controller.advance_step()
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return controller.view()


@router.post("/skip", response_model=SessionView)
async def skip(controller: SessionController = Depends(get_controller)):
    controller.skip_current()
    return controller.view()


@router.post("/shorten", response_model=SessionView)
async def shorten(controller: SessionController = Depends(get_controller)):
    controller.shorten()
    return controller.view()


@router.post("/activities", response_model=SessionView)
async def add_activity(ref: ActivityRef, at_index: int | None = Query(default=None, ge=0),
                       runtime: Runtime = Depends(get_runtime)):
    try:
        activity = activity_from_ref(ref, runtime.library)
        runtime.controller.add_activity(activity, at_index)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return runtime.controller.view()


@router.post("/pause", response_model=SessionView)
async def pause(controller: SessionController = Depends(get_controller)):
    controller.pause()
    return controller.view()


@router.post("/resume", response_model=SessionView)
async def resume(controller: SessionController = Depends(get_controller)):
    controller.resume()
    return controller.view()


@router.post("/abandon", response_model=SessionSummary)
async def abandon(controller: SessionController = Depends(get_controller)):
    controller.abandon()
    return controller.summary(was_interrupted=True)


@router.post("/background", status_code=204)
async def background(controller: SessionController = Depends(get_controller)):
    controller.background()


@router.post("/foreground", response_model=SessionView)
async def foreground(controller: SessionController = Depends(get_controller)):
    controller.foreground()
    return controller.view()
