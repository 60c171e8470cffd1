from fastapi import Depends, Request

from calmflow.services.runtime import Runtime
from calmflow.services.session import SessionController


def get_runtime(request: Request) -> Runtime:
    return request.app.state.runtime


def get_controller(runtime: Runtime = Depends(get_runtime)) -> SessionController:
    return runtime.controller
