from fastapi import APIRouter, Request

from ..schemas import CSRFStateOut, StatusResponse


router = APIRouter(tags=["status"])


@router.get("/status", response_model=StatusResponse)
def get_status():
    return StatusResponse()


@router.get("/status/csrf", response_model=CSRFStateOut)
def csrf_status(request: Request):
    return CSRFStateOut(**request.app.state.csrf_gate.state)
