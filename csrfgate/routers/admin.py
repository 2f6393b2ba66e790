import hmac
import logging

from fastapi import APIRouter, Depends, HTTPException, Request

from ..config import HOST_EXEMPT_ACTIONS, get_admin_token, load_csrf_settings
from ..matcher import InvalidPatternError
from ..schemas import CSRFStateOut


logger = logging.getLogger(__name__)


def require_operator(request: Request) -> None:
    """Allow the request only with ``Authorization: Bearer $CSRF_ADMIN_TOKEN``."""

    expected = get_admin_token()
    if not expected:
        raise HTTPException(status_code=403, detail="Operator routes are disabled")
    auth_header = request.headers.get("authorization") or ""
    parts = auth_header.split(" ", 1)
    if len(parts) != 2 or parts[0].lower() != "bearer":
        raise HTTPException(status_code=401, detail="Missing bearer token")
    if not hmac.compare_digest(parts[1].strip().encode("utf-8"), expected.encode("utf-8")):
        raise HTTPException(status_code=403, detail="Forbidden")


router = APIRouter(prefix="/admin/csrf", tags=["admin"], dependencies=[Depends(require_operator)])


@router.post("/enable", response_model=CSRFStateOut)
def enable_csrf(request: Request):
    gate = request.app.state.csrf_gate
    gate.enable()
    return CSRFStateOut(**gate.state)


@router.post("/disable", response_model=CSRFStateOut)
def disable_csrf(request: Request):
    gate = request.app.state.csrf_gate
    gate.disable()
    return CSRFStateOut(**gate.state)


@router.post("/reload", response_model=CSRFStateOut)
def reload_csrf(request: Request):
    load_csrf_settings.cache_clear()
    gate = request.app.state.csrf_gate
    try:
        gate.reload(load_csrf_settings().with_exempt_actions(HOST_EXEMPT_ACTIONS))
    except InvalidPatternError as exc:
        logger.warning("CSRF reload rejected, keeping current settings: %s", exc)
        raise HTTPException(status_code=422, detail=str(exc))
    return CSRFStateOut(**gate.state)
