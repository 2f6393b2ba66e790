"""Read-only request view consumed by the CSRF gate."""

from __future__ import annotations

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Dict, Mapping

from starlette.datastructures import UploadFile
from starlette.exceptions import HTTPException
from starlette.formparsers import MultiPartException
from starlette.requests import Request

ACTION_PARAM = "api_action"

_FORM_CONTENT_TYPES = {
    "application/x-www-form-urlencoded",
    "multipart/form-data",
}

__all__ = ["ACTION_PARAM", "MalformedRequestError", "RequestContext", "build_request_context"]


class MalformedRequestError(ValueError):
    """The request body announced a form but could not be parsed as one."""


@dataclass(frozen=True)
class RequestContext:
    """Logical action, headers and merged query/body parameters of a request.

    ``headers`` lookups are expected to be case-insensitive, as with
    Starlette's :class:`~starlette.datastructures.Headers`.
    """

    action: str = ""
    headers: Mapping[str, str] = field(default_factory=dict)
    params: Mapping[str, str] = field(default_factory=dict)

    def header(self, name: str) -> str:
        return self.headers.get(name) or ""

    def param(self, name: str) -> str:
        return self.params.get(name) or ""


def _content_type(request: Request) -> str:
    return request.headers.get("content-type", "").split(";", 1)[0].strip().lower()


async def build_request_context(request: Request) -> RequestContext:
    """Derive a :class:`RequestContext` from ``request``.

    Query parameters are merged with form fields; body values win on
    conflicts and uploaded files are ignored. The action is the
    ``api_action`` parameter, falling back to the request path.

    Raises :class:`MalformedRequestError` when a form body cannot be parsed.
    """

    params: Dict[str, str] = dict(request.query_params)
    if _content_type(request) in _FORM_CONTENT_TYPES:
        # Cache the raw body so handlers behind the middleware can read it again.
        await request.body()
        try:
            form = await request.form()
        except (HTTPException, MultiPartException) as exc:
            message = getattr(exc, "detail", None) or getattr(exc, "message", None) or str(exc)
            raise MalformedRequestError(message) from exc
        for key, value in form.multi_items():
            if isinstance(value, UploadFile):
                continue
            params[key] = value
    action = params.get(ACTION_PARAM) or request.url.path
    return RequestContext(
        action=action,
        headers=request.headers,
        params=MappingProxyType(params),
    )
