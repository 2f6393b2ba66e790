import logging
import os
import uuid
from contextvars import ContextVar
from typing import Optional

from pythonjsonlogger import jsonlogger


request_id_ctx: ContextVar[str | None] = ContextVar("request_id", default=None)
csrf_action_ctx: ContextVar[str | None] = ContextVar("csrf_action", default=None)

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s %(message)s %(request_id)s %(csrf_action)s"


class ContextFilter(logging.Filter):
    """Stamp each record with the bound request id and CSRF action."""

    def filter(self, record: logging.LogRecord) -> bool:  # noqa: D401
        # LOG_FORMAT names both fields; records outside a request get "".
        record.request_id = request_id_ctx.get() or ""
        record.csrf_action = csrf_action_ctx.get() or ""
        return True


def setup_logging(level: Optional[str] = None) -> logging.Handler:
    """Route root logging to one JSON handler and return that handler.

    ``level`` defaults to ``LOG_LEVEL`` (``INFO`` when unset). Calling this
    again replaces the previous handler rather than stacking another.
    """

    root = logging.getLogger()
    root.setLevel((level or os.getenv("LOG_LEVEL", "INFO")).upper())
    root.handlers = []
    handler = logging.StreamHandler()
    handler.setFormatter(jsonlogger.JsonFormatter(LOG_FORMAT))
    handler.addFilter(ContextFilter())
    root.addHandler(handler)
    return handler


def bind_request_id(req_id: str | None = None) -> str:
    rid = req_id or str(uuid.uuid4())
    request_id_ctx.set(rid)
    return rid


def bind_csrf_action(action: str | None) -> None:
    csrf_action_ctx.set(action or None)
