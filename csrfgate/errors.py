import logging
import threading
import uuid
from dataclasses import dataclass
from enum import IntEnum
from types import MappingProxyType
from typing import Any, Dict, Mapping, Optional

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from .config import DEFAULT_LANG

PROBLEM_MEDIA_TYPE = "application/problem+json"
CSRF_ERROR_GROUP = "csrf"

logger = logging.getLogger(__name__)


def _problem(
    *,
    code: str,
    message: str,
    status: int,
    trace_id: str,
    details: Optional[Dict[str, Any]] = None,
) -> JSONResponse:
    body = {
        "type": f"about:blank#{code}",
        "title": message,
        "status": status,
        "code": code,
        "message": message,
        "trace_id": trace_id,
    }
    if details:
        body["details"] = details
    return JSONResponse(
        body,
        status_code=status,
        headers={"X-Trace-Id": trace_id},
        media_type=PROBLEM_MEDIA_TYPE,
    )


def problem_response(
    *,
    code: str,
    message: str,
    status: int,
    trace_id: Optional[str] = None,
) -> JSONResponse:
    """Render a problem+json response outside the app's exception handlers."""

    return _problem(code=code, message=message, status=status, trace_id=trace_id or str(uuid.uuid4()))


@dataclass(frozen=True)
class ErrorDefine:
    """Stable name, HTTP status and localized messages for one error kind."""

    name: str
    status: int
    messages: Mapping[str, str]

    def message_for(self, lang: str, default_lang: str = DEFAULT_LANG) -> str:
        if lang in self.messages:
            return self.messages[lang]
        if default_lang in self.messages:
            return self.messages[default_lang]
        return self.name


@dataclass(frozen=True)
class RenderedError:
    group: str
    kind: int
    name: str
    status: int
    message: str
    lang: str

    @property
    def code(self) -> str:
        return f"{self.group}.{self.name}"

    def to_response(self, trace_id: Optional[str] = None) -> JSONResponse:
        return _problem(
            code=self.code,
            message=self.message,
            status=self.status,
            trace_id=trace_id or str(uuid.uuid4()),
        )


class ErrorReporter:
    """Registry of named error groups used to render consistent rejections."""

    def __init__(self, default_lang: str = DEFAULT_LANG):
        self.default_lang = default_lang
        self._groups: Dict[str, Mapping[int, ErrorDefine]] = {}
        self._lock = threading.Lock()

    def register_group(self, group: str, defines: Mapping[int, ErrorDefine]) -> None:
        """Register ``defines`` under ``group``.

        Re-registering identical defines is a no-op; conflicting defines raise
        :class:`ValueError`.
        """

        frozen = MappingProxyType(dict(defines))
        with self._lock:
            existing = self._groups.get(group)
            if existing is not None:
                if dict(existing) != dict(frozen):
                    raise ValueError(f"Error group {group!r} is already registered with different defines")
                return
            self._groups[group] = frozen

    def has_group(self, group: str) -> bool:
        return group in self._groups

    def languages(self, group: str) -> frozenset:
        langs = set()
        for define in self._groups[group].values():
            langs.update(define.messages)
        return frozenset(langs)

    def new_error(self, group: str, kind: int, lang: Optional[str] = None) -> RenderedError:
        define = self._groups[group][kind]
        lang = (lang or self.default_lang).lower()
        return RenderedError(
            group=group,
            kind=int(kind),
            name=define.name,
            status=define.status,
            message=define.message_for(lang, self.default_lang),
            lang=lang if lang in define.messages else self.default_lang,
        )


def negotiate_lang(
    params: Mapping[str, str],
    headers: Mapping[str, str],
    available: frozenset,
) -> Optional[str]:
    """Pick a locale from ``api_lang`` or ``Accept-Language``.

    Locales use the ``en_us`` spelling; ``zh-CN`` and ``zh_CN`` both map to
    ``zh_cn``. Returns ``None`` when nothing matches ``available``.
    """

    candidates = []
    explicit = params.get("api_lang")
    if explicit:
        candidates.append(explicit)
    accept = headers.get("accept-language") or ""
    for part in accept.split(","):
        tag = part.split(";", 1)[0].strip()
        if tag and tag != "*":
            candidates.append(tag)
    for candidate in candidates:
        normalized = candidate.replace("-", "_").lower()
        if normalized in available:
            return normalized
        for lang in sorted(available):
            if lang.split("_", 1)[0] == normalized:
                return lang
    return None


class CSRFErrorKind(IntEnum):
    SESSION_INIT_FAILED = 0
    SESSION_GET_FAILED = 1
    CSRF_TOKEN_ERROR = 2


CSRF_ERROR_DEFINES: Mapping[int, ErrorDefine] = {
    CSRFErrorKind.SESSION_INIT_FAILED: ErrorDefine(
        name="SessionInitFailed",
        status=500,
        messages={"en_us": "Session init failed!", "zh_cn": "会话初始化失败！"},
    ),
    CSRFErrorKind.SESSION_GET_FAILED: ErrorDefine(
        name="SessionGetFailed",
        status=403,
        messages={"en_us": "Failed to get session!", "zh_cn": "会话获取失败！"},
    ),
    CSRFErrorKind.CSRF_TOKEN_ERROR: ErrorDefine(
        name="CSRFTokenError",
        status=403,
        messages={"en_us": "CSRF token error!", "zh_cn": "CSRF验证失败！"},
    ),
}


def register_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(StarletteHTTPException)
    async def http_exc_handler(request: Request, exc: StarletteHTTPException):  # type: ignore[override]
        trace_id = str(uuid.uuid4())
        detail = exc.detail
        if isinstance(detail, dict):
            message = detail.get("message") or detail.get("error") or "HTTP error"
            return _problem(
                code="http_error",
                message=str(message),
                status=exc.status_code,
                trace_id=trace_id,
                details=detail,
            )
        return _problem(code="http_error", message=str(detail), status=exc.status_code, trace_id=trace_id)

    @app.exception_handler(RequestValidationError)
    async def validation_exc_handler(request: Request, exc: RequestValidationError):  # type: ignore[override]
        trace_id = str(uuid.uuid4())
        return _problem(
            code="validation_error",
            message="Request validation failed",
            status=422,
            trace_id=trace_id,
            details={"errors": jsonable_encoder(exc.errors())},
        )

    @app.exception_handler(Exception)
    async def unhandled_exc_handler(request: Request, exc: Exception):  # type: ignore[override]
        trace_id = str(uuid.uuid4())
        logger.exception("Unhandled error: %s", exc)
        return _problem(
            code="internal_error",
            message="An unexpected error occurred",
            status=500,
            trace_id=trace_id,
        )
