"""Session-bound CSRF token gate for FastAPI/Starlette applications."""

from .config import CSRFSettings, load_csrf_settings
from .context import MalformedRequestError, RequestContext, build_request_context
from .errors import CSRFErrorKind, ErrorReporter, RenderedError
from .gate import PROCEED, CSRFGate, Outcome
from .matcher import ActionMatcher, InvalidPatternError
from .middleware import CSRFMiddleware
from .sessions import CookieSessionStore, SessionHandle, SessionStore, SessionStoreError

__all__ = [
    "ActionMatcher",
    "CookieSessionStore",
    "CSRFErrorKind",
    "CSRFGate",
    "CSRFMiddleware",
    "CSRFSettings",
    "ErrorReporter",
    "InvalidPatternError",
    "MalformedRequestError",
    "Outcome",
    "PROCEED",
    "RenderedError",
    "RequestContext",
    "SessionHandle",
    "SessionStore",
    "SessionStoreError",
    "build_request_context",
    "load_csrf_settings",
]
