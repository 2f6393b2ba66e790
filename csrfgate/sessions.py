"""Session-store collaborators consumed by the CSRF gate.

The gate only reads one value from an already-resolved session. Session
creation and cookie transport belong to Starlette's ``SessionMiddleware``;
:class:`CookieSessionStore` resolves a named namespace out of that cookie
session.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Callable, Mapping, Protocol

from starlette.requests import HTTPConnection

__all__ = [
    "CookieSessionStore",
    "SessionHandle",
    "SessionStore",
    "SessionStoreError",
    "StoreFactory",
    "cookie_store_factory",
]


class SessionStoreError(RuntimeError):
    """Raised when a store cannot be acquired or a session cannot be resolved."""


@dataclass(frozen=True)
class SessionHandle:
    """Read-only view of one session namespace for one request."""

    name: str
    values: Mapping[str, Any] = field(default_factory=dict)


class SessionStore(Protocol):
    def get(self, request: HTTPConnection, name: str) -> SessionHandle:
        ...


StoreFactory = Callable[[], SessionStore]


class CookieSessionStore:
    """Resolve namespaces from the Starlette signed-cookie session.

    Each namespace is a mapping stored under its name in ``request.session``.
    A namespace that was never written resolves to an empty handle.
    """

    def get(self, request: HTTPConnection, name: str) -> SessionHandle:
        if "session" not in request.scope:
            raise SessionStoreError("SessionMiddleware is not installed for this request")
        raw = request.session.get(name)
        if raw is None:
            return SessionHandle(name=name)
        if not isinstance(raw, Mapping):
            raise SessionStoreError(f"Session namespace {name!r} is not a mapping")
        return SessionHandle(name=name, values=MappingProxyType(dict(raw)))


def cookie_store_factory(secret: str | None) -> StoreFactory:
    """Return a factory that only yields a store when ``secret`` is configured."""

    def _factory() -> SessionStore:
        if not secret:
            raise SessionStoreError("SESSION_SECRET_KEY is not set; cookie sessions are unavailable")
        return CookieSessionStore()

    return _factory
