"""Environment-backed configuration for the CSRF gate."""

from __future__ import annotations

import os
from dataclasses import dataclass, replace
from functools import lru_cache
from typing import Iterable, Tuple

_TRUE_VALUES = {"1", "true", "yes", "on"}

DEFAULT_HEADER_NAME = "X-CSRF-TOKEN"
DEFAULT_SESSION_NAME = "default"
DEFAULT_SESSION_KEY = "csrf_token"
DEFAULT_SESSION_STORE_KEY = f"{DEFAULT_SESSION_NAME}.{DEFAULT_SESSION_KEY}"
DEFAULT_ALLOW_ACTIONS: Tuple[str, ...] = ("*",)
DEFAULT_LANG = "en_us"
# Operational routes served by the host app itself; never CSRF-checked.
HOST_EXEMPT_ACTIONS: Tuple[str, ...] = ("/status*", "/metrics")

__all__ = [
    "CSRFSettings",
    "DEFAULT_ALLOW_ACTIONS",
    "DEFAULT_HEADER_NAME",
    "DEFAULT_LANG",
    "DEFAULT_SESSION_KEY",
    "DEFAULT_SESSION_NAME",
    "DEFAULT_SESSION_STORE_KEY",
    "HOST_EXEMPT_ACTIONS",
    "get_admin_token",
    "get_default_lang",
    "get_session_secret",
    "load_csrf_settings",
    "split_store_key",
]


def _read_flag(name: str) -> bool | None:
    """Return the parsed boolean value for ``name`` if explicitly set."""

    value = os.getenv(name)
    if value is None:
        return None
    normalized = value.strip()
    if not normalized:
        return None
    return normalized.lower() in _TRUE_VALUES


def _iter_tokens(raw: str) -> Iterable[str]:
    for token in raw.replace("\n", ",").split(","):
        token = token.strip()
        if token:
            yield token


def split_store_key(store_key: str | None) -> Tuple[str, str]:
    """Split ``namespace.key`` on the first dot.

    Input without a dot falls back to ``("default", "csrf_token")``. Either
    half may still be empty, e.g. ``".csrf_token"`` yields an empty
    namespace, which leaves the gate switched off.
    """

    if not store_key or "." not in store_key:
        return DEFAULT_SESSION_NAME, DEFAULT_SESSION_KEY
    name, key = store_key.split(".", 1)
    return name, key


@dataclass(frozen=True)
class CSRFSettings:
    """Immutable gate configuration."""

    enabled: bool = True
    header_name: str = DEFAULT_HEADER_NAME
    session_store_key: str = DEFAULT_SESSION_STORE_KEY
    allow_actions: Tuple[str, ...] = DEFAULT_ALLOW_ACTIONS
    deny_actions: Tuple[str, ...] = ()

    def with_exempt_actions(self, actions: Iterable[str]) -> "CSRFSettings":
        """Return a copy whose deny list also carries ``actions``."""

        extra = tuple(action for action in actions if action not in self.deny_actions)
        return replace(self, deny_actions=self.deny_actions + extra)

    @property
    def session_name(self) -> str:
        return split_store_key(self.session_store_key)[0]

    @property
    def session_key(self) -> str:
        return split_store_key(self.session_store_key)[1]


@lru_cache(maxsize=1)
def load_csrf_settings() -> CSRFSettings:
    """Build :class:`CSRFSettings` from ``CSRF_*`` environment variables."""

    enabled = _read_flag("CSRF_ENABLED")
    header_name = (os.getenv("CSRF_HTTP_HEADER") or "").strip() or DEFAULT_HEADER_NAME
    store_key = os.getenv("CSRF_SESSION_STORE_KEY")
    if store_key is None:
        store_key = DEFAULT_SESSION_STORE_KEY
    allow_raw = os.getenv("CSRF_ACTIONS_ALLOW")
    if allow_raw is None:
        allow_actions = DEFAULT_ALLOW_ACTIONS
    else:
        allow_actions = tuple(_iter_tokens(allow_raw))
    deny_actions = tuple(_iter_tokens(os.getenv("CSRF_ACTIONS_DENY", "")))
    return CSRFSettings(
        enabled=True if enabled is None else enabled,
        header_name=header_name,
        session_store_key=store_key.strip(),
        allow_actions=allow_actions,
        deny_actions=deny_actions,
    )


@lru_cache(maxsize=1)
def get_session_secret() -> str | None:
    """Return the cookie-session signing secret, ``None`` when unset."""

    value = os.getenv("SESSION_SECRET_KEY")
    if value is None:
        return None
    return value.strip() or None


@lru_cache(maxsize=1)
def get_default_lang() -> str:
    """Return the fallback locale for rendered error messages."""

    return (os.getenv("CSRF_DEFAULT_LANG") or "").strip().lower() or DEFAULT_LANG


@lru_cache(maxsize=1)
def get_admin_token() -> str | None:
    """Return the bearer token guarding operator routes, ``None`` when unset."""

    value = os.getenv("CSRF_ADMIN_TOKEN")
    if value is None:
        return None
    return value.strip() or None
