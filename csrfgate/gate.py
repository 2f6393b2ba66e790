"""CSRF gate: decides per request whether a session-bound token is required
and validates the presented token against it.

Configuration, matcher and store handle live in one immutable
:class:`_GateState` snapshot. Administrative calls (:meth:`CSRFGate.initialize`,
:meth:`CSRFGate.enable`, :meth:`CSRFGate.disable`, :meth:`CSRFGate.reload`)
are serialized by a lock and publish a new snapshot with a single assignment;
:meth:`CSRFGate.check` reads the snapshot once and never writes.
"""

from __future__ import annotations

import hmac
import logging
import threading
from dataclasses import dataclass, replace
from typing import Any, Dict, Optional

from .config import CSRFSettings, split_store_key
from .context import RequestContext
from .errors import CSRF_ERROR_DEFINES, CSRF_ERROR_GROUP, CSRFErrorKind, ErrorReporter
from .matcher import ActionMatcher
from .sessions import SessionStore, SessionStoreError, StoreFactory

TOKEN_PARAM = "api_csrf_token"

logger = logging.getLogger(__name__)

__all__ = ["CSRFGate", "Outcome", "PROCEED", "TOKEN_PARAM"]


@dataclass(frozen=True)
class Outcome:
    """Result of a gate check: proceed, or reject with an error kind."""

    error: Optional[CSRFErrorKind] = None

    @property
    def proceed(self) -> bool:
        return self.error is None

    @classmethod
    def reject(cls, kind: CSRFErrorKind) -> "Outcome":
        return cls(error=kind)


PROCEED = Outcome()


@dataclass(frozen=True)
class _GateState:
    settings: CSRFSettings
    enabled: bool = False
    initialized: bool = False
    session_name: str = ""
    session_key: str = ""
    matcher: Optional[ActionMatcher] = None
    store: Optional[SessionStore] = None


class CSRFGate:
    def __init__(
        self,
        settings: CSRFSettings,
        store_factory: StoreFactory,
        reporter: ErrorReporter,
    ):
        self._store_factory = store_factory
        self._lock = threading.Lock()
        self.reporter = reporter
        reporter.register_group(CSRF_ERROR_GROUP, CSRF_ERROR_DEFINES)
        self._state = _GateState(settings=settings, enabled=settings.enabled)
        self.initialize()

    @property
    def enabled(self) -> bool:
        return self._state.enabled

    @property
    def initialized(self) -> bool:
        return self._state.initialized

    @property
    def state(self) -> Dict[str, Any]:
        snapshot = self._state
        return {
            "enabled": snapshot.enabled,
            "initialized": snapshot.initialized,
            "header_name": snapshot.settings.header_name,
            "session_name": snapshot.session_name,
            "session_key": snapshot.session_key,
            "store_available": snapshot.store is not None,
        }

    def _build_state(self, settings: CSRFSettings) -> _GateState:
        session_name, session_key = split_store_key(settings.session_store_key)
        matcher = ActionMatcher.from_lists(settings.allow_actions, settings.deny_actions)
        try:
            store = self._store_factory()
        except SessionStoreError as exc:
            logger.error("CSRF session store init failed; protected requests will be rejected: %s", exc)
            store = None
        return _GateState(
            settings=settings,
            enabled=True,
            initialized=True,
            session_name=session_name,
            session_key=session_key,
            matcher=matcher,
            store=store,
        )

    def initialize(self) -> None:
        """Build matcher and acquire the store once, if the gate is enabled.

        A disabled gate stays uninitialized and cannot fail. Later calls are
        no-ops.
        """

        with self._lock:
            current = self._state
            if current.initialized or not current.enabled:
                return
            self._state = self._build_state(current.settings)

    def enable(self) -> None:
        """Turn enforcement on, initializing on first use.

        An already-initialized gate keeps its existing settings, matcher and
        store; use :meth:`reload` to pick up new configuration.
        """

        with self._lock:
            current = self._state
            if current.initialized:
                self._state = replace(current, enabled=True)
            else:
                self._state = self._build_state(current.settings)
        logger.info("CSRF gate enabled")

    def disable(self) -> None:
        with self._lock:
            self._state = replace(self._state, enabled=False)
        logger.info("CSRF gate disabled")

    def reload(self, settings: CSRFSettings) -> None:
        """Rebuild the gate from ``settings``, honouring its ``enabled`` flag."""

        with self._lock:
            if settings.enabled:
                self._state = self._build_state(settings)
            else:
                self._state = _GateState(settings=settings)
        logger.info("CSRF gate reloaded (enabled=%s)", settings.enabled)

    def check(self, ctx: RequestContext, request: Any = None) -> Outcome:
        """Decide whether the request described by ``ctx`` may proceed.

        ``request`` is handed to the session store to resolve the caller's
        session; the gate itself only reads ``ctx``.
        """

        state = self._state
        if not state.enabled:
            return PROCEED
        if not state.session_name:
            return PROCEED
        if state.matcher is None or not state.matcher.matches(ctx.action):
            return PROCEED

        if state.store is None:
            return Outcome.reject(CSRFErrorKind.SESSION_INIT_FAILED)
        try:
            session = state.store.get(request, state.session_name)
        except SessionStoreError as exc:
            logger.debug("Failed to resolve session %r: %s", state.session_name, exc)
            return Outcome.reject(CSRFErrorKind.SESSION_GET_FAILED)

        expected = session.values.get(state.session_key)
        if not isinstance(expected, str):
            return Outcome.reject(CSRFErrorKind.CSRF_TOKEN_ERROR)

        presented = ctx.header(state.settings.header_name)
        if not presented:
            presented = ctx.param(TOKEN_PARAM)
        if not hmac.compare_digest(presented.encode("utf-8"), expected.encode("utf-8")):
            return Outcome.reject(CSRFErrorKind.CSRF_TOKEN_ERROR)
        return PROCEED
