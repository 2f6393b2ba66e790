from __future__ import annotations

import pytest
from starlette.requests import Request

from csrfgate.sessions import CookieSessionStore, SessionStoreError, cookie_store_factory


def _request(session=None) -> Request:
    scope = {"type": "http", "method": "POST", "path": "/", "headers": []}
    if session is not None:
        scope["session"] = session
    return Request(scope)


def test_cookie_store_reads_namespace():
    store = CookieSessionStore()

    handle = store.get(_request({"default": {"csrf_token": "abc123"}}), "default")

    assert handle.name == "default"
    assert handle.values["csrf_token"] == "abc123"


def test_cookie_store_handle_is_read_only():
    handle = CookieSessionStore().get(_request({"default": {"csrf_token": "abc123"}}), "default")

    with pytest.raises(TypeError):
        handle.values["csrf_token"] = "other"  # type: ignore[index]


def test_missing_namespace_resolves_to_empty_handle():
    handle = CookieSessionStore().get(_request({}), "default")

    assert dict(handle.values) == {}


def test_non_mapping_namespace_fails():
    with pytest.raises(SessionStoreError):
        CookieSessionStore().get(_request({"default": "oops"}), "default")


def test_missing_session_middleware_fails():
    with pytest.raises(SessionStoreError):
        CookieSessionStore().get(_request(), "default")


def test_factory_requires_secret():
    with pytest.raises(SessionStoreError):
        cookie_store_factory(None)()
    with pytest.raises(SessionStoreError):
        cookie_store_factory("")()

    assert isinstance(cookie_store_factory("secret")(), CookieSessionStore)
