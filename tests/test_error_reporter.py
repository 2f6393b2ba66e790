from __future__ import annotations

import json

import pytest

from csrfgate.errors import (
    CSRF_ERROR_DEFINES,
    CSRF_ERROR_GROUP,
    CSRFErrorKind,
    ErrorDefine,
    ErrorReporter,
    negotiate_lang,
)


@pytest.fixture
def reporter() -> ErrorReporter:
    reporter = ErrorReporter()
    reporter.register_group(CSRF_ERROR_GROUP, CSRF_ERROR_DEFINES)
    return reporter


@pytest.mark.parametrize(
    ("kind", "name", "status"),
    [
        (CSRFErrorKind.SESSION_INIT_FAILED, "SessionInitFailed", 500),
        (CSRFErrorKind.SESSION_GET_FAILED, "SessionGetFailed", 403),
        (CSRFErrorKind.CSRF_TOKEN_ERROR, "CSRFTokenError", 403),
    ],
)
def test_csrf_kinds_have_stable_codes(reporter, kind, name, status):
    error = reporter.new_error(CSRF_ERROR_GROUP, kind)

    assert error.name == name
    assert error.code == f"csrf.{name}"
    assert error.status == status
    assert error.lang == "en_us"


def test_new_error_localizes_and_falls_back(reporter):
    zh = reporter.new_error(CSRF_ERROR_GROUP, CSRFErrorKind.SESSION_GET_FAILED, "zh_CN")
    fallback = reporter.new_error(CSRF_ERROR_GROUP, CSRFErrorKind.SESSION_GET_FAILED, "de_de")

    assert zh.message == "会话获取失败！"
    assert zh.lang == "zh_cn"
    assert fallback.message == "Failed to get session!"
    assert fallback.lang == "en_us"


def test_reporter_default_lang_is_configurable():
    reporter = ErrorReporter(default_lang="zh_cn")
    reporter.register_group(CSRF_ERROR_GROUP, CSRF_ERROR_DEFINES)

    error = reporter.new_error(CSRF_ERROR_GROUP, CSRFErrorKind.CSRF_TOKEN_ERROR)

    assert error.message == "CSRF验证失败！"


def test_unknown_group_or_kind_raises(reporter):
    with pytest.raises(KeyError):
        reporter.new_error("missing", 0)
    with pytest.raises(KeyError):
        reporter.new_error(CSRF_ERROR_GROUP, 99)


def test_register_group_is_idempotent_but_rejects_conflicts(reporter):
    reporter.register_group(CSRF_ERROR_GROUP, dict(CSRF_ERROR_DEFINES))

    with pytest.raises(ValueError):
        reporter.register_group(
            CSRF_ERROR_GROUP,
            {0: ErrorDefine(name="Other", status=400, messages={"en_us": "Other"})},
        )


def test_rendered_error_response(reporter):
    error = reporter.new_error(CSRF_ERROR_GROUP, CSRFErrorKind.CSRF_TOKEN_ERROR)

    response = error.to_response(trace_id="trace-1")
    body = json.loads(response.body)

    assert response.status_code == 403
    assert response.media_type == "application/problem+json"
    assert response.headers["X-Trace-Id"] == "trace-1"
    assert body == {
        "type": "about:blank#csrf.CSRFTokenError",
        "title": "CSRF token error!",
        "status": 403,
        "code": "csrf.CSRFTokenError",
        "message": "CSRF token error!",
        "trace_id": "trace-1",
    }


@pytest.mark.parametrize(
    ("params", "headers", "expected"),
    [
        ({}, {}, None),
        ({"api_lang": "zh_cn"}, {"accept-language": "en-US"}, "zh_cn"),
        ({}, {"accept-language": "zh-CN,zh;q=0.9,en;q=0.8"}, "zh_cn"),
        ({}, {"accept-language": "fr-FR, en;q=0.5"}, "en_us"),
        ({}, {"accept-language": "*"}, None),
        ({"api_lang": "xx"}, {}, None),
    ],
)
def test_negotiate_lang(params, headers, expected):
    assert negotiate_lang(params, headers, frozenset({"en_us", "zh_cn"})) == expected
