import os
from typing import Any, Dict, Optional
from urllib.parse import parse_qsl, urlencode

import sentry_sdk
from sentry_sdk.integrations.fastapi import FastApiIntegration

from ..config import DEFAULT_HEADER_NAME
from ..gate import TOKEN_PARAM

FILTERED = "[Filtered]"


def _scrub_query(query: str) -> str:
    pairs = parse_qsl(query, keep_blank_values=True)
    return urlencode([(k, FILTERED if k == TOKEN_PARAM else v) for k, v in pairs])


def make_before_send(header_name: str = DEFAULT_HEADER_NAME):
    """Build a ``before_send`` hook that strips CSRF tokens and cookies from events."""

    header_lower = header_name.lower()

    def before_send(event: Dict[str, Any], hint: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        request = event.get("request")
        if not isinstance(request, dict):
            return event
        headers = request.get("headers")
        if isinstance(headers, dict):
            for name in list(headers):
                if name.lower() in (header_lower, "cookie"):
                    headers[name] = FILTERED
        if request.get("cookies"):
            request["cookies"] = FILTERED
        query = request.get("query_string")
        if isinstance(query, str) and TOKEN_PARAM in query:
            request["query_string"] = _scrub_query(query)
        data = request.get("data")
        if isinstance(data, dict) and TOKEN_PARAM in data:
            data[TOKEN_PARAM] = FILTERED
        return event

    return before_send


def init_sentry(header_name: str = DEFAULT_HEADER_NAME) -> bool:
    dsn = os.getenv("SENTRY_DSN")
    if not dsn:
        return False
    sentry_sdk.init(
        dsn=dsn,
        integrations=[FastApiIntegration()],
        traces_sample_rate=float(os.getenv("SENTRY_TRACES_SAMPLE_RATE", "0.0")),
        environment=os.getenv("SENTRY_ENVIRONMENT", "dev"),
        release=os.getenv("SENTRY_RELEASE"),
        send_default_pii=False,
        before_send=make_before_send(header_name),
    )
    return True
