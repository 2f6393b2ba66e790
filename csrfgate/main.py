import logging
import os
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from starlette.middleware.sessions import SessionMiddleware

from .config import (
    HOST_EXEMPT_ACTIONS,
    CSRFSettings,
    get_default_lang,
    get_session_secret,
    load_csrf_settings,
)
from .errors import ErrorReporter, register_error_handlers
from .gate import CSRFGate
from .middleware import CSRFMiddleware
from .observability.logging import bind_request_id, setup_logging
from .observability.metrics import metrics_endpoint, request_metrics_middleware
from .observability.sentry import init_sentry
from .routers import admin, status
from .sessions import StoreFactory, cookie_store_factory


logger = logging.getLogger(__name__)


def create_app(
    settings: Optional[CSRFSettings] = None,
    store_factory: Optional[StoreFactory] = None,
) -> FastAPI:
    tags_metadata = [
        {"name": "status", "description": "Service health and CSRF gate state"},
        {"name": "admin", "description": "Operator controls for the CSRF gate"},
    ]
    app = FastAPI(title="CSRF Gate", version="0.1.0", openapi_tags=tags_metadata)

    register_error_handlers(app)
    setup_logging()

    secret = get_session_secret()
    if settings is None:
        settings = load_csrf_settings()
    settings = settings.with_exempt_actions(HOST_EXEMPT_ACTIONS)
    init_sentry(settings.header_name)
    if store_factory is None:
        store_factory = cookie_store_factory(secret)

    gate = CSRFGate(settings, store_factory, ErrorReporter(default_lang=get_default_lang()))
    app.state.csrf_gate = gate
    logger.info("CSRF gate ready: %s", gate.state)

    # Innermost first: the gate needs the session and request id bound outside it.
    app.add_middleware(CSRFMiddleware, gate=gate)

    @app.middleware("http")
    async def add_request_id(request, call_next):
        rid = request.headers.get("X-Request-Id")
        bind_request_id(rid)
        response = await call_next(request)
        if rid:
            response.headers["X-Request-Id"] = rid
        return response

    app.middleware("http")(request_metrics_middleware)

    if secret:
        app.add_middleware(
            SessionMiddleware,
            secret_key=secret,
            session_cookie=os.getenv("SESSION_COOKIE_NAME", "session"),
            max_age=int(os.getenv("SESSION_MAX_AGE", "3600")),
            same_site="lax",
            https_only=os.getenv("SESSION_HTTPS_ONLY", "0") in ("1", "true", "TRUE"),
        )
    else:
        logger.warning("SESSION_SECRET_KEY is not set; cookie sessions are disabled")

    origins = os.getenv("CORS_ALLOW_ORIGINS", "")
    allow_origins = [o.strip() for o in origins.split(",") if o.strip()]
    if allow_origins:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=allow_origins,
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )

    app.include_router(status.router)
    app.include_router(admin.router)
    app.add_api_route("/metrics", metrics_endpoint, include_in_schema=False)

    return app


app = create_app()
