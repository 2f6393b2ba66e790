import logging

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response
from starlette.types import ASGIApp

from .context import MalformedRequestError, build_request_context
from .errors import CSRF_ERROR_GROUP, negotiate_lang, problem_response
from .gate import CSRFGate
from .observability.logging import bind_csrf_action, request_id_ctx
from .observability.metrics import record_csrf_outcome


logger = logging.getLogger(__name__)


class CSRFMiddleware(BaseHTTPMiddleware):
    """Run every request through a :class:`CSRFGate` before routing it."""

    def __init__(self, app: ASGIApp, gate: CSRFGate):
        super().__init__(app)
        self.gate = gate

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        if not self.gate.enabled:
            return await call_next(request)

        try:
            ctx = await build_request_context(request)
        except MalformedRequestError as exc:
            logger.info("Malformed form body on %s %s: %s", request.method, request.url.path, exc)
            return problem_response(
                code="bad_request",
                message=f"Malformed request body: {exc}",
                status=400,
                trace_id=request_id_ctx.get(),
            )

        bind_csrf_action(ctx.action)
        outcome = self.gate.check(ctx, request)
        if outcome.proceed:
            record_csrf_outcome(None)
            return await call_next(request)

        reporter = self.gate.reporter
        lang = negotiate_lang(ctx.params, ctx.headers, reporter.languages(CSRF_ERROR_GROUP))
        error = reporter.new_error(CSRF_ERROR_GROUP, outcome.error, lang)
        record_csrf_outcome(error.name)
        logger.warning(
            "CSRF check rejected %s %s (action=%s): %s",
            request.method,
            request.url.path,
            ctx.action,
            error.name,
        )
        return error.to_response(trace_id=request_id_ctx.get())
