from __future__ import annotations

import logging
import time
from contextvars import ContextVar
from uuid import uuid4

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

request_id_ctx_var: ContextVar[str | None] = ContextVar("request_id", default=None)
principal_ctx_var: ContextVar[str | None] = ContextVar("principal", default=None)
logger = logging.getLogger("hatch_stock.request")

# Scraped every few seconds; logging them drowns out stock movements.
QUIET_PATHS = frozenset({"/metrics", "/health", "/health/db"})


def _log_completed(request: Request, response: Response, duration_ms: float, principal: str | None) -> None:
    if request.url.path in QUIET_PATHS and response.status_code < 500:
        return
    data: dict[str, object] = {
        "method": request.method,
        "path": request.url.path,
        "status": response.status_code,
        "duration_ms": round(duration_ms, 2),
    }
    if principal:
        data["principal"] = principal
    level = logging.WARNING if response.status_code >= 500 else logging.INFO
    logger.log(level, "request.completed", extra={"extra_data": data})


class RequestIdMiddleware(BaseHTTPMiddleware):
    """Tag each request with a correlation id and log one line when it completes."""

    def __init__(self, app, header_name: str = "X-Request-ID") -> None:  # type: ignore[override]
        super().__init__(app)
        self.header_name = header_name

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        request_id = request.headers.get(self.header_name) or uuid4().hex
        request.state.request_id = request_id
        tokens = (request_id_ctx_var.set(request_id), principal_ctx_var.set(None))
        started = time.perf_counter()
        try:
            response = await call_next(request)
        finally:
            request_id_ctx_var.reset(tokens[0])
            principal_ctx_var.reset(tokens[1])
        duration_ms = (time.perf_counter() - started) * 1000

        response.headers[self.header_name] = request_id
        response.headers.setdefault("X-Response-Time", f"{duration_ms:.2f}ms")
        # require_api_key records the caller on request.state.
        _log_completed(request, response, duration_ms, getattr(request.state, "principal", None))
        return response
