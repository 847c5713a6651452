from __future__ import annotations

import time
from contextvars import ContextVar
from typing import Awaitable, Callable, Optional
from uuid import uuid4

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import Response

from grounding.settings import settings

from .metrics import get_metrics_registry

correlation_id_var: ContextVar[Optional[str]] = ContextVar("correlation_id", default=None)

TIMED_ROUTES = frozenset({("POST", "/retrieve")})


def get_correlation_id(default: Optional[str] = None) -> Optional[str]:
    return correlation_id_var.get() or default


class CorrelationContext(BaseHTTPMiddleware):
    """Tags every request with a correlation id and times the retrieval route.

    The id comes from the configured header when the caller sends one and is
    echoed back on the response either way.
    """

    async def dispatch(self, request: Request, call_next: Callable[[Request], Awaitable[Response]]) -> Response:
        header_name = settings.correlation_id_header
        correlation_id = request.headers.get(header_name) or uuid4().hex
        request.state.correlation_id = correlation_id
        timed = (request.method.upper(), request.url.path) in TIMED_ROUTES

        token = correlation_id_var.set(correlation_id)
        started = time.perf_counter()
        try:
            response = await call_next(request)
        finally:
            correlation_id_var.reset(token)
            if timed:
                get_metrics_registry().observe_latency((time.perf_counter() - started) * 1000)

        response.headers[header_name] = correlation_id
        return response
