"""HTTP middleware for request correlation and access logging."""

import logging
import re
import time
import uuid
from typing import Callable, Optional

import structlog
from fastapi import Request, Response
from opentelemetry import trace
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.types import ASGIApp

from .config import settings
from .observability import metrics_collector

logger = logging.getLogger(__name__)

REQUEST_ID_HEADER = "X-Request-ID"

_TRACEPARENT = re.compile(r"^00-([0-9a-f]{32})-([0-9a-f]{16})-([0-9a-f]{2})$")


def parse_traceparent(header: Optional[str]) -> Optional[dict]:
    """
    Parse a W3C ``traceparent`` header (version 00 only).

    All-zero trace or parent ids are invalid and yield None.

    https://www.w3.org/TR/trace-context/
    """
    if not header:
        return None
    match = _TRACEPARENT.match(header.strip().lower())
    if not match:
        return None

    trace_id, parent_id, flags = match.groups()
    if int(trace_id, 16) == 0 or int(parent_id, 16) == 0:
        return None
    return {"trace_id": trace_id, "parent_id": parent_id, "flags": flags}


def rpc_operation(path: str) -> Optional[str]:
    """``/v1/quote/accept`` -> ``quote/accept``; None outside the RPC surface."""
    parts = path.strip("/").split("/")
    if len(parts) == 3 and parts[0] == "v1":
        return f"{parts[1]}/{parts[2]}"
    return None


class RequestContextMiddleware(BaseHTTPMiddleware):
    """
    Attach a request id and trace context to every request.

    The trace id comes from the active OpenTelemetry span when one is
    recording, then from an incoming ``traceparent`` header, and is
    generated otherwise. Both ids are bound to the structlog context for
    the duration of the request and echoed on the response.
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        request_id = request.headers.get(REQUEST_ID_HEADER) or str(uuid.uuid4())
        incoming = parse_traceparent(request.headers.get("traceparent"))

        span_context = trace.get_current_span().get_span_context()
        if span_context.is_valid:
            trace_id = format(span_context.trace_id, "032x")
            span_id = format(span_context.span_id, "016x")
        else:
            trace_id = incoming["trace_id"] if incoming else uuid.uuid4().hex
            span_id = uuid.uuid4().hex[:16]
        flags = incoming["flags"] if incoming else "01"

        request.state.request_id = request_id
        request.state.trace_context = {
            "trace_id": trace_id,
            "span_id": span_id,
            "parent_span_id": incoming["parent_id"] if incoming else None,
            "flags": flags,
        }

        structlog.contextvars.bind_contextvars(request_id=request_id, trace_id=trace_id)
        try:
            response = await call_next(request)
        finally:
            structlog.contextvars.unbind_contextvars("request_id", "trace_id")

        response.headers[REQUEST_ID_HEADER] = request_id
        response.headers["traceparent"] = f"00-{trace_id}-{span_id}-{flags}"
        tracestate = request.headers.get("tracestate")
        if tracestate:
            response.headers["tracestate"] = tracestate
        return response


class AccessLogMiddleware(BaseHTTPMiddleware):
    """
    Log each RPC call with its outcome and record HTTP metrics.

    Metrics are labelled with the matched route template rather than the
    raw path.
    """

    def __init__(self, app: ASGIApp, log_request_body: bool = False, skip_paths: Optional[list] = None):
        super().__init__(app)
        self.log_request_body = log_request_body
        self.skip_paths = set(skip_paths or ["/health", "/ready", "/metrics", "/favicon.ico"])

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        path = request.url.path
        if path in self.skip_paths:
            return await call_next(request)

        started = time.perf_counter()
        log_data = {
            "request_id": getattr(request.state, "request_id", None),
            "method": request.method,
            "path": path,
            "operation": rpc_operation(path),
            "idempotency_key": request.headers.get("Idempotency-Key"),
        }
        if self.log_request_body and request.method == "POST":
            body = await request.body()
            if body:
                log_data["request_body"] = body.decode("utf-8", errors="replace")[:1000]

        try:
            response = await call_next(request)
        except Exception as e:
            duration = time.perf_counter() - started
            metrics_collector.record_http_request(request.method, self._endpoint(request), 500, duration)
            logger.error(
                "RPC call failed with unhandled exception",
                extra={**log_data, "status_code": 500, "duration_ms": round(duration * 1000, 2), "error": str(e)}
            )
            raise

        duration = time.perf_counter() - started
        status_code = response.status_code
        metrics_collector.record_http_request(request.method, self._endpoint(request), status_code, duration)

        log_data.update({"status_code": status_code, "duration_ms": round(duration * 1000, 2)})
        if status_code >= 500:
            logger.error("RPC call completed with server error", extra=log_data)
        elif status_code >= 400:
            logger.warning("RPC call rejected", extra=log_data)
        else:
            logger.info("RPC call completed", extra=log_data)

        return response

    @staticmethod
    def _endpoint(request: Request) -> str:
        route = request.scope.get("route")
        return getattr(route, "path", None) or "unmatched"


def setup_middleware(app, enable_logging: bool = True) -> None:
    """
    Install the middleware stack on the FastAPI app.

    The last middleware added runs first, so request context is added last.
    """
    if enable_logging:
        # Request bodies only outside production
        app.add_middleware(
            AccessLogMiddleware,
            log_request_body=settings.debug and not settings.is_production,
        )

    app.add_middleware(RequestContextMiddleware)
