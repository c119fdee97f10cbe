"""Tracing, metrics and structured logging for the charter API."""

import logging

from opentelemetry import metrics, trace
from opentelemetry.exporter.otlp.proto.grpc.metric_exporter import OTLPMetricExporter
from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
from opentelemetry.instrumentation.sqlalchemy import SQLAlchemyInstrumentor
from opentelemetry.sdk.metrics import MeterProvider
from opentelemetry.sdk.metrics.export import PeriodicExportingMetricReader
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor
from prometheus_client import CollectorRegistry, Counter, Histogram, generate_latest
import structlog

from .config import settings
from .database import engine

SERVICE_NAME = "charter-booking-api"

# Served on /metrics instead of the process-wide default registry
REGISTRY = CollectorRegistry()


def _counter(name: str, documentation: str, labels: tuple[str, ...] = ()) -> Counter:
    return Counter(f"charter_{name}_total", documentation, labels, registry=REGISTRY)


HTTP_REQUESTS = _counter("http_requests", "RPC calls by route and status", ("method", "endpoint", "status_code"))
HTTP_DURATION = Histogram(
    "charter_http_request_duration_seconds",
    "RPC call latency",
    ("method", "endpoint"),
    registry=REGISTRY,
)

REQUESTS_SUBMITTED = _counter("requests_submitted", "Quote requests submitted", ("trip_type",))
REQUESTS_EXPIRED = _counter("requests_expired", "Quote requests that passed their deadline")
QUOTES_SUBMITTED = _counter("quotes_submitted", "Operator quotes submitted")
BOOKINGS_CREATED = _counter("bookings_created", "Bookings created from accepted quotes")
BOOKINGS_CANCELLED = _counter("bookings_cancelled", "Bookings cancelled")
PAYMENTS_COMPLETED = _counter("payments_completed", "Payments moved to completed", ("method",))
NOTIFICATIONS_SENT = _counter("notifications_sent", "Notifications delivered", ("kind",))
NOTIFICATIONS_FAILED = _counter("notifications_failed", "Notification delivery attempts that failed", ("kind",))
WORKER_ITERATIONS = _counter("worker_iterations", "Background worker iterations by outcome", ("worker", "outcome"))


def setup_structured_logging():
    """Render structlog events as JSON, or for the console in development."""

    def add_span_ids(logger, method_name, event_dict):
        span = trace.get_current_span()
        if span and span.is_recording():
            ctx = span.get_span_context()
            event_dict['trace_id'] = format(ctx.trace_id, '032x')
            event_dict['span_id'] = format(ctx.span_id, '016x')
        return event_dict

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            add_span_ids,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.add_log_level,
            structlog.processors.StackInfoRenderer(),
            structlog.dev.ConsoleRenderer() if settings.debug else structlog.processors.JSONRenderer(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(
            getattr(logging, settings.log_level)
        ),
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )


def _resource(app_name: str) -> Resource:
    return Resource.create({
        "service.name": app_name,
        "service.version": "1.0.0",
        "environment": settings.environment,
    })


def setup_tracing(app_name: str = SERVICE_NAME):
    """Setup OpenTelemetry tracing."""
    provider = TracerProvider(resource=_resource(app_name))

    # Export only when a collector is configured
    if settings.otlp_endpoint:
        provider.add_span_processor(BatchSpanProcessor(OTLPSpanExporter(endpoint=settings.otlp_endpoint)))

    trace.set_tracer_provider(provider)
    return trace.get_tracer(__name__)


def setup_metrics(app_name: str = SERVICE_NAME):
    """Setup OpenTelemetry metrics."""
    if settings.otlp_endpoint:
        otlp_exporter = OTLPMetricExporter(endpoint=settings.otlp_endpoint)
        reader = PeriodicExportingMetricReader(exporter=otlp_exporter, export_interval_millis=60000)
        metrics.set_meter_provider(MeterProvider(resource=_resource(app_name), metric_readers=[reader]))

    return metrics.get_meter(__name__)


def instrument_fastapi(app):
    """Instrument FastAPI with OpenTelemetry."""
    FastAPIInstrumentor.instrument_app(app)


def instrument_sqlalchemy():
    """Trace statements on the already-created async engine."""
    SQLAlchemyInstrumentor().instrument(engine=engine.sync_engine)


class MetricsCollector:
    """Collector for lifecycle metrics."""

    @staticmethod
    def record_request_submitted(trip_type: str):
        REQUESTS_SUBMITTED.labels(trip_type=trip_type).inc()

    @staticmethod
    def record_requests_expired(count: int = 1):
        REQUESTS_EXPIRED.inc(count)

    @staticmethod
    def record_quote_submitted():
        QUOTES_SUBMITTED.inc()

    @staticmethod
    def record_booking_created():
        BOOKINGS_CREATED.inc()

    @staticmethod
    def record_booking_cancelled():
        BOOKINGS_CANCELLED.inc()

    @staticmethod
    def record_payment_completed(method: str):
        PAYMENTS_COMPLETED.labels(method=method).inc()

    @staticmethod
    def record_notification_sent(kind: str):
        NOTIFICATIONS_SENT.labels(kind=kind).inc()

    @staticmethod
    def record_notification_failed(kind: str):
        NOTIFICATIONS_FAILED.labels(kind=kind).inc()

    @staticmethod
    def record_worker_iteration(worker: str, succeeded: bool):
        WORKER_ITERATIONS.labels(worker=worker, outcome="ok" if succeeded else "error").inc()

    @staticmethod
    def record_http_request(method: str, endpoint: str, status_code: int, duration_seconds: float):
        HTTP_REQUESTS.labels(method=method, endpoint=endpoint, status_code=str(status_code)).inc()
        HTTP_DURATION.labels(method=method, endpoint=endpoint).observe(duration_seconds)


def get_prometheus_metrics() -> bytes:
    return generate_latest(REGISTRY)


metrics_collector = MetricsCollector()
