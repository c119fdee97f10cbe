"""Liveness, readiness, service information and metrics endpoints."""

import logging

from fastapi import APIRouter, Response
from prometheus_client import CONTENT_TYPE_LATEST
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from ..core.clock import utcnow
from ..core.config import settings
from ..core.database import engine
from ..core.exceptions import DependencyError
from ..core.observability import SERVICE_NAME, get_prometheus_metrics
from ..schemas.health import LivenessResponse, PingResponse, ReadinessResponse, ServiceInfo
from ..workers.manager import worker_manager

logger = logging.getLogger(__name__)

# RPC-style ping alongside the lifecycle operations
router = APIRouter(prefix="/v1/health", tags=["health"])

# Plain GET probes for load balancers and scrapers
service_router = APIRouter(tags=["service"])


@router.post("/ping", response_model=PingResponse)
async def health_ping() -> PingResponse:
    return PingResponse(timestamp=utcnow())


@service_router.get("/health", response_model=LivenessResponse)
async def liveness() -> LivenessResponse:
    """The process is up; no dependencies are checked."""
    return LivenessResponse(service=SERVICE_NAME, environment=settings.environment)


@service_router.get("/ready", response_model=ReadinessResponse)
async def readiness() -> ReadinessResponse:
    """
    The store answers a trivial query.

    Raises:
        DependencyError: The database cannot be reached
    """
    try:
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
    except SQLAlchemyError as e:
        logger.error("Readiness check failed", extra={"error": str(e)})
        raise DependencyError("database", detail="Database is unreachable") from e

    workers = worker_manager.get_worker_status() if settings.workers_enabled else "disabled"
    return ReadinessResponse(service=SERVICE_NAME, checks={"database": "ok", "workers": workers})


@service_router.get("/info", response_model=ServiceInfo)
async def service_info() -> ServiceInfo:
    return ServiceInfo(
        service=SERVICE_NAME,
        description="Charter flight request, quote, booking and payment lifecycle",
        environment=settings.environment,
        features={
            "authentication": True,
            "idempotency": True,
            "tracing": settings.otlp_endpoint is not None,
            "problem_details": True,
            "background_workers": settings.workers_enabled,
        },
        endpoints={
            "health": "/health",
            "readiness": "/ready",
            "metrics": "/metrics",
            "docs": "/docs" if settings.debug else None,
        },
    )


@service_router.get("/metrics", response_class=Response, tags=["observability"])
async def metrics() -> Response:
    """Prometheus text exposition of lifecycle and HTTP metrics."""
    return Response(content=get_prometheus_metrics(), media_type=CONTENT_TYPE_LATEST)
