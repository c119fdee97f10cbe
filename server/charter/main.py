"""Application factory for the charter booking API."""

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy.exc import InterfaceError, OperationalError

from .core.config import settings
from .core.database import close_db, init_db
from .core.exceptions import (
    ProblemDetailsException,
    generic_exception_handler,
    problem_details_handler,
    request_validation_handler,
    store_unavailable_handler,
)
from .core.middleware import REQUEST_ID_HEADER, setup_middleware
from .core.observability import (
    SERVICE_NAME,
    instrument_fastapi,
    instrument_sqlalchemy,
    setup_metrics,
    setup_structured_logging,
    setup_tracing,
)
from .routers import RPC_ROUTERS, service_router
from .schemas.health import API_VERSION
from .workers.manager import worker_manager

setup_structured_logging()
logging.basicConfig(
    level=getattr(logging, settings.log_level),
    format="%(asctime)s %(levelname)s %(name)s %(message)s",
)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Set up telemetry and the store, run workers for the app's lifetime."""
    logger.info("Starting charter booking API", extra={"environment": settings.environment})

    setup_tracing(SERVICE_NAME)
    setup_metrics(SERVICE_NAME)
    instrument_sqlalchemy()
    await init_db()

    if settings.workers_enabled:
        await worker_manager.start_all()

    yield

    try:
        if settings.workers_enabled:
            await worker_manager.stop_all()
    finally:
        await close_db()
        logger.info("Charter booking API stopped")


def create_app() -> FastAPI:
    app = FastAPI(
        title="Charter Booking API",
        description="RPC-over-HTTP API taking charter flight requests through operator quotes to paid bookings",
        version=API_VERSION,
        debug=settings.debug,
        lifespan=lifespan,
        docs_url="/docs" if settings.debug else None,
        redoc_url=None,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["*"],
        expose_headers=[REQUEST_ID_HEADER, "traceparent", "tracestate"],
    )
    setup_middleware(app)
    instrument_fastapi(app)

    app.add_exception_handler(ProblemDetailsException, problem_details_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.add_exception_handler(OperationalError, store_unavailable_handler)
    app.add_exception_handler(InterfaceError, store_unavailable_handler)
    app.add_exception_handler(Exception, generic_exception_handler)

    app.include_router(service_router)
    for router in RPC_ROUTERS:
        app.include_router(router)

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "charter.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
        log_level=settings.log_level.lower(),
    )
