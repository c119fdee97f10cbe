"""HTTP routers: one module per RPC resource plus the service probes."""

from .admin import router as admin_router
from .booking import router as booking_router
from .health import router as health_router
from .health import service_router
from .invoice import router as invoice_router
from .party import router as party_router
from .passenger import router as passenger_router
from .payment import router as payment_router
from .quote import router as quote_router
from .rating import router as rating_router
from .request import router as request_router

RPC_ROUTERS = (
    health_router,
    party_router,
    request_router,
    quote_router,
    booking_router,
    passenger_router,
    invoice_router,
    payment_router,
    rating_router,
    admin_router,
)

__all__ = ["RPC_ROUTERS", "service_router"]
