"""Response models for liveness, readiness and service information."""

from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, Field

API_VERSION = "1.0.0"


class PingResponse(BaseModel):
    status: Literal["healthy"] = "healthy"
    timestamp: datetime = Field(..., description="Server time in UTC")
    version: str = API_VERSION


class LivenessResponse(BaseModel):
    status: Literal["healthy"] = "healthy"
    service: str
    version: str = API_VERSION
    environment: str


class ReadinessResponse(BaseModel):
    """Readiness of the process and the collaborators it needs to serve calls."""

    status: Literal["ready"] = "ready"
    service: str
    checks: dict[str, Any] = Field(
        ...,
        description="Per-dependency state; workers is 'disabled' when they are not started"
    )


class ServiceInfo(BaseModel):
    service: str
    version: str = API_VERSION
    description: str
    environment: str
    features: dict[str, bool]
    endpoints: dict[str, str | None]
