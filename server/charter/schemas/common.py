"""Common Pydantic schemas."""

from decimal import Decimal
from typing import Annotated, List, Optional

from pydantic import BaseModel, Field

# Monetary amount with cent precision
MoneyAmount = Annotated[Decimal, Field(max_digits=12, decimal_places=2)]

CurrencyCode = Annotated[
    str,
    Field(min_length=3, max_length=3, pattern=r"^[A-Z]{3}$", description="ISO 4217 currency code"),
]

PartyCode = Annotated[str, Field(min_length=1, max_length=32, description="Role-prefixed user code")]

EntityCode = Annotated[str, Field(min_length=1, max_length=40, description="Entity code")]


class Violation(BaseModel):
    """Validation error violation."""

    path: str = Field(..., description="JSON path to the invalid field")
    message: str = Field(..., description="Validation error message")


class Problem(BaseModel):
    """RFC 9457 Problem Details response."""

    type: Optional[str] = Field(None, description="Problem type URI")
    title: str = Field(..., description="Short human-readable summary")
    status: int = Field(..., description="HTTP status code")
    detail: Optional[str] = Field(None, description="Human-readable explanation")
    instance: Optional[str] = Field(None, description="URI reference for this occurrence")
    code: Optional[str] = Field(None, description="Application-specific error code")
    retryable: Optional[bool] = Field(None, description="Whether the operation can be retried")
    trace_id: Optional[str] = Field(None, description="Trace ID for debugging")
    violations: Optional[List[Violation]] = Field(None, description="Validation errors")


class ListLimit(BaseModel):
    """Base class for list requests."""

    limit: int = Field(50, ge=1, le=200, description="Maximum number of items to return")
