"""Party registration schemas."""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

from ..models.party import PartyRole


class RegisterPartyRequest(BaseModel):
    """Request schema for registering a party."""

    role: PartyRole = Field(..., description="Role on the platform")
    email: str = Field(..., min_length=3, max_length=255, pattern=r"^[^@\s]+@[^@\s]+$")
    first_name: Optional[str] = Field(None, max_length=100)
    last_name: Optional[str] = Field(None, max_length=100)
    company: Optional[str] = Field(None, max_length=200)

    @model_validator(mode="after")
    def check_naming_source(self) -> "RegisterPartyRequest":
        if self.role in (PartyRole.OPERATOR, PartyRole.AGENT) and not self.company:
            raise ValueError("company is required for operators and agents")
        return self


class Party(BaseModel):
    """Party response schema."""

    model_config = ConfigDict(from_attributes=True)

    user_code: str = Field(..., description="Role-prefixed user code")
    role: PartyRole
    email: str
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    company: Optional[str] = None
    created_at: datetime
