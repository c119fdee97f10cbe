"""Administrative maintenance schemas."""

from pydantic import BaseModel, Field


class StatusMigrationResult(BaseModel):
    """Counts reported by a status normalization run."""

    scanned: int = Field(..., ge=0)
    migrated: int = Field(..., ge=0)
    unchanged: int = Field(..., ge=0)
    unknown: int = Field(..., ge=0, description="Rows left untouched because the status is not recognized")
