"""Existing control schemas."""
from datetime import datetime
from pydantic import BaseModel, Field
from riskreg.schemas.patch import PatchModel

EFFECTIVENESS_PATTERN = "^(VERY_EFFECTIVE|EFFECTIVE|FAIRLY_EFFECTIVE|LESS_EFFECTIVE|INEFFECTIVE)$"


class ControlBase(BaseModel):
    risk_id: int
    control_type: str = Field(..., min_length=1, max_length=255)
    impact_description: str | None = None
    effectiveness_rating: str = Field(..., pattern=EFFECTIVENESS_PATTERN)


class ControlCreate(ControlBase):
    pass


class ControlUpdate(PatchModel):
    non_nullable = ("control_type", "effectiveness_rating")

    control_type: str | None = Field(None, min_length=1, max_length=255)
    impact_description: str | None = None
    effectiveness_rating: str | None = Field(None, pattern=EFFECTIVENESS_PATTERN)


class ControlResponse(ControlBase):
    control_id: int
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True
