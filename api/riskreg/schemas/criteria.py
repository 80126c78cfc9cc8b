"""Risk criteria schemas."""
from datetime import datetime
from pydantic import BaseModel, Field
from riskreg.schemas.patch import PatchModel

CRITERIA_TYPE_PATTERN = "^(IMPACT|PROBABILITY)$"


class RiskCriteriaBase(BaseModel):
    criteria_type: str = Field(..., pattern=CRITERIA_TYPE_PATTERN)
    scale_label: str = Field(..., min_length=1, max_length=100)
    value: int = Field(..., ge=1, le=5, strict=True)
    description: str | None = None


class RiskCriteriaCreate(RiskCriteriaBase):
    pass


class RiskCriteriaUpdate(PatchModel):
    non_nullable = ("criteria_type", "scale_label", "value")

    criteria_type: str | None = Field(None, pattern=CRITERIA_TYPE_PATTERN)
    scale_label: str | None = Field(None, min_length=1, max_length=100)
    value: int | None = Field(None, ge=1, le=5, strict=True)
    description: str | None = None


class RiskCriteriaResponse(RiskCriteriaBase):
    criteria_id: int
    created_at: datetime

    class Config:
        from_attributes = True
