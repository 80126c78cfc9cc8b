"""Key risk indicator schemas."""
from datetime import datetime
from decimal import Decimal
from pydantic import BaseModel, Field
from riskreg.schemas.patch import PatchModel


class KRIBase(BaseModel):
    risk_id: int
    indicator_name: str = Field(..., min_length=1, max_length=500)
    unit_of_measure: str = Field(..., min_length=1, max_length=100)
    threshold_category: str | None = Field(None, max_length=50)
    threshold_value: Decimal | None = None


class KRICreate(KRIBase):
    pass


class KRIUpdate(PatchModel):
    non_nullable = ("indicator_name", "unit_of_measure")

    indicator_name: str | None = Field(None, min_length=1, max_length=500)
    unit_of_measure: str | None = Field(None, min_length=1, max_length=100)
    threshold_category: str | None = Field(None, max_length=50)
    threshold_value: Decimal | None = None


class KRIResponse(KRIBase):
    kri_id: int
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True
