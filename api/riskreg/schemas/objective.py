"""Strategic objective schemas."""
from datetime import datetime
from pydantic import BaseModel, Field
from riskreg.schemas.patch import PatchModel
from riskreg.schemas.user import OrgUnitBrief


class ObjectiveBase(BaseModel):
    unit_id: int
    objective: str = Field(..., min_length=1)
    strategy: str | None = None
    expected_outcome: str | None = None
    risk_value: str | None = Field(None, max_length=255)
    risk_limit: str | None = Field(None, max_length=255)


class ObjectiveCreate(ObjectiveBase):
    pass


class ObjectiveUpdate(PatchModel):
    non_nullable = ("unit_id", "objective")

    unit_id: int | None = None
    objective: str | None = Field(None, min_length=1)
    strategy: str | None = None
    expected_outcome: str | None = None
    risk_value: str | None = Field(None, max_length=255)
    risk_limit: str | None = Field(None, max_length=255)


class ObjectiveResponse(ObjectiveBase):
    objective_id: int
    unit: OrgUnitBrief | None = None
    risk_count: int = 0
    created_at: datetime

    class Config:
        from_attributes = True
