"""Organizational unit schemas."""
from datetime import datetime
from pydantic import BaseModel, Field
from riskreg.schemas.patch import PatchModel


class OrgUnitBase(BaseModel):
    code: str = Field(..., min_length=1, max_length=50)
    name: str = Field(..., min_length=1, max_length=255)
    hierarchy_level: str | None = Field(None, max_length=100)


class OrgUnitCreate(OrgUnitBase):
    pass


class OrgUnitUpdate(PatchModel):
    non_nullable = ("code", "name")

    code: str | None = Field(None, min_length=1, max_length=50)
    name: str | None = Field(None, min_length=1, max_length=255)
    hierarchy_level: str | None = Field(None, max_length=100)


class OrgUnitResponse(OrgUnitBase):
    unit_id: int
    created_at: datetime
    updated_at: datetime
    user_count: int = 0
    risk_count: int = 0
    objective_count: int = 0

    class Config:
        from_attributes = True
