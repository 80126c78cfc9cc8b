"""Risk register schemas."""
from datetime import datetime
from typing import List
from pydantic import BaseModel, Field
from riskreg.schemas.patch import PatchModel
from riskreg.schemas.user import OrgUnitBrief
from riskreg.schemas.taxonomy import RiskTaxonomyBrief
from riskreg.schemas.risk_assessment import RiskAssessmentResponse
from riskreg.schemas.control import ControlResponse
from riskreg.schemas.kri import KRIResponse
from riskreg.schemas.treatment import TreatmentResponse


class ObjectiveBrief(BaseModel):
    objective_id: int
    objective: str

    class Config:
        from_attributes = True


class RiskBase(BaseModel):
    name: str = Field(..., min_length=1, max_length=500)
    description: str | None = None
    objective_id: int
    owner_unit_id: int
    category_id: int


class RiskCreate(RiskBase):
    risk_number: str | None = Field(None, min_length=1, max_length=50)


class RiskUpdate(PatchModel):
    non_nullable = ("risk_number", "name", "objective_id", "owner_unit_id", "category_id")

    risk_number: str | None = Field(None, min_length=1, max_length=50)
    name: str | None = Field(None, min_length=1, max_length=500)
    description: str | None = None
    objective_id: int | None = None
    owner_unit_id: int | None = None
    category_id: int | None = None


class RiskResponse(RiskBase):
    risk_id: int
    risk_number: str
    owner_unit: OrgUnitBrief | None = None
    category: RiskTaxonomyBrief | None = None
    objective: ObjectiveBrief | None = None
    inherent_assessment: RiskAssessmentResponse | None = None
    residual_assessment: RiskAssessmentResponse | None = None
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class RiskDetailResponse(RiskResponse):
    controls: List[ControlResponse] = []
    kris: List[KRIResponse] = []
    treatments: List[TreatmentResponse] = []


class Pagination(BaseModel):
    page: int
    limit: int
    total: int
    total_pages: int


class RiskListResponse(BaseModel):
    data: List[RiskResponse]
    pagination: Pagination
