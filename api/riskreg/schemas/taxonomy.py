"""Risk taxonomy schemas."""
from datetime import datetime
from pydantic import BaseModel, Field
from riskreg.schemas.patch import PatchModel


class RiskTaxonomyBase(BaseModel):
    category: str = Field(..., min_length=1, max_length=255)
    subcategory: str = Field(..., min_length=1, max_length=255)
    description: str | None = None


class RiskTaxonomyCreate(RiskTaxonomyBase):
    pass


class RiskTaxonomyUpdate(PatchModel):
    non_nullable = ("category", "subcategory")

    category: str | None = Field(None, min_length=1, max_length=255)
    subcategory: str | None = Field(None, min_length=1, max_length=255)
    description: str | None = None


class RiskTaxonomyResponse(RiskTaxonomyBase):
    taxonomy_id: int
    created_at: datetime
    risk_count: int = 0

    class Config:
        from_attributes = True


class RiskTaxonomyBrief(BaseModel):
    taxonomy_id: int
    category: str
    subcategory: str

    class Config:
        from_attributes = True
