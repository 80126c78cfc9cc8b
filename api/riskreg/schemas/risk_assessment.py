"""Risk assessment schemas."""
from datetime import datetime
from pydantic import BaseModel, Field, model_validator

ASSESSMENT_TYPE_PATTERN = "^(INHERENT|RESIDUAL)$"


class RiskAssessmentUpsert(BaseModel):
    """Create or replace the INHERENT or RESIDUAL assessment of a risk."""
    assessment_type: str = Field(..., pattern=ASSESSMENT_TYPE_PATTERN)
    impact_value: str | None = Field(None, max_length=255)
    impact_scale: int = Field(..., ge=1, le=5, strict=True)
    probability_value: str | None = Field(None, max_length=255)
    probability_scale: int = Field(..., ge=1, le=5, strict=True)
    qualitative_impact_note: str | None = None
    target_residual: str | None = Field(None, max_length=255)

    @model_validator(mode="after")
    def drop_fields_for_other_type(self):
        # Qualitative note belongs to inherent, target to residual
        if self.assessment_type == "RESIDUAL":
            self.qualitative_impact_note = None
        else:
            self.target_residual = None
        return self


class RiskAssessmentResponse(BaseModel):
    assessment_id: int
    risk_id: int
    assessment_type: str
    impact_value: str | None = None
    impact_scale: int
    probability_value: str | None = None
    probability_scale: int
    exposure: int
    level: str
    qualitative_impact_note: str | None = None
    target_residual: str | None = None
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class RiskAssessmentPair(BaseModel):
    inherent: RiskAssessmentResponse | None = None
    residual: RiskAssessmentResponse | None = None
