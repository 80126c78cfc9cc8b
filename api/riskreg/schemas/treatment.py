"""Treatment plan and realization schemas."""
from datetime import date, datetime
from decimal import Decimal
from pydantic import BaseModel, Field
from riskreg.schemas.patch import PatchModel
from riskreg.schemas.user import UserBrief

TREATMENT_OPTION_PATTERN = "^(MITIGATE|ACCEPT|AVOID|TRANSFER)$"
REALIZATION_STATUS_PATTERN = "^(PLANNING|ON_TRACK|IN_PROGRESS|DELAYED|COMPLETED)$"


class RealizationBase(BaseModel):
    period: date
    kri_realization: str | None = None
    plan_realization: str | None = None
    output_realization: str | None = None
    cost_realization: Decimal | None = Field(None, ge=0)
    absorption_pct: Decimal | None = Field(None, ge=0, le=100)
    status: str = Field("PLANNING", pattern=REALIZATION_STATUS_PATTERN)
    progress: str | None = None


class RealizationCreate(RealizationBase):
    pass


class RealizationResponse(RealizationBase):
    realization_id: int
    treatment_id: int
    created_at: datetime

    class Config:
        from_attributes = True


class TreatmentBase(BaseModel):
    risk_id: int
    pic_id: int
    treatment_option: str | None = Field(None, pattern=TREATMENT_OPTION_PATTERN)
    treatment_plan: str = Field(..., min_length=1)
    output: str | None = None
    cost: Decimal | None = Field(None, ge=0)
    timeline_months: int | None = Field(None, ge=1)
    program_type: str | None = Field(None, max_length=255)


class TreatmentCreate(TreatmentBase):
    pass


class TreatmentUpdate(PatchModel):
    non_nullable = ("pic_id", "treatment_plan")

    pic_id: int | None = None
    treatment_option: str | None = Field(None, pattern=TREATMENT_OPTION_PATTERN)
    treatment_plan: str | None = Field(None, min_length=1)
    output: str | None = None
    cost: Decimal | None = Field(None, ge=0)
    timeline_months: int | None = Field(None, ge=1)
    program_type: str | None = Field(None, max_length=255)


class TreatmentResponse(TreatmentBase):
    treatment_id: int
    pic: UserBrief | None = None
    latest_realization: RealizationResponse | None = None
    realization_count: int = 0
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True
