"""Report template, history, scheduled report and custom report schemas."""
import json
from datetime import date, datetime
from typing import Any, Dict, List, Literal, Optional
from pydantic import BaseModel, EmailStr, Field, field_validator
from riskreg.schemas.patch import PatchModel

REPORT_TYPE_PATTERN = (
    "^(MONTHLY|QUARTERLY|ANNUAL|CUSTOM|RISK_SUMMARY|ANALYTICS_DASHBOARD|RISK_MATRIX)$"
)


def _check_template_json(value: Optional[str]) -> Optional[str]:
    if value is None:
        return value
    try:
        parsed = json.loads(value)
    except json.JSONDecodeError as exc:
        raise ValueError(f"Invalid template JSON: {exc.msg}")
    if not isinstance(parsed, dict):
        raise ValueError("Template JSON must be an object")
    return value


# ---------------------------------------------------------------------------
# Templates
# ---------------------------------------------------------------------------

class ReportTemplateBase(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    description: str | None = None
    report_type: str = Field(..., pattern=REPORT_TYPE_PATTERN)
    template: str = "{}"
    is_active: bool = True

    @field_validator("template")
    @classmethod
    def validate_template(cls, value):
        return _check_template_json(value)


class ReportTemplateCreate(ReportTemplateBase):
    pass


class ReportTemplateUpdate(PatchModel):
    non_nullable = ("name", "report_type", "template", "is_active")

    name: str | None = Field(None, min_length=1, max_length=255)
    description: str | None = None
    report_type: str | None = Field(None, pattern=REPORT_TYPE_PATTERN)
    template: str | None = None
    is_active: bool | None = None

    @field_validator("template")
    @classmethod
    def validate_template(cls, value):
        return _check_template_json(value)


class ReportTemplateResponse(ReportTemplateBase):
    template_id: int
    created_by_id: int | None = None
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


# ---------------------------------------------------------------------------
# On-demand generation
# ---------------------------------------------------------------------------

class GenerateReportRequest(BaseModel):
    template_id: int
    parameters: Dict[str, Any] = {}


class ReportHistoryResponse(BaseModel):
    history_id: int
    template_id: int | None = None
    name: str
    report_type: str
    parameters: Dict[str, Any] | None = None
    status: str
    file_name: str | None = None
    file_size: int | None = None
    error_message: str | None = None
    generated_by_id: int | None = None
    created_at: datetime
    completed_at: datetime | None = None

    class Config:
        from_attributes = True


class ReportHistoryListResponse(BaseModel):
    data: List[ReportHistoryResponse]
    total: int
    page: int
    limit: int


# ---------------------------------------------------------------------------
# Scheduled reports
# ---------------------------------------------------------------------------

class ReportExecutionResponse(BaseModel):
    execution_id: int
    scheduled_report_id: int
    status: str
    started_at: datetime
    completed_at: datetime | None = None
    file_path: str | None = None
    email_sent: bool
    email_sent_at: datetime | None = None
    execution_time: float | None = None
    error_message: str | None = None

    class Config:
        from_attributes = True


class ScheduledReportBase(BaseModel):
    template_id: int
    name: str = Field(..., min_length=1, max_length=255)
    description: str | None = None
    cron_expression: str = Field(..., min_length=1, max_length=100)
    recipient_emails: List[EmailStr] = Field(..., min_length=1)
    is_active: bool = True


class ScheduledReportCreate(ScheduledReportBase):
    pass


class ScheduledReportUpdate(PatchModel):
    non_nullable = ("template_id", "name", "cron_expression", "recipient_emails", "is_active")

    template_id: int | None = None
    name: str | None = Field(None, min_length=1, max_length=255)
    description: str | None = None
    cron_expression: str | None = Field(None, min_length=1, max_length=100)
    recipient_emails: List[EmailStr] | None = Field(None, min_length=1)
    is_active: bool | None = None


class ScheduledReportResponse(BaseModel):
    scheduled_report_id: int
    template_id: int
    name: str
    description: str | None = None
    cron_expression: str
    recipient_emails: List[str]
    is_active: bool
    last_run: datetime | None = None
    next_run: datetime | None = None
    created_at: datetime
    template_name: str | None = None
    report_type: str | None = None
    recent_executions: List[ReportExecutionResponse] = []


# ---------------------------------------------------------------------------
# Custom report builder
# ---------------------------------------------------------------------------

class DateRange(BaseModel):
    start: date | None = None
    end: date | None = None


class CustomReportFilters(BaseModel):
    unit_ids: List[int] = []
    category_ids: List[int] = []
    risk_levels: List[str] = []
    treatment_statuses: List[str] = []
    date_range: DateRange | None = None


class CustomReportColumn(BaseModel):
    field: str
    label: str
    type: Literal["text", "number", "date", "status"] = "text"
    visible: bool = True


class SortSpec(BaseModel):
    field: str
    direction: Literal["asc", "desc"] = "asc"


class CustomReportConfig(BaseModel):
    name: str = Field("Custom Report", min_length=1, max_length=255)
    description: str | None = None
    filters: CustomReportFilters = CustomReportFilters()
    columns: List[CustomReportColumn] = Field(..., min_length=1)
    sort_by: SortSpec | None = None
    group_by: str | None = None


class CustomReportResult(BaseModel):
    name: str
    columns: List[CustomReportColumn]
    rows: List[Dict[str, Any]]
    total: int
    generated_at: datetime
    groups: Optional[Dict[str, int]] = None
