"""Reporting routes: templates, on-demand PDFs, custom reports and schedules."""
import io
import logging
from typing import List, Optional
from fastapi import APIRouter, Depends, HTTPException, Query, status
from fastapi.responses import StreamingResponse
from sqlalchemy.orm import Session, joinedload, selectinload

from riskreg.core.audit import apply_update, create_audit_log
from riskreg.core.custom_report import PREVIEW_LIMIT, report_schema, run_custom_report
from riskreg.core.database import get_db
from riskreg.core.deps import get_current_user, require_admin, require_master_data_editor
from riskreg.core.report_builder import render_report
from riskreg.core.time import utc_now
from riskreg.models.reporting import (
    ReportHistory, ReportStatus, ReportTemplate, ScheduledReport
)
from riskreg.models.user import User
from riskreg.schemas.report import (
    CustomReportConfig,
    CustomReportResult,
    GenerateReportRequest,
    ReportExecutionResponse,
    ReportHistoryListResponse,
    ReportTemplateCreate,
    ReportTemplateResponse,
    ReportTemplateUpdate,
    ScheduledReportCreate,
    ScheduledReportResponse,
    ScheduledReportUpdate,
)
from riskreg.services.email_service import email_service
from riskreg.services.report_scheduler import (
    EXECUTION_HISTORY_LIMIT, InvalidCronExpression, parse_cron, report_scheduler, safe_file_name
)

logger = logging.getLogger(__name__)

router = APIRouter()

RECENT_EXECUTIONS = 5


def get_template_or_404(db: Session, template_id: int) -> ReportTemplate:
    template = db.query(ReportTemplate).filter(ReportTemplate.template_id == template_id).first()
    if not template:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Report template not found"
        )
    return template


def get_scheduled_or_404(db: Session, scheduled_report_id: int) -> ScheduledReport:
    report = db.query(ScheduledReport).options(
        joinedload(ScheduledReport.template),
        selectinload(ScheduledReport.executions),
    ).filter(ScheduledReport.scheduled_report_id == scheduled_report_id).first()
    if not report:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Scheduled report not found"
        )
    return report


def _validate_cron(expression: str) -> None:
    try:
        parse_cron(expression)
    except InvalidCronExpression as exc:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(exc)
        )


def _existing_template(db: Session, template_id: int) -> ReportTemplate:
    template = db.query(ReportTemplate).filter(ReportTemplate.template_id == template_id).first()
    if not template:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Report template not found"
        )
    return template


def scheduled_to_response(report: ScheduledReport) -> dict:
    return {
        "scheduled_report_id": report.scheduled_report_id,
        "template_id": report.template_id,
        "name": report.name,
        "description": report.description,
        "cron_expression": report.cron_expression,
        "recipient_emails": list(report.recipient_emails or []),
        "is_active": report.is_active,
        "last_run": report.last_run,
        "next_run": report.next_run,
        "created_at": report.created_at,
        "template_name": report.template.name if report.template else None,
        "report_type": report.template.report_type if report.template else None,
        "recent_executions": report.executions[:RECENT_EXECUTIONS],
    }


# ---------------------------------------------------------------------------
# Templates
# ---------------------------------------------------------------------------

@router.get("/templates", response_model=List[ReportTemplateResponse])
def list_report_templates(
    report_type: Optional[str] = Query(None),
    is_active: Optional[bool] = Query(None),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    query = db.query(ReportTemplate)
    if report_type:
        query = query.filter(ReportTemplate.report_type == report_type)
    if is_active is not None:
        query = query.filter(ReportTemplate.is_active.is_(is_active))
    return query.order_by(ReportTemplate.name).all()


@router.post("/templates", response_model=ReportTemplateResponse, status_code=status.HTTP_201_CREATED)
def create_report_template(
    template_data: ReportTemplateCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_master_data_editor)
):
    template = ReportTemplate(**template_data.model_dump(), created_by_id=current_user.user_id)
    db.add(template)
    db.flush()
    create_audit_log(
        db=db,
        entity_type="ReportTemplate",
        entity_id=template.template_id,
        action="CREATE",
        user_id=current_user.user_id,
        changes={"name": template.name, "report_type": template.report_type}
    )
    db.commit()
    db.refresh(template)
    return template


@router.get("/templates/{template_id}", response_model=ReportTemplateResponse)
def get_report_template(
    template_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    return get_template_or_404(db, template_id)


@router.patch("/templates/{template_id}", response_model=ReportTemplateResponse)
def update_report_template(
    template_id: int,
    template_data: ReportTemplateUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_master_data_editor)
):
    template = get_template_or_404(db, template_id)
    changes = apply_update(template, template_data.model_dump(exclude_unset=True))
    if changes:
        create_audit_log(
            db=db,
            entity_type="ReportTemplate",
            entity_id=template.template_id,
            action="UPDATE",
            user_id=current_user.user_id,
            changes=changes
        )
    db.commit()
    db.refresh(template)
    return template


@router.delete("/templates/{template_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_report_template(
    template_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_admin)
):
    """Delete a template. Templates used by a scheduled report cannot be deleted."""
    template = get_template_or_404(db, template_id)
    if template.scheduled_reports:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Template is used by {len(template.scheduled_reports)} scheduled report(s)"
        )
    create_audit_log(
        db=db,
        entity_type="ReportTemplate",
        entity_id=template.template_id,
        action="DELETE",
        user_id=current_user.user_id,
        changes={"name": template.name}
    )
    db.delete(template)
    db.commit()
    return None


# ---------------------------------------------------------------------------
# On-demand generation
# ---------------------------------------------------------------------------

@router.post("/generate")
def generate_report(
    request: GenerateReportRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """Render a template to PDF and record the run in the report history."""
    template = get_template_or_404(db, request.template_id)

    history = ReportHistory(
        template_id=template.template_id,
        name=request.parameters.get("title") or template.name,
        report_type=template.report_type,
        parameters=request.parameters,
        status=ReportStatus.GENERATING.value,
        generated_by_id=current_user.user_id,
    )
    db.add(history)
    db.commit()
    db.refresh(history)

    try:
        content = render_report(db, template, request.parameters)
    except Exception as exc:
        db.rollback()
        logger.exception("Report generation failed for template %s", template.template_id)
        history.status = ReportStatus.FAILED.value
        history.error_message = str(exc)
        history.completed_at = utc_now()
        db.commit()
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Report generation failed: {exc}"
        )

    filename = f"{safe_file_name(history.name)}_{utc_now().strftime('%Y-%m-%d')}.pdf"
    history.status = ReportStatus.COMPLETED.value
    history.file_name = filename
    history.file_size = len(content)
    history.completed_at = utc_now()
    db.commit()

    return StreamingResponse(
        io.BytesIO(content),
        media_type="application/pdf",
        headers={"Content-Disposition": f"attachment; filename={filename}"}
    )


@router.get("/history", response_model=ReportHistoryListResponse)
def list_report_history(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    status_filter: Optional[str] = Query(
        None, alias="status", pattern="^(GENERATING|COMPLETED|FAILED)$"
    ),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    query = db.query(ReportHistory)
    if status_filter:
        query = query.filter(ReportHistory.status == status_filter)
    total = query.count()
    rows = query.order_by(
        ReportHistory.created_at.desc(), ReportHistory.history_id.desc()
    ).offset((page - 1) * limit).limit(limit).all()
    return {"data": rows, "total": total, "page": page, "limit": limit}


# ---------------------------------------------------------------------------
# Custom report builder
# ---------------------------------------------------------------------------

@router.get("/custom/schema")
def get_custom_report_schema(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """Filters, columns and chart types available to the report builder."""
    return report_schema(db)


@router.post("/custom/preview", response_model=CustomReportResult)
def preview_custom_report(
    config: CustomReportConfig,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """First rows of a custom report plus the full row count."""
    return run_custom_report(db, config, limit=PREVIEW_LIMIT)


@router.post("/custom", response_model=CustomReportResult)
def execute_custom_report(
    config: CustomReportConfig,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    return run_custom_report(db, config)


# ---------------------------------------------------------------------------
# Scheduled reports (fixed paths declared before /scheduled/{id})
# ---------------------------------------------------------------------------

@router.get("/scheduled/executions", response_model=List[ReportExecutionResponse])
def list_report_executions(
    scheduled_report_id: Optional[int] = Query(None),
    limit: int = Query(EXECUTION_HISTORY_LIMIT, ge=1, le=EXECUTION_HISTORY_LIMIT),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """Execution history, newest first."""
    return report_scheduler.get_execution_history(db, scheduled_report_id, limit)


@router.get("/scheduled/jobs")
def list_scheduled_jobs(current_user: User = Depends(require_admin)):
    """Jobs currently registered with the in-process scheduler."""
    return {"running": report_scheduler.running, "jobs": report_scheduler.get_scheduled_jobs()}


@router.get("/scheduled", response_model=List[ScheduledReportResponse])
def list_scheduled_reports(
    is_active: Optional[bool] = Query(None),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    query = db.query(ScheduledReport).options(
        joinedload(ScheduledReport.template),
        selectinload(ScheduledReport.executions),
    )
    if is_active is not None:
        query = query.filter(ScheduledReport.is_active.is_(is_active))
    return [scheduled_to_response(r) for r in query.order_by(ScheduledReport.name).all()]


@router.post("/scheduled", response_model=ScheduledReportResponse, status_code=status.HTTP_201_CREATED)
def create_scheduled_report(
    report_data: ScheduledReportCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_master_data_editor)
):
    """Create a schedule and register it with the scheduler when active."""
    _existing_template(db, report_data.template_id)
    _validate_cron(report_data.cron_expression)

    data = report_data.model_dump()
    data["recipient_emails"] = [str(e) for e in report_data.recipient_emails]
    report = ScheduledReport(**data, created_by_id=current_user.user_id)
    db.add(report)
    db.flush()

    if report.is_active:
        report.next_run = report_scheduler.schedule_report(report)

    create_audit_log(
        db=db,
        entity_type="ScheduledReport",
        entity_id=report.scheduled_report_id,
        action="CREATE",
        user_id=current_user.user_id,
        changes={"name": report.name, "cron_expression": report.cron_expression}
    )
    db.commit()
    return scheduled_to_response(get_scheduled_or_404(db, report.scheduled_report_id))


@router.get("/scheduled/{scheduled_report_id}", response_model=ScheduledReportResponse)
def get_scheduled_report(
    scheduled_report_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    return scheduled_to_response(get_scheduled_or_404(db, scheduled_report_id))


@router.patch("/scheduled/{scheduled_report_id}", response_model=ScheduledReportResponse)
def update_scheduled_report(
    scheduled_report_id: int,
    report_data: ScheduledReportUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_master_data_editor)
):
    """Update a schedule. Cron or activation changes reschedule the job."""
    report = get_scheduled_or_404(db, scheduled_report_id)
    update_data = report_data.model_dump(exclude_unset=True)

    if update_data.get("template_id") is not None:
        _existing_template(db, update_data["template_id"])
    if update_data.get("cron_expression") is not None:
        _validate_cron(update_data["cron_expression"])
    if "recipient_emails" in update_data and update_data["recipient_emails"] is not None:
        update_data["recipient_emails"] = [str(e) for e in update_data["recipient_emails"]]

    changes = apply_update(report, update_data)
    report.next_run = report_scheduler.reschedule_report(report)

    if changes:
        create_audit_log(
            db=db,
            entity_type="ScheduledReport",
            entity_id=report.scheduled_report_id,
            action="UPDATE",
            user_id=current_user.user_id,
            changes=changes
        )
    db.commit()
    db.expire_all()
    return scheduled_to_response(get_scheduled_or_404(db, scheduled_report_id))


@router.delete("/scheduled/{scheduled_report_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_scheduled_report(
    scheduled_report_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_master_data_editor)
):
    report = get_scheduled_or_404(db, scheduled_report_id)
    report_scheduler.unschedule_report(report.scheduled_report_id)
    create_audit_log(
        db=db,
        entity_type="ScheduledReport",
        entity_id=report.scheduled_report_id,
        action="DELETE",
        user_id=current_user.user_id,
        changes={"name": report.name}
    )
    db.delete(report)
    db.commit()
    return None


@router.post("/scheduled/{scheduled_report_id}/run", response_model=ReportExecutionResponse)
def run_scheduled_report(
    scheduled_report_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_master_data_editor)
):
    """Execute a scheduled report immediately."""
    get_scheduled_or_404(db, scheduled_report_id)
    try:
        return report_scheduler.execute_scheduled_report(scheduled_report_id, db=db)
    except Exception as exc:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Scheduled report execution failed: {exc}"
        )


# ---------------------------------------------------------------------------
# Email
# ---------------------------------------------------------------------------

@router.post("/email/test-connection")
def test_email_connection(current_user: User = Depends(require_admin)):
    """Check that the configured SMTP server accepts a login."""
    if not email_service.is_configured():
        return {"configured": False, "connected": False}
    return {"configured": True, "connected": email_service.test_connection()}
