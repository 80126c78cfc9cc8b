"""Report templates, history, scheduled reports and email templates."""
import enum
from datetime import datetime
from sqlalchemy import String, Integer, Text, Boolean, DateTime, ForeignKey, JSON, Float, CheckConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship
from typing import List, Optional, TYPE_CHECKING
from riskreg.core.time import utc_now
from riskreg.models.base import Base

if TYPE_CHECKING:
    from riskreg.models.user import User


class ReportType(str, enum.Enum):
    MONTHLY = "MONTHLY"
    QUARTERLY = "QUARTERLY"
    ANNUAL = "ANNUAL"
    CUSTOM = "CUSTOM"
    RISK_SUMMARY = "RISK_SUMMARY"
    ANALYTICS_DASHBOARD = "ANALYTICS_DASHBOARD"
    RISK_MATRIX = "RISK_MATRIX"


class ReportStatus(str, enum.Enum):
    GENERATING = "GENERATING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"


class ExecutionStatus(str, enum.Enum):
    RUNNING = "RUNNING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"


class ReportTemplate(Base):
    """Stored report layout; ``template`` holds the JSON section definition."""
    __tablename__ = "report_templates"

    template_id: Mapped[int] = mapped_column(Integer, primary_key=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    report_type: Mapped[str] = mapped_column(String(30), nullable=False, index=True)
    template: Mapped[str] = mapped_column(
        Text, nullable=False, default="{}",
        comment="JSON document with a 'sections' list"
    )
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    created_by_id: Mapped[Optional[int]] = mapped_column(
        Integer, ForeignKey("users.user_id", ondelete="SET NULL"), nullable=True
    )
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=utc_now)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, default=utc_now, onupdate=utc_now
    )

    created_by: Mapped[Optional["User"]] = relationship("User")
    scheduled_reports: Mapped[List["ScheduledReport"]] = relationship(
        "ScheduledReport", back_populates="template"
    )


class ReportHistory(Base):
    """One on-demand report generation."""
    __tablename__ = "report_history"
    __table_args__ = (
        CheckConstraint("status IN ('GENERATING', 'COMPLETED', 'FAILED')", name="chk_report_history_status"),
    )

    history_id: Mapped[int] = mapped_column(Integer, primary_key=True)
    template_id: Mapped[Optional[int]] = mapped_column(
        Integer, ForeignKey("report_templates.template_id", ondelete="SET NULL"), nullable=True, index=True
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    report_type: Mapped[str] = mapped_column(String(30), nullable=False)
    parameters: Mapped[Optional[dict]] = mapped_column(JSON, nullable=True)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default=ReportStatus.GENERATING.value)
    file_name: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    file_size: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    error_message: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    generated_by_id: Mapped[Optional[int]] = mapped_column(
        Integer, ForeignKey("users.user_id", ondelete="SET NULL"), nullable=True
    )
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=utc_now)
    completed_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)

    template: Mapped[Optional["ReportTemplate"]] = relationship("ReportTemplate")
    generated_by: Mapped[Optional["User"]] = relationship("User")


class ScheduledReport(Base):
    """Cron-driven report delivered by email."""
    __tablename__ = "scheduled_reports"

    scheduled_report_id: Mapped[int] = mapped_column(Integer, primary_key=True)
    template_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("report_templates.template_id", ondelete="RESTRICT"), nullable=False, index=True
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    cron_expression: Mapped[str] = mapped_column(
        String(100), nullable=False, comment="Five-field crontab expression"
    )
    recipient_emails: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    last_run: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    next_run: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    created_by_id: Mapped[Optional[int]] = mapped_column(
        Integer, ForeignKey("users.user_id", ondelete="SET NULL"), nullable=True
    )
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=utc_now)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, default=utc_now, onupdate=utc_now
    )

    template: Mapped["ReportTemplate"] = relationship("ReportTemplate", back_populates="scheduled_reports")
    executions: Mapped[List["ReportExecution"]] = relationship(
        "ReportExecution",
        back_populates="scheduled_report",
        cascade="all, delete-orphan",
        order_by="ReportExecution.started_at.desc()"
    )


class ReportExecution(Base):
    """One run of a scheduled report."""
    __tablename__ = "report_executions"
    __table_args__ = (
        CheckConstraint("status IN ('RUNNING', 'COMPLETED', 'FAILED')", name="chk_report_execution_status"),
    )

    execution_id: Mapped[int] = mapped_column(Integer, primary_key=True)
    scheduled_report_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("scheduled_reports.scheduled_report_id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    status: Mapped[str] = mapped_column(String(20), nullable=False, default=ExecutionStatus.RUNNING.value)
    started_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=utc_now)
    completed_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    file_path: Mapped[Optional[str]] = mapped_column(String(1000), nullable=True)
    email_sent: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    email_sent_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    execution_time: Mapped[Optional[float]] = mapped_column(
        Float, nullable=True, comment="Seconds"
    )
    error_message: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    scheduled_report: Mapped["ScheduledReport"] = relationship("ScheduledReport", back_populates="executions")


class EmailTemplate(Base):
    """Jinja2 subject/body templates for outgoing mail."""
    __tablename__ = "email_templates"

    email_template_id: Mapped[int] = mapped_column(Integer, primary_key=True)
    name: Mapped[str] = mapped_column(String(100), nullable=False, index=True)
    subject: Mapped[str] = mapped_column(String(500), nullable=False)
    html_content: Mapped[str] = mapped_column(Text, nullable=False)
    text_content: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    is_default: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=utc_now)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, default=utc_now, onupdate=utc_now
    )
