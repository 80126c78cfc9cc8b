"""Cron-driven generation and delivery of scheduled reports.

Jobs live in an in-process APScheduler BackgroundScheduler keyed by
scheduled report id. Each job runs with ``max_instances=1`` so a slow run
is never overlapped by the next fire of the same schedule.
"""
import logging
import os
import re
import time
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional
from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.cron import CronTrigger
from sqlalchemy.orm import Session, joinedload

from riskreg.core.config import settings
from riskreg.core.database import SessionLocal
from riskreg.core.report_builder import compute_period, render_report
from riskreg.core.time import utc_now
from riskreg.models.reporting import ExecutionStatus, ReportExecution, ScheduledReport
from riskreg.services.email_service import EmailService, email_service as default_email_service

logger = logging.getLogger(__name__)

EXECUTION_HISTORY_LIMIT = 100


class InvalidCronExpression(ValueError):
    """Raised for cron expressions APScheduler cannot parse."""


def parse_cron(expression: str, tz: Optional[str] = None) -> CronTrigger:
    """Build a trigger from a five-field crontab expression."""
    fields = expression.split()
    if len(fields) != 5:
        raise InvalidCronExpression(
            f"Invalid cron expression '{expression}': expected 5 fields, got {len(fields)}"
        )
    try:
        return CronTrigger.from_crontab(expression, timezone=tz or settings.SCHEDULER_TIMEZONE)
    except ValueError as exc:
        raise InvalidCronExpression(f"Invalid cron expression '{expression}': {exc}") from exc


def next_fire_time(expression: str, tz: Optional[str] = None, now: Optional[datetime] = None) -> Optional[datetime]:
    """Next fire time of a cron expression as naive UTC."""
    trigger = parse_cron(expression, tz)
    now = now or datetime.now(timezone.utc)
    fire = trigger.get_next_fire_time(None, now)
    if fire is None:
        return None
    return fire.astimezone(timezone.utc).replace(tzinfo=None)


def safe_file_name(name: str) -> str:
    return re.sub(r"[^A-Za-z0-9]+", "_", name).strip("_") or "report"


class ReportScheduler:
    """Registry of cron jobs for ScheduledReport rows."""

    def __init__(
        self,
        session_factory: Callable[[], Session] = SessionLocal,
        email_service: Optional[EmailService] = None,
        timezone_name: Optional[str] = None,
        reports_dir: Optional[str] = None
    ):
        self.session_factory = session_factory
        self.email_service = email_service or default_email_service
        self.timezone_name = timezone_name or settings.SCHEDULER_TIMEZONE
        self.reports_dir = reports_dir or settings.REPORTS_DIR
        self.scheduler = BackgroundScheduler(timezone=self.timezone_name)
        self.jobs: Dict[int, Any] = {}

    @property
    def running(self) -> bool:
        return self.scheduler.running

    @staticmethod
    def job_id(scheduled_report_id: int) -> str:
        return f"scheduled-report-{scheduled_report_id}"

    def start(self) -> None:
        """Start the scheduler and load active schedules from the database."""
        if self.running:
            return
        self.scheduler.start()
        logger.info("Report scheduler started (timezone %s)", self.timezone_name)
        self.initialize()

    def initialize(self) -> int:
        """Schedule every active report. Returns the number of jobs registered."""
        db = self.session_factory()
        try:
            reports = db.query(ScheduledReport).filter(ScheduledReport.is_active.is_(True)).all()
            count = 0
            for report in reports:
                try:
                    report.next_run = self.schedule_report(report)
                    count += 1
                except InvalidCronExpression as exc:
                    logger.error("Skipping scheduled report %s: %s", report.scheduled_report_id, exc)
            db.commit()
            logger.info("Loaded %d scheduled report(s)", count)
            return count
        finally:
            db.close()

    def schedule_report(self, report: ScheduledReport) -> Optional[datetime]:
        """Register (or replace) the job for a report and return its next run (naive UTC).

        When the scheduler is not running only the next run is computed; the
        job is registered by initialize() on start.
        """
        trigger = parse_cron(report.cron_expression, self.timezone_name)
        report_id = report.scheduled_report_id
        if self.running:
            self.jobs[report_id] = self.scheduler.add_job(
                self._run_job,
                trigger,
                args=[report_id],
                id=self.job_id(report_id),
                name=report.name,
                replace_existing=True,
                max_instances=1,
                coalesce=True,
            )
            logger.info("Scheduled report %s '%s' (%s)", report_id, report.name, report.cron_expression)
        return next_fire_time(report.cron_expression, self.timezone_name)

    def unschedule_report(self, scheduled_report_id: int) -> bool:
        """Remove a job. Returns True when one was registered."""
        job = self.jobs.pop(scheduled_report_id, None)
        if job is None:
            return False
        if self.scheduler.get_job(self.job_id(scheduled_report_id)):
            self.scheduler.remove_job(self.job_id(scheduled_report_id))
        logger.info("Unscheduled report %s", scheduled_report_id)
        return True

    def reschedule_report(self, report: ScheduledReport) -> Optional[datetime]:
        """Drop the existing job and schedule again when the report is active."""
        self.unschedule_report(report.scheduled_report_id)
        if not report.is_active:
            return None
        return self.schedule_report(report)

    def _run_job(self, scheduled_report_id: int) -> None:
        # Background thread entry point; failures are already recorded on the execution row
        try:
            self.execute_scheduled_report(scheduled_report_id)
        except Exception:
            logger.exception("Scheduled report %s failed", scheduled_report_id)

    def execute_scheduled_report(self, scheduled_report_id: int, db: Optional[Session] = None) -> ReportExecution:
        """Generate, store and email one scheduled report.

        Records a ReportExecution (RUNNING, then COMPLETED or FAILED) and
        updates last_run / next_run. Errors are recorded and re-raised.
        """
        owns_session = db is None
        db = db or self.session_factory()
        try:
            report = db.query(ScheduledReport).options(
                joinedload(ScheduledReport.template)
            ).filter(ScheduledReport.scheduled_report_id == scheduled_report_id).first()
            if report is None:
                raise LookupError(f"Scheduled report {scheduled_report_id} not found")

            execution = ReportExecution(
                scheduled_report_id=report.scheduled_report_id,
                status=ExecutionStatus.RUNNING.value,
                started_at=utc_now(),
            )
            db.add(execution)
            db.commit()
            db.refresh(execution)

            started = time.monotonic()
            try:
                self._generate_and_deliver(db, report, execution)
            except Exception as exc:
                db.rollback()
                execution.status = ExecutionStatus.FAILED.value
                execution.error_message = str(exc)
                execution.completed_at = utc_now()
                execution.execution_time = round(time.monotonic() - started, 3)
                report.last_run = execution.started_at
                report.next_run = next_fire_time(report.cron_expression, self.timezone_name)
                db.commit()
                logger.error("Scheduled report %s failed: %s", scheduled_report_id, exc)
                raise

            execution.status = ExecutionStatus.COMPLETED.value
            execution.completed_at = utc_now()
            execution.execution_time = round(time.monotonic() - started, 3)
            report.last_run = execution.started_at
            report.next_run = next_fire_time(report.cron_expression, self.timezone_name)
            db.commit()
            db.refresh(execution)
            logger.info(
                "Scheduled report %s completed in %.2fs (emailed: %s)",
                scheduled_report_id, execution.execution_time, execution.email_sent
            )
            return execution
        finally:
            if owns_session:
                db.close()

    def _generate_and_deliver(self, db: Session, report: ScheduledReport, execution: ReportExecution) -> None:
        template = report.template
        now_local = datetime.now(self.scheduler.timezone)
        parameters = compute_period(template.report_type, now_local.date())
        parameters["title"] = report.name

        generated_at = utc_now()
        content = render_report(db, template, parameters, generated_at=generated_at)

        os.makedirs(self.reports_dir, exist_ok=True)
        filename = f"{safe_file_name(report.name)}_{template.report_type}_{now_local.strftime('%Y-%m-%d')}.pdf"
        file_path = os.path.join(self.reports_dir, filename)
        with open(file_path, "wb") as fh:
            fh.write(content)
        execution.file_path = file_path

        sent = self.email_service.send_report_email(
            db,
            recipients=list(report.recipient_emails or []),
            report_name=report.name,
            period=parameters["period"],
            generated_at=now_local.strftime("%d %B %Y %H:%M"),
            pdf_content=content,
            filename=filename,
            report_url=f"{settings.APP_BASE_URL.rstrip('/')}/reports",
        )
        execution.email_sent = sent
        if sent:
            execution.email_sent_at = utc_now()

    def get_scheduled_jobs(self) -> List[Dict[str, Any]]:
        """Registered jobs with their next fire time."""
        jobs = []
        for report_id, job in sorted(self.jobs.items()):
            next_run = getattr(job, "next_run_time", None)
            jobs.append({
                "scheduled_report_id": report_id,
                "name": job.name,
                "next_run": next_run.astimezone(timezone.utc).replace(tzinfo=None) if next_run else None,
            })
        return jobs

    def get_execution_history(
        self,
        db: Session,
        scheduled_report_id: Optional[int] = None,
        limit: int = EXECUTION_HISTORY_LIMIT
    ) -> List[ReportExecution]:
        query = db.query(ReportExecution)
        if scheduled_report_id is not None:
            query = query.filter(ReportExecution.scheduled_report_id == scheduled_report_id)
        return query.order_by(
            ReportExecution.started_at.desc(), ReportExecution.execution_id.desc()
        ).limit(limit).all()

    def shutdown(self) -> None:
        if self.running:
            self.scheduler.shutdown(wait=False)
            logger.info("Report scheduler stopped")
        self.jobs.clear()


report_scheduler = ReportScheduler()
