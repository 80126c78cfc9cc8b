"""Tests for cron scheduling and execution of scheduled reports."""
import os
from datetime import datetime, timezone
from unittest.mock import MagicMock, patch

import pytest

from conftest import TestingSessionLocal
from riskreg.models.reporting import ReportExecution, ReportTemplate, ScheduledReport
from riskreg.services.report_scheduler import (
    InvalidCronExpression,
    ReportScheduler,
    next_fire_time,
    parse_cron,
    report_scheduler,
    safe_file_name,
)


@pytest.fixture
def template(db_session):
    row = ReportTemplate(name="Monthly Pack", report_type="MONTHLY", template="{}")
    db_session.add(row)
    db_session.commit()
    db_session.refresh(row)
    return row


@pytest.fixture
def scheduled(db_session, template):
    row = ScheduledReport(
        template_id=template.template_id,
        name="Monthly Board Pack",
        cron_expression="0 8 1 * *",
        recipient_emails=["cro@example.com", "board@example.com"],
    )
    db_session.add(row)
    db_session.commit()
    db_session.refresh(row)
    return row


@pytest.fixture
def mail():
    service = MagicMock()
    service.send_report_email.return_value = True
    return service


@pytest.fixture
def scheduler(mail, tmp_path):
    instance = ReportScheduler(
        session_factory=TestingSessionLocal,
        email_service=mail,
        timezone_name="UTC",
        reports_dir=str(tmp_path),
    )
    yield instance
    instance.shutdown()


class TestCron:
    def test_parse_valid(self):
        assert parse_cron("*/15 9-17 * * mon-fri", "UTC") is not None

    @pytest.mark.parametrize("expression", ["", "0 8 * *", "0 8 * * * *", "61 8 * * *", "0 8 * * funday"])
    def test_parse_invalid(self, expression):
        with pytest.raises(InvalidCronExpression):
            parse_cron(expression, "UTC")

    def test_next_fire_time_is_naive_utc(self):
        now = datetime(2026, 3, 15, 10, 0, tzinfo=timezone.utc)
        assert next_fire_time("0 8 1 * *", "UTC", now=now) == datetime(2026, 4, 1, 8, 0)

    def test_next_fire_time_converts_timezone(self):
        now = datetime(2026, 3, 15, 10, 0, tzinfo=timezone.utc)
        # 08:00 in Jakarta (UTC+7) is 01:00 UTC
        assert next_fire_time("0 8 * * *", "Asia/Jakarta", now=now) == datetime(2026, 3, 16, 1, 0)

    def test_safe_file_name(self):
        assert safe_file_name("Monthly Board Pack (Q1)") == "Monthly_Board_Pack_Q1"
        assert safe_file_name("***") == "report"


class TestScheduling:
    def test_schedule_without_running_only_computes_next_run(self, scheduler, scheduled):
        next_run = scheduler.schedule_report(scheduled)
        assert next_run is not None
        assert scheduler.jobs == {}

    def test_running_scheduler_registers_jobs(self, scheduler, db_session, scheduled, template):
        inactive = ScheduledReport(
            template_id=template.template_id, name="Paused", cron_expression="0 9 * * *",
            recipient_emails=["x@example.com"], is_active=False,
        )
        db_session.add(inactive)
        db_session.commit()

        scheduler.start()
        assert scheduler.running
        assert list(scheduler.jobs) == [scheduled.scheduled_report_id]
        job = scheduler.scheduler.get_job(scheduler.job_id(scheduled.scheduled_report_id))
        assert job.max_instances == 1

        db_session.expire_all()
        assert db_session.get(ScheduledReport, scheduled.scheduled_report_id).next_run is not None

        jobs = scheduler.get_scheduled_jobs()
        assert jobs[0]["name"] == "Monthly Board Pack"

    def test_initialize_skips_invalid_cron(self, scheduler, db_session, scheduled, template):
        db_session.add(ScheduledReport(
            template_id=template.template_id, name="Broken", cron_expression="not a cron",
            recipient_emails=["x@example.com"],
        ))
        db_session.commit()
        assert scheduler.initialize() == 1

    def test_reschedule_and_unschedule(self, scheduler, scheduled):
        scheduler.start()
        assert scheduler.unschedule_report(scheduled.scheduled_report_id) is True
        assert scheduler.unschedule_report(scheduled.scheduled_report_id) is False

        scheduled.is_active = False
        assert scheduler.reschedule_report(scheduled) is None
        assert scheduler.jobs == {}

        scheduled.is_active = True
        assert scheduler.reschedule_report(scheduled) is not None
        assert scheduled.scheduled_report_id in scheduler.jobs


class TestExecution:
    def test_successful_run(self, scheduler, mail, db_session, scheduled, tmp_path):
        execution = scheduler.execute_scheduled_report(scheduled.scheduled_report_id)

        assert execution.status == "COMPLETED"
        assert execution.email_sent is True
        assert execution.email_sent_at is not None
        assert execution.execution_time is not None
        assert os.path.dirname(execution.file_path) == str(tmp_path)
        assert os.path.basename(execution.file_path).startswith("Monthly_Board_Pack_MONTHLY_")
        with open(execution.file_path, "rb") as fh:
            assert fh.read().startswith(b"%PDF")

        kwargs = mail.send_report_email.call_args.kwargs
        assert kwargs["recipients"] == ["cro@example.com", "board@example.com"]
        assert kwargs["report_name"] == "Monthly Board Pack"
        assert kwargs["pdf_content"].startswith(b"%PDF")
        assert kwargs["report_url"].endswith("/reports")

        db_session.expire_all()
        report = db_session.get(ScheduledReport, scheduled.scheduled_report_id)
        assert report.last_run is not None
        assert report.next_run is not None

    def test_email_not_sent(self, scheduler, mail, scheduled):
        mail.send_report_email.return_value = False
        execution = scheduler.execute_scheduled_report(scheduled.scheduled_report_id)
        assert execution.status == "COMPLETED"
        assert execution.email_sent is False
        assert execution.email_sent_at is None

    def test_failed_run_is_recorded(self, scheduler, mail, db_session, scheduled):
        mail.send_report_email.side_effect = RuntimeError("SMTP down")
        with pytest.raises(RuntimeError):
            scheduler.execute_scheduled_report(scheduled.scheduled_report_id)

        db_session.expire_all()
        execution = db_session.query(ReportExecution).one()
        assert execution.status == "FAILED"
        assert execution.error_message == "SMTP down"
        assert execution.completed_at is not None

        report = db_session.get(ScheduledReport, scheduled.scheduled_report_id)
        assert report.last_run == execution.started_at
        assert report.next_run is not None
        assert report.next_run > execution.started_at

    def test_unknown_report(self, scheduler, db_session):
        with pytest.raises(LookupError):
            scheduler.execute_scheduled_report(9999)

    def test_job_wrapper_swallows_errors(self, scheduler, db_session):
        scheduler._run_job(9999)

    def test_execution_history(self, scheduler, db_session, scheduled):
        for _ in range(3):
            scheduler.execute_scheduled_report(scheduled.scheduled_report_id)
        history = scheduler.get_execution_history(db_session, scheduled.scheduled_report_id, limit=2)
        assert len(history) == 2
        assert history[0].execution_id > history[1].execution_id
        assert scheduler.get_execution_history(db_session, 9999) == []


class TestScheduledReportApi:
    @pytest.fixture(autouse=True)
    def _reports_dir(self, monkeypatch, tmp_path):
        monkeypatch.setattr(report_scheduler, "reports_dir", str(tmp_path))

    def test_create(self, client, owner_headers, template):
        response = client.post("/reports/scheduled", headers=owner_headers, json={
            "template_id": template.template_id,
            "name": "Weekly Summary",
            "cron_expression": "0 8 * * 1",
            "recipient_emails": ["cro@example.com"],
        })
        assert response.status_code == 201
        data = response.json()
        assert data["template_name"] == "Monthly Pack"
        assert data["report_type"] == "MONTHLY"
        assert data["next_run"] is not None
        assert data["recent_executions"] == []

    def test_invalid_cron(self, client, owner_headers, template):
        response = client.post("/reports/scheduled", headers=owner_headers, json={
            "template_id": template.template_id,
            "name": "Bad",
            "cron_expression": "every monday",
            "recipient_emails": ["cro@example.com"],
        })
        assert response.status_code == 400
        assert "Invalid cron expression" in response.json()["detail"]

    def test_invalid_recipient(self, client, owner_headers, template):
        response = client.post("/reports/scheduled", headers=owner_headers, json={
            "template_id": template.template_id,
            "name": "Bad",
            "cron_expression": "0 8 * * 1",
            "recipient_emails": ["not-an-email"],
        })
        assert response.status_code == 400

    def test_unknown_template(self, client, owner_headers):
        response = client.post("/reports/scheduled", headers=owner_headers, json={
            "template_id": 9999,
            "name": "Orphan",
            "cron_expression": "0 8 * * 1",
            "recipient_emails": ["cro@example.com"],
        })
        assert response.status_code == 400

    def test_deactivate_clears_next_run(self, client, owner_headers, scheduled):
        response = client.patch(
            f"/reports/scheduled/{scheduled.scheduled_report_id}",
            headers=owner_headers, json={"is_active": False}
        )
        assert response.status_code == 200
        assert response.json()["next_run"] is None

    def test_run_now_and_executions(self, client, owner_headers, scheduled):
        response = client.post(f"/reports/scheduled/{scheduled.scheduled_report_id}/run", headers=owner_headers)
        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "COMPLETED"
        # SMTP is not configured in tests
        assert data["email_sent"] is False

        executions = client.get(
            f"/reports/scheduled/executions?scheduled_report_id={scheduled.scheduled_report_id}",
            headers=owner_headers
        ).json()
        assert len(executions) == 1

        detail = client.get(f"/reports/scheduled/{scheduled.scheduled_report_id}", headers=owner_headers).json()
        assert len(detail["recent_executions"]) == 1
        assert detail["last_run"] is not None

    def test_run_failure_returns_500(self, client, owner_headers, scheduled):
        with patch("riskreg.services.report_scheduler.render_report", side_effect=RuntimeError("boom")):
            response = client.post(
                f"/reports/scheduled/{scheduled.scheduled_report_id}/run", headers=owner_headers
            )
        assert response.status_code == 500
        assert response.json()["detail"] == "Scheduled report execution failed: boom"

    def test_delete(self, client, owner_headers, scheduled):
        url = f"/reports/scheduled/{scheduled.scheduled_report_id}"
        assert client.delete(url, headers=owner_headers).status_code == 204
        assert client.get(url, headers=owner_headers).status_code == 404

    def test_jobs_admin_only(self, client, owner_headers, admin_headers):
        assert client.get("/reports/scheduled/jobs", headers=owner_headers).status_code == 403
        data = client.get("/reports/scheduled/jobs", headers=admin_headers).json()
        assert data == {"running": False, "jobs": []}
