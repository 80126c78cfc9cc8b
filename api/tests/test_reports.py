"""Tests for report templates, on-demand PDF generation and report history."""
import json
from datetime import date, datetime
from unittest.mock import patch

import pytest

from conftest import add_assessment
from riskreg.core.report_builder import build_sections, compute_period, parse_template, render_report
from riskreg.models.reporting import ReportHistory, ReportTemplate, ScheduledReport


@pytest.fixture
def summary_template(db_session, admin_user):
    template = ReportTemplate(
        name="Executive Risk Summary",
        description="Top risks for the board",
        report_type="RISK_SUMMARY",
        template=json.dumps({"sections": [{"type": "text", "title": "Scope", "content": "All units"}]}),
        created_by_id=admin_user.user_id,
    )
    db_session.add(template)
    db_session.commit()
    db_session.refresh(template)
    return template


class TestReportTemplates:
    def test_create_template(self, client, owner_headers):
        response = client.post("/reports/templates", headers=owner_headers, json={
            "name": "Monthly Pack", "report_type": "MONTHLY", "template": '{"title": "Monthly Risk Pack"}'
        })
        assert response.status_code == 201
        data = response.json()
        assert data["report_type"] == "MONTHLY"
        assert data["is_active"] is True

    def test_invalid_template_json(self, client, owner_headers):
        response = client.post("/reports/templates", headers=owner_headers, json={
            "name": "Broken", "report_type": "MONTHLY", "template": "{not json"
        })
        assert response.status_code == 400
        assert response.json()["error"] == "Validation error"

    def test_template_must_be_object(self, client, owner_headers):
        response = client.post("/reports/templates", headers=owner_headers, json={
            "name": "List", "report_type": "MONTHLY", "template": "[1, 2]"
        })
        assert response.status_code == 400

    def test_invalid_report_type(self, client, owner_headers):
        response = client.post("/reports/templates", headers=owner_headers, json={
            "name": "Weekly", "report_type": "WEEKLY"
        })
        assert response.status_code == 400

    def test_list_filters(self, client, owner_headers, summary_template):
        client.post("/reports/templates", headers=owner_headers, json={
            "name": "Matrix", "report_type": "RISK_MATRIX", "is_active": False
        })
        listed = client.get("/reports/templates?report_type=RISK_MATRIX", headers=owner_headers).json()
        assert [t["name"] for t in listed] == ["Matrix"]
        listed = client.get("/reports/templates?is_active=true", headers=owner_headers).json()
        assert [t["name"] for t in listed] == ["Executive Risk Summary"]

    def test_update_template(self, client, owner_headers, summary_template):
        response = client.patch(
            f"/reports/templates/{summary_template.template_id}",
            headers=owner_headers, json={"is_active": False}
        )
        assert response.status_code == 200
        assert response.json()["is_active"] is False

    def test_delete_requires_admin(self, client, owner_headers, admin_headers, summary_template):
        url = f"/reports/templates/{summary_template.template_id}"
        assert client.delete(url, headers=owner_headers).status_code == 403
        assert client.delete(url, headers=admin_headers).status_code == 204
        assert client.get(url, headers=admin_headers).status_code == 404

    def test_delete_blocked_by_schedule(self, client, db_session, admin_headers, summary_template):
        db_session.add(ScheduledReport(
            template_id=summary_template.template_id, name="Weekly summary",
            cron_expression="0 8 * * 1", recipient_emails=["cro@example.com"]
        ))
        db_session.commit()
        response = client.delete(f"/reports/templates/{summary_template.template_id}", headers=admin_headers)
        assert response.status_code == 400
        assert "scheduled report" in response.json()["detail"]


class TestGenerateReport:
    def test_generate_pdf(self, client, db_session, admin_headers, summary_template, sample_risk):
        add_assessment(db_session, sample_risk, "RESIDUAL", 4, 4)
        response = client.post("/reports/generate", headers=admin_headers, json={
            "template_id": summary_template.template_id,
            "parameters": {"title": "Board Pack Q1", "period": "Q1 2026"},
        })
        assert response.status_code == 200
        assert response.headers["content-type"] == "application/pdf"
        assert "Board_Pack_Q1_" in response.headers["content-disposition"]
        assert response.content.startswith(b"%PDF")

        history = db_session.query(ReportHistory).one()
        assert history.status == "COMPLETED"
        assert history.name == "Board Pack Q1"
        assert history.file_size == len(response.content)
        assert history.completed_at is not None

    def test_unknown_template(self, client, admin_headers):
        response = client.post("/reports/generate", headers=admin_headers, json={"template_id": 9999})
        assert response.status_code == 404

    def test_failure_recorded(self, client, db_session, admin_headers, summary_template):
        with patch("riskreg.api.reports.render_report", side_effect=RuntimeError("font missing")):
            response = client.post("/reports/generate", headers=admin_headers, json={
                "template_id": summary_template.template_id
            })
        assert response.status_code == 500
        assert response.json()["detail"] == "Report generation failed: font missing"

        db_session.expire_all()
        history = db_session.query(ReportHistory).one()
        assert history.status == "FAILED"
        assert history.error_message == "font missing"

    def test_history_pagination_and_filter(self, client, db_session, admin_headers, summary_template):
        for i in range(3):
            db_session.add(ReportHistory(
                template_id=summary_template.template_id, name=f"Run {i}",
                report_type="RISK_SUMMARY", status="COMPLETED",
            ))
        db_session.add(ReportHistory(name="Broken run", report_type="RISK_SUMMARY", status="FAILED"))
        db_session.commit()

        body = client.get("/reports/history?limit=2", headers=admin_headers).json()
        assert body["total"] == 4
        assert len(body["data"]) == 2
        assert body["page"] == 1

        body = client.get("/reports/history?status=FAILED", headers=admin_headers).json()
        assert [h["name"] for h in body["data"]] == ["Broken run"]

    def test_history_invalid_status(self, client, admin_headers):
        assert client.get("/reports/history?status=DONE", headers=admin_headers).status_code == 400


class TestComputePeriod:
    """Scheduled runs report on the previous complete period."""

    def test_monthly(self):
        period = compute_period("MONTHLY", date(2026, 3, 15))
        assert period == {
            "start_date": "2026-02-01", "end_date": "2026-02-28", "period": "February 2026", "months": 1
        }

    def test_monthly_in_january(self):
        period = compute_period("MONTHLY", date(2026, 1, 5))
        assert (period["start_date"], period["end_date"]) == ("2025-12-01", "2025-12-31")

    @pytest.mark.parametrize("reference,start,end,label", [
        (date(2026, 5, 10), "2026-01-01", "2026-03-31", "Q1 2026"),
        (date(2026, 1, 15), "2025-10-01", "2025-12-31", "Q4 2025"),
        (date(2026, 9, 30), "2026-04-01", "2026-06-30", "Q2 2026"),
    ])
    def test_quarterly(self, reference, start, end, label):
        period = compute_period("QUARTERLY", reference)
        assert (period["start_date"], period["end_date"], period["period"]) == (start, end, label)
        assert period["months"] == 3

    def test_annual(self):
        period = compute_period("ANNUAL", date(2026, 6, 1))
        assert (period["start_date"], period["end_date"], period["period"]) == ("2025-01-01", "2025-12-31", "2025")

    def test_other_types_cover_month_to_date(self):
        period = compute_period("RISK_SUMMARY", datetime(2026, 3, 15, 9, 30))
        assert (period["start_date"], period["end_date"]) == ("2026-03-01", "2026-03-15")
        assert period["period"] == "March 2026"


class TestRenderReport:
    @pytest.mark.parametrize("report_type", [
        "MONTHLY", "QUARTERLY", "ANNUAL", "CUSTOM", "RISK_SUMMARY", "ANALYTICS_DASHBOARD", "RISK_MATRIX",
    ])
    def test_every_type_renders(self, db_session, make_risk, report_type):
        risk = make_risk()
        add_assessment(db_session, risk, "INHERENT", 5, 5)
        add_assessment(db_session, risk, "RESIDUAL", 2, 3)
        template = ReportTemplate(name=f"{report_type} report", report_type=report_type, template="{}")
        content = render_report(db_session, template, {"period": "March 2026"})
        assert content.startswith(b"%PDF")

    def test_empty_register_renders(self, db_session):
        template = ReportTemplate(name="Empty", report_type="RISK_MATRIX", template="{}")
        assert render_report(db_session, template).startswith(b"%PDF")

    def test_section_selection(self, db_session):
        assert [s["type"] for s in build_sections(db_session, "RISK_MATRIX", {})] == ["risk-matrix", "table"]
        assert build_sections(db_session, "MONTHLY", {})[0]["title"] == "Executive Summary"
        assert build_sections(db_session, "QUARTERLY", {"months": 3})[0]["title"] == "Monthly Metrics"

    def test_unknown_type_falls_back_to_summary(self, db_session, caplog):
        sections = build_sections(db_session, "WEEKLY", {})
        assert sections[0]["title"] == "Executive Summary"
        assert "Unknown report type" in caplog.text

    def test_invalid_template_json_is_ignored(self):
        template = ReportTemplate(template_id=1, name="Bad", report_type="MONTHLY", template="{oops")
        assert parse_template(template) == {}
