"""Tests for report email rendering and SMTP delivery."""
import smtplib
from unittest.mock import patch

import pytest

from riskreg.core.config import Settings
from riskreg.models.reporting import EmailTemplate
from riskreg.services.email_service import EmailDeliveryError, EmailService


@pytest.fixture
def smtp_settings():
    return Settings(
        SMTP_HOST="smtp.example.com",
        SMTP_PORT=2525,
        SMTP_USER="reports@example.com",
        SMTP_PASSWORD="secret",
        SMTP_FROM="risk@example.com",
    )


@pytest.fixture
def service(smtp_settings):
    return EmailService(smtp_settings)


def _send(service, db=None, recipients=("cro@example.com",)):
    return service.send_report_email(
        db,
        recipients=list(recipients),
        report_name="Monthly Board Pack",
        period="February 2026",
        generated_at="01 March 2026 08:00",
        pdf_content=b"%PDF-1.4 test",
        filename="Monthly_Board_Pack.pdf",
        report_url="http://localhost:3000/reports",
    )


class TestConfiguration:
    def test_not_configured_without_user(self):
        service = EmailService(Settings(SMTP_USER=None))
        assert service.is_configured() is False
        assert _send(service) is False

    def test_no_recipients(self, service):
        with patch("riskreg.services.email_service.smtplib.SMTP") as smtp:
            assert _send(service, recipients=()) is False
        smtp.assert_not_called()


class TestDelivery:
    def test_sends_with_attachment(self, service):
        with patch("riskreg.services.email_service.smtplib.SMTP") as smtp:
            assert _send(service) is True

        smtp.assert_called_once_with("smtp.example.com", 2525, timeout=30)
        server = smtp.return_value
        server.starttls.assert_called_once()
        server.login.assert_called_once_with("reports@example.com", "secret")
        server.quit.assert_called_once()

        message = server.send_message.call_args.args[0]
        assert message["Subject"] == "Monthly Board Pack - February 2026"
        assert message["To"] == "cro@example.com"
        assert "risk@example.com" in message["From"]
        attachments = list(message.iter_attachments())
        assert [a.get_filename() for a in attachments] == ["Monthly_Board_Pack.pdf"]
        assert attachments[0].get_content() == b"%PDF-1.4 test"

    def test_body_mentions_period(self, service):
        with patch("riskreg.services.email_service.smtplib.SMTP") as smtp:
            _send(service)
        message = smtp.return_value.send_message.call_args.args[0]
        text = message.get_body(preferencelist=("plain",)).get_content()
        html = message.get_body(preferencelist=("html",)).get_content()
        assert "February 2026" in text
        assert 'href="http://localhost:3000/reports"' in html

    def test_smtp_failure(self, service):
        with patch("riskreg.services.email_service.smtplib.SMTP") as smtp:
            smtp.return_value.send_message.side_effect = smtplib.SMTPRecipientsRefused({})
            with pytest.raises(EmailDeliveryError):
                _send(service)
        smtp.return_value.quit.assert_called_once()

    def test_starttls_failure_closes_socket(self, service):
        with patch("riskreg.services.email_service.smtplib.SMTP") as smtp:
            smtp.return_value.starttls.side_effect = smtplib.SMTPNotSupportedError("no TLS")
            with pytest.raises(EmailDeliveryError):
                _send(service)
        smtp.return_value.close.assert_called_once()
        smtp.return_value.send_message.assert_not_called()

    def test_connection_refused(self, service):
        with patch("riskreg.services.email_service.smtplib.SMTP", side_effect=ConnectionRefusedError()):
            with pytest.raises(EmailDeliveryError):
                _send(service)

    def test_without_tls(self, smtp_settings):
        smtp_settings.SMTP_USE_TLS = False
        with patch("riskreg.services.email_service.smtplib.SMTP") as smtp:
            _send(EmailService(smtp_settings))
        smtp.return_value.starttls.assert_not_called()


class TestTemplates:
    def test_database_template_wins(self, service, db_session):
        db_session.add(EmailTemplate(
            name="report_notification",
            subject="[Risk] {{ report_name }}",
            html_content="<p>{{ period }}</p>",
            text_content="Period {{ period }}",
            is_default=True,
        ))
        db_session.commit()
        subject, html, text = service.render_report_email(db_session, {
            "report_name": "Pack", "period": "Q1 2026", "generated_at": "now", "report_url": None,
        })
        assert subject == "[Risk] Pack"
        assert html == "<p>Q1 2026</p>"
        assert text == "Period Q1 2026"

    def test_html_is_escaped(self, service):
        _, html, _ = service.render_report_email(None, {
            "report_name": "<script>", "period": "Q1", "generated_at": "now", "report_url": None,
        })
        assert "<script>" not in html
        assert "&lt;script&gt;" in html

    def test_broken_template_falls_back(self, service, db_session):
        db_session.add(EmailTemplate(
            name="report_notification", subject="{{ report_name", html_content="x", is_default=True,
        ))
        db_session.commit()
        subject, _, _ = service.render_report_email(db_session, {
            "report_name": "Pack", "period": "Q1", "generated_at": "now", "report_url": None,
        })
        assert subject == "Pack - Q1"


class TestConnectionCheck:
    def test_ok(self, service):
        with patch("riskreg.services.email_service.smtplib.SMTP") as smtp:
            assert service.test_connection() is True
        smtp.return_value.noop.assert_called_once()

    def test_login_rejected(self, service):
        with patch("riskreg.services.email_service.smtplib.SMTP") as smtp:
            smtp.return_value.login.side_effect = smtplib.SMTPAuthenticationError(535, b"bad credentials")
            assert service.test_connection() is False
        smtp.return_value.close.assert_called_once()
        smtp.return_value.quit.assert_not_called()

    def test_noop_failure_still_disconnects(self, service):
        with patch("riskreg.services.email_service.smtplib.SMTP") as smtp:
            smtp.return_value.noop.side_effect = smtplib.SMTPServerDisconnected("gone")
            smtp.return_value.quit.side_effect = smtplib.SMTPServerDisconnected("gone")
            assert service.test_connection() is False
        smtp.return_value.quit.assert_called_once()
        smtp.return_value.close.assert_called_once()

    def test_endpoint_reports_unconfigured(self, client, admin_headers, owner_headers):
        assert client.post("/reports/email/test-connection", headers=owner_headers).status_code == 403
        response = client.post("/reports/email/test-connection", headers=admin_headers)
        assert response.json() == {"configured": False, "connected": False}
