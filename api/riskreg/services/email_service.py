"""Outgoing email for report delivery.

Bodies are rendered with Jinja2 from the default ``report_notification``
EmailTemplate row when one exists, otherwise from the built-in templates
below. Mail is sent over SMTP with STARTTLS.
"""
import logging
import smtplib
from email.message import EmailMessage
from email.utils import formataddr
from typing import Any, Dict, List, Optional, Sequence, Tuple
from jinja2 import Environment, TemplateError
from sqlalchemy.orm import Session

from riskreg.core.config import Settings, settings
from riskreg.models.reporting import EmailTemplate

logger = logging.getLogger(__name__)

REPORT_TEMPLATE_NAME = "report_notification"
SENDER_NAME = "Risk Management System"

DEFAULT_SUBJECT = "{{ report_name }} - {{ period }}"

DEFAULT_HTML = """\
<html>
  <body style="font-family: Arial, sans-serif; color: #1f2937;">
    <h2 style="color: #1e3a8a;">{{ report_name }}</h2>
    <p>Dear {{ recipient_name or "Recipient" }},</p>
    <p>The scheduled report <strong>{{ report_name }}</strong> for the period
       <strong>{{ period }}</strong> was generated on {{ generated_at }}.</p>
    <p>The report is attached to this email as a PDF file.</p>
    {% if report_url %}<p><a href="{{ report_url }}">Open the reporting dashboard</a></p>{% endif %}
    <p style="font-size: 12px; color: #6b7280;">This message was sent automatically by the
       Risk Management System. Please do not reply.</p>
  </body>
</html>
"""

DEFAULT_TEXT = """\
{{ report_name }}

Dear {{ recipient_name or "Recipient" }},

The scheduled report "{{ report_name }}" for the period {{ period }} was generated on {{ generated_at }}.
The report is attached to this email as a PDF file.
{% if report_url %}
Reporting dashboard: {{ report_url }}
{% endif %}
This message was sent automatically by the Risk Management System. Please do not reply.
"""


class EmailDeliveryError(Exception):
    """Raised when SMTP delivery fails."""


class EmailService:
    """Render and send report notification emails."""

    def __init__(self, config: Optional[Settings] = None):
        self.config = config or settings
        self.env = Environment(autoescape=False)
        self.html_env = Environment(autoescape=True)

    def is_configured(self) -> bool:
        return bool(self.config.SMTP_HOST and self.config.SMTP_USER)

    def get_report_template(self, db: Optional[Session]) -> Tuple[str, str, str]:
        """(subject, html, text) template sources for report emails."""
        if db is not None:
            template = db.query(EmailTemplate).filter(
                EmailTemplate.name == REPORT_TEMPLATE_NAME,
                EmailTemplate.is_default.is_(True)
            ).first()
            if template:
                return template.subject, template.html_content, template.text_content or DEFAULT_TEXT
        return DEFAULT_SUBJECT, DEFAULT_HTML, DEFAULT_TEXT

    def render_report_email(self, db: Optional[Session], context: Dict[str, Any]) -> Tuple[str, str, str]:
        """Render subject, HTML body and text body for a report email."""
        subject_src, html_src, text_src = self.get_report_template(db)
        try:
            subject = self.env.from_string(subject_src).render(**context).strip()
            html = self.html_env.from_string(html_src).render(**context)
            text = self.env.from_string(text_src).render(**context)
        except TemplateError as exc:
            logger.error("Email template rendering failed, using built-in template: %s", exc)
            subject = self.env.from_string(DEFAULT_SUBJECT).render(**context).strip()
            html = self.html_env.from_string(DEFAULT_HTML).render(**context)
            text = self.env.from_string(DEFAULT_TEXT).render(**context)
        return subject, html, text

    def build_message(
        self,
        recipients: Sequence[str],
        subject: str,
        html: str,
        text: str,
        attachments: Sequence[Tuple[str, bytes]] = ()
    ) -> EmailMessage:
        message = EmailMessage()
        message["From"] = formataddr((SENDER_NAME, self.config.get_sender_address()))
        message["To"] = ", ".join(recipients)
        message["Subject"] = subject
        message.set_content(text)
        message.add_alternative(html, subtype="html")
        for filename, content in attachments:
            message.add_attachment(content, maintype="application", subtype="pdf", filename=filename)
        return message

    def _connect(self) -> smtplib.SMTP:
        server = smtplib.SMTP(self.config.SMTP_HOST, self.config.SMTP_PORT, timeout=self.config.SMTP_TIMEOUT)
        try:
            if self.config.SMTP_USE_TLS:
                server.starttls()
            if self.config.SMTP_USER:
                server.login(self.config.SMTP_USER, self.config.SMTP_PASSWORD or "")
        except (smtplib.SMTPException, OSError):
            server.close()
            raise
        return server

    @staticmethod
    def _disconnect(server: smtplib.SMTP) -> None:
        try:
            server.quit()
        except (smtplib.SMTPException, OSError):
            server.close()

    def send(self, message: EmailMessage) -> None:
        """Deliver a message.

        Raises:
            EmailDeliveryError: On any SMTP or socket failure
        """
        try:
            server = self._connect()
            try:
                server.send_message(message)
            finally:
                self._disconnect(server)
        except (smtplib.SMTPException, OSError) as exc:
            raise EmailDeliveryError(f"Failed to send email: {exc}") from exc

    def send_report_email(
        self,
        db: Optional[Session],
        recipients: List[str],
        report_name: str,
        period: str,
        generated_at: str,
        pdf_content: bytes,
        filename: str,
        report_url: Optional[str] = None
    ) -> bool:
        """Email a generated report to its recipients.

        Returns False without sending when SMTP is not configured.
        """
        if not recipients:
            logger.warning("Report '%s' has no recipients, skipping email", report_name)
            return False
        if not self.is_configured():
            logger.warning("SMTP is not configured, report '%s' was not emailed", report_name)
            return False

        context = {
            "report_name": report_name,
            "period": period,
            "generated_at": generated_at,
            "recipient_name": None,
            "report_url": report_url,
        }
        subject, html, text = self.render_report_email(db, context)
        message = self.build_message(recipients, subject, html, text, [(filename, pdf_content)])
        self.send(message)
        logger.info("Report '%s' emailed to %d recipient(s)", report_name, len(recipients))
        return True

    def test_connection(self) -> bool:
        """Check that the SMTP server accepts a connection and login."""
        try:
            server = self._connect()
            try:
                server.noop()
            finally:
                self._disconnect(server)
        except (smtplib.SMTPException, OSError) as exc:
            logger.error("SMTP connection test failed: %s", exc)
            return False
        return True


email_service = EmailService()
