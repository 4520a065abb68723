"""SMTP notifier for sending test automation emails."""
import asyncio
import html
import logging
import smtplib
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from email.utils import formataddr, make_msgid

from ..errors import DeliveryError
from .base import Notifier
from .registry import register_notifier

logger = logging.getLogger(__name__)

EMAIL_SUBJECT = "Automation Test Email"


@register_notifier("smtp")
class SmtpNotifier(Notifier):
    """Deliver action messages over SMTP."""

    def __init__(self, smtp_settings, timeout: float = 30.0):
        self.smtp_host = smtp_settings.host
        self.smtp_port = smtp_settings.port
        self.smtp_user = smtp_settings.user
        self.smtp_password = smtp_settings.password
        self.from_email = smtp_settings.from_email or smtp_settings.user or "noreply@automation.local"
        self.from_name = smtp_settings.from_name
        self.use_ssl = smtp_settings.use_ssl
        self.timeout = timeout

    def is_configured(self) -> bool:
        return bool(self.smtp_host)

    async def send(self, subject: str, message: str) -> str:
        if not self.is_configured():
            raise DeliveryError("Failed to send email: SMTP host is not configured")
        try:
            return await asyncio.to_thread(self._send_sync, subject, message)
        except (smtplib.SMTPException, OSError) as e:
            logger.error(f"Email sending to {subject} failed: {str(e)}")
            raise DeliveryError(f"Failed to send email: {str(e)}") from e

    def build_message(self, to_email: str, message: str) -> MIMEMultipart:
        msg = MIMEMultipart("alternative")
        msg["Subject"] = EMAIL_SUBJECT
        msg["From"] = formataddr((self.from_name, self.from_email))
        msg["To"] = to_email
        msg["Message-ID"] = make_msgid(domain=self.from_email.split("@")[-1])

        html_body = (
            '<div style="font-family: Arial, sans-serif; padding: 20px;">'
            f"<h2>{EMAIL_SUBJECT}</h2>"
            f"<p>{html.escape(message)}</p>"
            '<hr style="margin: 20px 0; border: none; border-top: 1px solid #ddd;">'
            '<p style="color: #666; font-size: 12px;">'
            "This email was sent by an automation test execution."
            "</p></div>"
        )
        msg.attach(MIMEText(message, "plain"))
        msg.attach(MIMEText(html_body, "html"))
        return msg

    def _send_sync(self, to_email: str, message: str) -> str:
        msg = self.build_message(to_email, message)

        if self.use_ssl or self.smtp_port == 465:
            server = smtplib.SMTP_SSL(self.smtp_host, self.smtp_port, timeout=self.timeout)
        else:
            server = smtplib.SMTP(self.smtp_host, self.smtp_port, timeout=self.timeout)
            if self.smtp_port == 587:
                server.starttls()

        try:
            if self.smtp_user and self.smtp_password:
                server.login(self.smtp_user, self.smtp_password)
            server.sendmail(self.from_email, [to_email], msg.as_string())
        finally:
            server.quit()

        logger.info(f"Email sent successfully to {to_email}")
        return msg["Message-ID"]
