"""SMTP delivery used by the background worker."""

import smtplib
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText

import structlog

from mediconnect.config import settings

logger = structlog.get_logger(__name__)


def build_message(to: str, subject: str, text: str, html: str | None = None) -> MIMEMultipart:
    """Build a text email with an optional HTML alternative."""
    msg = MIMEMultipart("alternative")
    msg["From"] = settings.email_from_address
    msg["To"] = to
    msg["Subject"] = subject
    msg.attach(MIMEText(text, "plain", "utf-8"))
    if html:
        msg.attach(MIMEText(html, "html", "utf-8"))
    return msg


def deliver_email(to: str, subject: str, text: str, html: str | None = None) -> None:
    """
    Send one email over SMTP. Blocking; raises on failure so the job is retried.

    Args:
        to: Recipient address
        subject: Subject line
        text: Plain-text body
        html: Optional HTML body
    """
    msg = build_message(to, subject, text, html)

    with smtplib.SMTP(settings.smtp_host, settings.smtp_port, timeout=30) as server:
        if settings.smtp_use_tls:
            server.starttls()
        if settings.smtp_username:
            server.login(settings.smtp_username, settings.smtp_password)
        server.send_message(msg)

    logger.info("email_delivered", to=to, subject=subject)
