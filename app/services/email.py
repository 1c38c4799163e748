# app/services/email.py
import logging
import smtplib
from email.message import EmailMessage

from app.core.config import settings

logger = logging.getLogger(__name__)


def deliver_email(to_email: str, subject: str, body: str) -> None:
    """Отправляет письмо через SMTP. Ошибки SMTP пробрасываются вызывающему коду."""
    if not settings.EMAILS_ENABLED or not settings.SMTP_HOST:
        logger.info(f"Emails disabled. To: {to_email} | Subject: {subject}")
        return

    msg = EmailMessage()
    msg["From"] = settings.EMAIL_FROM
    msg["To"] = to_email
    msg["Subject"] = subject
    msg.set_content(body)

    with smtplib.SMTP(settings.SMTP_HOST, settings.SMTP_PORT) as server:
        if settings.SMTP_TLS:
            server.starttls()
        if settings.SMTP_USER and settings.SMTP_PASSWORD:
            server.login(settings.SMTP_USER, settings.SMTP_PASSWORD)
        server.send_message(msg)
    logger.info(f"Email '{subject}' sent to {to_email}")
