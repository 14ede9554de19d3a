# poliprint/core/email_client.py
"""
Outgoing mail for order notifications.

Connection details come from Settings (SMTP_* in .env). Port 465 usually
wants SMTP_USE_SSL=true; 587 wants STARTTLS (SMTP_USE_TLS=true, default).
"""

from __future__ import annotations

import smtplib
from email.message import EmailMessage
from email.utils import formataddr

from poliprint.core.config import Settings, get_settings


def is_configured(settings: Settings | None = None) -> bool:
    return (settings or get_settings()).smtp_enabled


def build_message(
    settings: Settings,
    to_email: str,
    subject: str,
    text_body: str,
    html_body: str | None = None,
) -> EmailMessage:
    """
    Plain text is always the first part; HTML, when given, is added as a
    multipart/alternative so text-only clients still get the message.
    """
    msg = EmailMessage()
    msg["From"] = formataddr(
        (settings.SMTP_FROM_NAME, settings.SMTP_FROM_EMAIL or settings.SMTP_USERNAME or "")
    )
    msg["To"] = to_email
    msg["Subject"] = subject
    msg.set_content(text_body)
    if html_body:
        msg.add_alternative(html_body, subtype="html")
    return msg


def _connect(settings: Settings) -> smtplib.SMTP:
    if settings.SMTP_USE_SSL:
        return smtplib.SMTP_SSL(
            settings.SMTP_HOST, settings.SMTP_PORT, timeout=settings.SMTP_TIMEOUT_SECONDS
        )
    server = smtplib.SMTP(
        settings.SMTP_HOST, settings.SMTP_PORT, timeout=settings.SMTP_TIMEOUT_SECONDS
    )
    if settings.SMTP_USE_TLS:
        server.starttls()
    return server


def send_email(
    to_email: str,
    subject: str,
    text_body: str,
    html_body: str | None = None,
    settings: Settings | None = None,
) -> None:
    """
    Send one message to one recipient.

    Raises:
        RuntimeError: SMTP host or credentials are not configured.
        smtplib.SMTPException / OSError: connection, login or send failed.
    """
    settings = settings or get_settings()
    if not settings.smtp_enabled:
        raise RuntimeError("SMTP_HOST, SMTP_USERNAME and SMTP_PASSWORD must be set")

    msg = build_message(settings, to_email, subject, text_body, html_body)

    server = _connect(settings)
    try:
        server.login(settings.SMTP_USERNAME, settings.SMTP_PASSWORD)
        server.send_message(msg)
    finally:
        try:
            server.quit()
        except smtplib.SMTPException:
            pass
