"""SMTP e-mail sender and the HTML templates used for notifications."""

from __future__ import annotations

import logging
import smtplib
from datetime import datetime, timezone
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from pathlib import Path
from typing import Optional

import jinja2

from app.errors import DeliveryError
from app.utils.formatting import app_base_url
from config import settings

_LOGGER = logging.getLogger(__name__)

templates_path = Path(__file__).resolve().parent.parent / "templates" / "emails"
template_env = jinja2.Environment(
    loader=jinja2.FileSystemLoader(searchpath=templates_path),
    autoescape=True,
)


def render(template: str, **context) -> str:
    context.setdefault("app_name", settings.APP_NAME)
    context.setdefault("year", datetime.now(tz=timezone.utc).year)
    return template_env.get_template(template).render(**context)


def _connect() -> smtplib.SMTP:
    server = smtplib.SMTP(settings.SMTP_HOST, settings.SMTP_PORT, timeout=30)
    server.starttls()
    server.login(settings.SMTP_USER, settings.SMTP_PASS)
    return server


def send_email(to_email: str, subject: str, html: str, text: Optional[str] = None) -> None:
    """Send one message; raises ``DeliveryError`` when the SMTP exchange fails."""
    msg = MIMEMultipart("alternative")
    msg["Subject"] = subject
    msg["From"] = settings.EMAIL_FROM
    msg["To"] = to_email
    if text:
        msg.attach(MIMEText(text, "plain"))
    msg.attach(MIMEText(html, "html"))

    if not (settings.SMTP_USER and settings.SMTP_PASS):
        _LOGGER.info("[Email] DEV mode: would send '%s' to %s", subject, to_email)
        return
    try:
        server = _connect()
        try:
            server.send_message(msg)
        finally:
            server.quit()
    except (smtplib.SMTPException, OSError) as exc:
        _LOGGER.error("Failed to send email to %s: %s", to_email, exc)
        raise DeliveryError(f"Email delivery to {to_email} failed: {exc}") from exc


# ─────────────────────────── Composed e-mails ───────────────────────────


def send_notification_email(
    to_email: str,
    recipient_name: Optional[str],
    sender_name: str,
    message_title: str,
    access_url: str,
    is_emergency: bool = False,
    has_pin_code: bool = False,
    unlock_date: Optional[str] = None,
    expiry_date: Optional[str] = None,
    share_location: bool = False,
    location_name: Optional[str] = None,
) -> None:
    prefix = "⚠️ EMERGENCY: " if is_emergency else ""
    subject = f'{prefix}{sender_name} has sent you a secure message: "{message_title}"'
    html = render(
        "notification.html",
        recipient_name=recipient_name,
        sender_name=sender_name,
        message_title=message_title,
        access_url=access_url,
        is_emergency=is_emergency,
        has_pin_code=has_pin_code,
        unlock_date=unlock_date,
        expiry_date=expiry_date,
        share_location=share_location,
        location_name=location_name,
    )
    text = f"{sender_name} has sent you a secure message: {message_title}\n\nOpen it here: {access_url}"
    send_email(to_email, subject, html, text)


def send_reminder_email(
    to_email: str,
    recipient_name: Optional[str],
    message_title: str,
    hours_until_deadline: float,
    time_left: str,
) -> None:
    subject = f'Reminder: check in to keep "{message_title}" from being delivered'
    html = render(
        "reminder.html",
        recipient_name=recipient_name,
        message_title=message_title,
        hours_until_deadline=hours_until_deadline,
        time_left=time_left,
        check_in_url=f"{app_base_url()}/check-ins",
    )
    send_email(to_email, subject, html)


def send_test_email(
    to_email: str,
    recipient_name: Optional[str],
    sender_name: str,
    message_title: str,
    app_name: Optional[str] = None,
    is_welcome_email: bool = False,
) -> None:
    app_name = app_name or settings.APP_NAME
    if is_welcome_email:
        subject = f"Welcome to {app_name} - You've been added as a recipient"
        html = render(
            "welcome.html",
            app_name=app_name,
            recipient_name=recipient_name,
            sender_name=sender_name,
            message_title=message_title,
            signup_url=f"{app_base_url()}/register",
        )
    else:
        subject = "You've been added as a recipient for a secure message"
        html = render(
            "test_notification.html",
            app_name=app_name,
            recipient_name=recipient_name,
            sender_name=sender_name,
            message_title=message_title,
        )
    send_email(to_email, subject, html)
