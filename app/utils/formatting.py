from __future__ import annotations

from typing import Optional
from urllib.parse import urlencode

from config import settings


def format_file_size(size: int) -> str:
    if size < 1024:
        return f"{size} B"
    if size < 1024 * 1024:
        return f"{size / 1024:.2f} KB"
    return f"{size / (1024 * 1024):.2f} MB"


def is_admin_email(email: Optional[str]) -> bool:
    if not email:
        return False
    admins = {a.lower() for a in settings.ADMIN_EMAILS}
    return email.strip().lower() in admins


def app_base_url(domain: Optional[str] = None) -> str:
    domain = (domain or settings.APP_DOMAIN).rstrip("/")
    if domain.startswith(("http://", "https://")):
        return domain
    return f"https://{domain}"


def generate_secure_message_url(
    message_id: str,
    recipient_email: str,
    delivery_id: Optional[str] = None,
    domain: Optional[str] = None,
) -> str:
    """Link a recipient follows to open a delivered message."""
    params = {"id": message_id, "recipient": recipient_email}
    if delivery_id:
        params["delivery"] = delivery_id
    return f"{app_base_url(domain)}/secure-message?{urlencode(params)}"
