"""WhatsApp delivery over the Twilio Messaging API."""

from __future__ import annotations

import logging
import re
from typing import Optional

from twilio.base.exceptions import TwilioRestException
from twilio.rest import Client

from app.errors import DeliveryError
from config import settings

_LOGGER = logging.getLogger(__name__)

_PREFIX = "whatsapp:"
_STRIP = re.compile(r"[\s\-().]")

_client: Optional[Client] = None


def normalize_phone_number(number: str) -> str:
    """Return *number* in E.164-ish form: no ``whatsapp:`` prefix, no separators, leading ``+``."""
    value = (number or "").strip()
    if value.lower().startswith(_PREFIX):
        value = value[len(_PREFIX):]
    value = _STRIP.sub("", value)
    if not value:
        return ""
    if value.startswith("00"):
        value = value[2:]
    if not value.startswith("+"):
        value = "+" + value
    return value


def format_whatsapp_number(number: str) -> str:
    return f"{_PREFIX}{normalize_phone_number(number)}"


def is_configured() -> bool:
    return bool(settings.TWILIO_ACCOUNT_SID and settings.TWILIO_AUTH_TOKEN)


def _get_client() -> Client:
    global _client
    if _client is None:
        _client = Client(settings.TWILIO_ACCOUNT_SID, settings.TWILIO_AUTH_TOKEN)
    return _client


def send_whatsapp(to: str, body: str, recipient_name: Optional[str] = None) -> Optional[str]:
    """Send a WhatsApp text; returns the Twilio message SID (``None`` in DEV mode)."""
    if recipient_name:
        body = f"Hello {recipient_name}, {body}"
    if not is_configured():
        _LOGGER.info("[WhatsApp] DEV mode: would send to %s: %s", to, body)
        return None

    kwargs = {"to": format_whatsapp_number(to), "body": body}
    if settings.TWILIO_MESSAGING_SERVICE_SID:
        kwargs["messaging_service_sid"] = settings.TWILIO_MESSAGING_SERVICE_SID
    if settings.TWILIO_WHATSAPP_NUMBER:
        kwargs["from_"] = format_whatsapp_number(settings.TWILIO_WHATSAPP_NUMBER)
    try:
        message = _get_client().messages.create(**kwargs)
    except TwilioRestException as exc:
        _LOGGER.error("WhatsApp send to %s failed: [%s] %s", to, exc.code, exc.msg)
        raise DeliveryError(f"WhatsApp delivery failed: {exc.msg}") from exc
    return message.sid
