"""Recipient-side access to a delivered message.

A recipient arrives with ``id``, ``recipient`` and ``delivery`` from the link
in their e-mail. Access is granted when the e-mail is one of the condition's
recipients; content is only released once the PIN (if any) was verified, the
unlock delay elapsed and the expiry has not passed. Delay and expiry are
counted from the delivery time, so only delivery ids issued by a
notification open a message. Recording a view never unlocks a PIN.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Iterable, Optional, Tuple

import db
from app.errors import AccessDeniedError, InvalidPinError, NotFoundError, ValidationError
from app.services.deadlines import to_iso, utcnow
from app.types.contracts import (
    AttachmentAccessRequest,
    Message,
    MessageCondition,
    Recipient,
    RecordViewRequest,
    VerifyPinRequest,
)
from app.utils import media

_LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True)
class SecuritySettings:
    has_pin: bool
    pin_verified: bool
    unlock_date: Optional[datetime]
    expiry_date: Optional[datetime]
    is_delayed: bool
    is_expired: bool

    @property
    def requires_pin(self) -> bool:
        return self.has_pin and not self.pin_verified

    @property
    def is_unlocked(self) -> bool:
        return not (self.requires_pin or self.is_delayed or self.is_expired)

    def as_dict(self) -> dict:
        return {
            "requires_pin": self.requires_pin,
            "is_delayed": self.is_delayed,
            "is_expired": self.is_expired,
            "unlock_date": to_iso(self.unlock_date) if self.unlock_date else None,
            "expiry_date": to_iso(self.expiry_date) if self.expiry_date else None,
        }


def check_security_conditions(
    condition: MessageCondition,
    delivered_at: Optional[datetime],
    pin_verified: bool = False,
    now: Optional[datetime] = None,
) -> SecuritySettings:
    now = now or utcnow()
    delivered_at = delivered_at or now
    unlock_date = (
        delivered_at + timedelta(hours=condition.unlock_delay_hours) if condition.unlock_delay_hours > 0 else None
    )
    expiry_date = delivered_at + timedelta(hours=condition.expiry_hours) if condition.expiry_hours > 0 else None
    return SecuritySettings(
        has_pin=condition.has_pin,
        pin_verified=pin_verified,
        unlock_date=unlock_date,
        expiry_date=expiry_date,
        is_delayed=unlock_date is not None and unlock_date > now,
        is_expired=expiry_date is not None and now > expiry_date,
    )


def find_recipient_by_email(recipients: Iterable[Recipient], email: str) -> Optional[Recipient]:
    wanted = email.strip().lower()
    for recipient in recipients:
        if recipient.email.strip().lower() == wanted:
            return recipient
    return None


def is_authorized_recipient(recipients: Iterable[Recipient], email: str) -> bool:
    return find_recipient_by_email(recipients, email) is not None


async def validate_message_authorization(message_id: str, recipient_email: str) -> Tuple[Message, MessageCondition]:
    message = await db.get_message(message_id)
    if message is None:
        raise NotFoundError("Message not found")
    condition = await db.get_condition_for_message(message_id)
    if condition is None:
        raise NotFoundError("Message condition not found")
    if not is_authorized_recipient(condition.recipients, recipient_email):
        _LOGGER.warning("Unauthorized access attempt by %s for message %s", recipient_email, message_id)
        raise AccessDeniedError("You are not authorized to access this message")
    return message, condition


async def _delivery_record(message_id: str, delivery_id: str, condition: MessageCondition, recipient_email: str):
    """The delivery the link was issued for; a link only opens for its own recipient."""
    record = await db.get_delivery(message_id, delivery_id)
    if record is None:
        _LOGGER.warning("No delivery record for message %s with delivery ID %s", message_id, delivery_id)
        raise NotFoundError("Delivery record not found")
    recipient = find_recipient_by_email(condition.recipients, recipient_email)
    if record.recipient_id and recipient is not None and record.recipient_id != recipient.id:
        raise AccessDeniedError("You are not authorized to access this message")
    return record


def _signed_attachments(message: Message) -> list:
    out = []
    for attachment in message.attachments or []:
        out.append({**attachment.model_dump(), "url": media.signed_url(attachment.path, attachment.name)})
    return out


async def access_message(
    message_id: Optional[str],
    recipient_email: Optional[str],
    delivery_id: Optional[str],
    now: Optional[datetime] = None,
) -> dict:
    if not message_id:
        raise ValidationError("Missing message ID")
    if not recipient_email or not delivery_id:
        raise ValidationError(f"Missing recipient ({recipient_email}) or delivery information ({delivery_id})")

    message, condition = await validate_message_authorization(message_id, recipient_email)
    record = await _delivery_record(message_id, delivery_id, condition, recipient_email)
    security = check_security_conditions(condition, record.delivered_at, record.pin_verified_at is not None, now)
    _LOGGER.info(
        "Access to message %s by %s: pin=%s delayed=%s expired=%s",
        message_id, recipient_email, security.requires_pin, security.is_delayed, security.is_expired,
    )

    body = {
        "success": True,
        "message": {
            "id": message.id,
            "title": message.title,
            "message_type": message.message_type,
            "sender_name": message.sender_name,
            "created_at": to_iso(message.created_at) if message.created_at else None,
        },
        "security": security.as_dict(),
    }
    if security.is_unlocked:
        body["message"].update(
            content=message.content,
            attachments=await asyncio.to_thread(_signed_attachments, message),
            share_location=message.share_location,
            location_latitude=message.location_latitude if message.share_location else None,
            location_longitude=message.location_longitude if message.share_location else None,
            location_name=message.location_name if message.share_location else None,
        )
    return body


async def verify_pin(request: VerifyPinRequest, device_info: Optional[str] = None) -> dict:
    if not (request.pin and request.message_id and request.delivery_id and request.recipient_email):
        raise ValidationError("Missing required parameters")
    _, condition = await validate_message_authorization(request.message_id, request.recipient_email)
    await _delivery_record(request.message_id, request.delivery_id, condition, request.recipient_email)
    if (condition.pin_code or "").strip() != request.pin.strip():
        raise InvalidPinError("Incorrect PIN")
    if not await db.mark_pin_verified(request.message_id, request.delivery_id, device_info):
        raise NotFoundError("Delivery record not found")
    _LOGGER.info("PIN verified for message %s, delivery %s", request.message_id, request.delivery_id)
    return {"success": True}


async def record_message_view(request: RecordViewRequest, device_info: Optional[str] = None) -> dict:
    if not request.message_id or not request.delivery_id:
        raise ValidationError("Missing required parameters")
    try:
        recorded = await db.record_view(request.message_id, request.delivery_id, device_info)
    except Exception as exc:  # noqa: BLE001
        # Viewing must not break on tracking problems
        _LOGGER.error("Error recording message view: %s", exc)
        return {"success": True, "message": "View recorded (with warnings)"}
    if not recorded:
        return {"success": True, "message": "View tracking is not available at this time"}
    return {"success": True}


async def attachment_url(request: AttachmentAccessRequest, now: Optional[datetime] = None) -> dict:
    message, condition = await validate_message_authorization(request.message_id, request.recipient_email)
    record = await _delivery_record(request.message_id, request.delivery_id, condition, request.recipient_email)
    security = check_security_conditions(condition, record.delivered_at, record.pin_verified_at is not None, now)
    if not security.is_unlocked:
        raise AccessDeniedError("This message is not accessible yet")
    if request.attachment_path not in {a.path for a in message.attachments or []}:
        raise NotFoundError("Attachment not found")
    url = await asyncio.to_thread(
        media.signed_url, request.attachment_path, request.attachment_name, request.download
    )
    return {"success": True, "url": url}
