"""send-test-email: tell a recipient they were added to a message."""

from __future__ import annotations

import asyncio
import logging

import db
from app.errors import ValidationError
from app.services.messages import get_message
from app.types.contracts import TestEmailRequest
from app.utils import mailer
from config import settings

_LOGGER = logging.getLogger(__name__)


async def send_test_email(request: TestEmailRequest) -> dict:
    if not request.recipient_email or not request.sender_name or not request.message_title:
        raise ValidationError(
            "Missing required parameters: recipientEmail, senderName, and messageTitle are required"
        )
    kind = "welcome" if request.is_welcome_email else "test"
    _LOGGER.info("Sending %s email to %s", kind, request.recipient_email)
    await asyncio.to_thread(
        mailer.send_test_email,
        request.recipient_email,
        request.recipient_name,
        request.sender_name,
        request.message_title,
        request.app_name or settings.APP_NAME,
        request.is_welcome_email,
    )
    return {"success": True}


async def send_test_notifications(user_id: str, message_id: str, is_welcome_email: bool = False) -> dict:
    """Send a test e-mail to every recipient of *message_id*; failures are counted, not raised."""
    message = await get_message(user_id, message_id)
    condition = await db.get_condition_for_message(message_id)
    recipients = condition.recipients if condition else []
    profile = await db.get_profile(user_id)
    sender_name = message.sender_name or (profile.display_name if profile else settings.APP_NAME)

    sent = 0
    errors = []
    for recipient in recipients:
        try:
            await send_test_email(
                TestEmailRequest(
                    recipient_name=recipient.name,
                    recipient_email=recipient.email,
                    sender_name=sender_name,
                    message_title=message.title,
                    is_welcome_email=is_welcome_email,
                )
            )
            sent += 1
        except Exception as exc:  # noqa: BLE001
            _LOGGER.error("Test email to %s failed: %s", recipient.email, exc)
            errors.append(recipient.email)
    return {"success": sent == len(recipients), "sent": sent, "total": len(recipients), "failed": errors}
