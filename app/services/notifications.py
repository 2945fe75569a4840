"""send-message-notifications: deliver a message to every recipient of its condition.

Each recipient gets its own ``delivery_id``, a ``delivered_messages`` row and a
secure link by e-mail. Emergency messages retry the e-mail and additionally go
out over WhatsApp (or SMS when WhatsApp is not enabled) to recipients with a
phone number.
"""

from __future__ import annotations

import asyncio
import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import List, Optional, Tuple

from tenacity import Retrying, retry_if_exception_type, stop_after_attempt, wait_fixed

import db
from app.errors import DeliveryError
from app.services import events
from app.services.deadlines import condition_deadline, to_iso, utcnow
from app.types.contracts import Message, MessageCondition, NotificationRequest, Recipient
from app.utils import mailer, sms, whatsapp
from app.utils.formatting import generate_secure_message_url
from config import settings

_LOGGER = logging.getLogger(__name__)

# Pause between emergency e-mail attempts
RETRY_WAIT = wait_fixed(5)

DEFAULT_SENDER = "EchoVault"


@dataclass
class NotificationOptions:
    is_emergency: bool = False
    debug: bool = False
    keep_armed: Optional[bool] = None
    source: str = "manual"


@dataclass
class RecipientResult:
    recipient: str
    success: bool
    attempts: int
    delivery_id: str
    error: Optional[str] = None
    side_channel: Optional[str] = None


@dataclass
class NotificationResult:
    success: bool
    details: List[RecipientResult] = field(default_factory=list)
    error: Optional[str] = None


def emergency_whatsapp_text(message: Message) -> str:
    content = message.content or "An emergency alert has been triggered for you."
    return f"⚠️ EMERGENCY ALERT: {message.title}\n\n{content}\n\nCheck your email for more information."


# ──────────────────────────────
# Selection
# ──────────────────────────────


async def get_messages_to_notify(
    message_id: Optional[str] = None,
    force_send: bool = False,
    now: Optional[datetime] = None,
) -> List[Tuple[Message, MessageCondition]]:
    """Active conditions that are due.

    *message_id* narrows the selection to one message; its deadline is only
    skipped when *force_send* is set.
    """
    now = now or utcnow()
    conditions = await db.list_active_conditions(message_id)
    selected = []
    for condition in conditions:
        if not (message_id and force_send):
            deadline = condition_deadline(condition, now)
            if deadline is None or not deadline.is_overdue:
                continue
        message = await db.get_message(condition.message_id)
        if message is None:
            _LOGGER.warning("Condition %s points at missing message %s", condition.id, condition.message_id)
            continue
        selected.append((message, condition))
    return selected


# ──────────────────────────────
# Delivery
# ──────────────────────────────


def _send_email(attempts: int, **kwargs) -> int:
    """Send the notification e-mail; returns the number of attempts used."""
    attempt_number = 0
    for attempt in Retrying(
        stop=stop_after_attempt(attempts),
        wait=RETRY_WAIT,
        retry=retry_if_exception_type(DeliveryError),
        reraise=True,
    ):
        with attempt:
            attempt_number = attempt.retry_state.attempt_number
            mailer.send_notification_email(**kwargs)
    return attempt_number


async def _sender_name(message: Message) -> str:
    if message.sender_name:
        return message.sender_name
    profile = await db.get_profile(message.user_id)
    return profile.display_name if profile else DEFAULT_SENDER


async def _send_side_channel(recipient: Recipient, message: Message, use_whatsapp: bool) -> Optional[str]:
    text = emergency_whatsapp_text(message)
    try:
        if use_whatsapp:
            await asyncio.to_thread(whatsapp.send_whatsapp, recipient.phone, text, recipient.name)
            return "whatsapp"
        await asyncio.to_thread(sms.send_sms, recipient.phone, text)
        return "sms"
    except Exception as exc:  # noqa: BLE001
        # The e-mail already carries the link
        _LOGGER.error("Emergency side channel to %s failed: %s", recipient.phone, exc)
        return None


async def _notify_recipient(
    recipient: Recipient,
    message: Message,
    condition: MessageCondition,
    sender_name: str,
    is_emergency: bool,
    whatsapp_enabled: bool,
    options: NotificationOptions,
    now: datetime,
) -> RecipientResult:
    delivery_id = str(uuid.uuid4())
    try:
        await db.record_delivery(message.id, condition.id, recipient.id, delivery_id)
    except Exception as exc:  # noqa: BLE001
        _LOGGER.error("Could not record delivery %s for %s: %s", delivery_id, recipient.email, exc)

    access_url = generate_secure_message_url(message.id, recipient.email, delivery_id)
    log = _LOGGER.info if options.debug else _LOGGER.debug
    log("Access URL for %s: %s", recipient.email, access_url)

    unlock_date = (
        to_iso(now + timedelta(hours=condition.unlock_delay_hours)) if condition.unlock_delay_hours > 0 else None
    )
    expiry_date = to_iso(now + timedelta(hours=condition.expiry_hours)) if condition.expiry_hours > 0 else None

    attempts = settings.EMERGENCY_EMAIL_ATTEMPTS if is_emergency else 1
    result = RecipientResult(recipient=recipient.email, success=False, attempts=0, delivery_id=delivery_id)
    try:
        result.attempts = await asyncio.to_thread(
            _send_email,
            attempts,
            to_email=recipient.email,
            recipient_name=recipient.name,
            sender_name=sender_name,
            message_title=message.title,
            access_url=access_url,
            is_emergency=is_emergency,
            has_pin_code=condition.has_pin,
            unlock_date=unlock_date,
            expiry_date=expiry_date,
            share_location=message.share_location,
            location_name=message.location_name,
        )
        result.success = True
    except DeliveryError as exc:
        result.attempts = attempts
        result.error = str(exc)
        _LOGGER.error("E-mail to %s failed after %d attempt(s): %s", recipient.email, attempts, exc)

    if is_emergency and recipient.phone:
        result.side_channel = await _send_side_channel(recipient, message, whatsapp_enabled)
    return result


async def _finish_condition(condition: MessageCondition, options: NotificationOptions) -> None:
    if condition.condition_type == "panic_trigger":
        keep_armed = options.keep_armed if options.keep_armed is not None else condition.keep_armed
        if keep_armed:
            _LOGGER.info("Keeping panic condition %s armed", condition.id)
            return
    await db.set_condition_active(condition.id, False)
    await db.cancel_pending_reminders(condition.id)
    await events.publish(options.source, message_id=condition.message_id, trigger_value="delivered")
    _LOGGER.info("Deactivated condition %s after delivery", condition.id)


async def send_message_notification(
    message: Message,
    condition: MessageCondition,
    options: Optional[NotificationOptions] = None,
) -> NotificationResult:
    options = options or NotificationOptions()
    if not condition.recipients:
        _LOGGER.info("No recipients for message %s, skipping notification", message.id)
        return NotificationResult(success=True)

    is_emergency = condition.condition_type == "panic_trigger" or options.is_emergency
    whatsapp_enabled = bool(
        condition.condition_type == "panic_trigger"
        and condition.panic_config
        and "whatsapp" in condition.panic_config.methods
    )
    sender_name = await _sender_name(message)
    now = utcnow()

    details = [
        await _notify_recipient(r, message, condition, sender_name, is_emergency, whatsapp_enabled, options, now)
        for r in condition.recipients
    ]
    sent = sum(1 for d in details if d.success)
    _LOGGER.info("Message %s: %d/%d recipients notified", message.id, sent, len(details))

    if sent == 0:
        # Stays armed so the final-delivery row can be retried
        return NotificationResult(success=False, details=details, error="All email deliveries failed")
    await _finish_condition(condition, options)
    return NotificationResult(success=True, details=details)


async def process(request: NotificationRequest) -> dict:
    """Entry point of the send-message-notifications function."""
    options = NotificationOptions(
        is_emergency=request.is_emergency,
        debug=request.debug,
        keep_armed=request.keep_armed,
        source=request.source,
    )
    to_notify = await get_messages_to_notify(request.message_id, request.force_send)
    _LOGGER.info("send-message-notifications (%s): %d message(s) to notify", request.source, len(to_notify))

    successful = failed = 0
    for message, condition in to_notify:
        try:
            result = await send_message_notification(message, condition, options)
        except Exception as exc:  # noqa: BLE001
            _LOGGER.exception("Notification for message %s failed: %s", message.id, exc)
            failed += 1
            continue
        if result.success:
            successful += 1
        else:
            failed += 1

    return {
        "success": True,
        "messages_processed": len(to_notify),
        "successful_notifications": successful,
        "failed_notifications": failed,
    }
