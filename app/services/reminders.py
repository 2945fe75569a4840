"""send-reminder-emails: creator check-in reminders and final deliveries.

``reminder`` rows only ever reach the message creator. ``final_delivery`` rows
hand over to the notification service, which reaches the recipients.
"""

from __future__ import annotations

import asyncio
import logging
import math
from typing import Optional

import db
from app.services import notifications
from app.services.deadlines import condition_deadline, get_time_until, hours_until, utcnow
from app.types.contracts import ReminderRequest
from app.utils import mailer, whatsapp
from app.utils.formatting import app_base_url
from config import settings

_LOGGER = logging.getLogger(__name__)

MAX_RETRIES = {"reminder": 3, "final_delivery": 5}


def format_time_display(hours: float) -> str:
    if hours > 1:
        return f"{hours:.1f} hours"
    if hours > 0:
        return f"{math.ceil(hours * 60)} minutes"
    return "less than 1 minute"


def check_in_whatsapp_text(message_title: str, hours: float) -> str:
    return (
        "🔔 *EchoVault Check-in Reminder*\n\n"
        f'Your message "{message_title}" needs a check-in.\n\n'
        f"⏰ Time until deadline: {format_time_display(hours)}\n\n"
        f"✅ Check in now: {app_base_url()}/check-ins\n\n"
        "If you don't check in, your message will be delivered automatically."
    )


async def _fail(row: dict, err: str) -> None:
    retry = row["retry_count"] + 1 < MAX_RETRIES.get(row["reminder_type"], 3)
    await db.mark_reminder_failed(row["id"], err, retry=retry)


# ──────────────────────────────
# Creator reminders
# ──────────────────────────────


async def send_creator_reminder(row: dict, debug: bool = False) -> bool:
    """Remind the owner of ``row``'s message to check in. Returns True when any channel succeeded."""
    condition = await db.get_condition(row["condition_id"])
    message = await db.get_message(row["message_id"])
    if condition is None or message is None or not condition.active:
        _LOGGER.info("Reminder %s is obsolete, skipping", row["id"])
        await db.mark_reminder_sent(row["id"])
        return True

    profile = await db.get_profile(message.user_id)
    email = profile.email if profile else None
    if not email:
        await _fail(row, f"No email found for creator {message.user_id}")
        return False

    now = utcnow()
    deadline = condition_deadline(condition, now)
    target = deadline.deadline if deadline else now
    hours = hours_until(target, now)
    if debug:
        _LOGGER.info("Check-in reminder for %r: %.1f hours until deadline", message.title, hours)

    delivered = False
    errors = []
    try:
        await asyncio.to_thread(
            mailer.send_reminder_email,
            email,
            profile.display_name,
            message.title,
            round(hours, 1),
            get_time_until(target, now),
        )
        delivered = True
    except Exception as exc:  # noqa: BLE001
        errors.append(f"email: {exc}")
        _LOGGER.error("Reminder e-mail to %s failed: %s", email, exc)

    if profile.whatsapp_number:
        try:
            await asyncio.to_thread(
                whatsapp.send_whatsapp, profile.whatsapp_number, check_in_whatsapp_text(message.title, hours)
            )
            delivered = True
        except Exception as exc:  # noqa: BLE001
            errors.append(f"whatsapp: {exc}")
            _LOGGER.error("Reminder WhatsApp to %s failed: %s", profile.whatsapp_number, exc)

    if delivered:
        await db.mark_reminder_sent(row["id"])
    else:
        await _fail(row, "; ".join(errors))
    return delivered


async def process_reminders(message_id: Optional[str] = None, force: bool = False, debug: bool = False) -> dict:
    rows = await db.claim_due_reminders("reminder", force=force, message_id=message_id)
    sent = failed = 0
    for row in rows:
        try:
            ok = await send_creator_reminder(row, debug)
        except Exception as exc:  # noqa: BLE001
            _LOGGER.exception("Reminder %s crashed", row["id"])
            await _fail(row, str(exc))
            ok = False
        if ok:
            sent += 1
        else:
            failed += 1
    return {"processed": len(rows), "sent": sent, "failed": failed}


# ──────────────────────────────
# Final delivery
# ──────────────────────────────


async def process_due_messages(message_id: Optional[str] = None, force: bool = False) -> dict:
    rows = await db.claim_due_reminders("final_delivery", force=force, message_id=message_id)
    delivered = failed = 0
    for row in rows:
        try:
            condition = await db.get_condition(row["condition_id"])
            message = await db.get_message(row["message_id"])
            if condition is None or message is None or not condition.active:
                _LOGGER.info("Final delivery %s is obsolete, skipping", row["id"])
                await db.mark_reminder_sent(row["id"])
                continue
            result = await notifications.send_message_notification(
                message, condition, notifications.NotificationOptions(source="final_delivery")
            )
        except Exception as exc:  # noqa: BLE001
            _LOGGER.exception("Final delivery %s crashed", row["id"])
            await _fail(row, str(exc))
            failed += 1
            continue
        if result.success:
            await db.mark_reminder_sent(row["id"])
            delivered += 1
        else:
            await _fail(row, result.error or "delivery failed")
            failed += 1
    return {"processed": len(rows), "delivered": delivered, "failed": failed}


async def reset_stuck() -> int:
    count = await db.reset_stuck_reminders(settings.STUCK_REMINDER_MINUTES)
    if count:
        _LOGGER.warning("Reset %d stuck reminder(s) to pending", count)
    return count


async def process(request: ReminderRequest) -> dict:
    """Entry point of the send-reminder-emails function."""
    if request.action == "reset_stuck":
        return {"success": True, "reset": await reset_stuck()}
    _LOGGER.info("send-reminder-emails (%s): processing check-in reminders", request.source)
    results = await process_reminders(request.message_id, request.force_send, request.debug)
    return {"success": True, **results}
