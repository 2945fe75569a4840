"""Trigger-condition lifecycle: create, arm / disarm, check-in and panic."""

from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import List, Optional

import db
from app.errors import AccessDeniedError, NotFoundError, ValidationError
from app.services import events, notifications
from app.services.deadlines import Deadline, condition_deadline, to_iso, utcnow
from app.services.reminder_schedule import rebuild_schedule
from app.types.contracts import ConditionDraft, Message, MessageCondition

_LOGGER = logging.getLogger(__name__)

DEFAULT_NEXT_DEADLINE = timedelta(hours=24)


async def _owned_message(user_id: str, message_id: str) -> Message:
    message = await db.get_message(message_id)
    if message is None:
        raise NotFoundError(f"Message {message_id} not found")
    if message.user_id != user_id:
        raise AccessDeniedError("You don't have permission to modify this message")
    return message


async def _owned_condition(user_id: str, message_id: str) -> MessageCondition:
    await _owned_message(user_id, message_id)
    condition = await db.get_condition_for_message(message_id)
    if condition is None:
        raise NotFoundError(f"No trigger condition for message {message_id}")
    return condition


async def create_condition(user_id: str, message_id: str, draft: ConditionDraft) -> MessageCondition:
    await _owned_message(user_id, message_id)
    recipients = await db.list_recipients(user_id, draft.recipient_ids)
    if len(recipients) != len(set(draft.recipient_ids)):
        raise ValidationError("One or more recipients do not exist")
    condition = await db.insert_condition(message_id, draft, recipients, last_checked=utcnow())
    await rebuild_schedule(condition)
    await events.publish("condition_created", message_id=message_id, user_id=user_id)
    return condition


async def update_condition(user_id: str, message_id: str, draft: ConditionDraft) -> MessageCondition:
    current = await _owned_condition(user_id, message_id)
    recipients = await db.list_recipients(user_id, draft.recipient_ids)
    if len(recipients) != len(set(draft.recipient_ids)):
        raise ValidationError("One or more recipients do not exist")
    condition = await db.update_condition(
        current.id,
        condition_type=draft.condition_type,
        hours_threshold=draft.hours_threshold,
        minutes_threshold=draft.minutes_threshold,
        recipients=[r.model_dump(exclude={"user_id"}) for r in recipients],
        trigger_date=draft.trigger_date,
        recurring_pattern=draft.recurring_pattern.model_dump() if draft.recurring_pattern else None,
        panic_config=draft.panic_config.model_dump() if draft.panic_config else None,
        pin_code=draft.pin_code,
        unlock_delay_hours=draft.unlock_delay_hours,
        expiry_hours=draft.expiry_hours,
        reminder_hours=draft.reminder_hours,
        check_in_code=draft.check_in_code,
    )
    await rebuild_schedule(condition)
    await events.publish("condition_updated", message_id=message_id, user_id=user_id)
    return condition


async def list_conditions(user_id: str, active_only: bool = False) -> List[MessageCondition]:
    return await db.list_user_conditions(user_id, active_only=active_only)


# ──────────────────────────────
# Check-in
# ──────────────────────────────


async def perform_check_in(user_id: str, method: str = "app", device_info: Optional[str] = None) -> dict:
    """Reset the timer of every active condition owned by *user_id*."""
    now = utcnow()
    conditions = await db.list_user_conditions(user_id, active_only=True)
    updated = await db.set_conditions_last_checked([c.id for c in conditions], now)
    await db.insert_check_in(user_id, method, now, device_info)

    for condition in conditions:
        await rebuild_schedule(condition.model_copy(update={"last_checked": now}), now)

    await events.publish("check_in", user_id=user_id, trigger_value=method)
    _LOGGER.info("Check-in for user %s via %s updated %d condition(s)", user_id, method, updated)
    return {
        "success": True,
        "timestamp": to_iso(now),
        "method": method,
        "conditions_updated": updated,
    }


# ──────────────────────────────
# Arm / disarm
# ──────────────────────────────


async def arm_message(user_id: str, message_id: str) -> MessageCondition:
    current = await _owned_condition(user_id, message_id)
    condition = await db.update_condition(current.id, active=True, last_checked=utcnow())
    await rebuild_schedule(condition)
    await events.publish("arm", message_id=message_id, user_id=user_id, trigger_value="armed")
    return condition


async def disarm_message(user_id: str, message_id: str) -> MessageCondition:
    current = await _owned_condition(user_id, message_id)
    condition = await db.update_condition(current.id, active=False)
    await db.cancel_pending_reminders(condition.id)
    await events.publish("disarm", message_id=message_id, user_id=user_id, trigger_value="disarmed")
    return condition


# ──────────────────────────────
# Deadlines
# ──────────────────────────────


async def get_message_deadline(message_id: str, now: Optional[datetime] = None) -> Optional[Deadline]:
    condition = await db.get_condition_for_message(message_id, active_only=True)
    if condition is None:
        return None
    return condition_deadline(condition, now)


async def get_next_check_in_deadline(user_id: str, now: Optional[datetime] = None) -> datetime:
    """Earliest deadline across the user's active conditions, else now + 24h."""
    now = now or utcnow()
    deadlines = [
        d.deadline
        for d in (condition_deadline(c, now) for c in await db.list_user_conditions(user_id, active_only=True))
        if d is not None
    ]
    return min(deadlines) if deadlines else now + DEFAULT_NEXT_DEADLINE


# ──────────────────────────────
# Panic
# ──────────────────────────────


async def trigger_panic_message(
    user_id: str,
    message_id: str,
    keep_armed: Optional[bool] = None,
    source: str = "panic_button",
) -> notifications.NotificationResult:
    message = await _owned_message(user_id, message_id)
    condition = await db.get_condition_for_message(message_id, active_only=True)
    if condition is None or condition.condition_type != "panic_trigger":
        raise ValidationError("This message does not have an active panic trigger")

    _LOGGER.warning("Panic trigger fired for message %s (source=%s)", message_id, source)
    result = await notifications.send_message_notification(
        message,
        condition,
        notifications.NotificationOptions(is_emergency=True, keep_armed=keep_armed, source=source),
    )
    await events.publish(source, message_id=message_id, user_id=user_id, trigger_value="triggered")
    return result
