"""Builds the ``reminder_schedule`` rows for a trigger condition."""

from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import List, Optional

import db
from app.services.deadlines import condition_deadline, parse_reminder_minutes, utcnow
from app.types.contracts import CHECK_IN_TYPES, MessageCondition

_LOGGER = logging.getLogger(__name__)

IMMEDIATE_REMINDER_DELAY = timedelta(seconds=10)
IMMEDIATE_DELIVERY_DELAY = timedelta(seconds=30)


def _entry(condition: MessageCondition, at: datetime, reminder_type: str, priority: str, strategy: str) -> dict:
    return {
        "message_id": condition.message_id,
        "condition_id": condition.id,
        "scheduled_at": at,
        "reminder_type": reminder_type,
        "status": "pending",
        "delivery_priority": priority,
        "retry_strategy": strategy,
    }


def build_schedule(condition: MessageCondition, now: Optional[datetime] = None) -> List[dict]:
    """Return the rows to store for *condition*, ordered by ``scheduled_at``.

    Panic triggers and conditions without a computable deadline get nothing.
    A deadline that already passed gets an immediate reminder (check-in types
    only) followed by the final delivery, both critical.
    """
    if condition.condition_type == "panic_trigger" or not condition.active:
        return []
    now = now or utcnow()
    deadline = condition_deadline(condition, now)
    if deadline is None:
        return []

    if deadline.is_overdue:
        entries = []
        if condition.condition_type in CHECK_IN_TYPES:
            entries.append(_entry(condition, now + IMMEDIATE_REMINDER_DELAY, "reminder", "critical", "aggressive"))
        entries.append(_entry(condition, now + IMMEDIATE_DELIVERY_DELAY, "final_delivery", "critical", "aggressive"))
        return entries

    entries = []
    for minutes in sorted(set(parse_reminder_minutes(condition.reminder_hours)), reverse=True):
        at = deadline.deadline - timedelta(minutes=minutes)
        if at <= now:
            continue
        entries.append(_entry(condition, at, "reminder", "high" if minutes < 60 else "normal", "standard"))
    entries.append(_entry(condition, deadline.deadline, "final_delivery", "critical", "aggressive"))
    return entries


async def rebuild_schedule(condition: MessageCondition, now: Optional[datetime] = None) -> int:
    """Replace the pending schedule of *condition*; returns the number of rows stored."""
    entries = build_schedule(condition, now)
    if not entries:
        cancelled = await db.cancel_pending_reminders(condition.id)
        if cancelled:
            _LOGGER.info("Cancelled %d pending reminders for condition %s", cancelled, condition.id)
        return 0
    stored = await db.replace_reminder_schedule(condition.id, entries)
    _LOGGER.info(
        "Scheduled %d reminder rows for message %s (final delivery at %s)",
        stored, condition.message_id, entries[-1]["scheduled_at"].isoformat(),
    )
    return stored
