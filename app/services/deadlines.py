"""Deadline and reminder arithmetic for trigger conditions.

All functions are pure: they take an optional ``now`` so callers (and tests)
control the clock. Naive datetimes are treated as UTC.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Iterable, Optional, Sequence, Union

from app.types.contracts import CHECK_IN_TYPES, MessageCondition

When = Union[str, datetime]


@dataclass(frozen=True)
class Deadline:
    deadline: datetime
    is_overdue: bool
    remaining: timedelta

    @property
    def iso(self) -> str:
        return to_iso(self.deadline)


def parse_when(value: When) -> datetime:
    """Parse an ISO-8601 string (``Z`` suffix allowed) or pass a datetime through, always aware."""
    if isinstance(value, str):
        text = value.strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        value = datetime.fromisoformat(text)
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value


def to_iso(value: datetime) -> str:
    return value.astimezone(timezone.utc).isoformat().replace("+00:00", "Z")


def utcnow() -> datetime:
    return datetime.now(tz=timezone.utc)


def _deadline(deadline: datetime, now: Optional[datetime]) -> Deadline:
    now = parse_when(now) if now is not None else utcnow()
    return Deadline(deadline=deadline, is_overdue=now >= deadline, remaining=deadline - now)


def calculate_check_in_deadline(
    last_checked: When,
    hours_threshold: float,
    minutes_threshold: float = 0,
    now: Optional[datetime] = None,
) -> Deadline:
    """Deadline of an inactivity timer that was last reset at *last_checked*."""
    start = parse_when(last_checked)
    deadline = start + timedelta(hours=hours_threshold or 0, minutes=minutes_threshold or 0)
    return _deadline(deadline, now)


def calculate_scheduled_deadline(trigger_date: When, now: Optional[datetime] = None) -> Deadline:
    return _deadline(parse_when(trigger_date), now)


def calculate_next_reminder_time(
    deadline: When,
    reminder_minutes: Iterable[float],
    after_minute: Optional[float] = None,
    now: Optional[datetime] = None,
) -> Optional[datetime]:
    """Return the next reminder time for *deadline*.

    Offsets are minutes before the deadline and are walked from the furthest
    to the closest. With *after_minute* (the offset that just fired) the
    result is the next smaller offset, or ``None`` when it was the last one.
    Without a cursor the first reminder still in the future is returned.
    """
    deadline = parse_when(deadline)
    ordered = sorted(set(reminder_minutes), reverse=True)

    if after_minute is not None:
        remaining = [m for m in ordered if m < after_minute]
        if not remaining:
            return None
        return deadline - timedelta(minutes=remaining[0])

    now = parse_when(now) if now is not None else utcnow()
    for minutes in ordered:
        at = deadline - timedelta(minutes=minutes)
        if at > now:
            return at
    return None


def parse_reminder_minutes(reminder_hours: Optional[Sequence[float]]) -> list[int]:
    """Convert configured reminder hours into minute offsets; defaults to one hour."""
    if not reminder_hours:
        return [60]
    minutes = []
    for hours in reminder_hours:
        if isinstance(hours, (int, float)) and hours > 0:
            minutes.append(int(round(hours * 60)))
        else:
            minutes.append(60)
    return minutes


def condition_deadline(condition: MessageCondition, now: Optional[datetime] = None) -> Optional[Deadline]:
    """Deadline for a condition by type; ``None`` for manual triggers or missing data."""
    ctype = condition.condition_type
    if ctype == "panic_trigger":
        return None
    if ctype == "inactivity_to_date" and condition.trigger_date is not None:
        if condition.last_checked is None or (condition.hours_threshold == 0 and condition.minutes_threshold == 0):
            return calculate_scheduled_deadline(condition.trigger_date, now)
    if ctype in CHECK_IN_TYPES:
        if condition.last_checked is None:
            return None
        return calculate_check_in_deadline(
            condition.last_checked, condition.hours_threshold, condition.minutes_threshold, now
        )
    if ctype == "scheduled" and condition.trigger_date is not None:
        return calculate_scheduled_deadline(condition.trigger_date, now)
    return None


def get_time_until(target: When, now: Optional[datetime] = None) -> str:
    """Compact countdown label: ``45m``, ``3h``, ``2d`` or ``Overdue``."""
    target = parse_when(target)
    now = parse_when(now) if now is not None else utcnow()
    seconds = (target - now).total_seconds()
    if seconds <= 0:
        return "Overdue"
    minutes = round(seconds / 60)
    if minutes < 60:
        return f"{minutes}m"
    hours = round(seconds / 3600)
    if hours < 24:
        return f"{hours}h"
    return f"{round(seconds / 86400)}d"


def hours_until(target: When, now: Optional[datetime] = None) -> float:
    now = parse_when(now) if now is not None else utcnow()
    return (parse_when(target) - now).total_seconds() / 3600
