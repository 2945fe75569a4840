from datetime import datetime, timedelta, timezone

import pytest

from app.services import reminder_schedule
from app.types.contracts import MessageCondition
import db

UTC = timezone.utc
NOW = datetime(2025, 3, 1, 8, 0, tzinfo=UTC)


def _condition(**kw) -> MessageCondition:
    base = {
        "id": "c1",
        "message_id": "m1",
        "condition_type": "no_check_in",
        "hours_threshold": 24,
        "last_checked": NOW,
    }
    base.update(kw)
    return MessageCondition(**base)


def test_future_deadline_gets_reminders_and_final_delivery():
    entries = reminder_schedule.build_schedule(_condition(reminder_hours=[12, 0.5]), NOW)
    deadline = NOW + timedelta(hours=24)
    assert [(e["reminder_type"], e["scheduled_at"]) for e in entries] == [
        ("reminder", deadline - timedelta(hours=12)),
        ("reminder", deadline - timedelta(minutes=30)),
        ("final_delivery", deadline),
    ]
    assert [e["delivery_priority"] for e in entries] == ["normal", "high", "critical"]
    assert all(e["status"] == "pending" for e in entries)


def test_offsets_already_passed_are_skipped():
    # 48h before a 24h deadline is in the past
    entries = reminder_schedule.build_schedule(_condition(reminder_hours=[48, 1]), NOW)
    assert [e["reminder_type"] for e in entries] == ["reminder", "final_delivery"]


def test_passed_deadline_schedules_immediate_delivery():
    late = _condition(last_checked=NOW - timedelta(hours=30))
    entries = reminder_schedule.build_schedule(late, NOW)
    assert [(e["reminder_type"], e["scheduled_at"]) for e in entries] == [
        ("reminder", NOW + timedelta(seconds=10)),
        ("final_delivery", NOW + timedelta(seconds=30)),
    ]
    assert {e["delivery_priority"] for e in entries} == {"critical"}


def test_passed_scheduled_date_has_no_immediate_reminder():
    late = _condition(condition_type="scheduled", trigger_date=NOW - timedelta(minutes=1))
    entries = reminder_schedule.build_schedule(late, NOW)
    assert [e["reminder_type"] for e in entries] == ["final_delivery"]


def test_panic_and_inactive_conditions_have_no_schedule():
    assert reminder_schedule.build_schedule(_condition(condition_type="panic_trigger"), NOW) == []
    assert reminder_schedule.build_schedule(_condition(active=False), NOW) == []


@pytest.mark.asyncio
async def test_rebuild_schedule_replaces_rows(monkeypatch):
    stored = {}

    async def fake_replace(condition_id, entries):
        stored[condition_id] = entries
        return len(entries)

    monkeypatch.setattr(db, "replace_reminder_schedule", fake_replace)
    count = await reminder_schedule.rebuild_schedule(_condition(), NOW)
    assert count == 2
    assert stored["c1"][-1]["reminder_type"] == "final_delivery"


@pytest.mark.asyncio
async def test_rebuild_schedule_cancels_for_panic(monkeypatch):
    cancelled = []

    async def fake_cancel(condition_id):
        cancelled.append(condition_id)
        return 3

    monkeypatch.setattr(db, "cancel_pending_reminders", fake_cancel)
    assert await reminder_schedule.rebuild_schedule(_condition(condition_type="panic_trigger"), NOW) == 0
    assert cancelled == ["c1"]
