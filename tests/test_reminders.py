from datetime import datetime, timedelta, timezone
from types import SimpleNamespace

import pytest

import db
from app.errors import DeliveryError
from app.services import notifications, reminders
from app.types.contracts import Message, MessageCondition, ReminderRequest
from app.utils import mailer, whatsapp

UTC = timezone.utc


@pytest.mark.parametrize(
    "hours, expected",
    [(5.25, "5.2 hours"), (0.5, "30 minutes"), (0.01, "1 minutes"), (0, "less than 1 minute")],
)
def test_format_time_display(hours, expected):
    assert reminders.format_time_display(hours) == expected


def test_check_in_whatsapp_text(monkeypatch):
    monkeypatch.setattr(reminders, "app_base_url", lambda: "https://echo-vault.app")
    text = reminders.check_in_whatsapp_text("Letter", 2)
    assert text.startswith("🔔 *EchoVault Check-in Reminder*\n\n")
    assert 'Your message "Letter" needs a check-in.' in text
    assert "https://echo-vault.app/check-ins" in text


def _row(rid="r1", reminder_type="reminder", retry_count=0):
    return {
        "id": rid,
        "message_id": "m1",
        "condition_id": "c1",
        "reminder_type": reminder_type,
        "retry_count": retry_count,
    }


@pytest.fixture
def queue(monkeypatch):
    state = {
        "rows": [],
        "claimed_with": [],
        "sent": [],
        "failed": [],
        "emails": [],
        "whatsapp": [],
        "condition": MessageCondition(
            id="c1",
            message_id="m1",
            condition_type="no_check_in",
            hours_threshold=3,
            last_checked=datetime.now(tz=UTC) - timedelta(hours=1),
        ),
        "profile": SimpleNamespace(email="ann@example.com", display_name="Ann", whatsapp_number=None),
    }

    async def claim_due_reminders(reminder_type, limit=50, force=False, message_id=None):
        state["claimed_with"].append((reminder_type, force, message_id))
        return [r for r in state["rows"] if r["reminder_type"] == reminder_type]

    async def get_condition(condition_id):
        return state["condition"]

    async def get_message(message_id):
        return Message(id=message_id, user_id="u1", title="Letter")

    async def get_profile(user_id):
        return state["profile"]

    async def mark_reminder_sent(rid):
        state["sent"].append(rid)

    async def mark_reminder_failed(rid, err, retry=False):
        state["failed"].append((rid, retry))

    monkeypatch.setattr(db, "claim_due_reminders", claim_due_reminders)
    monkeypatch.setattr(db, "get_condition", get_condition)
    monkeypatch.setattr(db, "get_message", get_message)
    monkeypatch.setattr(db, "get_profile", get_profile)
    monkeypatch.setattr(db, "mark_reminder_sent", mark_reminder_sent)
    monkeypatch.setattr(db, "mark_reminder_failed", mark_reminder_failed)
    monkeypatch.setattr(mailer, "send_reminder_email", lambda *args: state["emails"].append(args))
    monkeypatch.setattr(whatsapp, "send_whatsapp", lambda to, body: state["whatsapp"].append(to))
    return state


@pytest.mark.asyncio
async def test_reminder_emails_creator(queue):
    queue["rows"] = [_row()]
    result = await reminders.process_reminders(message_id="m1", force=True)

    assert result == {"processed": 1, "sent": 1, "failed": 0}
    assert queue["claimed_with"] == [("reminder", True, "m1")]
    to_email, name, title, hours, _ = queue["emails"][0]
    assert (to_email, name, title) == ("ann@example.com", "Ann", "Letter")
    assert 1.9 <= hours <= 2.0
    assert queue["sent"] == ["r1"]
    assert queue["whatsapp"] == []


@pytest.mark.asyncio
async def test_reminder_also_uses_whatsapp(queue):
    queue["rows"] = [_row()]
    queue["profile"].whatsapp_number = "+15550001111"
    await reminders.process_reminders()
    assert queue["whatsapp"] == ["+15550001111"]


@pytest.mark.asyncio
async def test_reminder_without_creator_email_is_retried(queue):
    queue["rows"] = [_row(retry_count=1)]
    queue["profile"] = None
    result = await reminders.process_reminders()
    assert result["failed"] == 1
    assert queue["failed"] == [("r1", True)]


@pytest.mark.asyncio
async def test_reminder_gives_up_after_max_retries(queue, monkeypatch):
    def failing(*args):
        raise DeliveryError("smtp down")

    monkeypatch.setattr(mailer, "send_reminder_email", failing)
    queue["rows"] = [_row(retry_count=2)]
    await reminders.process_reminders()
    assert queue["failed"] == [("r1", False)]


@pytest.mark.asyncio
async def test_reminder_for_disarmed_condition_is_skipped(queue):
    queue["rows"] = [_row()]
    queue["condition"] = queue["condition"].model_copy(update={"active": False})
    result = await reminders.process_reminders()
    assert result["sent"] == 1
    assert queue["emails"] == []


@pytest.mark.asyncio
async def test_final_delivery_hands_over_to_notifications(queue, monkeypatch):
    queue["rows"] = [_row("f1", "final_delivery"), _row("f2", "final_delivery", retry_count=4)]
    outcomes = iter([True, False])

    async def send_message_notification(message, condition, options=None):
        assert options.source == "final_delivery"
        ok = next(outcomes)
        return notifications.NotificationResult(success=ok, error=None if ok else "All email deliveries failed")

    monkeypatch.setattr(notifications, "send_message_notification", send_message_notification)
    result = await reminders.process_due_messages()

    assert result == {"processed": 2, "delivered": 1, "failed": 1}
    assert queue["sent"] == ["f1"]
    assert queue["failed"] == [("f2", False)]


@pytest.mark.asyncio
async def test_process_reset_stuck(monkeypatch):
    async def reset_stuck_reminders(older_than_minutes):
        return 4

    monkeypatch.setattr(db, "reset_stuck_reminders", reset_stuck_reminders)
    body = await reminders.process(ReminderRequest.model_validate({"action": "reset_stuck"}))
    assert body == {"success": True, "reset": 4}
