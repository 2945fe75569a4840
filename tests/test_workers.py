import pytest

import db
from app.scripts import scan_due_reminders
from app.services import notifications, reminders
from app.workers import delivery as delivery_worker
from app.workers import reminder as reminder_worker


@pytest.fixture
def disposed(monkeypatch):
    calls = []

    async def dispose_engine():
        calls.append(True)

    monkeypatch.setattr(db, "dispose_engine", dispose_engine)
    return calls


def test_dispatch_due_runs_reminders(monkeypatch, disposed):
    seen = []

    async def process_reminders(message_id=None, force=False, debug=False):
        seen.append((message_id, force))
        return {"processed": 1, "sent": 1, "failed": 0}

    monkeypatch.setattr(reminders, "process_reminders", process_reminders)
    result = reminder_worker.dispatch_due.apply(kwargs={"message_id": "m1", "force": True})

    assert result.get() == {"processed": 1, "sent": 1, "failed": 0}
    assert seen == [("m1", True)]
    assert disposed == [True]


def test_process_due_runs_final_deliveries(monkeypatch, disposed):
    async def process_due_messages(message_id=None, force=False):
        return {"processed": 0, "delivered": 0, "failed": 0}

    monkeypatch.setattr(reminders, "process_due_messages", process_due_messages)
    assert delivery_worker.process_due.apply().get() == {"processed": 0, "delivered": 0, "failed": 0}
    assert disposed == [True]


def test_notify_validates_camel_case_payload(monkeypatch, disposed):
    seen = []

    async def process(request):
        seen.append(request)
        return {"success": True}

    monkeypatch.setattr(notifications, "process", process)
    delivery_worker.notify.apply(args=({"messageId": "m1", "isEmergency": True},)).get()

    assert seen[0].message_id == "m1" and seen[0].is_emergency


@pytest.mark.asyncio
async def test_scan_script_runs_every_stage(monkeypatch, disposed):
    async def reset_stuck():
        return 2

    async def process_reminders(message_id=None, force=False, debug=False):
        return {"processed": 0, "sent": 0, "failed": 0}

    async def process_due_messages(message_id=None, force=False):
        return {"processed": 1, "delivered": 1, "failed": 0}

    monkeypatch.setattr(reminders, "reset_stuck", reset_stuck)
    monkeypatch.setattr(reminders, "process_reminders", process_reminders)
    monkeypatch.setattr(reminders, "process_due_messages", process_due_messages)

    result = await scan_due_reminders.main()
    assert result["reset"] == 2
    assert result["deliveries"]["delivered"] == 1
    assert disposed == [True]
