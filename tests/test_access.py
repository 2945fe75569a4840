from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional

import pytest

import db
from app.errors import AccessDeniedError, InvalidPinError, NotFoundError, ValidationError
from app.services import access
from app.types.contracts import (
    AttachmentAccessRequest,
    Message,
    MessageCondition,
    RecordViewRequest,
    VerifyPinRequest,
)

UTC = timezone.utc
NOW = datetime(2025, 5, 1, 12, 0, tzinfo=UTC)


@dataclass
class FakeDelivery:
    delivered_at: datetime
    recipient_id: Optional[str] = "r1"
    viewed_count: int = 0
    viewed_at: Optional[datetime] = None
    pin_verified_at: Optional[datetime] = None


def _condition(**kw) -> MessageCondition:
    base = {
        "id": "c1",
        "message_id": "m1",
        "condition_type": "no_check_in",
        "recipients": [
            {"id": "r1", "name": "Bob", "email": "Bob@Example.com"},
            {"id": "r2", "name": "Cat", "email": "cat@example.com"},
        ],
    }
    base.update(kw)
    return MessageCondition(**base)


def test_security_open_message():
    s = access.check_security_conditions(_condition(), NOW, now=NOW)
    assert s.is_unlocked
    assert s.as_dict() == {
        "requires_pin": False,
        "is_delayed": False,
        "is_expired": False,
        "unlock_date": None,
        "expiry_date": None,
    }


def test_security_delay_counted_from_delivery():
    s = access.check_security_conditions(_condition(unlock_delay_hours=2), NOW, now=NOW + timedelta(hours=1))
    assert s.is_delayed
    assert s.unlock_date == NOW + timedelta(hours=2)
    later = access.check_security_conditions(_condition(unlock_delay_hours=2), NOW, now=NOW + timedelta(hours=3))
    assert not later.is_delayed


def test_security_expiry():
    s = access.check_security_conditions(_condition(expiry_hours=24), NOW, now=NOW + timedelta(hours=25))
    assert s.is_expired and not s.is_unlocked


def test_blank_pin_does_not_require_pin():
    assert not access.check_security_conditions(_condition(pin_code="  "), NOW, now=NOW).requires_pin


def test_pin_requires_explicit_verification():
    locked = access.check_security_conditions(_condition(pin_code="1234"), NOW, now=NOW)
    assert locked.requires_pin and not locked.is_unlocked
    unlocked = access.check_security_conditions(_condition(pin_code="1234"), NOW, pin_verified=True, now=NOW)
    assert unlocked.has_pin and not unlocked.requires_pin


def test_recipient_matching_is_case_insensitive():
    recipients = _condition().recipients
    assert access.is_authorized_recipient(recipients, " bob@example.COM ")
    assert not access.is_authorized_recipient(recipients, "eve@example.com")


@pytest.fixture
def stored(monkeypatch):
    state = {
        "message": Message(
            id="m1",
            user_id="u1",
            title="Vault",
            content="secret",
            attachments=[{"path": "u1/a-note.txt", "name": "note.txt"}],
        ),
        "condition": _condition(),
        "deliveries": {"d1": FakeDelivery(delivered_at=NOW)},
        "pin_checks": [],
    }

    async def get_message(message_id):
        return state["message"] if message_id == "m1" else None

    async def get_condition_for_message(message_id, active_only=False):
        return state["condition"]

    async def get_delivery(message_id, delivery_id):
        return state["deliveries"].get(delivery_id)

    async def record_view(message_id, delivery_id, device_info=None):
        record = state["deliveries"].get(delivery_id)
        if record is None:
            return False
        record.viewed_count += 1
        return True

    async def mark_pin_verified(message_id, delivery_id, device_info=None):
        state["pin_checks"].append((message_id, delivery_id, device_info))
        record = state["deliveries"].get(delivery_id)
        if record is None:
            return False
        record.pin_verified_at = NOW
        record.viewed_count += 1
        return True

    monkeypatch.setattr(db, "get_message", get_message)
    monkeypatch.setattr(db, "get_condition_for_message", get_condition_for_message)
    monkeypatch.setattr(db, "get_delivery", get_delivery)
    monkeypatch.setattr(db, "record_view", record_view)
    monkeypatch.setattr(db, "mark_pin_verified", mark_pin_verified)
    monkeypatch.setattr(access.media, "signed_url", lambda path, name=None, download=False: f"https://s3/{path}")
    return state


def _pin_request(pin="1234", delivery="d1", email="bob@example.com") -> VerifyPinRequest:
    return VerifyPinRequest.model_validate(
        {"pin": pin, "messageId": "m1", "deliveryId": delivery, "recipientEmail": email}
    )


@pytest.mark.asyncio
async def test_access_returns_content_when_unlocked(stored):
    body = await access.access_message("m1", "bob@example.com", "d1", now=NOW)
    assert body["message"]["content"] == "secret"
    assert body["message"]["attachments"][0]["url"] == "https://s3/u1/a-note.txt"
    assert body["security"]["requires_pin"] is False


@pytest.mark.asyncio
async def test_access_withholds_content_behind_pin(stored):
    stored["condition"] = _condition(pin_code="1234")
    body = await access.access_message("m1", "bob@example.com", "d1", now=NOW)
    assert body["security"]["requires_pin"] is True
    assert "content" not in body["message"]


@pytest.mark.asyncio
async def test_recorded_view_does_not_unlock_pin(stored):
    stored["condition"] = _condition(pin_code="1234")
    request = RecordViewRequest.model_validate({"messageId": "m1", "deliveryId": "d1"})
    assert (await access.record_message_view(request))["success"]
    assert stored["deliveries"]["d1"].viewed_count == 1

    body = await access.access_message("m1", "bob@example.com", "d1", now=NOW)
    assert body["security"]["requires_pin"] is True
    assert "content" not in body["message"]


@pytest.mark.asyncio
async def test_verified_pin_unlocks_content(stored):
    stored["condition"] = _condition(pin_code="1234")
    assert await access.verify_pin(_pin_request(), "pytest-agent") == {"success": True}
    assert stored["pin_checks"] == [("m1", "d1", "pytest-agent")]

    body = await access.access_message("m1", "bob@example.com", "d1", now=NOW)
    assert body["message"]["content"] == "secret"


@pytest.mark.asyncio
async def test_access_validation_and_authorization(stored):
    with pytest.raises(ValidationError):
        await access.access_message("m1", "bob@example.com", None)
    with pytest.raises(NotFoundError):
        await access.access_message("missing", "bob@example.com", "d1")
    with pytest.raises(AccessDeniedError):
        await access.access_message("m1", "eve@example.com", "d1")


@pytest.mark.asyncio
async def test_unknown_delivery_id_is_rejected(stored):
    with pytest.raises(NotFoundError, match="Delivery record not found"):
        await access.access_message("m1", "bob@example.com", "made-up", now=NOW)
    assert set(stored["deliveries"]) == {"d1"}


@pytest.mark.asyncio
async def test_expired_delivery_cannot_be_renewed_with_new_id(stored):
    stored["condition"] = _condition(expiry_hours=24)
    stored["deliveries"]["d1"] = FakeDelivery(delivered_at=NOW - timedelta(days=30))

    body = await access.access_message("m1", "bob@example.com", "d1", now=NOW)
    assert body["security"]["is_expired"] is True
    assert "content" not in body["message"]
    with pytest.raises(NotFoundError):
        await access.access_message("m1", "bob@example.com", "fresh-id", now=NOW)


@pytest.mark.asyncio
async def test_delivery_only_opens_for_its_recipient(stored):
    with pytest.raises(AccessDeniedError):
        await access.access_message("m1", "cat@example.com", "d1", now=NOW)


@pytest.mark.asyncio
async def test_verify_pin_wrong_or_missing(stored):
    stored["condition"] = _condition(pin_code="1234")
    with pytest.raises(InvalidPinError):
        await access.verify_pin(_pin_request(pin="0000"))
    with pytest.raises(ValidationError):
        await access.verify_pin(VerifyPinRequest.model_validate({"messageId": "m1"}))
    with pytest.raises(NotFoundError):
        await access.verify_pin(_pin_request(delivery="made-up"))
    assert stored["pin_checks"] == []
    assert stored["deliveries"]["d1"].pin_verified_at is None


@pytest.mark.asyncio
async def test_attachment_locked_until_pin_verified(stored):
    stored["condition"] = _condition(pin_code="1234")
    request = AttachmentAccessRequest.model_validate(
        {
            "messageId": "m1",
            "deliveryId": "d1",
            "recipientEmail": "bob@example.com",
            "attachmentPath": "u1/a-note.txt",
        }
    )
    with pytest.raises(AccessDeniedError):
        await access.attachment_url(request, now=NOW)

    await access.verify_pin(_pin_request())
    assert (await access.attachment_url(request, now=NOW))["url"] == "https://s3/u1/a-note.txt"
