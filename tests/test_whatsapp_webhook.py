import pytest

import db
from app.services import conditions, whatsapp_webhook as webhook
from app.types.contracts import MessageCondition
from app.utils import whatsapp


def test_extract_message_data_strips_prefix():
    msg = webhook.extract_message_data({"From": "whatsapp:+15550001111", "Body": " sos "})
    assert msg == webhook.InboundMessage(from_number="+15550001111", body="sos")


def test_extract_message_data_missing_fields():
    msg = webhook.extract_message_data({})
    assert msg.from_number == "" and msg.body == ""


def _panic(message_id: str, keyword=None) -> MessageCondition:
    config = {"methods": ["whatsapp"]}
    if keyword:
        config["trigger_keyword"] = keyword
    return MessageCondition(
        id=f"c-{message_id}", message_id=message_id, condition_type="panic_trigger", panic_config=config
    )


@pytest.fixture
def world(monkeypatch):
    state = {"user": "u1", "conditions": [], "replies": [], "check_ins": [], "panics": []}

    async def find_user_by_phone(phone):
        return state["user"]

    async def list_user_conditions(user_id, active_only=True, condition_type=None):
        return [c for c in state["conditions"] if condition_type in (None, c.condition_type)]

    async def perform_check_in(user_id, method="app", device_info=None):
        state["check_ins"].append((user_id, method))
        return {"success": True, "conditions_updated": 1}

    async def trigger_panic_message(user_id, message_id, keep_armed=None, source="panic_button"):
        state["panics"].append((user_id, message_id, source))

    monkeypatch.setattr(db, "find_user_by_phone", find_user_by_phone)
    monkeypatch.setattr(db, "list_user_conditions", list_user_conditions)
    monkeypatch.setattr(conditions, "perform_check_in", perform_check_in)
    monkeypatch.setattr(conditions, "trigger_panic_message", trigger_panic_message)
    monkeypatch.setattr(whatsapp, "send_whatsapp", lambda to, body: state["replies"].append(body))
    return state


async def _send(body: str) -> dict:
    return await webhook.handle_message(webhook.InboundMessage(from_number="+15550001111", body=body))


@pytest.mark.asyncio
async def test_unknown_user(world):
    world["user"] = None
    result = await _send("SOS")
    assert result["success"] is False
    assert world["replies"] == [webhook.REPLY_UNKNOWN_USER]


@pytest.mark.asyncio
@pytest.mark.parametrize("command", ["CHECKIN", "check-in", "Code"])
async def test_check_in_commands(world, command):
    result = await _send(command)
    assert result["type"] == "check-in"
    assert world["check_ins"] == [("u1", "whatsapp")]
    assert world["replies"] == ["✅ CHECK-IN SUCCESSFUL. Your dead man's switch has been reset."]


@pytest.mark.asyncio
async def test_custom_check_in_code(world):
    world["conditions"] = [
        MessageCondition(id="c1", message_id="m1", condition_type="no_check_in", check_in_code="blue42")
    ]
    result = await _send("BLUE42")
    assert result["type"] == "check-in"


@pytest.mark.asyncio
async def test_no_panic_conditions(world):
    result = await _send("SOS")
    assert result["type"] == "no_panic_conditions"
    assert world["replies"] == [webhook.REPLY_NO_PANIC]


@pytest.mark.asyncio
async def test_default_keyword_is_case_insensitive(world):
    world["conditions"] = [_panic("m1")]
    result = await _send("sos")
    assert result == {"success": True, "type": "panic_trigger", "userId": "u1", "matched": True, "messageId": "m1"}
    assert world["panics"] == [("u1", "m1", "whatsapp")]
    assert world["replies"] == [
        "⚠️ EMERGENCY ALERT TRIGGERED. Your emergency messages have been sent to all recipients."
    ]


@pytest.mark.asyncio
async def test_custom_keyword_picks_matching_message(world):
    world["conditions"] = [_panic("m1"), _panic("m2", keyword="Help Me")]
    result = await _send("help me")
    assert result["messageId"] == "m2"
    assert len(world["panics"]) == 1


@pytest.mark.asyncio
async def test_no_match(world):
    world["conditions"] = [_panic("m1", keyword="MAYDAY")]
    result = await _send("hello")
    assert result["type"] == "no_match"
    assert world["replies"] == [
        "No matching emergency trigger found. Please send 'SOS' to trigger your emergency message."
    ]
