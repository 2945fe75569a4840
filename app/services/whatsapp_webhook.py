"""Inbound WhatsApp messages: check-in commands and panic keywords.

Every branch answers the sender over WhatsApp, including the ones where the
account cannot be identified.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Mapping, Optional

import db
from app.services import conditions
from app.utils import whatsapp

_LOGGER = logging.getLogger(__name__)

CHECK_IN_COMMANDS = frozenset({"CHECKIN", "CHECK-IN", "CODE"})
DEFAULT_PANIC_KEYWORD = "SOS"

REPLY_UNKNOWN_USER = (
    "Sorry, we couldn't identify your account. "
    "Please make sure your WhatsApp number is registered in the system."
)
REPLY_CHECK_IN = "✅ CHECK-IN SUCCESSFUL. Your dead man's switch has been reset."
REPLY_PANIC = "⚠️ EMERGENCY ALERT TRIGGERED. Your emergency messages have been sent to all recipients."
REPLY_NO_PANIC = (
    "No active panic messages configured. "
    "To trigger an emergency message, set up a panic trigger in the app."
)
REPLY_NO_MATCH = (
    f"No matching emergency trigger found. Please send '{DEFAULT_PANIC_KEYWORD}' "
    "to trigger your emergency message."
)


@dataclass(frozen=True)
class InboundMessage:
    from_number: str
    body: str


def extract_message_data(payload: Mapping) -> InboundMessage:
    """Pull ``From`` / ``Body`` out of a Twilio webhook payload (JSON or form fields)."""
    raw_from = str(payload.get("From") or "")
    if raw_from.lower().startswith("whatsapp:"):
        raw_from = raw_from[len("whatsapp:"):]
    return InboundMessage(from_number=raw_from.strip(), body=str(payload.get("Body") or "").strip())


async def _reply(to: str, text: str) -> None:
    try:
        await asyncio.to_thread(whatsapp.send_whatsapp, to, text)
    except Exception as exc:  # noqa: BLE001
        _LOGGER.error("WhatsApp reply to %s failed: %s", to, exc)


async def _find_user(number: str) -> Optional[str]:
    normalized = whatsapp.normalize_phone_number(number)
    user_id = await db.find_user_by_phone(normalized)
    if user_id is None and normalized != number:
        user_id = await db.find_user_by_phone(number)
    return user_id


async def _is_check_in(user_id: str, text: str) -> bool:
    if text.upper() in CHECK_IN_COMMANDS:
        return True
    codes = {
        c.check_in_code.strip().upper()
        for c in await db.list_user_conditions(user_id, active_only=True)
        if c.check_in_code and c.check_in_code.strip()
    }
    return text.upper() in codes


async def handle_message(message: InboundMessage) -> dict:
    sender, text = message.from_number, message.body
    _LOGGER.info("[WEBHOOK] From: %s, Message: %s", sender, text)

    user_id = await _find_user(sender)
    if user_id is None:
        _LOGGER.info("[WEBHOOK] No user found with phone number %s", sender)
        await _reply(sender, REPLY_UNKNOWN_USER)
        return {"success": False, "message": "No user found with this phone number"}

    if await _is_check_in(user_id, text):
        result = await conditions.perform_check_in(user_id, method="whatsapp")
        await _reply(sender, REPLY_CHECK_IN)
        return {"success": True, "type": "check-in", "userId": user_id, "result": result}

    panic_conditions = await db.list_user_conditions(user_id, active_only=True, condition_type="panic_trigger")
    if not panic_conditions:
        await _reply(sender, REPLY_NO_PANIC)
        return {"success": True, "type": "no_panic_conditions", "userId": user_id}

    for condition in panic_conditions:
        keyword = condition.panic_config.keyword if condition.panic_config else DEFAULT_PANIC_KEYWORD
        if text.lower() != keyword.lower():
            continue
        _LOGGER.warning("[WEBHOOK] %r matches panic keyword of message %s", text, condition.message_id)
        await conditions.trigger_panic_message(user_id, condition.message_id, source="whatsapp")
        await _reply(sender, REPLY_PANIC)
        return {
            "success": True,
            "type": "panic_trigger",
            "userId": user_id,
            "matched": True,
            "messageId": condition.message_id,
        }

    await _reply(sender, REPLY_NO_MATCH)
    return {"success": True, "type": "no_match", "userId": user_id}
