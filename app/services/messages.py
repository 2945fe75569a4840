"""Message and recipient CRUD scoped to the owning user."""

from __future__ import annotations

import asyncio
import logging
from typing import List, Optional

import db
from app.errors import AccessDeniedError, NotFoundError
from app.services import events
from app.types.contracts import AdminMessage, Message, MessageDraft, Recipient, RecipientDraft
from app.utils import media
from app.utils.formatting import is_admin_email

_LOGGER = logging.getLogger(__name__)


async def create_message(user_id: str, draft: MessageDraft) -> Message:
    message = await db.insert_message(user_id, draft)
    _LOGGER.info("Created %s message %s for user %s", message.message_type, message.id, user_id)
    return message


async def get_message(user_id: str, message_id: str) -> Message:
    message = await db.get_message(message_id)
    if message is None or message.user_id != user_id:
        raise NotFoundError(f"Message {message_id} not found")
    return message


async def list_messages(user_id: str, message_type: Optional[str] = None) -> List[Message]:
    return await db.list_messages(user_id, message_type)


async def update_message(user_id: str, message_id: str, draft: MessageDraft) -> Message:
    before = await get_message(user_id, message_id)
    message = await db.update_message(message_id, user_id, draft)
    dropped = {a.path for a in before.attachments or []} - {a.path for a in message.attachments or []}
    if dropped:
        await asyncio.to_thread(media.delete_attachments, sorted(dropped))
    return message


async def delete_message(user_id: str, message_id: str) -> Message:
    """Delete the message row (conditions and reminders cascade) and its stored attachments."""
    message = await db.delete_message(message_id, user_id)
    paths = [a.path for a in message.attachments or []]
    if paths:
        try:
            await asyncio.to_thread(media.delete_attachments, paths)
        except Exception as exc:  # noqa: BLE001
            # Row is gone already; orphaned objects are only logged
            _LOGGER.error("Could not delete attachments of message %s: %s", message_id, exc)
    await events.publish("message_deleted", message_id=message_id, user_id=user_id)
    return message


# ──────────────────────────────
# Recipients
# ──────────────────────────────


async def list_recipients(user_id: str) -> List[Recipient]:
    return await db.list_recipients(user_id)


async def create_recipient(user_id: str, draft: RecipientDraft) -> Recipient:
    return await db.insert_recipient(user_id, draft)


async def update_recipient(user_id: str, recipient_id: str, draft: RecipientDraft) -> Recipient:
    return await db.update_recipient(recipient_id, user_id, draft)


async def delete_recipient(user_id: str, recipient_id: str) -> None:
    await db.delete_recipient(recipient_id, user_id)


# ──────────────────────────────
# Admin
# ──────────────────────────────


async def list_all_messages(caller_email: Optional[str], limit: int = 100, offset: int = 0) -> List[AdminMessage]:
    if not is_admin_email(caller_email):
        raise AccessDeniedError("Admin access required")
    return await db.list_all_messages(limit=limit, offset=offset)
