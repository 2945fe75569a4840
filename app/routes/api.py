"""Authenticated user API: messages, recipients, trigger conditions, check-ins."""

from __future__ import annotations

import asyncio
from typing import List, Optional

from fastapi import APIRouter, File, UploadFile
from pydantic import BaseModel

import db
from app.auth import AdminUserDep, CurrentUserDep
from app.errors import NotFoundError
from app.services import conditions, messages, test_notifications
from app.services.deadlines import get_time_until, to_iso
from app.types.contracts import (
    AdminMessage,
    Attachment,
    CheckInRequest,
    ConditionDraft,
    Message,
    MessageCondition,
    MessageDraft,
    Recipient,
    RecipientDraft,
)
from app.utils import media

router = APIRouter(prefix="/api", tags=["api"])


class PanicRequest(BaseModel):
    keep_armed: Optional[bool] = None


class TestNotificationsRequest(BaseModel):
    is_welcome_email: bool = False


# --------------------------------------------
# Messages
# --------------------------------------------

@router.get("/messages", response_model=List[Message])
async def list_messages(user: CurrentUserDep, message_type: Optional[str] = None):
    return await messages.list_messages(user.id, message_type)


@router.post("/messages", response_model=Message, status_code=201)
async def create_message(draft: MessageDraft, user: CurrentUserDep):
    return await messages.create_message(user.id, draft)


@router.get("/messages/{message_id}", response_model=Message)
async def get_message(message_id: str, user: CurrentUserDep):
    return await messages.get_message(user.id, message_id)


@router.put("/messages/{message_id}", response_model=Message)
async def update_message(message_id: str, draft: MessageDraft, user: CurrentUserDep):
    return await messages.update_message(user.id, message_id, draft)


@router.delete("/messages/{message_id}")
async def delete_message(message_id: str, user: CurrentUserDep):
    await messages.delete_message(user.id, message_id)
    return {"success": True}


@router.post("/attachments", response_model=Attachment, status_code=201)
async def upload_attachment(user: CurrentUserDep, file: UploadFile = File(...)):
    data = await file.read()
    return await asyncio.to_thread(
        media.upload_attachment, user.id, file.filename or "attachment", data, file.content_type
    )


# --------------------------------------------
# Conditions
# --------------------------------------------

@router.get("/conditions", response_model=List[MessageCondition])
async def list_conditions(user: CurrentUserDep, active_only: bool = False):
    return await conditions.list_conditions(user.id, active_only)


@router.get("/messages/{message_id}/condition", response_model=MessageCondition)
async def get_condition(message_id: str, user: CurrentUserDep):
    await messages.get_message(user.id, message_id)
    condition = await db.get_condition_for_message(message_id)
    if condition is None:
        raise NotFoundError(f"No trigger condition for message {message_id}")
    return condition


@router.post("/messages/{message_id}/condition", response_model=MessageCondition, status_code=201)
async def create_condition(message_id: str, draft: ConditionDraft, user: CurrentUserDep):
    return await conditions.create_condition(user.id, message_id, draft)


@router.put("/messages/{message_id}/condition", response_model=MessageCondition)
async def update_condition(message_id: str, draft: ConditionDraft, user: CurrentUserDep):
    return await conditions.update_condition(user.id, message_id, draft)


@router.post("/messages/{message_id}/arm", response_model=MessageCondition)
async def arm_message(message_id: str, user: CurrentUserDep):
    return await conditions.arm_message(user.id, message_id)


@router.post("/messages/{message_id}/disarm", response_model=MessageCondition)
async def disarm_message(message_id: str, user: CurrentUserDep):
    return await conditions.disarm_message(user.id, message_id)


@router.get("/messages/{message_id}/deadline")
async def message_deadline(message_id: str, user: CurrentUserDep):
    await messages.get_message(user.id, message_id)
    deadline = await conditions.get_message_deadline(message_id)
    if deadline is None:
        return {"deadline": None}
    return {
        "deadline": deadline.iso,
        "is_overdue": deadline.is_overdue,
        "time_left": get_time_until(deadline.deadline),
    }


@router.get("/messages/{message_id}/reminders")
async def message_reminders(message_id: str, user: CurrentUserDep):
    await messages.get_message(user.id, message_id)
    condition = await db.get_condition_for_message(message_id)
    if condition is None:
        return []
    rows = await db.list_reminders(condition.id)
    return [{**row, "scheduled_at": to_iso(row["scheduled_at"])} for row in rows]


@router.post("/messages/{message_id}/panic")
async def trigger_panic(message_id: str, user: CurrentUserDep, body: Optional[PanicRequest] = None):
    keep_armed = body.keep_armed if body else None
    result = await conditions.trigger_panic_message(user.id, message_id, keep_armed=keep_armed)
    return {
        "success": result.success,
        "error": result.error,
        "recipients_notified": sum(1 for d in result.details if d.success),
    }


@router.post("/messages/{message_id}/test-notifications")
async def send_test_notifications(
    message_id: str, user: CurrentUserDep, body: Optional[TestNotificationsRequest] = None
):
    is_welcome = body.is_welcome_email if body else False
    return await test_notifications.send_test_notifications(user.id, message_id, is_welcome)


# --------------------------------------------
# Recipients
# --------------------------------------------

@router.get("/recipients", response_model=List[Recipient])
async def list_recipients(user: CurrentUserDep):
    return await messages.list_recipients(user.id)


@router.post("/recipients", response_model=Recipient, status_code=201)
async def create_recipient(draft: RecipientDraft, user: CurrentUserDep):
    return await messages.create_recipient(user.id, draft)


@router.put("/recipients/{recipient_id}", response_model=Recipient)
async def update_recipient(recipient_id: str, draft: RecipientDraft, user: CurrentUserDep):
    return await messages.update_recipient(user.id, recipient_id, draft)


@router.delete("/recipients/{recipient_id}")
async def delete_recipient(recipient_id: str, user: CurrentUserDep):
    await messages.delete_recipient(user.id, recipient_id)
    return {"success": True}


# --------------------------------------------
# Check-ins
# --------------------------------------------

@router.post("/check-ins")
async def check_in(user: CurrentUserDep, body: Optional[CheckInRequest] = None):
    body = body or CheckInRequest()
    return await conditions.perform_check_in(user.id, body.method, body.device_info)


@router.get("/check-ins")
async def list_check_ins(user: CurrentUserDep, limit: int = 20):
    rows = await db.list_check_ins(user.id, limit)
    return [{**row, "timestamp": to_iso(row["timestamp"])} for row in rows]


@router.get("/check-ins/next-deadline")
async def next_check_in_deadline(user: CurrentUserDep):
    deadline = await conditions.get_next_check_in_deadline(user.id)
    return {"deadline": to_iso(deadline), "time_left": get_time_until(deadline)}


# --------------------------------------------
# Admin
# --------------------------------------------

@router.get("/admin/messages", response_model=List[AdminMessage])
async def admin_messages(user: AdminUserDep, limit: int = 100, offset: int = 0):
    return await messages.list_all_messages(user.email, limit, offset)
