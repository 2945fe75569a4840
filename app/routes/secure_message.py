"""Recipient viewer endpoints reached from the link in a notification e-mail."""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Request

from app.services import access
from app.types.contracts import AttachmentAccessRequest, RecordViewRequest, VerifyPinRequest

router = APIRouter(prefix="/secure-message", tags=["secure-message"])


@router.get("/access")
async def access_message(
    id: Optional[str] = None,
    recipient: Optional[str] = None,
    delivery: Optional[str] = None,
):
    return await access.access_message(id, recipient, delivery)


@router.post("/verify-pin")
async def verify_pin(body: VerifyPinRequest, request: Request):
    return await access.verify_pin(body, request.headers.get("user-agent"))


@router.post("/record-view")
async def record_view(body: RecordViewRequest, request: Request):
    return await access.record_message_view(body, request.headers.get("user-agent"))


@router.post("/attachment")
async def attachment(body: AttachmentAccessRequest):
    return await access.attachment_url(body)
