"""Serverless-style function endpoints under ``/functions/v1``.

Bodies use the camelCase field names the web client sends.
"""

from __future__ import annotations

import json
import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Request
from twilio.request_validator import RequestValidator

from app.auth import function_key
from app.services import (
    app_config,
    enhancer,
    notifications,
    reminders,
    test_notifications,
    transcriber,
    whatsapp_webhook,
)
from app.types.contracts import (
    AppConfigRequest,
    EnhanceRequest,
    NotificationRequest,
    ReminderRequest,
    TestEmailRequest,
    TranscribeRequest,
)
from config import settings

_LOGGER = logging.getLogger(__name__)

router = APIRouter(prefix="/functions/v1", tags=["functions"])
protected = [Depends(function_key)]


@router.post("/send-message-notifications", dependencies=protected)
async def send_message_notifications(body: Optional[NotificationRequest] = None):
    return await notifications.process(body or NotificationRequest())


@router.post("/send-reminder-emails", dependencies=protected)
async def send_reminder_emails(body: Optional[ReminderRequest] = None):
    return await reminders.process(body or ReminderRequest())


@router.post("/process-due-messages", dependencies=protected)
async def process_due_messages(body: Optional[ReminderRequest] = None):
    body = body or ReminderRequest()
    result = await reminders.process_due_messages(body.message_id, body.force_send)
    return {"success": True, **result}


@router.post("/send-test-email", dependencies=protected)
async def send_test_email(body: TestEmailRequest):
    return await test_notifications.send_test_email(body)


@router.post("/get-app-config", dependencies=protected)
async def get_app_config(body: AppConfigRequest):
    return app_config.get_app_config(body.key)


@router.post("/enhance-message", dependencies=protected)
async def enhance_message(body: EnhanceRequest):
    return await enhancer.enhance(body)


@router.post("/transcribe-video", dependencies=protected)
async def transcribe_video(body: TranscribeRequest):
    return await transcriber.transcribe(body)


# --------------------------------------------
# Twilio webhook
# --------------------------------------------

def _valid_signature(request: Request, raw_body: bytes, form: Optional[dict]) -> bool:
    """Twilio signs form posts over their params and JSON posts over ``bodySHA256``."""
    if not settings.TWILIO_AUTH_TOKEN:
        return True  # DEV mode
    signature = request.headers.get("x-twilio-signature")
    if not signature:
        return False
    validator = RequestValidator(settings.TWILIO_AUTH_TOKEN)
    if form is not None:
        return validator.validate(str(request.url), form, signature)
    if "bodySHA256" not in request.query_params:
        return False
    return validator.validate(str(request.url), raw_body.decode("utf-8", "replace"), signature)


@router.post("/whatsapp-webhook")
async def whatsapp_webhook_endpoint(request: Request):
    raw_body = await request.body()
    form: Optional[dict] = None
    if request.headers.get("content-type", "").startswith("application/json"):
        try:
            parsed = json.loads(raw_body or b"{}")
        except ValueError:
            raise HTTPException(400, "Invalid JSON body") from None
        payload = parsed if isinstance(parsed, dict) else {}
    else:
        form = {k: str(v) for k, v in (await request.form()).items()}
        payload = form

    if not _valid_signature(request, raw_body, form):
        _LOGGER.warning("Rejected WhatsApp webhook with missing or invalid signature")
        raise HTTPException(400, "Bad signature")

    message = whatsapp_webhook.extract_message_data(payload)
    if not message.from_number or not message.body:
        raise HTTPException(400, "Missing required data: From and Body")
    return await whatsapp_webhook.handle_message(message)
