"""Final-delivery and notification tasks."""

from __future__ import annotations

import asyncio

from app.celery_app import celery_app
from app.services import notifications, reminders
from app.types.contracts import NotificationRequest
from app.workers import reminder


@celery_app.task(name="app.workers.delivery.process_due", bind=True, max_retries=3)
def process_due(self, message_id: str | None = None, force: bool = False):  # noqa: D401
    """Deliver messages whose final-delivery row is due."""
    try:
        return asyncio.run(reminder.run_with_engine(reminders.process_due_messages(message_id, force)))
    except Exception as exc:  # noqa: BLE001
        raise self.retry(exc=exc, countdown=30)


@celery_app.task(name="app.workers.delivery.notify", bind=True, max_retries=3)
def notify(self, payload: dict):  # noqa: D401
    """Run send-message-notifications off the request path (camelCase payload)."""
    try:
        return asyncio.run(reminder.run_with_engine(notifications.process(NotificationRequest.model_validate(payload))))
    except Exception as exc:  # noqa: BLE001
        raise self.retry(exc=exc)
