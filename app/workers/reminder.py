"""Creator check-in reminder tasks."""

from __future__ import annotations

import asyncio

import db
from app.celery_app import celery_app
from app.services import reminders


async def run_with_engine(coro):
    """Await *coro* and drop the engine; every task runs on a fresh event loop."""
    try:
        return await coro
    finally:
        await db.dispose_engine()


# ---------------------------------------------------------------------------
# Celery Tasks
# ---------------------------------------------------------------------------

@celery_app.task(name="app.workers.reminder.dispatch_due", bind=True, max_retries=3)
def dispatch_due(self, message_id: str | None = None, force: bool = False):  # noqa: D401
    """Claim due reminder rows and send the creator reminders."""
    try:
        return asyncio.run(run_with_engine(reminders.process_reminders(message_id, force)))
    except Exception as exc:  # noqa: BLE001
        raise self.retry(exc=exc, countdown=30)


@celery_app.task(name="app.workers.reminder.reset_stuck")
def reset_stuck() -> int:  # noqa: D401
    """Return rows stuck in ``processing`` to ``pending``."""
    return asyncio.run(run_with_engine(reminders.reset_stuck()))
