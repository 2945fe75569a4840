"""Periodic scanner for due reminders and final deliveries.
Run via a platform schedule every minute when no Celery beat is deployed:
    python -m app.scripts.scan_due_reminders
"""

from __future__ import annotations

import asyncio

from app.services import reminders
import db


async def main() -> dict:
    try:
        reset = await reminders.reset_stuck()
        sent = await reminders.process_reminders()
        delivered = await reminders.process_due_messages()
    finally:
        await db.dispose_engine()
    print("Reminders", sent, "deliveries", delivered, "reset", reset)
    return {"reminders": sent, "deliveries": delivered, "reset": reset}


if __name__ == "__main__":  # pragma: no cover
    print("[CRON] scan_due_reminders: job started")
    try:
        asyncio.run(main())
        print("[CRON] scan_due_reminders: job completed successfully")
    except Exception as e:
        print(f"[CRON] scan_due_reminders: job failed: {e}")
