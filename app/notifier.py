"""
Detached SMS notification tasks.

The submit handler schedules a notification and returns immediately; the
task sends the SMS and then records the outcome on the submission. Live
tasks are tracked so their completion is logged and counted, and so
shutdown can wait for them.
"""

import asyncio
import logging
from datetime import datetime, timezone
from typing import Optional

from app.errors import StoreError
from app.metrics import record_sms_dispatch
from app.sms import SendResult, SmsDispatcher
from app.storage import Database, update_sms_status
from app.utils import isoformat_utc

logger = logging.getLogger(__name__)


def build_sms_status(result: SendResult, sent_at: Optional[datetime] = None) -> dict:
    """Shape a SendResult into the sms_status document stored on a submission."""
    sent_at = sent_at or datetime.now(timezone.utc)
    return {
        "ok": result.ok,
        "response": result.response,
        "sentAt": isoformat_utc(sent_at),
    }


class NotificationTracker:
    """Schedules and tracks notification tasks for new submissions."""

    def __init__(self, dispatcher: SmsDispatcher, database: Database):
        self.dispatcher = dispatcher
        self.database = database
        self._tasks: set[asyncio.Task] = set()

    @property
    def pending(self) -> int:
        return len(self._tasks)

    def schedule(self, submission_id: str, phone: str, message: str) -> asyncio.Task:
        """
        Start the notification for a submission without waiting for it.

        Must be called from a running event loop.
        """
        task = asyncio.create_task(
            self._notify(submission_id, phone, message),
            name=f"sms-notify-{submission_id}",
        )
        self._tasks.add(task)
        task.add_done_callback(self._on_done)
        logger.debug(f"Scheduled SMS notification for submission {submission_id}")
        return task

    async def _notify(self, submission_id: str, phone: str, message: str) -> str:
        result = await self.dispatcher.send(phone, message)
        sms_status = build_sms_status(result)

        try:
            with self.database.session() as db:
                update_sms_status(db, submission_id, sms_status)
        except StoreError as e:
            logger.error(f"Could not record sms_status for submission {submission_id}: {e}")
            return "error"

        return "sent" if result.ok else "failed"

    def _on_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)

        if task.cancelled():
            logger.warning(f"{task.get_name()} cancelled")
            record_sms_dispatch("error")
            return

        exc = task.exception()
        if exc is not None:
            logger.error(f"{task.get_name()} failed: {exc!r}")
            record_sms_dispatch("error")
            return

        outcome = task.result()
        logger.info(f"{task.get_name()} finished: {outcome}")
        record_sms_dispatch(outcome)

    async def drain(self) -> None:
        """Wait for every pending notification to finish."""
        if not self._tasks:
            return
        logger.info(f"Waiting for {len(self._tasks)} pending SMS notifications")
        await asyncio.gather(*list(self._tasks), return_exceptions=True)
