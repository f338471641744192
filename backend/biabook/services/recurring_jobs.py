from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timedelta
from typing import Any, Callable, Optional

from sqlalchemy.orm import Session

from biabook.services.notification_queue import cleanup_old_notifications
from biabook.services.notification_scheduler import NotificationScheduler
from biabook.utils.timeutil import utc_now

logger = logging.getLogger(__name__)

SessionFactory = Callable[[], Session]


class BackgroundNotificationProcessor:
    """
    In-process polling loop that drains the notification queue.

    Every tick (and once right after ``start``) launches one drain. A tick that fires
    while the previous drain is still running is skipped, so at most one drain is in
    flight per process. Nothing here coordinates across processes.
    """

    def __init__(
        self,
        scheduler: NotificationScheduler,
        session_factory: Optional[SessionFactory],
        *,
        batch_size: int = 20,
    ):
        self._scheduler = scheduler
        self._session_factory = session_factory
        self._batch_size = int(max(1, batch_size))
        self._task: Optional[asyncio.Task] = None
        self._inflight: set[asyncio.Task] = set()
        self._interval_seconds: Optional[int] = None
        self.is_processing = False

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self, interval_seconds: int = 60) -> Optional[asyncio.Task]:
        if self.running:
            logger.warning("Background notification processor is already running")
            return self._task
        if self._session_factory is None:
            logger.warning("Background notification processor not started: DATABASE_URL is not configured")
            return None

        self._interval_seconds = int(max(1, interval_seconds))
        logger.info(
            "Starting background notification processor: interval_seconds=%s batch_size=%s",
            self._interval_seconds,
            self._batch_size,
        )
        self._task = asyncio.create_task(self._loop(self._interval_seconds))
        return self._task

    def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        self._task = None
        logger.info("Background notification processor stopped")

    async def _loop(self, interval_seconds: int) -> None:
        while True:
            # Ticks are launched, not awaited, so an overrunning drain meets the guard below.
            tick = asyncio.create_task(self.process_notifications())
            self._inflight.add(tick)
            tick.add_done_callback(self._inflight.discard)
            await asyncio.sleep(interval_seconds)

    async def process_notifications(self, limit: Optional[int] = None) -> int:
        """Runs one drain unless another is in flight. Manual drains from the API go through here too."""
        if self._session_factory is None:
            logger.warning("Notification processing skipped: DATABASE_URL is not configured")
            return 0
        if self.is_processing:
            logger.info("Notification processing already in progress, skipping tick")
            return 0

        self.is_processing = True
        try:
            processed = await asyncio.to_thread(self._drain_once, limit)
            if processed:
                logger.info("Background processor delivered notifications: count=%s", processed)
            return processed
        except asyncio.CancelledError:
            raise
        except Exception:
            logger.exception("Error in background notification processor")
            return 0
        finally:
            self.is_processing = False

    def _drain_once(self, limit: Optional[int] = None) -> int:
        db = self._session_factory()
        try:
            return self._scheduler.process_pending_notifications(db, limit or self._batch_size)
        finally:
            db.close()

    def get_status(self) -> dict[str, Any]:
        return {
            "running": self.running,
            "processing": self.is_processing,
            "interval_seconds": self._interval_seconds,
            "batch_size": self._batch_size,
        }


class NotificationCleanupService:
    """Periodically deletes processed/failed queue rows older than the retention window."""

    def __init__(
        self,
        session_factory: Optional[SessionFactory],
        *,
        retention_days: int = 15,
        clock: Callable[[], datetime] = utc_now,
    ):
        self._session_factory = session_factory
        self.retention_days = int(retention_days)
        self._clock = clock
        self._task: Optional[asyncio.Task] = None
        self._interval_hours: Optional[float] = None
        self.last_run_at: Optional[datetime] = None
        self.last_deleted_count: Optional[int] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def cutoff(self, retention_days: Optional[int] = None) -> datetime:
        days = self.retention_days if retention_days is None else int(retention_days)
        return self._clock() - timedelta(days=days)

    def start(self, interval_hours: float = 24) -> Optional[asyncio.Task]:
        if self.running:
            logger.warning("Notification cleanup service is already running")
            return self._task
        if self._session_factory is None:
            logger.warning("Notification cleanup service not started: DATABASE_URL is not configured")
            return None

        self._interval_hours = interval_hours
        logger.info(
            "Starting notification cleanup service: interval_hours=%s retention_days=%s",
            interval_hours,
            self.retention_days,
        )
        self._task = asyncio.create_task(self._loop(interval_hours * 3600))
        return self._task

    def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        self._task = None
        logger.info("Notification cleanup service stopped")

    async def _loop(self, interval_seconds: float) -> None:
        while True:
            await self.run_cleanup()
            await asyncio.sleep(interval_seconds)

    async def run_cleanup(self) -> int:
        try:
            return await asyncio.to_thread(self.manual_cleanup)
        except asyncio.CancelledError:
            raise
        except Exception:
            logger.exception("Error during notification cleanup")
            return 0

    def manual_cleanup(self, retention_days: Optional[int] = None) -> int:
        if self._session_factory is None:
            raise RuntimeError("DATABASE_URL is not configured")
        cutoff = self.cutoff(retention_days)
        db = self._session_factory()
        try:
            deleted = cleanup_old_notifications(db, cutoff)
            db.commit()
        finally:
            db.close()

        self.last_run_at = self._clock()
        self.last_deleted_count = deleted
        logger.info("Notification cleanup finished: cutoff=%s deleted=%s", cutoff.isoformat(), deleted)
        return deleted

    def get_status(self) -> dict[str, Any]:
        return {
            "running": self.running,
            "interval_hours": self._interval_hours,
            "retention_days": self.retention_days,
            "last_run_at": self.last_run_at.isoformat() if self.last_run_at else None,
            "last_deleted_count": self.last_deleted_count,
        }
