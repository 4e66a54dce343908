"""Wishlist polling scheduler with tiered cadence and a single active instance."""
import asyncio
import logging
import os
import signal
import socket
import time
import uuid
from datetime import datetime, timezone
from typing import Dict, List, Optional, Sequence
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger
from wishwatch.core.config import settings
from wishwatch.core.database import AsyncSessionLocal, init_db
from wishwatch.core.redis import close_redis
from wishwatch.scheduler.lock import build_scheduler_lock
from wishwatch.scheduler.queue import StreamerQueue, check_interval, pacing_delay
from wishwatch.services import StreamerService, TrackedStreamer
from wishwatch.services.streamer_service import dedupe_by_nickname
from wishwatch.utils.time import is_within_active_hours
from wishwatch.workers.wishlist_worker import WishlistChecker

logging.basicConfig(
    level=getattr(logging, settings.log_level),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

TICK_JOB = "tick"
HEARTBEAT_JOB = "heartbeat"
LOCK_RETRY_JOB = "lock_retry"


def make_instance_id() -> str:
    """Unique identity of this process for the scheduler lock."""
    return f"{socket.gethostname()}-{os.getpid()}-{uuid.uuid4().hex[:8]}"


async def load_tracked_streamers() -> List[TrackedStreamer]:
    """Load every tracked streamer from the database."""
    async with AsyncSessionLocal() as db:
        return await StreamerService.get_tracked_streamers(db)


class WishlistScheduler:
    """
    Polls tracked streamers while holding the scheduler lock.

    Timers (tick, heartbeat, lock retry) are APScheduler interval jobs;
    the queue drain runs as a single asyncio task.
    """

    def __init__(
        self,
        checker: Optional[WishlistChecker] = None,
        lock=None,
        instance_id: Optional[str] = None,
        normal_interval: Optional[int] = None,
        streamer_loader=load_tracked_streamers,
        clock=time.monotonic
    ):
        self.instance_id = instance_id or settings.instance_id or make_instance_id()
        self.checker = checker or WishlistChecker()
        self.lock = lock or build_scheduler_lock()
        self.normal_interval = normal_interval or settings.normal_check_interval
        self.streamer_loader = streamer_loader
        self.clock = clock

        self.scheduler = AsyncIOScheduler(timezone=timezone.utc)
        self.queue = StreamerQueue()
        self.last_checked: Dict[int, float] = {}

        self.is_running = False
        self.has_lock = False
        self.is_processing = False
        self._worker_task: Optional[asyncio.Task] = None
        self._stop_event = asyncio.Event()

    # ------------------------------------------------------------------
    # Lock lifecycle
    # ------------------------------------------------------------------

    async def start(self):
        """Start the scheduler: acquire the lock or wait for it."""
        if self.is_running:
            logger.warning("Scheduler already running")
            return

        logger.info("="*60)
        logger.info("Starting wishlist scheduler...")
        logger.info(f"Instance: {self.instance_id}")
        logger.info(f"Lock backend: {settings.lock_backend}")
        logger.info(f"Normal tier interval: {self.normal_interval}s")
        logger.info(
            f"Active hours: {settings.active_hours_start:02d}:00-"
            f"{settings.active_hours_end:02d}:00 {settings.active_hours_timezone}"
        )
        logger.info("="*60)

        self.is_running = True
        self._stop_event.clear()
        self.scheduler.start()

        if await self._acquire_lock():
            self._begin_polling()
        else:
            self._schedule_lock_retry()

    async def _acquire_lock(self) -> bool:
        try:
            return await self.lock.try_acquire(self.instance_id)
        except Exception as e:
            logger.error(f"Error acquiring scheduler lock: {e}", exc_info=True)
            return False

    def _schedule_lock_retry(self):
        logger.info(
            f"Scheduler lock held elsewhere, retrying every {settings.lock_retry_interval}s"
        )
        self.scheduler.add_job(
            self.retry_lock,
            trigger=IntervalTrigger(seconds=settings.lock_retry_interval),
            id=LOCK_RETRY_JOB,
            replace_existing=True,
            max_instances=1,
            coalesce=True
        )

    async def retry_lock(self):
        """Periodic acquisition attempt while another instance holds the lock."""
        if self.has_lock or not self.is_running:
            return

        if await self._acquire_lock():
            self._remove_job(LOCK_RETRY_JOB)
            self._begin_polling()

    def _begin_polling(self):
        self.has_lock = True
        logger.info(f"✓ Scheduler lock held by {self.instance_id}, polling enabled")

        self.scheduler.add_job(
            self.renew_lock,
            trigger=IntervalTrigger(seconds=settings.heartbeat_interval),
            id=HEARTBEAT_JOB,
            replace_existing=True,
            max_instances=1,
            coalesce=True
        )
        self.scheduler.add_job(
            self.tick,
            trigger=IntervalTrigger(seconds=settings.tick_interval),
            id=TICK_JOB,
            replace_existing=True,
            max_instances=1,
            coalesce=True,
            next_run_time=datetime.now(timezone.utc)
        )

    def _end_polling(self):
        self.has_lock = False
        self._remove_job(TICK_JOB)
        self._remove_job(HEARTBEAT_JOB)
        self.queue.clear()

    async def renew_lock(self):
        """Heartbeat job. Failures are logged, never raised."""
        result = await self.lock.renew(self.instance_id)

        if result.renewed:
            logger.debug("Scheduler heartbeat renewed")
            return

        if result.lost:
            logger.warning("Scheduler lock taken over by another instance, pausing polling")
            self._end_polling()
            if self.is_running:
                self._schedule_lock_retry()
            return

        logger.warning(f"Scheduler heartbeat failed: {result.error}")

    # ------------------------------------------------------------------
    # Tick: decide who is due
    # ------------------------------------------------------------------

    def is_due(self, streamer: TrackedStreamer, now: float) -> bool:
        """True if the streamer's tier interval has elapsed since last enqueue."""
        last = self.last_checked.get(streamer.id)
        if last is None:
            return True
        return now - last >= check_interval(streamer.priority, self.normal_interval)

    def enqueue_due(self, streamers: Sequence[TrackedStreamer], now: float) -> int:
        """
        Queue every due streamer.

        The last-checked time is stamped on enqueue so a streamer waiting
        in the queue is not due again. Timestamps of streamers no longer
        tracked are dropped.

        Returns:
            Number of streamers enqueued
        """
        tracked = dedupe_by_nickname(streamers)
        tracked_ids = {streamer.id for streamer in tracked}
        for streamer_id in [sid for sid in self.last_checked if sid not in tracked_ids]:
            del self.last_checked[streamer_id]

        enqueued = 0
        for streamer in tracked:
            if not self.is_due(streamer, now):
                continue
            if self.queue.push(streamer):
                self.last_checked[streamer.id] = now
                enqueued += 1
        return enqueued

    async def tick(self):
        """Periodic job: enqueue due streamers and make sure the worker runs."""
        if not self.has_lock:
            return

        if not is_within_active_hours(
            settings.active_hours_start,
            settings.active_hours_end,
            settings.active_hours_timezone
        ):
            logger.debug("Outside active hours, nothing enqueued")
        else:
            try:
                streamers = await self.streamer_loader()
            except Exception as e:
                logger.error(f"Error loading tracked streamers: {e}", exc_info=True)
                return

            enqueued = self.enqueue_due(streamers, self.clock())
            if enqueued:
                logger.info(f"Enqueued {enqueued} streamer(s), queue size {len(self.queue)}")

        self._ensure_worker()

    # ------------------------------------------------------------------
    # Worker loop
    # ------------------------------------------------------------------

    def _ensure_worker(self):
        if not self.queue or self.is_processing:
            return
        if self._worker_task is not None and not self._worker_task.done():
            return
        self._worker_task = asyncio.create_task(self.process_queue())

    async def process_queue(self):
        """Drain the queue one streamer at a time (single-flight)."""
        if self.is_processing:
            return

        self.is_processing = True
        try:
            while self.queue and not self._stop_event.is_set():
                entry = self.queue.pop()

                try:
                    await self.checker.check_streamer(entry.streamer)
                except Exception as e:
                    logger.error(f"Error checking {entry.streamer.nickname}: {e}", exc_info=True)

                if self.queue and not self._stop_event.is_set():
                    await self._pause(pacing_delay(entry.priority))
        finally:
            self.is_processing = False

    async def _pause(self, seconds: float):
        """Sleep between checks; returns early when the scheduler stops."""
        try:
            await asyncio.wait_for(self._stop_event.wait(), timeout=seconds)
        except asyncio.TimeoutError:
            pass

    # ------------------------------------------------------------------
    # Shutdown
    # ------------------------------------------------------------------

    def _remove_job(self, job_id: str):
        if self.scheduler.get_job(job_id):
            self.scheduler.remove_job(job_id)

    async def stop(self):
        """Cancel timers, let the in-flight check finish, release the lock."""
        if not self.is_running:
            return

        logger.info("Shutting down scheduler...")
        self.is_running = False
        self._stop_event.set()

        for job_id in (TICK_JOB, HEARTBEAT_JOB, LOCK_RETRY_JOB):
            self._remove_job(job_id)
        if self.scheduler.running:
            self.scheduler.shutdown(wait=False)

        if self._worker_task is not None and not self._worker_task.done():
            await self._worker_task

        if self.has_lock:
            try:
                await self.lock.release(self.instance_id)
                logger.info("✓ Scheduler lock released")
            except Exception as e:
                logger.error(f"Error releasing scheduler lock: {e}", exc_info=True)
            self.has_lock = False

        logger.info("✓ Scheduler stopped")

    def status(self) -> dict:
        """Snapshot of scheduler state."""
        return {
            "instance_id": self.instance_id,
            "running": self.is_running,
            "has_lock": self.has_lock,
            "processing": self.is_processing,
            "queue": self.queue.snapshot()
        }

    async def run(self):
        """Run until SIGINT/SIGTERM."""
        loop = asyncio.get_running_loop()
        stop_requested = asyncio.Event()
        for sig in (signal.SIGINT, signal.SIGTERM):
            try:
                loop.add_signal_handler(sig, stop_requested.set)
            except NotImplementedError:
                pass  # Windows

        await self.start()
        try:
            await stop_requested.wait()
        finally:
            await self.stop()


async def main():
    """Main entry point for the scheduler."""
    await init_db()
    scheduler = WishlistScheduler()
    try:
        await scheduler.run()
    finally:
        await scheduler.checker.close()
        await close_redis()


if __name__ == "__main__":
    asyncio.run(main())
