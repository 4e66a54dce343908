"""Heartbeat-based scheduler lock.

Exactly one process may poll at a time. The holder renews a heartbeat on a
fixed cadence; a lock whose heartbeat is older than ``lock_stale_after``
seconds can be taken over by any other instance.

All timestamps come from the lock store (database server or Redis), never
from the calling host, so clock drift between instances cannot cause a
premature takeover. The ``now`` arguments override that clock in tests.
"""
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional
from redis.exceptions import WatchError
from sqlalchemy import select, update, delete, func
from sqlalchemy.exc import IntegrityError
from wishwatch.core.config import settings
from wishwatch.core.database import AsyncSessionLocal
from wishwatch.core.redis import get_redis
from wishwatch.models import SchedulerLock, SCHEDULER_LOCK_ID

logger = logging.getLogger(__name__)


def as_utc(value: datetime) -> datetime:
    """Treat naive timestamps (SQLite) as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


async def database_now(db) -> datetime:
    """Current UTC time according to the database server."""
    result = await db.execute(select(func.current_timestamp()))
    return as_utc(result.scalar_one()).astimezone(timezone.utc)


async def redis_now(redis) -> datetime:
    """Current UTC time according to the Redis server."""
    seconds, microseconds = await redis.time()
    return datetime.fromtimestamp(int(seconds) + int(microseconds) / 1_000_000, tz=timezone.utc)


@dataclass
class RenewResult:
    """Outcome of a heartbeat renewal.

    A failed renewal is never fatal: at worst another instance takes the
    lock over once the heartbeat goes stale.
    """
    renewed: bool
    lost: bool = False  # lock is now owned by another instance
    error: Optional[str] = None


class DatabaseSchedulerLock:
    """Scheduler lock stored as a single row in the scheduler_lock table."""

    def __init__(self, session_factory=AsyncSessionLocal, stale_after: Optional[int] = None):
        self.session_factory = session_factory
        self.stale_after = stale_after or settings.lock_stale_after

    async def try_acquire(self, instance_id: str, now: Optional[datetime] = None) -> bool:
        """
        Try to become (or remain) the active scheduler.

        Args:
            instance_id: Identity of the calling process
            now: Reference time (defaults to the database server clock)

        Returns:
            True if the caller holds the lock after this call
        """
        async with self.session_factory() as db:
            now = now or await database_now(db)
            cutoff = now - timedelta(seconds=self.stale_after)

            # Already ours: refresh heartbeat
            result = await db.execute(
                update(SchedulerLock)
                .where(SchedulerLock.id == SCHEDULER_LOCK_ID, SchedulerLock.instance_id == instance_id)
                .values(heartbeat_at=now)
                .execution_options(synchronize_session=False)
            )
            if result.rowcount:
                await db.commit()
                return True

            # Stale holder: take over
            result = await db.execute(
                update(SchedulerLock)
                .where(SchedulerLock.id == SCHEDULER_LOCK_ID, SchedulerLock.heartbeat_at < cutoff)
                .values(instance_id=instance_id, acquired_at=now, heartbeat_at=now)
                .execution_options(synchronize_session=False)
            )
            if result.rowcount:
                await db.commit()
                logger.warning(f"Took over stale scheduler lock as {instance_id}")
                return True

            existing = await db.execute(
                select(SchedulerLock.instance_id).where(SchedulerLock.id == SCHEDULER_LOCK_ID)
            )
            holder = existing.scalar_one_or_none()
            if holder is not None:
                logger.debug(f"Scheduler lock held by {holder}")
                return False

            db.add(SchedulerLock(
                id=SCHEDULER_LOCK_ID,
                instance_id=instance_id,
                acquired_at=now,
                heartbeat_at=now
            ))
            try:
                await db.commit()
            except IntegrityError:
                # Another instance inserted the row first
                await db.rollback()
                return False

            logger.info(f"Acquired scheduler lock as {instance_id}")
            return True

    async def renew(self, instance_id: str, now: Optional[datetime] = None) -> RenewResult:
        """Refresh the heartbeat if the lock is still ours."""
        try:
            async with self.session_factory() as db:
                now = now or await database_now(db)
                result = await db.execute(
                    update(SchedulerLock)
                    .where(SchedulerLock.id == SCHEDULER_LOCK_ID, SchedulerLock.instance_id == instance_id)
                    .values(heartbeat_at=now)
                    .execution_options(synchronize_session=False)
                )
                await db.commit()
                if not result.rowcount:
                    return RenewResult(renewed=False, lost=True)
                return RenewResult(renewed=True)
        except Exception as e:
            return RenewResult(renewed=False, error=str(e))

    async def release(self, instance_id: str) -> bool:
        """Delete the lock row if owned by instance_id (idempotent)."""
        async with self.session_factory() as db:
            result = await db.execute(
                delete(SchedulerLock)
                .where(SchedulerLock.id == SCHEDULER_LOCK_ID, SchedulerLock.instance_id == instance_id)
                .execution_options(synchronize_session=False)
            )
            await db.commit()
            return result.rowcount > 0

    async def describe(self, now: Optional[datetime] = None) -> Optional[dict]:
        """Current holder details, or None when nobody holds the lock."""
        async with self.session_factory() as db:
            now = now or await database_now(db)
            lock = await db.get(SchedulerLock, SCHEDULER_LOCK_ID)
            if lock is None:
                return None

            heartbeat_at = as_utc(lock.heartbeat_at)
            age = (now - heartbeat_at).total_seconds()
            return {
                "instance_id": lock.instance_id,
                "acquired_at": as_utc(lock.acquired_at).isoformat(),
                "heartbeat_at": heartbeat_at.isoformat(),
                "heartbeat_age_seconds": round(age, 1),
                "stale": age > self.stale_after
            }


class RedisSchedulerLock:
    """Scheduler lock stored as a Redis hash, updated under WATCH/MULTI."""

    KEY = "wishwatch:scheduler_lock"

    def __init__(self, redis=None, stale_after: Optional[int] = None):
        self.redis = redis
        self.stale_after = stale_after or settings.lock_stale_after

    async def _get_redis(self):
        """Get Redis connection."""
        if self.redis is None:
            self.redis = await get_redis()
        return self.redis

    async def try_acquire(self, instance_id: str, now: Optional[datetime] = None) -> bool:
        """Same contract as DatabaseSchedulerLock.try_acquire."""
        redis = await self._get_redis()
        ts = (now or await redis_now(redis)).timestamp()

        async with redis.pipeline(transaction=True) as pipe:
            try:
                await pipe.watch(self.KEY)
                state = await pipe.hgetall(self.KEY)

                if state and state.get("instance_id") == instance_id:
                    mapping = {"heartbeat_at": str(ts)}
                elif not state or ts - float(state.get("heartbeat_at", 0)) > self.stale_after:
                    if state:
                        logger.warning(f"Took over stale scheduler lock as {instance_id}")
                    mapping = {
                        "instance_id": instance_id,
                        "acquired_at": str(ts),
                        "heartbeat_at": str(ts)
                    }
                else:
                    logger.debug(f"Scheduler lock held by {state.get('instance_id')}")
                    return False

                pipe.multi()
                pipe.hset(self.KEY, mapping=mapping)
                await pipe.execute()
                return True
            except WatchError:
                # Lock changed between read and write
                return False

    async def renew(self, instance_id: str, now: Optional[datetime] = None) -> RenewResult:
        """Refresh the heartbeat if the lock is still ours."""
        try:
            redis = await self._get_redis()
            ts = (now or await redis_now(redis)).timestamp()
            async with redis.pipeline(transaction=True) as pipe:
                await pipe.watch(self.KEY)
                owner = await pipe.hget(self.KEY, "instance_id")
                if owner != instance_id:
                    return RenewResult(renewed=False, lost=True)

                pipe.multi()
                pipe.hset(self.KEY, "heartbeat_at", str(ts))
                await pipe.execute()
                return RenewResult(renewed=True)
        except Exception as e:
            return RenewResult(renewed=False, error=str(e))

    async def release(self, instance_id: str) -> bool:
        """Delete the lock if owned by instance_id (idempotent)."""
        redis = await self._get_redis()
        async with redis.pipeline(transaction=True) as pipe:
            try:
                await pipe.watch(self.KEY)
                owner = await pipe.hget(self.KEY, "instance_id")
                if owner != instance_id:
                    return False

                pipe.multi()
                pipe.delete(self.KEY)
                await pipe.execute()
                return True
            except WatchError:
                return False

    async def describe(self, now: Optional[datetime] = None) -> Optional[dict]:
        """Current holder details, or None when nobody holds the lock."""
        redis = await self._get_redis()
        now = now or await redis_now(redis)
        state = await redis.hgetall(self.KEY)
        if not state:
            return None

        heartbeat_at = datetime.fromtimestamp(float(state["heartbeat_at"]), tz=timezone.utc)
        acquired_at = datetime.fromtimestamp(float(state["acquired_at"]), tz=timezone.utc)
        age = (now - heartbeat_at).total_seconds()
        return {
            "instance_id": state["instance_id"],
            "acquired_at": acquired_at.isoformat(),
            "heartbeat_at": heartbeat_at.isoformat(),
            "heartbeat_age_seconds": round(age, 1),
            "stale": age > self.stale_after
        }


def build_scheduler_lock(backend: Optional[str] = None):
    """Create the scheduler lock for the configured backend."""
    backend = backend or settings.lock_backend
    if backend == "redis":
        return RedisSchedulerLock()
    return DatabaseSchedulerLock()
