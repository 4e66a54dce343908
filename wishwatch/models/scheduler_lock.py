"""Singleton row used to elect the active scheduler instance."""
from sqlalchemy import Column, String, Integer, DateTime
from wishwatch.core.database import Base


SCHEDULER_LOCK_ID = 1


class SchedulerLock(Base):
    """Scheduler lock held by exactly one live instance."""

    __tablename__ = "scheduler_lock"

    id = Column(Integer, primary_key=True, default=SCHEDULER_LOCK_ID)
    instance_id = Column(String, nullable=False)
    acquired_at = Column(DateTime(timezone=True), nullable=False)
    heartbeat_at = Column(DateTime(timezone=True), nullable=False)
