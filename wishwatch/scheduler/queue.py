"""Tiered check queue with per-streamer deduplication."""
import random
from dataclasses import dataclass
from typing import Dict, List, Optional, Set
from wishwatch.services.streamer_service import TrackedStreamer


PRIORITY_VIP = 3
PRIORITY_HIGH = 2
PRIORITY_NORMAL = 1

# Seconds between checks per tier; the normal tier comes from settings
CHECK_INTERVALS: Dict[int, int] = {
    PRIORITY_VIP: 30,
    PRIORITY_HIGH: 60,
}

# Pause after a check, keyed by the tier just processed
PACING_DELAYS: Dict[int, float] = {
    PRIORITY_VIP: 3,
    PRIORITY_HIGH: 5,
}
NORMAL_PACING_RANGE = (10.0, 15.0)


def normalize_priority(priority: Optional[int]) -> int:
    """Clamp unknown tiers to normal."""
    if priority in (PRIORITY_VIP, PRIORITY_HIGH):
        return priority
    return PRIORITY_NORMAL


def check_interval(priority: int, normal_interval: int) -> int:
    """Seconds that must elapse between two checks of a streamer."""
    return CHECK_INTERVALS.get(normalize_priority(priority), normal_interval)


def pacing_delay(priority: int) -> float:
    """Pause before the next dequeue.

    Normal tier pacing is randomised so requests to the catalog do not
    arrive on a fixed beat.
    """
    priority = normalize_priority(priority)
    if priority in PACING_DELAYS:
        return PACING_DELAYS[priority]
    return random.uniform(*NORMAL_PACING_RANGE)


@dataclass
class QueueEntry:
    """A streamer waiting to be checked."""
    streamer: TrackedStreamer
    priority: int


class StreamerQueue:
    """
    Strict-priority FIFO queue of streamers.

    Higher tiers are placed before every lower-tier entry; within a tier
    entries keep enqueue order. A streamer can be queued at most once,
    tracked by a membership set rather than by scanning the queue.
    """

    def __init__(self):
        self._entries: List[QueueEntry] = []
        self._members: Set[int] = set()

    def __len__(self) -> int:
        return len(self._entries)

    def __bool__(self) -> bool:
        return bool(self._entries)

    def __contains__(self, streamer_id: int) -> bool:
        return streamer_id in self._members

    def push(self, streamer: TrackedStreamer) -> bool:
        """
        Enqueue a streamer by its priority tier.

        Returns:
            False if the streamer was already queued
        """
        if streamer.id in self._members:
            return False

        priority = normalize_priority(streamer.priority)
        entry = QueueEntry(streamer=streamer, priority=priority)

        # Insert before the first entry of a lower tier
        position = len(self._entries)
        if priority > PRIORITY_NORMAL:
            for index, queued in enumerate(self._entries):
                if queued.priority < priority:
                    position = index
                    break

        self._entries.insert(position, entry)
        self._members.add(streamer.id)
        return True

    def pop(self) -> Optional[QueueEntry]:
        """Remove and return the head entry, or None when empty."""
        if not self._entries:
            return None
        entry = self._entries.pop(0)
        self._members.discard(entry.streamer.id)
        return entry

    def clear(self):
        self._entries.clear()
        self._members.clear()

    def snapshot(self) -> List[dict]:
        """Queue contents in processing order."""
        return [
            {"id": e.streamer.id, "nickname": e.streamer.nickname, "priority": e.priority}
            for e in self._entries
        ]
