"""Models package initialization."""
from wishwatch.models.user import User, UserStreamerSettings
from wishwatch.models.streamer import Streamer, UserStreamer
from wishwatch.models.wishlist_item import WishlistItem
from wishwatch.models.telegram_group import TelegramGroup, GroupStreamerSettings
from wishwatch.models.scheduler_lock import SchedulerLock, SCHEDULER_LOCK_ID

__all__ = [
    "User",
    "UserStreamerSettings",
    "Streamer",
    "UserStreamer",
    "WishlistItem",
    "TelegramGroup",
    "GroupStreamerSettings",
    "SchedulerLock",
    "SCHEDULER_LOCK_ID"
]
