"""Services package initialization."""
from wishwatch.services.streamer_service import StreamerService, TrackedStreamer
from wishwatch.services.wishlist_service import WishlistService
from wishwatch.services.recipient_service import RecipientService, StreamerNotificationSettings
from wishwatch.services.snapshot_policy import SnapshotDecision, evaluate_snapshot, find_new_items

__all__ = [
    "StreamerService",
    "TrackedStreamer",
    "WishlistService",
    "RecipientService",
    "StreamerNotificationSettings",
    "SnapshotDecision",
    "evaluate_snapshot",
    "find_new_items"
]
