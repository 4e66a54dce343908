"""Workers package initialization."""
from wishwatch.workers.wishlist_worker import WishlistChecker, CheckResult
from wishwatch.workers.notification_router import NotificationRouter

__all__ = ["WishlistChecker", "CheckResult", "NotificationRouter"]
