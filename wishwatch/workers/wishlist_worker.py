"""Wishlist checker: fetch, validate, notify and persist one streamer."""
import asyncio
import logging
from dataclasses import dataclass, replace
from tenacity import (
    AsyncRetrying,
    stop_after_attempt,
    wait_incrementing,
    retry_if_exception_type,
    before_sleep_log
)
from wishwatch.core.database import AsyncSessionLocal
from wishwatch.providers import CatalogProvider, ProviderError, RateLimitError, FetchResult
from wishwatch.providers.fetta import FettaProvider
from wishwatch.services import WishlistService, StreamerService, TrackedStreamer, evaluate_snapshot
from wishwatch.services.snapshot_policy import SKIP, SYNC
from wishwatch.workers.notification_router import NotificationRouter

logger = logging.getLogger(__name__)

# One initial attempt plus two retries, waiting 10s then 20s
RATE_LIMIT_ATTEMPTS = 3
RATE_LIMIT_BACKOFF_START = 10
RATE_LIMIT_BACKOFF_STEP = 10


@dataclass
class CheckResult:
    """Summary of one streamer check."""
    nickname: str
    status: str  # fetch_failed, skip, sync, notify, unchanged
    reason: str = ""
    new_items: int = 0
    notified: int = 0


class WishlistChecker:
    """Runs the fetch-diff-notify-persist sequence for a single streamer."""

    def __init__(
        self,
        provider: CatalogProvider | None = None,
        router: NotificationRouter | None = None,
        session_factory=AsyncSessionLocal,
        sleep=asyncio.sleep
    ):
        self.provider = provider or FettaProvider()
        self.router = router or NotificationRouter()
        self.session_factory = session_factory
        self._sleep = sleep

    async def fetch_with_retry(self, nickname: str) -> FetchResult:
        """
        Fetch a wishlist, backing off on rate limits.

        Raises:
            RateLimitError: If still rate limited after all retries
            ProviderError: On any other provider failure (not retried)
        """
        retrying = AsyncRetrying(
            stop=stop_after_attempt(RATE_LIMIT_ATTEMPTS),
            wait=wait_incrementing(start=RATE_LIMIT_BACKOFF_START, increment=RATE_LIMIT_BACKOFF_STEP),
            retry=retry_if_exception_type(RateLimitError),
            before_sleep=before_sleep_log(logger, logging.WARNING),
            sleep=self._sleep,
            reraise=True
        )
        return await retrying(self.provider.get_wishlist, nickname)

    async def check_streamer(self, streamer: TrackedStreamer) -> CheckResult:
        """
        Check one streamer for new wishlist items.

        Notifications go out before the new snapshot is stored, so a
        crash in between repeats the notification on the next check
        rather than losing it.

        Args:
            streamer: Streamer to check

        Returns:
            CheckResult describing what happened
        """
        logger.info(f"Checking {streamer.nickname} (priority={streamer.priority})...")

        try:
            result = await self.fetch_with_retry(streamer.nickname)
        except RateLimitError as e:
            logger.warning(f"  ⚠ Still rate limited for {streamer.nickname}, giving up this cycle: {e}")
            return CheckResult(streamer.nickname, "fetch_failed", reason="rate_limited")
        except ProviderError as e:
            logger.error(f"  ✗ Provider error for {streamer.nickname}: {e}")
            return CheckResult(streamer.nickname, "fetch_failed", reason="provider_error")

        if not result.success:
            logger.warning(f"  ⚠ Could not fetch wishlist for {streamer.nickname}: {result.error}")
            return CheckResult(streamer.nickname, "fetch_failed", reason=result.error or "unsuccessful")

        async with self.session_factory() as db:
            if result.profile:
                await StreamerService.update_metadata(
                    db,
                    streamer.id,
                    name=result.profile.name,
                    avatar=result.profile.avatar,
                    description=result.profile.description
                )
                if result.profile.name:
                    streamer = replace(streamer, name=result.profile.name)

            stored = await WishlistService.get_stored_items(db, streamer.id)
            decision = evaluate_snapshot(stored, result.items)

            if decision.action == SKIP:
                logger.warning(
                    f"  ⚠ Suspicious snapshot for {streamer.nickname} ({decision.reason}): "
                    f"stored={len(stored)}, fetched={len(result.items)}; skipping"
                )
                return CheckResult(streamer.nickname, SKIP, reason=decision.reason)

            notified = 0
            if decision.should_notify:
                logger.info(f"  🎁 {len(decision.new_items)} new item(s) for {streamer.nickname}")
                notified = await self.router.notify_new_items(db, streamer, decision.new_items)
            elif decision.action == SYNC:
                logger.info(
                    f"  Initial sync for {streamer.nickname}: "
                    f"{len(result.items)} items stored without notifications"
                )

            await WishlistService.save_snapshot(db, streamer.id, result.items)

        logger.info(f"Completed check for {streamer.nickname} ({decision.reason})")
        return CheckResult(
            streamer.nickname,
            decision.action,
            reason=decision.reason,
            new_items=len(decision.new_items),
            notified=notified
        )

    async def close(self):
        """Cleanup resources."""
        await self.provider.close()
