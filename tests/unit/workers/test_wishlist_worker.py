"""Unit tests for WishlistChecker.

This module tests the fetch-diff-notify-persist sequence including rate
limit backoff, anomaly skips and cold-start suppression. Storage runs on
in-memory SQLite; the catalog provider and Telegram bot are mocked.
"""
import pytest
from unittest.mock import AsyncMock

from wishwatch.models import Streamer
from wishwatch.providers import FetchResult, ProviderError, RateLimitError, StreamerProfile
from wishwatch.services import StreamerService, WishlistService, RecipientService
from wishwatch.workers.notification_router import NotificationRouter
from wishwatch.workers.wishlist_worker import WishlistChecker
from tests.conftest import make_item, make_items


# ============================================================================
# Fixtures
# ============================================================================

@pytest.fixture
def mock_provider():
    provider = AsyncMock()
    provider.get_wishlist.return_value = FetchResult(success=True, items=[])
    return provider


@pytest.fixture
def mock_router():
    router = AsyncMock()
    router.notify_new_items.return_value = 0
    return router


@pytest.fixture
def mock_sleep():
    return AsyncMock()


@pytest.fixture
async def tracked(session_factory):
    """A user (telegram 111) tracking streamer "simfonira"."""
    async with session_factory() as db:
        user = await RecipientService.get_or_create_user(db, telegram_id=111, username="viewer")
        streamer = await StreamerService.get_or_create_streamer(db, "simfonira")
        await StreamerService.track_streamer(db, user.id, streamer.id)
        streamers = await StreamerService.get_tracked_streamers(db)
    return streamers[0]


@pytest.fixture
def checker(mock_provider, mock_router, session_factory, mock_sleep):
    return WishlistChecker(
        provider=mock_provider,
        router=mock_router,
        session_factory=session_factory,
        sleep=mock_sleep
    )


async def seed_items(session_factory, streamer_id, items):
    async with session_factory() as db:
        await WishlistService.save_snapshot(db, streamer_id, items)


async def stored_ids(session_factory, streamer_id) -> list:
    async with session_factory() as db:
        items = await WishlistService.get_stored_items(db, streamer_id)
    return sorted(i.product_id for i in items)


# ============================================================================
# Tests for fetch_with_retry
# ============================================================================

@pytest.mark.unit
@pytest.mark.asyncio
class TestFetchWithRetry:
    """Test rate limit backoff."""

    async def test_retries_with_escalating_backoff(self, checker, mock_provider, mock_sleep):
        """✅ Two rate limits, then success: waits 10s then 20s."""
        ok = FetchResult(success=True, items=make_items(1))
        mock_provider.get_wishlist.side_effect = [RateLimitError("429"), RateLimitError("429"), ok]

        result = await checker.fetch_with_retry("simfonira")

        assert result is ok
        assert mock_provider.get_wishlist.await_count == 3
        assert [call.args[0] for call in mock_sleep.await_args_list] == [10, 20]

    async def test_gives_up_after_three_attempts(self, checker, mock_provider, mock_sleep):
        """❌ Rate limited on every attempt re-raises."""
        mock_provider.get_wishlist.side_effect = RateLimitError("429")

        with pytest.raises(RateLimitError):
            await checker.fetch_with_retry("simfonira")

        assert mock_provider.get_wishlist.await_count == 3

    async def test_other_errors_not_retried(self, checker, mock_provider, mock_sleep):
        """❌ Non rate limit errors fail immediately."""
        mock_provider.get_wishlist.side_effect = ProviderError("500")

        with pytest.raises(ProviderError):
            await checker.fetch_with_retry("simfonira")

        assert mock_provider.get_wishlist.await_count == 1
        mock_sleep.assert_not_awaited()


# ============================================================================
# Tests for check_streamer
# ============================================================================

@pytest.mark.unit
@pytest.mark.asyncio
class TestCheckStreamer:
    """Test a single streamer check."""

    async def test_rate_limited_check_fails_softly(self, checker, mock_provider, mock_router, tracked):
        """✅ Exhausted retries abandon the check without raising."""
        mock_provider.get_wishlist.side_effect = RateLimitError("429")

        result = await checker.check_streamer(tracked)

        assert result.status == "fetch_failed"
        assert result.reason == "rate_limited"
        mock_router.notify_new_items.assert_not_awaited()

    async def test_provider_error(self, checker, mock_provider, tracked):
        """✅ Provider failure reported as fetch_failed."""
        mock_provider.get_wishlist.side_effect = ProviderError("boom")

        result = await checker.check_streamer(tracked)

        assert result.status == "fetch_failed"
        assert result.reason == "provider_error"

    async def test_unsuccessful_result(self, checker, mock_provider, session_factory, tracked):
        """✅ Unsuccessful fetch leaves stored state untouched."""
        await seed_items(session_factory, tracked.id, make_items(2))
        mock_provider.get_wishlist.return_value = FetchResult(success=False, error="streamer not found")

        result = await checker.check_streamer(tracked)

        assert result.status == "fetch_failed"
        assert result.reason == "streamer not found"
        assert await stored_ids(session_factory, tracked.id) == ["p0", "p1"]

    async def test_cold_start_persists_without_notifying(
        self, checker, mock_provider, mock_router, session_factory, tracked
    ):
        """✅ First sync of 10 items stored silently."""
        mock_provider.get_wishlist.return_value = FetchResult(success=True, items=make_items(10))

        result = await checker.check_streamer(tracked)

        assert result.status == "sync"
        mock_router.notify_new_items.assert_not_awaited()
        assert len(await stored_ids(session_factory, tracked.id)) == 10

    async def test_cold_start_three_items(self, checker, mock_provider, mock_router, session_factory, tracked):
        """✅ Three items on first sync: persisted, not announced."""
        mock_provider.get_wishlist.return_value = FetchResult(success=True, items=make_items(3))

        result = await checker.check_streamer(tracked)

        assert result.status == "sync"
        mock_router.notify_new_items.assert_not_awaited()
        assert await stored_ids(session_factory, tracked.id) == ["p0", "p1", "p2"]

    async def test_anomaly_skips_without_persisting(
        self, checker, mock_provider, mock_router, session_factory, tracked
    ):
        """❌ 20 stored + 1 fetched: skipped, store unchanged."""
        await seed_items(session_factory, tracked.id, make_items(20))
        mock_provider.get_wishlist.return_value = FetchResult(success=True, items=[make_item("new")])

        result = await checker.check_streamer(tracked)

        assert result.status == "skip"
        assert result.reason == "severe_shrink"
        mock_router.notify_new_items.assert_not_awaited()
        assert len(await stored_ids(session_factory, tracked.id)) == 20

    async def test_unchanged_records_removals(self, checker, mock_provider, mock_router, session_factory, tracked):
        """✅ No new items: removals still persisted, nobody notified."""
        await seed_items(session_factory, tracked.id, make_items(3))
        mock_provider.get_wishlist.return_value = FetchResult(success=True, items=make_items(2))

        result = await checker.check_streamer(tracked)

        assert result.status == "unchanged"
        mock_router.notify_new_items.assert_not_awaited()
        assert await stored_ids(session_factory, tracked.id) == ["p0", "p1"]

    async def test_notify_then_persist(self, checker, mock_provider, mock_router, session_factory, tracked):
        """✅ Router sees the store before the new snapshot is saved."""
        await seed_items(session_factory, tracked.id, make_items(2))
        mock_provider.get_wishlist.return_value = FetchResult(
            success=True, items=make_items(2) + [make_item("p9")]
        )
        seen_during_notify = []

        async def record_store(db, streamer, items):
            stored = await WishlistService.get_stored_items(db, streamer.id)
            seen_during_notify.extend(sorted(i.product_id for i in stored))
            return 1

        mock_router.notify_new_items.side_effect = record_store

        result = await checker.check_streamer(tracked)

        assert result.status == "notify"
        assert result.notified == 1
        assert seen_during_notify == ["p0", "p1"]
        assert await stored_ids(session_factory, tracked.id) == ["p0", "p1", "p9"]

    async def test_profile_metadata_stored(self, checker, mock_provider, mock_router, session_factory, tracked):
        """✅ Profile details from the fetch refresh the streamer and the message name."""
        await seed_items(session_factory, tracked.id, make_items(2))
        mock_provider.get_wishlist.return_value = FetchResult(
            success=True,
            items=make_items(2) + [make_item("p9")],
            profile=StreamerProfile(name="Simfonira", avatar="https://fetta.test/a.png", description="Cozy streams")
        )
        mock_router.notify_new_items.return_value = 1

        await checker.check_streamer(tracked)

        async with session_factory() as db:
            streamer = await db.get(Streamer, tracked.id)
            assert streamer.name == "Simfonira"
            assert streamer.avatar == "https://fetta.test/a.png"
            assert streamer.description == "Cozy streams"

        notified_streamer = mock_router.notify_new_items.await_args.args[1]
        assert notified_streamer.name == "Simfonira"

    async def test_missing_profile_fields_kept(self, checker, mock_provider, session_factory, tracked):
        """✅ Absent profile fields leave stored metadata unchanged."""
        async with session_factory() as db:
            await StreamerService.update_metadata(db, tracked.id, name="Old Name", description="Old bio")
        mock_provider.get_wishlist.return_value = FetchResult(
            success=True, items=make_items(1), profile=StreamerProfile(avatar="https://fetta.test/b.png")
        )

        await checker.check_streamer(tracked)

        async with session_factory() as db:
            streamer = await db.get(Streamer, tracked.id)
            assert streamer.name == "Old Name"
            assert streamer.description == "Old bio"
            assert streamer.avatar == "https://fetta.test/b.png"


# ============================================================================
# End-to-end with real router
# ============================================================================

@pytest.mark.unit
@pytest.mark.asyncio
@pytest.mark.critical
class TestEndToEnd:
    """Fetch, diff and deliver through NotificationRouter."""

    async def test_single_new_item_single_delivery(self, mock_provider, session_factory, mock_sleep, tracked):
        """✅ Stored p1,p2 + fetched p1,p2,p3: one message about p3."""
        bot = AsyncMock()
        checker = WishlistChecker(
            provider=mock_provider,
            router=NotificationRouter(bot=bot),
            session_factory=session_factory,
            sleep=mock_sleep
        )
        await seed_items(session_factory, tracked.id, [make_item("p1"), make_item("p2")])
        mock_provider.get_wishlist.return_value = FetchResult(
            success=True,
            items=[make_item("p1"), make_item("p2"), make_item("p3", name="Keyboard")]
        )

        result = await checker.check_streamer(tracked)

        assert result.status == "notify"
        assert result.new_items == 1
        assert result.notified == 1
        bot.send_message.assert_awaited_once()
        kwargs = bot.send_message.await_args.kwargs
        assert kwargs["chat_id"] == 111
        assert "Keyboard" in kwargs["text"]
        assert "Item p1" not in kwargs["text"]
        assert await stored_ids(session_factory, tracked.id) == ["p1", "p2", "p3"]

    async def test_second_check_sends_nothing(self, mock_provider, session_factory, mock_sleep, tracked):
        """✅ Same fetch twice notifies once."""
        bot = AsyncMock()
        checker = WishlistChecker(
            provider=mock_provider,
            router=NotificationRouter(bot=bot),
            session_factory=session_factory,
            sleep=mock_sleep
        )
        await seed_items(session_factory, tracked.id, [make_item("p1")])
        mock_provider.get_wishlist.return_value = FetchResult(
            success=True, items=[make_item("p1"), make_item("p2")]
        )

        await checker.check_streamer(tracked)
        second = await checker.check_streamer(tracked)

        assert second.status == "unchanged"
        assert bot.send_message.await_count == 1


@pytest.mark.unit
@pytest.mark.asyncio
async def test_close_closes_provider(checker, mock_provider):
    """✅ Closing the checker closes the provider."""
    await checker.close()
    mock_provider.close.assert_awaited_once()
