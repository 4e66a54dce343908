"""Unit tests for NotificationRouter.

Recipients live in in-memory SQLite; the Telegram bot is an AsyncMock.
"""
import pytest
from unittest.mock import AsyncMock

from wishwatch.services import StreamerService, RecipientService
from wishwatch.workers.notification_router import NotificationRouter
from tests.conftest import make_item


# ============================================================================
# Fixtures
# ============================================================================

@pytest.fixture
def bot():
    return AsyncMock()


@pytest.fixture
def router(bot):
    return NotificationRouter(bot=bot)


@pytest.fixture
async def setup(db_session):
    """Two followers of "simfonira" plus a group linked by the first."""
    alice = await RecipientService.get_or_create_user(db_session, telegram_id=1001, username="alice")
    bob = await RecipientService.get_or_create_user(db_session, telegram_id=1002, username="bob")
    streamer = await StreamerService.get_or_create_streamer(db_session, "simfonira")
    await StreamerService.track_streamer(db_session, alice.id, streamer.id)
    await StreamerService.track_streamer(db_session, bob.id, streamer.id)
    group = await RecipientService.link_group(db_session, chat_id=-5000, added_by_user_id=alice.id, title="Fans")
    tracked = (await StreamerService.get_tracked_streamers(db_session))[0]
    return {"alice": alice, "bob": bob, "group": group, "streamer": tracked}


def sent_chat_ids(bot) -> list:
    return [call.kwargs["chat_id"] for call in bot.send_message.await_args_list]


# ============================================================================
# Tests for deliver
# ============================================================================

@pytest.mark.unit
@pytest.mark.asyncio
class TestDeliver:
    """Test single message delivery."""

    async def test_sends_html_message(self, router, bot):
        """✅ HTML message without link preview."""
        await router.deliver(42, "Simfonira", "https://fetta.app/u/simfonira", [make_item("p1", name="Lamp")])

        kwargs = bot.send_message.await_args.kwargs
        assert kwargs["chat_id"] == 42
        assert kwargs["parse_mode"] == "HTML"
        assert kwargs["disable_web_page_preview"] is True
        assert "Lamp" in kwargs["text"]


# ============================================================================
# Tests for notify_new_items
# ============================================================================

@pytest.mark.unit
@pytest.mark.asyncio
class TestNotifyNewItems:
    """Test recipient fan-out."""

    async def test_all_followers_notified(self, router, bot, db_session, setup):
        """✅ Every follower with default settings gets a DM; group is opt-in."""
        sent = await router.notify_new_items(db_session, setup["streamer"], [make_item("p1")])

        assert sent == 2
        assert sent_chat_ids(bot) == [1001, 1002]

    async def test_muted_follower_skipped(self, router, bot, db_session, setup):
        """❌ Disabled streamer notifications suppress the DM."""
        await RecipientService.set_user_streamer_settings(
            db_session, setup["bob"].id, setup["streamer"].id, notifications_enabled=False
        )

        sent = await router.notify_new_items(db_session, setup["streamer"], [make_item("p1")])

        assert sent == 1
        assert sent_chat_ids(bot) == [1001]

    async def test_pm_disabled_follower_skipped(self, router, bot, db_session, setup):
        """❌ DM toggle off suppresses the DM."""
        await RecipientService.set_user_streamer_settings(
            db_session, setup["alice"].id, setup["streamer"].id, notify_in_pm=False
        )

        await router.notify_new_items(db_session, setup["streamer"], [make_item("p1")])

        assert sent_chat_ids(bot) == [1002]

    async def test_enabled_group_notified(self, router, bot, db_session, setup):
        """✅ Opted-in group receives the group variant."""
        await RecipientService.set_group_streamer_enabled(
            db_session, setup["group"].id, setup["streamer"].id, True
        )

        sent = await router.notify_new_items(db_session, setup["streamer"], [make_item("p1")])

        assert sent == 3
        assert sent_chat_ids(bot) == [1001, 1002, -5000]
        group_text = bot.send_message.await_args_list[-1].kwargs["text"]
        assert "новые товары в вишлисте" in group_text

    async def test_delivery_failure_isolated(self, router, bot, db_session, setup):
        """✅ One failed delivery does not stop the others."""
        bot.send_message.side_effect = [RuntimeError("blocked"), None]

        sent = await router.notify_new_items(db_session, setup["streamer"], [make_item("p1")])

        assert sent == 1
        assert bot.send_message.await_count == 2

    async def test_no_bot_configured(self, db_session, setup):
        """✅ Without a bot nothing is sent."""
        router = NotificationRouter(bot=AsyncMock())
        router.bot = None

        assert await router.notify_new_items(db_session, setup["streamer"], [make_item("p1")]) == 0
