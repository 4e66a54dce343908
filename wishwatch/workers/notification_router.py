"""Notification router for sending new wishlist items to recipients."""
import logging
from typing import Sequence
from telegram import Bot
from sqlalchemy.ext.asyncio import AsyncSession
from wishwatch.core.config import settings
from wishwatch.providers.models import CatalogItem
from wishwatch.services import RecipientService, TrackedStreamer
from wishwatch.utils.formatting import format_new_items_message

logger = logging.getLogger(__name__)


class NotificationRouter:
    """Router for fanning out new-item notifications to users and groups."""

    def __init__(self, bot: Bot | None = None):
        if bot is None and settings.telegram_bot_token:
            bot = Bot(token=settings.telegram_bot_token)
        self.bot = bot

    async def deliver(
        self,
        chat_id: int,
        streamer_name: str,
        streamer_url: str,
        items: Sequence[CatalogItem],
        is_direct: bool = True
    ):
        """
        Send one notification message.

        Args:
            chat_id: Telegram chat ID of the recipient
            streamer_name: Display name of the streamer
            streamer_url: Link to the streamer's wishlist
            items: New items to announce
            is_direct: Direct message (True) or group post (False)
        """
        message = format_new_items_message(streamer_name, streamer_url, items, is_direct=is_direct)

        await self.bot.send_message(
            chat_id=chat_id,
            text=message,
            parse_mode="HTML",
            disable_web_page_preview=True
        )

    async def _safe_deliver(
        self,
        chat_id: int,
        label: str,
        streamer: TrackedStreamer,
        items: Sequence[CatalogItem],
        is_direct: bool
    ) -> bool:
        try:
            await self.deliver(chat_id, streamer.name, streamer.url, items, is_direct=is_direct)
            logger.info(f"  ✓ Notification sent to {label}")
            return True
        except Exception as e:
            logger.error(f"  ✗ Error sending notification to {label}: {e}", exc_info=True)
            return False

    async def notify_new_items(
        self,
        db: AsyncSession,
        streamer: TrackedStreamer,
        items: Sequence[CatalogItem]
    ) -> int:
        """
        Notify every eligible follower and group about new items.

        Users are notified unless they disabled the streamer or direct
        messages for it; groups only when they opted in.

        Returns:
            Number of messages delivered
        """
        if self.bot is None:
            logger.warning("Telegram bot not configured, notifications skipped")
            return 0

        sent = 0

        followers = await RecipientService.get_streamer_followers(db, streamer.id)
        for user in followers:
            prefs = await RecipientService.get_user_streamer_settings(db, user.id, streamer.id)
            if not prefs.wants_direct_message:
                logger.debug(f"User {user.id} muted {streamer.nickname}, skipping")
                continue

            if not user.telegram_id:
                logger.warning(f"User {user.id} has no telegram_id, skipping notification")
                continue

            if await self._safe_deliver(user.telegram_id, f"user @{user.username}", streamer, items, True):
                sent += 1

        groups = await RecipientService.get_streamer_groups(db, streamer.id)
        for group in groups:
            if not await RecipientService.is_group_enabled(db, group.id, streamer.id):
                continue

            if await self._safe_deliver(group.chat_id, f"group {group.title or group.chat_id}", streamer, items, False):
                sent += 1

        logger.info(f"  Notified {sent} recipient(s) about {len(items)} new item(s) of {streamer.nickname}")
        return sent
