"""Recipient resolution: followers, groups and their per-streamer toggles."""
from dataclasses import dataclass
from typing import List, Optional
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from wishwatch.models import (
    User,
    UserStreamer,
    UserStreamerSettings,
    TelegramGroup,
    GroupStreamerSettings
)


@dataclass
class StreamerNotificationSettings:
    """Effective user toggles for one streamer."""
    notifications_enabled: bool = True
    notify_in_pm: bool = True

    @property
    def wants_direct_message(self) -> bool:
        return self.notifications_enabled and self.notify_in_pm


class RecipientService:
    """Service for notification recipients."""

    @staticmethod
    async def get_or_create_user(
        db: AsyncSession,
        telegram_id: int,
        username: Optional[str] = None,
        first_name: Optional[str] = None
    ) -> User:
        """Get or create a user by Telegram id."""
        result = await db.execute(select(User).where(User.telegram_id == telegram_id))
        user = result.scalar_one_or_none()
        if user:
            return user

        user = User(telegram_id=telegram_id, username=username, first_name=first_name)
        db.add(user)
        await db.commit()
        await db.refresh(user)
        return user

    @staticmethod
    async def get_streamer_followers(db: AsyncSession, streamer_id: int) -> List[User]:
        """
        Get all users tracking a streamer.

        Args:
            db: Database session
            streamer_id: Streamer ID

        Returns:
            List of User objects
        """
        result = await db.execute(
            select(User)
            .join(UserStreamer, UserStreamer.user_id == User.id)
            .where(UserStreamer.streamer_id == streamer_id)
            .order_by(User.id)
        )
        return list(result.scalars().all())

    @staticmethod
    async def get_user_streamer_settings(
        db: AsyncSession,
        user_id: int,
        streamer_id: int
    ) -> StreamerNotificationSettings:
        """Get a user's toggles for a streamer; both default to on."""
        row = await db.get(UserStreamerSettings, (user_id, streamer_id))
        if row is None:
            return StreamerNotificationSettings()

        return StreamerNotificationSettings(
            notifications_enabled=row.notifications_enabled,
            notify_in_pm=row.notify_in_pm
        )

    @staticmethod
    async def set_user_streamer_settings(
        db: AsyncSession,
        user_id: int,
        streamer_id: int,
        notifications_enabled: Optional[bool] = None,
        notify_in_pm: Optional[bool] = None
    ) -> StreamerNotificationSettings:
        """Update a user's toggles, creating the settings row on first use."""
        row = await db.get(UserStreamerSettings, (user_id, streamer_id))
        if row is None:
            row = UserStreamerSettings(
                user_id=user_id,
                streamer_id=streamer_id,
                notifications_enabled=True,
                notify_in_pm=True
            )
            db.add(row)

        if notifications_enabled is not None:
            row.notifications_enabled = notifications_enabled
        if notify_in_pm is not None:
            row.notify_in_pm = notify_in_pm

        await db.commit()

        return StreamerNotificationSettings(
            notifications_enabled=row.notifications_enabled,
            notify_in_pm=row.notify_in_pm
        )

    @staticmethod
    async def link_group(
        db: AsyncSession,
        chat_id: int,
        added_by_user_id: int,
        title: Optional[str] = None
    ) -> TelegramGroup:
        """Register a group chat on behalf of a user."""
        result = await db.execute(select(TelegramGroup).where(TelegramGroup.chat_id == chat_id))
        group = result.scalar_one_or_none()

        if group:
            if title and group.title != title:
                group.title = title
                await db.commit()
            return group

        group = TelegramGroup(chat_id=chat_id, added_by_user_id=added_by_user_id, title=title)
        db.add(group)
        await db.commit()
        await db.refresh(group)
        return group

    @staticmethod
    async def get_streamer_groups(db: AsyncSession, streamer_id: int) -> List[TelegramGroup]:
        """
        Get groups that may receive a streamer's updates.

        A group qualifies when the user who linked it tracks the streamer;
        its own per-streamer flag is checked separately.
        """
        result = await db.execute(
            select(TelegramGroup)
            .join(UserStreamer, UserStreamer.user_id == TelegramGroup.added_by_user_id)
            .where(UserStreamer.streamer_id == streamer_id)
            .order_by(TelegramGroup.id)
        )
        return list(result.scalars().unique().all())

    @staticmethod
    async def is_group_enabled(db: AsyncSession, group_id: int, streamer_id: int) -> bool:
        """Groups are opt-in: no settings row means disabled."""
        row = await db.get(GroupStreamerSettings, (group_id, streamer_id))
        return bool(row and row.notifications_enabled)

    @staticmethod
    async def set_group_streamer_enabled(
        db: AsyncSession,
        group_id: int,
        streamer_id: int,
        enabled: bool
    ) -> bool:
        """Toggle a streamer for a group, creating the settings row on first use."""
        row = await db.get(GroupStreamerSettings, (group_id, streamer_id))
        if row is None:
            row = GroupStreamerSettings(group_id=group_id, streamer_id=streamer_id)
            db.add(row)

        row.notifications_enabled = enabled
        await db.commit()
        return row.notifications_enabled
