"""Streamer registry service."""
from dataclasses import dataclass
from typing import List, Optional, Sequence
from sqlalchemy import select, delete, func
from sqlalchemy.ext.asyncio import AsyncSession
from wishwatch.models import Streamer, UserStreamer
from wishwatch.models.streamer import VALID_PRIORITIES
from wishwatch.core.config import settings
import re


# fetta.app nicknames: letters, digits, dot, dash, underscore
NICKNAME_PATTERN = re.compile(r'^[A-Za-z0-9._-]{1,64}$')


def validate_nickname(nickname: str) -> str:
    """
    Validate and normalize a streamer nickname.

    Args:
        nickname: Nickname to validate

    Returns:
        Stripped nickname (case preserved)

    Raises:
        ValueError: If nickname format is invalid
    """
    if not nickname:
        raise ValueError("Nickname cannot be empty")

    normalized = nickname.strip().lstrip("@")

    if not NICKNAME_PATTERN.match(normalized):
        raise ValueError(f"Invalid nickname format: '{nickname}'")

    return normalized


@dataclass(frozen=True)
class TrackedStreamer:
    """Detached view of a streamer handed to the scheduler."""
    id: int
    nickname: str
    name: str
    url: str
    priority: int = 1


def dedupe_by_nickname(streamers: Sequence[TrackedStreamer]) -> List[TrackedStreamer]:
    """Drop case-insensitive nickname duplicates, first occurrence wins."""
    seen = set()
    unique = []
    for streamer in streamers:
        key = streamer.nickname.lower()
        if key in seen:
            continue
        seen.add(key)
        unique.append(streamer)
    return unique


def to_tracked(streamer: Streamer) -> TrackedStreamer:
    return TrackedStreamer(
        id=streamer.id,
        nickname=streamer.nickname,
        name=streamer.name or streamer.nickname,
        url=streamer.fetta_url or f"{settings.fetta_base_url}/u/{streamer.nickname}",
        priority=streamer.priority or 1
    )


class StreamerService:
    """Service for streamer registry management."""

    @staticmethod
    async def get_tracked_streamers(db: AsyncSession) -> List[TrackedStreamer]:
        """
        Get every streamer tracked by at least one user.

        Duplicates by case-insensitive nickname are removed, keeping the
        lowest id.
        """
        result = await db.execute(
            select(Streamer)
            .where(Streamer.id.in_(select(UserStreamer.streamer_id)))
            .order_by(Streamer.id)
        )
        streamers = [to_tracked(s) for s in result.scalars().all()]
        return dedupe_by_nickname(streamers)

    @staticmethod
    async def get_by_nickname(db: AsyncSession, nickname: str) -> Optional[Streamer]:
        """Case-insensitive lookup by nickname."""
        result = await db.execute(
            select(Streamer).where(func.lower(Streamer.nickname) == nickname.lower())
        )
        return result.scalar_one_or_none()

    @staticmethod
    async def get_or_create_streamer(
        db: AsyncSession,
        nickname: str,
        name: Optional[str] = None,
        fetta_url: Optional[str] = None
    ) -> Streamer:
        """Get or create streamer record.

        Args:
            db: Database session
            nickname: Streamer nickname (validated, matched case-insensitively)
            name: Display name
            fetta_url: Profile URL

        Returns:
            Streamer record

        Raises:
            ValueError: If nickname format is invalid
        """
        nickname = validate_nickname(nickname)

        streamer = await StreamerService.get_by_nickname(db, nickname)
        if streamer:
            return streamer

        streamer = Streamer(
            nickname=nickname,
            name=name or nickname,
            fetta_url=fetta_url or f"{settings.fetta_base_url}/u/{nickname}",
            priority=1
        )
        db.add(streamer)
        await db.commit()
        await db.refresh(streamer)

        return streamer

    @staticmethod
    async def update_metadata(
        db: AsyncSession,
        streamer_id: int,
        name: Optional[str] = None,
        avatar: Optional[str] = None,
        description: Optional[str] = None
    ) -> Optional[Streamer]:
        """Refresh profile metadata; None values leave fields unchanged."""
        streamer = await db.get(Streamer, streamer_id)
        if not streamer:
            return None

        if name is not None:
            streamer.name = name
        if avatar is not None:
            streamer.avatar = avatar
        if description is not None:
            streamer.description = description

        await db.commit()
        return streamer

    @staticmethod
    async def set_priority(db: AsyncSession, streamer_id: int, priority: int) -> Streamer:
        """
        Set the polling tier of a streamer.

        Raises:
            ValueError: If the streamer does not exist or priority is invalid
        """
        if priority not in VALID_PRIORITIES:
            raise ValueError(f"priority must be one of {sorted(VALID_PRIORITIES)}, got {priority}")

        streamer = await db.get(Streamer, streamer_id)
        if not streamer:
            raise ValueError(f"Streamer {streamer_id} not found")

        streamer.priority = priority
        await db.commit()
        return streamer

    @staticmethod
    async def track_streamer(db: AsyncSession, user_id: int, streamer_id: int) -> UserStreamer:
        """Add a streamer to a user's tracked list (idempotent)."""
        result = await db.execute(
            select(UserStreamer).where(
                UserStreamer.user_id == user_id,
                UserStreamer.streamer_id == streamer_id
            )
        )
        existing = result.scalar_one_or_none()
        if existing:
            return existing

        link = UserStreamer(user_id=user_id, streamer_id=streamer_id)
        db.add(link)
        await db.commit()
        await db.refresh(link)
        return link

    @staticmethod
    async def untrack_streamer(db: AsyncSession, user_id: int, streamer_id: int) -> bool:
        """
        Remove a streamer from a user's tracked list.

        Returns:
            True if removed, False if not found
        """
        result = await db.execute(
            delete(UserStreamer).where(
                UserStreamer.user_id == user_id,
                UserStreamer.streamer_id == streamer_id
            )
        )
        await db.commit()

        return result.rowcount > 0
