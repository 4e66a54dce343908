"""Telegram group chats that can receive streamer updates."""
from sqlalchemy import Column, String, Integer, BigInteger, Boolean, DateTime, ForeignKey
from sqlalchemy.orm import relationship
from datetime import datetime, timezone
from wishwatch.core.database import Base


class TelegramGroup(Base):
    """Group chat linked by a user."""

    __tablename__ = "telegram_groups"

    id = Column(Integer, primary_key=True, autoincrement=True)
    chat_id = Column(BigInteger, nullable=False, unique=True, index=True)
    title = Column(String, nullable=True)
    added_by_user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    created_at = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), nullable=False)

    # Relationships
    added_by = relationship("User", back_populates="groups")
    streamer_settings = relationship("GroupStreamerSettings", back_populates="group", cascade="all, delete-orphan")


class GroupStreamerSettings(Base):
    """Opt-in flag for posting a streamer's updates into a group."""

    __tablename__ = "group_streamer_settings"

    group_id = Column(Integer, ForeignKey("telegram_groups.id", ondelete="CASCADE"), primary_key=True)
    streamer_id = Column(Integer, ForeignKey("streamers.id", ondelete="CASCADE"), primary_key=True)
    notifications_enabled = Column(Boolean, default=False, nullable=False)

    # Relationship
    group = relationship("TelegramGroup", back_populates="streamer_settings")
