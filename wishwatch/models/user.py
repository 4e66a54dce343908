"""User model and per-streamer notification settings."""
from sqlalchemy import Column, String, Integer, BigInteger, Boolean, DateTime, ForeignKey
from sqlalchemy.orm import relationship
from datetime import datetime, timezone
from wishwatch.core.database import Base


class User(Base):
    """User model representing a Telegram user."""

    __tablename__ = "users"

    id = Column(Integer, primary_key=True, autoincrement=True)
    telegram_id = Column(BigInteger, unique=True, nullable=True, index=True)
    username = Column(String, nullable=True)
    first_name = Column(String, nullable=True)
    created_at = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), nullable=False)

    # Relationships
    tracked = relationship("UserStreamer", back_populates="user", cascade="all, delete-orphan")
    streamer_settings = relationship("UserStreamerSettings", back_populates="user", cascade="all, delete-orphan")
    groups = relationship("TelegramGroup", back_populates="added_by", cascade="all, delete-orphan")


class UserStreamerSettings(Base):
    """Per-streamer notification toggles for a user.

    Rows are created on first toggle; a missing row means both flags are on.
    """

    __tablename__ = "user_streamer_settings"

    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), primary_key=True)
    streamer_id = Column(Integer, ForeignKey("streamers.id", ondelete="CASCADE"), primary_key=True)
    notifications_enabled = Column(Boolean, default=True, nullable=False)
    notify_in_pm = Column(Boolean, default=True, nullable=False)

    # Relationship
    user = relationship("User", back_populates="streamer_settings")
