"""Streamer model and tracking links."""
from sqlalchemy import Column, String, Integer, DateTime, ForeignKey, UniqueConstraint, Index, func
from sqlalchemy.orm import relationship, validates
from datetime import datetime, timezone
from wishwatch.core.database import Base


VALID_PRIORITIES = {1, 2, 3}  # 1=normal, 2=high, 3=vip


class Streamer(Base):
    """A tracked fetta.app profile whose wishlist is polled."""

    __tablename__ = "streamers"

    id = Column(Integer, primary_key=True, autoincrement=True)
    nickname = Column(String, nullable=False)
    name = Column(String, nullable=True)
    fetta_url = Column(String, nullable=True)
    avatar = Column(String, nullable=True)
    description = Column(String, nullable=True)
    priority = Column(Integer, default=1, nullable=False)
    created_at = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), nullable=False)
    updated_at = Column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
        nullable=False
    )

    # Relationships
    followers = relationship("UserStreamer", back_populates="streamer", cascade="all, delete-orphan")
    items = relationship("WishlistItem", back_populates="streamer", cascade="all, delete-orphan")

    @validates('priority')
    def validate_priority(self, key, value):
        """Validate priority tier is 1, 2 or 3."""
        if value not in VALID_PRIORITIES:
            raise ValueError(f"priority must be one of {sorted(VALID_PRIORITIES)}, got {value}")
        return value


# Nicknames are unique regardless of case
Index("ix_streamers_nickname_lower", func.lower(Streamer.nickname), unique=True)


class UserStreamer(Base):
    """Link between a user and a streamer they track."""

    __tablename__ = "user_streamers"
    __table_args__ = (
        UniqueConstraint("user_id", "streamer_id", name="uq_user_streamer"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    streamer_id = Column(Integer, ForeignKey("streamers.id", ondelete="CASCADE"), nullable=False, index=True)
    created_at = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), nullable=False)

    # Relationships
    user = relationship("User", back_populates="tracked")
    streamer = relationship("Streamer", back_populates="followers")
