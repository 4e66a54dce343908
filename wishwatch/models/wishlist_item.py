"""Stored wishlist item model."""
from sqlalchemy import Column, String, Integer, DateTime, ForeignKey, UniqueConstraint
from sqlalchemy.orm import relationship
from datetime import datetime, timezone
from wishwatch.core.database import Base


class WishlistItem(Base):
    """Last known wishlist entry of a streamer."""

    __tablename__ = "wishlist_items"
    __table_args__ = (
        UniqueConstraint("streamer_id", "product_id", name="uq_streamer_product"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    streamer_id = Column(Integer, ForeignKey("streamers.id", ondelete="CASCADE"), nullable=False, index=True)
    product_id = Column(String, nullable=True)
    external_id = Column(String, nullable=True)
    name = Column(String, nullable=True)
    price = Column(String, nullable=True)
    image = Column(String, nullable=True)
    product_url = Column(String, nullable=True)
    created_at = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), nullable=False)

    # Relationship
    streamer = relationship("Streamer", back_populates="items")
