"""Shared pytest fixtures for wishwatch tests."""
import pytest
from typing import Optional
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.pool import StaticPool
from wishwatch.core.database import Base
from wishwatch.models import *  # noqa
from wishwatch.providers.models import CatalogItem
from wishwatch.services.streamer_service import TrackedStreamer


def make_item(
    product_id: Optional[str] = None,
    external_id: Optional[str] = None,
    name: Optional[str] = None,
    price: str = "1000 ₽"
) -> CatalogItem:
    """Factory function to create CatalogItem instances for testing."""
    return CatalogItem(
        product_id=product_id,
        external_id=external_id,
        name=name or f"Item {product_id or external_id}",
        price=price,
        image="",
        product_url=""
    )


def make_items(count: int, prefix: str = "p") -> list:
    """Create `count` items with distinct product ids."""
    return [make_item(product_id=f"{prefix}{i}") for i in range(count)]


def make_streamer(
    streamer_id: int = 1,
    nickname: Optional[str] = None,
    priority: int = 1
) -> TrackedStreamer:
    """Factory function to create TrackedStreamer instances for testing."""
    nickname = nickname or f"streamer{streamer_id}"
    return TrackedStreamer(
        id=streamer_id,
        nickname=nickname,
        name=nickname.title(),
        url=f"https://fetta.app/u/{nickname}",
        priority=priority
    )


@pytest.fixture
async def test_engine():
    """In-memory SQLite engine with the full schema."""
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False}
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
def session_factory(test_engine):
    """Session factory bound to the test engine."""
    return async_sessionmaker(
        test_engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autocommit=False,
        autoflush=False
    )


@pytest.fixture
async def db_session(session_factory):
    """Fresh database session for each test."""
    async with session_factory() as session:
        yield session
