"""Core package initialization."""
from wishwatch.core.config import settings
from wishwatch.core.database import Base, get_db, init_db
from wishwatch.core.redis import get_redis, close_redis

__all__ = ["settings", "Base", "get_db", "init_db", "get_redis", "close_redis"]
