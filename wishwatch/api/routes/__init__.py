"""API routes package initialization."""
from wishwatch.api.routes import health

__all__ = ["health"]
