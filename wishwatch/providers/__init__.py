"""Abstract interface for wishlist catalog providers."""
from abc import ABC, abstractmethod
from wishwatch.providers.models import CatalogItem, FetchResult, StreamerProfile, items_match


class CatalogProvider(ABC):
    """Abstract base class for wishlist data providers."""

    @abstractmethod
    async def get_wishlist(self, nickname: str) -> FetchResult:
        """
        Fetch the current wishlist of a streamer.

        Args:
            nickname: Streamer nickname on the catalog site

        Returns:
            FetchResult with success flag and items

        Raises:
            RateLimitError: If the source signalled a rate limit
            ProviderError: If the fetch failed for another reason
        """
        pass

    async def close(self):
        """Release underlying resources."""
        pass


class ProviderError(Exception):
    """Exception raised when provider API fails."""
    pass


class RateLimitError(ProviderError):
    """Raised when the catalog source answers with a rate limit (HTTP 429)."""
    pass


__all__ = [
    "CatalogProvider",
    "ProviderError",
    "RateLimitError",
    "CatalogItem",
    "FetchResult",
    "StreamerProfile",
    "items_match"
]
