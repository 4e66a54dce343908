"""Data models for catalog snapshots."""
from dataclasses import dataclass, field
from typing import List, Optional


@dataclass
class CatalogItem:
    """Single wishlist entry as returned by the catalog source.

    An item carries two independent external keys. The source occasionally
    reassigns one of them, so identity is loose: two items are the same if
    either key pair matches.
    """
    product_id: Optional[str] = None
    external_id: Optional[str] = None
    name: Optional[str] = None
    price: Optional[str] = None
    image: Optional[str] = None
    product_url: Optional[str] = None

    def matches(self, other: "CatalogItem") -> bool:
        """Return True if either product_id or external_id matches."""
        return items_match(self, other)


def items_match(a: CatalogItem, b: CatalogItem) -> bool:
    """OR-based identity check on the two external keys.

    Absent keys never match each other.
    """
    if a.product_id is not None and a.product_id == b.product_id:
        return True
    if a.external_id is not None and a.external_id == b.external_id:
        return True
    return False


@dataclass
class StreamerProfile:
    """Public profile details shown on the catalog page."""
    name: Optional[str] = None
    avatar: Optional[str] = None
    description: Optional[str] = None


@dataclass
class FetchResult:
    """Outcome of a single catalog fetch."""
    success: bool
    items: List[CatalogItem] = field(default_factory=list)
    error: Optional[str] = None
    profile: Optional[StreamerProfile] = None
