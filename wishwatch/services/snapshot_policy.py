"""Diff and anomaly policy for fetched wishlist snapshots."""
from dataclasses import dataclass, field
from typing import List, Optional, Sequence
from wishwatch.providers.models import CatalogItem


# Guards only apply once a streamer has more stored items than this
MIN_TRUSTED_STORED = 10

# Fewer fetched items than this (but more than zero) is treated as truncated
SEVERE_SHRINK_FLOOR = 5

# Largest fraction of the stored list allowed to vanish in one poll
MAX_DROP_RATIO = 0.3

# First sync larger than this is recorded silently
COLD_START_MAX_NOTIFY = 2

# Decision actions
SKIP = "skip"          # snapshot rejected, nothing persisted
SYNC = "sync"          # persist without notifying (cold start)
NOTIFY = "notify"      # notify, then persist
UNCHANGED = "unchanged"  # nothing new, persist to record removals


@dataclass
class SnapshotDecision:
    """What to do with a fetched snapshot."""
    action: str
    reason: str
    new_items: List[CatalogItem] = field(default_factory=list)

    @property
    def should_persist(self) -> bool:
        return self.action != SKIP

    @property
    def should_notify(self) -> bool:
        return self.action == NOTIFY


def find_new_items(
    stored: Sequence[CatalogItem],
    fetched: Sequence[CatalogItem]
) -> List[CatalogItem]:
    """
    Return fetched items that match no stored item.

    Matching is OR-based on (product_id, external_id), see items_match.

    Args:
        stored: Items currently stored for the streamer
        fetched: Items returned by the catalog

    Returns:
        New items in fetched order
    """
    return [
        item for item in fetched
        if not any(item.matches(known) for known in stored)
    ]


def check_anomaly(stored_count: int, fetched_count: int) -> Optional[str]:
    """
    Apply the anomaly guards in order.

    Returns:
        Name of the tripped guard, or None if the snapshot looks complete
    """
    if stored_count <= MIN_TRUSTED_STORED:
        return None

    if fetched_count == 0:
        return "empty_result"

    if fetched_count < SEVERE_SHRINK_FLOOR:
        return "severe_shrink"

    drop_ratio = (stored_count - fetched_count) / stored_count
    if drop_ratio > MAX_DROP_RATIO:
        return "proportional_drop"

    return None


def evaluate_snapshot(
    stored: Sequence[CatalogItem],
    fetched: Sequence[CatalogItem]
) -> SnapshotDecision:
    """
    Decide whether a fetched snapshot is trusted and what it means.

    Args:
        stored: Items currently stored for the streamer
        fetched: Items returned by the catalog

    Returns:
        SnapshotDecision describing the action and the new items
    """
    anomaly = check_anomaly(len(stored), len(fetched))
    if anomaly:
        return SnapshotDecision(action=SKIP, reason=anomaly)

    new_items = find_new_items(stored, fetched)

    if not stored and len(fetched) > COLD_START_MAX_NOTIFY:
        return SnapshotDecision(action=SYNC, reason="cold_start", new_items=new_items)

    if not new_items:
        return SnapshotDecision(action=UNCHANGED, reason="no_new_items")

    return SnapshotDecision(action=NOTIFY, reason="new_items", new_items=new_items)
