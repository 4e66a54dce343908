"""Wishlist item store: last known snapshot per streamer."""
import logging
from typing import List, Sequence
from sqlalchemy import select, delete
from sqlalchemy.ext.asyncio import AsyncSession
from wishwatch.models import WishlistItem
from wishwatch.providers.models import CatalogItem
from wishwatch.services.snapshot_policy import find_new_items

logger = logging.getLogger(__name__)


def to_catalog_item(row: WishlistItem) -> CatalogItem:
    """Convert a stored row into a CatalogItem."""
    return CatalogItem(
        product_id=row.product_id,
        external_id=row.external_id,
        name=row.name,
        price=row.price,
        image=row.image,
        product_url=row.product_url
    )


class WishlistService:
    """Service for stored wishlist snapshots."""

    @staticmethod
    async def _get_rows(db: AsyncSession, streamer_id: int) -> List[WishlistItem]:
        result = await db.execute(
            select(WishlistItem)
            .where(WishlistItem.streamer_id == streamer_id)
            .order_by(WishlistItem.id)
        )
        return list(result.scalars().all())

    @staticmethod
    async def get_stored_items(db: AsyncSession, streamer_id: int) -> List[CatalogItem]:
        """
        Get the last known wishlist of a streamer.

        Args:
            db: Database session
            streamer_id: Streamer ID

        Returns:
            List of CatalogItem objects
        """
        rows = await WishlistService._get_rows(db, streamer_id)
        return [to_catalog_item(row) for row in rows]

    @staticmethod
    async def find_new_items(
        db: AsyncSession,
        streamer_id: int,
        fetched: Sequence[CatalogItem]
    ) -> List[CatalogItem]:
        """Diff fetched items against the stored snapshot."""
        stored = await WishlistService.get_stored_items(db, streamer_id)
        return find_new_items(stored, fetched)

    @staticmethod
    async def save_snapshot(
        db: AsyncSession,
        streamer_id: int,
        items: Sequence[CatalogItem]
    ) -> dict:
        """
        Replace the stored snapshot with the fetched one.

        Stored rows matching no fetched item are deleted, fetched items
        matching no stored row are inserted, matched rows are left as is.

        Args:
            db: Database session
            streamer_id: Streamer ID
            items: Fetched items

        Returns:
            Dict with "added" and "removed" counts
        """
        rows = await WishlistService._get_rows(db, streamer_id)

        stale_ids = [
            row.id for row in rows
            if not any(item.matches(to_catalog_item(row)) for item in items)
        ]
        if stale_ids:
            await db.execute(delete(WishlistItem).where(WishlistItem.id.in_(stale_ids)))

        kept = [to_catalog_item(row) for row in rows if row.id not in stale_ids]
        added: List[CatalogItem] = []

        for item in items:
            # Skip items already stored or repeated within this snapshot
            if any(item.matches(known) for known in kept + added):
                continue
            db.add(WishlistItem(
                streamer_id=streamer_id,
                product_id=item.product_id,
                external_id=item.external_id,
                name=item.name,
                price=item.price,
                image=item.image,
                product_url=item.product_url
            ))
            added.append(item)

        await db.commit()

        logger.debug(
            f"Saved snapshot for streamer {streamer_id}: "
            f"+{len(added)} / -{len(stale_ids)}"
        )
        return {"added": len(added), "removed": len(stale_ids)}
