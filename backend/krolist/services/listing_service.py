"""Listing persistence: read refresh targets and write back prices."""

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import List, Optional
from uuid import UUID

import structlog
from sqlalchemy import select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from krolist.models.listing import Listing
from krolist.models.price_history import ListingPriceHistory

logger = structlog.get_logger(__name__)

ALL_COLLECTIONS = "all"


@dataclass(frozen=True)
class ListingSnapshot:
    """Read-only view of a listing handed to the refresh loop."""

    id: UUID
    url: str
    store_key: Optional[str]
    title: str
    current_price: Optional[Decimal]
    currency: str = "SAR"
    original_price: Optional[Decimal] = None


class ListingService:
    """Reads featured listings and applies partial price updates."""

    def __init__(self, db: AsyncSession):
        """Initialize listing service.

        Args:
            db: Async database session
        """
        self.db = db
        self.logger = logger.bind(service="listing_service")

    async def listings(self, collection: Optional[str] = None) -> List[ListingSnapshot]:
        """Featured listings, optionally restricted to one collection.

        Args:
            collection: Collection title; None or "all" selects every collection

        Returns:
            Snapshots in stable (created_at, id) order
        """
        stmt = select(Listing).where(Listing.is_featured.is_(True))
        if collection and collection.lower() != ALL_COLLECTIONS:
            stmt = stmt.where(Listing.collection_title == collection)
        stmt = stmt.order_by(Listing.created_at, Listing.id)

        result = await self.db.execute(stmt)
        rows = result.scalars().all()

        self.logger.info("listings_selected", collection=collection or "ALL", count=len(rows))

        return [
            ListingSnapshot(
                id=row.id,
                url=row.product_url,
                store_key=row.store,
                title=row.title,
                current_price=row.current_price,
                currency=row.currency,
                original_price=row.original_price,
            )
            for row in rows
        ]

    async def get_listing(self, listing_id: UUID) -> Optional[Listing]:
        """Fetch a single listing by ID."""
        result = await self.db.execute(select(Listing).where(Listing.id == listing_id))
        return result.scalar_one_or_none()

    async def update_listing(
        self,
        listing_id: UUID,
        current_price: Decimal,
        last_checked_at: datetime,
    ) -> None:
        """Partial update of price fields for one listing; other columns untouched.

        Raises:
            SQLAlchemyError: If the write fails (the session is rolled back first)
        """
        try:
            await self.db.execute(
                update(Listing)
                .where(Listing.id == listing_id)
                .values(current_price=current_price, last_checked_at=last_checked_at)
            )
            await self.db.commit()
        except SQLAlchemyError:
            await self.db.rollback()
            raise

    async def record_price_history(
        self,
        listing: ListingSnapshot,
        price: Decimal,
        source: str,
    ) -> None:
        """Append a price history row for a changed price."""
        try:
            self.db.add(
                ListingPriceHistory(
                    product_id=listing.id,
                    price=price,
                    original_price=listing.original_price,
                    currency=listing.currency or "SAR",
                    source=source,
                )
            )
            await self.db.commit()
        except SQLAlchemyError:
            await self.db.rollback()
            raise

    async def get_price_history(self, listing_id: UUID) -> List[ListingPriceHistory]:
        """Price history for a listing, newest first."""
        result = await self.db.execute(
            select(ListingPriceHistory)
            .where(ListingPriceHistory.product_id == listing_id)
            .order_by(ListingPriceHistory.recorded_at.desc())
        )
        return list(result.scalars().all())
