"""Batch price refresh over stored listings.

Listings are processed one at a time in selection order. A failure on one
listing is counted and logged; it never stops the run.
"""

import asyncio
from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal
from typing import Awaitable, Callable, Optional, Tuple

import structlog

from krolist.config import settings
from krolist.scrapers.adapters.amazon import AmazonPartnerClient
from krolist.scrapers.extraction import PriceExtractionEngine
from krolist.scrapers.page_fetcher import PageFetcher
from krolist.scrapers.utils.marketplace import is_known_marketplace, resolve_identifier
from krolist.scrapers.utils.normalizer import PriceNormalizer, detect_store
from krolist.services.listing_service import ListingService, ListingSnapshot

logger = structlog.get_logger(__name__)

SOURCE_PARTNER_API = "paapi"
SOURCE_PAGE = "page"


@dataclass
class RefreshJobResult:
    """Aggregate counts for one refresh run."""

    updated: int = 0
    failed: int = 0
    total: int = 0
    scope: str = "ALL"


class PriceRefreshService:
    """Revalidates current prices for featured listings."""

    def __init__(
        self,
        listing_service: ListingService,
        fetcher: Optional[PageFetcher] = None,
        engine: Optional[PriceExtractionEngine] = None,
        partner_client: Optional[AmazonPartnerClient] = None,
        delay_seconds: Optional[float] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
    ):
        """Initialize refresh service.

        Args:
            listing_service: Listing persistence
            fetcher: Page fetcher for static content
            engine: Price extraction engine
            partner_client: Optional PA-API client tried first for Amazon URLs
            delay_seconds: Pause between listings (defaults to REFRESH_ITEM_DELAY_MS)
            sleep: Awaitable used for the pause
            clock: Source of ``last_checked_at`` timestamps
        """
        self.listing_service = listing_service
        self.fetcher = fetcher or PageFetcher()
        self.engine = engine or PriceExtractionEngine()
        self.partner_client = partner_client
        self.delay_seconds = (
            delay_seconds if delay_seconds is not None else settings.REFRESH_ITEM_DELAY_MS / 1000
        )
        self._sleep = sleep
        self._clock = clock
        self.logger = logger.bind(service="price_refresh")

    async def refresh(self, collection: Optional[str] = None) -> RefreshJobResult:
        """Refresh every featured listing, optionally within one collection.

        Args:
            collection: Collection title; None or "all" refreshes everything

        Returns:
            RefreshJobResult with updated/failed/total counts
        """
        scope = collection if collection and collection.lower() != "all" else "ALL"
        listings = await self.listing_service.listings(collection)
        result = RefreshJobResult(total=len(listings), scope=scope)

        self.logger.info("price_refresh_started", scope=scope, total=result.total)

        for index, listing in enumerate(listings):
            if index > 0 and self.delay_seconds > 0:
                await self._sleep(self.delay_seconds)

            try:
                if await self._refresh_one(listing):
                    result.updated += 1
                else:
                    result.failed += 1
            except Exception as e:
                result.failed += 1
                self.logger.error(
                    "listing_refresh_failed",
                    listing_id=str(listing.id),
                    url=listing.url,
                    error=str(e),
                    exc_info=True,
                )

        self.logger.info(
            "price_refresh_completed",
            scope=scope,
            updated=result.updated,
            failed=result.failed,
            total=result.total,
        )
        return result

    async def _refresh_one(self, listing: ListingSnapshot) -> bool:
        """Acquire and persist a price for one listing. Returns True when updated."""
        price, source = await self._acquire_price(listing)

        if not PriceNormalizer.is_valid_price(price):
            self.logger.warning("listing_price_not_found", listing_id=str(listing.id), url=listing.url)
            return False

        await self.listing_service.update_listing(
            listing.id,
            current_price=price,
            last_checked_at=self._clock(),
        )

        if listing.current_price is None or Decimal(listing.current_price) != price:
            try:
                await self.listing_service.record_price_history(listing, price, source)
            except Exception as e:
                self.logger.warning(
                    "price_history_write_failed",
                    listing_id=str(listing.id),
                    error=str(e),
                )
            self.logger.info(
                "listing_price_changed",
                listing_id=str(listing.id),
                old_price=str(listing.current_price) if listing.current_price is not None else None,
                new_price=str(price),
                source=source,
            )
        else:
            self.logger.debug("listing_price_unchanged", listing_id=str(listing.id), price=str(price))

        return True

    async def _acquire_price(self, listing: ListingSnapshot) -> Tuple[Optional[Decimal], str]:
        """Partner API first for Amazon listings, then static page extraction."""
        if self._partner_available() and is_known_marketplace(listing.url):
            identifier = resolve_identifier(listing.url)
            if identifier:
                lookup = await self.partner_client.fetch_by_identifier(identifier)
                if lookup.ok:
                    return lookup.product.current_price, SOURCE_PARTNER_API
                self.logger.info(
                    "partner_lookup_fallback",
                    listing_id=str(listing.id),
                    reason=lookup.failure.reason.value,
                )

        store_key = listing.store_key or detect_store(listing.url)
        content = await self.fetcher.fetch(listing.url)
        return self.engine.extract_price(content, store_key), SOURCE_PAGE

    def _partner_available(self) -> bool:
        return self.partner_client is not None and not self.partner_client.credentials.missing_fields()
