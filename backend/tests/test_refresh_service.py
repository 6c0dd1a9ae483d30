"""Tests for the batch price refresh orchestrator."""

from datetime import datetime, timezone
from decimal import Decimal
from unittest.mock import AsyncMock, MagicMock
from uuid import uuid4

from sqlalchemy.ext.asyncio import AsyncSession

from krolist.models import Listing
from krolist.scrapers.adapters.amazon import AmazonPartnerClient
from krolist.scrapers.base import (
    FailureReason,
    NormalizedProduct,
    PartnerCredentials,
    PartnerFailure,
    PartnerLookup,
)
from krolist.scrapers.extraction import PriceExtractionEngine
from krolist.scrapers.page_fetcher import PageFetcher, PageFetchError
from krolist.scrapers.refresh_service import SOURCE_PAGE, SOURCE_PARTNER_API, PriceRefreshService
from krolist.services.listing_service import ListingService, ListingSnapshot

NOW = datetime(2026, 10, 17, 0, 0, tzinfo=timezone.utc)
PAGE = '<span class="a-offscreen">SAR&nbsp;1,299.00</span>'


def _snapshot(index: int, url: str = None, store: str = "amazon", price: str = "1000.00") -> ListingSnapshot:
    return ListingSnapshot(
        id=uuid4(),
        url=url or f"https://www.amazon.sa/dp/B0000000{index:02d}",
        store_key=store,
        title=f"Listing {index}",
        current_price=Decimal(price),
    )


def _listing_service(listings) -> AsyncMock:
    service = AsyncMock(spec=ListingService)
    service.listings.return_value = listings
    return service


def _fetcher(*pages) -> AsyncMock:
    fetcher = AsyncMock(spec=PageFetcher)
    if len(pages) == 1 and not isinstance(pages[0], list):
        fetcher.fetch.return_value = pages[0]
    else:
        fetcher.fetch.side_effect = pages[0]
    return fetcher


def _partner(lookup: PartnerLookup) -> MagicMock:
    client = MagicMock(spec=AmazonPartnerClient)
    client.credentials = PartnerCredentials(access_key="AK", secret_key="SK", partner_tag="krolist07-21")
    client.fetch_by_identifier = AsyncMock(return_value=lookup)
    return client


class Sleeps:
    def __init__(self):
        self.calls = []

    async def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)


def _service(listing_service, fetcher, partner=None, sleep=None) -> PriceRefreshService:
    return PriceRefreshService(
        listing_service,
        fetcher=fetcher,
        engine=PriceExtractionEngine(),
        partner_client=partner,
        delay_seconds=0.15,
        sleep=sleep or Sleeps(),
        clock=lambda: NOW,
    )


class TestPriceRefreshService:
    """Tests for PriceRefreshService.refresh."""

    async def test_one_failing_item_does_not_abort_run(self):
        listings = [_snapshot(i) for i in range(10)]
        pages = [PAGE] * 10
        pages[4] = PageFetchError(listings[4].url, "HTTP 503", 503)
        listing_service = _listing_service(listings)
        sleeps = Sleeps()

        result = await _service(listing_service, _fetcher(pages), sleep=sleeps).refresh()

        assert (result.updated, result.failed, result.total) == (9, 1, 10)
        assert result.scope == "ALL"
        assert listing_service.update_listing.await_count == 9
        assert sleeps.calls == [0.15] * 9

        updated_ids = [call.args[0] for call in listing_service.update_listing.await_args_list]
        assert listings[4].id not in updated_ids
        assert updated_ids[4] == listings[5].id

    async def test_unexpected_exception_is_counted_as_failure(self):
        listings = [_snapshot(i) for i in range(3)]
        listing_service = _listing_service(listings)
        listing_service.update_listing.side_effect = [None, RuntimeError("write failed"), None]

        result = await _service(listing_service, _fetcher(PAGE)).refresh()

        assert (result.updated, result.failed, result.total) == (2, 1, 3)

    async def test_history_write_failure_still_counts_as_updated(self):
        listing_service = _listing_service([_snapshot(1)])
        listing_service.record_price_history.side_effect = RuntimeError("history table locked")

        result = await _service(listing_service, _fetcher(PAGE)).refresh()

        assert (result.updated, result.failed, result.total) == (1, 0, 1)
        listing_service.update_listing.assert_awaited_once()

    async def test_no_price_found_is_failure(self):
        listing_service = _listing_service([_snapshot(1)])

        result = await _service(listing_service, _fetcher("<html>Currently unavailable</html>")).refresh()

        assert (result.updated, result.failed) == (0, 1)
        listing_service.update_listing.assert_not_awaited()

    async def test_update_writes_price_and_checked_at(self):
        listing = _snapshot(1)
        listing_service = _listing_service([listing])

        await _service(listing_service, _fetcher(PAGE)).refresh()

        listing_service.update_listing.assert_awaited_once_with(
            listing.id, current_price=Decimal("1299.00"), last_checked_at=NOW
        )

    async def test_collection_scope_passed_through(self):
        listing_service = _listing_service([])

        result = await _service(listing_service, _fetcher(PAGE)).refresh("Ramadan Deals")

        listing_service.listings.assert_awaited_once_with("Ramadan Deals")
        assert result.scope == "Ramadan Deals"
        assert result.total == 0

    async def test_all_collection_means_no_filter(self):
        result = await _service(_listing_service([]), _fetcher(PAGE)).refresh("all")

        assert result.scope == "ALL"

    async def test_missing_store_key_is_detected_from_url(self):
        listing = _snapshot(1, url="https://www.noon.com/saudi-en/p/N123", store=None)
        listing_service = _listing_service([listing])

        result = await _service(listing_service, _fetcher('{"sale_price": 89.00}')).refresh()

        assert result.updated == 1
        listing_service.update_listing.assert_awaited_once_with(
            listing.id, current_price=Decimal("89.00"), last_checked_at=NOW
        )

    async def test_partner_price_used_before_page_fetch(self):
        listing = _snapshot(1, url="https://www.amazon.sa/dp/B08N5WRWNW")
        product = NormalizedProduct(
            external_id="B08N5WRWNW",
            title="Echo Dot",
            current_price=Decimal("179.00"),
            product_url="https://www.amazon.sa/dp/B08N5WRWNW?tag=krolist07-21",
        )
        partner = _partner(PartnerLookup(product=product))
        fetcher = _fetcher(PAGE)
        listing_service = _listing_service([listing])

        await _service(listing_service, fetcher, partner=partner).refresh()

        partner.fetch_by_identifier.assert_awaited_once_with("B08N5WRWNW")
        fetcher.fetch.assert_not_awaited()
        listing_service.update_listing.assert_awaited_once_with(
            listing.id, current_price=Decimal("179.00"), last_checked_at=NOW
        )
        listing_service.record_price_history.assert_awaited_once_with(
            listing, Decimal("179.00"), SOURCE_PARTNER_API
        )

    async def test_partner_failure_falls_back_to_page(self):
        listing = _snapshot(1, url="https://www.amazon.sa/dp/B08N5WRWNW")
        partner = _partner(PartnerLookup(failure=PartnerFailure(FailureReason.RATE_LIMITED, "limit", 429)))
        fetcher = _fetcher(PAGE)
        listing_service = _listing_service([listing])

        result = await _service(listing_service, fetcher, partner=partner).refresh()

        assert result.updated == 1
        fetcher.fetch.assert_awaited_once_with(listing.url)

    async def test_non_amazon_listing_skips_partner(self):
        listing = _snapshot(1, url="https://www.noon.com/saudi-en/p/N123", store="noon")
        partner = _partner(PartnerLookup())

        await _service(_listing_service([listing]), _fetcher('{"sale_price": 10}'), partner=partner).refresh()

        partner.fetch_by_identifier.assert_not_awaited()

    async def test_price_history_only_when_changed(self):
        unchanged = _snapshot(1, price="1299.00")
        changed = _snapshot(2, price="1399.00")
        listing_service = _listing_service([unchanged, changed])

        await _service(listing_service, _fetcher(PAGE)).refresh()

        listing_service.record_price_history.assert_awaited_once_with(changed, Decimal("1299.00"), SOURCE_PAGE)


class TestRefreshWithDatabase:
    """Refresh against the real listing persistence."""

    async def test_refresh_persists_exact_decimal(self, test_db: AsyncSession, sample_listing: Listing):
        service = PriceRefreshService(
            ListingService(test_db),
            fetcher=_fetcher(PAGE),
            delay_seconds=0,
            clock=lambda: NOW,
        )

        result = await service.refresh("Smart Home")

        assert (result.updated, result.failed, result.total) == (1, 0, 1)

        await test_db.refresh(sample_listing)
        assert sample_listing.current_price == Decimal("1299.00")
        assert sample_listing.last_checked_at is not None

        history = await ListingService(test_db).get_price_history(sample_listing.id)
        assert [h.price for h in history] == [Decimal("1299.00")]
        assert history[0].source == SOURCE_PAGE
