"""Tests for the quota-gated interactive search flow."""

from datetime import datetime, timezone
from decimal import Decimal
from unittest.mock import AsyncMock, MagicMock

import pytest
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from krolist.core.exceptions import ConfigurationError, QuotaPersistenceError
from krolist.models import SearchLog
from krolist.scrapers.adapters.amazon import AmazonPartnerClient
from krolist.scrapers.base import FailureReason, NormalizedProduct, PartnerFailure, PartnerLookup
from krolist.services.quota_service import QuotaDecision, QuotaService, SearchLogRepository
from krolist.services.search_service import (
    UNRESOLVED_MESSAGE,
    SearchService,
    is_manual_entry_failure,
)

NOW = datetime(2026, 10, 17, 9, 30, tzinfo=timezone.utc)
USER = "user-1"
URL = "https://www.amazon.sa/Echo-Dot/dp/B08N5WRWNW?ref=x"


def _product() -> NormalizedProduct:
    return NormalizedProduct(
        external_id="B08N5WRWNW",
        title="Echo Dot",
        current_price=Decimal("199.00"),
        product_url="https://www.amazon.sa/dp/B08N5WRWNW?tag=krolist07-21",
    )


def _partner(lookup: PartnerLookup) -> MagicMock:
    client = MagicMock(spec=AmazonPartnerClient)
    client.fetch_by_identifier = AsyncMock(return_value=lookup)
    return client


def _quota(db: AsyncSession) -> QuotaService:
    return QuotaService(SearchLogRepository(db), daily_limit=5, tz="Asia/Riyadh", clock=lambda: NOW)


async def _log_count(db: AsyncSession) -> int:
    return (await db.execute(select(func.count(SearchLog.id)))).scalar_one()


class TestResolveInput:
    """Tests for SearchService.resolve_input."""

    def test_url(self):
        assert SearchService.resolve_input(url=URL) == "B08N5WRWNW"

    def test_bare_identifier_query(self):
        assert SearchService.resolve_input(query=" b08n5wrwnw ") == "B08N5WRWNW"

    def test_url_pasted_in_query(self):
        assert SearchService.resolve_input(query=URL) == "B08N5WRWNW"

    def test_non_marketplace_url_is_rejected(self):
        assert SearchService.resolve_input(url="https://www.noon.com/dp/B08N5WRWNW") is None

    def test_free_text_is_unresolved(self):
        assert SearchService.resolve_input(query="echo dot") is None

    @pytest.mark.parametrize("word", ["headphones", "smartwatch", "television", "sunglasses"])
    def test_ten_letter_word_is_not_an_identifier(self, word):
        assert SearchService.resolve_input(query=word) is None

    def test_isbn_query(self):
        assert SearchService.resolve_input(query="059035342x") == "059035342X"


class TestSearchService:
    """Tests for SearchService.search."""

    async def test_allowed_search_returns_product_and_logs(self, test_db: AsyncSession):
        partner = _partner(PartnerLookup(product=_product()))
        service = SearchService(_quota(test_db), partner)

        outcome = await service.search(USER, url=URL)

        partner.fetch_by_identifier.assert_awaited_once_with("B08N5WRWNW")
        assert outcome.identifier == "B08N5WRWNW"
        assert outcome.product.current_price == Decimal("199.00")
        assert outcome.decision.allowed is True
        assert outcome.decision.remaining == 4
        assert outcome.logged is True
        assert await _log_count(test_db) == 1

    async def test_limit_reached_skips_lookup(self, test_db: AsyncSession):
        for _ in range(5):
            test_db.add(SearchLog(user_id=USER, query="q", searched_at=NOW))
        await test_db.commit()

        partner = _partner(PartnerLookup(product=_product()))
        outcome = await SearchService(_quota(test_db), partner).search(USER, url=URL)

        partner.fetch_by_identifier.assert_not_awaited()
        assert outcome.decision.allowed is False
        assert outcome.decision.remaining == 0
        assert outcome.message.startswith("Daily search limit reached, resets at ")
        assert await _log_count(test_db) == 5

    async def test_unresolved_input_is_not_charged(self, test_db: AsyncSession):
        partner = _partner(PartnerLookup(product=_product()))

        outcome = await SearchService(_quota(test_db), partner).search(USER, query="echo dot")

        assert outcome.message == UNRESOLVED_MESSAGE
        partner.fetch_by_identifier.assert_not_awaited()
        assert await _log_count(test_db) == 0

    async def test_dictionary_word_query_is_not_charged(self, test_db: AsyncSession):
        partner = _partner(PartnerLookup(product=_product()))

        outcome = await SearchService(_quota(test_db), partner).search(USER, query="headphones")

        assert outcome.message == UNRESOLVED_MESSAGE
        partner.fetch_by_identifier.assert_not_awaited()
        assert await _log_count(test_db) == 0

    async def test_partner_failure_is_reported_and_charged(self, test_db: AsyncSession):
        failure = PartnerFailure(FailureReason.NOT_ELIGIBLE, "Please enter the product details manually.", 403)
        partner = _partner(PartnerLookup(failure=failure))

        outcome = await SearchService(_quota(test_db), partner).search(USER, url=URL)

        assert outcome.product is None
        assert outcome.failure.reason is FailureReason.NOT_ELIGIBLE
        assert is_manual_entry_failure(outcome.failure)
        assert await _log_count(test_db) == 1

    async def test_log_failure_does_not_revoke_result(self):
        quota = AsyncMock(spec=QuotaService)
        quota.check_and_consume.return_value = QuotaDecision(
            allowed=True, remaining=5, reset_at=datetime(2026, 10, 18, tzinfo=timezone.utc)
        )
        quota.record_search.side_effect = QuotaPersistenceError(USER, "insert failed")
        partner = _partner(PartnerLookup(product=_product()))

        outcome = await SearchService(quota, partner).search(USER, url=URL)

        assert outcome.product is not None
        assert outcome.decision.allowed is True
        assert outcome.decision.remaining == 5
        assert outcome.logged is False

    async def test_missing_credentials_propagate_without_charge(self, test_db: AsyncSession):
        partner = MagicMock(spec=AmazonPartnerClient)
        partner.fetch_by_identifier = AsyncMock(side_effect=ConfigurationError("AMAZON_ACCESS_KEY"))

        with pytest.raises(ConfigurationError):
            await SearchService(_quota(test_db), partner).search(USER, url=URL)

        assert await _log_count(test_db) == 0
