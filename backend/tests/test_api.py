"""Tests for the HTTP surface."""

import uuid
from datetime import datetime, timezone
from decimal import Decimal
from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest_asyncio
from jose import jwt
from sqlalchemy.ext.asyncio import AsyncSession

from krolist.config import settings
from krolist.core.exceptions import ConfigurationError
from krolist.dependencies import get_current_user, get_db, get_page_fetcher, get_partner_client
from krolist.main import app
from krolist.models import SearchLog, User
from krolist.scrapers.adapters.amazon import AmazonPartnerClient
from krolist.scrapers.base import NormalizedProduct, PartnerLookup
from krolist.scrapers.page_fetcher import PageFetcher

URL = "https://www.amazon.sa/dp/B08N5WRWNW"


def _user(is_admin: bool = False) -> User:
    return User(id=uuid.uuid4(), email="shopper@example.com", is_active=True, is_admin=is_admin)


def _partner(**kwargs) -> MagicMock:
    client = MagicMock(spec=AmazonPartnerClient)
    client.fetch_by_identifier = AsyncMock(**kwargs)
    return client


@pytest_asyncio.fixture
async def client(test_db: AsyncSession):
    """HTTP client with the database dependency bound to the test session."""

    async def _override_db():
        yield test_db

    app.dependency_overrides[get_db] = _override_db
    async with httpx.AsyncClient(transport=httpx.ASGITransport(app=app), base_url="http://test") as http:
        yield http
    app.dependency_overrides.clear()


def _login_as(user: User) -> None:
    app.dependency_overrides[get_current_user] = lambda: user


class TestSearchEndpoint:
    """Tests for POST /api/v1/search."""

    async def test_requires_authentication(self, client):
        response = await client.post("/api/v1/search", json={"url": URL})

        assert response.status_code == 401

    async def test_invalid_token_is_rejected(self, client):
        response = await client.post(
            "/api/v1/search", json={"url": URL}, headers={"Authorization": "Bearer not-a-jwt"}
        )

        assert response.status_code == 401

    async def test_bearer_token_resolves_user(self, client, test_db: AsyncSession):
        user = _user()
        test_db.add(user)
        await test_db.commit()
        token = jwt.encode({"sub": str(user.id)}, settings.JWT_SECRET_KEY, algorithm=settings.JWT_ALGORITHM)
        product = NormalizedProduct(
            external_id="B08N5WRWNW", title="Echo Dot", current_price=Decimal("199.00"),
            product_url="https://www.amazon.sa/dp/B08N5WRWNW?tag=krolist07-21",
        )
        app.dependency_overrides[get_partner_client] = lambda: _partner(return_value=PartnerLookup(product=product))

        response = await client.post(
            "/api/v1/search", json={"url": URL}, headers={"Authorization": f"Bearer {token}"}
        )

        assert response.status_code == 200
        body = response.json()
        assert body["allowed"] is True
        assert body["remaining"] == 4
        assert body["product"]["external_id"] == "B08N5WRWNW"
        assert Decimal(str(body["product"]["current_price"])) == Decimal("199.00")

    async def test_requires_query_or_url(self, client):
        _login_as(_user())

        response = await client.post("/api/v1/search", json={})

        assert response.status_code == 422

    async def test_quota_exhausted_returns_429_with_decision(self, client, test_db: AsyncSession):
        user = _user()
        _login_as(user)
        for _ in range(5):
            test_db.add(SearchLog(user_id=str(user.id), query=URL, searched_at=datetime.now(timezone.utc)))
        await test_db.commit()
        partner = _partner(return_value=PartnerLookup())
        app.dependency_overrides[get_partner_client] = lambda: partner

        response = await client.post("/api/v1/search", json={"url": URL})

        assert response.status_code == 429
        body = response.json()
        assert body["allowed"] is False
        assert body["remaining"] == 0
        assert body["reset_at"]
        assert body["message"].startswith("Daily search limit reached")
        partner.fetch_by_identifier.assert_not_awaited()

    async def test_missing_credentials_return_503(self, client):
        _login_as(_user())
        app.dependency_overrides[get_partner_client] = lambda: _partner(
            side_effect=ConfigurationError("AMAZON_ACCESS_KEY")
        )

        response = await client.post("/api/v1/search", json={"url": URL})

        assert response.status_code == 503
        assert response.json()["error"]["code"] == "configuration_error"


class TestAdminEndpoints:
    """Tests for /api/v1/admin."""

    async def test_non_admin_forbidden(self, client):
        _login_as(_user(is_admin=False))

        response = await client.post("/api/v1/admin/refresh-prices", json={})

        assert response.status_code == 403

    async def test_refresh_returns_counts(self, client):
        _login_as(_user(is_admin=True))

        response = await client.post("/api/v1/admin/refresh-prices", json={"collection_title": "Empty"})

        assert response.status_code == 200
        assert response.json() == {"updated": 0, "failed": 0, "total": 0, "collection": "Empty"}

    async def test_refresh_without_body_covers_all(self, client):
        _login_as(_user(is_admin=True))

        response = await client.post("/api/v1/admin/refresh-prices")

        assert response.status_code == 200
        assert response.json()["collection"] == "ALL"

    async def test_refresh_updates_featured_listing(self, client, sample_listing):
        _login_as(_user(is_admin=True))
        fetcher = AsyncMock(spec=PageFetcher)
        fetcher.fetch.return_value = '<span class="a-offscreen">SAR&nbsp;179.00</span>'
        app.dependency_overrides[get_page_fetcher] = lambda: fetcher

        response = await client.post("/api/v1/admin/refresh-prices", json={"collection_title": "Smart Home"})

        assert response.status_code == 200
        assert response.json() == {"updated": 1, "failed": 0, "total": 1, "collection": "Smart Home"}
        fetcher.fetch.assert_awaited_once_with(sample_listing.product_url)

        history = await client.get(f"/api/v1/admin/listings/{sample_listing.id}/price-history")
        body = history.json()
        assert Decimal(str(body["current_price"])) == Decimal("179.00")
        assert len(body["history"]) == 1

    async def test_price_history_unknown_listing_404(self, client):
        _login_as(_user(is_admin=True))

        response = await client.get(f"/api/v1/admin/listings/{uuid.uuid4()}/price-history")

        assert response.status_code == 404

    async def test_price_history_for_listing(self, client, sample_listing):
        _login_as(_user(is_admin=True))

        response = await client.get(f"/api/v1/admin/listings/{sample_listing.id}/price-history")

        assert response.status_code == 200
        body = response.json()
        assert body["listing_id"] == str(sample_listing.id)
        assert body["history"] == []


async def test_health(client):
    response = await client.get("/api/v1/health")

    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "ok"
    assert body["database"] == "ok"
    assert body["amazon_credentials"] is False
