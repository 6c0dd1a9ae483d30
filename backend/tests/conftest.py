"""Pytest configuration and shared fixtures."""

import os

# Must be set before krolist.config / krolist.db.session are imported
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("DEBUG", "false")
os.environ.setdefault("AMAZON_ACCESS_KEY", "")
os.environ.setdefault("AMAZON_SECRET_KEY", "")

from datetime import datetime, timezone
from decimal import Decimal

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from krolist.models import Base, Listing
from krolist.scrapers.base import PartnerCredentials


@pytest.fixture
def anyio_backend():
    """Use asyncio as the async backend for tests."""
    return "asyncio"


@pytest_asyncio.fixture
async def test_db():
    """Create an in-memory SQLite database for testing."""
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        poolclass=StaticPool,
        echo=False,
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    SessionLocal = async_sessionmaker(
        engine, class_=AsyncSession, expire_on_commit=False
    )

    async with SessionLocal() as session:
        yield session

    await engine.dispose()


@pytest.fixture
def credentials() -> PartnerCredentials:
    """Fake PA-API credentials for signing and client tests."""
    return PartnerCredentials(
        access_key="AKIDEXAMPLE",
        secret_key="wJalrXUtnFEMI/K7MDENG+bPxRfiCYEXAMPLEKEY",
        partner_tag="krolist07-21",
        host="webservices.amazon.sa",
        region="eu-west-1",
        marketplace="www.amazon.sa",
    )


@pytest.fixture
def fixed_now() -> datetime:
    return datetime(2026, 10, 17, 9, 30, 0, tzinfo=timezone.utc)


@pytest_asyncio.fixture
async def sample_listing(test_db: AsyncSession) -> Listing:
    """Create a featured Amazon listing."""
    listing = Listing(
        product_url="https://www.amazon.sa/dp/B08N5WRWNW",
        store="amazon",
        title="Echo Dot (4th Gen)",
        current_price=Decimal("199.00"),
        original_price=Decimal("249.00"),
        currency="SAR",
        collection_title="Smart Home",
        is_featured=True,
    )
    test_db.add(listing)
    await test_db.commit()
    await test_db.refresh(listing)
    return listing
