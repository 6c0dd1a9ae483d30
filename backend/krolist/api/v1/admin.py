"""Administrative price refresh endpoint."""

from typing import Optional
from uuid import UUID

import structlog
from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from krolist.config import settings
from krolist.core.exceptions import NotFoundError
from krolist.dependencies import get_db, get_page_fetcher, require_admin
from krolist.models.user import User
from krolist.scrapers.adapters.amazon import AmazonPartnerClient
from krolist.scrapers.page_fetcher import PageFetcher
from krolist.scrapers.refresh_service import PriceRefreshService
from krolist.schemas.refresh import (
    ListingPriceHistoryResponse,
    PriceHistoryPoint,
    RefreshRequest,
    RefreshResponse,
)
from krolist.services.listing_service import ListingService

router = APIRouter()
logger = structlog.get_logger(__name__)


@router.post("/refresh-prices", response_model=RefreshResponse)
async def refresh_prices(
    body: Optional[RefreshRequest] = None,
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
    fetcher: PageFetcher = Depends(get_page_fetcher),
):
    """Revalidate prices of featured listings, optionally for one collection.

    Runs to completion before responding; only aggregate counts are returned.
    """
    collection = body.collection_title if body else None

    logger.info("admin_refresh_requested", admin_id=str(admin.id), collection=collection or "ALL")

    partner_client = AmazonPartnerClient() if settings.has_amazon_credentials() else None
    service = PriceRefreshService(ListingService(db), fetcher=fetcher, partner_client=partner_client)
    result = await service.refresh(collection)

    return RefreshResponse(
        updated=result.updated,
        failed=result.failed,
        total=result.total,
        collection=result.scope,
    )


@router.get("/listings/{listing_id}/price-history", response_model=ListingPriceHistoryResponse)
async def listing_price_history(
    listing_id: UUID,
    admin: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    """Recorded price changes for one listing, newest first."""
    service = ListingService(db)
    listing = await service.get_listing(listing_id)
    if listing is None:
        raise NotFoundError("Listing", str(listing_id))

    history = await service.get_price_history(listing_id)
    return ListingPriceHistoryResponse(
        listing_id=listing.id,
        current_price=listing.current_price,
        last_checked_at=listing.last_checked_at,
        history=[PriceHistoryPoint.model_validate(row) for row in history],
    )
