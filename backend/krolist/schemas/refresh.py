"""Admin price refresh schemas."""

from datetime import datetime
from decimal import Decimal
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


class RefreshRequest(BaseModel):
    """Admin refresh request."""

    collection_title: Optional[str] = Field(
        None,
        max_length=200,
        description='Collection to refresh; omit or "all" for every featured listing',
    )


class RefreshResponse(BaseModel):
    """Aggregate counts from one refresh run."""

    updated: int
    failed: int
    total: int
    collection: str


class PriceHistoryPoint(BaseModel):
    """Single price history data point."""

    model_config = ConfigDict(from_attributes=True)

    price: Decimal
    original_price: Optional[Decimal] = None
    currency: str
    source: str
    recorded_at: datetime


class ListingPriceHistoryResponse(BaseModel):
    """A listing's current price and its recorded changes."""

    listing_id: UUID
    current_price: Optional[Decimal] = None
    last_checked_at: Optional[datetime] = None
    history: List[PriceHistoryPoint] = []
