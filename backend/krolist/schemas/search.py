"""Search Pydantic schemas for request/response validation."""

from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, Optional

from pydantic import BaseModel, Field, model_validator


class SearchRequest(BaseModel):
    """Interactive search request: a pasted product URL or a query."""

    query: Optional[str] = Field(
        None,
        max_length=2000,
        description="Free text or a bare ASIN",
        examples=["B0CHX1W1XY"],
    )
    url: Optional[str] = Field(
        None,
        max_length=2000,
        description="Product URL on a known Amazon marketplace",
        examples=["https://www.amazon.sa/dp/B0CHX1W1XY"],
    )

    @model_validator(mode="after")
    def require_query_or_url(self) -> "SearchRequest":
        if not (self.query and self.query.strip()) and not (self.url and self.url.strip()):
            raise ValueError("Either query or url is required")
        return self


class ProductResult(BaseModel):
    """Normalized product returned by a successful lookup."""

    external_id: str
    title: str
    current_price: Decimal
    original_price: Optional[Decimal] = None
    currency: str = "SAR"
    product_url: str
    image_url: Optional[str] = None
    is_prime_eligible: Optional[bool] = None
    metadata: Dict[str, Any] = {}


class SearchFailure(BaseModel):
    """Why a lookup produced no product."""

    reason: str
    message: str
    status_code: Optional[int] = None
    manual_entry: bool = False


class SearchResponse(BaseModel):
    """Quota decision plus the lookup result."""

    allowed: bool
    remaining: int
    reset_at: datetime
    product: Optional[ProductResult] = None
    failure: Optional[SearchFailure] = None
    message: Optional[str] = None
