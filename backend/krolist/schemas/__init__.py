"""Pydantic schemas for the Krolist API.

All request/response models are defined here for easy import.
"""

from krolist.schemas.common import ErrorDetail, ErrorResponse
from krolist.schemas.health import HealthCheckResponse
from krolist.schemas.refresh import (
    ListingPriceHistoryResponse,
    PriceHistoryPoint,
    RefreshRequest,
    RefreshResponse,
)
from krolist.schemas.search import ProductResult, SearchFailure, SearchRequest, SearchResponse

__all__ = [
    # Common
    "ErrorDetail",
    "ErrorResponse",
    # Health
    "HealthCheckResponse",
    # Refresh
    "ListingPriceHistoryResponse",
    "PriceHistoryPoint",
    "RefreshRequest",
    "RefreshResponse",
    # Search
    "ProductResult",
    "SearchFailure",
    "SearchRequest",
    "SearchResponse",
]
