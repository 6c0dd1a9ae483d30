"""SQLAlchemy models for Krolist.

All models are imported here so metadata.create_all sees every table.
"""

from krolist.models.base import Base, TimestampMixin, UUIDPrimaryKeyMixin
from krolist.models.listing import Listing
from krolist.models.price_history import ListingPriceHistory
from krolist.models.search_log import SearchLog
from krolist.models.user import User

__all__ = [
    "Base",
    "TimestampMixin",
    "UUIDPrimaryKeyMixin",
    "Listing",
    "ListingPriceHistory",
    "SearchLog",
    "User",
]
