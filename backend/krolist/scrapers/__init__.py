"""Price acquisition: partner API client, page fetching and price extraction."""

from krolist.scrapers.base import (
    FailureReason,
    NormalizedProduct,
    PartnerCredentials,
    PartnerFailure,
    PartnerLookup,
)

__all__ = [
    "FailureReason",
    "NormalizedProduct",
    "PartnerCredentials",
    "PartnerFailure",
    "PartnerLookup",
]
