"""Shared data structures for price acquisition.

Partner API lookups never raise for expected upstream outcomes. They return a
``PartnerLookup`` carrying either a ``NormalizedProduct`` or a
``PartnerFailure`` descriptor that the caller can render.
"""

from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from typing import Optional

from krolist.config import Settings


@dataclass(frozen=True)
class PartnerCredentials:
    """Process-wide PA-API credentials, built once at startup."""

    access_key: str
    secret_key: str
    partner_tag: str
    host: str = "webservices.amazon.sa"
    region: str = "eu-west-1"
    marketplace: str = "www.amazon.sa"

    @classmethod
    def from_settings(cls, settings: Settings) -> "PartnerCredentials":
        return cls(
            access_key=settings.AMAZON_ACCESS_KEY,
            secret_key=settings.AMAZON_SECRET_KEY,
            partner_tag=settings.AMAZON_PARTNER_TAG,
            host=settings.AMAZON_API_HOST,
            region=settings.AMAZON_API_REGION,
            marketplace=settings.AMAZON_MARKETPLACE,
        )

    def missing_fields(self) -> list[str]:
        """Names of required credential fields that are empty."""
        required = {
            "AMAZON_ACCESS_KEY": self.access_key,
            "AMAZON_SECRET_KEY": self.secret_key,
            "AMAZON_PARTNER_TAG": self.partner_tag,
        }
        return [name for name, value in required.items() if not value]


@dataclass
class NormalizedProduct:
    """Normalized product data returned by the partner API client."""

    external_id: str  # Marketplace identifier (ASIN)
    title: str
    current_price: Decimal
    product_url: str
    original_price: Optional[Decimal] = None
    currency: str = "SAR"
    image_url: Optional[str] = None
    is_prime_eligible: Optional[bool] = None
    metadata: dict = field(default_factory=dict)

    def __post_init__(self):
        """Validate data after initialization."""
        if not self.external_id:
            raise ValueError("external_id is required")
        if self.current_price is None or not self.current_price.is_finite() or self.current_price <= 0:
            raise ValueError("current_price must be a finite positive Decimal")


class FailureReason(str, Enum):
    """Why a partner lookup produced no product."""

    RATE_LIMITED = "rate_limited"
    NOT_ELIGIBLE = "not_eligible"
    NOT_FOUND = "not_found"
    API_ERROR = "api_error"
    CONNECTION_ERROR = "connection_error"


@dataclass(frozen=True)
class PartnerFailure:
    """Renderable failure descriptor for a partner lookup."""

    reason: FailureReason
    message: str
    status_code: Optional[int] = None


@dataclass(frozen=True)
class PartnerLookup:
    """Outcome of ``AmazonPartnerClient.fetch_by_identifier``."""

    product: Optional[NormalizedProduct] = None
    failure: Optional[PartnerFailure] = None
    attempts: int = 1

    @property
    def ok(self) -> bool:
        return self.product is not None
