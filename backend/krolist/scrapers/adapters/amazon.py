"""Amazon PA-API 5.0 client.

Looks up a single listing by ASIN through the Product Advertising API 5.0
GetItems operation.
Documentation: https://webservices.amazon.com/paapi5/documentation/
"""

import asyncio
import json
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation
from typing import Any, Awaitable, Callable, Dict, Optional

import httpx
import structlog

from krolist.config import settings
from krolist.core.exceptions import ConfigurationError
from krolist.scrapers.base import (
    FailureReason,
    NormalizedProduct,
    PartnerCredentials,
    PartnerFailure,
    PartnerLookup,
)
from krolist.scrapers.signing import sign_request
from krolist.scrapers.utils.marketplace import build_affiliate_url
from krolist.scrapers.utils.retry import BackoffPolicy


logger = structlog.get_logger(__name__)

MAX_TITLE_LENGTH = 500
MAX_IMAGE_URL_LENGTH = 1000

MANUAL_ENTRY_MESSAGE = (
    "This product can't be looked up automatically right now. "
    "Please enter the product details manually."
)


class AmazonPartnerClient:
    """Product Advertising API 5.0 client for single-item price lookups.

    Every attempt rebuilds and re-signs the request so the signature carries
    a fresh timestamp. Only HTTP 429 is retried; every other upstream outcome
    is turned into a ``PartnerFailure`` on the first attempt.
    """

    API_PATH = "/paapi5/getitems"
    API_TARGET = "com.amazon.paapi5.v1.ProductAdvertisingAPIv1.GetItems"
    CONTENT_ENCODING = "amz-1.0"

    RESOURCES = [
        "Images.Primary.Large",
        "ItemInfo.Title",
        "Offers.Listings.Price",
        "Offers.Listings.SavingBasis",
        "Offers.Listings.DeliveryInfo.IsPrimeEligible",
    ]

    def __init__(
        self,
        credentials: Optional[PartnerCredentials] = None,
        backoff: Optional[BackoffPolicy] = None,
        http_client: Optional[httpx.AsyncClient] = None,
        timeout: Optional[float] = None,
        clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        """Initialize the client.

        Args:
            credentials: PA-API credentials (defaults to the configured settings)
            backoff: 429 retry policy (defaults to the configured settings)
            http_client: Optional shared AsyncClient; one is created per call otherwise
            timeout: Request timeout in seconds
            clock: Source of signing timestamps
            sleep: Awaitable used between rate-limited attempts
        """
        self.credentials = credentials or PartnerCredentials.from_settings(settings)
        self.backoff = backoff or BackoffPolicy.from_settings(settings)
        self.http_client = http_client
        self._timeout = timeout if timeout is not None else settings.PAAPI_TIMEOUT_SECONDS
        self._clock = clock
        self._sleep = sleep
        self.logger = logger.bind(service="amazon_partner_client", host=self.credentials.host)

        missing = self.credentials.missing_fields()
        if missing:
            self.logger.warning("amazon_credentials_missing", missing=missing)

    @property
    def api_url(self) -> str:
        return f"https://{self.credentials.host}{self.API_PATH}"

    def build_payload(self, identifier: str) -> Dict[str, Any]:
        """GetItems request body for one identifier."""
        return {
            "ItemIds": [identifier],
            "PartnerTag": self.credentials.partner_tag,
            "PartnerType": "Associates",
            "Marketplace": self.credentials.marketplace,
            "Resources": list(self.RESOURCES),
        }

    def build_headers(self, body: bytes) -> Dict[str, str]:
        """Sign ``body`` with the current clock reading and return request headers."""
        signed = sign_request(
            method="POST",
            host=self.credentials.host,
            path=self.API_PATH,
            query=None,
            payload=body,
            credentials=self.credentials,
            region=self.credentials.region,
            api_target=self.API_TARGET,
            now=self._clock(),
        )
        return {
            "Authorization": signed.authorization,
            "Content-Type": "application/json; charset=utf-8",
            "Content-Encoding": self.CONTENT_ENCODING,
            "Host": self.credentials.host,
            "X-Amz-Date": signed.amz_date,
            "X-Amz-Target": self.API_TARGET,
        }

    async def fetch_by_identifier(self, identifier: str) -> PartnerLookup:
        """Look up one listing by ASIN.

        Args:
            identifier: Marketplace identifier (ASIN)

        Returns:
            PartnerLookup with either a NormalizedProduct or a PartnerFailure

        Raises:
            ConfigurationError: If PA-API credentials are not configured
        """
        missing = self.credentials.missing_fields()
        if missing:
            raise ConfigurationError(", ".join(missing))

        identifier = identifier.strip().upper()
        log = self.logger.bind(asin=identifier)
        attempts = 0

        async def _attempt() -> httpx.Response:
            nonlocal attempts
            attempts += 1
            return await self._post_once(identifier, attempt=attempts)

        retrying = self.backoff.retrying(
            should_retry=lambda response: response.status_code == 429,
            sleep=self._sleep,
        )

        try:
            response = await retrying(_attempt)
        except httpx.RequestError as e:
            log.error("amazon_api_connection_error", attempts=attempts, error=str(e))
            return PartnerLookup(
                failure=PartnerFailure(
                    reason=FailureReason.CONNECTION_ERROR,
                    message=f"Could not reach the Amazon API: {e.__class__.__name__}",
                ),
                attempts=attempts,
            )

        lookup = self._classify_response(identifier, response, attempts)
        if lookup.ok:
            log.info("amazon_lookup_success", attempts=attempts, price=str(lookup.product.current_price))
        else:
            log.warning(
                "amazon_lookup_failed",
                attempts=attempts,
                reason=lookup.failure.reason.value,
                status_code=lookup.failure.status_code,
            )
        return lookup

    async def fetch_price(self, identifier: str) -> Optional[Decimal]:
        """Convenience wrapper returning only the current price, if any."""
        lookup = await self.fetch_by_identifier(identifier)
        return lookup.product.current_price if lookup.ok else None

    async def _post_once(self, identifier: str, attempt: int) -> httpx.Response:
        body = json.dumps(self.build_payload(identifier), separators=(",", ":")).encode("utf-8")
        headers = self.build_headers(body)

        self.logger.debug("amazon_api_call", asin=identifier, attempt=attempt)

        if self.http_client is not None:
            return await self.http_client.post(self.api_url, headers=headers, content=body)

        async with httpx.AsyncClient(timeout=self._timeout) as client:
            return await client.post(self.api_url, headers=headers, content=body)

    def _classify_response(self, identifier: str, response: httpx.Response, attempts: int) -> PartnerLookup:
        status = response.status_code

        if status == 429:
            return PartnerLookup(
                failure=PartnerFailure(
                    reason=FailureReason.RATE_LIMITED,
                    message="Amazon API limit reached. Please try again later or enter the product details manually.",
                    status_code=status,
                ),
                attempts=attempts,
            )

        if status == 403 and self._is_ineligible(response):
            return PartnerLookup(
                failure=PartnerFailure(
                    reason=FailureReason.NOT_ELIGIBLE,
                    message=MANUAL_ENTRY_MESSAGE,
                    status_code=status,
                ),
                attempts=attempts,
            )

        if not response.is_success:
            return PartnerLookup(
                failure=PartnerFailure(
                    reason=FailureReason.API_ERROR,
                    message=f"Amazon API returned HTTP {status}",
                    status_code=status,
                ),
                attempts=attempts,
            )

        try:
            data = response.json()
        except ValueError:
            return PartnerLookup(
                failure=PartnerFailure(
                    reason=FailureReason.API_ERROR,
                    message="Amazon API returned a malformed response",
                    status_code=status,
                ),
                attempts=attempts,
            )

        product = self._normalize_item(identifier, data)
        if product is None:
            return PartnerLookup(
                failure=PartnerFailure(
                    reason=FailureReason.NOT_FOUND,
                    message=f"No offer found for {identifier}",
                    status_code=status,
                ),
                attempts=attempts,
            )

        return PartnerLookup(product=product, attempts=attempts)

    @staticmethod
    def _is_ineligible(response: httpx.Response) -> bool:
        text = response.text or ""
        lowered = text.lower()
        return "associatenoteligible" in lowered or "not eligible" in lowered

    def _normalize_item(self, identifier: str, data: Dict[str, Any]) -> Optional[NormalizedProduct]:
        """Convert a GetItems response into a NormalizedProduct.

        Returns:
            NormalizedProduct, or None when the identifier is absent or has
            no positive offer price
        """
        items = (data.get("ItemsResult") or {}).get("Items") or []
        item = next(
            (i for i in items if str(i.get("ASIN", "")).upper() == identifier),
            None,
        )
        if item is None:
            return None

        listings = (item.get("Offers") or {}).get("Listings") or []
        offer = listings[0] if listings else {}

        price = _to_decimal((offer.get("Price") or {}).get("Amount"))
        if price is None or price <= 0:
            return None

        original_price = _to_decimal((offer.get("SavingBasis") or {}).get("Amount"))
        if original_price is not None and original_price <= 0:
            original_price = None

        currency = (offer.get("Price") or {}).get("Currency") or "SAR"

        title = ((item.get("ItemInfo") or {}).get("Title") or {}).get("DisplayValue") or ""
        title = title.strip()[:MAX_TITLE_LENGTH].strip()

        image_url = (
            ((item.get("Images") or {}).get("Primary") or {}).get("Large") or {}
        ).get("URL") or ""
        image_url = image_url.strip()[:MAX_IMAGE_URL_LENGTH] or None

        prime = (offer.get("DeliveryInfo") or {}).get("IsPrimeEligible")

        return NormalizedProduct(
            external_id=identifier,
            title=title or identifier,
            current_price=price,
            original_price=original_price,
            currency=currency,
            product_url=build_affiliate_url(
                identifier, self.credentials.partner_tag, self.credentials.marketplace
            ),
            image_url=image_url,
            is_prime_eligible=prime if isinstance(prime, bool) else None,
            metadata={"asin": identifier, "parent_asin": item.get("ParentASIN", "")},
        )


def _to_decimal(value: Any) -> Optional[Decimal]:
    if value is None or isinstance(value, bool):
        return None
    try:
        result = Decimal(str(value))
    except InvalidOperation:
        return None
    return result if result.is_finite() else None
