"""Price parsing and store detection utilities."""

import re
from decimal import Decimal, InvalidOperation
from typing import Optional
from urllib.parse import urlparse

# Host suffix -> store key used to select extraction patterns
STORE_DOMAINS = {
    "noon.com": "noon",
    "namshi.com": "namshi",
    "shein.com": "shein",
    "ikea.com": "ikea",
    "abyat.com": "abyat",
    "trendyol.com": "trendyol",
    "asos.com": "asos",
}

_NUMBER = re.compile(r"-?\d[\d,٬]*(?:[.٫]\d+)?")


class PriceNormalizer:
    """Parses price strings into Decimal values.

    Handles the formats seen on Gulf storefronts:
    - "SAR&nbsp;1,299.00" -> 1299.00
    - "1,299" -> 1299
    - "AED 49.5" -> 49.5
    - "١٬٢٩٩٫٠٠" separators (Arabic thousands / decimal marks)
    """

    @staticmethod
    def clean_price_string(raw) -> Optional[Decimal]:
        """Parse a raw price value and extract its numeric amount.

        Args:
            raw: String or number from page content

        Returns:
            Decimal price value, or None if parsing fails
        """
        if raw is None or isinstance(raw, bool):
            return None

        if isinstance(raw, (int, float, Decimal)):
            try:
                value = Decimal(str(raw))
            except InvalidOperation:
                return None
            return value if value.is_finite() else None

        text = str(raw).replace("&nbsp;", " ").replace("\xa0", " ")
        match = _NUMBER.search(text)
        if not match:
            return None

        cleaned = match.group(0).replace(",", "").replace("٬", "").replace("٫", ".")
        try:
            value = Decimal(cleaned)
        except InvalidOperation:
            return None
        return value if value.is_finite() else None

    @staticmethod
    def is_valid_price(value: Optional[Decimal]) -> bool:
        """A price is acceptable only when it is a finite number above zero."""
        return value is not None and value.is_finite() and value > 0


def detect_store(url: str) -> Optional[str]:
    """Map a product URL to a store key (``amazon``, ``noon``, ...).

    Returns:
        Store key, or None for unrecognised hosts
    """
    if not url:
        return None

    try:
        hostname = (urlparse(url).hostname or "").lower()
    except ValueError:
        return None

    if not hostname:
        return None

    if re.search(r"(^|\.)amazon\.", hostname):
        return "amazon"

    for domain, store_key in STORE_DOMAINS.items():
        if hostname == domain or hostname.endswith("." + domain):
            return store_key

    return None
