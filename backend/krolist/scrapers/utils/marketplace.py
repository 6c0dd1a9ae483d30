"""Marketplace URL helpers: identifier extraction and domain checks.

Pure string operations. Malformed input yields ``None`` / ``False``.
"""

import re
from typing import Optional
from urllib.parse import parse_qs, urlparse

# Tried in order; every capture must be exactly 10 alphanumerics.
IDENTIFIER_PATTERNS = (
    re.compile(r"/dp/([A-Z0-9]{10})(?![A-Z0-9])", re.IGNORECASE),
    re.compile(r"/gp/product/([A-Z0-9]{10})(?![A-Z0-9])", re.IGNORECASE),
    re.compile(r"/gp/aw/d/([A-Z0-9]{10})(?![A-Z0-9])", re.IGNORECASE),
    re.compile(r"/product/([A-Z0-9]{10})(?![A-Z0-9])", re.IGNORECASE),
)

_ASIN_VALUE = re.compile(r"^[A-Z0-9]{10}$", re.IGNORECASE)

MARKETPLACE_DOMAINS = (
    "amazon.com",
    "amazon.sa",
    "amazon.ae",
    "amazon.co.uk",
    "amazon.de",
    "amazon.fr",
    "amazon.es",
    "amazon.it",
    "amazon.ca",
    "amazon.com.au",
    "amazon.in",
    "amazon.co.jp",
    "amazon.com.mx",
    "amazon.com.br",
    "amazon.nl",
    "amazon.sg",
    "amazon.eg",
)


def resolve_identifier(url: str) -> Optional[str]:
    """Extract the listing identifier (ASIN) from a marketplace URL.

    Args:
        url: Product URL, e.g. ``https://www.amazon.sa/dp/B08N5WRWNW``

    Returns:
        Upper-cased 10-character identifier, or None if no pattern matches
    """
    if not url or not isinstance(url, str):
        return None

    try:
        parsed = urlparse(url.strip())
    except ValueError:
        return None

    for pattern in IDENTIFIER_PATTERNS:
        match = pattern.search(parsed.path)
        if match:
            return match.group(1).upper()

    for key, values in parse_qs(parsed.query).items():
        if key.lower() != "asin":
            continue
        for value in values:
            if _ASIN_VALUE.match(value):
                return value.upper()

    return None


def is_known_marketplace(url: str) -> bool:
    """Check whether a URL's host belongs to a supported regional marketplace."""
    if not url or not isinstance(url, str):
        return False

    try:
        hostname = urlparse(url.strip()).hostname
    except ValueError:
        return False

    if not hostname:
        return False

    hostname = hostname.lower().rstrip(".")
    return any(
        hostname == domain or hostname.endswith("." + domain)
        for domain in MARKETPLACE_DOMAINS
    )


def build_affiliate_url(identifier: str, partner_tag: str, marketplace: str = "www.amazon.sa") -> str:
    """Canonical affiliate-tagged product URL for an identifier."""
    return f"https://{marketplace}/dp/{identifier}?tag={partner_tag}"
