"""Utility modules for price acquisition."""

from krolist.scrapers.utils.marketplace import build_affiliate_url, is_known_marketplace, resolve_identifier
from krolist.scrapers.utils.normalizer import PriceNormalizer, detect_store
from krolist.scrapers.utils.retry import BackoffPolicy, page_fetch_retry
from krolist.scrapers.utils.user_agents import browser_headers, get_random_user_agent

__all__ = [
    "BackoffPolicy",
    "PriceNormalizer",
    "browser_headers",
    "build_affiliate_url",
    "detect_store",
    "get_random_user_agent",
    "is_known_marketplace",
    "page_fetch_retry",
    "resolve_identifier",
]
