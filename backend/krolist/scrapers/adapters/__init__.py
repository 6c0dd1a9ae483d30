"""Partner API adapters."""

from krolist.scrapers.adapters.amazon import AmazonPartnerClient

__all__ = ["AmazonPartnerClient"]
