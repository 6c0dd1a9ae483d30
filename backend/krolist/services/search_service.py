"""Interactive product search: quota gate, identifier resolution, partner lookup."""

import re
from dataclasses import dataclass
from typing import Optional

import structlog

from krolist.core.exceptions import QuotaPersistenceError
from krolist.scrapers.adapters.amazon import AmazonPartnerClient
from krolist.scrapers.base import FailureReason, NormalizedProduct, PartnerFailure
from krolist.scrapers.utils.marketplace import is_known_marketplace, resolve_identifier
from krolist.services.quota_service import QuotaDecision, QuotaService

logger = structlog.get_logger(__name__)

_BARE_IDENTIFIER = re.compile(r"^(?:B0[A-Z0-9]{8}|\d{9}[\dX])$", re.IGNORECASE)

UNRESOLVED_MESSAGE = (
    "Could not find an Amazon product in that input. "
    "Paste a product link such as https://www.amazon.sa/dp/B0XXXXXXXX."
)


@dataclass
class SearchOutcome:
    """Result of one interactive search."""

    decision: QuotaDecision
    product: Optional[NormalizedProduct] = None
    failure: Optional[PartnerFailure] = None
    message: Optional[str] = None
    identifier: Optional[str] = None
    logged: bool = False


def limit_reached_message(decision: QuotaDecision) -> str:
    return f"Daily search limit reached, resets at {decision.reset_at.isoformat()}"


class SearchService:
    """Runs a quota-gated partner lookup for one user request."""

    def __init__(self, quota: QuotaService, partner_client: AmazonPartnerClient):
        """Initialize search service.

        Args:
            quota: Quota enforcer for the requesting user
            partner_client: PA-API client used for the lookup
        """
        self.quota = quota
        self.partner_client = partner_client
        self.logger = logger.bind(service="search_service")

    @staticmethod
    def resolve_input(query: Optional[str] = None, url: Optional[str] = None) -> Optional[str]:
        """Turn a pasted URL or bare ASIN into a marketplace identifier."""
        for candidate in (url, query):
            if not candidate:
                continue
            candidate = candidate.strip()
            if _BARE_IDENTIFIER.match(candidate):
                return candidate.upper()
            if is_known_marketplace(candidate):
                identifier = resolve_identifier(candidate)
                if identifier:
                    return identifier
        return None

    async def search(
        self,
        user_id: str,
        query: Optional[str] = None,
        url: Optional[str] = None,
    ) -> SearchOutcome:
        """Search for a product on behalf of ``user_id``.

        Args:
            user_id: Authenticated user
            query: Free text or bare ASIN
            url: Product URL on a known marketplace

        Returns:
            SearchOutcome carrying the quota decision and either a product,
            a partner failure, or a user-facing message

        Raises:
            QuotaPersistenceError: If the quota count cannot be read
            ConfigurationError: If partner credentials are not configured
        """
        decision = await self.quota.check_and_consume(user_id)
        if not decision.allowed:
            self.logger.info("search_rejected_quota", user_id=str(user_id), reset_at=decision.reset_at.isoformat())
            return SearchOutcome(decision=decision, message=limit_reached_message(decision))

        identifier = self.resolve_input(query=query, url=url)
        if identifier is None:
            self.logger.info("search_input_unresolved", user_id=str(user_id))
            return SearchOutcome(decision=decision, message=UNRESOLVED_MESSAGE)

        lookup = await self.partner_client.fetch_by_identifier(identifier)

        logged = True
        try:
            await self.quota.record_search(user_id, url or query or identifier)
        except QuotaPersistenceError as e:
            # Decision already granted; report the failed write instead of revoking it
            self.logger.error("search_log_not_recorded", user_id=str(user_id), error=e.message)
            logged = False

        # The decision was computed before this search was logged
        decision = QuotaDecision(
            allowed=decision.allowed,
            remaining=max(0, decision.remaining - 1) if logged else decision.remaining,
            reset_at=decision.reset_at,
            used=decision.used + 1 if logged else decision.used,
        )

        outcome = SearchOutcome(
            decision=decision,
            product=lookup.product,
            failure=lookup.failure,
            message=lookup.failure.message if lookup.failure else None,
            identifier=identifier,
            logged=logged,
        )

        self.logger.info(
            "search_completed",
            user_id=str(user_id),
            asin=identifier,
            ok=lookup.ok,
            reason=lookup.failure.reason.value if lookup.failure else None,
            remaining=decision.remaining,
        )
        return outcome


def is_manual_entry_failure(failure: Optional[PartnerFailure]) -> bool:
    """True when the user should be pointed to manual product entry."""
    return failure is not None and failure.reason in (
        FailureReason.NOT_ELIGIBLE,
        FailureReason.RATE_LIMITED,
    )
