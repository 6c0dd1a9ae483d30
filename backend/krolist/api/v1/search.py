"""Interactive product search endpoint."""

import structlog
from fastapi import APIRouter, Depends, status
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from krolist.dependencies import get_current_user, get_db, get_partner_client
from krolist.models.user import User
from krolist.scrapers.adapters.amazon import AmazonPartnerClient
from krolist.schemas.search import ProductResult, SearchFailure, SearchRequest, SearchResponse
from krolist.services.quota_service import QuotaService, SearchLogRepository
from krolist.services.search_service import SearchOutcome, SearchService, is_manual_entry_failure

router = APIRouter()
logger = structlog.get_logger(__name__)


def _to_response(outcome: SearchOutcome) -> SearchResponse:
    product = None
    if outcome.product is not None:
        p = outcome.product
        product = ProductResult(
            external_id=p.external_id,
            title=p.title,
            current_price=p.current_price,
            original_price=p.original_price,
            currency=p.currency,
            product_url=p.product_url,
            image_url=p.image_url,
            is_prime_eligible=p.is_prime_eligible,
            metadata=p.metadata,
        )

    failure = None
    if outcome.failure is not None:
        failure = SearchFailure(
            reason=outcome.failure.reason.value,
            message=outcome.failure.message,
            status_code=outcome.failure.status_code,
            manual_entry=is_manual_entry_failure(outcome.failure),
        )

    return SearchResponse(
        allowed=outcome.decision.allowed,
        remaining=outcome.decision.remaining,
        reset_at=outcome.decision.reset_at,
        product=product,
        failure=failure,
        message=outcome.message,
    )


@router.post("", response_model=SearchResponse)
async def search_product(
    body: SearchRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    partner_client: AmazonPartnerClient = Depends(get_partner_client),
):
    """Look up a product by pasted URL or ASIN, subject to the daily quota.

    Returns 429 with the quota decision when the daily limit is reached.
    """
    quota = QuotaService(SearchLogRepository(db))
    service = SearchService(quota, partner_client)

    outcome = await service.search(str(user.id), query=body.query, url=body.url)
    response = _to_response(outcome)

    if not outcome.decision.allowed:
        return JSONResponse(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            content=response.model_dump(mode="json"),
        )

    return response
