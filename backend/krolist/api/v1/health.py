"""Health check endpoint."""

from fastapi import APIRouter, Depends
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from krolist.config import settings
from krolist.dependencies import get_db
from krolist.schemas import HealthCheckResponse

router = APIRouter()


@router.get("/health", response_model=HealthCheckResponse)
async def health_check(db: AsyncSession = Depends(get_db)):
    """Return service health status.

    Reports database connectivity and whether PA-API credentials are
    configured. Returns "degraded" when the database check fails.
    """
    services = {}

    try:
        result = await db.execute(text("SELECT 1"))
        result.scalar()
        db_status = "ok"
    except Exception as e:
        db_status = f"error: {str(e)}"

    services["database"] = db_status
    services["amazon_paapi"] = "configured" if settings.has_amazon_credentials() else "missing_credentials"

    return HealthCheckResponse(
        status="ok" if db_status == "ok" else "degraded",
        database=db_status,
        amazon_credentials=settings.has_amazon_credentials(),
        services=services,
    )
