"""Krolist Backend -- FastAPI Application Entry Point."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from krolist.api.v1.router import api_v1_router
from krolist.config import settings
from krolist.core.exceptions import ConfigurationError, NotFoundError, QuotaPersistenceError
from krolist.db.session import async_session_factory, create_tables
from krolist.schemas.common import ErrorDetail, ErrorResponse
from krolist.scrapers.scheduler import PriceRefreshScheduler

# Configure logging
logging.basicConfig(
    level=logging.INFO if settings.DEBUG else logging.WARNING,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

# Global scheduler instance
scheduler: PriceRefreshScheduler = None


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan: startup and shutdown events."""
    global scheduler

    logger.info("Starting Krolist API server...")
    logger.info(f"Environment: {settings.ENVIRONMENT}")

    try:
        await create_tables()
        logger.info("Database tables verified/created")
    except Exception as e:
        logger.error(f"Database init failed: {e}", exc_info=True)

    if not settings.has_amazon_credentials():
        logger.warning("Amazon PA-API credentials not configured; search will return 503")

    if settings.REFRESH_SCHEDULE_ENABLED and settings.ENVIRONMENT != "test":
        scheduler = PriceRefreshScheduler(async_session_factory)
        scheduler.add_refresh_job()
        scheduler.start()
        logger.info(f"Daily price refresh scheduled at {settings.REFRESH_CRON_HOUR:02d}:00")
    else:
        logger.info("Scheduled price refresh disabled")

    yield

    logger.info("Shutting down Krolist API server...")
    if scheduler:
        scheduler.stop()


app = FastAPI(
    title="Krolist API",
    description="Price acquisition and search quota service",
    version="0.1.0",
    docs_url="/docs" if settings.DEBUG else None,
    redoc_url="/redoc" if settings.DEBUG else None,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=[settings.FRONTEND_URL, "http://localhost:5173", "http://localhost:8080"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def _error(status_code: int, code: str, message: str) -> JSONResponse:
    body = ErrorResponse(error=ErrorDetail(code=code, message=message))
    return JSONResponse(status_code=status_code, content=body.model_dump())


@app.exception_handler(ConfigurationError)
async def configuration_error_handler(request: Request, exc: ConfigurationError):
    logger.error(f"Configuration error: {exc.message}")
    return _error(status.HTTP_503_SERVICE_UNAVAILABLE, "configuration_error", "Product lookup is not configured")


@app.exception_handler(QuotaPersistenceError)
async def quota_persistence_error_handler(request: Request, exc: QuotaPersistenceError):
    logger.error(f"Quota storage error: {exc.message}")
    return _error(status.HTTP_503_SERVICE_UNAVAILABLE, "quota_unavailable", "Search quota is temporarily unavailable")


@app.exception_handler(NotFoundError)
async def not_found_error_handler(request: Request, exc: NotFoundError):
    return _error(status.HTTP_404_NOT_FOUND, "not_found", exc.message)


app.include_router(api_v1_router, prefix="/api/v1")


@app.get("/")
async def root():
    """Root endpoint with API information."""
    return {
        "name": "Krolist API",
        "version": "0.1.0",
        "docs": "/docs" if settings.DEBUG else None,
        "health": "/api/v1/health",
    }
