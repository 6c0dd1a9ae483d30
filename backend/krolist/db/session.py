"""Async database engine, session factory and schema bootstrap."""

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from krolist.config import settings


def _engine_options(url: str) -> dict:
    options: dict = {"echo": settings.DEBUG}
    # Pool sizing only applies to server databases
    if not url.startswith("sqlite"):
        options.update(pool_size=10, max_overflow=5, pool_pre_ping=True)
    return options


engine = create_async_engine(settings.DATABASE_URL, **_engine_options(settings.DATABASE_URL))

async_session_factory = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


async def create_tables(bind: AsyncEngine = engine) -> None:
    """Create any missing tables for the registered models."""
    from krolist.models import Base

    async with bind.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
