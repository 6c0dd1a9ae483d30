"""Per-user daily search quota.

The quota day is the local calendar day in ``QUOTA_TIMEZONE`` (midnight to
midnight), not a rolling 24 hours. Usage is counted fresh from the search
log on every check, so the limit holds across server processes.

Checking and logging are two separate calls. Two concurrent searches by the
same user near the limit can both be admitted.
"""

from dataclasses import dataclass
from datetime import datetime, time, timedelta, timezone
from typing import Callable, Optional
from zoneinfo import ZoneInfo

import structlog
from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from krolist.config import settings
from krolist.core.exceptions import QuotaPersistenceError
from krolist.models.search_log import SearchLog

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class QuotaDecision:
    """Result of a quota check."""

    allowed: bool
    remaining: int
    reset_at: datetime
    used: int = 0


class SearchLogRepository:
    """Append-only search log backed by the ``search_logs`` table."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def append_search_log(self, user_id: str, timestamp: datetime, query: str) -> None:
        self.db.add(
            SearchLog(
                user_id=str(user_id),
                searched_at=_to_utc(timestamp),
                query=query[:2000],
            )
        )
        try:
            await self.db.commit()
        except SQLAlchemyError:
            await self.db.rollback()
            raise

    async def count_searches_since(self, user_id: str, instant: datetime) -> int:
        result = await self.db.execute(
            select(func.count(SearchLog.id)).where(
                SearchLog.user_id == str(user_id),
                SearchLog.searched_at >= _to_utc(instant),
            )
        )
        return int(result.scalar_one())


def _to_utc(value: datetime) -> datetime:
    # Compare in UTC so naive-datetime backends (SQLite) order correctly
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class QuotaService:
    """Tracks and limits interactive searches per user per calendar day."""

    def __init__(
        self,
        repository: SearchLogRepository,
        daily_limit: Optional[int] = None,
        tz: Optional[str] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        """Initialize quota service.

        Args:
            repository: Search log storage
            daily_limit: Searches allowed per day (defaults to DAILY_SEARCH_LIMIT)
            tz: IANA timezone defining the quota day (defaults to QUOTA_TIMEZONE)
            clock: Current-time source, used by tests
        """
        self.repository = repository
        self.daily_limit = daily_limit if daily_limit is not None else settings.DAILY_SEARCH_LIMIT
        self.tz = ZoneInfo(tz or settings.QUOTA_TIMEZONE)
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self.logger = logger.bind(service="quota_service")

    def _now(self) -> datetime:
        now = self._clock()
        if now.tzinfo is None:
            now = now.replace(tzinfo=timezone.utc)
        return now.astimezone(self.tz)

    def day_window(self, now: Optional[datetime] = None) -> tuple[datetime, datetime]:
        """Local midnight starting today and the next local midnight."""
        local_now = now.astimezone(self.tz) if now is not None else self._now()
        start = datetime.combine(local_now.date(), time.min, tzinfo=self.tz)
        end = datetime.combine(local_now.date() + timedelta(days=1), time.min, tzinfo=self.tz)
        return start, end

    async def check_and_consume(self, user_id: str) -> QuotaDecision:
        """Decide whether ``user_id`` may search now.

        The search is counted only once ``record_search`` is called.

        Raises:
            QuotaPersistenceError: If the search log cannot be read
        """
        start, reset_at = self.day_window()
        try:
            used = await self.repository.count_searches_since(user_id, start)
        except SQLAlchemyError as e:
            self.logger.error("quota_count_failed", user_id=str(user_id), error=str(e))
            raise QuotaPersistenceError(str(user_id), str(e)) from e

        decision = QuotaDecision(
            allowed=used < self.daily_limit,
            remaining=max(0, self.daily_limit - used),
            reset_at=reset_at,
            used=used,
        )

        self.logger.info(
            "quota_checked",
            user_id=str(user_id),
            used=used,
            allowed=decision.allowed,
            remaining=decision.remaining,
        )
        return decision

    async def record_search(self, user_id: str, query: str) -> None:
        """Append one search to the log.

        Raises:
            QuotaPersistenceError: If the entry cannot be written
        """
        try:
            await self.repository.append_search_log(user_id, self._now(), query)
        except SQLAlchemyError as e:
            self.logger.error("search_log_append_failed", user_id=str(user_id), error=str(e))
            raise QuotaPersistenceError(str(user_id), str(e)) from e
