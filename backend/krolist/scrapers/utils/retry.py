"""Retry policies built on tenacity."""

import asyncio
from dataclasses import dataclass
from typing import Awaitable, Callable

import httpx
import structlog
from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry,
    retry_if_exception_type,
    retry_if_result,
    stop_after_attempt,
    wait_exponential,
)

from krolist.config import Settings

logger = structlog.get_logger(__name__)


def _log_before_sleep(retry_state: RetryCallState) -> None:
    """Log each backoff with structured context."""
    outcome = retry_state.outcome
    logger.warning(
        "retrying_after_backoff",
        fn=getattr(retry_state.fn, "__name__", None),
        attempt=retry_state.attempt_number,
        sleep_seconds=retry_state.next_action.sleep if retry_state.next_action else None,
        error=str(outcome.exception()) if outcome is not None and outcome.failed else None,
    )


@dataclass(frozen=True)
class BackoffPolicy:
    """Rate-limit backoff: wait ``base * multiplier ** attempt`` between tries.

    ``attempt`` is zero-based, so the defaults wait 1s, then 2s.
    """

    max_attempts: int = 3
    base_delay_seconds: float = 1.0
    multiplier: float = 2.0

    @classmethod
    def from_settings(cls, settings: Settings) -> "BackoffPolicy":
        return cls(
            max_attempts=max(1, settings.PAAPI_MAX_ATTEMPTS),
            base_delay_seconds=settings.PAAPI_BACKOFF_BASE_MS / 1000.0,
            multiplier=settings.PAAPI_BACKOFF_MULTIPLIER,
        )

    def delay_for(self, attempt: int) -> float:
        return self.base_delay_seconds * (self.multiplier ** attempt)

    def retrying(
        self,
        should_retry: Callable[[object], bool],
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> AsyncRetrying:
        """Build an AsyncRetrying that retries while ``should_retry(result)``.

        The final result is returned (not raised) when attempts run out.
        """
        return AsyncRetrying(
            stop=stop_after_attempt(self.max_attempts),
            wait=wait_exponential(multiplier=self.base_delay_seconds, exp_base=self.multiplier),
            retry=retry_if_result(should_retry),
            retry_error_callback=lambda state: state.outcome.result(),
            before_sleep=_log_before_sleep,
            sleep=sleep,
        )


# Reusable retry decorator for static page fetches (transient transport errors only)
page_fetch_retry = retry(
    stop=stop_after_attempt(2),
    wait=wait_exponential(multiplier=1, min=1, max=5),
    retry=retry_if_exception_type(
        (
            httpx.ConnectTimeout,
            httpx.ReadTimeout,
            httpx.RemoteProtocolError,
        )
    ),
    before_sleep=_log_before_sleep,
    reraise=True,
)
