"""
Retry policy shared by the external collaborators.

One policy (attempts + exponential backoff) is injected into the card data
client and the deck generator, so a failure means the same thing whichever
collaborator produced it. The retry loop itself is tenacity's.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import TypeVar

import httpx
from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)

from edhforge.config import settings

logger = logging.getLogger(__name__)

T = TypeVar("T")

# HTTP statuses worth another attempt
RETRYABLE_STATUS_CODES = frozenset({429, 500, 502, 503, 504})


def is_retryable_http_error(exc: BaseException) -> bool:
    """Transport errors and throttling/server statuses are retried; 4xx are not."""
    if isinstance(exc, httpx.HTTPStatusError):
        return exc.response.status_code in RETRYABLE_STATUS_CODES
    return isinstance(exc, httpx.TransportError)


def _log_retry(retry_state: RetryCallState) -> None:
    exc = retry_state.outcome.exception() if retry_state.outcome else None
    delay = retry_state.next_action.sleep if retry_state.next_action else 0.0
    logger.warning(
        "Attempt %d failed (%s), retrying in %.2fs",
        retry_state.attempt_number,
        type(exc).__name__,
        delay,
    )


@dataclass(frozen=True)
class RetryPolicy:
    """
    Bounded retry with exponential backoff.

    Attributes:
        max_attempts: Total attempts including the first
        base_delay: Delay before the second attempt, in seconds
        factor: Multiplier applied to the delay after each failure
        max_delay: Upper bound on any single delay
        sleep: Awaitable sleep used between attempts
    """

    max_attempts: int = 3
    base_delay: float = 0.25
    factor: float = 2.0
    max_delay: float = 2.0
    sleep: Callable[[float], Awaitable[None]] = field(default=asyncio.sleep, compare=False)

    @classmethod
    def from_settings(cls) -> "RetryPolicy":
        return cls(
            max_attempts=settings.retry_max_attempts,
            base_delay=settings.retry_base_delay,
            max_delay=settings.retry_max_delay,
        )

    async def run(
        self,
        operation: Callable[[], Awaitable[T]],
        should_retry: Callable[[BaseException], bool] = is_retryable_http_error,
    ) -> T:
        """
        Await operation(), retrying failures that should_retry accepts.

        The last exception propagates unchanged once attempts are exhausted,
        and non-retryable exceptions propagate immediately.
        """
        retrying = AsyncRetrying(
            stop=stop_after_attempt(self.max_attempts),
            wait=wait_exponential(
                multiplier=self.base_delay, exp_base=self.factor, max=self.max_delay
            ),
            retry=retry_if_exception(should_retry),
            sleep=self.sleep,
            before_sleep=_log_retry,
            reraise=True,
        )
        return await retrying(operation)
