"""
Reliability utilities.

Bounded timeouts and exponential-backoff retries for directory lookups and
store writes. Only transient failures are retried; conflicts and missing
records surface on the first attempt.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Optional

from sqlalchemy.exc import OperationalError

from ridepool_backend.app.core.config import settings
from ridepool_backend.app.core.exceptions import TransientError

logger = logging.getLogger("ridepool.reliability")

TRANSIENT_ERRORS = (asyncio.TimeoutError, OperationalError, TransientError)


@dataclass(frozen=True)
class RetryPolicy:
    """
    Retry bounds for a single I/O call.

    Each attempt is cut off after `timeout` seconds. Between attempts the
    caller sleeps `base_delay * 2 ** (attempt - 1)`, capped at `max_delay`.
    """
    timeout: float = 5.0
    max_attempts: int = 3
    base_delay: float = 0.2
    max_delay: float = 2.0

    @classmethod
    def from_settings(cls) -> "RetryPolicy":
        return cls(
            timeout=settings.saga_io_timeout_seconds,
            max_attempts=settings.saga_max_attempts,
            base_delay=settings.saga_backoff_base_seconds,
            max_delay=settings.saga_backoff_max_seconds,
        )

    def delay_for(self, attempt: int) -> float:
        return min(self.base_delay * (2 ** (attempt - 1)), self.max_delay)


async def call_with_retry(
    func: Callable[..., Awaitable[Any]],
    *args,
    policy: Optional[RetryPolicy] = None,
    operation: str = "io",
    **kwargs
) -> Any:
    """
    Await `func(*args, **kwargs)` under the policy's timeout, retrying
    transient failures with exponential backoff.

    Raises:
        TransientError: when every attempt timed out or hit a transient
            database error.
        Any non-transient exception raised by `func`, unchanged.
    """
    policy = policy or RetryPolicy.from_settings()
    last_error: Optional[BaseException] = None

    for attempt in range(1, policy.max_attempts + 1):
        try:
            return await asyncio.wait_for(func(*args, **kwargs), timeout=policy.timeout)
        except TRANSIENT_ERRORS as e:
            last_error = e
            if attempt == policy.max_attempts:
                break
            delay = policy.delay_for(attempt)
            logger.warning(
                "Transient failure in %s (attempt %d/%d): %s; retrying in %.2fs",
                operation, attempt, policy.max_attempts, type(e).__name__, delay
            )
            await asyncio.sleep(delay)

    logger.error("Giving up on %s after %d attempts", operation, policy.max_attempts)
    raise TransientError(operation, policy.max_attempts, last_error)
