"""
Retry with exponential backoff for transient failures.

Only ``TransientServiceError`` (and anything listed in
``RetryPolicy.retry_on``) is retried. Configuration errors and open
circuits fail immediately.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any, TypeVar

from callscore.errors import CircuitOpenError, TransientServiceError

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class RetryPolicy:
    max_attempts: int = 3
    initial_delay_seconds: float = 1.0
    max_delay_seconds: float = 10.0
    backoff_multiplier: float = 2.0
    retry_on: tuple[type[BaseException], ...] = (TransientServiceError,)

    def delay_for(self, attempt: int) -> float:
        """Delay before retrying after failed attempt number ``attempt`` (1-based)."""
        delay = self.initial_delay_seconds * self.backoff_multiplier ** (attempt - 1)
        return min(delay, self.max_delay_seconds)

    def is_retryable(self, exc: BaseException) -> bool:
        if isinstance(exc, CircuitOpenError):
            return False
        return isinstance(exc, self.retry_on)


async def retry_with_backoff(
    fn: Callable[..., Awaitable[T]],
    *args: Any,
    policy: RetryPolicy | None = None,
    sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    **kwargs: Any,
) -> T:
    """
    Await ``fn(*args, **kwargs)``, retrying retryable failures.

    The last error is re-raised once attempts are exhausted.
    """
    policy = policy or RetryPolicy()
    attempts = max(1, policy.max_attempts)

    for attempt in range(1, attempts + 1):
        try:
            return await fn(*args, **kwargs)
        except Exception as exc:
            if not policy.is_retryable(exc) or attempt >= attempts:
                raise
            delay = policy.delay_for(attempt)
            logger.warning(
                "Retrying after failure | attempt=%d/%d | delay=%.2fs | err=%s",
                attempt,
                attempts,
                delay,
                exc,
            )
            await sleep(delay)

    raise RuntimeError("unreachable")  # pragma: no cover
