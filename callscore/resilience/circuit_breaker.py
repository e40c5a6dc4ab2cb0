"""
Circuit breaker for calls to fragile external dependencies.

State machine::

    closed --(failures >= threshold)--> open
    open --(reset timeout elapsed, next call)--> half_open
    half_open --(probe succeeds)--> closed
    half_open --(probe fails, or probe budget exceeded)--> open

While open, calls are rejected with ``CircuitOpenError`` and the wrapped
function is never invoked.

Breakers are handed out by a ``ResilienceManager``, one per service name.
The manager is constructed once by the application and passed to its
callers, so tests can build isolated instances. Failure counters are not
locked: concurrent calls may race on them, and the threshold only needs
to be crossed eventually, not exactly.
"""

import logging
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Any, TypeVar

from callscore.errors import CircuitOpenError
from callscore.models.health import BreakerStatus
from callscore.resilience.retry import RetryPolicy, retry_with_backoff

logger = logging.getLogger(__name__)

T = TypeVar("T")


class CircuitState(str, Enum):
    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"


@dataclass(frozen=True)
class CircuitBreakerOptions:
    failure_threshold: int = 5
    reset_timeout_seconds: float = 30.0
    half_open_max_calls: int = 3


class CircuitBreaker:
    """Protects one named service."""

    def __init__(
        self,
        service_name: str,
        options: CircuitBreakerOptions | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.service_name = service_name
        self.options = options or CircuitBreakerOptions()
        self._clock = clock
        self._state = CircuitState.CLOSED
        self._failures = 0
        self._last_failure_at: float | None = None
        self._last_failure_wall: datetime | None = None
        self._half_open_calls = 0

    @property
    def state(self) -> CircuitState:
        return self._state

    @property
    def failures(self) -> int:
        return self._failures

    # ── State transitions ─────────────────────────────────────────────

    def _transition(self, new_state: CircuitState) -> None:
        if new_state is self._state:
            return
        log = logger.warning if new_state is CircuitState.OPEN else logger.info
        log(
            "Circuit state change | service=%s | %s → %s | failures=%d",
            self.service_name,
            self._state.value,
            new_state.value,
            self._failures,
        )
        self._state = new_state
        if new_state is CircuitState.HALF_OPEN:
            self._half_open_calls = 0

    def _mark_failure_time(self) -> None:
        self._last_failure_at = self._clock()
        self._last_failure_wall = datetime.now(timezone.utc)

    def _before_call(self) -> None:
        """Admit or reject a call, moving open → half_open when due."""
        if self._state is CircuitState.OPEN:
            elapsed = self._clock() - (self._last_failure_at or 0.0)
            remaining = self.options.reset_timeout_seconds - elapsed
            if remaining > 0:
                raise CircuitOpenError(self.service_name, remaining)
            self._transition(CircuitState.HALF_OPEN)

        if self._state is CircuitState.HALF_OPEN:
            if self._half_open_calls >= self.options.half_open_max_calls:
                self._mark_failure_time()
                self._transition(CircuitState.OPEN)
                raise CircuitOpenError(
                    self.service_name,
                    self.options.reset_timeout_seconds,
                    reason="half-open limit reached",
                )
            self._half_open_calls += 1

    def _on_success(self) -> None:
        self._failures = 0
        if self._state is CircuitState.HALF_OPEN:
            self._transition(CircuitState.CLOSED)
            self._half_open_calls = 0

    def _on_failure(self, exc: BaseException) -> None:
        self._failures += 1
        self._mark_failure_time()
        logger.debug(
            "Circuit call failed | service=%s | failures=%d | err=%s",
            self.service_name,
            self._failures,
            exc,
        )
        if self._state is CircuitState.HALF_OPEN or self._failures >= self.options.failure_threshold:
            self._transition(CircuitState.OPEN)

    # ── Public API ────────────────────────────────────────────────────

    async def call(self, fn: Callable[..., Awaitable[T]], *args: Any, **kwargs: Any) -> T:
        """
        Await ``fn(*args, **kwargs)`` under breaker protection.

        Raises:
            CircuitOpenError: The circuit is open; ``fn`` was not invoked.
            Exception: Whatever ``fn`` raised, after recording the failure.
        """
        self._before_call()
        try:
            result = await fn(*args, **kwargs)
        except Exception as exc:
            self._on_failure(exc)
            raise
        self._on_success()
        return result

    def status(self) -> BreakerStatus:
        return BreakerStatus(
            service_name=self.service_name,
            state=self._state.value,
            failures=self._failures,
            last_failure_time=self._last_failure_wall,
            half_open_calls=self._half_open_calls,
        )


class ResilienceManager:
    """Registry of circuit breakers keyed by service name."""

    def __init__(
        self,
        default_options: CircuitBreakerOptions | None = None,
        retry_policy: RetryPolicy | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.default_options = default_options or CircuitBreakerOptions()
        self.retry_policy = retry_policy or RetryPolicy()
        self._clock = clock
        self._breakers: dict[str, CircuitBreaker] = {}

    def get(self, service_name: str, options: CircuitBreakerOptions | None = None) -> CircuitBreaker:
        """
        Return the breaker for ``service_name``, creating it on first use.

        ``options`` only apply when the breaker is created.
        """
        breaker = self._breakers.get(service_name)
        if breaker is None:
            breaker = CircuitBreaker(service_name, options or self.default_options, self._clock)
            self._breakers[service_name] = breaker
        return breaker

    async def call_with_retry(
        self,
        service_name: str,
        fn: Callable[..., Awaitable[T]],
        *args: Any,
        policy: RetryPolicy | None = None,
        **kwargs: Any,
    ) -> T:
        """Run ``fn`` with retries, the whole retry loop guarded by one breaker."""
        breaker = self.get(service_name)
        return await breaker.call(
            retry_with_backoff,
            fn,
            *args,
            policy=policy or self.retry_policy,
            **kwargs,
        )

    def statuses(self) -> list[BreakerStatus]:
        return [breaker.status() for breaker in self._breakers.values()]
