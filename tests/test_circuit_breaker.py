import pytest

from callscore.errors import CircuitOpenError, ConfigurationError, TransientServiceError
from callscore.resilience.circuit_breaker import (
    CircuitBreaker,
    CircuitBreakerOptions,
    CircuitState,
    ResilienceManager,
)
from callscore.resilience.retry import RetryPolicy


class FakeClock:
    def __init__(self) -> None:
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class Counter:
    def __init__(self, fail: bool = True) -> None:
        self.calls = 0
        self.fail = fail

    async def __call__(self) -> str:
        self.calls += 1
        if self.fail:
            raise TransientServiceError("svc", "boom")
        return "ok"


def _breaker(clock: FakeClock, **overrides) -> CircuitBreaker:
    options = CircuitBreakerOptions(
        failure_threshold=overrides.get("failure_threshold", 3),
        reset_timeout_seconds=overrides.get("reset_timeout_seconds", 30),
        half_open_max_calls=overrides.get("half_open_max_calls", 1),
    )
    return CircuitBreaker("svc", options, clock=clock)


@pytest.mark.asyncio
async def test_opens_after_threshold_and_rejects_without_calling():
    clock = FakeClock()
    breaker = _breaker(clock)
    fn = Counter()

    for _ in range(3):
        with pytest.raises(TransientServiceError):
            await breaker.call(fn)
    assert breaker.state is CircuitState.OPEN
    assert fn.calls == 3

    clock.advance(10)
    with pytest.raises(CircuitOpenError) as info:
        await breaker.call(fn)
    assert fn.calls == 3
    assert info.value.retry_after == 20
    assert "Will retry in 20s" in str(info.value)


@pytest.mark.asyncio
async def test_half_open_probe_success_closes():
    clock = FakeClock()
    breaker = _breaker(clock)
    fn = Counter()
    for _ in range(3):
        with pytest.raises(TransientServiceError):
            await breaker.call(fn)

    clock.advance(31)
    fn.fail = False
    assert await breaker.call(fn) == "ok"
    assert breaker.state is CircuitState.CLOSED
    assert breaker.failures == 0


@pytest.mark.asyncio
async def test_half_open_probe_failure_reopens():
    clock = FakeClock()
    breaker = _breaker(clock)
    fn = Counter()
    for _ in range(3):
        with pytest.raises(TransientServiceError):
            await breaker.call(fn)

    clock.advance(31)
    with pytest.raises(TransientServiceError):
        await breaker.call(fn)
    assert breaker.state is CircuitState.OPEN
    assert fn.calls == 4

    with pytest.raises(CircuitOpenError):
        await breaker.call(fn)
    assert fn.calls == 4


@pytest.mark.asyncio
async def test_success_resets_failure_count_while_closed():
    clock = FakeClock()
    breaker = _breaker(clock)
    failing, passing = Counter(), Counter(fail=False)

    for _ in range(2):
        with pytest.raises(TransientServiceError):
            await breaker.call(failing)
    await breaker.call(passing)
    with pytest.raises(TransientServiceError):
        await breaker.call(failing)

    assert breaker.state is CircuitState.CLOSED
    assert breaker.failures == 1


@pytest.mark.asyncio
async def test_half_open_probe_budget():
    clock = FakeClock()
    breaker = _breaker(clock, failure_threshold=1, half_open_max_calls=1)
    with pytest.raises(TransientServiceError):
        await breaker.call(Counter())
    clock.advance(31)

    # Admit the single probe by hand, then a second caller exceeds the budget.
    breaker._before_call()
    assert breaker.state is CircuitState.HALF_OPEN
    with pytest.raises(CircuitOpenError):
        breaker._before_call()
    assert breaker.state is CircuitState.OPEN


def test_status_reports_failures():
    clock = FakeClock()
    breaker = _breaker(clock)
    breaker._on_failure(RuntimeError("x"))

    status = breaker.status()
    assert status.service_name == "svc"
    assert status.state == "closed"
    assert status.failures == 1
    assert status.last_failure_time is not None


def test_manager_hands_out_one_breaker_per_service():
    manager = ResilienceManager()
    assert manager.get("openai") is manager.get("openai")
    assert manager.get("openai") is not manager.get("database")
    assert [s.service_name for s in manager.statuses()] == ["openai", "database"]


@pytest.mark.asyncio
async def test_call_with_retry_counts_one_breaker_failure_per_exhausted_retry():
    clock = FakeClock()
    manager = ResilienceManager(
        default_options=CircuitBreakerOptions(failure_threshold=2),
        retry_policy=RetryPolicy(max_attempts=3, initial_delay_seconds=0),
        clock=clock,
    )
    fn = Counter()

    with pytest.raises(TransientServiceError):
        await manager.call_with_retry("svc", fn)
    assert fn.calls == 3
    assert manager.get("svc").failures == 1
    assert manager.get("svc").state is CircuitState.CLOSED


@pytest.mark.asyncio
async def test_configuration_error_is_not_retried():
    manager = ResilienceManager(retry_policy=RetryPolicy(max_attempts=3, initial_delay_seconds=0))
    calls = []

    async def unconfigured():
        calls.append(1)
        raise ConfigurationError("openai", "missing key")

    with pytest.raises(ConfigurationError):
        await manager.call_with_retry("openai", unconfigured)
    assert len(calls) == 1
