from datetime import timedelta

from callscore.models.health import CheckStatus, OverallStatus
from callscore.resilience.circuit_breaker import ResilienceManager
from callscore.services.health_monitor import HealthMonitor

KEYS = {
    "openai": "sk-test-0123456789",
    "elevenlabs": "el-test-0123456789",
    "stripe": "sk_test_0123456789",
}


class BrokenDatabase:
    def ping(self) -> None:
        raise ConnectionError("connection refused")


def _monitor(database, **kwargs) -> HealthMonitor:
    kwargs.setdefault("credentials", KEYS)
    kwargs.setdefault("memory_probe", lambda: 100.0)
    return HealthMonitor(database, **kwargs)


def test_all_checks_up_is_healthy(database):
    status = _monitor(database).get_health_status()

    assert status.status is OverallStatus.HEALTHY
    assert set(status.checks) == {"database", "openai", "elevenlabs", "stripe", "memory"}
    assert status.checks["database"].status is CheckStatus.UP
    assert status.checks["database"].response_time_ms is not None


def test_database_down_is_unhealthy_and_recorded():
    monitor = _monitor(BrokenDatabase())
    status = monitor.get_health_status()

    assert status.status is OverallStatus.UNHEALTHY
    assert status.checks["database"].status is CheckStatus.DOWN
    assert status.checks["database"].error == "connection refused"
    assert [e.service for e in status.recent_errors] == ["database"]


def test_missing_or_short_credentials_degrade(database):
    monitor = _monitor(database, credentials={"openai": "short", "stripe": KEYS["stripe"]})
    status = monitor.get_health_status()

    assert status.status is OverallStatus.DEGRADED
    assert status.checks["openai"].status is CheckStatus.DOWN
    assert status.checks["openai"].error == "OpenAI API key not configured"
    assert status.checks["elevenlabs"].status is CheckStatus.DOWN
    assert status.checks["stripe"].status is CheckStatus.UP


def test_memory_bands(database):
    def check(used_mb: float) -> CheckStatus:
        return _monitor(database, memory_limit_mb=100, memory_probe=lambda: used_mb).check_memory().status

    assert check(50) is CheckStatus.UP
    assert check(85) is CheckStatus.DEGRADED
    assert check(95) is CheckStatus.DOWN


def test_high_memory_degrades_but_is_not_critical(database):
    status = _monitor(database, memory_limit_mb=100, memory_probe=lambda: 99.0).get_health_status()
    assert status.status is OverallStatus.DEGRADED
    assert status.checks["memory"].error == "High memory usage: 99.0%"


def test_slow_database_is_degraded(database):
    check = _monitor(database, degraded_ms=-1).check_database()
    assert check.status is CheckStatus.DEGRADED


def test_error_buffer_is_bounded_and_snapshot_shows_last_ten(database):
    monitor = _monitor(database, max_errors=15)
    for i in range(20):
        monitor.record_error("openai", f"error {i}")

    assert len(monitor.recent_errors(limit=100)) == 15
    snapshot = monitor.get_health_status()
    assert [e.error for e in snapshot.recent_errors] == [f"error {i}" for i in range(10, 20)]


def test_clear_old_errors(database):
    monitor = _monitor(database)
    monitor.record_error("openai", RuntimeError("old"))

    assert monitor.clear_old_errors(older_than=timedelta(hours=1)) == 0
    assert monitor.clear_old_errors(older_than=timedelta(seconds=-1)) == 1
    assert monitor.recent_errors() == []


def test_snapshot_lists_circuit_breakers(database):
    resilience = ResilienceManager()
    resilience.get("openai")
    status = _monitor(database, resilience=resilience).get_health_status()

    assert [b.service_name for b in status.circuit_breakers] == ["openai"]
    assert status.circuit_breakers[0].state == "closed"
