"""
Service health checks and a bounded log of recent errors.

Checks:
- ``database``: ``SELECT 1`` round trip; slow is degraded, failure is down
- ``openai`` / ``elevenlabs`` / ``stripe``: credential configured (no network)
- ``memory``: resident memory against the configured budget

Only the database is critical: when it is down the service is unhealthy.
Any other down or degraded check makes it degraded.
"""

import logging
import os
import resource
import threading
import time
from collections import deque
from collections.abc import Callable
from datetime import datetime, timedelta, timezone

from callscore.config import Settings
from callscore.models.health import (
    CheckStatus,
    HealthStatus,
    OverallStatus,
    RecordedError,
    ServiceCheck,
)
from callscore.resilience.circuit_breaker import ResilienceManager
from callscore.store.database import Database

logger = logging.getLogger(__name__)

DATABASE_SERVICE = "database"
MEMORY_DEGRADED_PERCENT = 80.0
MEMORY_DOWN_PERCENT = 90.0
MIN_CREDENTIAL_LENGTH = 10
SNAPSHOT_ERRORS = 10

_CREDENTIAL_LABELS = {
    "openai": "OpenAI API key",
    "elevenlabs": "ElevenLabs API key",
    "stripe": "Stripe secret key",
}


def resident_memory_mb() -> float:
    """Current resident set size of this process, in MB."""
    try:
        with open("/proc/self/statm") as fh:
            resident_pages = int(fh.read().split()[1])
        return resident_pages * os.sysconf("SC_PAGE_SIZE") / (1024 * 1024)
    except (OSError, ValueError, IndexError):
        # ru_maxrss is the peak, in KB on Linux
        return resource.getrusage(resource.RUSAGE_SELF).ru_maxrss / 1024


def _now() -> datetime:
    return datetime.now(timezone.utc)


class HealthMonitor:
    """Runs dependency checks and keeps the last ``max_errors`` errors."""

    def __init__(
        self,
        database: Database | None,
        credentials: dict[str, str | None] | None = None,
        resilience: ResilienceManager | None = None,
        max_errors: int = 100,
        memory_limit_mb: float = 1024.0,
        degraded_ms: float = 1000.0,
        memory_probe: Callable[[], float] = resident_memory_mb,
    ) -> None:
        self.database = database
        self.credentials = dict(credentials or {})
        self.resilience = resilience
        self.memory_limit_mb = memory_limit_mb
        self.degraded_ms = degraded_ms
        self._memory_probe = memory_probe
        self._errors: deque[RecordedError] = deque(maxlen=max_errors)
        self._lock = threading.Lock()
        self._started = time.monotonic()

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        database: Database | None,
        resilience: ResilienceManager | None = None,
    ) -> "HealthMonitor":
        return cls(
            database,
            credentials={
                "openai": settings.openai_api_key,
                "elevenlabs": settings.elevenlabs_api_key,
                "stripe": settings.stripe_secret_key,
            },
            resilience=resilience,
            max_errors=settings.health_max_errors,
            memory_limit_mb=settings.memory_limit_mb,
            degraded_ms=settings.database_degraded_ms,
        )

    @property
    def uptime_seconds(self) -> float:
        return round(time.monotonic() - self._started, 2)

    # ── Error log ──────────────────────────────────────────────────────

    def record_error(self, service: str, error: BaseException | str) -> None:
        """Append an error; the oldest entry is dropped once the buffer is full."""
        message = str(error)
        with self._lock:
            self._errors.append(RecordedError(timestamp=_now(), service=service, error=message))
        logger.debug("Error recorded | service=%s | err=%s", service, message)

    def recent_errors(self, limit: int = SNAPSHOT_ERRORS) -> list[RecordedError]:
        """Up to ``limit`` most recent errors, oldest first."""
        if limit <= 0:
            return []
        with self._lock:
            return list(self._errors)[-limit:]

    def clear_old_errors(self, older_than: timedelta = timedelta(hours=24)) -> int:
        """Drop errors older than ``older_than``. Returns how many were removed."""
        cutoff = _now() - older_than
        with self._lock:
            kept = [e for e in self._errors if e.timestamp > cutoff]
            removed = len(self._errors) - len(kept)
            self._errors.clear()
            self._errors.extend(kept)
        return removed

    # ── Checks ─────────────────────────────────────────────────────────

    def check_database(self) -> ServiceCheck:
        if self.database is None:
            return ServiceCheck(
                status=CheckStatus.DOWN,
                last_checked=_now(),
                error="Database not configured",
            )

        start = time.perf_counter()
        try:
            self.database.ping()
        except Exception as exc:
            logger.warning("Database check failed | err=%s", exc)
            self.record_error(DATABASE_SERVICE, exc)
            return ServiceCheck(status=CheckStatus.DOWN, last_checked=_now(), error=str(exc))

        elapsed_ms = round((time.perf_counter() - start) * 1000, 2)
        return ServiceCheck(
            status=CheckStatus.DEGRADED if elapsed_ms > self.degraded_ms else CheckStatus.UP,
            response_time_ms=elapsed_ms,
            last_checked=_now(),
        )

    def check_credential(self, service: str) -> ServiceCheck:
        """Configuration-only check: the credential is present and plausibly shaped."""
        key = (self.credentials.get(service) or "").strip()
        if len(key) > MIN_CREDENTIAL_LENGTH:
            return ServiceCheck(status=CheckStatus.UP, last_checked=_now())
        label = _CREDENTIAL_LABELS.get(service, f"{service} credential")
        return ServiceCheck(
            status=CheckStatus.DOWN,
            last_checked=_now(),
            error=f"{label} not configured",
        )

    def check_memory(self) -> ServiceCheck:
        try:
            used_mb = self._memory_probe()
        except Exception as exc:
            return ServiceCheck(status=CheckStatus.DEGRADED, last_checked=_now(), error=str(exc))

        percent = used_mb / self.memory_limit_mb * 100 if self.memory_limit_mb > 0 else 0.0
        if percent > MEMORY_DOWN_PERCENT:
            status = CheckStatus.DOWN
        elif percent > MEMORY_DEGRADED_PERCENT:
            status = CheckStatus.DEGRADED
        else:
            status = CheckStatus.UP
        return ServiceCheck(
            status=status,
            response_time_ms=0.0,
            last_checked=_now(),
            error=f"High memory usage: {percent:.1f}%" if percent > MEMORY_DEGRADED_PERCENT else None,
        )

    # ── Snapshot ───────────────────────────────────────────────────────

    def get_health_status(self) -> HealthStatus:
        """Run every check and aggregate the overall status."""
        checks = {DATABASE_SERVICE: self.check_database()}
        for service in _CREDENTIAL_LABELS:
            checks[service] = self.check_credential(service)
        checks["memory"] = self.check_memory()

        statuses = [check.status for check in checks.values()]
        if checks[DATABASE_SERVICE].status is CheckStatus.DOWN:
            overall = OverallStatus.UNHEALTHY
        elif CheckStatus.DOWN in statuses or CheckStatus.DEGRADED in statuses:
            overall = OverallStatus.DEGRADED
        else:
            overall = OverallStatus.HEALTHY

        return HealthStatus(
            status=overall,
            timestamp=_now(),
            checks=checks,
            uptime_seconds=self.uptime_seconds,
            recent_errors=self.recent_errors(SNAPSHOT_ERRORS),
            circuit_breakers=self.resilience.statuses() if self.resilience else [],
        )
