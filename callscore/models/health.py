"""
Response models for service health reporting.
"""

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, Field


class CheckStatus(str, Enum):
    UP = "up"
    DEGRADED = "degraded"
    DOWN = "down"


class OverallStatus(str, Enum):
    HEALTHY = "healthy"
    DEGRADED = "degraded"
    UNHEALTHY = "unhealthy"


class ServiceCheck(BaseModel):
    """Result of one dependency check."""

    status: CheckStatus
    response_time_ms: float | None = None
    last_checked: datetime
    error: str | None = None


class RecordedError(BaseModel):
    timestamp: datetime
    service: str
    error: str


class BreakerStatus(BaseModel):
    service_name: str
    state: str
    failures: int = 0
    last_failure_time: datetime | None = None
    half_open_calls: int = 0


class HealthStatus(BaseModel):
    """Full health snapshot for operational endpoints."""

    status: OverallStatus
    timestamp: datetime
    checks: dict[str, ServiceCheck] = Field(default_factory=dict)
    uptime_seconds: float = 0.0
    recent_errors: list[RecordedError] = Field(
        default_factory=list,
        description="The most recent recorded errors, oldest first.",
    )
    circuit_breakers: list[BreakerStatus] = []
