"""
Health check endpoint.

``GET /health`` is a lightweight probe for load balancers: it only checks
the database. ``GET /health?detailed=true`` runs every dependency check
and reports circuit breakers and recent errors.
"""

from typing import Any

from fastapi import APIRouter, Depends, Query, status
from fastapi.responses import JSONResponse

from callscore.config import Settings, get_settings
from callscore.dependencies import get_health_monitor
from callscore.models.health import CheckStatus, OverallStatus
from callscore.services.health_monitor import HealthMonitor

router = APIRouter(tags=["Health"])


@router.get(
    "/health",
    summary="Health Check",
    description="Returns the current health status of the service.",
    response_model=dict[str, Any],
)
def health_check(
    detailed: bool = Query(default=False, description="Run every dependency check."),
    monitor: HealthMonitor = Depends(get_health_monitor),
    settings: Settings = Depends(get_settings),
) -> JSONResponse:
    """Return service health; 503 when a critical dependency is down."""
    if detailed:
        snapshot = monitor.get_health_status()
        code = (
            status.HTTP_503_SERVICE_UNAVAILABLE
            if snapshot.status is OverallStatus.UNHEALTHY
            else status.HTTP_200_OK
        )
        return JSONResponse(status_code=code, content=snapshot.model_dump(mode="json"))

    database = monitor.check_database()
    healthy = database.status is not CheckStatus.DOWN
    return JSONResponse(
        status_code=status.HTTP_200_OK if healthy else status.HTTP_503_SERVICE_UNAVAILABLE,
        content={
            "status": OverallStatus.HEALTHY.value if healthy else OverallStatus.UNHEALTHY.value,
            "version": settings.app_version,
            "environment": settings.environment,
            "uptime_seconds": monitor.uptime_seconds,
            "database": database.status.value,
        },
    )
