"""
CallScore: sales call scoring and coaching backend

FastAPI application factory.
Builds the long-lived services, mounts routers, and configures
middleware, logging, and exception handlers.
"""

import logging
import sys
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from callscore.api import analytics, calls, coaching, health, objections
from callscore.config import Settings, get_settings
from callscore.errors import (
    CircuitOpenError,
    ConfigurationError,
    NotFoundError,
    TransientServiceError,
)
from callscore.middleware import RequestLoggingMiddleware
from callscore.resilience.circuit_breaker import CircuitBreakerOptions, ResilienceManager
from callscore.resilience.retry import RetryPolicy
from callscore.services.analysis_pipeline import CallAnalysisPipeline
from callscore.services.coaching import CoachingAnalyzer
from callscore.services.health_monitor import HealthMonitor
from callscore.store.database import Database
from callscore.store.repository import AnalysisRepository

logger = logging.getLogger("callscore")


def _configure_logging() -> None:
    """Set up structured logging for the application."""
    settings = get_settings()
    log_level = getattr(logging, settings.log_level.upper(), logging.INFO)

    fmt = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(logging.Formatter(fmt, datefmt="%Y-%m-%d %H:%M:%S"))

    root = logging.getLogger()
    root.setLevel(log_level)
    root.handlers.clear()
    root.addHandler(handler)

    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)


def build_resilience(settings: Settings) -> ResilienceManager:
    return ResilienceManager(
        default_options=CircuitBreakerOptions(
            failure_threshold=settings.breaker_failure_threshold,
            reset_timeout_seconds=settings.breaker_reset_timeout_seconds,
            half_open_max_calls=settings.breaker_half_open_max_calls,
        ),
        retry_policy=RetryPolicy(
            max_attempts=settings.retry_max_attempts,
            initial_delay_seconds=settings.retry_initial_delay_seconds,
            max_delay_seconds=settings.retry_max_delay_seconds,
        ),
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan handler.

    Builds the database, resilience manager, health monitor and pipeline
    once per process and exposes them on ``app.state``.
    """
    settings = get_settings()
    logger.info(
        "%s v%s starting up [%s]",
        settings.app_name,
        settings.app_version,
        settings.environment,
    )

    database = Database(settings.database_url)
    if settings.database_auto_create:
        database.create_all()

    resilience = build_resilience(settings)
    health_monitor = HealthMonitor.from_settings(settings, database, resilience)
    repository = AnalysisRepository(database)
    analyzer = CoachingAnalyzer.from_settings(settings)
    if not analyzer.is_configured:
        logger.warning("OpenAI API key not configured | coaching disabled")

    app.state.database = database
    app.state.resilience = resilience
    app.state.health_monitor = health_monitor
    app.state.repository = repository
    app.state.pipeline = CallAnalysisPipeline(
        repository,
        analyzer,
        resilience,
        health_monitor=health_monitor,
        prefer_timestamps=settings.voice_prefer_timestamps,
    )

    yield

    database.dispose()
    logger.info("%s shutting down", settings.app_name)


def _register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(ConfigurationError)
    async def configuration_error_handler(request: Request, exc: ConfigurationError) -> JSONResponse:
        logger.warning("Service not configured | service=%s | %s", exc.service, request.url.path)
        return JSONResponse(
            status_code=503,
            content={
                "error": "coaching_unavailable" if exc.service == "openai" else "service_unavailable",
                "message": str(exc),
            },
        )

    @app.exception_handler(CircuitOpenError)
    async def circuit_open_handler(request: Request, exc: CircuitOpenError) -> JSONResponse:
        return JSONResponse(
            status_code=503,
            content={
                "error": "service_unavailable",
                "service": exc.service,
                "message": str(exc),
                "retry_after": exc.retry_after,
            },
            headers={"Retry-After": str(exc.retry_after)},
        )

    @app.exception_handler(TransientServiceError)
    async def transient_error_handler(request: Request, exc: TransientServiceError) -> JSONResponse:
        return JSONResponse(
            status_code=502,
            content={
                "error": "upstream_error",
                "service": exc.service,
                "message": str(exc),
            },
        )

    @app.exception_handler(NotFoundError)
    async def not_found_handler(request: Request, exc: NotFoundError) -> JSONResponse:
        return JSONResponse(
            status_code=404,
            content={"error": "not_found", "detail": str(exc)},
        )

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        """Catch unhandled exceptions and return a clean 500 response."""
        logger.exception(
            "Unhandled error | %s %s | %s",
            request.method,
            request.url.path,
            str(exc),
        )
        return JSONResponse(
            status_code=500,
            content={
                "error": "internal_server_error",
                "detail": "An unexpected error occurred. Please try again later.",
            },
        )


def create_app() -> FastAPI:
    """Build and configure the FastAPI application."""
    _configure_logging()
    settings = get_settings()

    app = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        description="Scoring, voice analytics and AI coaching for recorded sales calls.",
        lifespan=lifespan,
    )

    _register_exception_handlers(app)

    # --- Middleware (order matters: last added = first executed) ---
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allowed_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(RequestLoggingMiddleware)

    # --- Routers ---
    app.include_router(health.router)
    app.include_router(calls.router)
    app.include_router(analytics.router)
    app.include_router(coaching.router)
    app.include_router(objections.router)

    return app


# Module-level app instance for uvicorn
app = create_app()
