"""
FastAPI dependencies for the long-lived services built in the app lifespan.
"""

from fastapi import Request

from callscore.services.analysis_pipeline import CallAnalysisPipeline
from callscore.services.health_monitor import HealthMonitor
from callscore.store.repository import AnalysisRepository


def get_pipeline(request: Request) -> CallAnalysisPipeline:
    return request.app.state.pipeline


def get_repository(request: Request) -> AnalysisRepository:
    return request.app.state.repository


def get_health_monitor(request: Request) -> HealthMonitor:
    return request.app.state.health_monitor

