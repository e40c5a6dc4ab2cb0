"""
Response models for the call analysis endpoints.
"""

from pydantic import BaseModel, Field

from callscore.models.coaching import CoachingAnalysis
from callscore.models.objections import ObjectionMatch
from callscore.models.scoring import CallScore
from callscore.models.voice import VoiceAnalytics


class CallAnalysisResult(BaseModel):
    """Everything computed when a call is submitted."""

    call_id: str
    score: CallScore
    voice_analytics: VoiceAnalytics
    objection_matches: list[ObjectionMatch] = Field(
        default_factory=list,
        description="Library links saved for this call. Empty if matching failed.",
    )


class CallObjectionsResponse(BaseModel):
    call_id: str
    total: int = 0
    objections: list[ObjectionMatch] = []


class CoachingResponse(BaseModel):
    call_id: str
    coaching: CoachingAnalysis
