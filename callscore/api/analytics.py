"""
Voice analytics endpoint.
"""

from fastapi import APIRouter, Depends, status
from fastapi.responses import JSONResponse

from callscore.dependencies import get_repository
from callscore.models.voice import VoiceAnalytics
from callscore.store.repository import AnalysisRepository

router = APIRouter(prefix="/analytics", tags=["Analytics"])


@router.get(
    "/voice/{call_id}",
    response_model=VoiceAnalytics,
    summary="Voice analytics for a call",
    responses={404: {"description": "Call unknown or analytics not computed yet."}},
)
def get_voice_analytics(
    call_id: str,
    repository: AnalysisRepository = Depends(get_repository),
):
    repository.get_call(call_id)
    analytics = repository.get_voice_analytics(call_id)
    if analytics is None:
        return JSONResponse(
            status_code=status.HTTP_404_NOT_FOUND,
            content={
                "error": "voice_analytics_not_available",
                "message": "Voice analytics have not been computed for this call yet.",
            },
        )
    return analytics
