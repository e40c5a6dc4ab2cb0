"""
AI coaching endpoints.

Generation goes through the ``openai`` circuit breaker with retries.
Without an API key the service answers 503 ``coaching_unavailable``
and never contacts the model.
"""

import logging

from fastapi import APIRouter, Depends, status
from fastapi.responses import JSONResponse
from starlette.concurrency import run_in_threadpool

from callscore.dependencies import get_pipeline
from callscore.models.analysis import CoachingResponse
from callscore.services.analysis_pipeline import CallAnalysisPipeline

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/coaching", tags=["Coaching"])


@router.post(
    "/{call_id}",
    response_model=CoachingResponse,
    summary="Generate coaching for a scored call",
    responses={
        404: {"description": "Call or score not found."},
        502: {"description": "The model failed after retries."},
        503: {"description": "Coaching not configured, or the model breaker is open."},
    },
)
async def generate_coaching(
    call_id: str,
    pipeline: CallAnalysisPipeline = Depends(get_pipeline),
) -> CoachingResponse:
    analysis = await pipeline.generate_coaching(call_id)
    return CoachingResponse(call_id=call_id, coaching=analysis)


@router.get(
    "/{call_id}",
    response_model=CoachingResponse,
    summary="Get stored coaching for a call",
)
async def get_coaching(
    call_id: str,
    pipeline: CallAnalysisPipeline = Depends(get_pipeline),
):
    await run_in_threadpool(pipeline.repository.get_call, call_id)
    analysis = await run_in_threadpool(pipeline.get_coaching, call_id)
    if analysis is None:
        return JSONResponse(
            status_code=status.HTTP_404_NOT_FOUND,
            content={
                "error": "coaching_not_available",
                "message": "Coaching has not been generated for this call yet.",
            },
        )
    return CoachingResponse(call_id=call_id, coaching=analysis)
