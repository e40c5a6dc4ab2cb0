"""
Call submission and scoring endpoints.

Routes are plain ``def`` so FastAPI runs the synchronous database work in
its threadpool.
"""

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, Path, status

from callscore.dependencies import get_pipeline, get_repository
from callscore.models.analysis import CallAnalysisResult, CallObjectionsResponse
from callscore.models.scoring import CallScore
from callscore.models.transcript import MAX_CALL_ID_LENGTH, CallTranscriptPayload
from callscore.services.analysis_pipeline import CallAnalysisPipeline
from callscore.store.repository import AnalysisRepository

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/calls", tags=["Calls"])

CallId = Annotated[str, Path(min_length=1, max_length=MAX_CALL_ID_LENGTH)]


@router.post(
    "/{call_id}/transcript",
    response_model=CallAnalysisResult,
    status_code=status.HTTP_201_CREATED,
    summary="Submit a finished call",
    description=(
        "Stores the transcript, scores it, links detected objections to the "
        "library, and computes voice analytics. Resubmitting overwrites."
    ),
)
def submit_transcript(
    call_id: CallId,
    payload: CallTranscriptPayload,
    pipeline: CallAnalysisPipeline = Depends(get_pipeline),
) -> CallAnalysisResult:
    return pipeline.process_call(
        call_id,
        payload.transcript,
        payload.duration_seconds,
        payload.persona,
    )


@router.post(
    "/{call_id}/score",
    response_model=CallScore,
    summary="Re-score a stored call",
)
def rescore_call(
    call_id: CallId,
    pipeline: CallAnalysisPipeline = Depends(get_pipeline),
) -> CallScore:
    return pipeline.rescore(call_id)


@router.get(
    "/{call_id}/score",
    response_model=CallScore,
    summary="Get the score for a call",
)
def get_call_score(
    call_id: CallId,
    pipeline: CallAnalysisPipeline = Depends(get_pipeline),
) -> CallScore:
    return pipeline.get_score(call_id)


@router.get(
    "/{call_id}/objections",
    response_model=CallObjectionsResponse,
    summary="Objections linked to a call",
)
def get_call_objections(
    call_id: CallId,
    repository: AnalysisRepository = Depends(get_repository),
) -> CallObjectionsResponse:
    repository.get_call(call_id)
    matches = repository.list_call_objections(call_id)
    return CallObjectionsResponse(call_id=call_id, total=len(matches), objections=matches)
