"""
Objection library endpoint.
"""

from collections import defaultdict

from fastapi import APIRouter, Depends

from callscore.dependencies import get_repository
from callscore.models.objections import ObjectionLibraryEntry, ObjectionLibraryResponse
from callscore.store.repository import AnalysisRepository

router = APIRouter(prefix="/objections", tags=["Objections"])

GENERAL_INDUSTRY = "general"


@router.get(
    "/library",
    response_model=ObjectionLibraryResponse,
    summary="Canonical objection library",
    description="All library entries grouped by industry, ordered by id within each group.",
)
def get_objection_library(
    repository: AnalysisRepository = Depends(get_repository),
) -> ObjectionLibraryResponse:
    entries = repository.list_objection_library()
    grouped: dict[str, list[ObjectionLibraryEntry]] = defaultdict(list)
    for entry in entries:
        grouped[entry.industry or GENERAL_INDUSTRY].append(entry)
    return ObjectionLibraryResponse(total=len(entries), by_industry=dict(grouped))
