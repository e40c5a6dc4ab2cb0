"""
Persistence for call transcripts and their analysis artifacts.

Every write is an idempotent upsert keyed by call (and, for objection
occurrences, by ``(call_id, objection_id)``), so retried or repeated
pipeline runs never create duplicates. Upserts use the dialect's native
``INSERT ... ON CONFLICT`` (SQLite and PostgreSQL).
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any

from sqlalchemy import delete, select
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.orm import Session

from callscore.errors import NotFoundError
from callscore.models.coaching import (
    AIMetadata,
    CategoryFeedbackText,
    CoachingAnalysis,
)
from callscore.models.objections import ObjectionLibraryEntry, ObjectionMatch
from callscore.models.scoring import CallScore
from callscore.models.transcript import TranscriptEntry
from callscore.models.voice import VoiceAnalytics
from callscore.store.database import Database
from callscore.store.tables import (
    CallCoachingRow,
    CallLogRow,
    CallObjectionRow,
    CallScoreRow,
    ObjectionLibraryRow,
    VoiceAnalyticsRow,
)

logger = logging.getLogger(__name__)

_INSERTS = {
    "sqlite": sqlite_insert,
    "postgresql": pg_insert,
}


@dataclass(frozen=True)
class StoredCall:
    """A submitted call as persisted."""

    call_id: str
    transcript: list[TranscriptEntry]
    duration_seconds: float
    persona: str | None = None


class AnalysisRepository:
    """Reads and writes call analysis rows."""

    def __init__(self, database: Database) -> None:
        self.database = database
        try:
            self._insert = _INSERTS[database.dialect]
        except KeyError:
            raise ValueError(f"Unsupported database dialect for upserts: {database.dialect}") from None

    # ── Helpers ────────────────────────────────────────────────────────

    def _upsert(
        self,
        session: Session,
        model: type,
        values: dict[str, Any],
        key: list[str],
        update: bool = True,
        exclude_from_update: tuple[str, ...] = (),
    ) -> None:
        stmt = self._insert(model.__table__).values(**values)
        if update:
            stmt = stmt.on_conflict_do_update(
                index_elements=key,
                set_={
                    column: stmt.excluded[column]
                    for column in values
                    if column not in key and column not in exclude_from_update
                },
            )
        else:
            stmt = stmt.on_conflict_do_nothing(index_elements=key)
        session.execute(stmt)

    # ── Calls ──────────────────────────────────────────────────────────

    def save_call(
        self,
        call_id: str,
        transcript: list[TranscriptEntry],
        duration_seconds: float,
        persona: str | None = None,
    ) -> None:
        with self.database.session() as session:
            self._upsert(
                session,
                CallLogRow,
                {
                    "id": call_id,
                    "transcript": [e.model_dump(mode="json") for e in transcript],
                    "duration_seconds": duration_seconds,
                    "persona": persona,
                    "created_at": datetime.now(timezone.utc),
                },
                key=["id"],
                exclude_from_update=("created_at",),
            )

    def get_call(self, call_id: str) -> StoredCall:
        """Return the stored call or raise ``NotFoundError``."""
        with self.database.session() as session:
            row = session.get(CallLogRow, call_id)
            if row is None:
                raise NotFoundError("Call", call_id)
            return StoredCall(
                call_id=row.id,
                transcript=[TranscriptEntry.model_validate(e) for e in row.transcript or []],
                duration_seconds=row.duration_seconds or 0.0,
                persona=row.persona,
            )

    # ── Scores ─────────────────────────────────────────────────────────

    def save_score(self, score: CallScore) -> None:
        data = score.model_dump(mode="json")
        with self.database.session() as session:
            self._upsert(
                session,
                CallScoreRow,
                {
                    "call_id": score.call_id,
                    "overall_score": score.overall_score,
                    "category_scores": data["category_scores"],
                    "call_metadata": data["metadata"],
                    "created_at": score.created_at,
                },
                key=["call_id"],
            )
        logger.debug("Score saved | call=%s | overall=%.1f", score.call_id, score.overall_score)

    def get_score(self, call_id: str) -> CallScore | None:
        with self.database.session() as session:
            row = session.get(CallScoreRow, call_id)
            if row is None:
                return None
            return CallScore.model_validate(
                {
                    "call_id": row.call_id,
                    "overall_score": row.overall_score,
                    "category_scores": row.category_scores,
                    "metadata": row.call_metadata,
                    "created_at": row.created_at,
                }
            )

    # ── Voice analytics ───────────────────────────────────────────────

    def save_voice_analytics(self, call_id: str, analytics: VoiceAnalytics) -> None:
        values = {"call_id": call_id, **analytics.model_dump(mode="json")}
        values["created_at"] = datetime.now(timezone.utc)
        with self.database.session() as session:
            self._upsert(session, VoiceAnalyticsRow, values, key=["call_id"])
        logger.debug("Voice analytics saved | call=%s", call_id)

    def get_voice_analytics(self, call_id: str) -> VoiceAnalytics | None:
        with self.database.session() as session:
            row = session.get(VoiceAnalyticsRow, call_id)
            if row is None:
                return None
            return VoiceAnalytics.model_validate(
                {field: getattr(row, field) for field in VoiceAnalytics.model_fields}
            )

    # ── Coaching ───────────────────────────────────────────────────────

    def save_coaching(self, call_id: str, analysis: CoachingAnalysis) -> None:
        data = analysis.model_dump(mode="json")
        feedback = analysis.category_feedback
        now = datetime.now(timezone.utc)
        with self.database.session() as session:
            self._upsert(
                session,
                CallCoachingRow,
                {
                    "call_id": call_id,
                    "strengths": data["strengths"],
                    "improvement_areas": data["improvement_areas"],
                    "specific_examples": data["specific_examples"],
                    "recommended_practice": data["recommended_practice"],
                    "suggested_phrases": data["suggested_phrases"],
                    "opening_feedback": feedback.opening,
                    "discovery_feedback": feedback.discovery,
                    "objection_handling_feedback": feedback.objection_handling,
                    "clarity_feedback": feedback.clarity,
                    "closing_feedback": feedback.closing,
                    "ai_model": analysis.ai_metadata.model,
                    "processing_time_ms": analysis.ai_metadata.processing_time_ms,
                    "confidence_score": analysis.ai_metadata.confidence_score,
                    "tokens_used": analysis.ai_metadata.tokens_used,
                    "created_at": now,
                    "updated_at": now,
                },
                key=["call_id"],
                exclude_from_update=("created_at",),
            )
        logger.debug("Coaching saved | call=%s", call_id)

    def get_coaching(self, call_id: str) -> CoachingAnalysis | None:
        with self.database.session() as session:
            row = session.get(CallCoachingRow, call_id)
            if row is None:
                return None
            return CoachingAnalysis.model_validate(
                {
                    "strengths": row.strengths or [],
                    "improvement_areas": row.improvement_areas or [],
                    "specific_examples": row.specific_examples or [],
                    "recommended_practice": row.recommended_practice or {},
                    "suggested_phrases": row.suggested_phrases or [],
                    "category_feedback": CategoryFeedbackText(
                        opening=row.opening_feedback,
                        discovery=row.discovery_feedback,
                        objection_handling=row.objection_handling_feedback,
                        clarity=row.clarity_feedback,
                        closing=row.closing_feedback,
                    ),
                    "ai_metadata": AIMetadata(
                        model=row.ai_model,
                        processing_time_ms=row.processing_time_ms,
                        confidence_score=row.confidence_score,
                        tokens_used=row.tokens_used,
                    ),
                }
            )

    # ── Objections ─────────────────────────────────────────────────────

    def list_objection_library(self) -> list[ObjectionLibraryEntry]:
        """All library entries, ordered by id."""
        with self.database.session() as session:
            rows = session.scalars(select(ObjectionLibraryRow).order_by(ObjectionLibraryRow.id)).all()
            return [
                ObjectionLibraryEntry(
                    id=row.id,
                    name=row.name,
                    category=row.category,
                    industry=row.industry or "",
                    description=row.description or "",
                    handling_strategies=row.handling_strategies or [],
                )
                for row in rows
            ]

    def save_objection_matches(self, call_id: str, matches: list[ObjectionMatch]) -> None:
        """
        Replace the call's links with ``matches``.

        Existing ``(call_id, objection_id)`` pairs are left as is; pairs not
        in ``matches`` are deleted in the same transaction.
        """
        with self.database.session() as session:
            session.execute(
                delete(CallObjectionRow)
                .where(CallObjectionRow.call_id == call_id)
                .where(CallObjectionRow.objection_id.not_in(sorted({m.objection_id for m in matches})))
            )
            for match in matches:
                self._upsert(
                    session,
                    CallObjectionRow,
                    {
                        "call_id": call_id,
                        "objection_id": match.objection_id,
                        "triggered_at": match.triggered_at,
                        "response_snippet": match.response_snippet,
                        "created_at": datetime.now(timezone.utc),
                    },
                    key=["call_id", "objection_id"],
                    update=False,
                )

    def list_call_objections(self, call_id: str) -> list[ObjectionMatch]:
        with self.database.session() as session:
            rows = session.scalars(
                select(CallObjectionRow)
                .where(CallObjectionRow.call_id == call_id)
                .order_by(CallObjectionRow.id)
            ).all()
            return [
                ObjectionMatch(
                    objection_id=row.objection_id,
                    triggered_at=row.triggered_at,
                    response_snippet=row.response_snippet,
                )
                for row in rows
            ]
