"""
SQLAlchemy models for persisted call analysis.

- ``call_logs``: submitted transcripts (one per call)
- ``call_scores``, ``voice_analytics``, ``call_coaching``: one row per
  call, upserted on ``call_id``
- ``call_objections``: zero or more per call, unique on
  ``(call_id, objection_id)``
- ``objection_library``: canonical taxonomy, read-only here
"""

from datetime import datetime, timezone

from sqlalchemy import JSON, DateTime, Float, ForeignKey, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from callscore.models.transcript import MAX_CALL_ID_LENGTH, MAX_PERSONA_LENGTH
from callscore.store.database import Base


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class CallLogRow(Base):
    __tablename__ = "call_logs"

    id: Mapped[str] = mapped_column(String(MAX_CALL_ID_LENGTH), primary_key=True)
    transcript: Mapped[list] = mapped_column(JSON, default=list)
    duration_seconds: Mapped[float] = mapped_column(Float, default=0.0)
    persona: Mapped[str | None] = mapped_column(String(MAX_PERSONA_LENGTH), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)


class CallScoreRow(Base):
    __tablename__ = "call_scores"

    call_id: Mapped[str] = mapped_column(String(MAX_CALL_ID_LENGTH), ForeignKey("call_logs.id"), primary_key=True)
    overall_score: Mapped[float] = mapped_column(Float)
    category_scores: Mapped[list] = mapped_column(JSON)
    call_metadata: Mapped[dict] = mapped_column(JSON)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)


class VoiceAnalyticsRow(Base):
    __tablename__ = "voice_analytics"

    call_id: Mapped[str] = mapped_column(String(MAX_CALL_ID_LENGTH), ForeignKey("call_logs.id"), primary_key=True)
    avg_speaking_pace: Mapped[int] = mapped_column(Integer)
    pace_variability: Mapped[float] = mapped_column(Float)
    filler_word_count: Mapped[int] = mapped_column(Integer)
    filler_word_rate: Mapped[float] = mapped_column(Float)
    pause_count: Mapped[int] = mapped_column(Integer)
    turn_count: Mapped[int] = mapped_column(Integer)
    avg_turn_length_words: Mapped[int] = mapped_column(Integer)
    longest_turn_words: Mapped[int] = mapped_column(Integer)
    energy_level: Mapped[str] = mapped_column(String(16))
    tone_consistency: Mapped[float] = mapped_column(Float)
    rep_talk_time_seconds: Mapped[int] = mapped_column(Integer)
    prospect_talk_time_seconds: Mapped[int] = mapped_column(Integer)
    silence_time_seconds: Mapped[int] = mapped_column(Integer)
    timing_source: Mapped[str] = mapped_column(String(16))
    listening_ratio: Mapped[float] = mapped_column(Float)
    question_count: Mapped[int] = mapped_column(Integer)
    question_quality_score: Mapped[float] = mapped_column(Float)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)


class CallCoachingRow(Base):
    __tablename__ = "call_coaching"

    call_id: Mapped[str] = mapped_column(String(MAX_CALL_ID_LENGTH), ForeignKey("call_logs.id"), primary_key=True)
    strengths: Mapped[list] = mapped_column(JSON)
    improvement_areas: Mapped[list] = mapped_column(JSON)
    specific_examples: Mapped[list] = mapped_column(JSON)
    recommended_practice: Mapped[dict] = mapped_column(JSON)
    suggested_phrases: Mapped[list] = mapped_column(JSON)
    opening_feedback: Mapped[str | None] = mapped_column(Text, nullable=True)
    discovery_feedback: Mapped[str | None] = mapped_column(Text, nullable=True)
    objection_handling_feedback: Mapped[str | None] = mapped_column(Text, nullable=True)
    clarity_feedback: Mapped[str | None] = mapped_column(Text, nullable=True)
    closing_feedback: Mapped[str | None] = mapped_column(Text, nullable=True)
    ai_model: Mapped[str] = mapped_column(String(128))
    processing_time_ms: Mapped[int] = mapped_column(Integer)
    confidence_score: Mapped[float] = mapped_column(Float)
    tokens_used: Mapped[int] = mapped_column(Integer)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)


class ObjectionLibraryRow(Base):
    __tablename__ = "objection_library"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    name: Mapped[str] = mapped_column(String(255))
    category: Mapped[str] = mapped_column(String(32), index=True)
    industry: Mapped[str] = mapped_column(String(128), default="")
    description: Mapped[str] = mapped_column(Text, default="")
    handling_strategies: Mapped[list] = mapped_column(JSON, default=list)


class CallObjectionRow(Base):
    __tablename__ = "call_objections"
    __table_args__ = (UniqueConstraint("call_id", "objection_id", name="uq_call_objection"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    call_id: Mapped[str] = mapped_column(String(MAX_CALL_ID_LENGTH), index=True)
    objection_id: Mapped[str] = mapped_column(String(64), ForeignKey("objection_library.id"))
    triggered_at: Mapped[str] = mapped_column(Text, default="")
    response_snippet: Mapped[str] = mapped_column(Text, default="")
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)
