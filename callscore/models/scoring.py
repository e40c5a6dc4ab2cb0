"""
Pydantic models for call scores.

A call is scored across five categories, each 0-10 with an explainable
list of signals and strengths/improvements feedback. The overall score
is a weighted average of the category scores.
"""

from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum

from pydantic import BaseModel, Field


class ScoreCategory(str, Enum):
    """The five evaluated sales skills."""

    OPENING = "opening"
    DISCOVERY = "discovery"
    OBJECTION_HANDLING = "objection_handling"
    CLARITY = "clarity"
    CLOSING = "closing"


@dataclass(frozen=True)
class ScoringCategory:
    """Static definition of a scoring category."""

    key: ScoreCategory
    name: str
    weight: float
    description: str
    max_score: float = 10.0


SCORING_CATEGORIES: list[ScoringCategory] = [
    ScoringCategory(
        ScoreCategory.OPENING,
        "Opening",
        1.0,
        "Introduction quality, rapport building, and initial value proposition",
    ),
    ScoringCategory(
        ScoreCategory.DISCOVERY,
        "Discovery",
        1.5,
        "Question quality, listening ratio, and uncovering needs",
    ),
    ScoringCategory(
        ScoreCategory.OBJECTION_HANDLING,
        "Objection Handling",
        2.0,
        "Response quality to objections, overcoming resistance",
    ),
    ScoringCategory(
        ScoreCategory.CLARITY,
        "Clarity",
        1.0,
        "Communication conciseness, avoiding filler words, staying on message",
    ),
    ScoringCategory(
        ScoreCategory.CLOSING,
        "Closing",
        1.5,
        "Call-to-action clarity, commitment securing, next steps",
    ),
]

CATEGORY_WEIGHTS: dict[ScoreCategory, float] = {c.key: c.weight for c in SCORING_CATEGORIES}


class CategoryFeedback(BaseModel):
    strengths: list[str] = []
    improvements: list[str] = []


class CategoryScore(BaseModel):
    """Score and rationale for one category."""

    category: ScoreCategory
    score: float = Field(..., ge=0.0, le=10.0)
    max_score: float = 10.0
    signals: list[str] = Field(
        default_factory=list,
        description="What was detected in the transcript, in evaluation order.",
    )
    feedback: CategoryFeedback = Field(default_factory=CategoryFeedback)


class CallMetadata(BaseModel):
    """Counts describing the scored call."""

    call_duration_seconds: float = 0.0
    rep_turn_count: int = 0
    prospect_turn_count: int = 0
    rep_word_count: int = 0
    prospect_word_count: int = 0
    listening_ratio: float = 0.0
    objections_detected: int = 0
    questions_asked: int = 0
    filler_word_count: int = 0


class CallScore(BaseModel):
    """The complete score for one call."""

    call_id: str
    overall_score: float = Field(..., ge=0.0, le=10.0)
    category_scores: list[CategoryScore] = Field(..., min_length=5, max_length=5)
    metadata: CallMetadata = Field(default_factory=CallMetadata)
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    def category(self, key: ScoreCategory) -> CategoryScore:
        """Return the score for ``key``."""
        for category_score in self.category_scores:
            if category_score.category == key:
                return category_score
        raise KeyError(key)
