"""
Pydantic models for LLM-generated coaching feedback.

Every collection defaults to empty so consumers never see ``null`` for a
field the model left out.
"""

from enum import Enum

from pydantic import BaseModel, Field


class ExampleRating(str, Enum):
    EXCELLENT = "excellent"
    GOOD = "good"
    NEEDS_WORK = "needs-work"


class CoachingExample(BaseModel):
    quote: str = ""
    context: str = ""
    suggestion: str = ""


class CoachingInsight(BaseModel):
    """A strength or improvement area tied to a category."""

    category: str = ""
    strength: str | None = None
    improvement: str | None = None
    example: CoachingExample | None = None


class SpecificExample(BaseModel):
    """A quoted transcript moment with the coach's rating."""

    quote: str
    analysis: str = ""
    rating: ExampleRating = ExampleRating.GOOD


class RecommendedPractice(BaseModel):
    focus_area: str = "General improvement"
    reason: str = "Continue practicing"
    scenarios: list[str] = []
    exercises: list[str] = []


class SuggestedPhrase(BaseModel):
    situation: str = ""
    phrase: str
    when_to_use: str = ""


class CategoryFeedbackText(BaseModel):
    """Free-text feedback per category, present only where relevant."""

    opening: str | None = None
    discovery: str | None = None
    objection_handling: str | None = None
    clarity: str | None = None
    closing: str | None = None


class AIMetadata(BaseModel):
    model: str = ""
    processing_time_ms: int = 0
    confidence_score: float = Field(default=0.8, ge=0.0, le=1.0)
    tokens_used: int = 0


class CoachingAnalysis(BaseModel):
    """Qualitative coaching feedback for one call."""

    strengths: list[CoachingInsight] = []
    improvement_areas: list[CoachingInsight] = []
    specific_examples: list[SpecificExample] = []
    recommended_practice: RecommendedPractice = Field(default_factory=RecommendedPractice)
    suggested_phrases: list[SuggestedPhrase] = []
    category_feedback: CategoryFeedbackText = Field(default_factory=CategoryFeedbackText)
    ai_metadata: AIMetadata = Field(default_factory=AIMetadata)
