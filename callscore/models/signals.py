"""
Pydantic models for transcript signals.

A signal bundle is derived from a transcript by the parser and is never
mutated afterwards. It feeds the scoring engine and the objection matcher,
and doubles as the explainability trace for every score.
"""

from enum import Enum

from pydantic import BaseModel, Field


class ObjectionCategory(str, Enum):
    """Categories of prospect resistance."""

    PRICE = "price"
    TIME = "time"
    AUTHORITY = "authority"
    NEED = "need"
    TRUST = "trust"
    OTHER = "other"


class QuestionKind(str, Enum):
    OPEN = "open"
    CLOSED = "closed"


class QuestionQuality(str, Enum):
    GOOD = "good"
    WEAK = "weak"
    NONE = "none"


class ExtractedQuestion(BaseModel):
    """A sentence from a rep turn classified as a question."""

    text: str
    kind: QuestionKind

    model_config = {"frozen": True}


class ObjectionOccurrence(BaseModel):
    """A prospect objection and the rep's reply to it."""

    prospect_text: str = Field(..., description="Prospect turn that triggered the objection.")
    rep_response: str = Field(default="", description="Next rep turn, or empty if none followed.")
    category: ObjectionCategory
    handled: bool = False

    model_config = {"frozen": True}


class TranscriptSignals(BaseModel):
    """Deterministic features extracted from a transcript."""

    # Opening (first 3 rep turns)
    opening_turns: list[str] = []
    has_greeting: bool = False
    has_value_prop: bool = False
    opening_word_count: int = 0

    # Discovery
    questions_asked: list[ExtractedQuestion] = []
    question_quality: QuestionQuality = QuestionQuality.NONE
    listening_ratio: float = Field(
        default=0.0,
        description="Prospect word count divided by rep word count.",
    )

    # Objections
    objections: list[ObjectionOccurrence] = []

    # Clarity
    filler_words: list[str] = Field(
        default_factory=list,
        description="Every filler occurrence in rep speech, in match order.",
    )
    avg_words_per_turn: float = 0.0
    longest_turn: int = 0

    # Closing (last 3 rep turns)
    closing_turns: list[str] = []
    has_cta: bool = False
    has_next_steps: bool = False
    closing_word_count: int = 0

    # Turn structure
    rep_turn_count: int = 0
    prospect_turn_count: int = 0
    rep_word_count: int = 0
    prospect_word_count: int = 0

    model_config = {"frozen": True}

    @property
    def open_question_count(self) -> int:
        return sum(1 for q in self.questions_asked if q.kind is QuestionKind.OPEN)
