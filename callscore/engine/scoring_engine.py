"""
Rule-based call scoring.

Converts transcript signals into five explainable category scores and a
weighted overall score.

Design:
- Calls shorter than 30 seconds or with fewer than 4 turns are not
  scored: every category is 0 with a "call too short to score" signal.
- Each category is scored independently by additive point rules and
  clamped to ``[0, max_score]``. Clarity starts at the maximum and is
  only deducted.
- Every rule that fires appends a human-readable signal, so a score can
  always be traced back to what was detected.
- The overall score is the weight-normalized average, rounded half-up to
  one decimal.
"""

import logging
import math
from datetime import datetime

from callscore.engine.transcript_parser import parse_transcript
from callscore.models.scoring import (
    CATEGORY_WEIGHTS,
    SCORING_CATEGORIES,
    CallMetadata,
    CallScore,
    CategoryFeedback,
    CategoryScore,
    ScoreCategory,
)
from callscore.models.signals import QuestionQuality, TranscriptSignals
from callscore.models.transcript import TranscriptEntry

logger = logging.getLogger(__name__)

MIN_CALL_DURATION_SECONDS = 30
MIN_TURN_COUNT = 4
TOO_SHORT_SIGNAL = "call too short to score"
NO_OBJECTIONS_SIGNAL = "no objections encountered"


class _Tally:
    """Accumulates points, signals, and feedback for one category."""

    def __init__(self, category: ScoreCategory, start: float = 0.0) -> None:
        self.category = category
        self.points = start
        self.signals: list[str] = []
        self.strengths: list[str] = []
        self.improvements: list[str] = []

    def build(self, max_score: float = 10.0) -> CategoryScore:
        return CategoryScore(
            category=self.category,
            score=min(max(self.points, 0.0), max_score),
            max_score=max_score,
            signals=self.signals,
            feedback=CategoryFeedback(strengths=self.strengths, improvements=self.improvements),
        )


# ── Category rules ────────────────────────────────────────────────────

def score_opening(signals: TranscriptSignals) -> CategoryScore:
    tally = _Tally(ScoreCategory.OPENING)

    if signals.has_greeting:
        tally.points += 2
        tally.signals.append("greeting detected")
        tally.strengths.append("Strong opening with greeting")
    else:
        tally.improvements.append("Start with a greeting to build rapport")

    if signals.has_value_prop:
        tally.points += 3
        tally.signals.append("value proposition stated")
        tally.strengths.append("Clear value proposition in opening")
    else:
        tally.improvements.append("State value proposition in first 30 seconds")

    words = signals.opening_word_count
    if 30 <= words <= 60:
        tally.points += 5
        tally.signals.append("concise opening (30-60 words)")
    elif 20 <= words <= 80:
        tally.points += 3
        tally.signals.append("acceptable opening length")
    elif words < 20:
        tally.points += 1
        tally.signals.append("very brief opening")
        tally.improvements.append("Opening too brief - provide more context")
    else:
        tally.points += 1
        tally.signals.append("verbose opening")
        tally.improvements.append("Opening too long - be more concise")

    if not tally.strengths:
        tally.strengths.append("Opening completed")
    return tally.build()


def score_discovery(signals: TranscriptSignals) -> CategoryScore:
    tally = _Tally(ScoreCategory.DISCOVERY)

    count = len(signals.questions_asked)
    if count >= 5:
        tally.points += 5
        tally.signals.append(f"{count} questions asked")
        tally.strengths.append("Asked multiple discovery questions")
    elif count >= 3:
        tally.points += 3
        tally.signals.append(f"{count} questions asked")
    elif count >= 1:
        tally.points += 1
        tally.signals.append(f"only {count} question(s)")
        tally.improvements.append("Ask more discovery questions (aim for 5+)")
    else:
        tally.signals.append("no questions asked")
        tally.improvements.append("Must ask discovery questions to uncover needs")

    if signals.question_quality is QuestionQuality.GOOD:
        tally.points += 3
        tally.signals.append("high-quality open-ended questions")
        tally.strengths.append("Used open-ended questions effectively")
    elif signals.question_quality is QuestionQuality.WEAK:
        tally.points += 1
        tally.signals.append("mostly closed questions")
        tally.improvements.append("Use more open-ended questions (what, why, how)")
    else:
        tally.signals.append("no questions")

    ratio = signals.listening_ratio
    if 0.4 <= ratio <= 0.7:
        tally.points += 2
        tally.signals.append("excellent listening ratio")
        tally.strengths.append("Let prospect do most of the talking")
    elif ratio < 0.4:
        tally.points += 1
        tally.signals.append("prospect talked too much")
        tally.improvements.append("Guide conversation more - ask targeted questions")
    else:
        tally.signals.append("rep talked too much")
        tally.improvements.append("Talk less, listen more - aim for 40-50% talk time")

    if not tally.strengths and tally.points >= 5:
        tally.strengths.append("Discovery phase completed")
    return tally.build()


def score_objection_handling(signals: TranscriptSignals) -> CategoryScore:
    tally = _Tally(ScoreCategory.OBJECTION_HANDLING)
    total = len(signals.objections)

    # Neutral: the absence of objections is neither rewarded nor penalized.
    if total == 0:
        tally.points = 7
        tally.signals.append(NO_OBJECTIONS_SIGNAL)
        tally.strengths.append("No objections raised")
        return tally.build()

    categories = list(dict.fromkeys(o.category.value for o in signals.objections))
    handled = sum(1 for o in signals.objections if o.handled)
    handle_rate = handled / total

    tally.signals.append(f"{total} objection(s) detected")
    tally.signals.append(f"types: {', '.join(categories)}")

    if handle_rate >= 0.8:
        tally.points += 7
        tally.strengths.append(f"Handled {handled}/{total} objections effectively")
    elif handle_rate >= 0.5:
        tally.points += 4
        tally.improvements.append(
            f"Only handled {handled}/{total} objections - give more substantive responses"
        )
    else:
        tally.points += 1
        tally.improvements.append(
            f"Weak objection handling ({handled}/{total}) - provide detailed responses"
        )
    tally.signals.append(f"{handled}/{total} handled")

    if len(categories) >= 3:
        tally.points += 3
        tally.strengths.append("Handled diverse objection types")
    elif len(categories) == 2:
        tally.points += 2
    else:
        tally.points += 1

    return tally.build()


def score_clarity(signals: TranscriptSignals) -> CategoryScore:
    tally = _Tally(ScoreCategory.CLARITY, start=10)

    fillers = len(signals.filler_words)
    filler_rate = fillers / signals.rep_word_count if signals.rep_word_count else 0.0
    if filler_rate <= 0.02:
        tally.signals.append("minimal filler words")
        tally.strengths.append("Clear, professional communication")
    elif filler_rate <= 0.05:
        tally.points -= 1
        tally.signals.append("few filler words")
    elif filler_rate <= 0.10:
        tally.points -= 2
        tally.signals.append(f"{fillers} filler words")
        tally.improvements.append("Reduce filler words (um, uh, like) for more polished delivery")
    else:
        tally.points -= 4
        tally.signals.append(f"excessive filler words ({fillers})")
        tally.improvements.append("Too many filler words - practice pausing instead")

    if signals.avg_words_per_turn <= 40:
        tally.signals.append("concise responses")
        if not tally.strengths:
            tally.strengths.append("Responses were clear and concise")
    elif signals.avg_words_per_turn <= 60:
        tally.points -= 1
        tally.signals.append("moderate turn length")
    else:
        tally.points -= 3
        tally.signals.append("verbose turns")
        tally.improvements.append("Keep responses shorter - aim for 30-40 words per turn")

    if signals.longest_turn <= 80:
        tally.signals.append("no monologues")
    elif signals.longest_turn <= 120:
        tally.points -= 1
        tally.signals.append("one long turn detected")
    else:
        tally.points -= 3
        tally.signals.append(f"longest turn: {signals.longest_turn} words")
        tally.improvements.append("Avoid long monologues - break into dialogue")

    return tally.build()


def score_closing(signals: TranscriptSignals) -> CategoryScore:
    tally = _Tally(ScoreCategory.CLOSING)

    if signals.has_cta:
        tally.points += 5
        tally.signals.append("clear call-to-action")
        tally.strengths.append("Clear call-to-action stated")
    else:
        tally.signals.append("no clear CTA")
        tally.improvements.append("Always end with a clear call-to-action")

    if signals.has_next_steps:
        tally.points += 3
        tally.signals.append("next steps defined")
        tally.strengths.append("Defined clear next steps")
    else:
        tally.signals.append("no next steps")
        tally.improvements.append("Specify concrete next steps before ending")

    words = signals.closing_word_count
    if 20 <= words <= 50:
        tally.points += 2
        tally.signals.append("concise close")
    elif words < 20:
        tally.points += 1
        tally.signals.append("brief close")
        tally.improvements.append("Closing too brief - reinforce value and next steps")
    else:
        tally.signals.append("verbose close")
        tally.improvements.append("Closing too long - be direct")

    if not tally.strengths and tally.points >= 5:
        tally.strengths.append("Closing completed")
    return tally.build()


# ── Aggregation ───────────────────────────────────────────────────────

def round_half_up(value: float, digits: int = 1) -> float:
    factor = 10 ** digits
    return math.floor(value * factor + 0.5) / factor


def weighted_overall_score(category_scores: list[CategoryScore]) -> float:
    """Weight-normalized average of ``category_scores``, one decimal."""
    total = 0.0
    weights = 0.0
    for category_score in category_scores:
        weight = CATEGORY_WEIGHTS.get(category_score.category)
        if weight is None:
            continue
        total += category_score.score * weight
        weights += weight
    return round_half_up(total / weights) if weights else 0.0


def build_metadata(signals: TranscriptSignals, duration_seconds: float) -> CallMetadata:
    return CallMetadata(
        call_duration_seconds=duration_seconds,
        rep_turn_count=signals.rep_turn_count,
        prospect_turn_count=signals.prospect_turn_count,
        rep_word_count=signals.rep_word_count,
        prospect_word_count=signals.prospect_word_count,
        listening_ratio=signals.listening_ratio,
        objections_detected=len(signals.objections),
        questions_asked=len(signals.questions_asked),
        filler_word_count=len(signals.filler_words),
    )


def is_call_too_short(duration_seconds: float, transcript: list[TranscriptEntry]) -> bool:
    return duration_seconds < MIN_CALL_DURATION_SECONDS or len(transcript) < MIN_TURN_COUNT


def short_call_score(
    call_id: str,
    metadata: CallMetadata,
    created_at: datetime | None = None,
) -> CallScore:
    """Zero score for calls too short to evaluate."""
    category_scores = [
        CategoryScore(
            category=category.key,
            score=0,
            max_score=category.max_score,
            signals=[TOO_SHORT_SIGNAL],
            feedback=CategoryFeedback(
                improvements=["Complete a full call (60+ seconds) to receive scoring"],
            ),
        )
        for category in SCORING_CATEGORIES
    ]
    extra = {"created_at": created_at} if created_at else {}
    return CallScore(
        call_id=call_id,
        overall_score=0.0,
        category_scores=category_scores,
        metadata=metadata,
        **extra,
    )


def score_signals(
    call_id: str,
    signals: TranscriptSignals,
    duration_seconds: float,
    created_at: datetime | None = None,
) -> CallScore:
    """Score pre-extracted signals, skipping the short-call guard."""
    category_scores = [
        score_opening(signals),
        score_discovery(signals),
        score_objection_handling(signals),
        score_clarity(signals),
        score_closing(signals),
    ]
    extra = {"created_at": created_at} if created_at else {}
    return CallScore(
        call_id=call_id,
        overall_score=weighted_overall_score(category_scores),
        category_scores=category_scores,
        metadata=build_metadata(signals, duration_seconds),
        **extra,
    )


def score_call(
    call_id: str,
    transcript: list[TranscriptEntry],
    duration_seconds: float,
    signals: TranscriptSignals | None = None,
    created_at: datetime | None = None,
) -> CallScore:
    """
    Score a complete call.

    Args:
        call_id: Identifier stored on the resulting score.
        transcript: Ordered call turns.
        duration_seconds: Call length used by the short-call guard.
        signals: Pre-computed signals for ``transcript``, if the caller
                 already parsed it.
        created_at: Fixed creation time; defaults to now.

    Returns:
        CallScore with exactly five category scores.
    """
    if signals is None:
        signals = parse_transcript(transcript)

    if is_call_too_short(duration_seconds, transcript):
        logger.info(
            "Call too short to score | call=%s | duration=%.1fs | turns=%d",
            call_id,
            duration_seconds,
            len(transcript),
        )
        return short_call_score(call_id, build_metadata(signals, duration_seconds), created_at)

    score = score_signals(call_id, signals, duration_seconds, created_at)
    logger.info(
        "Call scored | call=%s | overall=%.1f | objections=%d | questions=%d",
        call_id,
        score.overall_score,
        len(signals.objections),
        len(signals.questions_asked),
    )
    return score
