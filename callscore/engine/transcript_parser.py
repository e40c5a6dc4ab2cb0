"""
Deterministic signal extraction from call transcripts.

``parse_transcript`` is a pure function: the same transcript always
yields the same ``TranscriptSignals``, with no dependence on time,
randomness, or shared state. It never raises; an empty transcript
produces a zeroed bundle.

Rep turns drive most signals (opening, questions, fillers, turn length,
closing). Prospect turns drive objection detection and the listening
ratio.
"""

import logging
import re
from collections.abc import Iterable
from typing import Any

from pydantic import ValidationError

from callscore.engine.patterns import (
    ACKNOWLEDGMENT_ONLY,
    CTA_RULES,
    FILLER_RULES,
    GREETING_RULES,
    NEXT_STEP_RULES,
    OBJECTION_RULES,
    QUESTION_RULES,
    VALUE_PROP_RULES,
    any_match,
    first_match,
)
from callscore.models.signals import (
    ExtractedQuestion,
    ObjectionOccurrence,
    QuestionKind,
    QuestionQuality,
    TranscriptSignals,
)
from callscore.models.transcript import TranscriptEntry

logger = logging.getLogger(__name__)

WINDOW_TURNS = 3
GOOD_QUESTION_RATIO = 0.6
HANDLED_MIN_WORDS = 15

# A "?" closes a sentence and stays with it; "." and "!" are dropped.
_SENTENCE_SPLIT = re.compile(r"(?<=\?)\s+|[.!]+")


def count_words(text: str) -> int:
    return len(text.split())


def split_sentences(text: str) -> list[str]:
    return [s.strip() for s in _SENTENCE_SPLIT.split(text) if s and s.strip()]


# ── Input normalization ───────────────────────────────────────────────

def normalize_transcript(raw: Iterable[Any] | None) -> list[TranscriptEntry]:
    """
    Coerce loosely-typed transcript items into ``TranscriptEntry`` objects.

    Items that are already entries pass through. Dicts are validated;
    malformed items (unknown role, non-dict) are skipped with a warning
    so a partially broken transcript still scores.
    """
    entries: list[TranscriptEntry] = []
    for index, item in enumerate(raw or []):
        if isinstance(item, TranscriptEntry):
            entries.append(item)
            continue
        try:
            entries.append(TranscriptEntry.model_validate(item))
        except ValidationError:
            logger.warning("Skipping malformed transcript entry | index=%d", index)
    return entries


# ── Individual extractors ─────────────────────────────────────────────

def classify_question(sentence: str) -> QuestionKind | None:
    """Return the question kind of ``sentence``, or None if not a question."""
    return first_match(QUESTION_RULES, sentence)


def extract_questions(rep_texts: list[str]) -> list[ExtractedQuestion]:
    questions: list[ExtractedQuestion] = []
    for text in rep_texts:
        for sentence in split_sentences(text):
            kind = classify_question(sentence)
            if kind is not None:
                questions.append(ExtractedQuestion(text=sentence, kind=kind))
    return questions


def assess_question_quality(questions: list[ExtractedQuestion]) -> QuestionQuality:
    """
    Rate the question mix.

    ``good`` needs at least 60% open questions. Any lower ratio, however
    low, is ``weak``.
    """
    if not questions:
        return QuestionQuality.NONE
    open_count = sum(1 for q in questions if q.kind is QuestionKind.OPEN)
    if open_count / len(questions) >= GOOD_QUESTION_RATIO:
        return QuestionQuality.GOOD
    return QuestionQuality.WEAK


def is_objection_handled(response: str) -> bool:
    """A reply counts as handling an objection only if it is substantive."""
    stripped = response.strip()
    if not stripped or ACKNOWLEDGMENT_ONLY.match(stripped):
        return False
    return count_words(stripped) >= HANDLED_MIN_WORDS


def extract_objections(transcript: list[TranscriptEntry]) -> list[ObjectionOccurrence]:
    """
    Detect objections in prospect turns, in transcript order.

    Each prospect turn yields at most one occurrence: the first category
    in ``OBJECTION_RULES`` order that matches. The paired response is the
    next rep turn after it.
    """
    objections: list[ObjectionOccurrence] = []
    for index, entry in enumerate(transcript):
        if not entry.is_prospect:
            continue
        category = first_match(OBJECTION_RULES, entry.text)
        if category is None:
            continue
        response = next(
            (t.text for t in transcript[index + 1:] if t.is_rep),
            "",
        )
        objections.append(
            ObjectionOccurrence(
                prospect_text=entry.text,
                rep_response=response,
                category=category,
                handled=is_objection_handled(response),
            )
        )
    return objections


def extract_filler_words(rep_texts: list[str]) -> list[str]:
    """Return every filler occurrence, grouped by vocabulary order."""
    full_text = " ".join(rep_texts)
    fillers: list[str] = []
    for rule in FILLER_RULES:
        fillers.extend(m.group(0).lower() for m in rule.pattern.finditer(full_text))
    return fillers


# ── Parser ─────────────────────────────────────────────────────────────

def parse_transcript(transcript: list[TranscriptEntry]) -> TranscriptSignals:
    """Extract all scoring signals from ``transcript``."""
    rep_texts = [t.text for t in transcript if t.is_rep]
    prospect_texts = [t.text for t in transcript if t.is_prospect]

    opening_turns = rep_texts[:WINDOW_TURNS]
    closing_turns = rep_texts[-WINDOW_TURNS:] if rep_texts else []
    opening_text = " ".join(opening_turns)
    closing_text = " ".join(closing_turns)

    rep_word_counts = [count_words(text) for text in rep_texts]
    rep_words = sum(rep_word_counts)
    prospect_words = sum(count_words(text) for text in prospect_texts)

    questions = extract_questions(rep_texts)

    return TranscriptSignals(
        opening_turns=opening_turns,
        has_greeting=any_match(GREETING_RULES, opening_text),
        has_value_prop=any_match(VALUE_PROP_RULES, opening_text),
        opening_word_count=count_words(opening_text),
        questions_asked=questions,
        question_quality=assess_question_quality(questions),
        listening_ratio=prospect_words / rep_words if rep_words else 0.0,
        objections=extract_objections(transcript),
        filler_words=extract_filler_words(rep_texts),
        avg_words_per_turn=rep_words / len(rep_word_counts) if rep_word_counts else 0.0,
        longest_turn=max(rep_word_counts, default=0),
        closing_turns=closing_turns,
        has_cta=any_match(CTA_RULES, closing_text),
        has_next_steps=any_match(NEXT_STEP_RULES, closing_text),
        closing_word_count=count_words(closing_text),
        rep_turn_count=len(rep_texts),
        prospect_turn_count=len(prospect_texts),
        rep_word_count=rep_words,
        prospect_word_count=prospect_words,
    )
