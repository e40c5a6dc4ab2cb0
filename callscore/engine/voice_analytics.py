"""
Speech-pattern analytics derived from transcript text and call duration.

No audio is analyzed. Talk time is estimated as 40% rep / 40% prospect /
20% silence of the call duration. When ``prefer_timestamps`` is set and
every turn carries a parseable timestamp, each turn instead lasts until
the next turn starts and talk time is summed per speaker.

The filler vocabulary here is broader than the scoring parser's: it
feeds a descriptive metric, not a score.
"""

import logging
import math
import re
from datetime import datetime

from callscore.engine.transcript_parser import count_words
from callscore.models.transcript import TranscriptEntry
from callscore.models.voice import EnergyLevel, TimingSource, VoiceAnalytics

logger = logging.getLogger(__name__)

TALK_SHARE = 0.4
WORDS_PER_SECOND = 2.5  # ~150 WPM

FILLER_VOCABULARY: list[str] = [
    "um",
    "uh",
    "like",
    "you know",
    "so",
    "actually",
    "basically",
    "literally",
    "sort of",
    "kind of",
    "i mean",
    "right?",
    "okay?",
    "yeah",
    "well",
]

_FILLER_PATTERNS = [
    re.compile(r"(?<!\w)" + re.escape(filler) + r"(?!\w)", re.IGNORECASE)
    for filler in FILLER_VOCABULARY
]

# (weight, patterns); a question takes the weight of the first group it matches.
QUESTION_WEIGHTS: list[tuple[int, list[re.Pattern[str]]]] = [
    (10, [  # open
        re.compile(p, re.IGNORECASE)
        for p in (
            r"what.*(?:looking for|trying to|hoping to|need)",
            r"how.*(?:currently|doing|handling)",
            r"tell me (?:about|more)",
            r"walk me through",
            r"describe.*(?:process|situation|challenge)",
            r"why.*(?:important|matter|decide)",
        )
    ]),
    (8, [  # discovery
        re.compile(p, re.IGNORECASE)
        for p in (
            r"what(?:'s| is).*(?:biggest|main|primary|top) (?:challenge|problem|issue|concern)",
            r"how.*(?:affecting|impacting|costing)",
            r"who.*(?:involved|affected|responsible)",
            r"when.*(?:need|start|deadline)",
            r"what happens if",
        )
    ]),
    (4, [  # closed
        re.compile(r"^(?:do|does|is|are|can|could|would|will|have|has)\b", re.IGNORECASE),
    ]),
]

_WH_WORD = re.compile(r"\b(?:what|how|why|when|where|who)\b", re.IGNORECASE)
_SENTENCE_SPLIT = re.compile(r"(?<=[.!?])\s+")


# ── Helpers ────────────────────────────────────────────────────────────

def std_dev(values: list[float]) -> float:
    """Population standard deviation; 0 for an empty list."""
    if not values:
        return 0.0
    mean = sum(values) / len(values)
    return math.sqrt(sum((v - mean) ** 2 for v in values) / len(values))


def count_filler_words(texts: list[str]) -> int:
    return sum(len(p.findall(text)) for text in texts for p in _FILLER_PATTERNS)


def estimate_pause_count(texts: list[str]) -> int:
    """Pause markers in rep text; an ellipsis counts double."""
    count = 0
    for text in texts:
        count += text.count(",")
        count += text.count("...") * 2
        count += text.count("\u2014")
    return count


def score_questions(texts: list[str]) -> tuple[int, float]:
    """Return ``(question_count, quality_score)`` with quality on 0-10."""
    total = 0
    points = 0
    for text in texts:
        for sentence in _SENTENCE_SPLIT.split(text):
            sentence = sentence.strip()
            if not sentence:
                continue
            if not (sentence.endswith("?") or _WH_WORD.search(sentence)):
                continue
            total += 1
            for weight, patterns in QUESTION_WEIGHTS:
                if any(p.search(sentence) for p in patterns):
                    points += weight
                    break

    if total == 0:
        return 0, 0.0
    quality = min(points / total, 10.0)
    return total, round(quality, 1)


def tone_consistency(word_counts: list[int]) -> float:
    """1 minus the clamped coefficient of variation of turn lengths."""
    if len(word_counts) < 2:
        return 1.0
    mean = sum(word_counts) / len(word_counts)
    cv = std_dev([float(c) for c in word_counts]) / mean if mean > 0 else 0.0
    return 1.0 - min(max(cv, 0.0), 1.0)


def determine_energy_level(wpm: float, avg_turn_length: float) -> EnergyLevel:
    if wpm > 160 and avg_turn_length > 30:
        return EnergyLevel.HIGH
    if wpm < 120 or avg_turn_length < 15:
        return EnergyLevel.LOW
    return EnergyLevel.MEDIUM


def _parse_timestamp(value: str | None) -> float | None:
    """Seconds for a finite numeric offset or an ISO-8601 string, else None."""
    if value is None:
        return None
    text = value.strip()
    try:
        seconds = float(text)
    except ValueError:
        pass
    else:
        return seconds if math.isfinite(seconds) else None
    try:
        return datetime.fromisoformat(text.replace("Z", "+00:00")).timestamp()
    except ValueError:
        return None


def timed_talk_split(
    transcript: list[TranscriptEntry],
    duration_seconds: float,
) -> tuple[float, float] | None:
    """
    Per-speaker talk seconds from turn timestamps.

    Returns None unless every turn has a parseable, non-decreasing
    timestamp. The last turn is sized from its word count.
    """
    stamps = [_parse_timestamp(entry.timestamp) for entry in transcript]
    if not stamps or any(s is None for s in stamps):
        return None
    if any(b < a for a, b in zip(stamps, stamps[1:])):
        return None

    rep_seconds = 0.0
    prospect_seconds = 0.0
    for index, entry in enumerate(transcript):
        if index + 1 < len(transcript):
            seconds = stamps[index + 1] - stamps[index]
        else:
            seconds = count_words(entry.text) / WORDS_PER_SECOND
        if entry.is_rep:
            rep_seconds += seconds
        else:
            prospect_seconds += seconds

    if duration_seconds > 0 and rep_seconds + prospect_seconds > duration_seconds:
        scale = duration_seconds / (rep_seconds + prospect_seconds)
        rep_seconds *= scale
        prospect_seconds *= scale
    return max(rep_seconds, 1.0), max(prospect_seconds, 1.0)


# ── Analyzer ───────────────────────────────────────────────────────────

def analyze_voice_metrics(
    transcript: list[TranscriptEntry],
    duration_seconds: float,
    prefer_timestamps: bool = False,
) -> VoiceAnalytics:
    """
    Compute speech metrics for the rep.

    Args:
        transcript: Ordered call turns.
        duration_seconds: Total call length.
        prefer_timestamps: Use turn timestamps for the talk-time split when
                           every turn has one.

    Returns:
        VoiceAnalytics for the call.
    """
    rep_texts = [t.text for t in transcript if t.is_rep]
    prospect_texts = [t.text for t in transcript if t.is_prospect]
    rep_word_counts = [count_words(text) for text in rep_texts]
    rep_words = sum(rep_word_counts)
    prospect_words = sum(count_words(text) for text in prospect_texts)

    timed = timed_talk_split(transcript, duration_seconds) if prefer_timestamps else None
    if timed is not None:
        rep_talk, prospect_talk = timed
        timing_source = TimingSource.TIMESTAMPS
    else:
        rep_talk = max(duration_seconds * TALK_SHARE, 1.0)
        prospect_talk = max(duration_seconds * TALK_SHARE, 1.0)
        timing_source = TimingSource.ESTIMATED
    silence = max(duration_seconds - rep_talk - prospect_talk, 0.0)

    wpm = round(rep_words / rep_talk * 60)
    turn_wpms = [
        words / max(words / WORDS_PER_SECOND, 1.0) * 60
        for words in rep_word_counts
        if words > 0
    ]

    fillers = count_filler_words(rep_texts)
    avg_turn_length = rep_words / max(len(rep_texts), 1)
    question_count, question_quality = score_questions(rep_texts)

    analytics = VoiceAnalytics(
        avg_speaking_pace=wpm,
        pace_variability=round(std_dev(turn_wpms), 2),
        filler_word_count=fillers,
        filler_word_rate=round(fillers / rep_words * 100, 2) if rep_words else 0.0,
        pause_count=estimate_pause_count(rep_texts),
        turn_count=len(rep_texts),
        avg_turn_length_words=round(avg_turn_length),
        longest_turn_words=max(rep_word_counts, default=0),
        energy_level=determine_energy_level(wpm, avg_turn_length),
        tone_consistency=round(tone_consistency(rep_word_counts), 2),
        rep_talk_time_seconds=round(rep_talk),
        prospect_talk_time_seconds=round(prospect_talk),
        silence_time_seconds=round(silence),
        timing_source=timing_source,
        listening_ratio=round(prospect_words / rep_words, 2) if rep_words else 0.0,
        question_count=question_count,
        question_quality_score=question_quality,
    )
    logger.debug(
        "Voice analytics computed | wpm=%d | fillers=%d | energy=%s | timing=%s",
        analytics.avg_speaking_pace,
        analytics.filler_word_count,
        analytics.energy_level.value,
        timing_source.value,
    )
    return analytics
