"""
Pydantic model for speech-pattern analytics.

All metrics are approximations derived from transcript text and call
duration. No audio signal is analyzed.
"""

from enum import Enum

from pydantic import BaseModel, Field


class EnergyLevel(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class TimingSource(str, Enum):
    """Where the talk-time split came from."""

    ESTIMATED = "estimated"
    TIMESTAMPS = "timestamps"


class VoiceAnalytics(BaseModel):
    """Speech metrics for the rep in one call."""

    # Pace
    avg_speaking_pace: int = Field(default=0, description="Rep words per minute.")
    pace_variability: float = Field(
        default=0.0,
        description="Standard deviation of per-turn estimated WPM.",
    )

    # Fillers and pauses
    filler_word_count: int = 0
    filler_word_rate: float = Field(default=0.0, description="Filler words per 100 rep words.")
    pause_count: int = 0

    # Turn structure
    turn_count: int = 0
    avg_turn_length_words: int = 0
    longest_turn_words: int = 0

    # Tone and energy
    energy_level: EnergyLevel = EnergyLevel.LOW
    tone_consistency: float = Field(default=1.0, ge=0.0, le=1.0)

    # Time distribution
    rep_talk_time_seconds: int = 0
    prospect_talk_time_seconds: int = 0
    silence_time_seconds: int = 0
    timing_source: TimingSource = TimingSource.ESTIMATED
    listening_ratio: float = 0.0

    # Questions
    question_count: int = 0
    question_quality_score: float = Field(default=0.0, ge=0.0, le=10.0)
