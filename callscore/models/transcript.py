"""
Pydantic models for call transcripts.

The wire contract is fixed by the call recorder:
- ``role == "user"`` is the sales rep (the person practicing)
- ``role == "agent"`` is the simulated prospect
- ``timestamp`` is optional and free-form
"""

from enum import Enum
from typing import Any

from pydantic import BaseModel, Field

MAX_CALL_ID_LENGTH = 64
MAX_PERSONA_LENGTH = 255


class Speaker(str, Enum):
    """Who spoke a turn, encoded with the recorder's role names."""

    REP = "user"
    PROSPECT = "agent"


class TranscriptEntry(BaseModel):
    """A single turn in a recorded call."""

    role: Speaker = Field(..., description="'user' for the sales rep, 'agent' for the prospect.")
    text: str = Field(default="", description="Transcribed text of the turn.")
    timestamp: str | None = Field(
        default=None,
        description="Optional timestamp (ISO-8601 or seconds offset).",
    )

    model_config = {"extra": "ignore", "frozen": True}

    @property
    def is_rep(self) -> bool:
        return self.role is Speaker.REP

    @property
    def is_prospect(self) -> bool:
        return self.role is Speaker.PROSPECT


class CallTranscriptPayload(BaseModel):
    """
    Body for submitting a finished call.

    Example::

        {
            "transcript": [
                {"role": "user", "text": "Hi there, thanks for taking the call."},
                {"role": "agent", "text": "Sure, what is this about?"}
            ],
            "duration_seconds": 184,
            "persona": "Skeptical CFO"
        }
    """

    transcript: list[Any] = Field(
        default_factory=list,
        description="Turns shaped like TranscriptEntry. Malformed turns are skipped, not rejected.",
    )
    duration_seconds: float = Field(default=0.0, ge=0.0)
    persona: str | None = Field(
        default=None,
        max_length=MAX_PERSONA_LENGTH,
        description="Label of the simulated prospect personality.",
    )

    model_config = {"extra": "ignore"}
