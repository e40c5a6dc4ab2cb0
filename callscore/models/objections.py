"""
Pydantic models for the canonical objection taxonomy.

Library entries are owned and seeded elsewhere; this service only reads
them and links detected objections to them.
"""

from pydantic import BaseModel, Field

from callscore.models.signals import ObjectionCategory


class ObjectionLibraryEntry(BaseModel):
    """A canonical objection profile."""

    id: str
    name: str
    category: ObjectionCategory
    industry: str = ""
    description: str = ""
    handling_strategies: list[str] = []


class ObjectionMatch(BaseModel):
    """A detected objection linked to a library entry for one call."""

    objection_id: str
    triggered_at: str = Field(
        default="",
        description="Start of the prospect text that raised the objection.",
    )
    response_snippet: str = Field(default="", description="Start of the rep's reply.")


class ObjectionLibraryResponse(BaseModel):
    """The full library grouped by industry."""

    total: int = 0
    by_industry: dict[str, list[ObjectionLibraryEntry]] = Field(default_factory=dict)
