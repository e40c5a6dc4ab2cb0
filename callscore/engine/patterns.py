"""
Ordered pattern tables for transcript classification.

Design:
- Each table is a list of ``Rule(label, pattern)`` entries.
- Tables are evaluated top to bottom. Where a classifier needs a single
  label (objection category, question kind) the first matching rule wins,
  so the order of a table is its priority order.
- Flag detectors (greeting, value proposition, CTA, next steps) only ask
  whether any rule matched.
- Patterns are case-insensitive and compiled once at import.
"""

import re
from dataclasses import dataclass
from typing import Generic, TypeVar

from callscore.models.signals import ObjectionCategory, QuestionKind

L = TypeVar("L")


@dataclass(frozen=True)
class Rule(Generic[L]):
    """A single labelled detection rule."""

    label: L
    pattern: re.Pattern[str]

    def matches(self, text: str) -> bool:
        return self.pattern.search(text) is not None


def _rules(label: L, *patterns: str) -> list[Rule[L]]:
    return [Rule(label, re.compile(p, re.IGNORECASE)) for p in patterns]


def first_match(rules: list[Rule[L]], text: str) -> L | None:
    """Return the label of the first rule matching ``text``, or None."""
    for rule in rules:
        if rule.matches(text):
            return rule.label
    return None


def any_match(rules: list[Rule[L]], text: str) -> bool:
    return any(rule.matches(text) for rule in rules)


# ── Opening ────────────────────────────────────────────────────────────

GREETING_RULES: list[Rule[str]] = _rules(
    "greeting",
    r"^\s*(?:hi|hello|hey|good (?:morning|afternoon|evening))\b",
    r"\bhow are you\b",
    r"\bthanks? (?:you )?for (?:taking|joining|making time)",
)

VALUE_PROP_RULES: list[Rule[str]] = _rules(
    "value_prop",
    r"\bhelps? (?:you|your)\b",
    r"\bwe help\b",
    r"\bsaves? (?:you|your|teams?|companies|businesses|\d+).{0,30}(?:time|money|hours?|days?|minutes?|costs?)",
    r"\bincrease.{0,30}(?:revenue|sales|productivity|conversion)",
    r"\breduce.{0,30}(?:cost|time|effort|churn)",
    r"\bsolve.{0,30}problem",
    r"\b(?:benefit|value) (?:is|of)\b",
)

# ── Questions ──────────────────────────────────────────────────────────
# Open patterns come first: a sentence matching both kinds is open.

QUESTION_RULES: list[Rule[QuestionKind]] = [
    *_rules(
        QuestionKind.OPEN,
        r"^\s*(?:what|why|how|who|where|which|when)\b",
        r"^\s*(?:tell me|describe|explain|walk me through)\b",
        r"\b(?:what|why|how)\b.{0,50}\?",
    ),
    *_rules(
        QuestionKind.CLOSED,
        r"^\s*(?:is|are|do|does|did|can|could|would|will|have|has|should)\b",
        r"\?\s*$",
    ),
]

# ── Objections ─────────────────────────────────────────────────────────
# Category priority: price, time, authority, need, trust.

OBJECTION_RULES: list[Rule[ObjectionCategory]] = [
    *_rules(
        ObjectionCategory.PRICE,
        r"too expensive",
        r"can'?t afford",
        r"out of (?:my|our) budget",
        r"(?:too|very) (?:high|pricey|costly)",
        r"cheaper (?:option|alternative)",
        r"(?:what'?s|how much).{0,30}(?:cost|price)",
        r"don'?t have (?:the )?(?:money|budget)",
    ),
    *_rules(
        ObjectionCategory.TIME,
        r"don'?t have time",
        r"too busy",
        r"not (?:a|the) (?:right|good) time",
        r"maybe (?:later|next (?:month|year|quarter))",
        r"call (?:me )?back (?:in|next)",
        r"swamped right now",
    ),
    *_rules(
        ObjectionCategory.AUTHORITY,
        r"need to (?:talk|check|speak) (?:to|with).{0,30}(?:boss|manager|team|partner|wife|husband)",
        r"not my decision",
        r"don'?t have (?:the )?authority",
        r"have to run (?:this|it) by",
    ),
    *_rules(
        ObjectionCategory.NEED,
        r"don'?t need",
        r"not interested",
        r"(?:already|current(?:ly)?) (?:have|using|working with)",
        r"happy with (?:what|who) we have",
        r"no (?:need|use) for",
    ),
    *_rules(
        ObjectionCategory.TRUST,
        r"sounds too good to be true",
        r"(?:never )?heard of (?:you|your company)",
        r"how do I know",
        r"can you prove",
        r"skeptical",
        r"\breferences?\b",
        r"\btestimonials?\b",
    ),
]

ACKNOWLEDGMENT_ONLY = re.compile(
    r"^(?:okay|I understand|I see|got it|makes sense)[.!]?$",
    re.IGNORECASE,
)

# ── Fillers ────────────────────────────────────────────────────────────

FILLER_RULES: list[Rule[str]] = _rules(
    "filler",
    r"\buh+\b",
    r"\bum+\b",
    r"\blike\b",
    r"\byou know\b",
    r"\bbasically\b",
    r"\bactually\b",
    r"\bkinda\b",
    r"\bsorta\b",
    r"\bI mean\b",
    r"\bright\?",
    r"\byeah\b",
)

# ── Closing ────────────────────────────────────────────────────────────

CTA_RULES: list[Rule[str]] = _rules(
    "cta",
    r"can (?:we|I) schedule",
    r"let'?s (?:set up|book|schedule)",
    r"next step",
    r"ready to (?:move forward|get started|proceed)",
    r"when (?:can|would) (?:you|we)",
    r"are you (?:ready|available|interested) to",
    r"(?:shall|should) we",
)

NEXT_STEP_RULES: list[Rule[str]] = _rules(
    "next_steps",
    r"next step",
    r"follow[- ]up",
    r"send (?:you|over)",
    r"(?:email|call) you",
    r"schedule",
    r"calendar",
)
