"""
Prompt templates for coaching analysis.
"""

import json

from callscore.models.scoring import SCORING_CATEGORIES, CallScore
from callscore.models.transcript import TranscriptEntry

COACH_SYSTEM_PROMPT = """You are an expert sales coach with 20+ years of experience training \
top-performing sales representatives. You give actionable, specific, and encouraging feedback \
on recorded sales calls.

Principles:
- Quote the transcript exactly when you reference it.
- Report genuine strengths as well as areas to improve.
- Give concrete phrases and techniques the rep can use next time.
- Stay honest while framing feedback constructively.
- Focus on opening, discovery, objection handling, clarity, and closing.

Respond with a single JSON object and nothing else."""

COACHING_RESPONSE_SCHEMA: dict = {
    "strengths": [
        {
            "category": "opening|discovery|objectionHandling|clarity|closing",
            "strength": "What the rep did well",
            "example": {
                "quote": "Exact quote from the transcript",
                "context": "Why it worked",
                "suggestion": "How to repeat it",
            },
        }
    ],
    "improvementAreas": [
        {
            "category": "opening|discovery|objectionHandling|clarity|closing",
            "improvement": "Specific area to work on",
            "example": {
                "quote": "Exact quote from the transcript, if any",
                "context": "Why it needs work",
                "suggestion": "Technique or phrase to use instead",
            },
        }
    ],
    "specificExamples": [
        {
            "quote": "Exact quote from the transcript",
            "analysis": "What happened in this moment",
            "rating": "excellent|good|needs-work",
        }
    ],
    "recommendedPractice": {
        "focusArea": "Primary skill to practice next",
        "reason": "Why this should be the focus",
        "scenarios": ["2-3 scenarios to practice"],
        "exercises": ["2-3 exercises"],
    },
    "suggestedPhrases": [
        {
            "situation": "When the phrase applies",
            "phrase": "The phrase itself",
            "whenToUse": "Specific context for using it",
        }
    ],
    "categoryFeedback": {
        "opening": "2-3 sentences, only if relevant",
        "discovery": "2-3 sentences, only if relevant",
        "objectionHandling": "2-3 sentences, only if relevant",
        "clarity": "2-3 sentences, only if relevant",
        "closing": "2-3 sentences, only if relevant",
    },
    "confidenceScore": 0.85,
}

_RULES = """Rules:
- Include 2-4 strengths with specific examples.
- Include 2-4 improvement areas with actionable suggestions.
- Provide 3-5 transcript examples with ratings.
- Suggest 4-6 alternative phrases.
- Only include category feedback for categories relevant to this call.
- confidenceScore (0.0-1.0) reflects how clear the recommendations are."""

_SPEAKER_LABELS = {True: "Sales Rep", False: "Prospect"}


def format_transcript(transcript: list[TranscriptEntry]) -> str:
    return "\n\n".join(f"{_SPEAKER_LABELS[entry.is_rep]}: {entry.text}" for entry in transcript)


def format_score_breakdown(score: CallScore) -> str:
    names = {c.key: c.name for c in SCORING_CATEGORIES}
    blocks = []
    for category_score in score.category_scores:
        strengths = ", ".join(category_score.feedback.strengths) or "None identified"
        improvements = ", ".join(category_score.feedback.improvements) or "None identified"
        blocks.append(
            f"{names.get(category_score.category, category_score.category)} "
            f"({category_score.score:g}/10):\n"
            f"- Strengths: {strengths}\n"
            f"- Improvements: {improvements}"
        )
    return "\n\n".join(blocks)


def build_coaching_prompt(
    transcript: list[TranscriptEntry],
    score: CallScore,
    persona: str | None = None,
) -> str:
    """Build the user message for a coaching request."""
    category_line = ", ".join(f"{c.category.value}: {c.score:g}/10" for c in score.category_scores)
    meta = score.metadata
    return f"""Analyze this sales call and provide detailed coaching feedback.

CALL CONTEXT:
- Prospect personality: {persona or "Unknown"}
- Overall Score: {score.overall_score:.1f}/10
- Category Scores: {category_line}
- Call Duration: {int(meta.call_duration_seconds // 60)} minutes
- Questions Asked: {meta.questions_asked}
- Objections Raised: {meta.objections_detected}

TRANSCRIPT:
{format_transcript(transcript)}

DETAILED SCORING BREAKDOWN:
{format_score_breakdown(score)}

Respond in this JSON format:
{json.dumps(COACHING_RESPONSE_SCHEMA, indent=2)}

{_RULES}"""
