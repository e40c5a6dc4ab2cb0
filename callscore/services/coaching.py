"""
LLM-powered coaching analysis.

Sends the transcript and score breakdown to an OpenAI chat model in JSON
mode and normalizes the reply into a ``CoachingAnalysis``.

Design:
- ``CoachingAnalyzer.request_completion`` is the only code that touches
  the network: one ``chat.completions.create`` call per invocation, under
  ``asyncio.wait_for``.
- ``normalize_coaching_response`` is a pure function over the parsed JSON
  body. Missing or mistyped keys fall back to empty lists/objects and the
  confidence score defaults to 0.8.
- Without an API key the analyzer raises ``ConfigurationError`` before a
  client is built. Every other failure is a ``TransientServiceError``,
  meant to be retried behind a circuit breaker by the caller.
"""

import asyncio
import json
import logging
import time
from collections.abc import Callable
from typing import Any

from openai import AsyncOpenAI
from pydantic import BaseModel, ValidationError

from callscore.config import Settings
from callscore.errors import ConfigurationError, TransientServiceError
from callscore.models.coaching import (
    AIMetadata,
    CategoryFeedbackText,
    CoachingAnalysis,
    CoachingInsight,
    RecommendedPractice,
    SpecificExample,
    SuggestedPhrase,
)
from callscore.models.scoring import CallScore
from callscore.models.transcript import TranscriptEntry
from callscore.services.prompts import COACH_SYSTEM_PROMPT, build_coaching_prompt

logger = logging.getLogger(__name__)

OPENAI_SERVICE = "openai"
DEFAULT_CONFIDENCE = 0.8

_CATEGORY_ALIASES = {
    "objectionHandling": "objection_handling",
    "objection-handling": "objection_handling",
}

_RATING_ALIASES = {
    "needs work": "needs-work",
    "needs_work": "needs-work",
    "needswork": "needs-work",
}


# ── Response normalization ─────────────────────────────────────────────

def _pick(payload: dict[str, Any], *keys: str) -> Any:
    """First present value among ``keys`` (camelCase or snake_case)."""
    for key in keys:
        if key in payload and payload[key] is not None:
            return payload[key]
    return None


def _as_list(value: Any) -> list[Any]:
    return value if isinstance(value, list) else []


def _as_dict(value: Any) -> dict[str, Any]:
    return value if isinstance(value, dict) else {}


def _as_text(value: Any) -> str | None:
    if isinstance(value, str) and value.strip():
        return value.strip()
    return None


def _validate_items(
    model: type[BaseModel],
    items: list[Any],
    mapper: Callable[[dict[str, Any]], dict[str, Any]],
) -> list[Any]:
    """Validate each dict item, dropping the ones that don't fit ``model``."""
    valid = []
    for item in items:
        if not isinstance(item, dict):
            continue
        try:
            valid.append(model.model_validate(mapper(item)))
        except ValidationError:
            logger.debug("Dropping malformed coaching item | model=%s", model.__name__)
    return valid


def _insight_fields(item: dict[str, Any]) -> dict[str, Any]:
    category = str(item.get("category") or "")
    example = _as_dict(item.get("example")) or None
    return {
        "category": _CATEGORY_ALIASES.get(category, category),
        "strength": _as_text(item.get("strength")),
        "improvement": _as_text(item.get("improvement")),
        "example": example,
    }


def _example_fields(item: dict[str, Any]) -> dict[str, Any]:
    rating = str(item.get("rating") or "good").strip().lower()
    return {
        "quote": item.get("quote"),
        "analysis": item.get("analysis") or "",
        "rating": _RATING_ALIASES.get(rating, rating),
    }


def _phrase_fields(item: dict[str, Any]) -> dict[str, Any]:
    return {
        "situation": item.get("situation") or "",
        "phrase": item.get("phrase"),
        "when_to_use": _pick(item, "whenToUse", "when_to_use") or "",
    }


def _practice(value: Any) -> RecommendedPractice:
    data = _as_dict(value)
    if not data:
        return RecommendedPractice()
    defaults = RecommendedPractice()
    return RecommendedPractice(
        focus_area=_as_text(_pick(data, "focusArea", "focus_area")) or defaults.focus_area,
        reason=_as_text(data.get("reason")) or defaults.reason,
        scenarios=[
            s for s in _as_list(_pick(data, "scenarios", "suggestedScenarios")) if isinstance(s, str)
        ],
        exercises=[
            e for e in _as_list(_pick(data, "exercises", "practiceExercises")) if isinstance(e, str)
        ],
    )


def _category_feedback(value: Any) -> CategoryFeedbackText:
    data = _as_dict(value)
    return CategoryFeedbackText(
        opening=_as_text(data.get("opening")),
        discovery=_as_text(data.get("discovery")),
        objection_handling=_as_text(_pick(data, "objectionHandling", "objection_handling")),
        clarity=_as_text(data.get("clarity")),
        closing=_as_text(data.get("closing")),
    )


def _confidence(value: Any) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return DEFAULT_CONFIDENCE
    return min(max(float(value), 0.0), 1.0)


def normalize_coaching_response(
    payload: Any,
    model: str = "",
    processing_time_ms: int = 0,
    tokens_used: int = 0,
) -> CoachingAnalysis:
    """
    Build a ``CoachingAnalysis`` from a parsed model response body.

    Never raises on bad content: anything missing or of the wrong type
    becomes an empty list/object, and malformed list items are dropped.
    """
    data = _as_dict(payload)
    return CoachingAnalysis(
        strengths=_validate_items(CoachingInsight, _as_list(data.get("strengths")), _insight_fields),
        improvement_areas=_validate_items(
            CoachingInsight,
            _as_list(_pick(data, "improvementAreas", "improvement_areas")),
            _insight_fields,
        ),
        specific_examples=_validate_items(
            SpecificExample,
            _as_list(_pick(data, "specificExamples", "specific_examples")),
            _example_fields,
        ),
        recommended_practice=_practice(_pick(data, "recommendedPractice", "recommended_practice")),
        suggested_phrases=_validate_items(
            SuggestedPhrase,
            _as_list(_pick(data, "suggestedPhrases", "suggested_phrases")),
            _phrase_fields,
        ),
        category_feedback=_category_feedback(_pick(data, "categoryFeedback", "category_feedback")),
        ai_metadata=AIMetadata(
            model=model,
            processing_time_ms=processing_time_ms,
            confidence_score=_confidence(_pick(data, "confidenceScore", "confidence_score")),
            tokens_used=tokens_used,
        ),
    )


# ── Analyzer ───────────────────────────────────────────────────────────

class CoachingAnalyzer:
    """Generates coaching feedback with an OpenAI chat model."""

    service_name = OPENAI_SERVICE

    def __init__(
        self,
        api_key: str | None,
        model: str = "gpt-4-turbo",
        timeout_seconds: float = 60.0,
        temperature: float = 0.7,
        max_tokens: int = 4000,
        client: Any = None,
    ) -> None:
        """
        Args:
            api_key: OpenAI API key. ``None`` or blank leaves coaching
                     unconfigured.
            client: Pre-built ``AsyncOpenAI``-compatible client. Built
                    lazily from ``api_key`` when omitted.
        """
        self._api_key = (api_key or "").strip() or None
        self.model = model
        self.timeout_seconds = timeout_seconds
        self.temperature = temperature
        self.max_tokens = max_tokens
        self._client = client

    @classmethod
    def from_settings(cls, settings: Settings) -> "CoachingAnalyzer":
        return cls(
            api_key=settings.openai_api_key,
            model=settings.openai_model,
            timeout_seconds=settings.coaching_timeout_seconds,
            temperature=settings.coaching_temperature,
            max_tokens=settings.coaching_max_tokens,
        )

    @property
    def is_configured(self) -> bool:
        return self._api_key is not None

    def ensure_configured(self) -> None:
        if not self.is_configured:
            raise ConfigurationError(
                self.service_name,
                "OpenAI API key not configured. Set OPENAI_API_KEY to enable coaching.",
            )

    def _get_client(self) -> Any:
        if self._client is None:
            self._client = AsyncOpenAI(api_key=self._api_key)
        return self._client

    async def request_completion(self, system_prompt: str, user_prompt: str) -> tuple[dict[str, Any], str, int]:
        """
        Issue one JSON-mode chat completion.

        Returns:
            ``(parsed_body, model_name, total_tokens)``.

        Raises:
            ConfigurationError: No API key; no request was made.
            TransientServiceError: Timeout, API error, or a non-JSON body.
        """
        self.ensure_configured()
        client = self._get_client()

        try:
            response = await asyncio.wait_for(
                client.chat.completions.create(
                    model=self.model,
                    messages=[
                        {"role": "system", "content": system_prompt},
                        {"role": "user", "content": user_prompt},
                    ],
                    response_format={"type": "json_object"},
                    temperature=self.temperature,
                    max_tokens=self.max_tokens,
                ),
                timeout=self.timeout_seconds,
            )
        except asyncio.TimeoutError as exc:
            raise TransientServiceError(
                self.service_name, f"Coaching request timed out after {self.timeout_seconds}s"
            ) from exc
        except Exception as exc:
            raise TransientServiceError(self.service_name, f"Coaching request failed: {exc}") from exc

        try:
            content = response.choices[0].message.content or "{}"
            body = json.loads(content)
        except (AttributeError, IndexError, json.JSONDecodeError) as exc:
            raise TransientServiceError(
                self.service_name, f"Coaching response was not valid JSON: {exc}"
            ) from exc

        usage = getattr(response, "usage", None)
        tokens = int(getattr(usage, "total_tokens", 0) or 0)
        return body, str(getattr(response, "model", None) or self.model), tokens

    async def analyze(
        self,
        transcript: list[TranscriptEntry],
        score: CallScore,
        persona: str | None = None,
    ) -> CoachingAnalysis:
        """Generate coaching for one scored call."""
        self.ensure_configured()

        start = time.perf_counter()
        body, model, tokens = await self.request_completion(
            COACH_SYSTEM_PROMPT,
            build_coaching_prompt(transcript, score, persona),
        )
        elapsed_ms = int((time.perf_counter() - start) * 1000)

        analysis = normalize_coaching_response(
            body,
            model=model,
            processing_time_ms=elapsed_ms,
            tokens_used=tokens,
        )
        logger.info(
            "Coaching generated | call=%s | model=%s | tokens=%d | elapsed=%dms",
            score.call_id,
            model,
            tokens,
            elapsed_ms,
        )
        return analysis
