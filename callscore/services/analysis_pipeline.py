"""
Orchestrates analysis of a submitted call.

Steps for ``process_call``:
1. Normalize the turns (malformed ones are skipped) and persist them.
2. Parse and score; upsert the score (critical, errors propagate).
3. Match objections against the library (non-critical, never raises).
4. Compute voice analytics; upsert them (critical, errors propagate).

Coaching is a separate, explicit step because it costs a model call.
"""

import logging
from collections.abc import Iterable
from typing import Any

from starlette.concurrency import run_in_threadpool

from callscore.engine.scoring_engine import score_call
from callscore.engine.transcript_parser import normalize_transcript, parse_transcript
from callscore.engine.voice_analytics import analyze_voice_metrics
from callscore.errors import NotFoundError
from callscore.models.analysis import CallAnalysisResult
from callscore.models.coaching import CoachingAnalysis
from callscore.models.scoring import CallScore
from callscore.resilience.circuit_breaker import ResilienceManager
from callscore.services.coaching import CoachingAnalyzer
from callscore.services.health_monitor import HealthMonitor
from callscore.services.objection_matcher import ObjectionMatcher
from callscore.store.repository import AnalysisRepository

logger = logging.getLogger(__name__)


class CallAnalysisPipeline:
    """Ties the engine, services and repository together."""

    def __init__(
        self,
        repository: AnalysisRepository,
        analyzer: CoachingAnalyzer,
        resilience: ResilienceManager,
        health_monitor: HealthMonitor | None = None,
        prefer_timestamps: bool = False,
    ) -> None:
        self.repository = repository
        self.analyzer = analyzer
        self.resilience = resilience
        self.health_monitor = health_monitor
        self.prefer_timestamps = prefer_timestamps
        self.objection_matcher = ObjectionMatcher(repository, health_monitor)

    # ── Scoring ────────────────────────────────────────────────────────

    def process_call(
        self,
        call_id: str,
        turns: Iterable[Any],
        duration_seconds: float,
        persona: str | None = None,
    ) -> CallAnalysisResult:
        """Store, score, enrich and analyze one call."""
        transcript = normalize_transcript(turns)
        logger.info(
            "Processing call | call=%s | turns=%d | duration=%.1fs",
            call_id,
            len(transcript),
            duration_seconds,
        )
        self.repository.save_call(call_id, transcript, duration_seconds, persona)

        signals = parse_transcript(transcript)
        score = score_call(call_id, transcript, duration_seconds, signals=signals)
        self.repository.save_score(score)

        matches = self.objection_matcher.match_and_save(call_id, signals.objections)

        analytics = analyze_voice_metrics(
            transcript,
            duration_seconds,
            prefer_timestamps=self.prefer_timestamps,
        )
        self.repository.save_voice_analytics(call_id, analytics)

        return CallAnalysisResult(
            call_id=call_id,
            score=score,
            voice_analytics=analytics,
            objection_matches=matches,
        )

    def rescore(self, call_id: str) -> CallScore:
        """Score the stored transcript again and overwrite the saved score."""
        call = self.repository.get_call(call_id)
        score = score_call(call_id, call.transcript, call.duration_seconds)
        self.repository.save_score(score)
        return score

    def get_score(self, call_id: str) -> CallScore:
        score = self.repository.get_score(call_id)
        if score is None:
            raise NotFoundError("Score for call", call_id)
        return score

    # ── Coaching ───────────────────────────────────────────────────────

    async def generate_coaching(self, call_id: str) -> CoachingAnalysis:
        """
        Generate and store coaching for a scored call.

        Raises:
            ConfigurationError: No model credential; nothing was attempted.
            NotFoundError: The call or its score does not exist.
            CircuitOpenError: The model breaker is open.
            TransientServiceError: Every attempt failed.
        """
        self.analyzer.ensure_configured()

        call = await run_in_threadpool(self.repository.get_call, call_id)
        score = await run_in_threadpool(self.get_score, call_id)

        try:
            analysis = await self.resilience.call_with_retry(
                self.analyzer.service_name,
                self.analyzer.analyze,
                call.transcript,
                score,
                call.persona,
            )
        except Exception as exc:
            logger.warning("Coaching failed | call=%s | err=%s", call_id, exc)
            if self.health_monitor is not None:
                self.health_monitor.record_error(self.analyzer.service_name, exc)
            raise

        await run_in_threadpool(self.repository.save_coaching, call_id, analysis)
        return analysis

    def get_coaching(self, call_id: str) -> CoachingAnalysis | None:
        return self.repository.get_coaching(call_id)
