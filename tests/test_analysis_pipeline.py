import json

import pytest

from callscore.errors import CircuitOpenError, ConfigurationError, NotFoundError, TransientServiceError
from callscore.resilience.circuit_breaker import CircuitBreakerOptions, ResilienceManager
from callscore.resilience.retry import RetryPolicy
from callscore.services.analysis_pipeline import CallAnalysisPipeline
from callscore.services.coaching import CoachingAnalyzer
from callscore.services.health_monitor import HealthMonitor
from test_coaching import COACHING_BODY, FakeCompletions, fake_client


def _pipeline(repository, analyzer=None, threshold=5):
    resilience = ResilienceManager(
        default_options=CircuitBreakerOptions(failure_threshold=threshold),
        retry_policy=RetryPolicy(max_attempts=2, initial_delay_seconds=0),
    )
    monitor = HealthMonitor(repository.database, resilience=resilience, memory_probe=lambda: 1.0)
    return CallAnalysisPipeline(
        repository,
        analyzer or CoachingAnalyzer(api_key=None),
        resilience,
        health_monitor=monitor,
    )


def test_process_call_persists_every_artifact(repository, sales_call):
    pipeline = _pipeline(repository)
    result = pipeline.process_call("c1", sales_call, 180, persona="Skeptical CFO")

    assert result.call_id == "c1"
    assert len(result.score.category_scores) == 5
    assert [m.objection_id for m in result.objection_matches] == ["obj-001"]
    assert result.objection_matches[0].triggered_at.startswith("Honestly it sounds great")
    assert repository.get_score("c1").overall_score == result.score.overall_score
    assert repository.get_voice_analytics("c1") == result.voice_analytics
    assert repository.get_call("c1").persona == "Skeptical CFO"


def test_resubmitting_a_call_does_not_duplicate(repository, sales_call):
    pipeline = _pipeline(repository)
    pipeline.process_call("c1", sales_call, 180)
    pipeline.process_call("c1", sales_call, 180)

    assert len(repository.list_call_objections("c1")) == 1


def test_resubmitting_a_different_transcript_drops_stale_objections(repository, sales_call):
    pipeline = _pipeline(repository)
    pipeline.process_call("c1", sales_call, 180)
    assert [m.objection_id for m in repository.list_call_objections("c1")] == ["obj-001"]

    without_objection = [turn for turn in sales_call if "too expensive" not in turn.text]
    result = pipeline.process_call("c1", without_objection, 180)

    assert result.objection_matches == []
    assert repository.list_call_objections("c1") == []


def test_matcher_failure_does_not_block_scoring(repository, sales_call, monkeypatch):
    pipeline = _pipeline(repository)

    def broken_library():
        raise RuntimeError("library offline")

    monkeypatch.setattr(repository, "list_objection_library", broken_library)
    result = pipeline.process_call("c1", sales_call, 180)

    assert result.objection_matches == []
    assert repository.get_score("c1") is not None
    assert pipeline.health_monitor.recent_errors()[-1].service == "objection_matcher"


def test_rescore_and_missing_calls(repository, sales_call):
    pipeline = _pipeline(repository)
    with pytest.raises(NotFoundError):
        pipeline.rescore("missing")
    with pytest.raises(NotFoundError):
        pipeline.get_score("missing")

    original = pipeline.process_call("c1", sales_call, 180).score
    rescored = pipeline.rescore("c1")
    assert rescored.model_dump(exclude={"created_at"}) == original.model_dump(exclude={"created_at"})


@pytest.mark.asyncio
async def test_coaching_without_key_is_configuration_error(repository, sales_call):
    completions = FakeCompletions(content="{}")
    analyzer = CoachingAnalyzer(api_key=None, client=fake_client(completions))
    pipeline = _pipeline(repository, analyzer)
    pipeline.process_call("c1", sales_call, 180)

    with pytest.raises(ConfigurationError):
        await pipeline.generate_coaching("c1")
    assert completions.calls == []
    assert pipeline.resilience.statuses() == []


@pytest.mark.asyncio
async def test_coaching_is_generated_and_stored(repository, sales_call):
    completions = FakeCompletions(content=json.dumps(COACHING_BODY))
    analyzer = CoachingAnalyzer(api_key="sk-test-0123456789", client=fake_client(completions))
    pipeline = _pipeline(repository, analyzer)
    pipeline.process_call("c1", sales_call, 180, persona="Skeptical CFO")

    analysis = await pipeline.generate_coaching("c1")

    assert len(completions.calls) == 1
    assert analysis.ai_metadata.confidence_score == 0.92
    assert pipeline.get_coaching("c1") == analysis


@pytest.mark.asyncio
async def test_coaching_failures_retry_then_open_breaker(repository, sales_call):
    completions = FakeCompletions(error=RuntimeError("upstream 500"))
    analyzer = CoachingAnalyzer(api_key="sk-test-0123456789", client=fake_client(completions))
    pipeline = _pipeline(repository, analyzer, threshold=1)
    pipeline.process_call("c1", sales_call, 180)

    with pytest.raises(TransientServiceError):
        await pipeline.generate_coaching("c1")
    assert len(completions.calls) == 2

    with pytest.raises(CircuitOpenError):
        await pipeline.generate_coaching("c1")
    assert len(completions.calls) == 2
    assert [e.service for e in pipeline.health_monitor.recent_errors()] == ["openai", "openai"]


@pytest.mark.asyncio
async def test_coaching_requires_a_score(repository, sales_call):
    analyzer = CoachingAnalyzer(api_key="sk-test-0123456789", client=fake_client(FakeCompletions("{}")))
    pipeline = _pipeline(repository, analyzer)

    with pytest.raises(NotFoundError):
        await pipeline.generate_coaching("never-submitted")
