import pytest

from callscore.engine.scoring_engine import score_call
from callscore.engine.voice_analytics import analyze_voice_metrics
from callscore.errors import NotFoundError
from callscore.models.coaching import CategoryFeedbackText, CoachingAnalysis, CoachingInsight
from callscore.models.objections import ObjectionMatch
from callscore.store.database import Database
from callscore.store.repository import AnalysisRepository
from callscore.store.tables import CallObjectionRow, CallScoreRow


def test_call_round_trip(repository, sales_call):
    repository.save_call("c1", sales_call, 180, persona="Skeptical CFO")
    stored = repository.get_call("c1")

    assert stored.transcript == sales_call
    assert stored.duration_seconds == 180
    assert stored.persona == "Skeptical CFO"


def test_missing_call_raises_not_found(repository):
    with pytest.raises(NotFoundError):
        repository.get_call("nope")
    assert repository.get_score("nope") is None
    assert repository.get_voice_analytics("nope") is None
    assert repository.get_coaching("nope") is None


def test_score_upsert_keeps_one_row(repository, database, sales_call):
    repository.save_call("c1", sales_call, 180)
    first = score_call("c1", sales_call, 180)
    repository.save_score(first)
    second = score_call("c1", sales_call[:4], 20)
    repository.save_score(second)

    with database.session() as session:
        assert session.query(CallScoreRow).count() == 1

    stored = repository.get_score("c1")
    assert stored.overall_score == 0.0
    assert stored.model_dump(exclude={"created_at"}) == second.model_dump(exclude={"created_at"})


def test_voice_analytics_round_trip(repository, sales_call):
    repository.save_call("c1", sales_call, 180)
    analytics = analyze_voice_metrics(sales_call, 180)
    repository.save_voice_analytics("c1", analytics)
    repository.save_voice_analytics("c1", analytics)

    assert repository.get_voice_analytics("c1") == analytics


def test_coaching_upsert(repository, sales_call):
    repository.save_call("c1", sales_call, 180)
    analysis = CoachingAnalysis(
        strengths=[CoachingInsight(category="closing", strength="Clear ask")],
        category_feedback=CategoryFeedbackText(closing="Good close."),
    )
    repository.save_coaching("c1", analysis)
    updated = analysis.model_copy(update={"strengths": []})
    repository.save_coaching("c1", updated)

    stored = repository.get_coaching("c1")
    assert stored.strengths == []
    assert stored.category_feedback.closing == "Good close."
    assert stored.recommended_practice.focus_area == "General improvement"


def test_library_is_ordered_by_id(repository):
    library = repository.list_objection_library()
    assert [entry.id for entry in library] == ["obj-001", "obj-002", "obj-003"]
    assert library[0].handling_strategies == ["Reframe around ROI", "Offer a pilot"]


def test_objection_matches_insert_once(repository, database):
    match = ObjectionMatch(objection_id="obj-001", triggered_at="too expensive", response_snippet="ROI")
    repository.save_objection_matches("c1", [match])
    repository.save_objection_matches("c1", [match.model_copy(update={"response_snippet": "changed"})])

    with database.session() as session:
        assert session.query(CallObjectionRow).count() == 1
    assert repository.list_call_objections("c1") == [match]


def test_objection_matches_replace_stale_links(repository):
    price = ObjectionMatch(objection_id="obj-001", triggered_at="too expensive", response_snippet="ROI")
    timing = ObjectionMatch(objection_id="obj-003", triggered_at="too busy", response_snippet="")
    repository.save_objection_matches("c1", [price, timing])
    repository.save_objection_matches("c2", [price])

    repository.save_objection_matches("c1", [timing])
    assert repository.list_call_objections("c1") == [timing]

    repository.save_objection_matches("c1", [])
    assert repository.list_call_objections("c1") == []
    assert repository.list_call_objections("c2") == [price]


def test_unsupported_dialect_is_rejected():
    class FakeDatabase:
        dialect = "mysql"

    with pytest.raises(ValueError):
        AnalysisRepository(FakeDatabase())


def test_in_memory_databases_are_isolated():
    first, second = Database("sqlite://"), Database("sqlite://")
    first.create_all()
    second.create_all()
    AnalysisRepository(first).save_call("only-here", [], 60)

    with pytest.raises(NotFoundError):
        AnalysisRepository(second).get_call("only-here")
