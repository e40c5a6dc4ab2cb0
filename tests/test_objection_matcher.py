from callscore.models.objections import ObjectionLibraryEntry
from callscore.models.signals import ObjectionCategory, ObjectionOccurrence
from callscore.services.health_monitor import HealthMonitor
from callscore.services.objection_matcher import ObjectionMatcher, build_matches


def _occurrence(category: ObjectionCategory, text: str = "too expensive", reply: str = "") -> ObjectionOccurrence:
    return ObjectionOccurrence(prospect_text=text, rep_response=reply, category=category)


def test_first_library_entry_in_category_wins():
    library = [
        ObjectionLibraryEntry(id="a", name="A", category=ObjectionCategory.PRICE),
        ObjectionLibraryEntry(id="b", name="B", category=ObjectionCategory.PRICE),
    ]
    matches = build_matches(
        [_occurrence(ObjectionCategory.PRICE), _occurrence(ObjectionCategory.TRUST)],
        library,
    )
    assert [m.objection_id for m in matches] == ["a"]


def test_snippets_are_truncated():
    library = [ObjectionLibraryEntry(id="a", name="A", category=ObjectionCategory.PRICE)]
    match = build_matches([_occurrence(ObjectionCategory.PRICE, "x" * 300, "y" * 250)], library)[0]
    assert match.triggered_at == "x" * 200
    assert match.response_snippet == "y" * 200


def test_match_and_save_is_idempotent(repository):
    matcher = ObjectionMatcher(repository)
    objections = [
        _occurrence(ObjectionCategory.PRICE, reply="Let's look at the ROI."),
        _occurrence(ObjectionCategory.TIME, text="too busy"),
    ]

    first = matcher.match_and_save("c1", objections)
    second = matcher.match_and_save("c1", objections)

    assert [m.objection_id for m in first] == ["obj-001", "obj-003"]
    assert first == second
    assert [m.objection_id for m in repository.list_call_objections("c1")] == ["obj-001", "obj-003"]


def test_failures_are_swallowed_and_recorded():
    class ExplodingRepository:
        def list_objection_library(self):
            raise RuntimeError("library table missing")

    monitor = HealthMonitor(None)
    matcher = ObjectionMatcher(ExplodingRepository(), health_monitor=monitor)

    assert matcher.match_and_save("c1", [_occurrence(ObjectionCategory.PRICE)]) == []
    errors = monitor.recent_errors()
    assert [(e.service, e.error) for e in errors] == [("objection_matcher", "library table missing")]


def test_no_objections_skips_the_library_and_clears_links():
    class RecordingRepository:
        def __init__(self):
            self.saved = []

        def list_objection_library(self):
            raise AssertionError("library should not be read")

        def save_objection_matches(self, call_id, matches):
            self.saved.append((call_id, matches))

    repository = RecordingRepository()

    assert ObjectionMatcher(repository).match_and_save("c1", []) == []
    assert repository.saved == [("c1", [])]
