"""
Links detected objections to the canonical objection library.

Matching is category based: each detected occurrence is linked to the
first library entry (by id) in its category. Occurrences in a category
with no library entry are skipped.

This is a non-critical enrichment step. Any failure is logged and
reported to the health monitor, and the caller carries on with an empty
result.
"""

import logging
from collections import defaultdict

from callscore.models.objections import ObjectionLibraryEntry, ObjectionMatch
from callscore.models.signals import ObjectionCategory, ObjectionOccurrence
from callscore.services.health_monitor import HealthMonitor
from callscore.store.repository import AnalysisRepository

logger = logging.getLogger(__name__)

SNIPPET_LENGTH = 200
MATCHER_SERVICE = "objection_matcher"


def group_by_category(
    library: list[ObjectionLibraryEntry],
) -> dict[ObjectionCategory, list[ObjectionLibraryEntry]]:
    grouped: dict[ObjectionCategory, list[ObjectionLibraryEntry]] = defaultdict(list)
    for entry in library:
        grouped[entry.category].append(entry)
    return grouped


def build_matches(
    objections: list[ObjectionOccurrence],
    library: list[ObjectionLibraryEntry],
) -> list[ObjectionMatch]:
    """Pure matching step: one match per occurrence with a library entry."""
    by_category = group_by_category(library)
    matches: list[ObjectionMatch] = []
    for occurrence in objections:
        candidates = by_category.get(occurrence.category)
        if not candidates:
            continue
        matches.append(
            ObjectionMatch(
                objection_id=candidates[0].id,
                triggered_at=occurrence.prospect_text[:SNIPPET_LENGTH],
                response_snippet=occurrence.rep_response[:SNIPPET_LENGTH],
            )
        )
    return matches


class ObjectionMatcher:
    def __init__(
        self,
        repository: AnalysisRepository,
        health_monitor: HealthMonitor | None = None,
    ) -> None:
        self.repository = repository
        self.health_monitor = health_monitor

    def match_and_save(self, call_id: str, objections: list[ObjectionOccurrence]) -> list[ObjectionMatch]:
        """
        Persist library links for ``objections``.

        Returns the matches written (an occurrence already linked for this
        call is left untouched). Links from an earlier submission of the
        call that no longer match are removed. Never raises.
        """
        try:
            matches: list[ObjectionMatch] = []
            if objections:
                matches = build_matches(objections, self.repository.list_objection_library())
            self.repository.save_objection_matches(call_id, matches)
        except Exception as exc:
            logger.exception("Objection matching failed | call=%s", call_id)
            if self.health_monitor is not None:
                self.health_monitor.record_error(MATCHER_SERVICE, str(exc))
            return []

        logger.info(
            "Objections matched | call=%s | detected=%d | matched=%d",
            call_id,
            len(objections),
            len(matches),
        )
        return matches
