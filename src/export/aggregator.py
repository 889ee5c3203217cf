"""
Score aggregation for participation reports.

Collects the attempts of a course and keeps one row per participant.
"""

from typing import Dict, Iterable, List, Optional, Tuple

from core.models import AttemptRecord, Course
from storage.attempt_store import AttemptStore


def remove_duplicates_keep_highest(records: Iterable[AttemptRecord]) -> List[AttemptRecord]:
    """
    Keep the best attempt of every participant.

    Participants are identified by (first name, last name, institution).
    A later attempt replaces the kept one only with a strictly higher
    score, so ties keep the first attempt seen. Output follows the order in
    which each participant first appears.
    """
    best: Dict[Tuple[str, str, str], AttemptRecord] = {}

    for record in records:
        key = record.identity
        existing = best.get(key)
        if existing is None or record.score > existing.score:
            # Reassigning an existing key keeps its original position
            best[key] = record

    return list(best.values())


class ScoreAggregator:
    """Reads a course's attempts and deduplicates participants."""

    def __init__(self, attempt_store: AttemptStore):
        self.attempt_store = attempt_store

    def aggregate(self, course: Course, institution: Optional[str] = None) -> List[AttemptRecord]:
        """
        Best attempt per participant for a course.

        Args:
            course: Course whose attempt collection is read
            institution: Optional sub-audience filter

        Returns:
            Deduplicated attempts; empty when nothing matches
        """
        repository = self.attempt_store.for_course(course.collection_name)
        return remove_duplicates_keep_highest(repository.find(course.id, institution))
