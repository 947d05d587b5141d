"""
Duplicate Detector.

Removes near-duplicate topics from a single list, keeping the first
occurrence's original text.
"""

import logging
import unicodedata
from typing import List, Optional, Tuple, Union

from rapidfuzz.distance import Levenshtein

from topic_reconciler.errors import ValidationError
from topic_reconciler.models.match import DedupResult, DuplicateRecord
from topic_reconciler.models.topic import Topic

logger = logging.getLogger(__name__)

REASON_EXACT = "exact"
REASON_SUBSTRING = "substring"
REASON_EDIT_DISTANCE = "edit_distance"


def comparison_key(text: str) -> str:
    """Case- and accent-insensitive form used for every comparison."""
    decomposed = unicodedata.normalize("NFKD", text)
    stripped = "".join(ch for ch in decomposed if not unicodedata.combining(ch))
    return " ".join(stripped.casefold().split())


def edit_similarity(a: str, b: str) -> float:
    """1 - levenshtein(a, b) / max(len(a), len(b))."""
    return Levenshtein.normalized_similarity(a, b)


class DuplicateDetector:
    """
    Greedy near-duplicate filter.

    Four-stage check per candidate against every accepted topic:
    1. Exact key match
    2. Substring in either direction
    3. Edit-distance similarity at or above the threshold
    4. Otherwise accept

    Comparisons are O(n*m) with no bucketing, so which duplicate is found
    first depends only on input order.
    """

    def __init__(self, similarity_threshold: float = 0.8, default_source_type: str = "generated"):
        """
        Initialize duplicate detector.

        Args:
            similarity_threshold: Edit-distance similarity treated as duplicate
            default_source_type: Source type for plain strings passed to dedupe()
        """
        self.similarity_threshold = similarity_threshold
        self.default_source_type = default_source_type

    def dedupe(self, topics: List[Union[str, Topic]]) -> DedupResult:
        """
        Remove near-duplicates from a topic list.

        Args:
            topics: Topic strings or Topic objects, in priority order

        Returns:
            DedupResult with accepted topics (original text preserved) and a
            trace of every dropped topic

        Raises:
            ValidationError: If a topic is blank
        """
        result = DedupResult()
        accepted: List[Tuple[str, Topic]] = []  # (key, topic)

        for item in topics:
            topic = Topic.from_raw(item, self.default_source_type)
            key = comparison_key(topic.text)
            if not key:
                raise ValidationError("Cannot deduplicate a blank topic")

            duplicate = self._find_duplicate(key, accepted)
            if duplicate:
                kept, reason, similarity = duplicate
                result.duplicates.append(
                    DuplicateRecord(
                        text=topic.text,
                        kept_text=kept.text,
                        reason=reason,
                        similarity=similarity
                    )
                )
                logger.debug(f"Duplicate ({reason}): '{topic.text}' → '{kept.text}'")
                continue

            accepted.append((key, topic))

        result.unique_topics = [topic for _, topic in accepted]
        result.duplicates_removed = len(result.duplicates)

        logger.info(
            f"Deduplicated {len(topics)} topics → {len(result.unique_topics)} unique "
            f"({result.duplicates_removed} removed)"
        )
        return result

    def _find_duplicate(
        self,
        key: str,
        accepted: List[Tuple[str, Topic]]
    ) -> Optional[Tuple[Topic, str, Optional[float]]]:
        """Return (kept_topic, reason, similarity) for the first accepted topic this duplicates."""
        # Fast path: exact match anywhere wins over fuzzier matches earlier in the list
        for accepted_key, topic in accepted:
            if accepted_key == key:
                return topic, REASON_EXACT, 1.0

        for accepted_key, topic in accepted:
            if key in accepted_key or accepted_key in key:
                return topic, REASON_SUBSTRING, None

            similarity = edit_similarity(key, accepted_key)
            if similarity >= self.similarity_threshold:
                return topic, REASON_EDIT_DISTANCE, similarity

        return None


# Design Rationale and Trade-offs:
#
# 1. Why an accent-folded comparison key?
#    - Course material mixes "Cálculo" and "Calculo" for the same topic
#    - Trade-off: Words that differ only by accent collapse too
#
# 2. Why >= for the similarity threshold?
#    - 0.8 is the smallest ratio still counted as a duplicate
#    - Trade-off: Short titles one edit apart (e.g. "Set A" / "Set B") can
#      collapse
#
# 3. Why first occurrence wins?
#    - Callers list topics in priority order
#    - Trade-off: O(n^2) comparisons against kept topics, fine for course
#      sized lists
#
# 4. Why rapidfuzz instead of difflib?
#    - C implementation of normalized Levenshtein
#    - Trade-off: One more dependency
