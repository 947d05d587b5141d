"""
Similarity Matcher.

Aligns a source topic set against a target topic set by cosine similarity of
their embeddings and classifies each best match into strong/weak/none tiers.
"""

import logging
from typing import Optional, Sequence

from topic_reconciler.errors import ValidationError
from topic_reconciler.models.match import MatchRecord, MatchResult
from topic_reconciler.models.topic import Embedding, Topic

logger = logging.getLogger(__name__)


WEAK_MATCH_SUGGESTIONS = (
    'Expand "{target}" to cover the missing aspects of "{source}"',
    "Create a dedicated subtopic for the identified gaps",
    "Link the existing content as partial coverage",
)


def cosine_similarity(vec1: Sequence[float], vec2: Sequence[float]) -> float:
    """
    Compute cosine similarity between two vectors.

    Returns:
        Similarity clamped to [0, 1]; 0.0 when either vector has zero norm
    """
    dot_product = sum(a * b for a, b in zip(vec1, vec2))

    mag1 = sum(a * a for a in vec1) ** 0.5
    mag2 = sum(b * b for b in vec2) ** 0.5

    # Avoid division by zero
    if mag1 == 0 or mag2 == 0:
        return 0.0

    similarity = dot_product / (mag1 * mag2)
    return min(1.0, max(0.0, similarity))


def classify_score(score: float, strong_threshold: float = 0.75, weak_threshold: float = 0.60) -> str:
    """Map a similarity score to its match tier."""
    if score >= strong_threshold:
        return "strong"
    if score >= weak_threshold:
        return "weak"
    return "none"


class SimilarityMatcher:
    """
    Best-match alignment between two embedded topic sets.

    The relation is many-to-one: every source topic gets exactly one record,
    several sources may share a target. Target topics no source picked as a
    strong or weak best match are reported separately as unmatched targets.
    """

    def __init__(
        self,
        strong_threshold: float = 0.75,
        weak_threshold: float = 0.60,
        max_evidence_excerpts: int = 5
    ):
        """
        Initialize matcher.

        Args:
            strong_threshold: Score at or above which a match is strong
            weak_threshold: Score at or above which a match is weak
            max_evidence_excerpts: Excerpts attached to a strong match
        """
        if weak_threshold > strong_threshold:
            raise ValueError("weak_threshold must not exceed strong_threshold")

        self.strong_threshold = strong_threshold
        self.weak_threshold = weak_threshold
        self.max_evidence_excerpts = max_evidence_excerpts

    def match(
        self,
        source_topics: Sequence[Topic],
        target_topics: Sequence[Topic],
        source_embeddings: Sequence[Embedding],
        target_embeddings: Sequence[Embedding],
        strong_threshold: Optional[float] = None,
        weak_threshold: Optional[float] = None
    ) -> MatchResult:
        """
        Find each source topic's best target and classify it.

        Args:
            source_topics: Topics to find coverage for
            target_topics: Candidate covering topics
            source_embeddings: One embedding per source topic, same order
            target_embeddings: One embedding per target topic, same order
            strong_threshold: Override of the instance strong threshold
            weak_threshold: Override of the instance weak threshold

        Returns:
            MatchResult with one MatchRecord per source topic and the
            unmatched targets in target order

        Raises:
            ValidationError: If embeddings do not line up with topics
        """
        strong = self.strong_threshold if strong_threshold is None else strong_threshold
        weak = self.weak_threshold if weak_threshold is None else weak_threshold
        if weak > strong:
            raise ValidationError("weak_threshold must not exceed strong_threshold")

        self._validate_inputs(source_topics, target_topics, source_embeddings, target_embeddings)

        result = MatchResult()
        selected_targets = set()

        for source, source_embedding in zip(source_topics, source_embeddings):
            best_index: Optional[int] = None
            best_score = 0.0

            for j, target_embedding in enumerate(target_embeddings):
                score = cosine_similarity(source_embedding.vector, target_embedding.vector)
                # Strict comparison keeps the first occurrence on ties
                if best_index is None or score > best_score:
                    best_index = j
                    best_score = score

            record = self._build_record(
                source, target_topics, best_index, best_score, strong, weak
            )
            if record.target_topic_id is not None:
                selected_targets.add(best_index)

            result.matches.append(record)
            logger.debug(
                f"Topic '{source.text}': {record.match_type} match "
                f"({record.similarity_score * 100:.1f}%)"
            )

        result.unmatched_targets = [
            target for j, target in enumerate(target_topics)
            if j not in selected_targets
        ]

        logger.info(
            f"Matching complete: {result.count('strong')} strong, "
            f"{result.count('weak')} weak, {result.count('none')} none, "
            f"{len(result.unmatched_targets)} unmatched targets"
        )
        return result

    def _build_record(
        self,
        source: Topic,
        target_topics: Sequence[Topic],
        best_index: Optional[int],
        best_score: float,
        strong_threshold: float,
        weak_threshold: float
    ) -> MatchRecord:
        match_type = classify_score(best_score, strong_threshold, weak_threshold)

        if best_index is None or match_type == "none":
            return MatchRecord(
                source_topic_id=source.topic_id,
                match_type="none",
                similarity_score=best_score if best_index is not None else 0.0,
                source_text=source.text
            )

        target = target_topics[best_index]
        record = MatchRecord(
            source_topic_id=source.topic_id,
            target_topic_id=target.topic_id,
            match_type=match_type,
            similarity_score=best_score,
            source_text=source.text,
            target_text=target.text
        )

        if match_type == "strong":
            record.evidence = self.select_evidence(target)
        else:
            record.suggestions = [
                s.format(source=source.text, target=target.text)
                for s in WEAK_MATCH_SUGGESTIONS
            ]

        return record

    def select_evidence(self, target: Topic):
        """Top excerpts from the target's own chunks, by their upstream relevance score."""
        ranked = sorted(target.chunks, key=lambda c: c.relevance_score, reverse=True)
        return ranked[:self.max_evidence_excerpts]

    @staticmethod
    def _validate_inputs(
        source_topics: Sequence[Topic],
        target_topics: Sequence[Topic],
        source_embeddings: Sequence[Embedding],
        target_embeddings: Sequence[Embedding]
    ) -> None:
        if len(source_topics) != len(source_embeddings):
            raise ValidationError(
                f"{len(source_topics)} source topics but {len(source_embeddings)} embeddings"
            )
        if len(target_topics) != len(target_embeddings):
            raise ValidationError(
                f"{len(target_topics)} target topics but {len(target_embeddings)} embeddings"
            )

        dimensions = {len(e.vector) for e in list(source_embeddings) + list(target_embeddings)}
        if len(dimensions) > 1:
            raise ValidationError(f"Embeddings have mixed dimensionality: {sorted(dimensions)}")


# Design Rationale and Trade-offs:
#
# 1. Why clamp cosine similarity to [0, 1]?
#    - Thresholds and report percentages assume a non-negative score
#    - Opposite directions mean "unrelated" for topic text
#    - Trade-off: Negative and orthogonal scores are indistinguishable
#
# 2. Why pure Python instead of numpy?
#    - Course and document lists are hundreds of topics, not millions
#    - Trade-off: O(n*m) loops in Python, slow beyond a few thousand topics
#
# 3. Why many-to-one matching?
#    - One broad document topic often covers several course topics
#    - Trade-off: No one-to-one assignment, so a target can be reused
#
# 4. Why evidence from upstream relevance instead of re-scoring chunks?
#    - Chunks carry no embeddings here; re-embedding them would double cost
#    - Trade-off: Evidence order is only as good as the upstream score
