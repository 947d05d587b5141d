"""
Match and report data models.

Output of deduplication, similarity matching and the orchestrator.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from topic_reconciler.models.topic import ChunkExcerpt, Topic
from topic_reconciler.models.cluster import Cluster

MATCH_TYPES = ("strong", "weak", "none")


@dataclass
class DuplicateRecord:
    """Trace of a topic dropped by the duplicate detector."""
    text: str
    kept_text: str  # Accepted topic that absorbed it
    reason: str  # "exact", "substring", or "edit_distance"
    similarity: Optional[float] = None

    def to_dict(self) -> dict:
        return {
            "text": self.text,
            "kept_text": self.kept_text,
            "reason": self.reason,
            "similarity": self.similarity
        }


@dataclass
class DedupResult:
    unique_topics: List[Topic] = field(default_factory=list)
    duplicates_removed: int = 0
    duplicates: List[DuplicateRecord] = field(default_factory=list)


@dataclass
class MatchRecord:
    """
    Best match of one source topic against the target set.
    Exactly one record exists per source topic.
    """
    source_topic_id: str
    match_type: str  # "strong", "weak", or "none"
    similarity_score: float
    target_topic_id: Optional[str] = None  # Set for strong and weak matches only
    source_text: str = ""
    target_text: Optional[str] = None
    gaps: List[str] = field(default_factory=list)
    evidence: List[ChunkExcerpt] = field(default_factory=list)
    suggestions: List[str] = field(default_factory=list)

    def __post_init__(self):
        if self.match_type not in MATCH_TYPES:
            raise ValueError(
                f"Invalid match_type: {self.match_type}. Must be 'strong', 'weak', or 'none'"
            )
        if not (0.0 <= self.similarity_score <= 1.0):
            raise ValueError(f"similarity_score out of range: {self.similarity_score}")

    def to_dict(self) -> dict:
        return {
            "source_topic_id": self.source_topic_id,
            "target_topic_id": self.target_topic_id,
            "source_text": self.source_text,
            "target_text": self.target_text,
            "match_type": self.match_type,
            "similarity_score": self.similarity_score,
            "gaps": list(self.gaps),
            "evidence": [e.to_dict() for e in self.evidence],
            "suggestions": list(self.suggestions)
        }


@dataclass
class MatchResult:
    """Matcher output: one record per source plus targets nobody picked."""
    matches: List[MatchRecord] = field(default_factory=list)
    unmatched_targets: List[Topic] = field(default_factory=list)

    def count(self, match_type: str) -> int:
        return sum(1 for m in self.matches if m.match_type == match_type)


@dataclass
class NewTopicSuggestion:
    """A document topic no course topic covers; candidate for a brand-new topic."""
    topic_id: str
    title: str
    description: str = ""
    chunk_ids: List[str] = field(default_factory=list)

    @classmethod
    def from_topic(cls, topic: Topic) -> "NewTopicSuggestion":
        return cls(
            topic_id=topic.topic_id,
            title=topic.text,
            description=topic.description,
            chunk_ids=[c.chunk_id for c in topic.chunks]
        )

    def to_dict(self) -> dict:
        return {
            "topic_id": self.topic_id,
            "title": self.title,
            "description": self.description,
            "chunk_ids": list(self.chunk_ids)
        }


@dataclass
class ReconciliationReport:
    """
    Complete result of one reconcile() call.
    Only ever returned fully populated.
    """
    matches: List[MatchRecord]
    new_topic_suggestions: List[NewTopicSuggestion]
    unmatched_course_topics: List[Topic]
    clusters: Optional[List[Cluster]] = None
    metadata: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict:
        """Convert to JSON-serializable dict."""
        return {
            "matches": [m.to_dict() for m in self.matches],
            "new_topic_suggestions": [s.to_dict() for s in self.new_topic_suggestions],
            "unmatched_course_topics": [t.to_dict() for t in self.unmatched_course_topics],
            "clusters": (
                [c.to_dict() for c in self.clusters] if self.clusters is not None else None
            ),
            "metadata": self.metadata
        }


# Design Rationale and Trade-offs:
#
# 1. Why validate MatchRecord in __post_init__?
#    - An unknown match type or a score outside [0, 1] would corrupt the
#      report stats and CSV sort
#    - Trade-off: Constructing a record can raise ValueError
#
# 2. Why keep source and target text on each record?
#    - The CSV table and logs read without a topic lookup
#    - Trade-off: Text is stored twice in the JSON report
