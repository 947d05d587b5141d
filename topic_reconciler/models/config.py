"""
Reconciliation configuration model.

Passed explicitly into the orchestrator; nothing in the engine reads ambient
settings on its own.
"""

from dataclasses import dataclass


@dataclass(frozen=True)
class ReconciliationConfig:
    # Normalization
    min_topic_length: int = 5
    max_topic_length: int = 200

    # Deduplication (normalized edit-distance similarity above this = duplicate)
    duplicate_similarity_threshold: float = 0.8

    # Match tiers
    strong_threshold: float = 0.75
    weak_threshold: float = 0.60
    max_evidence_excerpts: int = 5

    # Embedding batching
    embedding_batch_size: int = 10
    embedding_batch_delay_seconds: float = 0.5
    embedding_max_retries: int = 1

    # Gap analysis
    max_gaps: int = 3
    gap_analysis_workers: int = 4

    # Clustering
    clustering_threshold: int = 30
    min_clusters: int = 12
    max_clusters: int = 20
    cluster_topic_text_limit: int = 100

    def __post_init__(self):
        for name in ("duplicate_similarity_threshold", "strong_threshold", "weak_threshold"):
            value = getattr(self, name)
            if not (0.0 <= value <= 1.0):
                raise ValueError(f"{name} must be in [0, 1], got {value}")

        if self.weak_threshold > self.strong_threshold:
            raise ValueError(
                f"weak_threshold ({self.weak_threshold}) must not exceed "
                f"strong_threshold ({self.strong_threshold})"
            )

        if self.min_topic_length < 1 or self.max_topic_length < self.min_topic_length:
            raise ValueError(
                f"Invalid topic length bounds: {self.min_topic_length}-{self.max_topic_length}"
            )

        if self.embedding_batch_size < 1:
            raise ValueError("embedding_batch_size must be at least 1")

        if self.embedding_batch_delay_seconds < 0 or self.embedding_max_retries < 0:
            raise ValueError("Embedding delay and retries must be non-negative")

        if self.min_clusters < 1 or self.max_clusters < self.min_clusters:
            raise ValueError(
                f"Invalid cluster count range: {self.min_clusters}-{self.max_clusters}"
            )

        if self.gap_analysis_workers < 1:
            raise ValueError("gap_analysis_workers must be at least 1")

    @classmethod
    def from_settings(cls) -> "ReconciliationConfig":
        """Snapshot config/settings.py (environment overrides included)."""
        import config.settings as settings

        return cls(
            min_topic_length=settings.MIN_TOPIC_LENGTH,
            max_topic_length=settings.MAX_TOPIC_LENGTH,
            duplicate_similarity_threshold=settings.DUPLICATE_SIMILARITY_THRESHOLD,
            strong_threshold=settings.STRONG_MATCH_THRESHOLD,
            weak_threshold=settings.WEAK_MATCH_THRESHOLD,
            max_evidence_excerpts=settings.MAX_EVIDENCE_EXCERPTS,
            embedding_batch_size=settings.EMBEDDING_BATCH_SIZE,
            embedding_batch_delay_seconds=settings.EMBEDDING_BATCH_DELAY_SECONDS,
            embedding_max_retries=settings.EMBEDDING_MAX_RETRIES,
            max_gaps=settings.MAX_GAPS,
            gap_analysis_workers=settings.GAP_ANALYSIS_WORKERS,
            clustering_threshold=settings.MIN_TOPICS_FOR_CLUSTERING,
            min_clusters=settings.TARGET_MODULES_MIN,
            max_clusters=settings.TARGET_MODULES_MAX,
            cluster_topic_text_limit=settings.CLUSTER_TOPIC_TEXT_LIMIT
        )


# Design Rationale and Trade-offs:
#
# 1. Why a frozen config object instead of reading settings directly?
#    - Tests build configs inline without patching modules
#    - Concurrent runs cannot see each other's changes
#    - Trade-off: New settings need a field here and in from_settings()
#
# 2. Why validate in __post_init__?
#    - weak > strong thresholds would make the weak tier unreachable
#    - Trade-off: Errors surface at construction, before any run starts
