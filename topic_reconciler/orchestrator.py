"""
Reconciliation Orchestrator.

Sequences normalization, deduplication, embedding, matching and gap analysis
into one all-or-nothing reconcile() call.
"""

import logging
import time
import uuid
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence, Tuple

from topic_reconciler.agents.clustering import TopicClusterer
from topic_reconciler.agents.deduplication import DuplicateDetector
from topic_reconciler.agents.gap_analysis import GapAnalyzer
from topic_reconciler.agents.matching import SimilarityMatcher
from topic_reconciler.agents.normalization import TextNormalizer
from topic_reconciler.errors import PipelineError, ReconciliationError, ValidationError
from topic_reconciler.models.cluster import ClusteringResult
from topic_reconciler.models.config import ReconciliationConfig
from topic_reconciler.models.match import (
    DedupResult,
    MatchResult,
    NewTopicSuggestion,
    ReconciliationReport,
)
from topic_reconciler.models.topic import Topic
from topic_reconciler.registry.embedding_registry import EmbeddingRegistry
from topic_reconciler.utils.embeddings import EmbeddingGateway, GeminiEmbeddingClient
from topic_reconciler.utils.llm import GeminiTextClient, TextGenerationClient

logger = logging.getLogger(__name__)


class PipelineStage(str, Enum):
    INIT = "init"
    NORMALIZED = "normalized"
    DEDUPLICATED = "deduplicated"
    EMBEDDED = "embedded"
    MATCHED = "matched"
    REPORTED = "reported"
    FAILED = "failed"


# Single pass, no backtracking
_TRANSITIONS = {
    PipelineStage.INIT: PipelineStage.NORMALIZED,
    PipelineStage.NORMALIZED: PipelineStage.DEDUPLICATED,
    PipelineStage.DEDUPLICATED: PipelineStage.EMBEDDED,
    PipelineStage.EMBEDDED: PipelineStage.MATCHED,
    PipelineStage.MATCHED: PipelineStage.REPORTED,
}


@dataclass
class ReconciliationRun:
    """
    Per-call pipeline state. Never shared between reconcile() calls.
    """
    run_id: str = field(default_factory=lambda: str(uuid.uuid4()))
    stage: PipelineStage = PipelineStage.INIT
    step: str = "validate"  # Operation currently executing
    history: List[str] = field(default_factory=lambda: [PipelineStage.INIT.value])
    started_at: float = field(default_factory=time.perf_counter)

    def advance(self, stage: PipelineStage) -> None:
        if _TRANSITIONS.get(self.stage) != stage:
            raise PipelineError(
                f"Illegal transition {self.stage.value} -> {stage.value}", stage=self.step
            )
        self.stage = stage
        self.history.append(stage.value)

    def fail(self) -> None:
        self.stage = PipelineStage.FAILED
        self.history.append(PipelineStage.FAILED.value)

    @property
    def elapsed_seconds(self) -> float:
        return time.perf_counter() - self.started_at


class ReconciliationOrchestrator:
    """
    Aligns course topics against document topics.

    Coordinates:
    1. Normalize → 2. Deduplicate → 3. Embed (course and document sets
    concurrently, joined before matching) → 4. Match → 5. Gap analysis on
    weak matches → 6. Report

    Optionally: 7. Cluster the course topics when there are too many.

    Correctness-critical stages (1-4) fail the whole call; gap analysis and
    clustering degrade gracefully.
    """

    def __init__(
        self,
        embedding_gateway: EmbeddingGateway,
        text_client: TextGenerationClient,
        config: Optional[ReconciliationConfig] = None,
        cluster_client: Optional[TextGenerationClient] = None
    ):
        """
        Initialize orchestrator.

        Args:
            embedding_gateway: Batched, retrying access to the embedding collaborator
            text_client: Generative-text collaborator for gap analysis
            config: Thresholds and limits (defaults when omitted)
            cluster_client: Collaborator for cluster proposals (defaults to text_client)
        """
        self.config = config or ReconciliationConfig()
        self.embedding_gateway = embedding_gateway

        self.normalizer = TextNormalizer(
            min_length=self.config.min_topic_length,
            max_length=self.config.max_topic_length
        )
        self.deduplicator = DuplicateDetector(
            similarity_threshold=self.config.duplicate_similarity_threshold
        )
        self.matcher = SimilarityMatcher(
            strong_threshold=self.config.strong_threshold,
            weak_threshold=self.config.weak_threshold,
            max_evidence_excerpts=self.config.max_evidence_excerpts
        )
        self.gap_analyzer = GapAnalyzer(text_client, max_gaps=self.config.max_gaps)
        self.clusterer = TopicClusterer(
            cluster_client or text_client,
            min_clusters=self.config.min_clusters,
            max_clusters=self.config.max_clusters,
            topic_text_limit=self.config.cluster_topic_text_limit
        )

        logger.info(
            f"Initialized ReconciliationOrchestrator: strong={self.config.strong_threshold}, "
            f"weak={self.config.weak_threshold}, dedup={self.config.duplicate_similarity_threshold}"
        )

    @classmethod
    def from_settings(
        cls,
        api_key: str,
        config: Optional[ReconciliationConfig] = None
    ) -> "ReconciliationOrchestrator":
        """Build an orchestrator backed by Gemini collaborators configured from config/settings.py."""
        import config.settings as settings

        config = config or ReconciliationConfig.from_settings()

        gateway = EmbeddingGateway(
            client=GeminiEmbeddingClient(api_key=api_key, model_name=settings.EMBEDDING_MODEL),
            model_name=settings.EMBEDDING_MODEL,
            dimensions=settings.EMBEDDING_DIMENSIONS,
            batch_size=config.embedding_batch_size,
            batch_delay_seconds=config.embedding_batch_delay_seconds,
            max_retries=config.embedding_max_retries
        )
        text_client = GeminiTextClient(
            api_key=api_key,
            model_name=settings.GAP_ANALYSIS_MODEL,
            temperature=settings.LLM_TEMPERATURE
        )
        cluster_client = GeminiTextClient(
            api_key=api_key,
            model_name=settings.CLUSTERING_MODEL,
            temperature=settings.LLM_TEMPERATURE
        )
        return cls(
            embedding_gateway=gateway,
            text_client=text_client,
            config=config,
            cluster_client=cluster_client
        )

    def reconcile(
        self,
        course_topics: Sequence[Any],
        document_topics: Sequence[Any],
        include_clusters: bool = False,
        embedding_registry: Optional[EmbeddingRegistry] = None,
        subject: Optional[str] = None
    ) -> ReconciliationReport:
        """
        Run the full reconciliation pipeline.

        Args:
            course_topics: Planned course topics (strings or item dicts)
            document_topics: Topics found in supporting material
            include_clusters: Also cluster the course topics when they exceed
                the clustering threshold
            embedding_registry: Optional caller-owned vector store to reuse
                and extend; the caller saves it
            subject: Course subject named in the clustering prompt

        Returns:
            Fully populated ReconciliationReport

        Raises:
            ReconciliationError: A single terminal error whose stage names the
                failing step; no partial report is ever returned
        """
        run = ReconciliationRun()
        logger.info(
            f"Starting reconciliation {run.run_id}: "
            f"{_safe_len(course_topics)} course topics, {_safe_len(document_topics)} document topics"
        )

        try:
            self._validate_inputs(course_topics, document_topics)

            # STAGE 1: Normalization
            run.step = "normalize"
            course, course_rejected = self._normalize(course_topics, "generated")
            documents, document_rejected = self._normalize(document_topics, "document")
            if not course:
                raise ValidationError("No valid course topics remain after normalization")
            run.advance(PipelineStage.NORMALIZED)

            # STAGE 2: Deduplication
            run.step = "dedupe"
            course_dedup = self.deduplicator.dedupe(course)
            document_dedup = self.deduplicator.dedupe(documents)
            run.advance(PipelineStage.DEDUPLICATED)

            # STAGE 3: Embedding (two independent tasks, joined here)
            run.step = "embed"
            with ThreadPoolExecutor(max_workers=2) as executor:
                course_future = executor.submit(
                    self.embedding_gateway.embed_topics,
                    course_dedup.unique_topics,
                    embedding_registry
                )
                document_future = executor.submit(
                    self.embedding_gateway.embed_topics,
                    document_dedup.unique_topics,
                    embedding_registry
                )
                course_embeddings = course_future.result()
                document_embeddings = document_future.result()
            run.advance(PipelineStage.EMBEDDED)

            # STAGE 4: Matching (pure in-memory)
            run.step = "match"
            match_result = self.matcher.match(
                course_dedup.unique_topics,
                document_dedup.unique_topics,
                course_embeddings,
                document_embeddings
            )
            run.advance(PipelineStage.MATCHED)

            # STAGE 5: Gap analysis (best-effort)
            run.step = "gap_analysis"
            self._attach_gaps(match_result, course_dedup.unique_topics, document_dedup.unique_topics)

            # STAGE 6 (optional): Clustering
            clustering = None
            if include_clusters:
                run.step = "cluster"
                clustering = self._cluster_if_needed(course_dedup.unique_topics, subject)

            # STAGE 7: Report
            run.step = "report"
            report = self._build_report(
                run,
                match_result,
                course_dedup,
                document_dedup,
                course_rejected + document_rejected,
                clustering
            )
            run.advance(PipelineStage.REPORTED)
            report.metadata["stages"] = list(run.history)

        except ReconciliationError as e:
            if e.stage is None:
                e.stage = run.step
            run.fail()
            logger.error(f"Reconciliation {run.run_id} failed at {e.stage}: {e.message}")
            raise

        except Exception as e:
            run.fail()
            logger.error(f"Reconciliation {run.run_id} failed at {run.step}: {e}", exc_info=True)
            raise PipelineError(f"Unexpected failure: {e}", stage=run.step) from e

        logger.info(
            f"Reconciliation {run.run_id} complete in {run.elapsed_seconds:.2f}s: "
            f"{len(report.matches)} matches, {len(report.new_topic_suggestions)} new topic suggestions, "
            f"{len(report.unmatched_course_topics)} unmatched course topics"
        )
        return report

    def cluster_topics(
        self,
        raw_topics: Sequence[Any],
        source_type: str = "web",
        subject: Optional[str] = None
    ) -> Optional[ClusteringResult]:
        """
        Normalize, deduplicate and cluster a standalone topic list.

        Returns:
            ClusteringResult, or None when the deduplicated list does not
            exceed the clustering threshold

        Raises:
            ReconciliationError: On invalid input (clustering itself never fails)
        """
        step = "validate"
        try:
            if not isinstance(raw_topics, (list, tuple)) or not raw_topics:
                raise ValidationError("Topic list must be a non-empty list")

            step = "normalize"
            topics, _ = self._normalize(raw_topics, source_type)

            step = "dedupe"
            dedup = self.deduplicator.dedupe(topics)

            step = "cluster"
            return self._cluster_if_needed(dedup.unique_topics, subject)

        except ReconciliationError as e:
            if e.stage is None:
                e.stage = step
            logger.error(f"Clustering failed at {e.stage}: {e.message}")
            raise

        except Exception as e:
            logger.error(f"Clustering failed at {step}: {e}", exc_info=True)
            raise PipelineError(f"Unexpected failure: {e}", stage=step) from e

    def _validate_inputs(self, course_topics: Any, document_topics: Any) -> None:
        """Fail before any collaborator call on malformed or empty lists."""
        for name, topics in (("course_topics", course_topics), ("document_topics", document_topics)):
            if not isinstance(topics, (list, tuple)):
                raise ValidationError(f"{name} must be a list, got {type(topics).__name__}")
            if not topics:
                raise ValidationError(f"{name} is empty")

    def _normalize(
        self,
        items: Sequence[Any],
        default_source_type: str
    ) -> Tuple[List[Topic], List[Dict[str, Any]]]:
        """
        Wrap raw items as topics and clean their text.

        Returns:
            (kept topics, rejection records)
        """
        kept = []
        rejected = []

        for item in items:
            topic = Topic.from_raw(item, default_source_type)
            reason = self.normalizer.rejection_reason(topic.text)
            if reason:
                rejected.append({
                    "text": topic.text,
                    "source_type": topic.source_type,
                    "reason": reason
                })
                continue
            kept.append(topic.with_text(self.normalizer.clean(topic.text)))

        logger.info(
            f"Normalized {len(items)} {default_source_type} items: "
            f"kept {len(kept)}, rejected {len(rejected)}"
        )
        return kept, rejected

    def _attach_gaps(
        self,
        match_result: MatchResult,
        source_topics: Sequence[Topic],
        target_topics: Sequence[Topic]
    ) -> None:
        weak = [m for m in match_result.matches if m.match_type == "weak"]
        if not weak:
            return

        sources = {t.topic_id: t for t in source_topics}
        targets = {t.topic_id: t for t in target_topics}
        pairs = [(sources[m.source_topic_id], targets[m.target_topic_id]) for m in weak]

        gaps = self.gap_analyzer.identify_gaps_many(
            pairs, max_workers=self.config.gap_analysis_workers
        )
        for record, record_gaps in zip(weak, gaps):
            record.gaps = record_gaps

    def _cluster_if_needed(
        self,
        topics: List[Topic],
        subject: Optional[str] = None
    ) -> Optional[ClusteringResult]:
        if len(topics) <= self.config.clustering_threshold:
            logger.info(
                f"{len(topics)} topics within clustering threshold "
                f"({self.config.clustering_threshold}), skipping clustering"
            )
            return None

        return self.clusterer.cluster(
            topics,
            min_clusters=self.config.min_clusters,
            max_clusters=self.config.max_clusters,
            subject=subject
        )

    def _build_report(
        self,
        run: ReconciliationRun,
        match_result: MatchResult,
        course_dedup: DedupResult,
        document_dedup: DedupResult,
        rejected: List[Dict[str, Any]],
        clustering: Optional[ClusteringResult]
    ) -> ReconciliationReport:
        unmatched_ids = {m.source_topic_id for m in match_result.matches if m.match_type == "none"}

        report = ReconciliationReport(
            matches=match_result.matches,
            new_topic_suggestions=[
                NewTopicSuggestion.from_topic(t) for t in match_result.unmatched_targets
            ],
            unmatched_course_topics=[
                t for t in course_dedup.unique_topics if t.topic_id in unmatched_ids
            ],
            clusters=clustering.clusters if clustering is not None else None
        )

        report.metadata = {
            "run_id": run.run_id,
            "embedding_model": self.embedding_gateway.model_name,
            "thresholds": {
                "strong": self.config.strong_threshold,
                "weak": self.config.weak_threshold,
                "duplicate": self.config.duplicate_similarity_threshold
            },
            "stats": {
                "course_topics_unique": len(course_dedup.unique_topics),
                "document_topics_unique": len(document_dedup.unique_topics),
                "course_duplicates_removed": course_dedup.duplicates_removed,
                "document_duplicates_removed": document_dedup.duplicates_removed,
                "rejected_inputs": len(rejected),
                "strong_matches": match_result.count("strong"),
                "weak_matches": match_result.count("weak"),
                "no_matches": match_result.count("none")
            },
            "rejected_inputs": rejected,
            "duplicates": {
                "course": [d.to_dict() for d in course_dedup.duplicates],
                "document": [d.to_dict() for d in document_dedup.duplicates]
            },
            "structural_repairs": (
                [w.to_dict() for w in clustering.warnings] if clustering is not None else []
            ),
            "clustered_topic_ids": (
                [t.topic_id for t in clustering.topics] if clustering is not None else []
            ),
            "duration_seconds": round(run.elapsed_seconds, 3)
        }
        return report


def _safe_len(items: Any) -> Any:
    try:
        return len(items)
    except TypeError:
        return "?"


# Design Rationale and Trade-offs:
#
# 1. Why one terminal error instead of partial reports?
#    - A report with missing stages looks complete to downstream tools
#    - The stage on the error says where to look
#    - Trade-off: A late failure throws away finished embedding work
#
# 2. Why embed the two topic sets on two threads?
#    - They are independent and dominate wall-clock time
#    - Trade-off: Both sets share one rate limit; batch delay still applies
#      per set
#
# 3. Why is the embedding registry caller-owned?
#    - The orchestrator never writes to disk, so runs stay side-effect free
#    - The caller decides when a run was good enough to persist
#    - Trade-off: Callers must remember to call save()
#
# 4. Why no cancellation inside the pipeline?
#    - Collaborator SDK calls block with no cancel hook
#    - Trade-off: Timeouts belong to the caller (see main.py)
