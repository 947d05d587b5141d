"""
Topic Clusterer.

Groups a large flat topic list into named thematic clusters (future curriculum
modules). The generative collaborator proposes the grouping; a deterministic
repair pass guarantees every topic index lands in exactly one cluster.
"""

import json
import logging
from dataclasses import dataclass, field
from typing import Any, List, Optional, Sequence

from topic_reconciler.errors import StructuralRepairWarning
from topic_reconciler.models.cluster import CLUSTER_LEVELS, Cluster, ClusteringResult
from topic_reconciler.models.topic import Topic
from topic_reconciler.utils.llm import TextGenerationClient

logger = logging.getLogger(__name__)


MISCELLANEOUS_CLUSTER_NAME = "Miscellaneous"


def _construct_prompt(
    topics: Sequence[Topic],
    min_clusters: int,
    max_clusters: int,
    text_limit: int,
    subject: Optional[str] = None
) -> str:
    """Construct clustering prompt from indexed, truncated topic texts."""
    course = f"a course on {subject.strip()}" if subject and subject.strip() else "a course"
    topic_lines = "\n".join(
        f"{i}: {topic.text[:text_limit]}" for i, topic in enumerate(topics)
    )
    return f"""Group the following {len(topics)} topics into {min_clusters}-{max_clusters} thematic clusters for {course}.

Rules:
- Each cluster must contain related topics
- Order clusters from basic to advanced
- Balance cluster sizes
- Do not leave any topic out and do not repeat a topic

Respond in JSON:
{{
  "clusters": [
    {{
      "name": "Cluster/module name",
      "level": "beginner|intermediate|advanced",
      "topics": [0, 1, 5, 8]
    }}
  ]
}}

Topics:
{topic_lines}"""


@dataclass
class ProposedCluster:
    """One cluster as the collaborator proposed it, before repair."""
    name: str = ""
    level: Optional[str] = None
    indices: List[Any] = field(default_factory=list)


def parse_proposal(response_text: str) -> List[ProposedCluster]:
    """
    Parse the collaborator's cluster proposal.

    Raises:
        ValueError: If the response is not JSON or has no clusters list
    """
    data = json.loads(response_text)
    if isinstance(data, dict):
        data = data.get("clusters")
    if not isinstance(data, list):
        raise ValueError("Cluster proposal missing 'clusters' list")

    proposal = []
    for entry in data:
        if not isinstance(entry, dict):
            continue
        raw_indices = entry.get("topics", entry.get("indices", []))
        proposal.append(
            ProposedCluster(
                name=str(entry.get("name") or "").strip(),
                level=entry.get("level"),
                indices=raw_indices if isinstance(raw_indices, list) else []
            )
        )
    return proposal


def _coerce_index(value: Any, n: int) -> Optional[int]:
    if isinstance(value, bool):
        return None
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    elif isinstance(value, str) and value.strip().isdigit():
        value = int(value.strip())
    if isinstance(value, int) and 0 <= value < n:
        return value
    return None


def _infer_level(position: int, total: int) -> str:
    if position < total / 3:
        return "beginner"
    if position < (2 * total) / 3:
        return "intermediate"
    return "advanced"


def repair_proposal(
    proposal: Sequence[ProposedCluster],
    n: int,
    warnings: List[StructuralRepairWarning]
) -> List[Cluster]:
    """
    Turn a raw proposal into an exact partition of range(n).

    Repairs, in order:
    0. Drop indices that are not integers in range
    1. Append indices no cluster claims to the last cluster (or to a new
       Miscellaneous cluster when there is none)
    2. Keep an index claimed by several clusters only in the first
    3. Discard clusters left empty
    Surviving clusters keep the proposed order. Every repair is appended to
    warnings.
    """
    working = []
    invalid = []
    for proposed in proposal:
        indices = []
        for raw in proposed.indices:
            index = _coerce_index(raw, n)
            if index is None:
                invalid.append(raw)
            else:
                indices.append(index)
        working.append(ProposedCluster(proposed.name, proposed.level, indices))

    if invalid:
        warnings.append(StructuralRepairWarning(
            kind="invalid_index",
            detail=f"Discarded {len(invalid)} invalid or out-of-range indices: {invalid[:10]}",
            indices=[v for v in invalid if isinstance(v, int) and not isinstance(v, bool)]
        ))

    # 1. Missing indices
    claimed = {i for cluster in working for i in cluster.indices}
    missing = [i for i in range(n) if i not in claimed]
    if missing:
        if working:
            working[-1].indices.extend(missing)
            target_name = working[-1].name or "last cluster"
        else:
            working.append(ProposedCluster(name=MISCELLANEOUS_CLUSTER_NAME, indices=list(missing)))
            target_name = MISCELLANEOUS_CLUSTER_NAME
        warnings.append(StructuralRepairWarning(
            kind="missing_index",
            detail=f"{len(missing)} topics assigned to no cluster; appended to '{target_name}'",
            indices=missing
        ))

    # 2. Duplicate indices
    seen = set()
    duplicates = []
    for cluster in working:
        kept = []
        for i in cluster.indices:
            if i in seen:
                duplicates.append(i)
            else:
                seen.add(i)
                kept.append(i)
        cluster.indices = kept
    if duplicates:
        warnings.append(StructuralRepairWarning(
            kind="duplicate_index",
            detail=f"{len(duplicates)} repeated assignments removed; first cluster keeps each topic",
            indices=sorted(set(duplicates))
        ))

    # 3. Empty clusters
    surviving = [cluster for cluster in working if cluster.indices]
    dropped = len(working) - len(surviving)
    if dropped:
        warnings.append(StructuralRepairWarning(
            kind="empty_cluster",
            detail=f"Discarded {dropped} clusters left without topics"
        ))

    clusters = []
    unnamed = []
    for position, proposed in enumerate(surviving):
        name = proposed.name
        if not name:
            name = f"Module {position + 1}"
            unnamed.append(position)

        level = str(proposed.level).strip().lower() if proposed.level else ""
        if level not in CLUSTER_LEVELS:
            level = _infer_level(position, len(surviving))

        clusters.append(Cluster(
            cluster_id=f"cluster-{position + 1}",
            name=name,
            level=level,
            topic_indices=list(proposed.indices)
        ))

    if unnamed:
        warnings.append(StructuralRepairWarning(
            kind="unnamed_cluster",
            detail=f"{len(unnamed)} clusters had no name and received a positional one",
            indices=unnamed
        ))

    return clusters


class TopicClusterer:
    """
    Collaborator-proposed, engine-validated topic clustering.

    The collaborator's structural claims (coverage, uniqueness, index range)
    are never trusted; repair_proposal enforces them.
    """

    def __init__(
        self,
        client: TextGenerationClient,
        min_clusters: int = 12,
        max_clusters: int = 20,
        topic_text_limit: int = 100
    ):
        """
        Initialize clusterer.

        Args:
            client: Generative-text collaborator
            min_clusters: Default lower bound on requested clusters
            max_clusters: Default upper bound on requested clusters
            topic_text_limit: Characters of each topic shown to the collaborator
        """
        self.client = client
        self.min_clusters = min_clusters
        self.max_clusters = max_clusters
        self.topic_text_limit = topic_text_limit

    def cluster(
        self,
        topics: Sequence[Topic],
        min_clusters: Optional[int] = None,
        max_clusters: Optional[int] = None,
        subject: Optional[str] = None
    ) -> ClusteringResult:
        """
        Group topics into named clusters.

        Args:
            topics: Deduplicated topics; cluster indices refer to this order
            min_clusters: Lower bound on cluster count (defaults to instance setting)
            max_clusters: Upper bound on cluster count (defaults to instance setting)
            subject: Course subject named in the prompt, if known

        Returns:
            ClusteringResult whose clusters partition range(len(topics))
        """
        min_clusters = min_clusters if min_clusters is not None else self.min_clusters
        max_clusters = max_clusters if max_clusters is not None else self.max_clusters

        result = ClusteringResult(topics=list(topics))
        if not topics:
            return result

        prompt = _construct_prompt(
            topics, min_clusters, max_clusters, self.topic_text_limit, subject
        )

        try:
            response_text = self.client.complete(prompt)
            proposal = parse_proposal(response_text)
        except Exception as e:
            logger.warning(f"Cluster proposal failed, falling back to a single cluster: {e}")
            result.warnings.append(StructuralRepairWarning(
                kind="collaborator_failure",
                detail=f"Cluster proposal unavailable: {e}"
            ))
            proposal = []

        logger.info(f"Collaborator proposed {len(proposal)} clusters for {len(topics)} topics")

        result.clusters = repair_proposal(proposal, len(topics), result.warnings)

        if not (min_clusters <= len(result.clusters) <= max_clusters):
            result.warnings.append(StructuralRepairWarning(
                kind="cluster_count_out_of_range",
                detail=(
                    f"{len(result.clusters)} clusters outside requested range "
                    f"{min_clusters}-{max_clusters}"
                )
            ))

        if result.repaired:
            logger.warning(
                f"Cluster proposal needed {len(result.warnings)} repairs: "
                f"{', '.join(w.kind for w in result.warnings)}"
            )

        logger.info(f"Clustering complete: {len(result.clusters)} clusters")
        return result


def clusters_to_modules(
    result: ClusteringResult,
    topics: Optional[Sequence[Topic]] = None
) -> List[dict]:
    """Convert validated clusters into ordered curriculum module dicts."""
    topics = topics if topics is not None else result.topics
    modules = []
    for order, cluster in enumerate(result.clusters):
        modules.append({
            "id": cluster.cluster_id,
            "title": cluster.name,
            "level": cluster.level,
            "order": order,
            "topics": [
                {
                    "id": topics[i].topic_id,
                    "title": topics[i].text,
                    "order": position,
                    "source_type": topics[i].source_type
                }
                for position, i in enumerate(cluster.topic_indices)
            ]
        })
    return modules


# Design Rationale and Trade-offs:
#
# 1. Why repair the proposal instead of retrying the collaborator?
#    - Retries cost a full long prompt and may fail the same way
#    - Deterministic repair always yields an exact partition
#    - Trade-off: Repaired clusters can be less coherent than a clean answer
#
# 2. Why send indices instead of topic ids?
#    - Short integers keep the prompt small for hundreds of topics
#    - Trade-off: Indices only make sense against the exact topic order sent
#
# 3. Why fall back to a single Miscellaneous cluster on failure?
#    - Clustering is optional; it must never fail the run
#    - Trade-off: The fallback is a valid partition but carries no structure
#
# 4. Why keep a duplicated index in the first cluster?
#    - The proposal is ordered basic to advanced, so first claim is earliest
#      placement
#    - Trade-off: A topic may land earlier than the collaborator intended
