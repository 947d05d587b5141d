"""
Cluster data model.

A cluster is a named group of topics intended to become one curriculum module.
"""

from dataclasses import dataclass, field
from typing import List

from topic_reconciler.errors import StructuralRepairWarning
from topic_reconciler.models.topic import Topic

CLUSTER_LEVELS = ("beginner", "intermediate", "advanced")


@dataclass
class Cluster:
    cluster_id: str
    name: str
    level: str  # "beginner", "intermediate", or "advanced"
    topic_indices: List[int] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "cluster_id": self.cluster_id,
            "name": self.name,
            "level": self.level,
            "topic_indices": list(self.topic_indices)
        }


@dataclass
class ClusteringResult:
    """
    Validated clusters plus every repair applied to the raw proposal.
    Cluster indices refer to positions in topics.
    """
    clusters: List[Cluster] = field(default_factory=list)
    warnings: List[StructuralRepairWarning] = field(default_factory=list)
    topics: List[Topic] = field(default_factory=list)

    @property
    def repaired(self) -> bool:
        return bool(self.warnings)

    def assigned_indices(self) -> List[int]:
        """All indices across clusters, in cluster order."""
        return [i for c in self.clusters for i in c.topic_indices]


# Design Rationale and Trade-offs:
#
# 1. Why store topic indices instead of Topic objects?
#    - Indices mirror what the collaborator returns and serialize small
#    - ClusteringResult keeps the topic list they refer to
#    - Trade-off: A cluster alone cannot be read without that list
