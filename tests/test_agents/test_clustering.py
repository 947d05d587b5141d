"""
Unit tests for Topic Clusterer.

The collaborator is stubbed with hand-written proposals, including broken ones,
to check that the repair pass always yields an exact partition.
"""

import json

import pytest
from topic_reconciler.agents.clustering import (
    MISCELLANEOUS_CLUSTER_NAME,
    TopicClusterer,
    clusters_to_modules,
    parse_proposal,
    repair_proposal,
    ProposedCluster,
)
from topic_reconciler.errors import CollaboratorError
from topic_reconciler.models.topic import Topic


class StubClusterClient:
    def __init__(self, clusters=None, error=None, raw=None):
        self.clusters = clusters
        self.error = error
        self.raw = raw
        self.prompts = []

    def complete(self, prompt):
        self.prompts.append(prompt)
        if self.error:
            raise self.error
        if self.raw is not None:
            return self.raw
        return json.dumps({"clusters": self.clusters})


def _topics(n):
    return [Topic.create(f"Topic {i:02d}", source_type="web") for i in range(n)]


def _assert_partition(result, n):
    assigned = result.assigned_indices()
    assert sorted(assigned) == list(range(n))
    assert len(assigned) == len(set(assigned))


def test_incomplete_proposal_is_completed():
    """Test 45 topics where the proposal only covers 40 indices."""
    topics = _topics(45)
    proposal = [
        {"name": f"Module {k}", "level": "beginner", "topics": list(range(k * 10, k * 10 + 10))}
        for k in range(4)
    ]
    clusterer = TopicClusterer(StubClusterClient(proposal), min_clusters=2, max_clusters=10)

    result = clusterer.cluster(topics)

    _assert_partition(result, 45)
    assert result.clusters[-1].topic_indices[-5:] == [40, 41, 42, 43, 44]
    assert [w.kind for w in result.warnings] == ["missing_index"]
    assert result.warnings[0].indices == [40, 41, 42, 43, 44]


def test_overlapping_proposal_keeps_first_claim():
    """Test that an index claimed twice stays in the first cluster only."""
    proposal = [
        {"name": "Basics", "level": "beginner", "topics": [0, 1, 2]},
        {"name": "Advanced", "level": "advanced", "topics": [2, 3]},
    ]
    clusterer = TopicClusterer(StubClusterClient(proposal), min_clusters=1, max_clusters=5)

    result = clusterer.cluster(_topics(4))

    _assert_partition(result, 4)
    assert result.clusters[0].topic_indices == [0, 1, 2]
    assert result.clusters[1].topic_indices == [3]
    assert [w.kind for w in result.warnings] == ["duplicate_index"]
    assert result.warnings[0].indices == [2]


def test_cluster_emptied_by_repair_is_discarded():
    """Test that a cluster with only duplicate indices disappears."""
    proposal = [
        {"name": "Basics", "level": "beginner", "topics": [0, 1]},
        {"name": "Echo", "level": "intermediate", "topics": [1]},
        {"name": "Advanced", "level": "advanced", "topics": [2]},
    ]
    clusterer = TopicClusterer(StubClusterClient(proposal), min_clusters=1, max_clusters=5)

    result = clusterer.cluster(_topics(3))

    _assert_partition(result, 3)
    assert [c.name for c in result.clusters] == ["Basics", "Advanced"]
    assert [c.cluster_id for c in result.clusters] == ["cluster-1", "cluster-2"]
    assert {w.kind for w in result.warnings} == {"duplicate_index", "empty_cluster"}


def test_invalid_indices_dropped():
    """Test that out-of-range and non-integer indices are discarded."""
    proposal = [
        {"name": "Everything", "level": "beginner", "topics": [0, 99, "x", -1, True, "1", 2.0]},
    ]
    clusterer = TopicClusterer(StubClusterClient(proposal), min_clusters=1, max_clusters=5)

    result = clusterer.cluster(_topics(3))

    _assert_partition(result, 3)
    assert result.clusters[0].topic_indices == [0, 1, 2]
    invalid = [w for w in result.warnings if w.kind == "invalid_index"]
    assert invalid and invalid[0].indices == [99, -1]


def test_collaborator_failure_falls_back_to_miscellaneous():
    """Test that a failed proposal yields one cluster holding every topic."""
    clusterer = TopicClusterer(StubClusterClient(error=CollaboratorError("timeout")))

    result = clusterer.cluster(_topics(35))

    _assert_partition(result, 35)
    assert len(result.clusters) == 1
    assert result.clusters[0].name == MISCELLANEOUS_CLUSTER_NAME
    kinds = [w.kind for w in result.warnings]
    assert "collaborator_failure" in kinds
    assert "missing_index" in kinds
    assert "cluster_count_out_of_range" in kinds


def test_non_json_proposal_falls_back():
    """Test that an unparseable proposal is treated like a failure."""
    clusterer = TopicClusterer(StubClusterClient(raw="Here are your clusters!"), min_clusters=1)

    result = clusterer.cluster(_topics(5))

    _assert_partition(result, 5)
    assert result.warnings[0].kind == "collaborator_failure"


def test_unnamed_clusters_and_unknown_levels():
    """Test positional names and level inference."""
    proposal = [
        {"name": "", "level": "expert", "topics": [0]},
        {"name": "Middle", "topics": [1]},
        {"name": "End", "level": "ADVANCED", "topics": [2]},
    ]
    clusterer = TopicClusterer(StubClusterClient(proposal), min_clusters=1, max_clusters=5)

    result = clusterer.cluster(_topics(3))

    assert [c.name for c in result.clusters] == ["Module 1", "Middle", "End"]
    assert [c.level for c in result.clusters] == ["beginner", "intermediate", "advanced"]
    assert [w.kind for w in result.warnings] == ["unnamed_cluster"]


def test_clean_proposal_has_no_warnings():
    """Test that a valid proposal passes through unchanged and in order."""
    proposal = [
        {"name": "Advanced first", "level": "advanced", "topics": [2, 3]},
        {"name": "Basics second", "level": "beginner", "topics": [0, 1]},
    ]
    clusterer = TopicClusterer(StubClusterClient(proposal), min_clusters=2, max_clusters=4)

    result = clusterer.cluster(_topics(4))

    assert not result.repaired
    assert [c.name for c in result.clusters] == ["Advanced first", "Basics second"]
    assert [c.topic_indices for c in result.clusters] == [[2, 3], [0, 1]]


def test_cluster_count_out_of_range_warning():
    """Test that too few clusters is recorded but not repaired."""
    proposal = [{"name": "Only", "level": "beginner", "topics": [0, 1, 2]}]
    clusterer = TopicClusterer(StubClusterClient(proposal), min_clusters=12, max_clusters=20)

    result = clusterer.cluster(_topics(3))

    assert len(result.clusters) == 1
    assert [w.kind for w in result.warnings] == ["cluster_count_out_of_range"]


def test_prompt_uses_indices_and_truncated_text():
    """Test the prompt lists every index with text cut to the limit."""
    client = StubClusterClient([{"name": "All", "topics": [0, 1]}])
    clusterer = TopicClusterer(client, min_clusters=1, max_clusters=3, topic_text_limit=10)
    topics = [Topic.create("Short one"), Topic.create("A much longer topic title")]

    clusterer.cluster(topics)

    prompt = client.prompts[0]
    assert "0: Short one" in prompt
    assert "1: A much lon\n" in prompt or prompt.endswith("1: A much lon")
    assert "1-3" in prompt
    assert "for a course.\n" in prompt


def test_prompt_names_course_subject():
    """Test that an optional subject reaches the prompt."""
    client = StubClusterClient([{"name": "All", "topics": [0, 1]}])
    clusterer = TopicClusterer(client, min_clusters=1, max_clusters=3)

    result = clusterer.cluster(_topics(2), subject="Linear Algebra")

    assert "thematic clusters for a course on Linear Algebra." in client.prompts[0]
    _assert_partition(result, 2)


def test_empty_topics_skip_collaborator():
    """Test that nothing is sent for an empty list."""
    client = StubClusterClient([])
    result = TopicClusterer(client).cluster([])

    assert result.clusters == []
    assert client.prompts == []


def test_parse_proposal_accepts_indices_key():
    """Test that "indices" works as an alias of "topics"."""
    proposal = parse_proposal('{"clusters": [{"name": "A", "indices": [0, 1]}, "junk"]}')
    assert proposal == [ProposedCluster(name="A", level=None, indices=[0, 1])]


def test_parse_proposal_rejects_missing_clusters():
    with pytest.raises(ValueError):
        parse_proposal('{"modules": []}')


@pytest.mark.parametrize("n", [1, 2, 7, 31, 60])
def test_repair_always_partitions(n):
    """Test the partition property for assorted broken proposals."""
    proposal = [
        ProposedCluster("Evens", "beginner", list(range(0, n, 2)) + [n + 3]),
        ProposedCluster("Overlap", "intermediate", list(range(0, n, 3))),
        ProposedCluster("Empty", "advanced", []),
    ]
    warnings = []

    clusters = repair_proposal(proposal, n, warnings)

    assigned = [i for c in clusters for i in c.topic_indices]
    assert sorted(assigned) == list(range(n))
    assert all(c.topic_indices for c in clusters)
    assert warnings


def test_clusters_to_modules():
    """Test conversion to ordered module dicts."""
    topics = _topics(3)
    proposal = [
        {"name": "First", "level": "beginner", "topics": [1]},
        {"name": "Second", "level": "advanced", "topics": [2, 0]},
    ]
    result = TopicClusterer(StubClusterClient(proposal), min_clusters=1).cluster(topics)

    modules = clusters_to_modules(result)

    assert [m["title"] for m in modules] == ["First", "Second"]
    assert [m["order"] for m in modules] == [0, 1]
    assert [t["title"] for t in modules[1]["topics"]] == ["Topic 02", "Topic 00"]
    assert modules[1]["topics"][0]["id"] == topics[2].topic_id
