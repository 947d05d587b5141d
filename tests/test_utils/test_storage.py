"""
Unit tests for report storage (JSON + CSV export).
"""

import os
import tempfile

import pandas as pd
from topic_reconciler.models.match import MatchRecord, NewTopicSuggestion, ReconciliationReport
from topic_reconciler.models.topic import ChunkExcerpt, Topic
from topic_reconciler.utils.storage import MATCH_COLUMNS, ReportStorage


def _sample_report():
    unmatched = Topic.create("Termodinâmica Avançada")
    matches = [
        MatchRecord(
            source_topic_id=unmatched.topic_id,
            match_type="none",
            similarity_score=0.12,
            source_text="Termodinâmica Avançada"
        ),
        MatchRecord(
            source_topic_id="course-1",
            target_topic_id="doc-1",
            match_type="strong",
            similarity_score=0.82,
            source_text="Limites",
            target_text="Limites e Continuidade",
            evidence=[ChunkExcerpt("chunk-7", "O limite de f(x)...", 0.91)]
        ),
        MatchRecord(
            source_topic_id="course-2",
            target_topic_id="doc-2",
            match_type="weak",
            similarity_score=0.65,
            source_text="Derivadas Parciais",
            target_text="Cálculo Diferencial",
            gaps=["Gradient vectors", "Chain rule"]
        ),
    ]
    return ReconciliationReport(
        matches=matches,
        new_topic_suggestions=[NewTopicSuggestion("doc-3", "Álgebra Básica", chunk_ids=["chunk-2"])],
        unmatched_course_topics=[unmatched],
        metadata={"run_id": "run-1"}
    )


def test_save_and_load_report():
    """Test JSON round trip keeps non-ASCII text readable."""
    with tempfile.TemporaryDirectory() as tmpdir:
        storage = ReportStorage(os.path.join(tmpdir, "reports"))

        path = storage.save_report(_sample_report(), "run1")

        assert path.endswith("run1.json")
        with open(path, encoding="utf-8") as f:
            assert "Álgebra Básica" in f.read()

        loaded = storage.load_report("run1")
        assert len(loaded["matches"]) == 3
        assert loaded["new_topic_suggestions"][0]["title"] == "Álgebra Básica"
        assert loaded["unmatched_course_topics"][0]["text"] == "Termodinâmica Avançada"
        assert loaded["clusters"] is None
        assert loaded["metadata"]["run_id"] == "run-1"


def test_load_missing_report():
    with tempfile.TemporaryDirectory() as tmpdir:
        assert ReportStorage(tmpdir).load_report("nope") is None


def test_match_table_csv():
    """Test CSV export sorted by similarity, strongest first."""
    with tempfile.TemporaryDirectory() as tmpdir:
        storage = ReportStorage(tmpdir)
        storage.save_report(_sample_report(), "run1")

        df = pd.read_csv(os.path.join(tmpdir, "run1_matches.csv"))

        assert list(df.columns) == MATCH_COLUMNS
        assert list(df["Match Type"]) == ["strong", "weak", "none"]
        assert df.iloc[0]["Evidence Chunks"] == "chunk-7"
        assert df.iloc[1]["Gaps"] == "Gradient vectors | Chain rule"


def test_matches_frame_empty_report():
    report = ReconciliationReport(matches=[], new_topic_suggestions=[], unmatched_course_topics=[])

    df = ReportStorage.matches_frame(report)

    assert df.empty
    assert list(df.columns) == MATCH_COLUMNS
