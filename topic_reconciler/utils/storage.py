"""
Storage utility.

Writes reconciliation reports to disk: the full report as JSON and the match
table as CSV.
"""

import json
import os
import logging
from typing import Optional
import pandas as pd

from topic_reconciler.models.match import ReconciliationReport

logger = logging.getLogger(__name__)

MATCH_COLUMNS = [
    "Course Topic",
    "Document Topic",
    "Match Type",
    "Similarity",
    "Gaps",
    "Evidence Chunks",
]


class ReportStorage:
    """
    Persists reports under one output directory.

    Handles:
    - Full report (output/<name>.json)
    - Match table (output/<name>_matches.csv)
    """

    def __init__(self, output_dir: str):
        """
        Initialize report storage.

        Args:
            output_dir: Directory reports are written to
        """
        self.output_dir = output_dir
        os.makedirs(self.output_dir, exist_ok=True)

        logger.info(f"Initialized ReportStorage with output_dir={output_dir}")

    def save_report(self, report: ReconciliationReport, name: str) -> str:
        """
        Save a report as JSON plus a CSV match table.

        Args:
            report: Completed reconciliation report
            name: Base file name (without extension)

        Returns:
            Path to the JSON report
        """
        json_path = os.path.join(self.output_dir, f"{name}.json")
        csv_path = os.path.join(self.output_dir, f"{name}_matches.csv")

        try:
            with open(json_path, 'w', encoding='utf-8') as f:
                json.dump(report.to_dict(), f, indent=2, ensure_ascii=False)
            logger.info(f"Saved report to {json_path}")
        except OSError as e:
            logger.error(f"Failed to save report {name}: {e}")
            raise

        df = self.matches_frame(report)
        df.to_csv(csv_path, index=False)
        logger.info(f"Saved match table to {csv_path} ({len(df)} rows)")

        return json_path

    def load_report(self, name: str) -> Optional[dict]:
        """
        Load a saved report as a plain dict.

        Returns:
            Report dict, or None if the file doesn't exist
        """
        json_path = os.path.join(self.output_dir, f"{name}.json")

        if not os.path.exists(json_path):
            logger.warning(f"No report found at {json_path}")
            return None

        with open(json_path, 'r', encoding='utf-8') as f:
            return json.load(f)

    @staticmethod
    def matches_frame(report: ReconciliationReport) -> pd.DataFrame:
        """One row per match, strongest first."""
        rows = [
            {
                "Course Topic": m.source_text,
                "Document Topic": m.target_text or "",
                "Match Type": m.match_type,
                "Similarity": round(m.similarity_score, 4),
                "Gaps": " | ".join(m.gaps),
                "Evidence Chunks": ", ".join(e.chunk_id for e in m.evidence),
            }
            for m in report.matches
        ]

        df = pd.DataFrame(rows, columns=MATCH_COLUMNS)
        if not df.empty:
            df = df.sort_values("Similarity", ascending=False, kind="stable")
        return df


# Design Rationale and Trade-offs:
#
# 1. Why JSON plus CSV?
#    - JSON keeps the full nested report
#    - The CSV match table opens directly in a spreadsheet
#    - Trade-off: Two files per run
#
# 2. Why pandas for the CSV?
#    - Sorting and quoting of free-text gap lists come for free
#    - Trade-off: A heavy import for one table
#
# 3. Why return None on a missing report?
#    - Callers decide whether a missing run is an error
#    - Trade-off: Callers must check for None
