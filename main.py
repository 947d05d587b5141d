"""
Topic Reconciler - course/document topic alignment

CLI entry point for running the reconciliation pipeline.
"""

import argparse
import json
import logging
import os
import sys
import threading
from datetime import datetime
from typing import Optional

from topic_reconciler.errors import ReconciliationError
from topic_reconciler.orchestrator import ReconciliationOrchestrator
from topic_reconciler.registry.embedding_registry import EmbeddingRegistry
from topic_reconciler.utils.storage import ReportStorage
import config.settings as settings


def setup_logging(log_level: str = "INFO"):
    """Configure logging for the entire application."""
    logging.basicConfig(
        level=getattr(logging, log_level.upper()),
        format=settings.LOG_FORMAT,
        handlers=[
            logging.StreamHandler(sys.stdout),
            logging.FileHandler(settings.LOG_FILE)
        ]
    )


def load_topics(path: str) -> list:
    """Read a topic list: a JSON array, or an object with a "topics" array."""
    with open(path, 'r', encoding='utf-8') as f:
        data = json.load(f)
    if isinstance(data, dict):
        data = data.get("topics", [])
    return data


def run_with_timeout(func, timeout: Optional[float], *args, **kwargs):
    """
    Call func on a daemon thread and wait at most timeout seconds.

    Raises:
        TimeoutError: If func is still running when the timeout expires
        Exception: Whatever func raised
    """
    outcome = {}

    def target():
        try:
            outcome["result"] = func(*args, **kwargs)
        except Exception as e:
            outcome["error"] = e

    worker = threading.Thread(target=target, name="reconcile", daemon=True)
    worker.start()
    worker.join(timeout)

    if worker.is_alive():
        raise TimeoutError(f"Still running after {timeout}s")
    if "error" in outcome:
        raise outcome["error"]
    return outcome["result"]


def _abort(code: int):
    """Exit now, without joining collaborator worker threads still in flight."""
    logging.shutdown()
    os._exit(code)


def main():
    """Main CLI entry point."""
    parser = argparse.ArgumentParser(
        description="Topic Reconciler - align course topics with supporting material",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Match planned course topics against topics extracted from documents
  python main.py --course course_topics.json --documents document_topics.json

  # Also cluster a large course topic list into modules
  python main.py --course course_topics.json --documents document_topics.json --clusters

  # Reuse embeddings across runs and give up after two minutes
  python main.py --course c.json --documents d.json \\
                 --registry-path data/embeddings.json --timeout 120

Note: Set GOOGLE_API_KEY environment variable before running.
        """
    )

    # Required arguments
    parser.add_argument(
        "--course",
        required=True,
        help="JSON file with the course topic list"
    )

    parser.add_argument(
        "--documents",
        required=True,
        help="JSON file with the topics found in supporting documents"
    )

    # Optional arguments
    parser.add_argument(
        "--output-dir",
        default=str(settings.OUTPUT_ROOT),
        help=f"Report directory (default: {settings.OUTPUT_ROOT})"
    )

    parser.add_argument(
        "--output-name",
        help="Report base name (default: reconciliation_<timestamp>)"
    )

    parser.add_argument(
        "--clusters",
        action="store_true",
        help=f"Cluster course topics when there are more than {settings.MIN_TOPICS_FOR_CLUSTERING}"
    )

    parser.add_argument(
        "--subject",
        help="Course subject named in the clustering prompt"
    )

    parser.add_argument(
        "--registry-path",
        help="Embedding registry JSON to reuse and update across runs"
    )

    parser.add_argument(
        "--timeout",
        type=float,
        help="Abort the whole run after this many seconds (no partial report)"
    )

    parser.add_argument(
        "--log-level",
        default=settings.LOG_LEVEL,
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help=f"Logging level (default: {settings.LOG_LEVEL})"
    )

    args = parser.parse_args()

    # Setup logging
    setup_logging(args.log_level)
    logger = logging.getLogger(__name__)

    # Validate API key
    if not settings.GOOGLE_API_KEY:
        logger.error(
            "GOOGLE_API_KEY environment variable not set. "
            "Please set it before running the reconciler."
        )
        sys.exit(1)

    output_name = args.output_name or f"reconciliation_{datetime.now().strftime('%Y%m%d_%H%M%S')}"

    try:
        course_topics = load_topics(args.course)
        document_topics = load_topics(args.documents)
    except (OSError, json.JSONDecodeError) as e:
        logger.error(f"Could not read topic files: {e}")
        sys.exit(1)

    registry = None
    if args.registry_path:
        registry = EmbeddingRegistry(
            args.registry_path,
            model=settings.EMBEDDING_MODEL,
            dimensions=settings.EMBEDDING_DIMENSIONS
        )

    logger.info("Initializing reconciliation pipeline...")
    orchestrator = ReconciliationOrchestrator.from_settings(api_key=settings.GOOGLE_API_KEY)

    try:
        report = run_with_timeout(
            orchestrator.reconcile,
            args.timeout,
            course_topics,
            document_topics,
            include_clusters=args.clusters,
            embedding_registry=registry,
            subject=args.subject
        )

    except TimeoutError:
        logger.error(f"Reconciliation timed out after {args.timeout}s; result discarded")
        _abort(1)

    except ReconciliationError as e:
        logger.error(f"Reconciliation failed at stage '{e.stage}': {e.message}")
        sys.exit(1)

    except KeyboardInterrupt:
        logger.warning("Reconciliation interrupted by user")
        _abort(1)

    storage = ReportStorage(args.output_dir)
    report_path = storage.save_report(report, output_name)

    if registry is not None:
        registry.save()

    stats = report.metadata.get("stats", {})
    logger.info(
        f"Reconciliation complete: {stats.get('strong_matches', 0)} strong, "
        f"{stats.get('weak_matches', 0)} weak, {stats.get('no_matches', 0)} none, "
        f"{len(report.new_topic_suggestions)} new topic suggestions"
    )
    logger.info(f"Report: {report_path}")
    sys.exit(0)


if __name__ == "__main__":
    main()


# Design Rationale and Trade-offs:
#
# 1. Why a daemon thread plus os._exit for --timeout?
#    - Collaborator calls cannot be cancelled once sent
#    - Executor workers inside the pipeline are joined at interpreter exit, so
#      sys.exit alone would wait for the stuck run
#    - Trade-off: In-flight work is dropped without cleanup; the registry is
#      only saved on success, so nothing half-written reaches disk
#
# 2. Why validate the API key before reading topic files?
#    - Fail fast with one clear message
#    - Trade-off: --help still works, but a dry run needs a key
#
# 3. Why save the registry after the report?
#    - A failed or timed-out run leaves the previous registry untouched
#    - Trade-off: Vectors fetched by a failed run are paid for again next time
