"""
Configuration settings for the topic reconciliation engine.

Centralized defaults for every threshold and limit. Each value can be
overridden through an environment variable of the same name. The engine itself
never reads this module; ReconciliationConfig.from_settings() snapshots it.
"""

import os
from pathlib import Path

# Project paths
PROJECT_ROOT = Path(__file__).parent.parent
OUTPUT_ROOT = Path(os.getenv("OUTPUT_ROOT", str(PROJECT_ROOT / "output")))

# API Configuration
GOOGLE_API_KEY = os.getenv("GOOGLE_API_KEY", "")

# LLM Models
GAP_ANALYSIS_MODEL = os.getenv("GAP_ANALYSIS_MODEL", "gemini-1.5-flash")
CLUSTERING_MODEL = os.getenv("CLUSTERING_MODEL", "gemini-1.5-flash")

# Embedding Configuration
EMBEDDING_MODEL = os.getenv("EMBEDDING_MODEL", "models/text-embedding-004")
EMBEDDING_DIMENSIONS = int(os.getenv("EMBEDDING_DIMENSIONS", "768"))

# Temperature settings (0.0 for deterministic)
LLM_TEMPERATURE = float(os.getenv("LLM_TEMPERATURE", "0.0"))

# Text normalization
MIN_TOPIC_LENGTH = int(os.getenv("MIN_TOPIC_LENGTH", "5"))
MAX_TOPIC_LENGTH = int(os.getenv("MAX_TOPIC_LENGTH", "200"))

# Deduplication
DUPLICATE_SIMILARITY_THRESHOLD = float(os.getenv("DUPLICATE_SIMILARITY_THRESHOLD", "0.8"))

# Matching thresholds
STRONG_MATCH_THRESHOLD = float(os.getenv("STRONG_MATCH_THRESHOLD", "0.75"))
WEAK_MATCH_THRESHOLD = float(os.getenv("WEAK_MATCH_THRESHOLD", "0.60"))
MAX_EVIDENCE_EXCERPTS = int(os.getenv("MAX_EVIDENCE_EXCERPTS", "5"))

# Embedding batching (cooperative pacing, not a rate limiter)
EMBEDDING_BATCH_SIZE = int(os.getenv("EMBEDDING_BATCH_SIZE", "10"))
EMBEDDING_BATCH_DELAY_SECONDS = float(os.getenv("EMBEDDING_BATCH_DELAY_SECONDS", "0.5"))
EMBEDDING_MAX_RETRIES = int(os.getenv("EMBEDDING_MAX_RETRIES", "1"))

# Gap analysis
MAX_GAPS = int(os.getenv("MAX_GAPS", "3"))
GAP_ANALYSIS_WORKERS = int(os.getenv("GAP_ANALYSIS_WORKERS", "4"))

# Clustering
MIN_TOPICS_FOR_CLUSTERING = int(os.getenv("MIN_TOPICS_FOR_CLUSTERING", "30"))
TARGET_MODULES_MIN = int(os.getenv("TARGET_MODULES_MIN", "12"))
TARGET_MODULES_MAX = int(os.getenv("TARGET_MODULES_MAX", "20"))
CLUSTER_TOPIC_TEXT_LIMIT = int(os.getenv("CLUSTER_TOPIC_TEXT_LIMIT", "100"))

# Logging
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")  # DEBUG, INFO, WARNING, ERROR
LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
LOG_FILE = os.getenv("LOG_FILE", "topic_reconciler.log")


# Design Rationale and Trade-offs:
#
# 1. Why module constants instead of a config file?
#    - Environment overrides cover deployment needs
#    - ReconciliationConfig snapshots them, so the engine stays testable
#      without touching os.environ
#    - Trade-off: Values are read once at import time
#
# 2. Why fixed 0.75 / 0.60 match thresholds instead of auto-tuning?
#    - Fixed tiers keep reports comparable across runs
#    - Trade-off: Another embedding model may need different values
#
# 3. Why a separate clustering model setting?
#    - Clustering prompts are much longer than gap prompts
#    - Trade-off: One more knob, defaulting to the same model
