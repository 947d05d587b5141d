"""
Embedding Registry - caller-owned store of previously computed vectors.

The engine keeps no cache of its own. A caller that wants to reuse embeddings
across runs loads a registry, passes it into reconcile(), and saves it.
"""

import json
import os
import shutil
import logging
import threading
from typing import Dict, List, Optional
from datetime import datetime, timezone

logger = logging.getLogger(__name__)


class EmbeddingRegistry:
    """
    Persistent text -> vector map for one embedding model.

    Safe to share between the two concurrent embedding tasks of one run.
    """

    def __init__(self, registry_path: str, model: str, dimensions: Optional[int] = None):
        """
        Initialize registry from disk or create new empty registry.

        Args:
            registry_path: Path to the registry JSON file
            model: Embedding model the vectors belong to
            dimensions: Expected vector length
        """
        self.registry_path = registry_path
        self.model = model
        self.dimensions = dimensions
        self.entries: Dict[str, List[float]] = {}
        self.version = "1.0.0"
        self.last_updated = _utc_now()
        self._lock = threading.Lock()

        # Load existing registry if it exists
        if os.path.exists(registry_path):
            self._load()
        else:
            logger.info(f"No existing embedding registry at {registry_path}, starting empty")

    def _load(self) -> None:
        """Load registry from disk."""
        try:
            with open(self.registry_path, 'r') as f:
                data = json.load(f)

            stored_model = data.get("model")
            if stored_model != self.model:
                logger.warning(
                    f"Registry model {stored_model!r} differs from {self.model!r}, ignoring stored vectors"
                )
                self.entries = {}
                return

            self.version = data.get("version", "1.0.0")
            self.dimensions = data.get("dimensions", self.dimensions)
            self.last_updated = data.get("last_updated", _utc_now())
            self.entries = {
                text: list(vector)
                for text, vector in data.get("entries", {}).items()
            }

            logger.info(f"Loaded {len(self.entries)} embeddings from registry")

        except (json.JSONDecodeError, OSError, AttributeError, TypeError) as e:
            logger.error(f"Failed to load embedding registry: {e}")
            self._try_restore_from_backup()

    def _try_restore_from_backup(self) -> None:
        """Attempt to restore from backup file if main registry is corrupted."""
        backup_path = f"{self.registry_path}.backup"
        if not os.path.exists(backup_path):
            logger.warning("No backup file found. Starting with empty registry.")
            self.entries = {}
            return

        logger.warning(f"Attempting to restore from backup: {backup_path}")
        try:
            with open(backup_path, 'r') as f:
                data = json.load(f)
            if data.get("model") != self.model:
                raise ValueError(f"Backup belongs to model {data.get('model')!r}")
            self.entries = {
                text: list(vector)
                for text, vector in data.get("entries", {}).items()
            }
            shutil.copy(backup_path, self.registry_path)
            logger.info("Successfully restored from backup")
        except (json.JSONDecodeError, OSError, AttributeError, TypeError, ValueError) as e:
            logger.error(f"Backup restoration failed: {e}. Starting with empty registry.")
            self.entries = {}

    def compatible_with(self, model: str, dimensions: Optional[int]) -> bool:
        """True when stored vectors can be reused for this model."""
        if model != self.model:
            return False
        return dimensions is None or self.dimensions is None or dimensions == self.dimensions

    def get(self, text: str) -> Optional[List[float]]:
        with self._lock:
            vector = self.entries.get(text)
        return list(vector) if vector is not None else None

    def put(self, text: str, vector: List[float]) -> None:
        """Store a vector. Vectors of the wrong length are refused."""
        if self.dimensions is not None and len(vector) != self.dimensions:
            raise ValueError(
                f"Invalid embedding (expected {self.dimensions} dimensions, got {len(vector)})"
            )
        with self._lock:
            self.entries[text] = list(vector)

    def __len__(self) -> int:
        return len(self.entries)

    def save(self) -> None:
        """
        Persist registry to disk with atomic write pattern.
        Creates backup before write.
        """
        self.last_updated = _utc_now()

        # Create backup if registry file exists
        if os.path.exists(self.registry_path):
            backup_path = f"{self.registry_path}.backup"
            shutil.copy(self.registry_path, backup_path)
            logger.debug(f"Created backup: {backup_path}")

        with self._lock:
            data = {
                "version": self.version,
                "model": self.model,
                "dimensions": self.dimensions,
                "last_updated": self.last_updated,
                "entries": dict(self.entries)
            }

        # Atomic write: write to temp file, then rename
        temp_path = f"{self.registry_path}.tmp"
        try:
            with open(temp_path, 'w') as f:
                json.dump(data, f)

            os.replace(temp_path, self.registry_path)
            logger.info(f"Embedding registry saved: {len(data['entries'])} vectors")

        except OSError as e:
            logger.error(f"Failed to save embedding registry: {e}")
            if os.path.exists(temp_path):
                os.remove(temp_path)
            raise


def _utc_now() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


# Design Rationale and Trade-offs:
#
# 1. Why key vectors by embedding text?
#    - Topic ids are fresh per run; the text is what was embedded
#    - Trade-off: Any text change, even whitespace inside a description,
#      misses the cache
#
# 2. Why record model and dimensions in the file?
#    - Vectors from different models are not comparable
#    - An incompatible registry is ignored, never mixed in
#    - Trade-off: Switching models starts from an empty cache
#
# 3. Why atomic write pattern (temp file + os.replace) with one backup?
#    - A crash during save leaves the previous file intact
#    - Trade-off: Only one backup level
