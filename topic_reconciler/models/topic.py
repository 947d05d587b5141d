"""
Topic data model.

A topic is a short free-text phrase naming a learning subject, harvested from
web search, extracted from a document, or drafted by a generative model.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple
import uuid

from topic_reconciler.errors import ValidationError

SOURCE_TYPES = ("web", "document", "generated")


@dataclass(frozen=True)
class ChunkExcerpt:
    """
    A document chunk a topic was extracted from.
    The relevance score is computed upstream and passed through untouched.
    """
    chunk_id: str
    excerpt: str
    relevance_score: float = 0.0

    @classmethod
    def from_dict(cls, data: dict) -> "ChunkExcerpt":
        """Create ChunkExcerpt from JSON dict (accepts camelCase keys from upstream)."""
        return cls(
            chunk_id=str(data.get("chunk_id", data.get("chunkId", ""))),
            excerpt=str(data.get("excerpt", "")),
            relevance_score=float(data.get("relevance_score", data.get("relevanceScore", 0.0)))
        )

    def to_dict(self) -> dict:
        return {
            "chunk_id": self.chunk_id,
            "excerpt": self.excerpt,
            "relevance_score": self.relevance_score
        }


@dataclass(frozen=True)
class Topic:
    """
    An immutable topic created from a raw string at pipeline entry.
    """
    topic_id: str
    text: str
    source_type: str  # "web", "document", or "generated"
    description: str = ""
    chunks: Tuple[ChunkExcerpt, ...] = ()
    learning_objectives: Tuple[str, ...] = ()
    metadata: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        if self.source_type not in SOURCE_TYPES:
            raise ValueError(
                f"Invalid source_type: {self.source_type}. "
                f"Must be one of {', '.join(SOURCE_TYPES)}"
            )

    @property
    def embedding_text(self) -> str:
        """Text sent to the embedding collaborator: title, description, objectives."""
        parts = [self.text]
        if self.description:
            parts.append(self.description)
        if self.learning_objectives:
            parts.append(", ".join(self.learning_objectives))
        return "\n".join(parts)

    def with_text(self, text: str) -> "Topic":
        """Return a copy carrying cleaned text, keeping identity and attribution."""
        return Topic(
            topic_id=self.topic_id,
            text=text,
            source_type=self.source_type,
            description=self.description,
            chunks=self.chunks,
            learning_objectives=self.learning_objectives,
            metadata=self.metadata
        )

    @classmethod
    def create(
        cls,
        text: str,
        source_type: str = "generated",
        description: str = "",
        chunks: Optional[List[ChunkExcerpt]] = None,
        metadata: Optional[Dict[str, Any]] = None,
        learning_objectives: Optional[List[str]] = None
    ) -> "Topic":
        """Create a topic with a fresh ID."""
        return cls(
            topic_id=str(uuid.uuid4()),
            text=text,
            source_type=source_type,
            description=description,
            chunks=tuple(chunks or ()),
            learning_objectives=tuple(learning_objectives or ()),
            metadata=dict(metadata or {})
        )

    @classmethod
    def from_raw(cls, item: Any, default_source_type: str) -> "Topic":
        """
        Build a topic from a caller-supplied item.

        Args:
            item: Plain string, or mapping with "text" and optional
                "source_type", "description", "chunks",
                "learning_objectives", "metadata"
            default_source_type: Source type used when the item carries none

        Returns:
            New Topic (text is not yet normalized)

        Raises:
            ValidationError: If the item is neither a string nor a valid mapping
        """
        if isinstance(item, Topic):
            return item

        if isinstance(item, str):
            return cls.create(item, source_type=default_source_type)

        if isinstance(item, dict):
            text = item.get("text", item.get("title"))
            if not isinstance(text, str):
                raise ValidationError(f"Topic item has no text: {item!r}")

            source_type = item.get("source_type", item.get("sourceType", default_source_type))
            if source_type not in SOURCE_TYPES:
                raise ValidationError(f"Invalid source_type in topic item: {source_type!r}")

            raw_chunks = item.get("chunks", item.get("relatedChunks", [])) or []
            try:
                chunks = [
                    c if isinstance(c, ChunkExcerpt) else ChunkExcerpt.from_dict(c)
                    for c in raw_chunks
                ]
            except (AttributeError, TypeError, ValueError) as e:
                raise ValidationError(f"Invalid chunks for topic '{text}': {e}") from e

            objectives = item.get("learning_objectives", item.get("learningObjectives")) or []
            if isinstance(objectives, str):
                objectives = [objectives]
            if not isinstance(objectives, (list, tuple)) or not all(isinstance(o, str) for o in objectives):
                raise ValidationError(f"Learning objectives for topic '{text}' must be strings")

            metadata = item.get("metadata") or {}
            if not isinstance(metadata, dict):
                raise ValidationError(
                    f"Metadata for topic '{text}' must be a mapping, got {type(metadata).__name__}"
                )

            return cls.create(
                text,
                source_type=source_type,
                description=str(item.get("description", "") or ""),
                chunks=chunks,
                metadata=metadata,
                learning_objectives=[o.strip() for o in objectives if o.strip()]
            )

        raise ValidationError(
            f"Topic items must be strings or dicts, got {type(item).__name__}"
        )

    def to_dict(self) -> dict:
        """Convert to JSON-serializable dict."""
        return {
            "topic_id": self.topic_id,
            "text": self.text,
            "source_type": self.source_type,
            "description": self.description,
            "chunks": [c.to_dict() for c in self.chunks],
            "learning_objectives": list(self.learning_objectives),
            "metadata": dict(self.metadata)
        }


@dataclass
class Embedding:
    """Vector for one topic. Computed once per reconciliation run."""
    topic_id: str
    vector: List[float]
    model: str


# Design Rationale and Trade-offs:
#
# 1. Why frozen dataclasses?
#    - Topics are shared across threads during embedding and gap analysis
#    - Trade-off: Cleaning text builds a new Topic via with_text()
#
# 2. Why accept camelCase keys in from_raw?
#    - Upstream extractors emit "relatedChunks" and "learningObjectives"
#    - Trade-off: Two spellings per field to keep in sync
#
# 3. Why embed description and objectives with the title?
#    - Bare titles like "Introduction" are ambiguous on their own
#    - Trade-off: Registry entries are keyed by the full text, so editing a
#      description re-embeds the topic
