"""
Embeddings utility.

Embedding collaborator contract, the Gemini implementation, and the gateway
that batches, paces and retries calls to it.
"""

import logging
import time
from typing import Callable, List, Optional, Protocol, Sequence
import google.generativeai as genai

from topic_reconciler.errors import CollaboratorError
from topic_reconciler.models.topic import Embedding, Topic
from topic_reconciler.registry.embedding_registry import EmbeddingRegistry

logger = logging.getLogger(__name__)


class EmbeddingClient(Protocol):
    def embed(self, texts: List[str]) -> List[List[float]]:
        ...


class GeminiEmbeddingClient:
    """
    Generates text embeddings with Google's text-embedding models.
    One API call per batch.
    """

    def __init__(self, api_key: str, model_name: str = "models/text-embedding-004"):
        """
        Initialize embedding client.

        Args:
            api_key: Google API key
            model_name: Embedding model to use
        """
        self.model_name = model_name

        # Configure Gemini
        genai.configure(api_key=api_key)

        logger.info(f"Initialized GeminiEmbeddingClient with model={model_name}")

    def embed(self, texts: List[str]) -> List[List[float]]:
        result = genai.embed_content(
            model=self.model_name,
            content=list(texts),
            task_type="semantic_similarity"
        )
        embeddings = result["embedding"]

        # A single-string request comes back as one flat vector
        if embeddings and not isinstance(embeddings[0], (list, tuple)):
            embeddings = [embeddings]

        return [list(vector) for vector in embeddings]


class EmbeddingGateway:
    """
    Converts topic text into fixed-size vectors through an EmbeddingClient.

    Batches are issued sequentially with a fixed delay between them. A failed
    batch is retried in full; when retries run out the whole call fails with
    CollaboratorError and no partial result is returned.
    """

    def __init__(
        self,
        client: EmbeddingClient,
        model_name: str,
        dimensions: Optional[int] = None,
        batch_size: int = 10,
        batch_delay_seconds: float = 0.5,
        max_retries: int = 1,
        sleep: Callable[[float], None] = time.sleep
    ):
        """
        Initialize embedding gateway.

        Args:
            client: Embedding collaborator
            model_name: Model name recorded on every Embedding
            dimensions: Expected vector length (None skips the check)
            batch_size: Texts per collaborator call
            batch_delay_seconds: Pause between consecutive batches
            max_retries: Extra attempts for a failing batch
            sleep: Sleep function (injectable for tests)
        """
        self.client = client
        self.model_name = model_name
        self.dimensions = dimensions
        self.batch_size = batch_size
        self.batch_delay_seconds = batch_delay_seconds
        self.max_retries = max_retries
        self._sleep = sleep

    def embed(self, texts: Sequence[str]) -> List[List[float]]:
        """
        Embed texts in batches.

        Args:
            texts: Input texts

        Returns:
            One vector per text, same order

        Raises:
            CollaboratorError: If a batch still fails after its retries
        """
        texts = list(texts)
        if not texts:
            return []

        batches = [
            texts[i:i + self.batch_size]
            for i in range(0, len(texts), self.batch_size)
        ]

        vectors: List[List[float]] = []
        for batch_index, batch in enumerate(batches):
            logger.debug(
                f"Embedding batch {batch_index + 1}/{len(batches)} ({len(batch)} texts)"
            )
            vectors.extend(self._embed_batch_with_retry(batch, batch_index))

            if batch_index < len(batches) - 1 and self.batch_delay_seconds > 0:
                self._sleep(self.batch_delay_seconds)

        logger.info(f"Generated {len(vectors)} embeddings in {len(batches)} batches")
        return vectors

    def embed_topics(
        self,
        topics: Sequence[Topic],
        registry: Optional[EmbeddingRegistry] = None
    ) -> List[Embedding]:
        """
        Embed topics, reusing vectors from a caller-owned registry when given.

        Args:
            topics: Topics to embed
            registry: Optional registry to read cached vectors from and write
                new vectors to (the caller decides when to save it)

        Returns:
            One Embedding per topic, same order
        """
        texts = [topic.embedding_text for topic in topics]
        vectors: List[Optional[List[float]]] = [None] * len(texts)

        if registry is not None and not registry.compatible_with(self.model_name, self.dimensions):
            logger.warning(
                f"Embedding registry holds {registry.model!r} vectors, not {self.model_name!r}; ignoring it"
            )
            registry = None

        if registry is not None:
            for i, text in enumerate(texts):
                vectors[i] = registry.get(text)

        missing = [i for i, vector in enumerate(vectors) if vector is None]
        if registry is not None and len(missing) < len(texts):
            logger.info(f"Reused {len(texts) - len(missing)} cached embeddings")

        fresh = self.embed([texts[i] for i in missing])
        for i, vector in zip(missing, fresh):
            vectors[i] = vector
            if registry is not None:
                registry.put(texts[i], vector)

        return [
            Embedding(topic_id=topic.topic_id, vector=vector, model=self.model_name)
            for topic, vector in zip(topics, vectors)
        ]

    def _embed_batch_with_retry(self, batch: List[str], batch_index: int) -> List[List[float]]:
        last_error: Optional[Exception] = None

        for attempt in range(self.max_retries + 1):
            try:
                vectors = self.client.embed(batch)
                self._validate_batch(batch, vectors)
                return vectors
            except Exception as e:
                last_error = e
                logger.warning(
                    f"Embedding batch {batch_index + 1} failed (attempt {attempt + 1}): {e}"
                )

        logger.error(f"Embedding batch {batch_index + 1} failed after {self.max_retries + 1} attempts")
        raise CollaboratorError(
            f"Embedding batch {batch_index + 1} failed after "
            f"{self.max_retries + 1} attempts: {last_error}"
        ) from last_error

    def _validate_batch(self, batch: List[str], vectors: List[List[float]]) -> None:
        """Reject results that would corrupt downstream matching."""
        if vectors is None or len(vectors) != len(batch):
            got = "None" if vectors is None else len(vectors)
            raise ValueError(f"Expected {len(batch)} embeddings, got {got}")

        for vector in vectors:
            if self.dimensions is not None and len(vector) != self.dimensions:
                raise ValueError(
                    f"Expected {self.dimensions} dimensions, got {len(vector)}"
                )
            # Validate non-zero (API failure check)
            if sum(abs(x) for x in vector) < 1e-9:
                raise ValueError("Embedding is all zeros (possible API failure)")


# Design Rationale and Trade-offs:
#
# 1. Why batches with a fixed delay?
#    - Keeps the request rate under the embedding quota without a token bucket
#    - Trade-off: Small inputs still wait between batches
#
# 2. Why one retry per batch and then fail?
#    - Transient 5xx errors usually clear on the second attempt
#    - A persistent failure should end the run quickly
#    - Trade-off: Two consecutive blips abort a long run
#
# 3. Why validate vector count and dimensions per batch?
#    - A short or ragged answer would misalign topics and vectors silently
#    - Trade-off: An extra pass over each batch
