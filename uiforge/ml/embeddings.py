"""
Embedding Service - semantic vectors for catalog entries and prompts.

Uses a sentence-transformers model (all-MiniLM-L6-v2 by default, 384 dimensions).
The model is loaded on first use; the similarity helpers below need only numpy.

References:
- https://www.sbert.net/docs/pretrained_models.html
- https://huggingface.co/sentence-transformers/all-MiniLM-L6-v2
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import TYPE_CHECKING, Any

import numpy as np
from loguru import logger

from config import get_settings
from uiforge.domain import Embedding, SimilarityResult

if TYPE_CHECKING:
    from sentence_transformers import SentenceTransformer


def cosine_similarity(a: Any, b: Any) -> float:
    """
    Cosine similarity between two vectors.

    Vectors of different lengths, or with a zero norm, compare as 0.0
    instead of raising.
    """
    v1 = np.asarray(a, dtype=np.float32).reshape(-1)
    v2 = np.asarray(b, dtype=np.float32).reshape(-1)

    if v1.shape[0] != v2.shape[0]:
        return 0.0

    norm1 = np.linalg.norm(v1)
    norm2 = np.linalg.norm(v2)
    if norm1 == 0 or norm2 == 0:
        return 0.0

    return float(np.dot(v1, v2) / (norm1 * norm2))


def find_similar(
    query_vector: Any,
    candidates: Sequence[Embedding],
    top_k: int = 5,
    threshold: float = 0.3,
) -> list[SimilarityResult]:
    """
    Rank candidates by similarity to the query.

    Filters to similarity >= threshold, sorts descending, then keeps the first
    top_k. Equal similarities keep their candidate order.
    """
    scored = [
        SimilarityResult(id=c.source_id, similarity=cosine_similarity(query_vector, c.vector), text=c.text)
        for c in candidates
    ]
    scored = [r for r in scored if r.similarity >= threshold]
    scored.sort(key=lambda r: r.similarity, reverse=True)
    return scored[: max(top_k, 0)]


class EmbeddingService:
    """
    Generate semantic embeddings for catalog and prompt text.

    The model is lazy-loaded on first use to avoid startup delays.

    Example:
        >>> service = EmbeddingService()
        >>> vector = service.embed("pricing card with three tiers")
        >>> vector.shape
        (384,)
    """

    def __init__(self, model_name: str | None = None, batch_size: int | None = None):
        settings = get_settings()
        self.model_name = model_name or settings.embedding_model
        self.expected_dimension = settings.embedding_dimension
        self.batch_size = batch_size or settings.embedding_batch_size
        self._model: SentenceTransformer | None = None

    @property
    def model(self) -> SentenceTransformer:
        """
        Lazy load the model on first use.

        The model is downloaded from HuggingFace Hub on first run and cached
        afterwards. Requires the `local-ai` extra.
        """
        if self._model is None:
            from sentence_transformers import SentenceTransformer

            logger.info(f"Loading embedding model: {self.model_name}")
            self._model = SentenceTransformer(self.model_name)
            logger.info(f"Embedding model loaded: {self.model_name} ({self.expected_dimension}-dim)")
        return self._model

    @property
    def is_loaded(self) -> bool:
        return self._model is not None

    def embed(self, text: str) -> np.ndarray:
        """Normalized float32 embedding for a single text."""
        vector = self.model.encode(text, convert_to_numpy=True, normalize_embeddings=True)
        return np.asarray(vector, dtype=np.float32)

    def embed_batch(self, texts: list[str], batch_size: int | None = None) -> list[np.ndarray]:
        """Embed many texts in batches."""
        if not texts:
            return []

        batch_size = batch_size or self.batch_size
        logger.info(f"Generating embeddings for {len(texts)} texts (batch_size={batch_size})")
        vectors = self.model.encode(
            texts,
            batch_size=batch_size,
            convert_to_numpy=True,
            normalize_embeddings=True,
        )
        return [np.asarray(v, dtype=np.float32) for v in vectors]

    def create_embedding(self, source_id: str, source_type: str, text: str) -> Embedding:
        return Embedding.create(source_id, source_type, text, self.embed(text))

    def unload(self) -> None:
        self._model = None
        logger.info("Embedding model unloaded")

    def get_model_info(self) -> dict:
        """
        Get information about the configured model.

        Returns:
            Dictionary with model name, dimension, and load status.
        """
        return {
            "model_name": self.model_name,
            "dimension": self.expected_dimension,
            "is_loaded": self._model is not None,
            "batch_size": self.batch_size,
        }
