"""
Embedding store - persisted vectors keyed by (source_id, source_type), plus
brute-force semantic search over one source type.

Search loads every vector of the requested type into memory, which suits
corpora of up to tens of thousands of vectors.
"""

from __future__ import annotations

from collections.abc import Iterable
from enum import Enum
from typing import Any

from loguru import logger

from uiforge.db.repositories import EmbeddingRepository
from uiforge.domain import Embedding, SimilarityResult
from uiforge.ml.embeddings import find_similar


def _type_key(source_type: str | Enum) -> str:
    return str(source_type.value if isinstance(source_type, Enum) else source_type)


class EmbeddingStore:
    """Sole writer of embedding rows."""

    def __init__(self, repository: EmbeddingRepository):
        self.repository = repository

    def store(self, embedding: Embedding) -> None:
        """Insert, or replace the vector and text for an existing key."""
        self.repository.upsert_many([embedding])

    def store_many(self, embeddings: Iterable[Embedding]) -> int:
        written = self.repository.upsert_many(embeddings)
        logger.debug(f"Stored {written} embeddings")
        return written

    def load(self, source_type: str | Enum) -> list[Embedding]:
        return self.repository.list_by_type(_type_key(source_type))

    def get(self, source_id: str, source_type: str | Enum) -> Embedding | None:
        return self.repository.get(source_id, _type_key(source_type))

    def delete_all(self, source_type: str | Enum) -> int:
        removed = self.repository.delete_by_type(_type_key(source_type))
        logger.info(f"Deleted {removed} embeddings of type {_type_key(source_type)}")
        return removed

    def count(self, source_type: str | Enum | None = None) -> int:
        return self.repository.count(_type_key(source_type) if source_type is not None else None)

    def semantic_search(
        self,
        query_vector: Any,
        source_type: str | Enum,
        top_k: int = 5,
        threshold: float = 0.3,
    ) -> list[SimilarityResult]:
        """Rank stored vectors of one type against a query; [] for unknown types."""
        candidates = self.load(source_type)
        if not candidates:
            return []
        return find_similar(query_vector, candidates, top_k=top_k, threshold=threshold)
