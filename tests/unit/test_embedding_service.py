"""
Unit tests for the Embedding Service.

The sentence-transformers model is replaced with a small fake so these tests
need neither the `local-ai` extra nor a model download.
"""
import numpy as np
import pytest

from uiforge.domain import SourceType
from uiforge.ml.embeddings import EmbeddingService


class FakeModel:
    """Stands in for a SentenceTransformer: one-hot vectors by text length."""

    def __init__(self):
        self.calls = []

    def encode(self, texts, batch_size=32, convert_to_numpy=True, normalize_embeddings=True):
        self.calls.append((texts, batch_size))
        if isinstance(texts, str):
            return self._vector(texts)
        return np.stack([self._vector(t) for t in texts])

    @staticmethod
    def _vector(text):
        v = np.zeros(4, dtype=np.float64)
        v[len(text) % 4] = 1.0
        return v


class TestEmbeddingService:
    """Tests for EmbeddingService with the model replaced."""

    @pytest.fixture
    def service(self):
        service = EmbeddingService(model_name="test-model", batch_size=8)
        service._model = FakeModel()
        return service

    def test_not_loaded_until_used(self):
        service = EmbeddingService(model_name="test-model")

        assert service.is_loaded is False
        assert service.get_model_info()["model_name"] == "test-model"

    def test_embed_returns_float32(self, service):
        vector = service.embed("abcd")

        assert vector.dtype == np.float32
        assert vector.tolist() == [1.0, 0.0, 0.0, 0.0]

    def test_embed_batch(self, service):
        vectors = service.embed_batch(["a", "ab"])

        assert len(vectors) == 2
        assert service._model.calls[-1][1] == 8

    def test_embed_batch_empty(self, service):
        assert service.embed_batch([]) == []
        assert service._model.calls == []

    def test_create_embedding(self, service):
        emb = service.create_embedding("c1", SourceType.COMPONENT, "abc")

        assert emb.source_type == "component"
        assert emb.dimensions == 4

    def test_unload(self, service):
        service.unload()

        assert service.is_loaded is False
