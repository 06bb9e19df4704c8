"""
ML helpers for the learning loop.

- Semantic embeddings (sentence-transformers, all-MiniLM-L6-v2, 384-dim)
- Vector storage and brute-force cosine search
- Adapter training data export (JSONL)
- Optional local-model inference with heuristic fallbacks
"""

from uiforge.ml.embedding_store import EmbeddingStore
from uiforge.ml.embeddings import EmbeddingService, cosine_similarity, find_similar
from uiforge.ml.inference import (
    HeuristicInferenceProvider,
    InferenceProvider,
    InferenceResult,
    OllamaInferenceProvider,
    create_inference_provider,
    infer_with_fallback,
)
from uiforge.ml.prompt_enhancer import EnhancedPrompt, EnhancementContext, PromptEnhancer, needs_enhancement
from uiforge.ml.quality_scorer import QualityScore, QualityScorer
from uiforge.ml.training_exporter import (
    AdapterType,
    ExportResult,
    TrainingReadiness,
    export_for_adapter,
    export_raw_examples,
    has_enough_data,
)

__all__ = [
    # Embeddings
    "EmbeddingService",
    "EmbeddingStore",
    "cosine_similarity",
    "find_similar",
    # Training
    "AdapterType",
    "ExportResult",
    "TrainingReadiness",
    "export_for_adapter",
    "export_raw_examples",
    "has_enough_data",
    # Inference
    "InferenceProvider",
    "InferenceResult",
    "HeuristicInferenceProvider",
    "OllamaInferenceProvider",
    "create_inference_provider",
    "infer_with_fallback",
    "QualityScorer",
    "QualityScore",
    "PromptEnhancer",
    "EnhancedPrompt",
    "EnhancementContext",
    "needs_enhancement",
]
