"""
Configuration settings for the uiforge learning loop.

Uses Pydantic Settings for environment variable management with .env file support.
"""
from __future__ import annotations

from functools import lru_cache
from typing import Any, Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # ========================================
    # Database
    # ========================================
    database_url: str = Field(
        default="sqlite:///data/uiforge_learning.db",
        description="SQLAlchemy connection string (embedded SQLite by default)",
    )
    database_echo: bool = Field(
        default=False,
        description="Echo SQL statements to the log",
    )

    # ========================================
    # Logging
    # ========================================
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="INFO",
        description="Logging verbosity level",
    )
    log_file: str | None = Field(
        default=None,
        description="Log file path (None for stderr only)",
    )

    # ========================================
    # Session Cache (implicit feedback pairing)
    # ========================================
    session_cache_max_sessions: int = Field(
        default=1024,
        description="Maximum number of sessions remembered for implicit feedback",
    )
    session_cache_ttl_seconds: float = Field(
        default=3600.0,
        description="Seconds before an idle session's last generation is forgotten",
    )

    # ========================================
    # Pattern Promotion
    # ========================================
    promotion_min_frequency: int = Field(
        default=3,
        description="Minimum sightings before a pattern may be promoted",
    )
    promotion_min_score: float = Field(
        default=0.5,
        description="Average score a pattern must exceed to be promoted",
    )
    catalog_path: str = Field(
        default="data/promoted_catalog.json",
        description="JSON catalog that receives promoted patterns from the CLI",
    )

    # ========================================
    # Inference Provider (optional local model)
    # ========================================
    inference_backend: Literal["heuristic", "ollama"] = Field(
        default="heuristic",
        description="Inference backend; 'heuristic' disables model calls entirely",
    )
    inference_url: str = Field(
        default="http://127.0.0.1:11434",
        description="Base URL of the local model server",
    )
    inference_model: str = Field(
        default="qwen2.5:0.5b",
        description="Model name served by the local model server",
    )
    inference_timeout_seconds: float = Field(
        default=10.0,
        description="Hard timeout for a single inference call before falling back",
    )

    # ========================================
    # Semantic Embeddings
    # ========================================
    embedding_model: str = Field(
        default="all-MiniLM-L6-v2",
        description="Sentence transformer model for embeddings (384-dim)",
    )
    embedding_dimension: int = Field(
        default=384,
        description="Embedding vector dimension (must match model)",
    )
    embedding_batch_size: int = Field(
        default=32,
        description="Batch size for embedding generation",
    )
    semantic_top_k: int = Field(
        default=5,
        description="Default number of semantic search results",
    )
    semantic_threshold: float = Field(
        default=0.3,
        description="Default minimum cosine similarity for semantic search",
    )

    # ========================================
    # Training Data Export
    # ========================================
    training_output_dir: str = Field(
        default="data/training",
        description="Directory that receives adapter JSONL datasets",
    )
    training_export_limit: int = Field(
        default=10_000,
        description="Maximum feedback rows read per export",
    )
    training_min_abs_score: float = Field(
        default=0.3,
        description="Minimum |score| for a feedback row to count as a training example",
    )

    # ========================================
    # Helper Methods
    # ========================================
    def get_semantic_config(self) -> dict[str, Any]:
        """Get semantic embedding configuration as a dictionary."""
        return {
            "model": self.embedding_model,
            "dimension": self.embedding_dimension,
            "batch_size": self.embedding_batch_size,
            "top_k": self.semantic_top_k,
            "threshold": self.semantic_threshold,
        }

    def get_promotion_config(self) -> dict[str, Any]:
        """Get promotion thresholds as a dictionary."""
        return {
            "min_frequency": self.promotion_min_frequency,
            "min_score": self.promotion_min_score,
            "catalog_path": self.catalog_path,
        }

    def has_model_backend(self) -> bool:
        """Check if a model-backed inference provider is configured."""
        return self.inference_backend != "heuristic"


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
