"""
Learning Loop Models.

SQLAlchemy models for the self-improving feedback loop:
- Code patterns (structural skeletons with running scores)
- Feedback events (explicit and implicit, denormalized)
- Embeddings (float32 vectors keyed by source id and kind)
- Training jobs (status history of adapter training runs)
"""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import (
    Boolean,
    DateTime,
    Float,
    Index,
    Integer,
    LargeBinary,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base


class CodePatternRecord(Base):
    """
    A deduplicated structural skeleton seen in generated output.

    frequency counts sightings; avg_score is the running mean of the scores
    supplied with each sighting. promoted only ever moves from False to True.
    """

    __tablename__ = "code_patterns"

    id: Mapped[str] = mapped_column(Text, primary_key=True)
    skeleton_hash: Mapped[str] = mapped_column(Text, nullable=False, unique=True)
    skeleton: Mapped[str] = mapped_column(Text, nullable=False)
    snippet: Mapped[str] = mapped_column(Text, nullable=False)
    component_type: Mapped[str | None] = mapped_column(Text)
    category: Mapped[str | None] = mapped_column(Text)
    frequency: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    avg_score: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    promoted: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    __table_args__ = (
        Index("idx_patterns_hash", "skeleton_hash"),
        Index("idx_patterns_promoted", "promoted"),
    )

    def __repr__(self) -> str:
        return (
            f"<CodePatternRecord hash={self.skeleton_hash} freq={self.frequency} "
            f"avg={self.avg_score:.3f} promoted={self.promoted}>"
        )


class FeedbackRecord(Base):
    """
    Append-only feedback event for a generation.

    Generation parameters are copied onto the row at write time so training
    exports never need the original generation.
    """

    __tablename__ = "feedback"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    feedback_id: Mapped[str] = mapped_column(Text, nullable=False, unique=True)
    generation_id: Mapped[str] = mapped_column(Text, nullable=False)
    prompt: Mapped[str] = mapped_column(Text, nullable=False, default="")
    component_type: Mapped[str | None] = mapped_column(Text)
    variant: Mapped[str | None] = mapped_column(Text)
    mood: Mapped[str | None] = mapped_column(Text)
    industry: Mapped[str | None] = mapped_column(Text)
    style: Mapped[str | None] = mapped_column(Text)
    score: Mapped[float] = mapped_column(Float, nullable=False)
    feedback_type: Mapped[str] = mapped_column(Text, nullable=False)  # 'explicit' | 'implicit'
    code_hash: Mapped[str | None] = mapped_column(Text)
    rating: Mapped[str | None] = mapped_column(Text)  # 'positive' | 'negative' | 'neutral'
    confidence: Mapped[float | None] = mapped_column(Float)
    comment: Mapped[str | None] = mapped_column(Text)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    __table_args__ = (
        Index("idx_feedback_generation_id", "generation_id"),
        Index("idx_feedback_feedback_type", "feedback_type"),
        Index("idx_feedback_component_type", "component_type"),
    )

    def __repr__(self) -> str:
        return f"<FeedbackRecord gen={self.generation_id} type={self.feedback_type} score={self.score}>"


class EmbeddingRecord(Base):
    """Float32 vector for a catalog entry, prompt, or description."""

    __tablename__ = "embeddings"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    source_id: Mapped[str] = mapped_column(Text, nullable=False)
    source_type: Mapped[str] = mapped_column(Text, nullable=False)
    text: Mapped[str] = mapped_column(Text, nullable=False)
    vector: Mapped[bytes] = mapped_column(LargeBinary, nullable=False)
    dimensions: Mapped[int] = mapped_column(Integer, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    __table_args__ = (
        UniqueConstraint("source_id", "source_type", name="uq_embedding_source"),
        Index("idx_embeddings_source_type", "source_type"),
    )

    def __repr__(self) -> str:
        return f"<EmbeddingRecord {self.source_type}:{self.source_id} dim={self.dimensions}>"


class TrainingJobRecord(Base):
    """
    One adapter training run.

    Rows are appended per run; the newest row for an adapter is its current
    status. completed_at is set once the job reaches complete or failed.
    """

    __tablename__ = "training_jobs"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    adapter: Mapped[str] = mapped_column(Text, nullable=False)
    status: Mapped[str] = mapped_column(Text, nullable=False)  # preparing | training | complete | failed
    progress: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    examples_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    error: Mapped[str | None] = mapped_column(Text)
    started_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))

    __table_args__ = (Index("idx_training_jobs_adapter", "adapter"),)

    def __repr__(self) -> str:
        return f"<TrainingJobRecord #{self.id} {self.adapter} {self.status} {self.progress:.0f}%>"
