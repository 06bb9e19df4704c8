"""
Typed repositories for the learning loop tables.

Each repository is an abstract interface plus a SQLAlchemy implementation.
Rows are converted to domain dataclasses by explicit mapping functions, so the
storage backend can be swapped without touching callers.
"""

from __future__ import annotations

import hashlib
import uuid
from abc import ABC, abstractmethod
from collections.abc import Iterable
from datetime import datetime

from loguru import logger
from sqlalchemy import delete, func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, sessionmaker

from uiforge.db.database import session_scope
from uiforge.db.models import CodePatternRecord, EmbeddingRecord, FeedbackRecord, TrainingJobRecord
from uiforge.domain import (
    CodePattern,
    Embedding,
    Feedback,
    FeedbackSource,
    JobStatus,
    PatternStats,
    Rating,
    ScoredPrompt,
    TrainingJob,
    utcnow,
)

# =============================================================================
# Row mapping
# =============================================================================


def _pattern_from_row(row: CodePatternRecord) -> CodePattern:
    return CodePattern(
        id=row.id,
        skeleton_hash=row.skeleton_hash,
        skeleton=row.skeleton,
        snippet=row.snippet,
        frequency=int(row.frequency),
        avg_score=float(row.avg_score),
        promoted=bool(row.promoted),
        component_type=row.component_type,
        category=row.category,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )


def _feedback_from_row(row: FeedbackRecord) -> Feedback:
    return Feedback(
        id=row.feedback_id,
        generation_id=row.generation_id,
        rating=Rating(row.rating or Rating.NEUTRAL.value),
        source=FeedbackSource(row.feedback_type),
        score=float(row.score),
        confidence=float(row.confidence if row.confidence is not None else 0.0),
        comment=row.comment,
        timestamp=row.created_at,
    )


def _embedding_from_row(row: EmbeddingRecord) -> Embedding:
    vector = Embedding.from_bytes(row.vector)
    return Embedding(
        source_id=row.source_id,
        source_type=row.source_type,
        text=row.text,
        vector=vector[: row.dimensions],
        dimensions=int(row.dimensions),
        created_at=row.created_at,
    )


def _job_from_row(row: TrainingJobRecord) -> TrainingJob:
    return TrainingJob(
        id=row.id,
        adapter=row.adapter,
        status=JobStatus(row.status),
        progress=float(row.progress),
        examples_count=int(row.examples_count),
        error=row.error,
        started_at=row.started_at,
        completed_at=row.completed_at,
    )


def new_pattern_id(skeleton_hash: str) -> str:
    digest = hashlib.sha256(f"{skeleton_hash}{uuid.uuid4().hex}".encode()).hexdigest()
    return f"pat-{digest[:12]}"


# =============================================================================
# Interfaces
# =============================================================================


class PatternRepository(ABC):
    """Storage for code patterns."""

    @abstractmethod
    def record_sighting(
        self,
        skeleton_hash: str,
        skeleton: str,
        snippet: str,
        component_type: str | None,
        category: str | None,
        score: float,
    ) -> CodePattern:
        """Insert a new pattern or fold one more scored sighting into an existing one."""

    @abstractmethod
    def rescore_sighting(self, skeleton_hash: str, old_score: float, new_score: float) -> CodePattern | None:
        """Replace one already-counted sighting score without changing frequency."""

    @abstractmethod
    def get_by_hash(self, skeleton_hash: str) -> CodePattern | None: ...

    @abstractmethod
    def get(self, pattern_id: str) -> CodePattern | None: ...

    @abstractmethod
    def list_promotable(self, min_frequency: int, min_score: float) -> list[CodePattern]: ...

    @abstractmethod
    def list_patterns(self, limit: int = 50) -> list[CodePattern]: ...

    @abstractmethod
    def mark_promoted(self, pattern_id: str) -> bool: ...

    @abstractmethod
    def stats(self, min_frequency: int, min_score: float) -> PatternStats: ...


class FeedbackRepository(ABC):
    """Append-only storage for feedback events."""

    @abstractmethod
    def add(
        self,
        feedback: Feedback,
        *,
        prompt: str = "",
        component_type: str = "",
        variant: str = "",
        mood: str = "",
        industry: str = "",
        style: str = "",
        code_hash: str = "",
    ) -> Feedback: ...

    @abstractmethod
    def average_score(self, component_type: str | None = None, style: str | None = None) -> tuple[float, int]:
        """Return (average score, row count) optionally filtered by component type and style."""

    @abstractmethod
    def count(self, source: FeedbackSource | None = None) -> int: ...

    @abstractmethod
    def count_by_score(self, *, above: float | None = None, below: float | None = None) -> int:
        """Count rows with score > above and/or score < below."""

    @abstractmethod
    def count_min_abs(self, min_abs_score: float) -> int: ...

    @abstractmethod
    def list_scored(self, min_abs_score: float | None = None, limit: int | None = None) -> list[dict]:
        """Denormalized rows, most recent first."""

    @abstractmethod
    def list_for_generation(self, generation_id: str) -> list[Feedback]: ...

    def list_prompts(self, min_abs_score: float | None = None) -> list[ScoredPrompt]:
        return [
            ScoredPrompt(
                prompt=r["prompt"],
                score=r["score"],
                component_type=r["component_type"],
                style=r["style"],
            )
            for r in self.list_scored(min_abs_score=min_abs_score)
        ]


class EmbeddingRepository(ABC):
    """Vector storage keyed by (source_id, source_type)."""

    @abstractmethod
    def upsert_many(self, embeddings: Iterable[Embedding]) -> int: ...

    @abstractmethod
    def list_by_type(self, source_type: str) -> list[Embedding]: ...

    @abstractmethod
    def get(self, source_id: str, source_type: str) -> Embedding | None: ...

    @abstractmethod
    def delete_by_type(self, source_type: str) -> int: ...

    @abstractmethod
    def count(self, source_type: str | None = None) -> int: ...


class TrainingJobRepository(ABC):
    """Status history of adapter training runs."""

    @abstractmethod
    def create(self, adapter: str, examples_count: int) -> TrainingJob:
        """Insert a job in the preparing state."""

    @abstractmethod
    def update_status(
        self, job_id: int, status: JobStatus, progress: float, error: str | None = None
    ) -> TrainingJob | None: ...

    @abstractmethod
    def latest(self, adapter: str) -> TrainingJob | None: ...


# =============================================================================
# SQLAlchemy implementations
# =============================================================================


class SqlPatternRepository(PatternRepository):
    def __init__(self, session_factory: sessionmaker[Session]):
        self.session_factory = session_factory

    def record_sighting(
        self,
        skeleton_hash: str,
        skeleton: str,
        snippet: str,
        component_type: str | None,
        category: str | None,
        score: float,
    ) -> CodePattern:
        now = utcnow()
        try:
            with session_scope(self.session_factory) as session:
                if self._apply_sighting(session, skeleton_hash, component_type, category, score, now):
                    return self._load_by_hash(session, skeleton_hash)

                session.add(
                    CodePatternRecord(
                        id=new_pattern_id(skeleton_hash),
                        skeleton_hash=skeleton_hash,
                        skeleton=skeleton,
                        snippet=snippet,
                        component_type=component_type,
                        category=category,
                        frequency=1,
                        avg_score=score,
                        promoted=False,
                        created_at=now,
                        updated_at=now,
                    )
                )
                session.flush()
                logger.debug(f"New code pattern {skeleton_hash}: {skeleton[:80]}")
                return self._load_by_hash(session, skeleton_hash)
        except IntegrityError:
            # Another writer inserted the same hash between our update and insert
            with session_scope(self.session_factory) as session:
                self._apply_sighting(session, skeleton_hash, component_type, category, score, now)
                return self._load_by_hash(session, skeleton_hash)

    @staticmethod
    def _apply_sighting(
        session: Session,
        skeleton_hash: str,
        component_type: str | None,
        category: str | None,
        score: float,
        now: datetime,
    ) -> bool:
        """Single-statement frequency increment and running-average recompute."""
        result = session.execute(
            update(CodePatternRecord)
            .where(CodePatternRecord.skeleton_hash == skeleton_hash)
            .values(
                avg_score=(CodePatternRecord.avg_score * CodePatternRecord.frequency + score)
                / (CodePatternRecord.frequency + 1),
                frequency=CodePatternRecord.frequency + 1,
                component_type=func.coalesce(CodePatternRecord.component_type, component_type),
                category=func.coalesce(CodePatternRecord.category, category),
                updated_at=now,
            )
            .execution_options(synchronize_session=False)
        )
        return result.rowcount > 0

    def rescore_sighting(self, skeleton_hash: str, old_score: float, new_score: float) -> CodePattern | None:
        with session_scope(self.session_factory) as session:
            result = session.execute(
                update(CodePatternRecord)
                .where(CodePatternRecord.skeleton_hash == skeleton_hash)
                .values(
                    avg_score=CodePatternRecord.avg_score
                    + float(new_score - old_score) / CodePatternRecord.frequency,
                    updated_at=utcnow(),
                )
                .execution_options(synchronize_session=False)
            )
            if result.rowcount == 0:
                return None
            return self._load_by_hash(session, skeleton_hash)

    @staticmethod
    def _load_by_hash(session: Session, skeleton_hash: str) -> CodePattern:
        row = session.scalars(
            select(CodePatternRecord)
            .where(CodePatternRecord.skeleton_hash == skeleton_hash)
            .execution_options(populate_existing=True)
        ).one()
        return _pattern_from_row(row)

    def get_by_hash(self, skeleton_hash: str) -> CodePattern | None:
        with session_scope(self.session_factory) as session:
            row = session.scalars(
                select(CodePatternRecord).where(CodePatternRecord.skeleton_hash == skeleton_hash)
            ).first()
            return _pattern_from_row(row) if row else None

    def get(self, pattern_id: str) -> CodePattern | None:
        with session_scope(self.session_factory) as session:
            row = session.get(CodePatternRecord, pattern_id)
            return _pattern_from_row(row) if row else None

    def list_promotable(self, min_frequency: int, min_score: float) -> list[CodePattern]:
        with session_scope(self.session_factory) as session:
            rows = session.scalars(
                select(CodePatternRecord)
                .where(
                    CodePatternRecord.promoted.is_(False),
                    CodePatternRecord.frequency >= min_frequency,
                    CodePatternRecord.avg_score > min_score,
                )
                .order_by(CodePatternRecord.avg_score.desc(), CodePatternRecord.frequency.desc())
            ).all()
            return [_pattern_from_row(r) for r in rows]

    def list_patterns(self, limit: int = 50) -> list[CodePattern]:
        with session_scope(self.session_factory) as session:
            rows = session.scalars(
                select(CodePatternRecord)
                .order_by(CodePatternRecord.frequency.desc(), CodePatternRecord.avg_score.desc())
                .limit(limit)
            ).all()
            return [_pattern_from_row(r) for r in rows]

    def mark_promoted(self, pattern_id: str) -> bool:
        with session_scope(self.session_factory) as session:
            result = session.execute(
                update(CodePatternRecord)
                .where(CodePatternRecord.id == pattern_id)
                .values(promoted=True, updated_at=utcnow())
                .execution_options(synchronize_session=False)
            )
            return result.rowcount > 0

    def stats(self, min_frequency: int, min_score: float) -> PatternStats:
        with session_scope(self.session_factory) as session:
            total, avg_freq, avg_score = session.execute(
                select(
                    func.count(CodePatternRecord.id),
                    func.avg(CodePatternRecord.frequency),
                    func.avg(CodePatternRecord.avg_score),
                )
            ).one()
            promoted = session.scalar(
                select(func.count(CodePatternRecord.id)).where(CodePatternRecord.promoted.is_(True))
            )
            eligible = session.scalar(
                select(func.count(CodePatternRecord.id)).where(
                    CodePatternRecord.promoted.is_(False),
                    CodePatternRecord.frequency >= min_frequency,
                    CodePatternRecord.avg_score > min_score,
                )
            )
            return PatternStats(
                total=int(total or 0),
                promoted=int(promoted or 0),
                eligible=int(eligible or 0),
                avg_frequency=float(avg_freq or 0.0),
                avg_score=float(avg_score or 0.0),
            )


class SqlFeedbackRepository(FeedbackRepository):
    def __init__(self, session_factory: sessionmaker[Session]):
        self.session_factory = session_factory

    def add(
        self,
        feedback: Feedback,
        *,
        prompt: str = "",
        component_type: str = "",
        variant: str = "",
        mood: str = "",
        industry: str = "",
        style: str = "",
        code_hash: str = "",
    ) -> Feedback:
        with session_scope(self.session_factory) as session:
            session.add(
                FeedbackRecord(
                    feedback_id=feedback.id,
                    generation_id=feedback.generation_id,
                    prompt=prompt,
                    component_type=component_type,
                    variant=variant,
                    mood=mood,
                    industry=industry,
                    style=style,
                    score=feedback.score,
                    feedback_type=feedback.source.value,
                    code_hash=code_hash,
                    rating=feedback.rating.value,
                    confidence=feedback.confidence,
                    comment=feedback.comment,
                    created_at=feedback.timestamp,
                )
            )
        return feedback

    def average_score(self, component_type: str | None = None, style: str | None = None) -> tuple[float, int]:
        stmt = select(func.avg(FeedbackRecord.score), func.count(FeedbackRecord.id))
        if component_type is not None:
            stmt = stmt.where(FeedbackRecord.component_type == component_type)
        if style is not None:
            stmt = stmt.where(FeedbackRecord.style == style)
        with session_scope(self.session_factory) as session:
            avg, cnt = session.execute(stmt).one()
            return float(avg or 0.0), int(cnt or 0)

    def count(self, source: FeedbackSource | None = None) -> int:
        stmt = select(func.count(FeedbackRecord.id))
        if source is not None:
            stmt = stmt.where(FeedbackRecord.feedback_type == source.value)
        with session_scope(self.session_factory) as session:
            return int(session.scalar(stmt) or 0)

    def count_by_score(self, *, above: float | None = None, below: float | None = None) -> int:
        stmt = select(func.count(FeedbackRecord.id))
        if above is not None:
            stmt = stmt.where(FeedbackRecord.score > above)
        if below is not None:
            stmt = stmt.where(FeedbackRecord.score < below)
        with session_scope(self.session_factory) as session:
            return int(session.scalar(stmt) or 0)

    def count_min_abs(self, min_abs_score: float) -> int:
        with session_scope(self.session_factory) as session:
            return int(
                session.scalar(
                    select(func.count(FeedbackRecord.id)).where(func.abs(FeedbackRecord.score) >= min_abs_score)
                )
                or 0
            )

    def list_scored(self, min_abs_score: float | None = None, limit: int | None = None) -> list[dict]:
        stmt = select(FeedbackRecord).order_by(FeedbackRecord.created_at.desc(), FeedbackRecord.id.desc())
        if min_abs_score is not None:
            stmt = stmt.where(func.abs(FeedbackRecord.score) >= min_abs_score)
        if limit is not None:
            stmt = stmt.limit(limit)
        with session_scope(self.session_factory) as session:
            return [
                {
                    "generation_id": r.generation_id,
                    "prompt": r.prompt or "",
                    "score": float(r.score),
                    "component_type": r.component_type,
                    "variant": r.variant,
                    "mood": r.mood,
                    "industry": r.industry,
                    "style": r.style,
                    "code_hash": r.code_hash,
                    "feedback_type": r.feedback_type,
                }
                for r in session.scalars(stmt).all()
            ]

    def list_for_generation(self, generation_id: str) -> list[Feedback]:
        with session_scope(self.session_factory) as session:
            rows = session.scalars(
                select(FeedbackRecord)
                .where(FeedbackRecord.generation_id == generation_id)
                .order_by(FeedbackRecord.id)
            ).all()
            return [_feedback_from_row(r) for r in rows]


class SqlEmbeddingRepository(EmbeddingRepository):
    def __init__(self, session_factory: sessionmaker[Session]):
        self.session_factory = session_factory

    def upsert_many(self, embeddings: Iterable[Embedding]) -> int:
        written = 0
        with session_scope(self.session_factory) as session:
            for emb in embeddings:
                row = session.scalars(
                    select(EmbeddingRecord).where(
                        EmbeddingRecord.source_id == emb.source_id,
                        EmbeddingRecord.source_type == emb.source_type,
                    )
                ).first()
                if row is None:
                    session.add(
                        EmbeddingRecord(
                            source_id=emb.source_id,
                            source_type=emb.source_type,
                            text=emb.text,
                            vector=emb.to_bytes(),
                            dimensions=emb.dimensions,
                            created_at=emb.created_at,
                        )
                    )
                    # Flush so a duplicate key later in the same batch updates this row
                    session.flush()
                else:
                    row.text = emb.text
                    row.vector = emb.to_bytes()
                    row.dimensions = emb.dimensions
                    row.created_at = emb.created_at
                written += 1
        return written

    def list_by_type(self, source_type: str) -> list[Embedding]:
        with session_scope(self.session_factory) as session:
            rows = session.scalars(
                select(EmbeddingRecord)
                .where(EmbeddingRecord.source_type == source_type)
                .order_by(EmbeddingRecord.id)
            ).all()
            return [_embedding_from_row(r) for r in rows]

    def get(self, source_id: str, source_type: str) -> Embedding | None:
        with session_scope(self.session_factory) as session:
            row = session.scalars(
                select(EmbeddingRecord).where(
                    EmbeddingRecord.source_id == source_id,
                    EmbeddingRecord.source_type == source_type,
                )
            ).first()
            return _embedding_from_row(row) if row else None

    def delete_by_type(self, source_type: str) -> int:
        with session_scope(self.session_factory) as session:
            result = session.execute(
                delete(EmbeddingRecord)
                .where(EmbeddingRecord.source_type == source_type)
                .execution_options(synchronize_session=False)
            )
            return int(result.rowcount or 0)

    def count(self, source_type: str | None = None) -> int:
        stmt = select(func.count(EmbeddingRecord.id))
        if source_type is not None:
            stmt = stmt.where(EmbeddingRecord.source_type == source_type)
        with session_scope(self.session_factory) as session:
            return int(session.scalar(stmt) or 0)


class SqlTrainingJobRepository(TrainingJobRepository):
    def __init__(self, session_factory: sessionmaker[Session]):
        self.session_factory = session_factory

    def create(self, adapter: str, examples_count: int) -> TrainingJob:
        with session_scope(self.session_factory) as session:
            row = TrainingJobRecord(
                adapter=adapter,
                status=JobStatus.PREPARING.value,
                progress=0.0,
                examples_count=examples_count,
                started_at=utcnow(),
            )
            session.add(row)
            session.flush()
            return _job_from_row(row)

    def update_status(
        self, job_id: int, status: JobStatus, progress: float, error: str | None = None
    ) -> TrainingJob | None:
        with session_scope(self.session_factory) as session:
            row = session.get(TrainingJobRecord, job_id)
            if row is None:
                return None
            row.status = status.value
            row.progress = progress
            row.error = error
            if status.finished and row.completed_at is None:
                row.completed_at = utcnow()
            session.flush()
            return _job_from_row(row)

    def latest(self, adapter: str) -> TrainingJob | None:
        with session_scope(self.session_factory) as session:
            row = session.scalars(
                select(TrainingJobRecord)
                .where(TrainingJobRecord.adapter == adapter)
                .order_by(TrainingJobRecord.id.desc())
                .limit(1)
            ).first()
            return _job_from_row(row) if row else None
