"""
Domain types for the learning loop.

Plain dataclasses shared by the repositories, the feedback pipeline and the
ML helpers. Rows are mapped into these types at the repository boundary so
no caller ever touches an ORM object.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any

import numpy as np


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class SignalKind(str, Enum):
    """Kinds of implicit signal derived from consecutive generations."""

    NEW_TASK = "new_task"
    PRAISE = "praise"
    MAJOR_REDO = "major_redo"
    MINOR_TWEAK = "minor_tweak"
    RAPID_FOLLOWUP = "rapid_followup"
    TIME_GAP = "time_gap"


class Rating(str, Enum):
    POSITIVE = "positive"
    NEGATIVE = "negative"
    NEUTRAL = "neutral"


class FeedbackSource(str, Enum):
    EXPLICIT = "explicit"
    IMPLICIT = "implicit"


class SourceType(str, Enum):
    """Common embedding source kinds. Any string is accepted by the store."""

    COMPONENT = "component"
    PROMPT = "prompt"
    DESCRIPTION = "description"


@dataclass(frozen=True)
class Generation:
    """
    One generation call.

    code_hash is empty until the generation is recorded; recording returns a
    copy with the hash of the produced artifact filled in.
    """

    id: str
    session_id: str
    component_type: str
    tool: str
    framework: str = ""
    variant: str = ""
    mood: str = ""
    industry: str = ""
    style: str = ""
    prompt: str = ""
    timestamp: datetime = field(default_factory=utcnow)
    code_hash: str = ""


@dataclass(frozen=True)
class ImplicitSignal:
    """A single weighted behavioral cue."""

    kind: SignalKind
    score: float
    confidence: float
    reason: str


@dataclass
class PromptClassification:
    """Signals for one pair of generations plus their confidence-weighted combination."""

    signals: list[ImplicitSignal] = field(default_factory=list)
    combined_score: float = 0.0
    combined_confidence: float = 0.0

    def has(self, kind: SignalKind) -> bool:
        return any(s.kind == kind for s in self.signals)


@dataclass(frozen=True)
class Feedback:
    """An explicit or implicit feedback event. Never mutated after creation."""

    id: str
    generation_id: str
    rating: Rating
    source: FeedbackSource
    score: float
    confidence: float
    timestamp: datetime
    comment: str | None = None


@dataclass(frozen=True)
class FeedbackStats:
    total: int
    explicit: int
    implicit: int
    avg_score: float
    positive: int
    negative: int
    neutral: int


@dataclass(frozen=True)
class ScoredPrompt:
    """Raw (prompt, score, component type, style) export tuple."""

    prompt: str
    score: float
    component_type: str | None
    style: str | None


@dataclass(frozen=True)
class CodePattern:
    """A structural skeleton tracked by the pattern ledger."""

    id: str
    skeleton_hash: str
    skeleton: str
    snippet: str
    frequency: int
    avg_score: float
    promoted: bool
    component_type: str | None = None
    category: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None


@dataclass(frozen=True)
class PatternStats:
    total: int
    promoted: int
    eligible: int
    avg_frequency: float
    avg_score: float


@dataclass
class Embedding:
    """A stored vector and the text it was computed from."""

    source_id: str
    source_type: str
    text: str
    vector: np.ndarray
    dimensions: int
    created_at: datetime = field(default_factory=utcnow)

    @classmethod
    def create(cls, source_id: str, source_type: str, text: str, vector: Any) -> Embedding:
        """Build an embedding from any array-like, coercing to float32."""
        arr = np.asarray(vector, dtype=np.float32).reshape(-1)
        return cls(
            source_id=source_id,
            source_type=str(source_type.value if isinstance(source_type, Enum) else source_type),
            text=text,
            vector=arr,
            dimensions=int(arr.shape[0]),
        )

    def to_bytes(self) -> bytes:
        """Serialize the vector for BLOB storage."""
        return np.asarray(self.vector, dtype=np.float32).tobytes()

    @staticmethod
    def from_bytes(data: bytes) -> np.ndarray:
        """Deserialize a vector from BLOB storage."""
        return np.frombuffer(data, dtype=np.float32).copy()


@dataclass(frozen=True)
class SimilarityResult:
    id: str
    similarity: float
    text: str


@dataclass(frozen=True)
class TrainingExample:
    """A scored feedback row projected for adapter training."""

    prompt: str
    code_hash: str
    score: float
    params: dict[str, str] = field(default_factory=dict)


class JobStatus(str, Enum):
    """Lifecycle of a training job. IDLE is reported for adapters with no job yet."""

    IDLE = "idle"
    PREPARING = "preparing"
    TRAINING = "training"
    COMPLETE = "complete"
    FAILED = "failed"

    @property
    def finished(self) -> bool:
        return self in (JobStatus.COMPLETE, JobStatus.FAILED)


@dataclass(frozen=True)
class TrainingJob:
    """Status of one adapter training run."""

    adapter: str
    status: JobStatus
    progress: float = 0.0
    id: int | None = None
    examples_count: int = 0
    error: str | None = None
    started_at: datetime | None = None
    completed_at: datetime | None = None
