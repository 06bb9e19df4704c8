# SQLAlchemy models
from .base import Base
from .learning import CodePatternRecord, EmbeddingRecord, FeedbackRecord, TrainingJobRecord

__all__ = [
    "Base",
    "CodePatternRecord",
    "FeedbackRecord",
    "EmbeddingRecord",
    "TrainingJobRecord",
]
