"""
Feedback store - durable log of explicit and implicit feedback.

Each row is denormalized with the parameters of the generation it refers to,
taken from the session cache at write time. When the generation is no longer
cached those fields are left empty rather than failing the write.
"""

from __future__ import annotations

import uuid

from loguru import logger

from uiforge.db.repositories import FeedbackRepository
from uiforge.domain import (
    Feedback,
    FeedbackSource,
    FeedbackStats,
    PromptClassification,
    Rating,
    ScoredPrompt,
    utcnow,
)
from uiforge.exceptions import InvalidRatingError
from uiforge.feedback.session_cache import SessionCache

POSITIVE_THRESHOLD = 0.3
NEGATIVE_THRESHOLD = -0.3

EXPLICIT_SCORES = {
    Rating.POSITIVE: 1.5,
    Rating.NEGATIVE: -1.0,
}


def rating_for_score(score: float) -> Rating:
    """Map a combined score onto a rating using the ±0.3 thresholds."""
    if score > POSITIVE_THRESHOLD:
        return Rating.POSITIVE
    if score < NEGATIVE_THRESHOLD:
        return Rating.NEGATIVE
    return Rating.NEUTRAL


def _new_feedback_id(source: FeedbackSource) -> str:
    prefix = "efb" if source == FeedbackSource.EXPLICIT else "ifb"
    return f"{prefix}-{uuid.uuid4().hex[:12]}"


class FeedbackStore:
    """
    Sole writer of feedback rows.

    Example:
        >>> store = FeedbackStore(SqlFeedbackRepository(factory), SessionCache())
        >>> store.record_explicit("gen-1", "positive")
        >>> store.get_stats().positive
        1
    """

    def __init__(self, repository: FeedbackRepository, session_cache: SessionCache):
        self.repository = repository
        self.session_cache = session_cache

    def _persist(self, feedback: Feedback) -> Feedback:
        cached = self.session_cache.find_generation(feedback.generation_id)
        if cached is None:
            logger.debug(f"No cached context for generation {feedback.generation_id}; storing without params")
            return self.repository.add(feedback)

        gen = cached.generation
        return self.repository.add(
            feedback,
            prompt=gen.prompt,
            component_type=gen.component_type,
            variant=gen.variant,
            mood=gen.mood,
            industry=gen.industry,
            style=gen.style,
            code_hash=gen.code_hash,
        )

    def record_implicit(self, generation_id: str, classification: PromptClassification) -> Feedback | None:
        """
        Store implicit feedback derived from a classification.

        Returns None (and writes nothing) when the classification has no signals.
        """
        if not classification.signals:
            return None

        feedback = Feedback(
            id=_new_feedback_id(FeedbackSource.IMPLICIT),
            generation_id=generation_id,
            rating=rating_for_score(classification.combined_score),
            source=FeedbackSource.IMPLICIT,
            score=classification.combined_score,
            confidence=classification.combined_confidence,
            timestamp=utcnow(),
        )
        self._persist(feedback)
        logger.debug(
            f"Implicit feedback for {generation_id}: score={feedback.score:.3f} "
            f"signals={len(classification.signals)}"
        )
        return feedback

    def record_explicit(self, generation_id: str, rating: Rating | str, comment: str | None = None) -> Feedback:
        """Store a user rating. Positive scores +1.5, negative -1.0, always confidence 1.0."""
        try:
            rating = Rating(rating)
        except ValueError as e:
            raise InvalidRatingError(f"Invalid rating: {rating!r}. Use 'positive' or 'negative'") from e
        if rating not in EXPLICIT_SCORES:
            raise InvalidRatingError(f"Explicit feedback must be 'positive' or 'negative', got {rating.value!r}")

        feedback = Feedback(
            id=_new_feedback_id(FeedbackSource.EXPLICIT),
            generation_id=generation_id,
            rating=rating,
            source=FeedbackSource.EXPLICIT,
            score=EXPLICIT_SCORES[rating],
            confidence=1.0,
            comment=comment,
            timestamp=utcnow(),
        )
        self._persist(feedback)
        logger.info(f"Explicit feedback recorded for {generation_id}: {rating.value}")
        return feedback

    # ========================================
    # Read operations
    # ========================================

    def get_aggregate_score(self, component_type: str) -> float:
        """Average score for a component type, 0 when there is no feedback."""
        avg, count = self.repository.average_score(component_type=component_type)
        return avg if count else 0.0

    def get_count(self) -> int:
        return self.repository.count()

    def get_counts(self) -> dict[str, int]:
        return {
            "total": self.repository.count(),
            "explicit": self.repository.count(FeedbackSource.EXPLICIT),
            "implicit": self.repository.count(FeedbackSource.IMPLICIT),
        }

    def get_stats(self) -> FeedbackStats:
        counts = self.get_counts()
        avg, _ = self.repository.average_score()
        positive = self.repository.count_by_score(above=POSITIVE_THRESHOLD)
        negative = self.repository.count_by_score(below=NEGATIVE_THRESHOLD)
        return FeedbackStats(
            total=counts["total"],
            explicit=counts["explicit"],
            implicit=counts["implicit"],
            avg_score=avg,
            positive=positive,
            negative=negative,
            neutral=counts["total"] - positive - negative,
        )

    def export_training_data(self, min_abs_score: float | None = None) -> list[ScoredPrompt]:
        """Raw (prompt, score, component type, style) tuples, most recent first."""
        return self.repository.list_prompts(min_abs_score=min_abs_score)

    def get_feedback(self, generation_id: str) -> list[Feedback]:
        return self.repository.list_for_generation(generation_id)
