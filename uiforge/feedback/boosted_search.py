"""
Feedback-boosted search - rescales catalog search hits by accumulated feedback.

Component types with a positive feedback history are nudged up, and types users
keep rejecting are nudged down, by at most ±30%. The catalog search itself is
external; this module only reorders its results.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Any

from uiforge.db.repositories import FeedbackRepository

FEEDBACK_BOOST_FACTOR = 0.3
MIN_FEEDBACK_FOR_BOOST = 3
SNIPPET_BOOST_WEIGHT = 0.5
MIN_BOOST = 0.7
MAX_BOOST = 1.3


@dataclass(frozen=True)
class SearchHit:
    """One catalog search result."""

    id: str
    component_type: str
    score: float
    payload: dict[str, Any] = field(default_factory=dict)


def _boost_term(avg_score: float) -> float:
    # Feedback scores live in roughly [-1, 2]; halve before weighting
    return (avg_score / 2) * FEEDBACK_BOOST_FACTOR


class FeedbackBooster:
    def __init__(self, repository: FeedbackRepository, min_feedback: int = MIN_FEEDBACK_FOR_BOOST):
        self.repository = repository
        self.min_feedback = min_feedback

    def _average(self, component_type: str, style: str | None = None, min_count: int | None = None) -> float | None:
        avg, count = self.repository.average_score(component_type=component_type, style=style)
        if count < (self.min_feedback if min_count is None else min_count):
            return None
        return avg

    def get_feedback_boost(self, component_type: str) -> float:
        """Multiplier in [0.7, 1.3] for a component type; 1.0 without enough feedback."""
        avg = self._average(component_type)
        if avg is None:
            return 1.0
        return max(MIN_BOOST, min(MAX_BOOST, 1 + _boost_term(avg)))

    def boost(self, results: list[SearchHit], style: str | None = None) -> list[SearchHit]:
        """
        Apply type-level and (type, style) boosts, then re-sort by boosted score.

        The type-level boost needs at least `min_feedback` rows. The (type, style)
        boost applies whenever a style is given and any matching rows exist, at
        half the weight of the type-level boost. Equal scores keep their input order.
        """
        if not results:
            return []

        type_avgs: dict[str, float | None] = {}
        style_avgs: dict[str, float | None] = {}
        for hit in results:
            if hit.component_type not in type_avgs:
                type_avgs[hit.component_type] = self._average(hit.component_type)
                style_avgs[hit.component_type] = (
                    self._average(hit.component_type, style, min_count=1) if style is not None else None
                )

        boosted = []
        for hit in results:
            boost = 0.0
            type_avg = type_avgs[hit.component_type]
            if type_avg is not None:
                boost += _boost_term(type_avg)
            style_avg = style_avgs[hit.component_type]
            if style_avg is not None:
                boost += _boost_term(style_avg) * SNIPPET_BOOST_WEIGHT
            boosted.append(replace(hit, score=hit.score * (1 + boost)))

        boosted.sort(key=lambda h: h.score, reverse=True)
        return boosted
