"""
Pattern ledger - tracks how often each structural skeleton is generated and
how well it scores.

Every generation is recorded here, whether or not feedback exists for it, so
structural popularity is visible before any scoring happens.
"""

from __future__ import annotations

from loguru import logger

from uiforge.db.repositories import PatternRepository
from uiforge.domain import CodePattern, PatternStats


class PatternLedger:
    """Running frequency and average score per skeleton hash."""

    def __init__(self, repository: PatternRepository, min_frequency: int = 3, min_score: float = 0.5):
        self.repository = repository
        self.min_frequency = min_frequency
        self.min_score = min_score

    def record_pattern(
        self,
        skeleton_hash: str,
        skeleton: str,
        snippet: str,
        component_type: str | None = None,
        category: str | None = None,
        score: float = 0.0,
    ) -> CodePattern:
        """
        Insert a new skeleton or fold another sighting into an existing one.

        New hashes start at frequency 1 with avg_score = score. Repeat sightings
        increment the frequency and update the running average:

            avg_n = (avg_{n-1} * (n - 1) + score_n) / n
        """
        pattern = self.repository.record_sighting(
            skeleton_hash=skeleton_hash,
            skeleton=skeleton,
            snippet=snippet,
            component_type=component_type,
            category=category,
            score=score,
        )
        logger.debug(
            f"Pattern {skeleton_hash}: frequency={pattern.frequency} avg_score={pattern.avg_score:.3f}"
        )
        return pattern

    def rescore_sighting(self, skeleton_hash: str, old_score: float, new_score: float) -> CodePattern | None:
        """
        Swap the score of one sighting already folded into the average.

        Frequency is unchanged:

            avg' = avg + (new_score - old_score) / frequency

        Returns None for an unknown hash.
        """
        pattern = self.repository.rescore_sighting(skeleton_hash, old_score, new_score)
        if pattern is not None:
            logger.debug(
                f"Pattern {skeleton_hash} rescored {old_score:+.3f} -> {new_score:+.3f}: "
                f"avg_score={pattern.avg_score:.3f}"
            )
        return pattern

    def get_promotable(self) -> list[CodePattern]:
        """Unpromoted patterns over both thresholds, best evidence first."""
        return self.repository.list_promotable(self.min_frequency, self.min_score)

    def is_eligible(self, pattern: CodePattern) -> bool:
        return (
            not pattern.promoted
            and pattern.frequency >= self.min_frequency
            and pattern.avg_score > self.min_score
        )

    def get(self, skeleton_hash: str) -> CodePattern | None:
        return self.repository.get_by_hash(skeleton_hash)

    def get_by_id(self, pattern_id: str) -> CodePattern | None:
        return self.repository.get(pattern_id)

    def list_patterns(self, limit: int = 50) -> list[CodePattern]:
        return self.repository.list_patterns(limit=limit)

    def mark_promoted(self, pattern_id: str) -> bool:
        return self.repository.mark_promoted(pattern_id)

    def stats(self) -> PatternStats:
        return self.repository.stats(self.min_frequency, self.min_score)
