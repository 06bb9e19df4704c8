"""
Learning loop - the entry point the generation pipeline calls into.

Wires together the session cache, classifier, feedback store, pattern ledger,
promotion engine, embedding store, training exporter and training job ledger.
Recording a generation is strictly best-effort: nothing in here may abort the
generation that triggered it.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from pathlib import Path
from typing import Any

from loguru import logger
from sqlalchemy.orm import Session, sessionmaker

from config import Settings, get_settings
from uiforge.db.database import create_session_factory
from uiforge.db.repositories import (
    SqlEmbeddingRepository,
    SqlFeedbackRepository,
    SqlPatternRepository,
    SqlTrainingJobRepository,
)
from uiforge.domain import (
    CodePattern,
    Feedback,
    Generation,
    PromptClassification,
    Rating,
    SimilarityResult,
    TrainingJob,
)
from uiforge.feedback.feedback_store import FeedbackStore
from uiforge.feedback.fingerprint import Fingerprint, fingerprint, hash_content
from uiforge.feedback.pattern_ledger import PatternLedger
from uiforge.feedback.prompt_classifier import classify_prompt_pair
from uiforge.feedback.promotion import CatalogPort, InMemoryCatalog, JsonFileCatalog, PromotionEngine
from uiforge.feedback.session_cache import CachedGeneration, SessionCache
from uiforge.ml.embedding_store import EmbeddingStore
from uiforge.ml.training_exporter import AdapterType, ExportResult, export_for_adapter
from uiforge.ml.training_jobs import TrainingJobLedger, TrainingSummary, start_training_job, training_summary


@dataclass
class GenerationOutcome:
    """What recording one generation produced. Every field is optional."""

    generation: Generation | None = None
    fingerprint: Fingerprint | None = None
    pattern: CodePattern | None = None
    classification: PromptClassification | None = None
    implicit_feedback: Feedback | None = None


class LearningLoop:
    def __init__(
        self,
        session_cache: SessionCache,
        feedback_store: FeedbackStore,
        pattern_ledger: PatternLedger,
        promotion_engine: PromotionEngine,
        embedding_store: EmbeddingStore,
        training_jobs: TrainingJobLedger,
        semantic_top_k: int = 5,
        semantic_threshold: float = 0.3,
        training_output_dir: str | Path = "data/training",
        training_min_abs_score: float = 0.3,
        training_export_limit: int = 10_000,
    ):
        self.session_cache = session_cache
        self.feedback_store = feedback_store
        self.pattern_ledger = pattern_ledger
        self.promotion_engine = promotion_engine
        self.embedding_store = embedding_store
        self.training_jobs = training_jobs
        self.semantic_top_k = semantic_top_k
        self.semantic_threshold = semantic_threshold
        self.training_output_dir = Path(training_output_dir)
        self.training_min_abs_score = training_min_abs_score
        self.training_export_limit = training_export_limit

    @classmethod
    def from_settings(
        cls,
        settings: Settings | None = None,
        session_factory: sessionmaker[Session] | None = None,
        catalog: CatalogPort | None = None,
    ) -> LearningLoop:
        """Build a fully wired loop from configuration."""
        settings = settings or get_settings()
        session_factory = session_factory or create_session_factory(
            settings.database_url, echo=settings.database_echo
        )
        if catalog is None:
            catalog = JsonFileCatalog(settings.catalog_path) if settings.catalog_path else InMemoryCatalog()

        session_cache = SessionCache(
            max_sessions=settings.session_cache_max_sessions,
            ttl_seconds=settings.session_cache_ttl_seconds,
        )
        ledger = PatternLedger(
            SqlPatternRepository(session_factory),
            min_frequency=settings.promotion_min_frequency,
            min_score=settings.promotion_min_score,
        )
        return cls(
            session_cache=session_cache,
            feedback_store=FeedbackStore(SqlFeedbackRepository(session_factory), session_cache),
            pattern_ledger=ledger,
            promotion_engine=PromotionEngine(ledger, catalog),
            embedding_store=EmbeddingStore(SqlEmbeddingRepository(session_factory)),
            training_jobs=TrainingJobLedger(SqlTrainingJobRepository(session_factory)),
            semantic_top_k=settings.semantic_top_k,
            semantic_threshold=settings.semantic_threshold,
            training_output_dir=settings.training_output_dir,
            training_min_abs_score=settings.training_min_abs_score,
            training_export_limit=settings.training_export_limit,
        )

    def record_generation(
        self,
        generation: Generation,
        artifact_text: str,
        prompt_context: str | None = None,
        score: float | None = None,
    ) -> GenerationOutcome:
        """
        Record one generation.

        1. Stamp the artifact's content hash onto the generation
        2. Classify it against the previous generation of the same session,
           store the implicit feedback for that previous generation and
           rescore the previous generation's pattern sighting with it
        3. Record the artifact's skeleton in the pattern ledger, scored with
           `score` when given, else 0.0
        4. Remember it as the session's latest generation

        Step 4 runs even when step 2 or 3 fails, so a stored implicit row is
        never paired again. Any failure is logged and an empty outcome
        returned.
        """
        outcome = GenerationOutcome()
        sighting_score = 0.0 if score is None else score
        try:
            generation = replace(generation, code_hash=hash_content(artifact_text))
            outcome.generation = generation
            outcome.fingerprint = fingerprint(artifact_text)

            previous = self.session_cache.last_for_session(generation.session_id)
            try:
                if previous is not None:
                    outcome.classification = classify_prompt_pair(
                        previous.generation, generation, prompt_context or ""
                    )
                    outcome.implicit_feedback = self.feedback_store.record_implicit(
                        previous.generation.id, outcome.classification
                    )
                    self._credit_sighting(previous, outcome.implicit_feedback)
            finally:
                self.session_cache.put(generation)

            outcome.pattern = self.pattern_ledger.record_pattern(
                outcome.fingerprint.hash,
                outcome.fingerprint.skeleton,
                artifact_text,
                component_type=generation.component_type or None,
                score=sighting_score,
            )
            self.session_cache.record_sighting(generation.id, outcome.fingerprint.hash, sighting_score)
        except Exception:  # Learning must never abort the generation path
            logger.exception(f"Failed to record generation {generation.id}")
            return GenerationOutcome()

        return outcome

    def _credit_sighting(self, cached: CachedGeneration, feedback: Feedback | None) -> None:
        """Rescore a cached generation's pattern sighting with its latest feedback score."""
        if feedback is None or not cached.skeleton_hash:
            return
        self.pattern_ledger.rescore_sighting(cached.skeleton_hash, cached.sighting_score, feedback.score)
        self.session_cache.record_sighting(cached.generation.id, cached.skeleton_hash, feedback.score)

    def record_explicit_feedback(self, generation_id: str, rating: Rating | str, comment: str | None = None) -> Feedback:
        """
        Store a user rating. While the generation is still cached its pattern
        sighting is rescored with the rating's score.
        """
        cached = self.session_cache.find_generation(generation_id)
        feedback = self.feedback_store.record_explicit(generation_id, rating, comment)
        if cached is not None:
            try:
                self._credit_sighting(cached, feedback)
            except Exception:  # The feedback row is already stored
                logger.exception(f"Failed to rescore pattern for generation {generation_id}")
        return feedback

    def run_promotion_cycle(self) -> int:
        return self.promotion_engine.run_cycle()

    def semantic_search(
        self,
        query_vector: Any,
        source_type: str,
        top_k: int | None = None,
        threshold: float | None = None,
    ) -> list[SimilarityResult]:
        return self.embedding_store.semantic_search(
            query_vector,
            source_type,
            top_k=self.semantic_top_k if top_k is None else top_k,
            threshold=self.semantic_threshold if threshold is None else threshold,
        )

    def export_for_adapter(self, adapter: AdapterType | str, output_dir: str | Path | None = None) -> ExportResult:
        return export_for_adapter(
            adapter,
            self.feedback_store.repository,
            output_dir or self.training_output_dir,
            min_abs_score=self.training_min_abs_score,
            limit=self.training_export_limit,
        )

    def start_training_job(
        self, adapter: AdapterType | str, output_dir: str | Path | None = None
    ) -> tuple[TrainingJob, ExportResult]:
        return start_training_job(
            adapter,
            self.training_jobs,
            self.feedback_store.repository,
            output_dir or self.training_output_dir,
            min_abs_score=self.training_min_abs_score,
            limit=self.training_export_limit,
        )

    def training_summary(self) -> TrainingSummary:
        return training_summary(self.training_jobs, self.feedback_store.repository, self.training_min_abs_score)
