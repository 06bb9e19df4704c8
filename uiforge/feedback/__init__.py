"""
Feedback loop: implicit/explicit feedback, structural fingerprints, pattern
ledger and promotion into the component catalog.
"""

from uiforge.feedback.boosted_search import FeedbackBooster, SearchHit
from uiforge.feedback.feedback_store import FeedbackStore, rating_for_score
from uiforge.feedback.fingerprint import Fingerprint, extract_skeleton, fingerprint, hash_skeleton, is_promotable
from uiforge.feedback.learning_loop import GenerationOutcome, LearningLoop
from uiforge.feedback.pattern_ledger import PatternLedger
from uiforge.feedback.prompt_classifier import classify_prompt_pair, classify_prompt_text
from uiforge.feedback.promotion import (
    CatalogEntry,
    CatalogPort,
    InMemoryCatalog,
    JsonFileCatalog,
    PromotionEngine,
)
from uiforge.feedback.session_cache import CachedGeneration, SessionCache

__all__ = [
    # Fingerprinting
    "Fingerprint",
    "extract_skeleton",
    "fingerprint",
    "hash_skeleton",
    "is_promotable",
    # Classification
    "classify_prompt_pair",
    "classify_prompt_text",
    # Feedback
    "FeedbackStore",
    "rating_for_score",
    "SessionCache",
    "CachedGeneration",
    "FeedbackBooster",
    "SearchHit",
    # Patterns
    "PatternLedger",
    "PromotionEngine",
    "CatalogEntry",
    "CatalogPort",
    "InMemoryCatalog",
    "JsonFileCatalog",
    # Facade
    "LearningLoop",
    "GenerationOutcome",
]
