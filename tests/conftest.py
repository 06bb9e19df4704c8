"""
Pytest Configuration and Fixtures.

This file configures pytest and provides shared fixtures for all tests.
"""
import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

# Add project root to path
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from uiforge.db.database import create_session_factory  # noqa: E402
from uiforge.db.repositories import (  # noqa: E402
    SqlEmbeddingRepository,
    SqlFeedbackRepository,
    SqlPatternRepository,
)
from uiforge.domain import Generation  # noqa: E402
from uiforge.feedback.feedback_store import FeedbackStore  # noqa: E402
from uiforge.feedback.pattern_ledger import PatternLedger  # noqa: E402
from uiforge.feedback.session_cache import SessionCache  # noqa: E402
from uiforge.ml.embedding_store import EmbeddingStore  # noqa: E402


def pytest_configure(config):
    """Configure pytest markers."""
    config.addinivalue_line("markers", "unit: Unit tests")
    config.addinivalue_line("markers", "integration: Integration tests (in-memory database)")
    config.addinivalue_line("markers", "smoke: Smoke tests for CLI commands")
    config.addinivalue_line("markers", "slow: Slow tests")


def pytest_collection_modifyitems(config, items):
    """Automatically mark tests based on their location."""
    for item in items:
        # Mark based on test file location
        if "unit" in str(item.fspath):
            item.add_marker(pytest.mark.unit)
        elif "integration" in str(item.fspath):
            item.add_marker(pytest.mark.integration)
        elif "smoke" in str(item.fspath):
            item.add_marker(pytest.mark.smoke)


@pytest.fixture(scope="session")
def project_root():
    """Return the project root directory."""
    return PROJECT_ROOT


# ========================================
# Database
# ========================================


@pytest.fixture
def session_factory():
    """Fresh in-memory SQLite database with all learning tables."""
    return create_session_factory("sqlite://")


@pytest.fixture
def pattern_repo(session_factory):
    return SqlPatternRepository(session_factory)


@pytest.fixture
def feedback_repo(session_factory):
    return SqlFeedbackRepository(session_factory)


@pytest.fixture
def embedding_repo(session_factory):
    return SqlEmbeddingRepository(session_factory)


@pytest.fixture
def session_cache():
    return SessionCache(max_sessions=16, ttl_seconds=None)


@pytest.fixture
def feedback_store(feedback_repo, session_cache):
    return FeedbackStore(feedback_repo, session_cache)


@pytest.fixture
def ledger(pattern_repo):
    return PatternLedger(pattern_repo)


@pytest.fixture
def embedding_store(embedding_repo):
    return EmbeddingStore(embedding_repo)


# ========================================
# Sample data
# ========================================

BASE_TIME = datetime(2025, 3, 1, 12, 0, 0, tzinfo=timezone.utc)


def make_generation(
    gen_id: str = "gen-001",
    session_id: str = "session-1",
    component_type: str = "card",
    tool: str = "generate_ui_component",
    framework: str = "react",
    seconds: float = 0,
    **kwargs,
) -> Generation:
    """Build a Generation offset `seconds` from a fixed base time."""
    return Generation(
        id=gen_id,
        session_id=session_id,
        component_type=component_type,
        tool=tool,
        framework=framework,
        timestamp=BASE_TIME + timedelta(seconds=seconds),
        **kwargs,
    )


@pytest.fixture
def sample_generation():
    """A pricing card generation with full parameters."""
    return make_generation(
        variant="pricing",
        mood="professional",
        industry="saas",
        style="linear-modern",
        prompt="A pricing card with three tiers",
    )


@pytest.fixture
def sample_markup():
    """A small JSX card artifact."""
    return (
        '<div className="flex flex-col gap-4 rounded-lg p-6">'
        "<h2>Pro</h2>"
        '<p className="text-sm">Everything in Free, plus more.</p>'
        '<button aria-label="Choose Pro">Choose</button>'
        "</div>"
    )


@pytest.fixture
def make_gen():
    """Factory for generations at fixed offsets from a base time."""
    return make_generation
