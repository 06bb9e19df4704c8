from uiforge.db.database import (
    create_db_engine,
    create_session_factory,
    get_session_factory,
    init_db,
    session_scope,
)
from uiforge.db.repositories import (
    EmbeddingRepository,
    FeedbackRepository,
    PatternRepository,
    SqlEmbeddingRepository,
    SqlFeedbackRepository,
    SqlPatternRepository,
)

__all__ = [
    "create_db_engine",
    "create_session_factory",
    "get_session_factory",
    "init_db",
    "session_scope",
    "PatternRepository",
    "FeedbackRepository",
    "EmbeddingRepository",
    "SqlPatternRepository",
    "SqlFeedbackRepository",
    "SqlEmbeddingRepository",
]
