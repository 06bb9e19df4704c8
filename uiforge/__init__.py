"""
uiforge learning loop.

Records UI generation events, infers implicit feedback, fingerprints generated
markup, promotes well-scoring patterns into the component catalog, stores
embeddings for semantic retrieval, and exports labeled data for adapter training.
"""

__version__ = "1.0.0"
