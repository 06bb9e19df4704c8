"""Exception types raised by the learning loop."""

from __future__ import annotations


class LearningError(Exception):
    """Base class for learning loop errors."""


class CatalogWriteError(LearningError):
    """A catalog adapter could not persist a promoted entry."""


class InvalidRatingError(LearningError, ValueError):
    """An explicit rating was not 'positive' or 'negative'."""


class UnknownAdapterError(LearningError, ValueError):
    """A training adapter name is not recognised."""


class UnknownJobError(LearningError):
    """A training job id does not exist."""
