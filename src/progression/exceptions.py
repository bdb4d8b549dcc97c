"""Exceptions raised by the progression engine and its gateways."""

from __future__ import annotations


class ProgressionError(Exception):
    """Base class for progression engine errors."""


class ValidationError(ProgressionError, ValueError):
    """Caller input rejected before it reaches the engine."""


class InvalidQualityError(ValidationError):
    """Recall quality outside the 0..5 grading scale."""

    def __init__(self, quality: object):
        self.quality = quality
        super().__init__(f"Recall quality must be an integer 0..5, got {quality!r}")


class InvalidAwardError(ValidationError):
    """XP amount that callers are not allowed to grant."""

    def __init__(self, amount: object):
        self.amount = amount
        super().__init__(f"XP award must be a non-negative integer, got {amount!r}")


class PersistenceError(ProgressionError):
    """
    A Persistence Gateway read or write failed.

    Surfaced to the caller unchanged; the engine never retries internally.
    """
