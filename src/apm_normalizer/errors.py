"""Exceptions surfaced by the normalization pipeline.

Almost every anomaly is recovered locally (fail-open) and only makes a record
smaller. These exceptions cover the two cases that reach the caller: a caller
contract violation and a fatal inability to begin stack recovery.
"""
from __future__ import annotations

__all__ = ["NormalizationError", "InvalidCaptureInput", "StackRecoveryError"]


class NormalizationError(Exception):
    """Base class for errors raised out of the pipeline."""


class InvalidCaptureInput(NormalizationError, TypeError):
    """The caller passed a value the requested extractor cannot accept."""


class StackRecoveryError(NormalizationError):
    """Walking an exception's traceback failed before any frame was recovered."""
