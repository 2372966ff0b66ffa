"""
Error taxonomy for the face capture pipeline.

Each failure kind has its own type so callers can tell fatal conditions
(InitializationError) apart from per-call ones they may retry or report.
"""

from __future__ import annotations


class PipelineError(Exception):
    """Base class for all pipeline errors."""


class InitializationError(PipelineError):
    """
    The process cannot serve requests.

    Raised for a missing or corrupt classifier model, or a capture device
    that cannot be opened at startup.
    """


class CaptureError(PipelineError):
    """A frame could not be captured (device transiently unavailable, timeout)."""


class InvalidInputError(PipelineError, ValueError):
    """
    Caller bug: malformed image buffer, out-of-bounds rectangle or
    out-of-range parameter.
    """


class DecodeError(PipelineError):
    """Encoded container bytes could not be decoded into an image."""
