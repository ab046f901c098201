"""
Error types for Inkbridge.

Each reconciliation failure mode has its own exception so callers can decide
how far an error is allowed to propagate (one line, one action, one page).
"""

from typing import Optional


class InkbridgeError(Exception):
    """Base class for all Inkbridge errors."""


class GeometryMissing(InkbridgeError):
    """A recognized line or stroke carries no usable vertical geometry."""


class RecognitionError(InkbridgeError):
    """The handwriting recognition service could not produce a result."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class NoteDatabaseError(InkbridgeError):
    """A request to the note database (Logseq HTTP API) failed."""


class PersistenceFailure(InkbridgeError):
    """A create or update action could not be written to the note database."""


class OrderingViolation(InkbridgeError):
    """A child block was about to be created under a parent that does not exist."""
