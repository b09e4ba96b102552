"""
Exception hierarchy for oplog tailing.

Decode errors are raised by ``decode`` for a single record and are absorbed by
the ``Oplog`` iterator. ``DatabaseError`` wraps failures reported by the
MongoDB driver.
"""

from typing import Optional, TYPE_CHECKING

if TYPE_CHECKING:
    from .record import FieldAccessError


class OplogError(Exception):
    """Base exception for oplog errors."""
    pass


class DatabaseError(OplogError):
    """A connectivity or cursor error raised by the MongoDB driver."""
    pass


class DecodeError(OplogError):
    """A raw oplog record could not be converted into an ``Operation``."""
    pass


class MissingFieldError(DecodeError):
    """A required field is absent or has an unexpected type."""

    def __init__(self, detail: "FieldAccessError"):
        super().__init__(str(detail))
        self.detail = detail

    @property
    def field(self) -> str:
        return self.detail.field


class UnknownOperationError(DecodeError):
    """The ``op`` field holds a code that is not a known operation type."""

    def __init__(self, code: str):
        super().__init__(f"Unknown operation type found: {code}")
        self.code = code


class InvalidOperationError(DecodeError):
    """The ``op`` field is absent or is not a string."""

    def __init__(self, message: Optional[str] = None):
        super().__init__(message or "Operation type is missing or unreadable")
