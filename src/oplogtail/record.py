"""
Typed field access over raw oplog records.

Documents read from ``local.oplog.rs`` are schema-free mappings. ``LogRecord``
wraps one and exposes strict accessors that either return a value of the
requested type or raise ``FieldAccessError`` naming the field, the expected
kind and the kind actually found. A missing field (``ValueKind.MISSING``) is
kept distinct from a field of the wrong type.
"""

import copy
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Iterator, Mapping

from bson import ObjectId, Decimal128
from bson.int64 import Int64
from bson.timestamp import Timestamp

_INT32_MIN = -(2 ** 31)
_INT32_MAX = 2 ** 31 - 1

_MISSING = object()


class ValueKind(str, Enum):
    """Dynamic type of a value stored in a BSON document."""
    MISSING = "missing"
    NULL = "null"
    BOOLEAN = "boolean"
    INT32 = "int32"
    INT64 = "int64"
    DOUBLE = "double"
    DECIMAL = "decimal"
    STRING = "string"
    DOCUMENT = "document"
    ARRAY = "array"
    TIMESTAMP = "timestamp"
    DATETIME = "datetime"
    OBJECT_ID = "objectId"
    BINARY = "binary"
    OTHER = "other"


def kind_of(value: Any) -> ValueKind:
    """Classify a decoded BSON value.

    Args:
        value: Value as returned by the driver's BSON decoder

    Returns:
        The matching ``ValueKind``
    """
    if value is _MISSING:
        return ValueKind.MISSING
    if value is None:
        return ValueKind.NULL
    # bool is a subclass of int, check it first
    if isinstance(value, bool):
        return ValueKind.BOOLEAN
    if isinstance(value, Int64):
        return ValueKind.INT64
    if isinstance(value, int):
        if _INT32_MIN <= value <= _INT32_MAX:
            return ValueKind.INT32
        return ValueKind.INT64
    if isinstance(value, float):
        return ValueKind.DOUBLE
    if isinstance(value, Decimal128):
        return ValueKind.DECIMAL
    if isinstance(value, str):
        return ValueKind.STRING
    if isinstance(value, Mapping):
        return ValueKind.DOCUMENT
    if isinstance(value, (list, tuple)):
        return ValueKind.ARRAY
    if isinstance(value, Timestamp):
        return ValueKind.TIMESTAMP
    if isinstance(value, datetime):
        return ValueKind.DATETIME
    if isinstance(value, ObjectId):
        return ValueKind.OBJECT_ID
    if isinstance(value, bytes):
        return ValueKind.BINARY
    return ValueKind.OTHER


class FieldAccessError(Exception):
    """A field could not be read with the requested type."""

    def __init__(self, field: str, expected: ValueKind, actual: ValueKind):
        self.field = field
        self.expected = expected
        self.actual = actual
        if actual is ValueKind.MISSING:
            message = f"Field '{field}' is not present (expected {expected.value})"
        else:
            message = f"Field '{field}' has type {actual.value}, expected {expected.value}"
        super().__init__(message)

    @property
    def not_present(self) -> bool:
        return self.actual is ValueKind.MISSING

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, FieldAccessError):
            return NotImplemented
        return (self.field, self.expected, self.actual) == (other.field, other.expected, other.actual)

    def __hash__(self) -> int:
        return hash((self.field, self.expected, self.actual))


class LogRecord(Mapping):
    """Read-only view of a raw oplog document with strict typed accessors.

    Example:
        >>> record = LogRecord({"op": "i", "ns": "foo.bar"})
        >>> record.get_str("ns")
        'foo.bar'
    """

    def __init__(self, document: Mapping[str, Any]):
        if not isinstance(document, Mapping):
            raise TypeError("document must be a mapping")
        self._document = document

    def __getitem__(self, name: str) -> Any:
        return self._document[name]

    def __iter__(self) -> Iterator[str]:
        return iter(self._document)

    def __len__(self) -> int:
        return len(self._document)

    def __repr__(self) -> str:
        return f"LogRecord({self._document!r})"

    def kind(self, name: str) -> ValueKind:
        """Return the dynamic type of a field, ``MISSING`` if absent."""
        return kind_of(self._document.get(name, _MISSING))

    def _require(self, name: str, expected: ValueKind, *accepted: ValueKind) -> Any:
        value = self._document.get(name, _MISSING)
        actual = kind_of(value)
        if actual not in (accepted or (expected,)):
            raise FieldAccessError(name, expected, actual)
        return value

    def get_str(self, name: str) -> str:
        """Read a string field."""
        return self._require(name, ValueKind.STRING)

    def get_int64(self, name: str) -> int:
        """Read an integer field.

        The Python driver decodes both BSON int32 and int64 to ``int``, so
        either is accepted. Booleans are rejected.
        """
        value = self._require(name, ValueKind.INT64, ValueKind.INT64, ValueKind.INT32)
        return int(value)

    def get_document(self, name: str) -> Dict[str, Any]:
        """Read an embedded document, returning an owned deep copy."""
        value = self._require(name, ValueKind.DOCUMENT)
        try:
            return copy.deepcopy(dict(value))
        except (TypeError, copy.Error, RecursionError) as e:
            raise FieldAccessError(name, ValueKind.DOCUMENT, ValueKind.OTHER) from e

    def get_timestamp(self, name: str) -> int:
        """Read a BSON timestamp as its compound 64-bit value.

        Returns:
            ``time << 32 | inc`` where ``time`` is POSIX seconds and ``inc`` the
            ordinal within that second
        """
        value = self._require(name, ValueKind.TIMESTAMP)
        return (value.time << 32) | value.inc
