"""
Typed, continuously advancing iteration over a MongoDB replica set oplog.

Given a ``MongoClient`` connected to a replica set, ``Oplog`` yields every
operation written to ``local.oplog.rs`` as a typed ``Operation``:

    >>> from pymongo import MongoClient
    >>> from oplogtail import Oplog
    >>> client = MongoClient("mongodb://localhost:27017")
    >>> for operation in Oplog(client):
    ...     print(operation)

A server-side filter restricts the records returned:

    >>> for insert in Oplog.with_filter(client, {"op": "i"}):
    ...     print(insert)
"""

from .errors import (
    OplogError,
    DatabaseError,
    DecodeError,
    MissingFieldError,
    UnknownOperationError,
    InvalidOperationError,
)
from .record import LogRecord, FieldAccessError, ValueKind, kind_of
from .operation import (
    Operation,
    OperationType,
    Noop,
    Insert,
    Update,
    Delete,
    Command,
    decode,
    timestamp_to_datetime,
)
from .oplog import Oplog, OplogOptions

__version__ = "0.1.0"

__all__ = [
    "Oplog",
    "OplogOptions",
    "Operation",
    "OperationType",
    "Noop",
    "Insert",
    "Update",
    "Delete",
    "Command",
    "decode",
    "timestamp_to_datetime",
    "LogRecord",
    "FieldAccessError",
    "ValueKind",
    "kind_of",
    "OplogError",
    "DatabaseError",
    "DecodeError",
    "MissingFieldError",
    "UnknownOperationError",
    "InvalidOperationError",
]
