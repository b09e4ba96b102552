"""
Conversion of raw oplog documents into typed ``Operation`` values.

One variant exists per kind of document MongoDB writes to the replica set
oplog. ``decode`` dispatches on the leading character of the ``op`` field and
each variant reads its own required fields; decoding is all-or-nothing, any
missing or mistyped field fails the whole record.

BSON timestamps are converted into timezone-aware UTC datetimes.
"""

from dataclasses import dataclass, fields
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Any, Callable, ClassVar, Dict, Mapping, Tuple

from bson import json_util

from .errors import InvalidOperationError, MissingFieldError, UnknownOperationError
from .record import FieldAccessError, LogRecord, ValueKind
from .utils.bson_convert import bson_safe

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


class OperationType(str, Enum):
    """Operation codes stored in the ``op`` field of the oplog."""
    NOOP = "n"
    INSERT = "i"
    UPDATE = "u"
    DELETE = "d"
    COMMAND = "c"


def timestamp_to_datetime(timestamp: int) -> datetime:
    """Convert a compound BSON timestamp value into a UTC datetime.

    The high 32 bits are POSIX seconds, the low 32 bits an ordinal within that
    second. The ordinal is applied as milliseconds (``inc * 1_000_000`` ns).

    Args:
        timestamp: ``seconds << 32 | ordinal``

    Returns:
        Timezone-aware UTC datetime
    """
    seconds = timestamp >> 32
    ordinal = timestamp & 0xFFFFFFFF
    return _EPOCH + timedelta(seconds=seconds, milliseconds=ordinal)


@dataclass(frozen=True)
class Operation:
    """A MongoDB oplog operation.

    Attributes:
        id: Unique identifier of the operation (the oplog ``h`` field)
        timestamp: Time of the operation, derived from the ``ts`` field
    """
    operation_type: ClassVar[OperationType]

    id: int
    timestamp: datetime

    @property
    def namespace_parts(self) -> Tuple[str, str]:
        """Database and collection parts of the namespace."""
        namespace = getattr(self, "namespace", None)
        if not namespace:
            return ("", "")
        database, _, collection = namespace.partition(".")
        return (database, collection)

    @property
    def database(self) -> str:
        """Database part of the namespace, empty for no-ops."""
        return self.namespace_parts[0]

    @property
    def collection(self) -> str:
        """Collection part of the namespace, empty for no-ops."""
        return self.namespace_parts[1]

    def to_dict(self) -> Dict[str, Any]:
        """Return a JSON-serializable representation of the operation."""
        data: Dict[str, Any] = {"op": self.operation_type.value}
        for f in fields(self):
            data[f.name] = bson_safe(getattr(self, f.name))
        return data


@dataclass(frozen=True)
class Noop(Operation):
    """A no-op inserted periodically by MongoDB or used to initiate a replica set."""
    operation_type: ClassVar[OperationType] = OperationType.NOOP

    message: str

    def __str__(self) -> str:
        return f"No-op #{self.id} at {self.timestamp.isoformat()}: {self.message}"


@dataclass(frozen=True)
class Insert(Operation):
    """An insert of a document into a specific database and collection."""
    operation_type: ClassVar[OperationType] = OperationType.INSERT

    namespace: str
    document: Dict[str, Any]

    def __str__(self) -> str:
        return (
            f"Insert #{self.id} into {self.namespace} at {self.timestamp.isoformat()}: "
            f"{json_util.dumps(self.document)}"
        )


@dataclass(frozen=True)
class Update(Operation):
    """An update of a document matching ``query`` with the ``update`` document."""
    operation_type: ClassVar[OperationType] = OperationType.UPDATE

    namespace: str
    query: Dict[str, Any]
    update: Dict[str, Any]

    def __str__(self) -> str:
        return (
            f"Update #{self.id} {self.namespace} with {json_util.dumps(self.query)} "
            f"at {self.timestamp.isoformat()}: {json_util.dumps(self.update)}"
        )


@dataclass(frozen=True)
class Delete(Operation):
    """The deletion of a document matching ``query``."""
    operation_type: ClassVar[OperationType] = OperationType.DELETE

    namespace: str
    query: Dict[str, Any]

    def __str__(self) -> str:
        return (
            f"Delete #{self.id} from {self.namespace} at {self.timestamp.isoformat()}: "
            f"{json_util.dumps(self.query)}"
        )


@dataclass(frozen=True)
class Command(Operation):
    """A command such as the creation or deletion of a collection."""
    operation_type: ClassVar[OperationType] = OperationType.COMMAND

    namespace: str
    command: Dict[str, Any]

    def __str__(self) -> str:
        return (
            f"Command #{self.id} {self.namespace} at {self.timestamp.isoformat()}: "
            f"{json_util.dumps(self.command)}"
        )


def _decode_noop(record: LogRecord) -> Noop:
    op_id = record.get_int64("h")
    timestamp = timestamp_to_datetime(record.get_timestamp("ts"))
    o = LogRecord(record.get_document("o"))
    try:
        message = o.get_str("msg")
    except FieldAccessError as e:
        raise FieldAccessError(f"o.{e.field}", e.expected, e.actual) from e
    return Noop(id=op_id, timestamp=timestamp, message=message)


def _decode_insert(record: LogRecord) -> Insert:
    return Insert(
        id=record.get_int64("h"),
        timestamp=timestamp_to_datetime(record.get_timestamp("ts")),
        namespace=record.get_str("ns"),
        document=record.get_document("o"),
    )


def _decode_update(record: LogRecord) -> Update:
    return Update(
        id=record.get_int64("h"),
        timestamp=timestamp_to_datetime(record.get_timestamp("ts")),
        namespace=record.get_str("ns"),
        query=record.get_document("o2"),
        update=record.get_document("o"),
    )


def _decode_delete(record: LogRecord) -> Delete:
    return Delete(
        id=record.get_int64("h"),
        timestamp=timestamp_to_datetime(record.get_timestamp("ts")),
        namespace=record.get_str("ns"),
        query=record.get_document("o"),
    )


def _decode_command(record: LogRecord) -> Command:
    return Command(
        id=record.get_int64("h"),
        timestamp=timestamp_to_datetime(record.get_timestamp("ts")),
        namespace=record.get_str("ns"),
        command=record.get_document("o"),
    )


_DECODERS: Dict[str, Callable[[LogRecord], Operation]] = {
    OperationType.NOOP.value: _decode_noop,
    OperationType.INSERT.value: _decode_insert,
    OperationType.UPDATE.value: _decode_update,
    OperationType.DELETE.value: _decode_delete,
    OperationType.COMMAND.value: _decode_command,
}


def decode(document: Mapping[str, Any]) -> Operation:
    """Convert a raw oplog document into an ``Operation``.

    Only the first character of ``op`` is significant.

    Args:
        document: Raw document read from the oplog collection

    Returns:
        The decoded operation variant

    Raises:
        InvalidOperationError: If ``op`` is absent or not a string
        UnknownOperationError: If ``op`` is not a known operation code
        MissingFieldError: If a field required by the variant is absent or mistyped
    """
    if not isinstance(document, Mapping):
        raise InvalidOperationError(f"Expected a document, got {type(document).__name__}")

    record = LogRecord(document)
    kind = record.kind("op")
    if kind is not ValueKind.STRING:
        raise InvalidOperationError(f"Operation type is {kind.value}, expected string")

    code = record.get_str("op")
    decoder = _DECODERS.get(code[:1])
    if decoder is None:
        raise UnknownOperationError(code)

    try:
        return decoder(record)
    except FieldAccessError as e:
        raise MissingFieldError(e) from e

