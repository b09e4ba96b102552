"""
Tailing iterator over a MongoDB replica set oplog.

``Oplog`` owns a tailable, await-data cursor on ``local.oplog.rs`` and yields
one ``Operation`` per decodable record, forever. Records that fail to decode
are skipped without being surfaced to the consumer.
"""

import copy
import logging
import time
from dataclasses import dataclass
from typing import Any, Dict, Mapping, Optional

from bson.timestamp import Timestamp
from pymongo import CursorType, MongoClient
from pymongo.cursor import Cursor
from pymongo.errors import PyMongoError

from .errors import DatabaseError, DecodeError
from .metrics import cursor_reopens_total, operations_total, skipped_records_total, transport_errors_total
from .operation import Operation, decode
from .utils.logging import new_session_id

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class OplogOptions:
    """Configuration for an ``Oplog``, consumed once at construction."""
    filter: Optional[Mapping[str, Any]] = None  # Server-side query on raw oplog records
    database: str = "local"
    collection: str = "oplog.rs"
    max_await_time_ms: Optional[int] = None  # None leaves the server default
    batch_size: Optional[int] = None
    reopen_interval: float = 1.0  # Seconds before reopening a closed cursor

    def __post_init__(self):
        """Validate configuration values."""
        if self.filter is not None:
            if not isinstance(self.filter, Mapping):
                raise ValueError("filter must be a mapping")
            object.__setattr__(self, "filter", copy.deepcopy(dict(self.filter)))
        if not self.database:
            raise ValueError("database must not be empty")
        if not self.collection:
            raise ValueError("collection must not be empty")
        if self.max_await_time_ms is not None and self.max_await_time_ms <= 0:
            raise ValueError("max_await_time_ms must be positive")
        if self.batch_size is not None and self.batch_size <= 0:
            raise ValueError("batch_size must be positive")
        if self.reopen_interval < 0:
            raise ValueError("reopen_interval must be non-negative")

    @property
    def namespace(self) -> str:
        return f"{self.database}.{self.collection}"


class Oplog:
    """
    Iterator over the operations recorded in a replica set oplog.

    Iterating blocks until the server has a new record; the sequence never
    ends on its own. Records that cannot be decoded are skipped. A driver error
    while pulling is raised as ``DatabaseError`` and closes the iterator.

    Thread Safety: NOT thread-safe. Use one instance per consumer.

    Example:
        >>> client = MongoClient("mongodb://localhost:27017")
        >>> for operation in Oplog(client):
        ...     print(operation)

        >>> inserts = Oplog.with_filter(client, {"op": "i"})
    """

    def __init__(self, client: MongoClient, options: Optional[OplogOptions] = None):
        """
        Open a tailable cursor on the oplog.

        Args:
            client: Client connected to a replica set member
            options: Cursor configuration; all records are returned by default

        Raises:
            DatabaseError: If the cursor could not be opened
        """
        self.options = options or OplogOptions()
        self.session_id = new_session_id()
        self._last_ts: Optional[Timestamp] = None
        self._closed = False

        # find() is lazy, so check the server is reachable before handing out the iterator
        try:
            client.admin.command("ping")
            self.collection = client[self.options.database][self.options.collection]
        except PyMongoError as e:
            raise DatabaseError(f"Failed to access {self.options.namespace}: {e}") from e

        self._cursor: Cursor = self._open_cursor()

        logger.info(
            f"Opened oplog cursor on {self.options.namespace}",
            extra={
                "session_id": self.session_id,
                "namespace": self.options.namespace,
                "has_filter": self.options.filter is not None,
            }
        )

    @classmethod
    def with_filter(cls, client: MongoClient, filter: Optional[Mapping[str, Any]]) -> "Oplog":
        """Open an oplog returning only records matching ``filter``."""
        return cls(client, OplogOptions(filter=filter))

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def last_timestamp(self) -> Optional[Timestamp]:
        """``ts`` of the last raw record pulled, decodable or not."""
        return self._last_ts

    def _query(self) -> Dict[str, Any]:
        query = dict(self.options.filter) if self.options.filter else {}
        if self._last_ts is None:
            return query
        position = {"ts": {"$gt": self._last_ts}}
        if not query:
            return position
        return {"$and": [query, position]}

    def _open_cursor(self) -> Cursor:
        kwargs: Dict[str, Any] = {
            "cursor_type": CursorType.TAILABLE_AWAIT,
            "no_cursor_timeout": True,
        }
        if self.options.batch_size is not None:
            kwargs["batch_size"] = self.options.batch_size

        try:
            cursor = self.collection.find(self._query(), **kwargs)
            if self.options.max_await_time_ms is not None:
                cursor = cursor.max_await_time_ms(self.options.max_await_time_ms)
        except PyMongoError as e:
            raise DatabaseError(f"Failed to open cursor on {self.options.namespace}: {e}") from e
        return cursor

    def _reopen(self) -> None:
        """Replace a cursor the server has closed, resuming after the last record seen."""
        cursor_reopens_total.inc()
        logger.info(
            "Oplog cursor closed by server, reopening",
            extra={
                "session_id": self.session_id,
                "namespace": self.options.namespace,
                "last_ts": str(self._last_ts) if self._last_ts else None,
            }
        )
        self._cursor.close()
        time.sleep(self.options.reopen_interval)
        try:
            self._cursor = self._open_cursor()
        except DatabaseError:
            self.close()
            raise

    def _pull(self) -> Mapping[str, Any]:
        """Return the next raw record, blocking until one is available."""
        while True:
            try:
                document = next(self._cursor)
            except StopIteration:
                # Tailable cursors stay alive when the await window passes without data
                if self._cursor.alive:
                    continue
                self._reopen()
                continue
            except PyMongoError as e:
                transport_errors_total.labels(error_type=type(e).__name__).inc()
                logger.error(
                    f"Error reading oplog cursor: {e}",
                    extra={"session_id": self.session_id, "namespace": self.options.namespace}
                )
                self.close()
                raise DatabaseError(f"Error reading {self.options.namespace}: {e}") from e

            ts = document.get("ts") if isinstance(document, Mapping) else None
            if isinstance(ts, Timestamp):
                self._last_ts = ts
            return document

    def __iter__(self) -> "Oplog":
        return self

    def __next__(self) -> Operation:
        if self._closed:
            raise StopIteration

        while True:
            document = self._pull()
            try:
                operation = decode(document)
            except DecodeError as e:
                skipped_records_total.labels(error_type=type(e).__name__).inc()
                logger.debug(
                    f"Skipping oplog record: {e}",
                    extra={"session_id": self.session_id, "error_type": type(e).__name__}
                )
                continue

            operations_total.labels(operation=operation.operation_type.name.lower()).inc()
            return operation

    def close(self) -> None:
        """Close the underlying cursor. Further iteration stops immediately."""
        if self._closed:
            return
        self._closed = True
        self._cursor.close()
        logger.info(
            "Closed oplog cursor",
            extra={"session_id": self.session_id, "namespace": self.options.namespace}
        )

    def __enter__(self) -> "Oplog":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
