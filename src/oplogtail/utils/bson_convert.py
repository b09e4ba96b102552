"""
BSON to JSON-serializable converter utility.

Converts values found in oplog documents to JSON-serializable Python types.
"""

import base64
from datetime import datetime
from typing import Any

from bson import ObjectId, Decimal128
from bson.timestamp import Timestamp


def bson_safe(value: Any) -> Any:
    """
    Recursively convert BSON types to JSON-serializable Python types.

    Handles:
    - ObjectId -> str
    - datetime -> ISO string
    - Timestamp -> {"t": seconds, "i": ordinal}
    - Decimal128 -> str
    - bytes / Binary -> base64 string
    - Nested dicts, lists and tuples

    Args:
        value: Value to convert (can be any BSON type)

    Returns:
        JSON-serializable Python value

    Example:
        >>> from bson import ObjectId
        >>> doc = {"_id": ObjectId(), "name": "test"}
        >>> safe = bson_safe(doc)
        >>> isinstance(safe["_id"], str)
        True
    """
    if value is None:
        return None

    if isinstance(value, ObjectId):
        return str(value)

    if isinstance(value, datetime):
        return value.isoformat()

    if isinstance(value, Timestamp):
        return {"t": value.time, "i": value.inc}

    if isinstance(value, Decimal128):
        return str(value)

    # Binary subclasses bytes
    if isinstance(value, bytes):
        return base64.b64encode(value).decode('ascii')

    if isinstance(value, dict):
        return {k: bson_safe(v) for k, v in value.items()}

    if isinstance(value, (list, tuple)):
        return [bson_safe(v) for v in value]

    # Int64 is an int subclass; plain int keeps json output unquoted
    if isinstance(value, int) and not isinstance(value, bool):
        return int(value)

    return value
