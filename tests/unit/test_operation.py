"""Unit tests for oplog document decoding."""

import json
from dataclasses import FrozenInstanceError
from datetime import datetime, timezone

import pytest
from bson.timestamp import Timestamp

from oplogtail.errors import DecodeError, InvalidOperationError, MissingFieldError, UnknownOperationError
from oplogtail.operation import (
    Command, Delete, Insert, Noop, OperationType, Update, decode, timestamp_to_datetime
)
from oplogtail.record import ValueKind


def utc(seconds: int, microsecond: int = 0) -> datetime:
    return datetime.fromtimestamp(seconds, tz=timezone.utc).replace(microsecond=microsecond)


@pytest.fixture
def noop_doc():
    return {
        "ts": Timestamp(1479419535, 0),
        "h": -2135725856567446411,
        "v": 2,
        "op": "n",
        "ns": "",
        "o": {"msg": "initiating set"},
    }


@pytest.fixture
def insert_doc():
    return {
        "ts": Timestamp(1479561394, 0),
        "h": -1742072865587022793,
        "v": 2,
        "op": "i",
        "ns": "foo.bar",
        "o": {"foo": "bar"},
    }


class TestDecode:
    """Test decode for each operation type."""

    def test_converts_noops(self, noop_doc):
        """Test no-op documents become Noop operations."""
        assert decode(noop_doc) == Noop(
            id=-2135725856567446411,
            timestamp=utc(1479419535),
            message="initiating set",
        )

    def test_converts_inserts(self, insert_doc):
        """Test insert documents become Insert operations."""
        assert decode(insert_doc) == Insert(
            id=-1742072865587022793,
            timestamp=utc(1479561394),
            namespace="foo.bar",
            document={"foo": "bar"},
        )

    def test_converts_updates(self):
        """Test update documents take the query from o2 and the update from o."""
        doc = {
            "ts": Timestamp(1479561033, 0),
            "h": 3511341713062188019,
            "v": 2,
            "op": "u",
            "ns": "foo.bar",
            "o2": {"_id": 1},
            "o": {"$set": {"foo": "baz"}},
        }

        assert decode(doc) == Update(
            id=3511341713062188019,
            timestamp=utc(1479561033),
            namespace="foo.bar",
            query={"_id": 1},
            update={"$set": {"foo": "baz"}},
        )

    def test_converts_deletes(self):
        """Test delete documents become Delete operations."""
        doc = {
            "ts": Timestamp(1479421186, 0),
            "h": -5457382347563537847,
            "v": 2,
            "op": "d",
            "ns": "foo.bar",
            "o": {"_id": 1},
        }

        assert decode(doc) == Delete(
            id=-5457382347563537847,
            timestamp=utc(1479421186),
            namespace="foo.bar",
            query={"_id": 1},
        )

    def test_converts_commands(self):
        """Test command documents become Command operations."""
        doc = {
            "ts": Timestamp(1479553955, 0),
            "h": -7222343681970774929,
            "v": 2,
            "op": "c",
            "ns": "test.$cmd",
            "o": {"create": "foo"},
        }

        assert decode(doc) == Command(
            id=-7222343681970774929,
            timestamp=utc(1479553955),
            namespace="test.$cmd",
            command={"create": "foo"},
        )

    def test_only_first_character_of_op_is_used(self, insert_doc):
        """Test multi-character codes dispatch on their leading character."""
        insert_doc["op"] = "ix"
        assert isinstance(decode(insert_doc), Insert)

    def test_decode_is_pure(self, insert_doc):
        """Test decoding the same document twice gives equal operations."""
        assert decode(insert_doc) == decode(insert_doc)

    def test_documents_are_copied(self, insert_doc):
        """Test the operation does not share nested documents with its source."""
        operation = decode(insert_doc)
        insert_doc["o"]["foo"] = "changed"

        assert operation.document == {"foo": "bar"}

    def test_operations_are_immutable(self, insert_doc):
        """Test operations cannot be reassigned."""
        operation = decode(insert_doc)
        with pytest.raises(FrozenInstanceError):
            operation.namespace = "other.ns"

    def test_different_variants_are_not_equal(self, noop_doc, insert_doc):
        """Test variants compare by type as well as fields."""
        assert decode(noop_doc) != decode(insert_doc)


class TestDecodeErrors:
    """Test decode failures."""

    def test_unknown_operation(self):
        """Test unrecognised codes raise UnknownOperationError with the code."""
        with pytest.raises(UnknownOperationError) as exc_info:
            decode({"op": "x"})
        assert exc_info.value.code == "x"
        assert "x" in str(exc_info.value)

    def test_empty_operation_code_is_unknown(self):
        """Test an empty code is unknown rather than invalid."""
        with pytest.raises(UnknownOperationError) as exc_info:
            decode({"op": ""})
        assert exc_info.value.code == ""

    def test_missing_operation_code(self):
        """Test a document without op raises InvalidOperationError."""
        with pytest.raises(InvalidOperationError):
            decode({"foo": "bar"})

    def test_non_string_operation_code(self):
        """Test a non-string op raises InvalidOperationError."""
        with pytest.raises(InvalidOperationError):
            decode({"op": 1})

    @pytest.mark.parametrize("document", [None, "op", ["op", "i"], 42])
    def test_non_document_input(self, document):
        """Test input that is not a mapping raises InvalidOperationError."""
        with pytest.raises(InvalidOperationError):
            decode(document)

    def test_missing_document_payload(self, insert_doc):
        """Test an insert without o raises MissingFieldError."""
        del insert_doc["o"]

        with pytest.raises(MissingFieldError) as exc_info:
            decode(insert_doc)
        assert exc_info.value.field == "o"
        assert exc_info.value.detail.not_present

    def test_update_requires_query(self):
        """Test an update without o2 fails."""
        doc = {
            "ts": Timestamp(1479561033, 0),
            "h": 1,
            "op": "u",
            "ns": "foo.bar",
            "o": {"$set": {"foo": "baz"}},
        }

        with pytest.raises(MissingFieldError) as exc_info:
            decode(doc)
        assert exc_info.value.field == "o2"

    def test_wrong_type_is_reported(self, insert_doc):
        """Test a mistyped field reports expected and actual kinds."""
        insert_doc["h"] = "not-a-number"

        with pytest.raises(MissingFieldError) as exc_info:
            decode(insert_doc)
        detail = exc_info.value.detail
        assert detail.field == "h"
        assert detail.expected is ValueKind.INT64
        assert detail.actual is ValueKind.STRING
        assert not detail.not_present

    def test_timestamp_must_be_bson_timestamp(self, insert_doc):
        """Test a datetime in ts is a type mismatch."""
        insert_doc["ts"] = datetime(2016, 11, 19, tzinfo=timezone.utc)

        with pytest.raises(MissingFieldError) as exc_info:
            decode(insert_doc)
        assert exc_info.value.detail.actual is ValueKind.DATETIME

    def test_uncopyable_payload_is_a_decode_error(self, insert_doc):
        """Test payload values that cannot be copied fail as a field error."""
        insert_doc["o"] = {"x": (i for i in [])}

        with pytest.raises(MissingFieldError) as exc_info:
            decode(insert_doc)
        assert exc_info.value.field == "o"
        assert exc_info.value.detail.actual is ValueKind.OTHER

    def test_noop_message_path(self, noop_doc):
        """Test a no-op without a message names the nested field."""
        noop_doc["o"] = {}

        with pytest.raises(MissingFieldError) as exc_info:
            decode(noop_doc)
        assert exc_info.value.field == "o.msg"

    def test_errors_share_base_class(self):
        """Test all decode failures can be caught as DecodeError."""
        for document in ({"op": "x"}, {}, {"op": "i"}):
            with pytest.raises(DecodeError):
                decode(document)


class TestTimestampConversion:
    """Test compound timestamp conversion."""

    def test_seconds_only(self):
        """Test a value with no ordinal has no sub-second component."""
        result = timestamp_to_datetime(1479419535 << 32)
        assert result == utc(1479419535)
        assert result.microsecond == 0
        assert result.tzinfo == timezone.utc

    def test_ordinal_is_scaled_to_milliseconds(self):
        """Test the ordinal contributes ordinal * 1_000_000 nanoseconds."""
        result = timestamp_to_datetime((1479419535 << 32) | 250)
        assert result == utc(1479419535, microsecond=250000)

    def test_large_ordinal_carries_into_seconds(self):
        """Test ordinals of a second or more roll over."""
        result = timestamp_to_datetime((1479419535 << 32) | 1500)
        assert result == utc(1479419536, microsecond=500000)

    def test_decoded_timestamp_uses_ordinal(self, insert_doc):
        """Test decode applies the same conversion to the ts field."""
        insert_doc["ts"] = Timestamp(1479561394, 7)
        assert decode(insert_doc).timestamp == utc(1479561394, microsecond=7000)


class TestOperationHelpers:
    """Test operation formatting and accessors."""

    def test_operation_type(self, noop_doc, insert_doc):
        assert decode(noop_doc).operation_type is OperationType.NOOP
        assert decode(insert_doc).operation_type is OperationType.INSERT

    def test_namespace_parts(self, insert_doc):
        """Test database and collection are split on the first dot."""
        insert_doc["ns"] = "shop.orders.archive"
        operation = decode(insert_doc)
        assert operation.database == "shop"
        assert operation.collection == "orders.archive"

    def test_noop_has_no_namespace(self, noop_doc):
        operation = decode(noop_doc)
        assert operation.database == ""
        assert operation.collection == ""

    def test_str(self, noop_doc, insert_doc):
        """Test human readable descriptions."""
        assert str(decode(noop_doc)) == "No-op #-2135725856567446411 at 2016-11-17T21:52:15+00:00: initiating set"
        assert str(decode(insert_doc)) == (
            'Insert #-1742072865587022793 into foo.bar at 2016-11-19T13:16:34+00:00: {"foo": "bar"}'
        )

    def test_to_dict_is_json_serializable(self, insert_doc):
        """Test to_dict output can be dumped as JSON."""
        data = decode(insert_doc).to_dict()

        assert data == {
            "op": "i",
            "id": -1742072865587022793,
            "timestamp": "2016-11-19T13:16:34+00:00",
            "namespace": "foo.bar",
            "document": {"foo": "bar"},
        }
        json.dumps(data)
