# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.

"""Unit tests for TableOperation factories and request paths."""

import pytest

from tablestore.core._error_codes import VALIDATION_MISSING_ETAG, VALIDATION_NULL_ARGUMENT
from tablestore.core.errors import ValidationError
from tablestore.models.entity import TableEntity
from tablestore.models.operation import TableOperation, TableOperationType


class TestTableOperationFactories:
    """Argument validation happens when the operation is built."""

    @pytest.mark.parametrize(
        "factory, verb",
        [
            (TableOperation.delete, "Delete"),
            (TableOperation.replace, "Replace"),
            (TableOperation.merge, "Merge"),
        ],
    )
    def test_missing_etag_rejected(self, factory, verb):
        with pytest.raises(ValidationError) as exc_info:
            factory(TableEntity("p", "r"))
        assert exc_info.value.subcode == VALIDATION_MISSING_ETAG
        assert verb in exc_info.value.message

    def test_wildcard_etag_accepted(self):
        op = TableOperation.delete(TableEntity("p", "r", etag="*"))
        assert op.operation_type is TableOperationType.DELETE
        assert op.etag == "*"

    def test_insert_ignores_missing_etag(self):
        op = TableOperation.insert(TableEntity("p", "r"), echo_content=True)
        assert op.echo_content is True
        assert op.is_read_only is False

    def test_null_entity_rejected(self):
        with pytest.raises(ValidationError) as exc_info:
            TableOperation.insert_or_merge(None)
        assert exc_info.value.subcode == VALIDATION_NULL_ARGUMENT

    def test_null_keys_rejected(self):
        with pytest.raises(ValidationError):
            TableOperation.insert(TableEntity(None, "r"))
        with pytest.raises(ValidationError):
            TableOperation.retrieve("p", None)

    def test_empty_keys_allowed(self):
        op = TableOperation.insert_or_replace(TableEntity("", ""))
        assert op.partition_key == ""
        assert op.row_key == ""

    def test_retrieve(self):
        op = TableOperation.retrieve("p", "r", select_columns=["foo"])
        assert op.is_read_only is True
        assert op.entity is None
        assert op.partition_key == "p"
        assert op.select_columns == ["foo"]


class TestTableOperationImmutability:
    def test_attributes_cannot_be_assigned(self):
        op = TableOperation.retrieve("p", "r")
        with pytest.raises(AttributeError):
            op.foo = 1

    def test_select_columns_are_copied(self):
        columns = ["a"]
        op = TableOperation.retrieve("p", "r", select_columns=columns)
        columns.append("b")
        op.select_columns.append("c")
        assert op.select_columns == ["a"]


class TestRequestUri:
    def test_insert_targets_collection(self):
        assert TableOperation.insert(TableEntity("p", "r")).to_request_uri("people") == "people()"

    def test_keys_are_escaped(self):
        op = TableOperation.retrieve("O'Neil", "a b")
        assert op.to_request_uri("people") == "people(PartitionKey='O%27%27Neil',RowKey='a%20b')"
