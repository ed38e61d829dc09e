# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.

"""Unit tests for JSON and AtomPub entity serialization."""

import datetime as dt
import uuid
import xml.etree.ElementTree as ET

import pytest

from tablestore.common.constants import ATOM_NAMESPACE, DATA_SERVICES_NAMESPACE, METADATA_NAMESPACE
from tablestore.core._error_codes import CLIENT_RESOLVER_FAILED
from tablestore.core.errors import StorageError
from tablestore.data._serialization import (
    RESOLVER_FAILED_MESSAGE,
    apply_resolver,
    entity_to_atom,
    entity_to_json,
    read_atom_entities,
    read_json_entities,
    read_json_entity,
    timestamp_from_etag,
)
from tablestore.models.entity import EdmType, EntityProperty, TableEntity

D = "{%s}" % DATA_SERVICES_NAMESPACE
M = "{%s}" % METADATA_NAMESPACE
A = "{%s}" % ATOM_NAMESPACE


class TestJsonWrite:
    def test_annotations_for_non_native_types(self):
        guid = uuid.UUID("00000000-0000-0000-0000-000000000001")
        entity = TableEntity(
            "p",
            "r",
            {
                "name": "Alice",
                "age": 31,
                "big": EntityProperty.for_long(5),
                "blob": b"\x01\x02",
                "id": guid,
                "when": dt.datetime(2024, 1, 2, tzinfo=dt.timezone.utc),
                "score": 1.5,
                "ok": True,
            },
        )
        body = entity_to_json(entity)
        assert body["PartitionKey"] == "p"
        assert body["RowKey"] == "r"
        assert body["name"] == "Alice"
        assert "name@odata.type" not in body
        assert body["age"] == 31
        assert "age@odata.type" not in body
        assert body["big"] == "5"
        assert body["big@odata.type"] == "Edm.Int64"
        assert body["blob"] == "AQI="
        assert body["blob@odata.type"] == "Edm.Binary"
        assert body["id"] == str(guid)
        assert body["id@odata.type"] == "Edm.Guid"
        assert body["when"] == "2024-01-02T00:00:00.0000000Z"
        assert body["when@odata.type"] == "Edm.DateTime"
        assert body["score"] == 1.5
        assert body["ok"] is True

    def test_null_properties_omitted(self):
        entity = TableEntity("p", "r", {"gone": EntityProperty.for_int(None), "kept": "x"})
        body = entity_to_json(entity)
        assert "gone" not in body
        assert "gone@odata.type" not in body
        assert body["kept"] == "x"

    def test_special_doubles_annotated(self):
        body = entity_to_json(TableEntity("p", "r", {"d": float("inf")}))
        assert body["d"] == "Infinity"
        assert body["d@odata.type"] == "Edm.Double"


class TestJsonRead:
    def test_minimal_metadata(self):
        pk, rk, ts, props, etag = read_json_entity(
            {
                "odata.etag": "W/\"datetime'2024-01-02T03%3A04%3A05.1Z'\"",
                "PartitionKey": "p",
                "RowKey": "r",
                "Timestamp": "2024-01-02T03:04:05.1Z",
                "big@odata.type": "Edm.Int64",
                "big": "9",
                "age": 31,
                "missing": None,
            }
        )
        assert (pk, rk) == ("p", "r")
        assert ts == dt.datetime(2024, 1, 2, 3, 4, 5, 100000, tzinfo=dt.timezone.utc)
        assert etag.startswith("W/")
        assert props["big"] == EntityProperty.for_long(9)
        assert props["age"] == EntityProperty.for_int(31)
        assert "missing" not in props

    def test_no_metadata_uses_property_resolver(self):
        def resolver(pk, rk, name, value):
            return EdmType.GUID if name == "id" else None

        guid = uuid.uuid4()
        _, _, _, props, etag = read_json_entity(
            {"PartitionKey": "p", "RowKey": "r", "Timestamp": "2024-01-02T03:04:05Z", "id": str(guid), "n": "x"},
            resolver,
        )
        assert props["id"].guid_value == guid
        assert props["n"].edm_type is EdmType.STRING
        assert etag == "W/\"datetime'2024-01-02T03%3A04%3A05Z'\""

    def test_property_resolver_failure_wrapped(self):
        def resolver(pk, rk, name, value):
            raise KeyError(name)

        with pytest.raises(StorageError) as exc_info:
            read_json_entity({"PartitionKey": "p", "RowKey": "r", "x": 1}, resolver)
        assert exc_info.value.message == RESOLVER_FAILED_MESSAGE
        assert exc_info.value.subcode == CLIENT_RESOLVER_FAILED
        assert isinstance(exc_info.value.__cause__, KeyError)

    def test_feed(self):
        rows = read_json_entities('{"value": [{"PartitionKey": "p", "RowKey": "1"}, {"PartitionKey": "p", "RowKey": "2"}]}')
        assert [row[1] for row in rows] == ["1", "2"]
        assert read_json_entities("") == []


class TestAtom:
    def test_write_marks_nulls_and_types(self):
        entity = TableEntity("p", "r", {"n": EntityProperty.for_int(None), "s": "x", "c": 3})
        root = ET.fromstring(entity_to_atom(entity))
        props = root.find(f"{A}content/{M}properties")
        assert props.find(f"{D}PartitionKey").text == "p"
        null = props.find(f"{D}n")
        assert null.get(f"{M}null") == "true"
        assert null.get(f"{M}type") == "Edm.Int32"
        assert props.find(f"{D}s").get(f"{M}type") is None
        assert props.find(f"{D}c").text == "3"

    def test_table_create_entry(self):
        root = ET.fromstring(entity_to_atom(table_name="people"))
        assert root.find(f"{A}content/{M}properties/{D}TableName").text == "people"

    def test_read_feed(self):
        feed = (
            f'<feed xmlns="{ATOM_NAMESPACE}" xmlns:d="{DATA_SERVICES_NAMESPACE}" xmlns:m="{METADATA_NAMESPACE}">'
            '<entry m:etag="W/&quot;1&quot;"><content type="application/xml"><m:properties>'
            "<d:PartitionKey>p</d:PartitionKey><d:RowKey>r</d:RowKey>"
            "<d:Timestamp>2024-01-02T03:04:05Z</d:Timestamp>"
            '<d:Age m:type="Edm.Int32">7</d:Age><d:Name>Bob</d:Name>'
            '<d:Gone m:type="Edm.Int64" m:null="true" />'
            "</m:properties></content></entry></feed>"
        )
        [(pk, rk, ts, props, etag)] = read_atom_entities(feed)
        assert (pk, rk, etag) == ("p", "r", 'W/"1"')
        assert ts.year == 2024
        assert props["Age"].int32_value == 7
        assert props["Name"].string_value == "Bob"
        assert props["Gone"].is_null
        assert props["Gone"].edm_type is EdmType.INT64

    def test_round_trip_through_entry(self):
        entity = TableEntity("p", "r", {"b": b"\x00\xff", "g": uuid.uuid4()})
        [(pk, rk, _, props, _)] = read_atom_entities(entity_to_atom(entity).decode("utf-8"))
        assert (pk, rk) == ("p", "r")
        assert props == entity.properties


class TestProjection:
    def test_default_resolver_builds_entity(self):
        entity = apply_resolver(None, ("p", "r", None, {"a": EntityProperty.for_int(1)}, "etag"))
        assert isinstance(entity, TableEntity)
        assert entity.etag == "etag"
        assert entity.get_value("a") == 1

    def test_custom_resolver(self):
        assert apply_resolver(lambda pk, rk, ts, props, etag: f"{pk}/{rk}", ("p", "r", None, {}, None)) == "p/r"

    def test_resolver_failure_wrapped(self):
        def resolver(*args):
            raise ValueError("nope")

        with pytest.raises(StorageError) as exc_info:
            apply_resolver(resolver, ("p", "r", None, {}, None))
        assert exc_info.value.is_retryable is False
        assert isinstance(exc_info.value.__cause__, ValueError)


def test_timestamp_from_etag():
    assert timestamp_from_etag("W/\"datetime'2024-01-02T03%3A04%3A05Z'\"") == dt.datetime(
        2024, 1, 2, 3, 4, 5, tzinfo=dt.timezone.utc
    )
    assert timestamp_from_etag('W/"opaque"') is None
    assert timestamp_from_etag(None) is None
