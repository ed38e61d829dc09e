# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.

"""
Entity payload (de)serialization.

JSON payloads (all three metadata levels) and AtomPub XML are supported.
Null-valued properties are omitted from JSON request bodies and written with
``m:null="true"`` in AtomPub. ``JsonNoMetadata`` responses carry no type
information; their properties are typed through the configured property
resolver or, failing that, from the JSON value itself.
"""

from __future__ import annotations

import base64
import datetime as _dt
import json
import math
import xml.etree.ElementTree as ET
from typing import Any, Callable, Dict, List, Optional, Tuple
from urllib.parse import unquote

from ..common.constants import (
    ATOM_NAMESPACE,
    DATA_SERVICES_NAMESPACE,
    METADATA_NAMESPACE,
    ODATA_ETAG,
    ODATA_TYPE_SUFFIX,
    PARTITION_KEY,
    ROW_KEY,
    TABLE_NAME,
    TIMESTAMP,
)
from ..core._error_codes import CLIENT_RESOLVER_FAILED
from ..core.errors import StorageError, ValidationError
from ..models.entity import EdmType, EntityProperty, TableEntity, format_datetime, parse_datetime

RESOLVER_FAILED_MESSAGE = (
    "The custom property resolver delegate threw an exception. Check the inner exception for more details."
)

# Types whose JSON representation is a string and therefore needs an annotation
_ANNOTATED_TYPES = {EdmType.INT64, EdmType.BINARY, EdmType.GUID, EdmType.DATETIME}

_ATOM = "{%s}" % ATOM_NAMESPACE
_D = "{%s}" % DATA_SERVICES_NAMESPACE
_M = "{%s}" % METADATA_NAMESPACE

ET.register_namespace("", ATOM_NAMESPACE)
ET.register_namespace("d", DATA_SERVICES_NAMESPACE)
ET.register_namespace("m", METADATA_NAMESPACE)

# (partition_key, row_key, timestamp, properties, etag)
EntityParts = Tuple[Optional[str], Optional[str], Optional[_dt.datetime], Dict[str, EntityProperty], Optional[str]]


# ---------------------------------------------------------------- values


def _wire_value(prop: EntityProperty) -> Any:
    """Convert a property to its JSON value."""
    value = prop.value
    t = prop.edm_type
    if t is EdmType.BINARY:
        return base64.b64encode(value).decode("ascii")
    if t is EdmType.INT64:
        return str(value)
    if t is EdmType.GUID:
        return str(value)
    if t is EdmType.DATETIME:
        return format_datetime(value)
    if t is EdmType.DOUBLE and (math.isnan(value) or math.isinf(value)):
        return "NaN" if math.isnan(value) else ("Infinity" if value > 0 else "-Infinity")
    return value


def _wire_text(prop: EntityProperty) -> str:
    """Convert a property to its AtomPub text."""
    value = _wire_value(prop)
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float):
        return repr(value)
    return str(value)


def timestamp_from_etag(etag: Optional[str]) -> Optional[_dt.datetime]:
    """Extract the timestamp embedded in an entity ETag such as ``W/"datetime'2024-01-01T00%3A00%3A00Z'"``."""
    if not etag:
        return None
    start = etag.find("datetime'")
    if start < 0:
        return None
    start += len("datetime'")
    end = etag.find("'", start)
    if end < 0:
        return None
    try:
        return parse_datetime(unquote(etag[start:end]))
    except ValidationError:
        return None


# ---------------------------------------------------------------- JSON


def entity_to_json(entity: TableEntity) -> Dict[str, Any]:
    """
    Build the JSON body for a write operation.

    Types that JSON cannot express natively carry an ``@odata.type`` annotation.
    Null properties are omitted.

    :param entity: Entity to serialize.
    :type entity: ~tablestore.models.entity.TableEntity
    :rtype: dict
    """
    body: Dict[str, Any] = {PARTITION_KEY: entity.partition_key, ROW_KEY: entity.row_key}
    for name, prop in entity.write_entity().items():
        if prop.is_null:
            continue
        body[name] = _wire_value(prop)
        if prop.edm_type in _ANNOTATED_TYPES or (
            prop.edm_type is EdmType.DOUBLE and isinstance(body[name], str)
        ):
            body[name + ODATA_TYPE_SUFFIX] = prop.edm_type.value
    return body


def _infer_edm_type(value: Any) -> EdmType:
    if isinstance(value, bool):
        return EdmType.BOOLEAN
    if isinstance(value, int):
        return EdmType.INT32 if -(2**31) <= value < 2**31 else EdmType.INT64
    if isinstance(value, float):
        return EdmType.DOUBLE
    return EdmType.STRING


def _resolve_type(
    property_resolver: Optional[Callable[..., Any]],
    partition_key: Optional[str],
    row_key: Optional[str],
    name: str,
    value: Any,
) -> EdmType:
    if property_resolver is None:
        return _infer_edm_type(value)
    try:
        resolved = property_resolver(partition_key, row_key, name, value)
    except Exception as exc:
        raise StorageError(RESOLVER_FAILED_MESSAGE, is_retryable=False, subcode=CLIENT_RESOLVER_FAILED) from exc
    return _infer_edm_type(value) if resolved is None else EdmType(resolved)


def read_json_entity(
    data: Dict[str, Any],
    property_resolver: Optional[Callable[..., Any]] = None,
) -> EntityParts:
    """
    Split a JSON entity into its system values and typed properties.

    Annotated properties use their ``@odata.type``. Unannotated properties are
    typed by ``property_resolver`` when given, else from the JSON value.
    Properties returned as null are left out.

    :param data: Decoded JSON object.
    :type data: dict
    :param property_resolver: ``resolver(pk, rk, name, value) -> EdmType``.
    :type property_resolver: callable or None
    :raises StorageError: If the property resolver raises.
    :return: ``(partition_key, row_key, timestamp, properties, etag)``.
    """
    partition_key = data.get(PARTITION_KEY)
    row_key = data.get(ROW_KEY)
    etag = data.get(ODATA_ETAG)
    timestamp_raw = data.get(TIMESTAMP)
    timestamp = parse_datetime(timestamp_raw) if isinstance(timestamp_raw, str) else None

    properties: Dict[str, EntityProperty] = {}
    for name, value in data.items():
        if name in (PARTITION_KEY, ROW_KEY, TIMESTAMP) or name.startswith("odata.") or "@" in name:
            continue
        if value is None:
            continue
        annotation = data.get(name + ODATA_TYPE_SUFFIX)
        if annotation is not None:
            edm_type = EdmType.from_name(annotation)
        else:
            edm_type = _resolve_type(property_resolver, partition_key, row_key, name, value)
        properties[name] = EntityProperty.create_from_string(edm_type, value)

    if etag is None and timestamp is not None:
        etag = _etag_from_timestamp(timestamp_raw)
    return partition_key, row_key, timestamp, properties, etag


def _etag_from_timestamp(raw: str) -> str:
    return "W/\"datetime'%s'\"" % raw.replace(":", "%3A")


def read_json_entities(text: str, property_resolver: Optional[Callable[..., Any]] = None) -> List[EntityParts]:
    """Parse a JSON query response body (``{"value": [...]}``)."""
    payload = json.loads(text) if text else {}
    return [read_json_entity(item, property_resolver) for item in payload.get("value", [])]


# ---------------------------------------------------------------- AtomPub


def entity_to_atom(entity: Optional[TableEntity] = None, table_name: Optional[str] = None) -> bytes:
    """
    Build an AtomPub ``<entry>`` for an entity write or a table create.

    :param entity: Entity to serialize.
    :param table_name: Table name, when creating a table instead.
    :rtype: bytes
    """
    entry = ET.Element(_ATOM + "entry")
    ET.SubElement(entry, _ATOM + "title")
    ET.SubElement(entry, _ATOM + "updated").text = format_datetime(_dt.datetime.now(_dt.timezone.utc))
    author = ET.SubElement(entry, _ATOM + "author")
    ET.SubElement(author, _ATOM + "name")
    ET.SubElement(entry, _ATOM + "id")
    content = ET.SubElement(entry, _ATOM + "content", {"type": "application/xml"})
    props = ET.SubElement(content, _M + "properties")

    if table_name is not None:
        ET.SubElement(props, _D + TABLE_NAME).text = table_name
    if entity is not None:
        ET.SubElement(props, _D + PARTITION_KEY).text = entity.partition_key
        ET.SubElement(props, _D + ROW_KEY).text = entity.row_key
        for name, prop in entity.write_entity().items():
            attrs = {}
            if prop.edm_type is not EdmType.STRING:
                attrs[_M + "type"] = prop.edm_type.value
            element = ET.SubElement(props, _D + name, attrs)
            if prop.is_null:
                element.set(_M + "null", "true")
            else:
                element.text = _wire_text(prop)
    return b'<?xml version="1.0" encoding="utf-8" standalone="yes"?>' + ET.tostring(entry, encoding="utf-8", xml_declaration=False)


def _read_atom_entry(entry: ET.Element) -> EntityParts:
    etag = entry.get(_M + "etag")
    props_el = entry.find(f"{_ATOM}content/{_M}properties")
    partition_key = row_key = None
    timestamp = None
    properties: Dict[str, EntityProperty] = {}
    for child in [] if props_el is None else list(props_el):
        name = child.tag[len(_D):] if child.tag.startswith(_D) else child.tag
        text = child.text or ""
        if name == PARTITION_KEY:
            partition_key = text
        elif name == ROW_KEY:
            row_key = text
        elif name == TIMESTAMP:
            timestamp = parse_datetime(text)
        else:
            edm_type = EdmType.from_name(child.get(_M + "type", EdmType.STRING.value))
            if child.get(_M + "null") == "true":
                properties[name] = EntityProperty(edm_type, None)
            else:
                properties[name] = EntityProperty.create_from_string(edm_type, text)
    return partition_key, row_key, timestamp, properties, etag


def read_atom_entities(text: str) -> List[EntityParts]:
    """Parse an AtomPub ``<feed>`` or a single ``<entry>``."""
    root = ET.fromstring(text)
    if root.tag == _ATOM + "entry":
        return [_read_atom_entry(root)]
    return [_read_atom_entry(entry) for entry in root.findall(_ATOM + "entry")]


# ---------------------------------------------------------------- projection


def default_entity_resolver(
    partition_key: Optional[str],
    row_key: Optional[str],
    timestamp: Optional[_dt.datetime],
    properties: Dict[str, EntityProperty],
    etag: Optional[str],
) -> TableEntity:
    """Build a :class:`TableEntity` from the parts of a returned row."""
    return TableEntity(partition_key, row_key, properties, etag=etag, timestamp=timestamp)


def apply_resolver(resolver: Optional[Callable[..., Any]], parts: EntityParts) -> Any:
    """
    Project a returned row through a caller-supplied resolver.

    :raises StorageError: Wrapping any exception the resolver raises.
    """
    if resolver is None:
        return default_entity_resolver(*parts)
    try:
        return resolver(*parts)
    except Exception as exc:
        raise StorageError(RESOLVER_FAILED_MESSAGE, is_retryable=False, subcode=CLIENT_RESOLVER_FAILED) from exc


__all__ = [
    "RESOLVER_FAILED_MESSAGE",
    "entity_to_json",
    "entity_to_atom",
    "read_json_entity",
    "read_json_entities",
    "read_atom_entities",
    "timestamp_from_etag",
    "default_entity_resolver",
    "apply_resolver",
]
