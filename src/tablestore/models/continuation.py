# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.

"""
Continuation tokens and storage location types.

A :class:`TableContinuationToken` carries the resumption state of a segmented
listing. It serializes to a small XML element two ways:

- :func:`serialize_token` / :func:`deserialize_token`: a generic path driven by
  the dataclass field list, producing a standalone document.
- :meth:`TableContinuationToken.write_xml` / :meth:`TableContinuationToken.read_xml`:
  a streaming path that writes into an existing
  :class:`xml.sax.saxutils.XMLGenerator` and reads from an
  :mod:`xml.dom.pulldom` event stream, so a token can be embedded inside any
  enclosing document.

Both paths produce the same element content.
"""

from __future__ import annotations

import io
import xml.etree.ElementTree as ET
from dataclasses import dataclass, field, fields
from enum import Enum
from typing import Any, Dict, Optional
from xml.dom import pulldom
from xml.sax.saxutils import XMLGenerator
from xml.sax.xmlreader import AttributesImpl

from ..core._error_codes import VALIDATION_TOKEN_FORMAT
from ..core.errors import ValidationError

TOKEN_ELEMENT = "ContinuationToken"
VERSION_ELEMENT = "Version"
TYPE_ELEMENT = "Type"
CURRENT_VERSION = "2.0"
TABLE_TOKEN_TYPE = "Table"


class StorageLocation(Enum):
    """Service endpoint a request is sent to."""

    PRIMARY = "Primary"
    SECONDARY = "Secondary"


class LocationMode(Enum):
    """Client routing preference between the primary and secondary endpoints."""

    PRIMARY_ONLY = "PrimaryOnly"
    PRIMARY_THEN_SECONDARY = "PrimaryThenSecondary"
    SECONDARY_ONLY = "SecondaryOnly"
    SECONDARY_THEN_PRIMARY = "SecondaryThenPrimary"


def _parse_location(text: Optional[str]) -> Optional[StorageLocation]:
    if not text:
        return None
    try:
        return StorageLocation(text)
    except ValueError:
        raise ValidationError(f"Unexpected Location '{text}'", subcode=VALIDATION_TOKEN_FORMAT) from None


@dataclass
class TableContinuationToken:
    """
    Resumption state for a segmented query or table listing.

    :param next_partition_key: Partition key to resume from.
    :type next_partition_key: str | None
    :param next_row_key: Row key to resume from.
    :type next_row_key: str | None
    :param next_table_name: Table name to resume a table listing from.
    :type next_table_name: str | None
    :param target_location: Location that produced the token. The next segment
        is requested from the same location.
    :type target_location: ~tablestore.models.continuation.StorageLocation | None
    """

    next_partition_key: Optional[str] = field(default=None, metadata={"xml_name": "NextPartitionKey"})
    next_row_key: Optional[str] = field(default=None, metadata={"xml_name": "NextRowKey"})
    next_table_name: Optional[str] = field(default=None, metadata={"xml_name": "NextTableName"})
    target_location: Optional[StorageLocation] = field(
        default=None, metadata={"xml_name": "TargetLocation", "always": True}
    )

    def __bool__(self) -> bool:
        return any(v is not None for v in (self.next_partition_key, self.next_row_key, self.next_table_name))

    def to_query_parameters(self) -> Dict[str, str]:
        """Return the query string parameters that resume the listing."""
        params: Dict[str, str] = {}
        for f in fields(self):
            if f.name == "target_location":
                continue
            value = getattr(self, f.name)
            if value is not None:
                params[f.metadata["xml_name"]] = value
        return params

    # ------------------------------------------------------------ streaming XML

    def write_xml(self, writer: XMLGenerator) -> None:
        """
        Write the token as a ``ContinuationToken`` element.

        The writer is neither started nor ended, so the element can be placed
        anywhere inside a document the caller is producing.

        :param writer: Generator positioned where the element belongs.
        :type writer: :class:`xml.sax.saxutils.XMLGenerator`
        """
        empty = AttributesImpl({})
        writer.startElement(TOKEN_ELEMENT, empty)
        for name, text in _element_values(self):
            writer.startElement(name, empty)
            if text:
                writer.characters(text)
            writer.endElement(name)
        writer.endElement(TOKEN_ELEMENT)

    @classmethod
    def read_xml(cls, events: pulldom.DOMEventStream) -> "TableContinuationToken":
        """
        Read a ``ContinuationToken`` element from a pull-parser event stream.

        The stream may be positioned anywhere before the token's start element.
        On return the stream is positioned immediately after the token's end
        element, so the caller can continue reading its own content.

        :param events: Event stream, e.g. from :func:`xml.dom.pulldom.parseString`.
        :type events: :class:`xml.dom.pulldom.DOMEventStream`
        :return: The token.
        :rtype: ~tablestore.models.continuation.TableContinuationToken
        :raises ValidationError: On an unexpected element, version, type or location.
        """
        while True:
            item = events.getEvent()
            if item is None:
                raise ValidationError(f"Unexpected Element '{TOKEN_ELEMENT}'", subcode=VALIDATION_TOKEN_FORMAT)
            event, node = item
            if event == pulldom.START_ELEMENT and node.tagName == TOKEN_ELEMENT:
                break

        values: Dict[str, str] = {}
        current: Optional[str] = None
        text: list = []
        while True:
            item = events.getEvent()
            if item is None:
                raise ValidationError(f"Unexpected Element '{TOKEN_ELEMENT}'", subcode=VALIDATION_TOKEN_FORMAT)
            event, node = item
            if event == pulldom.START_ELEMENT:
                if current is not None:
                    raise ValidationError(f"Unexpected Element '{node.tagName}'", subcode=VALIDATION_TOKEN_FORMAT)
                current, text = node.tagName, []
            elif event == pulldom.CHARACTERS and current is not None:
                text.append(node.data)
            elif event == pulldom.END_ELEMENT:
                if node.tagName == TOKEN_ELEMENT and current is None:
                    return _token_from_values(cls, values)
                values[current] = "".join(text)
                current = None


def _element_values(token: TableContinuationToken):
    yield VERSION_ELEMENT, CURRENT_VERSION
    yield TYPE_ELEMENT, TABLE_TOKEN_TYPE
    for f in fields(token):
        value = getattr(token, f.name)
        if isinstance(value, Enum):
            value = value.value
        if value is None and not f.metadata.get("always"):
            continue
        yield f.metadata["xml_name"], value or ""


def _token_from_values(cls: Any, values: Dict[str, str]) -> TableContinuationToken:
    by_xml_name = {f.metadata["xml_name"]: f for f in fields(cls)}
    kwargs: Dict[str, Any] = {}
    for name, text in values.items():
        if name == VERSION_ELEMENT:
            if text != CURRENT_VERSION:
                raise ValidationError(f"Unexpected Element '{text}'", subcode=VALIDATION_TOKEN_FORMAT)
        elif name == TYPE_ELEMENT:
            if text != TABLE_TOKEN_TYPE:
                raise ValidationError("Unexpected Continuation Type", subcode=VALIDATION_TOKEN_FORMAT)
        elif name in by_xml_name:
            f = by_xml_name[name]
            if f.name == "target_location":
                kwargs[f.name] = _parse_location(text)
            else:
                kwargs[f.name] = text
        else:
            raise ValidationError(f"Unexpected Element '{name}'", subcode=VALIDATION_TOKEN_FORMAT)
    return cls(**kwargs)


# ------------------------------------------------------------ generic XML


def serialize_token(token: TableContinuationToken) -> str:
    """
    Serialize a token to a standalone XML document using its field list.

    :param token: Token to serialize.
    :type token: ~tablestore.models.continuation.TableContinuationToken
    :return: XML text.
    :rtype: :class:`str`
    """
    root = ET.Element(TOKEN_ELEMENT)
    for name, text in _element_values(token):
        ET.SubElement(root, name).text = text
    return ET.tostring(root, encoding="unicode")


def deserialize_token(text: str) -> TableContinuationToken:
    """
    Parse a token produced by :func:`serialize_token` or :meth:`TableContinuationToken.write_xml`.

    :raises ValidationError: If the document is not a valid continuation token.
    """
    try:
        root = ET.fromstring(text)
    except ET.ParseError as exc:
        raise ValidationError(f"Invalid continuation token XML: {exc}", subcode=VALIDATION_TOKEN_FORMAT) from exc
    if root.tag != TOKEN_ELEMENT:
        raise ValidationError(f"Unexpected Element '{root.tag}'", subcode=VALIDATION_TOKEN_FORMAT)
    values = {child.tag: child.text or "" for child in root}
    return _token_from_values(TableContinuationToken, values)


def token_to_string(token: TableContinuationToken) -> str:
    """Write a token through the streaming writer into a standalone string."""
    buffer = io.StringIO()
    writer = XMLGenerator(buffer, encoding="utf-8")
    token.write_xml(writer)
    return buffer.getvalue()


__all__ = [
    "StorageLocation",
    "LocationMode",
    "TableContinuationToken",
    "serialize_token",
    "deserialize_token",
    "token_to_string",
]
