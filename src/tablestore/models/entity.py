# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.

"""
Entity data model for table rows.

Provides :class:`EntityProperty`, a typed (and nullable) property value, and
:class:`TableEntity`, a row identified by partition key and row key with a
dict-like bag of named properties.
"""

from __future__ import annotations

import base64
import datetime as _dt
import math
import re
import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Iterator, Optional

from ..common.constants import MAX_PROPERTY_NAME_LENGTH
from ..core._error_codes import (
    VALIDATION_PROPERTY_NAME_TOO_LONG,
    VALIDATION_TYPE_MISMATCH,
)
from ..core.errors import ValidationError

_INT32_MIN = -(2**31)
_INT32_MAX = 2**31 - 1
_INT64_MIN = -(2**63)
_INT64_MAX = 2**63 - 1

_DATETIME_RE = re.compile(
    r"^(?P<base>\d{4}-\d{2}-\d{2}T\d{2}:\d{2}:\d{2})"
    r"(?:\.(?P<frac>\d+))?"
    r"(?P<tz>Z|[+-]\d{2}:\d{2})?$"
)


class EdmType(str, Enum):
    """Declared scalar type of a property, using the OData EDM type names."""

    STRING = "Edm.String"
    BINARY = "Edm.Binary"
    BOOLEAN = "Edm.Boolean"
    INT32 = "Edm.Int32"
    INT64 = "Edm.Int64"
    DOUBLE = "Edm.Double"
    GUID = "Edm.Guid"
    DATETIME = "Edm.DateTime"

    @classmethod
    def from_name(cls, name: str) -> "EdmType":
        """Resolve an ``Edm.*`` type name, raising :class:`ValidationError` when unknown."""
        for member in cls:
            if member.value == name:
                return member
        raise ValidationError(f"Unsupported EDM type '{name}'.", subcode=VALIDATION_TYPE_MISMATCH)


def parse_datetime(text: str) -> _dt.datetime:
    """
    Parse an ISO 8601 timestamp as returned by the service.

    The service emits up to seven fractional digits; anything beyond
    microsecond precision is truncated. Naive inputs are treated as UTC.

    :param text: Timestamp text, e.g. ``"2024-01-02T03:04:05.1234567Z"``.
    :type text: :class:`str`
    :return: Timezone-aware datetime in UTC.
    :rtype: :class:`datetime.datetime`
    :raises ValidationError: If the text is not a valid timestamp.
    """
    match = _DATETIME_RE.match(text.strip())
    if not match:
        raise ValidationError(f"Invalid DateTime value '{text}'.", subcode=VALIDATION_TYPE_MISMATCH)
    value = _dt.datetime.strptime(match.group("base"), "%Y-%m-%dT%H:%M:%S")
    frac = match.group("frac")
    if frac:
        value = value.replace(microsecond=int(frac[:6].ljust(6, "0")))
    tz = match.group("tz")
    if tz and tz != "Z":
        sign = 1 if tz[0] == "+" else -1
        hours, minutes = int(tz[1:3]), int(tz[4:6])
        offset = _dt.timedelta(hours=hours, minutes=minutes) * sign
        return value.replace(tzinfo=_dt.timezone(offset)).astimezone(_dt.timezone.utc)
    return value.replace(tzinfo=_dt.timezone.utc)


def format_datetime(value: _dt.datetime) -> str:
    """Format a datetime as the service's UTC ISO 8601 form with seven fractional digits."""
    if value.tzinfo is not None:
        value = value.astimezone(_dt.timezone.utc).replace(tzinfo=None)
    return value.strftime("%Y-%m-%dT%H:%M:%S") + ".%07dZ" % (value.microsecond * 10)


class EntityProperty:
    """
    A typed property value.

    The declared :class:`EdmType` travels with the value, so a null value still
    has a type. Equality and hashing are content-based: two binary properties
    built from different byte arrays with the same bytes are equal and share a
    hash code.

    :param edm_type: Declared type.
    :type edm_type: ~tablestore.models.entity.EdmType
    :param value: Python value matching the declared type, or ``None``.

    Example::

        prop = EntityProperty.for_binary(b"\\x01\\x02")
        assert prop == EntityProperty.for_binary(bytearray(b"\\x01\\x02"))
        assert hash(prop) == hash(EntityProperty.for_binary(b"\\x01\\x02"))
    """

    __slots__ = ("_edm_type", "_value")

    def __init__(self, edm_type: EdmType, value: Any = None) -> None:
        self._edm_type = EdmType(edm_type)
        self._value = self._coerce(self._edm_type, value)

    @staticmethod
    def _coerce(edm_type: EdmType, value: Any) -> Any:
        if value is None:
            return None
        if edm_type is EdmType.BINARY:
            if not isinstance(value, (bytes, bytearray, memoryview)):
                raise ValidationError("Binary properties require a bytes-like value.", subcode=VALIDATION_TYPE_MISMATCH)
            return bytes(value)
        if edm_type is EdmType.STRING:
            if not isinstance(value, str):
                raise ValidationError("String properties require a str value.", subcode=VALIDATION_TYPE_MISMATCH)
            return value
        if edm_type is EdmType.BOOLEAN:
            if not isinstance(value, bool):
                raise ValidationError("Boolean properties require a bool value.", subcode=VALIDATION_TYPE_MISMATCH)
            return value
        if edm_type is EdmType.INT32:
            if isinstance(value, bool) or not isinstance(value, int) or not _INT32_MIN <= value <= _INT32_MAX:
                raise ValidationError("Int32 properties require an int in the 32-bit range.", subcode=VALIDATION_TYPE_MISMATCH)
            return value
        if edm_type is EdmType.INT64:
            if isinstance(value, bool) or not isinstance(value, int) or not _INT64_MIN <= value <= _INT64_MAX:
                raise ValidationError("Int64 properties require an int in the 64-bit range.", subcode=VALIDATION_TYPE_MISMATCH)
            return value
        if edm_type is EdmType.DOUBLE:
            if isinstance(value, bool) or not isinstance(value, (int, float)):
                raise ValidationError("Double properties require a float value.", subcode=VALIDATION_TYPE_MISMATCH)
            return float(value)
        if edm_type is EdmType.GUID:
            if isinstance(value, str):
                return uuid.UUID(value)
            if not isinstance(value, uuid.UUID):
                raise ValidationError("Guid properties require a uuid.UUID value.", subcode=VALIDATION_TYPE_MISMATCH)
            return value
        if edm_type is EdmType.DATETIME:
            if not isinstance(value, _dt.datetime):
                raise ValidationError("DateTime properties require a datetime value.", subcode=VALIDATION_TYPE_MISMATCH)
            if value.tzinfo is None:
                return value.replace(tzinfo=_dt.timezone.utc)
            return value.astimezone(_dt.timezone.utc)
        raise ValidationError(f"Unsupported EDM type '{edm_type}'.", subcode=VALIDATION_TYPE_MISMATCH)

    # ------------------------------------------------------------ factories

    @classmethod
    def for_string(cls, value: Optional[str]) -> "EntityProperty":
        return cls(EdmType.STRING, value)

    @classmethod
    def for_binary(cls, value: Optional[bytes]) -> "EntityProperty":
        return cls(EdmType.BINARY, value)

    @classmethod
    def for_bool(cls, value: Optional[bool]) -> "EntityProperty":
        return cls(EdmType.BOOLEAN, value)

    @classmethod
    def for_int(cls, value: Optional[int]) -> "EntityProperty":
        return cls(EdmType.INT32, value)

    @classmethod
    def for_long(cls, value: Optional[int]) -> "EntityProperty":
        return cls(EdmType.INT64, value)

    @classmethod
    def for_double(cls, value: Optional[float]) -> "EntityProperty":
        return cls(EdmType.DOUBLE, value)

    @classmethod
    def for_guid(cls, value: Optional[uuid.UUID]) -> "EntityProperty":
        return cls(EdmType.GUID, value)

    @classmethod
    def for_datetime(cls, value: Optional[_dt.datetime]) -> "EntityProperty":
        return cls(EdmType.DATETIME, value)

    @classmethod
    def create(cls, value: Any) -> "EntityProperty":
        """
        Build a property with the type inferred from a Python value.

        ``int`` values outside the 32-bit range become ``Int64``. ``None``
        cannot be inferred and becomes a null ``String``.

        :raises ValidationError: If the value's type has no EDM counterpart.
        """
        if isinstance(value, EntityProperty):
            return value
        if value is None or isinstance(value, str):
            return cls(EdmType.STRING, value)
        if isinstance(value, bool):
            return cls(EdmType.BOOLEAN, value)
        if isinstance(value, int):
            if _INT32_MIN <= value <= _INT32_MAX:
                return cls(EdmType.INT32, value)
            return cls(EdmType.INT64, value)
        if isinstance(value, float):
            return cls(EdmType.DOUBLE, value)
        if isinstance(value, (bytes, bytearray, memoryview)):
            return cls(EdmType.BINARY, value)
        if isinstance(value, uuid.UUID):
            return cls(EdmType.GUID, value)
        if isinstance(value, _dt.datetime):
            return cls(EdmType.DATETIME, value)
        raise ValidationError(
            f"Cannot infer an EDM type for value of type {type(value).__name__}.",
            subcode=VALIDATION_TYPE_MISMATCH,
        )

    @classmethod
    def create_from_string(cls, edm_type: EdmType, text: Any) -> "EntityProperty":
        """
        Build a property from its wire representation.

        JSON payloads carry numbers and booleans natively and everything else as
        text, so ``text`` may already be a Python scalar.

        :param edm_type: Declared type.
        :type edm_type: ~tablestore.models.entity.EdmType
        :param text: Wire value, or ``None``.
        :return: Typed property.
        :rtype: ~tablestore.models.entity.EntityProperty
        """
        edm_type = EdmType(edm_type)
        if text is None:
            return cls(edm_type, None)
        if edm_type is EdmType.STRING:
            return cls(edm_type, text if isinstance(text, str) else str(text))
        if edm_type is EdmType.BINARY:
            return cls(edm_type, base64.b64decode(text))
        if edm_type is EdmType.BOOLEAN:
            if isinstance(text, bool):
                return cls(edm_type, text)
            return cls(edm_type, str(text).strip().lower() == "true")
        if edm_type in (EdmType.INT32, EdmType.INT64):
            return cls(edm_type, int(text))
        if edm_type is EdmType.DOUBLE:
            if isinstance(text, str):
                special = {"NaN": math.nan, "Infinity": math.inf, "-Infinity": -math.inf}
                if text in special:
                    return cls(edm_type, special[text])
            return cls(edm_type, float(text))
        if edm_type is EdmType.GUID:
            return cls(edm_type, uuid.UUID(str(text)))
        return cls(edm_type, parse_datetime(str(text)))

    # ------------------------------------------------------------ accessors

    @property
    def edm_type(self) -> EdmType:
        return self._edm_type

    @property
    def value(self) -> Any:
        return self._value

    @property
    def is_null(self) -> bool:
        return self._value is None

    def _typed(self, expected: EdmType) -> Any:
        if self._edm_type is not expected:
            raise ValidationError(
                f"Cannot return {expected.value} type for a {self._edm_type.value} typed property.",
                subcode=VALIDATION_TYPE_MISMATCH,
            )
        return self._value

    @property
    def string_value(self) -> Optional[str]:
        return self._typed(EdmType.STRING)

    @property
    def binary_value(self) -> Optional[bytes]:
        return self._typed(EdmType.BINARY)

    @property
    def boolean_value(self) -> Optional[bool]:
        return self._typed(EdmType.BOOLEAN)

    @property
    def int32_value(self) -> Optional[int]:
        return self._typed(EdmType.INT32)

    @property
    def int64_value(self) -> Optional[int]:
        return self._typed(EdmType.INT64)

    @property
    def double_value(self) -> Optional[float]:
        return self._typed(EdmType.DOUBLE)

    @property
    def guid_value(self) -> Optional[uuid.UUID]:
        return self._typed(EdmType.GUID)

    @property
    def datetime_value(self) -> Optional[_dt.datetime]:
        return self._typed(EdmType.DATETIME)

    # ------------------------------------------------------------ identity

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, EntityProperty):
            return NotImplemented
        return self._edm_type is other._edm_type and self._value == other._value

    def __hash__(self) -> int:
        return hash((self._edm_type, self._value))

    def __repr__(self) -> str:
        return f"EntityProperty({self._edm_type.name}, {self._value!r})"


def _validate_property_name(name: str) -> None:
    if not isinstance(name, str):
        raise ValidationError("Property names must be strings.", subcode=VALIDATION_TYPE_MISMATCH)
    if len(name) > MAX_PROPERTY_NAME_LENGTH:
        raise ValidationError(
            f"The property name exceeds the maximum allowed length ({MAX_PROPERTY_NAME_LENGTH}).",
            subcode=VALIDATION_PROPERTY_NAME_TOO_LONG,
            details={"property_name": name[:32] + "..."},
        )


@dataclass
class TableEntity:
    """
    A table row with a dynamic bag of typed properties.

    Provides dict-like access to properties. Reading returns the stored
    :class:`EntityProperty`; assigning a plain Python value wraps it with an
    inferred type, assigning an :class:`EntityProperty` stores it unchanged.

    :param partition_key: Partition key. May be empty, must not be ``None`` when submitted.
    :type partition_key: str | None
    :param row_key: Row key. May be empty, must not be ``None`` when submitted.
    :type row_key: str | None
    :param properties: Named properties.
    :type properties: dict[str, EntityProperty]
    :param etag: Concurrency token. ``"*"`` matches any version.
    :type etag: str | None
    :param timestamp: Server-assigned last-modified time.
    :type timestamp: datetime.datetime | None

    Example::

        entity = TableEntity("p", "r")
        entity["foo"] = "bar"
        entity["count"] = EntityProperty.for_long(5)
        print(entity["foo"].string_value)   # "bar"
        print(entity.get_value("count"))    # 5
    """

    partition_key: Optional[str] = None
    row_key: Optional[str] = None
    properties: Dict[str, EntityProperty] = field(default_factory=dict)
    etag: Optional[str] = None
    timestamp: Optional[_dt.datetime] = None

    def __post_init__(self) -> None:
        raw = self.properties
        self.properties = {}
        self.read_entity(raw)

    def __getitem__(self, key: str) -> EntityProperty:
        return self.properties[key]

    def __setitem__(self, key: str, value: Any) -> None:
        _validate_property_name(key)
        self.properties[key] = EntityProperty.create(value)

    def __delitem__(self, key: str) -> None:
        del self.properties[key]

    def __contains__(self, key: object) -> bool:
        return key in self.properties

    def __iter__(self) -> Iterator[str]:
        return iter(self.properties)

    def __len__(self) -> int:
        return len(self.properties)

    def get(self, key: str, default: Optional[EntityProperty] = None) -> Optional[EntityProperty]:
        return self.properties.get(key, default)

    def get_value(self, key: str, default: Any = None) -> Any:
        """
        Return the raw Python value of a property.

        :param key: Property name.
        :type key: str
        :param default: Returned when the property is absent.
        :return: The property's value (which may itself be ``None``) or ``default``.
        """
        prop = self.properties.get(key)
        return default if prop is None else prop.value

    def keys(self):
        return self.properties.keys()

    def items(self):
        return self.properties.items()

    def read_entity(self, properties: Dict[str, Any]) -> None:
        """
        Replace this entity's properties from a property map.

        :param properties: Mapping of names to :class:`EntityProperty` or plain values.
        :type properties: dict
        :raises ValidationError: If a name is longer than 255 characters.
        """
        self.properties = {}
        for name, value in (properties or {}).items():
            self[name] = value

    def write_entity(self) -> Dict[str, EntityProperty]:
        """Return a copy of the property map for serialization."""
        return dict(self.properties)

    def to_dict(self) -> Dict[str, Any]:
        """Flatten the entity into plain values, including the system properties."""
        data: Dict[str, Any] = {
            "PartitionKey": self.partition_key,
            "RowKey": self.row_key,
        }
        if self.timestamp is not None:
            data["Timestamp"] = self.timestamp
        for name, prop in self.properties.items():
            data[name] = prop.value
        return data
