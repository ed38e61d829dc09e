# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.

"""
Query description and OData filter generation.

Provides :class:`TableQuery`, a fluent description of a filter, a column
projection and a take count, and the ``generate_filter_condition*`` helpers
that render typed comparisons as filter text.
"""

from __future__ import annotations

import datetime as _dt
import uuid
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence

from ..common.constants import PARTITION_KEY, ROW_KEY, TIMESTAMP
from ..core._error_codes import VALIDATION_TAKE_COUNT
from ..core.errors import ValidationError
from .entity import format_datetime

TAKE_COUNT_MESSAGE = "Take count must be positive and greater than 0."


class QueryComparisons:
    EQUAL = "eq"
    NOT_EQUAL = "ne"
    GREATER_THAN = "gt"
    GREATER_THAN_OR_EQUAL = "ge"
    LESS_THAN = "lt"
    LESS_THAN_OR_EQUAL = "le"


class TableOperators:
    AND = "and"
    OR = "or"
    NOT = "not"


def _quote(value: str) -> str:
    return value.replace("'", "''")


def _condition(property_name: str, operation: str, literal: str) -> str:
    return f"{property_name} {operation} {literal}"


def generate_filter_condition(property_name: str, operation: str, value: str) -> str:
    """
    Render a string comparison, e.g. ``Name eq 'O''Neil'``.

    :param property_name: Property to compare.
    :type property_name: str
    :param operation: One of the :class:`QueryComparisons` values.
    :type operation: str
    :param value: String literal. Embedded single quotes are doubled.
    :type value: str
    :rtype: str
    """
    return _condition(property_name, operation, f"'{_quote(value)}'")


def generate_filter_condition_for_bool(property_name: str, operation: str, value: bool) -> str:
    return _condition(property_name, operation, "true" if value else "false")


def generate_filter_condition_for_binary(property_name: str, operation: str, value: bytes) -> str:
    return _condition(property_name, operation, f"X'{bytes(value).hex()}'")


def generate_filter_condition_for_date(property_name: str, operation: str, value: _dt.datetime) -> str:
    return _condition(property_name, operation, f"datetime'{format_datetime(value)}'")


def generate_filter_condition_for_double(property_name: str, operation: str, value: float) -> str:
    text = repr(float(value))
    if text.endswith(".0"):
        text = text[:-2]
    return _condition(property_name, operation, text)


def generate_filter_condition_for_guid(property_name: str, operation: str, value: uuid.UUID) -> str:
    return _condition(property_name, operation, f"guid'{_quote(str(value))}'")


def generate_filter_condition_for_int(property_name: str, operation: str, value: int) -> str:
    return _condition(property_name, operation, str(int(value)))


def generate_filter_condition_for_long(property_name: str, operation: str, value: int) -> str:
    return _condition(property_name, operation, f"{int(value)}L")


def combine_filters(filter_a: str, operator: str, filter_b: str) -> str:
    """Join two filters, e.g. ``(PartitionKey eq 'p') and (RowKey gt 'a')``."""
    return f"({filter_a}) {operator} ({filter_b})"


@dataclass
class TableQuery:
    """
    Filter, projection and take count for an entity query.

    :param filter_string: OData filter, e.g. built with :func:`generate_filter_condition`.
    :type filter_string: str | None
    :param select_columns: Properties to return. ``None`` returns all properties.
    :type select_columns: list[str] | None
    :param take_count: Maximum number of entities returned across all segments.
    :type take_count: int | None

    Example::

        query = (TableQuery()
                 .where(generate_filter_condition("PartitionKey", QueryComparisons.EQUAL, "p"))
                 .select("foo", "bar")
                 .take(50))
    """

    filter_string: Optional[str] = None
    select_columns: Optional[List[str]] = None
    take_count: Optional[int] = None

    def __post_init__(self) -> None:
        if self.take_count is not None:
            _validate_take_count(self.take_count)
        if self.select_columns is not None:
            self.select_columns = list(self.select_columns)

    def where(self, filter_string: str) -> "TableQuery":
        self.filter_string = filter_string
        return self

    def select(self, *columns: str) -> "TableQuery":
        self.select_columns = list(columns)
        return self

    def take(self, count: Optional[int]) -> "TableQuery":
        """
        Limit the total number of entities returned.

        :raises ValidationError: If ``count`` is zero or negative.
        """
        if count is not None:
            _validate_take_count(count)
        self.take_count = count
        return self

    def to_query_parameters(self, project_system_properties: bool = True) -> Dict[str, str]:
        """
        Build the ``$filter``, ``$top`` and ``$select`` query string parameters.

        :param project_system_properties: Add ``PartitionKey``, ``RowKey`` and
            ``Timestamp`` to a column projection so returned entities keep their identity.
        :type project_system_properties: bool
        :rtype: dict[str, str]
        """
        params: Dict[str, str] = {}
        if self.filter_string:
            params["$filter"] = self.filter_string
        if self.take_count is not None:
            params["$top"] = str(self.take_count)
        select = build_select(self.select_columns, project_system_properties)
        if select is not None:
            params["$select"] = select
        return params


def build_select(columns: Optional[Sequence[str]], project_system_properties: bool = True) -> Optional[str]:
    if columns is None:
        return None
    names = list(columns)
    if project_system_properties:
        for system in (PARTITION_KEY, ROW_KEY, TIMESTAMP):
            if system not in names:
                names.append(system)
    return ",".join(names)


def _validate_take_count(count: int) -> None:
    if isinstance(count, bool) or not isinstance(count, int) or count <= 0:
        raise ValidationError(TAKE_COUNT_MESSAGE, subcode=VALIDATION_TAKE_COUNT, details={"take_count": count})


__all__ = [
    "QueryComparisons",
    "TableOperators",
    "TableQuery",
    "generate_filter_condition",
    "generate_filter_condition_for_bool",
    "generate_filter_condition_for_binary",
    "generate_filter_condition_for_date",
    "generate_filter_condition_for_double",
    "generate_filter_condition_for_guid",
    "generate_filter_condition_for_int",
    "generate_filter_condition_for_long",
    "combine_filters",
    "build_select",
]
