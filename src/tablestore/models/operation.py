# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.

"""
Single-entity operation descriptors.

A :class:`TableOperation` describes one intended mutation or retrieval. It is
built through the factory class methods, validated up front for missing
arguments, and executed with ``client.entities.execute`` or grouped into a
:class:`~tablestore.models.batch.TableBatchOperation`.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Callable, List, Optional, Sequence
from urllib.parse import quote

from ..core._error_codes import VALIDATION_MISSING_ETAG, VALIDATION_NULL_ARGUMENT
from ..core.errors import ValidationError
from .entity import TableEntity

# resolver(partition_key, row_key, timestamp, properties, etag) -> Any
EntityResolver = Callable[..., Any]


class TableOperationType(Enum):
    INSERT = "Insert"
    DELETE = "Delete"
    REPLACE = "Replace"
    MERGE = "Merge"
    INSERT_OR_REPLACE = "InsertOrReplace"
    INSERT_OR_MERGE = "InsertOrMerge"
    RETRIEVE = "Retrieve"


_ETAG_REQUIRED = {
    TableOperationType.DELETE: "Delete",
    TableOperationType.REPLACE: "Replace",
    TableOperationType.MERGE: "Merge",
}


def _escape_key(value: str) -> str:
    return quote(value.replace("'", "''"), safe="")


class TableOperation:
    """
    Immutable description of a single table operation.

    Use the factory methods rather than the constructor::

        op = TableOperation.insert(entity, echo_content=True)
        op = TableOperation.merge(entity)            # entity.etag must be set
        op = TableOperation.retrieve("pk", "rk", select_columns=["foo"])

    :raises ValidationError: From the factories, for a missing entity, a missing
        key, or a missing ETag on Delete, Replace and Merge.
    """

    __slots__ = (
        "_operation_type",
        "_entity",
        "_echo_content",
        "_partition_key",
        "_row_key",
        "_select_columns",
        "_resolver",
    )

    def __init__(
        self,
        operation_type: TableOperationType,
        entity: Optional[TableEntity] = None,
        *,
        echo_content: bool = False,
        partition_key: Optional[str] = None,
        row_key: Optional[str] = None,
        select_columns: Optional[Sequence[str]] = None,
        resolver: Optional[EntityResolver] = None,
    ) -> None:
        object.__setattr__(self, "_operation_type", operation_type)
        object.__setattr__(self, "_entity", entity)
        object.__setattr__(self, "_echo_content", echo_content)
        object.__setattr__(self, "_partition_key", partition_key)
        object.__setattr__(self, "_row_key", row_key)
        object.__setattr__(self, "_select_columns", list(select_columns) if select_columns is not None else None)
        object.__setattr__(self, "_resolver", resolver)

    def __setattr__(self, name: str, value: Any) -> None:
        raise AttributeError(f"{type(self).__name__} is immutable")

    # ------------------------------------------------------------ factories

    @classmethod
    def _for_entity(cls, operation_type: TableOperationType, entity: TableEntity, **kwargs: Any) -> "TableOperation":
        if entity is None:
            raise ValidationError("entity must not be None.", subcode=VALIDATION_NULL_ARGUMENT)
        if entity.partition_key is None:
            raise ValidationError("entity.partition_key must not be None.", subcode=VALIDATION_NULL_ARGUMENT)
        if entity.row_key is None:
            raise ValidationError("entity.row_key must not be None.", subcode=VALIDATION_NULL_ARGUMENT)
        verb = _ETAG_REQUIRED.get(operation_type)
        if verb is not None and not entity.etag:
            raise ValidationError(
                f"{verb} requires an ETag (which may be the '*' wildcard).",
                subcode=VALIDATION_MISSING_ETAG,
            )
        return cls(operation_type, entity, **kwargs)

    @classmethod
    def insert(cls, entity: TableEntity, echo_content: bool = False) -> "TableOperation":
        """
        Insert a new entity.

        :param entity: Entity to insert. Any ETag it carries is ignored.
        :type entity: ~tablestore.models.entity.TableEntity
        :param echo_content: Ask the service to return the inserted entity.
        :type echo_content: bool
        """
        return cls._for_entity(TableOperationType.INSERT, entity, echo_content=echo_content)

    @classmethod
    def delete(cls, entity: TableEntity) -> "TableOperation":
        return cls._for_entity(TableOperationType.DELETE, entity)

    @classmethod
    def replace(cls, entity: TableEntity) -> "TableOperation":
        return cls._for_entity(TableOperationType.REPLACE, entity)

    @classmethod
    def merge(cls, entity: TableEntity) -> "TableOperation":
        return cls._for_entity(TableOperationType.MERGE, entity)

    @classmethod
    def insert_or_replace(cls, entity: TableEntity) -> "TableOperation":
        return cls._for_entity(TableOperationType.INSERT_OR_REPLACE, entity)

    @classmethod
    def insert_or_merge(cls, entity: TableEntity) -> "TableOperation":
        return cls._for_entity(TableOperationType.INSERT_OR_MERGE, entity)

    @classmethod
    def retrieve(
        cls,
        partition_key: str,
        row_key: str,
        select_columns: Optional[Sequence[str]] = None,
        resolver: Optional[EntityResolver] = None,
    ) -> "TableOperation":
        """
        Retrieve a single entity by key.

        :param partition_key: Partition key.
        :type partition_key: str
        :param row_key: Row key.
        :type row_key: str
        :param select_columns: Restrict the returned properties to these names.
        :type select_columns: list[str] | None
        :param resolver: ``resolver(pk, rk, timestamp, properties, etag)`` projecting the
            row into any shape. When omitted a :class:`TableEntity` is returned.
        :type resolver: callable | None
        """
        if partition_key is None:
            raise ValidationError("partition_key must not be None.", subcode=VALIDATION_NULL_ARGUMENT)
        if row_key is None:
            raise ValidationError("row_key must not be None.", subcode=VALIDATION_NULL_ARGUMENT)
        return cls(
            TableOperationType.RETRIEVE,
            partition_key=partition_key,
            row_key=row_key,
            select_columns=select_columns,
            resolver=resolver,
        )

    # ------------------------------------------------------------ accessors

    @property
    def operation_type(self) -> TableOperationType:
        return self._operation_type

    @property
    def entity(self) -> Optional[TableEntity]:
        return self._entity

    @property
    def echo_content(self) -> bool:
        return self._echo_content

    @property
    def select_columns(self) -> Optional[List[str]]:
        return None if self._select_columns is None else list(self._select_columns)

    @property
    def resolver(self) -> Optional[EntityResolver]:
        return self._resolver

    @property
    def is_read_only(self) -> bool:
        return self._operation_type is TableOperationType.RETRIEVE

    @property
    def partition_key(self) -> Optional[str]:
        if self._entity is not None:
            return self._entity.partition_key
        return self._partition_key

    @property
    def row_key(self) -> Optional[str]:
        if self._entity is not None:
            return self._entity.row_key
        return self._row_key

    @property
    def etag(self) -> Optional[str]:
        return None if self._entity is None else self._entity.etag

    def to_request_uri(self, table_name: str) -> str:
        """
        Build the relative resource path for this operation.

        Inserts address the table collection; every other operation addresses
        the entity by key, with embedded single quotes doubled.

        :param table_name: Target table.
        :type table_name: str
        :return: e.g. ``"people()"`` or ``"people(PartitionKey='p',RowKey='r')"``.
        :rtype: str
        """
        if self._operation_type is TableOperationType.INSERT:
            return f"{table_name}()"
        return (
            f"{table_name}(PartitionKey='{_escape_key(self.partition_key)}',"
            f"RowKey='{_escape_key(self.row_key)}')"
        )

    def __repr__(self) -> str:
        return (
            f"TableOperation({self._operation_type.value}, "
            f"partition_key={self.partition_key!r}, row_key={self.row_key!r})"
        )


__all__ = ["TableOperationType", "TableOperation", "EntityResolver"]
