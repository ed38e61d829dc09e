# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.

"""
Batch (entity group transaction) builder.

A :class:`TableBatchOperation` is an ordered list of operations that the
service applies atomically. All operations must target the same partition;
the partition is locked by the first operation added and released again when
the batch becomes empty.
"""

from __future__ import annotations

from collections.abc import MutableSequence
from typing import Iterable, Optional, Sequence

from ..core._error_codes import (
    VALIDATION_BATCH_PARTITION_MISMATCH,
    VALIDATION_BATCH_RETRIEVE_MIXED,
    VALIDATION_NULL_ARGUMENT,
)
from ..core.errors import UnsupportedOperationError, ValidationError
from .entity import TableEntity
from .operation import EntityResolver, TableOperation

RETRIEVE_MIXED_MESSAGE = "A batch transaction with a retrieve operation cannot contain any other operations."
PARTITION_MISMATCH_MESSAGE = "All entities in a given batch must have the same partition key."


class TableBatchOperation(MutableSequence):
    """
    Ordered, partition-scoped group of table operations.

    The operation count limit (100) is checked when the batch is executed, not
    while it is built. Duplicate row keys are rejected by the service.

    Example::

        batch = TableBatchOperation()
        batch.insert_entity(TableEntity("p", "r1", {"foo": "a"}))
        batch.insert_or_merge_entity(TableEntity("p", "r2", {"foo": "b"}))
        results = client.entities.execute_batch("people", batch)
    """

    def __init__(self, operations: Optional[Iterable[TableOperation]] = None) -> None:
        self._operations: list = []
        self._locked_partition_key: Optional[str] = None
        self._has_query = False
        for op in operations or ():
            self.append(op)

    @property
    def locked_partition_key(self) -> Optional[str]:
        return self._locked_partition_key

    @property
    def contains_writes(self) -> bool:
        return any(not op.is_read_only for op in self._operations)

    # ------------------------------------------------------------ sequence protocol

    def __getitem__(self, index):
        return self._operations[index]

    def __setitem__(self, index, value) -> None:
        raise UnsupportedOperationError("Replacing an operation in a batch is not supported.")

    def __delitem__(self, index) -> None:
        del self._operations[index]
        self._on_removed()

    def __len__(self) -> int:
        return len(self._operations)

    def insert(self, index: int, operation: TableOperation) -> None:
        self._check_add(operation)
        self._operations.insert(index, operation)
        if operation.is_read_only:
            self._has_query = True

    def clear(self) -> None:
        self._operations.clear()
        self._on_removed()

    def __repr__(self) -> str:
        return f"TableBatchOperation({len(self._operations)} operations, partition={self._locked_partition_key!r})"

    def _check_add(self, operation: TableOperation) -> None:
        if operation is None:
            raise ValidationError("operation must not be None.", subcode=VALIDATION_NULL_ARGUMENT)
        if self._operations and (self._has_query or operation.is_read_only):
            raise ValidationError(RETRIEVE_MIXED_MESSAGE, subcode=VALIDATION_BATCH_RETRIEVE_MIXED)
        partition_key = operation.partition_key
        if self._locked_partition_key is None:
            self._locked_partition_key = partition_key
        elif partition_key != self._locked_partition_key:
            raise ValidationError(
                PARTITION_MISMATCH_MESSAGE,
                subcode=VALIDATION_BATCH_PARTITION_MISMATCH,
                details={"expected": self._locked_partition_key, "actual": partition_key},
            )

    def _on_removed(self) -> None:
        if not self._operations:
            self._locked_partition_key = None
            self._has_query = False

    # ------------------------------------------------------------ helpers

    def insert_entity(self, entity: TableEntity, echo_content: bool = False) -> None:
        self.append(TableOperation.insert(entity, echo_content))

    def delete_entity(self, entity: TableEntity) -> None:
        self.append(TableOperation.delete(entity))

    def replace_entity(self, entity: TableEntity) -> None:
        self.append(TableOperation.replace(entity))

    def merge_entity(self, entity: TableEntity) -> None:
        self.append(TableOperation.merge(entity))

    def insert_or_replace_entity(self, entity: TableEntity) -> None:
        self.append(TableOperation.insert_or_replace(entity))

    def insert_or_merge_entity(self, entity: TableEntity) -> None:
        self.append(TableOperation.insert_or_merge(entity))

    def retrieve_entity(
        self,
        partition_key: str,
        row_key: str,
        select_columns: Optional[Sequence[str]] = None,
        resolver: Optional[EntityResolver] = None,
    ) -> None:
        self.append(TableOperation.retrieve(partition_key, row_key, select_columns, resolver))


__all__ = ["TableBatchOperation"]
