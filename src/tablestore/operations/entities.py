# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.

"""Entity operations namespace for the tablestore client."""

from __future__ import annotations

from concurrent.futures import Future
from typing import Any, Dict, List, Optional, TYPE_CHECKING

import pandas as pd

from ..common.constants import MAX_BATCH_OPERATIONS, PARTITION_KEY, ROW_KEY
from ..core._async import AsyncCallback, CancellationToken
from ..core.config import TableStorageConfig
from ..core.context import OperationContext
from ..core.errors import StorageError
from ..core.results import TableResult
from ..models.batch import TableBatchOperation
from ..models.operation import TableOperation
from ..utils._pandas import dataframe_to_entities
from ._validation import require

if TYPE_CHECKING:
    from ..client import TableServiceClient


__all__ = ["EntityOperations"]


class EntityOperations:
    """Namespace for single-entity operations and entity group transactions.

    Accessed via ``client.entities``.

    :param client: The parent :class:`~tablestore.client.TableServiceClient` instance.
    :type client: ~tablestore.client.TableServiceClient

    Example::

        with TableServiceClient(account_url, credential) as client:
            entity = TableEntity("users", "alice", {"age": 31})
            client.entities.execute("people", TableOperation.insert(entity))

            batch = TableBatchOperation()
            batch.insert_entity(TableEntity("users", "bob", {"age": 40}))
            batch.insert_or_merge_entity(TableEntity("users", "carol", {"age": 25}))
            results = client.entities.execute_batch("people", batch)
    """

    def __init__(self, client: TableServiceClient) -> None:
        self._client = client

    # ----------------------------------------------------------------- execute

    def execute(
        self,
        table_name: str,
        operation: TableOperation,
        *,
        config: Optional[TableStorageConfig] = None,
        operation_context: Optional[OperationContext] = None,
    ) -> TableResult:
        """Execute a single operation against a table.

        A retrieve that finds nothing returns a result with status ``404`` and
        ``result=None`` rather than raising. Writes update the submitted
        entity's ``etag`` (and ``timestamp`` where the service reports one).

        :param table_name: Target table.
        :type table_name: :class:`str`
        :param operation: Operation built with a :class:`~tablestore.models.operation.TableOperation` factory.
        :type operation: ~tablestore.models.operation.TableOperation
        :param config: Per-call configuration override.
        :type config: ~tablestore.core.config.TableStorageConfig or None
        :param operation_context: Receives per-attempt diagnostics.
        :type operation_context: ~tablestore.core.context.OperationContext or None

        :return: Status code, ETag and the entity or resolver projection.
        :rtype: ~tablestore.core.results.TableResult

        :raises ~tablestore.core.errors.ValidationError: If ``table_name`` or ``operation`` is missing.
        :raises ~tablestore.core.errors.StorageError: If the service rejects the operation,
            retries are exhausted or the maximum execution time elapses.

        Example::

            res = client.entities.execute("people", TableOperation.retrieve("users", "alice"))
            if res.result is not None:
                print(res.result["age"].int32_value)
        """
        return self._execute(table_name, operation, config, operation_context, None)

    def _execute(
        self,
        table_name: str,
        operation: TableOperation,
        config: Optional[TableStorageConfig],
        operation_context: Optional[OperationContext],
        cancellation_token: Optional[CancellationToken],
    ) -> TableResult:
        require(table_name, "table_name")
        require(operation, "operation")
        od = self._client._get_odata()
        return od._execute_operation(
            table_name, operation, self._client._effective_config(config), operation_context, cancellation_token
        )

    def begin_execute(
        self,
        table_name: str,
        operation: TableOperation,
        callback: Optional[AsyncCallback] = None,
        state: Any = None,
        *,
        config: Optional[TableStorageConfig] = None,
        operation_context: Optional[OperationContext] = None,
    ) -> Future:
        """Start :meth:`execute` in the background.

        :param callback: ``callback(future, state)`` invoked on completion.
        :param state: Opaque value handed back to ``callback``.
        :return: Future resolving to a :class:`~tablestore.core.results.TableResult`.
        :rtype: :class:`concurrent.futures.Future`
        """
        return self._client._dispatcher().begin(
            self._execute,
            table_name,
            operation,
            config,
            operation_context,
            None,
            callback=callback,
            state=state,
        )

    def execute_async(
        self,
        table_name: str,
        operation: TableOperation,
        *,
        cancellation_token: Optional[CancellationToken] = None,
        config: Optional[TableStorageConfig] = None,
        operation_context: Optional[OperationContext] = None,
    ) -> Future:
        """Run :meth:`execute` on the client's worker pool.

        :param cancellation_token: Cancels the operation between attempts.
        :type cancellation_token: ~tablestore.core._async.CancellationToken or None
        :rtype: :class:`concurrent.futures.Future`
        """
        return self._client._dispatcher().submit(
            self._execute, table_name, operation, config, operation_context, cancellation_token
        )

    # ------------------------------------------------------------------- batch

    def execute_batch(
        self,
        table_name: str,
        batch: TableBatchOperation,
        *,
        config: Optional[TableStorageConfig] = None,
        operation_context: Optional[OperationContext] = None,
    ) -> List[TableResult]:
        """Execute an entity group transaction.

        All operations must share a partition key and succeed or fail together.
        Results are returned in the order of the batch.

        :param table_name: Target table.
        :type table_name: :class:`str`
        :param batch: Up to 100 operations.
        :type batch: ~tablestore.models.batch.TableBatchOperation

        :return: One result per operation.
        :rtype: list[~tablestore.core.results.TableResult]

        :raises ~tablestore.core.errors.InvalidOperationError: If the batch is empty or
            holds more than 100 operations. No request is sent.
        :raises ~tablestore.core.errors.StorageError: If any operation fails. The message
            names the failing element when the service reports it.
        """
        return self._execute_batch(table_name, batch, config, operation_context, None)

    def _execute_batch(
        self,
        table_name: str,
        batch: TableBatchOperation,
        config: Optional[TableStorageConfig],
        operation_context: Optional[OperationContext],
        cancellation_token: Optional[CancellationToken],
    ) -> List[TableResult]:
        require(table_name, "table_name")
        require(batch, "batch")
        od = self._client._get_odata()
        return od._execute_batch(
            table_name, batch, self._client._effective_config(config), operation_context, cancellation_token
        )

    def begin_execute_batch(
        self,
        table_name: str,
        batch: TableBatchOperation,
        callback: Optional[AsyncCallback] = None,
        state: Any = None,
        *,
        config: Optional[TableStorageConfig] = None,
        operation_context: Optional[OperationContext] = None,
    ) -> Future:
        """Start :meth:`execute_batch` in the background; see :meth:`begin_execute`."""
        return self._client._dispatcher().begin(
            self._execute_batch,
            table_name,
            batch,
            config,
            operation_context,
            None,
            callback=callback,
            state=state,
        )

    def execute_batch_async(
        self,
        table_name: str,
        batch: TableBatchOperation,
        *,
        cancellation_token: Optional[CancellationToken] = None,
        config: Optional[TableStorageConfig] = None,
        operation_context: Optional[OperationContext] = None,
    ) -> Future:
        return self._client._dispatcher().submit(
            self._execute_batch, table_name, batch, config, operation_context, cancellation_token
        )

    # --------------------------------------------------------------- dataframe

    def upsert_dataframe(
        self,
        table_name: str,
        df: pd.DataFrame,
        *,
        na_as_null: bool = False,
        config: Optional[TableStorageConfig] = None,
    ) -> pd.DataFrame:
        """Insert or merge one entity per DataFrame row.

        Rows are grouped by ``PartitionKey`` and sent as batches of up to 100
        insert-or-merge operations. A failed batch does not stop the others;
        its rows are reported with ``success=False``.

        :param table_name: Target table.
        :type table_name: :class:`str`
        :param df: Rows with ``PartitionKey`` and ``RowKey`` columns; other columns become properties.
        :type df: :class:`pandas.DataFrame`
        :param na_as_null: Send missing values as null properties instead of omitting them.
        :type na_as_null: :class:`bool`

        :return: Columns ``PartitionKey``, ``RowKey``, ``success`` and ``error``, one row per input row.
        :rtype: :class:`pandas.DataFrame`

        Example::

            df = pd.DataFrame([{"PartitionKey": "users", "RowKey": "alice", "age": 31}])
            summary = client.entities.upsert_dataframe("people", df)
            print(summary[~summary["success"]])
        """
        require(table_name, "table_name")
        if df.empty:
            return pd.DataFrame(columns=[PARTITION_KEY, ROW_KEY, "success", "error"])

        by_partition: Dict[str, List[Any]] = {}
        for entity in dataframe_to_entities(df, na_as_null=na_as_null):
            by_partition.setdefault(entity.partition_key, []).append(entity)

        rows = []
        for entities in by_partition.values():
            for start in range(0, len(entities), MAX_BATCH_OPERATIONS):
                chunk = entities[start : start + MAX_BATCH_OPERATIONS]
                batch = TableBatchOperation()
                for entity in chunk:
                    batch.insert_or_merge_entity(entity)
                error = None
                try:
                    self.execute_batch(table_name, batch, config=config)
                except StorageError as e:
                    error = e.message
                for entity in chunk:
                    rows.append(
                        {
                            PARTITION_KEY: entity.partition_key,
                            ROW_KEY: entity.row_key,
                            "success": error is None,
                            "error": error,
                        }
                    )
        return pd.DataFrame(rows)
