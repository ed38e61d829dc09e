# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.

"""Query operations namespace."""

from __future__ import annotations

from concurrent.futures import Future
from typing import Any, Iterable, Iterator, Optional, TYPE_CHECKING

import pandas as pd

from ..core._async import AsyncCallback, CancellationToken
from ..core.config import TableStorageConfig
from ..core.context import OperationContext
from ..core.results import TableQuerySegment
from ..models.continuation import TableContinuationToken
from ..models.operation import EntityResolver
from ..models.query import TableQuery
from ..utils._pandas import entities_to_dataframe
from ._validation import require

if TYPE_CHECKING:
    from ..client import TableServiceClient


__all__ = ["QueryOperations"]


class QueryOperations:
    """
    Query operations for retrieving entities.

    Accessed via ``client.query``. Queries are described by a
    :class:`~tablestore.models.query.TableQuery` and can be read one segment at
    a time or as a lazy iterable that follows continuation tokens.

    Example:
        Lazy iteration over all matching entities::

            query = TableQuery().where(
                generate_filter_condition("PartitionKey", QueryComparisons.EQUAL, "users")
            )
            for entity in client.query.execute("people", query):
                print(entity.row_key)

        Manual paging::

            token = None
            while True:
                segment = client.query.execute_segmented("people", query, token)
                for entity in segment:
                    ...
                token = segment.continuation_token
                if token is None:
                    break

        Projection through a resolver::

            names = client.query.execute(
                "people",
                TableQuery().select("name"),
                resolver=lambda pk, rk, ts, props, etag: props["name"].string_value,
            )
    """

    def __init__(self, client: "TableServiceClient") -> None:
        self._client = client

    def execute_segmented(
        self,
        table_name: str,
        query: Optional[TableQuery] = None,
        continuation_token: Optional[TableContinuationToken] = None,
        resolver: Optional[EntityResolver] = None,
        *,
        config: Optional[TableStorageConfig] = None,
        operation_context: Optional[OperationContext] = None,
    ) -> TableQuerySegment:
        """
        Fetch one segment of query results with a single round trip.

        The first request of a resumed query goes to the location recorded in
        ``continuation_token``.

        :param table_name: Table to query.
        :type table_name: str
        :param query: Filter, projection and take count. ``None`` returns every entity.
        :type query: ~tablestore.models.query.TableQuery or None
        :param continuation_token: Token from the previous segment, or ``None`` to start.
        :type continuation_token: ~tablestore.models.continuation.TableContinuationToken or None
        :param resolver: ``resolver(pk, rk, timestamp, properties, etag)`` projecting each row.
            When omitted, rows are returned as :class:`~tablestore.models.entity.TableEntity`.
        :type resolver: callable or None
        :return: Results of this segment and the token for the next one.
        :rtype: ~tablestore.core.results.TableQuerySegment

        :raises ~tablestore.core.errors.StorageError: If the service rejects the query or the
            resolver raises.
        """
        return self._execute_segmented(
            table_name, query, continuation_token, resolver, config, operation_context, None
        )

    def _execute_segmented(
        self,
        table_name: str,
        query: Optional[TableQuery],
        continuation_token: Optional[TableContinuationToken],
        resolver: Optional[EntityResolver],
        config: Optional[TableStorageConfig],
        operation_context: Optional[OperationContext],
        cancellation_token: Optional[CancellationToken],
    ) -> TableQuerySegment:
        require(table_name, "table_name")
        od = self._client._get_odata()
        return od._query_segment(
            table_name,
            query if query is not None else TableQuery(),
            continuation_token,
            resolver,
            self._client._effective_config(config),
            operation_context,
            cancellation_token,
        )

    def execute(
        self,
        table_name: str,
        query: Optional[TableQuery] = None,
        resolver: Optional[EntityResolver] = None,
        *,
        config: Optional[TableStorageConfig] = None,
    ) -> Iterable[Any]:
        """
        Lazily iterate every result of a query.

        Segments are fetched on demand. Iteration stops after ``query.take_count``
        results when a take count is set. Each call to ``iter()`` on the returned
        object restarts the query from the beginning.

        :param table_name: Table to query.
        :type table_name: str
        :param query: Filter, projection and take count.
        :type query: ~tablestore.models.query.TableQuery or None
        :param resolver: Optional row projection, as for :meth:`execute_segmented`.
        :rtype: Iterable
        """
        require(table_name, "table_name")
        return _QueryIterable(self, table_name, query or TableQuery(), resolver, config)

    def begin_execute_segmented(
        self,
        table_name: str,
        query: Optional[TableQuery] = None,
        continuation_token: Optional[TableContinuationToken] = None,
        resolver: Optional[EntityResolver] = None,
        callback: Optional[AsyncCallback] = None,
        state: Any = None,
        *,
        config: Optional[TableStorageConfig] = None,
        operation_context: Optional[OperationContext] = None,
    ) -> Future:
        """Start :meth:`execute_segmented` in the background; ``callback(future, state)`` runs on completion."""
        return self._client._dispatcher().begin(
            self._execute_segmented,
            table_name,
            query,
            continuation_token,
            resolver,
            config,
            operation_context,
            None,
            callback=callback,
            state=state,
        )

    def execute_segmented_async(
        self,
        table_name: str,
        query: Optional[TableQuery] = None,
        continuation_token: Optional[TableContinuationToken] = None,
        resolver: Optional[EntityResolver] = None,
        *,
        cancellation_token: Optional[CancellationToken] = None,
        config: Optional[TableStorageConfig] = None,
        operation_context: Optional[OperationContext] = None,
    ) -> Future:
        return self._client._dispatcher().submit(
            self._execute_segmented,
            table_name,
            query,
            continuation_token,
            resolver,
            config,
            operation_context,
            cancellation_token,
        )

    def to_dataframe(
        self,
        table_name: str,
        query: Optional[TableQuery] = None,
        *,
        include_system: bool = True,
        config: Optional[TableStorageConfig] = None,
    ) -> pd.DataFrame:
        """
        Run a query and collect the results into a pandas DataFrame.

        :param include_system: Include ``PartitionKey``, ``RowKey`` and ``Timestamp`` columns.
        :type include_system: bool
        :rtype: pandas.DataFrame
        """
        return entities_to_dataframe(self.execute(table_name, query, config=config), include_system)


class _QueryIterable:
    """Restartable lazy view over all segments of a query."""

    def __init__(
        self,
        operations: QueryOperations,
        table_name: str,
        query: TableQuery,
        resolver: Optional[EntityResolver],
        config: Optional[TableStorageConfig],
    ) -> None:
        self._operations = operations
        self._table_name = table_name
        self._query = query
        self._resolver = resolver
        self._config = config

    def __iter__(self) -> Iterator[Any]:
        take = self._query.take_count
        returned = 0
        token: Optional[TableContinuationToken] = None
        while True:
            page_query = TableQuery(self._query.filter_string, self._query.select_columns)
            if take is not None:
                page_query.take(take - returned)
            segment = self._operations.execute_segmented(
                self._table_name, page_query, token, self._resolver, config=self._config
            )
            for item in segment:
                yield item
                returned += 1
                if take is not None and returned >= take:
                    return
            token = segment.continuation_token
            if token is None:
                return
