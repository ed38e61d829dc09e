# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.

"""Table operations namespace for the tablestore client."""

from __future__ import annotations

from concurrent.futures import Future
from typing import Any, Iterable, Iterator, Optional, TYPE_CHECKING

from ..core._async import AsyncCallback, CancellationToken
from ..core._error_codes import RESOURCE_NOT_FOUND, TABLE_ALREADY_EXISTS, TABLE_NOT_FOUND
from ..core.config import TableStorageConfig
from ..core.context import OperationContext
from ..core.errors import StorageError
from ..core.results import TableQuerySegment
from ..models.continuation import TableContinuationToken
from ._validation import require

if TYPE_CHECKING:
    from ..client import TableServiceClient


__all__ = ["TableOperations"]


class TableOperations:
    """Namespace for table-level operations.

    Accessed via ``client.tables``. Provides operations to create, delete,
    test for and list tables.

    :param client: The parent :class:`~tablestore.client.TableServiceClient` instance.
    :type client: ~tablestore.client.TableServiceClient

    Example::

        client = TableServiceClient(account_url, credential)

        client.tables.create_if_not_exists("people")
        print(client.tables.exists("people"))          # True

        for name in client.tables.list(prefix="peo"):
            print(name)

        client.tables.delete_if_exists("people")
    """

    def __init__(self, client: TableServiceClient) -> None:
        self._client = client

    # ----------------------------------------------------------------- create

    def create(
        self,
        table_name: str,
        *,
        config: Optional[TableStorageConfig] = None,
        operation_context: Optional[OperationContext] = None,
    ) -> None:
        """Create a table.

        :param table_name: Name of the table to create.
        :type table_name: :class:`str`
        :param config: Per-call configuration override.
        :type config: ~tablestore.core.config.TableStorageConfig or None
        :param operation_context: Receives per-attempt diagnostics.
        :type operation_context: ~tablestore.core.context.OperationContext or None

        :raises ~tablestore.core.errors.StorageError: With status ``409`` and error code
            ``TableAlreadyExists`` if the table exists. Conflicts are not retried.
        """
        self._create(table_name, config, operation_context, None)

    def _create(self, table_name, config, operation_context, cancellation_token) -> None:
        require(table_name, "table_name")
        self._client._get_odata()._create_table(
            table_name, self._client._effective_config(config), operation_context, cancellation_token
        )

    def create_if_not_exists(
        self,
        table_name: str,
        *,
        config: Optional[TableStorageConfig] = None,
        operation_context: Optional[OperationContext] = None,
    ) -> bool:
        """Create a table unless it already exists.

        :return: ``True`` if the table was created, ``False`` if it already existed.
        :rtype: :class:`bool`
        """
        return self._create_if_not_exists(table_name, config, operation_context, None)

    def _create_if_not_exists(self, table_name, config, operation_context, cancellation_token) -> bool:
        try:
            self._create(table_name, config, operation_context, cancellation_token)
        except StorageError as e:
            if e.status_code == 409 and e.error_code in (None, TABLE_ALREADY_EXISTS):
                return False
            raise
        return True

    # ----------------------------------------------------------------- exists

    def exists(
        self,
        table_name: str,
        *,
        config: Optional[TableStorageConfig] = None,
        operation_context: Optional[OperationContext] = None,
    ) -> bool:
        """Return whether a table exists.

        May be served by the secondary endpoint when the location mode allows it.

        :rtype: :class:`bool`
        """
        return self._exists(table_name, config, operation_context, None)

    def _exists(self, table_name, config, operation_context, cancellation_token) -> bool:
        require(table_name, "table_name")
        return self._client._get_odata()._table_exists(
            table_name, self._client._effective_config(config), operation_context, cancellation_token
        )

    # ----------------------------------------------------------------- delete

    def delete(
        self,
        table_name: str,
        *,
        config: Optional[TableStorageConfig] = None,
        operation_context: Optional[OperationContext] = None,
    ) -> None:
        """Delete a table and all of its entities.

        :raises ~tablestore.core.errors.StorageError: With status ``404`` if the table does not exist.
        """
        self._delete(table_name, config, operation_context, None)

    def _delete(self, table_name, config, operation_context, cancellation_token) -> None:
        require(table_name, "table_name")
        self._client._get_odata()._delete_table(
            table_name, self._client._effective_config(config), operation_context, cancellation_token
        )

    def delete_if_exists(
        self,
        table_name: str,
        *,
        config: Optional[TableStorageConfig] = None,
        operation_context: Optional[OperationContext] = None,
    ) -> bool:
        """Delete a table if it exists.

        :return: ``True`` if the table was deleted, ``False`` if it did not exist.
        :rtype: :class:`bool`
        """
        return self._delete_if_exists(table_name, config, operation_context, None)

    def _delete_if_exists(self, table_name, config, operation_context, cancellation_token) -> bool:
        try:
            self._delete(table_name, config, operation_context, cancellation_token)
        except StorageError as e:
            if e.status_code == 404 and e.error_code in (None, TABLE_NOT_FOUND, RESOURCE_NOT_FOUND):
                return False
            raise
        return True

    # ------------------------------------------------------------------- list

    def list_segmented(
        self,
        prefix: Optional[str] = None,
        continuation_token: Optional[TableContinuationToken] = None,
        *,
        take_count: Optional[int] = None,
        config: Optional[TableStorageConfig] = None,
        operation_context: Optional[OperationContext] = None,
    ) -> TableQuerySegment:
        """Fetch one page of table names.

        :param prefix: Only return tables whose name starts with this prefix.
        :type prefix: :class:`str` or None
        :param continuation_token: Token from the previous segment, or ``None`` to start.
        :type continuation_token: ~tablestore.models.continuation.TableContinuationToken or None
        :param take_count: Maximum number of names in this page.
        :type take_count: :class:`int` or None
        :rtype: ~tablestore.core.results.TableQuerySegment
        """
        return self._client._get_odata()._list_tables_segment(
            prefix, continuation_token, take_count, self._client._effective_config(config), operation_context
        )

    def list(
        self,
        prefix: Optional[str] = None,
        *,
        config: Optional[TableStorageConfig] = None,
    ) -> Iterable[str]:
        """Lazily enumerate table names, following continuation tokens.

        Each iteration of the returned iterable starts a fresh listing.

        :param prefix: Only return tables whose name starts with this prefix.
        :type prefix: :class:`str` or None
        :rtype: Iterable[str]

        Example::

            names = list(client.tables.list())
        """
        return _TableListing(self, prefix, config)

    # ------------------------------------------------------------------ async

    def begin_create(
        self,
        table_name: str,
        callback: Optional[AsyncCallback] = None,
        state: Any = None,
        *,
        config: Optional[TableStorageConfig] = None,
        operation_context: Optional[OperationContext] = None,
    ) -> Future:
        return self._client._dispatcher().begin(
            self._create, table_name, config, operation_context, None, callback=callback, state=state
        )

    def create_async(
        self,
        table_name: str,
        *,
        cancellation_token: Optional[CancellationToken] = None,
        config: Optional[TableStorageConfig] = None,
        operation_context: Optional[OperationContext] = None,
    ) -> Future:
        return self._client._dispatcher().submit(
            self._create, table_name, config, operation_context, cancellation_token
        )

    def create_if_not_exists_async(
        self,
        table_name: str,
        *,
        cancellation_token: Optional[CancellationToken] = None,
        config: Optional[TableStorageConfig] = None,
        operation_context: Optional[OperationContext] = None,
    ) -> Future:
        return self._client._dispatcher().submit(
            self._create_if_not_exists, table_name, config, operation_context, cancellation_token
        )

    def begin_exists(
        self,
        table_name: str,
        callback: Optional[AsyncCallback] = None,
        state: Any = None,
        *,
        config: Optional[TableStorageConfig] = None,
        operation_context: Optional[OperationContext] = None,
    ) -> Future:
        return self._client._dispatcher().begin(
            self._exists, table_name, config, operation_context, None, callback=callback, state=state
        )

    def exists_async(
        self,
        table_name: str,
        *,
        cancellation_token: Optional[CancellationToken] = None,
        config: Optional[TableStorageConfig] = None,
        operation_context: Optional[OperationContext] = None,
    ) -> Future:
        return self._client._dispatcher().submit(
            self._exists, table_name, config, operation_context, cancellation_token
        )

    def begin_delete(
        self,
        table_name: str,
        callback: Optional[AsyncCallback] = None,
        state: Any = None,
        *,
        config: Optional[TableStorageConfig] = None,
        operation_context: Optional[OperationContext] = None,
    ) -> Future:
        return self._client._dispatcher().begin(
            self._delete, table_name, config, operation_context, None, callback=callback, state=state
        )

    def delete_async(
        self,
        table_name: str,
        *,
        cancellation_token: Optional[CancellationToken] = None,
        config: Optional[TableStorageConfig] = None,
        operation_context: Optional[OperationContext] = None,
    ) -> Future:
        return self._client._dispatcher().submit(
            self._delete, table_name, config, operation_context, cancellation_token
        )

    def delete_if_exists_async(
        self,
        table_name: str,
        *,
        cancellation_token: Optional[CancellationToken] = None,
        config: Optional[TableStorageConfig] = None,
        operation_context: Optional[OperationContext] = None,
    ) -> Future:
        return self._client._dispatcher().submit(
            self._delete_if_exists, table_name, config, operation_context, cancellation_token
        )


class _TableListing:
    """Restartable iterable over table names."""

    def __init__(self, tables: TableOperations, prefix: Optional[str], config: Optional[TableStorageConfig]) -> None:
        self._tables = tables
        self._prefix = prefix
        self._config = config

    def __iter__(self) -> Iterator[str]:
        token: Optional[TableContinuationToken] = None
        while True:
            segment = self._tables.list_segmented(self._prefix, token, config=self._config)
            yield from segment
            token = segment.continuation_token
            if token is None:
                return
