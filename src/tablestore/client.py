# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.

from __future__ import annotations

from typing import Optional, Union
from urllib.parse import urlsplit, urlunsplit

import requests

from azure.core.credentials import AzureSasCredential, TokenCredential

from .core._async import _AsyncDispatcher
from .core._auth import _AuthManager
from .core._executor import _Executor
from .core._http import _HttpClient
from .core.config import TableStorageConfig
from .core.telemetry import create_telemetry_manager
from .data._odata import _TableODataClient
from .models.continuation import StorageLocation
from .operations.entities import EntityOperations
from .operations.query import QueryOperations
from .operations.tables import TableOperations


def _derive_secondary_url(account_url: str) -> Optional[str]:
    """``https://acct.table.core.windows.net`` -> ``https://acct-secondary.table.core.windows.net``."""
    parts = urlsplit(account_url)
    host = parts.hostname or ""
    account, sep, rest = host.partition(".")
    if not sep or not rest.startswith("table."):
        return None
    netloc = f"{account}-secondary.{rest}"
    if parts.port is not None:
        netloc += f":{parts.port}"
    return urlunsplit((parts.scheme, netloc, parts.path, "", ""))


class TableServiceClient:
    """
    High-level client for a table storage account.

    Operations are organized under namespaces:

    - ``client.tables``: create, delete, test for and list tables
    - ``client.entities``: single operations and entity group transactions (batches)
    - ``client.query``: segmented and lazy entity queries

    Every call accepts an optional ``config`` overriding the client's
    :class:`~tablestore.core.config.TableStorageConfig` for that call only.

    **Context Manager Support (Recommended)**:
        Using the client as a context manager enables connection pooling and
        guarantees the worker pool and HTTP session are released::

            with TableServiceClient(account_url, credential) as client:
                client.tables.create_if_not_exists("people")

    :param account_url: Primary table endpoint, e.g.
        ``"https://myaccount.table.core.windows.net"``. Trailing slash is removed.
    :type account_url: :class:`str`
    :param credential: ``TokenCredential`` (Azure AD), ``AzureSasCredential``, or
        ``None`` for anonymous access.
    :type credential: ~azure.core.credentials.TokenCredential or ~azure.core.credentials.AzureSasCredential or None
    :param secondary_url: Secondary (read-only) endpoint. When omitted it is derived
        for ``*.table.*`` hosts by appending ``-secondary`` to the account name.
    :type secondary_url: :class:`str` or None
    :param config: Client configuration. Defaults to :meth:`TableStorageConfig.from_env`.
    :type config: ~tablestore.core.config.TableStorageConfig or None

    :raises ValueError: If ``account_url`` is missing or empty after trimming.
    :raises TypeError: If ``credential`` is of an unsupported type.

    .. note::
        The client lazily initializes its request engine on first use,
        allowing lightweight construction without immediate network calls.

    Example::

        from azure.identity import DefaultAzureCredential
        from tablestore import TableServiceClient
        from tablestore.models.entity import TableEntity
        from tablestore.models.operation import TableOperation

        with TableServiceClient("https://myaccount.table.core.windows.net", DefaultAzureCredential()) as client:
            client.tables.create_if_not_exists("people")
            client.entities.execute("people", TableOperation.insert(TableEntity("users", "alice", {"age": 31})))
            for entity in client.query.execute("people"):
                print(entity.row_key, entity.get_value("age"))
    """

    def __init__(
        self,
        account_url: str,
        credential: Optional[Union[TokenCredential, AzureSasCredential]] = None,
        *,
        secondary_url: Optional[str] = None,
        config: Optional[TableStorageConfig] = None,
    ) -> None:
        self.auth = _AuthManager(credential)
        self._account_url = (account_url or "").rstrip("/")
        if not self._account_url:
            raise ValueError("account_url is required.")
        self._secondary_url = (secondary_url or "").rstrip("/") or _derive_secondary_url(self._account_url)
        self._config = config or TableStorageConfig.from_env()
        self._odata: Optional[_TableODataClient] = None
        self._http: Optional[_HttpClient] = None
        self._async: Optional[_AsyncDispatcher] = None
        self._session: Optional[requests.Session] = None
        self._owns_session: bool = False

        # Initialize operation namespaces
        self.tables = TableOperations(self)
        self.entities = EntityOperations(self)
        self.query = QueryOperations(self)

    @property
    def account_url(self) -> str:
        return self._account_url

    @property
    def secondary_url(self) -> Optional[str]:
        return self._secondary_url

    @property
    def config(self) -> TableStorageConfig:
        return self._config

    def __enter__(self) -> "TableServiceClient":
        """
        Enter the context manager.

        Creates an HTTP session for connection pooling. All operations within
        the context will reuse this session.

        :return: The client instance.
        :rtype: TableServiceClient
        """
        if self._session is None:
            self._session = requests.Session()
            self._owns_session = True
            if self._http is not None:
                self._http._session = self._session
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    def close(self) -> None:
        """
        Close the client and release resources.

        Waits for outstanding asynchronous operations, then closes the HTTP
        session (if any). Safe to call multiple times.
        """
        if self._async is not None:
            self._async.shutdown(wait=True)
            self._async = None
        self._odata = None
        self._http = None
        if self._session is not None and self._owns_session:
            self._session.close()
            self._session = None
            self._owns_session = False

    def _get_odata(self) -> _TableODataClient:
        """
        Get or create the internal protocol client.

        When a session exists (from the context manager), it is passed to the
        transport for connection pooling.

        :rtype: ~tablestore.data._odata._TableODataClient
        """
        if self._odata is None:
            self._http = _HttpClient(timeout=self._config.http_timeout, session=self._session)
            executor = _Executor(
                self._http,
                self.auth,
                {
                    StorageLocation.PRIMARY: self._account_url,
                    StorageLocation.SECONDARY: self._secondary_url,
                },
                create_telemetry_manager(self._config.telemetry),
            )
            self._odata = _TableODataClient(executor)
        return self._odata

    def _dispatcher(self) -> _AsyncDispatcher:
        if self._async is None:
            self._async = _AsyncDispatcher(self._config.effective_max_async_workers)
        return self._async

    def _effective_config(self, override: Optional[TableStorageConfig]) -> TableStorageConfig:
        return self._config.merged(override)


__all__ = ["TableServiceClient"]
