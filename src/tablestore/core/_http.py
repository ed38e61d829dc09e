# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.

"""
HTTP transport with timeout handling and optional session support.

This module provides :class:`~tablestore.core._http._HttpClient`, a thin
wrapper around the requests library. It performs exactly one attempt per
call; retries, backoff and the execution-time budget belong to the request
engine in :mod:`tablestore.core._executor`.
"""

from __future__ import annotations

from typing import Any, Optional

import requests


class _HttpClient:
    """
    Single-attempt HTTP client with default timeouts and optional connection pooling.

    :param timeout: Default request timeout in seconds. If None, uses per-method defaults.
    :type timeout: :class:`float` | None
    :param session: Optional requests.Session for connection pooling.
    :type session: :class:`requests.Session` | None
    """

    def __init__(
        self,
        timeout: Optional[float] = None,
        session: Optional[requests.Session] = None,
    ) -> None:
        self.default_timeout: Optional[float] = timeout
        self._session = session

    def _default_timeout(self, method: str) -> float:
        if self.default_timeout is not None:
            return self.default_timeout
        # Batches and deletes can take the service longer than point operations
        m = (method or "").lower()
        return 120 if m in ("post", "delete") else 30

    def _request(self, method: str, url: str, **kwargs: Any) -> requests.Response:
        """
        Execute a single HTTP request.

        :param method: HTTP method (GET, POST, PUT, MERGE, DELETE).
        :type method: :class:`str`
        :param url: Target URL for the request.
        :type url: :class:`str`
        :param kwargs: Additional arguments passed to ``requests.request()`` or
            ``session.request()``. A ``timeout`` given here is capped at the
            default timeout.
        :return: HTTP response object.
        :rtype: :class:`requests.Response`
        :raises requests.exceptions.RequestException: On network failure.
        """
        default = self._default_timeout(method)
        timeout = kwargs.get("timeout")
        kwargs["timeout"] = default if timeout is None else min(timeout, default)

        if self._session is not None:
            return self._session.request(method, url, **kwargs)
        return requests.request(method, url, **kwargs)

    def close(self) -> None:
        """
        Close the HTTP client and release resources.

        If a session was provided, this method closes it. Safe to call multiple times.
        """
        if self._session is not None:
            self._session.close()
            self._session = None
