# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.

"""
Asynchronous entry points.

Two styles are offered on top of the synchronous operations:

* ``begin_*`` methods take a ``callback(future, state)`` and return a
  :class:`concurrent.futures.Future`. The callback runs when the operation
  completes; the outcome is read with ``future.result()``.
* ``*_async`` methods take an optional :class:`CancellationToken` and return
  a future.

Both run the operation on a worker pool owned by the client.
"""

from __future__ import annotations

import threading
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Any, Callable, Optional


class CancellationToken:
    """
    Cooperative cancellation signal for asynchronous operations.

    Cancellation is checked around every attempt and during the waits between
    retries. An attempt already on the wire is not interrupted, but its outcome
    is discarded once the token is cancelled and the operation's future
    raises :class:`~tablestore.core.errors.OperationCanceledError`.

    Example::

        token = CancellationToken()
        future = client.entities.execute_async("people", op, cancellation_token=token)
        token.cancel()
    """

    def __init__(self) -> None:
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def is_cancelled(self) -> bool:
        return self._event.is_set()

    def wait(self, timeout: Optional[float]) -> bool:
        """Block up to ``timeout`` seconds; return True if cancelled meanwhile."""
        return self._event.wait(timeout)


# callback(future, state)
AsyncCallback = Callable[[Future, Any], None]


class _AsyncDispatcher:
    """Submits blocking operations to a lazily created thread pool."""

    def __init__(self, max_workers: int = 4) -> None:
        self._max_workers = max_workers
        self._pool: Optional[ThreadPoolExecutor] = None
        self._lock = threading.Lock()

    def _get_pool(self) -> ThreadPoolExecutor:
        with self._lock:
            if self._pool is None:
                self._pool = ThreadPoolExecutor(
                    max_workers=self._max_workers, thread_name_prefix="tablestore"
                )
            return self._pool

    def submit(self, fn: Callable[..., Any], *args: Any, **kwargs: Any) -> Future:
        return self._get_pool().submit(fn, *args, **kwargs)

    def begin(
        self,
        fn: Callable[..., Any],
        *args: Any,
        callback: Optional[AsyncCallback] = None,
        state: Any = None,
        **kwargs: Any,
    ) -> Future:
        """
        Start ``fn`` on the pool and invoke ``callback(future, state)`` when it finishes.

        :return: Future resolving to ``fn``'s return value or raising its exception.
        :rtype: :class:`concurrent.futures.Future`
        """
        future = self.submit(fn, *args, **kwargs)
        if callback is not None:
            future.add_done_callback(lambda f: callback(f, state))
        return future

    def shutdown(self, wait: bool = True) -> None:
        with self._lock:
            pool, self._pool = self._pool, None
        if pool is not None:
            pool.shutdown(wait=wait)


__all__ = ["CancellationToken", "AsyncCallback"]
