# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.

"""
Retry policies.

A policy is consulted by the request engine after every failed attempt and
decides whether another attempt is made, where it is sent, and how long to
wait first. Policies are stateful per operation: the engine calls
:meth:`RetryPolicy.create_instance` at the start of each logical operation.

Client errors (3xx and 4xx other than 408), ``501 Not Implemented`` and
``505 HTTP Version Not Supported`` are never retried. A ``404`` from the
secondary endpoint is treated as a server error and redirects the remaining
attempts to the primary.
"""

from __future__ import annotations

import datetime as _dt
import logging
import random
from dataclasses import dataclass
from typing import Dict, Optional

from ..models.continuation import LocationMode, StorageLocation
from .context import RequestResult
from .errors import StorageError

logger = logging.getLogger(__name__)


@dataclass
class RetryContext:
    """
    Input to :meth:`RetryPolicy.evaluate`.

    :param current_retry_count: Number of retries already performed (0 after the first failure).
    :param last_request_result: Diagnostics of the attempt that just failed.
    :param next_location: Location the engine would use for the next attempt.
    :param location_mode: Current location mode.
    """

    current_retry_count: int
    last_request_result: RequestResult
    next_location: StorageLocation
    location_mode: LocationMode


@dataclass
class RetryInfo:
    """Decision to retry: where to send the next attempt and how long to wait (seconds)."""

    target_location: StorageLocation
    updated_location_mode: LocationMode
    retry_interval: float = 0.0

    def __post_init__(self) -> None:
        self.retry_interval = max(0.0, self.retry_interval)


def is_retryable_status(status_code: Optional[int]) -> bool:
    """Return False for status codes that indicate a non-transient failure."""
    if status_code is None:
        return True
    if 300 <= status_code < 500 and status_code != 408:
        return False
    return status_code not in (501, 505)


class RetryPolicy:
    """
    Base retry policy.

    Subclasses implement :meth:`_backoff` to compute the nominal wait before
    retry number ``current_retry_count + 1``.

    :param max_attempts: Total number of attempts, including the first one.
    :type max_attempts: int
    """

    def __init__(self, max_attempts: int) -> None:
        self.max_attempts = max_attempts
        self._last_attempt: Dict[StorageLocation, _dt.datetime] = {}

    def create_instance(self) -> "RetryPolicy":
        """Return a fresh copy of this policy for a new logical operation."""
        raise NotImplementedError

    def _backoff(self, current_retry_count: int, last_result: RequestResult) -> float:
        raise NotImplementedError

    def evaluate(self, context: RetryContext) -> Optional[RetryInfo]:
        """
        Decide whether to retry after a failed attempt.

        :param context: Retry context for the failed attempt.
        :type context: ~tablestore.core.retry.RetryContext
        :return: Retry decision, or ``None`` to stop.
        :rtype: ~tablestore.core.retry.RetryInfo | None
        """
        last = context.last_request_result
        if last.target_location is not None and last.end_time is not None:
            self._last_attempt[last.target_location] = last.end_time

        secondary_not_found = last.target_location is StorageLocation.SECONDARY and last.http_status_code == 404
        status_code = 500 if secondary_not_found else last.http_status_code

        if not is_retryable_status(status_code):
            return None
        if isinstance(last.exception, StorageError) and not last.exception.is_retryable:
            return None
        if context.current_retry_count >= self.max_attempts - 1:
            return None

        info = RetryInfo(context.next_location, context.location_mode)
        if secondary_not_found and context.location_mode is not LocationMode.SECONDARY_ONLY:
            info.updated_location_mode = LocationMode.PRIMARY_ONLY
            info.target_location = StorageLocation.PRIMARY

        interval = self._backoff(context.current_retry_count, last)
        previous = self._last_attempt.get(info.target_location)
        # time already spent waiting on the other endpoint counts toward the delay
        if previous is not None and info.target_location is not last.target_location and last.retry_after is None:
            elapsed = (_dt.datetime.now(_dt.timezone.utc) - previous).total_seconds()
            interval -= max(0.0, elapsed)
        info.retry_interval = max(0.0, interval)
        logger.debug(
            "Retry %d scheduled to %s in %.3fs (status=%s)",
            context.current_retry_count + 1,
            info.target_location.value,
            info.retry_interval,
            last.http_status_code,
        )
        return info


class ExponentialRetry(RetryPolicy):
    """
    Exponential backoff with jitter.

    The delay before retry ``n`` (0-based) is ``backoff * 2**n`` capped at
    ``max_backoff``, with ±25% jitter when enabled. A ``Retry-After`` header on
    the failed response takes precedence, also capped at ``max_backoff``.

    :param retries: Total number of attempts. Default is 5.
    :type retries: int | None
    :param backoff: Base delay in seconds. Default is 0.5.
    :type backoff: float | None
    :param max_backoff: Maximum delay in seconds. Default is 60.0.
    :type max_backoff: float | None
    :param jitter: Add random variation to delays. Default is True.
    :type jitter: bool
    """

    def __init__(
        self,
        *,
        retries: Optional[int] = None,
        backoff: Optional[float] = None,
        max_backoff: Optional[float] = None,
        jitter: bool = True,
    ) -> None:
        super().__init__(retries if retries is not None else 5)
        self.base_delay = backoff if backoff is not None else 0.5
        self.max_backoff = max_backoff if max_backoff is not None else 60.0
        self.jitter = jitter

    def create_instance(self) -> "ExponentialRetry":
        return ExponentialRetry(
            retries=self.max_attempts,
            backoff=self.base_delay,
            max_backoff=self.max_backoff,
            jitter=self.jitter,
        )

    def _backoff(self, current_retry_count: int, last_result: RequestResult) -> float:
        if last_result.retry_after is not None:
            return min(last_result.retry_after, self.max_backoff)

        delay = min(self.base_delay * (2**current_retry_count), self.max_backoff)

        # ±25% to spread out clients retrying together
        if self.jitter:
            jitter_range = delay * 0.25
            delay = max(0.0, delay + random.uniform(-jitter_range, jitter_range))
        return delay


class LinearRetry(RetryPolicy):
    """
    Fixed delay between attempts.

    :param delta_backoff: Delay in seconds between attempts. Default is 30.
    :type delta_backoff: float
    :param max_attempts: Total number of attempts. Default is 4 (three retries).
    :type max_attempts: int
    """

    def __init__(self, delta_backoff: float = 30.0, max_attempts: int = 4) -> None:
        super().__init__(max_attempts)
        self.delta_backoff = delta_backoff

    def create_instance(self) -> "LinearRetry":
        return LinearRetry(self.delta_backoff, self.max_attempts)

    def _backoff(self, current_retry_count: int, last_result: RequestResult) -> float:
        return self.delta_backoff


class NoRetry(RetryPolicy):
    def __init__(self) -> None:
        super().__init__(1)

    def create_instance(self) -> "NoRetry":
        return NoRetry()

    def evaluate(self, context: RetryContext) -> Optional[RetryInfo]:
        return None


__all__ = [
    "RetryContext",
    "RetryInfo",
    "RetryPolicy",
    "ExponentialRetry",
    "LinearRetry",
    "NoRetry",
    "is_retryable_status",
]
