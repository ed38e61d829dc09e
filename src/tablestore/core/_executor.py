# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.

"""
Request engine.

:class:`_Executor` runs a :class:`_StorageCommand` to completion: it picks
the endpoint for each attempt, stamps protocol and auth headers, sends the
request, hands the response to the command's processor and, on failure,
consults the retry policy. The whole operation, retries and waits included,
is bounded by the configured maximum execution time.
"""

from __future__ import annotations

import datetime as _dt
import logging
import time
from dataclasses import dataclass, field
from email.utils import formatdate
from enum import Enum
from typing import Any, Callable, Dict, Optional, Union

import requests

from ..common.constants import (
    DATA_SERVICE_VERSION,
    HEADER_CLIENT_REQUEST_ID,
    HEADER_DATA_SERVICE_VERSION,
    HEADER_DATE,
    HEADER_ETAG,
    HEADER_MAX_DATA_SERVICE_VERSION,
    HEADER_REQUEST_ID,
    HEADER_VERSION,
    MAX_DATA_SERVICE_VERSION,
    MAXIMUM_RETRY_BACKOFF,
    STORAGE_VERSION,
)
from ..models.continuation import LocationMode, StorageLocation
from ._error_codes import CLIENT_TIMEOUT, CLIENT_TRANSPORT, OPERATION_PRIMARY_ONLY
from .config import TableStorageConfig
from .context import OperationContext, RequestResult
from .errors import InvalidOperationError, OperationCanceledError, StorageError, TableStorageError
from .retry import RetryContext

logger = logging.getLogger(__name__)

TIMEOUT_MESSAGE = "The client could not finish the operation within specified timeout."
PRIMARY_ONLY_MESSAGE = "This operation can only be executed against the primary storage location."
SECONDARY_ONLY_MESSAGE = "This operation can only be executed against the secondary storage location."
NO_SECONDARY_MESSAGE = "No secondary endpoint is configured for this client."


class CommandLocationMode(Enum):
    """Which endpoints a command may be sent to."""

    PRIMARY_ONLY = "PrimaryOnly"
    SECONDARY_ONLY = "SecondaryOnly"
    PRIMARY_OR_SECONDARY = "PrimaryOrSecondary"


# process(response, request_result) -> value; raise StorageError for a failed attempt
ResponseProcessor = Callable[[requests.Response, RequestResult], Any]


@dataclass
class _StorageCommand:
    """
    One logical request, described independently of the endpoint it is sent to.

    :param operation: Telemetry name, e.g. ``"entities.execute"``.
    :param method: HTTP method.
    :param path: Resource path relative to the account endpoint.
    :param process: Turns a response into the operation's value, raising
        :class:`StorageError` when the attempt failed.
    :param body: Request body, or a callable receiving the endpoint base URL
        for bodies that embed absolute URLs (batches).
    :param target_location: Location the first attempt must use, e.g. the
        location that produced a continuation token.
    :param recover: Called before each retry to discard partial results.
    """

    operation: str
    method: str
    path: str
    process: ResponseProcessor
    query: Dict[str, str] = field(default_factory=dict)
    headers: Dict[str, str] = field(default_factory=dict)
    body: Union[bytes, Callable[[str], bytes], None] = None
    location_mode: CommandLocationMode = CommandLocationMode.PRIMARY_ONLY
    target_location: Optional[StorageLocation] = None
    recover: Optional[Callable[[], None]] = None
    table_name: Optional[str] = None


def _location_error(message: str) -> StorageError:
    err = StorageError(message, is_retryable=False, subcode=OPERATION_PRIMARY_ONLY)
    err.__cause__ = InvalidOperationError(message, subcode=OPERATION_PRIMARY_ONLY)
    return err


def _initial_location(command: _StorageCommand, mode: LocationMode) -> StorageLocation:
    if command.location_mode is CommandLocationMode.PRIMARY_ONLY:
        if mode is LocationMode.SECONDARY_ONLY:
            raise _location_error(PRIMARY_ONLY_MESSAGE)
        return StorageLocation.PRIMARY
    if command.location_mode is CommandLocationMode.SECONDARY_ONLY:
        if mode is LocationMode.PRIMARY_ONLY:
            raise _location_error(SECONDARY_ONLY_MESSAGE)
        return StorageLocation.SECONDARY
    if mode is LocationMode.PRIMARY_ONLY:
        return StorageLocation.PRIMARY
    if mode is LocationMode.SECONDARY_ONLY:
        return StorageLocation.SECONDARY
    if command.target_location is not None:
        return command.target_location
    if mode is LocationMode.PRIMARY_THEN_SECONDARY:
        return StorageLocation.PRIMARY
    return StorageLocation.SECONDARY


def _next_location(
    current: StorageLocation, mode: LocationMode, command_mode: CommandLocationMode
) -> StorageLocation:
    if command_mode is CommandLocationMode.PRIMARY_ONLY or mode is LocationMode.PRIMARY_ONLY:
        return StorageLocation.PRIMARY
    if command_mode is CommandLocationMode.SECONDARY_ONLY or mode is LocationMode.SECONDARY_ONLY:
        return StorageLocation.SECONDARY
    return StorageLocation.SECONDARY if current is StorageLocation.PRIMARY else StorageLocation.PRIMARY


def _timeout_error(result: Optional[RequestResult], last_error: Optional[BaseException] = None) -> StorageError:
    details: Dict[str, Any] = {}
    if last_error is not None:
        details["last_error"] = str(last_error)
    return StorageError(
        TIMEOUT_MESSAGE,
        is_retryable=False,
        subcode=CLIENT_TIMEOUT,
        request_result=result,
        details=details,
    )


def _retry_after(response: requests.Response) -> Optional[float]:
    value = response.headers.get("Retry-After")
    if value is None:
        return None
    try:
        return max(0.0, float(value))
    except (TypeError, ValueError):
        return None


def _utcnow() -> _dt.datetime:
    return _dt.datetime.now(_dt.timezone.utc)


class _Executor:
    """
    Executes storage commands against the primary or secondary endpoint.

    :param http: Single-attempt transport.
    :type http: ~tablestore.core._http._HttpClient
    :param auth: Credential handler.
    :type auth: ~tablestore.core._auth._AuthManager
    :param endpoints: Base URL per location. The secondary may be ``None``.
    :type endpoints: dict
    :param telemetry: Telemetry manager wrapping every attempt.
    """

    def __init__(self, http, auth, endpoints: Dict[StorageLocation, Optional[str]], telemetry) -> None:
        self._http = http
        self._auth = auth
        self._endpoints = endpoints
        self._telemetry = telemetry

    def _base_url(self, location: StorageLocation) -> str:
        url = self._endpoints.get(location)
        if not url:
            raise _location_error(NO_SECONDARY_MESSAGE)
        return url.rstrip("/")

    def _headers(self, command: _StorageCommand, ctx: OperationContext) -> Dict[str, str]:
        headers = {
            HEADER_VERSION: STORAGE_VERSION,
            HEADER_DATE: formatdate(usegmt=True),
            HEADER_CLIENT_REQUEST_ID: ctx.client_request_id,
            HEADER_DATA_SERVICE_VERSION: DATA_SERVICE_VERSION,
            HEADER_MAX_DATA_SERVICE_VERSION: MAX_DATA_SERVICE_VERSION,
        }
        headers.update(command.headers)
        headers.update(self._auth.headers())
        headers.update(ctx.user_headers)
        headers.update(self._telemetry.get_additional_headers())
        return headers

    def _query(self, command: _StorageCommand, config: TableStorageConfig) -> Dict[str, str]:
        params = dict(command.query)
        if config.server_timeout is not None:
            params["timeout"] = str(int(config.server_timeout))
        params.update(self._auth.query_parameters())
        return params

    def execute(
        self,
        command: _StorageCommand,
        config: TableStorageConfig,
        operation_context: Optional[OperationContext] = None,
        cancellation_token: Any = None,
    ) -> Any:
        """
        Run ``command`` until it succeeds, fails permanently or runs out of time.

        :param command: Command to execute.
        :param config: Effective configuration for this call.
        :param operation_context: Receives one :class:`RequestResult` per attempt.
        :param cancellation_token: Optional :class:`~tablestore.core._async.CancellationToken`.
        :return: Whatever the command's processor returns.
        :raises StorageError: On a permanent failure, exhausted retries or timeout.
        :raises OperationCanceledError: If cancelled before completion.
        """
        ctx = operation_context if operation_context is not None else OperationContext()
        policy = config.effective_retry_policy.create_instance()
        budget = config.effective_maximum_execution_time
        expiry = time.monotonic() + budget
        mode = config.effective_location_mode

        location = _initial_location(command, mode)
        ctx.start_time = _utcnow()
        retry_count = 0
        last_error: Optional[BaseException] = None

        try:
            while True:
                if cancellation_token is not None and cancellation_token.is_cancelled:
                    raise OperationCanceledError()
                remaining = expiry - time.monotonic()
                if remaining <= 0:
                    raise _timeout_error(ctx.last_result, last_error) from TimeoutError(TIMEOUT_MESSAGE)

                result = RequestResult(target_location=location, start_time=_utcnow())
                ctx.request_results.append(result)
                if retry_count > 0 and command.recover is not None:
                    command.recover()

                try:
                    value = self._attempt(command, config, ctx, result, location, remaining, retry_count + 1)
                except StorageError as err:
                    last_error = err
                    if result.exception is None:
                        result.exception = err
                except TableStorageError:
                    raise
                else:
                    if cancellation_token is not None and cancellation_token.is_cancelled:
                        raise OperationCanceledError()
                    return value
                finally:
                    result.end_time = _utcnow()

                # Cancellation while the attempt was in flight wins over its outcome
                if cancellation_token is not None and cancellation_token.is_cancelled:
                    raise OperationCanceledError() from last_error
                if time.monotonic() >= expiry:
                    raise _timeout_error(result, last_error) from TimeoutError(TIMEOUT_MESSAGE)

                next_location = _next_location(location, mode, command.location_mode)
                info = policy.evaluate(RetryContext(retry_count, result, next_location, mode))
                if info is None:
                    logger.warning(
                        "%s failed after %d attempt(s): %s", command.operation, retry_count + 1, last_error
                    )
                    raise last_error

                delay = min(info.retry_interval, MAXIMUM_RETRY_BACKOFF)
                if time.monotonic() + delay >= expiry:
                    raise _timeout_error(result, last_error) from TimeoutError(TIMEOUT_MESSAGE)

                logger.info(
                    "Retrying %s (attempt %d) against %s in %.3fs after status %s",
                    command.operation,
                    retry_count + 2,
                    info.target_location.value,
                    delay,
                    result.http_status_code,
                )
                if cancellation_token is not None:
                    if cancellation_token.wait(delay):
                        raise OperationCanceledError()
                elif delay > 0:
                    time.sleep(delay)

                mode = info.updated_location_mode
                location = info.target_location
                retry_count += 1
        finally:
            ctx.end_time = _utcnow()

    def _attempt(
        self,
        command: _StorageCommand,
        config: TableStorageConfig,
        ctx: OperationContext,
        result: RequestResult,
        location: StorageLocation,
        remaining: float,
        attempt: int,
    ) -> Any:
        base_url = self._base_url(location)
        url = f"{base_url}/{command.path}"
        body = command.body(base_url) if callable(command.body) else command.body
        headers = self._headers(command, ctx)
        params = self._query(command, config)
        timeout = remaining if config.http_timeout is None else min(config.http_timeout, remaining)
        logger.debug("%s attempt %d: %s %s (timeout %.1fs)", command.operation, attempt, command.method, url, timeout)

        with self._telemetry.trace_attempt(
            command.operation,
            command.method,
            url,
            ctx.client_request_id,
            result,
            table_name=command.table_name,
            attempt=attempt,
        ):
            try:
                response = self._http._request(
                    command.method, url, params=params, headers=headers, data=body, timeout=timeout
                )
            except requests.RequestException as exc:
                err = StorageError(
                    f"The request could not be sent: {exc}",
                    is_retryable=True,
                    subcode=CLIENT_TRANSPORT,
                    request_result=result,
                )
                result.exception = err
                raise err from exc

            result.http_status_code = response.status_code
            result.http_status_message = response.reason
            result.service_request_id = response.headers.get(HEADER_REQUEST_ID)
            result.etag = response.headers.get(HEADER_ETAG)
            result.retry_after = _retry_after(response)

            try:
                return command.process(response, result)
            except StorageError as err:
                if err.request_result is None:
                    err.request_result = result
                if err.status_code is not None:
                    result.http_status_code = err.status_code
                result.exception = err
                result.extended_error_information = err.extended_error_information
                raise


__all__ = ["CommandLocationMode", "_StorageCommand", "_Executor", "TIMEOUT_MESSAGE", "PRIMARY_ONLY_MESSAGE"]
