# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.

"""
Per-attempt telemetry for the request engine.

The engine opens :meth:`TelemetryManager.trace_attempt` around every HTTP
attempt. When the block exits, the attempt's
:class:`~tablestore.core.context.RequestResult` (status, service request id,
error) is reported to the configured logger, to an OpenTelemetry client span
(when ``opentelemetry`` is installed) and to user hooks.
"""

from __future__ import annotations

import logging
import time
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Any, Dict, Generator, List, Optional, Protocol, Union, runtime_checkable

from ..common.constants import (
    OTEL_ATTR_CLIENT_REQUEST_ID,
    OTEL_ATTR_DB_OPERATION,
    OTEL_ATTR_DB_SYSTEM,
    OTEL_ATTR_HTTP_METHOD,
    OTEL_ATTR_HTTP_STATUS_CODE,
    OTEL_ATTR_HTTP_URL,
    OTEL_ATTR_LOCATION,
    OTEL_ATTR_SERVICE_REQUEST_ID,
    OTEL_ATTR_TABLE_NAME,
)
from ..models.continuation import StorageLocation
from .context import RequestResult

# Optional OpenTelemetry imports
try:
    from opentelemetry import trace
    from opentelemetry.trace import Status, StatusCode

    _OTEL_AVAILABLE = True
except ImportError:
    _OTEL_AVAILABLE = False
    trace = None  # type: ignore
    Status = None  # type: ignore
    StatusCode = None  # type: ignore

_log = logging.getLogger(__name__)


@dataclass(frozen=True)
class TelemetryConfig:
    """Opt-in telemetry settings, carried on :class:`~tablestore.core.config.TableStorageConfig`.

    :param enable_tracing: Open an OpenTelemetry client span per attempt.
    :param enable_logging: Log every attempt; failures at ``WARNING``, successes at ``DEBUG``.
    :param log_level: Level set on the attempt logger when logging is enabled.
    :param logger_name: Name of the attempt logger.
    :param hooks: Objects implementing any part of :class:`TelemetryHook`.

    Example::

        config = TableStorageConfig(
            telemetry=TelemetryConfig(enable_logging=True, log_level="DEBUG")
        )
    """

    enable_tracing: bool = False
    enable_logging: bool = False

    log_level: str = "WARNING"
    logger_name: str = "tablestore"

    hooks: List["TelemetryHook"] = field(default_factory=list)


@dataclass
class AttemptTrace:
    """One HTTP attempt as seen by hooks.

    ``result`` is the engine's diagnostics record for the attempt. It is
    complete by the time :meth:`TelemetryHook.on_attempt_end` runs.
    """

    operation: str  # e.g. "entities.execute", "tables.create"
    method: str
    url: str
    client_request_id: str
    result: RequestResult
    table_name: Optional[str] = None
    attempt: int = 1
    started: float = field(default_factory=time.perf_counter)

    # Free-form state shared between a hook's callbacks
    custom_data: Dict[str, Any] = field(default_factory=dict)

    _span: Any = field(default=None, repr=False)

    @property
    def location(self) -> Optional[StorageLocation]:
        return self.result.target_location

    @property
    def elapsed_ms(self) -> float:
        return (time.perf_counter() - self.started) * 1000


@runtime_checkable
class TelemetryHook(Protocol):
    """Callbacks around each attempt. Implement only the methods you need; failures are logged and ignored."""

    def on_attempt_start(self, attempt: AttemptTrace) -> None:
        ...

    def on_attempt_end(self, attempt: AttemptTrace) -> None:
        ...

    def on_attempt_error(self, attempt: AttemptTrace, error: BaseException) -> None:
        ...

    def get_additional_headers(self) -> Dict[str, str]:
        ...


def _failed(result: RequestResult) -> bool:
    return result.exception is not None or result.http_status_code is None or result.http_status_code >= 400


class TelemetryManager:
    """Reports attempts to logging, tracing and hooks."""

    def __init__(self, config: Optional[TelemetryConfig] = None) -> None:
        self._config = config or TelemetryConfig()
        self._hooks = list(self._config.hooks)
        self._tracer: Optional[Any] = None
        self._logger: Optional[logging.Logger] = None

        if self._config.enable_tracing and _OTEL_AVAILABLE:
            self._tracer = trace.get_tracer("tablestore")
        if self._config.enable_logging:
            self._logger = logging.getLogger(self._config.logger_name)
            self._logger.setLevel(getattr(logging, self._config.log_level.upper()))

    @property
    def is_tracing_enabled(self) -> bool:
        return self._tracer is not None

    @contextmanager
    def trace_attempt(
        self,
        operation: str,
        method: str,
        url: str,
        client_request_id: str,
        result: RequestResult,
        *,
        table_name: Optional[str] = None,
        attempt: int = 1,
    ) -> Generator[AttemptTrace, None, None]:
        """Wrap one HTTP attempt; ``result`` is read when the block exits.

        Usage::

            with telemetry.trace_attempt("tables.create", "POST", url, req_id, result):
                response = http._request(...)
                result.http_status_code = response.status_code
        """
        current = AttemptTrace(
            operation=operation,
            method=method,
            url=url,
            client_request_id=client_request_id,
            result=result,
            table_name=table_name,
            attempt=attempt,
        )
        if self._tracer:
            current._span = self._start_span(current)
        self._notify("on_attempt_start", current)
        try:
            yield current
        except BaseException as exc:
            if current._span is not None:
                current._span.set_status(Status(StatusCode.ERROR, str(exc)))
                current._span.record_exception(exc)
            self._notify("on_attempt_error", current, exc)
            raise
        finally:
            self._finish(current)

    def _start_span(self, current: AttemptTrace) -> Any:
        attributes = {
            OTEL_ATTR_DB_SYSTEM: "azure_table",
            OTEL_ATTR_DB_OPERATION: current.operation,
            OTEL_ATTR_HTTP_METHOD: current.method,
            OTEL_ATTR_HTTP_URL: current.url,
            OTEL_ATTR_CLIENT_REQUEST_ID: current.client_request_id,
        }
        if current.table_name:
            attributes[OTEL_ATTR_TABLE_NAME] = current.table_name
        if current.location is not None:
            attributes[OTEL_ATTR_LOCATION] = current.location.value
        return self._tracer.start_span(f"Table {current.operation}", kind=trace.SpanKind.CLIENT, attributes=attributes)

    def _finish(self, current: AttemptTrace) -> None:
        result = current.result
        span = current._span
        if span is not None:
            if result.http_status_code is not None:
                span.set_attribute(OTEL_ATTR_HTTP_STATUS_CODE, result.http_status_code)
            if result.service_request_id:
                span.set_attribute(OTEL_ATTR_SERVICE_REQUEST_ID, result.service_request_id)
            span.end()

        if self._logger:
            self._logger.log(
                logging.WARNING if _failed(result) else logging.DEBUG,
                "%s %s -> %s %.1fms (attempt %d, %s)",
                current.operation,
                current.method,
                result.http_status_code,
                current.elapsed_ms,
                current.attempt,
                current.location.value if current.location is not None else "-",
                extra={
                    "client_request_id": current.client_request_id,
                    "service_request_id": result.service_request_id,
                },
            )

        self._notify("on_attempt_end", current)

    def get_additional_headers(self) -> Dict[str, str]:
        """Merge the extra request headers contributed by hooks."""
        headers: Dict[str, str] = {}
        for hook in self._hooks:
            if not hasattr(hook, "get_additional_headers"):
                continue
            try:
                headers.update(hook.get_additional_headers() or {})
            except Exception:
                _log.debug("Telemetry hook %r failed in get_additional_headers", hook, exc_info=True)
        return headers

    def _notify(self, name: str, *args: Any) -> None:
        for hook in self._hooks:
            callback = getattr(hook, name, None)
            if callback is None:
                continue
            try:
                callback(*args)
            except Exception:
                _log.debug("Telemetry hook %r failed in %s", hook, name, exc_info=True)


class NoOpTelemetryManager:
    """Stand-in used when telemetry is off."""

    is_tracing_enabled = False

    @contextmanager
    def trace_attempt(
        self,
        operation: str,
        method: str,
        url: str,
        client_request_id: str,
        result: RequestResult,
        **kwargs: Any,
    ) -> Generator[AttemptTrace, None, None]:
        yield AttemptTrace(operation, method, url, client_request_id, result, **kwargs)

    def get_additional_headers(self) -> Dict[str, str]:
        return {}


def create_telemetry_manager(
    config: Optional[TelemetryConfig],
) -> Union[TelemetryManager, NoOpTelemetryManager]:
    if config is None or not (config.enable_tracing or config.enable_logging or config.hooks):
        return NoOpTelemetryManager()
    return TelemetryManager(config)


__all__ = [
    "TelemetryConfig",
    "TelemetryHook",
    "TelemetryManager",
    "NoOpTelemetryManager",
    "AttemptTrace",
    "create_telemetry_manager",
]
