# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.

from __future__ import annotations

from dataclasses import dataclass, replace
from enum import Enum
from typing import Any, Callable, Optional

from ..common.constants import DEFAULT_MAX_ASYNC_WORKERS, DEFAULT_MAXIMUM_EXECUTION_TIME
from ..models.continuation import LocationMode
from .retry import ExponentialRetry, RetryPolicy
from .telemetry import TelemetryConfig

# property_resolver(partition_key, row_key, property_name, raw_value) -> EdmType
PropertyResolver = Callable[[str, str, str, Any], Any]


class TablePayloadFormat(Enum):
    """Entity payload format negotiated with the service."""

    JSON = "Json"
    JSON_FULL_METADATA = "JsonFullMetadata"
    JSON_NO_METADATA = "JsonNoMetadata"
    ATOM_PUB = "AtomPub"


@dataclass(frozen=True)
class TableStorageConfig:
    """
    Configuration settings for table operations.

    Every ``client.*`` call accepts an optional ``config`` that overrides the
    client's configuration for that call only.

    :param payload_format: Payload format for entity requests and responses (default: JSON minimal metadata).
    :type payload_format: ~tablestore.core.config.TablePayloadFormat or None
    :param server_timeout: Per-request timeout in seconds sent to the service as the ``timeout`` query parameter.
    :type server_timeout: int or None
    :param maximum_execution_time: Client-side budget in seconds for a whole logical
        operation, including all retries (default: 300).
    :type maximum_execution_time: float or None
    :param location_mode: Primary/secondary routing (default: primary only).
    :type location_mode: ~tablestore.models.continuation.LocationMode or None
    :param retry_policy: Retry policy (default: :class:`~tablestore.core.retry.ExponentialRetry`).
    :type retry_policy: ~tablestore.core.retry.RetryPolicy or None
    :param property_resolver: ``resolver(pk, rk, name, value) -> EdmType`` used to type
        properties of ``JsonNoMetadata`` responses, which carry no type information.
    :type property_resolver: callable or None
    :param project_system_properties: Add ``PartitionKey``, ``RowKey`` and ``Timestamp`` to
        column projections (default: True).
    :type project_system_properties: bool or None
    :param max_async_workers: Worker threads for the asynchronous entry points (default: 4).
    :type max_async_workers: int or None
    :param http_timeout: Socket timeout in seconds for each HTTP attempt (default: method-dependent).
    :type http_timeout: float or None
    :param telemetry: Logging, tracing and hook settings. ``None`` disables telemetry.
    :type telemetry: ~tablestore.core.telemetry.TelemetryConfig or None

    Fields left at ``None`` take their default through the ``effective_*``
    properties, so an override may set any field to its default value.
    """

    payload_format: Optional[TablePayloadFormat] = None
    server_timeout: Optional[int] = None
    maximum_execution_time: Optional[float] = None
    location_mode: Optional[LocationMode] = None
    retry_policy: Optional[RetryPolicy] = None
    property_resolver: Optional[PropertyResolver] = None
    project_system_properties: Optional[bool] = None
    max_async_workers: Optional[int] = None

    # HTTP transport configuration
    http_timeout: Optional[float] = None

    telemetry: Optional[TelemetryConfig] = None

    @property
    def effective_retry_policy(self) -> RetryPolicy:
        return self.retry_policy if self.retry_policy is not None else ExponentialRetry()

    @property
    def effective_maximum_execution_time(self) -> float:
        if self.maximum_execution_time is not None:
            return self.maximum_execution_time
        return DEFAULT_MAXIMUM_EXECUTION_TIME

    @property
    def effective_payload_format(self) -> TablePayloadFormat:
        return self.payload_format if self.payload_format is not None else TablePayloadFormat.JSON

    @property
    def effective_location_mode(self) -> LocationMode:
        return self.location_mode if self.location_mode is not None else LocationMode.PRIMARY_ONLY

    @property
    def effective_project_system_properties(self) -> bool:
        return self.project_system_properties if self.project_system_properties is not None else True

    @property
    def effective_max_async_workers(self) -> int:
        return self.max_async_workers if self.max_async_workers is not None else DEFAULT_MAX_ASYNC_WORKERS

    def merged(self, override: Optional["TableStorageConfig"]) -> "TableStorageConfig":
        """
        Combine with a per-call override.

        Fields the override leaves at ``None`` keep this configuration's value;
        every field it sets wins, including one set to its default value.

        :param override: Per-call configuration, or ``None``.
        :type override: ~tablestore.core.config.TableStorageConfig or None
        :rtype: ~tablestore.core.config.TableStorageConfig
        """
        if override is None:
            return self
        changes = {
            name: getattr(override, name)
            for name in self.__dataclass_fields__
            if getattr(override, name) is not None
        }
        return replace(self, **changes)

    @classmethod
    def from_env(cls) -> "TableStorageConfig":
        """
        Create a configuration instance with default settings.

        :return: Configuration instance with default values.
        :rtype: ~tablestore.core.config.TableStorageConfig
        """
        # Environment-free defaults
        return cls(
            payload_format=TablePayloadFormat.JSON,
            server_timeout=None,
            maximum_execution_time=None,  # Will default to 300s in the executor
            location_mode=LocationMode.PRIMARY_ONLY,
            retry_policy=None,  # Will default to ExponentialRetry
            project_system_properties=True,
            max_async_workers=DEFAULT_MAX_ASYNC_WORKERS,
            http_timeout=None,  # Will use method-dependent defaults in _HttpClient
        )


__all__ = ["TablePayloadFormat", "TableStorageConfig", "PropertyResolver"]
