# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.

"""
Structured error types for the tablestore client.

Client-side validation failures are raised before any network call and are
never retried. Service and engine failures are reported as
:class:`StorageError`, which carries the HTTP status code and the service's
extended error information.
"""

from __future__ import annotations

import datetime as _dt
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

from ._error_codes import http_subcode


@dataclass
class ExtendedErrorInformation:
    """
    Error details returned in the body of a failed service response.

    :param error_code: Service error code, e.g. ``"EntityAlreadyExists"``.
    :type error_code: :class:`str` | None
    :param error_message: Human readable message from the service.
    :type error_message: :class:`str` | None
    :param additional_details: Any further name/value pairs the service returned.
    :type additional_details: :class:`dict`
    """

    error_code: Optional[str] = None
    error_message: Optional[str] = None
    additional_details: Dict[str, str] = field(default_factory=dict)


class TableStorageError(Exception):
    """Base structured error for the tablestore client."""

    def __init__(
        self,
        message: str,
        *,
        code: str,
        subcode: Optional[str] = None,
        status_code: Optional[int] = None,
        details: Optional[Dict[str, Any]] = None,
        source: Optional[str] = None,
        is_transient: bool = False,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.code = code
        self.subcode = subcode
        self.status_code = status_code
        self.details = details or {}
        self.source = source or "client"
        self.is_transient = is_transient
        self.timestamp = _dt.datetime.now(_dt.timezone.utc).isoformat()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "message": self.message,
            "code": self.code,
            "subcode": self.subcode,
            "status_code": self.status_code,
            "details": self.details,
            "source": self.source,
            "is_transient": self.is_transient,
            "timestamp": self.timestamp,
        }

    def __repr__(self) -> str:  # pragma: no cover
        return f"{self.__class__.__name__}(code={self.code!r}, subcode={self.subcode!r}, message={self.message!r})"


class ValidationError(TableStorageError):
    """Invalid argument supplied by the caller."""

    def __init__(self, message: str, *, subcode: Optional[str] = None, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, code="validation_error", subcode=subcode, details=details, source="client")


class InvalidOperationError(TableStorageError):
    """The call is not valid for the current state of the object or client."""

    def __init__(self, message: str, *, subcode: Optional[str] = None, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, code="invalid_operation", subcode=subcode, details=details, source="client")


class UnsupportedOperationError(TableStorageError):
    def __init__(self, message: str, *, subcode: Optional[str] = None, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, code="unsupported_operation", subcode=subcode, details=details, source="client")


class OperationCanceledError(TableStorageError):
    def __init__(self, message: str = "The operation was canceled.", *, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, code="operation_canceled", details=details, source="client")


class StorageError(TableStorageError):
    """
    Failure reported by the service or by the request engine.

    :param message: Error message.
    :type message: :class:`str`
    :param status_code: HTTP status of the failed response, or ``None`` when no
        response was received.
    :type status_code: :class:`int` | None
    :param extended_error_information: Parsed error body.
    :type extended_error_information: ~tablestore.core.errors.ExtendedErrorInformation | None
    :param is_retryable: Whether a retry policy may retry the request that produced this error.
    :type is_retryable: :class:`bool`
    :param request_result: Diagnostics of the attempt that failed.
    :type request_result: ~tablestore.core.context.RequestResult | None
    :param subcode: Override for the status-derived subcode.
    :type subcode: :class:`str` | None
    """

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        *,
        extended_error_information: Optional[ExtendedErrorInformation] = None,
        is_retryable: bool = True,
        request_result: Any = None,
        subcode: Optional[str] = None,
        service_request_id: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        d = details or {}
        if extended_error_information is not None and extended_error_information.error_code:
            d["service_error_code"] = extended_error_information.error_code
        if service_request_id is not None:
            d["service_request_id"] = service_request_id
        super().__init__(
            message,
            code="storage_error",
            subcode=subcode or http_subcode(status_code),
            status_code=status_code,
            details=d,
            source="server" if status_code is not None else "client",
            is_transient=is_retryable,
        )
        self.extended_error_information = extended_error_information
        self.request_result = request_result
        self.service_request_id = service_request_id

    @property
    def is_retryable(self) -> bool:
        return self.is_transient

    @is_retryable.setter
    def is_retryable(self, value: bool) -> None:
        self.is_transient = value

    @property
    def error_code(self) -> Optional[str]:
        """Service error code, or ``None`` when the response carried none."""
        if self.extended_error_information is None:
            return None
        return self.extended_error_information.error_code

    @property
    def service_message(self) -> Optional[str]:
        if self.extended_error_information is None:
            return None
        return self.extended_error_information.error_message


__all__ = [
    "ExtendedErrorInformation",
    "TableStorageError",
    "ValidationError",
    "InvalidOperationError",
    "UnsupportedOperationError",
    "OperationCanceledError",
    "StorageError",
]
