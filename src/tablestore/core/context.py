# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.

"""
Per-operation diagnostics.

An :class:`OperationContext` follows one logical operation (a single
operation, a batch, or one query segment) through every retry attempt. Each
attempt appends a :class:`RequestResult`, so callers can observe how many
attempts were made and what each one returned.
"""

from __future__ import annotations

import datetime as _dt
import uuid
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from ..models.continuation import StorageLocation
from .errors import ExtendedErrorInformation


@dataclass
class RequestResult:
    """
    Outcome of a single HTTP attempt.

    :param http_status_code: Response status, or ``None`` if no response arrived.
    :type http_status_code: int | None
    :param target_location: Endpoint the attempt was sent to.
    :type target_location: ~tablestore.models.continuation.StorageLocation | None
    :param exception: Error the attempt ended with, if any.
    :type exception: Exception | None
    """

    http_status_code: Optional[int] = None
    http_status_message: Optional[str] = None
    service_request_id: Optional[str] = None
    etag: Optional[str] = None
    target_location: Optional[StorageLocation] = None
    start_time: Optional[_dt.datetime] = None
    end_time: Optional[_dt.datetime] = None
    retry_after: Optional[float] = None
    exception: Optional[BaseException] = None
    extended_error_information: Optional[ExtendedErrorInformation] = None


@dataclass
class OperationContext:
    """
    Caller-visible context for one logical operation.

    :param client_request_id: Sent as ``x-ms-client-request-id`` on every attempt.
    :type client_request_id: str
    :param user_headers: Extra headers added to every attempt.
    :type user_headers: dict[str, str]

    Example::

        ctx = OperationContext()
        try:
            client.tables.create("people", operation_context=ctx)
        except StorageError:
            print(len(ctx.request_results))   # 1 for a 409
    """

    client_request_id: str = field(default_factory=lambda: str(uuid.uuid4()))
    user_headers: Dict[str, str] = field(default_factory=dict)
    request_results: List[RequestResult] = field(default_factory=list)
    start_time: Optional[_dt.datetime] = None
    end_time: Optional[_dt.datetime] = None

    @property
    def last_result(self) -> Optional[RequestResult]:
        return self.request_results[-1] if self.request_results else None


__all__ = ["RequestResult", "OperationContext"]
