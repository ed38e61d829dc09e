# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.

"""
Result types for table operations.

- :class:`TableResult`: outcome of one operation (also one element of a batch).
- :class:`TableQuerySegment`: one page of a segmented query or table listing.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Generic, Iterator, List, Optional, TypeVar

from ..models.continuation import TableContinuationToken
from .context import RequestResult

T = TypeVar("T")


@dataclass
class TableResult:
    """
    Result of a single table operation.

    :param http_status_code: Status code of the operation (the per-part status inside a batch).
    :type http_status_code: int
    :param etag: ETag of the entity after the operation, ``None`` for deletes and not-found retrieves.
    :type etag: str | None
    :param result: Returned entity, resolver projection, the submitted entity for writes,
        or ``None`` when a retrieve found nothing.

    Example::

        res = client.entities.execute("people", TableOperation.retrieve("p", "missing"))
        assert res.http_status_code == 404 and res.result is None
    """

    http_status_code: int
    etag: Optional[str] = None
    result: Any = None


@dataclass
class TableQuerySegment(Generic[T]):
    """
    One page of query results.

    Iterating the segment yields its results. ``continuation_token`` is ``None``
    when there are no further pages.
    """

    results: List[T] = field(default_factory=list)
    continuation_token: Optional[TableContinuationToken] = None
    request_result: Optional[RequestResult] = None

    def __iter__(self) -> Iterator[T]:
        return iter(self.results)

    def __len__(self) -> int:
        return len(self.results)

    @property
    def has_more(self) -> bool:
        return self.continuation_token is not None


__all__ = ["TableResult", "TableQuerySegment"]
