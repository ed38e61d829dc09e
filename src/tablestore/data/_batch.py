# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.

"""
Multipart/mixed encoding of entity group transactions.

A batch is one ``POST /$batch`` whose body is a ``multipart/mixed`` document.
Write operations travel inside a single changeset; a retrieve (which must be
the only operation) is a plain ``GET`` part directly inside the batch.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from typing import Callable, List, Optional, Tuple

from requests.structures import CaseInsensitiveDict

from ..common.constants import (
    DATA_SERVICE_VERSION,
    HEADER_ACCEPT,
    HEADER_CONTENT_TYPE,
    HEADER_DATA_SERVICE_VERSION,
    HEADER_IF_MATCH,
    HEADER_PREFER,
    JSON_CONTENT_TYPE,
    PREFER_RETURN_CONTENT,
    PREFER_RETURN_NO_CONTENT,
)
from ..core._error_codes import CLIENT_BATCH_RESPONSE
from ..core.errors import StorageError
from ..models.batch import TableBatchOperation
from ..models.operation import TableOperation, TableOperationType
from ..models.query import build_select

CRLF = b"\r\n"

_METHODS = {
    TableOperationType.INSERT: "POST",
    TableOperationType.DELETE: "DELETE",
    TableOperationType.REPLACE: "PUT",
    TableOperationType.MERGE: "MERGE",
    TableOperationType.INSERT_OR_REPLACE: "PUT",
    TableOperationType.INSERT_OR_MERGE: "MERGE",
    TableOperationType.RETRIEVE: "GET",
}


def http_method(operation: TableOperation) -> str:
    return _METHODS[operation.operation_type]


@dataclass
class BatchPartResponse:
    """One HTTP response embedded in a batch response."""

    status_code: int
    reason: str = ""
    headers: CaseInsensitiveDict = field(default_factory=CaseInsensitiveDict)
    body: bytes = b""

    @property
    def text(self) -> str:
        return self.body.decode("utf-8", errors="replace")


def _new_boundary(prefix: str) -> str:
    return f"{prefix}_{uuid.uuid4()}"


def build_batch_body(
    batch: TableBatchOperation,
    table_name: str,
    base_url: str,
    accept: str,
    serialize: Callable[[TableOperation], bytes],
    batch_boundary: Optional[str] = None,
    changeset_boundary: Optional[str] = None,
    project_system_properties: bool = True,
) -> Tuple[bytes, str]:
    """
    Encode a batch as a ``multipart/mixed`` body.

    :param batch: Operations to encode, in order.
    :type batch: ~tablestore.models.batch.TableBatchOperation
    :param table_name: Target table.
    :type table_name: str
    :param base_url: Endpoint used for the absolute URLs inside each part.
    :type base_url: str
    :param accept: ``Accept`` value for each part.
    :type accept: str
    :param serialize: Produces the JSON body for a write operation.
    :type serialize: callable
    :return: ``(body, content_type)`` where ``content_type`` carries the batch boundary.
    :rtype: tuple[bytes, str]
    """
    batch_boundary = batch_boundary or _new_boundary("batch")
    changeset_boundary = changeset_boundary or _new_boundary("changeset")
    root = base_url.rstrip("/")
    out = bytearray()

    def line(text: str = "") -> None:
        out.extend(text.encode("utf-8") + CRLF)

    if len(batch) == 1 and batch[0].is_read_only:
        op = batch[0]
        uri = f"{root}/{op.to_request_uri(table_name)}"
        select = build_select(op.select_columns, project_system_properties)
        if select is not None:
            uri += f"?$select={select}"
        line(f"--{batch_boundary}")
        line("Content-Type: application/http")
        line("Content-Transfer-Encoding: binary")
        line()
        line(f"GET {uri} HTTP/1.1")
        line(f"{HEADER_ACCEPT}: {accept}")
        line(f"{HEADER_DATA_SERVICE_VERSION}: {DATA_SERVICE_VERSION}")
        line()
        line(f"--{batch_boundary}--")
        return bytes(out), f"multipart/mixed; boundary={batch_boundary}"

    line(f"--{batch_boundary}")
    line(f"Content-Type: multipart/mixed; boundary={changeset_boundary}")
    line()
    for content_id, op in enumerate(batch, start=1):
        line(f"--{changeset_boundary}")
        line("Content-Type: application/http")
        line("Content-Transfer-Encoding: binary")
        line()
        line(f"{http_method(op)} {root}/{op.to_request_uri(table_name)} HTTP/1.1")
        line(f"Content-ID: {content_id}")
        line(f"{HEADER_ACCEPT}: {accept}")
        line(f"{HEADER_DATA_SERVICE_VERSION}: {DATA_SERVICE_VERSION}")
        if op.operation_type in (TableOperationType.DELETE, TableOperationType.REPLACE, TableOperationType.MERGE):
            line(f"{HEADER_IF_MATCH}: {op.etag}")
        if op.operation_type is TableOperationType.INSERT:
            line(f"{HEADER_PREFER}: {PREFER_RETURN_CONTENT if op.echo_content else PREFER_RETURN_NO_CONTENT}")
        if op.operation_type is TableOperationType.DELETE:
            line()
        else:
            payload = serialize(op)
            line(f"{HEADER_CONTENT_TYPE}: {JSON_CONTENT_TYPE}")
            line(f"Content-Length: {len(payload)}")
            line()
            out.extend(payload + CRLF)
    line(f"--{changeset_boundary}--")
    line(f"--{batch_boundary}--")
    return bytes(out), f"multipart/mixed; boundary={batch_boundary}"


# ---------------------------------------------------------------- parsing


def _boundary_from_content_type(content_type: str) -> Optional[str]:
    for piece in content_type.split(";"):
        name, _, value = piece.strip().partition("=")
        if name.lower() == "boundary":
            return value.strip().strip('"')
    return None


def _split_head(data: bytes) -> Tuple[List[str], bytes]:
    """Split a MIME/HTTP block into header lines and the remaining content."""
    for sep in (b"\r\n\r\n", b"\n\n"):
        idx = data.find(sep)
        if idx >= 0:
            head, rest = data[:idx], data[idx + len(sep):]
            return head.decode("utf-8", errors="replace").splitlines(), rest
    return data.decode("utf-8", errors="replace").splitlines(), b""


def _parse_headers(lines: List[str]) -> CaseInsensitiveDict:
    headers = CaseInsensitiveDict()
    for raw in lines:
        name, sep, value = raw.partition(":")
        if sep:
            headers[name.strip()] = value.strip()
    return headers


def _split_multipart(body: bytes, boundary: str) -> List[bytes]:
    delimiter = b"--" + boundary.encode("utf-8")
    parts: List[bytes] = []
    for chunk in body.split(delimiter)[1:]:
        if chunk.startswith(b"--"):
            break
        if chunk.startswith(CRLF):
            chunk = chunk[2:]
        elif chunk.startswith(b"\n"):
            chunk = chunk[1:]
        if chunk.endswith(CRLF):
            chunk = chunk[:-2]
        elif chunk.endswith(b"\n"):
            chunk = chunk[:-1]
        parts.append(chunk)
    return parts


def _parse_http_part(content: bytes) -> BatchPartResponse:
    lines, body = _split_head(content)
    if not lines:
        raise StorageError("Invalid batch response: missing status line.", is_retryable=False, subcode=CLIENT_BATCH_RESPONSE)
    status_line = lines[0].split(" ", 2)
    if len(status_line) < 2 or not status_line[1].isdigit():
        raise StorageError(
            f"Invalid batch response status line '{lines[0]}'.", is_retryable=False, subcode=CLIENT_BATCH_RESPONSE
        )
    reason = status_line[2] if len(status_line) > 2 else ""
    return BatchPartResponse(int(status_line[1]), reason, _parse_headers(lines[1:]), body)


def parse_batch_response(body: bytes, content_type: str) -> List[BatchPartResponse]:
    """
    Decode a ``multipart/mixed`` batch response into its embedded HTTP responses.

    Nested changeset responses are flattened, preserving order.

    :param body: Raw response body.
    :type body: bytes
    :param content_type: Response ``Content-Type`` header carrying the boundary.
    :type content_type: str
    :rtype: list[BatchPartResponse]
    :raises StorageError: If the body is not a well-formed batch response.
    """
    boundary = _boundary_from_content_type(content_type or "")
    if not boundary:
        raise StorageError("Invalid batch response: missing boundary.", is_retryable=False, subcode=CLIENT_BATCH_RESPONSE)

    responses: List[BatchPartResponse] = []
    for part in _split_multipart(body, boundary):
        lines, content = _split_head(part)
        headers = _parse_headers(lines)
        part_type = headers.get("Content-Type", "")
        if part_type.lower().startswith("multipart/mixed"):
            responses.extend(parse_batch_response(content, part_type))
        else:
            responses.append(_parse_http_part(content))
    return responses


def extract_operation_index(message: Optional[str]) -> Optional[int]:
    """Return the operation index the service reports as ``"<index>:<message>"``, if present."""
    if not message:
        return None
    head, sep, _ = message.partition(":")
    if sep and head.strip().isdigit():
        return int(head.strip())
    return None


__all__ = [
    "BatchPartResponse",
    "build_batch_body",
    "parse_batch_response",
    "extract_operation_index",
    "http_method",
]
