# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.

"""
Table service OData client.

Builds :class:`~tablestore.core._executor._StorageCommand` objects for every
table, entity, batch and query request and interprets the responses. The
request engine owns retries and routing; this module owns the protocol.
"""

from __future__ import annotations

import json
import logging
import uuid
import xml.etree.ElementTree as ET
from typing import Any, Callable, Dict, List, Mapping, Optional

import requests

from ..common.constants import (
    ATOM_ACCEPT,
    ATOM_CONTENT_TYPE,
    HEADER_ACCEPT,
    HEADER_CONTENT_TYPE,
    HEADER_CONTINUATION_PREFIX,
    HEADER_ERROR_CODE,
    HEADER_ETAG,
    HEADER_IF_MATCH,
    HEADER_PREFER,
    HEADER_REQUEST_ID,
    JSON_CONTENT_TYPE,
    JSON_FULL_METADATA,
    JSON_MINIMAL_METADATA,
    JSON_NO_METADATA,
    MAX_BATCH_OPERATIONS,
    NEXT_PARTITION_KEY,
    NEXT_ROW_KEY,
    NEXT_TABLE_NAME,
    PREFER_RETURN_CONTENT,
    PREFER_RETURN_NO_CONTENT,
    TABLE_NAME,
)
from ..core._error_codes import (
    CLIENT_BATCH_RESPONSE,
    CLIENT_RESPONSE_FORMAT,
    OPERATION_BATCH_TOO_LARGE,
    OPERATION_EMPTY_BATCH,
)
from ..core._executor import CommandLocationMode, _Executor, _StorageCommand
from ..core.config import TablePayloadFormat, TableStorageConfig
from ..core.context import OperationContext, RequestResult
from ..core.errors import ExtendedErrorInformation, InvalidOperationError, StorageError
from ..core.results import TableQuerySegment, TableResult
from ..models.batch import TableBatchOperation
from ..models.continuation import StorageLocation, TableContinuationToken
from ..models.operation import EntityResolver, TableOperation, TableOperationType
from ..models.query import TableQuery, build_select
from ._batch import BatchPartResponse, build_batch_body, extract_operation_index, http_method, parse_batch_response
from ._serialization import (
    EntityParts,
    apply_resolver,
    entity_to_atom,
    entity_to_json,
    read_atom_entities,
    read_json_entities,
    read_json_entity,
    timestamp_from_etag,
)

logger = logging.getLogger(__name__)

UNKNOWN_ERROR_MESSAGE = "An unknown error has occurred, extended error information not available."
UNEXPECTED_ELEMENT_MESSAGE = "Element {index} in the batch returned an unexpected response code."
EMPTY_BATCH_MESSAGE = "Cannot execute an empty batch operation"
BATCH_TOO_LARGE_MESSAGE = "The maximum number of operations allowed in one batch has been exceeded."
MALFORMED_RESPONSE_MESSAGE = "The response body could not be parsed as {format}."

_ACCEPT = {
    TablePayloadFormat.JSON: JSON_MINIMAL_METADATA,
    TablePayloadFormat.JSON_FULL_METADATA: JSON_FULL_METADATA,
    TablePayloadFormat.JSON_NO_METADATA: JSON_NO_METADATA,
    TablePayloadFormat.ATOM_PUB: ATOM_ACCEPT,
}

_ETAG_OPERATIONS = (TableOperationType.DELETE, TableOperationType.REPLACE, TableOperationType.MERGE)


def accept_header(payload_format: TablePayloadFormat) -> str:
    return _ACCEPT[payload_format]


def _is_xml(content_type: Optional[str]) -> bool:
    return "xml" in (content_type or "").lower()


def _local(tag: str) -> str:
    return tag.rsplit("}", 1)[-1]


# ---------------------------------------------------------------- errors


def parse_error_body(
    text: Optional[str],
    content_type: Optional[str] = None,
    headers: Optional[Mapping[str, str]] = None,
) -> Optional[ExtendedErrorInformation]:
    """
    Extract the service error code and message from a failed response.

    Understands the JSON ``odata.error`` envelope, the XML ``<error>`` document
    and the ``x-ms-error-code`` header.

    :return: Parsed details, or ``None`` when the response carries none.
    :rtype: ~tablestore.core.errors.ExtendedErrorInformation | None
    """
    header_code = headers.get(HEADER_ERROR_CODE) if headers is not None else None
    info: Optional[ExtendedErrorInformation] = None
    body = (text or "").strip()

    if body.startswith("{"):
        try:
            payload = json.loads(body)
        except ValueError:
            payload = None
        error = payload.get("odata.error") if isinstance(payload, dict) else None
        if isinstance(error, dict):
            message = error.get("message")
            if isinstance(message, dict):
                message = message.get("value")
            additional = {
                k: v if isinstance(v, str) else json.dumps(v) for k, v in error.items() if k not in ("code", "message")
            }
            info = ExtendedErrorInformation(error.get("code"), message, additional)
    elif body.startswith("<"):
        try:
            root = ET.fromstring(body)
        except ET.ParseError:
            root = None
        if root is not None and _local(root.tag) == "error":
            code = message = None
            extra: Dict[str, str] = {}
            for child in root:
                name = _local(child.tag)
                if name == "code":
                    code = child.text
                elif name == "message":
                    message = child.text
                else:
                    extra[name] = child.text or ""
            info = ExtendedErrorInformation(code, message, extra)

    if header_code:
        if info is None:
            info = ExtendedErrorInformation(header_code)
        elif not info.error_code:
            info.error_code = header_code
    return info


def error_from_response(
    status_code: int,
    text: Optional[str],
    headers: Mapping[str, str],
    *,
    is_retryable: bool = True,
    message: Optional[str] = None,
    details: Optional[Dict[str, Any]] = None,
) -> StorageError:
    """Build the :class:`StorageError` for an unexpected response status."""
    info = parse_error_body(text, headers.get(HEADER_CONTENT_TYPE), headers)
    if message is None:
        message = info.error_message if info is not None and info.error_message else UNKNOWN_ERROR_MESSAGE
    return StorageError(
        message,
        status_code,
        extended_error_information=info,
        is_retryable=is_retryable,
        service_request_id=headers.get(HEADER_REQUEST_ID),
        details=details,
    )


def _raise_for_response(response: requests.Response) -> None:
    raise error_from_response(response.status_code, response.text, response.headers)


# ---------------------------------------------------------------- continuation


def continuation_from_headers(
    headers: Mapping[str, str], location: Optional[StorageLocation]
) -> Optional[TableContinuationToken]:
    """
    Read ``x-ms-continuation-*`` headers into a token.

    :return: Token pinned to ``location``, or ``None`` when there are no more pages.
    """
    values = {}
    for key in (NEXT_PARTITION_KEY, NEXT_ROW_KEY, NEXT_TABLE_NAME):
        values[key] = headers.get(HEADER_CONTINUATION_PREFIX + key) or None
    if all(v is None for v in values.values()):
        return None
    return TableContinuationToken(
        next_partition_key=values[NEXT_PARTITION_KEY],
        next_row_key=values[NEXT_ROW_KEY],
        next_table_name=values[NEXT_TABLE_NAME],
        target_location=location,
    )


# ---------------------------------------------------------------- payloads


def _malformed_body(content_type: Optional[str], exc: Exception) -> StorageError:
    fmt = "AtomPub XML" if _is_xml(content_type) else "JSON"
    logger.warning("Malformed %s response body: %s", fmt, exc)
    return StorageError(
        MALFORMED_RESPONSE_MESSAGE.format(format=fmt),
        is_retryable=False,
        subcode=CLIENT_RESPONSE_FORMAT,
        details={"error": str(exc)},
    )


def _read_single(text: str, content_type: Optional[str], property_resolver: Optional[Callable]) -> EntityParts:
    try:
        if _is_xml(content_type):
            return read_atom_entities(text)[0]
        return read_json_entity(json.loads(text), property_resolver)
    except (ValueError, AttributeError, IndexError, ET.ParseError) as exc:
        raise _malformed_body(content_type, exc) from exc


def _read_many(text: str, content_type: Optional[str], property_resolver: Optional[Callable]) -> List[EntityParts]:
    try:
        if _is_xml(content_type):
            return read_atom_entities(text)
        return read_json_entities(text, property_resolver)
    except (ValueError, AttributeError, ET.ParseError) as exc:
        raise _malformed_body(content_type, exc) from exc


def _with_etag(parts: EntityParts, etag: Optional[str]) -> EntityParts:
    if not etag:
        return parts
    pk, rk, ts, props, _ = parts
    return pk, rk, ts, props, etag


def _entity_json_bytes(operation: TableOperation) -> bytes:
    return json.dumps(entity_to_json(operation.entity), separators=(",", ":")).encode("utf-8")


def _escape_table_name(name: str) -> str:
    return name.replace("'", "''")


class _TableODataClient:
    """
    Protocol layer of the client. Internal.

    :param executor: Request engine every command is run through.
    :type executor: ~tablestore.core._executor._Executor
    """

    def __init__(self, executor: _Executor) -> None:
        self._executor = executor

    def _run(
        self,
        command: _StorageCommand,
        config: TableStorageConfig,
        operation_context: Optional[OperationContext],
        cancellation_token: Any,
    ) -> Any:
        return self._executor.execute(command, config, operation_context, cancellation_token)

    def _write_body(self, operation: TableOperation, config: TableStorageConfig):
        if config.effective_payload_format is TablePayloadFormat.ATOM_PUB:
            return entity_to_atom(operation.entity), ATOM_CONTENT_TYPE
        return _entity_json_bytes(operation), JSON_CONTENT_TYPE

    # ------------------------------------------------------------ entities

    def _execute_operation(
        self,
        table_name: str,
        operation: TableOperation,
        config: TableStorageConfig,
        operation_context: Optional[OperationContext] = None,
        cancellation_token: Any = None,
    ) -> TableResult:
        """Execute a single entity operation."""
        headers = {HEADER_ACCEPT: accept_header(config.effective_payload_format)}
        query: Dict[str, str] = {}
        body: Optional[bytes] = None

        if operation.is_read_only:
            select = build_select(operation.select_columns, config.effective_project_system_properties)
            if select is not None:
                query["$select"] = select
            process = self._retrieve_processor(operation, config)
            location_mode = CommandLocationMode.PRIMARY_OR_SECONDARY
        else:
            if operation.operation_type is not TableOperationType.DELETE:
                body, content_type = self._write_body(operation, config)
                headers[HEADER_CONTENT_TYPE] = content_type
            if operation.operation_type in _ETAG_OPERATIONS:
                headers[HEADER_IF_MATCH] = operation.etag
            if operation.operation_type is TableOperationType.INSERT:
                headers[HEADER_PREFER] = PREFER_RETURN_CONTENT if operation.echo_content else PREFER_RETURN_NO_CONTENT
            process = self._write_processor(operation, config)
            location_mode = CommandLocationMode.PRIMARY_ONLY

        command = _StorageCommand(
            operation="entities.execute",
            method=http_method(operation),
            path=operation.to_request_uri(table_name),
            process=process,
            query=query,
            headers=headers,
            body=body,
            location_mode=location_mode,
            table_name=table_name,
        )
        return self._run(command, config, operation_context, cancellation_token)

    def _retrieve_processor(self, operation: TableOperation, config: TableStorageConfig):
        def process(response: requests.Response, result: RequestResult) -> TableResult:
            if response.status_code == 404:
                return TableResult(404)
            if response.status_code != 200:
                _raise_for_response(response)
            etag = response.headers.get(HEADER_ETAG)
            parts = _with_etag(
                _read_single(response.text, response.headers.get(HEADER_CONTENT_TYPE), config.property_resolver),
                etag,
            )
            return TableResult(200, parts[4], apply_resolver(operation.resolver, parts))

        return process

    def _write_processor(self, operation: TableOperation, config: TableStorageConfig):
        expected = (201, 204) if operation.operation_type is TableOperationType.INSERT else (204,)

        def process(response: requests.Response, result: RequestResult) -> TableResult:
            if response.status_code not in expected:
                _raise_for_response(response)
            etag = response.headers.get(HEADER_ETAG)
            return self._apply_write_result(
                operation,
                response.status_code,
                etag,
                response.text if response.status_code == 201 else None,
                response.headers.get(HEADER_CONTENT_TYPE),
                config,
            )

        return process

    @staticmethod
    def _apply_write_result(
        operation: TableOperation,
        status_code: int,
        etag: Optional[str],
        echo_text: Optional[str],
        content_type: Optional[str],
        config: TableStorageConfig,
    ) -> TableResult:
        entity = operation.entity
        if operation.operation_type is TableOperationType.DELETE:
            return TableResult(status_code, None, entity)
        entity.etag = etag
        if operation.operation_type is TableOperationType.INSERT and echo_text:
            parts = _with_etag(_read_single(echo_text, content_type, config.property_resolver), etag)
            echoed = apply_resolver(None, parts)
            entity.timestamp = echoed.timestamp
            return TableResult(status_code, etag, echoed)
        timestamp = timestamp_from_etag(etag)
        if timestamp is not None:
            entity.timestamp = timestamp
        return TableResult(status_code, etag, entity)

    # ------------------------------------------------------------ batches

    def _execute_batch(
        self,
        table_name: str,
        batch: TableBatchOperation,
        config: TableStorageConfig,
        operation_context: Optional[OperationContext] = None,
        cancellation_token: Any = None,
    ) -> List[TableResult]:
        """
        Execute an entity group transaction.

        :raises InvalidOperationError: For an empty batch or one over the size limit, before any I/O.
        """
        if len(batch) == 0:
            raise InvalidOperationError(EMPTY_BATCH_MESSAGE, subcode=OPERATION_EMPTY_BATCH)
        if len(batch) > MAX_BATCH_OPERATIONS:
            raise InvalidOperationError(
                BATCH_TOO_LARGE_MESSAGE, subcode=OPERATION_BATCH_TOO_LARGE, details={"count": len(batch)}
            )

        operations = list(batch)
        # Part bodies are always JSON; AtomPub has no batch encoding here
        payload_format = config.effective_payload_format
        if payload_format is TablePayloadFormat.ATOM_PUB:
            payload_format = TablePayloadFormat.JSON
        accept = accept_header(payload_format)
        batch_boundary = f"batch_{uuid.uuid4()}"
        changeset_boundary = f"changeset_{uuid.uuid4()}"
        results: List[TableResult] = []

        def body(base_url: str) -> bytes:
            return build_batch_body(
                batch,
                table_name,
                base_url,
                accept,
                _entity_json_bytes,
                batch_boundary=batch_boundary,
                changeset_boundary=changeset_boundary,
                project_system_properties=config.effective_project_system_properties,
            )[0]

        def process(response: requests.Response, result: RequestResult) -> List[TableResult]:
            if response.status_code != 202:
                _raise_for_response(response)
            parts = parse_batch_response(response.content, response.headers.get(HEADER_CONTENT_TYPE, ""))
            if len(parts) != len(operations):
                # a failed changeset is answered with the failing part only
                failing = next((p for p in parts if p.status_code >= 300), None)
                if failing is None:
                    raise StorageError(
                        f"Invalid batch response: expected {len(operations)} responses, received {len(parts)}.",
                        is_retryable=False,
                        subcode=CLIENT_BATCH_RESPONSE,
                    )
                raise self._batch_part_error(failing, operations, None)
            for index, (operation, part) in enumerate(zip(operations, parts)):
                results.append(self._batch_part_result(operation, part, index, operations, config))
            return list(results)

        command = _StorageCommand(
            operation="entities.execute_batch",
            method="POST",
            path="$batch",
            process=process,
            headers={
                HEADER_CONTENT_TYPE: f"multipart/mixed; boundary={batch_boundary}",
                HEADER_ACCEPT: accept,
            },
            body=body,
            location_mode=(
                CommandLocationMode.PRIMARY_ONLY if batch.contains_writes else CommandLocationMode.PRIMARY_OR_SECONDARY
            ),
            recover=results.clear,
            table_name=table_name,
        )
        return self._run(command, config, operation_context, cancellation_token)

    def _batch_part_result(
        self,
        operation: TableOperation,
        part: BatchPartResponse,
        index: int,
        operations: List[TableOperation],
        config: TableStorageConfig,
    ) -> TableResult:
        status = part.status_code
        op_type = operation.operation_type
        content_type = part.headers.get(HEADER_CONTENT_TYPE)
        etag = part.headers.get(HEADER_ETAG)

        if op_type is TableOperationType.RETRIEVE:
            if status == 404:
                return TableResult(404)
            if status != 200:
                raise self._batch_part_error(part, operations, index)
            parts = _with_etag(_read_single(part.text, content_type, config.property_resolver), etag)
            return TableResult(200, parts[4], apply_resolver(operation.resolver, parts))

        if op_type is TableOperationType.INSERT:
            if status not in (201, 204):
                raise self._batch_part_error(part, operations, index)
        elif status != 204:
            raise self._batch_part_error(part, operations, index)
        echo_text = part.text if status == 201 and part.body.strip() else None
        return self._apply_write_result(operation, status, etag, echo_text, content_type, config)

    @staticmethod
    def _batch_part_error(
        part: BatchPartResponse, operations: List[TableOperation], index: Optional[int]
    ) -> StorageError:
        info = parse_error_body(part.text, part.headers.get(HEADER_CONTENT_TYPE), part.headers)
        reported = extract_operation_index(info.error_message if info is not None else None)
        if reported is not None:
            index = reported
        operation = operations[index] if index is not None and 0 <= index < len(operations) else None

        retryable = True
        if operation is not None:
            if operation.operation_type is TableOperationType.INSERT and part.status_code == 409:
                retryable = False
            elif not operation.is_read_only and part.status_code == 404:
                retryable = False

        if index is not None:
            message = UNEXPECTED_ELEMENT_MESSAGE.format(index=index)
        elif info is not None and info.error_message:
            message = info.error_message
        else:
            message = UNKNOWN_ERROR_MESSAGE
        return StorageError(
            message,
            part.status_code,
            extended_error_information=info,
            is_retryable=retryable,
            details={"operation_index": index},
        )

    # ------------------------------------------------------------ queries

    def _query_segment(
        self,
        table_name: str,
        query: TableQuery,
        continuation_token: Optional[TableContinuationToken],
        resolver: Optional[EntityResolver],
        config: TableStorageConfig,
        operation_context: Optional[OperationContext] = None,
        cancellation_token: Any = None,
    ) -> TableQuerySegment:
        """Fetch one page of query results."""
        params = query.to_query_parameters(config.effective_project_system_properties)
        if continuation_token:
            params.update(continuation_token.to_query_parameters())

        def process(response: requests.Response, result: RequestResult) -> TableQuerySegment:
            if response.status_code != 200:
                _raise_for_response(response)
            rows = _read_many(response.text, response.headers.get(HEADER_CONTENT_TYPE), config.property_resolver)
            items = [apply_resolver(resolver, row) for row in rows]
            token = continuation_from_headers(response.headers, result.target_location)
            logger.debug("Retrieved '%d' results with continuation token '%s'.", len(items), token)
            return TableQuerySegment(items, token, result)

        command = _StorageCommand(
            operation="query.execute_segmented",
            method="GET",
            path=f"{table_name}()",
            process=process,
            query=params,
            headers={HEADER_ACCEPT: accept_header(config.effective_payload_format)},
            location_mode=CommandLocationMode.PRIMARY_OR_SECONDARY,
            target_location=continuation_token.target_location if continuation_token else None,
            table_name=table_name,
        )
        return self._run(command, config, operation_context, cancellation_token)

    # ------------------------------------------------------------ tables

    def _create_table(
        self,
        table_name: str,
        config: TableStorageConfig,
        operation_context: Optional[OperationContext] = None,
        cancellation_token: Any = None,
    ) -> TableResult:
        if config.effective_payload_format is TablePayloadFormat.ATOM_PUB:
            body, content_type = entity_to_atom(table_name=table_name), ATOM_CONTENT_TYPE
        else:
            body, content_type = json.dumps({TABLE_NAME: table_name}).encode("utf-8"), JSON_CONTENT_TYPE

        def process(response: requests.Response, result: RequestResult) -> TableResult:
            if response.status_code not in (201, 204):
                _raise_for_response(response)
            return TableResult(response.status_code, None, table_name)

        command = _StorageCommand(
            operation="tables.create",
            method="POST",
            path="Tables",
            process=process,
            headers={
                HEADER_ACCEPT: accept_header(config.effective_payload_format),
                HEADER_CONTENT_TYPE: content_type,
                HEADER_PREFER: PREFER_RETURN_NO_CONTENT,
            },
            body=body,
            location_mode=CommandLocationMode.PRIMARY_ONLY,
            table_name=table_name,
        )
        return self._run(command, config, operation_context, cancellation_token)

    def _table_exists(
        self,
        table_name: str,
        config: TableStorageConfig,
        operation_context: Optional[OperationContext] = None,
        cancellation_token: Any = None,
    ) -> bool:
        def process(response: requests.Response, result: RequestResult) -> bool:
            if response.status_code == 404:
                return False
            if response.status_code != 200:
                _raise_for_response(response)
            return True

        command = _StorageCommand(
            operation="tables.exists",
            method="GET",
            path=f"Tables('{_escape_table_name(table_name)}')",
            process=process,
            headers={HEADER_ACCEPT: accept_header(config.effective_payload_format)},
            location_mode=CommandLocationMode.PRIMARY_OR_SECONDARY,
            table_name=table_name,
        )
        return self._run(command, config, operation_context, cancellation_token)

    def _delete_table(
        self,
        table_name: str,
        config: TableStorageConfig,
        operation_context: Optional[OperationContext] = None,
        cancellation_token: Any = None,
    ) -> TableResult:
        def process(response: requests.Response, result: RequestResult) -> TableResult:
            if response.status_code != 204:
                _raise_for_response(response)
            return TableResult(204)

        command = _StorageCommand(
            operation="tables.delete",
            method="DELETE",
            path=f"Tables('{_escape_table_name(table_name)}')",
            process=process,
            headers={HEADER_ACCEPT: accept_header(config.effective_payload_format)},
            location_mode=CommandLocationMode.PRIMARY_ONLY,
            table_name=table_name,
        )
        return self._run(command, config, operation_context, cancellation_token)

    def _list_tables_segment(
        self,
        prefix: Optional[str],
        continuation_token: Optional[TableContinuationToken],
        take_count: Optional[int],
        config: TableStorageConfig,
        operation_context: Optional[OperationContext] = None,
        cancellation_token: Any = None,
    ) -> TableQuerySegment:
        """Fetch one page of table names, optionally restricted to a name prefix."""
        params: Dict[str, str] = {}
        if prefix:
            escaped = _escape_table_name(prefix)
            params["$filter"] = f"{TABLE_NAME} ge '{escaped}' and {TABLE_NAME} lt '{escaped}{{'"
        if take_count is not None:
            params["$top"] = str(take_count)
        if continuation_token:
            params.update(continuation_token.to_query_parameters())

        def process(response: requests.Response, result: RequestResult) -> TableQuerySegment:
            if response.status_code != 200:
                _raise_for_response(response)
            rows = _read_many(response.text, response.headers.get(HEADER_CONTENT_TYPE), None)
            names = [row[3][TABLE_NAME].value for row in rows if TABLE_NAME in row[3]]
            token = continuation_from_headers(response.headers, result.target_location)
            logger.debug("Retrieved '%d' results with continuation token '%s'.", len(names), token)
            return TableQuerySegment(names, token, result)

        command = _StorageCommand(
            operation="tables.list",
            method="GET",
            path="Tables",
            process=process,
            query=params,
            headers={HEADER_ACCEPT: accept_header(config.effective_payload_format)},
            location_mode=CommandLocationMode.PRIMARY_OR_SECONDARY,
            target_location=continuation_token.target_location if continuation_token else None,
        )
        return self._run(command, config, operation_context, cancellation_token)


__all__ = [
    "UNKNOWN_ERROR_MESSAGE",
    "UNEXPECTED_ELEMENT_MESSAGE",
    "EMPTY_BATCH_MESSAGE",
    "BATCH_TOO_LARGE_MESSAGE",
    "accept_header",
    "continuation_from_headers",
    "error_from_response",
    "parse_error_body",
]
