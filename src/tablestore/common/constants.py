# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.

"""
Constants for the Table service REST protocol.

These constants define header names, protocol versions, payload content types,
service limits and telemetry attribute keys used across the client.
"""

# Protocol versions
STORAGE_VERSION = "2017-04-17"
DATA_SERVICE_VERSION = "3.0;NetFx"
MAX_DATA_SERVICE_VERSION = "3.0;NetFx"

# Request and response headers
HEADER_VERSION = "x-ms-version"
HEADER_CLIENT_REQUEST_ID = "x-ms-client-request-id"
HEADER_REQUEST_ID = "x-ms-request-id"
HEADER_ERROR_CODE = "x-ms-error-code"
HEADER_DATE = "x-ms-date"
HEADER_DATA_SERVICE_VERSION = "DataServiceVersion"
HEADER_MAX_DATA_SERVICE_VERSION = "MaxDataServiceVersion"
HEADER_PREFER = "Prefer"
HEADER_IF_MATCH = "If-Match"
HEADER_ETAG = "ETag"
HEADER_ACCEPT = "Accept"
HEADER_CONTENT_TYPE = "Content-Type"
HEADER_CONTINUATION_PREFIX = "x-ms-continuation-"

PREFER_RETURN_CONTENT = "return-content"
PREFER_RETURN_NO_CONTENT = "return-no-content"

# Continuation token keys (query parameters and header suffixes)
NEXT_PARTITION_KEY = "NextPartitionKey"
NEXT_ROW_KEY = "NextRowKey"
NEXT_TABLE_NAME = "NextTableName"

# Payload content types
JSON_MINIMAL_METADATA = "application/json;odata=minimalmetadata"
JSON_FULL_METADATA = "application/json;odata=fullmetadata"
JSON_NO_METADATA = "application/json;odata=nometadata"
ATOM_ACCEPT = "application/atom+xml,application/xml"
ATOM_CONTENT_TYPE = "application/atom+xml"
JSON_CONTENT_TYPE = "application/json"

# OData / AtomPub namespaces
ATOM_NAMESPACE = "http://www.w3.org/2005/Atom"
DATA_SERVICES_NAMESPACE = "http://schemas.microsoft.com/ado/2007/08/dataservices"
METADATA_NAMESPACE = "http://schemas.microsoft.com/ado/2007/08/dataservices/metadata"

# System properties
PARTITION_KEY = "PartitionKey"
ROW_KEY = "RowKey"
TIMESTAMP = "Timestamp"
TABLE_NAME = "TableName"
ODATA_ETAG = "odata.etag"
ODATA_TYPE_SUFFIX = "@odata.type"

# Service limits
MAX_BATCH_OPERATIONS = 100
MAX_BATCH_PAYLOAD_BYTES = 4 * 1024 * 1024
MAX_ENTITY_BYTES = 1024 * 1024
MAX_PROPERTY_NAME_LENGTH = 255

# Default client side limits
DEFAULT_MAXIMUM_EXECUTION_TIME = 300.0
DEFAULT_MAX_ASYNC_WORKERS = 4
MAXIMUM_RETRY_BACKOFF = 3600.0

# Token audience for Azure AD authentication
STORAGE_TOKEN_SCOPE = "https://storage.azure.com/.default"

# OpenTelemetry attribute keys
OTEL_ATTR_DB_SYSTEM = "db.system"
OTEL_ATTR_DB_OPERATION = "db.operation"
OTEL_ATTR_HTTP_METHOD = "http.method"
OTEL_ATTR_HTTP_URL = "http.url"
OTEL_ATTR_HTTP_STATUS_CODE = "http.status_code"
OTEL_ATTR_TABLE_NAME = "tablestore.table"
OTEL_ATTR_CLIENT_REQUEST_ID = "tablestore.client_request_id"
OTEL_ATTR_SERVICE_REQUEST_ID = "tablestore.service_request_id"
OTEL_ATTR_LOCATION = "tablestore.location"
