# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.

# HTTP subcode constants
HTTP_400 = "http_400"
HTTP_403 = "http_403"
HTTP_404 = "http_404"
HTTP_408 = "http_408"
HTTP_409 = "http_409"
HTTP_412 = "http_412"
HTTP_413 = "http_413"
HTTP_429 = "http_429"
HTTP_500 = "http_500"
HTTP_501 = "http_501"
HTTP_502 = "http_502"
HTTP_503 = "http_503"
HTTP_504 = "http_504"
HTTP_505 = "http_505"

ALL_HTTP_SUBCODES = {
    HTTP_400,
    HTTP_403,
    HTTP_404,
    HTTP_408,
    HTTP_409,
    HTTP_412,
    HTTP_413,
    HTTP_429,
    HTTP_500,
    HTTP_501,
    HTTP_502,
    HTTP_503,
    HTTP_504,
    HTTP_505,
}


def http_subcode(status_code):
    """Map an HTTP status to its subcode constant, or ``None`` when unlisted."""
    if status_code is None:
        return None
    code = f"http_{status_code}"
    return code if code in ALL_HTTP_SUBCODES else None


# Validation subcodes
VALIDATION_NULL_ARGUMENT = "validation_null_argument"
VALIDATION_PROPERTY_NAME_TOO_LONG = "validation_property_name_too_long"
VALIDATION_MISSING_ETAG = "validation_missing_etag"
VALIDATION_BATCH_PARTITION_MISMATCH = "validation_batch_partition_mismatch"
VALIDATION_BATCH_RETRIEVE_MIXED = "validation_batch_retrieve_mixed"
VALIDATION_TAKE_COUNT = "validation_take_count"
VALIDATION_TYPE_MISMATCH = "validation_type_mismatch"
VALIDATION_TOKEN_FORMAT = "validation_token_format"

# Invalid operation subcodes
OPERATION_EMPTY_BATCH = "operation_empty_batch"
OPERATION_BATCH_TOO_LARGE = "operation_batch_too_large"
OPERATION_PRIMARY_ONLY = "operation_primary_only"

# Client side storage error subcodes
CLIENT_TIMEOUT = "client_timeout"
CLIENT_RESOLVER_FAILED = "client_resolver_failed"
CLIENT_TRANSPORT = "client_transport"
CLIENT_BATCH_RESPONSE = "client_batch_response"
CLIENT_RESPONSE_FORMAT = "client_response_format"

# Service error code strings (x-ms-error-code / odata.error code)
ENTITY_ALREADY_EXISTS = "EntityAlreadyExists"
TABLE_ALREADY_EXISTS = "TableAlreadyExists"
TABLE_NOT_FOUND = "TableNotFound"
TABLE_BEING_DELETED = "TableBeingDeleted"
RESOURCE_NOT_FOUND = "ResourceNotFound"
UPDATE_CONDITION_NOT_SATISFIED = "UpdateConditionNotSatisfied"
CONDITION_NOT_MET = "ConditionNotMet"
INVALID_DUPLICATE_ROW = "InvalidDuplicateRow"
ENTITY_TOO_LARGE = "EntityTooLarge"
REQUEST_BODY_TOO_LARGE = "RequestBodyTooLarge"
PROPERTY_NAME_TOO_LONG = "PropertyNameTooLong"
OPERATION_TIMED_OUT = "OperationTimedOut"
SERVER_BUSY = "ServerBusy"
