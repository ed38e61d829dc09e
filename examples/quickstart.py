# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.

"""
Interactive walkthrough of the tablestore client.

Creates a table, writes entities one at a time and in a batch, pages through
a query, and round-trips a pandas DataFrame. Run against a real account
(Azure AD or SAS) or a local emulator.
"""

import sys
import traceback
from pathlib import Path

# Add src to PYTHONPATH for local runs
sys.path.append(str(Path(__file__).resolve().parents[1] / "src"))

import pandas as pd
from azure.core.credentials import AzureSasCredential

from tablestore import TableServiceClient
from tablestore.core.config import TableStorageConfig
from tablestore.core.errors import StorageError
from tablestore.core.retry import ExponentialRetry
from tablestore.core.telemetry import TelemetryConfig
from tablestore.models.batch import TableBatchOperation
from tablestore.models.entity import EntityProperty, TableEntity
from tablestore.models.operation import TableOperation
from tablestore.models.query import QueryComparisons, TableQuery, generate_filter_condition

TABLE = "quickstartpeople"


def log_call(call: str) -> None:
    print({"call": call})


def make_credential():
    sas = input("SAS token (leave empty to sign in with Azure AD): ").strip()
    if sas:
        return AzureSasCredential(sas)
    from azure.identity import InteractiveBrowserCredential

    return InteractiveBrowserCredential()


def main() -> None:
    entered = input("Enter table endpoint (e.g. https://myaccount.table.core.windows.net): ").strip()
    if not entered:
        print("No URL entered; exiting.")
        sys.exit(1)
    delete_choice = input(f"Delete the {TABLE} table at end? (Y/n): ").strip() or "y"
    delete_table_at_end = delete_choice.lower() in ("y", "yes", "true", "1")

    config = TableStorageConfig(
        retry_policy=ExponentialRetry(retries=4, backoff=2.0),
        maximum_execution_time=60,
        telemetry=TelemetryConfig(enable_logging=True, log_level="INFO"),
    )

    with TableServiceClient(entered, make_credential(), config=config) as client:
        log_call(f"client.tables.create_if_not_exists('{TABLE}')")
        created = client.tables.create_if_not_exists(TABLE)
        print({"table": TABLE, "created": created})

        # Single operations
        alice = TableEntity("users", "alice", {"age": 31, "active": True})
        alice["score"] = EntityProperty.for_double(98.5)
        log_call("client.entities.execute(insert_or_replace alice)")
        res = client.entities.execute(TABLE, TableOperation.insert_or_replace(alice))
        print({"status": res.http_status_code, "etag": res.etag})

        log_call("client.entities.execute(retrieve alice)")
        res = client.entities.execute(TABLE, TableOperation.retrieve("users", "alice"))
        if res.result is not None:
            print({"age": res.result.get_value("age"), "timestamp": res.result.timestamp})

        # Optimistic concurrency: a stale etag is rejected with 412
        stale = TableEntity("users", "alice", {"age": 32}, etag='W/"datetime\'2000-01-01T00%3A00%3A00Z\'"')
        try:
            client.entities.execute(TABLE, TableOperation.replace(stale))
        except StorageError as e:
            print({"expected_failure": e.status_code, "error_code": e.error_code})

        # Entity group transaction
        batch = TableBatchOperation()
        for i in range(5):
            batch.insert_or_merge_entity(TableEntity("users", f"user{i:03d}", {"age": 20 + i}))
        log_call("client.entities.execute_batch(5 upserts)")
        results = client.entities.execute_batch(TABLE, batch)
        print({"batch_statuses": [r.http_status_code for r in results]})

        # Paged query
        query = TableQuery().where(generate_filter_condition("PartitionKey", QueryComparisons.EQUAL, "users"))
        token = None
        page = 0
        while True:
            segment = client.query.execute_segmented(TABLE, query.take(3), token)
            page += 1
            print({"page": page, "row_keys": [e.row_key for e in segment]})
            token = segment.continuation_token
            if token is None or page >= 3:
                break

        # pandas round trip
        df = pd.DataFrame(
            [
                {"PartitionKey": "teams", "RowKey": "red", "members": 4},
                {"PartitionKey": "teams", "RowKey": "blue", "members": None},
            ]
        )
        log_call("client.entities.upsert_dataframe(df)")
        print(client.entities.upsert_dataframe(TABLE, df))
        print(client.query.to_dataframe(TABLE, TableQuery(filter_string="PartitionKey eq 'teams'")))

        if delete_table_at_end:
            log_call(f"client.tables.delete_if_exists('{TABLE}')")
            print({"deleted": client.tables.delete_if_exists(TABLE)})


if __name__ == "__main__":
    try:
        main()
    except StorageError as e:
        print("Quickstart failed:")
        traceback.print_exc()
        print(e.to_dict())
        sys.exit(1)
