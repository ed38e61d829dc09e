# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.

"""Unit tests for EntityOperations namespace class."""

import threading
import unittest
from unittest.mock import MagicMock

import pandas as pd

from tablestore import TableServiceClient
from tablestore.core._async import CancellationToken
from tablestore.core.errors import OperationCanceledError, StorageError, ValidationError
from tablestore.core.results import TableResult
from tablestore.models.batch import TableBatchOperation
from tablestore.models.entity import TableEntity
from tablestore.models.operation import TableOperation, TableOperationType
from tests.unit.test_helpers import make_client, make_response


class TestEntityOperations(unittest.TestCase):
    """Test cases for the EntityOperations namespace class."""

    def setUp(self):
        self.client = TableServiceClient("https://acct.table.core.windows.net")
        self.client._odata = MagicMock()

    def tearDown(self):
        self.client.close()

    def test_execute_delegates(self):
        op = TableOperation.insert(TableEntity("p", "r"))
        self.client._odata._execute_operation.return_value = TableResult(204, 'W/"1"')

        result = self.client.entities.execute("people", op)

        self.assertEqual(result.http_status_code, 204)
        self.client._odata._execute_operation.assert_called_once_with("people", op, self.client.config, None, None)

    def test_execute_requires_operation(self):
        with self.assertRaises(ValidationError):
            self.client.entities.execute("people", None)

    def test_execute_batch_delegates(self):
        batch = TableBatchOperation()
        batch.insert_entity(TableEntity("p", "r"))
        self.client.entities.execute_batch("people", batch)
        self.client._odata._execute_batch.assert_called_once_with("people", batch, self.client.config, None, None)

    def test_execute_async(self):
        self.client._odata._execute_operation.return_value = TableResult(404)
        future = self.client.entities.execute_async("people", TableOperation.retrieve("p", "r"))
        self.assertEqual(future.result(timeout=5).http_status_code, 404)

    def test_begin_execute_batch_callback(self):
        self.client._odata._execute_batch.return_value = [TableResult(204)]
        batch = TableBatchOperation()
        batch.insert_entity(TableEntity("p", "r"))
        done = threading.Event()
        seen = []

        def callback(future, state):
            seen.append((len(future.result()), state))
            done.set()

        self.client.entities.begin_execute_batch("people", batch, callback, 42)
        self.assertTrue(done.wait(5))
        self.assertEqual(seen, [(1, 42)])


class TestUpsertDataframe(unittest.TestCase):
    def setUp(self):
        self.client = TableServiceClient("https://acct.table.core.windows.net")
        self.client._odata = MagicMock()

    def test_groups_rows_by_partition(self):
        df = pd.DataFrame(
            [
                {"PartitionKey": "a", "RowKey": "1", "n": 1},
                {"PartitionKey": "b", "RowKey": "2", "n": 2},
                {"PartitionKey": "a", "RowKey": "3", "n": None},
            ]
        )
        self.client._odata._execute_batch.side_effect = [[TableResult(204)] * 2, StorageError("throttled", 503)]

        summary = self.client.entities.upsert_dataframe("people", df)

        batches = [c.args[1] for c in self.client._odata._execute_batch.call_args_list]
        self.assertEqual([len(b) for b in batches], [2, 1])
        self.assertEqual(batches[0].locked_partition_key, "a")
        self.assertTrue(all(op.operation_type is TableOperationType.INSERT_OR_MERGE for op in batches[0]))
        self.assertNotIn("n", batches[0][1].entity)
        self.assertEqual(list(summary["RowKey"]), ["1", "3", "2"])
        self.assertEqual(list(summary["success"]), [True, True, False])
        self.assertEqual(summary["error"].iloc[2], "throttled")

    def test_large_partition_split_into_batches(self):
        df = pd.DataFrame([{"PartitionKey": "a", "RowKey": str(i)} for i in range(150)])
        self.client._odata._execute_batch.return_value = []
        self.client.entities.upsert_dataframe("people", df)
        sizes = [len(c.args[1]) for c in self.client._odata._execute_batch.call_args_list]
        self.assertEqual(sizes, [100, 50])

    def test_empty_frame_makes_no_requests(self):
        summary = self.client.entities.upsert_dataframe("people", pd.DataFrame())
        self.assertTrue(summary.empty)
        self.client._odata._execute_batch.assert_not_called()


class TestEntityCancellation(unittest.TestCase):
    def test_cancelled_token_fails_future(self):
        client, http = make_client([make_response(204)])
        token = CancellationToken()
        token.cancel()
        try:
            future = client.entities.execute_async(
                "people", TableOperation.insert(TableEntity("p", "r")), cancellation_token=token
            )
            with self.assertRaises(OperationCanceledError):
                future.result(timeout=5)
            self.assertEqual(http.calls, [])
        finally:
            client.close()
