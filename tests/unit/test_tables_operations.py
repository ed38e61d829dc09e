# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.

"""Unit tests for TableOperations namespace class."""

import threading
import unittest
from unittest.mock import MagicMock

from azure.core.credentials import TokenCredential

from tablestore import TableServiceClient
from tablestore.core.context import OperationContext
from tablestore.core.errors import StorageError, ValidationError
from tablestore.core.results import TableQuerySegment
from tablestore.models.continuation import TableContinuationToken
from tests.unit.test_helpers import make_client, make_response, odata_error


class TestTableOperationsDelegation(unittest.TestCase):
    """Namespace methods forward to the protocol layer with the effective config."""

    def setUp(self):
        self.mock_credential = MagicMock(spec=TokenCredential)
        self.client = TableServiceClient("https://acct.table.core.windows.net", self.mock_credential)
        self.client._odata = MagicMock()

    def test_create(self):
        self.client.tables.create("people")
        self.client._odata._create_table.assert_called_once_with("people", self.client.config, None, None)

    def test_exists(self):
        self.client._odata._table_exists.return_value = True
        self.assertTrue(self.client.tables.exists("people"))

    def test_empty_name_rejected(self):
        with self.assertRaises(ValidationError):
            self.client.tables.create("")
        with self.assertRaises(ValidationError):
            self.client.tables.delete(None)
        self.client._odata._create_table.assert_not_called()

    def test_list_segmented(self):
        token = TableContinuationToken(next_table_name="b")
        self.client.tables.list_segmented("p", token, take_count=5)
        self.client._odata._list_tables_segment.assert_called_once_with("p", token, 5, self.client.config, None)

    def test_list_follows_tokens_and_restarts(self):
        token = TableContinuationToken(next_table_name="c")
        pages = [
            TableQuerySegment(["a", "b"], token),
            TableQuerySegment(["c"], None),
        ]
        self.client._odata._list_tables_segment.side_effect = pages + pages

        listing = self.client.tables.list(prefix=None)

        self.assertEqual(list(listing), ["a", "b", "c"])
        self.assertEqual(list(listing), ["a", "b", "c"])
        calls = self.client._odata._list_tables_segment.call_args_list
        self.assertEqual(calls[1].args[1], token)
        self.assertIsNone(calls[2].args[1])


class TestTableLifecycle(unittest.TestCase):
    """Create, test and delete against a scripted service."""

    def test_exists_create_delete_sequence(self):
        client, http = make_client(
            [
                make_response(404, body=odata_error("ResourceNotFound", "missing")),
                make_response(204),
                make_response(200, body={"TableName": "people"}),
                make_response(204),
                make_response(404, body=odata_error("ResourceNotFound", "missing")),
            ]
        )

        self.assertFalse(client.tables.exists("people"))
        client.tables.create("people")
        self.assertTrue(client.tables.exists("people"))
        client.tables.delete("people")
        self.assertFalse(client.tables.exists("people"))

        self.assertEqual([c[0] for c in http.calls], ["GET", "POST", "GET", "DELETE", "GET"])
        self.assertTrue(http.calls[0][1].endswith("/Tables('people')"))
        self.assertEqual(http.calls[1][2]["data"], b'{"TableName": "people"}')

    def test_create_if_not_exists(self):
        client, http = make_client(
            [make_response(201), make_response(409, body=odata_error("TableAlreadyExists", "exists"))]
        )
        ctx = OperationContext()

        self.assertTrue(client.tables.create_if_not_exists("people"))
        self.assertFalse(client.tables.create_if_not_exists("people", operation_context=ctx))
        self.assertEqual(len(ctx.request_results), 1)

    def test_create_conflict_raises(self):
        client, http = make_client([make_response(409, body=odata_error("TableAlreadyExists", "exists"))])
        with self.assertRaises(StorageError) as ctx:
            client.tables.create("people")
        self.assertEqual(ctx.exception.status_code, 409)
        self.assertEqual(ctx.exception.error_code, "TableAlreadyExists")

    def test_create_if_not_exists_reraises_other_conflicts(self):
        client, http = make_client([make_response(409, body=odata_error("TableBeingDeleted", "deleting"))])
        with self.assertRaises(StorageError):
            client.tables.create_if_not_exists("people")

    def test_delete_if_exists(self):
        client, http = make_client(
            [make_response(204), make_response(404, body=odata_error("TableNotFound", "missing"))]
        )
        self.assertTrue(client.tables.delete_if_exists("people"))
        self.assertFalse(client.tables.delete_if_exists("people"))

    def test_list_with_prefix_and_paging(self):
        client, http = make_client(
            [
                make_response(
                    200,
                    {"x-ms-continuation-NextTableName": "peoplez"},
                    {"value": [{"TableName": "people"}, {"TableName": "peoplex"}]},
                ),
                make_response(200, body={"value": [{"TableName": "peoplez"}]}),
            ]
        )

        names = list(client.tables.list(prefix="people"))

        self.assertEqual(names, ["people", "peoplex", "peoplez"])
        self.assertEqual(http.calls[1][2]["params"]["NextTableName"], "peoplez")
        self.assertIn("TableName ge 'people'", http.calls[1][2]["params"]["$filter"])


class TestTableOperationsAsync(unittest.TestCase):
    def setUp(self):
        self.client = TableServiceClient("https://acct.table.core.windows.net")
        self.client._odata = MagicMock()

    def tearDown(self):
        self.client.close()

    def test_create_async(self):
        future = self.client.tables.create_async("people")
        self.assertIsNone(future.result(timeout=5))
        self.client._odata._create_table.assert_called_once()

    def test_begin_exists_callback(self):
        self.client._odata._table_exists.return_value = True
        done = threading.Event()
        seen = []

        def callback(future, state):
            seen.append((future.result(), state))
            done.set()

        self.client.tables.begin_exists("people", callback, "tag")
        self.assertTrue(done.wait(5))
        self.assertEqual(seen, [(True, "tag")])

    def test_delete_if_exists_async(self):
        self.client._odata._delete_table.side_effect = StorageError("missing", 404)
        self.assertFalse(self.client.tables.delete_if_exists_async("people").result(timeout=5))
