# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.

"""Unit tests for QueryOperations namespace class."""

import threading
import unittest
from unittest.mock import MagicMock

from tablestore import TableServiceClient
from tablestore.core.config import TableStorageConfig
from tablestore.core.errors import ValidationError
from tablestore.models.continuation import LocationMode
from tablestore.models.query import TableQuery
from tests.unit.test_helpers import ACCOUNT_URL, SECONDARY_URL, make_client, make_response


def _page(*row_keys, next_row_key=None):
    headers = {}
    if next_row_key is not None:
        headers = {"x-ms-continuation-NextPartitionKey": "p", "x-ms-continuation-NextRowKey": next_row_key}
    rows = [{"PartitionKey": "p", "RowKey": rk, "name": f"n{rk}"} for rk in row_keys]
    return make_response(200, headers, {"value": rows})


class TestQueryOperations(unittest.TestCase):
    """Test cases for the QueryOperations namespace class."""

    def test_segmented_defaults_to_full_scan(self):
        client = TableServiceClient("https://acct.table.core.windows.net")
        client._odata = MagicMock()

        client.query.execute_segmented("people")

        args = client._odata._query_segment.call_args.args
        self.assertEqual(args[0], "people")
        self.assertIsInstance(args[1], TableQuery)
        self.assertIsNone(args[1].filter_string)
        self.assertIsNone(args[2])

    def test_table_name_required(self):
        client = TableServiceClient("https://acct.table.core.windows.net")
        with self.assertRaises(ValidationError):
            client.query.execute("")

    def test_execute_follows_continuation(self):
        client, http = make_client([_page("1", "2", next_row_key="3"), _page("3")])

        keys = [e.row_key for e in client.query.execute("people")]

        self.assertEqual(keys, ["1", "2", "3"])
        self.assertEqual(http.calls[1][2]["params"]["NextRowKey"], "3")

    def test_take_count_spans_segments(self):
        client, http = make_client([_page("1", "2", next_row_key="3"), _page("3")])

        keys = [e.row_key for e in client.query.execute("people", TableQuery().take(3))]

        self.assertEqual(keys, ["1", "2", "3"])
        self.assertEqual(http.calls[0][2]["params"]["$top"], "3")
        self.assertEqual(http.calls[1][2]["params"]["$top"], "1")

    def test_take_count_stops_early(self):
        client, http = make_client([_page("1", "2", next_row_key="3")])
        keys = [e.row_key for e in client.query.execute("people", TableQuery().take(1))]
        self.assertEqual(keys, ["1"])
        self.assertEqual(len(http.calls), 1)

    def test_iteration_restarts(self):
        client, http = make_client([_page("1"), _page("1")])
        results = client.query.execute("people")
        self.assertEqual(len(list(results)), 1)
        self.assertEqual(len(list(results)), 1)
        self.assertEqual(len(http.calls), 2)

    def test_resolver_projects_rows(self):
        client, http = make_client([_page("1", "2")])

        names = list(
            client.query.execute(
                "people",
                TableQuery().select("name"),
                resolver=lambda pk, rk, ts, props, etag: props["name"].string_value,
            )
        )

        self.assertEqual(names, ["n1", "n2"])
        self.assertEqual(http.calls[0][2]["params"]["$select"], "name,PartitionKey,RowKey,Timestamp")

    def test_to_dataframe(self):
        client, http = make_client([_page("1", "2")])
        df = client.query.to_dataframe("people")
        self.assertEqual(list(df.columns), ["PartitionKey", "RowKey", "Timestamp", "name"])
        self.assertEqual(list(df["name"]), ["n1", "n2"])

    def test_to_dataframe_empty(self):
        client, http = make_client([make_response(200, body={"value": []})])
        df = client.query.to_dataframe("people")
        self.assertTrue(df.empty)
        self.assertEqual(list(df.columns), ["PartitionKey", "RowKey", "Timestamp"])

    def test_begin_execute_segmented(self):
        client, http = make_client([_page("1")])
        done = threading.Event()
        seen = []

        def callback(future, state):
            seen.append((len(future.result()), state))
            done.set()

        try:
            client.query.begin_execute_segmented("people", callback=callback, state="s")
            self.assertTrue(done.wait(5))
        finally:
            client.close()
        self.assertEqual(seen, [(1, "s")])

    def test_per_call_config_restores_primary_only_routing(self):
        client, http = make_client(
            [_page("1"), _page("2")], config=TableStorageConfig(location_mode=LocationMode.SECONDARY_ONLY)
        )

        list(client.query.execute("people"))
        list(client.query.execute("people", config=TableStorageConfig(location_mode=LocationMode.PRIMARY_ONLY)))

        self.assertTrue(http.calls[0][1].startswith(SECONDARY_URL))
        self.assertTrue(http.calls[1][1].startswith(ACCOUNT_URL))
