# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.

"""Unit tests for TableServiceClient construction and wiring."""

import unittest
from unittest.mock import MagicMock

from azure.core.credentials import AzureSasCredential, TokenCredential

from tablestore import TableServiceClient
from tablestore.client import _derive_secondary_url
from tablestore.core.config import TablePayloadFormat, TableStorageConfig
from tablestore.core.retry import NoRetry
from tablestore.operations.entities import EntityOperations
from tablestore.operations.query import QueryOperations
from tablestore.operations.tables import TableOperations


class TestTableServiceClient(unittest.TestCase):
    """Test cases for client construction."""

    def setUp(self):
        self.mock_credential = MagicMock(spec=TokenCredential)
        self.account_url = "https://acct.table.core.windows.net"

    def test_namespaces(self):
        client = TableServiceClient(self.account_url, self.mock_credential)
        self.assertIsInstance(client.tables, TableOperations)
        self.assertIsInstance(client.entities, EntityOperations)
        self.assertIsInstance(client.query, QueryOperations)
        self.assertIs(client.tables._client, client)

    def test_trailing_slash_removed(self):
        client = TableServiceClient(self.account_url + "/", self.mock_credential)
        self.assertEqual(client.account_url, self.account_url)

    def test_secondary_url_derived(self):
        client = TableServiceClient(self.account_url, self.mock_credential)
        self.assertEqual(client.secondary_url, "https://acct-secondary.table.core.windows.net")

    def test_explicit_secondary_url(self):
        client = TableServiceClient(self.account_url, secondary_url="https://backup.example.com/")
        self.assertEqual(client.secondary_url, "https://backup.example.com")

    def test_secondary_not_derived_for_other_hosts(self):
        self.assertIsNone(_derive_secondary_url("http://127.0.0.1:10002/devstoreaccount1"))
        self.assertEqual(
            _derive_secondary_url("https://acct.table.example.net:8443"), "https://acct-secondary.table.example.net:8443"
        )

    def test_missing_account_url(self):
        with self.assertRaises(ValueError):
            TableServiceClient("", self.mock_credential)
        with self.assertRaises(ValueError):
            TableServiceClient(None, self.mock_credential)

    def test_unsupported_credential(self):
        with self.assertRaises(TypeError):
            TableServiceClient(self.account_url, "not-a-credential")

    def test_sas_credential_accepted(self):
        client = TableServiceClient(self.account_url, AzureSasCredential("sv=1&sig=x"))
        self.assertEqual(client.auth.query_parameters(), {"sv": "1", "sig": "x"})

    def test_default_config(self):
        client = TableServiceClient(self.account_url)
        self.assertIs(client.config.effective_payload_format, TablePayloadFormat.JSON)

    def test_lazy_engine(self):
        client = TableServiceClient(self.account_url, self.mock_credential)
        self.assertIsNone(client._odata)
        odata = client._get_odata()
        self.assertIs(client._get_odata(), odata)
        self.mock_credential.get_token.assert_not_called()

    def test_effective_config_merges_override(self):
        retry = NoRetry()
        client = TableServiceClient(self.account_url, config=TableStorageConfig(server_timeout=20))
        effective = client._effective_config(TableStorageConfig(retry_policy=retry))
        self.assertIs(effective.retry_policy, retry)
        self.assertEqual(effective.server_timeout, 20)
