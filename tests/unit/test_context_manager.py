# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.

"""Unit tests for TableServiceClient context manager support."""

import unittest
from unittest.mock import MagicMock

import requests
from azure.core.credentials import TokenCredential

from tablestore import TableServiceClient


class TestContextManager(unittest.TestCase):
    """Test context manager support on TableServiceClient."""

    def setUp(self):
        self.mock_credential = MagicMock(spec=TokenCredential)
        self.account_url = "https://acct.table.core.windows.net"

    def test_enter_creates_session(self):
        client = TableServiceClient(self.account_url, self.mock_credential)
        self.assertIsNone(client._session)

        result = client.__enter__()

        self.assertIsInstance(client._session, requests.Session)
        self.assertTrue(client._owns_session)
        self.assertIs(result, client)

    def test_enter_reuses_existing_transport(self):
        client = TableServiceClient(self.account_url, self.mock_credential)
        client._get_odata()
        client.__enter__()
        self.assertIs(client._http._session, client._session)

    def test_exit_closes_session(self):
        client = TableServiceClient(self.account_url, self.mock_credential)
        client.__enter__()

        mock_session = MagicMock(spec=requests.Session)
        client._session = mock_session
        client._owns_session = True

        client.__exit__(None, None, None)

        mock_session.close.assert_called_once()
        self.assertIsNone(client._session)
        self.assertFalse(client._owns_session)

    def test_context_manager_protocol(self):
        with TableServiceClient(self.account_url, self.mock_credential) as client:
            self.assertIsInstance(client._session, requests.Session)
        self.assertIsNone(client._session)
        self.assertIsNone(client._odata)

    def test_close_shuts_down_worker_pool(self):
        client = TableServiceClient(self.account_url, self.mock_credential)
        dispatcher = client._dispatcher()
        dispatcher.submit(lambda: None).result(timeout=5)

        client.close()

        self.assertIsNone(client._async)

    def test_close_idempotent(self):
        client = TableServiceClient(self.account_url, self.mock_credential)
        client.__enter__()
        client.close()
        client.close()

    def test_close_does_not_close_foreign_session(self):
        client = TableServiceClient(self.account_url, self.mock_credential)
        foreign = MagicMock(spec=requests.Session)
        client._session = foreign
        client.close()
        foreign.close.assert_not_called()
