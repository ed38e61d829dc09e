# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.

"""
Shared pytest fixtures and configuration for tablestore tests.

This module provides common test fixtures, mock objects, and configuration
that can be used across all test modules.
"""

import pytest
from unittest.mock import MagicMock

from azure.core.credentials import TokenCredential

from tablestore.core.config import TableStorageConfig
from tablestore.core.retry import NoRetry
from tablestore.models.entity import TableEntity


@pytest.fixture
def mock_credential():
    """Mock Azure AD credential returning a fixed token."""
    credential = MagicMock(spec=TokenCredential)
    credential.get_token.return_value = MagicMock(token="test_token_12345")
    return credential


@pytest.fixture
def test_config():
    """Test configuration with safe defaults."""
    return TableStorageConfig(retry_policy=NoRetry(), maximum_execution_time=5, http_timeout=5)


@pytest.fixture
def sample_account_url():
    """Standard test account URL."""
    return "https://acct.table.core.windows.net"


@pytest.fixture
def sample_entity():
    """Sample entity for testing."""
    return TableEntity("users", "alice", {"name": "Alice", "age": 31, "active": True})
