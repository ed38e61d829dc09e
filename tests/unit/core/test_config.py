# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.

"""Unit tests for TableStorageConfig."""

import unittest

from tablestore.core.config import TablePayloadFormat, TableStorageConfig
from tablestore.core.retry import ExponentialRetry, NoRetry
from tablestore.models.continuation import LocationMode


class TestTableStorageConfig(unittest.TestCase):
    """Defaults and per-call merging."""

    def test_defaults(self):
        config = TableStorageConfig.from_env()
        self.assertIs(config.payload_format, TablePayloadFormat.JSON)
        self.assertIs(config.location_mode, LocationMode.PRIMARY_ONLY)
        self.assertIsInstance(config.effective_retry_policy, ExponentialRetry)
        self.assertEqual(config.effective_maximum_execution_time, 300.0)
        self.assertTrue(config.project_system_properties)

    def test_frozen(self):
        config = TableStorageConfig()
        with self.assertRaises(AttributeError):
            config.server_timeout = 5

    def test_merged_with_none_returns_self(self):
        config = TableStorageConfig(server_timeout=10)
        self.assertIs(config.merged(None), config)

    def test_merged_override_wins_for_set_fields(self):
        retry = NoRetry()
        base = TableStorageConfig(server_timeout=10, location_mode=LocationMode.PRIMARY_THEN_SECONDARY)
        merged = base.merged(TableStorageConfig(retry_policy=retry, payload_format=TablePayloadFormat.ATOM_PUB))
        self.assertIs(merged.retry_policy, retry)
        self.assertIs(merged.payload_format, TablePayloadFormat.ATOM_PUB)
        self.assertEqual(merged.server_timeout, 10)
        self.assertIs(merged.location_mode, LocationMode.PRIMARY_THEN_SECONDARY)

    def test_unset_fields_resolve_to_defaults(self):
        config = TableStorageConfig()
        self.assertIsNone(config.location_mode)
        self.assertIs(config.effective_payload_format, TablePayloadFormat.JSON)
        self.assertIs(config.effective_location_mode, LocationMode.PRIMARY_ONLY)
        self.assertTrue(config.effective_project_system_properties)
        self.assertEqual(config.effective_max_async_workers, 4)

    def test_merged_override_can_restore_default_values(self):
        base = TableStorageConfig(
            location_mode=LocationMode.PRIMARY_THEN_SECONDARY,
            project_system_properties=False,
            payload_format=TablePayloadFormat.JSON_NO_METADATA,
        )
        merged = base.merged(
            TableStorageConfig(
                location_mode=LocationMode.PRIMARY_ONLY,
                project_system_properties=True,
                payload_format=TablePayloadFormat.JSON,
            )
        )
        self.assertIs(merged.effective_location_mode, LocationMode.PRIMARY_ONLY)
        self.assertTrue(merged.effective_project_system_properties)
        self.assertIs(merged.effective_payload_format, TablePayloadFormat.JSON)

    def test_merged_empty_override_keeps_client_values(self):
        base = TableStorageConfig(location_mode=LocationMode.SECONDARY_ONLY, project_system_properties=False)
        merged = base.merged(TableStorageConfig())
        self.assertIs(merged.effective_location_mode, LocationMode.SECONDARY_ONLY)
        self.assertFalse(merged.effective_project_system_properties)
