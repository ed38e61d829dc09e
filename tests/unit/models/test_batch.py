# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.

"""Unit tests for TableBatchOperation construction rules."""

import unittest

from tablestore.core._error_codes import VALIDATION_BATCH_PARTITION_MISMATCH, VALIDATION_BATCH_RETRIEVE_MIXED
from tablestore.core.errors import UnsupportedOperationError, ValidationError
from tablestore.models.batch import TableBatchOperation
from tablestore.models.entity import TableEntity
from tablestore.models.operation import TableOperation


class TestTableBatchOperation(unittest.TestCase):
    """Test cases for batch partition locking and retrieve exclusivity."""

    def setUp(self):
        self.batch = TableBatchOperation()

    def test_first_operation_locks_partition(self):
        self.batch.insert_entity(TableEntity("p", "r1"))
        self.assertEqual(self.batch.locked_partition_key, "p")
        self.batch.insert_or_merge_entity(TableEntity("p", "r2"))
        self.assertEqual(len(self.batch), 2)

    def test_partition_mismatch_rejected(self):
        self.batch.insert_entity(TableEntity("p", "r1"))
        with self.assertRaises(ValidationError) as ctx:
            self.batch.insert_entity(TableEntity("q", "r2"))
        self.assertEqual(ctx.exception.subcode, VALIDATION_BATCH_PARTITION_MISMATCH)
        self.assertEqual(len(self.batch), 1)

    def test_lock_released_when_empty(self):
        self.batch.insert_entity(TableEntity("p", "r1"))
        del self.batch[0]
        self.assertIsNone(self.batch.locked_partition_key)
        self.batch.insert_entity(TableEntity("q", "r1"))
        self.assertEqual(self.batch.locked_partition_key, "q")

    def test_clear_resets_state(self):
        self.batch.retrieve_entity("p", "r")
        self.batch.clear()
        self.batch.insert_entity(TableEntity("x", "r"))
        self.batch.insert_entity(TableEntity("x", "s"))
        self.assertEqual(len(self.batch), 2)

    def test_retrieve_must_be_alone(self):
        self.batch.retrieve_entity("p", "r")
        with self.assertRaises(ValidationError) as ctx:
            self.batch.insert_entity(TableEntity("p", "r2"))
        self.assertEqual(ctx.exception.subcode, VALIDATION_BATCH_RETRIEVE_MIXED)

    def test_retrieve_cannot_join_writes(self):
        self.batch.insert_entity(TableEntity("p", "r1"))
        with self.assertRaises(ValidationError):
            self.batch.retrieve_entity("p", "r1")

    def test_contains_writes(self):
        self.batch.retrieve_entity("p", "r")
        self.assertFalse(self.batch.contains_writes)
        self.batch.clear()
        self.batch.delete_entity(TableEntity("p", "r", etag="*"))
        self.assertTrue(self.batch.contains_writes)

    def test_replacing_an_operation_is_unsupported(self):
        self.batch.insert_entity(TableEntity("p", "r1"))
        with self.assertRaises(UnsupportedOperationError):
            self.batch[0] = TableOperation.insert(TableEntity("p", "r2"))

    def test_constructor_validates_operations(self):
        with self.assertRaises(ValidationError):
            TableBatchOperation(
                [TableOperation.insert(TableEntity("a", "1")), TableOperation.insert(TableEntity("b", "1"))]
            )

    def test_size_not_limited_while_building(self):
        for i in range(150):
            self.batch.insert_entity(TableEntity("p", str(i)))
        self.assertEqual(len(self.batch), 150)
