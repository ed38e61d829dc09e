# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.

"""Unit tests for the asynchronous dispatcher and cancellation token."""

import threading
import unittest

from tablestore.core._async import CancellationToken, _AsyncDispatcher


class TestCancellationToken(unittest.TestCase):
    def test_cancel(self):
        token = CancellationToken()
        self.assertFalse(token.is_cancelled)
        self.assertFalse(token.wait(0))
        token.cancel()
        self.assertTrue(token.is_cancelled)
        self.assertTrue(token.wait(0))


class TestAsyncDispatcher(unittest.TestCase):
    def setUp(self):
        self.dispatcher = _AsyncDispatcher(max_workers=2)

    def tearDown(self):
        self.dispatcher.shutdown()

    def test_submit_returns_result(self):
        future = self.dispatcher.submit(lambda a, b: a + b, 2, 3)
        self.assertEqual(future.result(timeout=5), 5)

    def test_begin_invokes_callback_with_state(self):
        done = threading.Event()
        seen = {}

        def callback(future, state):
            seen["value"] = future.result()
            seen["state"] = state
            done.set()

        self.dispatcher.begin(lambda: "ok", callback=callback, state={"id": 7})
        self.assertTrue(done.wait(5))
        self.assertEqual(seen, {"value": "ok", "state": {"id": 7}})

    def test_exception_propagates_through_future(self):
        def fail():
            raise ValueError("boom")

        future = self.dispatcher.begin(fail)
        with self.assertRaises(ValueError):
            future.result(timeout=5)

    def test_shutdown_is_idempotent(self):
        self.dispatcher.submit(lambda: None).result(timeout=5)
        self.dispatcher.shutdown()
        self.dispatcher.shutdown()
        self.assertEqual(self.dispatcher.submit(lambda: 1).result(timeout=5), 1)
