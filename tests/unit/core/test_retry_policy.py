# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.

"""Unit tests for retry policies."""

import pytest
from unittest.mock import patch

from tablestore.core.context import RequestResult
from tablestore.core.errors import StorageError
from tablestore.core.retry import (
    ExponentialRetry,
    LinearRetry,
    NoRetry,
    RetryContext,
    is_retryable_status,
)
from tablestore.models.continuation import LocationMode, StorageLocation


def _context(status, retry_count=0, location=StorageLocation.PRIMARY, mode=LocationMode.PRIMARY_ONLY, **kwargs):
    result = RequestResult(http_status_code=status, target_location=location, **kwargs)
    return RetryContext(retry_count, result, StorageLocation.PRIMARY, mode)


class TestRetryableStatus:
    @pytest.mark.parametrize("status", [None, 408, 500, 502, 503, 504])
    def test_retryable(self, status):
        assert is_retryable_status(status) is True

    @pytest.mark.parametrize("status", [301, 400, 403, 404, 409, 412, 501, 505])
    def test_not_retryable(self, status):
        assert is_retryable_status(status) is False


class TestExponentialRetry:
    """Test exponential backoff."""

    def test_default_configuration(self):
        policy = ExponentialRetry()
        assert policy.max_attempts == 5
        assert policy.base_delay == 0.5
        assert policy.max_backoff == 60.0
        assert policy.jitter is True

    def test_backoff_doubles(self):
        policy = ExponentialRetry(retries=5, backoff=1.0, jitter=False)
        delays = [policy.evaluate(_context(503, n)).retry_interval for n in range(4)]
        assert delays == [1.0, 2.0, 4.0, 8.0]

    def test_backoff_capped(self):
        policy = ExponentialRetry(retries=10, backoff=1.0, max_backoff=5.0, jitter=False)
        assert policy.evaluate(_context(500, 6)).retry_interval == 5.0

    def test_stops_after_max_attempts(self):
        policy = ExponentialRetry(retries=3, jitter=False)
        assert policy.evaluate(_context(503, 1)) is not None
        assert policy.evaluate(_context(503, 2)) is None

    @patch("random.uniform", return_value=0.25)
    def test_jitter_applied(self, mock_uniform):
        policy = ExponentialRetry(retries=3, backoff=1.0, jitter=True)
        assert policy.evaluate(_context(503)).retry_interval == 1.25
        mock_uniform.assert_called_once_with(-0.25, 0.25)

    def test_retry_after_wins(self):
        policy = ExponentialRetry(retries=3, backoff=1.0, jitter=False)
        assert policy.evaluate(_context(503, retry_after=4.0)).retry_interval == 4.0

    def test_create_instance_copies_settings(self):
        policy = ExponentialRetry(retries=2, backoff=3.0, max_backoff=9.0, jitter=False)
        clone = policy.create_instance()
        assert clone is not policy
        assert (clone.max_attempts, clone.base_delay, clone.max_backoff, clone.jitter) == (2, 3.0, 9.0, False)


class TestRetryDecisions:
    def test_client_errors_not_retried(self):
        assert ExponentialRetry().evaluate(_context(409)) is None

    def test_non_retryable_exception_not_retried(self):
        err = StorageError("bad batch", None, is_retryable=False)
        assert ExponentialRetry().evaluate(_context(None, exception=err)) is None

    def test_secondary_404_redirects_to_primary(self):
        policy = LinearRetry(delta_backoff=1, max_attempts=3)
        context = RetryContext(
            0,
            RequestResult(http_status_code=404, target_location=StorageLocation.SECONDARY),
            StorageLocation.PRIMARY,
            LocationMode.SECONDARY_THEN_PRIMARY,
        )
        info = policy.evaluate(context)
        assert info.target_location is StorageLocation.PRIMARY
        assert info.updated_location_mode is LocationMode.PRIMARY_ONLY

    def test_secondary_404_under_secondary_only_keeps_mode(self):
        policy = LinearRetry(delta_backoff=1, max_attempts=3)
        context = RetryContext(
            0,
            RequestResult(http_status_code=404, target_location=StorageLocation.SECONDARY),
            StorageLocation.SECONDARY,
            LocationMode.SECONDARY_ONLY,
        )
        info = policy.evaluate(context)
        assert info.target_location is StorageLocation.SECONDARY
        assert info.updated_location_mode is LocationMode.SECONDARY_ONLY

    def test_linear_retry_fixed_interval(self):
        policy = LinearRetry(delta_backoff=2.5, max_attempts=4)
        assert policy.evaluate(_context(500, 0)).retry_interval == 2.5
        assert policy.evaluate(_context(500, 2)).retry_interval == 2.5
        assert policy.evaluate(_context(500, 3)) is None

    def test_no_retry(self):
        assert NoRetry().evaluate(_context(503)) is None
        assert NoRetry().max_attempts == 1
