# Author: PB
# Maintainer: PB
# Original date: 2026.10.19
# License: (c) HRDAG, 2026, GPL-2 or newer
#
# ------
# tests/test_retry.py

from unittest.mock import MagicMock

import pytest

from lvmrestic.core.retry import RetryConfig, RetryableOperation, calculate_delay


class TestCalculateDelay:

    def test_exponential(self):
        config = RetryConfig(base_delay=1.0, max_delay=60.0, exponential_base=2.0)
        assert [calculate_delay(n, config) for n in range(0, 5)] == [0.0, 1.0, 2.0, 4.0, 8.0]

    def test_capped(self):
        config = RetryConfig(base_delay=10.0, max_delay=15.0)
        assert calculate_delay(5, config) == 15.0

    def test_fixed(self):
        config = RetryConfig.fixed(attempts=2, delay=60)
        assert config.max_attempts == 2
        assert [calculate_delay(n, config) for n in (1, 2, 3)] == [60, 60, 60]


class TestRetryableOperation:

    def test_succeeds_after_retry(self):
        sleep = MagicMock()
        func = MagicMock(side_effect=[ValueError("first"), "ok"])

        with RetryableOperation("op", RetryConfig.fixed(3, 5), (ValueError,), sleep=sleep) as op:
            assert op.execute(func, 1, key="v") == "ok"

        assert op.attempt == 2
        sleep.assert_called_once_with(5)
        func.assert_called_with(1, key="v")

    def test_raises_last_error_when_exhausted(self):
        func = MagicMock(side_effect=[ValueError("first"), ValueError("second")])

        with pytest.raises(ValueError, match="second"):
            with RetryableOperation("op", RetryConfig.fixed(2, 0), (ValueError,), sleep=MagicMock()) as op:
                op.execute(func)

    def test_non_retryable_propagates_immediately(self):
        func = MagicMock(side_effect=KeyError("nope"))

        with pytest.raises(KeyError):
            with RetryableOperation("op", RetryConfig.fixed(3, 0), (ValueError,), sleep=MagicMock()) as op:
                op.execute(func)

        assert func.call_count == 1
