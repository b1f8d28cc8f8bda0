"""
Tests for the exponential-backoff retry policy.
"""
from unittest.mock import MagicMock

import pytest

from smoothsend_sdk.exceptions import (
    ErrorCode, HttpStatusError, InvalidIntentError, InvalidResponseError,
    NetworkError, QuoteError, RetriesExhaustedError
)
from smoothsend_sdk.relay.retry import default_is_retryable, with_retry


def test_success_on_first_attempt(sleep_calls):
    operation = MagicMock(return_value="ok")
    assert with_retry(operation) == "ok"
    operation.assert_called_once()
    assert sleep_calls == []


def test_fails_twice_then_succeeds(sleep_calls):
    operation = MagicMock(side_effect=[NetworkError("down"), NetworkError("down"), "ok"])

    assert with_retry(operation, max_attempts=4, base_delay=1.0) == "ok"

    assert operation.call_count == 3
    assert sleep_calls == [1.0, 2.0]


def test_delays_double_until_exhausted(sleep_calls):
    last = NetworkError("still down", chain="avalanche")
    operation = MagicMock(side_effect=[NetworkError("down")] * 3 + [last])

    with pytest.raises(RetriesExhaustedError) as exc_info:
        with_retry(operation, max_attempts=4, base_delay=0.5)

    error = exc_info.value
    assert operation.call_count == 4
    assert sleep_calls == [0.5, 1.0, 2.0]
    assert error.code == ErrorCode.RETRIES_EXHAUSTED.value
    assert error.last_error is last
    assert error.attempts == 4
    assert error.chain == "avalanche"
    assert str(error) == "Operation failed after 4 attempts: still down"
    assert error.__cause__ is last


def test_jitter_only_adds_delay(sleep_calls):
    operation = MagicMock(side_effect=[NetworkError("down"), NetworkError("down"), "ok"])
    with_retry(operation, max_attempts=3, base_delay=1.0, jitter=0.1)
    assert 1.0 <= sleep_calls[0] <= 1.1
    assert 2.0 <= sleep_calls[1] <= 2.2


def test_non_retryable_error_is_raised_immediately(sleep_calls):
    error = QuoteError("Unsupported token", "avalanche")
    operation = MagicMock(side_effect=error)

    with pytest.raises(QuoteError) as exc_info:
        with_retry(operation, max_attempts=4)

    assert exc_info.value is error
    operation.assert_called_once()
    assert sleep_calls == []


def test_single_attempt_never_sleeps(sleep_calls):
    operation = MagicMock(side_effect=NetworkError("down"))
    with pytest.raises(RetriesExhaustedError):
        with_retry(operation, max_attempts=1)
    assert sleep_calls == []


def test_invalid_attempt_count():
    with pytest.raises(ValueError):
        with_retry(lambda: None, max_attempts=0)


def test_custom_predicate():
    operation = MagicMock(side_effect=[KeyError("x"), "ok"])
    with pytest.raises(KeyError):
        with_retry(operation, is_retryable=lambda e: False)
    operation.assert_called_once()


def test_retry_warnings_are_logged(caplog):
    operation = MagicMock(side_effect=[NetworkError("down"), "ok"])
    with caplog.at_level("WARNING"):
        with_retry(operation, description="quote")
    assert "Retrying quote (attempt 2/4)" in caplog.text


@pytest.mark.parametrize("error,expected", [
    (NetworkError("down"), True),
    (InvalidResponseError("garbage"), True),
    (HttpStatusError("busy", 503), True),
    (HttpStatusError("slow down", 429), True),
    (HttpStatusError("timeout", 408), True),
    (HttpStatusError("bad request", 400), False),
    (HttpStatusError("conflict", 409), False),
    (QuoteError("no"), False),
    (InvalidIntentError("bad"), False),
    (ConnectionResetError("reset"), True),
])
def test_default_retryability(error, expected):
    assert default_is_retryable(error) is expected
