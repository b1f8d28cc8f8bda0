"""
Tests for the rate-limited logging helper.
"""
import logging
from unittest.mock import MagicMock, patch

from cachetools import TTLCache

from smoothsend_sdk._rate_limited_log import rate_limited_log, reset_rate_limits


class TestRateLimitedLog:
    """Tests for the rate-limited logging implementation."""

    def test_repeated_message_is_suppressed(self):
        mock_logger = MagicMock()
        mock_logger.name = "test"

        assert rate_limited_log("Relayer down", logger_instance=mock_logger) is True
        assert rate_limited_log("Relayer down", logger_instance=mock_logger) is False
        mock_logger.warning.assert_called_once_with("Relayer down")

    def test_level_and_message_are_part_of_the_key(self):
        mock_logger = MagicMock()
        mock_logger.name = "test"

        rate_limited_log("Relayer down", level="warning", logger_instance=mock_logger)
        rate_limited_log("Relayer down", level="error", logger_instance=mock_logger)
        rate_limited_log("Relayer slow", level="warning", logger_instance=mock_logger)

        mock_logger.error.assert_called_once_with("Relayer down")
        assert mock_logger.warning.call_count == 2

    def test_message_logged_again_after_expiry(self):
        now = [1000.0]
        caches = {}

        def fake_cache(interval):
            if interval not in caches:
                caches[interval] = TTLCache(maxsize=10, ttl=interval, timer=lambda: now[0])
            return caches[interval]

        mock_logger = MagicMock()
        mock_logger.name = "test"
        with patch("smoothsend_sdk._rate_limited_log._cache_for", side_effect=fake_cache):
            assert rate_limited_log("Relayer down", interval=60, logger_instance=mock_logger)
            now[0] += 30
            assert not rate_limited_log("Relayer down", interval=60, logger_instance=mock_logger)
            now[0] += 31
            assert rate_limited_log("Relayer down", interval=60, logger_instance=mock_logger)

    def test_reset(self):
        mock_logger = MagicMock()
        mock_logger.name = "test"
        rate_limited_log("Relayer down", logger_instance=mock_logger)
        reset_rate_limits()
        assert rate_limited_log("Relayer down", logger_instance=mock_logger) is True

    def test_default_logger(self, caplog):
        with caplog.at_level(logging.INFO):
            rate_limited_log("Something happened", level="info")
        assert "Something happened" in caplog.text
