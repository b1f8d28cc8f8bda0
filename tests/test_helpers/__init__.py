"""
Shared helpers for the SmoothSend SDK tests.
"""
from .client_creator import (
    TEST_API_URL, TEST_CONTRACT, TEST_NOW, TEST_PRIV_KEY, TEST_RECIPIENT, TEST_SENDER,
    TEST_TX_HASH, USDC_FUJI, create_test_client, make_intent, make_quote, mock_relayer
)

__all__ = [
    "TEST_API_URL",
    "TEST_CONTRACT",
    "TEST_NOW",
    "TEST_PRIV_KEY",
    "TEST_RECIPIENT",
    "TEST_SENDER",
    "TEST_TX_HASH",
    "USDC_FUJI",
    "create_test_client",
    "make_intent",
    "make_quote",
    "mock_relayer",
]
