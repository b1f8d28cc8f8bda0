"""
Pytest fixtures for the SmoothSend SDK tests.
"""
import time

import pytest
from eth_account import Account

from smoothsend_sdk._rate_limited_log import reset_rate_limits
from tests.test_helpers import (
    TEST_API_URL, TEST_CONTRACT, TEST_NOW, TEST_PRIV_KEY, TEST_RECIPIENT,
    TEST_SENDER, create_test_client, make_intent, mock_relayer
)

# ─────────────────────────────────────────────────────────────────────────
#  FAST RETRY BEHAVIOUR FOR TESTS
# ─────────────────────────────────────────────────────────────────────────

@pytest.fixture(autouse=True)
def sleep_calls(monkeypatch):
    """Make time.sleep instantaneous and record the requested delays."""
    calls = []
    monkeypatch.setattr(time, "sleep", lambda seconds, *_a, **_kw: calls.append(seconds))
    return calls


@pytest.fixture(autouse=True)
def _clean_environment(monkeypatch):
    """Keep developer shell settings out of the tests."""
    for name in ("SMOOTHSEND_API_URL", "SMOOTHSEND_TIMEOUT", "SMOOTHSEND_RETRIES", "SMOOTHSEND_INSECURE_API"):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture(autouse=True)
def _reset_rate_limited_log():
    reset_rate_limits()
    yield
    reset_rate_limits()


@pytest.fixture
def account():
    """Deterministic test account"""
    return Account.from_key(TEST_PRIV_KEY)


@pytest.fixture
def intent():
    return make_intent()


@pytest.fixture
def relayer(requests_mock):
    """Well-behaved relayer on TEST_API_URL"""
    return mock_relayer(requests_mock)


@pytest.fixture
def client(relayer):
    """Client wired to the mocked relayer with a fixed clock"""
    with create_test_client() as c:
        yield c


@pytest.fixture
def events(client):
    """Every event the client publishes, in order"""
    received = []
    client.add_event_listener(received.append)
    return received
