"""
Tests for batch transfers and the sequential fallback.
"""
import pytest
import requests

from smoothsend_sdk.events import EventBus
from smoothsend_sdk.exceptions import BatchTransferError, ErrorCode, ExecutionError, InvalidIntentError
from smoothsend_sdk.models import BatchTransferRequest, EventType, TransferSubmission
from smoothsend_sdk.orchestrator import TransferOrchestrator
from smoothsend_sdk.relay.client import RelayClient
from smoothsend_sdk.relay.http import HttpClient
from smoothsend_sdk.signer import LocalSigner
from tests.test_helpers import TEST_API_URL, TEST_NOW, TEST_PRIV_KEY, TEST_TX_HASH, make_intent
from tests.test_helpers.client_creator import relay_response

SIGNER = LocalSigner(TEST_PRIV_KEY)
AMOUNTS = ("100", "200", "300")


@pytest.fixture
def received():
    return []


@pytest.fixture
def orchestrator(relayer, received):
    bus = EventBus()
    bus.subscribe(received.append)
    return TransferOrchestrator(
        RelayClient(HttpClient(TEST_API_URL), retry_jitter=0.0),
        event_bus=bus,
        clock=lambda: TEST_NOW
    )


@pytest.fixture
def intents():
    return [make_intent(amount=amount) for amount in AMOUNTS]


@pytest.fixture
def sequential_nonces(requests_mock):
    return requests_mock.get(f"{TEST_API_URL}/nonce", [
        {"json": {"success": True, "data": {"nonce": str(n)}}} for n in (7, 8, 9)
    ])


def second_transfer_fails(requests_mock):
    return requests_mock.post(f"{TEST_API_URL}/relay-transfer", [
        {"json": relay_response("0x" + "01" * 32)},
        {"json": {"success": False, "error": "Insufficient balance"}},
        {"json": relay_response("0x" + "03" * 32)},
    ])


def test_sequential_continues_after_failure(orchestrator, requests_mock, intents, received, sequential_nonces):
    route = second_transfer_fails(requests_mock)

    results = orchestrator.transfer_sequential(intents, SIGNER)

    assert [r.success for r in results] == [True, False, True]
    assert results[0].tx_hash == "0x" + "01" * 32
    assert results[2].tx_hash == "0x" + "03" * 32
    assert results[1].tx_hash == ""
    assert results[1].error == "Insufficient balance"
    assert results[1].error_code == ErrorCode.EXECUTION_ERROR.value
    assert results[1].step == "execute"
    assert [r.json()["nonce"] for r in route.request_history] == ["7", "8", "9"]

    per_attempt = {}
    for event in received:
        per_attempt.setdefault(event.attempt_id, []).append(event.type)
    assert list(per_attempt.values()) == [
        [EventType.INITIATED, EventType.SIGNED, EventType.SUBMITTED, EventType.CONFIRMED],
        [EventType.INITIATED, EventType.SIGNED, EventType.SUBMITTED, EventType.FAILED],
        [EventType.INITIATED, EventType.SIGNED, EventType.SUBMITTED, EventType.CONFIRMED],
    ]


def test_batch_without_submissions_runs_sequentially(orchestrator, relayer, requests_mock, intents, sequential_nonces):
    route = second_transfer_fails(requests_mock)

    result = orchestrator.batch_transfer(BatchTransferRequest(chain="avalanche", transfers=intents), SIGNER)

    assert result.success is True
    assert result.tx_hash == "0x" + "01" * 32
    assert relayer.batch.call_count == 0
    assert route.call_count == 3


def test_atomic_batch_with_signed_submissions(orchestrator, relayer, intents, sequential_nonces):
    submissions = [orchestrator.prepare_submission(intent, SIGNER) for intent in intents]

    result = orchestrator.batch_transfer(
        BatchTransferRequest(chain="avalanche", transfers=intents, submissions=submissions),
        SIGNER
    )

    assert result.tx_hash == "0x" + "cd" * 32
    assert relayer.relay.call_count == 0
    transfers = relayer.batch.last_request.json()["transfers"]
    assert [t["nonce"] for t in transfers] == ["7", "8", "9"]
    assert all(t["signature"].startswith("0x") for t in transfers)
    assert all(t["deadline"] == TEST_NOW + 3600 for t in transfers)


def test_submissions_alone_define_the_batch(orchestrator, relayer, intents, sequential_nonces):
    submissions = [orchestrator.prepare_submission(intent, SIGNER) for intent in intents]
    result = orchestrator.batch_transfer(BatchTransferRequest(chain="avalanche", submissions=submissions), SIGNER)
    assert result.success is True
    assert len(relayer.batch.last_request.json()["transfers"]) == 3


@pytest.mark.parametrize("failure", [
    {"json": {"success": False, "error": "Batch contract paused"}},
    {"status_code": 503, "json": {"error": "busy"}},
    {"exc": requests.exceptions.ConnectionError},
])
def test_atomic_failure_falls_back_to_sequential(orchestrator, relayer, requests_mock, intents, failure):
    submissions = [
        TransferSubmission(intent=intent, relayer_fee="1000", nonce="1", deadline=TEST_NOW + 3600, signature="0xsig")
        for intent in intents
    ]
    batch_route = requests_mock.post(f"{TEST_API_URL}/relay-batch-transfer", **failure)

    result = orchestrator.batch_transfer(
        BatchTransferRequest(chain="avalanche", transfers=intents, submissions=submissions),
        SIGNER
    )

    assert batch_route.call_count == 1
    assert relayer.relay.call_count == 3
    assert result.tx_hash == TEST_TX_HASH


def test_everything_fails(orchestrator, relayer, requests_mock, intents):
    submissions = [
        TransferSubmission(intent=intent, relayer_fee="1000", nonce="1", deadline=TEST_NOW + 3600, signature="0xsig")
        for intent in intents
    ]
    requests_mock.post(f"{TEST_API_URL}/relay-batch-transfer", json={"success": False, "error": "Batch rejected"})
    requests_mock.post(f"{TEST_API_URL}/relay-transfer", json={"success": False, "error": "Relayer out of gas"})

    with pytest.raises(BatchTransferError) as exc_info:
        orchestrator.batch_transfer(
            BatchTransferRequest(chain="avalanche", transfers=intents, submissions=submissions),
            SIGNER
        )

    error = exc_info.value
    assert error.code == ErrorCode.BATCH_TRANSFER_ERROR.value
    assert isinstance(error.cause, ExecutionError)
    assert "Batch rejected" in str(error)
    assert len(error.results) == 3
    assert not any(r.success for r in error.results)
    assert error.__cause__ is error.cause


def test_everything_fails_without_atomic_attempt(orchestrator, requests_mock, intents):
    requests_mock.post(f"{TEST_API_URL}/relay-transfer", json={"success": False, "error": "Relayer out of gas"})

    with pytest.raises(BatchTransferError) as exc_info:
        orchestrator.batch_transfer(BatchTransferRequest(chain="avalanche", transfers=intents), SIGNER)

    assert exc_info.value.cause is None
    assert len(exc_info.value.results) == 3


def test_partial_submissions_rejected(orchestrator, relayer, intents):
    submissions = [
        TransferSubmission(intent=intent, relayer_fee="1000", nonce="1", deadline=TEST_NOW + 3600, signature="")
        for intent in intents
    ]
    with pytest.raises(InvalidIntentError, match="missing"):
        orchestrator.batch_transfer(
            BatchTransferRequest(chain="avalanche", transfers=intents, submissions=submissions),
            SIGNER
        )
    assert relayer.batch.call_count == 0
    assert relayer.relay.call_count == 0


def test_submissions_must_match_transfers(orchestrator, relayer, intents):
    submissions = [
        TransferSubmission(intent=intent, relayer_fee="1000", nonce="1", deadline=TEST_NOW + 3600, signature="0xsig")
        for intent in intents[:2]
    ]
    with pytest.raises(InvalidIntentError, match="do not correspond"):
        orchestrator.batch_transfer(
            BatchTransferRequest(chain="avalanche", transfers=intents, submissions=submissions),
            SIGNER
        )


def test_empty_batch_rejected(orchestrator):
    with pytest.raises(InvalidIntentError, match="at least one"):
        orchestrator.batch_transfer(BatchTransferRequest(chain="avalanche"), SIGNER)


def test_mixed_chain_batch_rejected(orchestrator, intents):
    mixed = intents + [make_intent(chain="dogechain")]
    with pytest.raises(InvalidIntentError, match="dogechain"):
        orchestrator.batch_transfer(BatchTransferRequest(chain="avalanche", transfers=mixed), SIGNER)


def test_explicit_nonces_for_same_sender_batch(orchestrator, relayer, intents):
    submissions = [
        orchestrator.prepare_submission(intent, SIGNER, nonce=str(7 + index))
        for index, intent in enumerate(intents)
    ]

    assert [s.nonce for s in submissions] == ["7", "8", "9"]
    assert relayer.nonce.call_count == 0
    assert [r.json()["nonce"] for r in relayer.prepare.request_history] == ["7", "8", "9"]


def test_failed_atomic_batch_still_attempts_every_transfer(orchestrator, relayer, requests_mock, intents, sequential_nonces):
    submissions = [
        TransferSubmission(intent=intent, relayer_fee="1000", nonce="1", deadline=TEST_NOW + 3600, signature="0xsig")
        for intent in intents
    ]
    requests_mock.post(f"{TEST_API_URL}/relay-batch-transfer", json={"success": False, "error": "Batch rejected"})
    route = second_transfer_fails(requests_mock)

    result = orchestrator.batch_transfer(
        BatchTransferRequest(chain="avalanche", transfers=intents, submissions=submissions),
        SIGNER
    )

    assert route.call_count == 3
    assert result.success is True
    assert result.tx_hash == "0x" + "01" * 32
