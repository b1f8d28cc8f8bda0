"""
Transfer orchestration: drives a transfer intent through quote, signature
preparation, signing and relay, publishing lifecycle events on the way.
"""
import logging
import time
import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Sequence, TypeVar, Union

from pydantic import ValidationError

from .events import EventBus
from .exceptions import (
    BatchTransferError, ErrorCode, InvalidIntentError, SignaturePrepError, SmoothSendError
)
from .models import (
    BatchTransferRequest, EventType, Quote, SignaturePayload, TransferEvent,
    TransferIntent, TransferResult, TransferState, TransferSubmission
)
from .payload import build_signature_payload, payloads_equivalent
from .relay.client import RelayClient
from .signer import SignerLike, sign_payload
from .validation import validate_intent

T = TypeVar('T')

logger = logging.getLogger(__name__)

DEFAULT_DEADLINE_SECONDS = 3600

STEP_VALIDATE = "validate"
STEP_QUOTE = "quote"
STEP_PREPARE = "prepare"
STEP_SIGN = "sign"
STEP_EXECUTE = "execute"

_STATE_ORDER = [
    TransferState.INITIATED,
    TransferState.QUOTE_OBTAINED,
    TransferState.SIGNATURE_PREPARED,
    TransferState.SIGNED,
    TransferState.SUBMITTED,
    TransferState.CONFIRMED,
]


class PayloadMode(str, Enum):
    """Where the payload handed to the signer comes from"""
    SERVER = "server"
    LOCAL = "local"
    VERIFIED = "verified"


@dataclass(frozen=True)
class PreparedSignature:
    """A payload together with the nonce and deadline it is bound to"""
    payload: SignaturePayload
    nonce: str
    deadline: int


@dataclass
class TransferAttempt:
    """
    Mutable record of one attempt moving through the state machine.

    Transitions only move forward; any state may move to FAILED, and the
    terminal states accept no further transitions.
    """
    intent: TransferIntent
    attempt_id: str = field(default_factory=lambda: uuid.uuid4().hex)
    state: TransferState = TransferState.INITIATED
    quote: Optional[Quote] = None
    nonce: Optional[str] = None
    deadline: Optional[int] = None
    payload: Optional[SignaturePayload] = None
    signature: Optional[str] = None
    result: Optional[TransferResult] = None
    error: Optional[SmoothSendError] = None

    def advance(self, state: TransferState) -> None:
        if self.state.is_terminal:
            raise RuntimeError(f"Transfer {self.attempt_id} already {self.state.value}")
        if state != TransferState.FAILED and _STATE_ORDER.index(state) <= _STATE_ORDER.index(self.state):
            raise RuntimeError(
                f"Illegal transition {self.state.value} -> {state.value} for transfer {self.attempt_id}"
            )
        logger.debug(f"Transfer {self.attempt_id}: {self.state.value} -> {state.value}")
        self.state = state


class TransferOrchestrator:
    """
    State machine turning transfer intents into relayed transactions.

    A single transfer moves through
    ``initiated -> quote_obtained -> signature_prepared -> signed -> submitted``
    and ends in ``confirmed`` or ``failed``. Every failure is raised to the
    caller as a SmoothSendError whose ``step`` names where it happened:
    ``validate`` (no network call made), ``quote``, ``prepare``, ``sign``
    (the signing capability failed) or ``execute`` (the relayer rejected
    the signed transfer).
    """

    def __init__(
        self,
        relay_client: RelayClient,
        event_bus: Optional[EventBus] = None,
        payload_mode: PayloadMode = PayloadMode.SERVER,
        deadline_seconds: int = DEFAULT_DEADLINE_SECONDS,
        clock: Callable[[], float] = time.time,
        logger: Optional[logging.Logger] = None
    ):
        """
        Initialize the orchestrator

        Args:
            relay_client: Client for the relayer API
            event_bus: Bus to publish lifecycle events on (a private one is created if omitted)
            payload_mode: SERVER trusts the relayer's payload, LOCAL builds it
                client-side, VERIFIED builds both and requires them to match
            deadline_seconds: Signature validity window from the time of preparation
            clock: Returns the current UNIX time in seconds
            logger: Optional logger instance
        """
        if deadline_seconds <= 0:
            raise ValueError(f"deadline_seconds must be positive, got {deadline_seconds}")
        self.relay = relay_client
        self.event_bus = event_bus or EventBus()
        self.payload_mode = PayloadMode(payload_mode)
        self.deadline_seconds = deadline_seconds
        self.clock = clock
        self.logger = logger or logging.getLogger(__name__)

    # ------------------------------------------------------------------
    # Event and failure plumbing
    # ------------------------------------------------------------------

    def _emit(self, attempt: TransferAttempt, event_type: EventType, data: Dict[str, Any]) -> None:
        self.event_bus.publish(TransferEvent(
            type=event_type,
            data=data,
            timestamp=int(self.clock() * 1000),
            chain=attempt.intent.chain,
            attempt_id=attempt.attempt_id
        ))

    def _fail(self, attempt: TransferAttempt, error: SmoothSendError, step: str) -> None:
        if error.step is None:
            error.step = step
        if error.chain is None:
            error.chain = attempt.intent.chain
        origin = attempt.state
        attempt.error = error
        attempt.advance(TransferState.FAILED)
        self.logger.error(
            f"Transfer {attempt.attempt_id} failed at step '{error.step}' "
            f"({error.code}) on {attempt.intent.chain}: {error}"
        )
        self._emit(attempt, EventType.FAILED, {
            "error": str(error),
            "code": error.code,
            "step": error.step,
            "state": origin.value,
        })

    def _run_step(self, attempt: TransferAttempt, step: str, operation: Callable[[], T]) -> T:
        try:
            return operation()
        except SmoothSendError as e:
            self._fail(attempt, e, step)
            raise
        except Exception as e:
            wrapped = SmoothSendError(
                f"Unexpected error during {step}: {str(e)}",
                ErrorCode.UNKNOWN_ERROR,
                attempt.intent.chain,
                details=type(e).__name__
            )
            self._fail(attempt, wrapped, step)
            raise wrapped from e

    @staticmethod
    def _as_intent(intent: Union[TransferIntent, Dict[str, Any]]) -> TransferIntent:
        if isinstance(intent, TransferIntent):
            return intent
        try:
            return TransferIntent.model_validate(intent)
        except ValidationError as e:
            chain = intent.get("chain") if isinstance(intent, dict) else None
            error = InvalidIntentError(
                f"Malformed transfer intent: {e.error_count()} errors",
                chain=chain if isinstance(chain, str) else None,
                details=e.errors()
            )
            error.step = STEP_VALIDATE
            raise error from e

    # ------------------------------------------------------------------
    # Individual steps
    # ------------------------------------------------------------------

    def _payload_for(self, intent: TransferIntent, quote: Quote, nonce: str, deadline: int) -> SignaturePayload:
        if self.payload_mode == PayloadMode.LOCAL:
            return build_signature_payload(intent, quote, nonce, deadline)

        server_payload = self.relay.prepare_signature(intent, quote, nonce, deadline)
        if self.payload_mode == PayloadMode.VERIFIED:
            local_payload = build_signature_payload(intent, quote, nonce, deadline)
            if not payloads_equivalent(local_payload, server_payload):
                raise SignaturePrepError(
                    "Relayer payload does not match the locally built payload",
                    intent.chain,
                    details={
                        "local": local_payload.message_hash,
                        "server": server_payload.message_hash,
                    }
                )
        return server_payload

    def _prepare(self, intent: TransferIntent, quote: Quote, nonce: Optional[str] = None) -> PreparedSignature:
        # A fresh nonce per attempt; the payload, signature and submission all share it
        if nonce is None:
            nonce = self.relay.nonce(intent.chain, intent.from_address)
        deadline = int(self.clock()) + self.deadline_seconds
        payload = self._payload_for(intent, quote, nonce, deadline)
        return PreparedSignature(payload=payload, nonce=nonce, deadline=deadline)

    def get_quote(self, intent: Union[TransferIntent, Dict[str, Any]]) -> Quote:
        """Validate an intent and fetch a fee quote for it."""
        intent = self._as_intent(intent)
        validate_intent(intent)
        return self.relay.quote(intent)

    def prepare_signature(
        self,
        intent: Union[TransferIntent, Dict[str, Any]],
        quote: Quote
    ) -> PreparedSignature:
        """
        Fetch a nonce, fix a deadline and produce the payload to sign.

        The returned nonce and deadline must be submitted together with the
        signature over the returned payload.
        """
        intent = self._as_intent(intent)
        validate_intent(intent)
        return self._prepare(intent, quote)

    def _authorize(self, attempt: TransferAttempt, signer: SignerLike, nonce: Optional[str] = None) -> None:
        intent = attempt.intent
        self._emit(attempt, EventType.INITIATED, {"request": intent.model_dump(by_alias=True)})

        self._run_step(attempt, STEP_VALIDATE, lambda: validate_intent(intent))

        attempt.quote = self._run_step(attempt, STEP_QUOTE, lambda: self.relay.quote(intent))
        attempt.advance(TransferState.QUOTE_OBTAINED)

        prepared = self._run_step(attempt, STEP_PREPARE, lambda: self._prepare(intent, attempt.quote, nonce))
        attempt.nonce = prepared.nonce
        attempt.deadline = prepared.deadline
        attempt.payload = prepared.payload
        attempt.advance(TransferState.SIGNATURE_PREPARED)

        attempt.signature = self._run_step(
            attempt,
            STEP_SIGN,
            lambda: sign_payload(signer, prepared.payload, intent.chain)
        )
        attempt.advance(TransferState.SIGNED)
        self._emit(attempt, EventType.SIGNED, {"signature": attempt.signature})

    def _submit(self, attempt: TransferAttempt, permit_data: Optional[Dict[str, Any]] = None) -> TransferResult:
        intent = attempt.intent
        attempt.advance(TransferState.SUBMITTED)
        # Announced at call time, before the relayer answers
        self._emit(attempt, EventType.SUBMITTED, {
            "request": intent.model_dump(by_alias=True),
            "signature": attempt.signature,
            "nonce": attempt.nonce,
            "deadline": attempt.deadline,
        })

        result = self._run_step(attempt, STEP_EXECUTE, lambda: self.relay.relay(
            intent,
            attempt.quote,
            attempt.nonce,
            attempt.deadline,
            attempt.signature,
            permit_data
        ))
        attempt.result = result
        attempt.advance(TransferState.CONFIRMED)
        self.logger.info(f"Transfer {attempt.attempt_id} confirmed on {intent.chain}: {result.tx_hash}")
        self._emit(attempt, EventType.CONFIRMED, {"result": result.model_dump(by_alias=True)})
        return result

    def execute_transfer(
        self,
        intent: Union[TransferIntent, Dict[str, Any]],
        quote: Quote,
        signature: str,
        nonce: str,
        deadline: int,
        permit_data: Optional[Dict[str, Any]] = None
    ) -> TransferResult:
        """
        Relay a transfer the caller already signed.

        ``nonce`` and ``deadline`` must be exactly the values the signed
        payload was built with. Emits ``submitted`` then ``confirmed`` or
        ``failed``.
        """
        attempt = TransferAttempt(
            intent=self._as_intent(intent),
            state=TransferState.SIGNED,
            quote=quote,
            nonce=nonce,
            deadline=deadline,
            signature=signature
        )
        return self._submit(attempt, permit_data)

    # ------------------------------------------------------------------
    # Full protocols
    # ------------------------------------------------------------------

    def transfer(
        self,
        intent: Union[TransferIntent, Dict[str, Any]],
        signer: SignerLike,
        permit_data: Optional[Dict[str, Any]] = None
    ) -> TransferResult:
        """
        Run one transfer from intent to confirmed on-chain result.

        Emits ``initiated``, ``signed``, ``submitted`` and ``confirmed`` in that
        order, or the valid prefix followed by ``failed``.

        Args:
            intent: Transfer to perform
            signer: Signing capability; may block indefinitely on user approval
            permit_data: Optional token permit forwarded to the relayer

        Returns:
            TransferResult with ``success=True`` and a transaction hash

        Raises:
            SmoothSendError: With ``step`` set to where the transfer failed
        """
        attempt = TransferAttempt(intent=self._as_intent(intent))
        self._authorize(attempt, signer)
        return self._submit(attempt, permit_data)

    def prepare_submission(
        self,
        intent: Union[TransferIntent, Dict[str, Any]],
        signer: SignerLike,
        permit_data: Optional[Dict[str, Any]] = None,
        nonce: Optional[str] = None
    ) -> TransferSubmission:
        """
        Quote, prepare and sign a transfer without relaying it.

        Used to assemble fully signed submissions for ``batch_transfer``.
        Emits ``initiated`` and ``signed`` (or ``failed``).

        Args:
            intent: Transfer to authorize
            signer: Signing capability
            permit_data: Optional token permit to attach to the submission
            nonce: Nonce to sign with instead of the relayer's current one,
                for batches holding several transfers from one sender
        """
        attempt = TransferAttempt(intent=self._as_intent(intent))
        self._authorize(attempt, signer, nonce)
        return TransferSubmission(
            intent=attempt.intent,
            relayer_fee=attempt.quote.relayer_fee,
            nonce=attempt.nonce,
            deadline=attempt.deadline,
            signature=attempt.signature,
            permit_data=permit_data
        )

    def transfer_sequential(
        self,
        intents: Sequence[Union[TransferIntent, Dict[str, Any]]],
        signer: SignerLike
    ) -> List[TransferResult]:
        """
        Run transfers one after another, collecting one result per intent.

        A failed transfer produces a ``success=False`` result and does not
        stop the ones after it.
        """
        results: List[TransferResult] = []
        total = len(intents)
        for index, intent in enumerate(intents):
            try:
                results.append(self.transfer(intent, signer))
            except SmoothSendError as e:
                self.logger.warning(
                    f"Transfer {index + 1}/{total} failed at step '{e.step}': {e}"
                )
                results.append(TransferResult.failure(e))
        return results

    def _check_submissions(self, request: BatchTransferRequest) -> None:
        submissions = request.submissions or []
        for index, submission in enumerate(submissions):
            if not submission.is_complete():
                raise InvalidIntentError(
                    f"Batch submission {index + 1} is missing its fee, nonce, deadline or signature",
                    chain=request.chain
                )
            if submission.intent.chain != request.chain:
                raise InvalidIntentError(
                    f"Batch submission {index + 1} targets {submission.intent.chain}, "
                    f"expected {request.chain}",
                    chain=request.chain
                )
        if request.transfers and [s.intent for s in submissions] != list(request.transfers):
            raise InvalidIntentError(
                "Batch submissions do not correspond to the listed transfers",
                chain=request.chain
            )

    def batch_transfer(self, request: BatchTransferRequest, signer: SignerLike) -> TransferResult:
        """
        Relay several transfers, atomically when possible.

        The atomic batch endpoint is only used when the request carries fully
        signed ``submissions``. If it fails or the request has none, every
        transfer runs through ``transfer`` one by one.

        Returns:
            The atomic batch result, or the first sequential result. Use
            ``transfer_sequential`` to get every per-transfer result.

        Raises:
            InvalidIntentError: If the batch is empty or its submissions are incomplete
            BatchTransferError: If no transfer succeeded on either path
        """
        intents = request.intents()
        if not intents:
            raise InvalidIntentError("Batch transfer requires at least one transfer", chain=request.chain)
        for intent in intents:
            if intent.chain != request.chain:
                raise InvalidIntentError(
                    f"Batch on {request.chain} contains a transfer for {intent.chain}",
                    chain=request.chain
                )

        atomic_error: Optional[SmoothSendError] = None
        if request.submissions:
            self._check_submissions(request)
            try:
                result = self.relay.relay_batch(request.chain, request.submissions)
                self.logger.info(
                    f"Batch of {len(request.submissions)} transfers relayed on {request.chain}: {result.tx_hash}"
                )
                return result
            except SmoothSendError as e:
                atomic_error = e
                self.logger.info(
                    f"Atomic batch relay failed ({e.code}): {e}. Falling back to sequential transfers"
                )
        else:
            self.logger.debug("Batch has no signed submissions, running transfers sequentially")

        results = self.transfer_sequential(intents, signer)
        if not any(result.success for result in results):
            reason = f"; atomic batch error: {atomic_error}" if atomic_error else ""
            error = BatchTransferError(
                f"Batch transfer failed: none of {len(results)} transfers succeeded{reason}",
                chain=request.chain,
                cause=atomic_error,
                results=results
            )
            if atomic_error is not None:
                raise error from atomic_error
            raise error
        return results[0]
