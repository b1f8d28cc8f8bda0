"""
SmoothSendClient - Main entry point for gasless transfers through a SmoothSend relayer.
"""
import logging
import os
import time
import urllib.parse
from typing import Any, Callable, Dict, List, Optional, Sequence, Union

import requests

from .chains import DEFAULT_CHAIN, supported_chains
from .events import EventBus, EventListener
from .models import (
    BatchTransferRequest, ChainInfo, GasEstimate, HealthStatus, Quote,
    TokenInfo, TransferIntent, TransferResult, TransferStatus, TransferSubmission
)
from .orchestrator import DEFAULT_DEADLINE_SECONDS, PayloadMode, PreparedSignature, TransferOrchestrator
from .relay.client import RelayClient
from .relay.http import HttpClient
from .signer import SignerLike
from .validation import validate_address, validate_amount

logger = logging.getLogger(__name__)

DEFAULT_API_URL = "https://api.smoothsend.xyz"
DEFAULT_TIMEOUT = 30
DEFAULT_RETRIES = 3

IntentLike = Union[TransferIntent, Dict[str, Any]]


class SmoothSendClient:
    """
    Client for sending gasless token transfers through a SmoothSend relayer.

    The relayer pays gas; the user only signs an EIP-712 authorization and
    the relayer takes its fee in the transferred token. A typical flow::

        with SmoothSendClient() as client:
            client.add_event_listener(print)
            result = client.transfer(intent, LocalSigner(private_key))

    Settings not passed explicitly are read from ``SMOOTHSEND_API_URL``,
    ``SMOOTHSEND_TIMEOUT`` and ``SMOOTHSEND_RETRIES``.
    """

    def __init__(
        self,
        api_url: Optional[str] = None,
        timeout: Optional[float] = None,
        retries: Optional[int] = None,
        retry_base_delay: float = 1.0,
        payload_mode: PayloadMode = PayloadMode.SERVER,
        deadline_seconds: int = DEFAULT_DEADLINE_SECONDS,
        session: Optional[requests.Session] = None,
        clock: Callable[[], float] = time.time,
        logger: Optional[logging.Logger] = None
    ):
        """
        Initialize the SmoothSendClient

        Args:
            api_url: Relayer base URL (e.g., "https://api.smoothsend.xyz")
            timeout: Timeout for HTTP requests in seconds
            retries: Extra attempts for idempotent relayer calls
            retry_base_delay: Delay in seconds before the first retry
            payload_mode: Where the payload to sign comes from (see PayloadMode)
            deadline_seconds: How long a signature stays valid
            session: Optional preconfigured requests session
            clock: Returns the current UNIX time in seconds
            logger: Optional logger instance to use for debug/info logging

        Raises:
            ValueError: If the URL is not https (unless it is local or
                SMOOTHSEND_INSECURE_API=1 is set) or a numeric setting is invalid
        """
        api_url = api_url or os.environ.get("SMOOTHSEND_API_URL", DEFAULT_API_URL)
        self._validate_api_url(api_url)
        self.api_url = api_url.rstrip('/')

        self.timeout = timeout if timeout is not None else float(
            os.environ.get("SMOOTHSEND_TIMEOUT", DEFAULT_TIMEOUT)
        )
        self.retries = retries if retries is not None else int(
            os.environ.get("SMOOTHSEND_RETRIES", DEFAULT_RETRIES)
        )
        if self.timeout <= 0:
            raise ValueError(f"timeout must be positive, got {self.timeout}")

        self.logger = logger or logging.getLogger(__name__)
        self.http = HttpClient(self.api_url, timeout=self.timeout, session=session)
        self.relay = RelayClient(
            self.http,
            retries=self.retries,
            retry_base_delay=retry_base_delay,
            logger=self.logger
        )
        self.events = EventBus(logger=self.logger)
        self.orchestrator = TransferOrchestrator(
            self.relay,
            event_bus=self.events,
            payload_mode=payload_mode,
            deadline_seconds=deadline_seconds,
            clock=clock,
            logger=self.logger
        )
        self.logger.debug(f"Initialized SmoothSend client for {self.api_url} ({payload_mode} payloads)")

    @staticmethod
    def _validate_api_url(url: str) -> None:
        parsed = urllib.parse.urlparse(url)
        if not parsed.scheme or not parsed.netloc:
            raise ValueError(f"Invalid relayer URL '{url}'")
        host = parsed.hostname or ""
        is_local = host in ("localhost", "127.0.0.1", "::1")
        if parsed.scheme != "https" and not is_local:
            if os.environ.get("SMOOTHSEND_INSECURE_API") != "1":
                raise ValueError(
                    f"Relayer URL must use https:// for security (got: {parsed.scheme}://). "
                    "Set SMOOTHSEND_INSECURE_API=1 to allow HTTP for development."
                )

    # ------------------------------------------------------------------
    # Events
    # ------------------------------------------------------------------

    def add_event_listener(self, listener: EventListener) -> None:
        """Register a callable that receives every TransferEvent."""
        self.events.subscribe(listener)

    def remove_event_listener(self, listener: EventListener) -> bool:
        return self.events.unsubscribe(listener)

    # ------------------------------------------------------------------
    # Transfers
    # ------------------------------------------------------------------

    def transfer(
        self,
        intent: IntentLike,
        signer: SignerLike,
        permit_data: Optional[Dict[str, Any]] = None
    ) -> TransferResult:
        """
        Run a complete gasless transfer.

        Args:
            intent: TransferIntent or a dict with from/to/token/amount/chain
            signer: Object with ``sign_typed_data`` or a callable over typed data
            permit_data: Optional token permit forwarded to the relayer

        Returns:
            Successful TransferResult

        Raises:
            SmoothSendError: On any failure, with ``step`` naming where it happened
        """
        return self.orchestrator.transfer(intent, signer, permit_data)

    def batch_transfer(self, request: BatchTransferRequest, signer: SignerLike) -> TransferResult:
        return self.orchestrator.batch_transfer(request, signer)

    def transfer_sequential(self, intents: Sequence[IntentLike], signer: SignerLike) -> List[TransferResult]:
        return self.orchestrator.transfer_sequential(intents, signer)

    def prepare_submission(
        self,
        intent: IntentLike,
        signer: SignerLike,
        permit_data: Optional[Dict[str, Any]] = None,
        nonce: Optional[str] = None
    ) -> TransferSubmission:
        return self.orchestrator.prepare_submission(intent, signer, permit_data, nonce)

    def get_quote(self, intent: IntentLike) -> Quote:
        return self.orchestrator.get_quote(intent)

    def prepare_signature(self, intent: IntentLike, quote: Quote) -> PreparedSignature:
        return self.orchestrator.prepare_signature(intent, quote)

    def execute_transfer(
        self,
        intent: IntentLike,
        quote: Quote,
        signature: str,
        nonce: str,
        deadline: int,
        permit_data: Optional[Dict[str, Any]] = None
    ) -> TransferResult:
        return self.orchestrator.execute_transfer(intent, quote, signature, nonce, deadline, permit_data)

    # ------------------------------------------------------------------
    # Relayer queries
    # ------------------------------------------------------------------

    def get_nonce(self, user_address: str, chain: str = DEFAULT_CHAIN) -> str:
        return self.relay.nonce(chain, user_address)

    def get_transfer_status(self, tx_hash: str, chain: str = DEFAULT_CHAIN) -> TransferStatus:
        return self.relay.status(chain, tx_hash)

    def get_supported_chains(self) -> List[ChainInfo]:
        """Chains the relayer reports. See ``supported_chains()`` for the local table."""
        return self.relay.chains()

    def get_chain_tokens(self, chain: str = DEFAULT_CHAIN, refresh: bool = False) -> List[TokenInfo]:
        return self.relay.chain_tokens(chain, refresh=refresh)

    def get_token_info(self, token: str, chain: str = DEFAULT_CHAIN) -> TokenInfo:
        return self.relay.token_info(chain, token)

    def get_domain_separator(self, chain: str = DEFAULT_CHAIN) -> str:
        return self.relay.domain_separator(chain)

    def estimate_gas(
        self,
        transfers: Sequence[Union[TransferIntent, TransferSubmission, Dict[str, Any]]],
        chain: str = DEFAULT_CHAIN
    ) -> GasEstimate:
        return self.relay.estimate_gas(chain, transfers)

    def get_health(self) -> HealthStatus:
        return self.relay.health()

    # ------------------------------------------------------------------
    # Validation utilities
    # ------------------------------------------------------------------

    @staticmethod
    def validate_address(address: str, chain: str = DEFAULT_CHAIN) -> bool:
        return validate_address(address, chain)

    @staticmethod
    def validate_amount(amount: Any) -> bool:
        return validate_amount(amount)

    @staticmethod
    def supported_chains() -> List[str]:
        return supported_chains()

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def close(self) -> None:
        """Drop all event listeners and release the HTTP session."""
        self.events.clear()
        try:
            self.relay.close()
            self.logger.debug("SmoothSend client closed.")
        except Exception as e:
            self.logger.warning(f"Error closing HTTP session: {e}", exc_info=True)

    def __enter__(self):
        """Enter context manager."""
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Exit context manager, releasing the HTTP session."""
        self.close()
