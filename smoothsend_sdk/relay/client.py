"""
Relay client for the SmoothSend relayer API.

One method per relayer endpoint. Each method returns a typed model or raises
a tagged SmoothSendError; raw ``requests`` exceptions never escape.
"""
import logging
import re
import threading
from typing import Any, Callable, Dict, List, Optional, Sequence, Type, TypeVar, Union

from cachetools import TTLCache
from pydantic import BaseModel, ValidationError

from ..chains import get_chain
from ..exceptions import (
    ChainsError, ChainTokensError, DomainSeparatorError, ErrorCode, ExecutionError,
    GasEstimateError, HealthCheckError, HttpStatusError, InvalidResponseError,
    NetworkError, NonceConflictError, NonceError, QuoteError, RelayError,
    SignaturePrepError, SmoothSendError, StatusError, TokenNotFoundError
)
from ..models import (
    ApiResponse, ChainInfo, GasEstimate, HealthStatus, Quote, SignaturePayload,
    TokenInfo, TransferIntent, TransferResult, TransferStatus, TransferSubmission
)
from .http import HttpClient
from .retry import with_retry

T = TypeVar('T')
M = TypeVar('M', bound=BaseModel)

logger = logging.getLogger(__name__)

# Relayer messages that indicate the submitted nonce was already consumed
_NONCE_CONFLICT = re.compile(
    r"nonce (?:has )?already (?:been )?used|nonce too low|duplicate nonce|used nonce"
)


class RelayClient:
    """
    Stateless mapping of relayer endpoints to typed calls.

    Read-only operations are retried with exponential backoff; ``relay`` and
    ``relay_batch`` are attempted exactly once.
    """

    def __init__(
        self,
        http: HttpClient,
        retries: int = 3,
        retry_base_delay: float = 1.0,
        retry_jitter: float = 0.1,
        token_cache_ttl: int = 300,
        logger: Optional[logging.Logger] = None
    ):
        """
        Initialize the relay client

        Args:
            http: HTTP transport bound to the relayer base URL
            retries: Extra attempts allowed for idempotent operations
            retry_base_delay: Delay in seconds before the first retry
            retry_jitter: Random extra delay, as a fraction of each delay
            token_cache_ttl: Seconds to cache chain token lists
            logger: Optional logger instance
        """
        if retries < 0:
            raise ValueError(f"retries must not be negative, got {retries}")
        self.http = http
        self.retries = retries
        self.retry_base_delay = retry_base_delay
        self.retry_jitter = retry_jitter
        self.logger = logger or logging.getLogger(__name__)
        self._token_cache: TTLCache = TTLCache(maxsize=32, ttl=token_cache_ttl)
        self._token_cache_lock = threading.RLock()

    # ------------------------------------------------------------------
    # Envelope handling
    # ------------------------------------------------------------------

    def _raise_for(
        self,
        response: ApiResponse,
        error_cls: Type[RelayError],
        default_message: str,
        chain: Optional[str]
    ) -> None:
        if response.code == ErrorCode.NETWORK_ERROR.value:
            raise NetworkError(response.error or default_message, chain, response.details)
        if response.status_code is not None and not 200 <= response.status_code < 300:
            raise HttpStatusError(
                response.error or default_message,
                response.status_code,
                chain,
                response.details
            )
        if response.code == ErrorCode.INVALID_RESPONSE.value:
            raise InvalidResponseError(response.error or default_message, chain, response.details)
        if response.code == ErrorCode.UNKNOWN_ERROR.value:
            raise SmoothSendError(
                response.error or default_message,
                ErrorCode.UNKNOWN_ERROR,
                chain,
                response.details
            )
        raise error_cls(response.error or default_message, chain, response.details)

    def _data(
        self,
        response: ApiResponse,
        error_cls: Type[RelayError],
        default_message: str,
        chain: Optional[str] = None
    ) -> Dict[str, Any]:
        if not response.success or response.data is None:
            self._raise_for(response, error_cls, default_message, chain)
        if not isinstance(response.data, dict):
            raise InvalidResponseError(
                f"{default_message}: expected an object in 'data'",
                chain,
                response.data
            )
        return response.data

    @staticmethod
    def _parse(model_cls: Type[M], data: Any, chain: Optional[str] = None) -> M:
        try:
            return model_cls.model_validate(data)
        except ValidationError as e:
            raise InvalidResponseError(
                f"Unexpected {model_cls.__name__} response from relayer: {e.error_count()} errors",
                chain,
                data
            ) from e

    def _idempotent(self, description: str, operation: Callable[[], T]) -> T:
        return with_retry(
            operation,
            max_attempts=self.retries + 1,
            base_delay=self.retry_base_delay,
            jitter=self.retry_jitter,
            description=description,
            logger_instance=self.logger
        )

    # ------------------------------------------------------------------
    # Transfer endpoints
    # ------------------------------------------------------------------

    def quote(self, intent: TransferIntent) -> Quote:
        """
        Request a fee quote for an intent.

        Raises:
            UnsupportedChainError: If the intent's chain is unknown
            QuoteError: If the relayer refuses to quote
            RetriesExhaustedError: If the relayer stayed unreachable
        """
        chain_name = get_chain(intent.chain).wire_name
        body = {
            "chainName": chain_name,
            "token": intent.token_symbol,
            "amount": intent.amount,
        }

        def _call() -> Quote:
            response = self.http.post("/quote", body)
            data = self._data(response, QuoteError, "Failed to get quote", intent.chain)
            return self._parse(Quote, data, intent.chain)

        return self._idempotent("quote", _call)

    def nonce(self, chain: str, address: str) -> str:
        """Fetch the sender's current relayer nonce. Never cached."""
        chain_name = get_chain(chain).wire_name
        params = {"chainName": chain_name, "userAddress": address}

        def _call() -> str:
            response = self.http.get("/nonce", params)
            data = self._data(response, NonceError, "Failed to get nonce", chain)
            nonce = data.get("nonce")
            if nonce is None or nonce == "":
                raise InvalidResponseError("Nonce missing from relayer response", chain, data)
            return str(nonce)

        return self._idempotent("nonce", _call)

    def prepare_signature(
        self,
        intent: TransferIntent,
        quote: Quote,
        nonce: str,
        deadline: int
    ) -> SignaturePayload:
        """Ask the relayer to build the typed-data payload for an attempt."""
        body = {
            "chainName": get_chain(intent.chain).wire_name,
            "from": intent.from_address,
            "to": intent.to_address,
            "tokenSymbol": intent.token_symbol,
            "amount": intent.amount,
            "relayerFee": quote.relayer_fee,
            "nonce": nonce,
            "deadline": deadline,
        }

        def _call() -> SignaturePayload:
            response = self.http.post("/prepare-signature", body)
            data = self._data(response, SignaturePrepError, "Failed to prepare signature", intent.chain)
            typed_data = data.get("typedData")
            if not isinstance(typed_data, dict):
                raise InvalidResponseError("typedData missing from relayer response", intent.chain, data)
            return self._parse(SignaturePayload, {
                "domain": typed_data.get("domain"),
                "types": typed_data.get("types"),
                "message": typed_data.get("message"),
                "primaryType": typed_data.get("primaryType") or "Transfer",
                "messageHash": data.get("messageHash"),
            }, intent.chain)

        return self._idempotent("prepare-signature", _call)

    def relay(
        self,
        intent: TransferIntent,
        quote: Quote,
        nonce: str,
        deadline: int,
        signature: str,
        permit_data: Optional[Dict[str, Any]] = None
    ) -> TransferResult:
        """
        Submit a signed transfer. Attempted exactly once.

        Raises:
            ExecutionError: If the relayer rejects the transfer
            NonceConflictError: If the nonce was already consumed
            NetworkError: If the relayer could not be reached
        """
        submission = TransferSubmission(
            intent=intent,
            relayer_fee=quote.relayer_fee,
            nonce=nonce,
            deadline=deadline,
            signature=signature,
            permit_data=permit_data
        )
        return self.relay_submission(submission)

    def relay_submission(self, submission: TransferSubmission) -> TransferResult:
        chain = submission.intent.chain
        body = {"chainName": get_chain(chain).wire_name, **submission.to_wire()}
        response = self.http.post("/relay-transfer", body)
        return self._transfer_result(response, chain, "Transfer execution failed")

    def relay_batch(self, chain: str, submissions: Sequence[TransferSubmission]) -> TransferResult:
        """Submit several signed transfers in one atomic relayer call. Attempted exactly once."""
        body = {
            "chainName": get_chain(chain).wire_name,
            "transfers": [submission.to_wire() for submission in submissions],
        }
        response = self.http.post("/relay-batch-transfer", body)
        return self._transfer_result(response, chain, "Batch transfer execution failed")

    def _transfer_result(self, response: ApiResponse, chain: str, default_message: str) -> TransferResult:
        if not response.success or response.data is None:
            message = (response.error or "").lower()
            rejected = response.code != ErrorCode.NETWORK_ERROR.value
            if rejected and (
                response.status_code == 409
                or _NONCE_CONFLICT.search(message)
            ):
                raise NonceConflictError(response.error or default_message, chain, response.details)
            self._raise_for(response, ExecutionError, default_message, chain)

        data = response.data if isinstance(response.data, dict) else {}
        result = self._parse(TransferResult, {**data, "success": True}, chain)
        if not result.tx_hash:
            raise InvalidResponseError("Relayer reported success without a txHash", chain, data)
        return result

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def status(self, chain: str, tx_hash: str) -> TransferStatus:
        params = {"chainName": get_chain(chain).wire_name, "transferHash": tx_hash}

        def _call() -> TransferStatus:
            response = self.http.get("/transfer-status", params)
            data = self._data(response, StatusError, "Failed to get transfer status", chain)
            return self._parse(TransferStatus, data, chain)

        return self._idempotent("transfer-status", _call)

    def chains(self) -> List[ChainInfo]:
        def _call() -> List[ChainInfo]:
            response = self.http.get("/chains")
            data = self._data(response, ChainsError, "Failed to get supported chains")
            return [self._parse(ChainInfo, item) for item in data.get("chains") or []]

        return self._idempotent("chains", _call)

    def chain_tokens(self, chain: str, refresh: bool = False) -> List[TokenInfo]:
        """
        List the tokens the relayer supports on a chain.

        Results are cached per chain for ``token_cache_ttl`` seconds.
        """
        chain_name = get_chain(chain).wire_name
        if not refresh:
            with self._token_cache_lock:
                cached = self._token_cache.get(chain)
            if cached is not None:
                return list(cached)

        def _call() -> List[TokenInfo]:
            response = self.http.get(f"/chains/{chain_name}/tokens")
            data = self._data(response, ChainTokensError, "Failed to get chain tokens", chain)
            return [self._parse(TokenInfo, item, chain) for item in data.get("tokens") or []]

        tokens = self._idempotent("chain-tokens", _call)
        with self._token_cache_lock:
            self._token_cache[chain] = tuple(tokens)
        return tokens

    def token_info(self, chain: str, token: str) -> TokenInfo:
        """
        Find a token by symbol or contract address.

        Raises:
            TokenNotFoundError: If the relayer does not list the token
        """
        wanted = token.lower()
        for info in self.chain_tokens(chain):
            if info.symbol == token or info.address.lower() == wanted:
                return info
        raise TokenNotFoundError(f"Token {token} not found for chain {chain}", chain)

    def domain_separator(self, chain: str) -> str:
        chain_name = get_chain(chain).wire_name

        def _call() -> str:
            response = self.http.get(f"/domain-separator/{chain_name}")
            data = self._data(response, DomainSeparatorError, "Failed to get domain separator", chain)
            separator = data.get("domainSeparator")
            if not separator:
                raise InvalidResponseError("domainSeparator missing from relayer response", chain, data)
            return separator

        return self._idempotent("domain-separator", _call)

    def estimate_gas(
        self,
        chain: str,
        transfers: Sequence[Union[TransferIntent, TransferSubmission, Dict[str, Any]]]
    ) -> GasEstimate:
        body = {
            "chainName": get_chain(chain).wire_name,
            "transfers": [self._transfer_body(transfer) for transfer in transfers],
        }

        def _call() -> GasEstimate:
            response = self.http.post("/estimate-gas", body)
            data = self._data(response, GasEstimateError, "Failed to estimate gas", chain)
            return self._parse(GasEstimate, data, chain)

        return self._idempotent("estimate-gas", _call)

    @staticmethod
    def _transfer_body(transfer: Union[TransferIntent, TransferSubmission, Dict[str, Any]]) -> Dict[str, Any]:
        if isinstance(transfer, TransferSubmission):
            return transfer.to_wire()
        if isinstance(transfer, TransferIntent):
            return transfer.model_dump(by_alias=True, exclude={"chain"})
        return dict(transfer)

    def health(self) -> HealthStatus:
        def _call() -> HealthStatus:
            response = self.http.get("/health")
            data = self._data(response, HealthCheckError, "Health check failed")
            return self._parse(HealthStatus, data)

        return self._idempotent("health", _call)

    def close(self) -> None:
        self.http.close()
