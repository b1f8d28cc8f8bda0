"""
Exceptions for the SmoothSend SDK.
"""
from enum import Enum
from typing import Any, List, Optional


class ErrorCode(str, Enum):
    """
    Error codes attached to every SDK exception.

    HTTP failures use the dynamic code ``HTTP_<status>`` instead of a member
    of this enum (see :func:`http_error_code`).
    """
    INVALID_INTENT = "INVALID_INTENT"
    QUOTE_ERROR = "QUOTE_ERROR"
    SIGNATURE_PREP_ERROR = "SIGNATURE_PREP_ERROR"
    NONCE_ERROR = "NONCE_ERROR"
    EXECUTION_ERROR = "EXECUTION_ERROR"
    NONCE_CONFLICT = "NONCE_CONFLICT"
    STATUS_ERROR = "STATUS_ERROR"
    CHAINS_ERROR = "CHAINS_ERROR"
    CHAIN_TOKENS_ERROR = "CHAIN_TOKENS_ERROR"
    DOMAIN_SEPARATOR_ERROR = "DOMAIN_SEPARATOR_ERROR"
    GAS_ESTIMATE_ERROR = "GAS_ESTIMATE_ERROR"
    HEALTH_CHECK_ERROR = "HEALTH_CHECK_ERROR"
    TOKEN_NOT_FOUND = "TOKEN_NOT_FOUND"
    NETWORK_ERROR = "NETWORK_ERROR"
    UNSUPPORTED_CHAIN = "UNSUPPORTED_CHAIN"
    BATCH_TRANSFER_ERROR = "BATCH_TRANSFER_ERROR"
    RETRIES_EXHAUSTED = "RETRIES_EXHAUSTED"
    SIGNING_ERROR = "SIGNING_ERROR"
    INVALID_RESPONSE = "INVALID_RESPONSE"
    UNKNOWN_ERROR = "UNKNOWN_ERROR"


def http_error_code(status_code: int) -> str:
    """Return the ``HTTP_<status>`` code used for non-2xx relayer responses."""
    return f"HTTP_{status_code}"


# Statuses worth another attempt for idempotent operations
RETRYABLE_STATUS_CODES = frozenset({408, 429, 500, 502, 503, 504})


class SmoothSendError(Exception):
    """
    Base exception for all SDK errors.

    Attributes:
        code: Error code (an ErrorCode value or ``HTTP_<status>``)
        chain: Chain key the failing operation was addressed to, if any
        details: Extra context reported by the relayer or the transport
        step: Orchestration step that failed (validate, quote, prepare,
            sign, execute), filled in by the orchestrator
    """

    def __init__(
        self,
        message: str,
        code: str = ErrorCode.UNKNOWN_ERROR.value,
        chain: Optional[str] = None,
        details: Any = None,
        step: Optional[str] = None
    ):
        self.message = message
        self.code = code.value if isinstance(code, ErrorCode) else code
        self.chain = chain
        self.details = details
        self.step = step
        super().__init__(message)

    @property
    def retryable(self) -> bool:
        """Whether an idempotent operation failing with this error may be retried."""
        return False

    def __str__(self) -> str:
        return self.message

    def __repr__(self) -> str:
        return (
            f"{type(self).__name__}(message={self.message!r}, code={self.code!r}, "
            f"chain={self.chain!r}, step={self.step!r})"
        )


class InvalidIntentError(SmoothSendError):
    """Raised when a transfer intent fails local validation. Never retried."""

    def __init__(self, message: str, chain: Optional[str] = None, details: Any = None):
        super().__init__(message, ErrorCode.INVALID_INTENT, chain, details)


class UnsupportedChainError(SmoothSendError):
    """Raised when an intent names a chain the client has no policy for."""

    def __init__(self, chain: str):
        super().__init__(f"Unsupported chain: {chain}", ErrorCode.UNSUPPORTED_CHAIN, chain)


class SigningError(SmoothSendError):
    """Raised when the signing capability fails or returns no signature."""

    def __init__(self, message: str, chain: Optional[str] = None, details: Any = None):
        super().__init__(message, ErrorCode.SIGNING_ERROR, chain, details)


class NetworkError(SmoothSendError):
    """Raised when the relayer cannot be reached at all."""

    def __init__(self, message: str, chain: Optional[str] = None, details: Any = None):
        super().__init__(message, ErrorCode.NETWORK_ERROR, chain, details)

    @property
    def retryable(self) -> bool:
        return True


class HttpStatusError(SmoothSendError):
    """Raised when the relayer answers with a non-2xx status."""

    def __init__(
        self,
        message: str,
        status_code: int,
        chain: Optional[str] = None,
        details: Any = None
    ):
        self.status_code = status_code
        super().__init__(message, http_error_code(status_code), chain, details)

    @property
    def retryable(self) -> bool:
        return self.status_code in RETRYABLE_STATUS_CODES


class InvalidResponseError(SmoothSendError):
    """Raised when a relayer response cannot be interpreted."""

    def __init__(self, message: str, chain: Optional[str] = None, details: Any = None):
        super().__init__(message, ErrorCode.INVALID_RESPONSE, chain, details)

    @property
    def retryable(self) -> bool:
        return True


class RelayError(SmoothSendError):
    """Base class for failures the relayer reported in its response envelope."""
    error_code = ErrorCode.UNKNOWN_ERROR

    def __init__(self, message: str, chain: Optional[str] = None, details: Any = None):
        super().__init__(message, self.error_code, chain, details)


class QuoteError(RelayError):
    error_code = ErrorCode.QUOTE_ERROR


class SignaturePrepError(RelayError):
    error_code = ErrorCode.SIGNATURE_PREP_ERROR


class NonceError(RelayError):
    error_code = ErrorCode.NONCE_ERROR


class ExecutionError(RelayError):
    error_code = ErrorCode.EXECUTION_ERROR


class NonceConflictError(ExecutionError):
    """Raised when the relayer rejects a submission because its nonce was already used."""
    error_code = ErrorCode.NONCE_CONFLICT


class StatusError(RelayError):
    error_code = ErrorCode.STATUS_ERROR


class ChainsError(RelayError):
    error_code = ErrorCode.CHAINS_ERROR


class ChainTokensError(RelayError):
    error_code = ErrorCode.CHAIN_TOKENS_ERROR


class TokenNotFoundError(RelayError):
    error_code = ErrorCode.TOKEN_NOT_FOUND


class DomainSeparatorError(RelayError):
    error_code = ErrorCode.DOMAIN_SEPARATOR_ERROR


class GasEstimateError(RelayError):
    error_code = ErrorCode.GAS_ESTIMATE_ERROR


class HealthCheckError(RelayError):
    error_code = ErrorCode.HEALTH_CHECK_ERROR


class RetriesExhaustedError(SmoothSendError):
    """Raised when an idempotent operation kept failing for every allowed attempt."""

    def __init__(self, last_error: BaseException, attempts: int):
        self.last_error = last_error
        self.attempts = attempts
        chain = getattr(last_error, "chain", None)
        super().__init__(
            f"Operation failed after {attempts} attempts: {last_error}",
            ErrorCode.RETRIES_EXHAUSTED,
            chain,
            details=getattr(last_error, "details", None)
        )


class BatchTransferError(SmoothSendError):
    """
    Raised when neither the atomic batch nor the sequential fallback
    produced a successful transfer.

    Attributes:
        cause: Error from the atomic batch attempt, if one was made
        results: Per-transfer results collected by the sequential path
    """

    def __init__(
        self,
        message: str,
        chain: Optional[str] = None,
        cause: Optional[BaseException] = None,
        results: Optional[List[Any]] = None
    ):
        self.cause = cause
        self.results = list(results or [])
        super().__init__(message, ErrorCode.BATCH_TRANSFER_ERROR, chain)
