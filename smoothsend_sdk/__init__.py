"""
SmoothSend SDK - gasless token transfers through a SmoothSend relayer.
"""
from .chains import AVALANCHE, DEFAULT_CHAIN, ChainConfig, get_chain, register_chain, supported_chains
from .client import SmoothSendClient
from .events import EventBus
from .exceptions import (
    BatchTransferError, ErrorCode, ExecutionError, InvalidIntentError, InvalidResponseError,
    NetworkError, NonceConflictError, QuoteError, RetriesExhaustedError, SignaturePrepError,
    SigningError, SmoothSendError, TokenNotFoundError, UnsupportedChainError
)
from .models import (
    BatchTransferRequest, EventType, Quote, SignaturePayload, TransferEvent,
    TransferIntent, TransferResult, TransferState, TransferSubmission
)
from .orchestrator import PayloadMode, PreparedSignature, TransferOrchestrator
from .payload import build_signature_payload
from .signer import LocalSigner, Signer
from .validation import validate_address, validate_amount, validate_intent
from .version import __version__

__all__ = [
    "SmoothSendClient",
    "TransferOrchestrator",
    "PayloadMode",
    "PreparedSignature",
    "EventBus",
    "LocalSigner",
    "Signer",
    "TransferIntent",
    "Quote",
    "SignaturePayload",
    "TransferResult",
    "TransferEvent",
    "TransferSubmission",
    "BatchTransferRequest",
    "EventType",
    "TransferState",
    "ChainConfig",
    "AVALANCHE",
    "DEFAULT_CHAIN",
    "get_chain",
    "register_chain",
    "supported_chains",
    "build_signature_payload",
    "validate_address",
    "validate_amount",
    "validate_intent",
    "ErrorCode",
    "SmoothSendError",
    "InvalidIntentError",
    "UnsupportedChainError",
    "SigningError",
    "NetworkError",
    "InvalidResponseError",
    "QuoteError",
    "SignaturePrepError",
    "ExecutionError",
    "NonceConflictError",
    "TokenNotFoundError",
    "RetriesExhaustedError",
    "BatchTransferError",
    "__version__",
]
