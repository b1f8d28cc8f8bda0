"""
EIP-712 signature payload construction.

``build_signature_payload`` is a pure function: identical inputs always give
an identical payload, with no clock or randomness involved.
"""
import copy
import re
from typing import Any, Dict

from eth_account.messages import encode_typed_data
from web3 import Web3

from .chains import get_chain
from .exceptions import InvalidIntentError
from .models import Quote, SignaturePayload, TransferIntent
from .validation import validate_intent

PRIMARY_TYPE = "Transfer"

TRANSFER_TYPES: Dict[str, Any] = {
    "EIP712Domain": [
        {"name": "name", "type": "string"},
        {"name": "version", "type": "string"},
        {"name": "chainId", "type": "uint256"},
        {"name": "verifyingContract", "type": "address"},
    ],
    PRIMARY_TYPE: [
        {"name": "from", "type": "address"},
        {"name": "to", "type": "address"},
        {"name": "token", "type": "address"},
        {"name": "amount", "type": "uint256"},
        {"name": "relayerFee", "type": "uint256"},
        {"name": "nonce", "type": "uint256"},
        {"name": "deadline", "type": "uint256"},
    ],
}

# Message fields that bind a signature to one specific transfer
BINDING_FIELDS = ("from", "to", "amount", "relayerFee", "nonce", "deadline")

_UNSIGNED_INTEGER = re.compile(r"[0-9]+")


def _parse_uint(value: Any, label: str, chain: str) -> int:
    if isinstance(value, int) and not isinstance(value, bool):
        if value < 0:
            raise InvalidIntentError(f"{label} must not be negative, got: {value}", chain=chain)
        return value
    if isinstance(value, str) and _UNSIGNED_INTEGER.fullmatch(value):
        return int(value)
    raise InvalidIntentError(f"{label} must be an unsigned decimal integer, got: {value!r}", chain=chain)


def compute_message_hash(typed_data: Dict[str, Any]) -> str:
    """Return the 0x-prefixed EIP-712 digest a wallet signs for ``typed_data``."""
    signable = encode_typed_data(full_message=typed_data)
    digest = Web3.keccak(b"\x19" + signable.version + signable.header + signable.body)
    return "0x" + bytes(digest).hex()


def build_signature_payload(
    intent: TransferIntent,
    quote: Quote,
    nonce: str,
    deadline: int
) -> SignaturePayload:
    """
    Build the typed-data payload authorizing one transfer.

    Args:
        intent: Transfer to authorize
        quote: Relayer quote supplying the fee and the verifying contract
        nonce: Sender nonce fetched for this attempt
        deadline: Absolute expiry in UNIX seconds

    Returns:
        SignaturePayload including the precomputed message hash

    Raises:
        UnsupportedChainError: If the intent's chain is unknown
        InvalidIntentError: If any input is malformed
    """
    validate_intent(intent)
    config = get_chain(intent.chain)

    token_address = config.token_address(intent.token_symbol)
    if token_address is None:
        raise InvalidIntentError(
            f"Token {intent.token_symbol} is not configured for chain {intent.chain}",
            chain=intent.chain
        )
    if not config.is_valid_address(quote.contract_address):
        raise InvalidIntentError(
            f"Quote contract address is malformed: {quote.contract_address}",
            chain=intent.chain
        )
    relayer_fee = _parse_uint(quote.relayer_fee, "Relayer fee", intent.chain)
    nonce_value = _parse_uint(nonce, "Nonce", intent.chain)
    deadline_value = _parse_uint(deadline, "Deadline", intent.chain)
    if deadline_value <= 0:
        raise InvalidIntentError("Deadline must be a positive UNIX timestamp", chain=intent.chain)

    domain = {
        "name": config.domain_name,
        "version": config.domain_version,
        "chainId": config.chain_id,
        "verifyingContract": Web3.to_checksum_address(quote.contract_address),
    }
    message = {
        "from": Web3.to_checksum_address(intent.from_address),
        "to": Web3.to_checksum_address(intent.to_address),
        "token": Web3.to_checksum_address(token_address),
        "amount": int(intent.amount),
        "relayerFee": relayer_fee,
        "nonce": nonce_value,
        "deadline": deadline_value,
    }
    types = copy.deepcopy(TRANSFER_TYPES)

    message_hash = compute_message_hash({
        "types": types,
        "primaryType": PRIMARY_TYPE,
        "domain": domain,
        "message": message,
    })

    return SignaturePayload(
        domain=domain,
        types=types,
        message=message,
        primary_type=PRIMARY_TYPE,
        message_hash=message_hash
    )


def _normalize(value: Any) -> Any:
    if isinstance(value, str):
        if value.startswith(("0x", "0X")):
            return value.lower()
        if _UNSIGNED_INTEGER.fullmatch(value):
            return int(value)
    return value


def payloads_equivalent(first: SignaturePayload, second: SignaturePayload) -> bool:
    """
    Check whether two payloads authorize the same transfer.

    Binding fields are compared with addresses case-insensitive and numbers
    as integers. When both payloads carry a message hash, the hashes must
    match too.
    """
    if first.message_hash and second.message_hash:
        if first.message_hash.lower() != second.message_hash.lower():
            return False

    for name in BINDING_FIELDS:
        if name not in first.message or name not in second.message:
            return False
        if _normalize(first.message[name]) != _normalize(second.message[name]):
            return False
    return True
