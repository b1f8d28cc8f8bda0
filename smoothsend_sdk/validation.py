"""
Address and amount checks run before any network round trip.
"""
import re
from typing import Any

from .chains import DEFAULT_CHAIN, get_chain
from .exceptions import InvalidIntentError, UnsupportedChainError
from .models import TransferIntent

# ASCII digits only; str.isdigit() would also accept other unicode digits
_UNSIGNED_INTEGER = re.compile(r"[0-9]+")


def validate_address(address: str, chain: str = DEFAULT_CHAIN) -> bool:
    """
    Check that an address is well formed for a chain.

    Args:
        address: Address to check
        chain: Chain key whose address format applies

    Returns:
        True if the address matches the chain's format, False otherwise
        (including when the chain is not supported)
    """
    try:
        config = get_chain(chain)
    except UnsupportedChainError:
        return False
    return config.is_valid_address(address)


def validate_amount(amount: Any) -> bool:
    """
    Check that an amount is a strictly positive unsigned decimal integer string.

    No decimal scaling happens here: "1.5", "-5" and "0" are all rejected.
    """
    if not isinstance(amount, str) or _UNSIGNED_INTEGER.fullmatch(amount) is None:
        return False
    return int(amount) > 0


def validate_intent(intent: TransferIntent) -> None:
    """
    Validate every locally checkable field of an intent.

    Raises:
        UnsupportedChainError: If the intent names an unknown chain
        InvalidIntentError: If an address or the amount is malformed
    """
    config = get_chain(intent.chain)

    if not config.is_valid_address(intent.from_address):
        raise InvalidIntentError(
            f"Invalid sender address for {intent.chain}: {intent.from_address}",
            chain=intent.chain
        )
    if not config.is_valid_address(intent.to_address):
        raise InvalidIntentError(
            f"Invalid recipient address for {intent.chain}: {intent.to_address}",
            chain=intent.chain
        )
    if not validate_amount(intent.amount):
        raise InvalidIntentError(
            f"Amount must be a positive integer string in base units, got: {intent.amount!r}",
            chain=intent.chain
        )
    if not intent.token_symbol:
        raise InvalidIntentError("Token symbol must not be empty", chain=intent.chain)
