"""
Signing capability used by the orchestrator.

The orchestrator only needs something that turns ``(domain, types, message)``
into a signature string. Any object with a ``sign_typed_data`` method, or a
plain callable with the same signature, will do.
"""
from typing import Any, Callable, Dict, Optional, Protocol, Union, runtime_checkable

from eth_account import Account
from eth_account.signers.local import LocalAccount

from .exceptions import SigningError
from .models import SignaturePayload


@runtime_checkable
class Signer(Protocol):
    """Protocol for wallet backends able to sign EIP-712 typed data"""

    def sign_typed_data(
        self,
        domain: Dict[str, Any],
        types: Dict[str, Any],
        message: Dict[str, Any]
    ) -> str:
        """Sign typed data and return the signature as a hex string"""
        ...


SignFunction = Callable[[Dict[str, Any], Dict[str, Any], Dict[str, Any]], str]
SignerLike = Union[Signer, SignFunction]


class LocalSigner:
    """
    Signer backed by a private key held in memory.

    Intended for scripts, tests and server-side wallets; browser or hardware
    wallets should provide their own ``sign_typed_data``.
    """

    def __init__(self, private_key: str):
        self.account: LocalAccount = Account.from_key(private_key)

    @property
    def address(self) -> str:
        return self.account.address

    def sign_typed_data(
        self,
        domain: Dict[str, Any],
        types: Dict[str, Any],
        message: Dict[str, Any]
    ) -> str:
        # eth-account derives the domain type from the domain data itself
        message_types = {name: fields for name, fields in types.items() if name != "EIP712Domain"}
        signed = self.account.sign_typed_data(
            domain_data=domain,
            message_types=message_types,
            message_data=message
        )
        return "0x" + bytes(signed.signature).hex()


def sign_payload(signer: SignerLike, payload: SignaturePayload, chain: Optional[str] = None) -> str:
    """
    Ask a signing capability to sign a payload.

    No timeout is applied: wallet prompts may legitimately wait on the user.

    Raises:
        SigningError: If the signer raises or returns an empty signature
    """
    try:
        if hasattr(signer, "sign_typed_data"):
            signature = signer.sign_typed_data(payload.domain, payload.types, payload.message)
        elif callable(signer):
            signature = signer(payload.domain, payload.types, payload.message)
        else:
            raise SigningError(
                f"Signer of type {type(signer).__name__} cannot sign typed data",
                chain=chain
            )
    except SigningError:
        raise
    except Exception as e:
        raise SigningError(f"Failed to sign transfer: {str(e)}", chain=chain) from e

    if not signature or not isinstance(signature, str):
        raise SigningError("Signer returned an empty signature", chain=chain)
    return signature
