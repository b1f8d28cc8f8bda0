"""
Chain policy table.

Everything chain-specific (wire name, address format, EIP-712 domain, token
addresses) lives here, keyed by the chain identifier callers put in a
TransferIntent. Supporting a new chain means registering a ChainConfig, not
touching the orchestrator or the relay client.
"""
import re
import threading
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Pattern

from .exceptions import UnsupportedChainError

EVM_ADDRESS_PATTERN = re.compile(r"^0x[0-9a-fA-F]{40}$")


@dataclass(frozen=True)
class ChainConfig:
    """
    Policy for one chain.

    Attributes:
        key: Identifier used by callers (e.g. "avalanche")
        wire_name: Identifier the relayer expects in ``chainName``
        chain_id: Numeric chain id used in the EIP-712 domain
        address_pattern: Regex a well-formed address must fully match
        domain_name: EIP-712 domain name of the transfer contract
        domain_version: EIP-712 domain version of the transfer contract
        tokens: Token symbol -> token contract address
    """
    key: str
    wire_name: str
    chain_id: int
    address_pattern: Pattern[str] = EVM_ADDRESS_PATTERN
    domain_name: str = "SmoothSend"
    domain_version: str = "1"
    tokens: Dict[str, str] = field(default_factory=dict)

    def is_valid_address(self, address: str) -> bool:
        return isinstance(address, str) and self.address_pattern.fullmatch(address) is not None

    def token_address(self, symbol: str) -> Optional[str]:
        """Look up a token address by symbol (case-insensitive)."""
        if symbol in self.tokens:
            return self.tokens[symbol]
        wanted = symbol.upper()
        for token_symbol, address in self.tokens.items():
            if token_symbol.upper() == wanted:
                return address
        return None


AVALANCHE = ChainConfig(
    key="avalanche",
    wire_name="avalanche-fuji",
    chain_id=43113,
    tokens={
        "USDC": "0x5425890298aed601595a70AB815c96711a31Bc65",
    },
)

DEFAULT_CHAIN = AVALANCHE.key

_registry: Dict[str, ChainConfig] = {AVALANCHE.key: AVALANCHE}
_registry_lock = threading.RLock()


def register_chain(config: ChainConfig, replace: bool = False) -> None:
    """
    Add a chain to the policy table.

    Raises:
        ValueError: If the key is already registered and replace is False
    """
    with _registry_lock:
        if config.key in _registry and not replace:
            raise ValueError(f"Chain '{config.key}' is already registered")
        _registry[config.key] = config


def unregister_chain(key: str) -> None:
    with _registry_lock:
        _registry.pop(key, None)


def get_chain(key: str) -> ChainConfig:
    """
    Return the policy for a chain key.

    Raises:
        UnsupportedChainError: If the chain is not registered
    """
    with _registry_lock:
        config = _registry.get(key)
    if config is None:
        raise UnsupportedChainError(key)
    return config


def wire_name(key: str) -> str:
    """Map a caller-facing chain key to the relayer's chain name."""
    return get_chain(key).wire_name


def supported_chains() -> List[str]:
    with _registry_lock:
        return sorted(_registry)
