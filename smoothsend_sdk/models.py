"""
Data models for the SmoothSend SDK.

Field names are snake_case; the relayer's camelCase wire names are kept as
aliases so responses validate directly and ``model_dump(by_alias=True)``
produces request bodies.
"""
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator


def _stringify_int(value: Any) -> Any:
    """Relayers are inconsistent about quoting integers; normalize to str."""
    if isinstance(value, int) and not isinstance(value, bool):
        return str(value)
    return value


class EventType(str, Enum):
    """Lifecycle events emitted for a single transfer attempt"""
    INITIATED = "initiated"
    SIGNED = "signed"
    SUBMITTED = "submitted"
    CONFIRMED = "confirmed"
    FAILED = "failed"


class TransferState(str, Enum):
    """States of the transfer state machine, in lifecycle order"""
    INITIATED = "initiated"
    QUOTE_OBTAINED = "quote_obtained"
    SIGNATURE_PREPARED = "signature_prepared"
    SIGNED = "signed"
    SUBMITTED = "submitted"
    CONFIRMED = "confirmed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (TransferState.CONFIRMED, TransferState.FAILED)


class TransferIntent(BaseModel):
    """
    A request to move ``amount`` base units of a token from one address to another.

    ``amount`` is a decimal integer string already scaled by the token's decimals.
    """
    model_config = ConfigDict(populate_by_name=True, frozen=True)

    from_address: str = Field(..., alias="from")
    to_address: str = Field(..., alias="to")
    token_symbol: str = Field(
        ...,
        alias="tokenSymbol",
        validation_alias=AliasChoices("tokenSymbol", "token", "token_symbol")
    )
    amount: str
    chain: str

    @field_validator("amount", mode="before")
    @classmethod
    def coerce_amount(cls, value: Any) -> Any:
        return _stringify_int(value)


class Quote(BaseModel):
    """Fee quote returned by the relayer for an intent"""
    model_config = ConfigDict(populate_by_name=True, frozen=True)

    amount: str
    relayer_fee: str = Field(..., alias="relayerFee")
    total: str
    fee_percentage: float = Field(0.0, alias="feePercentage")
    contract_address: str = Field(..., alias="contractAddress")

    @field_validator("amount", "relayer_fee", "total", mode="before")
    @classmethod
    def coerce_amounts(cls, value: Any) -> Any:
        return _stringify_int(value)


class SignaturePayload(BaseModel):
    """EIP-712 typed data to be signed for one transfer attempt"""
    model_config = ConfigDict(populate_by_name=True, frozen=True)

    domain: Dict[str, Any]
    types: Dict[str, Any]
    message: Dict[str, Any]
    primary_type: str = Field("Transfer", alias="primaryType")
    message_hash: Optional[str] = Field(None, alias="messageHash")

    def to_typed_data(self) -> Dict[str, Any]:
        """Return the payload in the ``{types, primaryType, domain, message}`` layout."""
        return {
            "types": self.types,
            "primaryType": self.primary_type,
            "domain": self.domain,
            "message": self.message,
        }


class TransferResult(BaseModel):
    """Terminal outcome of one transfer attempt"""
    model_config = ConfigDict(populate_by_name=True, frozen=True)

    success: bool
    transfer_id: Optional[str] = Field(None, alias="transferId")
    tx_hash: str = Field("", alias="txHash")
    block_number: Optional[int] = Field(None, alias="blockNumber")
    gas_used: Optional[str] = Field(None, alias="gasUsed")
    explorer_url: Optional[str] = Field(None, alias="explorerUrl")
    fee: Optional[str] = None
    execution_time: Optional[float] = Field(None, alias="executionTime")
    error: Optional[str] = None
    error_code: Optional[str] = Field(None, alias="errorCode")
    step: Optional[str] = None

    @field_validator("gas_used", "fee", "transfer_id", mode="before")
    @classmethod
    def coerce_numbers(cls, value: Any) -> Any:
        return _stringify_int(value)

    @classmethod
    def failure(cls, error: BaseException) -> "TransferResult":
        """Build a failure-shaped result from an exception."""
        return cls(
            success=False,
            tx_hash="",
            error=str(error),
            error_code=getattr(error, "code", None),
            step=getattr(error, "step", None)
        )


class TransferEvent(BaseModel):
    """Lifecycle notification published on the event bus"""
    model_config = ConfigDict(populate_by_name=True, frozen=True)

    type: EventType
    data: Dict[str, Any] = Field(default_factory=dict)
    timestamp: int
    chain: str
    attempt_id: Optional[str] = Field(None, alias="attemptId")


class TransferSubmission(BaseModel):
    """
    A fully signed transfer, ready for relay.

    The nonce, deadline and signature are a matched triple: the signature is
    only valid for exactly this nonce and deadline.
    """
    model_config = ConfigDict(populate_by_name=True, frozen=True)

    intent: TransferIntent
    relayer_fee: str = Field(..., alias="relayerFee")
    nonce: str
    deadline: int
    signature: str
    permit_data: Optional[Dict[str, Any]] = Field(None, alias="permitData")

    @field_validator("relayer_fee", "nonce", mode="before")
    @classmethod
    def coerce_fields(cls, value: Any) -> Any:
        return _stringify_int(value)

    def is_complete(self) -> bool:
        """Whether every value needed for on-chain execution is present."""
        return bool(
            self.relayer_fee and self.nonce and self.signature and self.deadline > 0
        )

    def to_wire(self) -> Dict[str, Any]:
        """Request body fields shared by ``/relay-transfer`` and ``/relay-batch-transfer``."""
        body = {
            "from": self.intent.from_address,
            "to": self.intent.to_address,
            "tokenSymbol": self.intent.token_symbol,
            "amount": self.intent.amount,
            "relayerFee": self.relayer_fee,
            "nonce": self.nonce,
            "deadline": self.deadline,
            "signature": self.signature,
        }
        if self.permit_data:
            body["permitData"] = self.permit_data
        return body


class BatchTransferRequest(BaseModel):
    """
    Several transfers on one chain.

    ``submissions`` must be supplied, fully signed, for the atomic batch
    endpoint to be used; otherwise only the sequential path runs.
    """
    model_config = ConfigDict(populate_by_name=True, frozen=True)

    chain: str
    transfers: List[TransferIntent] = Field(default_factory=list)
    submissions: Optional[List[TransferSubmission]] = None

    def intents(self) -> List[TransferIntent]:
        """Intents covered by this batch, taken from the submissions if no transfers were listed."""
        if self.transfers:
            return list(self.transfers)
        return [s.intent for s in self.submissions or []]


class ChainInfo(BaseModel):
    model_config = ConfigDict(populate_by_name=True, frozen=True)

    name: str
    display_name: str = Field("", alias="displayName")
    chain_id: int = Field(..., alias="chainId")
    explorer_url: str = Field("", alias="explorerUrl")
    tokens: List[str] = Field(default_factory=list)


class TokenInfo(BaseModel):
    model_config = ConfigDict(populate_by_name=True, frozen=True)

    address: str
    symbol: str
    name: str = ""
    decimals: int


class GasEstimate(BaseModel):
    model_config = ConfigDict(populate_by_name=True, frozen=True)

    chain_name: str = Field(..., alias="chainName")
    gas_estimate: str = Field(..., alias="gasEstimate")
    gas_price: str = Field(..., alias="gasPrice")
    estimated_cost: str = Field(..., alias="estimatedCost")
    transfer_count: int = Field(..., alias="transferCount")

    @field_validator("gas_estimate", "gas_price", "estimated_cost", mode="before")
    @classmethod
    def coerce_numbers(cls, value: Any) -> Any:
        return _stringify_int(value)


class HealthStatus(BaseModel):
    model_config = ConfigDict(populate_by_name=True, frozen=True)

    status: str
    timestamp: str
    version: str


class TransferStatus(BaseModel):
    model_config = ConfigDict(populate_by_name=True, frozen=True)

    chain_name: str = Field(..., alias="chainName")
    transfer_hash: str = Field(..., alias="transferHash")
    executed: bool


class ApiResponse(BaseModel):
    """
    Normalized relayer response envelope.

    ``code`` and ``status_code`` are filled in by the HTTP layer and never
    come from the wire.
    """
    model_config = ConfigDict(populate_by_name=True)

    success: bool = False
    data: Optional[Any] = None
    error: Optional[str] = None
    details: Optional[Any] = None
    request_id: Optional[str] = Field(None, alias="requestId")
    code: Optional[str] = None
    status_code: Optional[int] = None
