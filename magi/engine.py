"""L2 Engine API types, the engine interface and a mock engine with preset responses."""

from __future__ import annotations

import abc
import copy
import enum
from dataclasses import dataclass, field
from typing import Any, Mapping, Optional

DEFAULT_AUTH_PORT = 8551
"""The default engine api authentication port."""

STATIC_ID = 1
"""The ID of the static payload."""

JSONRPC_VERSION = "2.0"

ENGINE_NEW_PAYLOAD_V2 = "engine_newPayloadV2"
ENGINE_NEW_PAYLOAD_TIMEOUT = 8.0

ENGINE_GET_PAYLOAD_V2 = "engine_getPayloadV2"
ENGINE_GET_PAYLOAD_TIMEOUT = 2.0

ENGINE_FORKCHOICE_UPDATED_V2 = "engine_forkchoiceUpdatedV2"
ENGINE_FORKCHOICE_UPDATED_TIMEOUT = 8.0

HASH_LENGTH = 32
ADDRESS_LENGTH = 20
ZERO_HASH = bytes(HASH_LENGTH)
ZERO_ADDRESS = bytes(ADDRESS_LENGTH)

_U64_MAX = 2**64 - 1


def _require(data: Mapping[str, Any], key: str) -> Any:
    try:
        return data[key]
    except KeyError:
        raise ValueError(f"missing field `{key}`") from None


def _hex_bytes(value: bytes) -> str:
    return "0x" + value.hex()


def _parse_bytes(value: Any, size: Optional[int] = None) -> bytes:
    if not isinstance(value, str):
        raise ValueError(f"expected a hex string, got {value!r}")
    digits = value[2:] if value.startswith(("0x", "0X")) else value
    try:
        raw = bytes.fromhex(digits)
    except ValueError as exc:
        raise ValueError(f"invalid hex string {value!r}") from exc
    if size is not None and len(raw) != size:
        raise ValueError(f"expected {size} bytes, got {len(raw)}")
    return raw


def _check_u64(value: int) -> int:
    if not 0 <= value <= _U64_MAX:
        raise ValueError(f"value {value} does not fit in 64 bits")
    return value


def _hex_quantity(value: int) -> str:
    return hex(_check_u64(value))


def _parse_quantity(value: Any) -> int:
    if isinstance(value, bool):
        raise ValueError(f"expected a quantity, got {value!r}")
    if isinstance(value, int):
        return _check_u64(value)
    if not isinstance(value, str) or not value.startswith(("0x", "0X")) or len(value) < 3:
        raise ValueError(f"expected a hex quantity, got {value!r}")
    try:
        number = int(value[2:], 16)
    except ValueError as exc:
        raise ValueError(f"invalid hex quantity {value!r}") from exc
    return _check_u64(number)


def _check_length(name: str, value: bytes, size: int) -> None:
    if len(value) != size:
        raise ValueError(f"{name} must be {size} bytes, got {len(value)}")


def _parse_withdrawals(value: Any) -> Optional[list]:
    if value is None:
        return None
    if not isinstance(value, list) or any(item is not None for item in value):
        raise ValueError("withdrawals must be a list of nulls")
    return list(value)


def _parse_transactions(value: Any) -> list[bytes]:
    if not isinstance(value, list):
        raise ValueError("transactions must be a list")
    return [_parse_bytes(tx) for tx in value]


class Status(enum.Enum):
    """The status of a payload."""

    VALID = "VALID"
    INVALID = "INVALID"
    SYNCING = "SYNCING"
    ACCEPTED = "ACCEPTED"
    INVALID_BLOCK_HASH = "INVALID_BLOCK_HASH"


@dataclass
class PayloadStatus:
    """The status of a payload, with the latest valid hash and any validation error."""

    status: Status
    latest_valid_hash: Optional[bytes] = None
    validation_error: Optional[str] = None

    def __post_init__(self) -> None:
        if self.latest_valid_hash is not None:
            _check_length("latest_valid_hash", self.latest_valid_hash, HASH_LENGTH)

    def to_json(self) -> dict[str, Any]:
        return {
            "status": self.status.value,
            "latestValidHash": (
                None if self.latest_valid_hash is None else _hex_bytes(self.latest_valid_hash)
            ),
            "validationError": self.validation_error,
        }

    @classmethod
    def from_json(cls, data: Mapping[str, Any]) -> PayloadStatus:
        try:
            status = Status(_require(data, "status"))
        except ValueError as exc:
            raise ValueError(f"unknown payload status: {exc}") from exc
        latest = data.get("latestValidHash")
        error = data.get("validationError")
        if error is not None and not isinstance(error, str):
            raise ValueError("validationError must be a string")
        return cls(
            status=status,
            latest_valid_hash=None if latest is None else _parse_bytes(latest, HASH_LENGTH),
            validation_error=error,
        )


@dataclass
class ForkChoiceUpdate:
    """The result of a fork choice update."""

    payload_status: PayloadStatus
    payload_id: Optional[int] = None

    def to_json(self) -> dict[str, Any]:
        return {
            "payloadStatus": self.payload_status.to_json(),
            "payloadId": None if self.payload_id is None else _hex_quantity(self.payload_id),
        }

    @classmethod
    def from_json(cls, data: Mapping[str, Any]) -> ForkChoiceUpdate:
        payload_id = data.get("payloadId")
        return cls(
            payload_status=PayloadStatus.from_json(_require(data, "payloadStatus")),
            payload_id=None if payload_id is None else _parse_quantity(payload_id),
        )


@dataclass(frozen=True)
class ForkchoiceState:
    """The head, safe and finalized block hashes of the canonical chain."""

    head_block_hash: bytes
    safe_block_hash: bytes
    finalized_block_hash: bytes

    def __post_init__(self) -> None:
        _check_length("head_block_hash", self.head_block_hash, HASH_LENGTH)
        _check_length("safe_block_hash", self.safe_block_hash, HASH_LENGTH)
        _check_length("finalized_block_hash", self.finalized_block_hash, HASH_LENGTH)

    @classmethod
    def from_single_head(cls, head_block_hash: bytes) -> ForkchoiceState:
        """A state whose safe and finalized hashes equal the head hash."""
        return cls(head_block_hash, head_block_hash, head_block_hash)

    def to_json(self) -> dict[str, Any]:
        return {
            "headBlockHash": _hex_bytes(self.head_block_hash),
            "safeBlockHash": _hex_bytes(self.safe_block_hash),
            "finalizedBlockHash": _hex_bytes(self.finalized_block_hash),
        }

    @classmethod
    def from_json(cls, data: Mapping[str, Any]) -> ForkchoiceState:
        return cls(
            head_block_hash=_parse_bytes(_require(data, "headBlockHash"), HASH_LENGTH),
            safe_block_hash=_parse_bytes(_require(data, "safeBlockHash"), HASH_LENGTH),
            finalized_block_hash=_parse_bytes(
                _require(data, "finalizedBlockHash"), HASH_LENGTH
            ),
        )


@dataclass
class ExecutionPayload:
    """An L2 execution payload as exchanged with the engine."""

    parent_hash: bytes = ZERO_HASH
    fee_recipient: bytes = ZERO_ADDRESS
    state_root: bytes = ZERO_HASH
    receipts_root: bytes = ZERO_HASH
    logs_bloom: bytes = b""
    prev_randao: bytes = ZERO_HASH
    block_number: int = 0
    gas_limit: int = 0
    gas_used: int = 0
    timestamp: int = 0
    extra_data: bytes = b""
    base_fee_per_gas: int = 0
    block_hash: bytes = ZERO_HASH
    transactions: list[bytes] = field(default_factory=list)
    withdrawals: Optional[list] = None
    blob_gas_used: Optional[int] = None
    excess_blob_gas: Optional[int] = None

    def __post_init__(self) -> None:
        for name in ("parent_hash", "state_root", "receipts_root", "prev_randao", "block_hash"):
            _check_length(name, getattr(self, name), HASH_LENGTH)
        _check_length("fee_recipient", self.fee_recipient, ADDRESS_LENGTH)

    def to_json(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "parentHash": _hex_bytes(self.parent_hash),
            "feeRecipient": _hex_bytes(self.fee_recipient),
            "stateRoot": _hex_bytes(self.state_root),
            "receiptsRoot": _hex_bytes(self.receipts_root),
            "logsBloom": _hex_bytes(self.logs_bloom),
            "prevRandao": _hex_bytes(self.prev_randao),
            "blockNumber": _hex_quantity(self.block_number),
            "gasLimit": _hex_quantity(self.gas_limit),
            "gasUsed": _hex_quantity(self.gas_used),
            "timestamp": _hex_quantity(self.timestamp),
            "extraData": _hex_bytes(self.extra_data),
            "baseFeePerGas": _hex_quantity(self.base_fee_per_gas),
            "blockHash": _hex_bytes(self.block_hash),
            "transactions": [_hex_bytes(tx) for tx in self.transactions],
        }
        if self.withdrawals is not None:
            data["withdrawals"] = list(self.withdrawals)
        if self.blob_gas_used is not None:
            data["blobGasUsed"] = _hex_quantity(self.blob_gas_used)
        if self.excess_blob_gas is not None:
            data["excessBlobGas"] = _hex_quantity(self.excess_blob_gas)
        return data

    @classmethod
    def from_json(cls, data: Mapping[str, Any]) -> ExecutionPayload:
        blob_gas_used = data.get("blobGasUsed")
        excess_blob_gas = data.get("excessBlobGas")
        return cls(
            parent_hash=_parse_bytes(_require(data, "parentHash"), HASH_LENGTH),
            fee_recipient=_parse_bytes(_require(data, "feeRecipient"), ADDRESS_LENGTH),
            state_root=_parse_bytes(_require(data, "stateRoot"), HASH_LENGTH),
            receipts_root=_parse_bytes(_require(data, "receiptsRoot"), HASH_LENGTH),
            logs_bloom=_parse_bytes(_require(data, "logsBloom")),
            prev_randao=_parse_bytes(_require(data, "prevRandao"), HASH_LENGTH),
            block_number=_parse_quantity(_require(data, "blockNumber")),
            gas_limit=_parse_quantity(_require(data, "gasLimit")),
            gas_used=_parse_quantity(_require(data, "gasUsed")),
            timestamp=_parse_quantity(_require(data, "timestamp")),
            extra_data=_parse_bytes(_require(data, "extraData")),
            base_fee_per_gas=_parse_quantity(_require(data, "baseFeePerGas")),
            block_hash=_parse_bytes(_require(data, "blockHash"), HASH_LENGTH),
            transactions=_parse_transactions(_require(data, "transactions")),
            withdrawals=_parse_withdrawals(data.get("withdrawals")),
            blob_gas_used=None if blob_gas_used is None else _parse_quantity(blob_gas_used),
            excess_blob_gas=None if excess_blob_gas is None else _parse_quantity(excess_blob_gas),
        )


@dataclass
class PayloadAttributes:
    """L2 extended payload attributes.

    ``epoch``, ``l1_inclusion_block`` and ``seq_number`` come from derivation and
    are never sent to or read from the engine.
    """

    timestamp: int = 0
    prev_randao: bytes = ZERO_HASH
    suggested_fee_recipient: bytes = ZERO_ADDRESS
    transactions: Optional[list[bytes]] = None
    no_tx_pool: bool = False
    gas_limit: int = 0
    withdrawals: Optional[list] = None
    epoch: Any = None
    l1_inclusion_block: Optional[int] = None
    seq_number: Optional[int] = None

    def __post_init__(self) -> None:
        _check_length("prev_randao", self.prev_randao, HASH_LENGTH)
        _check_length("suggested_fee_recipient", self.suggested_fee_recipient, ADDRESS_LENGTH)

    def to_json(self) -> dict[str, Any]:
        return {
            "timestamp": _hex_quantity(self.timestamp),
            "prevRandao": _hex_bytes(self.prev_randao),
            "suggestedFeeRecipient": _hex_bytes(self.suggested_fee_recipient),
            "transactions": (
                None
                if self.transactions is None
                else [_hex_bytes(tx) for tx in self.transactions]
            ),
            "noTxPool": self.no_tx_pool,
            "gasLimit": _hex_quantity(self.gas_limit),
            "withdrawals": None if self.withdrawals is None else list(self.withdrawals),
        }

    @classmethod
    def from_json(cls, data: Mapping[str, Any]) -> PayloadAttributes:
        transactions = data.get("transactions")
        no_tx_pool = _require(data, "noTxPool")
        if not isinstance(no_tx_pool, bool):
            raise ValueError("noTxPool must be a boolean")
        return cls(
            timestamp=_parse_quantity(_require(data, "timestamp")),
            prev_randao=_parse_bytes(_require(data, "prevRandao"), HASH_LENGTH),
            suggested_fee_recipient=_parse_bytes(
                _require(data, "suggestedFeeRecipient"), ADDRESS_LENGTH
            ),
            transactions=None if transactions is None else _parse_transactions(transactions),
            no_tx_pool=no_tx_pool,
            gas_limit=_parse_quantity(_require(data, "gasLimit")),
            withdrawals=_parse_withdrawals(data.get("withdrawals")),
        )


class Engine(abc.ABC):
    """The methods a consensus client uses to drive an execution engine."""

    @abc.abstractmethod
    async def forkchoice_updated(
        self,
        forkchoice_state: ForkchoiceState,
        payload_attributes: Optional[PayloadAttributes],
    ) -> ForkChoiceUpdate:
        """Update the canonical chain and optionally start building a payload."""

    @abc.abstractmethod
    async def new_payload(self, execution_payload: ExecutionPayload) -> PayloadStatus:
        """Apply an L2 block to the engine state."""

    @abc.abstractmethod
    async def get_payload(self, payload_id: int) -> ExecutionPayload:
        """Retrieve a payload previously prepared by forkchoice_updated."""


@dataclass
class MockEngine(Engine):
    """An engine that returns preset responses."""

    forkchoice_updated_payloads_res: ForkChoiceUpdate
    forkchoice_updated_res: ForkChoiceUpdate
    new_payload_res: PayloadStatus
    get_payload_res: ExecutionPayload

    async def forkchoice_updated(
        self,
        forkchoice_state: ForkchoiceState,
        payload_attributes: Optional[PayloadAttributes],
    ) -> ForkChoiceUpdate:
        if payload_attributes is not None:
            return copy.deepcopy(self.forkchoice_updated_payloads_res)
        return copy.deepcopy(self.forkchoice_updated_res)

    async def new_payload(self, execution_payload: ExecutionPayload) -> PayloadStatus:
        return copy.deepcopy(self.new_payload_res)

    async def get_payload(self, payload_id: int) -> ExecutionPayload:
        return copy.deepcopy(self.get_payload_res)