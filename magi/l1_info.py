"""Data tied to a specific L1 block."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Mapping, Optional

_HASH_LENGTH = 32


def _quantity(value: Any) -> int:
    if isinstance(value, bool):
        raise ValueError(f"expected a quantity, got {value!r}")
    if isinstance(value, int):
        if value < 0:
            raise ValueError(f"negative quantity {value}")
        return value
    if isinstance(value, str) and value.startswith(("0x", "0X")) and len(value) > 2:
        try:
            return int(value[2:], 16)
        except ValueError as exc:
            raise ValueError(f"invalid hex quantity {value!r}") from exc
    raise ValueError(f"expected a hex quantity, got {value!r}")


def _hash(value: Any) -> bytes:
    if isinstance(value, (bytes, bytearray)):
        raw = bytes(value)
    elif isinstance(value, str):
        digits = value[2:] if value.startswith(("0x", "0X")) else value
        try:
            raw = bytes.fromhex(digits)
        except ValueError as exc:
            raise ValueError(f"invalid hash {value!r}") from exc
    else:
        raise ValueError(f"expected a hash, got {value!r}")
    if len(raw) != _HASH_LENGTH:
        raise ValueError(f"expected {_HASH_LENGTH} byte hash, got {len(raw)}")
    return raw


def _present(block: Mapping[str, Any], key: str, message: str) -> Any:
    value = block.get(key)
    if value is None:
        raise ValueError(message)
    return value


@dataclass(frozen=True)
class L1BlockInfo:
    """Header data of an L1 block."""

    number: int
    hash: bytes
    timestamp: int
    base_fee: int
    mix_hash: bytes
    parent_beacon_block_root: Optional[bytes] = None

    @classmethod
    def from_block(cls, block: Mapping[str, Any]) -> L1BlockInfo:
        """Build from a JSON-RPC block object."""
        number = _quantity(_present(block, "number", "block not included"))
        block_hash = _hash(_present(block, "hash", "block not included"))
        timestamp = _quantity(_present(block, "timestamp", "missing timestamp"))
        base_fee = _quantity(_present(block, "baseFeePerGas", "block is pre london"))
        mix_hash = _hash(_present(block, "mixHash", "block not included"))
        root = block.get("parentBeaconBlockRoot")
        return cls(
            number=number,
            hash=block_hash,
            timestamp=timestamp,
            base_fee=base_fee,
            mix_hash=mix_hash,
            parent_beacon_block_root=None if root is None else _hash(root),
        )


@dataclass
class L1Info:
    """An L1 block together with the deposits, batcher data and config it carries."""

    block_info: L1BlockInfo
    system_config: Any
    user_deposits: list = field(default_factory=list)
    batcher_transactions: list[bytes] = field(default_factory=list)
    finalized: bool = False