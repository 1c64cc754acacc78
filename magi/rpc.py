"""Output root computation and the ``optimism_outputAtBlock`` response type."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Mapping

from magi.block_handler import keccak256

_HASH_LENGTH = 32
OUTPUT_ROOT_VERSION = bytes(_HASH_LENGTH)


def _check_hash(name: str, value: bytes) -> bytes:
    value = bytes(value)
    if len(value) != _HASH_LENGTH:
        raise ValueError(f"{name} must be {_HASH_LENGTH} bytes, got {len(value)}")
    return value


def _parse_hash(data: Mapping[str, Any], key: str) -> bytes:
    try:
        value = data[key]
    except KeyError:
        raise ValueError(f"missing field `{key}`") from None
    if not isinstance(value, str):
        raise ValueError(f"{key}: expected a hex string")
    digits = value[2:] if value.startswith(("0x", "0X")) else value
    try:
        raw = bytes.fromhex(digits)
    except ValueError as exc:
        raise ValueError(f"{key}: invalid hex string") from exc
    return _check_hash(key, raw)


def compute_l2_output_root(state_root: bytes, storage_root: bytes, block_hash: bytes) -> bytes:
    """The version 0 L2 output root of a block."""
    return keccak256(
        OUTPUT_ROOT_VERSION
        + _check_hash("state_root", state_root)
        + _check_hash("storage_root", storage_root)
        + _check_hash("block_hash", block_hash)
    )


@dataclass(frozen=True)
class OutputRootResponse:
    """The result of ``optimism_outputAtBlock``."""

    output_root: bytes
    version: bytes
    state_root: bytes
    withdrawal_storage_root: bytes

    def __post_init__(self) -> None:
        for name in ("output_root", "version", "state_root", "withdrawal_storage_root"):
            _check_hash(name, getattr(self, name))

    def to_json(self) -> dict[str, str]:
        return {
            "outputRoot": "0x" + self.output_root.hex(),
            "version": "0x" + self.version.hex(),
            "stateRoot": "0x" + self.state_root.hex(),
            "withdrawalStorageRoot": "0x" + self.withdrawal_storage_root.hex(),
        }

    @classmethod
    def from_json(cls, data: Mapping[str, Any]) -> OutputRootResponse:
        return cls(
            output_root=_parse_hash(data, "outputRoot"),
            version=_parse_hash(data, "version"),
            state_root=_parse_hash(data, "stateRoot"),
            withdrawal_storage_root=_parse_hash(data, "withdrawalStorageRoot"),
        )