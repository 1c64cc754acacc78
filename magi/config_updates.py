"""Parsing of system config update events from L1 logs."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional, Union


class InvalidConfigUpdate(ValueError):
    """Raised when a log is not a valid system config update."""

    def __init__(self, message: str = "invalid system config update") -> None:
        super().__init__(message)


@dataclass
class Log:
    """An L1 event log."""

    topics: list[bytes] = field(default_factory=list)
    data: bytes = b""
    block_number: Optional[int] = None
    address: Optional[bytes] = None


@dataclass(frozen=True)
class BatchSenderUpdate:
    """The batch sender address has been updated."""

    address: bytes


@dataclass(frozen=True)
class FeesUpdate:
    """The fee overhead and scalar have been updated."""

    overhead: int
    scalar: int


@dataclass(frozen=True)
class GasUpdate:
    """The gas limit has been updated."""

    gas: int


@dataclass(frozen=True)
class UnsafeBlockSignerUpdate:
    """The unsafe block signer has been updated."""

    address: bytes


SystemConfigUpdate = Union[BatchSenderUpdate, FeesUpdate, GasUpdate, UnsafeBlockSignerUpdate]


def _topic_low_u64(log: Log, index: int) -> int:
    try:
        topic = log.topics[index]
    except IndexError:
        raise InvalidConfigUpdate() from None
    return int.from_bytes(bytes(topic)[-8:], "big")


def _data_range(log: Log, start: int, end: int) -> bytes:
    if len(log.data) < end:
        raise InvalidConfigUpdate()
    return bytes(log.data[start:end])


def parse_config_update(log: Log) -> SystemConfigUpdate:
    """Interpret a ConfigUpdate log."""
    if _topic_low_u64(log, 1) != 0:
        raise InvalidConfigUpdate()

    update_type = _topic_low_u64(log, 2)
    if update_type == 0:
        return BatchSenderUpdate(_data_range(log, 76, 96))
    if update_type == 1:
        overhead = int.from_bytes(_data_range(log, 64, 96), "big")
        scalar = int.from_bytes(_data_range(log, 96, 128), "big")
        return FeesUpdate(overhead, scalar)
    if update_type == 2:
        return GasUpdate(int.from_bytes(_data_range(log, 64, 96), "big"))
    if update_type == 3:
        return UnsafeBlockSignerUpdate(_data_range(log, 76, 96))
    raise InvalidConfigUpdate()