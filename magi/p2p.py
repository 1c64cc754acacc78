"""Peer addressing, the opstack discovery record and gossip message ids."""

from __future__ import annotations

import hashlib
import ipaddress
from dataclasses import dataclass
from typing import Optional, Union

from magi.snappy import SnappyError, decompress

_U64_MAX = 2**64 - 1
_MAX_VARINT_BYTES = 10
_MESSAGE_ID_LENGTH = 20
_DOMAIN_VALID_SNAPPY = b"\x01\x00\x00\x00"
_DOMAIN_INVALID_SNAPPY = b"\x00\x00\x00\x00"

BOOTNODES = (
    "enr:-J64QBbwPjPLZ6IOOToOLsSjtFUjjzN66qmBZdUexpO32Klrc458Q24kbty2PdRaLacHM5z-cZQr8mjeQu3pik6jPSOGAYYFIqBfgmlkgnY0gmlwhDaRWFWHb3BzdGFja4SzlAUAiXNlY3AyNTZrMaECmeSnJh7zjKrDSPoNMGXoopeDF4hhpj5I0OsQUUt4u8uDdGNwgiQGg3VkcIIkBg",
    "enr:-J64QAlTCDa188Hl1OGv5_2Kj2nWCsvxMVc_rEnLtw7RPFbOfqUOV6khXT_PH6cC603I2ynY31rSQ8sI9gLeJbfFGaWGAYYFIrpdgmlkgnY0gmlwhANWgzCHb3BzdGFja4SzlAUAiXNlY3AyNTZrMaECkySjcg-2v0uWAsFsZZu43qNHppGr2D5F913Qqs5jDCGDdGNwgiQGg3VkcIIkBg",
    "enr:-J24QGEzN4mJgLWNTUNwj7riVJ2ZjRLenOFccl2dbRFxHHOCCZx8SXWzgf-sLzrGs6QgqSFCvGXVgGPBkRkfOWlT1-iGAYe6Cu93gmlkgnY0gmlwhCJBEUSHb3BzdGFja4OkAwCJc2VjcDI1NmsxoQLuYIwaYOHg3CUQhCkS-RsSHmUd1b_x93-9yQ5ItS6udIN0Y3CCIyuDdWRwgiMr",
)
"""Default discovery bootnodes: two Base nodes and one Optimism node."""


def _check_port(port: int) -> int:
    if isinstance(port, bool) or not isinstance(port, int) or not 0 <= port <= 0xFFFF:
        raise ValueError(f"invalid port {port!r}")
    return port


@dataclass(frozen=True)
class NetworkAddress:
    """An IPv4 address and a port."""

    ip: ipaddress.IPv4Address
    port: int

    def __post_init__(self) -> None:
        if not isinstance(self.ip, ipaddress.IPv4Address):
            raise ValueError(f"expected an IPv4 address, got {self.ip!r}")
        _check_port(self.port)

    @classmethod
    def from_socket_addr(
        cls,
        host: Union[str, ipaddress.IPv4Address, ipaddress.IPv6Address],
        port: int,
    ) -> NetworkAddress:
        """Build from a socket address; IPv6 is not supported."""
        ip = ipaddress.ip_address(host)
        if isinstance(ip, ipaddress.IPv6Address):
            raise ValueError("ipv6 not supported")
        return cls(ip=ip, port=_check_port(port))

    def to_multiaddr(self) -> str:
        """The textual multiaddr, ``/ip4/<ip>/tcp/<port>``."""
        return f"/ip4/{self.ip}/tcp/{self.port}"

    def to_socket_addr(self) -> tuple[str, int]:
        """A ``(host, port)`` pair usable with the socket module."""
        return str(self.ip), self.port


@dataclass(frozen=True)
class Peer:
    """A discovered peer."""

    addr: NetworkAddress

    def to_multiaddr(self) -> str:
        return self.addr.to_multiaddr()


def _encode_varint(value: int) -> bytes:
    out = bytearray()
    while value >= 0x80:
        out.append((value & 0x7F) | 0x80)
        value >>= 7
    out.append(value)
    return bytes(out)


def _decode_varint_u64(data: bytes) -> tuple[int, bytes]:
    value = 0
    for index, byte in enumerate(data[:_MAX_VARINT_BYTES]):
        value |= (byte & 0x7F) << (7 * index)
        if not byte & 0x80:
            if byte == 0 and index > 0:
                raise ValueError("varint: not minimal")
            if value > _U64_MAX:
                raise ValueError("varint: overflow")
            return value, data[index + 1 :]
    if len(data) >= _MAX_VARINT_BYTES:
        raise ValueError("varint: overflow")
    raise ValueError("varint: insufficient bytes")


def _rlp_encode_bytes(payload: bytes) -> bytes:
    if len(payload) == 1 and payload[0] < 0x80:
        return payload
    if len(payload) <= 55:
        return bytes([0x80 + len(payload)]) + payload
    length = len(payload).to_bytes((len(payload).bit_length() + 7) // 8, "big")
    return bytes([0xB7 + len(length)]) + length + payload


def _rlp_decode_bytes(data: bytes) -> bytes:
    if not data:
        raise ValueError("rlp: empty input")
    first = data[0]
    if first < 0x80:
        payload, consumed = data[:1], 1
    elif first <= 0xB7:
        size = first - 0x80
        payload = data[1 : 1 + size]
        if len(payload) != size:
            raise ValueError("rlp: input too short")
        if size == 1 and payload[0] < 0x80:
            raise ValueError("rlp: non-canonical single byte")
        consumed = 1 + size
    elif first <= 0xBF:
        width = first - 0xB7
        length_bytes = data[1 : 1 + width]
        if len(length_bytes) != width:
            raise ValueError("rlp: input too short")
        if length_bytes[0] == 0:
            raise ValueError("rlp: leading zero in length")
        size = int.from_bytes(length_bytes, "big")
        if size <= 55:
            raise ValueError("rlp: non-canonical length")
        payload = data[1 + width : 1 + width + size]
        if len(payload) != size:
            raise ValueError("rlp: input too short")
        consumed = 1 + width + size
    else:
        raise ValueError("rlp: expected a byte string, got a list")
    if consumed != len(data):
        raise ValueError("rlp: trailing bytes")
    return payload


@dataclass(frozen=True)
class OpStackEnrData:
    """The ``opstack`` discovery record entry: chain id and version."""

    chain_id: int
    version: int = 0

    def __post_init__(self) -> None:
        for name in ("chain_id", "version"):
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, int) or not 0 <= value <= _U64_MAX:
                raise ValueError(f"{name} must be an unsigned 64 bit integer")

    @classmethod
    def from_rlp(cls, value: bytes) -> OpStackEnrData:
        """Parse the RLP encoded varint pair."""
        payload = _rlp_decode_bytes(bytes(value))
        chain_id, rest = _decode_varint_u64(payload)
        version, _ = _decode_varint_u64(rest)
        return cls(chain_id=chain_id, version=version)

    def to_rlp(self) -> bytes:
        """RLP encode the chain id and version varints as one byte string."""
        return _rlp_encode_bytes(_encode_varint(self.chain_id) + _encode_varint(self.version))


def is_valid_opstack(data: Optional[bytes], chain_id: int) -> bool:
    """Whether a raw ``opstack`` entry names this chain with version 0."""
    if data is None:
        return False
    try:
        opstack = OpStackEnrData.from_rlp(data)
    except ValueError:
        return False
    return opstack.chain_id == chain_id and opstack.version == 0


def compute_message_id(data: bytes) -> bytes:
    """The 20 byte gossipsub message id of a message's data."""
    data = bytes(data)
    try:
        content = _DOMAIN_VALID_SNAPPY + decompress(data)
    except SnappyError:
        content = _DOMAIN_INVALID_SNAPPY + data
    return hashlib.sha256(content).digest()[:_MESSAGE_ID_LENGTH]