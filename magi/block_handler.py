"""Validation and decoding of unsafe blocks received over p2p gossip."""

from __future__ import annotations

import abc
import enum
import hashlib
import hmac
import itertools
import logging
import queue
import time
from dataclasses import dataclass
from typing import Callable, Optional, Union

from Crypto.Hash import keccak

from magi.engine import ExecutionPayload
from magi.snappy import decompress

logger = logging.getLogger(__name__)

_SIGNATURE_LENGTH = 65
_HASH_LENGTH = 32
_ADDRESS_LENGTH = 20
_U64_MAX = 2**64 - 1

# secp256k1 curve parameters
_P = 0xFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFEFFFFFC2F
_N = 0xFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFEBAAEDCE6AF48A03BBFD25E8CD0364141
_G = (
    0x79BE667EF9DCBBAC55A06295CE870B07029BFCDB2DCE28D959F2815B16F81798,
    0x483ADA7726A3C4655DA4FBFC0E1108A8FD17B448A68554199C47D08FFB10D4B8,
)

_Point = Optional[tuple[int, int]]


def keccak256(data: bytes) -> bytes:
    """The Keccak-256 digest of ``data``."""
    return keccak.new(digest_bits=256, data=bytes(data)).digest()


def _point_add(a: _Point, b: _Point) -> _Point:
    if a is None:
        return b
    if b is None:
        return a
    (x1, y1), (x2, y2) = a, b
    if x1 == x2:
        if (y1 + y2) % _P == 0:
            return None
        slope = 3 * x1 * x1 * pow(2 * y1, -1, _P) % _P
    else:
        slope = (y2 - y1) * pow(x2 - x1, -1, _P) % _P
    x3 = (slope * slope - x1 - x2) % _P
    return x3, (slope * (x1 - x3) - y1) % _P


def _point_mul(scalar: int, point: _Point) -> _Point:
    result: _Point = None
    addend = point
    while scalar:
        if scalar & 1:
            result = _point_add(result, addend)
        addend = _point_add(addend, addend)
        scalar >>= 1
    return result


def _address_of(point: tuple[int, int]) -> bytes:
    x, y = point
    return keccak256(x.to_bytes(32, "big") + y.to_bytes(32, "big"))[12:]


def _check_hash(message_hash: bytes) -> bytes:
    message_hash = bytes(message_hash)
    if len(message_hash) != _HASH_LENGTH:
        raise ValueError(f"message hash must be {_HASH_LENGTH} bytes")
    return message_hash


def _deterministic_nonce(key_scalar: int, message_hash: bytes) -> int:
    """A nonce derived as described in RFC 6979 with HMAC-SHA256."""

    def mac(mac_key: bytes, data: bytes) -> bytes:
        return hmac.new(mac_key, data, hashlib.sha256).digest()

    x = key_scalar.to_bytes(32, "big")
    h1 = (int.from_bytes(message_hash, "big") % _N).to_bytes(32, "big")
    v = b"\x01" * 32
    k = b"\x00" * 32
    k = mac(k, v + b"\x00" + x + h1)
    v = mac(k, v)
    k = mac(k, v + b"\x01" + x + h1)
    v = mac(k, v)
    while True:
        v = mac(k, v)
        candidate = int.from_bytes(v, "big")
        if 1 <= candidate < _N:
            return candidate
        k = mac(k, v + b"\x00")
        v = mac(k, v)


def _recovery_id(v: int) -> int:
    if v in (0, 1):
        return v
    if v in (27, 28):
        return v - 27
    if v >= 35:
        return (v - 1) % 2
    raise ValueError(f"invalid recovery id in v={v}")


def _key_scalar(private_key: Union[int, bytes]) -> int:
    if isinstance(private_key, int):
        return private_key
    return int.from_bytes(bytes(private_key), byteorder="big")


@dataclass(frozen=True)
class Signature:
    """A recoverable secp256k1 signature (r, s, v)."""

    r: int
    s: int
    v: int

    @classmethod
    def from_bytes(cls, data: bytes) -> Signature:
        """Parse the 65 byte r || s || v form."""
        data = bytes(data)
        if len(data) != _SIGNATURE_LENGTH:
            raise ValueError(f"signature must be {_SIGNATURE_LENGTH} bytes, got {len(data)}")
        return cls(
            r=int.from_bytes(data[:32], "big"),
            s=int.from_bytes(data[32:64], "big"),
            v=data[64],
        )

    def __bytes__(self) -> bytes:
        return self.r.to_bytes(32, "big") + self.s.to_bytes(32, "big") + bytes([self.v])

    @classmethod
    def sign(cls, message_hash: bytes, private_key: Union[int, bytes]) -> Signature:
        """Sign a 32 byte hash; ``v`` is 27 or 28."""
        message_hash = _check_hash(message_hash)
        key_scalar = _key_scalar(private_key)
        if not 1 <= key_scalar < _N:
            raise ValueError("private key out of range")
        e = int.from_bytes(message_hash, "big") % _N
        nonce = _deterministic_nonce(key_scalar, message_hash)
        point = _point_mul(nonce, _G)
        assert point is not None
        r = point[0] % _N
        s = pow(nonce, -1, _N) * (e + r * key_scalar) % _N
        if r == 0 or s == 0:
            raise ValueError("could not produce a signature for this key and hash")
        recovery = point[1] & 1
        if s > _N // 2:
            s = _N - s
            recovery ^= 1
        return cls(r=r, s=s, v=27 + recovery)

    def recover(self, message_hash: bytes) -> bytes:
        """The 20 byte address of the key that signed ``message_hash``."""
        message_hash = _check_hash(message_hash)
        recovery = _recovery_id(self.v)
        if not (1 <= self.r < _N and 1 <= self.s < _N):
            raise ValueError("signature scalars out of range")
        x = self.r
        y_squared = (pow(x, 3, _P) + 7) % _P
        y = pow(y_squared, (_P + 1) // 4, _P)
        if y * y % _P != y_squared:
            raise ValueError("signature r is not on the curve")
        if y & 1 != recovery:
            y = _P - y
        e = int.from_bytes(message_hash, "big") % _N
        r_inv = pow(self.r, -1, _N)
        public = _point_add(
            _point_mul(self.s * r_inv % _N, (x, y)),
            _point_mul(-e * r_inv % _N, _G),
        )
        if public is None:
            raise ValueError("recovered the point at infinity")
        return _address_of(public)

    def verify(self, message_hash: bytes, address: bytes) -> bool:
        """Whether ``address`` signed ``message_hash``."""
        try:
            return self.recover(message_hash) == bytes(address)
        except ValueError:
            return False


def payload_signature_message(payload_hash: bytes, chain_id: int) -> bytes:
    """The hash the unsafe block signer signs for a payload hash on a chain."""
    domain = bytes(_HASH_LENGTH)
    return keccak256(domain + chain_id.to_bytes(_HASH_LENGTH, "big") + bytes(payload_hash))


@dataclass
class ExecutionPayloadEnvelope:
    """A gossiped payload with its signature and the hash it was signed over."""

    payload: ExecutionPayload
    signature: Signature
    hash: bytes
    parent_beacon_block_root: Optional[bytes] = None


# SSZ layout of the gossiped payload containers. A size of None marks a
# variable-size field stored as a 4 byte offset in the fixed part.
_PAYLOAD_HEAD: tuple[tuple[str, Optional[int]], ...] = (
    ("parent_hash", 32),
    ("fee_recipient", 20),
    ("state_root", 32),
    ("receipts_root", 32),
    ("logs_bloom", 256),
    ("prev_randao", 32),
    ("block_number", 8),
    ("gas_limit", 8),
    ("gas_used", 8),
    ("timestamp", 8),
    ("extra_data", None),
    ("base_fee_per_gas", 32),
    ("block_hash", 32),
    ("transactions", None),
)
_PAYLOAD_LAYOUTS = {
    1: _PAYLOAD_HEAD,
    2: _PAYLOAD_HEAD + (("withdrawals", None),),
    3: _PAYLOAD_HEAD + (("withdrawals", None), ("blob_gas_used", 8), ("excess_blob_gas", 8)),
}
_OFFSET_SIZE = 4
_MAX_EXTRA_DATA = 32
_MAX_TRANSACTIONS = 1048576
_MAX_TRANSACTION_SIZE = 1073741824
_WITHDRAWAL_SIZE = 8 + 8 + 20 + 8
_MAX_WITHDRAWALS = 16


def _u32(raw: bytes) -> int:
    return int.from_bytes(raw, "little")


def _u64(raw: bytes) -> int:
    return int.from_bytes(raw, "little")


def _uint256_as_u64(raw: bytes) -> int:
    value = int.from_bytes(raw, "little")
    if value > _U64_MAX:
        raise ValueError("base fee does not fit in 64 bits")
    return value


def _check_offsets(offsets: list[int], start: int, end: int) -> None:
    if offsets and offsets[0] != start:
        raise ValueError(f"ssz: first offset {offsets[0]} does not match {start}")
    for low, high in itertools.pairwise(offsets + [end]):
        if low > high:
            raise ValueError("ssz: offsets are out of order")


def _decode_byte_lists(raw: bytes) -> list[bytes]:
    if not raw:
        return []
    if len(raw) < _OFFSET_SIZE:
        raise ValueError("ssz: list too short")
    first = _u32(raw[:_OFFSET_SIZE])
    if first == 0 or first % _OFFSET_SIZE or first > len(raw):
        raise ValueError(f"ssz: invalid first list offset {first}")
    count = first // _OFFSET_SIZE
    if count > _MAX_TRANSACTIONS:
        raise ValueError("ssz: too many transactions")
    offsets = [_u32(raw[i : i + _OFFSET_SIZE]) for i in range(0, first, _OFFSET_SIZE)]
    _check_offsets(offsets, first, len(raw))
    items = [raw[low:high] for low, high in itertools.pairwise(offsets + [len(raw)])]
    if any(len(item) > _MAX_TRANSACTION_SIZE for item in items):
        raise ValueError("ssz: transaction too large")
    return items


def _decode_payload(data: bytes, version: int) -> ExecutionPayload:
    layout = _PAYLOAD_LAYOUTS[version]
    fixed_size = sum(_OFFSET_SIZE if size is None else size for _, size in layout)
    if len(data) < fixed_size:
        raise ValueError(f"ssz: payload of {len(data)} bytes is shorter than {fixed_size}")

    fixed: dict[str, bytes] = {}
    variable_names: list[str] = []
    offsets: list[int] = []
    pos = 0
    for name, size in layout:
        if size is None:
            variable_names.append(name)
            offsets.append(_u32(data[pos : pos + _OFFSET_SIZE]))
            pos += _OFFSET_SIZE
        else:
            fixed[name] = data[pos : pos + size]
            pos += size

    _check_offsets(offsets, fixed_size, len(data))
    variable = {
        name: data[low:high]
        for name, (low, high) in zip(variable_names, itertools.pairwise(offsets + [len(data)]))
    }

    extra_data = variable["extra_data"]
    if len(extra_data) > _MAX_EXTRA_DATA:
        raise ValueError("ssz: extra data too long")

    withdrawals: Optional[list] = None
    if "withdrawals" in variable:
        raw = variable["withdrawals"]
        if len(raw) % _WITHDRAWAL_SIZE or len(raw) // _WITHDRAWAL_SIZE > _MAX_WITHDRAWALS:
            raise ValueError("ssz: invalid withdrawals list")
        withdrawals = []

    return ExecutionPayload(
        parent_hash=fixed["parent_hash"],
        fee_recipient=fixed["fee_recipient"],
        state_root=fixed["state_root"],
        receipts_root=fixed["receipts_root"],
        logs_bloom=fixed["logs_bloom"],
        prev_randao=fixed["prev_randao"],
        block_number=_u64(fixed["block_number"]),
        gas_limit=_u64(fixed["gas_limit"]),
        gas_used=_u64(fixed["gas_used"]),
        timestamp=_u64(fixed["timestamp"]),
        extra_data=extra_data,
        base_fee_per_gas=_uint256_as_u64(fixed["base_fee_per_gas"]),
        block_hash=fixed["block_hash"],
        transactions=_decode_byte_lists(variable["transactions"]),
        withdrawals=withdrawals,
        blob_gas_used=_u64(fixed["blob_gas_used"]) if "blob_gas_used" in fixed else None,
        excess_blob_gas=_u64(fixed["excess_blob_gas"]) if "excess_blob_gas" in fixed else None,
    )


def decode_pre_ecotone_block_msg(data: bytes, version: int) -> ExecutionPayloadEnvelope:
    """Decode a v1 (pre-Canyon) or v2 (Canyon) gossip block message."""
    if version not in (1, 2):
        raise ValueError(f"unsupported pre-Ecotone payload version {version}")
    decompressed = decompress(data)
    if len(decompressed) < _SIGNATURE_LENGTH:
        raise ValueError("block message too short")
    signature = Signature.from_bytes(decompressed[:_SIGNATURE_LENGTH])
    block_data = decompressed[_SIGNATURE_LENGTH:]
    return ExecutionPayloadEnvelope(
        payload=_decode_payload(block_data, version),
        signature=signature,
        hash=keccak256(block_data),
    )


def decode_post_ecotone_block_msg(data: bytes) -> ExecutionPayloadEnvelope:
    """Decode a v3 gossip block message, which carries the parent beacon block root."""
    decompressed = decompress(data)
    header = _SIGNATURE_LENGTH + _HASH_LENGTH
    if len(decompressed) < header:
        raise ValueError("block message too short")
    signature = Signature.from_bytes(decompressed[:_SIGNATURE_LENGTH])
    block_data = decompressed[header:]
    return ExecutionPayloadEnvelope(
        payload=_decode_payload(block_data, 3),
        signature=signature,
        hash=keccak256(block_data),
        parent_beacon_block_root=decompressed[_SIGNATURE_LENGTH:header],
    )


@dataclass(frozen=True)
class Message:
    """A gossip message on a topic."""

    topic: str
    data: bytes


class MessageAcceptance(enum.Enum):
    """The validation verdict reported back to the gossip layer."""

    ACCEPT = "accept"
    REJECT = "reject"
    IGNORE = "ignore"


class Handler(abc.ABC):
    """Processes incoming gossip messages on the topics it declares."""

    @abc.abstractmethod
    def handle(self, msg: Message) -> MessageAcceptance:
        """Validate and process a message."""

    @abc.abstractmethod
    def topics(self) -> list[str]:
        """The topics this handler is interested in."""


class BlockHandler(Handler):
    """Checks gossiped unsafe blocks and queues the valid payloads on ``blocks``.

    ``unsafe_signer`` is the address allowed to sign blocks and may be
    reassigned at any time when the system config changes.
    """

    def __init__(self, chain_id: int, unsafe_signer: bytes) -> None:
        self.chain_id = chain_id
        self.unsafe_signer = bytes(unsafe_signer)
        self.blocks: queue.Queue[ExecutionPayload] = queue.Queue()
        self.blocks_v1_topic = f"/optimism/{chain_id}/0/blocks"
        self.blocks_v2_topic = f"/optimism/{chain_id}/1/blocks"
        self.blocks_v3_topic = f"/optimism/{chain_id}/2/blocks"

    def _decoder(self, topic: str) -> Optional[Callable[[bytes], ExecutionPayloadEnvelope]]:
        if topic == self.blocks_v1_topic:
            return lambda data: decode_pre_ecotone_block_msg(data, 1)
        if topic == self.blocks_v2_topic:
            return lambda data: decode_pre_ecotone_block_msg(data, 2)
        if topic == self.blocks_v3_topic:
            return decode_post_ecotone_block_msg
        return None

    def handle(self, msg: Message) -> MessageAcceptance:
        logger.debug("received block")
        decoder = self._decoder(msg.topic)
        if decoder is None:
            return MessageAcceptance.REJECT
        try:
            envelope = decoder(msg.data)
        except ValueError as err:
            logger.warning("unsafe block decode failed: %s", err)
            return MessageAcceptance.REJECT
        if not self.block_valid(envelope):
            logger.warning("invalid unsafe block")
            return MessageAcceptance.REJECT
        self.blocks.put(envelope.payload)
        return MessageAcceptance.ACCEPT

    def topics(self) -> list[str]:
        return [self.blocks_v1_topic, self.blocks_v2_topic]

    def block_valid(self, envelope: ExecutionPayloadEnvelope, now: Optional[int] = None) -> bool:
        """True if the block is at most a minute old, at most 5 s ahead, and signed correctly."""
        current = int(time.time()) if now is None else now
        timestamp = envelope.payload.timestamp
        time_valid = current - 60 <= timestamp <= current + 5
        message = payload_signature_message(envelope.hash, self.chain_id)
        sig_valid = envelope.signature.verify(message, self.unsafe_signer)
        return time_valid and sig_valid