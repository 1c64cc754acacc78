"""Raw (unframed) snappy compression and decompression."""

from __future__ import annotations

_MAX_LENGTH = 0xFFFFFFFF
_MAX_VARINT_BYTES = 5
_MIN_MATCH = 4
_MAX_COPY_CHUNK = 64
_MAX_OFFSET = 0xFFFF

_LITERAL = 0
_COPY_1 = 1
_COPY_2 = 2
_COPY_4 = 3


class SnappyError(ValueError):
    """Raised when data is not valid raw snappy."""


def _read_varint(data: bytes) -> tuple[int, int]:
    result = 0
    for index, byte in enumerate(data[:_MAX_VARINT_BYTES]):
        result |= (byte & 0x7F) << (7 * index)
        if not byte & 0x80:
            if result > _MAX_LENGTH:
                raise SnappyError(f"decompressed length {result} is too large")
            return result, index + 1
    raise SnappyError("invalid length header")


def _encode_varint(value: int) -> bytes:
    out = bytearray()
    while value >= 0x80:
        out.append((value & 0x7F) | 0x80)
        value >>= 7
    out.append(value)
    return bytes(out)


def decompress(data: bytes) -> bytes:
    """Decompress a raw snappy block."""
    data = bytes(data)
    length, pos = _read_varint(data)
    end = len(data)
    out = bytearray()

    def take(count: int) -> bytes:
        nonlocal pos
        if pos + count > end:
            raise SnappyError("unexpected end of input")
        chunk = data[pos : pos + count]
        pos += count
        return chunk

    while pos < end:
        tag = take(1)[0]
        kind = tag & 0b11

        if kind == _LITERAL:
            size = tag >> 2
            if size >= 60:
                size = int.from_bytes(take(size - 59), "little")
            size += 1
            if len(out) + size > length:
                raise SnappyError("literal overflows the declared length")
            out += take(size)
            continue

        if kind == _COPY_1:
            size = _MIN_MATCH + ((tag >> 2) & 0b111)
            offset = ((tag >> 5) << 8) | take(1)[0]
        elif kind == _COPY_2:
            size = 1 + (tag >> 2)
            offset = int.from_bytes(take(2), "little")
        else:
            size = 1 + (tag >> 2)
            offset = int.from_bytes(take(4), "little")

        if offset == 0 or offset > len(out):
            raise SnappyError(f"invalid copy offset {offset}")
        if len(out) + size > length:
            raise SnappyError("copy overflows the declared length")
        pattern = bytes(out[len(out) - offset :])
        out += (pattern * (size // offset + 1))[:size]

    if len(out) != length:
        raise SnappyError(f"expected {length} bytes, decompressed {len(out)}")
    return bytes(out)


def _emit_literal(out: bytearray, literal: bytes) -> None:
    if not literal:
        return
    n = len(literal) - 1
    if n < 60:
        out.append(n << 2)
    else:
        width = (n.bit_length() + 7) // 8
        out.append((59 + width) << 2)
        out += n.to_bytes(width, "little")
    out += literal


def _emit_copy(out: bytearray, offset: int, length: int) -> None:
    while length > 0:
        chunk = min(length, _MAX_COPY_CHUNK)
        if _MIN_MATCH <= chunk <= 11 and offset < 2048:
            out.append(_COPY_1 | ((chunk - _MIN_MATCH) << 2) | ((offset >> 8) << 5))
            out.append(offset & 0xFF)
        else:
            out.append(_COPY_2 | ((chunk - 1) << 2))
            out += offset.to_bytes(2, "little")
        length -= chunk


def compress(data: bytes) -> bytes:
    """Compress data into a raw snappy block."""
    data = bytes(data)
    if len(data) > _MAX_LENGTH:
        raise SnappyError("input is too large")
    out = bytearray(_encode_varint(len(data)))
    table: dict[bytes, int] = {}
    size = len(data)
    pos = 0
    literal_start = 0

    while pos + _MIN_MATCH <= size:
        key = data[pos : pos + _MIN_MATCH]
        candidate = table.get(key)
        table[key] = pos
        if candidate is None or pos - candidate > _MAX_OFFSET:
            pos += 1
            continue
        length = _MIN_MATCH
        while pos + length < size and data[candidate + length] == data[pos + length]:
            length += 1
        _emit_literal(out, data[literal_start:pos])
        _emit_copy(out, pos - candidate, length)
        pos += length
        literal_start = pos

    _emit_literal(out, data[literal_start:])
    return bytes(out)