"""Decoding of batcher data packed into blob field elements."""

from __future__ import annotations

MAX_BLOB_DATA_SIZE = (4 * 31 + 3) * 1024 - 4
ENCODING_VERSION = 0
VERSION_OFFSET = 1
ROUNDS = 1024

_FIELD_ELEMENT_SIZE = 32
_HEADER_DATA_SIZE = 27


class BlobDecodeError(ValueError):
    """Raised when a blob does not hold validly encoded data."""


class _Decoder:
    """Walks the blob one field element at a time, filling the output buffer."""

    def __init__(self, blob: bytes) -> None:
        self.blob = blob
        self.output = bytearray(MAX_BLOB_DATA_SIZE)
        self.input_pos = _FIELD_ELEMENT_SIZE
        self.output_pos = _HEADER_DATA_SIZE + 1

    def field_element(self) -> int:
        start = self.input_pos
        end = start + _FIELD_ELEMENT_SIZE
        if end > len(self.blob):
            raise BlobDecodeError(
                f"Blob decoding: unexpected end of blob at input position {start}"
            )
        first = self.blob[start]
        # The two highest bits of each field element's first byte are always zero.
        if first & 0b1100_0000:
            raise BlobDecodeError("Blob decoding: Invalid field element")
        self.output[self.output_pos : self.output_pos + 31] = self.blob[start + 1 : end]
        self.output_pos += _FIELD_ELEMENT_SIZE
        self.input_pos += _FIELD_ELEMENT_SIZE
        return first

    def reassemble(self, encoded: list[int]) -> None:
        a, b, c, d = encoded
        self.output_pos -= 1
        x = (a & 0b0011_1111) | ((b & 0b0011_0000) << 2)
        y = (b & 0b0000_1111) | ((d & 0b0000_1111) << 4)
        z = (c & 0b0011_1111) | ((d & 0b0011_0000) << 2)
        self.output[self.output_pos - 32] = z
        self.output[self.output_pos - 64] = y
        self.output[self.output_pos - 96] = x


def decode_blob_data(blob: bytes) -> bytes:
    """Decode the data carried by a blob."""
    blob = bytes(blob)
    if len(blob) < _FIELD_ELEMENT_SIZE:
        raise BlobDecodeError(f"Blob decoding: blob too short ({len(blob)} bytes)")

    version = blob[VERSION_OFFSET]
    if version != ENCODING_VERSION:
        raise BlobDecodeError(
            f"Blob decoding: Invalid encoding version: want {ENCODING_VERSION}, got {version}"
        )

    output_len = int.from_bytes(blob[2:5], "big")
    if output_len > MAX_BLOB_DATA_SIZE:
        raise BlobDecodeError(
            f"Blob decoding: Invalid length: {output_len} exceeds maximum {MAX_BLOB_DATA_SIZE}"
        )

    decoder = _Decoder(blob)
    decoder.output[0:_HEADER_DATA_SIZE] = blob[5:_FIELD_ELEMENT_SIZE]

    decoder.reassemble([blob[0]] + [decoder.field_element() for _ in range(3)])
    for _ in range(1, ROUNDS):
        if decoder.output_pos >= output_len:
            break
        decoder.reassemble([decoder.field_element() for _ in range(4)])

    if any(decoder.output[output_len:]):
        raise BlobDecodeError(
            f"Blob decoding: Extraneous data in field element {decoder.output_pos // 32}"
        )

    if any(blob[decoder.input_pos :]):
        raise BlobDecodeError(
            f"Blob decoding: Extraneous data in input position {decoder.input_pos}"
        )

    return bytes(decoder.output[:output_len])