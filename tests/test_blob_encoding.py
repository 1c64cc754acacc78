import pytest

from magi.blob_encoding import (
    ENCODING_VERSION,
    MAX_BLOB_DATA_SIZE,
    ROUNDS,
    BlobDecodeError,
    decode_blob_data,
)

BLOB_SIZE = 4096 * 32


def encode_blob(data: bytes) -> bytearray:
    """Pack data into a blob, the inverse of decoding."""
    padded = data + bytes(MAX_BLOB_DATA_SIZE - len(data))
    blob = bytearray(BLOB_SIZE)
    element = 0
    pos = 0

    def put(first: int, chunk: bytes) -> None:
        nonlocal element
        blob[element * 32] = first
        blob[element * 32 + 1 : element * 32 + 32] = chunk
        element += 1

    for rnd in range(ROUNDS):
        if rnd > 0 and pos >= len(data):
            break
        if rnd == 0:
            chunk = bytes([ENCODING_VERSION]) + len(data).to_bytes(3, "big") + padded[:27]
            pos = 27
        else:
            chunk = padded[pos : pos + 31]
            pos += 31
        x = padded[pos]
        pos += 1
        put(x & 0x3F, chunk)
        chunk = padded[pos : pos + 31]
        pos += 31
        y = padded[pos]
        pos += 1
        put((y & 0x0F) | ((x & 0xC0) >> 2), chunk)
        chunk = padded[pos : pos + 31]
        pos += 31
        z = padded[pos]
        pos += 1
        put(z & 0x3F, chunk)
        chunk = padded[pos : pos + 31]
        pos += 31
        put(((z & 0xC0) >> 2) | ((y & 0xF0) >> 4), chunk)
    return blob


def _sample(length: int) -> bytes:
    return bytes((i * 131 + 7) % 256 for i in range(length))


@pytest.mark.parametrize("length", [0, 1, 27, 28, 123, 124, 500, 4000, MAX_BLOB_DATA_SIZE])
def test_round_trip(length):
    data = _sample(length)
    assert decode_blob_data(encode_blob(data)) == data


def test_all_high_bits_round_trip():
    data = b"\xff" * 1000
    assert decode_blob_data(encode_blob(data)) == data


def test_empty_blob_decodes_to_nothing():
    assert decode_blob_data(bytes(BLOB_SIZE)) == b""


def test_invalid_version():
    blob = encode_blob(b"abc")
    blob[1] = 1
    with pytest.raises(BlobDecodeError, match="Invalid encoding version"):
        decode_blob_data(blob)


def test_length_exceeds_maximum():
    blob = encode_blob(b"abc")
    blob[2:5] = (MAX_BLOB_DATA_SIZE + 1).to_bytes(3, "big")
    with pytest.raises(BlobDecodeError, match="exceeds maximum"):
        decode_blob_data(blob)


def test_invalid_field_element():
    blob = encode_blob(b"abc")
    blob[32] = 0x40
    with pytest.raises(BlobDecodeError, match="Invalid field element"):
        decode_blob_data(blob)


def test_extraneous_output_data():
    blob = encode_blob(b"\x01" * 10)
    blob[5 + 20] = 1
    with pytest.raises(BlobDecodeError, match="Extraneous data in field element"):
        decode_blob_data(blob)


def test_extraneous_input_data():
    blob = encode_blob(b"\x01" * 10)
    blob[-1] = 1
    with pytest.raises(BlobDecodeError, match="Extraneous data in input position"):
        decode_blob_data(blob)


def test_truncated_blob():
    blob = encode_blob(b"\x01" * 10)[:64]
    with pytest.raises(BlobDecodeError):
        decode_blob_data(blob)


def test_blob_shorter_than_header():
    with pytest.raises(BlobDecodeError):
        decode_blob_data(b"\x00" * 4)


def test_error_is_value_error():
    with pytest.raises(ValueError):
        decode_blob_data(b"\x00\x05" + bytes(BLOB_SIZE - 2))