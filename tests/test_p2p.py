import base64
import ipaddress

import pytest

from magi.p2p import (
    BOOTNODES,
    NetworkAddress,
    OpStackEnrData,
    Peer,
    compute_message_id,
    is_valid_opstack,
)
from magi.snappy import compress


def _opstack_entry(enr: str) -> bytes:
    body = enr[len("enr:") :]
    raw = base64.urlsafe_b64decode(body + "=" * (-len(body) % 4))
    start = raw.index(b"opstack") + len(b"opstack")
    size = raw[start] - 0x80
    return raw[start : start + 1 + size]


def test_network_address_multiaddr():
    addr = NetworkAddress.from_socket_addr("127.0.0.1", 9222)
    assert addr.to_multiaddr() == "/ip4/127.0.0.1/tcp/9222"


def test_network_address_socket_round_trip():
    addr = NetworkAddress.from_socket_addr("10.1.2.3", 30303)
    host, port = addr.to_socket_addr()
    assert NetworkAddress.from_socket_addr(host, port) == addr
    assert addr.ip == ipaddress.IPv4Address("10.1.2.3")


def test_ipv6_rejected():
    with pytest.raises(ValueError, match="ipv6 not supported"):
        NetworkAddress.from_socket_addr("::1", 9222)


def test_invalid_port_rejected():
    with pytest.raises(ValueError):
        NetworkAddress.from_socket_addr("127.0.0.1", 70000)


def test_peer_multiaddr_matches_address():
    addr = NetworkAddress.from_socket_addr("192.168.0.5", 9000)
    assert Peer(addr).to_multiaddr() == addr.to_multiaddr()


@pytest.mark.parametrize("chain_id,version", [(0, 0), (10, 0), (8453, 0), (2**64 - 1, 3)])
def test_opstack_round_trip(chain_id, version):
    data = OpStackEnrData(chain_id, version)
    assert OpStackEnrData.from_rlp(data.to_rlp()) == data


def test_opstack_from_bootnode_records():
    base = OpStackEnrData.from_rlp(_opstack_entry(BOOTNODES[0]))
    optimism = OpStackEnrData.from_rlp(_opstack_entry(BOOTNODES[2]))
    assert base == OpStackEnrData(84531, 0)
    assert optimism == OpStackEnrData(420, 0)


def test_opstack_encoding_matches_bootnode():
    entry = _opstack_entry(BOOTNODES[2])
    assert OpStackEnrData(420, 0).to_rlp() == entry


def test_is_valid_opstack():
    entry = OpStackEnrData(10, 0).to_rlp()
    assert is_valid_opstack(entry, 10) is True
    assert is_valid_opstack(entry, 11) is False
    assert is_valid_opstack(OpStackEnrData(10, 1).to_rlp(), 10) is False
    assert is_valid_opstack(None, 10) is False
    assert is_valid_opstack(b"\xc0", 10) is False


def test_from_rlp_rejects_list_and_truncation():
    with pytest.raises(ValueError):
        OpStackEnrData.from_rlp(b"\xc2\x0a\x00")
    with pytest.raises(ValueError):
        OpStackEnrData.from_rlp(b"\x83\x0a")


def test_from_rlp_rejects_missing_version():
    with pytest.raises(ValueError):
        OpStackEnrData.from_rlp(OpStackEnrData(10, 0).to_rlp()[:-1] + b"")[:0]


def test_message_id_length_and_determinism():
    data = compress(b"block payload " * 10)
    first = compute_message_id(data)
    assert len(first) == 20
    assert compute_message_id(data) == first


def test_message_id_depends_on_decompressed_content():
    payload = b"hello gossip"
    literal = bytes([len(payload), (len(payload) - 1) << 2]) + payload
    assert compute_message_id(literal) == compute_message_id(compress(payload))


def test_message_id_invalid_snappy_differs_from_valid():
    payload = b"\xff\xff\xff\xff\xff\xff"
    assert len(compute_message_id(payload)) == 20
    assert compute_message_id(payload) != compute_message_id(compress(payload))