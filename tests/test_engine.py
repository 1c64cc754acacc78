import json

import pytest

from magi.engine import (
    Engine,
    ExecutionPayload,
    ForkChoiceUpdate,
    ForkchoiceState,
    MockEngine,
    PayloadAttributes,
    PayloadStatus,
    Status,
)

HEAD = bytes(range(32))
OTHER = bytes(range(32, 64))
RECIPIENT = bytes(range(100, 120))


def _payload():
    return ExecutionPayload(
        parent_hash=OTHER,
        fee_recipient=RECIPIENT,
        block_hash=HEAD,
        block_number=8453214,
        base_fee_per_gas=50,
        gas_limit=30_000_000,
        timestamp=1_700_000_000,
        logs_bloom=bytes(256),
        extra_data=b"\x01\x02",
        transactions=[b"\x7e\x01", b"\x02\xff\x00"],
        withdrawals=[],
        blob_gas_used=0,
        excess_blob_gas=131072,
    )


def _mock():
    return MockEngine(
        forkchoice_updated_payloads_res=ForkChoiceUpdate(PayloadStatus(Status.VALID), 7),
        forkchoice_updated_res=ForkChoiceUpdate(PayloadStatus(Status.SYNCING), None),
        new_payload_res=PayloadStatus(Status.ACCEPTED, HEAD),
        get_payload_res=_payload(),
    )


def test_from_single_head_uses_head_everywhere():
    state = ForkchoiceState.from_single_head(HEAD)
    assert state.head_block_hash == HEAD
    assert state.safe_block_hash == HEAD
    assert state.finalized_block_hash == HEAD


def test_forkchoice_state_round_trip():
    state = ForkchoiceState(HEAD, OTHER, HEAD)
    data = state.to_json()
    assert data["headBlockHash"] == "0x" + HEAD.hex()
    assert ForkchoiceState.from_json(json.loads(json.dumps(data))) == state


def test_forkchoice_state_rejects_short_hash():
    with pytest.raises(ValueError):
        ForkchoiceState.from_single_head(b"\x00" * 31)


def test_status_wire_names():
    status = PayloadStatus(Status.INVALID_BLOCK_HASH, None, "bad hash")
    data = status.to_json()
    assert data["status"] == "INVALID_BLOCK_HASH"
    assert data["latestValidHash"] is None
    assert PayloadStatus.from_json(data) == status


def test_payload_status_validation_error_defaults_to_none():
    status = PayloadStatus.from_json({"status": "VALID", "latestValidHash": "0x" + HEAD.hex()})
    assert status.validation_error is None
    assert status.latest_valid_hash == HEAD


def test_payload_status_unknown_status():
    with pytest.raises(ValueError):
        PayloadStatus.from_json({"status": "valid", "latestValidHash": None})


def test_fork_choice_update_round_trip():
    update = ForkChoiceUpdate(PayloadStatus(Status.VALID, OTHER), 12345)
    data = update.to_json()
    assert int(data["payloadId"], 16) == 12345
    assert ForkChoiceUpdate.from_json(data) == update


def test_fork_choice_update_missing_status():
    with pytest.raises(ValueError):
        ForkChoiceUpdate.from_json({"payloadId": None})


def test_execution_payload_round_trip():
    payload = _payload()
    restored = ExecutionPayload.from_json(json.loads(json.dumps(payload.to_json())))
    assert restored == payload


def test_execution_payload_default_skips_optional_fields():
    data = ExecutionPayload().to_json()
    assert "withdrawals" not in data
    assert "blobGasUsed" not in data
    assert "excessBlobGas" not in data
    assert data["blockNumber"] == "0x0"
    assert ExecutionPayload.from_json(data) == ExecutionPayload()


def test_execution_payload_quantities_are_hex():
    data = _payload().to_json()
    assert int(data["blockNumber"], 16) == 8453214
    assert int(data["baseFeePerGas"], 16) == 50
    assert data["transactions"] == ["0x" + b"\x7e\x01".hex(), "0x" + b"\x02\xff\x00".hex()]


def test_execution_payload_rejects_oversized_quantity():
    data = ExecutionPayload().to_json()
    data["gasUsed"] = hex(2**64)
    with pytest.raises(ValueError):
        ExecutionPayload.from_json(data)


def test_execution_payload_rejects_bad_address_length():
    data = ExecutionPayload().to_json()
    data["feeRecipient"] = "0x" + HEAD.hex()
    with pytest.raises(ValueError):
        ExecutionPayload.from_json(data)


def test_payload_attributes_skip_derivation_fields():
    attrs = PayloadAttributes(
        timestamp=100,
        prev_randao=HEAD,
        suggested_fee_recipient=RECIPIENT,
        transactions=[b"\x01"],
        no_tx_pool=True,
        gas_limit=30_000_000,
        withdrawals=[],
        epoch=object(),
        l1_inclusion_block=42,
        seq_number=3,
    )
    data = attrs.to_json()
    assert "epoch" not in data
    assert "seqNumber" not in data
    restored = PayloadAttributes.from_json(data)
    assert restored.l1_inclusion_block is None
    assert restored.seq_number is None
    assert restored.transactions == [b"\x01"]
    assert restored.no_tx_pool is True
    assert restored.timestamp == 100


def test_payload_attributes_none_transactions_serialized_as_null():
    data = PayloadAttributes().to_json()
    assert data["transactions"] is None
    assert data["withdrawals"] is None
    assert PayloadAttributes.from_json(data) == PayloadAttributes()


def test_engine_is_abstract():
    with pytest.raises(TypeError):
        Engine()


@pytest.mark.asyncio
async def test_mock_engine_forkchoice_with_attributes():
    engine = _mock()
    result = await engine.forkchoice_updated(
        ForkchoiceState.from_single_head(HEAD), PayloadAttributes()
    )
    assert result == engine.forkchoice_updated_payloads_res
    assert result.payload_id == 7


@pytest.mark.asyncio
async def test_mock_engine_forkchoice_without_attributes():
    engine = _mock()
    result = await engine.forkchoice_updated(ForkchoiceState.from_single_head(HEAD), None)
    assert result.payload_status.status is Status.SYNCING
    assert result.payload_id is None


@pytest.mark.asyncio
async def test_mock_engine_new_and_get_payload_return_copies():
    engine = _mock()
    status = await engine.new_payload(_payload())
    assert status == PayloadStatus(Status.ACCEPTED, HEAD)
    payload = await engine.get_payload(7)
    assert payload == _payload()
    payload.transactions.append(b"\x00")
    again = await engine.get_payload(7)
    assert again.transactions == [b"\x7e\x01", b"\x02\xff\x00"]