# magi

Building blocks for an OP stack rollup node, usable as a library.

## What is inside

- `magi.engine` — L2 Engine API types: `ExecutionPayload`, `PayloadAttributes`,
  `ForkchoiceState`, `ForkChoiceUpdate`, `PayloadStatus` and the `Status` enum.
  Each has `to_json()` and `from_json()` for the camelCase, hex-encoded wire form.
  `Engine` is the abstract async interface (`forkchoice_updated`, `new_payload`,
  `get_payload`); `MockEngine` answers every call with a copy of a preset response.
  Method names and timeouts of the Engine API are kept as module constants
  (`ENGINE_NEW_PAYLOAD_V2`, `ENGINE_FORKCHOICE_UPDATED_TIMEOUT`, ...).
- `magi.version` — `Version.build()` describes the running build; `str()` of it
  gives `magi0.1.0-dev`, or `magi0.1.0-release` when Python runs with `-O`.
- `magi.blob_encoding` — `decode_blob_data` turns an EIP-4844 blob back into the
  batcher data it carries, raising `BlobDecodeError` on malformed input.
- `magi.blob_fetcher` — `BlobFetcher` talks to an L1 beacon node over HTTP (httpx)
  to map timestamps to slots (`get_slot_from_time`, which caches the genesis time
  and slot duration after the first call) and to fetch `BlobSidecar`s.
- `magi.config_updates` — `parse_config_update` reads a `Log` of the system config
  contract's `ConfigUpdate` event into a `BatchSenderUpdate`, `FeesUpdate`,
  `GasUpdate` or `UnsafeBlockSignerUpdate`, raising `InvalidConfigUpdate` otherwise.
- `magi.l1_info` — `L1BlockInfo.from_block` reads the header fields of a JSON-RPC
  block object; `L1Info` bundles a block with its deposits, batcher data and
  system config.
- `magi.telemetry` — `init(verbose, logs_dir, logs_rotation)` configures the `magi`
  logger with a coloured console formatter (`AnsiFormatter`) and, when a directory
  is given, a rotating log file (`Rotation`: never, daily, hourly, minutely). The
  console level can be set with the `MAGI_LOG` environment variable
  (`trace`, `debug`, `info`, `warn`, `error`).
- `magi.snappy` — raw (unframed) snappy `compress` / `decompress`.
- `magi.block_handler` — decoding and validating unsafe blocks received over p2p
  gossip: `decode_pre_ecotone_block_msg`, `decode_post_ecotone_block_msg`,
  secp256k1 `Signature` (`from_bytes`, `sign`, `recover`, `verify`),
  `payload_signature_message`, and `BlockHandler`, which accepts correctly signed,
  recent blocks and puts their payloads on its `blocks` queue.
- `magi.p2p` — `NetworkAddress` and `Peer` (IPv4 only), the `opstack` discovery
  entry `OpStackEnrData` with `is_valid_opstack`, the default `BOOTNODES`, and
  `compute_message_id` for gossipsub message ids.
- `magi.rpc` — `compute_l2_output_root` and the `OutputRootResponse` type.

## What it does not do

This package has no command and no running node. It does not watch the L1 chain,
derive L2 blocks, drive an execution client, run a JSON-RPC server, or open p2p
connections; it provides the types, encodings and checks such pieces are built from.

## Installing

```
pip install .
```

For running the tests:

```
pip install ".[test]"
pytest
```

## Examples

Decoding a blob:

```python
from magi.blob_encoding import BlobDecodeError, decode_blob_data

try:
    data = decode_blob_data(blob_bytes)  # the 131072 byte blob from a sidecar
except BlobDecodeError as err:
    print("bad blob:", err)
```

Fetching blobs from a beacon node:

```python
import asyncio
from magi.blob_fetcher import BlobFetcher

async def main():
    async with BlobFetcher("http://localhost:5052") as fetcher:
        slot = await fetcher.get_slot_from_time(1_700_000_000)
        sidecars = await fetcher.fetch_blob_sidecars(slot)
        print(slot, [s.index for s in sidecars])

asyncio.run(main())
```

Building a fork choice state:

```python
from magi.engine import ForkchoiceState

state = ForkchoiceState.from_single_head(bytes.fromhex("11" * 32))
print(state.to_json())
```

Computing an output root:

```python
from magi.rpc import compute_l2_output_root

root = compute_l2_output_root(state_root, storage_root, block_hash)  # 32 bytes each
```

Setting up logging:

```python
from magi import telemetry

telemetry.init(verbose=True, logs_dir="logs", logs_rotation="hourly")
```