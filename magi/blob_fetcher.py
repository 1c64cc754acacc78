"""Fetching blob sidecars and chain parameters from an L1 beacon node."""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any, Mapping, Optional

import httpx

_U64_MAX = 2**64 - 1
_UNSIGNED = re.compile(r"\+?[0-9]+")


def _parse_u64(value: Any, what: str) -> int:
    if not isinstance(value, str):
        raise ValueError(f"{what}: expected string")
    if not _UNSIGNED.fullmatch(value):
        raise ValueError(f"{what}: invalid unsigned integer {value!r}")
    number = int(value)
    if number > _U64_MAX:
        raise ValueError(f"{what}: {value} does not fit in 64 bits")
    return number


def _parse_hex_blob(value: Any) -> bytes:
    if not isinstance(value, str):
        raise ValueError("blob: expected string")
    while value.startswith("0x"):
        value = value[2:]
    try:
        return bytes.fromhex(value)
    except ValueError as exc:
        raise ValueError(f"blob: invalid hex data: {exc}") from exc


@dataclass(frozen=True)
class BlobSidecar:
    """A beacon chain blob sidecar; commitments and proofs are not kept."""

    index: int
    blob: bytes

    @classmethod
    def from_json(cls, data: Mapping[str, Any]) -> BlobSidecar:
        if not isinstance(data, Mapping):
            raise ValueError("blob sidecar: expected an object")
        for key in ("index", "blob"):
            if key not in data:
                raise ValueError(f"blob sidecar: missing field `{key}`")
        return cls(index=_parse_u64(data["index"], "index"), blob=_parse_hex_blob(data["blob"]))


class BlobFetcher:
    """Fetches blob data from an L1 beacon node.

    The genesis timestamp and slot duration are fetched on the first call to
    :meth:`get_slot_from_time` and cached afterwards.
    """

    def __init__(self, l1_beacon_url: str, client: Optional[httpx.AsyncClient] = None) -> None:
        self.l1_beacon_url = l1_beacon_url
        self._owns_client = client is None
        self._client = client if client is not None else httpx.AsyncClient()
        self._genesis_timestamp = 0
        self._seconds_per_slot = 0

    async def __aenter__(self) -> BlobFetcher:
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        """Close the HTTP client if this fetcher created it."""
        if self._owns_client:
            await self._client.aclose()

    async def _get_data(self, path: str) -> Any:
        response = await self._client.get(f"{self.l1_beacon_url}{path}")
        response.raise_for_status()
        body = response.json()
        if not isinstance(body, dict) or "data" not in body:
            raise ValueError("No data in response")
        return body["data"]

    async def get_slot_from_time(self, time: int) -> int:
        """The beacon slot at which the given timestamp falls."""
        genesis_timestamp = self._genesis_timestamp
        seconds_per_slot = self._seconds_per_slot

        if genesis_timestamp == 0:
            genesis_timestamp = await self.fetch_beacon_genesis_timestamp()
            spec = await self.fetch_beacon_spec()
            if not isinstance(spec, dict) or "SECONDS_PER_SLOT" not in spec:
                raise ValueError("No seconds per slot in beacon spec")
            seconds_per_slot = _parse_u64(spec["SECONDS_PER_SLOT"], "Seconds per slot")
            if seconds_per_slot == 0:
                raise ValueError("Seconds per slot is 0; cannot calculate slot number")
            self._genesis_timestamp = genesis_timestamp
            self._seconds_per_slot = seconds_per_slot

        if time < genesis_timestamp:
            raise ValueError("Time is before genesis; cannot calculate slot number")

        return (time - genesis_timestamp) // seconds_per_slot

    async def fetch_blob_sidecars(self, slot: int) -> list[BlobSidecar]:
        """Fetch the blob sidecars for a slot."""
        data = await self._get_data(f"/eth/v1/beacon/blob_sidecars/{slot}")
        if not isinstance(data, list):
            raise ValueError("blob sidecars: expected a list")
        return [BlobSidecar.from_json(item) for item in data]

    async def fetch_beacon_genesis_timestamp(self) -> int:
        """Fetch the genesis timestamp of the beacon chain."""
        data = await self._get_data("/eth/v1/beacon/genesis")
        if not isinstance(data, dict) or "genesis_time" not in data:
            raise ValueError("No time")
        return _parse_u64(data["genesis_time"], "genesis time")

    async def fetch_beacon_spec(self) -> Any:
        """Fetch the beacon chain spec."""
        return await self._get_data("/eth/v1/config/spec")