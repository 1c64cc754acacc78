import httpx
import pytest
import respx

from magi.blob_fetcher import BlobFetcher, BlobSidecar

URL = "http://beacon.test"


def _mock_chain(router, genesis="1000", seconds="12"):
    genesis_route = router.get("/eth/v1/beacon/genesis").respond(
        json={"data": {"genesis_time": genesis}}
    )
    spec_route = router.get("/eth/v1/config/spec").respond(
        json={"data": {"SECONDS_PER_SLOT": seconds}}
    )
    return genesis_route, spec_route


@pytest.mark.asyncio
async def test_slot_from_time_is_cached():
    with respx.mock(base_url=URL, assert_all_called=False) as router:
        genesis_route, spec_route = _mock_chain(router)
        async with BlobFetcher(URL) as fetcher:
            assert await fetcher.get_slot_from_time(1120) == 10
            assert await fetcher.get_slot_from_time(1000) == 0
            assert await fetcher.get_slot_from_time(1011) == 0
        assert genesis_route.call_count == 1
        assert spec_route.call_count == 1


@pytest.mark.asyncio
async def test_time_before_genesis():
    with respx.mock(base_url=URL, assert_all_called=False) as router:
        _mock_chain(router)
        async with BlobFetcher(URL) as fetcher:
            with pytest.raises(ValueError, match="before genesis"):
                await fetcher.get_slot_from_time(999)


@pytest.mark.asyncio
async def test_zero_seconds_per_slot():
    with respx.mock(base_url=URL, assert_all_called=False) as router:
        _mock_chain(router, seconds="0")
        async with BlobFetcher(URL) as fetcher:
            with pytest.raises(ValueError, match="Seconds per slot is 0"):
                await fetcher.get_slot_from_time(2000)


@pytest.mark.asyncio
async def test_missing_seconds_per_slot():
    with respx.mock(base_url=URL, assert_all_called=False) as router:
        router.get("/eth/v1/beacon/genesis").respond(json={"data": {"genesis_time": "5"}})
        router.get("/eth/v1/config/spec").respond(json={"data": {}})
        async with BlobFetcher(URL) as fetcher:
            with pytest.raises(ValueError, match="No seconds per slot"):
                await fetcher.get_slot_from_time(2000)


@pytest.mark.asyncio
async def test_genesis_time_must_be_string():
    with respx.mock(base_url=URL, assert_all_called=False) as router:
        router.get("/eth/v1/beacon/genesis").respond(json={"data": {"genesis_time": 5}})
        async with BlobFetcher(URL) as fetcher:
            with pytest.raises(ValueError, match="expected string"):
                await fetcher.fetch_beacon_genesis_timestamp()


@pytest.mark.asyncio
async def test_fetch_blob_sidecars():
    sidecars = [
        {"index": "0", "blob": "0x0102", "kzg_commitment": "0x00"},
        {"index": "3", "blob": "ff"},
    ]
    with respx.mock(base_url=URL, assert_all_called=False) as router:
        route = router.get("/eth/v1/beacon/blob_sidecars/42").respond(json={"data": sidecars})
        async with BlobFetcher(URL) as fetcher:
            blobs = await fetcher.fetch_blob_sidecars(42)
        assert route.call_count == 1
    assert blobs == [BlobSidecar(0, b"\x01\x02"), BlobSidecar(3, b"\xff")]


@pytest.mark.asyncio
async def test_missing_data_field():
    with respx.mock(base_url=URL, assert_all_called=False) as router:
        router.get("/eth/v1/beacon/blob_sidecars/1").respond(json={"other": []})
        async with BlobFetcher(URL) as fetcher:
            with pytest.raises(ValueError, match="No data in response"):
                await fetcher.fetch_blob_sidecars(1)


@pytest.mark.asyncio
async def test_http_error_status():
    with respx.mock(base_url=URL, assert_all_called=False) as router:
        router.get("/eth/v1/config/spec").respond(status_code=500)
        async with BlobFetcher(URL) as fetcher:
            with pytest.raises(httpx.HTTPStatusError):
                await fetcher.fetch_beacon_spec()


@pytest.mark.asyncio
async def test_spec_returns_data():
    with respx.mock(base_url=URL, assert_all_called=False) as router:
        router.get("/eth/v1/config/spec").respond(json={"data": {"SECONDS_PER_SLOT": "6"}})
        async with BlobFetcher(URL) as fetcher:
            assert await fetcher.fetch_beacon_spec() == {"SECONDS_PER_SLOT": "6"}


def test_sidecar_invalid_index():
    with pytest.raises(ValueError):
        BlobSidecar.from_json({"index": "abc", "blob": "0x00"})


def test_sidecar_invalid_hex():
    with pytest.raises(ValueError):
        BlobSidecar.from_json({"index": "1", "blob": "0xzz"})


def test_sidecar_missing_blob():
    with pytest.raises(ValueError, match="blob"):
        BlobSidecar.from_json({"index": "1"})