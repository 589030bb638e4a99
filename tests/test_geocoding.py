"""Tests for the Mapbox geocoding client."""

from unittest.mock import AsyncMock, patch

import pytest
from curl_cffi.requests import RequestsError

from lotmap_mcp.cache import GeocodeCache, forward_key
from lotmap_mcp.config import LotmapConfig
from lotmap_mcp.geocoding import GeocodingClient
from lotmap_mcp.models import GeocodeResult
from tests.conftest import MockResponse

FORWARD_BODY = {
    "features": [
        {"id": "address.1", "place_name": "123 Main St, Boise, Idaho 83702", "center": [-116.2, 43.6]},
        {"id": "address.2", "place_name": "no center"},
        {"id": "place.3", "place_name": "Boise, Idaho", "center": [-116.21, 43.61]},
    ]
}

REVERSE_BODY = {
    "features": [
        {"place_name": "900 W Jefferson St, Boise, Idaho 83702", "center": [-116.2, 43.618]},
        {"place_name": "Boise, Idaho", "center": [-116.21, 43.61]},
    ]
}


@pytest.mark.asyncio
async def test_forward_geocode(fast_config):
    with patch("lotmap_mcp.geocoding.AsyncSession") as MockSession:
        mock_session = MockSession.return_value
        mock_session.get = AsyncMock(return_value=MockResponse(200, FORWARD_BODY))
        mock_session.close = AsyncMock()
        async with GeocodingClient(fast_config) as client:
            results = await client.forward_geocode("123 Main St")

    assert [r.place_name for r in results] == [
        "123 Main St, Boise, Idaho 83702",
        "Boise, Idaho",
    ]
    assert results[0].center == [-116.2, 43.6]
    url = mock_session.get.call_args.args[0]
    params = mock_session.get.call_args.kwargs["params"]
    assert url.endswith("/123%20Main%20St.json")
    assert params["access_token"] == "test-token"
    assert params["country"] == "US"
    assert params["autocomplete"] == "true"
    assert params["types"] == "address,place,postcode"
    assert params["limit"] == 5


@pytest.mark.asyncio
async def test_forward_geocode_uses_cache(fast_config):
    with patch("lotmap_mcp.geocoding.AsyncSession") as MockSession:
        mock_session = MockSession.return_value
        mock_session.get = AsyncMock(return_value=MockResponse(200, FORWARD_BODY))
        mock_session.close = AsyncMock()
        async with GeocodingClient(fast_config) as client:
            first = await client.forward_geocode("123 Main St")
            second = await client.forward_geocode("123  main st")

    assert first == second
    assert mock_session.get.call_count == 1


@pytest.mark.asyncio
async def test_preloaded_cache_skips_network(fast_config):
    cache = GeocodeCache()
    cached = [GeocodeResult(id="x", place_name="Cached Pl", center=[1.0, 2.0])]
    cache.store(forward_key("cached pl"), cached)
    with patch("lotmap_mcp.geocoding.AsyncSession") as MockSession:
        client = GeocodingClient(fast_config, cache=cache)
        assert await client.forward_geocode("Cached Pl") == cached
    MockSession.assert_not_called()


@pytest.mark.asyncio
async def test_no_token_returns_empty():
    config = LotmapConfig(mapbox_token=None)
    with patch("lotmap_mcp.geocoding.AsyncSession") as MockSession:
        client = GeocodingClient(config)
        assert await client.forward_geocode("123 Main St") == []
        assert await client.reverse_geocode(43.6, -116.2) is None
    MockSession.assert_not_called()


@pytest.mark.asyncio
async def test_server_errors_retry_then_give_up(fast_config):
    with patch("lotmap_mcp.geocoding.AsyncSession") as MockSession:
        mock_session = MockSession.return_value
        mock_session.get = AsyncMock(return_value=MockResponse(503))
        mock_session.close = AsyncMock()
        async with GeocodingClient(fast_config) as client:
            assert await client.forward_geocode("123 Main St") == []
            # Failures are not cached.
            assert await client.forward_geocode("123 Main St") == []

    assert mock_session.get.call_count == 6


@pytest.mark.asyncio
async def test_rate_limit_then_success(fast_config):
    with patch("lotmap_mcp.geocoding.AsyncSession") as MockSession:
        mock_session = MockSession.return_value
        mock_session.get = AsyncMock(
            side_effect=[MockResponse(429), MockResponse(200, FORWARD_BODY)]
        )
        mock_session.close = AsyncMock()
        async with GeocodingClient(fast_config) as client:
            results = await client.forward_geocode("123 Main St")

    assert len(results) == 2
    assert mock_session.get.call_count == 2


@pytest.mark.asyncio
async def test_connection_error_retries(fast_config):
    with patch("lotmap_mcp.geocoding.AsyncSession") as MockSession:
        mock_session = MockSession.return_value
        mock_session.get = AsyncMock(
            side_effect=[RequestsError("timeout"), MockResponse(200, FORWARD_BODY)]
        )
        mock_session.close = AsyncMock()
        async with GeocodingClient(fast_config) as client:
            results = await client.forward_geocode("123 Main St")

    assert len(results) == 2


@pytest.mark.asyncio
async def test_client_error_is_not_retried(fast_config):
    with patch("lotmap_mcp.geocoding.AsyncSession") as MockSession:
        mock_session = MockSession.return_value
        mock_session.get = AsyncMock(return_value=MockResponse(401, {"message": "Not Authorized"}))
        mock_session.close = AsyncMock()
        async with GeocodingClient(fast_config) as client:
            assert await client.forward_geocode("123 Main St") == []

    assert mock_session.get.call_count == 1


@pytest.mark.asyncio
async def test_blank_query_skips_lookup(fast_config):
    with patch("lotmap_mcp.geocoding.AsyncSession") as MockSession:
        client = GeocodingClient(fast_config)
        assert await client.forward_geocode("   ") == []
    MockSession.assert_not_called()


@pytest.mark.asyncio
async def test_reverse_geocode_takes_first_feature(fast_config):
    with patch("lotmap_mcp.geocoding.AsyncSession") as MockSession:
        mock_session = MockSession.return_value
        mock_session.get = AsyncMock(return_value=MockResponse(200, REVERSE_BODY))
        mock_session.close = AsyncMock()
        async with GeocodingClient(fast_config) as client:
            result = await client.reverse_geocode(43.618, -116.2)

    assert result.address == "900 W Jefferson St, Boise, Idaho 83702"
    url = mock_session.get.call_args.args[0]
    params = mock_session.get.call_args.kwargs["params"]
    assert url.endswith("/-116.2,43.618.json")
    assert params["types"] == "address,place,poi"


@pytest.mark.asyncio
async def test_reverse_geocode_no_match_is_cached(fast_config):
    with patch("lotmap_mcp.geocoding.AsyncSession") as MockSession:
        mock_session = MockSession.return_value
        mock_session.get = AsyncMock(return_value=MockResponse(200, {"features": []}))
        mock_session.close = AsyncMock()
        async with GeocodingClient(fast_config) as client:
            assert await client.reverse_geocode(10.0, 20.0) is None
            assert await client.reverse_geocode(10.0, 20.0) is None

    assert mock_session.get.call_count == 1


@pytest.mark.asyncio
async def test_zero_retries_still_makes_one_attempt():
    config = LotmapConfig(mapbox_token="test-token", max_retries=0, retry_backoff_seconds=0.0)
    with patch("lotmap_mcp.geocoding.AsyncSession") as MockSession:
        mock_session = MockSession.return_value
        mock_session.get = AsyncMock(return_value=MockResponse(503))
        mock_session.close = AsyncMock()
        async with GeocodingClient(config) as client:
            assert await client.forward_geocode("boise idaho") == []
            assert await client.reverse_geocode(43.6, -116.2) is None

    assert mock_session.get.call_count == 2


@pytest.mark.asyncio
async def test_zero_retries_success():
    config = LotmapConfig(mapbox_token="test-token", max_retries=0)
    with patch("lotmap_mcp.geocoding.AsyncSession") as MockSession:
        mock_session = MockSession.return_value
        mock_session.get = AsyncMock(return_value=MockResponse(200, FORWARD_BODY))
        mock_session.close = AsyncMock()
        async with GeocodingClient(config) as client:
            results = await client.forward_geocode("123 Main St")

    assert len(results) == 2


@pytest.mark.asyncio
@pytest.mark.parametrize("body", [[FORWARD_BODY], "features", 42, {"features": "nope"}])
async def test_unexpected_body_shapes_degrade(fast_config, body):
    with patch("lotmap_mcp.geocoding.AsyncSession") as MockSession:
        mock_session = MockSession.return_value
        mock_session.get = AsyncMock(return_value=MockResponse(200, body))
        mock_session.close = AsyncMock()
        async with GeocodingClient(fast_config) as client:
            assert await client.forward_geocode("123 Main St") == []
            assert await client.reverse_geocode(43.6, -116.2) is None


@pytest.mark.asyncio
async def test_malformed_features_are_skipped(fast_config):
    body = {"features": ["junk", {"place_name": "Boise, Idaho", "center": 5}, FORWARD_BODY["features"][0]]}
    with patch("lotmap_mcp.geocoding.AsyncSession") as MockSession:
        mock_session = MockSession.return_value
        mock_session.get = AsyncMock(return_value=MockResponse(200, body))
        mock_session.close = AsyncMock()
        async with GeocodingClient(fast_config) as client:
            results = await client.forward_geocode("123 Main St")
            assert await client.reverse_geocode(43.6, -116.2) is None

    assert [r.place_name for r in results] == ["123 Main St, Boise, Idaho 83702"]
