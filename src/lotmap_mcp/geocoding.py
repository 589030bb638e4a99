"""Best-effort Mapbox geocoding client.

Geocoding only improves search and address prefill; it never blocks a
create or update. Every failure is logged and turned into an empty result.
"""

import asyncio
import logging
import math
from typing import Any
from urllib.parse import quote

from curl_cffi.requests import AsyncSession, RequestsError

from lotmap_mcp.cache import GeocodeCache, forward_key, reverse_key
from lotmap_mcp.config import LotmapConfig
from lotmap_mcp.models import GeocodeResult, ReverseGeocodeResult

logger = logging.getLogger(__name__)

FORWARD_TYPES = "address,place,postcode"
REVERSE_TYPES = "address,place,poi"


class GeocodingUnavailableError(Exception):
    """Raised inside the client when the geocoding service cannot answer."""


def _features(data: dict[str, Any]) -> list[Any]:
    features = data.get("features")
    return features if isinstance(features, list) else []


class GeocodingClient:
    """Async Mapbox client with retries and result caching."""

    def __init__(
        self,
        config: LotmapConfig | None = None,
        cache: GeocodeCache | None = None,
    ):
        self._config = config or LotmapConfig()
        self._cache = cache or GeocodeCache(
            ttl_seconds=self._config.geocode_cache_ttl_seconds,
            max_entries=self._config.geocode_cache_max_entries,
        )
        self._client: AsyncSession | None = None

    def _get_client(self) -> AsyncSession:
        if self._client is None:
            self._client = AsyncSession(timeout=self._config.timeout_seconds)
        return self._client

    async def _fetch_json(self, url: str, params: dict[str, Any]) -> dict[str, Any]:
        if not self._config.mapbox_token:
            raise GeocodingUnavailableError("Mapbox token not configured")

        client = self._get_client()
        params = {"access_token": self._config.mapbox_token, **params}
        last_error: Exception | None = None
        attempts = max(1, self._config.max_retries)

        for attempt in range(attempts):
            try:
                response = await client.get(url, params=params)

                if response.status_code == 200:
                    try:
                        data = response.json()
                    except ValueError as exc:
                        raise GeocodingUnavailableError(
                            f"Malformed geocoding response: {exc}"
                        ) from exc
                    if not isinstance(data, dict):
                        raise GeocodingUnavailableError(
                            f"Malformed geocoding response: {type(data).__name__} body"
                        )
                    return data

                if response.status_code == 429 or response.status_code >= 500:
                    last_error = GeocodingUnavailableError(
                        f"Geocoding service returned {response.status_code}"
                    )
                else:
                    raise GeocodingUnavailableError(
                        f"Unexpected geocoding status {response.status_code}"
                    )

            except RequestsError as exc:
                last_error = GeocodingUnavailableError(f"Geocoding request failed: {exc}")

            if attempt < attempts - 1:
                await asyncio.sleep(self._config.retry_backoff_seconds * 2**attempt)

        raise last_error  # type: ignore[misc]

    async def forward_geocode(self, query: str) -> list[GeocodeResult]:
        """Address candidates for free text, best match first."""
        query = query.strip()
        if not query:
            return []

        key = forward_key(query)
        hit, cached = self._cache.lookup(key)
        if hit:
            return cached

        url = f"{self._config.geocoding_base_url}/{quote(query, safe='')}.json"
        params = {
            "country": self._config.geocoding_country,
            "autocomplete": "true",
            "types": FORWARD_TYPES,
            "limit": self._config.geocoding_limit,
        }
        try:
            data = await self._fetch_json(url, params)
        except GeocodingUnavailableError as exc:
            logger.warning("Forward geocoding unavailable for %r: %s", query, exc)
            return []

        results: list[GeocodeResult] = []
        for feature in _features(data):
            if not isinstance(feature, dict):
                continue
            place_name = feature.get("place_name")
            center = feature.get("center")
            if not place_name or not isinstance(center, list) or len(center) != 2:
                continue
            results.append(
                GeocodeResult(id=feature.get("id"), place_name=place_name, center=center)
            )
        self._cache.store(key, results)
        return results

    async def reverse_geocode(self, lat: float, lng: float) -> ReverseGeocodeResult | None:
        """The most relevant address at a coordinate, or None."""
        if not (math.isfinite(lat) and math.isfinite(lng)):
            return None

        key = reverse_key(lat, lng)
        hit, cached = self._cache.lookup(key)
        if hit:
            return cached

        url = f"{self._config.geocoding_base_url}/{lng},{lat}.json"
        params = {"country": self._config.geocoding_country, "types": REVERSE_TYPES}
        try:
            data = await self._fetch_json(url, params)
        except GeocodingUnavailableError as exc:
            logger.warning("Reverse geocoding unavailable for %s,%s: %s", lat, lng, exc)
            return None

        result = None
        features = _features(data)
        first = features[0] if features else None
        if isinstance(first, dict) and first.get("place_name"):
            result = ReverseGeocodeResult(
                address=first["place_name"], center=first.get("center")
            )
        self._cache.store(key, result)
        return result

    async def close(self) -> None:
        if self._client is not None:
            await self._client.close()
            self._client = None

    async def __aenter__(self) -> "GeocodingClient":
        return self

    async def __aexit__(self, *args: object) -> None:
        await self.close()
