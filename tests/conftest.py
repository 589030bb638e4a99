"""Shared test fixtures."""

from dataclasses import dataclass
from typing import Any

import pytest

from lotmap_mcp.config import LotmapConfig
from lotmap_mcp.store.memory import InMemoryRecordStore


@dataclass
class MockResponse:
    """Lightweight mock for curl_cffi response objects."""

    status_code: int
    payload: Any = None
    text: str = ""

    def json(self) -> Any:
        if self.payload is None:
            raise ValueError("No JSON body")
        return self.payload


def make_property(**overrides: Any) -> dict[str, Any]:
    """Raw creation input for a valid property."""
    data = {
        "title": "Lot 12 Cedar Ridge",
        "lat": 43.615,
        "lng": -116.2146,
        "category": "vacant_lot",
    }
    data.update(overrides)
    return data


@pytest.fixture
def fast_config() -> LotmapConfig:
    """Config with no retry backoff and a fake Mapbox token."""
    return LotmapConfig(
        mapbox_token="test-token",
        retry_backoff_seconds=0.0,
        max_retries=3,
        timeout_seconds=5.0,
    )


@pytest.fixture
def memory_store() -> InMemoryRecordStore:
    return InMemoryRecordStore()
