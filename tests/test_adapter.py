"""Tests for the schema-drift tolerant writer."""

from unittest.mock import AsyncMock

import pytest

from lotmap_mcp.store.adapter import SchemaTolerantWriter, detect_schema_drift
from lotmap_mcp.store.base import StoreError
from lotmap_mcp.store.memory import InMemoryRecordStore
from lotmap_mcp.normalizer import RECORD_FIELDS

MISSING_LOT = StoreError(
    'column "lot" of relation "properties" does not exist', code="42703"
)


def _mock_store(**methods) -> AsyncMock:
    store = AsyncMock()
    for name, side_effect in methods.items():
        getattr(store, name).side_effect = side_effect
    return store


def test_detect_drift_lists_all_optional_fields_present():
    drift = detect_schema_drift(MISSING_LOT, {"title": "x", "lot": "4", "block": "B"})
    assert drift is not None
    assert drift.missing_fields == ("lot", "block")
    assert drift.original is MISSING_LOT


def test_detect_drift_by_message_without_code():
    error = StoreError("Could not find the 'block' column of 'properties'")
    assert detect_schema_drift(error, {"block": "B"}).missing_fields == ("block",)


@pytest.mark.parametrize(
    "error",
    [
        StoreError('column "acres" does not exist', code="42703"),
        StoreError("permission denied for table properties", code="42501"),
        StoreError('column "lot_price" does not exist', code="42703"),
    ],
)
def test_detect_drift_ignores_unrelated_errors(error):
    assert detect_schema_drift(error, {"lot": "4", "block": "B"}) is None


def test_detect_drift_needs_field_in_payload():
    assert detect_schema_drift(MISSING_LOT, {"title": "x"}) is None


@pytest.mark.asyncio
async def test_insert_retries_once_without_optional_fields():
    stored = {"id": "1", "title": "x", "lot": "4", "block": "B"}
    store = _mock_store(insert=[MISSING_LOT, stored])
    writer = SchemaTolerantWriter(store)

    result = await writer.insert({"title": "x", "lot": "4", "block": "B"})

    assert store.insert.call_count == 2
    assert store.insert.call_args_list[1].args[0] == {"title": "x"}
    assert "lot" not in result
    assert "block" not in result
    assert result["title"] == "x"


@pytest.mark.asyncio
async def test_update_retries_once_without_optional_fields():
    store = _mock_store(update=[MISSING_LOT, {"id": "1", "title": "y"}])
    writer = SchemaTolerantWriter(store)

    result = await writer.update("1", {"title": "y", "lot": None})

    assert store.update.call_count == 2
    assert store.update.call_args_list[1].args == ("1", {"title": "y"})
    assert result == {"id": "1", "title": "y"}


@pytest.mark.asyncio
async def test_unrelated_error_is_not_retried():
    error = StoreError("permission denied", code="42501")
    store = _mock_store(insert=[error])
    writer = SchemaTolerantWriter(store)

    with pytest.raises(StoreError) as exc_info:
        await writer.insert({"title": "x", "lot": "4"})

    assert exc_info.value is error
    assert store.insert.call_count == 1


@pytest.mark.asyncio
async def test_failed_retry_surfaces_original_error():
    second = StoreError("network down", code="connection_error")
    store = _mock_store(insert=[MISSING_LOT, second])
    writer = SchemaTolerantWriter(store)

    with pytest.raises(StoreError) as exc_info:
        await writer.insert({"title": "x", "lot": "4"})

    assert exc_info.value is MISSING_LOT
    assert exc_info.value.__cause__ is second
    assert store.insert.call_count == 2


@pytest.mark.asyncio
async def test_against_store_without_lot_and_block_columns():
    columns = ("id", "created_at") + tuple(
        f for f in RECORD_FIELDS if f not in ("lot", "block")
    )
    store = InMemoryRecordStore(columns=columns)
    writer = SchemaTolerantWriter(store)

    row = await writer.insert(
        {"title": "Lot 9", "category": "sold", "lat": 1.0, "lng": 2.0, "lot": "9", "block": "C"}
    )

    assert row["title"] == "Lot 9"
    assert "lot" not in row
    assert len(store) == 1


@pytest.mark.asyncio
async def test_error_naming_block_strips_lot_too():
    missing_block = StoreError(
        'column "block" of relation "properties" does not exist', code="42703"
    )
    store = _mock_store(insert=[missing_block, {"id": "1", "title": "x"}])
    writer = SchemaTolerantWriter(store)

    result = await writer.insert({"title": "x", "lot": "4", "block": "B"})

    assert store.insert.call_args_list[1].args[0] == {"title": "x"}
    assert result == {"id": "1", "title": "x"}


@pytest.mark.asyncio
async def test_undefined_column_outside_optional_fields_is_not_retried():
    error = StoreError('column "foo" does not exist', code="42703")
    store = _mock_store(insert=[error])
    writer = SchemaTolerantWriter(store)

    with pytest.raises(StoreError) as exc_info:
        await writer.insert({"lot": "1", "block": "2", "foo": 1})

    assert exc_info.value is error
    assert store.insert.call_count == 1
