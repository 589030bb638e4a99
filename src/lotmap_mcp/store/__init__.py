"""Record store backends and the schema-tolerant write adapter."""

from lotmap_mcp.store.adapter import SchemaTolerantWriter, detect_schema_drift
from lotmap_mcp.store.base import RecordStore, SchemaDriftError, StoreError
from lotmap_mcp.store.memory import InMemoryRecordStore
from lotmap_mcp.store.postgrest import PostgrestRecordStore

__all__ = [
    "SchemaTolerantWriter",
    "detect_schema_drift",
    "RecordStore",
    "SchemaDriftError",
    "StoreError",
    "InMemoryRecordStore",
    "PostgrestRecordStore",
]
