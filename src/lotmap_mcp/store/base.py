"""Record store contract shared by every persistence backend."""

from collections.abc import Mapping
from enum import Enum
from typing import Any, Protocol

from lotmap_mcp.models import NumericValue, TextValue

Record = dict[str, Any]

UNDEFINED_COLUMN = "42703"


class StoreError(Exception):
    """A failure reported by the record store.

    ``code``, ``details`` and ``hint`` are the store's own diagnostics and are
    passed to callers untouched.
    """

    def __init__(
        self,
        message: str,
        code: str | None = None,
        details: str | None = None,
        hint: str | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.code = code
        self.details = details
        self.hint = hint

    def __repr__(self) -> str:
        return f"StoreError(code={self.code!r}, message={self.message!r})"


class SchemaDriftError(StoreError):
    """The store rejected a write because an optional column is missing."""

    def __init__(self, original: StoreError, missing_fields: tuple[str, ...]):
        super().__init__(
            original.message,
            code=original.code,
            details=original.details,
            hint=original.hint,
        )
        self.original = original
        self.missing_fields = missing_fields


class RecordStore(Protocol):
    async def insert(self, record: Mapping[str, Any]) -> Record: ...

    async def update(self, record_id: str, changes: Mapping[str, Any]) -> Record: ...

    async def query_all(self, filters: Mapping[str, Any] | None = None) -> list[Record]: ...


def to_store_value(value: Any) -> Any:
    if isinstance(value, (TextValue, NumericValue)):
        return value.value
    if isinstance(value, Enum):
        return value.value
    return value


def to_store_payload(data: Mapping[str, Any]) -> Record:
    """Turn normalized fields into plain JSON values for the store."""
    return {key: to_store_value(value) for key, value in data.items()}
