"""Writes that survive a store schema that lags behind the application."""

import logging
import re
from collections.abc import Iterable, Mapping
from typing import Any

from lotmap_mcp.store.base import (
    UNDEFINED_COLUMN,
    Record,
    RecordStore,
    SchemaDriftError,
    StoreError,
)

logger = logging.getLogger(__name__)

DEFAULT_OPTIONAL_FIELDS = ("lot", "block")


def detect_schema_drift(
    error: StoreError,
    payload: Mapping[str, Any],
    optional_fields: Iterable[str] = DEFAULT_OPTIONAL_FIELDS,
) -> SchemaDriftError | None:
    """Return a drift diagnosis when ``error`` blames a missing optional column.

    The signature is an undefined-column code or the word "column", plus a
    mention of one of the optional fields. The diagnosis lists every optional
    field present in ``payload``; they are added to the schema together.
    """
    message = error.message or ""
    if error.code != UNDEFINED_COLUMN and "column" not in message.lower():
        return None
    optional_fields = tuple(optional_fields)
    named = [f for f in optional_fields if re.search(rf"\b{re.escape(f)}\b", message)]
    if not named:
        return None
    present = tuple(f for f in optional_fields if f in payload)
    if not present:
        return None
    return SchemaDriftError(error, present)


class SchemaTolerantWriter:
    """Insert/update wrapper that retries once without missing optional columns.

    Any failure that is not schema drift, and a retry that fails too, raises
    the store's original :class:`StoreError` unchanged.
    """

    def __init__(
        self,
        store: RecordStore,
        optional_fields: Iterable[str] = DEFAULT_OPTIONAL_FIELDS,
    ):
        self._store = store
        self._optional_fields = tuple(optional_fields)

    @property
    def store(self) -> RecordStore:
        return self._store

    async def insert(self, record: Mapping[str, Any]) -> Record:
        payload = dict(record)
        try:
            return await self._store.insert(payload)
        except StoreError as exc:
            drift = detect_schema_drift(exc, payload, self._optional_fields)
            if drift is None:
                raise
            return await self._retry(
                drift, lambda shrunk: self._store.insert(shrunk), payload
            )

    async def update(self, record_id: str, changes: Mapping[str, Any]) -> Record:
        payload = dict(changes)
        try:
            return await self._store.update(record_id, payload)
        except StoreError as exc:
            drift = detect_schema_drift(exc, payload, self._optional_fields)
            if drift is None:
                raise
            return await self._retry(
                drift, lambda shrunk: self._store.update(record_id, shrunk), payload
            )

    async def _retry(self, drift: SchemaDriftError, write, payload: dict[str, Any]) -> Record:
        stripped = drift.missing_fields
        logger.warning(
            "Store is missing optional column(s) %s, retrying without them",
            ", ".join(stripped),
        )
        shrunk = {k: v for k, v in payload.items() if k not in stripped}
        try:
            result = await write(shrunk)
        except StoreError as retry_exc:
            logger.error(
                "Retry without %s failed: %s", ", ".join(stripped), retry_exc.message
            )
            raise drift.original from retry_exc
        return {k: v for k, v in result.items() if k not in stripped}
