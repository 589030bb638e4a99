"""Dict-backed record store for local use and tests."""

import copy
import itertools
import logging
import uuid
from collections.abc import Iterable, Mapping
from datetime import datetime, timezone
from typing import Any

from lotmap_mcp.normalizer import RECORD_FIELDS
from lotmap_mcp.store.base import UNDEFINED_COLUMN, Record, StoreError, to_store_payload

logger = logging.getLogger(__name__)

NO_ROWS = "PGRST116"


class InMemoryRecordStore:
    """Keeps records in insertion order and mimics PostgreSQL error shapes.

    ``columns`` is the live schema. Writing a key outside it fails the way
    PostgREST reports an undefined column, which is how schema drift shows
    up against a database that has not been migrated yet.
    """

    def __init__(
        self,
        records: Iterable[Mapping[str, Any]] = (),
        columns: Iterable[str] | None = None,
        table_name: str = "properties",
    ):
        self.table_name = table_name
        if columns is None:
            columns = ("id", "created_at") + RECORD_FIELDS
        self.columns = set(columns)
        self._rows: dict[str, Record] = {}
        self._order: dict[str, int] = {}
        self._seq = itertools.count()
        for record in records:
            self._store(dict(record))

    def _store(self, row: Record) -> Record:
        row.setdefault("id", str(uuid.uuid4()))
        row.setdefault("created_at", datetime.now(timezone.utc).isoformat())
        row["id"] = str(row["id"])
        self._rows[row["id"]] = row
        self._order[row["id"]] = next(self._seq)
        return row

    def _check_columns(self, data: Mapping[str, Any]) -> None:
        for key in data:
            if key not in self.columns:
                raise StoreError(
                    f'column "{key}" of relation "{self.table_name}" does not exist',
                    code=UNDEFINED_COLUMN,
                )

    def _visible(self, row: Record) -> Record:
        return {k: copy.deepcopy(v) for k, v in row.items() if k in self.columns}

    async def insert(self, record: Mapping[str, Any]) -> Record:
        data = to_store_payload(record)
        self._check_columns(data)
        row = self._store(data)
        logger.debug("Inserted %s into %s", row["id"], self.table_name)
        return self._visible(row)

    async def update(self, record_id: str, changes: Mapping[str, Any]) -> Record:
        data = to_store_payload(changes)
        self._check_columns(data)
        row = self._rows.get(str(record_id))
        if row is None:
            raise StoreError(
                "JSON object requested, multiple (or no) rows returned",
                code=NO_ROWS,
                details="The result contains 0 rows",
            )
        data.pop("id", None)
        data.pop("created_at", None)
        row.update(data)
        return self._visible(row)

    async def query_all(self, filters: Mapping[str, Any] | None = None) -> list[Record]:
        filters = to_store_payload(filters or {})
        self._check_columns(filters)
        rows = [
            row
            for row in self._rows.values()
            if all(row.get(k) == v for k, v in filters.items())
        ]
        rows.sort(key=lambda r: (r["created_at"], self._order[r["id"]]), reverse=True)
        return [self._visible(row) for row in rows]

    def __len__(self) -> int:
        return len(self._rows)
