"""Record store backed by a Supabase / PostgREST table over HTTP."""

import logging
from collections.abc import Mapping
from typing import Any

from curl_cffi.requests import AsyncSession, RequestsError

from lotmap_mcp.config import LotmapConfig
from lotmap_mcp.store.base import Record, StoreError, to_store_payload

logger = logging.getLogger(__name__)

CONNECTION_ERROR = "connection_error"


def _filter_value(value: Any) -> str:
    if isinstance(value, bool):
        return f"eq.{str(value).lower()}"
    if value is None:
        return "is.null"
    return f"eq.{value}"


class PostgrestRecordStore:
    """Async PostgREST client; every failure surfaces as :class:`StoreError`."""

    def __init__(self, config: LotmapConfig | None = None):
        self._config = config or LotmapConfig()
        if not self._config.uses_remote_store:
            raise ValueError("supabase_url and supabase_key must both be configured")
        base = self._config.supabase_url.rstrip("/")
        self._url = f"{base}/rest/v1/{self._config.table_name}"
        self._client: AsyncSession | None = None

    def _get_client(self) -> AsyncSession:
        if self._client is None:
            self._client = AsyncSession(timeout=self._config.timeout_seconds)
        return self._client

    def _headers(self, single: bool = False) -> dict[str, str]:
        key = self._config.supabase_key
        headers = {
            "apikey": key,
            "Authorization": f"Bearer {key}",
            "Content-Type": "application/json",
            "Prefer": "return=representation",
        }
        if single:
            headers["Accept"] = "application/vnd.pgrst.object+json"
        return headers

    async def _request(self, method: str, single: bool, **kwargs: Any) -> Any:
        client = self._get_client()
        try:
            response = await client.request(
                method, self._url, headers=self._headers(single), **kwargs
            )
        except RequestsError as exc:
            if self._config.suppress_transient_connectivity_warnings:
                logger.debug("Record store unreachable: %s", exc)
            else:
                logger.warning("Record store unreachable: %s", exc)
            raise StoreError(
                "Database connection failed",
                code=CONNECTION_ERROR,
                details=str(exc),
                hint="Check the Supabase project status and network connection.",
            ) from exc

        if 200 <= response.status_code < 300:
            return response.json()
        raise self._error_from(response)

    @staticmethod
    def _error_from(response: Any) -> StoreError:
        try:
            body = response.json()
        except ValueError:
            body = None
        if not isinstance(body, dict):
            return StoreError(
                f"HTTP {response.status_code}",
                code=str(response.status_code),
                details=response.text or None,
            )
        return StoreError(
            body.get("message") or f"HTTP {response.status_code}",
            code=body.get("code"),
            details=body.get("details"),
            hint=body.get("hint"),
        )

    async def insert(self, record: Mapping[str, Any]) -> Record:
        return await self._request("POST", single=True, json=to_store_payload(record))

    async def update(self, record_id: str, changes: Mapping[str, Any]) -> Record:
        return await self._request(
            "PATCH",
            single=True,
            params={"id": _filter_value(record_id)},
            json=to_store_payload(changes),
        )

    async def query_all(self, filters: Mapping[str, Any] | None = None) -> list[Record]:
        params = {"select": "*", "order": "created_at.desc"}
        for key, value in to_store_payload(filters or {}).items():
            params[key] = _filter_value(value)
        rows = await self._request("GET", single=False, params=params)
        return rows or []

    async def close(self) -> None:
        if self._client is not None:
            await self._client.close()
            self._client = None

    async def __aenter__(self) -> "PostgrestRecordStore":
        return self

    async def __aexit__(self, *args: object) -> None:
        await self.close()
