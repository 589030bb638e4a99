"""Property read/write surface: normalize, reconcile, persist."""

from __future__ import annotations

import logging
from typing import Any

from lotmap_mcp.categories import VisibilityState, category_counts, category_legend
from lotmap_mcp.config import LotmapConfig
from lotmap_mcp.geocoding import GeocodingClient
from lotmap_mcp.models import CategoryLegendEntry, LocationMatch, Property, PropertyListing
from lotmap_mcp.normalizer import ValidationError, normalize_create, normalize_update
from lotmap_mcp.reconciler import LINKED_FIELDS, reconcile_changes
from lotmap_mcp.store.adapter import SchemaTolerantWriter
from lotmap_mcp.store.base import UNDEFINED_COLUMN, RecordStore, StoreError
from lotmap_mcp.store.memory import NO_ROWS, InMemoryRecordStore
from lotmap_mcp.store.postgrest import CONNECTION_ERROR, PostgrestRecordStore

logger = logging.getLogger(__name__)


class PropertyNotFoundError(Exception):
    """Raised when no property has the requested id."""


class PropertyService:
    """Create, patch, soft-delete, list and search property records."""

    def __init__(
        self,
        store: RecordStore,
        geocoder: GeocodingClient | None = None,
        config: LotmapConfig | None = None,
    ):
        self._config = config or LotmapConfig()
        self._store = store
        self._writer = SchemaTolerantWriter(store, self._config.schema_optional_fields)
        self._geocoder = geocoder

    @property
    def config(self) -> LotmapConfig:
        return self._config

    @property
    def geocoder(self) -> GeocodingClient | None:
        return self._geocoder

    async def list(self) -> list[Property]:
        """Non-deleted properties, newest first."""
        rows = await self._store.query_all({"is_deleted": False})
        return [Property.model_validate(row) for row in rows]

    async def listing(self) -> PropertyListing:
        properties = await self.list()
        counts = category_counts(properties)
        return PropertyListing(
            properties=properties,
            total=len(properties),
            category_counts={c.value: n for c, n in counts.items()},
        )

    async def get(self, property_id: str) -> Property:
        rows = await self._store.query_all({"id": property_id})
        if not rows:
            raise PropertyNotFoundError(f"Property {property_id} not found")
        return Property.model_validate(rows[0])

    async def create(self, raw: Any) -> Property:
        record = normalize_create(raw)
        linked = {name: record[name] for name in LINKED_FIELDS if record[name] is not None}
        record.update(reconcile_changes(None, linked))
        stored = await self._writer.insert(record)
        prop = Property.model_validate(stored)
        logger.info("Created property %s (%s)", prop.id, prop.category.value)
        return prop

    async def patch(self, property_id: str, raw: Any) -> Property:
        changes = normalize_update(raw)
        current = await self.get(property_id)
        if any(name in changes for name in LINKED_FIELDS):
            changes = reconcile_changes(current, changes)
        stored = await self._writer.update(property_id, changes)
        logger.info("Updated property %s: %s", property_id, ", ".join(changes))
        return Property.model_validate(stored)

    async def delete(self, property_id: str) -> Property:
        """Soft delete: the record stays in the store with ``is_deleted`` set."""
        return await self.patch(property_id, {"is_deleted": True})

    async def search(self, query: str) -> list[LocationMatch]:
        """Stored properties matching title, address or house name, then addresses."""
        text = query.strip().lower()
        if len(text) < self._config.search_min_query_length:
            return []

        matches: list[LocationMatch] = []
        for prop in await self.list():
            fields = (prop.title, prop.address, prop.house_name)
            if not any(value and text in value.lower() for value in fields):
                continue
            name = prop.title or prop.address or prop.house_name or "Untitled Property"
            place_name = f"Property: {name}"
            if prop.address:
                place_name += f" - {prop.address}"
            matches.append(
                LocationMatch(
                    id=f"property-{prop.id}",
                    place_name=place_name,
                    center=[prop.lng, prop.lat],
                    type="property",
                    property=prop,
                )
            )

        if self._geocoder is not None:
            for result in await self._geocoder.forward_geocode(query):
                matches.append(
                    LocationMatch(
                        id=result.id or result.place_name,
                        place_name=result.place_name,
                        center=result.center,
                        type="address",
                    )
                )
        return matches

    async def category_summary(
        self, visibility: VisibilityState | None = None
    ) -> tuple[list[CategoryLegendEntry], list[Property]]:
        """Filter menu rows plus the properties the given visibility shows."""
        visibility = visibility or VisibilityState()
        properties = await self.list()
        return category_legend(properties, visibility), visibility.filter(properties)


def describe_store_error(error: StoreError, action: str) -> tuple[str, str | None]:
    """Pick a user-facing message and a fallback hint for a store failure."""
    message = (error.message or "").lower()
    code = error.code or ""

    if code == UNDEFINED_COLUMN or ("column" in message and "does not exist" in message):
        return (
            f"Failed to {action}",
            "Make sure the latest database migration has been applied.",
        )
    if code == NO_ROWS:
        return f"Failed to {action}", "No property matched the requested id."
    if "relation" in message or "does not exist" in message:
        return (
            "Database table not found",
            "Make sure the database migrations have been run.",
        )
    if code == "42501" or "permission denied" in message or "RLS" in (error.message or ""):
        return (
            "Database permission error",
            "Check the Row Level Security policies for the properties table.",
        )
    if code == CONNECTION_ERROR or "connection" in message or "network" in message:
        return (
            "Database connection error",
            "Check the database project status and network connection.",
        )
    if code:
        return f"Database error ({code})", f"Error code: {code}"
    return f"Failed to {action}", None


def error_payload(exc: Exception, action: str, include_details: bool = False) -> dict[str, Any]:
    """Boundary representation of a failure.

    The error key, the message and the store's own code/details/hint are
    separate keys. Store diagnostics beyond the code are only included when
    ``include_details`` is set.
    """
    if isinstance(exc, ValidationError):
        return {"error": "validation_error", "field": exc.field, "message": exc.reason}
    if isinstance(exc, PropertyNotFoundError):
        return {"error": "not_found", "message": str(exc)}
    if isinstance(exc, StoreError):
        message, fallback_hint = describe_store_error(exc, action)
        payload: dict[str, Any] = {"error": "store_error", "message": message, "code": exc.code}
        if include_details:
            payload["store_message"] = exc.message
            payload["details"] = exc.details
            payload["hint"] = exc.hint or fallback_hint
        return payload
    return {"error": "internal_error", "message": f"Failed to {action}"}


def build_store(config: LotmapConfig) -> RecordStore:
    if config.uses_remote_store:
        logger.info("Using PostgREST record store at %s", config.supabase_url)
        return PostgrestRecordStore(config)
    logger.info("No Supabase credentials configured, using in-memory record store")
    return InMemoryRecordStore(table_name=config.table_name)


_singleton: PropertyService | None = None


def get_service() -> PropertyService:
    """Return a module-level singleton PropertyService."""
    global _singleton
    if _singleton is None:
        config = LotmapConfig()
        _singleton = PropertyService(
            build_store(config), geocoder=GeocodingClient(config), config=config
        )
    return _singleton
