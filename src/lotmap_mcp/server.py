"""Lotmap MCP Server: map-plotted property listing tools."""

import logging
import sys
from typing import Any, Optional

from fastmcp import FastMCP

from lotmap_mcp.categories import VisibilityState
from lotmap_mcp.normalizer import ValidationError
from lotmap_mcp.selection import SelectionState
from lotmap_mcp.service import PropertyNotFoundError, error_payload, get_service
from lotmap_mcp.store.base import StoreError

# Route ALL logging to stderr; stdout is reserved for MCP protocol messages
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    stream=sys.stderr,
)
logger = logging.getLogger(__name__)

HANDLED_ERRORS = (ValidationError, PropertyNotFoundError, StoreError)

mcp = FastMCP(
    name="lotmap",
    instructions=(
        "Lotmap MCP server for managing map-plotted property listings. "
        "Use list_properties to browse, create_property and update_property to edit, "
        "delete_property to soft-delete, search_locations to find properties or addresses, "
        "compare_properties for side-by-side comparison and category_summary for the "
        "category filter menu."
    ),
)


def _failure(exc: Exception, action: str) -> dict:
    include_details = get_service().config.development_mode
    logger.error("%s failed: %r", action, exc)
    return error_payload(exc, action, include_details=include_details)


@mcp.tool()
async def list_properties() -> dict:
    """List every non-deleted property, newest first, with per-category counts."""
    logger.info("list_properties called")
    try:
        listing = await get_service().listing()
    except HANDLED_ERRORS as e:
        return {**_failure(e, "fetch properties"), "properties": []}
    return listing.model_dump(mode="json")


@mcp.tool()
async def get_property(property_id: str) -> dict:
    """Get one property record by id (soft-deleted records included)."""
    logger.info("get_property called: %s", property_id)
    try:
        prop = await get_service().get(property_id)
    except HANDLED_ERRORS as e:
        return _failure(e, "fetch property")
    return {"property": prop.model_dump(mode="json")}


@mcp.tool()
async def create_property(fields: dict[str, Any]) -> dict:
    """Create a property.

    Args:
        fields: Field map. Required: title, lat, lng, category (one of vacant_lot,
            planned_construction, under_construction, for_sale_completed, pending,
            pending_under_construction, sold, competitors). Square footage and acres
            are derived from lot_width x lot_depth when both are given.

    Returns:
        The stored property, or an error with the offending field.
    """
    logger.info("create_property called: %s", fields.get("title"))
    try:
        prop = await get_service().create(fields)
    except HANDLED_ERRORS as e:
        return _failure(e, "create property")
    return {"property": prop.model_dump(mode="json")}


@mcp.tool()
async def update_property(property_id: str, changes: dict[str, Any]) -> dict:
    """Partially update a property.

    Args:
        property_id: Id of the property to change.
        changes: Only the fields to change; an explicit null clears an optional field.

    Returns:
        The stored property after the update.
    """
    logger.info("update_property called: %s (%s)", property_id, ", ".join(changes))
    try:
        prop = await get_service().patch(property_id, changes)
    except HANDLED_ERRORS as e:
        return _failure(e, "update property")
    return {"property": prop.model_dump(mode="json")}


@mcp.tool()
async def delete_property(property_id: str) -> dict:
    """Soft-delete a property; it disappears from listings but stays stored."""
    logger.info("delete_property called: %s", property_id)
    try:
        prop = await get_service().delete(property_id)
    except HANDLED_ERRORS as e:
        return _failure(e, "delete property")
    return {"property": prop.model_dump(mode="json")}


@mcp.tool()
async def search_locations(query: str) -> dict:
    """Search stored properties by title, address or house name, plus geocoded addresses.

    Args:
        query: Free text, at least 3 characters.
    """
    logger.info("search_locations called: %s", query)
    try:
        matches = await get_service().search(query)
    except HANDLED_ERRORS as e:
        return {**_failure(e, "search properties"), "results": []}
    return {"query": query, "results": [m.model_dump(mode="json") for m in matches]}


@mcp.tool()
async def reverse_geocode(lat: float, lng: float) -> dict:
    """Look up the street address nearest to a map coordinate."""
    logger.info("reverse_geocode called: %s,%s", lat, lng)
    geocoder = get_service().geocoder
    result = await geocoder.reverse_geocode(lat, lng) if geocoder else None
    if result is None:
        return {"address": None}
    return result.model_dump(mode="json")


@mcp.tool()
async def category_summary(hidden_categories: Optional[list[str]] = None) -> dict:
    """Category filter rows: label, colors, count of non-deleted properties, visibility.

    Args:
        hidden_categories: Categories currently toggled off in the filter menu.
    """
    visibility = VisibilityState()
    for raw in hidden_categories or []:
        try:
            visibility.hide(raw)
        except ValueError:
            return {
                "error": "validation_error",
                "field": "hidden_categories",
                "message": f"Invalid category: {raw!r}",
            }
    try:
        entries, visible = await get_service().category_summary(visibility)
    except HANDLED_ERRORS as e:
        return {**_failure(e, "fetch properties"), "categories": []}
    return {
        "categories": [entry.model_dump(mode="json") for entry in entries],
        "visible_property_ids": [p.id for p in visible],
    }


@mcp.tool()
async def compare_properties(property_ids: list[str]) -> dict:
    """Side-by-side comparison of properties, in the order they were picked.

    Picking the same id twice deselects it, as in the map's compare mode.
    """
    logger.info("compare_properties called: %s", property_ids)
    selection = SelectionState()
    selection.enter_compare()
    for property_id in property_ids:
        selection.click(property_id)
    try:
        properties = await get_service().list()
    except HANDLED_ERRORS as e:
        return {**_failure(e, "fetch properties"), "properties": []}
    compared = selection.compared(properties)
    missing = [pid for pid in selection.compare if pid not in {p.id for p in compared}]
    return {
        "property_ids": selection.compare.ids,
        "properties": [p.model_dump(mode="json") for p in compared],
        "missing_ids": missing,
    }


def main() -> None:
    mcp.run(transport="stdio")


if __name__ == "__main__":
    main()
