"""Validate and coerce raw JSON input into property records.

Validation is fail-fast: the first offending field raises
:class:`ValidationError` and nothing is sent to the record store.
"""

import math
from collections.abc import Mapping
from typing import Any

from lotmap_mcp.models import Category, coerce_dual, narrow_number

TITLE_MAX_LENGTH = 500

REQUIRED_FIELDS = ("title", "lat", "lng", "category")

# (field, label, integer only), in validation order
NUMERIC_FIELDS: tuple[tuple[str, str, bool], ...] = (
    ("size_sqft", "Size (sqft)", True),
    ("garage_size", "Garage size", False),
    ("bedrooms", "Bedrooms", True),
    ("baths", "Baths", False),
    ("lot_width", "Lot width", False),
    ("lot_depth", "Lot depth", False),
    ("lot_price", "Lot price", False),
    ("house_price", "House price", False),
    ("square_footage", "Square footage", True),
    ("acres", "Acres", False),
)

# garage_size is an integer column; fractional input is rounded.
ROUNDED_INT_FIELDS = ("garage_size",)

DUAL_FIELDS = ("lot_number", "garage_size_text")

TEXT_FIELDS = (
    "address",
    "house_name",
    "subdivision_phase",
    "lot",
    "block",
    "depth",
    "width",
    "building_setbacks",
    "power_box_location",
)

RECORD_FIELDS = (
    REQUIRED_FIELDS
    + tuple(name for name, _, _ in NUMERIC_FIELDS)
    + ("lot_info",)
    + DUAL_FIELDS
    + TEXT_FIELDS
    + ("is_deleted",)
)


class ValidationError(Exception):
    """Raised when one input field fails validation."""

    def __init__(self, field: str, reason: str):
        super().__init__(reason)
        self.field = field
        self.reason = reason


def _is_number(value: object) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _title(raw: object) -> str:
    if not isinstance(raw, str):
        raise ValidationError("title", "Title is required and must be a string")
    title = raw.strip()
    if not title:
        raise ValidationError("title", "Title is required")
    if len(title) > TITLE_MAX_LENGTH:
        raise ValidationError(
            "title", f"Title must be at most {TITLE_MAX_LENGTH} characters"
        )
    return title


def _coordinate(field: str, raw: object) -> float:
    label, limit = ("Latitude", 90) if field == "lat" else ("Longitude", 180)
    if not _is_number(raw) or not math.isfinite(raw):
        raise ValidationError(field, f"{label} must be a finite number")
    if raw < -limit or raw > limit:
        raise ValidationError(
            field, f"{label} must be between -{limit} and {limit}"
        )
    return float(raw)


def _category(raw: object) -> Category:
    try:
        return Category(raw)
    except ValueError:
        raise ValidationError("category", f"Invalid category: {raw!r}") from None


def _number(field: str, label: str, integer: bool, raw: object) -> int | float:
    if not _is_number(raw) or not math.isfinite(raw):
        raise ValidationError(field, f"{label} must be a number")
    if raw < 0:
        raise ValidationError(field, f"{label} must be a non-negative number")
    if integer:
        if isinstance(raw, float) and not raw.is_integer():
            raise ValidationError(field, f"{label} must be a non-negative integer")
        return int(raw)
    if field in ROUNDED_INT_FIELDS:
        return round(raw)
    return narrow_number(raw) if isinstance(raw, float) else raw


def normalize_lot_info(raw: object) -> list[str] | None:
    """Keep the non-blank string entries, trimmed; an empty result is None.

    Examples:
        ["  ", "A", ""]  -> ["A"]
        ["  ", ""]       -> None
    """
    if raw is None:
        return None
    if not isinstance(raw, (list, tuple)):
        raise ValidationError("lot_info", "Lot info must be an array of strings")
    items = [item.strip() for item in raw if isinstance(item, str) and item.strip()]
    return items or None


def _dual(field: str, raw: object):
    try:
        return coerce_dual(raw)
    except (TypeError, ValueError):
        raise ValidationError(field, f"{field} must be a string or a number") from None


def _text(field: str, raw: object) -> str | None:
    if raw is None:
        return None
    if not isinstance(raw, str):
        raise ValidationError(field, f"{field} must be a string")
    return raw.strip() or None


def _flag(field: str, raw: object) -> bool:
    if raw is None:
        return False
    if not isinstance(raw, bool):
        raise ValidationError(field, f"{field} must be a boolean")
    return raw


def _normalize(raw: object, partial: bool) -> dict[str, Any]:
    if not isinstance(raw, Mapping):
        raise ValidationError("body", "Request body must be a JSON object")

    def provided(name: str) -> bool:
        return name in raw if partial else raw.get(name) is not None

    def required(name: str) -> bool:
        if partial and name not in raw:
            return False
        if raw.get(name) is None:
            raise ValidationError(name, f"{name} is required")
        return True

    out: dict[str, Any] = {}
    if required("title"):
        out["title"] = _title(raw["title"])
    for name in ("lat", "lng"):
        if required(name):
            out[name] = _coordinate(name, raw[name])
    if required("category"):
        out["category"] = _category(raw["category"])

    for name, label, integer in NUMERIC_FIELDS:
        if provided(name):
            value = raw[name]
            out[name] = None if value is None else _number(name, label, integer, value)

    if provided("lot_info"):
        out["lot_info"] = normalize_lot_info(raw["lot_info"])

    for name in DUAL_FIELDS:
        if provided(name):
            out[name] = _dual(name, raw[name])

    for name in TEXT_FIELDS:
        if provided(name):
            out[name] = _text(name, raw[name])

    if provided("is_deleted"):
        out["is_deleted"] = _flag("is_deleted", raw["is_deleted"])

    return out


def normalize_create(raw: object) -> dict[str, Any]:
    """Validate a new property; every known field is present in the result."""
    record = _normalize(raw, partial=False)
    for name in RECORD_FIELDS:
        record.setdefault(name, None)
    if record["is_deleted"] is None:
        record["is_deleted"] = False
    return {name: record[name] for name in RECORD_FIELDS}


def normalize_update(raw: object) -> dict[str, Any]:
    """Validate a partial update; only keys present in ``raw`` are returned."""
    changes = _normalize(raw, partial=True)
    if not changes:
        raise ValidationError("body", "No fields to update")
    return changes
