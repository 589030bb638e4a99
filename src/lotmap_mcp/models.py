"""Pydantic data models for map-plotted property listings."""

import math
import re
from datetime import datetime
from enum import Enum
from typing import Annotated, Literal, Optional, Union

from pydantic import BaseModel, Field, field_serializer, field_validator


class Category(str, Enum):
    VACANT_LOT = "vacant_lot"
    PLANNED_CONSTRUCTION = "planned_construction"
    UNDER_CONSTRUCTION = "under_construction"
    FOR_SALE_COMPLETED = "for_sale_completed"
    PENDING = "pending"
    PENDING_UNDER_CONSTRUCTION = "pending_under_construction"
    SOLD = "sold"
    COMPETITORS = "competitors"


class TextValue(BaseModel):
    """A dual-typed field that arrived as free text, e.g. lot "12A"."""

    kind: Literal["text"] = "text"
    value: str


class NumericValue(BaseModel):
    """A dual-typed field that parsed cleanly as a number, e.g. lot 12."""

    kind: Literal["numeric"] = "numeric"
    value: Union[int, float]


DualValue = Annotated[Union[TextValue, NumericValue], Field(discriminator="kind")]

_NUMBER_RE = re.compile(r"^[+-]?(\d+(\.\d*)?|\.\d+)([eE][+-]?\d+)?$")


def parse_number(text: str) -> Optional[Union[int, float]]:
    """Parse text that is entirely a finite number; integral values become int.

    Examples:
        "12"    -> 12
        "12.50" -> 12.5
        "3.0"   -> 3
        "12A"   -> None
        "1,200" -> None
    """
    candidate = text.strip()
    if not _NUMBER_RE.match(candidate):
        return None
    number = float(candidate)
    if not math.isfinite(number):
        return None
    return narrow_number(number)


def narrow_number(number: Union[int, float]) -> Union[int, float]:
    if isinstance(number, float) and number.is_integer():
        return int(number)
    return number


def coerce_dual(raw: object) -> Optional[Union[TextValue, NumericValue]]:
    """Wrap a raw string-or-number into its tagged form.

    Raises TypeError for anything that is neither a string nor a number and
    ValueError for non-finite numbers. Blank strings become None.
    """
    if raw is None or isinstance(raw, (TextValue, NumericValue)):
        return raw
    if isinstance(raw, bool):
        raise TypeError("expected a string or a number")
    if isinstance(raw, (int, float)):
        if not math.isfinite(raw):
            raise ValueError("must be a finite number")
        return NumericValue(value=narrow_number(raw))
    if isinstance(raw, str):
        text = raw.strip()
        if not text:
            return None
        number = parse_number(text)
        if number is not None:
            return NumericValue(value=number)
        return TextValue(value=text)
    raise TypeError("expected a string or a number")


def unwrap_dual(value: Optional[Union[TextValue, NumericValue]]) -> Optional[Union[str, int, float]]:
    return value.value if value is not None else None


class Property(BaseModel):
    """A property record as held by the record store."""

    id: str
    title: str
    category: Category
    lat: float
    lng: float
    address: Optional[str] = None
    house_name: Optional[str] = None
    subdivision_phase: Optional[str] = None
    lot: Optional[str] = None
    block: Optional[str] = None
    lot_number: Optional[DualValue] = None
    size_sqft: Optional[int] = None
    garage_size: Optional[int] = None
    garage_size_text: Optional[DualValue] = None
    bedrooms: Optional[int] = None
    baths: Optional[float] = None
    depth: Optional[str] = None
    width: Optional[str] = None
    building_setbacks: Optional[str] = None
    power_box_location: Optional[str] = None
    lot_width: Optional[float] = None
    lot_depth: Optional[float] = None
    lot_price: Optional[float] = None
    house_price: Optional[float] = None
    square_footage: Optional[int] = None
    acres: Optional[float] = None
    lot_info: Optional[list[str]] = None
    is_deleted: bool = False
    created_at: Optional[datetime] = None

    @field_validator("id", mode="before")
    @classmethod
    def _opaque_id(cls, value: object) -> object:
        if isinstance(value, int) and not isinstance(value, bool):
            return str(value)
        return value

    @field_validator("lot_number", "garage_size_text", mode="before")
    @classmethod
    def _wrap_dual(cls, value: object) -> object:
        if isinstance(value, dict):
            return value
        try:
            return coerce_dual(value)
        except (TypeError, ValueError):
            # Let pydantic report the original value.
            return value

    @field_validator("is_deleted", mode="before")
    @classmethod
    def _null_is_not_deleted(cls, value: object) -> object:
        return False if value is None else value

    @field_serializer("lot_number", "garage_size_text")
    def _unwrap_dual(self, value: Optional[Union[TextValue, NumericValue]]) -> Optional[Union[str, int, float]]:
        return unwrap_dual(value)


class GeocodeResult(BaseModel):
    """A forward-geocoding candidate."""

    id: Optional[str] = None
    place_name: str
    center: list[float]


class ReverseGeocodeResult(BaseModel):
    """The most relevant address for a coordinate pair."""

    address: str
    center: Optional[list[float]] = None


class LocationMatch(BaseModel):
    """A search hit: either a stored property or a geocoded address."""

    id: str
    place_name: str
    center: list[float]
    type: Literal["property", "address"]
    property: Optional[Property] = None


class CategoryLegendEntry(BaseModel):
    """One row of the category filter menu."""

    category: Category
    label: str
    colors: list[str]
    background: str
    count: int = 0
    visible: bool = True


class PropertyListing(BaseModel):
    """Container for the non-deleted property collection."""

    properties: list[Property] = Field(default_factory=list)
    total: int = 0
    category_counts: dict[str, int] = Field(default_factory=dict)
