"""Area and lot-dimension conversions.

Every converter returns None instead of a number when its input cannot be
converted (missing, zero, negative, NaN or infinite). Callers treat None as
"leave the derived field empty", never as zero.
"""

import math

SQFT_PER_ACRE = 43560
ACRE_DECIMALS = 3

Number = int | float


def _positive(value: object) -> float | None:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    if not math.isfinite(value) or value <= 0:
        return None
    return float(value)


def sqft_to_acres(sqft: Number | None, places: int | None = ACRE_DECIMALS) -> float | None:
    """Convert square feet to acres.

    Examples:
        sqft_to_acres(43560)          -> 1.0
        sqft_to_acres(10000)          -> 0.23
        sqft_to_acres(10000, None)    -> 0.2295684113865932
        sqft_to_acres(0)              -> None
    """
    value = _positive(sqft)
    if value is None:
        return None
    acres = value / SQFT_PER_ACRE
    if places is None:
        return acres
    return round(acres, places)


def acres_to_sqft(acres: Number | None) -> int | None:
    """Convert acres to whole square feet.

    Examples:
        acres_to_sqft(1)     -> 43560
        acres_to_sqft(0.25)  -> 10890
        acres_to_sqft(-1)    -> None
    """
    value = _positive(acres)
    if value is None:
        return None
    return round(value * SQFT_PER_ACRE)


def dimensions_to_sqft(width: Number | None, depth: Number | None) -> int | None:
    """Area of a rectangular lot in whole square feet."""
    w = _positive(width)
    d = _positive(depth)
    if w is None or d is None:
        return None
    return round(w * d)


def format_acres(acres: Number | None) -> str | None:
    """Render a stored acreage for display, e.g. 0.250 -> '0.25'."""
    value = _positive(acres)
    if value is None:
        return None
    text = f"{value:.{ACRE_DECIMALS}f}".rstrip("0").rstrip(".")
    return text
