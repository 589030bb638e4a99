"""Keep lot dimensions, square footage and acreage consistent after an edit.

Four fields are linked: ``lot_width``, ``lot_depth``, ``square_footage`` and
``acres``. Whenever both lot dimensions are populated they are the source of
truth and drive the two area fields. Otherwise square footage and acres
follow each other, whichever the user touched last.
"""

import logging
from collections.abc import Callable, Mapping
from enum import Enum
from typing import Any

from lotmap_mcp.models import Property
from lotmap_mcp.units import acres_to_sqft, dimensions_to_sqft, sqft_to_acres

logger = logging.getLogger(__name__)

Number = int | float
ChangeListener = Callable[[str, Number | None], None]

LINKED_FIELDS = ("lot_width", "lot_depth", "square_footage", "acres")
DIMENSION_FIELDS = ("lot_width", "lot_depth")


class LastTouched(str, Enum):
    NONE = "none"
    ACRES = "acres"
    SQUARE_FOOTAGE = "square_footage"
    LOT_DIMENSIONS = "lot_dimensions"


class FieldReconciler:
    """Derive the linked lot fields from the most recent edit.

    ``on_change`` is called for every derived value. A form binding may feed
    those values straight back into :meth:`edit`; the in-flight flag turns
    such nested calls into plain assignments so one user action never
    cascades into a reverse conversion.
    """

    def __init__(
        self,
        values: Mapping[str, Any] | None = None,
        on_change: ChangeListener | None = None,
    ):
        self.values: dict[str, Number | None] = dict.fromkeys(LINKED_FIELDS)
        if values:
            for name in LINKED_FIELDS:
                if name in values:
                    self.values[name] = values[name]
        self.last_touched = LastTouched.NONE
        self._on_change = on_change
        self._reconciling = False

    @classmethod
    def from_record(
        cls,
        record: Property | Mapping[str, Any] | None,
        on_change: ChangeListener | None = None,
    ) -> "FieldReconciler":
        if record is None:
            return cls(on_change=on_change)
        if isinstance(record, Property):
            record = record.model_dump(include=set(LINKED_FIELDS))
        reconciler = cls(record, on_change=on_change)
        if reconciler.dimensions_populated:
            reconciler.last_touched = LastTouched.LOT_DIMENSIONS
        return reconciler

    @property
    def dimensions_populated(self) -> bool:
        return dimensions_to_sqft(self.values["lot_width"], self.values["lot_depth"]) is not None

    def edit(self, field: str, value: Number | None) -> dict[str, Number | None]:
        """Record a user edit and return the fields derived from it."""
        if field not in LINKED_FIELDS:
            raise KeyError(f"{field!r} is not a linked lot field")

        self.values[field] = value
        if self._reconciling:
            return {}

        self._reconciling = True
        try:
            derived = self._derive(field, value)
            for name, derived_value in derived.items():
                self.values[name] = derived_value
                if self._on_change is not None:
                    self._on_change(name, derived_value)
        finally:
            self._reconciling = False
        return derived

    def _derive(self, field: str, value: Number | None) -> dict[str, Number | None]:
        if field in DIMENSION_FIELDS:
            sqft = dimensions_to_sqft(self.values["lot_width"], self.values["lot_depth"])
            if sqft is None:
                # Dimension priority ends; the area fields keep their values.
                if self.last_touched is LastTouched.LOT_DIMENSIONS:
                    self.last_touched = LastTouched.NONE
                return {}
            self.last_touched = LastTouched.LOT_DIMENSIONS
            return {"square_footage": sqft, "acres": sqft_to_acres(sqft)}

        if self.dimensions_populated:
            logger.debug("Manual %s override kept; lot dimensions take priority", field)
            return {}

        if field == "square_footage":
            self.last_touched = LastTouched.SQUARE_FOOTAGE
            return {"acres": sqft_to_acres(value)}

        self.last_touched = LastTouched.ACRES
        return {"square_footage": acres_to_sqft(value)}


def reconcile_changes(
    current: Property | Mapping[str, Any] | None,
    changes: Mapping[str, Any],
) -> dict[str, Any]:
    """Apply ``changes`` on top of ``current`` and add the derived lot fields.

    Dimension edits are replayed before area edits, so the outcome does not
    depend on key order. A field the caller set explicitly is never replaced
    by a derived value.
    """
    reconciler = FieldReconciler.from_record(current)
    result = dict(changes)
    for name in LINKED_FIELDS:
        if name not in changes:
            continue
        for derived_name, derived_value in reconciler.edit(name, changes[name]).items():
            if derived_name not in changes:
                result[derived_name] = derived_value
    return result
