"""Single-selection and side-by-side comparison state."""

from collections.abc import Iterable, Iterator

from lotmap_mcp.models import Property


class CompareSet:
    """Insertion-ordered set of property ids picked for comparison."""

    def __init__(self, ids: Iterable[str] = ()):
        self._ids: dict[str, None] = dict.fromkeys(ids)

    def toggle(self, property_id: str) -> bool:
        """Add or remove an id; returns True if it is now selected."""
        if property_id in self._ids:
            del self._ids[property_id]
            return False
        self._ids[property_id] = None
        return True

    def remove(self, property_id: str) -> None:
        self._ids.pop(property_id, None)

    def clear(self) -> None:
        self._ids.clear()

    @property
    def ids(self) -> list[str]:
        return list(self._ids)

    def __contains__(self, property_id: object) -> bool:
        return property_id in self._ids

    def __iter__(self) -> Iterator[str]:
        return iter(list(self._ids))

    def __len__(self) -> int:
        return len(self._ids)


class SelectionState:
    """What the detail view and the compare panel are showing.

    Compare mode and the single-property detail view are mutually exclusive:
    entering compare mode drops the single selection, leaving it drops the
    comparison set.
    """

    def __init__(self) -> None:
        self.selected_id: str | None = None
        self.compare_mode: bool = False
        self.compare = CompareSet()

    @property
    def detail_id(self) -> str | None:
        """Id shown in the single-property detail view, if any."""
        if self.compare_mode:
            return None
        return self.selected_id

    def click(self, property_id: str) -> None:
        """Handle a marker or list click."""
        if self.compare_mode:
            self.compare.toggle(property_id)
        else:
            self.selected_id = property_id

    def close_detail(self) -> None:
        self.selected_id = None

    def enter_compare(self) -> None:
        self.compare_mode = True
        self.selected_id = None

    def exit_compare(self) -> None:
        self.compare_mode = False
        self.compare.clear()

    def toggle_compare(self) -> bool:
        if self.compare_mode:
            self.exit_compare()
        else:
            self.enter_compare()
        return self.compare_mode

    def select_search_result(self, property_id: str) -> None:
        """Jump to a property picked from search; leaves compare mode."""
        if self.compare_mode:
            self.exit_compare()
        self.selected_id = property_id

    def forget(self, property_id: str) -> None:
        """Drop every reference to a property that left the collection."""
        if self.selected_id == property_id:
            self.selected_id = None
        self.compare.remove(property_id)

    def compared(self, properties: Iterable[Property]) -> list[Property]:
        """Compared properties in selection order, skipping unknown ids."""
        by_id = {p.id: p for p in properties}
        return [by_id[pid] for pid in self.compare if pid in by_id]
