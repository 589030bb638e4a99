"""Category colors, labels, counts and the visibility filter model."""

from collections.abc import Iterable
from dataclasses import dataclass

from lotmap_mcp.models import Category, CategoryLegendEntry, Property

ALL_CATEGORIES: tuple[Category, ...] = tuple(Category)

PENDING_RED = "#EF4444"
CONSTRUCTION_BLUE = "#3B82F6"

CATEGORY_COLORS: dict[Category, tuple[str, ...]] = {
    Category.VACANT_LOT: ("#8B4513",),
    Category.PLANNED_CONSTRUCTION: ("#93C5FD",),
    Category.UNDER_CONSTRUCTION: (CONSTRUCTION_BLUE,),
    Category.FOR_SALE_COMPLETED: ("#10B981",),
    Category.PENDING: (PENDING_RED,),
    Category.PENDING_UNDER_CONSTRUCTION: (PENDING_RED, CONSTRUCTION_BLUE),
    Category.SOLD: ("#D4AF37",),
    Category.COMPETITORS: ("#000000",),
}

CATEGORY_LABELS: dict[Category, str] = {
    Category.VACANT_LOT: "Vacant Lots",
    Category.PLANNED_CONSTRUCTION: "Planned for Construction",
    Category.UNDER_CONSTRUCTION: "Homes Under Construction",
    Category.FOR_SALE_COMPLETED: "Homes for Sale (Completed)",
    Category.PENDING: "Homes Pending",
    Category.PENDING_UNDER_CONSTRUCTION: "Pending & Under Construction",
    Category.SOLD: "Homes Sold",
    Category.COMPETITORS: "Competitors",
}


@dataclass(frozen=True)
class CategoryStyle:
    """Marker fill for a category: one solid color or an even split."""

    colors: tuple[str, ...]

    @property
    def is_split(self) -> bool:
        return len(self.colors) > 1

    @property
    def css_background(self) -> str:
        if not self.is_split:
            return self.colors[0]
        step = 100 / len(self.colors)
        stops = ", ".join(
            f"{color} {round(i * step)}% {round((i + 1) * step)}%"
            for i, color in enumerate(self.colors)
        )
        return f"linear-gradient(90deg, {stops})"


def category_style(category: Category | str) -> CategoryStyle:
    return CategoryStyle(CATEGORY_COLORS[Category(category)])


def category_counts(properties: Iterable[Property]) -> dict[Category, int]:
    """Count non-deleted properties per category; every category is present."""
    counts = {category: 0 for category in ALL_CATEGORIES}
    for prop in properties:
        if prop.is_deleted:
            continue
        counts[prop.category] += 1
    return counts


class VisibilityState:
    """The set of categories currently shown on the map and in the list."""

    def __init__(self, visible: Iterable[Category | str] | None = None):
        if visible is None:
            self._visible = set(ALL_CATEGORIES)
        else:
            self._visible = {Category(c) for c in visible}

    @property
    def visible(self) -> frozenset[Category]:
        return frozenset(self._visible)

    def is_visible(self, category: Category | str) -> bool:
        return Category(category) in self._visible

    def toggle(self, category: Category | str) -> bool:
        """Flip one category and return whether it is now visible."""
        category = Category(category)
        if category in self._visible:
            self._visible.discard(category)
            return False
        self._visible.add(category)
        return True

    def show(self, category: Category | str) -> None:
        self._visible.add(Category(category))

    def hide(self, category: Category | str) -> None:
        self._visible.discard(Category(category))

    def show_all(self) -> None:
        self._visible = set(ALL_CATEGORIES)

    def filter(self, properties: Iterable[Property]) -> list[Property]:
        return [
            p for p in properties if not p.is_deleted and p.category in self._visible
        ]


def category_legend(
    properties: Iterable[Property],
    visibility: VisibilityState | None = None,
) -> list[CategoryLegendEntry]:
    """Build the filter menu rows in enum order."""
    visibility = visibility or VisibilityState()
    counts = category_counts(properties)
    entries: list[CategoryLegendEntry] = []
    for category in ALL_CATEGORIES:
        style = category_style(category)
        entries.append(
            CategoryLegendEntry(
                category=category,
                label=CATEGORY_LABELS[category],
                colors=list(style.colors),
                background=style.css_background,
                count=counts[category],
                visible=visibility.is_visible(category),
            )
        )
    return entries
