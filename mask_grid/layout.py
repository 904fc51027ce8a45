"""Thumbnail grid layout: left-to-right, top-to-bottom, fixed-size cells."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, List, Sequence, Tuple


@dataclass(frozen=True)
class GridPlacement:
    image: Any
    x: int
    y: int
    width: int
    height: int

    def overlaps(self, other: "GridPlacement") -> bool:
        return (
            self.x < other.x + other.width
            and other.x < self.x + self.width
            and self.y < other.y + other.height
            and other.y < self.y + self.height
        )


def _check(cell_size: int, gap: int, columns: int) -> None:
    if cell_size <= 0:
        raise ValueError("cell_size must be positive")
    if gap < 0:
        raise ValueError("gap must not be negative")
    if columns < 1:
        raise ValueError("columns must be at least 1")


def place(images: Sequence[Any], cell_size: int, gap: int, columns: int = 3) -> List[GridPlacement]:
    """
    Assign each image a cell, in order.

    The cursor starts at (gap, gap) and moves right by `cell_size + gap`;
    once a row holds `columns` cells (a row width budget of
    `columns * (cell_size + gap)`) it wraps back to x = gap one row down.
    The grid grows downward without bound.
    """
    _check(cell_size, gap, columns)
    step = cell_size + gap
    placements: List[GridPlacement] = []
    x, y = gap, gap
    for index, image in enumerate(images):
        placements.append(GridPlacement(image=image, x=x, y=y, width=cell_size, height=cell_size))
        x += step
        if (index + 1) % columns == 0:
            x = gap
            y += step
    return placements


def canvas_extent(count: int, cell_size: int, gap: int, columns: int = 3) -> Tuple[int, int]:
    """Return the (width, height) needed to show `count` cells with a trailing gap."""
    _check(cell_size, gap, columns)
    step = cell_size + gap
    rows = max(1, -(-count // columns))
    return gap + columns * step, gap + rows * step
