from __future__ import annotations

from itertools import combinations

import pytest

from mask_grid.layout import GridPlacement, canvas_extent, place


def test_place_seven_images_in_three_columns() -> None:
    placements = place(list(range(7)), cell_size=100, gap=10, columns=3)

    assert [(p.x, p.y) for p in placements] == [
        (10, 10),
        (120, 10),
        (230, 10),
        (10, 120),
        (120, 120),
        (230, 120),
        (10, 230),
    ]
    assert [p.image for p in placements] == list(range(7))
    assert all((p.width, p.height) == (100, 100) for p in placements)


@pytest.mark.parametrize("count,columns,gap", [(7, 3, 10), (12, 1, 5), (25, 4, 0)])
def test_placements_never_overlap(count: int, columns: int, gap: int) -> None:
    placements = place(list(range(count)), cell_size=50, gap=gap, columns=columns)

    assert len(placements) == count
    assert not any(a.overlaps(b) for a, b in combinations(placements, 2))


def test_place_empty_sequence() -> None:
    assert place([], cell_size=100, gap=10, columns=3) == []


def test_zero_gap_still_wraps_after_column_count() -> None:
    placements = place(["a", "b", "c", "d"], cell_size=10, gap=0, columns=3)

    assert [(p.x, p.y) for p in placements] == [(0, 0), (10, 0), (20, 0), (0, 10)]


@pytest.mark.parametrize("cell_size,gap,columns", [(0, 10, 3), (100, -1, 3), (100, 10, 0)])
def test_place_rejects_bad_parameters(cell_size: int, gap: int, columns: int) -> None:
    with pytest.raises(ValueError):
        place(["a"], cell_size=cell_size, gap=gap, columns=columns)


def test_overlaps_detects_shared_area() -> None:
    a = GridPlacement(image=None, x=0, y=0, width=10, height=10)

    assert a.overlaps(GridPlacement(image=None, x=5, y=5, width=10, height=10))
    assert not a.overlaps(GridPlacement(image=None, x=10, y=0, width=10, height=10))


def test_canvas_extent_fits_every_cell() -> None:
    width, height = canvas_extent(7, cell_size=100, gap=10, columns=3)
    placements = place(list(range(7)), cell_size=100, gap=10, columns=3)

    assert (width, height) == (340, 340)
    assert max(p.x + p.width for p in placements) + 10 <= width
    assert max(p.y + p.height for p in placements) + 10 <= height
    assert canvas_extent(0, cell_size=100, gap=10, columns=3) == (340, 120)
