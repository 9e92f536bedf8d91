"""
Uniform-grid spatial index for planar radius queries.

Items are bucketed by integer cell coordinates ``(floor(x / cell), floor(y / cell))``.
A radius query only visits the ``ceil(radius / cell_size)`` rings of cells
around the query cell, so it never degrades into a scan of every item.

All distances in this package are planar: ``z`` is carried along on spawn
points but never takes part in a distance computation.
"""

import math
from dataclasses import dataclass, field
from typing import Callable, Dict, Generic, Iterable, Iterator, List, Tuple, TypeVar

T = TypeVar("T")

# Smallest usable cell size, avoids division by zero for degenerate radii
MIN_CELL_SIZE = 1e-6

CellKey = Tuple[int, int]


def project_xy(item) -> Tuple[float, float]:
    """Default projection: read ``.x`` / ``.y`` attributes."""
    return item.x, item.y


def dist2(a, b) -> float:
    """Squared planar distance between two objects exposing ``.x`` and ``.y``."""
    dx = a.x - b.x
    dy = a.y - b.y
    return dx * dx + dy * dy


def to_cell(value: float, cell_size: float) -> int:
    return int(math.floor(value / cell_size))


@dataclass
class SpatialGrid(Generic[T]):
    """Bucketed items keyed by integer cell coordinates."""

    cell_size: float
    cells: Dict[CellKey, List[T]] = field(default_factory=dict)
    project: Callable[[T], Tuple[float, float]] = project_xy

    def __len__(self) -> int:
        return sum(len(bucket) for bucket in self.cells.values())

    def is_empty(self) -> bool:
        return not self.cells

    def cell_of(self, x: float, y: float) -> CellKey:
        return to_cell(x, self.cell_size), to_cell(y, self.cell_size)

    def insert(self, item: T) -> None:
        x, y = self.project(item)
        key = self.cell_of(x, y)
        bucket = self.cells.get(key)
        if bucket is None:
            self.cells[key] = [item]
        else:
            bucket.append(item)

    def cells_for_bbox(
        self, xmin: float, ymin: float, xmax: float, ymax: float
    ) -> Iterator[CellKey]:
        """Yield every cell key overlapping the box, row by row."""
        ix0, iy0 = self.cell_of(xmin, ymin)
        ix1, iy1 = self.cell_of(xmax, ymax)
        for iy in range(iy0, iy1 + 1):
            for ix in range(ix0, ix1 + 1):
                yield ix, iy

    def buckets_in_bbox(
        self, xmin: float, ymin: float, xmax: float, ymax: float
    ) -> Iterator[List[T]]:
        """
        Yield the non-empty buckets overlapping the box.

        When the box spans more cells than the grid has occupied, the occupied
        cells are filtered instead, so a small cell size on a large box costs
        at most one pass over the grid.
        """
        ix0, iy0 = self.cell_of(xmin, ymin)
        ix1, iy1 = self.cell_of(xmax, ymax)
        if (ix1 - ix0 + 1) * (iy1 - iy0 + 1) > len(self.cells):
            for (ix, iy), bucket in self.cells.items():
                if ix0 <= ix <= ix1 and iy0 <= iy <= iy1 and bucket:
                    yield bucket
            return
        for key in self.cells_for_bbox(xmin, ymin, xmax, ymax):
            bucket = self.cells.get(key)
            if bucket:
                yield bucket

    def buckets_around(self, x: float, y: float, radius: float) -> Iterator[List[T]]:
        """Yield the non-empty buckets within ``ceil(radius / cell_size)`` rings of (x, y)."""
        cx, cy = self.cell_of(x, y)
        rings = int(math.ceil(radius / self.cell_size))
        for dy in range(-rings, rings + 1):
            for dx in range(-rings, rings + 1):
                bucket = self.cells.get((cx + dx, cy + dy))
                if bucket:
                    yield bucket


def build_spatial_grid(
    items: Iterable[T],
    cell_size: float,
    project: Callable[[T], Tuple[float, float]] = project_xy,
) -> SpatialGrid[T]:
    """
    Build a grid over ``items``.

    Args:
        items: Items to index, kept in input order inside each bucket
        cell_size: Cell edge length, clamped to ``MIN_CELL_SIZE``
        project: Maps an item to its planar (x, y) position

    Returns:
        Populated SpatialGrid
    """
    # max() would keep NaN, so compare explicitly
    safe_cell = cell_size if cell_size > MIN_CELL_SIZE else MIN_CELL_SIZE
    grid: SpatialGrid[T] = SpatialGrid(cell_size=float(safe_cell), project=project)
    for item in items:
        grid.insert(item)
    return grid


def query_points_within(grid: SpatialGrid[T], center, radius: float) -> List[T]:
    """
    Return every item whose squared distance to ``center`` is ``<= radius ** 2``.

    Items come back grouped by cell, rows scanned bottom-up and cells left to
    right, input order inside a cell. Empty when ``radius <= 0`` (or NaN) or
    the grid holds nothing.
    """
    if not radius > 0:
        return []
    if grid.is_empty():
        return []

    r2 = radius * radius
    px, py = center.x, center.y
    project = grid.project

    found: List[T] = []
    for bucket in grid.buckets_around(px, py, radius):
        for item in bucket:
            x, y = project(item)
            dx = x - px
            dy = y - py
            if dx * dx + dy * dy <= r2:
                found.append(item)
    return found
