"""Dense-cluster avoidance checks for route travel segments."""

import math
from typing import Iterable, Optional

from .spatial_grid import SpatialGrid, build_spatial_grid

# Segments shorter than this are treated as a single point
DEGENERATE_SEGMENT_LEN2 = 1e-12


def dist2_point_to_segment(p, a, b) -> float:
    """
    Squared distance from ``p`` to the segment ``a -> b``.

    Projects ``p`` onto the segment line and clamps the projection
    parameter to [0, 1].
    """
    return _dist2_xy_to_segment(p.x, p.y, a, b)


def build_dense_index(dense_points: Iterable, avoid_radius: float) -> Optional[SpatialGrid]:
    """Grid over dense points with ``cell_size = avoid_radius``; None when there is nothing to avoid."""
    if not avoid_radius > 0:
        return None
    grid = build_spatial_grid(dense_points, avoid_radius)
    if grid.is_empty():
        return None
    return grid


def segment_avoids_dense(a, b, dense_index: Optional[SpatialGrid], avoid_radius: float) -> bool:
    """
    Check that no dense point lies within ``avoid_radius`` of segment ``a -> b``.

    Only the occupied cells overlapping the segment's bounding box, grown by
    ``avoid_radius``, are scanned.

    Returns:
        True when the segment is clear (also when ``avoid_radius <= 0`` or
        the index is missing or empty), False when a dense point obstructs it
    """
    if dense_index is None:
        return True
    if not avoid_radius > 0:
        return True
    if dense_index.is_empty():
        return True
    if math.isinf(avoid_radius):
        return False

    r2 = avoid_radius * avoid_radius
    project = dense_index.project
    xmin = min(a.x, b.x) - avoid_radius
    xmax = max(a.x, b.x) + avoid_radius
    ymin = min(a.y, b.y) - avoid_radius
    ymax = max(a.y, b.y) + avoid_radius

    for bucket in dense_index.buckets_in_bbox(xmin, ymin, xmax, ymax):
        for dense in bucket:
            x, y = project(dense)
            if _dist2_xy_to_segment(x, y, a, b) <= r2:
                return False

    return True


def _dist2_xy_to_segment(x: float, y: float, a, b) -> float:
    abx = b.x - a.x
    aby = b.y - a.y
    apx = x - a.x
    apy = y - a.y

    ab_len2 = abx * abx + aby * aby
    if ab_len2 < DEGENERATE_SEGMENT_LEN2:
        return apx * apx + apy * apy

    t = max(0.0, min(1.0, (apx * abx + apy * aby) / ab_len2))
    dx = x - (a.x + t * abx)
    dy = y - (a.y + t * aby)
    return dx * dx + dy * dy
