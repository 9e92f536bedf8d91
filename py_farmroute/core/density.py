"""
Neighbor-density classification for spawn points.

A point's neighbor count is the number of points (itself included) within a
radius. Points whose count reaches ``DENSE_MIN_COUNT`` are "dense" spawn
clusters that routes should stay away from; points whose count stays below a
support threshold at a much larger radius are "dirty" isolated noise.
"""

import math
from typing import Dict, Iterable, Optional, Sequence, Set

import structlog

from .spatial_grid import build_spatial_grid

logger = structlog.get_logger()

# Fixed density threshold: a point with this many points around it is dense
DENSE_MIN_COUNT = 3

# Minimum neighbor support for a point to survive the dirty filter
DIRTY_MIN_SUPPORT = 3


def compute_neighbor_counts(points: Sequence, radius: float) -> Dict[int, int]:
    """
    Count, for every point, how many points lie within ``radius`` of it.

    The count is self-inclusive, so an isolated point has count 1. A single
    grid with ``cell_size = radius`` is shared by all queries.

    Args:
        points: Spawn points (``id``, ``x``, ``y``)
        radius: Neighborhood radius; ``<= 0`` gives every point count 1

    Returns:
        Mapping of point id to neighbor count
    """
    counts: Dict[int, int] = {}
    if not points:
        return counts

    if not radius > 0:
        for point in points:
            counts[point.id] = 1
        return counts

    if math.isinf(radius):
        for point in points:
            counts[point.id] = len(points)
        return counts

    grid = build_spatial_grid(points, radius)
    r2 = radius * radius

    for point in points:
        px, py = point.x, point.y
        count = 0
        for bucket in grid.buckets_around(px, py, radius):
            for other in bucket:
                dx = other.x - px
                dy = other.y - py
                if dx * dx + dy * dy <= r2:
                    count += 1
        counts[point.id] = count

    return counts


def classify_dense(
    points: Iterable,
    counts: Dict[int, int],
    min_count: int = DENSE_MIN_COUNT,
) -> Set[int]:
    """Return ids whose neighbor count is at least ``min_count``."""
    return {point.id for point in points if counts.get(point.id, 1) >= min_count}


def find_dense_ids(points: Sequence, cluster_radius: float) -> Set[int]:
    """Dense ids among ``points`` at ``cluster_radius``."""
    return classify_dense(points, compute_neighbor_counts(points, cluster_radius))


def find_dirty_points(
    points: Sequence,
    support_radius: float,
    min_support: int = DIRTY_MIN_SUPPORT,
    counts: Optional[Dict[int, int]] = None,
) -> Set[int]:
    """
    Return ids of isolated points with fewer than ``min_support`` neighbors.

    ``counts`` may be passed in when the caller already computed them at
    ``support_radius``, e.g. to retry with a relaxed ``min_support``.
    """
    if counts is None:
        counts = compute_neighbor_counts(points, support_radius)
    dirty = {point.id for point in points if counts.get(point.id, 1) < min_support}
    logger.debug(
        "Dirty points classified",
        support_radius=support_radius,
        min_support=min_support,
        dirty=len(dirty),
        total=len(points),
    )
    return dirty
