"""
Automatic tuning of route parameters.

The tuner grid-searches cluster (density) radii and step distances, both
expressed as multiples of an estimated base spacing between spawn points.
Every combination is evaluated by building a route with ``RouteBuilder``;
the winner is the longest route, then the shortest step distance, then the
cheapest route.

Before the search, isolated "dirty" points (fewer than three neighbors within
six base spacings) are dropped so stray spawns do not distort the result.
"""

import math
from dataclasses import dataclass
from typing import List, Optional, Sequence

import numpy as np
import structlog
from pydantic import BaseModel, Field

from .density import DIRTY_MIN_SUPPORT, find_dense_ids, find_dirty_points
from .route_builder import (
    RouteSettings,
    SpawnPoint,
    as_xy,
    generate_auto_route,
    route_cost,
    waypoint_budget,
)

logger = structlog.get_logger()

# Base spacing used when the point layout gives no usable estimate
FALLBACK_BASE_SPACING = 200.0

DIRTY_SUPPORT_SPACINGS = 6.0

CLUSTER_SPACING_FACTORS = (0.25, 0.35, 0.5, 0.7, 1.0, 1.4, 2.0)
STEP_SPACING_FACTORS = (0.8, 1.0, 1.3, 1.7, 2.2, 3.0)
STEP_CLUSTER_FACTORS = (1.3, 1.8, 2.4, 3.2)

# Steps must clear the cluster radius by this factor
MIN_STEP_OVER_CLUSTER = 1.05

AREA_STEP_MARGIN = 0.35
AVOID_CLUSTER_FACTOR = 1.15
AVOID_STEP_FACTOR = 0.25


class TunedParams(BaseModel):
    """Route parameters picked by the tuner."""

    cluster_radius: float = Field(description="Radius used to classify dense points")
    max_area_radius: float = Field(description="Route area radius around center")
    max_step_distance: float = Field(description="Maximum waypoint step distance")
    avoid_dense_travel_radius: float = Field(
        description="Clearance between travel segments and dense points"
    )
    dirty_support_radius: float = Field(
        description="Radius used to drop isolated noise points"
    )


@dataclass
class _Trial:
    params: TunedParams
    length: int
    cost: float

    def beats(self, other: Optional["_Trial"]) -> bool:
        if other is None:
            return True
        if self.length != other.length:
            return self.length > other.length
        if self.params.max_step_distance != other.params.max_step_distance:
            return self.params.max_step_distance < other.params.max_step_distance
        return self.cost < other.cost


def unique_sorted(values) -> List[float]:
    """Finite positive values, ascending, with near-duplicates (1e-9) collapsed."""
    cleaned = sorted(v for v in values if math.isfinite(v) and v > 0)
    result: List[float] = []
    for value in cleaned:
        if not result or abs(value - result[-1]) > 1e-9:
            result.append(value)
    return result


def estimate_base_spacing(points: Sequence[SpawnPoint]) -> float:
    """
    Estimate the typical distance between neighboring points.

    Uses ``sqrt(bbox_area / n)``; when the bounding box collapses to a line
    the longer extent is spread over ``sqrt(n)`` instead. Returns 0 when all
    points coincide or there are none.
    """
    if len(points) == 0:
        return 0.0

    xs = np.fromiter((p.x for p in points), dtype=float, count=len(points))
    ys = np.fromiter((p.y for p in points), dtype=float, count=len(points))
    width = float(np.max(xs) - np.min(xs))
    height = float(np.max(ys) - np.min(ys))
    n = max(1, len(points))

    area = width * height
    if area > 0:
        return math.sqrt(area / n)

    extent = max(abs(width), abs(height))
    if extent > 0:
        return extent / math.sqrt(n)

    return 0.0


def nearest_points(points: Sequence[SpawnPoint], center, count: int) -> List[SpawnPoint]:
    """The ``count`` points closest to ``center``; input order breaks distance ties."""
    xs = np.fromiter((p.x for p in points), dtype=float, count=len(points))
    ys = np.fromiter((p.y for p in points), dtype=float, count=len(points))
    d2 = (xs - center.x) ** 2 + (ys - center.y) ** 2
    order = np.argsort(d2, kind="stable")[:count]
    return [points[i] for i in order]


class ParameterTuner:
    """Grid search over cluster radius and step distance for one center."""

    def __init__(self, points: Sequence[SpawnPoint], center, max_waypoints: int):
        self.points = list(points)
        self.center = as_xy(center)
        self.max_waypoints = waypoint_budget(max_waypoints)

        self.base_spacing = 0.0
        self.dirty_support_radius = 0.0
        self.base_points: List[SpawnPoint] = []

    def tune(self) -> Optional[TunedParams]:
        """
        Run the search.

        Returns:
            Best TunedParams, or None when the waypoint budget is zero, there
            are no points, or no cluster radius leaves a safe point
        """
        if self.max_waypoints == 0 or not self.points:
            return None

        logger.info(
            "Tuning route parameters",
            points=len(self.points),
            max_waypoints=self.max_waypoints,
        )

        self.prepare()

        best: Optional[_Trial] = None
        trials = 0

        for cluster_radius in self.cluster_candidates():
            dense_ids = find_dense_ids(self.base_points, cluster_radius)
            safe_points = [p for p in self.base_points if p.id not in dense_ids]
            if not safe_points:
                continue

            area_base = self._safe_area_radius(safe_points)

            for max_step in self.step_candidates(cluster_radius):
                trial = self._evaluate(cluster_radius, max_step, area_base, dense_ids)
                trials += 1
                if trial.beats(best):
                    best = trial

        if best is None:
            logger.warning("No tuning trial produced safe points", trials=trials)
            return None

        logger.info(
            "Route parameters tuned",
            trials=trials,
            route_length=best.length,
            **best.params.model_dump(),
        )
        return best.params

    def prepare(self) -> None:
        """Estimate base spacing from points near center and drop dirty points."""
        self.base_spacing = self._estimate_local_spacing()
        self.dirty_support_radius = self.base_spacing * DIRTY_SUPPORT_SPACINGS
        self.base_points = self._drop_dirty_points()

    def _estimate_local_spacing(self) -> float:
        local_count = min(
            len(self.points), max(2000, min(5000, self.max_waypoints * 200))
        )
        local = nearest_points(self.points, self.center, local_count)
        spacing = estimate_base_spacing(local)
        if spacing > 0 and math.isfinite(spacing):
            return spacing
        return FALLBACK_BASE_SPACING

    def _drop_dirty_points(self) -> List[SpawnPoint]:
        """Drop isolated points unless that would leave too few to tune on."""
        dirty = find_dirty_points(self.points, self.dirty_support_radius, DIRTY_MIN_SUPPORT)
        cleaned = [p for p in self.points if p.id not in dirty]
        keep_at_least = min(len(self.points), max(100, self.max_waypoints * 5))
        if len(cleaned) >= keep_at_least:
            return cleaned
        logger.debug(
            "Dirty filter skipped, too few points would remain",
            cleaned=len(cleaned),
            required=keep_at_least,
        )
        return self.points

    def cluster_candidates(self) -> List[float]:
        return unique_sorted(self.base_spacing * f for f in CLUSTER_SPACING_FACTORS)

    def step_candidates(self, cluster_radius: float) -> List[float]:
        values = [self.base_spacing * f for f in STEP_SPACING_FACTORS]
        values += [cluster_radius * f for f in STEP_CLUSTER_FACTORS]
        return [v for v in unique_sorted(values) if v > cluster_radius * MIN_STEP_OVER_CLUSTER]

    def _safe_area_radius(self, safe_points: List[SpawnPoint]) -> float:
        """Distance to the n-th nearest safe point, n scaled by the waypoint budget."""
        xs = np.fromiter((p.x for p in safe_points), dtype=float, count=len(safe_points))
        ys = np.fromiter((p.y for p in safe_points), dtype=float, count=len(safe_points))
        distances = np.sort(np.sqrt((xs - self.center.x) ** 2 + (ys - self.center.y) ** 2))

        target = min(
            len(distances),
            max(self.max_waypoints * 6, min(400, self.max_waypoints * 12)),
        )
        return float(distances[target - 1])

    def _evaluate(self, cluster_radius, max_step, area_base, dense_ids) -> _Trial:
        params = TunedParams(
            cluster_radius=cluster_radius,
            max_area_radius=area_base + max_step * AREA_STEP_MARGIN,
            max_step_distance=max_step,
            avoid_dense_travel_radius=max(
                cluster_radius * AVOID_CLUSTER_FACTOR, max_step * AVOID_STEP_FACTOR
            ),
            dirty_support_radius=self.dirty_support_radius,
        )
        result = generate_auto_route(
            self.base_points,
            dense_ids,
            RouteSettings(
                center=self.center,
                max_area_radius=params.max_area_radius,
                max_step_distance=params.max_step_distance,
                max_waypoints=self.max_waypoints,
                avoid_dense_travel_radius=params.avoid_dense_travel_radius,
            ),
        )
        cost = route_cost(result.route)
        logger.debug(
            "Tuning trial",
            cluster_radius=round(cluster_radius, 3),
            max_step_distance=round(max_step, 3),
            length=len(result.route),
            cost=round(cost, 3),
        )
        return _Trial(params=params, length=len(result.route), cost=cost)


def tune_auto_route_params(
    points: Sequence[SpawnPoint], center, max_waypoints: int
) -> Optional[TunedParams]:
    """
    Pick cluster, step, area and avoidance radii that make the route longest.

    Args:
        points: Spawn points; callers should subsample very large sets first
        center: Route center, an object with ``.x``/``.y`` or an ``(x, y)`` pair
        max_waypoints: Waypoint budget

    Returns:
        TunedParams, or None for an empty point set or a zero budget
    """
    return ParameterTuner(points, center, max_waypoints).tune()
