"""
End-to-end auto-route planning.

Ties the core steps together the way the map tool's "create auto route"
action does:

1. Optionally tune parameters on a uniformly subsampled copy of the points
2. Drop dirty (isolated) points, relaxing the support threshold when too
   few points would survive
3. Classify dense points among the remaining ones
4. Build the route and turn it into named waypoint markers

Planning never raises on degenerate input; the outcome is reported through
``PlanResult.status`` and ``PlanResult.message``.
"""

import math
from typing import List, Optional, Sequence, Tuple

import structlog
from pydantic import BaseModel, Field, field_validator

from .density import (
    DIRTY_MIN_SUPPORT,
    classify_dense,
    compute_neighbor_counts,
    find_dirty_points,
)
from .parameter_tuner import TunedParams, tune_auto_route_params
from .route_builder import (
    RouteSettings,
    RouteStats,
    SpawnPoint,
    as_xy,
    floor_budget,
    generate_auto_route,
)

logger = structlog.get_logger()

# Support threshold used when the strict dirty filter removes too much
RELAXED_MIN_SUPPORT = 2


class PlannerOptions(BaseModel):
    """Manual route parameters and planning switches."""

    cluster_radius: float = Field(default=80.0, description="Dense classification radius")
    max_area_radius: float = Field(default=1200.0, description="Route area radius")
    max_step_distance: float = Field(default=350.0, description="Maximum step distance")
    max_waypoints: int = Field(default=20, description="Waypoint budget")
    waypoint_radius: float = Field(default=60.0, description="Marker radius of each waypoint")
    avoid_dense_travel_radius: float = Field(
        default=120.0, description="Clearance from dense points while travelling"
    )
    auto_tune: bool = Field(default=True, description="Tune radii before planning")
    tune_point_limit: int = Field(
        default=8000, description="Maximum points handed to the tuner"
    )

    @field_validator("max_waypoints", mode="before")
    @classmethod
    def floor_max_waypoints(cls, value):
        return floor_budget(value)

    @classmethod
    def from_settings(cls, settings) -> "PlannerOptions":
        """Options seeded from application settings."""
        return cls(
            cluster_radius=settings.default_cluster_radius,
            max_area_radius=settings.default_max_area_radius,
            max_step_distance=settings.default_max_step_distance,
            max_waypoints=settings.default_max_waypoints,
            waypoint_radius=settings.default_waypoint_radius,
            avoid_dense_travel_radius=settings.default_avoid_dense_travel_radius,
            auto_tune=settings.auto_tune,
            tune_point_limit=settings.tune_point_limit,
        )


class Waypoint(BaseModel):
    """A route marker placed on a spawn point."""

    name: str = Field(description="Display name")
    spawn_id: int = Field(description="Spawn point this marker sits on")
    center: Tuple[float, float, float] = Field(description="World position (x, y, z)")
    radius: float = Field(description="Marker radius")


class PlanResult(BaseModel):
    """Outcome of a planning run."""

    status: str = Field(description="ok, no_route, no_center or no_points")
    message: str = Field(default="", description="Human-readable summary")
    waypoints: List[Waypoint] = Field(default_factory=list)
    route: List[SpawnPoint] = Field(default_factory=list)
    stats: RouteStats = Field(default_factory=RouteStats)
    params: Optional[TunedParams] = Field(default=None, description="Parameters actually used")
    tuned: bool = Field(default=False, description="Whether tuned parameters were applied")
    dirty_count: int = 0
    usable_count: int = 0
    support_count_used: int = DIRTY_MIN_SUPPORT
    safe_count: int = 0


def subsample_uniform(points: Sequence, limit: int) -> List:
    """Every ``ceil(n / limit)``-th point when there are more than ``limit``."""
    if limit <= 0 or len(points) <= limit:
        return list(points)
    stride = math.ceil(len(points) / limit)
    return list(points[::stride])


def _fmt(value: float):
    return round(value, 2) if math.isfinite(value) else value

class AutoRoutePlanner:
    """Plans a farming route around a center from raw spawn points."""

    def __init__(self, options: Optional[PlannerOptions] = None):
        self.options = options or PlannerOptions()

    def plan(self, points: Sequence[SpawnPoint], center) -> PlanResult:
        """
        Plan a route.

        Args:
            points: All spawn points currently considered
            center: View center in world coordinates, None when the map has
                no world transform yet

        Returns:
            PlanResult with waypoints, the parameters used and filter counts
        """
        if center is None:
            return PlanResult(
                status="no_center",
                message="A world-coordinate center is required to plan a route.",
            )
        if not points:
            return PlanResult(
                status="no_points",
                message="No spawn points are available under the current filters.",
            )

        center = as_xy(center)
        points = list(points)
        opts = self.options

        params = TunedParams(
            cluster_radius=opts.cluster_radius,
            max_area_radius=opts.max_area_radius,
            max_step_distance=opts.max_step_distance,
            avoid_dense_travel_radius=opts.avoid_dense_travel_radius,
            dirty_support_radius=max(opts.max_step_distance * 2, opts.cluster_radius * 4),
        )
        tuned = False

        if opts.auto_tune:
            tune_points = subsample_uniform(points, opts.tune_point_limit)
            found = tune_auto_route_params(tune_points, center, opts.max_waypoints)
            if found is not None:
                params = TunedParams(
                    **{name: max(0.0, value) for name, value in found.model_dump().items()}
                )
                tuned = True

        dirty_counts = compute_neighbor_counts(points, params.dirty_support_radius)
        dirty_ids = find_dirty_points(
            points, params.dirty_support_radius, DIRTY_MIN_SUPPORT, counts=dirty_counts
        )
        usable = [p for p in points if p.id not in dirty_ids]
        support_used = DIRTY_MIN_SUPPORT

        required = min(len(points), max(60, opts.max_waypoints * 3))
        if len(usable) < required:
            relaxed_ids = find_dirty_points(
                points, params.dirty_support_radius, RELAXED_MIN_SUPPORT, counts=dirty_counts
            )
            relaxed = [p for p in points if p.id not in relaxed_ids]
            if len(relaxed) >= len(usable):
                usable = relaxed
                dirty_ids = relaxed_ids
                support_used = RELAXED_MIN_SUPPORT

        dense_ids = classify_dense(usable, compute_neighbor_counts(usable, params.cluster_radius))

        result = generate_auto_route(
            usable,
            dense_ids,
            RouteSettings(
                center=center,
                max_area_radius=params.max_area_radius,
                max_step_distance=params.max_step_distance,
                max_waypoints=opts.max_waypoints,
                avoid_dense_travel_radius=params.avoid_dense_travel_radius,
            ),
        )

        waypoints = [
            Waypoint(
                name=f"Auto {index + 1}",
                spawn_id=point.id,
                center=(point.x, point.y, point.z),
                radius=opts.waypoint_radius,
            )
            for index, point in enumerate(result.route)
        ]

        plan = PlanResult(
            status="ok" if result.route else "no_route",
            waypoints=waypoints,
            route=result.route,
            stats=result.stats,
            params=params,
            tuned=tuned,
            dirty_count=len(dirty_ids),
            usable_count=len(usable),
            support_count_used=support_used,
            safe_count=len(usable) - len(dense_ids),
        )
        plan.message = self._describe(plan, total=len(points))

        logger.info(
            "Auto route planned",
            status=plan.status,
            picked=result.stats.picked,
            tuned=tuned,
            usable=len(usable),
            dirty=len(dirty_ids),
        )
        return plan

    @staticmethod
    def _describe(plan: PlanResult, total: int) -> str:
        p = plan.params
        stats = plan.stats
        dirty_text = (
            f"Dirty filter: radius={_fmt(p.dirty_support_radius)} "
            f"min neighbors={plan.support_count_used} "
            f"removed={plan.dirty_count}/{total}, usable={plan.usable_count}."
        )
        params_text = (
            f"Params: cluster radius={_fmt(p.cluster_radius)} "
            f"step={_fmt(p.max_step_distance)} area radius={_fmt(p.max_area_radius)} "
            f"avoid={_fmt(p.avoid_dense_travel_radius)}. {dirty_text}"
        )
        counts_text = (
            f"safe {plan.safe_count}/{plan.usable_count}, "
            f"safe in area {stats.safe_in_area}/{stats.in_area}, "
            f"dense in area {stats.dense_in_area}."
        )
        if plan.status == "ok":
            return f"Generated {stats.picked} waypoints: {counts_text} {params_text}"
        return f"No usable route found: {counts_text} {params_text}"
