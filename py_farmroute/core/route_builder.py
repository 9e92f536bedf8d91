"""
Greedy farming-route construction.

Given spawn points, the ids of points that sit inside dense clusters and a
set of route settings, this module picks an ordered chain of safe waypoints
around a center:

1. Keep points within the area radius, split them into dense and safe
2. Rank safe points by local degree to choose a handful of start candidates
3. From every start, walk greedily to the unvisited safe neighbor that keeps
   the most options open (one-step lookahead), never travelling through the
   avoidance radius of a dense point
4. Keep the longest walk, the cheapest one on ties

The walk is a greedy approximation, not a shortest-tour solver. The tuner in
``parameter_tuner`` is calibrated against this exact tie-break order.
"""

import math
import sys
from dataclasses import dataclass, field
from typing import Collection, Dict, List, NamedTuple, Optional, Sequence, Tuple

import structlog
from pydantic import BaseModel, Field, field_validator

from .avoidance import build_dense_index, segment_avoids_dense
from .density import compute_neighbor_counts
from .spatial_grid import build_spatial_grid, dist2, query_points_within

logger = structlog.get_logger()

# Number of best-ranked start points explored per route
MAX_START_CANDIDATES = 12


@dataclass(frozen=True)
class SpawnPoint:
    """A monster spawn location in world coordinates. Identity is ``id``."""

    id: int
    x: float
    y: float
    z: float = 0.0


class XY(NamedTuple):
    """Planar world position."""

    x: float
    y: float


def as_xy(center) -> XY:
    """Normalize a center given as an object with ``.x``/``.y`` or an ``(x, y)`` pair."""
    if hasattr(center, "x"):
        return XY(float(center.x), float(center.y))
    return XY(float(center[0]), float(center[1]))


def waypoint_budget(value) -> int:
    """
    Floor a waypoint budget and clamp it at zero.

    NaN counts as zero and ``+inf`` as no limit.
    """
    if isinstance(value, float) and not math.isfinite(value):
        return sys.maxsize if value > 0 else 0
    return max(0, int(math.floor(value)))


def floor_budget(value):
    """Field validator body: floor float budgets, pass anything else through."""
    if isinstance(value, float):
        return waypoint_budget(value)
    return value


class RouteSettings(BaseModel):
    """Route construction settings. Non-positive radii mean unbounded."""

    center: XY = Field(description="Route center in world coordinates")
    max_area_radius: float = Field(
        default=0.0, description="Waypoints stay within this distance of center"
    )
    max_step_distance: float = Field(
        default=0.0, description="Maximum distance between consecutive waypoints"
    )
    max_waypoints: int = Field(default=20, description="Waypoint budget")
    avoid_dense_travel_radius: float = Field(
        default=0.0, description="Clearance kept between travel segments and dense points"
    )

    @field_validator("max_waypoints", mode="before")
    @classmethod
    def floor_max_waypoints(cls, value):
        return floor_budget(value)


@dataclass
class RouteStats:
    """Point counts observed while building a route."""

    total: int = 0
    in_area: int = 0
    dense_in_area: int = 0
    safe_in_area: int = 0
    picked: int = 0


@dataclass
class RouteResult:
    """Ordered waypoints plus the stats of the run that produced them."""

    route: List[SpawnPoint] = field(default_factory=list)
    stats: RouteStats = field(default_factory=RouteStats)

    @property
    def cost(self) -> float:
        return route_cost(self.route)

    def to_xyz(self) -> List[Tuple[float, float, float]]:
        """Route as plain coordinates for display."""
        return [(point.x, point.y, point.z) for point in self.route]


def route_cost(route: Sequence) -> float:
    """Sum of squared step lengths; long jumps weigh superlinearly."""
    cost = 0.0
    for index in range(len(route) - 1):
        cost += dist2(route[index], route[index + 1])
    return cost


class RouteBuilder:
    """Builds one route for a fixed set of points, dense ids and settings."""

    def __init__(
        self,
        points: Sequence[SpawnPoint],
        dense_ids: Collection[int],
        settings: RouteSettings,
        max_start_candidates: int = MAX_START_CANDIDATES,
    ):
        self.points = points
        self.dense_ids = dense_ids
        self.settings = settings
        self.max_start_candidates = max_start_candidates

        self.center = settings.center
        self.max_waypoints = waypoint_budget(settings.max_waypoints)
        self.max_area_radius = settings.max_area_radius
        self.max_step = settings.max_step_distance
        self.avoid_radius = settings.avoid_dense_travel_radius

        # Populated by build()
        self.in_area: List[SpawnPoint] = []
        self.dense_in_area: List[SpawnPoint] = []
        self.safe_in_area: List[SpawnPoint] = []
        self.safe_index = None
        self.dense_index = None
        self.local_counts: Dict[int, int] = {}

    @property
    def step_bounded(self) -> bool:
        return self.max_step > 0 and math.isfinite(self.max_step)

    def build(self) -> RouteResult:
        """Run area filtering, start selection and the multi-start greedy walk."""
        self._split_area()
        self._index_dense_for_travel()

        stats = RouteStats(
            total=len(self.points),
            in_area=len(self.in_area),
            dense_in_area=len(self.dense_in_area),
            safe_in_area=len(self.safe_in_area),
        )

        if self.max_waypoints == 0 or not self.safe_in_area:
            return RouteResult(route=[], stats=stats)

        if self.step_bounded:
            self.safe_index = build_spatial_grid(self.safe_in_area, self.max_step)
        if self.max_step > 0:
            self.local_counts = compute_neighbor_counts(self.safe_in_area, self.max_step)

        starts = self.select_starts()

        best_route = self.greedy_path(starts[0])
        best_cost = route_cost(best_route)
        for start in starts[1:]:
            candidate = self.greedy_path(start)
            if len(candidate) > len(best_route):
                best_route = candidate
                best_cost = route_cost(candidate)
            elif len(candidate) == len(best_route):
                cost = route_cost(candidate)
                if cost < best_cost:
                    best_route = candidate
                    best_cost = cost

        stats.picked = len(best_route)
        logger.debug(
            "Route generated",
            picked=stats.picked,
            in_area=stats.in_area,
            safe_in_area=stats.safe_in_area,
            starts=len(starts),
            cost=round(best_cost, 3),
        )
        return RouteResult(route=best_route, stats=stats)

    def _split_area(self) -> None:
        radius = self.max_area_radius
        area_r2 = radius * radius if radius > 0 else math.inf

        self.in_area = [p for p in self.points if dist2(self.center, p) <= area_r2]
        self.dense_in_area = [p for p in self.in_area if p.id in self.dense_ids]
        self.safe_in_area = [p for p in self.in_area if p.id not in self.dense_ids]

    def _index_dense_for_travel(self) -> None:
        """Index dense points that can obstruct travel inside the area."""
        if not self.avoid_radius > 0:
            self.dense_index = None
            return

        if self.max_area_radius > 0:
            reach = self.max_area_radius + self.avoid_radius
            travel_r2 = reach * reach
        else:
            travel_r2 = math.inf

        dense_for_travel = [
            p for p in self.points
            if p.id in self.dense_ids and dist2(self.center, p) <= travel_r2
        ]
        self.dense_index = build_dense_index(dense_for_travel, self.avoid_radius)

    def _local_degree(self, point: SpawnPoint) -> int:
        return self.local_counts.get(point.id, 1) - 1

    def select_starts(self) -> List[SpawnPoint]:
        """
        Pick start candidates.

        Safe points are ranked by local degree (descending), distance to
        center and id; the top ``max_start_candidates`` are taken, plus the
        point closest to center when it is not among them.
        """
        closest: Optional[SpawnPoint] = None
        closest_d2 = math.inf
        for point in self.safe_in_area:
            d2 = dist2(self.center, point)
            if d2 < closest_d2:
                closest_d2 = d2
                closest = point

        ranked = sorted(
            self.safe_in_area,
            key=lambda p: (-self._local_degree(p), dist2(self.center, p), p.id),
        )
        starts = ranked[: self.max_start_candidates]

        if closest is not None and all(p.id != closest.id for p in starts):
            starts.append(closest)
        return starts

    def greedy_path(self, start: SpawnPoint) -> List[SpawnPoint]:
        """
        Walk from ``start`` until stranded or the waypoint budget is spent.

        Each step picks, among unvisited safe points within one step whose
        travel segment clears the dense points, the best by: forward degree,
        local degree, shorter step, closer to center. Earlier candidates win
        full ties.
        """
        max_step2 = self.max_step * self.max_step if self.max_step > 0 else math.inf
        bounded = self.step_bounded and self.safe_index is not None

        route = [start]
        visited = {start.id}

        while len(route) < self.max_waypoints:
            current = route[-1]
            if bounded:
                candidates = query_points_within(self.safe_index, current, self.max_step)
            else:
                candidates = self.safe_in_area

            best: Optional[SpawnPoint] = None
            best_key = None

            for candidate in candidates:
                if candidate.id == current.id or candidate.id in visited:
                    continue

                step_d2 = dist2(current, candidate)
                if step_d2 > max_step2:
                    continue
                if not segment_avoids_dense(current, candidate, self.dense_index, self.avoid_radius):
                    continue

                if bounded:
                    degree = 0
                    for neighbor in query_points_within(self.safe_index, candidate, self.max_step):
                        if neighbor.id != candidate.id and neighbor.id not in visited:
                            degree += 1
                else:
                    # Unbounded step: every remaining point counts as reachable
                    degree = len(self.safe_in_area) - len(visited)

                key = (
                    degree,
                    self._local_degree(candidate),
                    -step_d2,
                    -dist2(self.center, candidate),
                )
                if best_key is None or key > best_key:
                    best = candidate
                    best_key = key

            if best is None:
                break
            route.append(best)
            visited.add(best.id)

        return route


def generate_auto_route(
    points: Sequence[SpawnPoint],
    dense_ids: Collection[int],
    settings: RouteSettings,
) -> RouteResult:
    """
    Build the best greedy route for ``points`` under ``settings``.

    Args:
        points: Candidate spawn points
        dense_ids: Ids of points classified as dense clusters
        settings: Area, step, budget and avoidance settings

    Returns:
        RouteResult; the route is empty (stats still populated) when the
        budget is zero or no safe point lies in the area
    """
    return RouteBuilder(points, dense_ids, settings).build()
