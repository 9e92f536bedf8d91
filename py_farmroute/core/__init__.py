"""
Core route planning functionality.
"""

from .spatial_grid import SpatialGrid, build_spatial_grid, query_points_within
from .density import DENSE_MIN_COUNT, compute_neighbor_counts, classify_dense, find_dirty_points
from .avoidance import segment_avoids_dense, dist2_point_to_segment
from .route_builder import (
    SpawnPoint, XY, as_xy, RouteSettings, RouteStats, RouteResult, RouteBuilder,
    generate_auto_route, route_cost,
)
from .parameter_tuner import TunedParams, ParameterTuner, tune_auto_route_params
from .planner import AutoRoutePlanner, PlannerOptions, PlanResult, Waypoint

__all__ = ['SpatialGrid', 'build_spatial_grid', 'query_points_within',
           'DENSE_MIN_COUNT', 'compute_neighbor_counts', 'classify_dense', 'find_dirty_points',
           'segment_avoids_dense', 'dist2_point_to_segment',
           'SpawnPoint', 'XY', 'as_xy', 'RouteSettings', 'RouteStats', 'RouteResult', 'RouteBuilder',
           'generate_auto_route', 'route_cost',
           'TunedParams', 'ParameterTuner', 'tune_auto_route_params',
           'AutoRoutePlanner', 'PlannerOptions', 'PlanResult', 'Waypoint']
