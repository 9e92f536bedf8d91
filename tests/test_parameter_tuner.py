"""Tests for route parameter auto-tuning."""

import pytest

from py_farmroute.core.density import find_dense_ids
from py_farmroute.core.parameter_tuner import (
    FALLBACK_BASE_SPACING,
    ParameterTuner,
    TunedParams,
    estimate_base_spacing,
    nearest_points,
    tune_auto_route_params,
    unique_sorted,
)
from py_farmroute.core.route_builder import RouteSettings, XY, generate_auto_route
from conftest import make_grid, make_points


class TestHelpers:
    """Test spacing estimation and candidate helpers."""

    def test_unique_sorted(self):
        """Values are filtered, sorted and deduplicated."""
        values = [3.0, 1.0, 3.0 + 1e-12, -2.0, 0.0, float("nan"), float("inf"), 2.0]
        assert unique_sorted(values) == [1.0, 2.0, 3.0]

    def test_base_spacing_area(self):
        """Spacing is sqrt(bbox area / count)."""
        points = make_grid(20, 20, spacing=10.0)
        assert estimate_base_spacing(points) == pytest.approx(9.5)

    def test_base_spacing_line(self):
        """A degenerate bbox spreads the extent over sqrt(count)."""
        points = make_points([(0, 0), (100, 0), (200, 0), (300, 0)])
        assert estimate_base_spacing(points) == pytest.approx(300.0 / 2.0)

    def test_base_spacing_coincident(self):
        """Coincident or missing points give zero."""
        assert estimate_base_spacing(make_points([(5, 5), (5, 5)])) == 0.0
        assert estimate_base_spacing([]) == 0.0

    def test_nearest_points(self):
        """Closest points come first; ties keep input order."""
        points = make_points([(10, 0), (1, 0), (-10, 0), (50, 50)])
        nearest = nearest_points(points, XY(0.0, 0.0), 3)
        assert [p.id for p in nearest] == [2, 1, 3]


class TestTuneAutoRouteParams:
    """Test the grid search."""

    @pytest.fixture
    def lattice(self):
        return make_grid(20, 20, spacing=10.0)

    def test_empty_points(self):
        """Nothing to tune on an empty set."""
        assert tune_auto_route_params([], XY(0.0, 0.0), 10) is None

    @pytest.mark.parametrize("budget", [0, -3])
    def test_zero_budget(self, lattice, budget):
        """Nothing to tune without a waypoint budget."""
        assert tune_auto_route_params(lattice, XY(95.0, 95.0), budget) is None

    def test_lattice_picks_shortest_chaining_step(self, lattice):
        """On a 10-unit lattice the smallest step above 10 wins."""
        params = tune_auto_route_params(lattice, XY(95.0, 95.0), 8)

        assert isinstance(params, TunedParams)
        base = 9.5
        assert params.dirty_support_radius == pytest.approx(6 * base)
        assert params.cluster_radius == pytest.approx(0.35 * base)
        assert params.max_step_distance == pytest.approx(0.35 * base * 3.2)
        assert params.avoid_dense_travel_radius == pytest.approx(0.35 * base * 1.15)
        assert params.max_step_distance > 10.0

    def test_tuned_params_produce_full_route(self, lattice):
        """Feeding tuned params back into the builder fills the budget."""
        center = XY(95.0, 95.0)
        params = tune_auto_route_params(lattice, center, 8)
        dense_ids = find_dense_ids(lattice, params.cluster_radius)

        result = generate_auto_route(
            lattice,
            dense_ids,
            RouteSettings(
                center=center,
                max_area_radius=params.max_area_radius,
                max_step_distance=params.max_step_distance,
                max_waypoints=8,
                avoid_dense_travel_radius=params.avoid_dense_travel_radius,
            ),
        )
        assert result.stats.picked == 8

    def test_tuple_center(self, lattice):
        """A plain (x, y) pair tunes exactly like an XY center."""
        from_pair = tune_auto_route_params(lattice, (95.0, 95.0), 8)

        assert from_pair is not None
        assert from_pair == tune_auto_route_params(lattice, XY(95.0, 95.0), 8)
        assert ParameterTuner(lattice, [95, 95], 8).center == XY(95.0, 95.0)

    def test_fractional_budget(self, lattice):
        """A fractional budget is floored."""
        tuner = ParameterTuner(lattice, XY(95.0, 95.0), 8.7)
        assert tuner.max_waypoints == 8
        assert tune_auto_route_params(lattice, XY(95.0, 95.0), 8.7) == tune_auto_route_params(
            lattice, XY(95.0, 95.0), 8
        )

    def test_step_exceeds_cluster_radius(self, clustered_points):
        """Every tuned step clears the cluster radius."""
        params = tune_auto_route_params(clustered_points, XY(500.0, 500.0), 12)

        assert params is not None
        assert params.max_step_distance > 1.05 * params.cluster_radius
        assert params.avoid_dense_travel_radius == pytest.approx(
            max(1.15 * params.cluster_radius, 0.25 * params.max_step_distance)
        )
        assert params.max_area_radius > 0
        assert params.dirty_support_radius > 0

    def test_all_dense_returns_none(self):
        """When every radius marks everything dense there is no answer."""
        points = make_points([(0, 0)] * 5)
        assert tune_auto_route_params(points, XY(0.0, 0.0), 3) is None


class TestDirtyPrefilter:
    """Test the isolated-point filter run before tuning."""

    def test_outliers_dropped(self):
        """Far stray spawns are removed when enough points remain."""
        points = make_grid(20, 20, spacing=10.0)
        outliers = make_points([(5000, 5000), (-5000, 0), (0, 9000)], start_id=1000)
        tuner = ParameterTuner(points + outliers, XY(95.0, 95.0), 10)
        tuner.prepare()

        kept = {p.id for p in tuner.base_points}
        assert len(kept) == 400
        assert not kept & {1000, 1001, 1002}

    def test_filter_skipped_when_too_few_remain(self):
        """The unfiltered set is kept if cleaning leaves too few points."""
        clump = make_points([(i % 8, i // 8) for i in range(57)])
        outliers = make_points([(100000, 0), (0, 100000), (100000, 100000)], start_id=500)
        tuner = ParameterTuner(clump + outliers, XY(0.0, 0.0), 5)
        tuner.prepare()

        assert len(tuner.base_points) == 60

    def test_fallback_spacing(self):
        """Coincident points fall back to the default spacing."""
        tuner = ParameterTuner(make_points([(1, 1)] * 4), XY(0.0, 0.0), 5)
        tuner.prepare()

        assert tuner.base_spacing == FALLBACK_BASE_SPACING
        assert tuner.dirty_support_radius == 6 * FALLBACK_BASE_SPACING
