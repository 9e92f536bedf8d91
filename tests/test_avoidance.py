"""Tests for dense-cluster avoidance along travel segments."""

import pytest

from py_farmroute.core.avoidance import (
    build_dense_index,
    dist2_point_to_segment,
    segment_avoids_dense,
)
from py_farmroute.core.route_builder import XY
from conftest import make_points


A = XY(0.0, 0.0)
B = XY(10.0, 0.0)


class TestDistanceToSegment:
    """Test point-to-segment distance."""

    def test_perpendicular_projection(self):
        """Points beside the segment measure to the foot of the perpendicular."""
        assert dist2_point_to_segment(XY(5.0, 3.0), A, B) == pytest.approx(9.0)

    def test_clamped_to_endpoints(self):
        """Projections past either end clamp to the endpoint."""
        assert dist2_point_to_segment(XY(-3.0, 4.0), A, B) == pytest.approx(25.0)
        assert dist2_point_to_segment(XY(13.0, 4.0), A, B) == pytest.approx(25.0)

    def test_degenerate_segment(self):
        """A zero-length segment behaves like a point."""
        assert dist2_point_to_segment(XY(3.0, 4.0), A, A) == pytest.approx(25.0)


class TestSegmentAvoidsDense:
    """Test the avoidance check."""

    def test_dense_point_on_midpoint_blocks(self):
        """A dense point sitting on the segment blocks it."""
        dense = make_points([(5, 0)])
        index = build_dense_index(dense, 1.0)
        assert segment_avoids_dense(A, B, index, 1.0) is False

    def test_radius_below_perpendicular_distance_allows(self):
        """Shrinking the radius under the point's distance lets the segment pass."""
        dense = make_points([(5, 2)])

        assert segment_avoids_dense(A, B, build_dense_index(dense, 3.0), 3.0) is False
        assert segment_avoids_dense(A, B, build_dense_index(dense, 1.5), 1.5) is True

    def test_exact_radius_blocks(self):
        """The comparison is inclusive."""
        dense = make_points([(5, 2)])
        assert segment_avoids_dense(A, B, build_dense_index(dense, 2.0), 2.0) is False

    def test_point_beyond_endpoint(self):
        """Clearance is measured to the nearest endpoint past the segment ends."""
        dense = make_points([(13, 0)])
        assert segment_avoids_dense(A, B, build_dense_index(dense, 2.5), 2.5) is True
        assert segment_avoids_dense(A, B, build_dense_index(dense, 3.5), 3.5) is False

    def test_far_cells_not_scanned_but_diagonal_segment_checked(self):
        """Dense points anywhere along a long diagonal segment are found."""
        dense = make_points([(250, 251), (900, 0)])
        index = build_dense_index(dense, 2.0)
        assert segment_avoids_dense(XY(0.0, 0.0), XY(500.0, 500.0), index, 2.0) is False
        assert segment_avoids_dense(XY(0.0, 100.0), XY(100.0, 200.0), index, 2.0) is True

    def test_tiny_radius_on_long_segment(self):
        """A tiny radius over a long segment still finds points on it and clears points off it."""
        segment_start = XY(0.0, 0.0)
        segment_end = XY(1e6, 0.0)

        on_segment = build_dense_index(make_points([(5e5, 0)]), 1e-3)
        assert segment_avoids_dense(segment_start, segment_end, on_segment, 1e-3) is False

        beside = build_dense_index(make_points([(5e5, 1), (-50, 0)]), 1e-3)
        assert segment_avoids_dense(segment_start, segment_end, beside, 1e-3) is True

    @pytest.mark.parametrize("radius", [0.0, -1.0])
    def test_non_positive_radius_always_passes(self, radius):
        """No avoidance radius, no obstruction."""
        dense = make_points([(5, 0)])
        index = build_dense_index(dense, 1.0)
        assert segment_avoids_dense(A, B, index, radius) is True

    def test_missing_index_passes(self):
        """Without dense points every segment is clear."""
        assert segment_avoids_dense(A, B, None, 5.0) is True
        assert build_dense_index([], 5.0) is None
        assert build_dense_index(make_points([(5, 0)]), 0.0) is None
