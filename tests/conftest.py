"""Shared fixtures for route planning tests."""

import numpy as np
import pytest

from py_farmroute.core.route_builder import SpawnPoint


def make_points(coords, start_id=1):
    """SpawnPoints with sequential ids from (x, y) pairs."""
    return [
        SpawnPoint(id=start_id + i, x=float(x), y=float(y), z=0.0)
        for i, (x, y) in enumerate(coords)
    ]


def make_grid(nx, ny, spacing=10.0, start_id=1):
    """Regular nx * ny lattice starting at the origin."""
    coords = [(ix * spacing, iy * spacing) for iy in range(ny) for ix in range(nx)]
    return make_points(coords, start_id=start_id)


@pytest.fixture
def random_points():
    """300 uniformly scattered spawns over a 1000 x 1000 area."""
    rng = np.random.default_rng(42)
    xy = rng.uniform(0, 1000, size=(300, 2))
    zs = rng.uniform(-50, 50, size=300)
    return [
        SpawnPoint(id=i, x=float(x), y=float(y), z=float(z))
        for i, ((x, y), z) in enumerate(zip(xy, zs))
    ]


@pytest.fixture
def clustered_points():
    """Gaussian spawn clumps plus a sparse background."""
    rng = np.random.default_rng(7)
    centers = [(200, 200), (700, 300), (450, 750)]
    coords = []
    for cx, cy in centers:
        coords.extend(rng.normal((cx, cy), 15, size=(25, 2)).tolist())
    coords.extend(rng.uniform(0, 1000, size=(150, 2)).tolist())
    return make_points(coords, start_id=100)
