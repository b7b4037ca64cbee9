"""Shared fixtures for the pymapsnap test-suite."""

import pytest
from shapely.geometry import LineString

from pymapsnap.preprocessing.map_matching import MatchResult
from pymapsnap.utilities.geometry import Coordinate
from pymapsnap.utilities.road_network import SpatialIndex, load_road_network


@pytest.fixture
def straight_road():
    """Single horizontal road from (0, 0) to (10, 0)."""
    return load_road_network([LineString([(0, 0), (10, 0)])])


@pytest.fixture
def straight_index(straight_road):
    return SpatialIndex.build(straight_road)


@pytest.fixture
def grid_roads():
    """Three horizontal and three vertical roads on a 10-unit grid."""
    lines = [LineString([(0, y), (20, y)]) for y in (0, 10, 20)]
    lines += [LineString([(x, 0), (x, 20)]) for x in (0, 10, 20)]
    return load_road_network(lines, ids=["h0", "h10", "h20", "v0", "v10", "v20"])


def matched_at(x, y, mx, my):
    """MatchResult for a point snapped from (x, y) to (mx, my)."""
    raw = Coordinate(x, y)
    snapped = Coordinate(mx, my)
    return MatchResult(raw, snapped, raw.distance(snapped), True, road_id=0, candidates=1)


def unmatched_at(x, y):
    return MatchResult(Coordinate(x, y), None, float("inf"), False)
