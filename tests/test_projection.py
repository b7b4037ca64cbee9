"""Tests for nearest-point projection onto polylines."""

import math

import pytest

from pymapsnap.preprocessing.projection import project
from pymapsnap.utilities.geometry import Coordinate, Polyline


@pytest.fixture
def segment():
    return Polyline((Coordinate(0, 0), Coordinate(10, 0)))


def test_orthogonal_projection(segment):
    proj = project(segment, Coordinate(5, 3))
    assert proj.point == Coordinate(5.0, 0.0)
    assert proj.distance == pytest.approx(3.0)
    assert proj.arc_length == pytest.approx(5.0)


def test_projection_clamps_to_start(segment):
    proj = project(segment, Coordinate(-2, 1))
    assert proj.point == Coordinate(0.0, 0.0)
    assert proj.distance == pytest.approx(math.sqrt(5))
    assert proj.arc_length == 0.0


def test_projection_clamps_to_end(segment):
    proj = project(segment, Coordinate(13, -4))
    assert proj.point == Coordinate(10.0, 0.0)
    assert proj.distance == pytest.approx(5.0)
    assert proj.arc_length == pytest.approx(10.0)


def test_projection_picks_nearest_segment():
    line = Polyline(((0, 0), (10, 0), (10, 10)))
    proj = project(line, Coordinate(12, 5))
    assert proj.point == Coordinate(10.0, 5.0)
    assert proj.segment_index == 1
    assert proj.arc_length == pytest.approx(15.0)


def test_projection_tie_goes_to_earliest_segment():
    line = Polyline(((0, 0), (10, 0), (10, 10)))
    proj = project(line, Coordinate(11, -1))
    assert proj.point == Coordinate(10.0, 0.0)
    assert proj.segment_index == 0
    assert proj.arc_length == pytest.approx(10.0)


def test_projection_handles_repeated_vertices():
    line = Polyline(((0, 0), (0, 0), (4, 0)))
    proj = project(line, Coordinate(2, 1))
    assert proj.point == Coordinate(2.0, 0.0)
    assert proj.arc_length == pytest.approx(2.0)


def test_projection_is_deterministic(segment):
    first = project(segment, Coordinate(3.3, 0.7))
    second = project(segment, Coordinate(3.3, 0.7))
    assert first == second
