"""Tests for road network loading, the search radius and the spatial index."""

import pandas as pd
import polars as pl
import pytest
from shapely.geometry import LineString, MultiLineString, Point

from pymapsnap.utilities.geometry import Coordinate, Envelope, Polyline
from pymapsnap.utilities.road_network import (
    RoadNetwork,
    SpatialIndex,
    load_road_network,
    search_radius,
)


def test_load_assigns_positional_ids():
    network = load_road_network([LineString([(0, 0), (1, 0)]), LineString([(0, 1), (1, 1)])])
    assert [r.road_id for r in network] == [0, 1]
    assert [r.key for r in network] == [0, 1]


def test_load_from_dict_and_explicit_ids():
    network = load_road_network({"a": [(0, 0), (1, 0)], "b": "LINESTRING (0 1, 1 1)"})
    assert [r.road_id for r in network] == ["a", "b"]

    network = load_road_network([[(0, 0), (1, 0)]], ids=[42])
    assert network[0].road_id == 42


def test_load_rejects_mismatched_ids():
    with pytest.raises(ValueError):
        load_road_network([[(0, 0), (1, 0)]], ids=[1, 2])


def test_load_from_dataframe_uses_index():
    frame = pd.DataFrame(
        {"geometry": [LineString([(0, 0), (5, 0)]), LineString([(0, 2), (5, 2)])]},
        index=[101, 202],
    )
    network = load_road_network(frame)
    assert [r.road_id for r in network] == [101, 202]

    with pytest.raises(ValueError):
        load_road_network(frame, geometry_col="geom")


def test_multilinestring_parts_share_road_id():
    multi = MultiLineString([[(0, 0), (1, 0)], [(2, 0), (3, 0)]])
    network = load_road_network([multi, LineString([(0, 5), (1, 5)])])
    assert [(r.road_id, r.part) for r in network] == [(0, 0), (0, 1), (1, 0)]
    assert [r.key for r in network] == [0, 1, 2]


def test_broken_geometries_are_skipped_with_warning():
    with pytest.warns(UserWarning):
        network = load_road_network([LineString([(0, 0), (1, 0)]), None, Point(3, 3)])
    assert len(network) == 1
    assert network.skipped == 2


def test_network_bounds_and_radius():
    network = load_road_network([LineString([(0, 0), (100, 0)]), LineString([(50, -5), (50, 40)])])
    assert network.bounds == Envelope(0.0, -5.0, 100.0, 40.0)
    assert search_radius(network) == pytest.approx(1.0)
    assert search_radius(network, divisor=50) == pytest.approx(2.0)


def test_empty_network_has_zero_radius():
    network = RoadNetwork()
    assert network.bounds.is_null
    assert search_radius(network) == 0.0


def test_index_query_returns_intersecting_roads(grid_roads):
    spatial_index = SpatialIndex.build(grid_roads)
    assert len(spatial_index) == 6

    hits = spatial_index.query(Envelope(4, 9, 6, 11))
    assert [r.road_id for r in hits] == ["h10"]

    hits = spatial_index.query(Envelope(9, 9, 11, 11))
    assert [r.road_id for r in hits] == ["h10", "v10"]


def test_index_query_counts_touching_boxes(straight_index):
    hits = straight_index.query(Envelope(4, 0, 6, 2))
    assert len(hits) == 1
    assert straight_index.query(Envelope(4, 0.5, 6, 2)) == []


def test_index_returns_false_positives_by_envelope():
    diagonal = load_road_network([LineString([(0, 0), (10, 10)])])
    spatial_index = SpatialIndex.build(diagonal)
    # Box sits inside the diagonal's envelope but far from the line itself
    assert len(spatial_index.query(Envelope(8, 0, 9, 1))) == 1


def test_index_results_follow_network_order():
    lines = [LineString([(0, 0), (10, 0)]) for _ in range(5)]
    spatial_index = SpatialIndex.build(load_road_network(lines, ids=list("edcba")))
    hits = spatial_index.query(Envelope(4, -1, 6, 1))
    assert [r.key for r in hits] == [0, 1, 2, 3, 4]


def test_empty_index_returns_nothing():
    spatial_index = SpatialIndex.build(RoadNetwork())
    assert len(spatial_index) == 0
    assert spatial_index.query(Envelope(-1e9, -1e9, 1e9, 1e9)) == []


def test_null_query_envelope(straight_index):
    assert straight_index.query(Envelope.null()) == []


def test_index_accepts_polyline_inputs():
    network = load_road_network([Polyline((Coordinate(0, 0), Coordinate(2, 2)))])
    assert SpatialIndex.build(network).query(Envelope(1, 1, 1, 1))[0].road_id == 0


def test_unreadable_roads_are_skipped_with_warning():
    with pytest.warns(UserWarning):
        network = load_road_network([
            LineString([(0, 0), (1, 0)]),
            "LINESTRING (0 0, oops",
            [("a", "b"), ("c", "d")],
        ])
    assert len(network) == 1
    assert network.skipped == 2


def test_zero_length_road_is_not_indexed():
    network = load_road_network([LineString([(0, 0), (5, 0)]), [(2, 2), (2, 2)]])
    assert len(network) == 2

    with pytest.warns(UserWarning):
        spatial_index = SpatialIndex.build(network)
    assert len(spatial_index) == 1
    assert spatial_index.skipped == 1
    assert spatial_index.query(Envelope(1, 1, 3, 3)) == []


def test_load_from_polars_frame():
    frame = pl.DataFrame({
        "wkt": ["LINESTRING (0 0, 5 0)", "LINESTRING (0 2, 5 2)"],
        "name": ["first", "second"],
    })
    network = load_road_network(frame, geometry_col="wkt")
    assert [r.road_id for r in network] == [0, 1]
    assert network[1].line.coordinates[0] == Coordinate(0, 2)

    named = load_road_network(frame, ids=frame["name"].to_list(), geometry_col="wkt")
    assert [r.road_id for r in named] == ["first", "second"]

    with pytest.raises(ValueError):
        load_road_network(frame)
