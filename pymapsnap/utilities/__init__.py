"""
Utilities module for the pymapsnap library.

This module provides the geometry value types, road network loading and the
spatial index used by the matcher.
"""

from pymapsnap.utilities.geometry import (
    Coordinate,
    Envelope,
    Polyline,
    GeometryError,
    as_coordinate,
    as_polylines,
)
from pymapsnap.utilities.road_network import (
    Road,
    RoadNetwork,
    SpatialIndex,
    load_road_network,
    search_radius,
)

__all__ = [
    # Geometry
    'Coordinate',
    'Envelope',
    'Polyline',
    'GeometryError',
    'as_coordinate',
    'as_polylines',
    # Road network
    'Road',
    'RoadNetwork',
    'SpatialIndex',
    'load_road_network',
    'search_radius',
]
