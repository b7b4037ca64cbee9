"""
Geometry primitives for pymapsnap.

This module defines the small set of planar value types the matching engine works
with:

- **Coordinate**: an immutable (x, y) pair with Euclidean distance
- **Envelope**: an axis-aligned bounding box used for index filtering
- **Polyline**: an ordered sequence of at least two Coordinates (one road piece)

All road geometry is normalised to Polylines at ingestion, so the rest of the
library never has to dispatch over shapely geometry kinds. Coordinates are assumed
to already live in one consistent planar unit; no reprojection happens here.
"""

import math
from dataclasses import dataclass, field
from typing import Iterable, List, Sequence, Tuple

import numpy as np
from shapely import wkt
from shapely.errors import GEOSException
from shapely.geometry import LineString, MultiLineString, Point
from shapely.geometry.base import BaseGeometry


class GeometryError(ValueError):
    """Raised when coordinates cannot form a valid geometry."""


@dataclass(frozen=True)
class Coordinate:
    """Immutable planar coordinate."""

    x: float
    y: float

    def distance(self, other: "Coordinate") -> float:
        return math.hypot(self.x - other.x, self.y - other.y)

    def as_tuple(self) -> Tuple[float, float]:
        return (self.x, self.y)

    def to_point(self) -> Point:
        return Point(self.x, self.y)


@dataclass(frozen=True)
class Envelope:
    """
    Axis-aligned bounding box (min_x, min_y, max_x, max_y).

    A null envelope (min > max on either axis) covers nothing and intersects nothing.
    It is the bounds of an empty geometry collection.
    """

    min_x: float
    min_y: float
    max_x: float
    max_y: float

    @classmethod
    def null(cls) -> "Envelope":
        return cls(math.inf, math.inf, -math.inf, -math.inf)

    @classmethod
    def around(cls, point: Coordinate, half_width: float) -> "Envelope":
        """Square envelope of half-width `half_width` centred on `point`."""
        return cls(point.x - half_width, point.y - half_width,
                   point.x + half_width, point.y + half_width)

    @property
    def is_null(self) -> bool:
        return self.min_x > self.max_x or self.min_y > self.max_y

    @property
    def x_span(self) -> float:
        return 0.0 if self.is_null else self.max_x - self.min_x

    @property
    def y_span(self) -> float:
        return 0.0 if self.is_null else self.max_y - self.min_y

    def expand_by(self, distance: float) -> "Envelope":
        if self.is_null:
            return self
        return Envelope(self.min_x - distance, self.min_y - distance,
                        self.max_x + distance, self.max_y + distance)

    def intersects(self, other: "Envelope") -> bool:
        if self.is_null or other.is_null:
            return False
        return not (other.min_x > self.max_x or other.max_x < self.min_x
                    or other.min_y > self.max_y or other.max_y < self.min_y)

    def union(self, other: "Envelope") -> "Envelope":
        if self.is_null:
            return other
        if other.is_null:
            return self
        return Envelope(min(self.min_x, other.min_x), min(self.min_y, other.min_y),
                        max(self.max_x, other.max_x), max(self.max_y, other.max_y))

    def as_bounds(self) -> Tuple[float, float, float, float]:
        """Return (minx, miny, maxx, maxy), the ordering rtree and shapely use."""
        return (self.min_x, self.min_y, self.max_x, self.max_y)


@dataclass(frozen=True)
class Polyline:
    """
    Ordered sequence of two or more Coordinates describing one road piece.

    The vertex array, envelope and cumulative segment lengths are computed once at
    construction and reused by every projection against this line.

    Raises
    ------
    GeometryError
        If fewer than two coordinates are given or any ordinate is not finite.
    """

    coordinates: Tuple[Coordinate, ...]
    _array: np.ndarray = field(init=False, repr=False, compare=False)
    _cumulative: np.ndarray = field(init=False, repr=False, compare=False)

    def __post_init__(self):
        coords = tuple(
            c if isinstance(c, Coordinate) else Coordinate(float(c[0]), float(c[1]))
            for c in self.coordinates
        )
        if len(coords) < 2:
            raise GeometryError(f"A polyline needs at least 2 coordinates, got {len(coords)}.")

        array = np.array([(c.x, c.y) for c in coords], dtype=float)
        if not np.all(np.isfinite(array)):
            raise GeometryError("Polyline coordinates must be finite numbers.")

        # Length of each segment, then running arc length at every vertex
        seg_lengths = np.hypot(np.diff(array[:, 0]), np.diff(array[:, 1]))
        cumulative = np.concatenate(([0.0], np.cumsum(seg_lengths)))

        object.__setattr__(self, "coordinates", coords)
        object.__setattr__(self, "_array", array)
        object.__setattr__(self, "_cumulative", cumulative)

    @property
    def array(self) -> np.ndarray:
        """(n, 2) float array of the vertices. Treat as read-only."""
        return self._array

    @property
    def cumulative_lengths(self) -> np.ndarray:
        return self._cumulative

    @property
    def length(self) -> float:
        return float(self._cumulative[-1])

    @property
    def envelope(self) -> Envelope:
        mins = self._array.min(axis=0)
        maxs = self._array.max(axis=0)
        return Envelope(float(mins[0]), float(mins[1]), float(maxs[0]), float(maxs[1]))

    @property
    def segment_count(self) -> int:
        return len(self.coordinates) - 1

    def segments(self) -> List[Tuple[Coordinate, Coordinate]]:
        return list(zip(self.coordinates[:-1], self.coordinates[1:]))

    def to_linestring(self) -> LineString:
        return LineString(self._array)

    def __len__(self):
        return len(self.coordinates)


def as_coordinate(value) -> Coordinate:
    """Coerce a Coordinate, shapely Point or (x, y) pair into a Coordinate."""
    if isinstance(value, Coordinate):
        return value
    if isinstance(value, Point):
        if value.is_empty:
            raise GeometryError("Cannot build a coordinate from an empty point.")
        return Coordinate(float(value.x), float(value.y))
    try:
        x, y = value[0], value[1]
    except (TypeError, IndexError) as exc:
        raise TypeError(f"Cannot interpret {value!r} as a coordinate.") from exc
    try:
        return Coordinate(float(x), float(y))
    except (TypeError, ValueError) as exc:
        raise GeometryError(f"Coordinate {value!r} is not numeric.") from exc


def as_polylines(geometry) -> List[Polyline]:
    """
    Normalise one road geometry into a list of Polylines.

    Parameters
    ----------
    geometry : Polyline, shapely LineString/MultiLineString, WKT str, or sequence of (x, y)
        The road geometry. A MultiLineString contributes one Polyline per component
        line, in component order.

    Returns
    -------
    list of Polyline
        Empty if the geometry is None or empty.

    Raises
    ------
    TypeError
        For geometry that is not line-like (points, polygons, unknown objects).
    GeometryError
        For unreadable WKT, non-numeric coordinates, or line geometry with fewer
        than two vertices or non-finite ordinates.
    """
    if geometry is None:
        return []
    if isinstance(geometry, Polyline):
        return [geometry]
    if isinstance(geometry, str):
        try:
            geometry = wkt.loads(geometry)
        except GEOSException as exc:
            raise GeometryError(f"Unreadable WKT: {exc}") from exc

    if isinstance(geometry, BaseGeometry):
        if geometry.is_empty:
            return []
        if isinstance(geometry, LineString):
            return [Polyline(tuple(Coordinate(x, y) for x, y, *_ in geometry.coords))]
        if isinstance(geometry, MultiLineString):
            lines = []
            for part in geometry.geoms:
                lines.extend(as_polylines(part))
            return lines
        raise TypeError(f"Road geometry must be line-like, got {geometry.geom_type}.")

    if isinstance(geometry, (list, tuple, np.ndarray)):
        return [Polyline(tuple(as_coordinate(c) for c in geometry))]

    raise TypeError(f"Unsupported road geometry type: {type(geometry).__name__}.")


def bounds_of(lines: Iterable[Polyline]) -> Envelope:
    """Union envelope of all lines; null for an empty iterable."""
    env = Envelope.null()
    for line in lines:
        env = env.union(line.envelope)
    return env


def linestring_from(coordinates: Sequence[Coordinate]) -> LineString:
    return LineString([c.as_tuple() for c in coordinates])
