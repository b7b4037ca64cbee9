"""
Road network utilities module for pymapsnap.

This module turns road geometry supplied by a loading layer into the two structures
the matcher reads from:

- **RoadNetwork**: the immutable set of road polylines, each with a stable id
- **SpatialIndex**: an R-tree over the polyline bounding boxes for range queries

It also derives the global search radius from the network extent. File parsing and
coordinate reference systems are the caller's business; everything here works on
geometry already held in memory in one planar unit.
"""

import logging
import threading
import warnings
from dataclasses import dataclass
from typing import Hashable, Iterator, List, Optional, Tuple

import numpy as np
import pandas as pd
import polars as pl
from rtree import index

from pymapsnap.utilities.geometry import (
    Envelope,
    GeometryError,
    Polyline,
    as_polylines,
    bounds_of,
)

logger = logging.getLogger(__name__)

# The search radius is this fraction of the network's x-extent
RADIUS_DIVISOR = 100.0


@dataclass(frozen=True)
class Road:
    """
    One indexed road polyline.

    `key` is the position of the polyline in the network and is what the spatial
    index stores. `road_id` is the caller's identifier; a MultiLineString road yields
    several Road entries sharing one `road_id` with increasing `part`.
    """

    key: int
    road_id: Hashable
    part: int
    line: Polyline

    @property
    def envelope(self) -> Envelope:
        return self.line.envelope


class RoadNetwork:
    """
    Immutable collection of road polylines.

    Build it with `load_road_network()`; the matcher never mutates it.
    """

    def __init__(self, roads: Tuple[Road, ...] = (), skipped: int = 0):
        self._roads = tuple(roads)
        self._skipped = skipped
        self._bounds = bounds_of(r.line for r in self._roads)

    @property
    def roads(self) -> Tuple[Road, ...]:
        return self._roads

    @property
    def skipped(self) -> int:
        """Number of input geometries dropped at ingestion."""
        return self._skipped

    @property
    def bounds(self) -> Envelope:
        return self._bounds

    def __len__(self):
        return len(self._roads)

    def __iter__(self) -> Iterator[Road]:
        return iter(self._roads)

    def __getitem__(self, key: int) -> Road:
        return self._roads[key]

    def __repr__(self):
        return f"RoadNetwork(roads={len(self._roads)}, skipped={self._skipped})"


def load_road_network(geometries, ids=None, geometry_col: str = "geometry") -> RoadNetwork:
    """
    Build a RoadNetwork from in-memory road geometry.

    Every input geometry is normalised to one or more Polylines. Road layers often
    carry a few broken features, so unusable geometries are skipped with a warning
    rather than failing the whole load.

    Parameters
    ----------
    geometries : iterable, dict, pd.Series, pd.DataFrame or pl.DataFrame
        Road geometries. Each item may be a shapely LineString or MultiLineString, a
        WKT string, a sequence of (x, y) pairs, or a Polyline. A dict maps road ids
        to geometries. A DataFrame (including a GeoDataFrame) is read from
        `geometry_col`; a pandas index supplies the ids, a polars frame uses row
        positions.
    ids : sequence of hashable, optional
        Road identifiers, same length as `geometries`. Defaults to the position of
        each geometry in the input (or the dict keys / DataFrame index).
    geometry_col : str, default='geometry'
        Geometry column name when `geometries` is a DataFrame.

    Returns
    -------
    RoadNetwork
        Network whose road keys follow input order, parts of a MultiLineString
        kept adjacent and in component order.

    Raises
    ------
    ValueError
        If `ids` does not match the number of geometries, or the DataFrame has no
        `geometry_col` column.

    Examples
    --------
    >>> from shapely.geometry import LineString
    >>> import pymapsnap as pms
    >>>
    >>> roads = pms.utilities.load_road_network([
    ...     LineString([(0, 0), (10, 0)]),
    ...     LineString([(10, 0), (10, 10)]),
    ... ])
    >>> len(roads)
    2

    Notes
    -----
    Skipped inputs (None, empty geometry, unreadable WKT, non-numeric coordinates,
    non-line geometry such as points or polygons, lines with fewer than two
    vertices or non-finite ordinates) are counted in `RoadNetwork.skipped` and
    reported through `warnings.warn`.
    """
    # ========== Resolve ids and geometry sequence ==========
    if isinstance(geometries, pd.DataFrame):
        if geometry_col not in geometries.columns:
            raise ValueError(f"DataFrame has no geometry column '{geometry_col}'.")
        source_ids = list(geometries.index) if ids is None else list(ids)
        geoms = list(geometries[geometry_col])
    elif isinstance(geometries, pl.DataFrame):
        if geometry_col not in geometries.columns:
            raise ValueError(f"DataFrame has no geometry column '{geometry_col}'.")
        geoms = geometries[geometry_col].to_list()
        source_ids = list(range(len(geoms))) if ids is None else list(ids)
    elif isinstance(geometries, pd.Series):
        source_ids = list(geometries.index) if ids is None else list(ids)
        geoms = list(geometries)
    elif isinstance(geometries, dict):
        source_ids = list(geometries.keys()) if ids is None else list(ids)
        geoms = list(geometries.values())
    else:
        geoms = list(geometries)
        source_ids = list(range(len(geoms))) if ids is None else list(ids)

    if len(source_ids) != len(geoms):
        raise ValueError(
            f"Got {len(source_ids)} ids for {len(geoms)} road geometries."
        )

    # ========== Normalise to polylines ==========
    roads: List[Road] = []
    skipped = 0
    for road_id, geom in zip(source_ids, geoms):
        try:
            lines = as_polylines(geom)
        except (TypeError, GeometryError) as exc:
            warnings.warn(f"Skipping road {road_id!r}: {exc}")
            skipped += 1
            continue

        if not lines:
            warnings.warn(f"Skipping road {road_id!r}: empty geometry.")
            skipped += 1
            continue

        for part, line in enumerate(lines):
            roads.append(Road(key=len(roads), road_id=road_id, part=part, line=line))

    network = RoadNetwork(tuple(roads), skipped=skipped)
    logger.debug("Loaded %d road polylines (%d inputs skipped)", len(network), skipped)
    return network


def search_radius(network: RoadNetwork, divisor: float = RADIUS_DIVISOR) -> float:
    """
    Derive the global match radius from the network's x-extent.

    R = bounds.x_span / divisor. An empty network, or one with no horizontal extent,
    gives R = 0, which leaves every point unmatched.
    """
    if divisor <= 0:
        raise ValueError("divisor must be positive")
    return network.bounds.x_span / divisor


class SpatialIndex:
    """
    R-tree over road bounding boxes.

    Build once with `SpatialIndex.build(network)`, then query with search envelopes.
    Queries are conservative: every road whose bounding box intersects the query box
    is returned, so exact distance filtering is left to the caller.

    The underlying libspatialindex handle is not re-entrant, so queries are
    serialised on an internal lock and the index can be shared between threads.
    """

    def __init__(self, network: RoadNetwork, rtree_index: Optional[index.Index], skipped: int):
        self._network = network
        self._rtree = rtree_index
        self._skipped = skipped
        self._size = 0 if rtree_index is None else len(network) - skipped
        self._lock = threading.Lock()

    @classmethod
    def build(cls, network: RoadNetwork) -> "SpatialIndex":
        """
        Bulk-load one index entry per road with a usable envelope.

        Roads whose envelope is null or not finite, and zero-length roads (every
        vertex at one spot), are left out of the index and counted in `skipped`.
        """
        # ========== Collect (key, bbox, None) items ==========
        items = []
        skipped = 0
        for road in network:
            env = road.envelope
            bbox = env.as_bounds()
            if env.is_null or not np.all(np.isfinite(bbox)) or road.line.length == 0.0:
                skipped += 1
                continue
            # rtree wants plain floats, not numpy scalars
            items.append((road.key, tuple(float(v) for v in bbox), None))

        if skipped:
            warnings.warn(f"{skipped} degenerate road(s) were not indexed.")

        # ========== Build R-tree ==========
        # Stream loading packs the tree in one pass; it rejects an empty stream
        rtree_index = index.Index(iter(items)) if items else None

        logger.debug("Spatial index built with %d entries", len(items))
        return cls(network, rtree_index, skipped)

    @property
    def network(self) -> RoadNetwork:
        return self._network

    @property
    def skipped(self) -> int:
        return self._skipped

    def __len__(self):
        return self._size

    def query(self, envelope: Envelope) -> List[Road]:
        """
        Return the roads whose bounding box intersects `envelope`.

        Results are ordered by road key (network order). Touching boxes count as
        intersecting. An empty index or a null envelope gives an empty list.
        """
        if self._rtree is None or envelope.is_null:
            return []

        with self._lock:
            keys = list(self._rtree.intersection(envelope.as_bounds()))

        keys.sort()
        return [self._network[k] for k in keys]
